"""Tests for resource naming helpers."""

from lzorchestra.resources import (
    central_log_bucket_kms_parameter,
    central_log_bucket_name,
    resource_prefixes,
    runner_target_regions,
)


class TestResourcePrefixes:
    """Tests for resource_prefixes."""

    def test_legacy_prefix(self):
        """The legacy prefix maps to historical names."""
        prefixes = resource_prefixes("AWSAccelerator")
        assert prefixes.bucket_name == "aws-accelerator"
        assert prefixes.ssm_param_name == "/accelerator"
        assert prefixes.kms_alias == "alias/accelerator"

    def test_custom_prefix(self):
        """Other prefixes are used directly, lowercased for buckets."""
        prefixes = resource_prefixes("Accelerator")
        assert prefixes.accelerator == "Accelerator"
        assert prefixes.bucket_name == "accelerator"
        assert prefixes.ssm_param_name == "/Accelerator"
        assert prefixes.central_logs_bucket == "accelerator-central-logs"


class TestCentralLogBucket:
    """Tests for central log bucket naming."""

    def test_default_name(self):
        """The default bucket is scoped to the log archive account and region."""
        prefixes = resource_prefixes("Accelerator")
        assert central_log_bucket_name(prefixes, "222222222222", "us-east-1") == (
            "accelerator-central-logs-222222222222-us-east-1"
        )

    def test_imported_name_placeholders(self):
        """Imported names substitute account and region placeholders."""
        prefixes = resource_prefixes("Accelerator")
        name = central_log_bucket_name(
            prefixes, "222222222222", "eu-west-1", "existing-${ACCOUNT_ID}-${REGION}"
        )
        assert name == "existing-222222222222-eu-west-1"

    def test_kms_parameter(self):
        """The key parameter lives under the SSM prefix."""
        prefixes = resource_prefixes("Accelerator")
        assert central_log_bucket_kms_parameter(prefixes) == "/Accelerator/logging/central-bucket/kms/arn"


class TestTargetRegions:
    """Tests for runner_target_regions."""

    def test_excluded_removed_in_order(self):
        """Excluded regions are dropped and order is kept."""
        assert runner_target_regions(["us-east-1", "us-west-2", "eu-west-1"], ["us-west-2"]) == [
            "us-east-1",
            "eu-west-1",
        ]
