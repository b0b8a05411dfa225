"""Tests for lzorchestra error classes.

Tests cover:
- TransientError / PermanentError hierarchy
- Configuration error subclasses and their messages
"""

import pytest

from lzorchestra.errors import (
    ConfigurationError,
    CredentialError,
    DependencyCycleError,
    DuplicateStageError,
    LzorchestraError,
    PermanentError,
    ResourcePolicyError,
    TransientError,
    UnknownModuleError,
)


class TestHierarchy:
    """Tests for the error class hierarchy."""

    def test_base_is_exception(self):
        """LzorchestraError should be an Exception."""
        assert issubclass(LzorchestraError, Exception)

    def test_transient_and_permanent_are_lzorchestra_errors(self):
        """Both top-level classifications derive from the base error."""
        assert issubclass(TransientError, LzorchestraError)
        assert issubclass(PermanentError, LzorchestraError)

    def test_transient_not_permanent(self):
        """TransientError is not a PermanentError."""
        assert not isinstance(TransientError("x"), PermanentError)
        assert not isinstance(PermanentError("x"), TransientError)

    @pytest.mark.parametrize("cls", [ConfigurationError, CredentialError])
    def test_permanent_subclasses(self, cls):
        """Configuration and credential errors are never retried."""
        assert issubclass(cls, PermanentError)

    def test_cycle_is_configuration_error(self):
        """A dependency cycle is a configuration problem."""
        with pytest.raises(ConfigurationError):
            raise DependencyCycleError("cycle")


class TestMessages:
    """Tests for error messages surfaced to operators."""

    def test_duplicate_stage(self):
        """DuplicateStageError names the stage."""
        error = DuplicateStageError("prepare")
        assert error.stage == "prepare"
        assert str(error) == (
            "Internal error - duplicate entries found for stage prepare in module stage registry"
        )

    def test_unknown_module(self):
        """UnknownModuleError names the module."""
        error = UnknownModuleError("mystery")
        assert error.module == "mystery"
        assert str(error) == "Unknown Module mystery"

    def test_resource_policy(self):
        """ResourcePolicyError names the type and account."""
        error = ResourcePolicyError("S3_BUCKET", "111111111111")
        assert str(error) == "Missing resource policy type S3_BUCKET for account 111111111111"
        assert isinstance(error, PermanentError)
