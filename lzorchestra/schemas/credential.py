"""
AssumedCredential schema - short-lived credentials from an assume-role call.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class AssumedCredential:
    """
    Ephemeral credentials. Never persisted.

    Attributes:
        access_key_id: AWS access key ID
        secret_access_key: AWS secret access key
        session_token: AWS session token
        expiration: When the credentials stop being valid
    """
    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: Optional[datetime] = None

    def __repr__(self) -> str:
        # Keep secrets out of logs
        return (
            f"AssumedCredential(access_key_id={self.access_key_id!r}, "
            f"expiration={self.expiration!r})"
        )

    def to_boto3_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for boto3.session.Session / client()."""
        return {
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "aws_session_token": self.session_token,
        }
