"""Domain models for secret reconciliation."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .errors import ValidationError

MAX_TAGS = 50


class ContentFormat(str, Enum):
    """Structural format of an encrypted file; sops decrypts to the same format."""
    JSON = "json"
    YAML = "yaml"
    DOTENV = "dotenv"
    TEXT = "txt"


class LifecycleEvent(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


@dataclass(frozen=True)
class Tag:
    key: str
    value: str


@dataclass(frozen=True)
class ReplicaRegion:
    """Desired replica; kms_key_id of None means the replica region's default key."""
    region: str
    kms_key_id: Optional[str] = None


@dataclass(frozen=True)
class ReplicaStatus:
    """Replica as reported by describe_secret."""
    region: str
    status: Optional[str] = None


@dataclass(frozen=True)
class BlobLocator:
    bucket: str
    key: str


@dataclass(frozen=True)
class SecretDefinition:
    """Desired state of one secret for a single invocation."""
    name: str
    content_format: ContentFormat
    source: BlobLocator
    encryption_key_ref: Optional[str] = None
    storage_key_ref: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[Tag, ...] = ()
    resource_policy: Optional[str] = None
    replica_regions: Tuple[ReplicaRegion, ...] = ()

    def validate(self) -> None:
        """
        Check constraints that must hold before any remote call.

        Raises:
            ValidationError: If the name is empty, there are more than 50 tags,
                a tag key repeats, or a replica region repeats
        """
        if not self.name:
            raise ValidationError("Secret name cannot be empty")

        if len(self.tags) > MAX_TAGS:
            raise ValidationError(f"Can not set more than {MAX_TAGS} tags (got {len(self.tags)})")

        keys = [tag.key for tag in self.tags]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ValidationError(f"Duplicate tag keys: {', '.join(duplicates)}")

        regions = [replica.region for replica in self.replica_regions]
        duplicates = sorted({r for r in regions if regions.count(r) > 1})
        if duplicates:
            raise ValidationError(f"Duplicate replica regions: {', '.join(duplicates)}")


@dataclass(frozen=True)
class RemoteSecretState:
    """Observed state of a secret, read fresh at the start of each reconciliation."""
    exists: bool
    tags: Tuple[Tag, ...] = ()
    replica_regions: Tuple[ReplicaStatus, ...] = ()

    @classmethod
    def absent(cls) -> "RemoteSecretState":
        return cls(exists=False)


@dataclass(frozen=True)
class ReconcileRequest:
    """Typed form of one lifecycle event."""
    event: LifecycleEvent
    definition: Optional[SecretDefinition] = None
    prior_identity: Optional[str] = None


@dataclass(frozen=True)
class ReconcileResult:
    identity: str

    def to_response(self) -> dict:
        return {"PhysicalResourceId": self.identity}
