"""Declaration-side helpers: turn a sops file into custom resource properties.

Name uniqueness is tracked per DeploymentUnit. Build a new unit for every
deployment run; nothing is remembered at module level.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Set

from .errors import ValidationError
from .models import ContentFormat, SecretDefinition
from .sops_decoder import parse_content_format

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "Custom::SopsSecret"

_EXTENSION_FORMATS = {
    ".json": ContentFormat.JSON,
    ".yaml": ContentFormat.YAML,
    ".yml": ContentFormat.YAML,
    ".env": ContentFormat.DOTENV,
    ".txt": ContentFormat.TEXT,
}


def infer_content_format(path: str, declared: Optional[str] = None) -> ContentFormat:
    """
    Pick the content format for a sops file.

    An explicit declaration wins; otherwise the file extension decides.

    Raises:
        ValidationError: If no format is declared and the extension is unknown
    """
    if declared:
        return parse_content_format(declared)
    # Dotfiles such as ".env" have no suffix, only a name.
    suffix = (Path(path).suffix or Path(path).name).lower()
    if suffix not in _EXTENSION_FORMATS:
        raise ValidationError(f"Could not infer file type from file name: {path}")
    return _EXTENSION_FORMATS[suffix]


def to_resource_properties(definition: SecretDefinition) -> Dict[str, str]:
    """Serialize a definition into the string-valued properties the provider receives."""
    props = {
        "SecretName": definition.name,
        "SecretType": definition.content_format.value,
        "S3BucketName": definition.source.bucket,
        "S3ObjectKey": definition.source.key,
    }
    if definition.encryption_key_ref:
        props["KmsKeyArn"] = definition.encryption_key_ref
    if definition.storage_key_ref:
        props["SecretKmsKeyArn"] = definition.storage_key_ref
    if definition.description is not None:
        props["SecretDescription"] = definition.description
    if definition.tags:
        props["SecretTags"] = json.dumps([[t.key, t.value] for t in definition.tags])
    if definition.resource_policy:
        props["SecretPolicy"] = definition.resource_policy
    if definition.replica_regions:
        regions = []
        for replica in definition.replica_regions:
            entry = {"region": replica.region}
            if replica.kms_key_id:
                entry["kmsKeyId"] = replica.kms_key_id
            regions.append(entry)
        props["SecretReplicaRegions"] = json.dumps(regions)
    return props


class DeploymentUnit:
    """One deployment run; secret names must be unique within it."""

    def __init__(self, unit_id: str):
        self.unit_id = unit_id
        self._names: Set[str] = set()

    @property
    def names(self) -> Set[str]:
        return set(self._names)

    def declare(self, definition: SecretDefinition) -> Dict[str, str]:
        """
        Register a secret in this unit and return its resource properties.

        Raises:
            ValidationError: If the name was already declared in this unit or
                the definition itself is invalid
        """
        definition.validate()
        if definition.name in self._names:
            raise ValidationError(
                f"Secret name '{definition.name}' is already declared in deployment unit '{self.unit_id}'"
            )
        self._names.add(definition.name)
        logger.info(f"Declared secret {definition.name} in {self.unit_id}")
        return to_resource_properties(definition)
