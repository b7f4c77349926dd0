"""Custom resource provider entry point.

The orchestration layer delivers events whose structured properties arrive
as JSON text. They are parsed exactly once, here, into a typed
ReconcileRequest; nothing past this module sees serialized values.
"""
import json
import logging
from typing import Any, Dict, Optional, Tuple

from ..domains.aws_client import AWSSecretClient
from ..domains.blob_source import S3BlobSource
from ..domains.config_loader import load_config
from ..domains.errors import ValidationError
from ..domains.models import (
    BlobLocator,
    LifecycleEvent,
    ReconcileRequest,
    ReplicaRegion,
    SecretDefinition,
    Tag,
)
from ..domains.sops_decoder import SopsDecoder, parse_content_format
from .reconciler import Reconciler

logger = logging.getLogger(__name__)

_REQUIRED_PROPERTIES = ("SecretName", "SecretType", "S3BucketName", "S3ObjectKey")


def _load_json(props: Dict[str, Any], key: str) -> Any:
    raw = props.get(key)
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{key} must be a JSON string")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{key} is not valid JSON: {e}") from e


def _optional_string(props: Dict[str, Any], key: str) -> Optional[str]:
    value = props.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def parse_tags(props: Dict[str, Any]) -> Tuple[Tag, ...]:
    raw = _load_json(props, "SecretTags")
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError("SecretTags must be a JSON list of [key, value] pairs")
    tags = []
    for item in raw:
        if (not isinstance(item, list) or len(item) != 2
                or not all(isinstance(part, str) for part in item)):
            raise ValidationError(f"Invalid tag entry {item!r}: expected [key, value]")
        tags.append(Tag(item[0], item[1]))
    return tuple(tags)


def parse_replica_regions(props: Dict[str, Any]) -> Tuple[ReplicaRegion, ...]:
    raw = _load_json(props, "SecretReplicaRegions")
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError("SecretReplicaRegions must be a JSON list")
    replicas = []
    for item in raw:
        if not isinstance(item, dict) or not isinstance(item.get("region"), str) or not item["region"]:
            raise ValidationError(f"Invalid replica region entry {item!r}: expected {{\"region\": ...}}")
        kms_key_id = item.get("kmsKeyId")
        if kms_key_id is not None and not isinstance(kms_key_id, str):
            raise ValidationError(f"Invalid kmsKeyId for region {item['region']}")
        replicas.append(ReplicaRegion(item["region"], kms_key_id or None))
    return tuple(replicas)


def parse_policy(props: Dict[str, Any]) -> Optional[str]:
    policy = _load_json(props, "SecretPolicy")
    if policy is None:
        return None
    if not isinstance(policy, dict):
        raise ValidationError("SecretPolicy must be a JSON object")
    return props["SecretPolicy"]


def parse_definition(props: Dict[str, Any]) -> SecretDefinition:
    """
    Build a SecretDefinition from custom resource properties.

    Raises:
        ValidationError: If a required property is missing or a structured
            property is malformed
    """
    if not isinstance(props, dict):
        raise ValidationError("ResourceProperties must be an object")
    missing = [key for key in _REQUIRED_PROPERTIES if not props.get(key)]
    if missing:
        raise ValidationError(f"Missing required properties: {', '.join(missing)}")

    definition = SecretDefinition(
        name=props["SecretName"],
        content_format=parse_content_format(props["SecretType"]),
        source=BlobLocator(props["S3BucketName"], props["S3ObjectKey"]),
        encryption_key_ref=_optional_string(props, "KmsKeyArn"),
        storage_key_ref=_optional_string(props, "SecretKmsKeyArn"),
        description=_optional_string(props, "SecretDescription"),
        tags=parse_tags(props),
        resource_policy=parse_policy(props),
        replica_regions=parse_replica_regions(props),
    )
    definition.validate()
    return definition


def parse_event(event: Dict[str, Any]) -> ReconcileRequest:
    """
    Parse a raw lifecycle event into a ReconcileRequest.

    Raises:
        ValidationError: If the event type is unknown or required fields are absent
    """
    if not isinstance(event, dict):
        raise ValidationError("Event must be an object")
    request_type = event.get("RequestType")
    try:
        kind = LifecycleEvent(request_type)
    except ValueError:
        raise ValidationError(f"Unknown event type {request_type}")

    prior_identity = event.get("PhysicalResourceId") or None
    if kind != LifecycleEvent.CREATE and not prior_identity:
        raise ValidationError(f"{kind.value} event requires PhysicalResourceId")

    if kind == LifecycleEvent.DELETE:
        return ReconcileRequest(kind, prior_identity=prior_identity)

    definition = parse_definition(event.get("ResourceProperties") or {})
    return ReconcileRequest(kind, definition=definition, prior_identity=prior_identity)


def build_reconciler(config: Optional[Dict[str, Any]] = None) -> Reconciler:
    """Wire a Reconciler from configuration (loaded fresh when not given)."""
    if config is None:
        config = load_config()
    region = config["aws"]["region"]
    return Reconciler(
        store=AWSSecretClient(region=region),
        blob_source=S3BlobSource(region=region),
        decoder=SopsDecoder(config["sops"]["binary_path"]),
    )


def _event_label(event: Any) -> str:
    if isinstance(event, dict) and event.get("RequestType"):
        return str(event["RequestType"])
    return "Event"


def handle_event(event: Dict[str, Any], reconciler: Reconciler) -> Dict[str, str]:
    """Parse and reconcile one event, returning the provider response."""
    try:
        request = parse_event(event)
        result = reconciler.reconcile(request)
    except Exception:
        logger.exception(f"{_event_label(event)} failed")
        raise
    return result.to_response()


def on_event(event: Dict[str, Any], context: Any = None) -> Dict[str, str]:
    """Lambda handler for the custom resource provider."""
    try:
        reconciler = build_reconciler()
    except Exception:
        logger.exception(f"{_event_label(event)} failed: could not load configuration")
        raise
    return handle_event(event, reconciler)
