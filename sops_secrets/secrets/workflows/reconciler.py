"""Reconcile a desired secret definition against Secrets Manager.

Each invocation re-reads remote state and applies the ordered call sequence
for its lifecycle event. Removals always run before additions for both tags
and replica regions. Nothing is retried or cached here; a failed invocation
is safe to re-run from scratch.
"""
import logging

from ..domains.aws_client import AWSSecretClient
from ..domains.blob_source import S3BlobSource
from ..domains.errors import SecretNotFoundError, ValidationError
from ..domains.models import (
    LifecycleEvent,
    ReconcileRequest,
    ReconcileResult,
    RemoteSecretState,
    SecretDefinition,
)
from ..domains.sops_decoder import SopsDecoder

logger = logging.getLogger(__name__)


class Reconciler:
    """Drives one secret to its desired state for a single lifecycle event."""

    def __init__(self, store: AWSSecretClient, blob_source: S3BlobSource, decoder: SopsDecoder):
        self.store = store
        self.blob_source = blob_source
        self.decoder = decoder

    def reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        if request.event == LifecycleEvent.CREATE:
            logger.info(f"Creating secret {request.definition.name}")
            return ReconcileResult(self.upsert(request.definition))

        if request.event == LifecycleEvent.UPDATE:
            logger.info(f"Updating secret {request.prior_identity}")
            self.upsert(request.definition)
            return ReconcileResult(request.prior_identity or request.definition.name)

        if request.event == LifecycleEvent.DELETE:
            logger.info(f"Deleting secret {request.prior_identity}")
            return ReconcileResult(self.delete(request.prior_identity))

        raise ValidationError(f"Unknown event type {request.event}")

    def _fetch_state(self, secret_id: str) -> RemoteSecretState:
        try:
            return self.store.describe(secret_id)
        except SecretNotFoundError:
            return RemoteSecretState.absent()

    def upsert(self, definition: SecretDefinition) -> str:
        """
        Create or update a secret so that it matches the definition.

        Args:
            definition: Desired state

        Returns:
            The secret name, used as its identity

        Raises:
            ValidationError: If the definition is invalid (no remote call made)
            DecodeError: If the encrypted source cannot be decrypted (no mutation made)
        """
        definition.validate()
        name = definition.name

        ciphertext = self.blob_source.fetch(definition.source)
        logger.info(f"Decoding secret {name}")
        value = self.decoder.decode(ciphertext, definition.content_format)
        logger.info("Successfully decoded secret")

        remote = self._fetch_state(name)

        if remote.exists:
            self.store.update_secret(name, value, definition.description, definition.storage_key_ref)
        else:
            self.store.create_secret(name, value, definition.description, definition.storage_key_ref)

        self._reconcile_tags(definition, remote)
        self._reconcile_policy(definition)
        self._reconcile_regions(definition, remote)
        return name

    def _reconcile_tags(self, definition: SecretDefinition, remote: RemoteSecretState) -> None:
        desired_keys = {tag.key for tag in definition.tags}
        to_remove = sorted({tag.key for tag in remote.tags} - desired_keys)
        if to_remove:
            logger.debug(f"Removing tags {to_remove} from {definition.name}")
            self.store.untag(definition.name, to_remove)
        if definition.tags:
            self.store.tag(definition.name, definition.tags)

    def _reconcile_policy(self, definition: SecretDefinition) -> None:
        if definition.resource_policy:
            self.store.put_policy(definition.name, definition.resource_policy)
            return
        try:
            self.store.delete_policy(definition.name)
        except SecretNotFoundError:
            logger.debug(f"No resource policy attached to {definition.name}")

    def _reconcile_regions(self, definition: SecretDefinition, remote: RemoteSecretState) -> None:
        desired = {replica.region for replica in definition.replica_regions}
        to_remove = sorted({r.region for r in remote.replica_regions} - desired)
        if to_remove:
            logger.debug(f"Removing replica regions {to_remove} from {definition.name}")
            self.store.remove_regions(definition.name, to_remove)
        # Re-adding a region that already replicates is a no-op on the store side.
        if definition.replica_regions:
            self.store.add_regions(definition.name, definition.replica_regions)

    def delete(self, identity: str) -> str:
        """
        Permanently delete a secret and its replicas.

        A secret that no longer exists counts as already deleted. Success means
        the store accepted the deletion, not that it has been purged.
        """
        try:
            remote = self.store.describe(identity)
        except SecretNotFoundError:
            logger.warning(f"Secret {identity} not found, treating as already deleted")
            return identity

        if remote.replica_regions:
            self.store.remove_regions(identity, [r.region for r in remote.replica_regions])

        self.store.delete_permanently(identity)
        return identity
