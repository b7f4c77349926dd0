"""AWS Secrets Manager client wrapper."""
import logging
from typing import Iterable, Optional

import boto3
from botocore.exceptions import ClientError

from .errors import SecretNotFoundError
from .models import RemoteSecretState, ReplicaRegion, ReplicaStatus, Tag

logger = logging.getLogger(__name__)

NOT_FOUND_CODE = "ResourceNotFoundException"


def is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == NOT_FOUND_CODE


class AWSSecretClient:
    """
    Thin wrapper around the boto3 secretsmanager client.

    ResourceNotFoundException is translated into SecretNotFoundError so callers
    can decide where "not found" is tolerable. Every other error propagates
    unchanged.
    """

    def __init__(self, region: Optional[str] = None, client=None):
        self._region = region
        self._client = client

    @property
    def client(self):
        """Lazy-initialize client."""
        if self._client is None:
            if self._region:
                self._client = boto3.client("secretsmanager", region_name=self._region)
            else:
                self._client = boto3.client("secretsmanager")
        return self._client

    def _call(self, operation: str, secret_id: str, **kwargs):
        logger.debug(f"secretsmanager.{operation} {secret_id}")
        try:
            return getattr(self.client, operation)(**kwargs)
        except ClientError as e:
            if is_not_found(e):
                raise SecretNotFoundError(secret_id) from e
            raise

    def describe(self, secret_id: str) -> RemoteSecretState:
        """
        Read the current tags and replica regions of a secret.

        Raises:
            SecretNotFoundError: If the secret does not exist
        """
        response = self._call("describe_secret", secret_id, SecretId=secret_id)
        tags = tuple(Tag(t["Key"], t.get("Value", "")) for t in response.get("Tags") or [])
        replicas = tuple(
            ReplicaStatus(r["Region"], r.get("Status"))
            for r in response.get("ReplicationStatus") or []
        )
        return RemoteSecretState(exists=True, tags=tags, replica_regions=replicas)

    def create_secret(self, name: str, value: str, description: Optional[str] = None,
                      kms_key_id: Optional[str] = None) -> None:
        kwargs = {"Name": name, "SecretString": value}
        if description is not None:
            kwargs["Description"] = description
        if kms_key_id:
            kwargs["KmsKeyId"] = kms_key_id
        self._call("create_secret", name, **kwargs)

    def update_secret(self, secret_id: str, value: str, description: Optional[str] = None,
                      kms_key_id: Optional[str] = None) -> None:
        kwargs = {"SecretId": secret_id, "SecretString": value}
        if description is not None:
            kwargs["Description"] = description
        if kms_key_id:
            kwargs["KmsKeyId"] = kms_key_id
        self._call("update_secret", secret_id, **kwargs)

    def tag(self, secret_id: str, tags: Iterable[Tag]) -> None:
        self._call(
            "tag_resource", secret_id,
            SecretId=secret_id,
            Tags=[{"Key": t.key, "Value": t.value} for t in tags],
        )

    def untag(self, secret_id: str, keys: Iterable[str]) -> None:
        self._call("untag_resource", secret_id, SecretId=secret_id, TagKeys=list(keys))

    def put_policy(self, secret_id: str, policy: str) -> None:
        self._call("put_resource_policy", secret_id, SecretId=secret_id, ResourcePolicy=policy)

    def delete_policy(self, secret_id: str) -> None:
        self._call("delete_resource_policy", secret_id, SecretId=secret_id)

    def add_regions(self, secret_id: str, replicas: Iterable[ReplicaRegion]) -> None:
        regions = []
        for replica in replicas:
            entry = {"Region": replica.region}
            if replica.kms_key_id:
                entry["KmsKeyId"] = replica.kms_key_id
            regions.append(entry)
        self._call("replicate_secret_to_regions", secret_id,
                   SecretId=secret_id, AddReplicaRegions=regions)

    def remove_regions(self, secret_id: str, regions: Iterable[str]) -> None:
        self._call("remove_regions_from_replication", secret_id,
                   SecretId=secret_id, RemoveReplicaRegions=list(regions))

    def delete_permanently(self, secret_id: str) -> None:
        self._call("delete_secret", secret_id,
                   SecretId=secret_id, ForceDeleteWithoutRecovery=True)
