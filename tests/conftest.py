"""Shared fixtures: in-memory stand-ins for Secrets Manager, S3 and sops."""
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from sops_secrets.secrets.domains import preferences
from sops_secrets.secrets.domains.aws_client import AWSSecretClient
from sops_secrets.secrets.domains.models import BlobLocator, ContentFormat, SecretDefinition
from sops_secrets.secrets.workflows.reconciler import Reconciler


def _not_found(operation):
    return ClientError(
        {"Error": {"Code": "ResourceNotFoundException", "Message": "Secrets Manager can't find the specified secret."}},
        operation,
    )


class FakeSecretsManager:
    """Mimics the subset of the boto3 secretsmanager client the reconciler uses.

    Every call is recorded in ``calls`` as (operation, kwargs) so tests can
    assert on ordering. ``failures`` maps an operation name to an exception
    raised the next time it is called.
    """

    def __init__(self):
        self.secrets = {}
        self.calls = []
        self.failures = {}

    def _record(self, operation, kwargs):
        self.calls.append((operation, kwargs))
        if operation in self.failures:
            raise self.failures.pop(operation)

    def _get(self, operation, secret_id):
        if secret_id not in self.secrets:
            raise _not_found(operation)
        return self.secrets[secret_id]

    @property
    def operations(self):
        return [operation for operation, _ in self.calls]

    def seed(self, name, value="old", tags=None, regions=None, policy=None):
        self.secrets[name] = {
            "value": value,
            "description": None,
            "kms_key_id": None,
            "tags": dict(tags or {}),
            "regions": {region: None for region in regions or []},
            "policy": policy,
        }

    def describe_secret(self, **kwargs):
        self._record("describe_secret", kwargs)
        secret = self._get("describe_secret", kwargs["SecretId"])
        response = {"Name": kwargs["SecretId"]}
        if secret["tags"]:
            response["Tags"] = [{"Key": k, "Value": v} for k, v in secret["tags"].items()]
        if secret["regions"]:
            response["ReplicationStatus"] = [
                {"Region": region, "Status": "InSync"} for region in secret["regions"]
            ]
        return response

    def create_secret(self, **kwargs):
        self._record("create_secret", kwargs)
        self.seed(kwargs["Name"], value=kwargs["SecretString"])
        self.secrets[kwargs["Name"]]["description"] = kwargs.get("Description")
        self.secrets[kwargs["Name"]]["kms_key_id"] = kwargs.get("KmsKeyId")
        return {"Name": kwargs["Name"]}

    def update_secret(self, **kwargs):
        self._record("update_secret", kwargs)
        secret = self._get("update_secret", kwargs["SecretId"])
        secret["value"] = kwargs["SecretString"]
        secret["description"] = kwargs.get("Description")
        secret["kms_key_id"] = kwargs.get("KmsKeyId")
        return {"Name": kwargs["SecretId"]}

    def tag_resource(self, **kwargs):
        self._record("tag_resource", kwargs)
        secret = self._get("tag_resource", kwargs["SecretId"])
        for tag in kwargs["Tags"]:
            secret["tags"][tag["Key"]] = tag["Value"]

    def untag_resource(self, **kwargs):
        self._record("untag_resource", kwargs)
        secret = self._get("untag_resource", kwargs["SecretId"])
        for key in kwargs["TagKeys"]:
            secret["tags"].pop(key, None)

    def put_resource_policy(self, **kwargs):
        self._record("put_resource_policy", kwargs)
        self._get("put_resource_policy", kwargs["SecretId"])["policy"] = kwargs["ResourcePolicy"]

    def delete_resource_policy(self, **kwargs):
        self._record("delete_resource_policy", kwargs)
        secret = self._get("delete_resource_policy", kwargs["SecretId"])
        if secret["policy"] is None:
            raise _not_found("delete_resource_policy")
        secret["policy"] = None

    def replicate_secret_to_regions(self, **kwargs):
        self._record("replicate_secret_to_regions", kwargs)
        secret = self._get("replicate_secret_to_regions", kwargs["SecretId"])
        for replica in kwargs["AddReplicaRegions"]:
            secret["regions"][replica["Region"]] = replica.get("KmsKeyId")

    def remove_regions_from_replication(self, **kwargs):
        self._record("remove_regions_from_replication", kwargs)
        secret = self._get("remove_regions_from_replication", kwargs["SecretId"])
        for region in kwargs["RemoveReplicaRegions"]:
            secret["regions"].pop(region, None)

    def delete_secret(self, **kwargs):
        self._record("delete_secret", kwargs)
        secret = self._get("delete_secret", kwargs["SecretId"])
        if secret["regions"]:
            raise ClientError(
                {"Error": {"Code": "InvalidRequestException", "Message": "secret has replicas"}},
                "delete_secret",
            )
        del self.secrets[kwargs["SecretId"]]


class FakeBlobSource:
    def __init__(self):
        self.blobs = {}

    def fetch(self, locator):
        return self.blobs[(locator.bucket, locator.key)]


class FakeDecoder:
    """Treats ciphertext as plaintext; trims like the real decoder."""

    def __init__(self):
        self.error = None

    def decode(self, ciphertext, content_format):
        if self.error is not None:
            raise self.error
        return ciphertext.decode("utf-8").strip()


@pytest.fixture
def temp_home(tmp_path, monkeypatch):
    """Fixture to create a temporary home directory for testing."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)
    monkeypatch.delenv("SOPS_SECRETS_CONFIG", raising=False)
    monkeypatch.delenv("SOPS_BINARY", raising=False)
    monkeypatch.delenv("AWS_REGION", raising=False)

    fake_config_dir = fake_home / ".config" / "sops-secrets"
    monkeypatch.setattr(preferences, "PREFERENCES_DIR", fake_config_dir)
    monkeypatch.setattr(preferences, "PREFERENCES_FILE", fake_config_dir / "preferences.json")

    return fake_home


@pytest.fixture
def secrets_manager():
    return FakeSecretsManager()


@pytest.fixture
def blob_source():
    source = FakeBlobSource()
    source.blobs[("assets", "db.json")] = b'\n{"password": "hunter2"}\n\n'
    return source


@pytest.fixture
def decoder():
    return FakeDecoder()


@pytest.fixture
def reconciler(secrets_manager, blob_source, decoder):
    return Reconciler(AWSSecretClient(client=secrets_manager), blob_source, decoder)


@pytest.fixture
def make_definition():
    """Factory for SecretDefinition with sensible defaults."""
    def _make(**overrides):
        fields = {
            "name": "app/db",
            "content_format": ContentFormat.JSON,
            "source": BlobLocator("assets", "db.json"),
        }
        fields.update(overrides)
        return SecretDefinition(**fields)
    return _make
