"""Tests for declaration helpers and per-deployment name uniqueness."""
import json

import pytest

from sops_secrets.secrets.domains.declarations import (
    DeploymentUnit,
    infer_content_format,
    to_resource_properties,
)
from sops_secrets.secrets.domains.errors import InvalidFormatError, ValidationError
from sops_secrets.secrets.domains.models import ContentFormat, ReplicaRegion, Tag
from sops_secrets.secrets.workflows.event_handler import parse_definition


class TestInferContentFormat:

    @pytest.mark.parametrize("path,expected", [
        ("secrets/db.json", ContentFormat.JSON),
        ("secrets/db.yaml", ContentFormat.YAML),
        ("secrets/db.yml", ContentFormat.YAML),
        ("secrets/.env", ContentFormat.DOTENV),
        ("secrets/app.env", ContentFormat.DOTENV),
        ("secrets/token.txt", ContentFormat.TEXT),
    ])
    def test_from_extension(self, path, expected):
        assert infer_content_format(path) is expected

    def test_explicit_format_wins(self):
        assert infer_content_format("secrets/db.json", "txt") is ContentFormat.TEXT

    def test_unknown_extension(self):
        with pytest.raises(ValidationError) as exc_info:
            infer_content_format("secrets/db.ini")
        assert "Could not infer file type" in str(exc_info.value)

    def test_unknown_explicit_format(self):
        with pytest.raises(InvalidFormatError):
            infer_content_format("secrets/db.json", "toml")


class TestDeploymentUnit:

    def test_duplicate_name_rejected_within_unit(self, make_definition):
        unit = DeploymentUnit("stack-a")
        unit.declare(make_definition())

        with pytest.raises(ValidationError) as exc_info:
            unit.declare(make_definition(description="again"))

        assert "already declared" in str(exc_info.value)

    def test_units_do_not_share_names(self, make_definition):
        DeploymentUnit("stack-a").declare(make_definition())
        DeploymentUnit("stack-b").declare(make_definition())

    def test_invalid_definition_is_not_registered(self, make_definition):
        unit = DeploymentUnit("stack-a")
        too_many = tuple(Tag(f"k{i}", "v") for i in range(51))

        with pytest.raises(ValidationError):
            unit.declare(make_definition(tags=too_many))

        assert unit.names == set()

    def test_names_view_is_a_copy(self, make_definition):
        unit = DeploymentUnit("stack-a")
        unit.declare(make_definition())
        unit.names.add("other")
        assert unit.names == {"app/db"}


class TestResourceProperties:

    def test_minimal_definition(self, make_definition):
        assert to_resource_properties(make_definition()) == {
            "SecretName": "app/db",
            "SecretType": "json",
            "S3BucketName": "assets",
            "S3ObjectKey": "db.json",
        }

    def test_properties_parse_back_to_same_definition(self, make_definition):
        definition = make_definition(
            encryption_key_ref="arn:aws:kms:eu-west-1:111:key/sops",
            storage_key_ref="arn:aws:kms:eu-west-1:111:key/store",
            description="db creds",
            tags=(Tag("env", "prod"),),
            resource_policy=json.dumps({"Version": "2012-10-17", "Statement": []}),
            replica_regions=(ReplicaRegion("us-east-1"), ReplicaRegion("eu-central-1", "key-r")),
        )

        props = to_resource_properties(definition)

        assert json.loads(props["SecretTags"]) == [["env", "prod"]]
        assert json.loads(props["SecretReplicaRegions"]) == [
            {"region": "us-east-1"},
            {"region": "eu-central-1", "kmsKeyId": "key-r"},
        ]
        assert parse_definition(props) == definition
