from __future__ import annotations

import pytest

from kafka_topology.config import Configuration
from kafka_topology.errors import ConfigurationError
from kafka_topology.roles import Permission, RolesCatalog


def test_defaults() -> None:
    config = Configuration()

    assert config.optimized_acls is False
    assert config.allow_delete_bindings is False
    assert config.allow_delete_topics is False
    assert config.connector_allow_topic_create is True
    assert config.internal_topic_prefixes == ["_"]
    assert config.topic_managed_prefixes == []
    assert config.state_file == ".cluster-state"
    assert config.roles_catalog() is None


def test_from_properties_uses_property_keys() -> None:
    config = Configuration.from_properties(
        {
            "topology.acls.optimized": "true",
            "allow.delete.topics": "yes",
            "topology.group.managed.prefixes": "team-a, team-b,",
            "platform.cluster.connect.id": "connect-1",
            "some.unrelated.key": "ignored",
        }
    )

    assert config.optimized_acls is True
    assert config.allow_delete_topics is True
    assert config.group_managed_prefixes == ["team-a", "team-b"]
    assert config.connect_cluster_id == "connect-1"


def test_load_properties_file(resources) -> None:
    config = Configuration.load(resources / "topology-builder.properties")

    assert config.brokers == "broker:9092"
    assert config.optimized_acls is True
    assert config.allow_delete_bindings is True
    assert config.topic_managed_prefixes == ["contextOrg.source", "_schemas"]
    assert config.service_account_managed_prefixes == ["User:App"]
    assert config.state_file == "/tmp/kafka-topology-state"


def test_validate_formats() -> None:
    Configuration().validate_formats()
    Configuration(
        project_prefix_format="{{context}}.{{project}}",
        topic_prefix_format="{{context}}.{{project}}.{{topic}}",
    ).validate_formats()

    with pytest.raises(ConfigurationError):
        Configuration(topic_prefix_format="{{context}}.{{topic}}").validate_formats()
    with pytest.raises(ConfigurationError):
        Configuration(
            project_prefix_format="{{project}}",
            topic_prefix_format="{{context}}.{{project}}.{{topic}}",
        ).validate_formats()


def test_roles_catalog(resources) -> None:
    catalog = Configuration(roles_file=str(resources / "roles.yaml")).roles_catalog()

    assert catalog.names() == ["app", "auditor"]
    permission = catalog.get("auditor").permissions[0]
    assert permission.resource_name == "kafka-cluster"
    assert permission.operations == ["DESCRIBE"]


def test_catalog_rejects_unknown_operation_on_topic(tmp_path) -> None:
    path = tmp_path / "roles.yaml"
    path.write_text(
        "roles:\n"
        "  - name: app\n"
        "    permissions:\n"
        "      - resourceType: Topic\n"
        "        operation: REED\n"
    )

    with pytest.raises(ConfigurationError):
        RolesCatalog.load(path)


def test_catalog_accepts_role_names_on_cluster() -> None:
    permission = Permission(resource_type="CLUSTER", resource_name="kafka-cluster", operations=["DeveloperRead"])
    assert permission.operations == ["DeveloperRead"]
