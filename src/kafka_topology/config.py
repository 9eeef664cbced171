import logging
import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationError
from .naming import DEFAULT_FORMAT
from .roles import RolesCatalog

logger = logging.getLogger("configuration")

KAFKA_BROKER = os.getenv("KAFKA_BROKER", "localhost:9092")
STATE_PROCESSOR = os.getenv("STATE_PROCESSOR", "file")


class Configuration(BaseModel):
    """Settings consumed by the builder, the manager and the plan.

    Fields are populated either by name or by their property key, e.g.
    ``Configuration(optimized_acls=True)`` or
    ``Configuration.from_properties({"topology.acls.optimized": "true"})``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    brokers: str = Field(KAFKA_BROKER, alias="bootstrap.servers")

    optimized_acls: bool = Field(False, alias="topology.acls.optimized")
    allow_delete_bindings: bool = Field(False, alias="allow.delete.bindings")
    allow_delete_topics: bool = Field(False, alias="allow.delete.topics")

    topic_prefix_format: str = Field(DEFAULT_FORMAT, alias="topology.topic.prefix.format")
    project_prefix_format: str = Field(DEFAULT_FORMAT, alias="topology.project.prefix.format")
    topic_prefix_separator: str = Field(".", alias="topology.topic.prefix.separator")

    topic_managed_prefixes: List[str] = Field(default_factory=list, alias="topology.topic.managed.prefixes")
    group_managed_prefixes: List[str] = Field(default_factory=list, alias="topology.group.managed.prefixes")
    service_account_managed_prefixes: List[str] = Field(
        default_factory=list, alias="topology.service.accounts.managed.prefixes"
    )

    connector_allow_topic_create: bool = Field(True, alias="topology.connector.allow.topic.create")
    internal_topic_prefixes: List[str] = Field(default_factory=lambda: ["_"], alias="kafka.internals.topic.prefixes")

    roles_file: Optional[str] = Field(None, alias="topology.roles.file")

    state_from_cluster: bool = Field(False, alias="topology.state.cluster.enabled")
    state_processor: str = Field(STATE_PROCESSOR, alias="topology.builder.state.processor")
    state_file: str = Field(".cluster-state", alias="topology.state.file")

    mds_server: Optional[str] = Field(None, alias="platform.servers.mds")
    mds_user: Optional[str] = Field(None, alias="platform.mds.user")
    mds_password: Optional[str] = Field(None, alias="platform.mds.password")
    kafka_cluster_id: Optional[str] = Field(None, alias="platform.cluster.kafka.id")
    connect_cluster_id: Optional[str] = Field(None, alias="platform.cluster.connect.id")
    schema_registry_cluster_id: Optional[str] = Field(None, alias="platform.cluster.schema-registry.id")
    control_center_cluster_id: Optional[str] = Field(None, alias="platform.cluster.control-center.id")

    @field_validator(
        "topic_managed_prefixes",
        "group_managed_prefixes",
        "service_account_managed_prefixes",
        "internal_topic_prefixes",
        mode="before",
    )
    @classmethod
    def _comma_list(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @classmethod
    def from_properties(cls, props: Mapping[str, object]) -> "Configuration":
        return cls.model_validate(dict(props))

    @classmethod
    def load(cls, path) -> "Configuration":
        """Read a java-style .properties file (key=value, '#' comments)."""
        props = {}
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith(("#", "!")):
                    continue
                key, sep, value = line.partition("=")
                if not sep:
                    key, sep, value = line.partition(":")
                props[key.strip()] = value.strip()
        logger.info(f"Loaded {len(props)} properties from {path}")
        return cls.from_properties(props)

    def validate_formats(self):
        if self.topic_prefix_format == DEFAULT_FORMAT:
            return
        if self.project_prefix_format == DEFAULT_FORMAT:
            raise ConfigurationError(
                "topology.project.prefix.format needs to be set when topology.topic.prefix.format is used"
            )
        if not self.topic_prefix_format.startswith(self.project_prefix_format):
            raise ConfigurationError(
                f"Project prefix format '{self.project_prefix_format}' must be a prefix of "
                f"topic format '{self.topic_prefix_format}'"
            )

    def roles_catalog(self) -> Optional[RolesCatalog]:
        if not self.roles_file:
            return None
        return RolesCatalog.load(self.roles_file)
