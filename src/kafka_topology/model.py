from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

READ_TOPICS = "read"
WRITE_TOPICS = "write"


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _collect_other(cls, data):
    # Keys the model doesn't declare are kept under "other".
    if not isinstance(data, dict):
        return data
    known = set()
    for name, field in cls.model_fields.items():
        known.add(name)
        known.add(field.alias or name)
    other = dict(data.get("other") or {})
    payload = {}
    for key, value in data.items():
        if key == "other":
            continue
        if key in known:
            payload[key] = value
        else:
            other[key] = value
    payload["other"] = other
    return payload


class User(_Model):
    principal: str


class Consumer(_Model):
    kind: Literal["consumer"] = "consumer"
    principal: str
    group: Optional[str] = None

    def group_string(self) -> str:
        return self.group or "*"


class Producer(_Model):
    kind: Literal["producer"] = "producer"
    principal: str
    transaction_id: Optional[str] = None
    idempotence: bool = False


class KStream(_Model):
    kind: Literal["kstream"] = "kstream"
    principal: str
    topics: Dict[str, List[str]] = Field(default_factory=dict)
    observer_principals: List[User] = Field(default_factory=list)
    application_id: Optional[str] = None
    exactly_once: Optional[bool] = None

    @property
    def read_topics(self) -> List[str]:
        return self.topics.get(READ_TOPICS, [])

    @property
    def write_topics(self) -> List[str]:
        return self.topics.get(WRITE_TOPICS, [])


class Connector(_Model):
    kind: Literal["connector"] = "connector"
    principal: str
    topics: Dict[str, List[str]] = Field(default_factory=dict)
    group: str = "connect-cluster"
    status_topic: str = "connect-status"
    offset_topic: str = "connect-offsets"
    configs_topic: str = "connect-configs"

    @property
    def read_topics(self) -> List[str]:
        return self.topics.get(READ_TOPICS, [])

    @property
    def write_topics(self) -> List[str]:
        return self.topics.get(WRITE_TOPICS, [])

    @property
    def role(self) -> Optional[str]:
        if self.write_topics:
            return "source"
        if self.read_topics:
            return "sink"
        return None


class KSqlApp(_Model):
    kind: Literal["ksql"] = "ksql"
    principal: str
    topics: Dict[str, List[str]] = Field(default_factory=dict)
    ksql_db_id: str = "default_"

    @property
    def read_topics(self) -> List[str]:
        return self.topics.get(READ_TOPICS, [])

    @property
    def write_topics(self) -> List[str]:
        return self.topics.get(WRITE_TOPICS, [])


class Topic(_Model):
    name: str
    consumers: List[Consumer] = Field(default_factory=list)
    producers: List[Producer] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)
    data_type: Optional[str] = None
    # Special topics keep their name verbatim and only use their own users.
    special: bool = False


class Project(_Model):
    name: str = "default"
    topics: List[Topic] = Field(default_factory=list)
    consumers: List[Consumer] = Field(default_factory=list)
    producers: List[Producer] = Field(default_factory=list)
    streams: List[KStream] = Field(default_factory=list)
    connectors: List[Connector] = Field(default_factory=list)
    ksql: List[KSqlApp] = Field(default_factory=list)
    # Custom role members, keyed by role name.
    other: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _other_roles(cls, data):
        return _collect_other(cls, data)


class Component(str, Enum):
    KAFKA = "kafka"
    KAFKA_CONNECT = "kafka_connect"
    SCHEMA_REGISTRY = "schema_registry"
    CONTROL_CENTER = "control_center"

    @property
    def cluster_key(self) -> str:
        return {
            Component.KAFKA: "kafka-cluster",
            Component.KAFKA_CONNECT: "connect-cluster",
            Component.SCHEMA_REGISTRY: "schema-registry-cluster",
            Component.CONTROL_CENTER: "control-center-cluster",
        }[self]

    @classmethod
    def from_cluster_key(cls, key: str) -> "Component":
        for component in cls:
            if component.cluster_key == key:
                return component
        raise ValueError(f"Unknown cluster key {key}")


class PlatformInstance(_Model):
    principal: str
    topic: str = "_schemas"
    group: str = "schema-registry"
    app_id: str = "confluent.controlcenter"


class PlatformComponent(_Model):
    component: Optional[Component] = None
    rbac: Dict[str, List[User]] = Field(default_factory=dict)
    instances: List[PlatformInstance] = Field(default_factory=list)


class Platform(_Model):
    kafka: Optional[PlatformComponent] = None
    kafka_connect: Optional[PlatformComponent] = None
    schema_registry: Optional[PlatformComponent] = None
    control_center: Optional[PlatformComponent] = None

    @model_validator(mode="after")
    def _tag_components(self):
        for component in Component:
            spec = getattr(self, component.value)
            if spec is not None:
                spec.component = component
        return self

    def components(self):
        for component in Component:
            spec = getattr(self, component.value)
            if spec is not None:
                yield component, spec


class Topology(_Model):
    context: str = "default"
    projects: List[Project] = Field(default_factory=list)
    platform: Optional[Platform] = None
    # Free-form metadata (e.g. "source"); values take part in default naming, in order.
    other: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _other_metadata(cls, data):
        return _collect_other(cls, data)

    @field_validator("other", mode="before")
    @classmethod
    def _metadata_as_text(cls, value):
        if isinstance(value, dict):
            return {key: str(item) for key, item in value.items()}
        return value
