import logging
from typing import Iterable, List

from .binding import CLUSTER_RESOURCE, Binding, PatternType, ResourceType, split_wildcard
from .config import Configuration
from .errors import ConfigurationError, PrefixResolutionError
from .naming import render_template

logger = logging.getLogger("acls-builder")

KSQL_INTERNAL_PREFIX = "_confluent-ksql-"
CONSUMER_OFFSETS_TOPIC = "__consumer_offsets"
CONTROL_CENTER_TOPICS = ("_confluent-monitoring", "_confluent-command")
CONTROL_CENTER_METRICS_TOPIC = "_confluent-metrics"

TOPIC = ResourceType.TOPIC
GROUP = ResourceType.GROUP
CLUSTER = ResourceType.CLUSTER
TRANSACTIONAL_ID = ResourceType.TRANSACTIONAL_ID
LITERAL = PatternType.LITERAL
PREFIXED = PatternType.PREFIXED


def _require_prefix(prefix, owner):
    # An empty prefix would grant access to every resource of the type.
    if not prefix:
        raise PrefixResolutionError(f"Resolved an empty prefix for {owner}, refusing to issue cluster wide ACLs")


class AclsBindingsBuilder:
    """Maps each role entity to the ACL bindings it needs.

    Every method is a pure function of its arguments and the configuration.
    """

    def __init__(self, config=None):
        self.config = config or Configuration()

    # consumers

    def build_literal_bindings_for_consumers(self, consumers, topic) -> List[Binding]:
        bindings = []
        for consumer in consumers:
            bindings.extend(self._consumer_bindings(consumer, topic, LITERAL))
        return bindings

    def build_prefixed_bindings_for_consumers(self, consumers, prefix) -> List[Binding]:
        _require_prefix(prefix, "prefixed consumers")
        bindings = []
        for consumer in consumers:
            bindings.extend(self._consumer_bindings(consumer, prefix, PREFIXED))
        return bindings

    def _consumer_bindings(self, consumer, topic, pattern):
        group, group_pattern = split_wildcard(consumer.group_string())
        principal = consumer.principal
        return [
            Binding.allow(principal, TOPIC, topic, "READ", pattern),
            Binding.allow(principal, TOPIC, topic, "DESCRIBE", pattern),
            Binding.allow(principal, GROUP, group, "READ", group_pattern),
        ]

    # producers

    def build_literal_bindings_for_producers(self, producers, topic) -> List[Binding]:
        bindings = []
        for producer in producers:
            bindings.extend(self._producer_bindings(producer, topic, LITERAL))
        return bindings

    def build_prefixed_bindings_for_producers(self, producers, prefix) -> List[Binding]:
        _require_prefix(prefix, "prefixed producers")
        bindings = []
        for producer in producers:
            bindings.extend(self._producer_bindings(producer, prefix, PREFIXED))
        return bindings

    def _producer_bindings(self, producer, topic, pattern):
        principal = producer.principal
        bindings = [
            Binding.allow(principal, TOPIC, topic, "WRITE", pattern),
            Binding.allow(principal, TOPIC, topic, "DESCRIBE", pattern),
        ]
        if producer.idempotence:
            bindings.append(Binding.allow(principal, CLUSTER, CLUSTER_RESOURCE, "IDEMPOTENT_WRITE"))
        if producer.transaction_id:
            tx_id, tx_pattern = split_wildcard(producer.transaction_id)
            bindings.append(Binding.allow(principal, TRANSACTIONAL_ID, tx_id, "DESCRIBE", tx_pattern))
            bindings.append(Binding.allow(principal, TRANSACTIONAL_ID, tx_id, "WRITE", tx_pattern))
        return bindings

    # applications

    def build_bindings_for_kstream(self, stream, prefix) -> List[Binding]:
        app_prefix = stream.application_id or prefix
        _require_prefix(app_prefix, f"kstream {stream.principal}")
        principal = stream.principal
        bindings = [Binding.allow(principal, TOPIC, topic, "READ") for topic in stream.read_topics]
        bindings.extend(Binding.allow(principal, TOPIC, topic, "WRITE") for topic in stream.write_topics)
        # internal changelog and repartition topics live under the application prefix
        bindings.append(Binding.allow(principal, GROUP, app_prefix, "READ", PREFIXED))
        bindings.append(Binding.allow(principal, TOPIC, app_prefix, "ALL", PREFIXED))
        for observer in stream.observer_principals:
            bindings.append(Binding.allow(observer.principal, GROUP, app_prefix, "READ", PREFIXED))
            bindings.append(Binding.allow(observer.principal, TOPIC, app_prefix, "READ", PREFIXED))
            bindings.append(Binding.allow(observer.principal, TOPIC, app_prefix, "DESCRIBE", PREFIXED))
        if stream.exactly_once:
            bindings.append(Binding.allow(principal, TRANSACTIONAL_ID, app_prefix, "DESCRIBE", PREFIXED))
            bindings.append(Binding.allow(principal, TRANSACTIONAL_ID, app_prefix, "WRITE", PREFIXED))
        return bindings

    def build_bindings_for_connect(self, connector, prefix) -> List[Binding]:
        principal = connector.principal
        bindings = []
        for op in ("READ", "WRITE"):
            for topic in (connector.status_topic, connector.offset_topic, connector.configs_topic):
                bindings.append(Binding.allow(principal, TOPIC, topic, op))
        bindings.append(Binding.allow(principal, GROUP, connector.group, "READ"))
        if self.config.connector_allow_topic_create:
            bindings.append(Binding.allow(principal, CLUSTER, CLUSTER_RESOURCE, "CREATE"))
        bindings.extend(Binding.allow(principal, TOPIC, topic, "READ") for topic in connector.read_topics)
        bindings.extend(Binding.allow(principal, TOPIC, topic, "WRITE") for topic in connector.write_topics)
        return bindings

    def build_bindings_for_ksql_app(self, app, prefix) -> List[Binding]:
        principal = app.principal
        internal = f"{KSQL_INTERNAL_PREFIX}{app.ksql_db_id}"
        bindings = [Binding.allow(principal, TOPIC, topic, "READ") for topic in app.read_topics]
        bindings.extend(Binding.allow(principal, TOPIC, topic, "WRITE") for topic in app.write_topics)
        bindings.append(Binding.allow(principal, TOPIC, internal, "ALL", PREFIXED))
        bindings.append(Binding.allow(principal, GROUP, internal, "ALL", PREFIXED))
        bindings.append(Binding.allow(principal, TRANSACTIONAL_ID, app.ksql_db_id, "ALL"))
        bindings.append(Binding.allow(principal, CLUSTER, CLUSTER_RESOURCE, "DESCRIBE_CONFIGS"))
        return bindings

    # platform

    def build_bindings_for_schema_registry(self, instance) -> List[Binding]:
        principal = instance.principal
        bindings = [
            Binding.allow(principal, TOPIC, instance.topic, op) for op in ("DESCRIBE_CONFIGS", "READ", "WRITE")
        ]
        bindings.append(Binding.allow(principal, TOPIC, CONSUMER_OFFSETS_TOPIC, "DESCRIBE"))
        bindings.append(Binding.allow(principal, GROUP, instance.group, "READ"))
        return bindings

    def build_bindings_for_control_center(self, principal, app_id) -> List[Binding]:
        bindings = [
            Binding.allow(principal, CLUSTER, CLUSTER_RESOURCE, op) for op in ("DESCRIBE", "DESCRIBE_CONFIGS", "CREATE")
        ]
        bindings.append(Binding.allow(principal, TOPIC, app_id, "ALL", PREFIXED))
        bindings.append(Binding.allow(principal, GROUP, app_id, "READ", PREFIXED))
        bindings.extend(Binding.allow(principal, TOPIC, topic, "ALL") for topic in CONTROL_CENTER_TOPICS)
        bindings.append(Binding.allow(principal, TOPIC, CONTROL_CENTER_METRICS_TOPIC, "READ"))
        return bindings

    def set_cluster_level_role(self, role, principal, component) -> Binding:
        return Binding.allow(principal, CLUSTER, component.cluster_key, role)

    def _entity_consumer(self, consumer, prefix):
        return self.build_prefixed_bindings_for_consumers([consumer], prefix)

    def _entity_producer(self, producer, prefix):
        return self.build_prefixed_bindings_for_producers([producer], prefix)

    def build_bindings(self, entity, prefix) -> List[Binding]:
        method = _ENTITY_BUILDERS.get(entity.kind)
        if method is None:
            raise ConfigurationError(f"No binding rules for entity kind '{entity.kind}'")
        return getattr(self, method)(entity, prefix)

    # custom roles

    def build_bindings_for_custom_role(self, template, member, variables=None) -> List[Binding]:
        principal = member.get("principal")
        if not principal:
            raise ConfigurationError(f"Member of role '{template.name}' has no principal: {member}")
        values = dict(variables or {})
        values.update(member)
        bindings = []
        for permission in template.permissions:
            name = render_template(permission.resource_name, values, f"role {template.name} resource")
            if not name:
                raise PrefixResolutionError(
                    f"Role '{template.name}' resolved an empty {permission.resource_type.value} name for {principal}"
                )
            for op in permission.operations:
                bindings.append(Binding.allow(principal, permission.resource_type, name, op, permission.pattern_type))
        return bindings


_ENTITY_BUILDERS = {
    "consumer": "_entity_consumer",
    "producer": "_entity_producer",
    "kstream": "build_bindings_for_kstream",
    "connector": "build_bindings_for_connect",
    "ksql": "build_bindings_for_ksql_app",
}


def dedupe(bindings: Iterable[Binding]) -> List[Binding]:
    return list(dict.fromkeys(bindings))
