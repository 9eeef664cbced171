import logging
from typing import Dict, Iterable, List, Optional, Protocol, Set

import requests
from confluent_kafka.admin import (
    AclBinding,
    AclBindingFilter,
    AclOperation,
    AclPermissionType,
    AdminClient,
    ResourcePatternType,
)
from confluent_kafka.admin import ResourceType as KafkaResourceType

from .binding import CLUSTER_RESOURCE, Binding, PatternType, ResourceType, bucket_by_resource
from .errors import ProviderError

logger = logging.getLogger("kafka-provider")

# librdkafka has no CLUSTER resource type; cluster ACLs live on BROKER "kafka-cluster"
_TO_KAFKA_TYPE = {
    ResourceType.TOPIC: KafkaResourceType.TOPIC,
    ResourceType.GROUP: KafkaResourceType.GROUP,
    ResourceType.CLUSTER: KafkaResourceType.BROKER,
    ResourceType.TRANSACTIONAL_ID: KafkaResourceType.TRANSACTIONAL_ID,
}
_FROM_KAFKA_TYPE = {v: k for k, v in _TO_KAFKA_TYPE.items()}


class AccessControlProvider(Protocol):
    def create_bindings(self, bindings: Set[Binding]) -> None: ...

    def clear_bindings(self, bindings: Set[Binding]) -> None: ...

    def list_acls(self) -> Dict[str, List[Binding]]: ...


def to_acl_binding(binding: Binding) -> AclBinding:
    return AclBinding(
        _TO_KAFKA_TYPE[binding.resource_type],
        binding.resource_name,
        ResourcePatternType[binding.pattern_type.value],
        binding.principal,
        binding.host,
        AclOperation[binding.operation],
        AclPermissionType[binding.permission],
    )


def to_acl_filter(binding: Binding) -> AclBindingFilter:
    return AclBindingFilter(
        _TO_KAFKA_TYPE[binding.resource_type],
        binding.resource_name,
        ResourcePatternType[binding.pattern_type.value],
        binding.principal,
        binding.host,
        AclOperation[binding.operation],
        AclPermissionType[binding.permission],
    )


def from_acl_binding(acl) -> Optional[Binding]:
    resource_type = _FROM_KAFKA_TYPE.get(acl.restype)
    if resource_type is None or acl.resource_pattern_type.name not in PatternType.__members__:
        logger.warning(f"Ignoring ACL with unsupported resource or pattern: {acl}")
        return None
    return Binding(
        principal=acl.principal,
        resource_type=resource_type,
        resource_name=acl.name,
        pattern_type=PatternType[acl.resource_pattern_type.name],
        operation=acl.operation.name,
        host=acl.host,
        permission=acl.permission_type.name,
    )


class MdsClient:
    """Role bindings through the Confluent Metadata Service REST API."""

    def __init__(self, url, user=None, password=None, cluster_ids=None, session=None):
        self.url = url.rstrip("/")
        self.cluster_ids = dict(cluster_ids or {})
        self.session = session or requests.Session()
        if user:
            self.session.auth = (user, password)

    def scope(self, binding: Binding) -> Dict[str, Dict[str, str]]:
        clusters = {}
        if CLUSTER_RESOURCE in self.cluster_ids:
            clusters[CLUSTER_RESOURCE] = self.cluster_ids[CLUSTER_RESOURCE]
        if binding.resource_name != CLUSTER_RESOURCE:
            cluster_id = self.cluster_ids.get(binding.resource_name)
            if cluster_id is None:
                raise ProviderError(f"No cluster id configured for {binding.resource_name}")
            clusters[binding.resource_name] = cluster_id
        return {"clusters": clusters}

    def _role_url(self, binding):
        return f"{self.url}/security/1.0/principals/{binding.principal}/roles/{binding.operation}"

    def bind_role(self, binding: Binding):
        response = self.session.post(self._role_url(binding), json=self.scope(binding))
        response.raise_for_status()
        logger.info(f"Bound role {binding.operation} to {binding.principal} on {binding.resource_name}")

    def unbind_role(self, binding: Binding):
        response = self.session.delete(self._role_url(binding), json=self.scope(binding))
        response.raise_for_status()
        logger.info(f"Removed role {binding.operation} from {binding.principal} on {binding.resource_name}")


def _split(bindings: Iterable[Binding]):
    acls, roles = [], []
    for binding in bindings:
        (roles if binding.is_role_assignment else acls).append(binding)
    return acls, roles


class KafkaAclsProvider:
    """ACLs through the confluent-kafka AdminClient, role bindings through MDS."""

    def __init__(self, admin_client, mds: Optional[MdsClient] = None):
        self.admin = admin_client
        self.mds = mds

    @classmethod
    def from_config(cls, config) -> "KafkaAclsProvider":
        admin = AdminClient({"bootstrap.servers": config.brokers})
        mds = None
        if config.mds_server:
            cluster_ids = {
                "kafka-cluster": config.kafka_cluster_id,
                "connect-cluster": config.connect_cluster_id,
                "schema-registry-cluster": config.schema_registry_cluster_id,
                "control-center-cluster": config.control_center_cluster_id,
            }
            cluster_ids = {k: v for k, v in cluster_ids.items() if v}
            mds = MdsClient(config.mds_server, config.mds_user, config.mds_password, cluster_ids)
        return cls(admin, mds)

    def _require_mds(self, roles):
        if roles and self.mds is None:
            raise ProviderError(f"{len(roles)} role bindings need platform.servers.mds to be configured")

    def create_bindings(self, bindings: Set[Binding]):
        acls, roles = _split(bindings)
        self._require_mds(roles)
        if acls:
            futures = self.admin.create_acls([to_acl_binding(b) for b in acls])
            for acl, future in futures.items():
                future.result()
                logger.info(f"Created ACL: {acl}")
        for binding in roles:
            self.mds.bind_role(binding)

    def clear_bindings(self, bindings: Set[Binding]):
        acls, roles = _split(bindings)
        self._require_mds(roles)
        if acls:
            futures = self.admin.delete_acls([to_acl_filter(b) for b in acls])
            for acl_filter, future in futures.items():
                deleted = future.result()
                logger.info(f"Deleted {len(deleted)} ACLs matching {acl_filter}")
        for binding in roles:
            self.mds.unbind_role(binding)

    def list_acls(self) -> Dict[str, List[Binding]]:
        acl_filter = AclBindingFilter(
            restype=KafkaResourceType.ANY,
            name=None,
            resource_pattern_type=ResourcePatternType.ANY,
            principal=None,
            host=None,
            operation=AclOperation.ANY,
            permission_type=AclPermissionType.ANY,
        )
        acls = self.admin.describe_acls(acl_filter).result()
        bindings = [b for b in (from_acl_binding(acl) for acl in acls) if b is not None]
        logger.info(f"Read {len(bindings)} ACLs from the cluster")
        return bucket_by_resource(bindings)
