from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict


class ResourceType(str, Enum):
    TOPIC = "TOPIC"
    GROUP = "GROUP"
    CLUSTER = "CLUSTER"
    TRANSACTIONAL_ID = "TRANSACTIONAL_ID"


class PatternType(str, Enum):
    LITERAL = "LITERAL"
    PREFIXED = "PREFIXED"


# Kafka ACL operations. Anything else on a CLUSTER resource is a role name.
ACL_OPERATIONS = frozenset({
    "ALL", "READ", "WRITE", "CREATE", "DELETE", "ALTER", "DESCRIBE",
    "CLUSTER_ACTION", "DESCRIBE_CONFIGS", "ALTER_CONFIGS", "IDEMPOTENT_WRITE",
})

CLUSTER_RESOURCE = "kafka-cluster"
WILDCARD = "*"


class Binding(BaseModel):
    """One access-control grant. Compared, hashed and diffed by full value."""

    model_config = ConfigDict(frozen=True)

    principal: str
    resource_type: ResourceType
    resource_name: str
    pattern_type: PatternType = PatternType.LITERAL
    operation: str
    host: str = "*"
    permission: str = "ALLOW"

    @classmethod
    def allow(cls, principal, resource_type, resource_name, operation, pattern_type=PatternType.LITERAL):
        return cls(
            principal=principal,
            resource_type=resource_type,
            resource_name=resource_name,
            pattern_type=pattern_type,
            operation=operation,
        )

    @property
    def is_role_assignment(self) -> bool:
        return self.resource_type == ResourceType.CLUSTER and self.operation not in ACL_OPERATIONS

    def sort_key(self) -> Tuple[str, ...]:
        return (
            self.resource_name,
            self.resource_type.value,
            self.pattern_type.value,
            self.principal,
            self.operation,
            self.host,
            self.permission,
        )

    def __str__(self):
        return (
            f"{self.principal} {self.permission} {self.operation} on "
            f"{self.resource_type.value}:{self.resource_name} ({self.pattern_type.value})"
        )


def split_wildcard(name: str) -> Tuple[str, PatternType]:
    """A trailing '*' marks a prefix: 'foo*' -> ('foo', PREFIXED). A bare '*' stays literal."""
    if name != WILDCARD and name.endswith(WILDCARD):
        return name[:-1], PatternType.PREFIXED
    return name, PatternType.LITERAL


def sorted_bindings(bindings: Iterable[Binding]) -> List[Binding]:
    return sorted(set(bindings), key=Binding.sort_key)


def bucket_by_resource(bindings: Iterable[Binding]) -> Dict[str, List[Binding]]:
    buckets: Dict[str, List[Binding]] = {}
    for binding in sorted_bindings(bindings):
        buckets.setdefault(binding.resource_name, []).append(binding)
    return buckets


@dataclass(frozen=True)
class Action:
    """Bindings produced for one logical unit: one topic's consumers, one connector, one role."""

    kind: str
    target: str
    bindings: Tuple[Binding, ...]

    def __str__(self):
        lines = [f"Action {self.kind} [{self.target}]"]
        lines.extend(f"  - {binding}" for binding in self.bindings)
        return "\n".join(lines)
