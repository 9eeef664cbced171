import logging
from typing import Iterable, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .binding import ACL_OPERATIONS, PatternType, ResourceType
from .errors import ConfigurationError, UnknownRoleError

logger = logging.getLogger("roles-catalog")


class Permission(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    resource_type: ResourceType = Field(alias="resourceType")
    resource_name: str = Field("{{topic}}", alias="resourceName")
    pattern_type: PatternType = Field(PatternType.LITERAL, alias="patternType")
    operations: List[str]

    @model_validator(mode="before")
    @classmethod
    def _single_operation(cls, data):
        # catalog files may list one "operation" instead of "operations"
        if isinstance(data, dict) and "operations" not in data and "operation" in data:
            data = dict(data)
            data["operations"] = [data.pop("operation")]
        return data

    @field_validator("resource_type", mode="before")
    @classmethod
    def _resource_type(cls, value):
        if isinstance(value, str):
            value = value.upper().replace("-", "_")
            if value == "TRANSACTIONALID":
                value = ResourceType.TRANSACTIONAL_ID.value
        return value

    @field_validator("pattern_type", mode="before")
    @classmethod
    def _pattern_type(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("operations", mode="before")
    @classmethod
    def _operations(cls, value):
        if isinstance(value, str):
            value = [value]
        # role names are case sensitive, ACL operations are not
        return [str(op).upper() if str(op).upper() in ACL_OPERATIONS else str(op) for op in value]

    @model_validator(mode="after")
    def _role_names_only_on_cluster(self):
        # a non-ACL operation is a role name, which only exists at cluster level
        unknown = [op for op in self.operations if op not in ACL_OPERATIONS]
        if unknown and self.resource_type != ResourceType.CLUSTER:
            raise ConfigurationError(
                f"Unknown operations {unknown} on {self.resource_type.value} '{self.resource_name}'"
            )
        return self


class RoleTemplate(BaseModel):
    name: str
    permissions: List[Permission] = Field(default_factory=list)


class RolesCatalog:
    """Named bundles of permissions, expandable against a principal and a target topic."""

    def __init__(self, roles: Iterable[RoleTemplate] = ()):
        self._roles = {role.name: role for role in roles}

    @classmethod
    def load(cls, path) -> "RolesCatalog":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        roles = [RoleTemplate.model_validate(entry) for entry in data.get("roles", [])]
        logger.info(f"Loaded {len(roles)} custom roles from {path}")
        return cls(roles)

    def names(self) -> List[str]:
        return list(self._roles)

    def get(self, name) -> RoleTemplate:
        role: Optional[RoleTemplate] = self._roles.get(name)
        if role is None:
            raise UnknownRoleError(f"Custom role '{name}' is not defined in the roles catalog")
        return role
