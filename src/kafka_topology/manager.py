import logging
from typing import List, Optional

from .binding import Action
from .builder import dedupe
from .config import Configuration
from .errors import UnknownRoleError
from .model import Component
from .naming import TopologyNaming
from .scope import ManagedScope

logger = logging.getLogger("access-control")


def _union(first, second):
    merged = list(first)
    for entry in second:
        if entry not in merged:
            merged.append(entry)
    return merged


class AccessControlManager:
    """Walks a topology, asks the builder for bindings and registers them as plan actions."""

    def __init__(self, provider, builder, config=None, roles=None):
        self.provider = provider
        self.builder = builder
        self.config = config or getattr(builder, "config", None) or Configuration()
        self.roles = roles if roles is not None else self.config.roles_catalog()
        self.naming = TopologyNaming(self.config)
        self.scope = ManagedScope(self.config)

    def update_plan(self, topology, plan) -> List[Action]:
        # Generate everything first so a fatal error leaves the plan untouched.
        actions = self.build_actions(topology)
        plan.attach(self.provider, self.config)
        for action in actions:
            plan.add(action)
        logger.info(f"Registered {len(actions)} actions for context {topology.context}")
        return actions

    def build_actions(self, topology) -> List[Action]:
        actions = []
        for project in topology.projects:
            actions.extend(self._project_actions(topology, project))
        if topology.platform is not None:
            actions.extend(self._platform_actions(topology.platform))
        return actions

    def _action(self, kind, target, bindings) -> Optional[Action]:
        kept = self.scope.filter(dedupe(bindings))
        if not kept:
            logger.debug(f"No managed bindings for {kind} [{target}]")
            return None
        return Action(kind, target, tuple(kept))

    def _project_actions(self, topology, project):
        optimized = self.config.optimized_acls
        actions = []
        prefix = None
        if optimized or project.streams or project.connectors or project.ksql:
            prefix = self.naming.project_prefix(topology, project)

        if optimized:
            if project.consumers:
                bindings = self.builder.build_prefixed_bindings_for_consumers(project.consumers, prefix)
                actions.append(self._action("consumers", prefix, bindings))
            if project.producers:
                bindings = self.builder.build_prefixed_bindings_for_producers(project.producers, prefix)
                actions.append(self._action("producers", prefix, bindings))

        for topic in project.topics:
            name = self.naming.topic_name(topology, project, topic)
            if not self.scope.manages_topic(name):
                logger.debug(f"Skipping unmanaged topic {name}")
                continue
            if topic.special:
                consumers, producers = topic.consumers, topic.producers
            elif optimized:
                consumers = [c for c in topic.consumers if c not in project.consumers]
                producers = [p for p in topic.producers if p not in project.producers]
            else:
                consumers = _union(project.consumers, topic.consumers)
                producers = _union(project.producers, topic.producers)
            if consumers:
                bindings = self.builder.build_literal_bindings_for_consumers(consumers, name)
                actions.append(self._action("consumers", name, bindings))
            if producers:
                bindings = self.builder.build_literal_bindings_for_producers(producers, name)
                actions.append(self._action("producers", name, bindings))

        for app in [*project.streams, *project.connectors, *project.ksql]:
            actions.append(self._action(app.kind, app.principal, self.builder.build_bindings(app, prefix)))

        actions.extend(self._custom_role_actions(topology, project))
        return [action for action in actions if action is not None]

    def _custom_role_actions(self, topology, project):
        actions = []
        for role_name, members in project.other.items():
            if self.roles is None:
                raise UnknownRoleError(
                    f"Project {project.name} uses custom role '{role_name}' but no roles catalog is configured"
                )
            template = self.roles.get(role_name)
            variables = self.naming.variables(topology, project)
            for member in members:
                bindings = self.builder.build_bindings_for_custom_role(template, member, variables)
                actions.append(self._action(f"role:{role_name}", member.get("principal"), bindings))
        return actions

    def _platform_actions(self, platform):
        actions = []
        for component, spec in platform.components():
            if component == Component.SCHEMA_REGISTRY:
                for instance in spec.instances:
                    bindings = self.builder.build_bindings_for_schema_registry(instance)
                    actions.append(self._action("schema-registry", instance.principal, bindings))
            elif component == Component.CONTROL_CENTER:
                for instance in spec.instances:
                    bindings = self.builder.build_bindings_for_control_center(instance.principal, instance.app_id)
                    actions.append(self._action("control-center", instance.principal, bindings))
            for role, users in spec.rbac.items():
                for user in users:
                    binding = self.builder.set_cluster_level_role(role, user.principal, component)
                    actions.append(self._action("rbac", f"{component.cluster_key}:{role}", [binding]))
        return [action for action in actions if action is not None]
