import logging

from .binding import WILDCARD, Binding, ResourceType

logger = logging.getLogger("managed-scope")


def _matches_prefix(prefixes, name):
    return not prefixes or any(name.startswith(prefix) for prefix in prefixes)


class ManagedScope:
    """Managed-prefix allow-lists. An empty list means everything is managed."""

    def __init__(self, config):
        self.topic_prefixes = list(config.topic_managed_prefixes)
        self.group_prefixes = list(config.group_managed_prefixes)
        self.service_account_prefixes = list(config.service_account_managed_prefixes)

    def manages_topic(self, name) -> bool:
        return _matches_prefix(self.topic_prefixes, name)

    def matches(self, binding: Binding) -> bool:
        if not _matches_prefix(self.service_account_prefixes, binding.principal):
            return False
        if binding.resource_type == ResourceType.TOPIC:
            return self.manages_topic(binding.resource_name)
        if binding.resource_type == ResourceType.GROUP:
            return binding.resource_name == WILDCARD or _matches_prefix(self.group_prefixes, binding.resource_name)
        return True

    def filter(self, bindings):
        kept = []
        for binding in bindings:
            if self.matches(binding):
                kept.append(binding)
            else:
                logger.debug(f"Skipping unmanaged binding {binding}")
        return kept
