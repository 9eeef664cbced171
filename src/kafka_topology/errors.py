class TopologyError(Exception):
    """Base class for everything raised while building or applying a topology."""


class ConfigurationError(TopologyError):
    """The desired state cannot be computed safely from the given configuration."""


class PrefixResolutionError(ConfigurationError):
    pass


class UnknownRoleError(ConfigurationError):
    pass


class ProviderError(TopologyError):
    pass
