import logging

import yaml
from pydantic import ValidationError

from .errors import ConfigurationError
from .model import Topology

logger = logging.getLogger("topology-loader")


def parse_topology(data) -> Topology:
    try:
        return Topology.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid topology: {e}") from e


def load_topology(path) -> Topology:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    topology = parse_topology(data)
    logger.info(f"Loaded topology {topology.context} with {len(topology.projects)} projects from {path}")
    return topology
