import logging

from jinja2 import Environment, StrictUndefined, TemplateError

from .errors import PrefixResolutionError

logger = logging.getLogger("topology-naming")

DEFAULT_FORMAT = "default"

_env = Environment(undefined=StrictUndefined, autoescape=False)


def render_template(fmt, variables, what="name"):
    """Render a {{var}} template; a missing variable is a configuration error."""
    try:
        return _env.from_string(fmt).render(**variables)
    except TemplateError as e:
        raise PrefixResolutionError(f"Could not resolve {what} format '{fmt}': {e}") from e


class TopologyNaming:
    """Project prefixes and topic names, from the default layout or the configured templates."""

    def __init__(self, config):
        self.config = config

    @property
    def separator(self):
        return self.config.topic_prefix_separator

    def variables(self, topology, project, **extra):
        values = {"context": topology.context}
        values.update(topology.other)
        values["project"] = project.name
        values.update({k: v for k, v in extra.items() if v is not None})
        return values

    def project_prefix(self, topology, project):
        fmt = self.config.project_prefix_format
        if fmt == DEFAULT_FORMAT:
            parts = [topology.context, *topology.other.values(), project.name]
            return self.separator.join(parts) + self.separator
        prefix = render_template(fmt, self.variables(topology, project), "project prefix")
        logger.debug(f"Project {project.name} resolved to prefix '{prefix}'")
        return prefix

    def topic_name(self, topology, project, topic):
        if topic.special:
            return topic.name
        fmt = self.config.topic_prefix_format
        if fmt == DEFAULT_FORMAT:
            parts = [topology.context, *topology.other.values(), project.name, topic.name]
            if topic.data_type:
                parts.append(topic.data_type)
            return self.separator.join(parts)
        variables = self.variables(topology, project, topic=topic.name, dataType=topic.data_type)
        return render_template(fmt, variables, "topic")
