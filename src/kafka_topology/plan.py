import logging
import sys
from typing import Dict, List, Tuple

from .binding import Action, Binding, ResourceType, bucket_by_resource, sorted_bindings
from .config import Configuration
from .errors import ConfigurationError, TopologyError
from .scope import ManagedScope

logger = logging.getLogger("execution-plan")

BUILDING = "building"
DRY_RUN = "dry-run"
APPLIED = "applied"


class ExecutionPlan:
    """Desired bindings, grouped in actions, reconciled against the last applied snapshot.

    A plan is built once, then either reported (dry run) or applied. Applying
    issues at most one batched create and one batched delete, persists the new
    snapshot and closes the backend.
    """

    def __init__(self, backend, output=None):
        self.backend = backend
        self.output = output if output is not None else sys.stdout
        self.provider = None
        self.config = Configuration()
        self.scope = ManagedScope(self.config)
        self.state = BUILDING
        self._actions: List[Action] = []
        self._prior: Dict[str, List[Binding]] = {}

    @classmethod
    def init(cls, backend, output=None) -> "ExecutionPlan":
        plan = cls(backend, output)
        backend.load()
        plan._prior = backend.bindings
        logger.info(f"Loaded prior state with {sum(len(b) for b in plan._prior.values())} bindings")
        return plan

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.backend.close()

    def attach(self, provider, config):
        self.provider = provider
        self.config = config
        self.scope = ManagedScope(config)

    def add(self, action: Action):
        if self.state != BUILDING:
            raise TopologyError(f"Cannot add actions to a plan in state '{self.state}'")
        self._actions.append(action)

    @property
    def actions(self) -> Tuple[Action, ...]:
        return tuple(self._actions)

    @property
    def bindings(self) -> List[Binding]:
        return sorted_bindings(b for action in self._actions for b in action.bindings)

    @property
    def prior_bindings(self) -> Dict[str, List[Binding]]:
        return {name: list(bucket) for name, bucket in self._prior.items()}

    def diff(self, prior=None) -> Tuple[List[Binding], List[Binding]]:
        """Return (to_create, stale), compared resource name by resource name."""
        prior = self._prior if prior is None else prior
        desired = bucket_by_resource(self.bindings)
        to_create, stale = [], []
        for name in sorted(set(desired) | set(prior)):
            want = set(desired.get(name, ()))
            have = set(prior.get(name, ()))
            to_create.extend(sorted(want - have, key=Binding.sort_key))
            stale.extend(sorted(have - want, key=Binding.sort_key))
        return to_create, stale

    def run(self, dry_run=False) -> Tuple[List[Binding], List[Binding]]:
        if self.state != BUILDING:
            raise TopologyError(f"Plan already {self.state}")
        try:
            prior = self._prior_view()
            to_create, stale = self.diff(prior)
            to_delete = self._deletable(stale)
            if dry_run:
                self._report(to_create, to_delete)
                self.state = DRY_RUN
                self.backend.close()
                return to_create, to_delete
            self._apply(prior, to_create, to_delete)
            self.state = APPLIED
            return to_create, to_delete
        except Exception:
            # nothing is flushed after a failure
            self.backend.close()
            raise

    def _prior_view(self):
        if not self.config.state_from_cluster:
            return self._prior
        if self.provider is None:
            raise ConfigurationError("topology.state.cluster.enabled is set but no provider is attached")
        logger.info("Reading prior state from the cluster")
        return self.provider.list_acls()

    def _deletable(self, stale) -> List[Binding]:
        desired_topics = {b.resource_name for b in self.bindings if b.resource_type == ResourceType.TOPIC}
        internal = tuple(self.config.internal_topic_prefixes)
        deletable = []
        for binding in stale:
            if not self.scope.matches(binding):
                logger.debug(f"Keeping unmanaged binding {binding}")
                continue
            if binding.resource_type == ResourceType.TOPIC:
                if internal and binding.resource_name.startswith(internal):
                    logger.debug(f"Keeping binding on internal topic {binding}")
                    continue
                if binding.resource_name not in desired_topics:
                    allowed, flag = self.config.allow_delete_topics, "allow.delete.topics"
                else:
                    allowed, flag = self.config.allow_delete_bindings, "allow.delete.bindings"
            else:
                allowed, flag = self.config.allow_delete_bindings, "allow.delete.bindings"
            if allowed:
                deletable.append(binding)
            else:
                logger.info(f"Not deleting {binding}: {flag} is disabled")
        return deletable

    def _apply(self, prior, to_create, to_delete):
        if (to_create or to_delete) and self.provider is None:
            raise ConfigurationError("No access control provider attached to the plan")
        if to_create:
            logger.info(f"Creating {len(to_create)} bindings")
            self.provider.create_bindings(set(to_create))
        if to_delete:
            logger.info(f"Deleting {len(to_delete)} bindings")
            self.provider.clear_bindings(set(to_delete))
        deleted = set(to_delete)
        snapshot = [b for bucket in prior.values() for b in bucket if b not in deleted]
        snapshot.extend(self.bindings)
        self.backend.replace(snapshot)
        self.backend.flush_and_close()

    def _report(self, to_create, to_delete):
        out = self.output
        for action in self._actions:
            print(action, file=out)
        print(f"CreateBindings ({len(to_create)})", file=out)
        for binding in to_create:
            print(f"  + {binding}", file=out)
        print(f"ClearBindings ({len(to_delete)})", file=out)
        for binding in to_delete:
            print(f"  - {binding}", file=out)
