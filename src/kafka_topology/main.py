import argparse
import logging
import sys

from .backend import build_backend_controller
from .builder import AclsBindingsBuilder
from .config import Configuration
from .errors import TopologyError
from .loader import load_topology
from .manager import AccessControlManager
from .plan import ExecutionPlan
from .provider import KafkaAclsProvider

logger = logging.getLogger("kafka-topology")


def run(topology_file, config, dry_run=False, provider=None, output=None):
    config.validate_formats()
    topology = load_topology(topology_file)
    if provider is None:
        provider = KafkaAclsProvider.from_config(config)
    builder = AclsBindingsBuilder(config)
    manager = AccessControlManager(provider, builder, config)
    backend = build_backend_controller(config)
    try:
        plan = ExecutionPlan.init(backend, output)
        manager.update_plan(topology, plan)
        return plan.run(dry_run=dry_run)
    finally:
        backend.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Reconcile Kafka ACLs and role bindings with a topology file")
    parser.add_argument("--topology", required=True, help="Topology YAML file")
    parser.add_argument("--config", help="Properties file with the tool configuration")
    parser.add_argument("--brokers", help="Overrides bootstrap.servers")
    parser.add_argument("--dry-run", action="store_true", help="Print the plan without applying it")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        config = Configuration.load(args.config) if args.config else Configuration()
        if args.brokers:
            config = config.model_copy(update={"brokers": args.brokers})
        to_create, to_delete = run(args.topology, config, dry_run=args.dry_run)
    except TopologyError as e:
        logger.error(f"Topology run failed: {e}")
        return 1
    logger.info(f"Done: {len(to_create)} bindings to create, {len(to_delete)} to delete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
