from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Set

import pytest

from kafka_topology.backend import BackendController, FileStateBackend
from kafka_topology.binding import Binding
from kafka_topology.config import Configuration
from kafka_topology.model import Consumer, Producer, Project, Topic, Topology

RESOURCES = Path(__file__).resolve().parent / "resources"


@dataclass
class FakeProvider:
    created: List[Set[Binding]] = field(default_factory=list)
    cleared: List[Set[Binding]] = field(default_factory=list)
    cluster: Dict[str, List[Binding]] = field(default_factory=dict)
    fail_on_create: bool = False

    def create_bindings(self, bindings):
        if self.fail_on_create:
            raise OSError("broker unavailable")
        self.created.append(set(bindings))

    def clear_bindings(self, bindings):
        self.cleared.append(set(bindings))

    def list_acls(self):
        return self.cluster


class TopologyFactory:
    """Small builder for a one-project topology named ctx / project."""

    def __init__(self, context="ctx", project="project"):
        self.project = Project(name=project)
        self.topology = Topology(context=context, projects=[self.project])

    def add_topic(self, name, consumers=(), producers=(), **kwargs) -> Topic:
        topic = Topic(name=name, consumers=list(consumers), producers=list(producers), **kwargs)
        self.project.topics.append(topic)
        return topic

    def add_special_topic(self, name, consumers=(), producers=()) -> Topic:
        return self.add_topic(name, consumers, producers, special=True)

    def add_consumer(self, principal, group=None) -> Consumer:
        consumer = Consumer(principal=principal, group=group)
        self.project.consumers.append(consumer)
        return consumer

    def add_producer(self, principal, **kwargs) -> Producer:
        producer = Producer(principal=principal, **kwargs)
        self.project.producers.append(producer)
        return producer

    def remove_consumer(self, principal):
        self.project.consumers = [c for c in self.project.consumers if c.principal != principal]
        for topic in self.project.topics:
            topic.consumers = [c for c in topic.consumers if c.principal != principal]

    def add_other(self, role, members):
        self.project.other[role] = list(members)

    def build(self) -> Topology:
        return self.topology


@pytest.fixture()
def factory() -> TopologyFactory:
    return TopologyFactory()


@pytest.fixture()
def config() -> Configuration:
    return Configuration()


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def state_file(tmp_path: Path) -> Path:
    return tmp_path / "cluster-state.json"


@pytest.fixture()
def backend(state_file: Path) -> BackendController:
    return BackendController(FileStateBackend(state_file))


@pytest.fixture()
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture()
def resources() -> Path:
    return RESOURCES
