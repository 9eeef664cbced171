from __future__ import annotations

from dataclasses import dataclass

import pytest

from kafka_topology.backend import BackendController, FileStateBackend
from kafka_topology.binding import ResourceType
from kafka_topology.config import Configuration
from kafka_topology.main import main, run


def test_run_applies_sample_topology(resources, provider, state_file, output) -> None:
    config = Configuration(roles_file=str(resources / "roles.yaml"), state_file=str(state_file))

    to_create, to_delete = run(resources / "topology.yaml", config, provider=provider, output=output)

    assert to_delete == []
    assert provider.created == [set(to_create)]
    names = {b.resource_name for b in to_create if b.resource_type == ResourceType.TOPIC}
    assert {"contextOrg.source.foo.foo", "contextOrg.source.foo.bar.avro", "legacy.events", "sourceTopic"} <= names
    assert any(b.is_role_assignment for b in to_create)
    assert set(FileStateBackend(state_file).read()) == set(to_create)

    # a second run has nothing left to do
    again = run(resources / "topology.yaml", config, provider=provider, output=output)
    assert again == ([], [])
    assert len(provider.created) == 1


def test_run_dry_run(resources, provider, state_file, output) -> None:
    config = Configuration(roles_file=str(resources / "roles.yaml"), state_file=str(state_file))

    run(resources / "topology.yaml", config, dry_run=True, provider=provider, output=output)

    assert "Action kstream [User:Streams]" in output.getvalue()
    assert provider.created == []
    assert not state_file.exists()


def test_main_reports_configuration_errors(resources, tmp_path) -> None:
    props = tmp_path / "bad.properties"
    props.write_text("topology.topic.prefix.format={{context}}.{{topic}}\n")

    code = main(["--topology", str(resources / "topology.yaml"), "--config", str(props), "--dry-run"])

    assert code == 1


@dataclass
class BrokenStateBackend:
    closed: bool = False

    def read(self):
        raise OSError("state store unavailable")

    def close(self):
        self.closed = True


def test_run_releases_backend_when_state_load_fails(resources, provider, monkeypatch) -> None:
    storage = BrokenStateBackend()
    controller = BackendController(storage)
    monkeypatch.setattr("kafka_topology.main.build_backend_controller", lambda config: controller)
    config = Configuration(roles_file=str(resources / "roles.yaml"))

    with pytest.raises(OSError):
        run(resources / "topology.yaml", config, provider=provider)

    assert controller.closed
    assert storage.closed
    assert provider.created == []
