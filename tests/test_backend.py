from __future__ import annotations

import json

import pytest

from kafka_topology.backend import (
    BackendController,
    FileStateBackend,
    SqlStateBackend,
    build_backend_controller,
)
from kafka_topology.binding import Binding, PatternType, ResourceType
from kafka_topology.config import Configuration
from kafka_topology.errors import ConfigurationError

BINDINGS = [
    Binding.allow("User:app1", ResourceType.TOPIC, "foo", "READ"),
    Binding.allow("User:app1", ResourceType.GROUP, "app", "READ", PatternType.PREFIXED),
    Binding.allow("User:admin", ResourceType.CLUSTER, "kafka-cluster", "SecurityAdmin"),
]


def test_file_backend_missing_file_is_empty(state_file) -> None:
    assert FileStateBackend(state_file).read() == []


def test_file_backend_writes_sorted_json_atomically(state_file) -> None:
    backend = FileStateBackend(state_file)
    backend.write(BINDINGS)

    data = json.loads(state_file.read_text())
    assert [b["resource_name"] for b in data["bindings"]] == ["app", "foo", "kafka-cluster"]
    assert not (state_file.parent / f"{state_file.name}.tmp").exists()
    assert set(backend.read()) == set(BINDINGS)

    backend.clear()
    assert not state_file.exists()


def test_sqlite_backend(tmp_path) -> None:
    backend = SqlStateBackend(db_path=str(tmp_path / "state.db"), mode="DEV")
    backend.write(BINDINGS)
    backend.write(BINDINGS[:1])
    assert backend.read() == BINDINGS[:1]

    backend.clear()
    assert backend.read() == []
    backend.close()


def test_sql_backend_reads_mode_from_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("MODE", "DEV")
    monkeypatch.setenv("SQLITE_DB_PATH", str(tmp_path / "env.db"))
    backend = SqlStateBackend()

    assert backend.placeholder == "?"
    backend.write(BINDINGS)
    backend.close()
    assert (tmp_path / "env.db").exists()
    assert set(SqlStateBackend().read()) == set(BINDINGS)


def test_controller_tracks_bindings_by_resource(state_file) -> None:
    controller = BackendController(FileStateBackend(state_file))
    controller.add_bindings(BINDINGS)
    controller.add_bindings(BINDINGS[:1])

    assert list(controller.bindings) == ["app", "foo", "kafka-cluster"]
    assert len(controller.all_bindings()) == 3

    controller.flush_and_close()
    assert controller.closed
    assert set(BackendController(FileStateBackend(state_file)).load().all_bindings()) == set(BINDINGS)


def test_controller_reset_and_idempotent_close(state_file) -> None:
    FileStateBackend(state_file).write(BINDINGS)
    controller = BackendController(FileStateBackend(state_file)).load()

    controller.reset()

    assert controller.bindings == {}
    assert not state_file.exists()
    controller.close()
    controller.close()
    assert controller.closed


def test_backend_selection(tmp_path) -> None:
    file_controller = build_backend_controller(Configuration(state_file=str(tmp_path / "s")))
    assert isinstance(file_controller.backend, FileStateBackend)

    sql_controller = build_backend_controller(Configuration(state_processor="sqlite"))
    assert isinstance(sql_controller.backend, SqlStateBackend)
    assert sql_controller.backend.mode == "DEV"

    with pytest.raises(ConfigurationError):
        build_backend_controller(Configuration(state_processor="redis"))
