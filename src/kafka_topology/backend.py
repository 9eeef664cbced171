import json
import logging
import os
import sqlite3
from typing import Dict, Iterable, List

import psycopg2

from .binding import Binding, bucket_by_resource, sorted_bindings
from .errors import ConfigurationError

logger = logging.getLogger("state-backend")

PG_HOST = os.getenv("PG_HOST", "localhost")
PG_USER = os.getenv("PG_USER", "admin")
PG_PASS = os.getenv("PG_PASS", "admin")
PG_DB = os.getenv("PG_DB", "kafka_topology")


class FileStateBackend:
    """Snapshot kept as a JSON document, replaced atomically on every write."""

    def __init__(self, path=".cluster-state"):
        self.path = path

    def read(self) -> List[Binding]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return [Binding.model_validate(item) for item in data.get("bindings", [])]

    def write(self, bindings: Iterable[Binding]):
        payload = {"bindings": [b.model_dump(mode="json") for b in sorted_bindings(bindings)]}
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)
        os.replace(tmp, self.path)

    def clear(self):
        if os.path.exists(self.path):
            os.remove(self.path)

    def close(self):
        pass


class SqlStateBackend:
    """Snapshot kept in an acl_bindings table: SQLite in DEV mode, PostgreSQL otherwise."""

    COLUMNS = ("principal", "resource_type", "resource_name", "pattern_type", "operation", "host", "permission")

    def __init__(self, db_path=None, mode=None):
        self.mode = mode or os.getenv("MODE", "PROD")
        self.db_path = db_path or os.getenv("SQLITE_DB_PATH", "cluster_state.db")
        self._conn = None

    @property
    def placeholder(self):
        return "?" if self.mode == "DEV" else "%s"

    def get_db_connection(self):
        if self._conn is not None:
            return self._conn
        if self.mode == "DEV":
            logger.info(f"Using SQLite state at {self.db_path}")
            conn = sqlite3.connect(self.db_path)
        else:
            conn = psycopg2.connect(host=PG_HOST, user=PG_USER, password=PG_PASS, dbname=PG_DB)
        cur = conn.cursor()
        cur.execute("""
            CREATE TABLE IF NOT EXISTS acl_bindings (
                principal VARCHAR(255) NOT NULL,
                resource_type VARCHAR(32) NOT NULL,
                resource_name VARCHAR(255) NOT NULL,
                pattern_type VARCHAR(16) NOT NULL,
                operation VARCHAR(64) NOT NULL,
                host VARCHAR(255) NOT NULL,
                permission VARCHAR(16) NOT NULL
            )
        """)
        conn.commit()
        self._conn = conn
        return conn

    def read(self) -> List[Binding]:
        cur = self.get_db_connection().cursor()
        cur.execute(f"SELECT {', '.join(self.COLUMNS)} FROM acl_bindings")
        return [Binding(**dict(zip(self.COLUMNS, row))) for row in cur.fetchall()]

    def write(self, bindings: Iterable[Binding]):
        conn = self.get_db_connection()
        cur = conn.cursor()
        marks = ", ".join([self.placeholder] * len(self.COLUMNS))
        rows = [
            (b.principal, b.resource_type.value, b.resource_name, b.pattern_type.value, b.operation, b.host, b.permission)
            for b in sorted_bindings(bindings)
        ]
        try:
            cur.execute("DELETE FROM acl_bindings")
            cur.executemany(f"INSERT INTO acl_bindings ({', '.join(self.COLUMNS)}) VALUES ({marks})", rows)
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def clear(self):
        conn = self.get_db_connection()
        conn.cursor().execute("DELETE FROM acl_bindings")
        conn.commit()

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class BackendController:
    """In-memory view of the applied bindings, persisted through a storage backend."""

    def __init__(self, backend=None):
        self.backend = backend or FileStateBackend()
        self._bindings = set()
        self.closed = False

    def load(self):
        self._bindings = set(self.backend.read())
        logger.info(f"Loaded {len(self._bindings)} bindings from {type(self.backend).__name__}")
        return self

    def reset(self):
        self._bindings = set()
        self.backend.clear()

    def add_bindings(self, bindings: Iterable[Binding]):
        self._bindings.update(bindings)

    def replace(self, bindings: Iterable[Binding]):
        self._bindings = set(bindings)

    @property
    def bindings(self) -> Dict[str, List[Binding]]:
        return bucket_by_resource(self._bindings)

    def all_bindings(self) -> List[Binding]:
        return sorted_bindings(self._bindings)

    def flush(self):
        self.backend.write(self._bindings)
        logger.info(f"Persisted {len(self._bindings)} bindings")

    def close(self):
        if self.closed:
            return
        self.backend.close()
        self.closed = True

    def flush_and_close(self):
        try:
            self.flush()
        finally:
            self.close()


def build_backend_controller(config) -> BackendController:
    processor = config.state_processor.lower()
    if processor == "file":
        return BackendController(FileStateBackend(config.state_file))
    if processor in ("sql", "sqlite", "postgres"):
        return BackendController(SqlStateBackend(mode="DEV" if processor == "sqlite" else None))
    raise ConfigurationError(f"Unknown state processor '{config.state_processor}'")
