"""Shared test fixtures for the board tests."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent))

from tableros.errors import RemoteWriteError
from tableros.schema import BOARD_KINDS


class FakeTable:
    """In-memory stand-in for store.TableStore (list/insert/update/delete)."""

    def __init__(self, kind, rows=None):
        self.kind = kind
        self.rows = list(rows or [])
        self.updates = []
        self.inserts = []
        self.deletes = []
        self.fail_writes = False
        self._next_id = 1000

    def list(self, process_id):
        return [
            self.kind.item_from_dict(r)
            for r in self.rows
            if r.get("process_id") == process_id
        ]

    def insert(self, payload):
        if self.fail_writes:
            raise RemoteWriteError("insert refused")
        self._next_id += 1
        row = dict(payload, id=str(self._next_id))
        row[self.kind.created_field] = "2024-05-01T10:00:00Z"
        self.inserts.append(payload)
        self.rows.insert(0, row)
        return self.kind.item_from_dict(row)

    def update(self, item_id, partial):
        if self.fail_writes:
            raise RemoteWriteError("update refused", status_code=500)
        self.updates.append((item_id, partial))

    def delete(self, item_id):
        if self.fail_writes:
            raise RemoteWriteError("delete refused")
        self.deletes.append(item_id)


@pytest.fixture
def fake_table_factory():
    def _make(kind_name, rows=None):
        return FakeTable(BOARD_KINDS[kind_name], rows)
    return _make
