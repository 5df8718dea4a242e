# tests/conftest.py
"""
pytest configuration and fixtures for the claims migrator

Staging runs on an in-memory SQLite database; the ledger is a scripted
fake that records every call it receives.
"""

from typing import Any, Dict, List, Mapping, Optional

import pytest

from migrator.clients.interfaces import LedgerClientInterface
from migrator.core.errors import TransportError
from migrator.core.logging import MigratorLogger
from migrator.database.connection import DatabaseManager
from migrator.database.repository import StagingRepository
from migrator.types import DatabaseConfig, LedgerMethods, DETAILS, PARENTS


class FakeLedgerClient(LedgerClientInterface):
    """
    Ledger double.

    parents: list of (id, attributes) as the listing returns them
    details: parent id -> list of (owner, attributes)
    fail_on: method name -> 1-based call number of that method that fails
    """

    def __init__(self, parents: Optional[List[Any]] = None,
                 details: Optional[Dict[int, List[Any]]] = None,
                 fail_on: Optional[Dict[str, int]] = None):
        self.parents = list(parents or [])
        self.details = dict(details or {})
        self.fail_on = dict(fail_on or {})
        self.calls: List[tuple] = []
        self._counts: Dict[str, int] = {}

    def _record(self, kind: str, method: str, args: Mapping[str, Any]) -> None:
        self.calls.append((kind, method, dict(args)))
        self._counts[method] = self._counts.get(method, 0) + 1
        if self.fail_on.get(method) == self._counts[method]:
            raise TransportError("Scripted ledger failure", method=method)

    def view(self, method: str, args: Mapping[str, Any]) -> Any:
        self._record("view", method, args)
        return list(self.details.get(args["id"], []))

    def read_page(self, method: str, from_index: int, limit: int) -> List[Any]:
        self._record("read_page", method, {"from_index": from_index, "limit": limit})
        return self.parents[from_index:from_index + limit]

    def mutate(self, method: str, args: Mapping[str, Any]) -> Any:
        self._record("mutate", method, args)
        return {"status": 1}

    def mutations(self, method: Optional[str] = None) -> List[tuple]:
        return [
            (name, args) for kind, name, args in self.calls
            if kind == "mutate" and (method is None or name == method)
        ]


@pytest.fixture(scope="session", autouse=True)
def quiet_logging(tmp_path_factory):
    MigratorLogger.configure(
        log_dir=tmp_path_factory.mktemp("logs"),
        log_level="DEBUG",
        console_enabled=False,
        file_enabled=False,
        force=True,
    )


@pytest.fixture
def db_manager():
    manager = DatabaseManager(DatabaseConfig(url="sqlite://"))
    manager.initialize()
    yield manager
    manager.shutdown()


@pytest.fixture
def repository(db_manager):
    return StagingRepository(db_manager)


@pytest.fixture
def methods():
    return LedgerMethods()


@pytest.fixture
def fake_ledger_factory():
    return FakeLedgerClient


def claim(created_at: Any, **attributes) -> Dict[str, Any]:
    return {"created_at": created_at, **attributes}


@pytest.fixture
def scenario_ledger():
    """Three claims: created_at 300/100/200, owners A/B/A, parents 5/5/6"""
    return FakeLedgerClient(
        parents=[(5, {"title": "five"}), (6, {"title": "six"})],
        details={
            5: [("A", claim(300, bounty_id=5)), ("B", claim(100, bounty_id=5))],
            6: [("A", claim(200, bounty_id=6))],
        },
    )


@pytest.fixture
def staged_scenario(repository):
    """The same three claims written straight into staging"""
    for collection in (PARENTS, DETAILS):
        repository.ensure_collection(collection)
    repository.insert_many(PARENTS, [
        {"id": 5, "attributes": {}},
        {"id": 6, "attributes": {}},
    ])
    repository.insert_many(DETAILS, [
        {"owner": "A", "parent_id": 5, "created_at": 300, "attributes": {"created_at": 300}},
        {"owner": "B", "parent_id": 5, "created_at": 100, "attributes": {"created_at": 100}},
        {"owner": "A", "parent_id": 6, "created_at": 200, "attributes": {"created_at": 200}},
    ])
    return repository
