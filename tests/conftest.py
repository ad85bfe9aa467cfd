"""
Placement Backup - Test Fixtures
=================================

Shared fixtures for all tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from placement_backup.config import BackupConfig
from placement_backup.services.backup_service import BackupService


class InMemoryDocumentStore:
    """DocumentStore fake holding collections in dicts."""

    def __init__(self, collections=None, failing=None, failing_upserts=None):
        self.collections = {name: dict(docs) for name, docs in (collections or {}).items()}
        self.failing = set(failing or [])
        self.failing_upserts = set(failing_upserts or [])
        self.reads = []

    async def list_collections(self):
        return list(self.collections)

    async def read_all_documents(self, collection):
        self.reads.append(collection)
        if collection in self.failing:
            raise RuntimeError(f"permission denied on {collection}")

        return [
            {
                "id": doc_id,
                "fields": dict(fields),
                "created_at": "2026-01-01T00:00:00+00:00",
                "updated_at": "2026-01-02T00:00:00+00:00",
            }
            for doc_id, fields in self.collections.get(collection, {}).items()
        ]

    async def upsert_document(self, collection, document_id, fields):
        if document_id in self.failing_upserts:
            raise RuntimeError(f"write rejected for {document_id}")
        self.collections.setdefault(collection, {})[document_id] = dict(fields)


class BlockingStore(InMemoryDocumentStore):
    """Store whose reads wait until released."""

    def __init__(self, collections):
        super().__init__(collections)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def read_all_documents(self, collection):
        self.started.set()
        await self.release.wait()
        return await super().read_all_documents(collection)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 1, 1, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds=0, days=0):
        self.now += timedelta(seconds=seconds, days=days)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_data():
    return {
        "users": {
            "u1": {"name": "Alice", "role": "learner"},
            "u2": {"name": "Bongani", "role": "mentor"},
        },
        "placements": {
            "p1": {"company": "Acme", "stipend": 4500},
            "p2": {"company": "Globex", "stipend": 5000},
            "p3": {"company": "Initech", "stipend": 3800, "tags": ["remote", "it"]},
        },
    }


@pytest.fixture
def store(sample_data):
    return InMemoryDocumentStore(sample_data)


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        values = {
            "storage_path": str(tmp_path / "backups"),
            "collections": ["users", "placements"],
            "retention_days": 30,
        }
        values.update(overrides)
        return BackupConfig(**values)
    return _make


@pytest.fixture
def make_service(store, make_config, clock):
    def _make(document_store=None, **overrides):
        return BackupService(document_store or store, make_config(**overrides), clock=clock)
    return _make


@pytest.fixture
def service(make_service):
    return make_service()
