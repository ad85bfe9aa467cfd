"""
Placement Backup - Component Tests
===================================

Tests for run records, the metadata store, archive codec, encryption,
the MongoDB adapter and settings.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from placement_backup.config import Settings
from placement_backup.exceptions import (
    CompressionFailure,
    EncryptionFailure,
    EncryptionKeyMissing,
    InvalidStatusTransition,
    MetadataCorrupt,
    SerializationFailure,
)
from placement_backup.models.backup_models import BackupRun, BackupStatus
from placement_backup.services import archive_codec
from placement_backup.services.document_store import MongoDocumentStore
from placement_backup.services.encryption_service import EncryptionService
from placement_backup.services.metadata_store import BackupMetadataStore

START = datetime(2026, 3, 1, 1, 0, tzinfo=timezone.utc)


class TestBackupRun:
    """Tests for status transitions."""

    def test_new_run_in_progress(self):
        run = BackupRun(id="backup_1", created_at=START)

        assert run.status == BackupStatus.IN_PROGRESS
        assert run.error is None

    def test_mark_success(self):
        run = BackupRun(id="backup_1", created_at=START)
        run.mark_success(START + timedelta(seconds=12))

        assert run.status == BackupStatus.SUCCESS
        assert run.duration_seconds == 12

    def test_mark_failed_sets_error(self):
        run = BackupRun(id="backup_1", created_at=START)
        run.mark_failed("disk full", START)

        assert run.status == BackupStatus.FAILED
        assert run.error == "disk full"

    def test_terminal_status_is_final(self):
        run = BackupRun(id="backup_1", created_at=START)
        run.mark_success(START)

        with pytest.raises(InvalidStatusTransition):
            run.mark_failed("late failure", START)
        assert run.status == BackupStatus.SUCCESS

    def test_archive_name(self):
        assert BackupRun(id="b", created_at=START).archive_name == "b.json"
        assert BackupRun(id="b", created_at=START, compressed=True).archive_name == "b.json.gz"
        assert BackupRun(
            id="b", created_at=START, compressed=True, encrypted=True
        ).archive_name == "b.json.gz.enc"


class TestMetadataStore:
    """Tests for the sidecar store."""

    def test_save_and_get(self, tmp_path):
        store = BackupMetadataStore(str(tmp_path))
        run = BackupRun(id="backup_1", created_at=START, collections=["users"])

        store.save(run)

        assert (tmp_path / "backup_1.metadata").is_file()
        assert store.get("backup_1") == run
        assert store.exists("backup_1") is True

    def test_get_missing(self, tmp_path):
        assert BackupMetadataStore(str(tmp_path)).get("backup_2") is None

    def test_save_overwrites(self, tmp_path):
        store = BackupMetadataStore(str(tmp_path))
        run = BackupRun(id="backup_1", created_at=START)
        store.save(run)

        run.mark_success(START)
        store.save(run)

        assert store.get("backup_1").status == BackupStatus.SUCCESS
        assert [p.name for p in tmp_path.iterdir()] == ["backup_1.metadata"]

    def test_list_skips_corrupt_files(self, tmp_path):
        store = BackupMetadataStore(str(tmp_path))
        store.save(BackupRun(id="backup_1", created_at=START))
        (tmp_path / "backup_2.metadata").write_text("{not json", encoding="utf-8")

        assert [r.id for r in store.list()] == ["backup_1"]

    def test_get_corrupt_file(self, tmp_path):
        store = BackupMetadataStore(str(tmp_path))
        (tmp_path / "backup_2.metadata").write_text('{"id": "backup_2"', encoding="utf-8")

        with pytest.raises(MetadataCorrupt) as exc_info:
            store.get("backup_2")

        assert exc_info.value.backup_id == "backup_2"
        assert "backup_2" in exc_info.value.message

    def test_list_skips_undecodable_files(self, tmp_path):
        store = BackupMetadataStore(str(tmp_path))
        store.save(BackupRun(id="backup_1", created_at=START))
        (tmp_path / "backup_2.metadata").write_bytes(b"\xff\xfe\x00")

        assert [r.id for r in store.list()] == ["backup_1"]

    def test_delete(self, tmp_path):
        store = BackupMetadataStore(str(tmp_path))
        store.save(BackupRun(id="backup_1", created_at=START))

        assert store.delete("backup_1") is True
        assert store.delete("backup_1") is False
        assert store.list() == []


class TestArchiveCodec:
    """Tests for archive serialization and transforms."""

    def test_build_archive(self):
        archive = archive_codec.build_archive(START, ["users", "programs"], {
            "users": [{"id": "u1", "fields": {"name": "A"}, "created_at": None, "updated_at": None}]
        })

        assert archive["metadata"]["collections"] == ["users", "programs"]
        assert archive["data"]["users"] == [
            {"id": "u1", "fields": {"name": "A"}, "createdAt": None, "updatedAt": None}
        ]

    def test_bson_values_survive_serialization(self):
        oid = ObjectId()
        when = datetime(2026, 1, 5, 9, 30)
        archive = archive_codec.build_archive(START, ["users"], {
            "users": [{"id": "u1", "fields": {"owner": oid, "joined": when}}]
        })

        parsed = archive_codec.parse(archive_codec.serialize(archive))
        fields = parsed["data"]["users"][0]["fields"]

        assert fields["owner"] == oid
        assert fields["joined"].replace(tzinfo=None) == when

    def test_parse_rejects_garbage(self):
        with pytest.raises(SerializationFailure):
            archive_codec.parse(b"\xff\xfe")

        with pytest.raises(SerializationFailure):
            archive_codec.parse(b'{"metadata": {}}')

    def test_checksum_changes_with_content(self):
        assert archive_codec.compute_checksum(b"a") != archive_codec.compute_checksum(b"b")
        assert archive_codec.compute_checksum(b"a") == archive_codec.compute_checksum(b"a")

    def test_decompress_rejects_garbage(self):
        with pytest.raises(CompressionFailure):
            archive_codec.decompress(b"definitely not gzip")


class TestEncryptionService:
    """Tests for AES-GCM archive encryption."""

    def test_round_trip(self):
        service = EncryptionService("s" * 32)

        encrypted = service.encrypt(b"placement data")

        assert encrypted != b"placement data"
        assert service.decrypt(encrypted) == b"placement data"

    def test_random_nonce(self):
        service = EncryptionService("s" * 32)

        assert service.encrypt(b"same") != service.encrypt(b"same")

    def test_tampering_detected(self):
        service = EncryptionService("s" * 32)
        encrypted = bytearray(service.encrypt(b"placement data"))
        encrypted[-1] ^= 0x01

        with pytest.raises(EncryptionFailure):
            service.decrypt(bytes(encrypted))

    def test_truncated_payload(self):
        with pytest.raises(EncryptionFailure):
            EncryptionService("s" * 32).decrypt(b"short")

    def test_missing_key(self):
        with pytest.raises(EncryptionKeyMissing):
            EncryptionService("")


class AsyncCursor:
    def __init__(self, docs):
        self.docs = docs

    def __aiter__(self):
        self._iter = iter(self.docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class TestMongoDocumentStore:
    """Tests for the motor-backed adapter."""

    @pytest.fixture
    def collection(self):
        return MagicMock()

    @pytest.fixture
    def db(self, collection):
        db = MagicMock()
        db.__getitem__.return_value = collection
        db.list_collection_names = AsyncMock(return_value=["users", "placements"])
        return db

    @pytest.mark.asyncio
    async def test_list_collections(self, db):
        assert await MongoDocumentStore(db).list_collections() == ["users", "placements"]

    @pytest.mark.asyncio
    async def test_read_all_documents(self, db, collection):
        oid = ObjectId()
        created = datetime(2026, 2, 1, 8, 0)
        collection.find.return_value = AsyncCursor([
            {"_id": oid, "name": "Alice", "created_at": created},
            {"_id": "custom-id", "name": "Bongani"},
        ])

        docs = await MongoDocumentStore(db).read_all_documents("users")

        db.__getitem__.assert_called_with("users")
        assert docs[0]["id"] == str(oid)
        assert docs[0]["fields"] == {"name": "Alice", "created_at": created}
        assert docs[0]["created_at"] == created.isoformat()
        assert docs[1]["id"] == "custom-id"
        assert docs[1]["updated_at"] is None

    @pytest.mark.asyncio
    async def test_upsert_converts_object_ids(self, db, collection):
        collection.replace_one = AsyncMock()
        oid = ObjectId()

        await MongoDocumentStore(db).upsert_document("users", str(oid), {"name": "Alice"})

        collection.replace_one.assert_awaited_once_with({"_id": oid}, {"name": "Alice"}, upsert=True)

    @pytest.mark.asyncio
    async def test_upsert_keeps_string_ids(self, db, collection):
        collection.replace_one = AsyncMock()

        await MongoDocumentStore(db).upsert_document("users", "u1", {"name": "Alice"})

        collection.replace_one.assert_awaited_once_with({"_id": "u1"}, {"name": "Alice"}, upsert=True)


class TestSettings:
    """Tests for environment configuration."""

    def test_backup_config_from_env(self, monkeypatch):
        monkeypatch.setenv("BACKUP_ENABLED", "true")
        monkeypatch.setenv("BACKUP_SCHEDULE", "0 */6 * * *")
        monkeypatch.setenv("BACKUP_RETENTION_DAYS", "7")
        monkeypatch.setenv("BACKUP_COLLECTIONS", "users, placements,,documents")
        monkeypatch.setenv("BACKUP_ENCRYPTION", "true")
        monkeypatch.setenv("BACKUP_ENCRYPTION_KEY", "secret")

        config = Settings(_env_file=None).backup_config()

        assert config.enabled is True
        assert config.schedule == "0 */6 * * *"
        assert config.retention_days == 7
        assert config.collections == ["users", "placements", "documents"]
        assert config.encryption is True
        assert config.encryption_key == "secret"

    def test_defaults(self, monkeypatch):
        for name in ("BACKUP_ENABLED", "BACKUP_COLLECTIONS", "BACKUP_COMPRESSION"):
            monkeypatch.delenv(name, raising=False)

        config = Settings(_env_file=None).backup_config()

        assert config.enabled is False
        assert config.compression is False
        assert config.collections[0] == "users"
        assert "placements" in config.collections
        assert len(config.collections) == 13
