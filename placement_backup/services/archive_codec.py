"""Archive serialization, checksums and compression."""

import gzip
import hashlib
import json
import zlib
from datetime import datetime
from typing import Any, Dict, List

from bson import json_util

from placement_backup.exceptions import CompressionFailure, SerializationFailure
from placement_backup.models.backup_models import ARCHIVE_FORMAT_VERSION


def build_archive(
    timestamp: datetime,
    requested: List[str],
    data: Dict[str, List[Dict[str, Any]]]
) -> Dict[str, Any]:
    """Assemble the archive document.

    Args:
        timestamp: Run start time
        requested: Collections the run was configured to capture
        data: Captured collection name -> documents, in enumeration order

    Returns:
        Archive dictionary with ``metadata`` header and ``data`` body
    """
    return {
        "metadata": {
            "version": ARCHIVE_FORMAT_VERSION,
            "timestamp": timestamp.isoformat(),
            "collections": list(requested)
        },
        "data": {
            name: [archive_document(doc) for doc in documents]
            for name, documents in data.items()
        }
    }


def archive_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(doc["id"]),
        "fields": doc.get("fields", {}),
        "createdAt": doc.get("created_at"),
        "updatedAt": doc.get("updated_at")
    }


def serialize(archive: Dict[str, Any]) -> bytes:
    """Serialize to UTF-8 JSON, keeping BSON types in document fields."""
    try:
        return json.dumps(archive, indent=2, default=json_util.default).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationFailure(f"Failed to serialize archive: {e}") from e


def parse(payload: bytes) -> Dict[str, Any]:
    try:
        archive = json.loads(payload.decode("utf-8"), object_hook=json_util.object_hook)
    except (UnicodeDecodeError, ValueError) as e:
        raise SerializationFailure(f"Failed to parse archive: {e}") from e

    if not isinstance(archive, dict) or not isinstance(archive.get("data"), dict):
        raise SerializationFailure("Archive has no data section")

    return archive


def compute_checksum(payload: bytes) -> str:
    """SHA-256 hex digest of the serialized archive."""
    return hashlib.sha256(payload).hexdigest()


def compress(payload: bytes) -> bytes:
    try:
        return gzip.compress(payload)
    except (OSError, ValueError) as e:
        raise CompressionFailure(f"Failed to compress archive: {e}") from e


def decompress(payload: bytes) -> bytes:
    try:
        return gzip.decompress(payload)
    except (OSError, EOFError, ValueError, zlib.error) as e:
        raise CompressionFailure(f"Failed to decompress archive: {e}") from e
