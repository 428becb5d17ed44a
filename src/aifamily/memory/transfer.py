"""Export and import of a user's memories as a versioned JSON document.

Export format::

    {
      "version": "1.0",
      "exportDate": "<iso timestamp>",
      "memories": [{"role": ..., "content": ..., "timestamp": ...}, ...],
      "metadata": {"totalCount": N, "exportedBy": ..., "appVersion": ...}
    }

Import re-ingests each memory through Memory.add so both the raw log and
the target family member's vector store are populated. Each memory keeps
its exported timestamp; items without one are stamped with the import
time.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .engine import Memory
from .models import DEFAULT_FAMILY_MEMBER_ID, DEFAULT_USER_ID, Message, now_iso

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0"


@dataclass
class ImportReport:
    """Outcome of an import run."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    failed_items: list[dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.successful + self.failed


def export_memories(
    memory: Memory,
    user_id: str = DEFAULT_USER_ID,
    exported_by: str = "AI Family Toolkit",
    app_version: str = "1.0.0",
) -> str:
    """Serialize a user's raw memory log to a JSON document."""
    entries = memory.get_memories(user_id)

    data = {
        "version": EXPORT_FORMAT_VERSION,
        "exportDate": now_iso(),
        "memories": [entry.to_dict() for entry in entries],
        "metadata": {
            "totalCount": len(entries),
            "exportedBy": exported_by,
            "appVersion": app_version,
        },
    }

    logger.info(f"Exported {len(entries)} memories for user {user_id}")
    return json.dumps(data, indent=2)


def validate_import_data(json_data: str) -> dict[str, Any]:
    """Parse and structurally validate an export document.

    Raises:
        ValueError: If the text is not JSON or lacks version/memories.
    """
    try:
        data = json.loads(json_data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON format: {e}") from e

    if not isinstance(data, dict) or not data.get("version") or not isinstance(data.get("memories"), list):
        raise ValueError("Invalid export file format")

    return data


async def import_memories(
    memory: Memory,
    data: dict[str, Any],
    user_id: str = DEFAULT_USER_ID,
    family_member_id: str = DEFAULT_FAMILY_MEMBER_ID,
    batch_size: int = 10,
) -> ImportReport:
    """Ingest the memories of a validated export document.

    Items are processed in batches; a bad item is recorded in the report
    and does not stop the import.
    """
    memories = data["memories"]
    report = ImportReport(total=len(memories))

    for start in range(0, len(memories), batch_size):
        for item in memories[start:start + batch_size]:
            try:
                message = Message.coerce({"role": item.get("role", "user"), "content": item["content"]})
                timestamp = item.get("timestamp")
                await memory.add(
                    [message],
                    user_id,
                    family_member_id,
                    timestamp=timestamp if isinstance(timestamp, str) else None,
                )
            except (KeyError, TypeError, AttributeError, ValueError) as e:
                report.failed += 1
                report.failed_items.append({"memory": item, "error": str(e) or "Import failed"})
                continue
            report.successful += 1

        logger.debug(f"Imported {report.processed}/{report.total} memories")

    logger.info(f"Import finished: {report.successful} succeeded, {report.failed} failed")
    return report
