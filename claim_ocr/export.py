"""JSON export and a file-backed store of saved claims."""

import json
import time
from datetime import datetime, timezone
from pathlib import Path

from claim_ocr.models import ClaimRecord
from claim_ocr.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_EXPORT_NAME = "claim-data.json"


def export_json(record: ClaimRecord, path: Path) -> Path:
    """Write a claim record as indented camelCase JSON.

    Args:
        record: Claim to export.
        path: Target file, or a directory to place ``claim-data.json`` in.

    Returns:
        The path written.
    """
    if path.is_dir():
        path = path / DEFAULT_EXPORT_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(record.to_dict(), indent=2))
    logger.info("Exported claim to %s", path)
    return path


def load_saved_claims(path: Path) -> list[dict[str, object]]:
    if not path.exists():
        return []
    data = json.loads(path.read_text() or "[]")
    if not isinstance(data, list):
        raise ValueError(f"Saved claims file {path} does not hold a JSON list")
    return data


def save_claim(record: ClaimRecord, path: Path) -> dict[str, object]:
    """Append a claim to a JSON list of saved claims.

    Each entry carries the record fields plus a millisecond ``id`` and an
    ISO ``extractedAt`` timestamp.

    Args:
        record: Claim to save.
        path: JSON file holding the saved claims list.

    Returns:
        The entry that was appended.
    """
    claims = load_saved_claims(path)
    entry: dict[str, object] = {
        **record.to_dict(),
        "id": int(time.time() * 1000),
        "extractedAt": datetime.now(timezone.utc).isoformat(),
    }
    claims.append(entry)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(claims, indent=2))
    logger.info("Saved claim %s to %s (%d total)", entry["id"], path, len(claims))
    return entry
