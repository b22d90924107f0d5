"""On-disk region records: load, merge status, fingerprint, atomic replace."""
import hashlib
import logging
import os
from pathlib import Path
from typing import Any, Optional

import aiofiles
import orjson
from pydantic import ValidationError

from outage_snapshots.config import RECORD_TEMPLATE, config
from outage_snapshots.parse.models import Record, RecordMeta, UpdateStatus, iso_now

logger = logging.getLogger(__name__)


def content_hash(fact_text: str, preset_text: str | None) -> str:
    """sha256 over the verbatim literal texts, ``fact|preset``."""
    payload = f"{fact_text}|{preset_text or ''}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def write_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` next to ``path`` and rename it into place."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


def _decode_record(raw: bytes) -> Record:
    data = orjson.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("record root is not an object")
    return Record.model_validate(data)


def load_existing(path: Path) -> Optional[Record]:
    """Previous record at ``path``, or None when missing or unreadable."""
    try:
        return _decode_record(Path(path).read_bytes())
    except FileNotFoundError:
        return None
    except (OSError, ValueError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable record {path}: {e}")
        return None


def load_template(region_id: str | None, template_path: Path = RECORD_TEMPLATE) -> Record:
    """Baseline record from the prototype schema document."""
    try:
        record = _decode_record(Path(template_path).read_bytes())
    except (OSError, ValueError, ValidationError) as e:
        logger.debug(f"Record template unavailable ({e}), using built-in defaults")
        record = Record(meta=RecordMeta(schemaVersion=config.SCHEMA_VERSION))
    record.region_id = region_id or record.region_id
    return record


def build_success(
    region_id: str,
    fact: Any,
    preset: Any,
    prev_attempt: int,
    fact_text: str,
    preset_text: str | None = None,
) -> Record:
    now = iso_now()
    return Record(
        regionId=region_id,
        lastUpdated=now,
        fact=fact,
        preset=preset,
        lastUpdateStatus=UpdateStatus(attempt=prev_attempt).parsed(at=now),
        meta=RecordMeta(
            schemaVersion=config.SCHEMA_VERSION,
            contentHash=content_hash(fact_text, preset_text),
        ),
    )


def build_error(existing: Optional[Record], region_id: str | None, code: int, message: str) -> Record:
    """Replace only the status of ``existing`` (or the template) with an error."""
    base = existing.model_copy(deep=True) if existing else load_template(region_id)
    if not base.region_id:
        base.region_id = region_id
    base.last_update_status = base.last_update_status.failed(code, message)
    base.meta.schema_version = base.meta.schema_version or config.SCHEMA_VERSION
    return base


def dumps(record: Record, pretty: bool = False) -> bytes:
    option = orjson.OPT_INDENT_2 if pretty else 0
    return orjson.dumps(record.to_json_dict(), option=option)


def persist(record: Record, path: Path, pretty: bool = False) -> int:
    """Atomically write ``record`` to ``path``; returns the number of bytes written."""
    data = dumps(record, pretty)
    write_atomic(path, data)
    logger.debug(f"Persisted record {record.region_id} to {path} ({len(data)} bytes)")
    return len(data)


async def read_record(path: Path) -> Record:
    """Read a record for rendering; unlike ``load_existing`` this raises on bad input."""
    async with aiofiles.open(path, "rb") as f:
        raw = await f.read()
    try:
        return _decode_record(raw)
    except (ValueError, ValidationError) as e:
        raise ValueError(f"Failed to parse record {path}: {e}") from e
