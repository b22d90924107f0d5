"""Extraction job: HTML page -> region record, with per-region error isolation."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from outage_snapshots.config import DATA_DIR, OUTPUTS_DIR, config
from outage_snapshots.errors import NotFoundError, ParseError, SnapshotError
from outage_snapshots.fetch.client import SourceClient
from outage_snapshots.fetch.endpoints import get_source_url
from outage_snapshots.parse.extractor import extract_assignment
from outage_snapshots.parse.literal import ParseMode, parse_literal
from outage_snapshots.parse.models import Record
from outage_snapshots.parse.times import normalize_groups
from outage_snapshots.store.record_store import (
    build_error,
    build_success,
    load_existing,
    persist,
    write_atomic,
)

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    record: Record
    fact_mode: Optional[ParseMode] = None
    preset_mode: Optional[ParseMode] = None
    nbytes: int = 0

    @property
    def ok(self) -> bool:
        return self.record.last_update_status.ok


def resolve_region_id(explicit: str | None, existing: Optional[Record], input_path: Path) -> str:
    """Explicit id, else the id already on disk, else the input file stem."""
    if explicit and explicit.strip():
        return explicit.strip()
    if existing and existing.region_id:
        return existing.region_id
    return Path(input_path).stem


def record_failure(
    output_path: Path, region_id: str | None, code: int, message: str, pretty: bool = False
) -> ExtractionResult:
    """Persist an error status on top of whatever is already on disk."""
    existing = load_existing(output_path)
    record = build_error(existing, region_id, code, message)
    nbytes = persist(record, output_path, pretty)
    return ExtractionResult(record=record, nbytes=nbytes)


def extract_region(
    region_id: str | None,
    input_path: Path,
    output_path: Path,
    pretty: bool = False,
) -> ExtractionResult:
    """
    Parse the ``fact`` and ``preset`` literals from ``input_path`` into ``output_path``.

    Known failures (missing input, missing/malformed fact) are written as an
    error status and returned, never raised.
    """
    input_path = Path(input_path)
    output_path = Path(output_path)
    existing = load_existing(output_path)
    region_id = resolve_region_id(region_id, existing, input_path)

    if not input_path.exists():
        logger.warning(f"Input not found: {input_path}")
        return record_failure(output_path, region_id, NotFoundError.code, f"Input not found: {input_path}", pretty)

    html = input_path.read_text(encoding="utf-8", errors="replace")

    try:
        fact_literal = extract_assignment(html, "fact")
        fact = parse_literal(fact_literal.text)
    except SnapshotError as e:
        logger.warning(f"{e} in {input_path}")
        return record_failure(output_path, region_id, ParseError.code, f"{e} in {input_path}", pretty)

    preset_text = None
    preset_value = None
    preset_mode = None
    try:
        preset_literal = extract_assignment(html, "preset")
        preset_text = preset_literal.text
    except SnapshotError as e:
        logger.info(f"No preset for {region_id}: {e}")
    if preset_text is not None:
        try:
            preset = parse_literal(preset_text)
            preset_value, preset_mode = preset.value, preset.mode
        except SnapshotError as e:
            logger.warning(f"{e} (preset) in {input_path}")

    fact_value = fact.value
    if config.NORMALIZE_INTERVALS:
        fact_value = normalize_groups(fact_value)

    prev_attempt = existing.attempt if existing else 0
    record = build_success(region_id, fact_value, preset_value, prev_attempt, fact_literal.text, preset_text)
    nbytes = persist(record, output_path, pretty)
    logger.info(
        f"[OK] Parsed {region_id} -> {output_path} "
        f"(factMethod={fact.mode}, presetMethod={preset_mode or 'n/a'}, bytes={nbytes})"
    )
    return ExtractionResult(record=record, fact_mode=fact.mode, preset_mode=preset_mode, nbytes=nbytes)


def safe_extract(
    region_id: str | None,
    input_path: Path,
    output_path: Path,
    pretty: bool = False,
) -> Optional[ExtractionResult]:
    """Run ``extract_region``; an unexpected crash becomes a best-effort 500 status."""
    try:
        return extract_region(region_id, input_path, output_path, pretty)
    except Exception as e:
        logger.error(f"Extraction crashed for {region_id or input_path}: {e}", exc_info=True)
        return record_crash(output_path, region_id or Path(input_path).stem, e, pretty)


def record_crash(
    output_path: Path, region_id: str, error: Exception, pretty: bool = False
) -> Optional[ExtractionResult]:
    """Best-effort 500 status; None when even that write fails."""
    try:
        return record_failure(output_path, region_id, 500, f"extraction crashed: {error}", pretty)
    except Exception as write_error:
        logger.error(f"Could not record crash status to {output_path}: {write_error}")
        return None


def extract_all(
    inputs_dir: Path = OUTPUTS_DIR,
    data_dir: Path = DATA_DIR,
    pretty: bool = False,
) -> list[ExtractionResult]:
    """Extract every ``*.html`` in ``inputs_dir`` into ``data_dir/<stem>.json``."""
    results = []
    pages = sorted(Path(inputs_dir).glob("*.html"))
    if not pages:
        logger.warning(f"No HTML inputs found in {inputs_dir}")
    for page in pages:
        result = safe_extract(None, page, Path(data_dir) / f"{page.stem}.json", pretty)
        if result is not None:
            results.append(result)
    ok = sum(1 for r in results if r.ok)
    logger.info(f"Extracted {ok}/{len(pages)} regions successfully")
    return results


async def fetch_and_extract(
    region_id: str,
    upstream: str | None = None,
    input_path: Path | None = None,
    output_path: Path | None = None,
    pretty: bool = False,
    client: SourceClient | None = None,
) -> Optional[ExtractionResult]:
    """Download the region's page, store it, then extract it."""
    input_path = Path(input_path or OUTPUTS_DIR / f"{region_id}.html")
    output_path = Path(output_path or DATA_DIR / f"{region_id}.json")

    try:
        url = get_source_url(region_id, upstream)
        if client is None:
            async with SourceClient() as own_client:
                html = await own_client.fetch_page(url)
        else:
            html = await client.fetch_page(url)
    except (SnapshotError, KeyError) as e:
        code = e.code if isinstance(e, SnapshotError) else 400
        message = e.message if isinstance(e, SnapshotError) else str(e.args[0])
        logger.warning(f"Upstream fetch failed for {region_id}: {message}")
        return record_failure(output_path, region_id, code, message, pretty)

    try:
        write_atomic(input_path, html.encode("utf-8"))
    except Exception as e:
        logger.error(f"Could not store page for {region_id} at {input_path}: {e}", exc_info=True)
        return record_crash(output_path, region_id, e, pretty)
    return safe_extract(region_id, input_path, output_path, pretty)
