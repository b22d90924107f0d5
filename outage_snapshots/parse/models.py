"""Data models for persisted region records."""
import re
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from outage_snapshots.config import config

GPV_KEY_RE = re.compile(r"^GPV(\d+)\.(\d+)$", re.IGNORECASE)

StatusName = Literal["idle", "parsed", "error"]


def iso_now() -> str:
    """Current UTC time as ``2024-01-05T06:00:00.000Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class UpdateStatus(BaseModel):
    """
    Outcome of the latest extraction attempt.

    Transitions are ``idle -> parsed | error`` and every transition bumps
    ``attempt`` by one, whatever the outcome.
    """

    model_config = ConfigDict(extra="allow")

    status: StatusName = "idle"
    ok: bool = True
    code: Optional[int] = None
    message: Optional[str] = None
    at: Optional[str] = None
    attempt: int = 0

    @field_validator("attempt", mode="before")
    @classmethod
    def _coerce_attempt(cls, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        return max(int(value), 0)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> str:
        return value if value in ("idle", "parsed", "error") else "idle"

    def parsed(self, at: str | None = None) -> "UpdateStatus":
        return UpdateStatus(
            status="parsed", ok=True, code=200, message=None, at=at or iso_now(), attempt=self.attempt + 1
        )

    def failed(self, code: int, message: str, at: str | None = None) -> "UpdateStatus":
        return UpdateStatus(
            status="error", ok=False, code=code, message=message, at=at or iso_now(), attempt=self.attempt + 1
        )


class RecordMeta(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_version: str = Field(default=config.SCHEMA_VERSION, alias="schemaVersion")
    content_hash: Optional[str] = Field(default=None, alias="contentHash")


class Record(BaseModel):
    """Per-region record: raw schedule payloads plus ingestion status."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    region_id: Optional[str] = Field(default=None, alias="regionId")
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    fact: Any = None
    preset: Any = None
    last_update_status: UpdateStatus = Field(default_factory=UpdateStatus, alias="lastUpdateStatus")
    meta: RecordMeta = Field(default_factory=RecordMeta)

    @field_validator("last_update_status", mode="before")
    @classmethod
    def _status_or_default(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, UpdateStatus)) else UpdateStatus()

    @field_validator("meta", mode="before")
    @classmethod
    def _meta_or_default(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, RecordMeta)) else RecordMeta()

    @property
    def attempt(self) -> int:
        return self.last_update_status.attempt

    def is_renderable(self) -> bool:
        """Both payloads must be present for the render path to pick a record up."""
        return self.fact is not None and self.preset is not None

    def group_keys(self) -> list[str]:
        """Outage-group keys (``GPV1.1`` ...) of ``preset.data`` in numeric order."""
        data = self.preset.get("data") if isinstance(self.preset, dict) else None
        if not isinstance(data, dict):
            return []
        keys = [key for key in data if GPV_KEY_RE.match(key)]
        return sorted(keys, key=lambda k: tuple(int(p) for p in GPV_KEY_RE.match(k).groups()))

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
