"""Render task and result models."""
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from outage_snapshots.render.templates import TemplateKind

DaySelector = Literal["today", "tomorrow"]
Theme = Literal["light", "dark"]


class RenderTask(BaseModel):
    """One (region, template, group, day) screenshot; used once, never persisted."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    template: TemplateKind
    region: str
    record_path: Path = Field(..., description="Record file injected into the page")
    output_path: Path = Field(..., alias="outputPath")
    outage_group: Optional[str] = Field(default=None, alias="outageGroup")
    day: Optional[DaySelector] = None

    @property
    def name(self) -> str:
        label = self.outage_group or (self.day or "").upper()
        return f"{self.template.value.upper()} {self.region} {label}".rstrip()


class RenderResult(BaseModel):
    output_path: Path
    width: int
    height: int
