"""Render templates, their completion markers, and output file naming."""
import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from outage_snapshots.config import TEMPLATES_DIR
from outage_snapshots.parse.models import GPV_KEY_RE

logger = logging.getLogger(__name__)


class TemplateKind(str, enum.Enum):
    FULL = "full"
    EMERGENCY = "emergency"
    WEEK = "week"
    SUMMARY = "summary"
    GROUPS = "groups"


# Per-group templates, rendered once for every outage group of a region
GROUP_TEMPLATES = (TemplateKind.FULL, TemplateKind.EMERGENCY, TemplateKind.WEEK, TemplateKind.SUMMARY)
# Region-wide views: (template, day)
AGGREGATE_VIEWS = ((TemplateKind.GROUPS, "today"), (TemplateKind.GROUPS, "tomorrow"))

TEMPLATE_FILES = {
    TemplateKind.FULL: "full-template.html",
    TemplateKind.EMERGENCY: "emergency-template.html",
    TemplateKind.WEEK: "week-template.html",
    TemplateKind.SUMMARY: "summary-item.html",
    TemplateKind.GROUPS: "groups-template.html",
}

OUTPUT_SUFFIXES = {
    TemplateKind.FULL: "",
    TemplateKind.EMERGENCY: "-emergency",
    TemplateKind.WEEK: "-week",
    TemplateKind.SUMMARY: "-summary",
}

CONTAINER_SELECTOR = ".container"
READY_ATTRIBUTE = "data-render-state"


@dataclass(frozen=True)
class CompletionMarkers:
    """
    Structural fallbacks for templates that do not publish a ready signal.

    ``required`` pairs are (probe, wait) selectors: when ``probe`` exists the
    ``wait`` selector must appear. ``any_of`` is a (probe, waits) pair: when
    ``probe`` exists the first of ``waits`` to appear wins.
    """

    required: tuple[tuple[str, str], ...] = (
        ("#matrix", "#matrix tbody tr:last-child td:last-child"),
        ("#today", "#today tbody tr td:last-child"),
    )
    any_of: tuple[str, tuple[str, ...]] = (
        ".summary-card",
        (".summary-intervals > div", ".status-badge.badge-on"),
    )


DEFAULT_MARKERS = CompletionMarkers()


def template_path(kind: TemplateKind, templates_dir: Path = TEMPLATES_DIR) -> Path:
    return Path(templates_dir) / TEMPLATE_FILES[kind]


def verify_templates(templates_dir: Path = TEMPLATES_DIR) -> list[Path]:
    """Return the template files that are missing (empty list when all exist)."""
    missing = []
    for kind in TemplateKind:
        path = template_path(kind, templates_dir)
        if not path.is_file():
            logger.error(f"HTML template not found ({kind.value}): {path}")
            missing.append(path)
    return missing


def gpv_file_name(gpv_key: str) -> str:
    """``GPV1.2`` -> ``gpv-1-2.png``; other keys are slugified."""
    match = GPV_KEY_RE.match(str(gpv_key))
    if not match:
        slug = re.sub(r"[^a-z0-9]+", "-", str(gpv_key), flags=re.IGNORECASE).lower()
        return f"gpv-{slug}.png"
    return f"gpv-{match.group(1)}-{match.group(2)}.png"


def output_name(kind: TemplateKind, gpv_key: str | None = None, day: str | None = None) -> str:
    if kind is TemplateKind.GROUPS:
        return f"gpv-all-{day or 'today'}.png"
    if gpv_key is None:
        raise ValueError(f"{kind.value} template needs an outage group")
    return gpv_file_name(gpv_key).replace(".png", f"{OUTPUT_SUFFIXES[kind]}.png")
