"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from outage_snapshots.config import DATA_DIR, OUTPUTS_DIR, Config, config
from outage_snapshots.jobs.extract import extract_all, fetch_and_extract, safe_extract
from outage_snapshots.jobs.scheduler import BatchRenderer, render_single
from outage_snapshots.logging_conf import setup_logging
from outage_snapshots.render.driver import RenderOptions
from outage_snapshots.render.models import RenderTask
from outage_snapshots.render.templates import TemplateKind, template_path

logger = logging.getLogger(__name__)


def _add_render_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--theme",
        choices=["light", "dark"],
        default=None,
        help=f"Template theme (default: {config.THEME})",
    )
    parser.add_argument(
        "--scale",
        type=float,
        default=None,
        help=f"Device scale factor, capped at {config.MAX_DEVICE_SCALE_FACTOR:g} (default: {config.DEVICE_SCALE_FACTOR:g})",
    )
    parser.add_argument(
        "--max",
        action="store_true",
        help="Render at the maximum device scale factor",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help=f"Completion wait in ms (default: {config.RENDER_TIMEOUT_MS})",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Outage schedule extraction and PNG rendering")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Verbose (DEBUG) logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Download a region page and extract it")
    fetch.add_argument("--region", required=True, help="Region id, e.g. kyiv-region")
    fetch.add_argument("--upstream", default=None, help="Source page URL (default: known URL for the region)")
    fetch.add_argument("--in", dest="input", type=Path, default=None, help="Where to store the HTML")
    fetch.add_argument("--out", dest="output", type=Path, default=None, help="Record file")
    fetch.add_argument("--pretty", action="store_true", help="Indent the record JSON")

    parse = sub.add_parser("parse", help="Extract one HTML page into a region record")
    parse.add_argument("--region", default=None, help="Region id (default: existing record or file stem)")
    parse.add_argument("--in", dest="input", type=Path, required=True, help="Input HTML page")
    parse.add_argument("--out", dest="output", type=Path, required=True, help="Record file")
    parse.add_argument("--pretty", action="store_true", help="Indent the record JSON")

    parse_all = sub.add_parser("parse-all", help="Extract every HTML page in a directory")
    parse_all.add_argument("--inputs", type=Path, default=OUTPUTS_DIR, help=f"HTML directory (default: {OUTPUTS_DIR})")
    parse_all.add_argument("--data", type=Path, default=DATA_DIR, help=f"Record directory (default: {DATA_DIR})")
    parse_all.add_argument("--pretty", action="store_true", help="Indent the record JSON")

    render = sub.add_parser("render", help="Render one record with one template")
    render.add_argument("--json", type=Path, required=True, help="Record file")
    render.add_argument(
        "--template",
        choices=[k.value for k in TemplateKind],
        default=TemplateKind.FULL.value,
        help="Template to render (default: full)",
    )
    render.add_argument("--html", type=Path, default=None, help="Templates directory override")
    render.add_argument("--gpv", default=None, help="Outage group, e.g. GPV1.2")
    render.add_argument("--day", choices=["today", "tomorrow"], default=None, help="Day selector")
    render.add_argument("--out", type=Path, required=True, help="Output PNG")
    _add_render_flags(render)

    render_all = sub.add_parser("render-all", help="Render every region, group and template")
    render_all.add_argument("--region", default=None, help="Only this regionId or record file stem")
    render_all.add_argument("--files", default=None, help="Comma-separated record file names")
    render_all.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help=f"Concurrent browser contexts (default: {config.RENDER_CONCURRENCY})",
    )
    _add_render_flags(render_all)

    return parser.parse_args(argv)


def _render_options(args: argparse.Namespace) -> RenderOptions:
    scale = config.MAX_DEVICE_SCALE_FACTOR if args.max else args.scale
    return RenderOptions.from_config(theme=args.theme, scale=scale, timeout_ms=args.timeout)


def cmd_fetch(args: argparse.Namespace) -> int:
    asyncio.run(fetch_and_extract(args.region, args.upstream, args.input, args.output, args.pretty))
    return 0


def cmd_parse(args: argparse.Namespace) -> int:
    safe_extract(args.region, args.input, args.output, args.pretty)
    return 0


def cmd_parse_all(args: argparse.Namespace) -> int:
    extract_all(args.inputs, args.data, args.pretty)
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    options = _render_options(args)
    if args.html:
        options.templates_dir = args.html
    kind = TemplateKind(args.template)
    html_path = template_path(kind, options.templates_dir)
    if not html_path.is_file():
        logger.error(f"HTML template not found: {html_path}")
        return 1
    if not args.json.is_file():
        logger.error(f"JSON data file not found: {args.json}")
        return 1

    task = RenderTask(
        template=kind,
        region=args.json.stem,
        record_path=args.json,
        outputPath=args.out,
        outageGroup=args.gpv,
        day=args.day,
    )
    try:
        result = asyncio.run(render_single(task, options))
    except Exception as e:
        logger.error(f"Rendering failed: {e}")
        return 1
    logger.info(
        f"[OK] Saved PNG: {result.output_path} ({result.width}x{result.height} "
        f"@ dpr={options.device_scale_factor:g})"
    )
    return 0


def cmd_render_all(args: argparse.Namespace) -> int:
    options = _render_options(args)
    files = [f.strip() for f in args.files.split(",") if f.strip()] if args.files else None
    runner = BatchRenderer(
        options,
        concurrency=args.concurrency,
        only_region=args.region,
        files=files,
    )
    return asyncio.run(runner.run())


COMMANDS = {
    "fetch": cmd_fetch,
    "parse": cmd_parse,
    "parse-all": cmd_parse_all,
    "render": cmd_render,
    "render-all": cmd_render_all,
}

EXTRACTION_COMMANDS = ("fetch", "parse", "parse-all")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)

    if getattr(args, "concurrency", None):
        config.RENDER_CONCURRENCY = args.concurrency

    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    try:
        code = COMMANDS[args.command](args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        # Extraction pipelines never fail the surrounding job
        code = 0 if args.command in EXTRACTION_COMMANDS else 1
    sys.exit(code)


if __name__ == "__main__":
    main()
