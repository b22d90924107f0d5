"""Expand region records into render tasks and run them with bounded concurrency."""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional, Protocol

from outage_snapshots.config import DATA_DIR, IMAGES_DIR, PROJECT_ROOT, TEMPLATES_DIR, config
from outage_snapshots.jobs.metrics import Metrics
from outage_snapshots.parse.models import Record
from outage_snapshots.render.driver import RenderDriver, RenderOptions, SharedBrowser
from outage_snapshots.render.models import RenderResult, RenderTask
from outage_snapshots.render.server import StaticServer
from outage_snapshots.render.templates import (
    AGGREGATE_VIEWS,
    GROUP_TEMPLATES,
    output_name,
    verify_templates,
)
from outage_snapshots.store.record_store import load_existing

logger = logging.getLogger(__name__)


class TaskRenderer(Protocol):
    async def render(self, task: RenderTask) -> RenderResult: ...


@dataclass
class TaskOutcome:
    task: RenderTask
    result: Optional[RenderResult] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport:
    outcomes: list[TaskOutcome] = field(default_factory=list)

    @property
    def ok(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


def region_id_for(record: Record, file_stem: str) -> str:
    region = record.region_id.strip() if isinstance(record.region_id, str) else ""
    return region or file_stem


def tasks_for_record(record: Record, record_path: Path, images_dir: Path = IMAGES_DIR) -> list[RenderTask]:
    """4 tasks per outage group plus the 2 region-wide views; [] if not renderable."""
    record_path = Path(record_path)
    if not record.is_renderable():
        return []
    gpv_keys = record.group_keys()
    if not gpv_keys:
        logger.warning(f"No GPV groups in {record_path} - skipping")
        return []

    region = region_id_for(record, record_path.stem)
    out_dir = Path(images_dir) / region
    tasks = []
    for gpv in gpv_keys:
        for kind in GROUP_TEMPLATES:
            tasks.append(
                RenderTask(
                    template=kind,
                    region=region,
                    record_path=record_path,
                    outputPath=out_dir / output_name(kind, gpv),
                    outageGroup=gpv,
                )
            )
    for kind, day in AGGREGATE_VIEWS:
        tasks.append(
            RenderTask(
                template=kind,
                region=region,
                record_path=record_path,
                outputPath=out_dir / output_name(kind, day=day),
                day=day,
            )
        )
    return tasks


def list_record_files(data_dir: Path = DATA_DIR, files: Iterable[str] | None = None) -> list[Path]:
    paths = sorted(p for p in Path(data_dir).glob("*.json") if p.is_file())
    if files:
        allowed = {Path(f).name for f in files}
        paths = [p for p in paths if p.name in allowed]
        logger.info(f"Filtering to {len(paths)} specific files")
    return paths


def plan_tasks(
    record_files: Iterable[Path],
    images_dir: Path = IMAGES_DIR,
    only_region: str | None = None,
) -> list[RenderTask]:
    """Snapshot every record and expand it into render tasks."""
    tasks = []
    for path in record_files:
        record = load_existing(path)
        if record is None:
            logger.warning(f"Failed to prepare tasks for {path}: unreadable record")
            continue
        region = region_id_for(record, path.stem)
        if only_region and only_region not in (region, path.stem):
            continue
        tasks.extend(tasks_for_record(record, path, images_dir))
    return tasks


async def run_limited(
    jobs: Iterable[Callable[[], Awaitable[None]]],
    concurrency: int,
) -> None:
    """Run coroutine factories with at most ``concurrency`` in flight."""
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def limited(job: Callable[[], Awaitable[None]]) -> None:
        async with semaphore:
            await job()

    await asyncio.gather(*(limited(job) for job in jobs))


async def execute_tasks(
    tasks: list[RenderTask],
    renderer: TaskRenderer,
    concurrency: int,
    metrics: Metrics | None = None,
) -> BatchReport:
    """Render every task; failures are logged and counted, never propagated."""
    report = BatchReport()
    metrics = metrics or Metrics(len(tasks))

    def job_for(task: RenderTask) -> Callable[[], Awaitable[None]]:
        async def job() -> None:
            try:
                result = await renderer.render(task)
            except Exception as e:
                logger.error(f"Task '{task.name}' failed: {type(e).__name__}: {e}")
                report.outcomes.append(TaskOutcome(task=task, error=e))
                metrics.record_failure()
                return
            logger.info(f"Rendered {task.name} ({result.width}x{result.height})")
            report.outcomes.append(TaskOutcome(task=task, result=result))
            metrics.record_success()

        return job

    await run_limited((job_for(t) for t in tasks), concurrency)
    return report


@asynccontextmanager
async def serving(root: Path) -> AsyncIterator[StaticServer]:
    """Run a StaticServer for the block; its blocking shutdown runs in a worker thread."""
    server = StaticServer(root).start()
    try:
        yield server
    finally:
        await asyncio.to_thread(server.close)


class BatchRenderer:
    """Renders every eligible record in ``data_dir`` into ``images_dir``."""

    def __init__(
        self,
        options: RenderOptions,
        data_dir: Path = DATA_DIR,
        images_dir: Path = IMAGES_DIR,
        templates_dir: Path = TEMPLATES_DIR,
        concurrency: int | None = None,
        only_region: str | None = None,
        files: Iterable[str] | None = None,
        browser: SharedBrowser | None = None,
        server_root: Path = PROJECT_ROOT,
    ):
        self.options = options
        self.options.templates_dir = templates_dir
        self.data_dir = Path(data_dir)
        self.images_dir = Path(images_dir)
        self.templates_dir = Path(templates_dir)
        self.concurrency = concurrency or config.RENDER_CONCURRENCY
        self.only_region = only_region
        self.files = list(files) if files else None
        self.browser = browser or SharedBrowser()
        self.server_root = Path(server_root)

    async def run(self) -> int:
        """Returns the process exit code."""
        if verify_templates(self.templates_dir):
            return 1

        record_files = list_record_files(self.data_dir, self.files)
        if not record_files:
            logger.warning(f"No JSON files found in {self.data_dir} (or none matched filter)")
            return 0

        tasks = plan_tasks(record_files, self.images_dir, self.only_region)
        if not tasks:
            logger.warning("No eligible records to render")
            return 0

        logger.info("Starting static server and browser...")
        metrics = Metrics(len(tasks))
        async with serving(self.server_root) as server:
            async with self.browser as browser:
                driver = RenderDriver(browser, server, self.options)
                logger.info(f"Found {len(tasks)} rendering tasks. Executing with concurrency={self.concurrency}...")
                report = await execute_tasks(tasks, driver, self.concurrency, metrics)

        metrics.report(self.options.theme, self.options.device_scale_factor)
        return report.exit_code


async def render_single(task: RenderTask, options: RenderOptions) -> RenderResult:
    """Render one task with its own server and browser."""
    async with serving(PROJECT_ROOT) as server:
        async with SharedBrowser() as browser:
            return await RenderDriver(browser, server, options).render(task)
