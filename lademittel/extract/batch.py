from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, Field
from rich import print
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)

from lademittel.config import EngineConfig
from lademittel.errors import OracleFailure
from lademittel.extract.oracle import ExtractionOracle
from lademittel.extract.pages import DocumentGroup, PageImage, group_files_by_prefix, iter_sources, render_group
from lademittel.ledger.correlate import correlate
from lademittel.ledger.model import SourceExtraction
from lademittel.ledger.report import LedgerReport, build_report, write_report
from lademittel.ledger.settlement import ledger_from_settlements

logger = logging.getLogger(__name__)

Mode = Literal["pages", "group", "settlement"]


class BatchEntry(BaseModel):
    source: str
    files: List[str]
    report_path: str
    needs_review: bool
    processing_time_s: float


class BatchFailure(BaseModel):
    source: str
    files: List[str]
    error: str


class BatchSummary(BaseModel):
    total_groups: int = 0
    total_files: int = 0
    success_count: int = 0
    failure_count: int = 0
    needs_review_count: int = 0
    reports: List[BatchEntry] = Field(default_factory=list)
    failures: List[BatchFailure] = Field(default_factory=list)


def run_pages(
    oracle: ExtractionOracle, pages: Sequence[PageImage], *, concurrency: int = 3
) -> Tuple[List[SourceExtraction], List[int], List[str]]:
    """
    Classify and extract every page on a bounded pool. Returns
    (extractions in page order, failed page numbers, warnings). A page whose
    retries are exhausted becomes a warning; the others carry on.
    """
    done: Dict[int, SourceExtraction] = {}
    failed: Dict[int, str] = {}
    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        futures = {
            pool.submit(oracle.extract_page, p.image_base64, page_number=p.page_number): p.page_number
            for p in pages
        }
        for fut in as_completed(futures):
            page_number = futures[fut]
            try:
                done[page_number] = fut.result()
            except OracleFailure as e:
                logger.warning("page %d failed: %s", page_number, e)
                failed[page_number] = f"Failed to process page {page_number}: {e}"

    # first-wins metadata depends on page order
    extractions = [done[n] for n in sorted(done)]
    failed_pages = sorted(failed)
    return extractions, failed_pages, [failed[n] for n in failed_pages]


def process_group(
    group: DocumentGroup,
    oracle: ExtractionOracle,
    *,
    mode: Mode = "pages",
    config: Optional[EngineConfig] = None,
    concurrency: int = 3,
) -> LedgerReport:
    config = config or EngineConfig()
    all_pages = [p.page_number for p in group.pages]

    try:
        if mode == "pages":
            extractions, failed, warnings = run_pages(oracle, group.pages, concurrency=concurrency)
            ledger = correlate(group.prefix, extractions, config, failed_pages=failed, warnings=warnings)
            return build_report(ledger, config)
        if mode == "group":
            extractions = oracle.extract_group(group.images)
            return build_report(correlate(group.prefix, extractions, config), config)
        _, settlements = oracle.extract_settlements(group.images)
        ledger = ledger_from_settlements(group.prefix, settlements)
        return build_report(ledger, config, settlements)
    except OracleFailure as e:
        # the whole group went through one call; degrade it to an empty, flagged ledger
        logger.warning("%s: %s", group.prefix, e)
        ledger = correlate(
            group.prefix, [], config, failed_pages=all_pages, warnings=[f"Extraction failed: {e}"]
        )
        return build_report(ledger, config)


def process_directory(
    src_dir: Path,
    oracle: ExtractionOracle,
    outdir: Path,
    *,
    mode: Mode = "pages",
    config: Optional[EngineConfig] = None,
    concurrency: int = 3,
    zoom: float = 2.0,
    limit: Optional[int] = None,
    show_progress: bool = True,
) -> BatchSummary:
    groups = group_files_by_prefix(iter_sources(src_dir))
    items = list(groups.items())
    if limit is not None and limit >= 0:
        items = items[:limit]

    summary = BatchSummary(
        total_groups=len(items),
        total_files=sum(len(files) for _, files in items),
    )

    def process(prefix: str, files: List[Path]) -> None:
        names = [f.name for f in files]
        t0 = time.perf_counter()
        try:
            group = render_group(prefix, files, zoom=zoom)
            report = process_group(group, oracle, mode=mode, config=config, concurrency=concurrency)
            path = write_report(report, outdir)
        except Exception as e:
            # one group's fatal error never aborts its siblings
            logger.exception("%s failed", prefix)
            summary.failures.append(BatchFailure(source=prefix, files=names, error=str(e)))
            summary.failure_count += 1
            print(f"[red]✗[/red] {prefix}: {e}")
            return

        needs_review = report.review.needs_review
        summary.reports.append(
            BatchEntry(
                source=prefix,
                files=names,
                report_path=str(path),
                needs_review=needs_review,
                processing_time_s=round(time.perf_counter() - t0, 3),
            )
        )
        summary.success_count += 1
        if needs_review:
            summary.needs_review_count += 1
            print(f"[yellow]![/yellow] {prefix} → {path.name} (needs review)")
        else:
            print(f"[green]✓[/green] {prefix} → {path.name}")

    if show_progress:
        with Progress(
            TextColumn("[bold]Reconcile[/bold]"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            transient=False,
        ) as progress:
            task = progress.add_task("groups", total=len(items))
            for prefix, files in items:
                process(prefix, files)
                progress.update(task, advance=1)
    else:
        for prefix, files in items:
            process(prefix, files)

    write_summary(summary, outdir)
    return summary


def write_summary(summary: BatchSummary, outdir: Path) -> Path:
    outdir.mkdir(parents=True, exist_ok=True)
    path = outdir / "batch_summary.json"
    path.write_text(
        json.dumps(summary.model_dump(mode="json"), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return path
