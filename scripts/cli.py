from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich import print

from lademittel.config import EngineConfig, get_settings, load_engine_config
from lademittel.errors import ConfigurationError
from lademittel.extract.adapters import adapt_page, adapt_settlement_response
from lademittel.extract.batch import process_directory
from lademittel.extract.oracle import ExtractionOracle
from lademittel.ledger.correlate import correlate
from lademittel.ledger.model import SourceExtraction
from lademittel.ledger.report import build_report, load_report, report_json_schema, write_report
from lademittel.ledger.validate import validate_settlements
from lademittel.llm.vision_client_factory import vision_client_from_settings
from lademittel.log import configure_logging

app = typer.Typer(add_completion=False, help="Pallet exchange reconciliation (lean CLI)")


def _engine_config(config: Optional[Path]) -> EngineConfig:
    base = get_settings().engine_config()
    return load_engine_config(config, base) if config else base


def _print_validations(validations) -> None:
    for v in validations:
        status = "[green]OK[/green]" if v.is_valid else "[red]ERR[/red]"
        print(f"{status} {v.result.pallet_type} saldo={v.result.saldo}")
        for i in v.issues:
            fixed = " (corrected)" if i.corrected else ""
            print(f"    {i.severity}: {i.code}: {i.message}{fixed}")


@app.command()
def run(
    src: Path = typer.Argument(
        None, help="Directory with PDFs/scans; defaults to LADEMITTEL_DATA_DIR"
    ),
    outdir: Path = typer.Option(
        None, "--outdir", help="Output dir; defaults to <output_dir>/reports"
    ),
    mode: str = typer.Option("pages", help="pages | group | settlement"),
    config: Path = typer.Option(None, help="YAML with engine overrides"),
    provider: str = typer.Option(None, help="openai | ollama | mock"),
    limit: int = typer.Option(None, help="Process at most N document groups"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Reconcile every document group under SRC and write one report per group
    plus batch_summary.json.
    """
    configure_logging(level=logging.DEBUG if verbose else logging.INFO)
    if mode not in ("pages", "group", "settlement"):
        typer.secho(f"Unknown mode: {mode}", fg="red")
        raise typer.Exit(2)

    cfg = get_settings()
    if provider:
        try:
            cfg = cfg.with_oracle_provider(provider)
        except ConfigurationError as e:
            typer.secho(str(e), fg="red")
            raise typer.Exit(2)
    effective_src = src or cfg.data_dir
    effective_out = outdir or cfg.output_dir_reports
    if not effective_src.is_dir():
        typer.secho(f"Not a directory: {effective_src}", fg="red")
        raise typer.Exit(1)

    oracle = ExtractionOracle.from_settings(vision_client_from_settings(cfg), cfg)
    summary = process_directory(
        effective_src,
        oracle,
        effective_out,
        mode=mode,  # type: ignore[arg-type]
        config=_engine_config(config),
        concurrency=cfg.oracle_concurrency,
        zoom=cfg.render_zoom,
        limit=limit,
    )
    print(
        f"groups={summary.total_groups} ok={summary.success_count} "
        f"failed={summary.failure_count} review={summary.needs_review_count}"
    )
    if summary.failure_count:
        raise typer.Exit(1)


@app.command("correlate")
def correlate_file(
    raw_json: Path = typer.Argument(..., help="JSON list of extractions or typed page answers"),
    outdir: Path = typer.Option(None, "--outdir"),
    config: Path = typer.Option(None, help="YAML with engine overrides"),
):
    """
    Correlate pre-extracted pages without calling the oracle. Each list item
    is either a SourceExtraction or {"documentType": ..., "pageNumber": ...,
    "data": {...}} as answered by a page prompt.
    """
    configure_logging()
    items = json.loads(raw_json.read_text(encoding="utf-8"))
    if not isinstance(items, list):
        typer.secho("Expected a JSON list", fg="red")
        raise typer.Exit(1)

    extractions = []
    for n, item in enumerate(items, start=1):
        if isinstance(item, dict) and "data" in item:
            extractions.append(
                adapt_page(
                    item.get("documentType", "unknown"),
                    item["data"] or {},
                    page_number=item.get("pageNumber", n),
                )
            )
        else:
            extractions.append(SourceExtraction.model_validate(item))

    engine = _engine_config(config)
    report = build_report(correlate(raw_json.stem, extractions, engine), engine)
    path = write_report(report, outdir or get_settings().output_dir_reports)
    _print_validations(report.validations)
    flag = "[yellow]needs review[/yellow]" if report.review.needs_review else "[green]ok[/green]"
    print(f"{flag} → {path}")


@app.command("validate")
def validate_file(
    json_path: Path,
    config: Path = typer.Option(None, help="YAML with engine overrides"),
):
    """
    Re-validate a written report, or validate a raw settlement answer.
    """
    configure_logging()
    engine = _engine_config(config)
    try:
        report = load_report(json_path)
        records = [v.original for v in report.validations]
    except ValidationError:
        records = adapt_settlement_response(json.loads(json_path.read_text(encoding="utf-8")))

    validations = validate_settlements(records, engine)
    _print_validations(validations)
    if not all(v.is_valid for v in validations):
        raise typer.Exit(1)


@app.command("export-schema")
def export_schema(
    out: Path = typer.Option(None, help="Defaults to <output_dir>/schema/ledger_report.schema.json"),
):
    """Write the JSON schema of a ledger report."""
    target = out or get_settings().output_dir / "schema" / "ledger_report.schema.json"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(report_json_schema(), indent=2), encoding="utf-8")
    print(f"[green]✓[/green] wrote {target}")


if __name__ == "__main__":
    app()
