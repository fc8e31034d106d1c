"""Run report formatting functions.

Provides human-readable and machine-readable output for migration runs:

- ``format_run_summary`` -- full post-import summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by planned action.
- ``format_export_summary`` -- post-export summary.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .exporter import ExportResult
    from .models import MigrationReport, RecordResult

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _changes(result: RecordResult) -> list[str]:
    """One line per field that was (or would be) written."""
    lines = []
    written = set(result.payload)
    for d in result.differences:
        if d.field in written:
            lines.append(f"      {d.field}: {d.existing!r} -> {d.new!r}")
        else:
            lines.append(f"      {d.field}: kept {d.existing!r} (empty in import)")
    return lines


def format_run_summary(report: MigrationReport) -> str:
    """Format a complete import report as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped records are summarised by count only to avoid excessive output.

    Args:
        report: The completed migration report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = "Import report"
    if report.source_file:
        header += f" for '{report.source_file}'"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    counts = report.counts()
    lines.append(
        f"Processed {counts['total']} records: "
        f"{counts['created']} created, {counts['updated']} updated, "
        f"{counts['skipped']} skipped, {counts['failed']} failed"
    )
    if report.dry_run:
        lines.append(
            "DRY RUN: no changes were made "
            f"({len(report.would_create)} would be created, "
            f"{len(report.would_update)} would be updated)"
        )
    lines.append("")

    if report.created:
        lines.append("Created:")
        for r in report.created:
            lines.append(f"  {r.label} <{r.external_address}>")
        lines.append("")

    if report.updated:
        lines.append("Updated:")
        for r in report.updated:
            lines.append(f"  {r.label} <{r.external_address}>")
            lines.extend(_changes(r))
        lines.append("")

    if report.failed:
        lines.append("Failed:")
        for r in report.failed:
            suffix = " [partially created, inspect manually]" if r.partial else ""
            lines.append(f"  {r.label}: {r.error}{suffix}")
        lines.append("")

    if report.skipped:
        lines.append(f"Skipped: {len(report.skipped)} records")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: MigrationReport) -> str:
    """Format a dry-run preview grouped by planned action.

    Args:
        report: A dry-run migration report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes were made")
    if report.source_file:
        lines.append(f"Input: {report.source_file}")
    lines.append("")

    if report.would_create:
        lines.append("[CREATE]")
        for r in report.would_create:
            lines.append(f"  {r.label} <{r.external_address}>")
        lines.append("")

    if report.would_update:
        lines.append("[UPDATE]")
        for r in report.would_update:
            lines.append(f"  {r.label} <{r.external_address}>")
            lines.extend(_changes(r))
        lines.append("")

    if report.failed:
        lines.append("[FAILED]")
        for r in report.failed:
            lines.append(f"  {r.label}: {r.error}")
        lines.append("")

    unchanged = len(report.skipped) - len(report.would_create) - len(
        report.would_update
    )
    if unchanged > 0:
        lines.append(f"Unchanged: {unchanged} records")
        lines.append("")

    if not report.would_create and not report.would_update:
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Export summary
# ------------------------------------------------------------------


def format_export_summary(result: ExportResult, output: str) -> str:
    """Format the outcome of an export run."""
    lines = [
        f"Exported {result.exported} of {result.enumerated} contacts to {output}",
    ]
    if result.missing_address:
        lines.append(
            f"  {result.missing_address} records have no external address "
            "and will be rejected on import"
        )
    if result.failed:
        lines.append(f"  {len(result.failed)} contacts could not be read:")
        for handle, error in result.failed:
            lines.append(f"    {handle}: {error}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: MigrationReport) -> dict:
    """Convert a migration report to a structured dict for JSON output.

    Args:
        report: The migration report.

    Returns:
        Dict with run info, counts, and per-record details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "external_address": r.external_address,
            "label": r.label,
            "outcome": r.outcome.value,
        }
        if r.planned is not None:
            entry["planned"] = r.planned.value
        if r.differences:
            entry["differences"] = [
                {"field": d.field, "existing": d.existing, "new": d.new}
                for d in r.differences
            ]
        if r.payload:
            entry["payload"] = dict(r.payload)
        if r.error:
            entry["error"] = r.error
        if r.partial:
            entry["partial"] = True
        results_list.append(entry)

    return {
        "source_file": report.source_file,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            **report.counts(),
            "would_create": len(report.would_create),
            "would_update": len(report.would_update),
        },
        "results": results_list,
    }
