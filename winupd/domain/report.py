from __future__ import annotations

from .models import BatchReport, ResultKind

RESULT_TAGS: dict[ResultKind, str] = {
    ResultKind.SUCCESS: "[OK]",
    ResultKind.FAILURE: "[FAIL]",
    ResultKind.NEEDS_APP_CLOSED: "[WARN]",
    ResultKind.ALREADY_UP_TO_DATE: "[INFO]",
}
CLOSE_AND_RETRY_HINT = "Close the application and retry."


def summarize_report(report: BatchReport) -> str:
    counts = report.counts()
    parts = [
        f"{counts[ResultKind.SUCCESS]} updated",
        f"{counts[ResultKind.ALREADY_UP_TO_DATE]} already up to date",
        f"{counts[ResultKind.NEEDS_APP_CLOSED]} need closing",
        f"{counts[ResultKind.FAILURE]} failed",
    ]
    summary = f"{len(report.results)}/{report.total} processed: " + ", ".join(parts)
    if report.cancelled:
        summary += " (cancelled)"
    return summary


def format_report_lines(report: BatchReport) -> list[str]:
    lines: list[str] = []
    for app_id, result in report.results:
        line = f"{RESULT_TAGS[result.kind]} {app_id}"
        if result.message:
            line += f" - {result.message}"
        if result.kind is ResultKind.NEEDS_APP_CLOSED:
            line += f" ({CLOSE_AND_RETRY_HINT})"
        lines.append(line)
    if report.error:
        lines.append(f"[ERROR] {report.error}")
    lines.append("")
    lines.append(summarize_report(report))
    return lines
