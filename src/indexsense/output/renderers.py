"""
Output renderers for different formats.

Separates presentation logic from provisioning/advisory logic. JSON output
is built from each model's to_dict() wire form; Markdown is meant for
pasting into tickets and runbooks. Terminal tables live in the CLI.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Iterable, Mapping

from indexsense.models import (
    OperationalSnapshot,
    ProvisioningOutcome,
    ProvisioningStatus,
    Recommendation,
    UsageReport,
)

SAMPLING_NOTE = (
    "Access counters are sampled since the last server restart "
    "(or index creation), not over the index's lifetime."
)


class OutputFormat(str, Enum):
    """Supported output formats."""

    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"


def format_bytes(size: int | float | None) -> str:
    """Human-readable byte size."""
    if size is None:
        return "-"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(value) < 1024:
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}TB"


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


# =============================================================================
# JSON
# =============================================================================


def outcomes_to_json(outcomes: Iterable[ProvisioningOutcome]) -> str:
    outcomes = list(outcomes)
    summary = {status.value: 0 for status in ProvisioningStatus}
    for outcome in outcomes:
        summary[outcome.status.value] += 1
    return _dumps({
        "summary": summary,
        "outcomes": [o.to_dict() for o in outcomes],
    })


def usage_to_json(reports: Mapping[str, UsageReport]) -> str:
    return _dumps({
        "note": SAMPLING_NOTE,
        "collections": {name: report.to_dict() for name, report in reports.items()},
    })


def recommendations_to_json(recommendations: Iterable[Recommendation]) -> str:
    return _dumps([r.to_dict() for r in recommendations])


def snapshot_to_json(snap: OperationalSnapshot) -> str:
    return _dumps(snap.to_dict())


# =============================================================================
# Markdown
# =============================================================================


def usage_to_markdown(reports: Mapping[str, UsageReport]) -> str:
    lines = ["# Index usage", "", f"> {SAMPLING_NOTE}", ""]
    for name, report in reports.items():
        lines.append(f"## {name}")
        lines.append("")
        if not report.stats_available:
            lines.append(f"*Statistics unavailable:* {report.error}")
            lines.append("")
            continue
        lines.append(
            f"{report.document_count:,} documents, "
            f"{format_bytes(report.storage_bytes)} storage, "
            f"{format_bytes(report.total_index_bytes)} indexes"
        )
        lines.append("")
        lines.append("| Index | Accesses | Used | Size | Declared |")
        lines.append("|---|---:|---|---:|---|")
        for idx in report.indexes:
            declared = "-" if idx.declared is None else ("yes" if idx.declared else "no")
            lines.append(
                f"| `{idx.name}` | {idx.access_count:,} | {'yes' if idx.used else 'no'} "
                f"| {format_bytes(idx.size_bytes)} | {declared} |"
            )
        lines.append("")
    return "\n".join(lines)


def recommendations_to_markdown(recommendations: Iterable[Recommendation]) -> str:
    recommendations = list(recommendations)
    lines = ["# Slow query advisories", ""]
    if not recommendations:
        lines.append("No queries above the reporting threshold.")
        return "\n".join(lines)
    for r in recommendations:
        lines.append(f"- **{r.severity.value.upper()}** `{r.collection}`: {r.issue}")
        lines.append(f"  - {r.rationale}")
        if r.filter:
            lines.append(f"  - filter: `{json.dumps(r.filter, default=str)}`")
        if r.sort:
            lines.append(f"  - sort: `{json.dumps(r.sort, default=str)}`")
    return "\n".join(lines)
