"""Output formatting for provisioning outcomes and advisory reports."""

from indexsense.output.renderers import (
    SAMPLING_NOTE,
    OutputFormat,
    format_bytes,
    outcomes_to_json,
    recommendations_to_json,
    recommendations_to_markdown,
    snapshot_to_json,
    usage_to_json,
    usage_to_markdown,
)

__all__ = [
    "SAMPLING_NOTE",
    "OutputFormat",
    "format_bytes",
    "outcomes_to_json",
    "recommendations_to_json",
    "recommendations_to_markdown",
    "snapshot_to_json",
    "usage_to_json",
    "usage_to_markdown",
]
