from __future__ import annotations

from ..models.processing_result import ExecutionOutcome

"""SUMMARY line rendering for one apply.

Format:
    SUMMARY entity={entity} mode={mode} units={n} succeeded={s} skipped={k}
    failed={f} [links={counter}:{n},...] elapsed_sec={elapsed} throughput_ups={ups}

``links`` is only present when the batch recorded secondary operations.
Counters are listed in name order so the line is stable across runs.
"""

__all__ = [
    "format_number",
    "render_summary_line",
]


def format_number(value: float) -> str:
    """Integral values without a fraction; tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(entity_type: str, outcome: ExecutionOutcome, elapsed_seconds: float = 0.0) -> str:
    """Render a SUMMARY line for ``outcome``.

    Examples:
        >>> from edu_import.models.processing_result import ExecutionOutcome
        >>> o = ExecutionOutcome(mode="create", succeeded=9, failed=1, links={"subject_assignments": 12})
        >>> render_summary_line("staff", o, 2.0)
        'SUMMARY entity=staff mode=create units=10 succeeded=9 skipped=0 failed=1 links=subject_assignments:12 elapsed_sec=2 throughput_ups=5'
    """
    throughput = outcome.total_units / elapsed_seconds if elapsed_seconds > 0 else 0.0
    parts = [
        "SUMMARY",
        f"entity={entity_type}",
        f"mode={outcome.mode}",
        f"units={outcome.total_units}",
        f"succeeded={outcome.succeeded}",
        f"skipped={outcome.skipped}",
        f"failed={outcome.failed}",
    ]
    if outcome.links:
        parts.append("links=" + ",".join(f"{k}:{v}" for k, v in sorted(outcome.links.items())))
    parts.append(f"elapsed_sec={format_number(elapsed_seconds)}")
    parts.append(f"throughput_ups={format_number(throughput)}")
    return " ".join(parts)
