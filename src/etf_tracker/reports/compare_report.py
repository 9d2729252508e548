"""Range comparison report generator."""

from datetime import datetime, timezone
from decimal import Decimal

from ..analysis.diff import HoldingChange, RangeCompareResult
from .snapshot_report import _format_shares, _format_weight


def _format_ratio(ratio: Decimal | None) -> str:
    """Format a percent change with sign."""
    if ratio is None:
        return "N/A"
    if ratio >= 0:
        return f"+{ratio}%"
    return f"{ratio}%"


def _format_shares_diff(delta: int) -> str:
    if delta >= 0:
        return f"+{delta:,}"
    return f"{delta:,}"


def _format_weight_diff(delta: Decimal) -> str:
    """Format a weight-point change with sign."""
    if delta >= 0:
        return f"+{delta}"
    return f"{delta}"


def _change_table(changes: list[HoldingChange]) -> list[str]:
    lines = [
        "| Code | Name | Shares | Δ Shares | Change | Weight | Δ Weight |",
        "|------|------|--------|----------|--------|--------|----------|",
    ]
    for c in changes:
        lines.append(
            f"| {c.stock_code} | {c.stock_name} | "
            f"{_format_shares(c.start_shares)} → {_format_shares(c.end_shares)} | "
            f"{_format_shares_diff(c.shares_diff)} | {_format_ratio(c.change_ratio)} | "
            f"{_format_weight(c.start_weight)} → {_format_weight(c.end_weight)} | "
            f"{_format_weight_diff(c.weight_diff)} |"
        )
    return lines


def generate_compare_report(result: RangeCompareResult, fund_code: str | None = None) -> str:
    """
    Generate a markdown report for a range comparison.

    Args:
        result: The comparison to report on
        fund_code: Fund code for the title

    Returns:
        Markdown report as string
    """
    title = f"{fund_code} Holding Changes" if fund_code else "Holding Changes"
    lines: list[str] = []

    lines.append(f"# {title} ({result.start_date.isoformat()} → {result.end_date.isoformat()})")
    lines.append("")

    # Summary stats
    lines.append("## Summary")
    lines.append("")
    lines.append(f"- **New Additions:** {result.new_count}")
    lines.append(f"- **Removed:** {result.removed_count}")
    lines.append(f"- **Increased:** {result.increased_count}")
    lines.append(f"- **Decreased:** {result.decreased_count}")
    lines.append(f"- **Unchanged:** {result.unchanged_count}")
    lines.append("")

    sections = [
        ("New Additions", result.new_additions),
        ("Removed", result.removals),
        ("Increased", result.increased),
        ("Decreased", result.decreased),
    ]
    for heading, changes in sections:
        lines.append(f"## {heading}")
        lines.append("")
        if changes:
            lines.extend(_change_table(changes))
        else:
            lines.append("*None.*")
        lines.append("")

    if result.unchanged:
        codes = ", ".join(c.stock_code for c in result.unchanged)
        lines.append("## Unchanged")
        lines.append("")
        lines.append(codes)
        lines.append("")

    # Footer
    lines.append("---")
    lines.append(f"*Report generated: {datetime.now(timezone.utc).isoformat()}*")

    return "\n".join(lines)
