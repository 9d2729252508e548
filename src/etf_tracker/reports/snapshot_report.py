"""Snapshot report generator."""

from datetime import datetime, timezone
from decimal import Decimal

from ..storage.models import Snapshot


def _format_weight(weight: Decimal | None) -> str:
    """Format a weight as percentage."""
    if weight is None:
        return "N/A"
    return f"{weight:.2f}%"


def _format_shares(shares: int | None) -> str:
    if shares is None:
        return "N/A"
    return f"{shares:,}"


def generate_snapshot_report(
    snapshot: Snapshot,
    fund_code: str | None = None,
    top: int | None = None,
) -> str:
    """
    Generate a markdown report of one day's holdings.

    Args:
        snapshot: The snapshot to report on
        fund_code: Fund code for the title
        top: Only list the N largest holdings by weight (default: all, in source order)

    Returns:
        Markdown report as string
    """
    title = f"{fund_code} Holdings" if fund_code else "Holdings"
    lines: list[str] = []

    # Header
    lines.append(f"# {title} ({snapshot.date.isoformat()})")
    lines.append("")
    lines.append(f"**Number of Holdings:** {snapshot.total_count}")
    lines.append(f"**Total Weight:** {_format_weight(snapshot.total_weight)}")
    lines.append("")

    if snapshot.is_empty:
        lines.append("*No holdings recorded for this date.*")
        lines.append("")
    else:
        holdings = list(snapshot.holdings)
        if top is not None:
            holdings = sorted(holdings, key=lambda h: h.weight, reverse=True)[:top]
            lines.append(f"## Top {len(holdings)} Holdings")
        else:
            lines.append("## Holdings")
        lines.append("")
        lines.append("| # | Code | Name | Shares | Weight |")
        lines.append("|---|------|------|--------|--------|")
        for i, h in enumerate(holdings, 1):
            lines.append(
                f"| {i} | {h.stock_code} | {h.stock_name} | "
                f"{_format_shares(h.shares)} | {_format_weight(h.weight)} |"
            )
        lines.append("")

    # Footer
    lines.append("---")
    lines.append(f"*Report generated: {datetime.now(timezone.utc).isoformat()}*")

    return "\n".join(lines)
