"""Display helpers for market values and percentages."""


def format_market_value(value: float) -> str:
    """Compact euro display, e.g. 12_500_000 -> '€12.5M', 750_000 -> '€750K'."""
    if value >= 1_000_000:
        return f"€{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"€{value / 1_000:.0f}K"
    return f"€{value:g}"


def format_percent(value: float) -> str:
    return f"{value:.1f}%"
