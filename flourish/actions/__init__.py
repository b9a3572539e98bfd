"""Action Center package."""

from flourish.actions.engine import (
    ActionEngine,
    days_until_month_end,
    format_money,
    previous_month,
)

__all__ = ["ActionEngine", "days_until_month_end", "format_money", "previous_month"]
