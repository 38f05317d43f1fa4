"""Read-only, display-ready view of the session budget."""

from decimal import Decimal
from typing import Any, Dict

from .rate_limiter import RateLimiter


def format_usd(amount) -> str:
    """Format as USD with thousands separators and 2-4 fraction digits ($0.05, $0.0012)."""
    text = f"{amount:,.4f}"
    whole, frac = text.split(".")
    frac = frac.rstrip("0")
    if len(frac) < 2:
        frac = frac.ljust(2, "0")
    return f"${whole}.{frac}"


class CostTracker:
    """Formatted usage reporting over a RateLimiter."""

    def __init__(self, rate_limiter: RateLimiter):
        self.rate_limiter = rate_limiter

    def get_current_session_cost(self) -> Decimal:
        return self.rate_limiter.get_stats()["cost"]

    def get_formatted_session_cost(self) -> str:
        return format_usd(self.get_current_session_cost())

    def get_usage_summary(self) -> Dict[str, Any]:
        """Summary for status displays."""
        stats = self.rate_limiter.get_stats()
        return {
            "cost": format_usd(stats["cost"]),
            "cost_limit": format_usd(stats["cost_limit"]),
            "tokens": f"{stats['tokens']:,} / {stats['token_limit']:,} tokens ({stats['token_percent']:.1f}%)",
            "remaining_cost": format_usd(max(Decimal(0), Decimal(str(stats["cost_limit"])) - stats["cost"])),
            "remaining_tokens": max(0, stats["token_limit"] - stats["tokens"]),
            "cost_percent": round(stats["cost_percent"], 1),
            "token_percent": round(stats["token_percent"], 1),
        }

    def reset(self) -> None:
        self.rate_limiter.reset()
