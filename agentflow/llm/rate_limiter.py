"""Session budget tracking for LLM calls."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from ..errors import BudgetExceededError


logger = logging.getLogger(__name__)


@dataclass
class BudgetState:
    """Cumulative usage for the current session."""
    total_tokens: int = 0
    total_cost: Decimal = field(default_factory=Decimal)
    warned: bool = False


class RateLimiter:
    """
    Token and cost budget for one session.

    ``check_budget`` runs before a provider call and only rejects once a limit
    has already been reached; ``record_usage`` runs after the call. The call
    that crosses a limit therefore completes and the next one fails.
    """

    def __init__(
        self,
        token_budget: Optional[int] = None,
        cost_budget: Optional[float] = None,
        warning_ratio: Optional[float] = None,
        on_warning: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the budget tracker.

        Args:
            token_budget: Max tokens per session (defaults to config)
            cost_budget: Max spend in USD per session (defaults to config)
            warning_ratio: Fraction of either limit that triggers the one-shot warning
            on_warning: Optional sink called with the warning message
        """
        from ..core.config import settings
        self.token_budget = token_budget if token_budget is not None else settings.TOKEN_BUDGET
        self.cost_budget = cost_budget if cost_budget is not None else settings.COST_BUDGET
        self.warning_ratio = warning_ratio if warning_ratio is not None else settings.BUDGET_WARNING_RATIO
        # cost totals and limits are compared as Decimal
        self._cost_limit = _to_decimal(self.cost_budget)
        self._warning_ratio = _to_decimal(self.warning_ratio)
        self.on_warning = on_warning
        self.state = BudgetState()

    def check_budget(self) -> None:
        """
        Raise if either cumulative counter has reached its limit.

        Raises:
            BudgetExceededError: kind ``tokens`` or ``cost``
        """
        if self.state.total_tokens >= self.token_budget:
            raise BudgetExceededError(
                "tokens",
                f"Token budget exceeded: {self.state.total_tokens} / {self.token_budget}",
            )
        if self.state.total_cost >= self._cost_limit:
            raise BudgetExceededError(
                "cost",
                f"Cost budget exceeded: ${self.state.total_cost:.4f} / ${self.cost_budget:.2f}",
            )

    def record_usage(self, tokens: int, cost: float) -> None:
        """Add one call's usage to the session totals."""
        if tokens < 0 or cost < 0:
            raise ValueError("Usage cannot be negative")
        self.state.total_tokens += tokens
        self.state.total_cost += _to_decimal(cost)
        self._check_warning()

    def _check_warning(self) -> None:
        if self.state.warned:
            return
        token_ratio = self._ratio(self.state.total_tokens, self.token_budget)
        cost_ratio = self._ratio(self.state.total_cost, self._cost_limit)
        if token_ratio < self._warning_ratio and cost_ratio < self._warning_ratio:
            return

        self.state.warned = True
        message = (
            f"You have reached {round(self.warning_ratio * 100)}% of your session budget "
            f"(${self.state.total_cost:.2f} / ${self.cost_budget:.2f}, "
            f"{self.state.total_tokens} / {self.token_budget} tokens)"
        )
        logger.warning(message)
        if self.on_warning is not None:
            try:
                self.on_warning(message)
            except Exception as e:
                logger.error(f"Budget warning sink failed: {e}", exc_info=True)

    @staticmethod
    def _ratio(used, limit) -> Decimal:
        if limit <= 0:
            return Decimal(1)
        return Decimal(used) / Decimal(limit)

    def get_stats(self) -> Dict[str, Any]:
        """Current counters and percentages of each limit."""
        return {
            "tokens": self.state.total_tokens,
            "cost": self.state.total_cost,
            "token_limit": self.token_budget,
            "cost_limit": self.cost_budget,
            "token_percent": float(self._ratio(self.state.total_tokens, self.token_budget) * 100),
            "cost_percent": float(self._ratio(self.state.total_cost, self._cost_limit) * 100),
            "warned": self.state.warned,
        }

    def reset(self) -> None:
        """Start a new session: zero counters and re-arm the warning."""
        self.state = BudgetState()


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
