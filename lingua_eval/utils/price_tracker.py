# lingua_eval/utils/price_tracker.py
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from lingua_eval.core.config import settings


@dataclass
class TokenUsage:
    """Token counts for one gateway call (or a running total)."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class PriceTracker:
    """Accumulate token usage and cost per gateway operation."""

    input_cost_per_1m: float = settings.LLM_INPUT_COST_PER_1M
    output_cost_per_1m: float = settings.LLM_OUTPUT_COST_PER_1M

    total_usage: TokenUsage = field(default_factory=TokenUsage)
    per_operation: Dict[str, TokenUsage] = field(default_factory=lambda: defaultdict(TokenUsage))
    session_calls: int = 0
    session_start: datetime = field(default_factory=datetime.now)
    call_history: List[Dict[str, Any]] = field(default_factory=list)

    def _cost(self, usage: TokenUsage) -> Dict[str, float]:
        input_cost = (usage.prompt_tokens / 1_000_000) * self.input_cost_per_1m
        output_cost = (usage.completion_tokens / 1_000_000) * self.output_cost_per_1m
        return {
            "input_cost": round(input_cost, 9),
            "output_cost": round(output_cost, 9),
            "total_cost": round(input_cost + output_cost, 9),
        }

    def track_usage(self, usage_data: Dict[str, Any], operation: str = "evaluation") -> Dict[str, Any]:
        """Record one call's usage and return the priced call record."""
        prompt_tokens = int(usage_data.get("prompt_tokens", 0) or 0)
        completion_tokens = int(usage_data.get("completion_tokens", 0) or 0)
        total_tokens = int(usage_data.get("total_tokens", 0) or prompt_tokens + completion_tokens)
        call_usage = TokenUsage(prompt_tokens, completion_tokens, total_tokens)

        self.total_usage += call_usage
        self.per_operation[operation] += call_usage
        self.session_calls += 1

        call_record = {
            "timestamp": datetime.now().isoformat(),
            "operation": operation,
            "usage": call_usage.__dict__,
            "cost": self._cost(call_usage),
        }
        self.call_history.append(call_record)
        return call_record

    def get_session_summary(self) -> Dict[str, Any]:
        total_cost = self._cost(self.total_usage)
        return {
            "total_calls": self.session_calls,
            "duration_seconds": (datetime.now() - self.session_start).total_seconds(),
            "token_usage": self.total_usage.__dict__,
            "cost": total_cost,
            "by_operation": {
                op: {"usage": usage.__dict__, "cost": self._cost(usage)}
                for op, usage in self.per_operation.items()
            },
        }

    def reset_session(self) -> None:
        self.total_usage = TokenUsage()
        self.per_operation = defaultdict(TokenUsage)
        self.session_calls = 0
        self.session_start = datetime.now()
        self.call_history = []


_global_tracker = PriceTracker()


def get_price_tracker() -> PriceTracker:
    """Process-wide tracker shared by gateway clients that are not given their own."""
    return _global_tracker
