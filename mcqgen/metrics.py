"""Simple in-process metrics registry for service instrumentation."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import List


@dataclass
class MetricsRegistry:
    """Holds counters exposed by the application."""

    generation_attempts: int = 0
    generation_successes: int = 0
    generation_failures: int = 0
    generation_failure_reasons: Counter = field(default_factory=Counter)
    generated_item_counts: List[int] = field(default_factory=list)
    rejected_records: int = 0
    structures_used: Counter = field(default_factory=Counter)
    cache_hits: int = 0
    fallback_records: int = 0
    retries: int = 0
    exhausted_requests: int = 0

    def record_generation_attempt(self) -> None:
        self.generation_attempts += 1

    def record_generation_success(self, item_count: int) -> None:
        self.generation_successes += 1
        self.generated_item_counts.append(item_count)

    def record_generation_failure(self, reason: str) -> None:
        self.generation_failures += 1
        self.generation_failure_reasons[reason] += 1

    def record_rejected(self, item_count: int = 1) -> None:
        self.rejected_records += item_count

    def record_structure(self, name: str) -> None:
        self.structures_used[name] += 1

    def record_cache_hit(self) -> None:
        self.cache_hits += 1

    def record_fallback(self, item_count: int) -> None:
        self.fallback_records += item_count

    def record_retry(self) -> None:
        self.retries += 1

    def record_exhausted(self) -> None:
        self.exhausted_requests += 1

    @property
    def generation_success_rate(self) -> float:
        if self.generation_attempts == 0:
            return 0.0
        return self.generation_successes / self.generation_attempts

    def snapshot(self) -> dict:
        return {
            "generation_attempts": self.generation_attempts,
            "generation_successes": self.generation_successes,
            "generation_failures": self.generation_failures,
            "generation_failure_reasons": dict(self.generation_failure_reasons),
            "generation_success_rate": self.generation_success_rate,
            "generated_items": sum(self.generated_item_counts),
            "rejected_records": self.rejected_records,
            "structures_used": dict(self.structures_used),
            "cache_hits": self.cache_hits,
            "fallback_records": self.fallback_records,
            "retries": self.retries,
            "exhausted_requests": self.exhausted_requests,
        }


METRICS = MetricsRegistry()

__all__ = ["METRICS", "MetricsRegistry"]
