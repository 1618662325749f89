from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

R = TypeVar("R")


@dataclass(slots=True)
class BatchProgress:
    completed: int = 0
    total: int = 0
    failed: int = 0
    in_flight: int = 0

    @property
    def succeeded(self) -> int:
        return self.completed - self.failed

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 100
        return round(self.completed / self.total * 100)


@dataclass(frozen=True, slots=True)
class BatchError:
    item_index: int
    input: Any
    error: BaseException


@dataclass(slots=True)
class BatchProcessResult(Generic[R]):
    results: list[R] = field(default_factory=list)
    errors: list[BatchError] = field(default_factory=list)
    progress: BatchProgress = field(default_factory=BatchProgress)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True, slots=True)
class BatchOptions:
    batch_size: int = 10
    rate_limit: int = 100
    show_progress: bool = False
    concurrency: int = 4
    max_retries: int = 0
    retry_delay: float = 1.0


@dataclass(slots=True)
class RateLimiterState:
    tokens: float
    last_refill: float
