from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

UNKNOWN_PLACEHOLDER = "Unknown"


@dataclass(frozen=True)
class UpdatableApp:
    name: str
    id: str
    current_version: str = UNKNOWN_PLACEHOLDER
    available_version: str = UNKNOWN_PLACEHOLDER
    source: str = UNKNOWN_PLACEHOLDER


class ResultKind(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NEEDS_APP_CLOSED = "needs_app_closed"
    ALREADY_UP_TO_DATE = "already_up_to_date"


_CATEGORY_BY_KIND = {
    ResultKind.SUCCESS: "success",
    ResultKind.FAILURE: "failure",
    ResultKind.NEEDS_APP_CLOSED: "warning",
    ResultKind.ALREADY_UP_TO_DATE: "info",
}


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of one upgrade attempt.

    The four kinds are exhaustive; consumers branch on ``kind``.
    """

    kind: ResultKind
    message: str = ""

    @classmethod
    def success(cls, message: str = "") -> UpdateResult:
        return cls(ResultKind.SUCCESS, message)

    @classmethod
    def failure(cls, message: str) -> UpdateResult:
        return cls(ResultKind.FAILURE, message)

    @classmethod
    def needs_app_closed(cls, message: str) -> UpdateResult:
        return cls(ResultKind.NEEDS_APP_CLOSED, message)

    @classmethod
    def already_up_to_date(cls, message: str) -> UpdateResult:
        return cls(ResultKind.ALREADY_UP_TO_DATE, message)

    @property
    def category(self) -> str:
        return _CATEGORY_BY_KIND[self.kind]


@dataclass
class AppItem:
    app: UpdatableApp
    selected: bool = False
    result: UpdateResult | None = None

    def record_result(self, result: UpdateResult) -> None:
        if self.result is not None:
            raise ValueError(f"Result already recorded for {self.app.id}")
        self.result = result


@dataclass
class BatchRun:
    ids: tuple[str, ...]
    completed: int = 0
    results: dict[str, UpdateResult] = field(default_factory=dict)
    cancel_requested: bool = False

    @property
    def total(self) -> int:
        return len(self.ids)

    @property
    def is_finished(self) -> bool:
        return self.completed >= self.total

    def record(self, app_id: str, result: UpdateResult) -> None:
        if self.is_finished or self.ids[self.completed] != app_id:
            raise ValueError(f"Unexpected result for {app_id}")
        self.results[app_id] = result
        self.completed += 1


@dataclass(frozen=True)
class BatchReport:
    results: tuple[tuple[str, UpdateResult], ...]
    total: int
    cancelled: bool = False
    error: str | None = None

    @classmethod
    def from_batch(cls, batch: BatchRun, error: str | None = None) -> BatchReport:
        return cls(
            results=tuple(batch.results.items()),
            total=batch.total,
            cancelled=batch.cancel_requested and not batch.is_finished,
            error=error,
        )

    def as_dict(self) -> dict[str, UpdateResult]:
        return dict(self.results)

    def by_kind(self, kind: ResultKind) -> list[tuple[str, UpdateResult]]:
        return [(app_id, result) for app_id, result in self.results if result.kind is kind]

    def counts(self) -> dict[ResultKind, int]:
        counts = {kind: 0 for kind in ResultKind}
        for _app_id, result in self.results:
            counts[result.kind] += 1
        return counts
