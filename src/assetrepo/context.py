from __future__ import annotations

import re
from dataclasses import dataclass, replace

from .paths import normalize_path

SearchTerm = str | re.Pattern[str]


@dataclass(slots=True, frozen=True)
class OperationContext:
    """Normalized arguments of a single repository call."""

    path: str = ""
    search_term: SearchTerm | None = None
    subscriber_id: str | None = None
    correlation_id: str | None = None

    @classmethod
    def from_target(cls, target: str | OperationContext) -> OperationContext:
        if isinstance(target, OperationContext):
            return target.with_path(target.path)
        return cls(path=normalize_path(target))

    @classmethod
    def from_search(cls, target: SearchTerm | OperationContext) -> OperationContext:
        if isinstance(target, OperationContext):
            return target
        return cls(search_term=target)

    def with_path(self, path: str) -> OperationContext:
        return replace(self, path=normalize_path(path))

    @property
    def is_literal_search(self) -> bool:
        return isinstance(self.search_term, str)
