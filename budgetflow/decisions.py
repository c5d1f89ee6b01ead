"""Verdicts returned by the admission engine.

A decision is one of three cases. Callers branch with ``fold`` so that
every case has to be handled:

    decision.fold(
        on_allowed=lambda: ...,
        on_requires_justification=lambda reason: ...,
        on_rejected=lambda reason: ...,
    )
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, TypeVar

R = TypeVar('R')

# reasons
LOCKED = "locked"
BUFFER_EXHAUSTED = "buffer_exhausted"
CATEGORY_LIMIT = "category_limit"
BUDGET_THRESHOLD = "budget_threshold"


class AdmissionDecision(ABC):

    @abstractmethod
    def fold(
        self,
        on_allowed: Callable[[], R],
        on_requires_justification: Callable[[str], R],
        on_rejected: Callable[[str], R],
    ) -> R:
        pass

    def is_allowed(self) -> bool:
        return self.fold(lambda: True, lambda _: False, lambda _: False)

    def requires_justification(self) -> bool:
        return self.fold(lambda: False, lambda _: True, lambda _: False)

    def is_rejected(self) -> bool:
        return self.fold(lambda: False, lambda _: False, lambda _: True)


@dataclass(frozen=True)
class Allowed(AdmissionDecision):

    def fold(self, on_allowed, on_requires_justification, on_rejected):
        return on_allowed()


@dataclass(frozen=True)
class RequiresBufferJustification(AdmissionDecision):
    reason: str

    def fold(self, on_allowed, on_requires_justification, on_rejected):
        return on_requires_justification(self.reason)


@dataclass(frozen=True)
class Rejected(AdmissionDecision):
    reason: str

    def fold(self, on_allowed, on_requires_justification, on_rejected):
        return on_rejected(self.reason)
