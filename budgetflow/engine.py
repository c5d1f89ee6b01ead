"""Transaction admission: decides whether a spend may be recorded.

``evaluate`` only looks at the wallet; ``admit`` is the single place where a
transaction gets appended and a category's ``spent`` grows. Rules, first match
wins:

* the wallet is locked                          -> Rejected("locked")
* spent + amount goes over the category limit   -> RequiresBufferJustification("category_limit")
* total spent + amount goes over 80% of usable  -> RequiresBufferJustification("budget_threshold")
* otherwise                                     -> Allowed

With ``BufferPolicy.CAPPED`` a candidate that needs the buffer is rejected
with "buffer_exhausted" once justified spending would exceed the buffer. Only
spending in the reset policy's current period counts against it.
"""

import logging
import math
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from budgetflow import decisions
from budgetflow.config import BufferPolicy, EngineSettings
from budgetflow.decisions import (
    AdmissionDecision, Allowed, Rejected, RequiresBufferJustification,
)
from budgetflow.domain import Transaction, TransactionCandidate, WalletState
from budgetflow.errors import AdmissionRejected, InvalidCandidate, JustificationRequired
from budgetflow.functional import Either, Left, Right
from budgetflow.rewards import DailyResetPolicy, NeverReset
from budgetflow.wallet import buffer_spent, find_category, record_transaction, total_spent

logger = logging.getLogger(__name__)


def validate_candidate(
    wallet: WalletState, c: TransactionCandidate
) -> Either[dict, TransactionCandidate]:
    if c.amount is None or not math.isfinite(c.amount) or c.amount <= 0:
        return Left({
            "error": "invalid_amount",
            "message": f"Amount must be positive, got {c.amount}",
            "field": "amount",
        })
    if find_category(wallet, c.category).is_none():
        return Left({
            "error": "category_not_found",
            "message": f"Category {c.category!r} does not exist",
            "field": "category",
        })
    for field_name in ("description", "recipient"):
        if not (getattr(c, field_name) or "").strip():
            return Left({
                "error": "missing_field",
                "message": f"{field_name.capitalize()} is required",
                "field": field_name,
            })
    return Right(c)


class TransactionAdmissionEngine:

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
        reset_policy: Optional[DailyResetPolicy] = None,
    ):
        self.settings = settings or EngineSettings()
        self.clock = clock
        self.id_factory = id_factory
        self.reset_policy = reset_policy or NeverReset()

    def threshold(self, wallet: WalletState) -> float:
        return wallet.usable_amount * self.settings.warning_ratio

    def buffer_used(self, wallet: WalletState) -> float:
        """Buffer spent in the current period of the reset policy."""
        return buffer_spent(wallet, self.reset_policy.period_start(self.clock()))

    def evaluate(self, wallet: WalletState, candidate: TransactionCandidate) -> AdmissionDecision:
        if wallet.budget_locked:
            return Rejected(decisions.LOCKED)

        validate_candidate(wallet, candidate).get_or_raise(
            lambda err: InvalidCandidate(err["message"], field=err["field"])
        )

        category = find_category(wallet, candidate.category).get_or_else(None)
        if category.spent + candidate.amount > category.limit:
            return self._needs_buffer(wallet, candidate, decisions.CATEGORY_LIMIT)

        if total_spent(wallet) + candidate.amount > self.threshold(wallet):
            return self._needs_buffer(wallet, candidate, decisions.BUDGET_THRESHOLD)

        return Allowed()

    def _needs_buffer(
        self, wallet: WalletState, candidate: TransactionCandidate, reason: str
    ) -> AdmissionDecision:
        if (self.settings.buffer_policy is BufferPolicy.CAPPED
                and self.buffer_used(wallet) + candidate.amount > wallet.buffer):
            return Rejected(decisions.BUFFER_EXHAUSTED)
        return RequiresBufferJustification(reason)

    def admit(
        self,
        wallet: WalletState,
        candidate: TransactionCandidate,
        justification: Optional[str] = None,
    ) -> tuple[WalletState, Transaction]:
        decision = self.evaluate(wallet, candidate)
        reason = (justification or "").strip()

        def rejected(why: str):
            logger.warning("Rejected %.2f in %s: %s", candidate.amount, candidate.category, why)
            raise AdmissionRejected(why)

        def needs_reason(why: str) -> bool:
            if not reason:
                logger.info("Buffer justification missing for %.2f in %s (%s)",
                            candidate.amount, candidate.category, why)
                raise JustificationRequired(why)
            return True

        used_buffer = decision.fold(
            on_allowed=lambda: False,
            on_requires_justification=needs_reason,
            on_rejected=rejected,
        )

        t = Transaction(
            id=self.id_factory(),
            amount=float(candidate.amount),
            category=candidate.category,
            description=candidate.description.strip(),
            recipient=candidate.recipient.strip(),
            timestamp=self.clock().isoformat(timespec="seconds"),
            used_buffer=used_buffer,
            buffer_reason=reason if used_buffer else None,
        )
        updated = record_transaction(wallet, t)

        if used_buffer:
            logger.warning("Buffer used: %.2f in %s, reason %r", t.amount, t.category, reason)
        else:
            logger.info("Admitted %.2f in %s", t.amount, t.category)
        return updated, t
