"""Typed records for the budget app and their stored document form.

Every record is an immutable dataclass. Stored documents keep the camelCase
layout of the browser app (``usableAmount``, ``budgetLocked`` ...), so a wallet
saved by either side can be read by the other.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class UserProfile:
    name: str
    email: str
    age: str = ""
    contact: str = ""
    is_logged_in: bool = False
    setup_complete: bool = False

    def to_document(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "age": self.age,
            "contact": self.contact,
            "isLoggedIn": self.is_logged_in,
            "setupComplete": self.setup_complete,
        }

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "UserProfile":
        return cls(
            name=doc.get("name", ""),
            email=doc["email"],
            age=str(doc.get("age", "")),
            contact=doc.get("contact", ""),
            is_logged_in=bool(doc.get("isLoggedIn", False)),
            setup_complete=bool(doc.get("setupComplete", False)),
        )


@dataclass(frozen=True)
class FinancialProfile:
    income: float
    budget_amount: float       # monthly budget
    wallet_balance: float
    daily_habits_set: bool = False
    daily_budget: Optional[float] = None

    def to_document(self) -> dict:
        doc = {
            "income": self.income,
            "budgetAmount": self.budget_amount,
            "walletBalance": self.wallet_balance,
            "dailyHabitsSet": self.daily_habits_set,
        }
        if self.daily_budget is not None:
            doc["dailyBudget"] = self.daily_budget
        return doc

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "FinancialProfile":
        daily = doc.get("dailyBudget")
        return cls(
            income=float(doc["income"]),
            budget_amount=float(doc["budgetAmount"]),
            wallet_balance=float(doc.get("walletBalance", doc["budgetAmount"])),
            daily_habits_set=bool(doc.get("dailyHabitsSet", False)),
            daily_budget=float(daily) if daily is not None else None,
        )


@dataclass(frozen=True)
class CategoryLimit:
    name: str
    limit: float
    spent: float = 0.0

    @property
    def remaining(self) -> float:
        return self.limit - self.spent


@dataclass(frozen=True)
class Transaction:
    id: str
    amount: float
    category: str
    description: str
    recipient: str
    timestamp: str              # ISO-8601, e.g. "2025-09-01T10:00:00"
    used_buffer: bool = False
    buffer_reason: Optional[str] = None

    @property
    def occurred_at(self) -> Optional[datetime]:
        """Parsed timestamp, or None for locale strings written by the browser app."""
        try:
            return datetime.fromisoformat(self.timestamp)
        except (TypeError, ValueError):
            return None

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
            "recipient": self.recipient,
            "timestamp": self.timestamp,
            "usedBuffer": self.used_buffer,
            "bufferReason": self.buffer_reason,
        }

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Transaction":
        return cls(
            id=doc["id"],
            amount=float(doc["amount"]),
            category=doc["category"],
            description=doc.get("description", ""),
            recipient=doc.get("recipient", ""),
            timestamp=doc["timestamp"],
            used_buffer=bool(doc.get("usedBuffer", False)),
            buffer_reason=doc.get("bufferReason"),
        )


@dataclass(frozen=True)
class TransactionCandidate:
    """A transaction the user wants to record, before admission."""
    amount: float
    category: str
    description: str
    recipient: str


@dataclass(frozen=True)
class DailyHabits:
    daily_spend: float
    categories: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class WalletState:
    balance: float
    usable_amount: float
    buffer: float
    categories: tuple[CategoryLimit, ...]
    transactions: tuple[Transaction, ...] = ()   # newest first
    savings: float = 0.0
    budget_locked: bool = False
    rewards: int = 0

    @property
    def category_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.categories)

    def to_document(self) -> dict:
        return {
            "balance": self.balance,
            "usableAmount": self.usable_amount,
            "buffer": self.buffer,
            "categories": {
                c.name: {"limit": c.limit, "spent": c.spent} for c in self.categories
            },
            "transactions": [t.to_document() for t in self.transactions],
            "savings": self.savings,
            "budgetLocked": self.budget_locked,
            "rewards": self.rewards,
        }

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "WalletState":
        categories = tuple(
            CategoryLimit(name=name, limit=float(data["limit"]), spent=float(data.get("spent", 0)))
            for name, data in doc["categories"].items()
        )
        return cls(
            balance=float(doc.get("balance", doc["usableAmount"] + doc["buffer"])),
            usable_amount=float(doc["usableAmount"]),
            buffer=float(doc["buffer"]),
            categories=categories,
            transactions=tuple(Transaction.from_document(t) for t in doc.get("transactions") or []),
            savings=float(doc.get("savings", 0)),
            budget_locked=bool(doc.get("budgetLocked", False)),
            rewards=int(doc.get("rewards", 0)),
        )
