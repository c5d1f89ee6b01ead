"""Settings for the budget engine and the local storage.

Values come from environment variables where present so the Streamlit app
and the tests can point the store somewhere else without code changes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

DATA_DIR = Path(os.getenv("BUDGETFLOW_DATA_DIR", _PROJECT_ROOT / "data"))
LOG_LEVEL = os.getenv("BUDGETFLOW_LOG_LEVEL", "INFO").upper()
CURRENCY = os.getenv("BUDGETFLOW_CURRENCY", "₹")

# 80/20 split between usable amount and buffer
USABLE_SHARE = 0.8
# share of the usable amount after which spending needs the buffer
WARNING_RATIO = 0.8

OTHER_CATEGORY = "other"
DEFAULT_HABIT_CATEGORIES = ("tiffin", "lunch", "dinner", "transport")


class BufferPolicy(str, Enum):
    UNLIMITED = "unlimited"
    CAPPED = "capped"


@dataclass(frozen=True)
class EngineSettings:
    usable_share: float = USABLE_SHARE
    warning_ratio: float = WARNING_RATIO
    buffer_policy: BufferPolicy = BufferPolicy.UNLIMITED

    @property
    def buffer_share(self) -> float:
        return round(1 - self.usable_share, 10)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        raw = os.getenv("BUDGETFLOW_BUFFER_POLICY", BufferPolicy.UNLIMITED.value)
        try:
            policy = BufferPolicy(raw.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown buffer policy {raw!r}, expected one of "
                             f"{[p.value for p in BufferPolicy]}") from None
        return cls(buffer_policy=policy)


def ensure_data_directory() -> Path:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    return DATA_DIR
