class BudgetFlowError(Exception):
    """Base class for every failure surfaced to the user."""


class ValidationError(BudgetFlowError):
    """Malformed or missing input fields."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InvalidCandidate(ValidationError):
    pass


class InvalidAllocation(BudgetFlowError):
    """Declared daily habits cannot be turned into category limits."""


class JustificationRequired(BudgetFlowError):
    """A buffer-requiring transaction was submitted without a reason."""

    def __init__(self, reason: str):
        super().__init__(f"Buffer justification required ({reason})")
        self.reason = reason


class AdmissionRejected(BudgetFlowError):
    def __init__(self, reason: str):
        super().__init__(f"Transaction rejected: {reason}")
        self.reason = reason


class NotFound(BudgetFlowError):
    """A persisted record is absent; the caller should send the user to setup."""

    def __init__(self, key: str):
        super().__init__(f"No stored record named {key!r}")
        self.key = key


class StorageError(BudgetFlowError):
    pass
