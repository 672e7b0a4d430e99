"""
Domain Errors
Typed failures raised by the investment engines.

Validation and not-found errors are raised before any transaction starts.
FundingAborted is raised after a rollback. NotificationFailure is only ever
logged by the engines, never propagated to the caller of a funding request.
"""

from typing import Any, List, Optional, Sequence


class KebleError(Exception):
    """Base class for all domain errors"""


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------

class ValidationError(KebleError):
    """Bad input or a business rule rejected the request"""


class InvalidAmount(ValidationError):
    pass


class BelowMinimumInvestment(ValidationError):
    def __init__(self, amount, minimum):
        super().__init__(f"Minimum investment amount is ${minimum} (got ${amount})")
        self.amount = amount
        self.minimum = minimum


class InsufficientFunds(ValidationError):
    def __init__(self, balance, amount):
        super().__init__(f"Insufficient funds: balance ${balance}, requested ${amount}")
        self.balance = balance
        self.amount = amount


class KycIncomplete(ValidationError):
    pass


class UnsupportedPlan(ValidationError):
    pass


# ------------------------------------------------------------------
# Not found
# ------------------------------------------------------------------

class NotFoundError(KebleError):
    """A referenced record does not exist"""

    entity = "Record"

    def __init__(self, identifier: Any = None, message: Optional[str] = None):
        self.identifier = identifier
        super().__init__(message or f"{self.entity} not found: {identifier}")


class MissingUser(NotFoundError):
    entity = "User"


class MissingWallet(NotFoundError):
    entity = "Wallet"


class MissingListing(NotFoundError):
    entity = "Listing"


class MissingPortfolio(NotFoundError):
    entity = "Portfolio"


class MissingInvestment(NotFoundError):
    entity = "Investment"


# ------------------------------------------------------------------
# Arithmetic / transactional / side effects
# ------------------------------------------------------------------

class DivisionByZero(KebleError, ArithmeticError):
    """A zero or negative duration reached return or proration math"""


class ConcurrencyConflict(KebleError):
    """A conditional storage update matched no row (balance or token pool exhausted)"""


class FundingAborted(KebleError):
    """
    A funding request failed after validation; every write was rolled back.

    Attributes:
        failed_state: FundingState reached when the failure happened
        reasons: Human-readable failure reasons
        errors: Underlying exceptions, for diagnostics
    """

    def __init__(
        self,
        failed_state,
        reasons: Sequence[str],
        errors: Sequence[BaseException] = (),
        history: Sequence = (),
    ):
        self.failed_state = failed_state
        self.reasons: List[str] = list(reasons)
        self.errors: List[BaseException] = list(errors)
        self.history = list(history)
        state = getattr(failed_state, "value", failed_state)
        super().__init__(f"Funding aborted during {state}: {'; '.join(self.reasons)}")


class NotificationFailure(KebleError):
    """A best-effort notification could not be delivered"""
