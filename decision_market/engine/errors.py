"""
Error taxonomy for the decision-market engine.

Every rejected operation raises a subclass of MarketError. MarketError is a
ValueError so callers that only care about "the operation was refused" can
keep catching ValueError.
"""


class MarketError(ValueError):
    """Base class for every error raised by an engine entry point."""


class NotFoundError(MarketError):
    """A market, proposal, claim instance or pool id that was never created."""


class StateConflictError(MarketError):
    """The operation is not allowed in the current lifecycle state (may succeed later)."""


class ReentrancyError(StateConflictError):
    """An entry point was invoked while another one was still running."""


class UnauthorizedError(MarketError):
    """A privileged mutation was invoked by the wrong caller."""


class InsufficientBalanceError(MarketError):
    """A deposit, claim or asset balance is too low for the requested debit."""


class NothingToRedeemError(InsufficientBalanceError):
    """The caller holds neither winning claims nor synthetic dollars."""


class InvalidInputError(MarketError):
    """Zero amounts, null addresses, non-future deadlines, out-of-range ticks."""


class ExternalCallError(MarketError):
    """The venue, the verification gateway or an external asset aborted the call."""


class VerificationError(ExternalCallError):
    """The verification gateway rejected the claimed outcome or its proof."""
