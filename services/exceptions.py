"""Typed exception hierarchy for ledger errors.

Recoverable errors derive from :class:`LedgerError` and carry the
identifier the caller passed in, so the caller can decide whether to
retry, pick a different target, or report it.

:class:`LedgerInvariantError` is not part of that hierarchy: it
means the ledger itself is inconsistent and must never be handled as a
normal error.
"""


class LedgerError(Exception):
    """Base exception for all recoverable ledger errors."""

    def __init__(self, message: str, identifier: str = ""):
        self.identifier = identifier
        super().__init__(message)


class AccountAlreadyExists(LedgerError):
    """An account with this address is already tracked."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Account already exists: {address}", address)


class AccountDoesNotExist(LedgerError):
    """No tracked account has this address."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Account does not exist: {address}", address)


class AccountHasInsufficientBalance(LedgerError):
    """The account holds less than the requested amount."""

    def __init__(self, address: str, requested: int | None = None, available: int | None = None):
        self.address = address
        self.requested = requested
        self.available = available
        message = f"Account has insufficient balance: {address}"
        if requested is not None and available is not None:
            message += f" (requested {requested}, available {available})"
        super().__init__(message, address)


class PendingTransferDoesNotExist(LedgerError):
    """No pending transfer has this signature."""

    def __init__(self, signature: str):
        self.signature = signature
        super().__init__(
            f"Pending transfer with signature does not exist: {signature}", signature
        )


class PendingDepositDoesNotExist(LedgerError):
    """No pending deposit has this signature."""

    def __init__(self, signature: str):
        self.signature = signature
        super().__init__(
            f"Pending deposit with signature does not exist: {signature}", signature
        )


class OpenOrderDoesNotExist(LedgerError):
    """No open order has this id."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Open order does not exist: {order_id}", order_id)


class PendingTransferAlreadyExists(LedgerError):
    """A transfer with this signature is already pending."""

    def __init__(self, signature: str):
        self.signature = signature
        super().__init__(
            f"Pending transfer with signature already exists: {signature}", signature
        )


class OpenOrderAlreadyExists(LedgerError):
    """An order with this id is already open."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Open order already exists: {order_id}", order_id)


class PendingTransferBelongsToDeposit(LedgerError):
    """The pending transfer carries a deposit and must be resolved as one."""

    def __init__(self, signature: str):
        self.signature = signature
        super().__init__(
            f"Pending transfer belongs to a pending deposit: {signature}", signature
        )


class LedgerInvariantError(AssertionError):
    """The ledger broke the balance or conservation invariant.

    Raised only on programming defects or corrupt input records. The
    enclosing batch discards its unflushed writes and the error propagates.
    """
