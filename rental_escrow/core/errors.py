"""Domain errors raised by the escrow and wallet services.

Every error here is recoverable: the API layer turns them into a JSON
response and the database transaction they were raised in is rolled back.
"""


class EscrowError(Exception):
    code = "escrow_error"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidTransition(EscrowError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, booking_id: str, current: str, attempted: str, reason: str | None = None):
        self.booking_id = booking_id
        self.current = current
        self.attempted = attempted
        message = f"Cannot {attempted} for booking {booking_id}. Current status: {current}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InvalidAmount(EscrowError):
    code = "invalid_amount"
    status_code = 422

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Amount must be > 0, got {amount}")


class InsufficientBalance(EscrowError):
    code = "insufficient_balance"
    status_code = 400

    def __init__(self, owner_id: str, balance: int, amount: int):
        self.owner_id = owner_id
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient wallet balance. Your current balance is {balance}, requested {amount}"
        )


class RecordNotFound(EscrowError):
    code = "not_found"
    status_code = 404

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class DuplicateReference(EscrowError):
    """Reference already used for a different ledger entry.

    A replay with the same amount and kind is not an error: the ledger
    returns the original entry instead.
    """

    code = "duplicate_reference"
    status_code = 409

    def __init__(self, owner_id: str, reference: str):
        self.owner_id = owner_id
        self.reference = reference
        super().__init__(f"Duplicate transaction reference {reference} for {owner_id}")


class DuplicateEscrow(EscrowError):
    code = "duplicate_escrow"
    status_code = 409

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Escrow already exists for booking {booking_id}")
