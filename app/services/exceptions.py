"""Wallet error taxonomy

User-recoverable: InsufficientTokens, PlanNotFound, PaymentAlreadyProcessed,
PaymentIdRequired, InvalidAmount, InvalidLimit, IdempotencyKeyConflict.
Configuration: ServiceNotConfigured.
Store failures are left as SQLAlchemy errors and surfaced as unavailability.
"""


class WalletError(Exception):
    """Base class for expected wallet failures"""
    pass


class InsufficientTokens(WalletError):
    """Raised when a debit exceeds the wallet balance"""

    def __init__(self, balance: int, required: int):
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient tokens. Available: {balance}, Required: {required}")


class ServiceNotConfigured(WalletError):
    """Raised when a service name has no catalog price"""

    def __init__(self, service_name: str):
        self.service_name = service_name
        super().__init__(f"Service '{service_name}' not found in token costs")


class PlanNotFound(WalletError):
    """Raised when a subscription plan does not exist"""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan '{plan_id}' not found")


class PaymentAlreadyProcessed(WalletError):
    """Raised when a payment id was already used for a purchase"""

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment '{payment_id}' already processed")


class PaymentIdRequired(WalletError):
    """Raised when a purchase is submitted without a payment id"""

    def __init__(self):
        super().__init__("Payment ID is required")


class InvalidAmount(WalletError, ValueError):
    """Raised when a credit amount is not a positive integer"""
    pass


class InvalidLimit(WalletError, ValueError):
    """Raised when a history limit is outside the allowed range"""
    pass


class IdempotencyKeyConflict(WalletError):
    """Raised when an idempotency key is reused for a different service"""

    def __init__(self, idempotency_key: str, service_name: str, previous_service: str):
        self.idempotency_key = idempotency_key
        self.service_name = service_name
        self.previous_service = previous_service
        super().__init__(
            f"Idempotency key '{idempotency_key}' was already used for '{previous_service}', "
            f"not '{service_name}'"
        )
