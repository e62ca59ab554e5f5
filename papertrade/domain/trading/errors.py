"""
Domain-specific errors for the trading bounded context.

All errors raised from the domain layer must be defined here.
These are mapped to HTTP responses at the interface layer.
No framework imports allowed.
"""


class TradingDomainError(Exception):
    """Base error for all trading domain errors."""

    code = "trading_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class InvalidQuantityError(TradingDomainError):
    """Raised when a trade quantity is not a positive number."""

    code = "invalid_quantity"

    def __init__(self, quantity: object) -> None:
        super().__init__(f"Invalid quantity: {quantity!r}")
        self.quantity = quantity


class InvalidPriceError(TradingDomainError):
    """Raised when a reference price is not a positive number."""

    code = "invalid_price"

    def __init__(self, symbol: str, price: object) -> None:
        super().__init__(f"Invalid reference price for {symbol}: {price!r}")
        self.symbol = symbol
        self.price = price


class UnauthenticatedError(TradingDomainError):
    """Raised when an operation needs a user and none was resolved."""

    code = "unauthenticated"

    def __init__(self) -> None:
        super().__init__("Authentication required")


class AccountNotFoundError(TradingDomainError):
    """Raised when a user has no paper trading balance."""

    code = "account_not_found"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Trading account not found for user: {user_id}")
        self.user_id = user_id


class InsufficientFundsError(TradingDomainError):
    """Raised when the balance lacks funds for a purchase."""

    code = "insufficient_funds"

    def __init__(self, required: str, available: str) -> None:
        super().__init__(
            f"Insufficient funds: required {required}, available {available}"
        )
        self.required = required
        self.available = available


class InsufficientHoldingsError(TradingDomainError):
    """Raised when a sell exceeds the shares held."""

    code = "insufficient_holdings"

    def __init__(self, symbol: str, requested: str, held: str) -> None:
        super().__init__(
            f"Insufficient holdings of {symbol}: requested {requested}, held {held}"
        )
        self.symbol = symbol
        self.requested = requested
        self.held = held


class SymbolNotFoundError(TradingDomainError):
    """Raised when no market data exists for a symbol."""

    code = "symbol_not_found"

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Symbol not found: {symbol}")
        self.symbol = symbol


class UpstreamUnavailableError(TradingDomainError):
    """Raised when a market data, recommendation or identity call fails."""

    code = "upstream_unavailable"

    def __init__(self, service: str, reason: str) -> None:
        super().__init__(f"{service} unavailable: {reason}")
        self.service = service
        self.reason = reason


class PersistenceFailureError(TradingDomainError):
    """Raised when the ledger store rejects a write.

    Always raised after the storage transaction was rolled back.
    """

    code = "persistence_failure"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Ledger persistence failed: {reason}")
        self.reason = reason
