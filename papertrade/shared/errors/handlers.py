"""
Centralized error handlers for FastAPI.

Maps domain-specific errors to HTTP responses.
No stack traces or internal details are exposed to clients.
All error responses share the ErrorResponse shape: error, code, detail.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from papertrade.domain.trading.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InsufficientHoldingsError,
    InvalidPriceError,
    InvalidQuantityError,
    PersistenceFailureError,
    SymbolNotFoundError,
    TradingDomainError,
    UnauthenticatedError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

HTTP_400 = 400
HTTP_401 = 401
HTTP_404 = 404
HTTP_409 = 409
HTTP_422 = 422
HTTP_500 = 500
HTTP_502 = 502


def _error_response(
    status_code: int, error: str, code: str, detail: str | None = None
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: dict[str, str | None] = {"error": error, "code": code}
    if detail:
        body["detail"] = detail
    headers = {"WWW-Authenticate": "Bearer"} if status_code == HTTP_401 else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Register all domain error handlers on the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(InvalidQuantityError)
    async def handle_invalid_quantity(
        _request: Request, exc: InvalidQuantityError
    ) -> JSONResponse:
        logger.debug("Rejected order: %s", exc.message)
        return _error_response(HTTP_400, "Invalid quantity", exc.code, exc.message)

    @app.exception_handler(InvalidPriceError)
    async def handle_invalid_price(
        _request: Request, exc: InvalidPriceError
    ) -> JSONResponse:
        logger.debug("Rejected order: %s", exc.message)
        return _error_response(HTTP_400, "Invalid price", exc.code, exc.message)

    @app.exception_handler(UnauthenticatedError)
    async def handle_unauthenticated(
        _request: Request, exc: UnauthenticatedError
    ) -> JSONResponse:
        return _error_response(HTTP_401, "Authentication required", exc.code)

    @app.exception_handler(AccountNotFoundError)
    async def handle_account_not_found(
        _request: Request, exc: AccountNotFoundError
    ) -> JSONResponse:
        """Handle users without a paper trading balance."""
        logger.warning("Account not found: %s", exc.user_id)
        return _error_response(HTTP_404, "Account not found", exc.code)

    @app.exception_handler(SymbolNotFoundError)
    async def handle_symbol_not_found(
        _request: Request, exc: SymbolNotFoundError
    ) -> JSONResponse:
        """Handle missing stock symbol errors."""
        logger.warning("Symbol not found: %s", exc.symbol)
        return _error_response(HTTP_404, "Symbol not found", exc.code, exc.symbol)

    @app.exception_handler(InsufficientFundsError)
    async def handle_insufficient_funds(
        _request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        logger.debug("Rejected order: insufficient funds")
        return _error_response(HTTP_409, "Insufficient funds", exc.code, exc.message)

    @app.exception_handler(InsufficientHoldingsError)
    async def handle_insufficient_holdings(
        _request: Request, exc: InsufficientHoldingsError
    ) -> JSONResponse:
        logger.debug("Rejected order: insufficient holdings of %s", exc.symbol)
        return _error_response(HTTP_409, "Insufficient holdings", exc.code, exc.message)

    @app.exception_handler(UpstreamUnavailableError)
    async def handle_upstream_unavailable(
        _request: Request, exc: UpstreamUnavailableError
    ) -> JSONResponse:
        """Handle failures of market data, recommendation or identity services."""
        logger.error("Upstream unavailable: %s", exc.message)
        return _error_response(HTTP_502, "Upstream service unavailable", exc.code, exc.service)

    @app.exception_handler(PersistenceFailureError)
    async def handle_persistence_failure(
        _request: Request, exc: PersistenceFailureError
    ) -> JSONResponse:
        """The trade was rolled back; nothing about the storage error leaks out."""
        logger.error("Ledger persistence failure: %s", exc.reason)
        return _error_response(HTTP_500, "Ledger update failed", exc.code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        return _error_response(HTTP_422, "Invalid request", "validation_error", fields)

    @app.exception_handler(ValueError)
    async def handle_value_error(
        _request: Request, exc: ValueError
    ) -> JSONResponse:
        logger.warning("Invalid input: %s", exc)
        return _error_response(HTTP_422, "Invalid request", "validation_error", str(exc))

    @app.exception_handler(TradingDomainError)
    async def handle_trading_domain(
        _request: Request, exc: TradingDomainError
    ) -> JSONResponse:
        """Catch-all for unhandled trading domain errors."""
        logger.error("Unhandled trading domain error: %s", exc.message)
        return _error_response(HTTP_500, "Internal server error", exc.code)

    @app.exception_handler(Exception)
    async def handle_unexpected(
        _request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected errors. Never exposes internals."""
        logger.exception("Unexpected error: %s", type(exc).__name__)
        return _error_response(HTTP_500, "Internal server error", "internal_error")
