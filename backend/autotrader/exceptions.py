"""
Domain exceptions for the trading backend.

Services and broker clients raise these instead of fastapi.HTTPException.
The AppError handler registered in main.py turns them into
{"success": false, "error": message} responses with the error's status code.
Broker failures all derive from BrokerError so the trading loop can treat
any of them as a failure of the current item.
"""


class AppError(Exception):
    """Base application error with an HTTP-equivalent status code."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AppError):
    """Input validation failure (400)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class BrokerError(AppError):
    """Broker API returned an unexpected error (502)."""

    def __init__(self, message: str = "Broker request failed", status_code: int = 502):
        super().__init__(message, status_code=status_code)


class BrokerUnavailableError(BrokerError):
    """Broker API unreachable or timed out (503)."""

    def __init__(self, message: str = "Broker service unavailable"):
        super().__init__(message, status_code=503)


class OrderRejectedError(BrokerError):
    """Broker refused the request (4xx from the broker, surfaced as 400)."""

    def __init__(self, message: str, broker_status: int = None):
        self.broker_status = broker_status
        super().__init__(message, status_code=400)


class InsufficientBuyingPowerError(AppError):
    """Manual buy exceeds the account's buying power (400)."""

    def __init__(self, required: float, available: float):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient buying power: required {required:.2f}, available {available:.2f}",
            status_code=400,
        )


class RateLimitError(AppError):
    """Too many requests (429)."""

    def __init__(self, message: str, retry_after: int = None):
        self.retry_after = retry_after
        super().__init__(message, status_code=429)
