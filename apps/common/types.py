"""
Type system for the Storefront platform
Rust-inspired Result pattern used at every service boundary.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

# Type variables for generic Result
T = TypeVar('T')  # Success type
E = TypeVar('E')  # Error type
U = TypeVar('U')

# ===============================================================================
# RESULT TYPES
# ===============================================================================

@dataclass(frozen=True)
class Ok(Generic[T]):
    """Success result containing a value"""
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the success value"""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get the success value (ignores default)"""
        return self.value

    def map(self, func: Callable[[T], U]) -> Ok[U]:
        """Transform the success value"""
        return Ok(func(self.value))

    def and_then(self, func: Callable[[T], Result[U, Any]]) -> Result[U, Any]:
        """Chain another fallible step"""
        return func(self.value)


@dataclass(frozen=True)
class Err(Generic[E]):
    """Error result containing an error value"""
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> Any:
        """Raises an exception - use unwrap_or() for safe access"""
        raise ValueError(f"Called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Get the default value since this is an error"""
        return default

    def map(self, func: Callable[[Any], Any]) -> Err[E]:
        """No-op for error results"""
        return self

    def and_then(self, func: Callable[[Any], Any]) -> Err[E]:
        """No-op for error results"""
        return self


# Result type alias
Result = Ok[T] | Err[E]

# ===============================================================================
# BUSINESS TYPES
# ===============================================================================

OrderNumber = str  # Order reference: "ORD-20240131120000-A1B2C3"
PromocodeString = str  # Normalized uppercase promocode: "SPRING10"
PaymentReference = str  # Reference echoed back by the payment provider
IdempotencyKeyString = str  # Client-supplied retry key, 16-255 chars

# ===============================================================================
# BUSINESS ERRORS
# ===============================================================================

class BusinessError(Exception):
    """
    Base exception for business rule violations.

    Raised inside transactions so the surrounding atomic block rolls back,
    then returned to callers as Err(error) and rendered by the API layer.
    """

    code: str = 'business_error'
    http_status: int = 400
    default_message: str = 'Business rule violated'

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {'error': self.code, 'message': self.message}
        if self.details:
            payload['details'] = self.details
        return payload
