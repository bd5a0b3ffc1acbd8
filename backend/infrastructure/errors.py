"""
Error Handling for the Token Metadata API
Typed exceptions with structured context and FastAPI handlers

Features:
- Closed set of error variants for the resolution pipeline
- Status codes chosen from a lookup table keyed by error code
- Uniform JSON error body: {"success": false, "errors": [{code, message}]}
- Error tracking and aggregation for the observability endpoint
- Retry decorator for idempotent upstream fetches
"""

import asyncio
import logging
import traceback
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar
from functools import wraps
from enum import Enum

from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("ErrorHandler")


# ============================================
# ERROR CODES
# ============================================

class ErrorCode(str, Enum):
    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNSUPPORTED_NETWORK = "UNSUPPORTED_NETWORK"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    NOT_FOUND = "NOT_FOUND"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CONTRACT_READ_FAILED = "CONTRACT_READ_FAILED"
    REGISTRY_UNAVAILABLE = "REGISTRY_UNAVAILABLE"


STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.UNSUPPORTED_NETWORK: 400,
    ErrorCode.INVALID_ADDRESS: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.CONTRACT_READ_FAILED: 500,
    ErrorCode.REGISTRY_UNAVAILABLE: 500,
}


def status_for(code: ErrorCode) -> int:
    """HTTP status for an error code (500 when unmapped)"""
    return STATUS_BY_CODE.get(code, 500)


def error_body(status_code: int, message: str) -> Dict[str, Any]:
    """Error response body shared by every failure path"""
    return {
        "success": False,
        "errors": [{"code": status_code, "message": message}],
    }


# ============================================
# CUSTOM EXCEPTIONS
# ============================================

class TokenApiError(Exception):
    """Base exception for the token metadata pipeline"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.timestamp = datetime.now()

    @property
    def status_code(self) -> int:
        return status_for(self.code)

    @property
    def public_message(self) -> str:
        """Message that is safe to return to API clients"""
        return self.message

    def to_dict(self) -> Dict:
        return error_body(self.status_code, self.public_message)


class ValidationError(TokenApiError):
    """Input validation error"""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class UnsupportedNetworkError(TokenApiError):
    """Requested network is not in the registry"""
    def __init__(self, network: str, supported: Optional[List[str]] = None):
        self.network = network
        self.supported = list(supported or [])
        message = f"Unsupported network: {network}"
        if self.supported:
            message += f". Supported networks: {', '.join(self.supported)}"
        super().__init__(
            message,
            ErrorCode.UNSUPPORTED_NETWORK,
            {"network": network, "supported": self.supported}
        )


class InvalidAddressError(TokenApiError):
    """Address is not 0x followed by 40 hex characters"""
    def __init__(self, address: str):
        self.address = address
        super().__init__(
            "Invalid address format. Must be a valid Ethereum address "
            "(0x followed by 40 hex characters)",
            ErrorCode.INVALID_ADDRESS,
            {"address": address}
        )


class ContractReadError(TokenApiError):
    """On-chain read failed (transport error, timeout, no contract code, non ERC-20)"""
    def __init__(self, network: str, address: str, cause: Optional[BaseException] = None):
        self.network = network
        self.address = address
        self.cause = cause
        details = {"network": network, "address": address}
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(
            f"Failed to fetch token metadata for {address} on {network}",
            ErrorCode.CONTRACT_READ_FAILED,
            details
        )

    @property
    def public_message(self) -> str:
        return "Token not found or invalid contract"


class RegistryUnavailableError(TokenApiError):
    """Dynamic registry could not be loaded and no stale copy exists"""
    def __init__(self, source: str, cause: Optional[BaseException] = None):
        self.source = source
        self.cause = cause
        details = {"source": source}
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__("Network registry unavailable", ErrorCode.REGISTRY_UNAVAILABLE, details)


class NotFoundError(TokenApiError):
    """Resource not found"""
    def __init__(self, resource: str, identifier: Optional[str] = None, message: Optional[str] = None):
        if message is None:
            message = f"{resource} not found"
            if identifier:
                message = f"{resource} '{identifier}' not found"
        super().__init__(message, ErrorCode.NOT_FOUND, {"resource": resource, "identifier": identifier})


# ============================================
# ERROR TRACKING
# ============================================

class ErrorTracker:
    """Tracks and aggregates errors for monitoring"""

    def __init__(self, max_errors: int = 1000):
        self.errors: list = []
        self.max_errors = max_errors
        self.error_counts: Dict[str, int] = {}

    def track(self, error: Exception, request_path: Optional[str] = None):
        """Track an error"""
        error_type = type(error).__name__

        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        error_info = {
            "type": error_type,
            "message": str(error),
            "path": request_path,
            "timestamp": datetime.now().isoformat(),
        }

        if isinstance(error, TokenApiError):
            error_info["code"] = error.code.value
            error_info["details"] = error.details

        self.errors.append(error_info)

        if len(self.errors) > self.max_errors:
            self.errors = self.errors[-self.max_errors:]

        if not isinstance(error, TokenApiError) or error.status_code >= 500:
            logger.error(f"Error tracked: {error_type} - {str(error)[:200]}")

    def get_stats(self) -> Dict:
        """Get error statistics"""
        return {
            "total_errors": len(self.errors),
            "error_counts": dict(self.error_counts),
            "recent_errors": self.errors[-10:],
            "timestamp": datetime.now().isoformat()
        }

    def clear(self):
        """Clear error history"""
        self.errors.clear()
        self.error_counts.clear()


# ============================================
# RETRY LOGIC
# ============================================

T = TypeVar('T')


def retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple = (Exception,)
):
    """
    Decorator for automatic retry with exponential backoff.

    Usage:
        @retry(max_attempts=2, delay=0.5)
        async def fetch_chain_list():
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            last_exception = None
            current_delay = delay

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt < max_attempts - 1:
                        logger.warning(f"Retry {attempt + 1}/{max_attempts} for {func.__name__}: {e}")
                        await asyncio.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(f"All retries failed for {func.__name__}: {e}")

            raise last_exception

        return wrapper
    return decorator


# ============================================
# FASTAPI EXCEPTION HANDLERS
# ============================================

def _tracker_for(request: Request) -> ErrorTracker:
    return request.app.state.error_tracker


async def token_api_exception_handler(request: Request, exc: TokenApiError) -> JSONResponse:
    """Handle TokenApiError exceptions"""
    _tracker_for(request).track(exc, str(request.url.path))

    if isinstance(exc, ContractReadError):
        # the client only sees the generic message
        logger.warning(f"Contract read failed: {exc.details}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions, including unknown routes"""
    _tracker_for(request).track(exc, str(request.url.path))

    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route {request.method} {request.url.path} not found"
    else:
        message = str(exc.detail)

    return JSONResponse(status_code=exc.status_code, content=error_body(exc.status_code, message))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle malformed request parameters"""
    _tracker_for(request).track(exc, str(request.url.path))

    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg')}")

    return JSONResponse(status_code=400, content=error_body(400, f"Validation error: {', '.join(parts)}"))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    _tracker_for(request).track(exc, str(request.url.path))

    logger.error(f"Unhandled exception: {''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}")

    return JSONResponse(status_code=500, content=error_body(500, "Internal server error"))


def register_exception_handlers(app):
    """Register all exception handlers with a FastAPI app"""
    if not hasattr(app.state, "error_tracker"):
        app.state.error_tracker = ErrorTracker()

    app.add_exception_handler(TokenApiError, token_api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
