"""
Token Metadata API Security Module
Input validation and response models
"""

from .validation import (
    # Validators
    is_valid_address,
    validate_ethereum_address,
    normalize_network_id,
    normalize_symbol,

    # Models
    TokenMetadataModel,
    ErrorResponse,
    HealthResponse,
    NetworksResponse,
)

__all__ = [
    "is_valid_address",
    "validate_ethereum_address",
    "normalize_network_id",
    "normalize_symbol",
    "TokenMetadataModel",
    "ErrorResponse",
    "HealthResponse",
    "NetworksResponse",
]
