"""
Token Metadata Services
Metadata cache and the resolution service built on it
"""

from .token_cache import TokenMetadataCache, CACHE_TTL_SECONDS
from .token_metadata import TokenMetadataService, create_token_service

__all__ = [
    # Cache
    "TokenMetadataCache",
    "CACHE_TTL_SECONDS",

    # Resolution
    "TokenMetadataService",
    "create_token_service",
]
