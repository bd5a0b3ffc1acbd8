"""
Validation helpers and Pydantic models for the Token Metadata API

The resolution pipeline validates its own inputs with the helpers below;
the models describe the JSON the routers return.
"""

import re
from typing import List

from pydantic import BaseModel, Field, field_validator


ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
NETWORK_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,63}$")


# ============================================
# CUSTOM VALIDATORS
# ============================================

def is_valid_address(address: str) -> bool:
    """0x followed by exactly 40 hex characters, any case"""
    return isinstance(address, str) and bool(ADDRESS_PATTERN.match(address))


def validate_ethereum_address(address: str) -> str:
    """Validate Ethereum address format and return it lowercased"""
    if not address:
        raise ValueError("Address is required")
    if not is_valid_address(address):
        raise ValueError("Invalid Ethereum address format")
    return address.lower()


def normalize_network_id(network: str) -> str:
    """Registry keys are lowercase slugs"""
    return network.strip().lower()


def is_valid_network_id(network: str) -> bool:
    return isinstance(network, str) and bool(NETWORK_ID_PATTERN.match(network))


def normalize_symbol(symbol: str) -> str:
    """Symbols compare case-insensitively; the index stores them uppercased"""
    return symbol.strip().upper()


# ============================================
# RESPONSE MODELS
# ============================================

class TokenMetadataModel(BaseModel):
    """Token metadata as returned by GET /tokens/{network}/{address}"""
    address: str = Field(..., description="Lowercase contract address")
    network: str
    name: str
    symbol: str
    decimals: int = Field(..., ge=0, le=255)
    cached: bool
    timestamp: str = Field(..., description="ISO-8601 production instant")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v):
        return validate_ethereum_address(v)


class ErrorItem(BaseModel):
    code: int
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    errors: List[ErrorItem]


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str


class NetworksResponse(BaseModel):
    success: bool = True
    data: List[str]
