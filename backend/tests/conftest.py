"""
Pytest Configuration for Token Metadata API Tests

Run all tests: python -m pytest tests/ -v
Run unit tests only: python -m pytest tests/ -v -m "not integration"
"""

import pytest
import sys
from pathlib import Path
from typing import Dict, List

from eth_abi import encode as abi_encode

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from data_sources.erc20 import ERC20_SELECTORS
from infrastructure.rpc import RpcError


# =============================================================================
# HELPERS
# =============================================================================

def encode_string(value: str) -> str:
    return "0x" + abi_encode(["string"], [value]).hex()


def encode_uint8(value: int) -> str:
    return "0x" + abi_encode(["uint256"], [value]).hex()


class FakeRpc:
    """
    Stand-in for JsonRpcClient.eth_call.

    ``tokens`` maps lowercase address -> {selector: raw hex | Exception}.
    Every call is recorded so tests can assert how many reads happened.
    """

    def __init__(self, tokens: Dict[str, Dict[str, object]]):
        self.tokens = tokens
        self.calls: List[tuple] = []

    async def eth_call(self, rpc_url: str, to: str, data: str, block: str = "latest") -> str:
        self.calls.append((rpc_url, to, data))
        result = self.tokens.get(to.lower(), {}).get(data, "0x")
        if isinstance(result, Exception):
            raise result
        return result


def erc20_responses(name: str, symbol: str, decimals: int) -> Dict[str, object]:
    return {
        ERC20_SELECTORS["name"]: encode_string(name),
        ERC20_SELECTORS["symbol"]: encode_string(symbol),
        ERC20_SELECTORS["decimals"]: encode_uint8(decimals),
    }


# =============================================================================
# FIXTURES - Shared across all test files
# =============================================================================

@pytest.fixture
def test_addresses():
    """Well-known token addresses"""
    return {
        "USDC_ARB": "0xaf88d065e77c8cc2239327c5edb3a432268e5831",
        "USDC_MAINNET": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "MKR": "0x9f8F72aA9304c8B593d555F12eF6589cC3A579A2",
        "EOA": "0xa30A689ec0F9D717C5bA1098455B031b868B720f",
    }


@pytest.fixture
def fake_rpc(test_addresses):
    """RPC stub knowing USDC on Arbitrum and USDC on mainnet"""
    return FakeRpc({
        test_addresses["USDC_ARB"]: erc20_responses("USD Coin", "USDC", 6),
        test_addresses["USDC_MAINNET"].lower(): erc20_responses("USD Coin", "USDC", 6),
    })


@pytest.fixture
def failing_rpc():
    """RPC stub where every call fails at the transport level"""
    class _Failing(FakeRpc):
        async def eth_call(self, rpc_url, to, data, block="latest"):
            self.calls.append((rpc_url, to, data))
            raise RpcError("RPC call failed: 503 Service Unavailable", code=503, url=rpc_url)

    return _Failing({})


class FakeClock:
    """Manually advanced epoch-seconds clock"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (use real RPC endpoints)"
    )
