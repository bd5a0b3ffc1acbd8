"""
ERC-20 Contract Read Client
Reads name(), symbol() and decimals() over JSON-RPC and decodes them

The three calls run concurrently and are all-or-nothing: any failure
(transport, timeout, empty return data, bad encoding) fails the whole fetch.
"""
import asyncio
import logging
from typing import Dict, Optional, Tuple

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from data_sources.models import TokenMetadata, utc_now
from data_sources.networks import NetworkRegistry
from infrastructure.errors import ContractReadError, InvalidAddressError
from infrastructure.rpc import JsonRpcClient, RpcError
from security.validation import is_valid_address, normalize_network_id
from sentry_config import capture_rpc_breadcrumb

logger = logging.getLogger("ERC20Client")

# ERC-20 function selectors
ERC20_SELECTORS = {
    "name": "0x06fdde03",
    "symbol": "0x95d89b41",
    "decimals": "0x313ce567",
}

# Well-known deployments, used only for an advisory warning when an address
# from one network is queried on another.
KNOWN_TOKENS: Dict[str, Dict[str, str]] = {
    "mainnet": {
        "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": "USDC",
        "0xdac17f958d2ee523a2206206994597c13d831ec7": "USDT",
        "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2": "WETH",
        "0x6b175474e89094c44da98b954eedeac495271d0f": "DAI",
    },
    "arbitrum": {
        "0xaf88d065e77c8cc2239327c5edb3a432268e5831": "USDC",
        "0x82af49447d8a07e3bd95bd0d56f35241523fbab1": "WETH",
    },
    "polygon": {
        "0x3c499c542cef5e3811e1192ce70d8cc03d5c3359": "USDC",
        "0x7ceb23fd6bc0add59e62ac25578270cff1b9f619": "WETH",
    },
    "optimism": {
        "0x0b2c639c533813f4aa9d7837caf62653d097ff85": "USDC",
    },
    "base": {
        "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913": "USDC",
    },
}


class DecodeError(ValueError):
    """Raw eth_call result could not be decoded"""


def _hex_to_bytes(raw: str) -> bytes:
    if not isinstance(raw, str) or not raw.startswith("0x"):
        raise DecodeError(f"Expected 0x-prefixed hex, got {raw!r}")
    body = raw[2:]
    if not body:
        raise DecodeError("No data returned (address has no contract code or does not implement the call)")
    try:
        return bytes.fromhex(body)
    except ValueError as e:
        raise DecodeError(f"Malformed hex result: {e}") from e


def decode_string(raw: str) -> str:
    """
    Decode an ABI string return value.

    Handles the standard dynamic encoding (offset, length, payload) and the
    legacy bytes32 variant used by old tokens like MKR. NUL padding is never
    part of the result.
    """
    data = _hex_to_bytes(raw)

    if len(data) >= 64:
        try:
            (payload,) = abi_decode(["bytes"], data)
            return payload.decode("utf-8", errors="replace").replace("\x00", "")
        except DecodingError:
            pass

    if len(data) == 32:
        return data.rstrip(b"\x00").decode("utf-8", errors="replace").replace("\x00", "")

    raise DecodeError(f"Cannot decode string from {len(data)} bytes")


def decode_uint8(raw: str) -> int:
    """Decode an ABI uint8 (decimals); values above 255 are rejected"""
    data = _hex_to_bytes(raw)
    if len(data) < 32:
        raise DecodeError(f"Cannot decode uint8 from {len(data)} bytes")
    try:
        (value,) = abi_decode(["uint8"], data[:32])
    except DecodingError as e:
        raise DecodeError(f"decimals out of range: {e}") from e
    return value


def foreign_networks_for(network: str, address: str) -> Tuple[str, ...]:
    """Networks (other than ``network``) where ``address`` is a known token"""
    address = address.lower()
    if address in KNOWN_TOKENS.get(network, {}):
        return ()
    return tuple(n for n, tokens in KNOWN_TOKENS.items() if n != network and address in tokens)


class ERC20MetadataClient:
    """Turns (network, address) into a TokenMetadata via three eth_calls"""

    def __init__(self, registry: NetworkRegistry, rpc: Optional[JsonRpcClient] = None, timeout: float = 10.0):
        self.registry = registry
        self.rpc = rpc or JsonRpcClient(timeout=timeout)
        self.timeout = timeout

    async def _call(self, rpc_url: str, address: str, selector: str) -> str:
        return await asyncio.wait_for(self.rpc.eth_call(rpc_url, address, selector), timeout=self.timeout)

    async def fetch_metadata(self, network: str, address: str) -> TokenMetadata:
        network = normalize_network_id(network)
        network_config = await self.registry.resolve(network)

        if not is_valid_address(address):
            raise InvalidAddressError(address)
        address = address.lower()
        contract = Web3.to_checksum_address(address)

        foreign = foreign_networks_for(network, address)
        if foreign:
            logger.warning(
                f"{address} is a known token on {', '.join(foreign)}, not on {network}; "
                f"the read will probably fail"
            )

        logger.debug(f"Reading ERC-20 metadata for {address} on {network}")
        capture_rpc_breadcrumb("erc20_metadata", network, {"address": address})

        try:
            # all three settle before any failure is reported
            results = await asyncio.gather(
                self._call(network_config.rpc_url, contract, ERC20_SELECTORS["name"]),
                self._call(network_config.rpc_url, contract, ERC20_SELECTORS["symbol"]),
                self._call(network_config.rpc_url, contract, ERC20_SELECTORS["decimals"]),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            name_raw, symbol_raw, decimals_raw = results
            name = decode_string(name_raw)
            symbol = decode_string(symbol_raw)
            decimals = decode_uint8(decimals_raw)
        except asyncio.TimeoutError as e:
            logger.warning(f"RPC timeout after {self.timeout}s for {address} on {network}")
            raise ContractReadError(network, address, e) from e
        except (RpcError, DecodeError) as e:
            logger.warning(f"Contract read failed for {address} on {network}: {e}")
            raise ContractReadError(network, address, e) from e

        logger.info(f"Fetched {symbol} ({name}, {decimals} decimals) at {address} on {network}")

        return TokenMetadata(
            address=address,
            network=network,
            name=name,
            symbol=symbol,
            decimals=decimals,
            cached=False,
            timestamp=utc_now(),
        )
