"""
Token Metadata Service
Cache first, on-chain read on miss, cache population after a fresh fetch.

This is the only entry point the HTTP routers use.
"""
import asyncio
import logging
from typing import List, Optional

from data_sources.erc20 import ERC20MetadataClient
from data_sources.models import TokenMetadata
from data_sources.networks import NetworkRegistry, build_registry
from infrastructure.config import TokenApiConfig, get_config
from infrastructure.errors import NotFoundError, UnsupportedNetworkError
from infrastructure.rpc import JsonRpcClient
from security.validation import normalize_network_id
from services.token_cache import TokenMetadataCache

logger = logging.getLogger("TokenService")

SYMBOL_LOOKUP_UNAVAILABLE = "Symbol lookup not implemented. Please use address-based lookup instead."


class TokenMetadataService:
    """
    Orchestrates registry, contract client and cache. Holds no state of its own.

    Two concurrent misses for the same key both read on-chain; the cache
    writes are idempotent and the last one wins.
    """

    def __init__(self, cache: TokenMetadataCache, registry: NetworkRegistry, client: ERC20MetadataClient):
        self.cache = cache
        self.registry = registry
        self.client = client

    async def _in_executor(self, func, *args):
        """Cache calls may write the snapshot file; keep them off the event loop"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def _ensure_supported(self, network: str):
        if not await self.registry.is_supported(network):
            raise UnsupportedNetworkError(network, await self.registry.list_supported())

    async def resolve(self, network: str, address: str) -> TokenMetadata:
        """Metadata for (network, address); cached=True only when served from cache"""
        network = normalize_network_id(network)

        cached = await self._in_executor(self.cache.get, network, address)
        if cached is not None:
            logger.info(f"Cache hit for {network}, {address}")
            return cached

        logger.info(f"Cache miss for {network}, {address}")

        # fail fast before any contract call
        await self._ensure_supported(network)

        metadata = await self.client.fetch_metadata(network, address)
        await self._in_executor(self.cache.put, network, address, metadata)

        return metadata

    async def resolve_symbol(self, network: str, symbol: str) -> TokenMetadata:
        """
        Symbol lookup served from the secondary cache index only.

        Symbols are never resolved on-chain; a token becomes findable by
        symbol once it has been fetched by address.
        """
        network = normalize_network_id(network)
        await self._ensure_supported(network)

        cached = await self._in_executor(self.cache.get_by_symbol, network, symbol)
        if cached is not None:
            logger.info(f"Cache hit for {network}, symbol {symbol}")
            return cached

        logger.info(f"Symbol lookup miss for {network}, {symbol}")
        raise NotFoundError("Token", symbol, message=SYMBOL_LOOKUP_UNAVAILABLE)

    async def supported_networks(self) -> List[str]:
        return await self.registry.list_supported()


def create_token_service(
    config: Optional[TokenApiConfig] = None,
    cache: Optional[TokenMetadataCache] = None,
    registry: Optional[NetworkRegistry] = None,
) -> TokenMetadataService:
    """Wire registry, transport, client and cache from configuration"""
    config = config or get_config()
    timeout = config.blockchain.rpc_timeout_seconds

    if registry is None:
        registry = build_registry(config)
    if cache is None:
        cache = TokenMetadataCache(snapshot_path=config.cache.snapshot_path)
    client = ERC20MetadataClient(registry, JsonRpcClient(timeout=timeout), timeout=timeout)

    logger.info(
        f"Token service ready (registry={config.blockchain.registry_mode.value}, "
        f"snapshot={'on' if config.cache.snapshot_enabled else 'off'})"
    )
    return TokenMetadataService(cache, registry, client)
