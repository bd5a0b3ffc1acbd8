"""
Network Registry
Maps network identifiers to RPC endpoints and chain ids

Two interchangeable strategies:
- StaticNetworkRegistry: compiled-in table of 8 EVM networks (env overrides allowed)
- DynamicNetworkRegistry: Chainlist catalog fetched over HTTP, refreshed every
  few minutes, with the last good snapshot kept as a stale fallback
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from data_sources.models import NetworkConfig
from infrastructure.config import RegistryMode, TokenApiConfig
from infrastructure.errors import RegistryUnavailableError, UnsupportedNetworkError, retry
from security.validation import normalize_network_id

logger = logging.getLogger("NetworkRegistry")


# Ordered: listing follows this order
STATIC_NETWORKS: Dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig("mainnet", "https://eth.llamarpc.com", 1),
    "arbitrum": NetworkConfig("arbitrum", "https://arb-mainnet.g.alchemy.com/v2/demo", 42161),
    "polygon": NetworkConfig("polygon", "https://polygon-mainnet.g.alchemy.com/v2/demo", 137),
    "optimism": NetworkConfig("optimism", "https://opt-mainnet.g.alchemy.com/v2/demo", 10),
    "base": NetworkConfig("base", "https://base-mainnet.g.alchemy.com/v2/demo", 8453),
    "sepolia": NetworkConfig("sepolia", "https://eth-sepolia.g.alchemy.com/v2/demo", 11155111),
    "arbitrum-sepolia": NetworkConfig("arbitrum-sepolia", "https://arb-sepolia.g.alchemy.com/v2/demo", 421614),
    "polygon-mumbai": NetworkConfig("polygon-mumbai", "https://polygon-mumbai.g.alchemy.com/v2/demo", 80001),
}


class NetworkRegistry:
    """Common contract: resolve / list_supported / is_supported"""

    async def resolve(self, network_id: str) -> NetworkConfig:
        raise NotImplementedError

    async def list_supported(self) -> List[str]:
        raise NotImplementedError

    async def is_supported(self, network_id: str) -> bool:
        try:
            await self.resolve(network_id)
        except UnsupportedNetworkError:
            return False
        return True


# ============================================
# STATIC TABLE
# ============================================

class StaticNetworkRegistry(NetworkRegistry):
    """Fixed mapping, zero I/O"""

    def __init__(self, overrides: Optional[Dict[str, str]] = None, networks: Optional[Dict[str, NetworkConfig]] = None):
        table = dict(networks if networks is not None else STATIC_NETWORKS)
        for network_id, rpc_url in (overrides or {}).items():
            if network_id in table:
                base = table[network_id]
                table[network_id] = NetworkConfig(base.name, rpc_url, base.chain_id, base.chain_slug)
                logger.info(f"RPC override applied for {network_id}")
            else:
                logger.warning(f"Ignoring RPC override for unknown network: {network_id}")
        self._networks = table

    async def resolve(self, network_id: str) -> NetworkConfig:
        config = self._networks.get(normalize_network_id(network_id))
        if config is None:
            raise UnsupportedNetworkError(network_id, list(self._networks))
        return config

    async def list_supported(self) -> List[str]:
        return list(self._networks)


# ============================================
# DYNAMIC CHAINLIST REGISTRY
# ============================================

def pick_rpc_url(entry: Dict[str, Any]) -> Optional[str]:
    """
    First usable endpoint of a Chainlist entry.

    RPC entries can be strings or objects with a 'url' field. Websocket URLs
    and templated URLs (``${INFURA_API_KEY}``) are not usable.
    """
    for rpc in entry.get("rpc") or []:
        url = rpc.get("url") if isinstance(rpc, dict) else rpc
        if not isinstance(url, str):
            continue
        url = url.strip()
        if not url.startswith(("https://", "http://")):
            continue
        if "${" in url:
            continue
        return url
    return None


def parse_chain_list(payload: Any) -> Dict[str, NetworkConfig]:
    """Turn a Chainlist payload (list, or object with 'chains') into registry entries"""
    if isinstance(payload, dict) and "chains" in payload:
        payload = payload["chains"]
    if not isinstance(payload, list):
        raise ValueError("Chain list payload must be a list of chains")

    networks: Dict[str, NetworkConfig] = {}
    for entry in payload:
        if not isinstance(entry, dict):
            continue

        slug = entry.get("chainSlug") or entry.get("shortName")
        chain_id = entry.get("chainId")
        if not slug or chain_id is None:
            logger.debug(f"Skipping chain entry without slug or id: {entry.get('name')}")
            continue

        network_id = normalize_network_id(str(slug))
        rpc_url = pick_rpc_url(entry)
        if rpc_url is None:
            logger.warning(f"Skipping {network_id}: no usable RPC endpoint")
            continue

        try:
            chain_id = int(chain_id)
        except (TypeError, ValueError):
            logger.warning(f"Skipping {network_id}: invalid chainId {chain_id!r}")
            continue

        if network_id in networks:
            continue

        networks[network_id] = NetworkConfig(
            name=network_id,
            rpc_url=rpc_url,
            chain_id=chain_id,
            chain_slug=entry.get("chainSlug"),
        )

    return networks


class DynamicNetworkRegistry(NetworkRegistry):
    """
    Registry loaded from a remote chain list.

    States:
    - fresh: last successful fetch is younger than ``refresh_seconds``
    - stale: older, still served when a refresh fails
    With no successful fetch at all, a failed refresh raises
    RegistryUnavailableError.
    """

    def __init__(
        self,
        source_url: str,
        refresh_seconds: float = 300.0,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source_url = source_url
        self.refresh_seconds = refresh_seconds
        self.timeout = timeout
        self._client = client
        self._clock = clock
        self._networks: Optional[Dict[str, NetworkConfig]] = None
        self._fetched_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def is_fresh(self) -> bool:
        if self._fetched_at is None:
            return False
        return (self._clock() - self._fetched_at) < self.refresh_seconds

    @property
    def is_stale(self) -> bool:
        return self._networks is not None and not self.is_fresh

    async def _download(self) -> Any:
        if self._client is not None:
            response = await self._client.get(self.source_url, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.source_url)
        response.raise_for_status()
        return response.json()

    @retry(max_attempts=2, delay=0.5, exceptions=(httpx.HTTPError, ValueError))
    async def _fetch(self) -> Dict[str, NetworkConfig]:
        payload = await self._download()
        networks = parse_chain_list(payload)
        if not networks:
            raise ValueError("Chain list contained no usable networks")
        return networks

    async def refresh(self, force: bool = True) -> Dict[str, NetworkConfig]:
        """Fetch the chain list; fall back to the stale snapshot on failure"""
        async with self._lock:
            # another caller may have refreshed while we waited
            if not force and self.is_fresh and self._networks is not None:
                return self._networks

            try:
                networks = await self._fetch()
            except (httpx.HTTPError, ValueError) as e:
                if self._networks is not None:
                    logger.warning(f"Registry refresh failed, serving stale copy: {e}")
                    return self._networks
                raise RegistryUnavailableError(self.source_url, e) from e

            self._networks = networks
            self._fetched_at = self._clock()
            logger.info(f"Registry refreshed: {len(networks)} networks from {self.source_url}")
            return networks

    async def _current(self) -> Dict[str, NetworkConfig]:
        if self.is_fresh and self._networks is not None:
            return self._networks
        return await self.refresh(force=False)

    async def resolve(self, network_id: str) -> NetworkConfig:
        networks = await self._current()
        config = networks.get(normalize_network_id(network_id))
        if config is None:
            raise UnsupportedNetworkError(network_id, sorted(networks))
        return config

    async def list_supported(self) -> List[str]:
        networks = await self._current()
        return sorted(networks)


def build_registry(config: TokenApiConfig) -> NetworkRegistry:
    """Registry strategy chosen by configuration"""
    blockchain = config.blockchain
    if blockchain.registry_mode == RegistryMode.DYNAMIC:
        logger.info(f"Using dynamic network registry from {blockchain.chain_list_url}")
        return DynamicNetworkRegistry(
            blockchain.chain_list_url,
            refresh_seconds=blockchain.registry_refresh_seconds,
            timeout=blockchain.rpc_timeout_seconds,
        )
    return StaticNetworkRegistry(overrides=blockchain.rpc_overrides)
