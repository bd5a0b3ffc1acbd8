"""
Token Metadata Cache - 24h TTL store in front of the on-chain reads

DESIGN:
- One keyed store: "{network}:address:{address}" plus a secondary
  "{network}:symbol:{SYMBOL}" index written alongside it
- Fixed TTL, no sliding expiry; eviction is lazy (checked on read)
- Provenance: entries are stored with cached=False, hits are returned with
  cached=True
- Optional JSON snapshot after every write, reloaded at startup; a missing
  or corrupt snapshot starts an empty cache
- Guarded by a lock: reads evict, so reads and writes both mutate
"""

import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from data_sources.models import TokenMetadata
from security.validation import normalize_network_id, normalize_symbol

logger = logging.getLogger("TokenCache")

CACHE_TTL_SECONDS = 24 * 60 * 60


@dataclass
class CacheEntry:
    """Stored metadata plus write instant and TTL (both in seconds)"""
    data: TokenMetadata
    timestamp: float
    ttl: float = CACHE_TTL_SECONDS

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl

    def to_dict(self) -> Dict[str, Any]:
        # snapshot stores epoch milliseconds
        return {
            "data": self.data.to_dict(),
            "timestamp": int(round(self.timestamp * 1000)),
            "ttl": int(round(self.ttl * 1000)),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CacheEntry":
        return cls(
            data=TokenMetadata.from_dict(raw["data"]),
            timestamp=float(raw["timestamp"]) / 1000.0,
            ttl=float(raw["ttl"]) / 1000.0,
        )


def address_key(network: str, address: str) -> str:
    return f"{normalize_network_id(network)}:address:{address.lower()}"


def symbol_key(network: str, symbol: str) -> str:
    return f"{normalize_network_id(network)}:symbol:{normalize_symbol(symbol)}"


class TokenMetadataCache:
    """
    In-memory metadata cache with optional file snapshot.

    Usage:
        cache = TokenMetadataCache(snapshot_path="cache.json")
        cache.put("arbitrum", address, metadata)
        hit = cache.get("arbitrum", address)   # hit.cached is True
    """

    def __init__(
        self,
        snapshot_path: Optional[str] = None,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.snapshot_path = snapshot_path
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
        }

        if snapshot_path:
            self._load_snapshot()

    # ============================================
    # LOOKUPS
    # ============================================

    def _lookup(self, key: str) -> Optional[TokenMetadata]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats["misses"] += 1
                logger.debug(f"Cache MISS: {key}")
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._stats["evictions"] += 1
                self._stats["misses"] += 1
                logger.debug(f"Cache EXPIRED: {key}")
                self._save_snapshot()
                return None

            self._stats["hits"] += 1
            logger.debug(f"Cache HIT: {key}")
            return entry.data.copy(cached=True)

    def get(self, network: str, address: str) -> Optional[TokenMetadata]:
        """Metadata for (network, address), or None on miss/expiry"""
        return self._lookup(address_key(network, address))

    def get_by_symbol(self, network: str, symbol: str) -> Optional[TokenMetadata]:
        """Secondary index lookup; only populated by address-based fetches"""
        return self._lookup(symbol_key(network, symbol))

    # ============================================
    # WRITES
    # ============================================

    def put(self, network: str, address: str, metadata: TokenMetadata) -> TokenMetadata:
        """
        Store metadata under the address key (and the symbol index).

        The stored copy always has cached=False and a fresh timestamp.
        Returns the stored copy.
        """
        with self._lock:
            now = self._clock()
            stored = metadata.copy(
                address=address.lower(),
                network=normalize_network_id(network),
                cached=False,
                timestamp=datetime.fromtimestamp(now, tz=timezone.utc),
            )
            self._entries[address_key(network, address)] = CacheEntry(stored, now, self.ttl)
            if stored.symbol:
                self._entries[symbol_key(network, stored.symbol)] = CacheEntry(stored, now, self.ttl)

            self._save_snapshot()
            return stored.copy()

    def clear(self):
        """Drop all entries"""
        with self._lock:
            self._entries.clear()
            self._save_snapshot()
        logger.info("Cache cleared")

    def stats(self) -> Dict[str, Any]:
        """Size and key set, for observability only"""
        with self._lock:
            keys: List[str] = sorted(self._entries)
            return {
                "size": len(keys),
                "keys": keys,
                **self._stats,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ============================================
    # SNAPSHOT
    # ============================================

    def _load_snapshot(self):
        path = self.snapshot_path
        if not os.path.exists(path):
            logger.info(f"No cache snapshot at {path}, starting with empty cache")
            return

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise ValueError("snapshot root must be an object")
            entries = {str(key): CacheEntry.from_dict(value) for key, value in raw.items()}
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Cache snapshot at {path} is unreadable ({e}), starting with empty cache")
            return

        self._entries = entries
        logger.info(f"Loaded {len(entries)} cache entries from {path}")

    def _save_snapshot(self):
        """Write the full mapping; failures are logged, memory stays authoritative"""
        if not self.snapshot_path:
            return

        payload = {key: entry.to_dict() for key, entry in self._entries.items()}
        directory = os.path.dirname(os.path.abspath(self.snapshot_path))
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".token-cache-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, separators=(",", ":"))
            os.replace(tmp_path, self.snapshot_path)
            tmp_path = None
        except OSError as e:
            logger.warning(f"Failed to save cache snapshot (continuing in memory): {e}")
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
