"""
Token metadata value objects shared by the registry, contract client and cache.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with a Z suffix (2024-01-15T10:30:00.000Z)"""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be an ISO-8601 string, got {value!r}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class NetworkConfig:
    """RPC endpoint and chain id for one network"""
    name: str
    rpc_url: str
    chain_id: int
    chain_slug: Optional[str] = None


@dataclass
class TokenMetadata:
    """
    Resolved state of one ERC-20 contract on one network.

    ``address`` is always stored lowercase. ``cached`` is a read-time
    annotation: the cache never stores it as True.
    """
    address: str
    network: str
    name: str
    symbol: str
    decimals: int
    cached: bool = False
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.address = self.address.lower()

    def copy(self, **changes) -> "TokenMetadata":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "network": self.network,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "cached": self.cached,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenMetadata":
        return cls(
            address=str(data["address"]),
            network=str(data["network"]),
            name=str(data["name"]),
            symbol=str(data["symbol"]),
            decimals=int(data["decimals"]),
            cached=bool(data.get("cached", False)),
            timestamp=parse_timestamp(data["timestamp"]),
        )
