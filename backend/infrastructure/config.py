"""
Configuration Management for the Token Metadata API
Environment-based configuration with per-network RPC overrides

Features:
- Environment-based config (dev/staging/prod)
- Static or dynamic network registry selection
- Optional cache snapshot location
- Dynamic reload
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from enum import Enum

logger = logging.getLogger("Config")


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class RegistryMode(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


DEFAULT_CHAIN_LIST_URL = "https://chainlist.org/rpcs.json"
RPC_OVERRIDE_PREFIX = "RPC_URL_"


@dataclass
class BlockchainConfig:
    """Network registry and RPC configuration"""
    registry_mode: RegistryMode = RegistryMode.STATIC
    chain_list_url: str = DEFAULT_CHAIN_LIST_URL
    registry_refresh_seconds: float = 300.0
    rpc_timeout_seconds: float = 10.0

    # network id -> endpoint, applied on top of the static table
    rpc_overrides: Dict[str, str] = field(default_factory=dict)


@dataclass
class CacheConfig:
    """Metadata cache configuration"""
    snapshot_path: Optional[str] = None

    @property
    def snapshot_enabled(self) -> bool:
        return bool(self.snapshot_path)


@dataclass
class APIConfig:
    """HTTP surface configuration"""
    title: str = "Token Metadata API"
    version: str = "1.0.0"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class MonitoringConfig:
    """Monitoring configuration"""
    log_level: str = "INFO"
    sentry_dsn: Optional[str] = None


@dataclass
class TokenApiConfig:
    """Main application configuration"""
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True

    blockchain: BlockchainConfig = field(default_factory=BlockchainConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    api: APIConfig = field(default_factory=APIConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "TokenApiConfig":
        """Create configuration from environment variables"""
        env_vars = os.environ if environ is None else environ
        env = env_vars.get("TOKEN_API_ENV", "development").lower()

        config = cls(
            environment=Environment(env) if env in [e.value for e in Environment] else Environment.DEVELOPMENT,
            debug=env_vars.get("DEBUG", "true").lower() == "true",
        )

        mode = env_vars.get("REGISTRY_MODE", "static").lower()
        if mode not in [m.value for m in RegistryMode]:
            logger.warning(f"Unknown REGISTRY_MODE '{mode}', falling back to static")
            mode = RegistryMode.STATIC.value

        config.blockchain = BlockchainConfig(
            registry_mode=RegistryMode(mode),
            chain_list_url=env_vars.get("CHAIN_LIST_URL", DEFAULT_CHAIN_LIST_URL),
            registry_refresh_seconds=float(env_vars.get("REGISTRY_REFRESH_SECONDS", "300")),
            rpc_timeout_seconds=float(env_vars.get("RPC_TIMEOUT_SECONDS", "10")),
            rpc_overrides={
                key[len(RPC_OVERRIDE_PREFIX):].lower().replace("_", "-"): value
                for key, value in env_vars.items()
                if key.startswith(RPC_OVERRIDE_PREFIX) and value
            },
        )

        config.cache = CacheConfig(
            snapshot_path=env_vars.get("CACHE_SNAPSHOT_PATH") or None,
        )

        origins = env_vars.get("CORS_ORIGINS", "*")
        config.api = APIConfig(
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()] or ["*"],
        )

        config.monitoring = MonitoringConfig(
            log_level=env_vars.get("LOG_LEVEL", "INFO").upper(),
            sentry_dsn=env_vars.get("SENTRY_DSN") or None,
        )

        # Production hardening
        if config.environment == Environment.PRODUCTION:
            config.debug = False
            if "LOG_LEVEL" not in env_vars:
                config.monitoring.log_level = "WARNING"

        return config

    def to_dict(self) -> Dict:
        """Convert to dictionary (hiding secrets and keyed RPC URLs)"""
        def sanitize(obj):
            if isinstance(obj, dict):
                return {
                    k: sanitize(v) for k, v in obj.items()
                    if not any(s in k.lower() for s in ("dsn", "secret", "override"))
                }
            elif hasattr(obj, '__dataclass_fields__'):
                return sanitize({k: getattr(obj, k) for k in obj.__dataclass_fields__})
            elif isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, list):
                return [sanitize(v) for v in obj]
            else:
                return obj

        return sanitize(self)


# ============================================
# GLOBAL INSTANCE
# ============================================

config = TokenApiConfig.from_env()


def get_config() -> TokenApiConfig:
    """Get the global configuration"""
    return config


def reload_config() -> TokenApiConfig:
    """Reload configuration from environment"""
    global config
    config = TokenApiConfig.from_env()
    logger.info(f"Configuration reloaded for environment: {config.environment.value}")
    return config
