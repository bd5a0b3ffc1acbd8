"""
Sentry Error Monitoring Configuration
Error tracking for the Token Metadata API
"""
import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger("Sentry")

SENSITIVE_KEYS = ['authorization', 'api_key', 'secret', 'token', 'password', 'jwt']


def filter_sensitive_data(event, hint):
    """Remove credentials and RPC keys from Sentry events."""
    request = event.get('request') or {}

    headers = request.get('headers')
    if isinstance(headers, dict):
        for key in list(headers):
            if key.lower() in SENSITIVE_KEYS:
                headers[key] = '[FILTERED]'

    # Alchemy/Infura style URLs carry the API key in the path
    for breadcrumb in (event.get('breadcrumbs') or {}).get('values', []):
        data = breadcrumb.get('data') or {}
        if 'rpc_url' in data:
            data['rpc_url'] = '[FILTERED]'

    return event


def init_sentry(dsn: Optional[str], environment: str = "development", release: str = "local") -> bool:
    """Initialize Sentry when a DSN is configured."""
    if not dsn:
        logger.info("No SENTRY_DSN found - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,

        traces_sample_rate=0.2,

        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR
            ),
        ],

        before_send=filter_sensitive_data,

        send_default_pii=False,

        release=f"token-metadata-api@{release}",

        # Expected upstream failures are reported through ContractReadError logs
        ignore_errors=[
            ConnectionRefusedError,
            TimeoutError,
        ],
    )

    logger.info(f"Sentry initialized for {environment} (release: {release[:8]})")
    return True


def capture_rpc_breadcrumb(action: str, network: str, details: Optional[dict] = None):
    """Add breadcrumb for an on-chain read."""
    sentry_sdk.add_breadcrumb(
        category="blockchain",
        message=action,
        level="info",
        data={"network": network, **(details or {})}
    )
