"""
Arduino IoT Cloud access

    token.py      - TokenProvider: cached client-credentials bearer token
    properties.py - Property model and PropertyIndex (variable name, then name)
    gateway.py    - PropertyGateway contract and the live CloudGateway
    mock.py       - MockGateway used when credentials are missing

build_gateway() selects the implementation once at startup.
"""
import logging
from typing import Callable, Optional

from mothership.cloud.gateway import CloudGateway, PropertyGateway
from mothership.cloud.mock import MockGateway
from mothership.cloud.properties import Property, PropertyIndex
from mothership.cloud.token import AccessToken, TokenProvider

log = logging.getLogger(__name__)

__all__ = [
    "AccessToken",
    "CloudGateway",
    "MockGateway",
    "Property",
    "PropertyGateway",
    "PropertyIndex",
    "TokenProvider",
    "build_gateway",
]


def build_gateway(settings, last_reading: Optional[Callable[[str], Optional[float]]] = None) -> PropertyGateway:
    """Return a CloudGateway when credentials are configured, else a MockGateway."""
    if settings.mock_mode:
        missing = "credentials" if not settings.has_credentials else "SPACE_ID"
        log.warning(f"Cloud {missing} not configured - running in mock mode")
        return MockGateway(last_reading=last_reading)
    token_provider = TokenProvider(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        api_base=settings.api_base,
        space_id=settings.space_id,
        require_space=settings.require_space,
        timeout=settings.timeout,
    )
    log.info(f"Using Arduino IoT Cloud at {settings.api_base}")
    return CloudGateway(
        token_provider,
        api_base=settings.api_base,
        space_id=settings.space_id,
        timeout=settings.timeout,
        poolmaxsize=settings.pool_maxsize,
    )
