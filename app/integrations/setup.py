"""
Connector selection.

A single lookup from the integration's platform to its connector class;
construction validates the integration's configuration and raises before
any request can be made.
"""

import logging
from typing import Dict, Type

from app.core.enums import PlatformName
from app.core.exceptions import UnsupportedPlatformError
from app.integrations.base import PlatformConnector
from app.integrations.platforms.amazon import AmazonConnector
from app.integrations.platforms.etsy import EtsyConnector
from app.integrations.platforms.shopify import ShopifyConnector

logger = logging.getLogger(__name__)

CONNECTORS: Dict[PlatformName, Type[PlatformConnector]] = {
    PlatformName.SHOPIFY: ShopifyConnector,
    PlatformName.ETSY: EtsyConnector,
    PlatformName.AMAZON: AmazonConnector,
}


def create_connector(integration, *, sleep=None, transport=None, settings=None) -> PlatformConnector:
    """
    Build the connector for an integration.

    Raises:
        UnsupportedPlatformError: no connector for the platform
        ConnectorConfigurationError: a required integration field is missing
    """
    try:
        platform = PlatformName(getattr(integration.platform, "value", integration.platform))
        connector_cls = CONNECTORS[platform]
    except (ValueError, KeyError):
        logger.error(f"Unsupported platform '{integration.platform}' for store integration {integration.id}")
        raise UnsupportedPlatformError(f"Unsupported platform: {integration.platform}")

    return connector_cls(integration, sleep=sleep, transport=transport, settings=settings)
