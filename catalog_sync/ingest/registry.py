"""Client registry for retailer implementations."""

import logging
from typing import Optional, Type

from catalog_sync.ingest.base import BaseRetailerClient
from catalog_sync.ingest.brand_config import BrandApiConfig, BrandConfigError
from catalog_sync.ingest.http_client import HttpFetcher
from catalog_sync.ingest.retailers.pullbear import PullBearClient
from catalog_sync.ingest.retailers.zara import ZaraClient

logger = logging.getLogger(__name__)


class ClientRegistry:
    """Registry mapping retailer keys to API client classes."""

    _clients: dict[str, Type[BaseRetailerClient]] = {
        "zara": ZaraClient,
        "pullbear": PullBearClient,
    }

    @classmethod
    def create_client(
        cls,
        config: BrandApiConfig,
        fetcher: Optional[HttpFetcher] = None,
    ) -> BaseRetailerClient:
        """
        Build a client for a brand's configuration.

        Args:
            config: Validated brand configuration
            fetcher: Optional fetcher (tests inject one with a mock transport)

        Returns:
            Client instance; the caller closes it

        Raises:
            BrandConfigError: If the retailer is unknown or the brand is browser-only
        """
        client_class = cls._clients.get(config.retailer)
        if client_class is None:
            raise BrandConfigError(
                f"Unknown retailer: {config.retailer}. Available: {list(cls._clients.keys())}"
            )
        return client_class(config, fetcher=fetcher)

    @classmethod
    def supports(cls, config: Optional[BrandApiConfig]) -> bool:
        """True if the brand can be scraped through a registered API client."""
        return (
            config is not None
            and config.supports_api
            and config.retailer in cls._clients
        )
