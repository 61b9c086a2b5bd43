"""
Services layer for Moto Shop Web.

This module contains the business logic services:
- VariantConfigResolver: Catalog placement/technique lookup (cached)
- OrderPayloadPreparer: Per-item payload preparation
- CompletionPoller: Bounded polling of Printful async jobs
- StoreContextResolver: Configured store scope
- OrderService: Order and quote workflows
- ShippingRateService: Shipping options
- CatalogService: Storefront catalog (sync products + placements)

Thread Model:
    Each Flask request builds its own PrintfulClient and OrderService;
    the variant, placement and store caches and the shutdown event are
    shared between requests.
"""

from .variant_config import VariantConfigResolver
from .order_preparation import OrderPayloadPreparer
from .polling import CompletionPoller
from .store_context import StoreContextResolver
from .order_service import OrderService
from .shipping_service import ShippingRateService
from .catalog_service import CatalogService

__all__ = [
    "VariantConfigResolver",
    "OrderPayloadPreparer",
    "CompletionPoller",
    "StoreContextResolver",
    "OrderService",
    "ShippingRateService",
    "CatalogService",
]
