"""
Store context resolution.

Every Printful call that is store-scoped needs X-PF-Store-Id. The store
comes from configuration; resolution is cached and redone only when the
configured values change (e.g. a .env reload in development).
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from core.cache import MemoryCache
from core.exceptions import ConfigurationError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

STORE_CACHE_KEY = "store_context"


class StoreContextResolver:
    """Resolves {id, name, source, selling_region} for the configured store."""

    def __init__(self, cache: Optional[MemoryCache] = None):
        self.cache = cache if cache is not None else MemoryCache("store_context")

    def resolve(
        self,
        store_id: Optional[str],
        store_name: Optional[str] = None,
        selling_region: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Resolve the store context.

        Args:
            store_id: PRINTFUL_STORE_ID
            store_name: PRINTFUL_STORE_NAME
            selling_region: PRINTFUL_SELLING_REGION

        Returns:
            Dict with id, name, source ("env") and selling_region

        Raises:
            ConfigurationError: If no store id is configured
        """
        resolved_id = str(store_id).strip() if store_id is not None else ""
        if not resolved_id:
            raise ConfigurationError("PRINTFUL_STORE_ID", "Printful store ID is not configured")

        context = {
            "id": resolved_id,
            "name": (store_name or "").strip() or None,
            "source": "env",
            "selling_region": (selling_region or "").strip() or None,
        }

        cached = self.cache.get(STORE_CACHE_KEY)
        if cached == context:
            return cached

        logger.info(f"Resolved Printful store {resolved_id} ({context['name'] or 'unnamed'})")
        self.cache.set(STORE_CACHE_KEY, context)
        return context
