"""Helper modules for the Moto Shop Web application."""

__all__ = [
    "catalog_products",
    "money",
    "order_items",
    "placement_normalizer",
]
