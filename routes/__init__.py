"""
Flask route blueprints for Moto Shop Web.

This package contains the public API used by the storefront:
- printful_order: Order submission (create, cost, confirm)
- printful_quote: Cost estimates for the cart/checkout
- shipping_rates: Shipping options for a recipient
- printful_catalog: Storefront product catalog
- health: Health check

Each blueprint is registered with the Flask app in create_app().
"""

from .printful_order import printful_order_bp
from .printful_quote import printful_quote_bp
from .shipping_rates import shipping_rates_bp
from .printful_catalog import printful_catalog_bp
from .health import health_bp

__all__ = [
    "printful_order_bp",
    "printful_quote_bp",
    "shipping_rates_bp",
    "printful_catalog_bp",
    "health_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(printful_order_bp)
    app.register_blueprint(printful_quote_bp)
    app.register_blueprint(shipping_rates_bp)
    app.register_blueprint(printful_catalog_bp)
    app.register_blueprint(health_bp)
