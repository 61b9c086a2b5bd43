"""
Shipping rate lookup.

Wraps Printful's POST /shipping/rates and picks the cheapest option for
the checkout page.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from core.exceptions import PrintfulAPIError, RequestValidationError, ShopApiError
from core.printful_client import PrintfulClient
from modules.money import parse_amount
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

REQUIRED_RECIPIENT_FIELDS = ("address1", "city", "country_code", "zip")
DEFAULT_CURRENCY = "USD"
DEFAULT_LOCALE = "en_US"

CHEAPEST_OPTION_FIELDS = (
    "id",
    "name",
    "rate",
    "currency",
    "minDeliveryDays",
    "maxDeliveryDays",
    "minDeliveryDate",
    "maxDeliveryDate",
)


def validate_shipping_request(body: Any) -> None:
    """
    Check a shipping-rates request body.

    Raises:
        RequestValidationError: With the message returned to the caller
    """
    if not isinstance(body, dict):
        raise RequestValidationError("Missing required recipient address fields")

    recipient = body.get("recipient")
    if not isinstance(recipient, dict) or not all(recipient.get(f) for f in REQUIRED_RECIPIENT_FIELDS):
        raise RequestValidationError("Missing required recipient address fields")

    items = body.get("items")
    if not isinstance(items, list) or not items:
        raise RequestValidationError("Missing or invalid items array")

    for item in items:
        if not isinstance(item, dict) or not item.get("variant_id") or not item.get("quantity"):
            raise RequestValidationError("Each item must have variant_id and quantity")


def cheapest_option(options: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Pick the option with the lowest numeric rate.

    Options whose rate does not parse sort last; ties keep the first.
    """
    best = None
    best_rate = None
    for option in options:
        rate = parse_amount(option.get("rate"))
        if best is None or (rate is not None and (best_rate is None or rate < best_rate)):
            best = option
            best_rate = rate
    if best is None:
        return None
    return {field_name: best.get(field_name) for field_name in CHEAPEST_OPTION_FIELDS}


class ShippingRateService:
    """Fetches shipping options for a recipient and basket."""

    def __init__(self, client: PrintfulClient):
        self._client = client

    def get_rates(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fetch shipping rates.

        Args:
            body: {recipient, items, currency?, locale?}

        Returns:
            {success, shippingOptions, cheapestOption}

        Raises:
            RequestValidationError: Recipient or items incomplete
            PrintfulAPIError: Upstream rejected the request
            ShopApiError: Upstream answered with an unexpected shape
        """
        validate_shipping_request(body)

        recipient = body["recipient"]
        payload = {
            "recipient": recipient,
            "items": body["items"],
            "currency": body.get("currency") or DEFAULT_CURRENCY,
            "locale": body.get("locale") or DEFAULT_LOCALE,
        }

        logger.info(
            f"Fetching shipping rates for {recipient.get('city')}, {recipient.get('country_code')} "
            f"({len(payload['items'])} items)"
        )

        try:
            response = self._client.get_shipping_rates(payload)
        except PrintfulAPIError as e:
            logger.error(f"Printful shipping rates error: {e.body}")
            upstream_error = e.body.get("error") if isinstance(e.body, dict) else None
            message = "Failed to fetch shipping rates from Printful"
            if isinstance(upstream_error, dict) and upstream_error.get("message"):
                message = upstream_error["message"]
            raise PrintfulAPIError(message, status=e.status, body=e.body, url=e.url) from e

        options = response.get("result") if isinstance(response, dict) else None
        if not isinstance(options, list) or not options:
            logger.error(f"Unexpected Printful shipping rates response: {response}")
            raise ShopApiError("Unexpected response format from Printful", {"response": response})

        cheapest = cheapest_option(options)
        logger.info(f"Shipping rates calculated: {len(options)} options, cheapest {cheapest['rate']} ({cheapest['name']})")

        return {
            "success": True,
            "shippingOptions": options,
            "cheapestOption": cheapest,
        }
