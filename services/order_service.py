"""
Order and quote workflows.

Orchestrates one Printful order submission end to end:

    prepare payload -> create draft (confirm=false) -> wait for costs
                    -> confirm draft -> return draft/order/costs

and one quote:

    prepare payload -> create estimation task -> wait for estimation
                    -> return costs/retail_costs/shipping/currency

Both block the calling thread while polling (up to the configured budget),
so they run inside the request handler that called them.

Usage:
    service = OrderService(client, preparer, store_id="12345")
    result = service.create_order(payload)
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional

from core.exceptions import PollingError, PrintfulAPIError
from core.printful_client import (
    PrintfulClient,
    extract_confirm_url,
    extract_order_data,
    extract_order_id,
    extract_task_id,
)
from modules.money import block_currency, has_totals
from modules.order_items import describe_item
from services.order_preparation import OrderPayloadPreparer
from services.polling import (
    ESTIMATION_INTERVAL_MS,
    ESTIMATION_TIMEOUT_MS,
    ORDER_COSTS_INTERVAL_MS,
    ORDER_COSTS_TIMEOUT_MS,
    wait_for_order_costs,
    wait_for_order_estimation,
)
from logging_config import get_logger, get_order_logger


# Module logger
logger = get_logger(__name__)


class OrderService:
    """
    Submits orders and quotes to Printful.

    One instance per request is fine; it holds no per-order state.
    """

    def __init__(
        self,
        client: PrintfulClient,
        preparer: OrderPayloadPreparer,
        store_id: Optional[str] = None,
        costs_interval_ms: int = ORDER_COSTS_INTERVAL_MS,
        costs_timeout_ms: int = ORDER_COSTS_TIMEOUT_MS,
        quote_interval_ms: int = ESTIMATION_INTERVAL_MS,
        quote_timeout_ms: int = ESTIMATION_TIMEOUT_MS,
        cancel_event: Optional[threading.Event] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], bool]] = None
    ):
        self._client = client
        self._preparer = preparer
        self._store_id = store_id or client.store_id
        self._costs_interval_ms = costs_interval_ms
        self._costs_timeout_ms = costs_timeout_ms
        self._quote_interval_ms = quote_interval_ms
        self._quote_timeout_ms = quote_timeout_ms
        self._cancel_event = cancel_event
        self._clock = clock
        self._sleep = sleep

    def _prepare(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._preparer.prepare_order_payload(payload, api_key=self._client.api_key, store_id=self._store_id)

        if not payload.get("items") and isinstance(payload.get("order_items"), list):
            payload["items"] = payload["order_items"]

        if not payload.get("source"):
            payload["source"] = "catalog"

        for item in payload.get("items") or []:
            if isinstance(item, dict):
                logger.debug(f"Prepared item: {describe_item(item)}")

        return payload

    # =========================================================================
    # ORDERS
    # =========================================================================

    def create_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create, cost and confirm a Printful order.

        Args:
            payload: Validated order payload (recipient + items)

        Returns:
            {success, draft, order, costs, retail_costs}

        Raises:
            OrderPreparationError: An item could not be prepared
            PrintfulAPIError: Upstream failure, or no order id in the draft
            PollingError: Costs never calculated and the draft had none
        """
        self._prepare(payload)
        logger.info(f"Submitting draft order with {len(payload.get('items') or [])} items")

        create_response = self._client.create_draft_order(payload, store_id=self._store_id)

        order_id = extract_order_id(create_response)
        if not order_id:
            logger.error("Could not extract order ID from draft order response")
            raise PrintfulAPIError(
                "Unable to determine Printful order ID from response",
                status=502,
                body=create_response
            )

        order_logger = get_order_logger(order_id)
        created_order = extract_order_data(create_response) or {}
        has_costs = has_totals(created_order.get("costs"))
        has_retail_costs = has_totals(created_order.get("retail_costs"))

        calculated_order = created_order

        if has_costs and has_retail_costs:
            order_logger.info("Costs already included in draft response, skipping polling")
        else:
            order_logger.info(
                f"Waiting for cost calculation (has_costs={has_costs}, has_retail_costs={has_retail_costs})"
            )
            try:
                result = wait_for_order_costs(
                    self._client,
                    order_id,
                    store_id=self._store_id,
                    interval_ms=self._costs_interval_ms,
                    timeout_ms=self._costs_timeout_ms,
                    cancel_event=self._cancel_event,
                    clock=self._clock,
                    sleep=self._sleep,
                )
                calculated_order = result.data
                order_logger.debug(f"Cost polling finished: {result.to_dict()}")
            except (PollingError, PrintfulAPIError) as e:
                if not has_costs:
                    raise
                order_logger.warning(f"Cost polling failed, using costs from draft response: {e}")

        confirm_url = extract_confirm_url(create_response, calculated_order)
        confirm_response = self._client.confirm_order(order_id, confirm_url=confirm_url, store_id=self._store_id)
        order_logger.info("Order confirmed")

        draft_data = extract_order_data(create_response)
        confirmed_data = extract_order_data(confirm_response)

        return {
            "success": True,
            "draft": draft_data if draft_data is not None else create_response,
            "order": confirmed_data if confirmed_data is not None else confirm_response,
            "costs": calculated_order.get("costs") or None,
            "retail_costs": calculated_order.get("retail_costs") or None,
        }

    # =========================================================================
    # QUOTES
    # =========================================================================

    def create_quote(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Estimate an order's costs without creating it.

        Args:
            payload: Validated order payload (recipient + items)

        Returns:
            {success, costs, retail_costs, shipping, currency, quote}

        Raises:
            OrderPreparationError: An item could not be prepared
            PrintfulAPIError: Upstream failure, or no task id returned
            PollingError: Estimation failed, timed out or was cancelled
        """
        self._prepare(payload)

        task_response = self._client.create_estimation_task(payload, store_id=self._store_id)
        task_id = extract_task_id(task_response)
        if not task_id:
            logger.error("Could not extract estimation task ID from response")
            raise PrintfulAPIError(
                "Unable to determine Printful estimation task ID from response",
                status=502,
                body=task_response
            )

        result = wait_for_order_estimation(
            self._client,
            task_id,
            store_id=self._store_id,
            interval_ms=self._quote_interval_ms,
            timeout_ms=self._quote_timeout_ms,
            cancel_event=self._cancel_event,
            clock=self._clock,
            sleep=self._sleep,
        )

        logger.debug(f"Estimation finished: {result.to_dict()}")
        quote = result.data
        costs = quote.get("costs") or None
        retail_costs = quote.get("retail_costs") or None
        shipping = quote.get("shipping")
        if shipping is None and isinstance(costs, dict):
            shipping = costs.get("shipping")

        currency = block_currency(retail_costs, costs, payload.get("retail_costs"))
        if not currency and isinstance(payload.get("currency"), str):
            currency = payload["currency"] or None

        return {
            "success": True,
            "costs": costs,
            "retail_costs": retail_costs,
            "shipping": shipping,
            "currency": currency,
            "quote": quote,
        }
