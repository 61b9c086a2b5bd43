"""
Tests for the HTTP handlers: CORS, method/config/body checks, error
mapping and the happy paths.
"""

from unittest.mock import MagicMock, patch

import pytest

from core.exceptions import (
    OrderPreparationError,
    PollingFailedError,
    PollingTimeoutError,
    PrintfulAPIError,
)
from routes.common import build_order_service, sanitize_recipient
from routes.cors import evaluate_origin, is_preview_origin


ALLOWED_ORIGIN = "https://motocoach.com.au"


def order_payload(**extra):
    payload = {
        "recipient": {"name": "<b>Rider</b>", "address1": "1 Track Rd", "city": "Sydney",
                      "country_code": "AU", "zip": "2000"},
        "items": [{"printfulVariantId": 23133, "quantity": 1, "files": [{"type": "front", "url": "https://x/y.png"}]}],
    }
    payload.update(extra)
    return payload


@pytest.fixture
def order_service():
    service = MagicMock()
    service.create_order.return_value = {
        "success": True, "draft": {"id": 1}, "order": {"id": 1}, "costs": None, "retail_costs": None,
    }
    service.create_quote.return_value = {
        "success": True, "costs": {"total": "1"}, "retail_costs": None, "shipping": None,
        "currency": "USD", "quote": {"id": "t"},
    }
    with patch("routes.printful_order.build_order_service", return_value=service), \
            patch("routes.printful_quote.build_order_service", return_value=service):
        yield service


class TestOriginEvaluation:

    def test_allow_list(self):
        assert evaluate_origin(ALLOWED_ORIGIN, [ALLOWED_ORIGIN]).allowed

    def test_extra_origins(self):
        assert evaluate_origin("http://localhost:3000", [], ["http://localhost:3000"]).allowed

    def test_preview(self):
        decision = evaluate_origin("https://smg-mc-git-feature.vercel.app", [])
        assert decision.allowed and decision.preview
        assert not evaluate_origin("https://smg-mc-git-feature.vercel.app", [], allow_preview=False).allowed

    def test_lookalike_is_not_preview(self):
        assert not is_preview_origin("https://vercel.app.evil.com")
        assert not is_preview_origin("not a url")

    def test_empty_origin(self):
        assert not evaluate_origin("", [ALLOWED_ORIGIN]).allowed


class TestCors:
    """Test CORS handling on the API endpoints."""

    def test_preflight_allowed(self, test_client):
        response = test_client.options("/api/printful-order", headers={"Origin": ALLOWED_ORIGIN})
        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN
        assert "Origin" in response.headers["Vary"]
        assert "POST" in response.headers["Access-Control-Allow-Methods"]
        assert response.headers["Access-Control-Allow-Headers"] == "Content-Type"

    def test_preflight_without_origin(self, test_client):
        response = test_client.options("/api/printful-quote")
        assert response.status_code == 200
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_preflight_disallowed(self, test_client):
        response = test_client.options("/api/printful-order", headers={"Origin": "https://evil.example"})
        assert response.status_code == 403

    def test_disallowed_origin_rejected(self, test_client, order_service):
        response = test_client.post("/api/printful-order", json=order_payload(),
                                    headers={"Origin": "https://evil.example"})
        assert response.status_code == 403
        assert response.get_json() == {"error": "Origin not allowed"}
        order_service.create_order.assert_not_called()

    def test_allowed_origin_headers_on_success(self, test_client, order_service):
        response = test_client.post("/api/printful-order", json=order_payload(),
                                    headers={"Origin": "https://preview-123.vercel.app"})
        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "https://preview-123.vercel.app"


class TestRequestChecks:
    """Test method, configuration and body validation."""

    @pytest.mark.parametrize("path", [
        "/api/printful-order", "/api/printful-quote", "/api/printful-shipping-rates",
    ])
    def test_wrong_method(self, test_client, path):
        response = test_client.get(path)
        assert response.status_code == 405
        assert response.headers["Allow"] == "POST"
        assert response.get_json() == {"error": "Method not allowed"}

    def test_missing_api_key(self, app, test_client, order_service):
        app.config["PRINTFUL_API_KEY"] = ""
        response = test_client.post("/api/printful-order", json=order_payload())
        assert response.status_code == 500
        assert response.get_json()["error"] == "Printful API key is not configured"
        order_service.create_order.assert_not_called()

    def test_invalid_json(self, test_client, order_service):
        response = test_client.post("/api/printful-order", data="not json", content_type="application/json")
        assert response.status_code == 400
        assert response.get_json() == {"error": "Missing order payload"}

    def test_missing_recipient(self, test_client, order_service):
        response = test_client.post("/api/printful-order", json={"items": [{"variant_id": 1}]})
        assert response.status_code == 400
        assert response.get_json() == {"error": "Missing recipient information"}

    def test_missing_items(self, test_client, order_service):
        response = test_client.post("/api/printful-quote", json=order_payload(items=[]))
        assert response.status_code == 400
        assert response.get_json() == {"error": "Order must include at least one item"}
        order_service.create_quote.assert_not_called()


class TestOrderEndpoint:
    """Test POST /api/printful-order."""

    def test_success(self, test_client, order_service):
        response = test_client.post(
            "/api/printful-order",
            json=order_payload(emailContext={"customer": {"email": "a@b.c"}}),
        )

        assert response.status_code == 200
        assert response.get_json()["success"] is True

        sent = order_service.create_order.call_args[0][0]
        assert "emailContext" not in sent
        assert sent["recipient"]["name"] == "Rider"

    def test_polling_timeout_is_504(self, test_client, order_service):
        order_service.create_order.side_effect = PollingTimeoutError("order costs", 90000, 45, "1")

        response = test_client.post("/api/printful-order", json=order_payload())

        assert response.status_code == 504
        body = response.get_json()
        assert body["error"] == "Printful cost calculation did not complete"
        assert "45 attempts" in body["details"]

    def test_polling_failure_is_502_with_body(self, test_client, order_service):
        order_service.create_order.side_effect = PollingFailedError(
            "Printful order costs calculation failed", job_id="1", body={"data": {"costs": {"status": "failed"}}}
        )

        response = test_client.post("/api/printful-order", json=order_payload())

        assert response.status_code == 502
        assert response.get_json()["details"] == {"data": {"costs": {"status": "failed"}}}

    def test_upstream_status_is_mirrored(self, test_client, order_service):
        order_service.create_order.side_effect = PrintfulAPIError(status=400, body={"error": {"message": "bad"}})

        response = test_client.post("/api/printful-order", json=order_payload())

        assert response.status_code == 400
        assert response.get_json() == {
            "error": "Failed to process Printful order",
            "details": {"error": {"message": "bad"}},
        }

    def test_preparation_failure_is_500(self, test_client, order_service):
        order_service.create_order.side_effect = OrderPreparationError(
            "Failed to prepare Printful order item for variant 5: no placements", variant_id=5
        )

        response = test_client.post("/api/printful-order", json=order_payload())

        assert response.status_code == 500
        assert response.get_json()["details"].startswith("Failed to prepare Printful order item for variant 5")


class TestQuoteEndpoint:

    def test_success(self, test_client, order_service):
        response = test_client.post("/api/printful-quote", json=order_payload())
        assert response.status_code == 200
        assert response.get_json()["currency"] == "USD"
        order_service.create_quote.assert_called_once()

    def test_error_label(self, test_client, order_service):
        order_service.create_quote.side_effect = PrintfulAPIError(status=502, body=None)
        response = test_client.post("/api/printful-quote", json=order_payload())
        assert response.status_code == 502
        assert response.get_json()["error"] == "Failed to generate Printful quote"


class TestOrderEndToEnd:
    """Real services, Printful mocked at the client class."""

    def test_order_flow(self, app, test_client):
        printful = MagicMock()
        printful.api_key = "test-key"
        printful.store_id = "store-1"
        printful.get_catalog_variant.return_value = {"data": {
            "id": 23133, "catalog_product_id": 71,
            "placement_dimensions": [{"placement": "front_large"}],
        }}
        printful.get_catalog_product.return_value = {"data": {"techniques": [{"key": "dtg"}]}}
        printful.create_draft_order.return_value = {"data": {
            "id": 10472,
            "costs": {"total": "21.50"},
            "retail_costs": {"total": "39.00"},
        }}
        printful.confirm_order.return_value = {"data": {"id": 10472, "status": "pending"}}

        with patch("routes.common.PrintfulClient", return_value=printful) as client_class:
            response = test_client.post("/api/printful-order", json=order_payload())

        assert response.status_code == 200
        assert response.get_json()["order"] == {"id": 10472, "status": "pending"}
        client_class.assert_called_once_with(
            "test-key", store_id="store-1", base_url="https://api.printful.test", timeout=30.0,
        )

        sent = printful.create_draft_order.call_args[0][0]
        assert sent["items"][0]["placements"] == [{
            "placement": "front_large",
            "technique": "dtg",
            "layers": [{"type": "file", "url": "https://x/y.png"}],
        }]
        assert "store-1:23133" in app.config["VARIANT_CONFIG_CACHE"]


class TestRecipientAndShutdown:
    """Recipient text and the app shutdown event, through the real services."""

    @staticmethod
    def printful(draft):
        printful = MagicMock()
        printful.api_key = "test-key"
        printful.store_id = "store-1"
        printful.get_catalog_variant.return_value = {"data": {
            "id": 23133, "catalog_product_id": 71,
            "placement_dimensions": [{"placement": "front_large"}],
        }}
        printful.get_catalog_product.return_value = {"data": {"techniques": [{"key": "dtg"}]}}
        printful.create_draft_order.return_value = {"data": draft}
        printful.get_order.return_value = {"data": {"id": 10472, "costs": {"calculation_status": "pending"}}}
        printful.confirm_order.return_value = {"data": {"id": 10472}}
        return printful

    def test_recipient_text_reaches_printful_unescaped(self, test_client):
        printful = self.printful({"id": 10472, "costs": {"total": "1"}, "retail_costs": {"total": "2"}})
        payload = order_payload()
        payload["recipient"].update({"name": "Smith & Sons", "company": "<i>A</i> & B", "address2": "Unit \"3\""})

        with patch("routes.common.PrintfulClient", return_value=printful):
            response = test_client.post("/api/printful-order", json=payload)

        assert response.status_code == 200
        recipient = printful.create_draft_order.call_args[0][0]["recipient"]
        assert recipient["name"] == "Smith & Sons"
        assert recipient["company"] == "A & B"
        assert recipient["address2"] == "Unit \"3\""

    def test_sanitize_recipient_trims_and_caps_length(self):
        payload = sanitize_recipient({"recipient": {"name": "  O'Brien & Co  ", "city": "x" * 300, "zip": 2000}})
        assert payload["recipient"]["name"] == "O'Brien & Co"
        assert len(payload["recipient"]["city"]) == 200
        assert payload["recipient"]["zip"] == 2000

    def test_order_service_waits_on_shutdown_event(self, app):
        with app.test_request_context():
            service = build_order_service()
        assert service._cancel_event is app.config["SHUTDOWN_EVENT"]

    def test_shutdown_stops_cost_polling(self, app, test_client):
        printful = self.printful({"id": 10472, "costs": {"calculation_status": "pending"}})
        app.config["SHUTDOWN_EVENT"].set()

        with patch("routes.common.PrintfulClient", return_value=printful):
            response = test_client.post("/api/printful-order", json=order_payload())

        assert response.status_code == 504
        assert response.get_json()["error"] == "Printful cost calculation did not complete"
        printful.get_order.assert_not_called()
        printful.confirm_order.assert_not_called()


class TestShippingEndpoint:
    """Test POST /api/printful-shipping-rates."""

    RECIPIENT = {"address1": "1 Track Rd", "city": "Sydney", "country_code": "AU", "zip": "2000"}

    def test_success(self, test_client):
        printful = MagicMock()
        printful.get_shipping_rates.return_value = {"result": [
            {"id": "STANDARD", "name": "Flat", "rate": "12.50", "currency": "USD"},
            {"id": "CHEAP", "name": "Economy", "rate": "4.00", "currency": "USD"},
        ]}

        with patch("routes.common.PrintfulClient", return_value=printful):
            response = test_client.post("/api/printful-shipping-rates", json={
                "recipient": self.RECIPIENT, "items": [{"variant_id": 1, "quantity": 2}],
            })

        assert response.status_code == 200
        body = response.get_json()
        assert body["cheapestOption"]["id"] == "CHEAP"
        assert len(body["shippingOptions"]) == 2

    def test_validation(self, test_client):
        with patch("routes.common.PrintfulClient"):
            response = test_client.post("/api/printful-shipping-rates", json={
                "recipient": self.RECIPIENT, "items": [{"variant_id": 1}],
            })
        assert response.status_code == 400
        assert response.get_json() == {"error": "Each item must have variant_id and quantity"}

    def test_upstream_error(self, test_client):
        printful = MagicMock()
        printful.get_shipping_rates.side_effect = PrintfulAPIError(
            status=400, body={"error": {"message": "Invalid zip"}}
        )
        with patch("routes.common.PrintfulClient", return_value=printful):
            response = test_client.post("/api/printful-shipping-rates", json={
                "recipient": self.RECIPIENT, "items": [{"variant_id": 1, "quantity": 1}],
            })
        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid zip"


class TestHealth:

    def test_health(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["printful"]["api_key_configured"] is True
        assert body["printful"]["store"]["id"] == "store-1"

    def test_health_without_store(self, app, test_client):
        app.config["PRINTFUL_STORE_ID"] = ""
        body = test_client.get("/health").get_json()
        assert body["printful"]["store"] is None

    def test_unknown_route_is_json_404(self, test_client):
        response = test_client.get("/nope")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Not found"}
