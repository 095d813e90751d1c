#!/usr/bin/env python3
"""
Tests for the HTTP proxy Lambda: service routes, 404s and CORS.

Run with: pytest tests/test_api_handler.py -v
"""
import os
import sys
import json
from unittest.mock import MagicMock, patch

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("AWS_REGION", "ap-south-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "ap-south-1")


def make_deps():
    from nimble.runtime.deps import Deps, DEFAULT_ALLOWED_ORIGINS

    deps = Deps(region="ap-south-1")
    deps.integrations_table = MagicMock()
    deps.http = MagicMock()
    deps.config.update({
        "ENVIRONMENT": "production",
        "SERVICE_VERSION": "1.0.0",
        "ALLOWED_ORIGINS": list(DEFAULT_ALLOWED_ORIGINS),
    })
    return deps


def http_event(method, path, body=None, origin=None):
    headers = {"content-type": "application/json", "user-agent": "pytest"}
    if origin:
        headers["origin"] = origin
    return {
        "version": "2.0",
        "rawPath": path,
        "headers": headers,
        "requestContext": {"http": {"method": method, "path": path}, "requestId": "req-http-1"},
        "body": json.dumps(body) if body is not None else None,
        "isBase64Encoded": False,
    }


def call(event, deps=None):
    from nimble.app.api_handler import api_handler

    with patch("nimble.app.api_handler.create_deps", return_value=deps or make_deps()):
        return api_handler(event, None)


# =============================================================================
# TEST: Service routes
# =============================================================================

class TestServiceRoutes:

    def test_root_banner(self):
        response = call(http_event("GET", "/"))
        body = json.loads(response["body"])

        assert response["statusCode"] == 200
        assert body["message"] == "Nimble WhatsApp Lambda API"
        assert body["status"] == "running"
        assert "timestamp" in body
        assert response["headers"]["Content-Type"] == "application/json"

    def test_health(self):
        response = call(http_event("GET", "/api/health"))
        body = json.loads(response["body"])

        assert response["statusCode"] == 200
        assert body["status"] == "OK"
        assert body["environment"] == "production"
        assert body["service"] == "AWS Lambda"
        assert body["version"] == "1.0.0"

    def test_health_trailing_slash(self):
        response = call(http_event("GET", "/api/health/"))

        assert response["statusCode"] == 200
        assert json.loads(response["body"])["status"] == "OK"

    def test_unknown_path_404(self):
        response = call(http_event("GET", "/api/nope"))

        assert response["statusCode"] == 404
        assert json.loads(response["body"]) == {"error": "Endpoint not found", "path": "/api/nope", "method": "GET"}

    def test_wrong_method_404(self):
        response = call(http_event("POST", "/api/health", {}))

        assert response["statusCode"] == 404

    def test_unexpected_error_500(self):
        from nimble.app.api_handler import api_handler

        with patch("nimble.app.api_handler.create_deps", side_effect=RuntimeError("no region")):
            response = api_handler(http_event("GET", "/"), None)

        assert response["statusCode"] == 500
        assert json.loads(response["body"])["error"] == "Internal server error"

    def test_route_exception_body(self):
        from nimble.runtime.dispatch import register

        @register("GET /api/_explodes", category="test")
        def explode(envelope, deps):
            raise RuntimeError("disk on fire")

        response = call(http_event("GET", "/api/_explodes"))

        assert response["statusCode"] == 500
        assert json.loads(response["body"]) == {"error": "Internal server error", "message": "disk on fire"}


# =============================================================================
# TEST: CORS
# =============================================================================

class TestCors:

    def test_allowed_origin_echoed(self):
        response = call(http_event("GET", "/api/health", origin="https://nimbleai.in"))

        assert response["statusCode"] == 200
        assert response["headers"]["Access-Control-Allow-Origin"] == "https://nimbleai.in"
        assert response["headers"]["Access-Control-Allow-Credentials"] == "true"

    def test_localhost_allowed(self):
        response = call(http_event("GET", "/", origin="http://localhost:3000"))

        assert response["statusCode"] == 200

    def test_disallowed_origin(self):
        response = call(http_event("GET", "/api/health", origin="https://evil.example"))

        assert response["statusCode"] == 500
        assert json.loads(response["body"]) == {"error": "Internal server error", "message": "Not allowed by CORS"}
        assert "Access-Control-Allow-Origin" not in response["headers"]

    def test_no_origin_allowed(self):
        response = call(http_event("GET", "/api/health"))

        assert response["statusCode"] == 200
        assert "Access-Control-Allow-Origin" not in response["headers"]

    def test_preflight(self):
        response = call(http_event("OPTIONS", "/api/whatsapp/exchange-code", origin="https://nimbleai.in"))

        assert response["statusCode"] == 204
        assert response["body"] == ""
        assert "POST" in response["headers"]["Access-Control-Allow-Methods"]

    def test_configured_origins(self):
        deps = make_deps()
        deps.config["ALLOWED_ORIGINS"] = ["https://dashboard.example"]

        allowed = call(http_event("GET", "/", origin="https://dashboard.example"), deps)
        rejected = call(http_event("GET", "/", origin="https://nimbleai.in"), deps)

        assert allowed["statusCode"] == 200
        assert rejected["statusCode"] == 500
