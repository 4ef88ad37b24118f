"""Tests for logging helpers, rate limiting and HTTP error handling."""

from __future__ import annotations

import pytest
from litestar import Litestar, get
from litestar.testing import TestClient

from archsync.core.error_handling import get_exception_handlers
from archsync.core.logging import CorrelationIdMiddleware, summarize_payloads
from archsync.core.rate_limit import RateLimitSettings, get_rate_limit_middleware
from archsync.exceptions import PayloadTooLargeError


class TestLogging:
    """Tests for structlog processors."""

    def test_payload_is_summarized(self) -> None:
        """Test that relayed payloads never reach the log output."""
        event = summarize_payloads(None, "info", {"event": "relayed", "payload": {"walls": [1, 2, 3]}})

        assert event == {"event": "relayed", "payload": "<dict>"}

    def test_events_without_payload_untouched(self) -> None:
        """Test that other events pass through unchanged."""
        event = {"event": "joined", "room_id": "P1"}
        assert summarize_payloads(None, "info", dict(event)) == event


class TestRateLimit:
    """Tests for rate limit settings."""

    def test_disabled(self) -> None:
        """Test that disabled settings produce no middleware."""
        assert get_rate_limit_middleware(RateLimitSettings(enabled=False)) is None

    def test_enabled(self) -> None:
        """Test the generated Litestar configuration."""
        config = get_rate_limit_middleware(RateLimitSettings(limit=5, window="second"))

        assert config is not None
        assert config.rate_limit == ("second", 5)
        assert config.exclude_opt_key == "exclude_from_rate_limit"

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test reading settings from the environment."""
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "7")
        monkeypatch.setenv("RATE_LIMIT_WINDOW", "hour")

        settings = RateLimitSettings.from_env()

        assert settings.enabled is False
        assert settings.limit == 7
        assert settings.window == "hour"

    def test_from_env_rejects_unknown_window(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a typo in the window fails loudly."""
        monkeypatch.setenv("RATE_LIMIT_WINDOW", "fortnight")

        with pytest.raises(ValueError, match="fortnight"):
            RateLimitSettings.from_env()

    def test_limit_applies_to_http(self) -> None:
        """Test that requests beyond the limit are refused with 429."""

        @get("/ping", sync_to_thread=False)
        def ping() -> str:
            return "pong"

        config = RateLimitSettings(limit=2, window="minute").to_config()
        app = Litestar(
            route_handlers=[ping],
            middleware=[config.middleware],
            exception_handlers=get_exception_handlers(),
        )

        with TestClient(app=app) as client:
            codes = [client.get("/ping").status_code for _ in range(3)]

        assert codes == [200, 200, 429]


class TestErrorHandling:
    """Tests for structured HTTP error responses."""

    @pytest.fixture
    def client(self) -> TestClient[Litestar]:
        """App with handlers that fail in different ways."""

        @get("/too-big", sync_to_thread=False)
        def too_big() -> None:
            raise PayloadTooLargeError(20, 10)

        @get("/boom", sync_to_thread=False)
        def boom() -> None:
            msg = "unexpected"
            raise RuntimeError(msg)

        app = Litestar(
            route_handlers=[too_big, boom],
            middleware=[CorrelationIdMiddleware],
            exception_handlers=get_exception_handlers(),
        )
        return TestClient(app=app)

    def test_archsync_error_is_bad_request(self, client: TestClient[Litestar]) -> None:
        """Test that domain errors map to 400 with their code."""
        with client:
            response = client.get("/too-big", headers={"X-Request-ID": "req-1"})

        assert response.status_code == 400
        assert response.json() == {
            "status": "error",
            "message": "Payload of 20 bytes exceeds limit of 10 bytes",
            "code": "payload_too_large",
            "correlation_id": "req-1",
        }

    def test_unexpected_error_hides_details(self, client: TestClient[Litestar]) -> None:
        """Test that unexpected errors return a generic 500."""
        with client:
            response = client.get("/boom")

        assert response.status_code == 500
        data = response.json()
        assert data["code"] == "internal_error"
        assert "unexpected" not in data["message"]

    def test_unknown_route_is_structured_404(self, client: TestClient[Litestar]) -> None:
        """Test that routing errors use the same error shape."""
        with client:
            response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"
