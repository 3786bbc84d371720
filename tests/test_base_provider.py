# tests/test_base_provider.py

"""Tests for BaseProvider resilience features."""

import time
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from src.errors import (
    MalformedResponseError,
    QuotaExceededError,
    TransientServiceError,
)
from src.providers.base_provider import BaseProvider


class _StubProvider(BaseProvider):
    """Concrete provider exposing protected members for testing."""

    def is_configured(self) -> bool:
        return True

    # --- Public accessors for protected state ---

    @property
    def circuit_open(self) -> bool:
        """Expose circuit breaker flag."""
        return self._circuit_open

    @circuit_open.setter
    def circuit_open(self, value: bool) -> None:
        self._circuit_open = value

    @property
    def circuit_opened_at(self) -> float:
        """Expose circuit breaker timestamp."""
        return self._circuit_opened_at

    @circuit_opened_at.setter
    def circuit_opened_at(self, value: float) -> None:
        self._circuit_opened_at = value

    @property
    def consecutive_failures(self) -> int:
        """Expose failure counter."""
        return self._consecutive_failures

    @consecutive_failures.setter
    def consecutive_failures(self, value: int) -> None:
        self._consecutive_failures = value

    @property
    def current_delay(self) -> float:
        """Expose adaptive delay."""
        return self._current_delay

    @current_delay.setter
    def current_delay(self, value: float) -> None:
        self._current_delay = value

    def fetch_json(self, url: str = "https://api.example.com") -> dict[str, Any]:
        """Public wrapper for _fetch_json."""
        return self._fetch_json(url, {"q": "x"})

    def escalate_delay(self) -> None:
        """Public wrapper for _escalate_delay."""
        self._escalate_delay()


def _resp(status: int, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    return resp


def _provider(mock_session_cls: MagicMock) -> tuple[_StubProvider, MagicMock]:
    mock_session = MagicMock()
    mock_session_cls.return_value = mock_session
    provider = _StubProvider("test")
    provider.session = mock_session
    return provider, mock_session


@patch("src.providers.base_provider.curl_requests.Session")
class TestFetchJson(unittest.TestCase):
    """Response classification in _fetch_json."""

    def test_returns_json_object(self, mock_session_cls: MagicMock) -> None:
        """A 200 JSON object is returned as a dict."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(200, '{"organic_results": []}')
        self.assertEqual(provider.fetch_json(), {"organic_results": []})
        _, kwargs = session.get.call_args
        self.assertEqual(kwargs["params"], {"q": "x"})

    def test_quota_in_error_field(self, mock_session_cls: MagicMock) -> None:
        """A quota message in the body raises without retrying."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(
            200, '{"error": "Your account has run out of searches."}'
        )
        with self.assertRaises(QuotaExceededError) as ctx:
            provider.fetch_json()
        self.assertEqual(ctx.exception.kind, "quota")
        self.assertEqual(session.get.call_count, 1)

    def test_quota_on_http_error(self, mock_session_cls: MagicMock) -> None:
        """A 429 carrying a quota message is a quota error."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(
            429, '{"error": "You have exceeded your monthly searches."}'
        )
        with self.assertRaises(QuotaExceededError):
            provider.fetch_json()

    def test_non_json_is_malformed(self, mock_session_cls: MagicMock) -> None:
        """HTML instead of JSON is malformed."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(200, "<html>oops</html>")
        with self.assertRaises(MalformedResponseError):
            provider.fetch_json()

    def test_json_array_is_malformed(self, mock_session_cls: MagicMock) -> None:
        """A JSON document that is not an object is malformed."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(200, "[1, 2]")
        with self.assertRaises(MalformedResponseError):
            provider.fetch_json()

    def test_client_error_not_retried(self, mock_session_cls: MagicMock) -> None:
        """A plain 4xx gives up after one attempt."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(400, "bad request")
        with self.assertRaises(TransientServiceError) as ctx:
            provider.fetch_json()
        self.assertIn("HTTP 400", ctx.exception.message)
        self.assertEqual(session.get.call_count, 1)

    def test_server_error_retried(self, mock_session_cls: MagicMock) -> None:
        """5xx responses are retried up to MAX_RETRIES."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(503)
        with self.assertRaises(TransientServiceError):
            provider.fetch_json()
        self.assertEqual(
            session.get.call_count, provider.settings.MAX_RETRIES
        )

    def test_network_exception_then_success(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """A request exception is retried."""
        provider, session = _provider(mock_session_cls)
        session.get.side_effect = [
            ConnectionError("reset"), _resp(200, '{"ok": true}'),
        ]
        self.assertEqual(provider.fetch_json(), {"ok": True})


@patch("src.providers.base_provider.curl_requests.Session")
class TestCircuitBreaker(unittest.TestCase):
    """Circuit breaker opens after consecutive failures."""

    def test_circuit_opens_after_threshold(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """After CIRCUIT_BREAKER_THRESHOLD failures, calls short-circuit."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(500)
        threshold = provider.settings.CIRCUIT_BREAKER_THRESHOLD

        for _ in range(threshold):
            with self.assertRaises(TransientServiceError):
                provider.fetch_json()
        self.assertTrue(provider.circuit_open)

        session.get.reset_mock()
        with self.assertRaises(TransientServiceError) as ctx:
            provider.fetch_json()
        self.assertIn("circuit breaker open", ctx.exception.message)
        session.get.assert_not_called()

    def test_success_resets_counter(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """A successful fetch resets the failure counter."""
        provider, session = _provider(mock_session_cls)
        retries = provider.settings.MAX_RETRIES
        session.get.side_effect = (
            [_resp(500)] * retries + [_resp(200, '{"ok": true}')]
        )
        with self.assertRaises(TransientServiceError):
            provider.fetch_json()
        self.assertEqual(provider.consecutive_failures, 1)

        provider.fetch_json()
        self.assertEqual(provider.consecutive_failures, 0)

    def test_half_open_after_cooldown(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """After the cooldown a probe goes through and closes the breaker."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(200, '{"ok": true}')
        provider.circuit_open = True
        cooldown = provider.settings.CIRCUIT_BREAKER_COOLDOWN
        provider.circuit_opened_at = time.time() - cooldown - 1

        self.assertEqual(provider.fetch_json(), {"ok": True})
        self.assertFalse(provider.circuit_open)

    def test_blocks_before_cooldown(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """Before the cooldown elapses nothing is sent."""
        provider, session = _provider(mock_session_cls)
        provider.circuit_open = True
        provider.circuit_opened_at = time.time()
        with self.assertRaises(TransientServiceError):
            provider.fetch_json()
        session.get.assert_not_called()


@patch("src.providers.base_provider.curl_requests.Session")
class TestAdaptiveDelay(unittest.TestCase):
    """Rate-limiting escalates the delay."""

    def test_429_escalates_delay(self, mock_session_cls: MagicMock) -> None:
        """A 429 without a quota message doubles the delay."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(429, "slow down")
        original = provider.current_delay
        with self.assertRaises(TransientServiceError):
            provider.fetch_json()
        self.assertGreater(provider.current_delay, original)

    def test_success_resets_delay(self, mock_session_cls: MagicMock) -> None:
        """A successful response resets delay to baseline."""
        provider, session = _provider(mock_session_cls)
        session.get.return_value = _resp(200, "{}")
        provider.current_delay = 8.0
        provider.fetch_json()
        self.assertEqual(
            provider.current_delay, provider.settings.REQUEST_DELAY
        )

    def test_delay_capped_at_max(self, mock_session_cls: MagicMock) -> None:
        """Delay never exceeds REQUEST_DELAY * MAX_DELAY_MULTIPLIER."""
        provider, _ = _provider(mock_session_cls)
        max_delay = (
            provider.settings.REQUEST_DELAY
            * provider.settings.MAX_DELAY_MULTIPLIER
        )
        for _ in range(20):
            provider.escalate_delay()
        self.assertLessEqual(provider.current_delay, max_delay)


if __name__ == "__main__":
    unittest.main()
