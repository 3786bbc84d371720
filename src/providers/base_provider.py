# src/providers/base_provider.py

"""Abstract base class for external evidence providers."""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.errors import (
    MalformedResponseError,
    QuotaExceededError,
    TransientServiceError,
)


class BaseProvider(ABC):
    """Shared HTTP plumbing: retries, adaptive delay, circuit breaker."""

    def __init__(self, provider_name: str) -> None:
        self.provider_name = provider_name
        self.logger = logging.getLogger(
            f"trustmart.provider.{provider_name}"
        )
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._current_delay: float = self.settings.REQUEST_DELAY
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    def _check_circuit(self) -> bool:
        """Return True if the circuit breaker blocks this request.

        After CIRCUIT_BREAKER_COOLDOWN seconds the breaker enters
        a half-open state, allowing a single probe request through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.time() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            self.logger.info(
                "[%s] Circuit breaker half-open after %.0fs",
                self.provider_name,
                elapsed,
            )
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        """Reset failure counters after a successful call."""
        self._consecutive_failures = 0
        self._circuit_open = False
        self._circuit_opened_at = 0.0
        self._current_delay = self.settings.REQUEST_DELAY

    def _record_failure(self) -> None:
        """Track failure and open circuit breaker if needed."""
        self._consecutive_failures += 1
        if (
            self._consecutive_failures
            >= self.settings.CIRCUIT_BREAKER_THRESHOLD
        ):
            self._circuit_open = True
            self._circuit_opened_at = time.time()
            self.logger.error(
                "[%s] Circuit breaker opened after %d "
                "consecutive failures",
                self.provider_name,
                self._consecutive_failures,
            )

    def _escalate_delay(self) -> None:
        """Double the current delay up to the configured max."""
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(self._current_delay * 2, max_delay)
        self.logger.warning(
            "[%s] Rate-limited, delay escalated to %.1fs",
            self.provider_name,
            self._current_delay,
        )

    def _is_quota_message(self, text: str) -> bool:
        lower = text.lower()
        return any(
            marker in lower
            for marker in self.settings.QUOTA_ERROR_MARKERS
        )

    def _parse_json(
        self, resp: curl_requests.Response,
    ) -> dict[str, Any]:
        """Decode a JSON object body, raising on anything else."""
        try:
            data = json.loads(resp.text)
        except (json.JSONDecodeError, TypeError) as exc:
            raise MalformedResponseError(
                self.provider_name, f"non-JSON response ({exc})"
            ) from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(
                self.provider_name, "expected a JSON object"
            )
        return data

    def _fetch_json(
        self,
        url: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """GET a JSON document with retries and circuit breaker.

        Raises QuotaExceededError as soon as the provider reports an
        exhausted plan, MalformedResponseError for unparseable bodies,
        and TransientServiceError once retries are exhausted.
        """
        if self._check_circuit():
            raise TransientServiceError(
                self.provider_name, "circuit breaker open"
            )
        last_error = "no attempt made"
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    params=params,
                    headers=self.settings.DEFAULT_HEADERS,
                    timeout=self._request_timeout,
                )
            except Exception as exc:
                last_error = str(exc)
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.provider_name,
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                time.sleep(self._current_delay * (attempt + 1))
                continue

            if resp.status_code == 200:
                data = self._parse_json(resp)
                error_text = str(data.get("error") or "")
                if error_text and self._is_quota_message(error_text):
                    raise QuotaExceededError(
                        self.provider_name, error_text
                    )
                self._record_success()
                return data

            body = resp.text or ""
            if self._is_quota_message(body):
                raise QuotaExceededError(
                    self.provider_name,
                    f"HTTP {resp.status_code}: quota exceeded",
                )
            last_error = f"HTTP {resp.status_code}"
            self.logger.warning(
                "[%s] HTTP %d on attempt %d",
                self.provider_name,
                resp.status_code,
                attempt + 1,
            )
            if resp.status_code in (429, 403):
                self._escalate_delay()
                time.sleep(self._current_delay)
            elif 400 <= resp.status_code < 500:
                # Client errors will not improve with retries
                break

        self._record_failure()
        raise TransientServiceError(self.provider_name, last_error)

    @abstractmethod
    def is_configured(self) -> bool:
        """Return True when the provider has the credentials it needs."""
        ...
