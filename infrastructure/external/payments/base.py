"""
Base payment client implementing shared concerns: retry, timeouts, logging, mapping.

Vendor SDKs are synchronous; every call runs in a worker thread so the event
loop is never blocked. Concrete providers subclass, list their SDK error
types in ``sdk_errors`` and translate them in ``_map_error``.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import requests
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import GatewayError
from shared.codes.payment_codes import GATEWAY_PAYMENT_STATUS_TO_INTERNAL


logger = get_logger(__name__)

# Safe to replay: the request never reached the gateway
_WRITE_RETRY_ON = (requests.exceptions.ConnectTimeout,)
# Reads are idempotent
_READ_RETRY_ON = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


class BasePaymentClient:
    provider: str = "base"
    sdk_errors: tuple[type[BaseException], ...] = ()

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 3.0, "read": 10.0, "write": 10.0, "total": 15.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}

    @property
    def timeout(self) -> tuple[float, float]:
        """(connect, read) pair understood by requests-based SDKs"""
        return (self._timeouts_cfg["connect"], self._timeouts_cfg["read"])

    async def aclose(self) -> None:
        """Release SDK resources; nothing to do by default."""
        return None

    async def _retry(self, fn: Callable[[], Any], *, retry_on: tuple[type[BaseException], ...] = _READ_RETRY_ON):
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(retry_on),
            reraise=True,
        ):
            with attempt:
                return await fn()

    async def _call(
        self,
        fn: Callable[..., dict[str, Any]],
        *args: Any,
        operation: str,
        idempotent: bool,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Run one blocking SDK call off the loop; returns the decoded body"""
        retry_on = _READ_RETRY_ON if idempotent else _WRITE_RETRY_ON

        async def _send() -> dict[str, Any]:
            return await asyncio.to_thread(fn, *args, timeout=self.timeout, **kwargs)

        try:
            body = await self._retry(_send, retry_on=retry_on)
        except requests.exceptions.Timeout as exc:
            self._log("gateway_timeout", operation=operation)
            raise GatewayError(f"{self.provider} request timed out", provider=self.provider) from exc
        except ValueError as exc:
            # includes requests' JSONDecodeError, which is also a RequestException
            self._log("gateway_bad_body", operation=operation, error=str(exc))
            raise GatewayError(f"{self.provider} returned a non-JSON body", provider=self.provider) from exc
        except requests.exceptions.RequestException as exc:
            self._log("gateway_transport_error", operation=operation, error=str(exc))
            raise GatewayError(f"{self.provider} unreachable: {exc}", provider=self.provider) from exc
        except self.sdk_errors as exc:
            self._log("gateway_error_response", operation=operation, error=str(exc), error_type=type(exc).__name__)
            raise self._map_error(exc) from exc

        self._log("gateway_call_ok", operation=operation)
        return body

    def _map_error(self, exc: BaseException) -> GatewayError:
        return GatewayError(str(exc) or f"{self.provider} request failed", provider=self.provider)

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        return GATEWAY_PAYMENT_STATUS_TO_INTERNAL.get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
