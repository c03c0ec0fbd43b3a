"""HTTP transport for the routing provider."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pyfleet._constants import USER_AGENT
from pyfleet._redact import redact_for_log
from pyfleet.config import FleetConfig
from pyfleet.exceptions import ProviderError, ProviderTimeoutError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What provider adapters need from HTTP: one JSON POST per call."""

    async def post_json(self, endpoint: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        ...


class ProviderTransport:
    """Authenticated JSON POSTs against the routing provider."""

    def __init__(
        self,
        config: FleetConfig,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.provider_timeout)

    @property
    def has_credentials(self) -> bool:
        return bool(self._config.routing_api_key)

    async def post_json(self, endpoint: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """POST *payload* to *endpoint* and return the decoded JSON object.

        Raises
        ------
        ProviderTimeoutError
            The call did not finish within ``provider_timeout`` seconds.
        ProviderError
            Missing credentials, network failure, non-200 status or a body
            that is not a JSON object.
        """
        if not self.has_credentials:
            raise ProviderError("No routing API key configured", endpoint=endpoint)

        headers: dict[str, str] = {
            "accept": "application/json, application/geo+json",
            "authorization": str(self._config.routing_api_key),
            "content-type": "application/json; charset=utf-8",
            "user-agent": USER_AGENT,
        }
        url = f"{self._config.routing_base_url}{endpoint}"

        _logger.debug("POST %s payload=%s", url, redact_for_log(dict(payload)))

        try:
            async with self._http.post(
                url,
                data=json.dumps(payload, separators=(",", ":")),
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise ProviderError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except ProviderError:
            raise
        except TimeoutError as exc:
            raise ProviderTimeoutError(
                f"Request to {endpoint} timed out after {self._config.provider_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise ProviderError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ProviderError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

        if not isinstance(body, dict):
            raise ProviderError(
                f"Expected a JSON object from {endpoint}",
                endpoint=endpoint,
            )

        _logger.debug("Response from %s: %s", endpoint, redact_for_log(body))
        return body
