# kaizbot/infra/kaiz_api.py
"""
HTTP capability registry backed by the KAIZ API.

Every capability is a ``GET {base}/{endpoint}?{arg_param}=...&apikey=...``
returning JSON. The raw payload is validated against the capability's
result schema here, so callers get a typed result or ``CapabilityError``.

Policy:
- Explicit timeout per call (providers are untrusted third parties).
- No retries. The dispatch engine decides recovery.
- The API key is sent as a query parameter and never logged.
"""
from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError as SchemaError

from kaizbot.core.engine.capabilities import (
    CapabilityId,
    CapabilityResult,
    SearchResult,
    get_spec,
)
from kaizbot.core.engine.errors import CapabilityError
from kaizbot.infra.logging_config import get_logger
from kaizbot.infra.metrics import AppMetrics

logger = get_logger(__name__)


class HttpCapabilityRegistry:
    """CapabilityRegistry implementation over httpx."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        timeout: float = 30.0,
        connect_timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
        )

    async def invoke(self, capability_id: CapabilityId, params: dict[str, str]) -> CapabilityResult:
        spec = get_spec(capability_id)
        query = dict(params)
        if self._api_key:
            query["apikey"] = self._api_key

        with AppMetrics.track_capability_time(capability_id.value):
            try:
                payload = await self._fetch(capability_id, f"{self._base_url}/{spec.endpoint}", query)
                return self._validate(capability_id, spec.result_model, payload)
            except CapabilityError as e:
                AppMetrics.capability_failed(capability_id.value)
                logger.warning(
                    f"Capability call failed: {e.cause}",
                    extra={"capability": capability_id.value},
                )
                raise

    async def _fetch(self, capability_id: CapabilityId, url: str, query: dict[str, str]) -> Any:
        try:
            resp = await self._client.get(url, params=query)
        except httpx.TimeoutException as e:
            raise CapabilityError(capability_id.value, f"timeout ({type(e).__name__})") from e
        except httpx.HTTPError as e:
            raise CapabilityError(capability_id.value, f"network error ({type(e).__name__})") from e
        except (httpx.InvalidURL, UnicodeError) as e:
            # over-long query or text that cannot be encoded (lone surrogates)
            raise CapabilityError(capability_id.value, f"invalid request ({type(e).__name__})") from e

        if not resp.is_success:
            raise CapabilityError(capability_id.value, f"HTTP {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise CapabilityError(capability_id.value, "response is not JSON") from e

    @staticmethod
    def _validate(capability_id: CapabilityId, model, payload: Any) -> CapabilityResult:
        # Search providers sometimes answer with a bare list
        if model is SearchResult and isinstance(payload, list):
            payload = {"items": payload}

        if not isinstance(payload, dict):
            raise CapabilityError(capability_id.value, f"unexpected payload type {type(payload).__name__}")

        try:
            return model.model_validate(payload)
        except SchemaError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise CapabilityError(capability_id.value, f"malformed result ({fields})") from e

    async def aclose(self) -> None:
        await self._client.aclose()
