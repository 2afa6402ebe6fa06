"""
Primary analysis agent: an external n8n workflow reached through a webhook.

The webhook receives the serialized PropertyInput and answers with a loosely
typed payload. Depending on how the workflow's last node is configured it may
come back as:

    [{"json": {...}}]        n8n item list
    [{...}]                  plain list
    {"json": {...}} / {...}  single object
    "```json {...} ```"      model output passed through as text

PrimaryAgentClient.analyze() unwraps and normalizes that into a dict without
validating any field. classify_primary_payload() then turns the dict into a
FailureSignal, StructuredPayload or TextPayload so that the orchestrator never
reads fields speculatively.
"""

import json
import re
from typing import Any

import httpx
import structlog

from inmoai.config import PrimaryAgentConfig
from inmoai.constants import PRIMARY_CONNECTION_ERROR
from inmoai.exceptions import PrimaryAgentError
from inmoai.models.analysis import FailureSignal, PrimaryPayload, StructuredPayload, TextPayload
from inmoai.models.property import PropertyInput
from inmoai.services.http_retry import request_with_retry

logger = structlog.get_logger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?")


class PrimaryAgentClient:
    """Client for the n8n orchestration webhook."""

    def __init__(
        self,
        config: PrimaryAgentConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the primary agent client.

        Args:
            config: Webhook URL, retry policy and failure keyword.
            client: Optional pre-built httpx client (tests inject a MockTransport).
        """
        self.config = config or PrimaryAgentConfig()
        self._client = client or httpx.AsyncClient(timeout=self.config.request_timeout_seconds)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def analyze(self, property_input: PropertyInput) -> dict[str, Any]:
        """
        Send the property to the webhook and return the normalized payload.

        Args:
            property_input: Submitted property.

        Returns:
            The unwrapped payload as a dict. Fields are NOT validated here; a
            200 response with missing fields is returned as-is.

        Raises:
            PrimaryAgentError: No webhook is configured, or it could not be
                reached after retries.
        """
        if not self.config.webhook_url:
            logger.warning("primary_agent_not_configured")
            raise PrimaryAgentError("Primary agent webhook URL is not configured")

        body = property_input.model_dump(mode="json", by_alias=True)
        try:
            response = await request_with_retry(
                self._client,
                "POST",
                self.config.webhook_url,
                max_retries=self.config.max_retries,
                initial_backoff=self.config.initial_backoff_seconds,
                json=body,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.error("primary_agent_unreachable", error=str(exc))
            raise PrimaryAgentError(PRIMARY_CONNECTION_ERROR) from exc

        try:
            data: Any = response.json()
        except ValueError:
            # Workflows that respond with a "text" node send raw text
            data = response.text

        payload = normalize_primary_response(data)
        logger.info("primary_agent_responded", keys=sorted(payload))
        return payload


def _unwrap(data: Any) -> Any:
    """Remove the optional list wrapper and the n8n ``json`` envelope."""
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict) and data.get("json"):
        return data["json"]
    return data


def _parse_text_payload(text: str) -> dict[str, Any]:
    """Parse text that may hold a fenced JSON object; otherwise treat it as HTML."""
    clean = _CODE_FENCE_RE.sub("", text).strip()
    if clean.startswith("{"):
        try:
            parsed = json.loads(clean)
        except json.JSONDecodeError:
            return {"htmlContent": text}
        if isinstance(parsed, dict):
            return parsed
    return {"htmlContent": text}


def normalize_primary_response(data: Any) -> dict[str, Any]:
    """
    Unwrap one level of nesting and coerce the raw payload into a dict.

    Args:
        data: Decoded JSON body (or raw text body) from the webhook.

    Returns:
        A dict. Strings become either the parsed JSON object they carry or
        ``{"htmlContent": text}``; empty or non-object payloads become ``{}``.
    """
    raw = _unwrap(data)
    if isinstance(raw, str):
        return _parse_text_payload(raw)
    if isinstance(raw, dict):
        return raw
    return {}


def classify_primary_payload(payload: dict[str, Any], failure_keyword: str) -> PrimaryPayload:
    """
    Resolve a normalized payload into the tagged union the orchestrator acts on.

    Order matters: a failure message wins even when metrics are present.

    Args:
        payload:         Output of PrimaryAgentClient.analyze().
        failure_keyword: Substring of ``resultado`` that marks a remote failure.

    Returns:
        FailureSignal, StructuredPayload or TextPayload.
    """
    resultado = payload.get("resultado")
    if isinstance(resultado, str) and failure_keyword in resultado:
        return FailureSignal(message=resultado)

    metrics = payload.get("metrics")
    html_content = payload.get("htmlContent")
    if isinstance(metrics, dict) and metrics and isinstance(html_content, str) and html_content.strip():
        return StructuredPayload(data=payload)

    return TextPayload(data=payload)
