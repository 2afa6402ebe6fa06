"""
Fallback analysis agent: a direct OpenAI call with a strict output schema.

Used when the primary n8n workflow is unreachable, reports its own failure or
answers with an incomplete payload. One chat-completions round trip returns
JSON that must match ANALYSIS_RESPONSE_SCHEMA; the service then validates it
with pydantic and stamps a local id and creation time (the model never
supplies those).

Token monitoring: logs prompt_tokens and completion_tokens per call.
"""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime

import structlog
from openai import OpenAIError
from pydantic import Field, ValidationError

from inmoai.config import FallbackAgentConfig
from inmoai.constants import PRICE_EVOLUTION_YEARS, TEMP_PROPERTY_ID
from inmoai.exceptions import FallbackAgentError
from inmoai.models.property import (
    AnalysisReport,
    FinancialMetrics,
    MarketAnalysis,
    PropertyInput,
    Recommendation,
    WireModel,
)
from inmoai.prompts.analysis import (
    ANALYSIS_RESPONSE_SCHEMA,
    ANALYSIS_SYSTEM_PROMPT,
    build_analysis_prompt,
    price_evolution_years,
)
from inmoai.services.openai_client import get_openai_client

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FallbackAnalysisPayload(WireModel):
    """Shape of the JSON the model must return."""

    metrics: FinancialMetrics
    market_data: MarketAnalysis
    viability_score: float = Field(ge=0, le=100)
    recommendation: Recommendation
    html_content: str = Field(min_length=1)


def check_price_evolution(market_data: MarketAnalysis, reference_year: int) -> None:
    """
    Verify the price series covers exactly the five years ending at the reference year.

    Raises:
        FallbackAgentError: Wrong length, non-numeric labels or a gap/reordering.
    """
    labels = [point.label.strip() for point in market_data.price_evolution]
    expected = price_evolution_years(reference_year, PRICE_EVOLUTION_YEARS)
    if labels != expected:
        raise FallbackAgentError(
            f"Serie priceEvolution inválida: se esperaba {expected}, se recibió {labels}"
        )


class FallbackAgentClient:
    """Direct structured-output analysis with OpenAI."""

    def __init__(
        self,
        openai_api_key: str,
        model: str = "gpt-4o-mini",
        config: FallbackAgentConfig | None = None,
        now_provider: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the fallback agent.

        Args:
            openai_api_key: OpenAI API key.
            model:          Chat model supporting json_schema response formats.
            config:         Token limit, temperature and temporal framing.
            now_provider:   Clock for report timestamps (injectable for tests).
        """
        self.client = get_openai_client(openai_api_key, max_retries=0)
        self.model = model
        self.config = config or FallbackAgentConfig()
        self.now_provider = now_provider

    async def analyze(self, property_input: PropertyInput) -> AnalysisReport:
        """
        Generate a complete report for the property.

        Args:
            property_input: Submitted property.

        Returns:
            A validated AnalysisReport with a fresh id and timestamp.

        Raises:
            FallbackAgentError: Provider error, refusal, empty output or invalid structure.
        """
        prompt = build_analysis_prompt(
            property_input,
            reference_month=self.config.reference_month,
            reference_year=self.config.reference_year,
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                response_format={"type": "json_schema", "json_schema": ANALYSIS_RESPONSE_SCHEMA},
            )
        except OpenAIError as e:
            logger.error("fallback_agent_request_failed", error=str(e))
            raise FallbackAgentError(f"Error del proveedor de IA: {e}") from e

        usage = getattr(response, "usage", None)
        if usage:
            logger.info(
                "fallback_agent_tokens",
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
            )

        msg = response.choices[0].message
        if getattr(msg, "refusal", None):
            logger.warning("fallback_agent_refusal", refusal=msg.refusal)
            raise FallbackAgentError(f"El modelo rechazó la petición: {msg.refusal}")

        if not msg.content:
            logger.warning("fallback_agent_empty_content", finish_reason=response.choices[0].finish_reason)
            raise FallbackAgentError("No response from AI")

        return self._build_report(msg.content, property_input)

    def _build_report(self, content: str, property_input: PropertyInput) -> AnalysisReport:
        """Validate the model output and turn it into an AnalysisReport."""
        try:
            payload = FallbackAnalysisPayload.model_validate_json(content)
        except ValidationError as e:
            logger.warning("fallback_agent_invalid_payload", errors=e.error_count())
            raise FallbackAgentError("La respuesta del modelo no tiene la estructura esperada") from e

        check_price_evolution(payload.market_data, self.config.reference_year)

        return AnalysisReport(
            id=str(uuid.uuid4()),
            property_id=property_input.id or TEMP_PROPERTY_ID,
            metrics=payload.metrics,
            market_data=payload.market_data,
            viability_score=payload.viability_score,
            recommendation=payload.recommendation,
            html_content=payload.html_content,
            created_at=self.now_provider(),
        )
