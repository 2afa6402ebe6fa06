"""
Two-tier report generation.

ReportOrchestrator.run() drives one submission through:

    IDLE -> TRYING_PRIMARY -> PRIMARY_SUCCEEDED
                           -> TRYING_FALLBACK -> FALLBACK_SUCCEEDED
                                              -> FAILED

The primary n8n agent is always tried first. Its payload is classified
before any field is read; a failure message, a transport error, a timeout or
a payload missing metrics/markup sends the flow to the fallback OpenAI agent.
When the primary agent reports its own failure the user is told so (through
the notice callback) before the fallback starts. If the fallback also fails
the run ends in FAILED with a final notice and nothing is stored.

After either success the report is persisted. A storage error never undoes a
generated report: the run still succeeds with a session-only record marked
``saved=False``.

At most two agent calls are made per submission and they never overlap.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from inmoai.constants import (
    DEFAULT_RECOMMENDATION,
    DEFAULT_VIABILITY_SCORE,
    PRIMARY_FAILURE_NOTICE,
    TEMP_PROPERTY_ID,
    TERMINAL_FAILURE_NOTICE,
    UNSAVED_USER_ID,
)
from inmoai.models.analysis import (
    FailureSignal,
    Notice,
    OrchestrationResult,
    OrchestrationState,
    ReportSource,
    StructuredPayload,
)
from inmoai.models.property import (
    AnalysisReport,
    FinancialMetrics,
    MarketAnalysis,
    PropertyInput,
    PropertyRecord,
)
from inmoai.services.persistence import PropertyRepository, build_record
from inmoai.services.primary_agent import classify_primary_payload

logger = structlog.get_logger(__name__)

NoticeCallback = Callable[[Notice], Awaitable[None]]
StateCallback = Callable[[OrchestrationState], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PrimaryAgent(Protocol):
    async def analyze(self, property_input: PropertyInput) -> dict[str, Any]: ...


class FallbackAgent(Protocol):
    async def analyze(self, property_input: PropertyInput) -> AnalysisReport: ...


def build_primary_report(
    payload: StructuredPayload,
    property_input: PropertyInput,
    created_at: datetime,
) -> AnalysisReport:
    """
    Build a report from the primary agent's values.

    Only two fields get defaults, and only when absent: viabilityScore (70)
    and recommendation (HOLD). A missing marketData yields empty series.

    Raises:
        ValidationError: A present field has the wrong shape.
    """
    data = payload.data
    viability_score = data.get("viabilityScore")
    recommendation = data.get("recommendation")
    return AnalysisReport(
        id=str(uuid.uuid4()),
        property_id=property_input.id or TEMP_PROPERTY_ID,
        metrics=FinancialMetrics.model_validate(data["metrics"]),
        market_data=MarketAnalysis.model_validate(data.get("marketData") or {}),
        viability_score=DEFAULT_VIABILITY_SCORE if viability_score is None else viability_score,
        recommendation=DEFAULT_RECOMMENDATION if recommendation is None else recommendation,
        html_content=data["htmlContent"],
        created_at=created_at,
    )


class ReportOrchestrator:
    """Runs the primary agent, falls back when needed and persists the result."""

    def __init__(
        self,
        primary: PrimaryAgent,
        fallback: FallbackAgent,
        repository: PropertyRepository,
        *,
        failure_keyword: str = "fallado",
        primary_timeout: float | None = None,
        fallback_timeout: float | None = None,
        now_provider: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Args:
            primary:          Client for the n8n webhook.
            fallback:         Client for the direct OpenAI call.
            repository:       Storage backend chosen at startup.
            failure_keyword:  Substring of ``resultado`` marking a primary failure.
            primary_timeout:  Seconds allowed for the whole primary attempt (retries included).
            fallback_timeout: Seconds allowed for the fallback call.
            now_provider:     Clock for timestamps (injectable for tests).
        """
        self.primary = primary
        self.fallback = fallback
        self.repository = repository
        self.failure_keyword = failure_keyword
        self.primary_timeout = primary_timeout
        self.fallback_timeout = fallback_timeout
        self.now_provider = now_provider

    async def run(
        self,
        property_input: PropertyInput,
        *,
        user_id: str | None = None,
        on_notice: NoticeCallback | None = None,
        on_state: StateCallback | None = None,
    ) -> OrchestrationResult:
        """
        Generate, validate and store a report for one submission.

        Args:
            property_input: Submitted property.
            user_id:        Authenticated user id (database mode owner).
            on_notice:      Awaited for every user-visible notice, in order.
            on_state:       Awaited on every state transition.

        Returns:
            OrchestrationResult in a terminal state. ``report`` and ``record``
            are None only when the state is FAILED.
        """
        notices: list[Notice] = []

        async def notify(notice: Notice) -> None:
            notices.append(notice)
            if on_notice is not None:
                await on_notice(notice)

        async def enter(state: OrchestrationState) -> None:
            logger.info("orchestrator_state", state=state.value)
            if on_state is not None:
                await on_state(state)

        await enter(OrchestrationState.TRYING_PRIMARY)
        report = await self._try_primary(property_input, notify)

        if report is not None:
            state = OrchestrationState.PRIMARY_SUCCEEDED
            source = ReportSource.PRIMARY
        else:
            await enter(OrchestrationState.TRYING_FALLBACK)
            try:
                report = await asyncio.wait_for(
                    self.fallback.analyze(property_input), timeout=self.fallback_timeout
                )
            except Exception as e:
                logger.error("orchestrator_both_agents_failed", error=str(e) or type(e).__name__)
                await notify(Notice(level="error", message=TERMINAL_FAILURE_NOTICE))
                await enter(OrchestrationState.FAILED)
                return OrchestrationResult(state=OrchestrationState.FAILED, notices=notices)
            state = OrchestrationState.FALLBACK_SUCCEEDED
            source = ReportSource.FALLBACK

        await enter(state)
        record = await self._persist(property_input, report, user_id)
        return OrchestrationResult(
            state=state, source=source, report=report, record=record, notices=notices
        )

    async def _try_primary(
        self, property_input: PropertyInput, notify: NoticeCallback
    ) -> AnalysisReport | None:
        """Return a usable primary report, or None when the fallback must run."""
        try:
            raw = await asyncio.wait_for(
                self.primary.analyze(property_input), timeout=self.primary_timeout
            )
        except TimeoutError:
            logger.warning("primary_agent_timeout", timeout_seconds=self.primary_timeout)
            return None
        except Exception as e:
            logger.warning("primary_agent_failed", error=str(e))
            return None

        payload = classify_primary_payload(raw, self.failure_keyword)

        if isinstance(payload, FailureSignal):
            logger.error("primary_agent_reported_failure", resultado=payload.message)
            await notify(Notice(message=PRIMARY_FAILURE_NOTICE.format(message=payload.message)))
            return None

        if not isinstance(payload, StructuredPayload):
            logger.warning("primary_agent_incomplete_payload", keys=sorted(payload.data))
            return None

        try:
            return build_primary_report(payload, property_input, self.now_provider())
        except ValidationError as e:
            logger.warning("primary_agent_malformed_payload", errors=e.error_count())
            return None

    async def _persist(
        self, property_input: PropertyInput, report: AnalysisReport, user_id: str | None
    ) -> PropertyRecord:
        """Store the report; on failure return a session-only record instead."""
        try:
            return await self.repository.save(property_input, report, user_id=user_id)
        except Exception:
            logger.exception("report_persist_failed", report_id=report.id)
            return build_record(
                property_input,
                report,
                record_id=report.id,
                user_id=UNSAVED_USER_ID,
                created_at=self.now_provider(),
                saved=False,
            )
