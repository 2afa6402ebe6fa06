"""
Tests for ReportOrchestrator: primary-first generation, fallback triggers,
terminal failure and persistence behaviour.

Both agents and the repository are in-memory fakes.
"""

import asyncio
from datetime import UTC, datetime

from inmoai.constants import TERMINAL_FAILURE_NOTICE, UNSAVED_USER_ID
from inmoai.exceptions import FallbackAgentError, PersistenceError, PrimaryAgentError
from inmoai.models.analysis import Notice, OrchestrationState, ReportSource, StructuredPayload
from inmoai.models.property import Recommendation
from inmoai.services.orchestrator import ReportOrchestrator, build_primary_report
from inmoai.services.persistence import build_record

FIXED_NOW = datetime(2025, 12, 1, 10, 30, tzinfo=UTC)


class FakeAgent:
    """Returns a fixed result (or raises it) and logs every call."""

    def __init__(self, result=None, error: Exception | None = None, delay: float = 0, log=None):
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = 0
        self.log = log if log is not None else []
        self.name = "agent"

    async def analyze(self, property_input):
        self.calls += 1
        self.log.append(f"{self.name}_called")
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class FakeRepository:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.saved = []

    async def save(self, property_input, report, user_id=None):
        if self.error is not None:
            raise self.error
        self.saved.append((property_input, report, user_id))
        return build_record(
            property_input,
            report,
            record_id=f"rec-{len(self.saved)}",
            user_id=user_id or "local-user-123",
            created_at=FIXED_NOW,
        )

    async def list(self, user_id=None):
        return []


def make_orchestrator(primary, fallback, repository=None, **kwargs) -> ReportOrchestrator:
    primary.name = "primary"
    fallback.name = "fallback"
    return ReportOrchestrator(
        primary,
        fallback,
        repository or FakeRepository(),
        now_provider=lambda: FIXED_NOW,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Primary path
# ---------------------------------------------------------------------------


class TestPrimarySuccess:
    async def test_structured_payload_skips_fallback(self, sample_property_input, primary_payload, sample_report):
        primary = FakeAgent(result=primary_payload)
        fallback = FakeAgent(result=sample_report)
        repository = FakeRepository()
        orchestrator = make_orchestrator(primary, fallback, repository)

        result = await orchestrator.run(sample_property_input)

        assert result.state == OrchestrationState.PRIMARY_SUCCEEDED
        assert result.source == ReportSource.PRIMARY
        assert fallback.calls == 0
        assert result.report.viability_score == 81
        assert result.report.recommendation == Recommendation.BUY
        assert result.report.metrics.cap_rate == 5.1
        assert result.report.html_content == primary_payload["htmlContent"]
        assert result.report.created_at == FIXED_NOW
        assert len(repository.saved) == 1
        assert result.record.report == result.report
        assert result.notices == []

    async def test_state_transitions_are_reported(self, sample_property_input, primary_payload, sample_report):
        states = []

        async def on_state(state):
            states.append(state)

        orchestrator = make_orchestrator(FakeAgent(result=primary_payload), FakeAgent(result=sample_report))

        await orchestrator.run(sample_property_input, on_state=on_state)

        assert states == [OrchestrationState.TRYING_PRIMARY, OrchestrationState.PRIMARY_SUCCEEDED]

    async def test_user_id_is_passed_to_repository(self, sample_property_input, primary_payload, sample_report):
        repository = FakeRepository()
        orchestrator = make_orchestrator(FakeAgent(result=primary_payload), FakeAgent(result=sample_report), repository)

        result = await orchestrator.run(sample_property_input, user_id="user-42")

        assert repository.saved[0][2] == "user-42"
        assert result.record.user_id == "user-42"


# ---------------------------------------------------------------------------
# Fallback triggers
# ---------------------------------------------------------------------------


class TestFallbackTriggers:
    async def test_failure_message_notifies_before_fallback(self, sample_property_input, sample_report):
        log = []
        primary = FakeAgent(result={"resultado": "Proceso fallado"}, log=log)
        fallback = FakeAgent(result=sample_report, log=log)
        orchestrator = make_orchestrator(primary, fallback)

        async def on_notice(notice: Notice):
            log.append(f"notice:{notice.message}")

        result = await orchestrator.run(sample_property_input, on_notice=on_notice)

        assert result.state == OrchestrationState.FALLBACK_SUCCEEDED
        assert result.source == ReportSource.FALLBACK
        assert result.report == sample_report
        assert log[0] == "primary_called"
        assert log[1].startswith("notice:")
        assert '"Proceso fallado"' in log[1]
        assert log[2] == "fallback_called"
        assert len(result.notices) == 1
        assert result.notices[0].level == "warning"

    async def test_failure_keyword_matches_substring(self, sample_property_input, sample_report):
        primary = FakeAgent(result={"resultado": "Proceso fallado por timeout"})
        fallback = FakeAgent(result=sample_report)

        result = await make_orchestrator(primary, fallback).run(sample_property_input)

        assert fallback.calls == 1
        assert "Proceso fallado por timeout" in result.notices[0].message

    async def test_transport_error_falls_back_silently(self, sample_property_input, sample_report):
        primary = FakeAgent(error=PrimaryAgentError("sin conexión"))
        fallback = FakeAgent(result=sample_report)

        result = await make_orchestrator(primary, fallback).run(sample_property_input)

        assert result.state == OrchestrationState.FALLBACK_SUCCEEDED
        assert result.notices == []
        assert primary.calls == 1
        assert fallback.calls == 1

    async def test_text_only_payload_falls_back(self, sample_property_input, sample_report):
        primary = FakeAgent(result={"htmlContent": "<p>solo texto</p>"})
        fallback = FakeAgent(result=sample_report)

        result = await make_orchestrator(primary, fallback).run(sample_property_input)

        assert result.source == ReportSource.FALLBACK
        assert fallback.calls == 1

    async def test_malformed_metrics_fall_back(self, sample_property_input, primary_payload, sample_report):
        payload = {**primary_payload, "metrics": {"roi": "mucho"}}
        fallback = FakeAgent(result=sample_report)

        result = await make_orchestrator(FakeAgent(result=payload), fallback).run(sample_property_input)

        assert result.source == ReportSource.FALLBACK

    async def test_primary_timeout_falls_back(self, sample_property_input, primary_payload, sample_report):
        primary = FakeAgent(result=primary_payload, delay=1)
        fallback = FakeAgent(result=sample_report)
        orchestrator = make_orchestrator(primary, fallback, primary_timeout=0.01)

        result = await orchestrator.run(sample_property_input)

        assert result.state == OrchestrationState.FALLBACK_SUCCEEDED
        assert fallback.calls == 1

    async def test_states_for_fallback_path(self, sample_property_input, sample_report):
        states = []

        async def on_state(state):
            states.append(state)

        orchestrator = make_orchestrator(FakeAgent(error=PrimaryAgentError("x")), FakeAgent(result=sample_report))

        await orchestrator.run(sample_property_input, on_state=on_state)

        assert states == [
            OrchestrationState.TRYING_PRIMARY,
            OrchestrationState.TRYING_FALLBACK,
            OrchestrationState.FALLBACK_SUCCEEDED,
        ]


# ---------------------------------------------------------------------------
# Terminal failure
# ---------------------------------------------------------------------------


class TestBothAgentsFail:
    async def test_failed_state_and_nothing_persisted(self, sample_property_input):
        repository = FakeRepository()
        primary = FakeAgent(error=PrimaryAgentError("sin conexión"))
        fallback = FakeAgent(error=FallbackAgentError("No response from AI"))

        result = await make_orchestrator(primary, fallback, repository).run(sample_property_input)

        assert result.state == OrchestrationState.FAILED
        assert result.report is None
        assert result.record is None
        assert not result.succeeded
        assert repository.saved == []
        assert result.notices[-1].level == "error"
        assert result.notices[-1].message == TERMINAL_FAILURE_NOTICE

    async def test_failure_message_then_fallback_error_gives_two_notices(self, sample_property_input):
        primary = FakeAgent(result={"resultado": "Proceso fallado"})
        fallback = FakeAgent(error=FallbackAgentError("boom"))

        result = await make_orchestrator(primary, fallback).run(sample_property_input)

        assert [n.level for n in result.notices] == ["warning", "error"]

    async def test_fallback_timeout_is_terminal(self, sample_property_input, sample_report):
        primary = FakeAgent(error=PrimaryAgentError("x"))
        fallback = FakeAgent(result=sample_report, delay=1)
        orchestrator = make_orchestrator(primary, fallback, fallback_timeout=0.01)

        result = await orchestrator.run(sample_property_input)

        assert result.state == OrchestrationState.FAILED

    async def test_at_most_one_call_per_agent(self, sample_property_input):
        primary = FakeAgent(error=PrimaryAgentError("x"))
        fallback = FakeAgent(error=FallbackAgentError("y"))

        await make_orchestrator(primary, fallback).run(sample_property_input)

        assert primary.calls == 1
        assert fallback.calls == 1


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    async def test_storage_error_keeps_report_as_unsaved_record(self, sample_property_input, sample_report):
        repository = FakeRepository(error=PersistenceError("disco lleno"))
        orchestrator = make_orchestrator(FakeAgent(error=PrimaryAgentError("x")), FakeAgent(result=sample_report), repository)

        result = await orchestrator.run(sample_property_input)

        assert result.state == OrchestrationState.FALLBACK_SUCCEEDED
        assert result.succeeded
        assert result.record.saved is False
        assert result.record.user_id == UNSAVED_USER_ID
        assert result.record.id == sample_report.id
        assert result.record.report == sample_report

    async def test_saved_record_carries_input_fields(self, sample_property_input, primary_payload, sample_report):
        orchestrator = make_orchestrator(FakeAgent(result=primary_payload), FakeAgent(result=sample_report))

        result = await orchestrator.run(sample_property_input)

        assert result.record.saved is True
        assert result.record.title == "Apartamento en Chamberí, Madrid"
        assert result.record.price == 250000
        assert result.record.to_input() == sample_property_input


# ---------------------------------------------------------------------------
# build_primary_report
# ---------------------------------------------------------------------------


class TestBuildPrimaryReport:
    def test_missing_score_and_recommendation_get_defaults(self, sample_property_input, primary_payload):
        data = {k: v for k, v in primary_payload.items() if k not in ("viabilityScore", "recommendation")}

        report = build_primary_report(StructuredPayload(data=data), sample_property_input, FIXED_NOW)

        assert report.viability_score == 70
        assert report.recommendation == Recommendation.HOLD

    def test_zero_score_is_kept(self, sample_property_input, primary_payload):
        data = {**primary_payload, "viabilityScore": 0}

        report = build_primary_report(StructuredPayload(data=data), sample_property_input, FIXED_NOW)

        assert report.viability_score == 0

    def test_missing_market_data_yields_empty_series(self, sample_property_input, primary_payload):
        data = {k: v for k, v in primary_payload.items() if k != "marketData"}

        report = build_primary_report(StructuredPayload(data=data), sample_property_input, FIXED_NOW)

        assert report.market_data.price_evolution == []
        assert report.market_data.similar_listings == []

    def test_property_id_defaults_to_temp(self, sample_property_input, primary_payload):
        report = build_primary_report(StructuredPayload(data=primary_payload), sample_property_input, FIXED_NOW)

        assert report.property_id == "temp"
        assert report.created_at == FIXED_NOW
