"""
Shared test fixtures for the InmoAI Analytics backend test suite.
"""

from datetime import UTC, datetime

import pytest
import structlog
from fastapi.testclient import TestClient

from inmoai.models.property import (
    AnalysisReport,
    FinancialMetrics,
    MarketAnalysis,
    MarketDataPoint,
    PropertyInput,
    PropertyType,
    Recommendation,
    UserInfo,
)

FIXED_NOW = datetime(2025, 12, 1, 10, 30, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set required environment variables for tests so Settings can be instantiated."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-fake-key-for-testing")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "")
    # Local storage mode and no tracing in tests
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_PUBLISHABLE_KEY", raising=False)
    monkeypatch.setenv("LANGCHAIN_TRACING_V2", "false")


@pytest.fixture(autouse=True)
def _configure_structlog_for_tests():
    """Configure structlog for tests using a simple, deterministic setup."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def client() -> TestClient:
    """FastAPI TestClient wrapping the main application (lifespan not started)."""
    # Clear the lru_cache so settings pick up test env vars
    from inmoai.config import get_settings

    get_settings.cache_clear()

    from inmoai.main import app

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def sample_property_input() -> PropertyInput:
    """Realistic submission for a flat in Chamberí, Madrid."""
    return PropertyInput(
        user_info=UserInfo(first_name="Lucía", last_name="Martín Ortega", email="lucia@example.com"),
        property_type=PropertyType.APARTMENT,
        location="Chamberí, Madrid",
        description="Piso exterior reformado en 2015, cuarta planta con ascensor.",
        price=250000,
        size_m2=80,
        bedrooms=2,
        bathrooms=1,
        garage=1,
    )


@pytest.fixture
def sample_metrics() -> FinancialMetrics:
    return FinancialMetrics(
        roi=5.4,
        cap_rate=4.8,
        monthly_cashflow=320.0,
        estimated_renovation_cost=12000.0,
        suggested_offer_price=238000.0,
        appreciation_forecast=3.1,
    )


@pytest.fixture
def sample_market_data() -> MarketAnalysis:
    return MarketAnalysis(
        price_evolution=[
            MarketDataPoint(label=str(year), value=value)
            for year, value in zip(range(2021, 2026), [4300, 4550, 4800, 5050, 5300])
        ],
        similar_listings=[
            MarketDataPoint(label="Misma Zona", value=42),
            MarketDataPoint(label="Precio Similar", value=17),
            MarketDataPoint(label="Tamaño Similar", value=23),
        ],
    )


@pytest.fixture
def sample_report(sample_metrics: FinancialMetrics, sample_market_data: MarketAnalysis) -> AnalysisReport:
    return AnalysisReport(
        id="report-1",
        property_id="temp",
        metrics=sample_metrics,
        market_data=sample_market_data,
        viability_score=78,
        recommendation=Recommendation.BUY,
        html_content="<div><h3>Resumen Ejecutivo</h3><p>Buena oportunidad.</p></div>",
        created_at=FIXED_NOW,
    )


@pytest.fixture
def primary_payload() -> dict:
    """A complete answer from the n8n workflow, camelCase as sent on the wire."""
    return {
        "metrics": {
            "roi": 6.2,
            "capRate": 5.1,
            "monthlyCashflow": 410,
            "estimatedRenovationCost": 8000,
            "suggestedOfferPrice": 240000,
            "appreciationForecast": 2.9,
        },
        "marketData": {
            "priceEvolution": [{"label": "2024", "value": 5100}, {"label": "2025", "value": 5300}],
            "similarListings": [{"label": "Misma Zona", "value": 30}],
        },
        "viabilityScore": 81,
        "recommendation": "BUY",
        "htmlContent": "<h3>Resumen Ejecutivo</h3><p>Informe n8n.</p>",
    }
