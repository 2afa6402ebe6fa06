"""
Property analysis API endpoints.

This module provides the submission endpoints of the analysis flow.
It supports both streaming (SSE) and non-streaming responses.

Endpoints:
- POST /api/v1/analyze - Analyze a property with streaming progress
- POST /api/v1/analyze/sync - Analyze a property without streaming (simpler)
"""

import asyncio
import json
from typing import AsyncGenerator

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from inmoai.api.dependencies import SESSION_COOKIE, get_session, set_session_cookie
from inmoai.constants import TERMINAL_FAILURE_NOTICE
from inmoai.models.analysis import (
    Notice,
    OrchestrationResult,
    OrchestrationState,
    ReportSource,
    StreamEvent,
)
from inmoai.models.property import PropertyInput, PropertyRecord
from inmoai.services.session import AnalysisSession

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/analyze", tags=["analysis"])

STATE_MESSAGES: dict[OrchestrationState, str] = {
    OrchestrationState.TRYING_PRIMARY: "Iniciando análisis con el Agente Primario (n8n)...",
    OrchestrationState.TRYING_FALLBACK: "Activando Agente de Respaldo Directo...",
    OrchestrationState.PRIMARY_SUCCEEDED: "Informe generado por el Agente Primario",
    OrchestrationState.FALLBACK_SUCCEEDED: "Informe generado por el Agente de Respaldo",
    OrchestrationState.FAILED: "No se pudo generar el análisis",
}

# Submissions run to completion even if the client disconnects mid-stream
_running_submissions: set[asyncio.Task] = set()


class AnalyzeResponse(BaseModel):
    """Response for synchronous analysis."""

    success: bool
    state: OrchestrationState
    source: ReportSource | None = None
    record: PropertyRecord | None = None
    notices: list[Notice] = Field(default_factory=list)
    error: str | None = None


def _result_event(result: OrchestrationResult) -> StreamEvent:
    if result.record is None:
        return StreamEvent(type="error", message=TERMINAL_FAILURE_NOTICE, state=result.state)
    return StreamEvent(
        type="result",
        message=STATE_MESSAGES[result.state],
        state=result.state,
        data={
            "source": result.source.value if result.source else None,
            "saved": result.record.saved,
            "record": result.record.model_dump(mode="json", by_alias=True),
        },
    )


async def stream_analysis(
    property_input: PropertyInput,
    session: AnalysisSession,
) -> AsyncGenerator[str, None]:
    """
    Generator that streams analysis events as SSE.

    The orchestrator runs in its own task and pushes state changes and
    notices into a queue; this generator relays them in order.

    Yields:
        JSON-encoded StreamEvent payloads.
    """
    queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()

    async def on_state(state: OrchestrationState) -> None:
        if not state.is_terminal:
            await queue.put(StreamEvent(type="status", message=STATE_MESSAGES[state], state=state))

    async def on_notice(notice: Notice) -> None:
        await queue.put(StreamEvent(type="notice", message=notice.message, data={"level": notice.level}))

    async def run() -> None:
        try:
            result = await session.submit(property_input, on_notice=on_notice, on_state=on_state)
            await queue.put(_result_event(result))
        except Exception as e:
            logger.error("stream_analysis_error", error=str(e))
            await queue.put(StreamEvent(type="error", message=f"Error inesperado: {e}"))
        finally:
            await queue.put(None)

    task = asyncio.create_task(run())
    _running_submissions.add(task)
    task.add_done_callback(_running_submissions.discard)

    while (event := await queue.get()) is not None:
        yield json.dumps(event.model_dump(mode="json", exclude_none=True), ensure_ascii=False)


@router.post("", response_class=EventSourceResponse)
async def analyze_property_stream(
    body: PropertyInput,
    request: Request,
    session: AnalysisSession = Depends(get_session),
) -> EventSourceResponse:
    """
    Analyze a property with streaming progress updates.

    Event types:
    - status: State transitions (primary attempt, fallback attempt)
    - notice: User-visible warnings, e.g. the primary agent reported a failure
    - result: Final record with its report (``saved`` is false if storage failed)
    - error: Both agents failed or something unexpected happened

    Example usage with curl:
    ```
    curl -N -X POST http://localhost:8000/api/v1/analyze \
      -H "Content-Type: application/json" \
      -d '{"userInfo": {"firstName": "Ana", "lastName": "García", "email": "ana@example.com"},
           "location": "Chamberí, Madrid", "price": 250000, "sizeM2": 80}'
    ```
    """
    structlog.contextvars.bind_contextvars(property_location=body.location)
    response = EventSourceResponse(stream_analysis(body, session), media_type="text/event-stream")
    # Cookies set on the dependency Response are not copied onto a returned Response
    if request.cookies.get(SESSION_COOKIE) is None:
        set_session_cookie(response, session)
    return response


@router.post("/sync", response_model=AnalyzeResponse)
async def analyze_property_sync(
    body: PropertyInput,
    session: AnalysisSession = Depends(get_session),
) -> AnalyzeResponse:
    """
    Analyze a property without streaming.

    Returns the stored (or session-only) record, every notice raised during
    the run, or ``success=false`` when both agents failed.
    """
    structlog.contextvars.bind_contextvars(property_location=body.location)
    try:
        result = await session.submit(body)
    except Exception as e:
        logger.error("sync_analysis_error", error=str(e))
        raise HTTPException(status_code=500, detail=f"Error en el análisis: {e}")

    if not result.succeeded:
        return AnalyzeResponse(
            success=False,
            state=result.state,
            notices=result.notices,
            error=TERMINAL_FAILURE_NOTICE,
        )

    return AnalyzeResponse(
        success=True,
        state=result.state,
        source=result.source,
        record=result.record,
        notices=result.notices,
    )


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "service": "inmoai-analyzer"}
