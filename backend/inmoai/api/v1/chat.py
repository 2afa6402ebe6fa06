"""
Chat hand-off endpoints shown next to a report.

Endpoints:
    POST /api/v1/chat/telegram-link - Deep link to the Telegram bot with a prefilled question
    POST /api/v1/chat/assistant     - In-app answer about the report
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from inmoai.api.dependencies import get_chat_assistant, get_session, get_telegram_service
from inmoai.exceptions import InmoAIError
from inmoai.models.property import PropertyRecord
from inmoai.services.chat_assistant import ChatTurn, PropertyChatAssistant
from inmoai.services.session import AnalysisSession
from inmoai.services.telegram import TelegramHandoff, TelegramService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class TelegramLinkRequest(BaseModel):
    property_id: str
    question: str | None = None


class AssistantRequest(BaseModel):
    property_id: str
    message: str = Field(min_length=1)
    history: list[ChatTurn] = Field(default_factory=list)


class AssistantResponse(BaseModel):
    reply: str


def _require_record(session: AnalysisSession, property_id: str) -> PropertyRecord:
    record = session.get(property_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Inmueble no encontrado")
    return record


@router.post("/telegram-link", response_model=TelegramHandoff)
async def telegram_link(
    body: TelegramLinkRequest,
    session: AnalysisSession = Depends(get_session),
    telegram: TelegramService = Depends(get_telegram_service),
) -> TelegramHandoff:
    """Build the Telegram deep link; ``available`` is false when the bot cannot be resolved."""
    record = _require_record(session, body.property_id)
    return await telegram.build_handoff(record, body.question)


@router.post("/assistant", response_model=AssistantResponse)
async def ask_assistant(
    body: AssistantRequest,
    session: AnalysisSession = Depends(get_session),
    assistant: PropertyChatAssistant = Depends(get_chat_assistant),
) -> AssistantResponse:
    """Answer a question about a record's report."""
    record = _require_record(session, body.property_id)
    if record.report is None:
        raise HTTPException(status_code=409, detail="El inmueble no tiene informe")

    try:
        reply = await assistant.reply(record, body.history, body.message)
    except InmoAIError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return AssistantResponse(reply=reply)
