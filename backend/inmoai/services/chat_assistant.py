"""In-app assistant answering questions about a generated report."""

from typing import Literal

import structlog
from openai import OpenAIError
from pydantic import BaseModel

from inmoai.config import FallbackAgentConfig
from inmoai.exceptions import InmoAIError
from inmoai.models.property import PropertyRecord
from inmoai.prompts.analysis import CHAT_ASSISTANT_SYSTEM_PROMPT
from inmoai.services.openai_client import get_openai_client

logger = structlog.get_logger(__name__)


class ChatTurn(BaseModel):
    role: Literal["user", "model"]
    content: str


class PropertyChatAssistant:
    """Short Spanish answers grounded on one record's report."""

    def __init__(
        self,
        openai_api_key: str,
        model: str = "gpt-4o-mini",
        config: FallbackAgentConfig | None = None,
        max_tokens: int = 600,
    ):
        self.client = get_openai_client(openai_api_key)
        self.model = model
        self.config = config or FallbackAgentConfig()
        self.max_tokens = max_tokens

    def _system_prompt(self, record: PropertyRecord) -> str:
        report = record.report
        return CHAT_ASSISTANT_SYSTEM_PROMPT.format(
            reference_month=self.config.reference_month,
            reference_year=self.config.reference_year,
            title=record.title,
            location=record.location,
            currency=record.currency,
            price=record.price,
            size_m2=record.size_m2,
            recommendation=report.recommendation.value if report else "-",
            viability_score=report.viability_score if report else "-",
            roi=report.metrics.roi if report else "-",
            html_content=report.html_content if report else "",
        )

    async def reply(self, record: PropertyRecord, history: list[ChatTurn], message: str) -> str:
        """
        Answer ``message`` given the previous turns.

        Raises:
            InmoAIError: The provider call failed or returned nothing.
        """
        messages = [{"role": "system", "content": self._system_prompt(record)}]
        messages += [
            {"role": "assistant" if turn.role == "model" else "user", "content": turn.content}
            for turn in history
        ]
        messages.append({"role": "user", "content": message})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            logger.error("chat_assistant_failed", record_id=record.id, error=str(e))
            raise InmoAIError("El asistente no está disponible en este momento") from e

        content = response.choices[0].message.content
        if not content:
            raise InmoAIError("El asistente no devolvió respuesta")
        return content
