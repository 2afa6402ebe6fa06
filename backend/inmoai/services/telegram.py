"""
Telegram chat hand-off.

The report view offers a button that opens the InmoAI Telegram bot with a
prefilled question about the property. The bot username comes from the Bot
API ``getMe`` method; when the lookup fails the hand-off is simply disabled.
"""

from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel

from inmoai.constants import DEFAULT_CHAT_QUESTION, TELEGRAM_LINK_BASE
from inmoai.models.property import PropertyInput

logger = structlog.get_logger(__name__)


class TelegramBotInfo(BaseModel):
    username: str
    first_name: str = ""


class TelegramHandoff(BaseModel):
    """What the report view needs to render the chat button."""

    available: bool
    bot_username: str | None = None
    url: str | None = None


def generate_telegram_link(bot_username: str, text: str) -> str:
    """Build a t.me deep link with a URL-encoded prefilled message."""
    return f"{TELEGRAM_LINK_BASE}/{bot_username}?text={quote(text, safe='')}"


def build_handoff_message(property_input: PropertyInput, question: str | None = None) -> str:
    """Prefilled message sent to the bot."""
    return (
        f'Hola! Vengo de InmoAI Analytics. Quisiera consultar sobre el inmueble: '
        f'"{property_input.title}" en {property_input.location}. '
        f"Mi duda es: {question or DEFAULT_CHAT_QUESTION}"
    )


class TelegramService:
    """Bot metadata lookup with a cached username."""

    def __init__(
        self,
        bot_token: str,
        api_base: str = "https://api.telegram.org",
        client: httpx.AsyncClient | None = None,
    ):
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._bot_info: TelegramBotInfo | None = None

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def get_bot_info(self) -> TelegramBotInfo | None:
        """
        Fetch the bot's username via ``getMe``.

        Returns:
            TelegramBotInfo, or None when no token is configured or the lookup fails.
        """
        if self._bot_info is not None:
            return self._bot_info
        if not self.bot_token:
            logger.debug("telegram_token_missing")
            return None

        try:
            response = await self._client.get(f"{self.api_base}/bot{self.bot_token}/getMe")
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("telegram_getme_failed", error=str(e))
            return None

        if not isinstance(data, dict) or not data.get("ok"):
            logger.warning("telegram_getme_rejected", description=str(data)[:200])
            return None

        result = data.get("result") or {}
        if not result.get("username"):
            return None
        self._bot_info = TelegramBotInfo(
            username=result["username"], first_name=result.get("first_name", "")
        )
        return self._bot_info

    async def build_handoff(
        self, property_input: PropertyInput, question: str | None = None
    ) -> TelegramHandoff:
        """Resolve the bot and build the deep link, or report the hand-off as unavailable."""
        bot = await self.get_bot_info()
        if bot is None:
            return TelegramHandoff(available=False)
        message = build_handoff_message(property_input, question)
        return TelegramHandoff(
            available=True,
            bot_username=bot.username,
            url=generate_telegram_link(bot.username, message),
        )
