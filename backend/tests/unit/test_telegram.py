"""Unit tests for the Telegram hand-off link."""

from urllib.parse import unquote

import httpx

from inmoai.services.telegram import (
    TelegramService,
    build_handoff_message,
    generate_telegram_link,
)

GET_ME_OK = {"ok": True, "result": {"id": 1, "is_bot": True, "first_name": "InmoAI", "username": "InmoAIBot"}}


def make_service(handler, token: str = "123:abc") -> tuple[TelegramService, list]:
    calls = []

    def recording(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return TelegramService(token, client=client), calls


class TestLinks:
    def test_link_encodes_text(self):
        link = generate_telegram_link("InmoAIBot", "¿Es buena inversión? Sí & no")

        assert link.startswith("https://t.me/InmoAIBot?text=")
        assert " " not in link
        assert "&" not in link.split("?text=")[1]
        assert unquote(link.split("?text=")[1]) == "¿Es buena inversión? Sí & no"

    def test_message_mentions_property_and_question(self, sample_property_input):
        message = build_handoff_message(sample_property_input, "¿Cuánto costaría reformarlo?")

        assert message.startswith("Hola! Vengo de InmoAI Analytics.")
        assert '"Apartamento en Chamberí, Madrid" en Chamberí, Madrid' in message
        assert message.endswith("Mi duda es: ¿Cuánto costaría reformarlo?")

    def test_message_uses_default_question(self, sample_property_input):
        assert build_handoff_message(sample_property_input).endswith("Mi duda es: ¿Es una buena inversión?")


class TestTelegramService:
    async def test_get_bot_info_is_cached(self):
        service, calls = make_service(lambda request: httpx.Response(200, json=GET_ME_OK))

        first = await service.get_bot_info()
        second = await service.get_bot_info()

        assert first.username == "InmoAIBot"
        assert second is first
        assert len(calls) == 1
        assert calls[0].url.path == "/bot123:abc/getMe"

    async def test_missing_token_makes_no_request(self):
        service, calls = make_service(lambda request: httpx.Response(200, json=GET_ME_OK), token="")

        assert await service.get_bot_info() is None
        assert calls == []

    async def test_rejected_token_returns_none(self):
        service, _ = make_service(
            lambda request: httpx.Response(401, json={"ok": False, "description": "Unauthorized"})
        )

        assert await service.get_bot_info() is None

    async def test_network_error_returns_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        service, _ = make_service(handler)

        assert await service.get_bot_info() is None

    async def test_handoff_available(self, sample_property_input):
        service, _ = make_service(lambda request: httpx.Response(200, json=GET_ME_OK))

        handoff = await service.build_handoff(sample_property_input, "¿Tiene terraza?")

        assert handoff.available is True
        assert handoff.bot_username == "InmoAIBot"
        assert "Tiene%20terraza" in handoff.url

    async def test_handoff_unavailable_without_bot(self, sample_property_input):
        service, _ = make_service(lambda request: httpx.Response(200, json=GET_ME_OK), token="")

        handoff = await service.build_handoff(sample_property_input)

        assert handoff.available is False
        assert handoff.url is None
