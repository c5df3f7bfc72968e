"""
Tests for the HTTP collaborators (Gmail and the LLM providers) and the
settings they are configured from.

All HTTP traffic goes through httpx.MockTransport.
"""

import json

import httpx
import pytest

from mailledger.core.config import Settings, split_csv, validate_settings
from mailledger.core.errors import ConfigurationFailure, LLMError, MailClientError
from mailledger.core.resources import SharedHandle
from mailledger.emails.config import MailConfig
from mailledger.emails.gmail_client import GmailClient, StaticTokenProvider, gmail_client_factory
from mailledger.emails.models import MessageRef
from mailledger.parsing.config import LLMConfig
from mailledger.parsing.llm_client import GeminiClient, GroqClient, create_llm_client
from tests.fixtures.sample_messages import b64


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class GmailStub:
    """Minimal Gmail REST API behind a MockTransport."""

    def __init__(self, labels=None, fail_ids=()):
        self.labels = list(labels or [])
        self.fail_ids = set(fail_ids)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.replace("/gmail/v1/users/me/", "")

        if path == "messages":
            return httpx.Response(200, json={"messages": [{"id": "m1", "threadId": "t1"}, {"id": "m2"}]})
        if path == "labels" and request.method == "GET":
            return httpx.Response(200, json={"labels": self.labels})
        if path == "labels" and request.method == "POST":
            body = json.loads(request.content)
            label = {"id": "Label_9", "name": body["name"]}
            self.labels.append(label)
            return httpx.Response(200, json=label)
        if path.endswith("/modify"):
            return httpx.Response(200, json={"id": path.split("/")[1]})
        if path.startswith("messages/"):
            message_id = path.split("/")[1]
            if message_id in self.fail_ids:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(
                200,
                json={
                    "id": message_id,
                    "payload": {"mimeType": "text/plain", "body": {"data": b64(f"body {message_id}")}},
                },
            )
        return httpx.Response(400)

    def client(self, config: MailConfig, token: str = "tok") -> GmailClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return GmailClient("acct", StaticTokenProvider({"acct": token}), config, http_client=http)


class TestGmailClient:
    """Tests for GmailClient over a stubbed API."""

    @pytest.mark.asyncio
    async def test_list_candidates_sends_query_and_token(self):
        stub = GmailStub()
        client = stub.client(MailConfig(max_results=20))

        refs = await client.list_candidates("is:unread")

        assert [r.id for r in refs] == ["m1", "m2"]
        request = stub.requests[0]
        assert request.url.params["q"] == "is:unread"
        assert request.url.params["maxResults"] == "20"
        assert request.headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_get_messages_preserves_order_and_skips_failures(self):
        stub = GmailStub(fail_ids={"m2"})
        client = stub.client(MailConfig(fetch_concurrency=2))
        refs = [MessageRef(id=i) for i in ("m1", "m2", "m3", "m4", "m5")]

        messages = await client.get_messages(refs)

        assert [m.id for m in messages] == ["m1", "m3", "m4", "m5"]

    @pytest.mark.asyncio
    async def test_mark_processed_creates_label_once(self):
        stub = GmailStub()
        client = stub.client(MailConfig(processed_label="Processed-Financial"))

        await client.mark_processed("m1")
        await client.mark_processed("m2")

        creates = [r for r in stub.requests if r.method == "POST" and r.url.path.endswith("/labels")]
        assert len(creates) == 1
        modify = json.loads(stub.requests[-1].content)
        assert modify == {"addLabelIds": ["Label_9"], "removeLabelIds": ["UNREAD"]}

    @pytest.mark.asyncio
    async def test_mark_processed_reuses_existing_label(self):
        stub = GmailStub(labels=[{"id": "Label_1", "name": "Processed-Financial"}])
        client = stub.client(MailConfig())

        await client.mark_processed("m1")

        assert not any(r.method == "POST" and r.url.path.endswith("/labels") for r in stub.requests)
        assert json.loads(stub.requests[-1].content)["addLabelIds"] == ["Label_1"]

    @pytest.mark.asyncio
    async def test_http_error_raises_mail_client_error(self):
        stub = GmailStub(fail_ids={"m1"})
        client = stub.client(MailConfig())

        with pytest.raises(MailClientError):
            await client.get_message("m1")

    @pytest.mark.asyncio
    async def test_missing_token_raises_configuration_failure(self):
        client = GmailClient("other", StaticTokenProvider({}), MailConfig())

        with pytest.raises(ConfigurationFailure):
            await client.list_candidates("is:unread")

        await client.close()

    def test_factory_builds_client_per_account(self):
        factory = gmail_client_factory(MailConfig(access_tokens={"a": "t"}))

        client = factory("a")

        assert isinstance(client, GmailClient)
        assert client.account_id == "a"


def llm_handle(handler) -> SharedHandle[httpx.AsyncClient]:
    async def factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def closer(client: httpx.AsyncClient) -> None:
        await client.aclose()

    return SharedHandle("test-http", factory, closer=closer)


class TestLLMClients:
    """Tests for the Gemini and Groq REST clients."""

    @pytest.mark.asyncio
    async def test_gemini_request_and_response(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200, json={"candidates": [{"content": {"parts": [{"text": ' {"amount": 1} '}]}}]}
            )

        client = GeminiClient(LLMConfig(api_key="g-key", model="gemini-x"), llm_handle(handler))

        text = await client.complete("hello")

        assert text == '{"amount": 1}'
        request = seen[0]
        assert request.url.path.endswith("/gemini-x:generateContent")
        assert request.headers["x-goog-api-key"] == "g-key"
        body = json.loads(request.content)
        assert body["contents"][0]["parts"][0]["text"] == "hello"
        assert body["generationConfig"]["temperature"] == 0.1
        await client.close()

    @pytest.mark.asyncio
    async def test_groq_request_and_response(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        client = GroqClient(LLMConfig(provider="groq", api_key="q-key", model="llama"), llm_handle(handler))

        assert await client.complete("hi") == "ok"
        assert seen[0].headers["Authorization"] == "Bearer q-key"
        assert json.loads(seen[0].content)["model"] == "llama"

    @pytest.mark.asyncio
    async def test_non_2xx_raises_llm_error(self):
        client = GeminiClient(
            LLMConfig(api_key="k"), llm_handle(lambda r: httpx.Response(429, text="quota"))
        )

        with pytest.raises(LLMError, match="429"):
            await client.complete("hi")

    @pytest.mark.asyncio
    async def test_empty_envelope_raises_llm_error(self):
        client = GeminiClient(
            LLMConfig(api_key="k"), llm_handle(lambda r: httpx.Response(200, json={"candidates": []}))
        )

        with pytest.raises(LLMError):
            await client.complete("hi")

    @pytest.mark.asyncio
    async def test_transport_error_raises_llm_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = GroqClient(LLMConfig(provider="groq", api_key="k"), llm_handle(handler))

        with pytest.raises(LLMError):
            await client.complete("hi")
        assert await client.ping() is False

    @pytest.mark.asyncio
    async def test_http_client_created_once(self):
        handle = llm_handle(lambda r: httpx.Response(200, json={"choices": [{"message": {"content": "x"}}]}))
        client = GroqClient(LLMConfig(provider="groq", api_key="k"), handle)

        await client.complete("a")
        await client.complete("b")

        assert handle.init_count == 1
        await client.close()
        assert not handle.ready

    def test_missing_key_raises(self):
        with pytest.raises(ConfigurationFailure):
            GeminiClient(LLMConfig(api_key=None))

    def test_factory_selects_provider(self):
        assert isinstance(create_llm_client(LLMConfig(provider="groq", api_key="k")), GroqClient)
        assert isinstance(create_llm_client(LLMConfig(api_key="k")), GeminiClient)


class TestSettings:
    """Tests for settings parsing and validation."""

    def test_split_csv(self):
        assert split_csv(" a, ,b ,") == ["a", "b"]
        assert split_csv(None) == []

    def test_validate_settings_reports_missing_values(self):
        settings = make_settings(
            GEMINI_API_KEY=None,
            GMAIL_ACCOUNTS=" ",
            ENABLE_WHATSAPP_NOTIFICATIONS=True,
        )

        errors = validate_settings(settings)

        assert "GEMINI_API_KEY is not set" in errors
        assert "At least one Gmail account must be specified" in errors
        assert any("WAHA_BASE_URL" in e for e in errors)
        assert any("WAHA_API_KEY" in e for e in errors)

    def test_validate_settings_ok(self):
        settings = make_settings(LLM_PROVIDER="groq", GROQ_API_KEY="k", GMAIL_ACCOUNTS="a,b")

        assert validate_settings(settings) == []
        assert settings.gmail_accounts == ["a", "b"]

    def test_mail_config_parses_token_pairs(self):
        settings = make_settings(
            GMAIL_ACCESS_TOKENS="a=tok1, b = tok2, broken", GMAIL_PROCESSED_LABEL="Done"
        )

        config = MailConfig.from_settings(settings)

        assert config.processed_label == "Done"
        assert config.access_tokens == {"a": "tok1", "b": "tok2"}

    def test_llm_config_from_settings(self):
        gemini = LLMConfig.from_settings(make_settings(GEMINI_API_KEY="g"))
        groq = LLMConfig.from_settings(make_settings(LLM_PROVIDER="groq", GROQ_API_KEY="q"))

        assert (gemini.provider, gemini.api_key) == ("gemini", "g")
        assert (groq.provider, groq.api_key, groq.model) == ("groq", "q", "llama-3.1-8b-instant")
