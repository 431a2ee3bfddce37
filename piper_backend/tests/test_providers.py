import httpx
import pytest

from piper_backend.config import ProviderKind
from piper_backend.providers import (
    DEFAULT_SYSTEM_PROMPT,
    GLOBAL_POLICY_TEXT,
    NO_RESPONSE_TEXT,
    PROVIDER_RULES,
    ProviderError,
    build_request,
    build_system_prompt,
    default_persona,
    detect_provider,
    gemini_model_name,
    normalize_response,
)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"


class TestDetectProvider:
    @pytest.mark.parametrize(
        "url,kind",
        [
            (GEMINI_URL, ProviderKind.GEMINI),
            ("HTTPS://GenerativeLanguage.GoogleAPIs.com/v1/models/x", ProviderKind.GEMINI),
            ("https://api.anthropic.com/v1/messages", ProviderKind.ANTHROPIC),
            ("https://API.GROQ.COM/openai/v1/chat/completions", ProviderKind.GROQ),
            ("https://openrouter.ai/api/v1/chat/completions", ProviderKind.OPENROUTER),
            ("https://api.openai.com/v1/chat/completions", ProviderKind.OPENAI),
            ("http://localhost:11434/v1/chat/completions", ProviderKind.OPENAI),
        ],
    )
    def test_known_hosts(self, url, kind):
        assert detect_provider(url) == kind

    @pytest.mark.parametrize("url", ["", None])
    def test_empty_url_is_default(self, url):
        assert detect_provider(url) == ProviderKind.OPENAI

    def test_rule_order_is_explicit(self):
        assert [kind for _, kind in PROVIDER_RULES] == [
            ProviderKind.GEMINI,
            ProviderKind.ANTHROPIC,
            ProviderKind.GROQ,
            ProviderKind.OPENROUTER,
        ]

    def test_first_match_wins(self):
        # A proxy path that mentions two hosts resolves to the earlier rule
        url = "https://openrouter.ai/proxy/generativelanguage.googleapis.com/v1"
        assert detect_provider(url) == ProviderKind.GEMINI


class TestSystemPrompt:
    def test_policy_alone_without_persona(self):
        assert build_system_prompt(GLOBAL_POLICY_TEXT) == GLOBAL_POLICY_TEXT
        assert build_system_prompt(GLOBAL_POLICY_TEXT, "   ") == GLOBAL_POLICY_TEXT

    def test_persona_follows_policy(self):
        prompt = build_system_prompt(GLOBAL_POLICY_TEXT, "Eres Piper, una pirata.")
        assert prompt == GLOBAL_POLICY_TEXT + "\n\nEres Piper, una pirata."
        assert prompt.startswith(GLOBAL_POLICY_TEXT)

    def test_fallback_when_persona_blank(self):
        prompt = build_system_prompt(GLOBAL_POLICY_TEXT, "  ", DEFAULT_SYSTEM_PROMPT)
        assert prompt == GLOBAL_POLICY_TEXT + "\n\n" + DEFAULT_SYSTEM_PROMPT

    def test_persona_beats_fallback(self):
        prompt = build_system_prompt(GLOBAL_POLICY_TEXT, "Eres Piper.", DEFAULT_SYSTEM_PROMPT)
        assert prompt == GLOBAL_POLICY_TEXT + "\n\nEres Piper."

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (ProviderKind.GROQ, DEFAULT_SYSTEM_PROMPT),
            (ProviderKind.OPENROUTER, DEFAULT_SYSTEM_PROMPT),
            (ProviderKind.OPENAI, DEFAULT_SYSTEM_PROMPT),
            (ProviderKind.GEMINI, None),
            (ProviderKind.ANTHROPIC, None),
        ],
    )
    def test_default_persona_per_kind(self, kind, expected):
        assert default_persona(kind) == expected


class TestBuildRequest:
    def test_gemini_appends_key_and_prefixes_prompt(self):
        req = build_request(ProviderKind.GEMINI, GEMINI_URL, "g-key", "hola", "SYS")
        assert req.method == "POST"
        assert req.url == GEMINI_URL + "?key=g-key"
        assert "Authorization" not in req.headers
        assert req.body == {
            "contents": [{"parts": [{"text": "SYS\n\nUsuario: hola"}]}],
            "generationConfig": {"temperature": 0.7, "maxOutputTokens": 1000},
        }
        assert req.model_name == "gemini-2.5-flash"

    def test_gemini_keeps_existing_key(self):
        url = GEMINI_URL + "?key=stored"
        req = build_request(ProviderKind.GEMINI, url, "other", "hola", None)
        assert req.url == url
        assert req.body["contents"][0]["parts"][0]["text"] == "hola"

    def test_gemini_extends_existing_query(self):
        req = build_request(ProviderKind.GEMINI, GEMINI_URL + "?alt=json", "k", "hola")
        assert req.url == GEMINI_URL + "?alt=json&key=k"

    def test_gemini_similar_param_is_not_a_key(self):
        req = build_request(ProviderKind.GEMINI, GEMINI_URL + "?apikey=x", "k", "hola")
        params = httpx.URL(req.url).params
        assert params["apikey"] == "x"
        assert params["key"] == "k"

    def test_gemini_key_value_containing_key_is_not_a_key(self):
        req = build_request(ProviderKind.GEMINI, GEMINI_URL + "?alt=key=1", "k", "hola")
        assert httpx.URL(req.url).params["key"] == "k"

    def test_gemini_credential_is_encoded(self):
        req = build_request(ProviderKind.GEMINI, GEMINI_URL, "a b&c=d", "hola")
        params = httpx.URL(req.url).params
        assert params["key"] == "a b&c=d"
        assert list(params.keys()) == ["key"]

    def test_gemini_model_name_missing(self):
        assert gemini_model_name("https://example.com/v1/generate") is None

    def test_anthropic_prompt_as_leading_turn(self):
        req = build_request(ProviderKind.ANTHROPIC, "https://api.anthropic.com/v1/messages", "a-key", "hola", "SYS")
        assert req.headers["x-api-key"] == "a-key"
        assert req.headers["anthropic-version"] == "2023-06-01"
        assert "Authorization" not in req.headers
        assert req.body == {
            "model": "claude-3-sonnet-20240229",
            "messages": [
                {"role": "user", "content": "SYS"},
                {"role": "assistant", "content": "Entendido."},
                {"role": "user", "content": "hola"},
            ],
            "max_tokens": 1000,
        }

    def test_anthropic_without_prompt(self):
        req = build_request(ProviderKind.ANTHROPIC, "https://api.anthropic.com/v1/messages", "a-key", "hola")
        assert req.body["messages"] == [{"role": "user", "content": "hola"}]

    def test_groq_body(self):
        req = build_request(ProviderKind.GROQ, "https://api.groq.com/openai/v1/chat/completions", "gk", "hola")
        assert req.headers["Authorization"] == "Bearer gk"
        assert req.body == {
            "model": "llama-3.3-70b-versatile",
            "messages": [
                {"role": "system", "content": DEFAULT_SYSTEM_PROMPT},
                {"role": "user", "content": "hola"},
            ],
            "temperature": 0.7,
            "max_tokens": 1000,
        }

    def test_groq_with_effective_prompt(self):
        prompt = build_system_prompt(GLOBAL_POLICY_TEXT)
        req = build_request(ProviderKind.GROQ, "https://api.groq.com/x", "gk", "hola", prompt)
        assert req.body["messages"][0] == {"role": "system", "content": GLOBAL_POLICY_TEXT}

    def test_openrouter_has_no_sampling_fields(self):
        req = build_request(ProviderKind.OPENROUTER, "https://openrouter.ai/api/v1/chat/completions", "ok", "hola", "SYS")
        assert req.headers["Authorization"] == "Bearer ok"
        assert req.body == {
            "model": "deepseek/deepseek-chat",
            "messages": [
                {"role": "system", "content": "SYS"},
                {"role": "user", "content": "hola"},
            ],
        }

    def test_default_kind_has_no_model(self):
        req = build_request(ProviderKind.OPENAI, "https://llm.example.com/v1/chat/completions", "ck", "hola")
        assert req.url == "https://llm.example.com/v1/chat/completions"
        assert req.headers == {"Content-Type": "application/json", "Authorization": "Bearer ck"}
        assert "model" not in req.body
        assert req.body["temperature"] == 0.7
        assert req.body["max_tokens"] == 1000
        assert req.body["messages"][0]["content"] == DEFAULT_SYSTEM_PROMPT


class TestNormalizeResponse:
    def test_gemini_text(self):
        payload = {"candidates": [{"content": {"parts": [{"text": "hola"}]}}]}
        assert normalize_response(ProviderKind.GEMINI, 200, payload) == "hola"

    def test_anthropic_text(self):
        payload = {"content": [{"type": "text", "text": "hola"}]}
        assert normalize_response(ProviderKind.ANTHROPIC, 200, payload) == "hola"

    @pytest.mark.parametrize("kind", [ProviderKind.GROQ, ProviderKind.OPENROUTER, ProviderKind.OPENAI])
    def test_chat_completions_text(self, kind):
        payload = {"choices": [{"message": {"role": "assistant", "content": "hola"}}]}
        assert normalize_response(kind, 200, payload) == "hola"

    def test_empty_choices_is_placeholder(self):
        assert normalize_response(ProviderKind.OPENROUTER, 200, {"choices": []}) == NO_RESPONSE_TEXT
        assert NO_RESPONSE_TEXT == "Sin respuesta"

    @pytest.mark.parametrize("payload", [None, {}, [], "text", {"candidates": [{"content": {}}]}])
    def test_malformed_success_is_placeholder(self, payload):
        assert normalize_response(ProviderKind.GEMINI, 200, payload) == NO_RESPONSE_TEXT

    def test_error_message_passed_through(self):
        with pytest.raises(ProviderError) as excinfo:
            normalize_response(ProviderKind.GROQ, 429, {"error": {"message": "rate limited"}})
        assert excinfo.value.message == "rate limited"
        assert excinfo.value.kind == ProviderKind.GROQ

    def test_string_error_passed_through(self):
        with pytest.raises(ProviderError) as excinfo:
            normalize_response(ProviderKind.OPENAI, 500, {"error": "boom"})
        assert excinfo.value.message == "boom"

    @pytest.mark.parametrize(
        "kind,message",
        [
            (ProviderKind.GEMINI, "Error en Gemini"),
            (ProviderKind.ANTHROPIC, "Error en Anthropic"),
            (ProviderKind.OPENAI, "Error en modelo personalizado"),
        ],
    )
    def test_generic_error_message(self, kind, message):
        with pytest.raises(ProviderError) as excinfo:
            normalize_response(kind, 503, None)
        assert excinfo.value.message == message
