import pytest
from langchain_openai import ChatOpenAI

from config import MODEL_BACKENDS, Config, PipelinePolicy
from models import EXAMPLE_MARKETING_CONTEXT, create_marketing_context


class TestPipelinePolicy:

    def test_defaults(self):
        policy = PipelinePolicy()
        assert policy.max_outline_attempts == 3
        assert policy.backoff_seconds == 0.0
        assert policy.call_timeout is None
        assert policy.context_window == 2
        assert policy.completeness_threshold == 0.8

    def test_no_backoff_by_default(self):
        assert PipelinePolicy().backoff_delay(1) == 0.0
        assert PipelinePolicy().backoff_delay(5) == 0.0

    def test_exponential_backoff(self):
        policy = PipelinePolicy(backoff_seconds=0.5, backoff_multiplier=2.0)
        assert [policy.backoff_delay(n) for n in (0, 1, 2, 3)] == [0.0, 0.5, 1.0, 2.0]

    @pytest.mark.parametrize("kwargs", [
        {"max_outline_attempts": 0},
        {"backoff_seconds": -1},
        {"backoff_multiplier": 0.5},
        {"call_timeout": 0},
        {"context_window": -1},
    ])
    def test_rejects_bad_values(self, kwargs):
        with pytest.raises(ValueError):
            PipelinePolicy(**kwargs)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PIPELINE_MAX_OUTLINE_ATTEMPTS", "4")
        monkeypatch.setenv("PIPELINE_BACKOFF_SECONDS", "0.25")
        monkeypatch.setenv("PIPELINE_CALL_TIMEOUT", "30")
        monkeypatch.setenv("PIPELINE_CONTEXT_WINDOW", "3")
        monkeypatch.delenv("PIPELINE_COMPLETENESS_THRESHOLD", raising=False)
        monkeypatch.setenv("PIPELINE_BACKOFF_MULTIPLIER", "")

        policy = PipelinePolicy.from_env()

        assert policy.max_outline_attempts == 4
        assert policy.backoff_seconds == 0.25
        assert policy.backoff_multiplier == 2.0
        assert policy.call_timeout == 30.0
        assert policy.context_window == 3
        assert policy.completeness_threshold == 0.8


class TestConfig:

    def test_no_keys_means_no_models(self, monkeypatch):
        monkeypatch.setattr(Config, "API_KEYS", {})
        assert Config.get_available_models() == {}
        with pytest.raises(RuntimeError):
            Config.get_default_provider()

    def test_default_provider_wraps_first_model(self, monkeypatch):
        sentinel = object()
        monkeypatch.setattr(Config, "get_available_models",
                            staticmethod(lambda: {"openai": {"name": "OpenAI (test)", "llm": sentinel}}))
        provider = Config.get_default_provider()
        assert provider.llm is sentinel
        assert provider.name == "OpenAI (test)"
        with pytest.raises(KeyError):
            Config.get_default_provider("anthropic")

    def test_only_configured_backends_are_offered(self, monkeypatch):
        monkeypatch.setattr(Config, "API_KEYS", {"DEEPSEEK_API_KEY": "sk-test", "GROQ_API_KEY": None})
        models = Config.get_available_models()
        assert list(models) == ["deepseek"]
        assert models["deepseek"]["name"] == "DeepSeek (deepseek-chat)"
        assert isinstance(models["deepseek"]["llm"], ChatOpenAI)

    def test_every_backend_key_is_read(self):
        assert {"OPENAI_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY", "GROQ_API_KEY"} <= set(Config.API_KEYS)

    def test_backends_are_unique(self):
        keys = [backend.key for backend in MODEL_BACKENDS]
        assert len(keys) == len(set(keys))
        assert keys[0] == "openai"


class TestModelBackend:

    def test_gemini_falls_back_to_google_key(self):
        gemini = next(b for b in MODEL_BACKENDS if b.key == "gemini")
        assert gemini.api_key({"GOOGLE_API_KEY": "g"}) == "g"
        assert gemini.api_key({"GEMINI_API_KEY": "x", "GOOGLE_API_KEY": "g"}) == "x"
        assert gemini.api_key({"GEMINI_API_KEY": "", "GOOGLE_API_KEY": None}) is None

    def test_model_override_from_env(self, monkeypatch):
        openai = MODEL_BACKENDS[0]
        monkeypatch.delenv("OPENAI_MODEL", raising=False)
        assert openai.model_name() == "gpt-4o"
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
        assert openai.model_name() == "gpt-4o-mini"

    def test_backends_without_override_ignore_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
        groq = next(b for b in MODEL_BACKENDS if b.key == "groq")
        assert groq.model_name() == "llama-3.3-70b-versatile"


class TestMarketingContext:

    def test_defaults(self):
        context = create_marketing_context("Acme")
        assert context.brand_voice == ["Professional", "Clear", "Helpful"]
        assert context.brand_tone == "Professional"
        assert context.value_proposition == "Acme helps businesses succeed"

    def test_overrides(self):
        context = create_marketing_context("Acme", brand_tone="Playful", content_donts=["No slang"])
        assert context.brand_tone == "Playful"
        assert context.content_donts == ["No slang"]

    def test_example_context(self):
        assert EXAMPLE_MARKETING_CONTEXT.brand_name == "Everreach"
        assert len(EXAMPLE_MARKETING_CONTEXT.content_donts) == 4
