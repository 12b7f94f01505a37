import os
from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Optional, Tuple

from dotenv import load_dotenv
from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_groq import ChatGroq
from langchain_openai import ChatOpenAI

from providers import ChatModelProvider

load_dotenv()


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class PipelinePolicy:
    """Retry, backoff and timeout knobs injected into the orchestrator."""

    max_outline_attempts: int = 3
    backoff_seconds: float = 0.0
    backoff_multiplier: float = 2.0
    call_timeout: Optional[float] = None
    context_window: int = 2
    completeness_threshold: float = 0.8

    def __post_init__(self):
        if self.max_outline_attempts < 1:
            raise ValueError("max_outline_attempts must be at least 1")
        if self.backoff_seconds < 0 or self.backoff_multiplier < 1:
            raise ValueError("backoff must be non-negative and must not shrink")
        if self.call_timeout is not None and self.call_timeout <= 0:
            raise ValueError("call_timeout must be positive")
        if self.context_window < 0:
            raise ValueError("context_window must not be negative")

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1 = first retry)."""
        if attempt < 1 or self.backoff_seconds == 0:
            return 0.0
        return self.backoff_seconds * self.backoff_multiplier ** (attempt - 1)

    @classmethod
    def from_env(cls) -> "PipelinePolicy":
        return cls(
            max_outline_attempts=_env_int("PIPELINE_MAX_OUTLINE_ATTEMPTS", 3),
            backoff_seconds=_env_float("PIPELINE_BACKOFF_SECONDS", 0.0),
            backoff_multiplier=_env_float("PIPELINE_BACKOFF_MULTIPLIER", 2.0),
            call_timeout=_env_float("PIPELINE_CALL_TIMEOUT", None),
            context_window=_env_int("PIPELINE_CONTEXT_WINDOW", 2),
            completeness_threshold=_env_float("PIPELINE_COMPLETENESS_THRESHOLD", 0.8),
        )


def _openai_compatible(base_url: Optional[str] = None) -> Callable[[str, str], ChatOpenAI]:
    def build(model: str, api_key: str) -> ChatOpenAI:
        return ChatOpenAI(model=model, api_key=api_key, base_url=base_url)
    return build


class ModelBackend(NamedTuple):
    """A chat model the pipeline can run on, unlocked by the first key in ``key_vars`` that is set."""
    key: str
    vendor: str
    key_vars: Tuple[str, ...]
    model: str
    build: Callable[[str, str], object]
    model_env: Optional[str] = None

    def model_name(self) -> str:
        if self.model_env:
            return os.getenv(self.model_env) or self.model
        return self.model

    def api_key(self, keys: Dict[str, Optional[str]]) -> Optional[str]:
        return next((keys[var] for var in self.key_vars if keys.get(var)), None)


# Order matters: the first configured backend is the default one.
MODEL_BACKENDS = (
    ModelBackend("openai", "OpenAI", ("OPENAI_API_KEY",), "gpt-4o",
                 _openai_compatible(), model_env="OPENAI_MODEL"),
    ModelBackend("anthropic", "Anthropic", ("ANTHROPIC_API_KEY",), "claude-3-7-sonnet-20250219",
                 lambda model, api_key: ChatAnthropic(model=model, api_key=api_key)),
    ModelBackend("gemini", "Google", ("GEMINI_API_KEY", "GOOGLE_API_KEY"), "gemini-1.5-flash",
                 lambda model, api_key: ChatGoogleGenerativeAI(model=model, google_api_key=api_key)),
    ModelBackend("deepseek", "DeepSeek", ("DEEPSEEK_API_KEY",), "deepseek-chat",
                 _openai_compatible("https://api.deepseek.com/v1")),
    ModelBackend("grok", "x.ai", ("GROK_API_KEY",), "grok-3",
                 _openai_compatible("https://api.x.ai/v1")),
    ModelBackend("groq", "Groq", ("GROQ_API_KEY",), "llama-3.3-70b-versatile",
                 lambda model, api_key: ChatGroq(model=model, api_key=api_key)),
)


class Config:
    # read once on import, after .env has been loaded
    API_KEYS = {var: os.getenv(var) for backend in MODEL_BACKENDS for var in backend.key_vars}

    @staticmethod
    def get_available_models():
        """Chat models whose API key is configured, as ``{key: {"name", "llm"}}``."""
        models = {}
        for backend in MODEL_BACKENDS:
            api_key = backend.api_key(Config.API_KEYS)
            if not api_key:
                continue
            model = backend.model_name()
            models[backend.key] = {
                "name": f"{backend.vendor} ({model})",
                "llm": backend.build(model, api_key),
            }
        return models

    @staticmethod
    def get_default_provider(model_key: str | None = None) -> ChatModelProvider:
        models = Config.get_available_models()
        if not models:
            raise RuntimeError("No LLM available. Set OPENAI_API_KEY or another provider key.")
        key = model_key or next(iter(models))
        if key not in models:
            raise KeyError(f"Model '{key}' is not configured. Available: {', '.join(models)}")
        return ChatModelProvider(models[key]["llm"], name=models[key]["name"])


if __name__ == "__main__":
    available_models = Config.get_available_models()
    print("Available LLMs:")
    for key, model_info in available_models.items():
        print(f"- {model_info['name']} (key: {key})")

    policy = PipelinePolicy.from_env()
    print(f"\nPipeline policy: {policy}")
