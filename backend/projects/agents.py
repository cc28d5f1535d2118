from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Provider(str, Enum):
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"


@dataclass
class ModelConfig:
    id: str  # Public id sent by the model selector
    name: str
    provider: Provider
    provider_model: str  # Id understood by the provider API
    max_tokens: int = 16000
    temperature: float = 0.3
    input_credits_per_1k: float = 0.3
    output_credits_per_1k: float = 1.5
    is_default: bool = False

    def credits_for(self, input_tokens: int, output_tokens: int) -> float:
        cost = (input_tokens / 1000) * self.input_credits_per_1k + (output_tokens / 1000) * self.output_credits_per_1k
        return round(cost, 4)


MODEL_CONFIGS: dict[str, ModelConfig] = {
    "anthropic/claude-sonnet-4.5": ModelConfig(
        id="anthropic/claude-sonnet-4.5",
        name="Claude Sonnet 4.5",
        provider=Provider.ANTHROPIC,
        provider_model="claude-sonnet-4-5-20250929",
        input_credits_per_1k=0.3,
        output_credits_per_1k=1.5,
        is_default=True,
    ),
    "anthropic/claude-opus-4.5": ModelConfig(
        id="anthropic/claude-opus-4.5",
        name="Claude Opus 4.5",
        provider=Provider.ANTHROPIC,
        provider_model="claude-opus-4-5",
        input_credits_per_1k=0.5,
        output_credits_per_1k=2.5,
    ),
    "openai/gpt-4o": ModelConfig(
        id="openai/gpt-4o",
        name="GPT-4o",
        provider=Provider.OPENROUTER,
        provider_model="openai/gpt-4o",
        max_tokens=16000,
        input_credits_per_1k=0.25,
        output_credits_per_1k=1.0,
    ),
    "google/gemini-2.5-pro": ModelConfig(
        id="google/gemini-2.5-pro",
        name="Gemini 2.5 Pro",
        provider=Provider.OPENROUTER,
        provider_model="google/gemini-2.5-pro",
        input_credits_per_1k=0.125,
        output_credits_per_1k=1.0,
    ),
}


def default_model() -> ModelConfig:
    return next(m for m in MODEL_CONFIGS.values() if m.is_default)


def get_model(model_id: Optional[str]) -> Optional[ModelConfig]:
    """Config for `model_id`; the default model when no id is given."""
    if not model_id:
        return default_model()
    return MODEL_CONFIGS.get(model_id)
