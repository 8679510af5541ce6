"""DeepSeek chat backend."""

from .base import clamp_confidence
from .openai_compatible import OpenAICompatibleAdapter


class DeepSeekAdapter(OpenAICompatibleAdapter):
    """Cost-effective primary backend using the OpenAI wire format."""

    name = "deepseek"
    display_name = "DeepSeek"
    default_model = "deepseek-chat"
    default_base_url = "https://api.deepseek.com/v1"
    api_key_env = "DEEPSEEK_API_KEY"

    def confidence(self, text: str) -> float:
        return clamp_confidence(85 + (10 if len(text) > 100 else 0), floor=75)
