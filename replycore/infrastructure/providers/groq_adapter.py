"""Llama 3 served by Groq's OpenAI-compatible API."""

from .base import clamp_confidence
from .openai_compatible import OpenAICompatibleAdapter


class GroqAdapter(OpenAICompatibleAdapter):
    """Low-cost Llama 3 backend for standard turns."""

    name = "groq"
    display_name = "Groq"
    default_model = "llama-3.1-70b-versatile"
    default_base_url = "https://api.groq.com/openai/v1"
    api_key_env = "GROQ_API_KEY"
    default_max_tokens = 500

    def confidence(self, text: str) -> float:
        # Longer answers read as more confident
        return clamp_confidence(len(text) / 10, floor=50)
