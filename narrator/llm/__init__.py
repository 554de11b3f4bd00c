"""Provider clients and request helpers for classifier and speech calls."""

from .cache import ResponseCache
from .openai_client import OpenAIChatClient, OpenAIProviderError, OpenAISpeechClient
from .prompts import PromptLibrary
from .rate_limiter import RateLimiter

__all__ = [
    "OpenAIChatClient",
    "OpenAIProviderError",
    "OpenAISpeechClient",
    "PromptLibrary",
    "RateLimiter",
    "ResponseCache",
]
