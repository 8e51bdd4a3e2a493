"""AI module for B-Roll Scout.

Gemini-backed media analysis, the incremental analysis cache, and the
B-roll suggestion request. client.py is the only module that talks to
google-generativeai.
"""

from brollscout.ai.analyzer import ItemAnalyzer, coerce_media_item
from brollscout.ai.cache import AnalysisCache
from brollscout.ai.client import (
    AIClient,
    AIClientError,
    AIRequestError,
    AIResponse,
    APIKeyMissingError,
    ModelNotAvailableError,
    RateLimitError,
    TokenLimitExceededError,
    get_client,
)
from brollscout.ai.fallback import fallback_media_item, fallback_suggestions
from brollscout.ai.suggester import BrollSuggester, parse_suggestions

__all__ = [
    # Analysis
    "ItemAnalyzer",
    "coerce_media_item",
    "AnalysisCache",
    "BrollSuggester",
    "parse_suggestions",
    "fallback_media_item",
    "fallback_suggestions",
    # Client
    "AIClient",
    "AIResponse",
    "get_client",
    # Exceptions
    "AIClientError",
    "AIRequestError",
    "APIKeyMissingError",
    "ModelNotAvailableError",
    "RateLimitError",
    "TokenLimitExceededError",
]
