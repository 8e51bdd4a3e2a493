"""Low-level Gemini API client for B-Roll Scout.

This module provides the AIClient class for interacting with Google's Gemini API.
Handles request/response formatting, rate limiting, and retries. It is the only
module that imports google-generativeai.

The API key is passed in at construction; the client never looks it up on its
own. Higher-level components (ItemAnalyzer, BrollSuggester) catch AIClientError
and turn it into their fallback values.
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import (
    GenerateContentResponse,
    HarmBlockThreshold,
    HarmCategory,
)

from brollscout.config import AISettings
from brollscout.utils.logging import RedactingFilter

T = TypeVar("T")

# Inline content accepted by generate(): text or {"mime_type", "data"} blobs
ContentPart = str | dict[str, Any]


logger = logging.getLogger(__name__)
logger.addFilter(RedactingFilter())


# =============================================================================
# Exceptions
# =============================================================================


class AIClientError(Exception):
    """Base exception for AI client errors."""

    pass


class APIKeyMissingError(AIClientError):
    """Raised when no API key is available or the key is rejected."""

    pass


class RateLimitError(AIClientError):
    """Raised when rate limit is exceeded.

    Attributes:
        retry_after: Suggested wait time in seconds, if known.
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ModelNotAvailableError(AIClientError):
    """Raised when the requested model is not available."""

    pass


class TokenLimitExceededError(AIClientError):
    """Raised when the request exceeds token limits."""

    pass


class AIRequestError(AIClientError):
    """Generic AI request failure, including unparseable responses."""

    pass


# =============================================================================
# Response Data Class
# =============================================================================


@dataclass
class AIResponse:
    """Response from an AI generation request.

    Attributes:
        text: The generated text response.
        model: The model that generated the response.
        prompt_tokens: Number of tokens in the prompt (if available).
        completion_tokens: Number of tokens in the completion (if available).
        finish_reason: Why generation stopped (if available).
        raw_response: The original response object from the API.
    """

    text: str
    model: str
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    finish_reason: str | None = None
    raw_response: Any = field(default=None, repr=False)


# =============================================================================
# AI Client
# =============================================================================


class AIClient:
    """Client for Google's Gemini API.

    Handles request/response formatting, rate limiting, and retries with
    exponential backoff.

    Example:
        ```python
        client = AIClient(api_key=key)
        data = client.generate_json(["Describe this image", image_part])
        ```
    """

    DEFAULT_SAFETY_SETTINGS = {
        HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
        HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_ONLY_HIGH,
        HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
    }

    def __init__(
        self,
        api_key: str | None,
        settings: AISettings | None = None,
    ) -> None:
        """Initialize the AI client.

        Args:
            api_key: Gemini API key.
            settings: AI configuration settings. Uses defaults if None.

        Raises:
            APIKeyMissingError: If no API key is given.
        """
        self.settings = settings or AISettings()

        if not api_key:
            raise APIKeyMissingError("No API key available. Configure with 'broll-scout config set-key'.")

        genai.configure(api_key=api_key)
        logger.debug(f"AI client initialized with model: {self.settings.model_name}")

    @property
    def model_name(self) -> str:
        return self.settings.model_name

    # =========================================================================
    # Public Methods
    # =========================================================================

    def generate(
        self,
        contents: ContentPart | list[ContentPart],
        system_instruction: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
        max_retries: int | None = None,
    ) -> AIResponse:
        """Generate a response from the model.

        Args:
            contents: Prompt text, or a list of text and inline blob parts.
            system_instruction: Optional system instruction to guide the model.
            temperature: Override default temperature (0.0-2.0).
            max_tokens: Override default max tokens.
            json_output: Ask the model for an application/json response.
            max_retries: Override the configured retry count; 0 sends exactly
                one request.

        Returns:
            AIResponse containing the generated text and metadata.

        Raises:
            AIClientError: If the request fails after retries.
        """
        model = self._get_model(
            system_instruction=system_instruction,
            temperature=temperature,
            max_tokens=max_tokens,
            json_output=json_output,
        )

        def do_generate() -> GenerateContentResponse:
            return model.generate_content(
                contents,
                request_options={"timeout": self.settings.timeout_seconds},
            )

        try:
            response = self._with_retry(do_generate, max_retries=max_retries)
            return self._parse_response(response)
        except AIClientError:
            raise
        except Exception as e:
            raise self._map_error(e) from e

    def generate_json(
        self,
        contents: ContentPart | list[ContentPart],
        system_instruction: str | None = None,
        max_retries: int | None = None,
    ) -> Any:
        """Generate a response and parse it as JSON.

        Returns:
            The decoded JSON value (object, array, ...).

        Raises:
            AIRequestError: If generation fails or the text is not valid JSON.
        """
        json_instruction = (
            "You must respond with valid JSON only. "
            "Do not include any text before or after the JSON. "
            "Do not use markdown code blocks."
        )
        if system_instruction:
            full_instruction = f"{system_instruction}\n\n{json_instruction}"
        else:
            full_instruction = json_instruction

        response = self.generate(
            contents,
            system_instruction=full_instruction,
            json_output=True,
            max_retries=max_retries,
        )
        return parse_json_text(response.text)

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _get_model(
        self,
        system_instruction: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> genai.GenerativeModel:
        config_kwargs: dict[str, Any] = {
            "temperature": temperature if temperature is not None else self.settings.temperature,
            "max_output_tokens": max_tokens if max_tokens is not None else self.settings.max_tokens,
        }
        if json_output:
            config_kwargs["response_mime_type"] = "application/json"

        return genai.GenerativeModel(
            model_name=self.settings.model_name,
            generation_config=genai.GenerationConfig(**config_kwargs),
            safety_settings=self.DEFAULT_SAFETY_SETTINGS,
            system_instruction=system_instruction,
        )

    def _with_retry(
        self,
        func: Callable[[], T],
        max_retries: int | None = None,
    ) -> T:
        """Execute a function with retry logic and exponential backoff.

        Retries rate limits (429) and temporary server errors (500, 503).
        Auth errors, bad requests, and missing models fail immediately.
        """
        retries = max_retries if max_retries is not None else self.settings.max_retries

        for attempt in range(retries + 1):
            try:
                return func()

            except (
                google_exceptions.ResourceExhausted,
                google_exceptions.ServiceUnavailable,
                google_exceptions.InternalServerError,
            ) as e:
                wait_time = self._calculate_backoff(attempt)
                if attempt < retries:
                    logger.warning(
                        f"{type(e).__name__}, waiting {wait_time:.1f}s "
                        f"(attempt {attempt + 1}/{retries + 1})"
                    )
                    time.sleep(wait_time)
                    continue

                if isinstance(e, google_exceptions.ResourceExhausted):
                    raise RateLimitError(
                        f"Rate limit exceeded after {retries + 1} attempts",
                        retry_after=wait_time,
                    ) from e
                raise AIRequestError(f"Server error after {retries + 1} attempts: {e}") from e

            except google_exceptions.InvalidArgument as e:
                error_msg = str(e).lower()
                if "token" in error_msg or "limit" in error_msg:
                    raise TokenLimitExceededError(f"Token limit exceeded: {e}") from e
                raise AIRequestError(f"Invalid request: {e}") from e

            except (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated) as e:
                raise APIKeyMissingError(f"Authentication failed - check API key: {e}") from e

            except google_exceptions.NotFound as e:
                raise ModelNotAvailableError(f"Model not available: {e}") from e

        raise AIRequestError("Request failed for unknown reason")

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff (1s, 2s, 4s, ...) with ±25% jitter, capped at 60s."""
        delay = 1.0 * (2**attempt)
        jitter = delay * 0.25 * (random.random() * 2 - 1)
        return min(delay + jitter, 60.0)

    def _parse_response(self, response: GenerateContentResponse) -> AIResponse:
        """Parse a Gemini response into an AIResponse.

        Raises:
            AIRequestError: If response is blocked or empty.
        """
        if not response.candidates:
            if response.prompt_feedback:
                raise AIRequestError(f"Response blocked: {response.prompt_feedback}")
            raise AIRequestError("Empty response from API")

        candidate = response.candidates[0]

        finish_reason = None
        if getattr(candidate, "finish_reason", None):
            finish_reason = str(getattr(candidate.finish_reason, "name", candidate.finish_reason))
            if finish_reason == "SAFETY":
                raise AIRequestError("Response blocked due to safety settings")

        try:
            text = response.text
        except ValueError as e:
            raise AIRequestError(f"Could not extract text from response: {e}") from e

        prompt_tokens = None
        completion_tokens = None
        metadata = getattr(response, "usage_metadata", None)
        if metadata:
            prompt_tokens = getattr(metadata, "prompt_token_count", None)
            completion_tokens = getattr(metadata, "candidates_token_count", None)

        return AIResponse(
            text=text,
            model=self.settings.model_name,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            finish_reason=finish_reason,
            raw_response=response,
        )

    def _map_error(self, error: Exception) -> AIClientError:
        """Map an unexpected exception onto the AIClientError hierarchy."""
        error_str = str(error).lower()

        if "quota" in error_str or "rate" in error_str:
            return RateLimitError(f"Rate limit or quota exceeded: {error}")
        if "token" in error_str and "limit" in error_str:
            return TokenLimitExceededError(f"Token limit exceeded: {error}")
        if "api key" in error_str or "authentication" in error_str:
            return APIKeyMissingError(f"API key error: {error}")
        if "model" in error_str and ("not found" in error_str or "unavailable" in error_str):
            return ModelNotAvailableError(f"Model not available: {error}")

        return AIRequestError(f"AI request failed: {error}")


# =============================================================================
# Module-Level Functions
# =============================================================================


def parse_json_text(text: str) -> Any:
    """Decode model output as JSON, tolerating a markdown code fence.

    Raises:
        AIRequestError: If the text is not valid JSON.
    """
    cleaned = (text or "").strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    try:
        return json.loads(cleaned.strip())
    except json.JSONDecodeError as e:
        logger.debug(f"Unparseable response ({len(cleaned)} chars)")
        raise AIRequestError(f"Failed to parse JSON response: {e}") from e


def image_part(data: bytes, mime_type: str = "image/jpeg") -> dict[str, Any]:
    """Wrap raw image bytes as an inline content part."""
    return {"mime_type": mime_type, "data": data}


def get_client(
    api_key: str | None,
    settings: AISettings | None = None,
) -> AIClient | None:
    """Build an AIClient, or return None when no API key is available.

    A missing key is not an error at this level; components that receive
    None fall back for every request.
    """
    try:
        return AIClient(api_key=api_key, settings=settings)
    except APIKeyMissingError as e:
        logger.warning(f"AI disabled: {e}")
        return None
