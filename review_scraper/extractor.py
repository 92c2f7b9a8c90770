"""Vision-model call that transcribes reviews from page screenshots."""

import asyncio
import base64
import logging
from typing import Optional, Sequence

import openai
from openai import AsyncOpenAI

from .config import OPENAI_API_KEY, OPENAI_MAX_TOKENS, OPENAI_MODEL, OPENAI_TIMEOUT_S
from .errors import ExtractionServiceError
from .models import TRUNCATION_MARKER

logger = logging.getLogger("app.extractor")

PROMPT = f"""
Analyze the following screenshots of a product review page. Extract the reviews you can see. For each review, provide:
1. Review title (exactly as shown, if available)
2. Review body (full text, do not summarize)
3. Rating (as a number out of 5)
4. Reviewer name (exactly as shown)

Present the information in a JSON format like this:
{{
  "reviews": [
    {{
      "title": "Great product!",
      "body": "This item exceeded my expectations. I've been using it for a month now and I can already see significant improvements...",
      "rating": 5,
      "reviewer": "John Doe"
    }}
  ]
}}

If you can't see the full content of a review, include as much as you can see and add "{TRUNCATION_MARKER}" at the end of the body.
If you can't extract any reviews or there's an issue, return an empty array for "reviews".
Do not include any explanations or additional text outside of the JSON structure.
""".strip()


def image_part(image: bytes) -> dict:
    encoded = base64.b64encode(image).decode("ascii")
    return {
        "type": "image_url",
        "image_url": {"url": f"data:image/png;base64,{encoded}"},
    }


def _error_payload(error: Exception) -> dict:
    payload = {"error": type(error).__name__, "message": str(error)}
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        payload["status_code"] = status_code
    body = getattr(error, "body", None)
    if body is not None:
        payload["body"] = body
    return payload


class ReviewExtractor:
    """Sends every frame plus the instruction in a single chat request.

    All frames go out together: one round trip per page regardless of
    frame count, at the cost of possibly exceeding the model's input
    limit on very tall pages.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = OPENAI_MODEL,
        timeout: float = OPENAI_TIMEOUT_S,
        max_tokens: int = OPENAI_MAX_TOKENS,
        prompt: str = PROMPT,
    ) -> None:
        self._client = client
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.prompt = prompt

    @property
    def client(self) -> AsyncOpenAI:
        # Built lazily so a missing API key surfaces as an extraction
        # failure rather than an import-time crash
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=OPENAI_API_KEY, timeout=self.timeout, max_retries=0
            )
        return self._client

    def build_messages(self, images: Sequence[bytes]) -> list:
        content = [{"type": "text", "text": self.prompt}]
        content.extend(image_part(image) for image in images)
        return [{"role": "user", "content": content}]

    async def extract(self, images: Sequence[bytes]) -> str:
        """Return the model's raw text reply for the given screenshots.

        Raises `ExtractionServiceError` on any provider or timeout failure.
        """
        logger.info("Starting screenshot analysis of %d frames", len(images))
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=self.build_messages(images),
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ExtractionServiceError(
                f"Vision model did not answer within {self.timeout}s",
                payload={"error": "Timeout", "timeout_s": self.timeout},
            ) from e
        except openai.OpenAIError as e:
            raise ExtractionServiceError(
                f"Vision model request failed: {e}", payload=_error_payload(e)
            ) from e

        logger.info("Vision model response received")
        content = response.choices[0].message.content if response.choices else None
        logger.debug("Raw vision model response: %s", content)
        return content or ""
