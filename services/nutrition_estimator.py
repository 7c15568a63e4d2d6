"""Nutrition estimation from a meal photo.

`NutritionEstimator` is the capability the ingestion pipeline depends on.
`OpenAIVisionEstimator` asks a vision model for a JSON estimate and
substitutes `FALLBACK_ESTIMATE` whenever the model is unconfigured,
unreachable, or replies with something that cannot be parsed. Callers never
see a partially populated estimate or an upstream error.
"""

import base64
import json
import re
from typing import Any, Optional, Protocol

from openai import OpenAI, OpenAIError

from core.logger import get_logger
from schemas.meal_schema import NutritionEstimate

logger = get_logger("services.nutrition_estimator")

UNKNOWN_FOOD_NAME = "Unknown food"

FALLBACK_ESTIMATE = NutritionEstimate(
    food_name=UNKNOWN_FOOD_NAME,
    calories=300,
    protein=15,
    carbs=30,
    fat=10,
)

PROMPT = """Analyze this food photo and estimate the nutritional content. Be specific about the food items you see.

Return ONLY a JSON object in this exact format, no markdown or extra text:
{
  "food_name": "Brief description of the food (e.g., 'Grilled chicken salad with ranch dressing')",
  "calories": <number>,
  "protein": <grams as number>,
  "carbs": <grams as number>,
  "fat": <grams as number>
}

Be realistic with portion sizes and calorie estimates. If you can't identify the food clearly, make your best guess."""

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class NutritionEstimator(Protocol):
    def estimate(self, image_bytes: bytes) -> NutritionEstimate:
        ...


class EstimateParseError(ValueError):
    """The model reply did not contain a usable JSON estimate."""


def _whole_number(value: Any) -> int:
    """Round to a non-negative int; anything non-numeric becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number or number in (float("inf"), float("-inf")):
        return 0
    return max(0, int(round(number)))


def parse_estimate(content: str) -> NutritionEstimate:
    """Parse a model reply into a `NutritionEstimate`.

    Markdown code fences around the JSON are stripped.

    Raises:
        EstimateParseError: If the reply is not a JSON object.
    """
    text = _FENCE_RE.sub("", (content or "").strip()).replace("```", "").strip()
    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise EstimateParseError(f"Model reply is not JSON: {text[:200]!r}") from exc
    if not isinstance(payload, dict):
        raise EstimateParseError("Model reply is not a JSON object")

    food_name = str(payload.get("food_name") or "").strip() or UNKNOWN_FOOD_NAME
    return NutritionEstimate(
        food_name=food_name,
        calories=_whole_number(payload.get("calories")),
        protein=_whole_number(payload.get("protein")),
        carbs=_whole_number(payload.get("carbs")),
        fat=_whole_number(payload.get("fat")),
    )


class FallbackEstimator:
    """Always returns the fixed fallback estimate."""

    def estimate(self, image_bytes: bytes) -> NutritionEstimate:
        return FALLBACK_ESTIMATE.model_copy()


class OpenAIVisionEstimator:
    """Estimates nutrition with an OpenAI vision chat completion.

    Attributes:
        client: OpenAI client, or None when no API key is configured.
        model: Vision-capable chat model name.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o",
        timeout: float = 30.0,
        max_retries: int = 1,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        if client is not None:
            self.client = client
        elif api_key:
            self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)
        else:
            self.client = None

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _messages(self, image_bytes: bytes) -> list:
        encoded = base64.b64encode(image_bytes).decode("utf-8")
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:image/jpeg;base64,{encoded}", "detail": "low"},
                    },
                ],
            }
        ]

    def request_estimate(self, image_bytes: bytes) -> NutritionEstimate:
        """Call the model once and parse its reply; errors propagate."""
        response = self.client.chat.completions.create(
            model=self.model,
            messages=self._messages(image_bytes),
            max_tokens=300,
        )
        if not response.choices:
            raise EstimateParseError("Model returned no choices")
        return parse_estimate(response.choices[0].message.content or "")

    def estimate(self, image_bytes: bytes) -> NutritionEstimate:
        if not self.configured:
            logger.warning("No OPENAI_API_KEY set, returning fallback estimate")
            return FALLBACK_ESTIMATE.model_copy()
        try:
            return self.request_estimate(image_bytes)
        except (OpenAIError, EstimateParseError) as exc:
            logger.warning("Nutrition estimate failed, using fallback: %s", exc)
            return FALLBACK_ESTIMATE.model_copy()


def build_estimator(settings) -> NutritionEstimator:
    """Build the estimator configured by `settings`."""
    return OpenAIVisionEstimator(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.openai_timeout,
        max_retries=settings.openai_max_retries,
    )
