"""Vision model client for price tag validation and extraction"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from pricetracker.core.config import settings

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r'```(?:json)?\n?')

VALIDATION_PROMPT = """You are a fraud detection specialist for a Costco price tracking app.
Your job is to verify if an uploaded image is a valid Korean Costco price tag.

A valid Costco price tag typically has:
- A 7-digit product number
- Korean product name
- Price in Korean Won format (e.g., ₩15,990 or 15,990원)
- Costco branding or store elements
- Standard price tag layout

Respond ONLY in valid JSON format:
{
  "isValid": true/false,
  "confidence": 0-100,
  "reason": "explanation in Korean"
}

Mark as INVALID if:
- The image is clearly NOT a price tag (random photo, screenshot, etc.)
- It appears to be from a different store (not Costco)
- The image is too blurry to read
- It looks like a manipulated or edited image

Mark as VALID if:
- It appears to be an authentic Costco price tag
- Even if partially visible, as long as key elements are present"""

EXTRACTION_PROMPT = """You are an OCR specialist for Korean Costco price tags. Extract the following information from the image:
1. Product ID (7-digit number, usually at the top or bottom of the price tag)
2. Product Name (the MAIN product name in the largest font, including weight/quantity; ignore small secondary English text)
3. Current Price (the main selling price)
4. Original Price (if there's a discount, this is the crossed-out or smaller price)
5. Discount Period (date range if visible, e.g. YY.MM.DD ~ YY.MM.DD)

Respond ONLY in valid JSON format with these exact keys:
{
  "productId": "string or null",
  "productName": "string or null",
  "currentPrice": "number as string or null",
  "originalPrice": "number as string or null",
  "discountPeriod": "string or null"
}

For prices, extract only the numeric value without commas or currency symbols.
If a field cannot be determined, use null."""


class VisionError(Exception):
    """Vision gateway call failed"""


class VisionRateLimited(VisionError):
    """Gateway returned 429"""


class VisionQuotaExceeded(VisionError):
    """Gateway returned 402 (credits exhausted)"""


@dataclass
class ImageValidation:
    is_valid: bool
    confidence: int
    reason: Optional[str] = None


@dataclass
class TagExtraction:
    """Fields read off a price tag by the vision model"""
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    current_price: Optional[int] = None
    original_price: Optional[int] = None
    discount_period: Optional[str] = None


def as_data_url(image_base64: str) -> str:
    if image_base64.startswith("data:"):
        return image_base64
    return f"data:image/jpeg;base64,{image_base64}"


def parse_model_json(content: str) -> dict:
    """Decode a JSON reply, tolerating markdown code fences around it."""
    cleaned = CODE_FENCE_PATTERN.sub('', content).strip()
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _to_text(value: Any) -> Optional[str]:
    """Models sometimes answer with JSON numbers where text was asked for."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_won(value: Any) -> Optional[int]:
    if value is None:
        return None
    match = re.search(r'\d+(?:\.\d+)?', str(value).replace(',', ''))
    return int(float(match.group())) if match else None


class VisionClient:
    """
    Async client for an OpenAI-compatible chat completions gateway.

    Usage:
        async with VisionClient() as vision:
            validation = await vision.validate_price_tag(image_b64)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self._api_key = api_key or settings.VISION_API_KEY
        self._api_url = api_url or settings.VISION_API_URL
        self._model = model or settings.VISION_MODEL
        self._timeout = timeout or settings.VISION_TIMEOUT_SECONDS
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def __aenter__(self) -> "VisionClient":
        self._client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    async def _complete(self, system_prompt: str, user_text: str, image_base64: str) -> str:
        assert self._client is not None, "Client not initialized. Use 'async with'."

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": user_text},
                        {"type": "image_url", "image_url": {"url": as_data_url(image_base64)}},
                    ],
                },
            ],
        }

        try:
            response = await self._client.post(self._api_url, json=payload)
        except httpx.RequestError as e:
            raise VisionError(f"Vision request failed: {e}") from e

        if response.status_code == 429:
            raise VisionRateLimited("Rate limit exceeded. Please try again later.")
        if response.status_code == 402:
            raise VisionQuotaExceeded("API credits exhausted. Please add credits.")
        if response.status_code >= 400:
            logger.error("Vision API error: %s %s", response.status_code, response.text[:200])
            raise VisionError(f"API error: {response.status_code}")

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise VisionError("Malformed vision response") from e

    async def validate_price_tag(self, image_base64: str) -> ImageValidation:
        """Ask the model whether the image is an authentic price tag."""
        content = await self._complete(
            VALIDATION_PROMPT,
            "이 이미지가 유효한 코스트코 가격표인지 확인해주세요.",
            image_base64,
        )
        try:
            data = parse_model_json(content)
        except ValueError as e:
            raise VisionError("Could not parse validation reply") from e

        try:
            confidence = int(float(data.get("confidence", 0)))
        except (TypeError, ValueError):
            confidence = 0

        return ImageValidation(
            is_valid=bool(data.get("isValid")),
            confidence=confidence,
            reason=_to_text(data.get("reason")),
        )

    async def extract_price_tag(self, image_base64: str) -> TagExtraction:
        """
        Read product id, name, prices and discount period off a price tag.

        An unparsable reply yields an empty extraction rather than an error.
        """
        content = await self._complete(
            EXTRACTION_PROMPT,
            "이 코스트코 가격표에서 상품 정보를 추출해주세요.",
            image_base64,
        )
        try:
            data = parse_model_json(content)
        except ValueError:
            logger.warning("Failed to parse extraction reply: %s", content[:200])
            return TagExtraction()

        return TagExtraction(
            product_id=_to_text(data.get("productId")),
            product_name=_to_text(data.get("productName")),
            current_price=_to_won(data.get("currentPrice")),
            original_price=_to_won(data.get("originalPrice")),
            discount_period=_to_text(data.get("discountPeriod")),
        )
