import base64
import json
import logging
import re

import httpx

from nearbuy.core.errors import VisionError
from nearbuy.core.http import redact_key, safe_body
from nearbuy.schemas.identify import (
    DescriptionIdentification,
    IdentificationMode,
    IdentificationResult,
    UpcIdentification,
)

logger = logging.getLogger(__name__)

# Service endpoint for Gemini API (v1beta)
API_BASE = "https://generativelanguage.googleapis.com/v1beta"

BARCODE_PROMPT = (
    "You will receive an image of a product barcode. "
    "Return ONLY the UPC digits printed under the barcode. "
    "No spaces, no words, no formatting."
)

DESCRIPTION_PROMPT = (
    "You will receive an image of a product. Look at the product and its packaging. "
    "Return ONLY a single sentence describing the product, including the brand name and "
    "product name if visible. For example: 'Old Spice Pure Sport Deodorant' or "
    "'Coca-Cola Classic 2L'. Do not include any other text or formatting."
)

PROMPTS = {
    IdentificationMode.BARCODE: BARCODE_PROMPT,
    IdentificationMode.DESCRIPTION: DESCRIPTION_PROMPT,
}


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def _normalize_model(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise VisionError("GEMINI_MODEL is not set")
    return name if name.startswith("models/") else f"models/{name}"


def _extract_text(data: dict) -> str:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise VisionError(f"Unexpected Gemini response shape; raw={json.dumps(data)[:2000]}")
    if not isinstance(text, str):
        raise VisionError("Gemini returned a non-text part")
    return text.strip()


def parse_identification(text: str, mode: IdentificationMode) -> IdentificationResult:
    """
    Barcode mode keeps whatever the model said once whitespace is gone. There is no
    check-digit or length validation: any non-empty answer is treated as the UPC.
    """
    text = (text or "").strip().strip("`").strip()
    if mode == IdentificationMode.BARCODE:
        code = re.sub(r"\s+", "", text)
        if not code:
            raise VisionError("Gemini returned an empty barcode")
        return UpcIdentification(code=code)

    if not text:
        raise VisionError("Gemini returned an empty description")
    return DescriptionIdentification(text=text)


class GeminiVisionClient:
    """
    Sends one image plus one of two fixed prompts to Gemini generateContent.

    - No retries: a failed call is a failed identification
    - API key is redacted from any raised error
    """

    def __init__(self, client: httpx.AsyncClient, api_key: str, model: str):
        self.client = client
        self.api_key = (api_key or "").strip()
        self.model = model

    async def identify(
        self,
        image_bytes: bytes,
        mode: IdentificationMode = IdentificationMode.DESCRIPTION,
        mime_type: str = "image/png",
    ) -> IdentificationResult:
        if not self.api_key:
            raise VisionError("GEMINI_API_KEY is not set")
        if not image_bytes:
            raise VisionError("Empty image")

        url = f"{API_BASE}/{_normalize_model(self.model)}:generateContent"
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": PROMPTS[mode]},
                        {
                            "inline_data": {
                                "mime_type": mime_type or "image/png",
                                "data": _b64(image_bytes),
                            }
                        },
                    ],
                }
            ],
            "generationConfig": {"temperature": 0},
        }

        try:
            r = await self.client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as e:
            raise VisionError(f"Gemini request failed: {redact_key(str(e)) or type(e).__name__}")

        if r.status_code >= 400:
            safe_url = redact_key(str(r.request.url))
            raise VisionError(
                f"Gemini request failed: {r.status_code}\nURL:\n{safe_url}",
                status_code=r.status_code,
                body=safe_body(r),
            )

        try:
            data = r.json()
        except ValueError:
            raise VisionError("Gemini returned a non-JSON body", status_code=r.status_code, body=safe_body(r))

        text = _extract_text(data)
        logger.info("Gemini %s response: %s", mode.value, text[:200])
        return parse_identification(text, mode)
