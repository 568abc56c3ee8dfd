"""
LLM enrichment client.

Sends the listing's feature text, city and purchase price to an OpenAI chat
model and asks for JSON with built area, rooms, bathrooms and a conservative
long-term monthly rent ceiling (maxRent). Every failure mode returns None so
the caller can fall back to the site-extraction path.
"""

import json
import logging
import re
from typing import Any, Optional

from openai import AsyncOpenAI
from pydantic import ValidationError

from autofill.llm_rate_limiter import LlmRateLimiter
from config import settings
from models import LlmPropertyExtract

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You extract structured property data and provide an approximate long-term rental estimate in Spain.

Rules:
- Only consider long-term residential rentals (minimum 6-12 months).
- Ignore vacation, tourist, or short-term rentals.
- Be conservative.
- Return a single conservative maximum monthly rent (maxRent) in EUR."""

RESPONSE_TEMPLATE = '{"sqm": number | null, "rooms": number | null, "bathrooms": number | null, "maxRent": number}'

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.I)


def build_user_prompt(city: str, purchase_price: float, features_text: str) -> str:
    return (
        f"City: {city}\n"
        f"Purchase price (EUR): {purchase_price}\n\n"
        f"Property features:\n{features_text}\n\n"
        f"Return JSON:\n{RESPONSE_TEMPLATE}"
    )


def _content_text(content: Any) -> str:
    """Message content is either a string or a list of text parts."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        text = part.get("text") if isinstance(part, dict) else getattr(part, "text", None)
        if text:
            parts.append(text)
    return "".join(parts)


def parse_llm_reply(raw: str) -> Optional[LlmPropertyExtract]:
    text = (raw or "").strip()
    if not text:
        return None
    fenced = _FENCED_JSON.search(text)
    if fenced:
        text = fenced.group(1)
    try:
        payload = json.loads(text)
    except ValueError:
        logger.warning("LLM reply is not valid JSON")
        return None
    if not isinstance(payload, dict):
        return None
    try:
        return LlmPropertyExtract.model_validate_json(text)
    except ValidationError as e:
        logger.warning(f"LLM reply failed validation: {e.error_count()} errors")
        return None


class LlmPropertyExtractClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        rate_limiter: Optional[LlmRateLimiter] = None,
        client: Optional[Any] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.model = model or settings.LLM_MODEL
        self.max_tokens = settings.LLM_MAX_TOKENS if max_tokens is None else max_tokens
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self.timeout = settings.LLM_TIMEOUT_SECONDS if timeout is None else timeout
        self.rate_limiter = rate_limiter or LlmRateLimiter()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def extract(self, city: str, purchase_price: float, features_text: str) -> Optional[LlmPropertyExtract]:
        if not self.api_key:
            logger.debug("OPENAI_API_KEY not set, skipping LLM enrichment")
            return None
        if not features_text or not features_text.strip():
            return None
        if not self.rate_limiter.can_call():
            return None
        self.rate_limiter.record_call()

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_completion_tokens=self.max_tokens,
                temperature=self.temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(city, purchase_price, features_text)},
                ],
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(f"LLM request failed: {type(e).__name__}: {e}")
            return None

        choices = getattr(response, "choices", None) or []
        if not choices:
            logger.warning("LLM returned no choices")
            return None
        message = choices[0].message
        if getattr(message, "refusal", None):
            logger.warning(f"LLM refused: {message.refusal}")
            return None

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(f"LLM usage: {getattr(usage, 'total_tokens', '?')} tokens ({self.model})")

        return parse_llm_reply(_content_text(message.content))


_llm_client: Optional[LlmPropertyExtractClient] = None


def get_llm_client() -> LlmPropertyExtractClient:
    global _llm_client
    if _llm_client is None:
        _llm_client = LlmPropertyExtractClient()
    return _llm_client
