"""Buyer due-diligence summary of an enriched property via OpenRouter."""

import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from models.constants import ALLOWED_SUMMARY_MODELS, DEFAULT_SUMMARY_MODEL, SUMMARY_TIMEOUT
from models.errors import (
    ConfigurationMissingError,
    EnrichmentError,
    MalformedResponseError,
    UpstreamTimeoutError,
)
from utils.cache import TTLCache
from utils.http import fetch_json

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
PLACEHOLDER_KEYS = {"", "your-key-here"}

ANALYSIS_PROMPT = """You are a property consultant advising home BUYERS in the UK.
Using the property JSON in the user message (listing details, PropertyData market
figures, attended schools, nearest stations and commute times) plus web research,
write a due-diligence report with these sections:

0. Market valuation and negotiation leverage: compare the asking price with the
   estimated value, suggest an offer range, discuss 5-year growth and council tax.
1. Community and lifestyle: how the street is regarded locally, recurring complaints.
2. Schools: which attended schools are oversubscribed or have shifting catchments.
3. Commuting: reliability of the nearest lines and local traffic bottlenecks.
4. Planning and ownership: active applications, conservation area restrictions.
5. Environmental and safety risk: flood risk and crime compared with the borough.

Cite a source (URL or name) for every claim. Write from the perspective of someone
buying this property as their home."""


@dataclass
class SummaryResult:
    success: bool
    model: str
    analysis: Optional[str] = None
    cached: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None


def select_model(requested: Optional[str], allowed: List[str], default: str) -> str:
    """Requested model if allowed, otherwise the default."""
    return requested if requested in allowed else default


def summary_subject_id(document: Dict[str, Any]) -> str:
    """Stable identifier of the summarized property for cache keys."""
    if document.get("id"):
        return str(document["id"])
    postcode = (document.get("address") or {}).get("postcode")
    if postcode:
        return postcode
    return json.dumps(document, sort_keys=True, default=str)[:100]


class PropertySummarizer:
    """
    OpenRouter chat-completions client with an allow-listed model choice,
    a hard wall-clock timeout and a result cache keyed ``<model>::<id>``.

    Args:
        api_key: OpenRouter key
        cache: AI result cache
        default_model: Used when the requested model is not allowed
        allowed_models: Accepted model identifiers
        timeout: Wall-clock limit for one call, in seconds
        transport: Optional httpx transport (tests)
    """

    def __init__(
        self,
        api_key: Optional[str],
        cache: TTLCache,
        default_model: str = DEFAULT_SUMMARY_MODEL,
        allowed_models: Optional[List[str]] = None,
        timeout: float = SUMMARY_TIMEOUT,
        url: str = OPENROUTER_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.cache = cache
        self.allowed_models = allowed_models or list(ALLOWED_SUMMARY_MODELS)
        self.default_model = select_model(
            default_model,
            self.allowed_models,
            select_model(DEFAULT_SUMMARY_MODEL, self.allowed_models, self.allowed_models[0]),
        )
        if self.default_model != default_model:
            logger.warning(f"Configured model {default_model} is not allowed, defaulting to {self.default_model}")
        self.timeout = timeout
        self.url = url
        self._transport = transport

    @classmethod
    def from_config(cls, config: Dict[str, Any], cache: TTLCache, transport=None) -> "PropertySummarizer":
        llm = config.get("llm_settings", {})
        return cls(
            api_key=llm.get("api_key") or os.environ.get("OPENROUTER_API_KEY"),
            cache=cache,
            default_model=llm.get("model", DEFAULT_SUMMARY_MODEL),
            allowed_models=llm.get("allowed_models"),
            timeout=llm.get("timeout", SUMMARY_TIMEOUT),
            transport=transport,
        )

    async def summarize(
        self,
        document: Dict[str, Any],
        model: Optional[str] = None,
        bust_cache: bool = False,
    ) -> SummaryResult:
        """
        Summarize an enriched property record.

        Args:
            document: Property record (listing plus enrichment sections)
            model: Requested model; unknown models fall back to the default
            bust_cache: Drop any cached summary before calling out

        Returns:
            SummaryResult; failures carry ``error`` and ``error_kind``
        """
        selected = select_model(model, self.allowed_models, self.default_model)
        if model and model != selected:
            logger.info(f"Model {model} not allowed, using {selected}")

        if not self.api_key or self.api_key in PLACEHOLDER_KEYS:
            error = ConfigurationMissingError("OpenRouter API key is not configured")
            logger.error(error.message)
            return SummaryResult(False, selected, error=error.message, error_kind=error.error_code)

        cache_key = f"{selected}::{summary_subject_id(document)}"
        if bust_cache:
            logger.info(f"Summary cache bust for {cache_key}")
            self.cache.delete(cache_key)

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Summary cache HIT for {cache_key}")
            return SummaryResult(True, selected, analysis=cached, cached=True)

        logger.info(f"Summary cache MISS, calling OpenRouter with {selected}")
        started = time.monotonic()
        try:
            analysis = await asyncio.wait_for(self._complete(selected, document), timeout=self.timeout)
        except asyncio.TimeoutError:
            error = UpstreamTimeoutError(f"AI analysis timed out after {self.timeout:.0f}s")
            logger.error(error.message)
            return SummaryResult(False, selected, error=error.message, error_kind=error.error_code)
        except EnrichmentError as e:
            logger.error(f"Summary failed with {selected}: {e}")
            return SummaryResult(False, selected, error=str(e), error_kind=e.error_code)

        logger.info(
            f"Summary received from {selected} in {time.monotonic() - started:.1f}s "
            f"({len(analysis)} chars)"
        )
        self.cache.set(cache_key, analysis)
        return SummaryResult(True, selected, analysis=analysis)

    async def _complete(self, model: str, document: Dict[str, Any]) -> str:
        try:
            data = await fetch_json(
                self.url,
                method="POST",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json_body={
                    "model": model,
                    "messages": [
                        {"role": "system", "content": ANALYSIS_PROMPT},
                        {"role": "user", "content": json.dumps(document, indent=2, default=str)},
                    ],
                    "plugins": [{"id": "web", "max_results": 5}],
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        except EnrichmentError as e:
            if e.code is not None:
                e.message = f"AI service error ({e.code})"
                e.args = (e.message,)
            raise

        usage = data.get("usage") if isinstance(data, dict) else None
        if usage:
            logger.debug(
                f"Token usage: prompt={usage.get('prompt_tokens')} "
                f"completion={usage.get('completion_tokens')} total={usage.get('total_tokens')}"
            )

        choices = data.get("choices") if isinstance(data, dict) else None
        content = None
        if choices:
            content = ((choices[0] or {}).get("message") or {}).get("content")
        if not content:
            raise MalformedResponseError("No analysis returned from AI service")
        return content
