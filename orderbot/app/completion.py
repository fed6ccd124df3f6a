#!/usr/bin/env python3
"""
Completion-provider client used only to repair garbled utterances.

Supports providers:
- gemini: Google Generative Language API (generateContent)
- groq: OpenAI-compatible chat completions

The deterministic pipeline never depends on it. Every call is bounded by a
timeout and any failure surfaces as ``ProviderUnavailable``.
"""

import asyncio
import json
import re
from typing import Any, Dict, Iterable, Optional, Union

import requests

from ..utils.errors import ProviderUnavailable
from ..utils.logger import get_logger
from ..utils.security import mask_pii
from .config import Config

logger = get_logger(__name__)

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class CompletionClient:
    """Blocking HTTP client for the configured provider."""

    def __init__(self, provider: Optional[str] = None, api_key: Optional[str] = None,
                 model: Optional[str] = None, timeout: float = Config.PROVIDER_TIMEOUT_SECONDS):
        self.provider = (provider or Config.COMPLETION_PROVIDER).lower()
        if self.provider == "gemini":
            self.api_key = api_key or Config.GEMINI_API_KEY
            self.model = model or Config.GEMINI_MODEL
            self.api_base_url = GEMINI_URL.format(model=self.model)
        elif self.provider == "groq":
            self.api_key = api_key or Config.GROQ_API_KEY
            self.model = model or Config.GROQ_MODEL
            self.api_base_url = GROQ_URL
        else:
            raise ValueError(f"unknown completion provider '{self.provider}'")
        if not self.api_key:
            raise ValueError(f"{self.provider} API key is required")
        self.timeout = timeout

    def complete(self, prompt: str, json_mode: bool = False) -> Union[str, Dict[str, Any]]:
        """
        Send one prompt and return the text, or the parsed object when ``json_mode``.

        Raises:
            ProviderUnavailable: on HTTP/network errors or an unparseable JSON reply
        """
        try:
            text = self._call_gemini(prompt, json_mode) if self.provider == "gemini" else self._call_groq(prompt, json_mode)
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            raise ProviderUnavailable(self.provider, "completion request failed", cause=e) from e
        if not json_mode:
            return text
        return self._parse_json(text)

    def _call_gemini(self, prompt: str, json_mode: bool) -> str:
        generation_config = {"temperature": 0.1, "maxOutputTokens": 400}
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        resp = requests.post(
            self.api_base_url,
            params={"key": self.api_key},
            headers={"Content-Type": "application/json"},
            json={"contents": [{"parts": [{"text": prompt}]}], "generationConfig": generation_config},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        return data["candidates"][0]["content"]["parts"][0]["text"]

    def _call_groq(self, prompt: str, json_mode: bool) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.1,
            "max_tokens": 400,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        resp = requests.post(
            self.api_base_url,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            json=payload,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()["choices"][0]["message"]["content"]

    def _parse_json(self, text: str) -> Dict[str, Any]:
        match = re.search(r"\{.*\}", text or "", re.DOTALL)
        if not match:
            raise ProviderUnavailable(self.provider, "reply carried no JSON object")
        try:
            return json.loads(match.group())
        except json.JSONDecodeError as e:
            raise ProviderUnavailable(self.provider, "reply JSON did not parse", cause=e) from e


async def complete_with_timeout(client, prompt: str, json_mode: bool = False,
                                timeout: float = Config.PROVIDER_TIMEOUT_SECONDS):
    """Run the blocking ``client.complete`` off the event loop, bounded by ``timeout``."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(client.complete, prompt, json_mode), timeout)
    except asyncio.TimeoutError as e:
        raise ProviderUnavailable(getattr(client, "provider", "completion"), f"timed out after {timeout}s",
                                  cause=e) from e


class TranscriptCorrector:
    """Asks the provider to rewrite a garbled utterance into the shop's order grammar."""

    def __init__(self, client, timeout: float = Config.PROVIDER_TIMEOUT_SECONDS):
        self.client = client
        self.timeout = timeout

    def build_prompt(self, text: str, catalog_names: Iterable[str], customer_names: Iterable[str]) -> str:
        products = "\n".join(f"- {n}" for n in list(catalog_names)[:100])
        customers = ", ".join(list(customer_names)[:50])
        return f"""
        You repair order messages for a small drinks and ice shop. The message may come from
        speech recognition and contain misheard words, missing spaces or spelled-out numbers.

        Products (use these names exactly):
        {products}

        Known customers:
        {customers}

        Message:
        "{text}"

        Rewrite it as: <customer> orders <product> <quantity>[, <product> <quantity>]
        Keep any price, payment or delivery words that were said. Do not invent items.

        Respond with ONLY this JSON:
        {{"corrected_text": "...", "changed": true}}
        """

    async def correct(self, text: str, catalog_names: Iterable[str], customer_names: Iterable[str]) -> Optional[str]:
        """Corrected utterance, or None when the provider had nothing to change."""
        prompt = self.build_prompt(text, catalog_names, customer_names)
        reply = await complete_with_timeout(self.client, prompt, json_mode=True, timeout=self.timeout)
        corrected = (reply or {}).get("corrected_text") if isinstance(reply, dict) else None
        if not corrected or not reply.get("changed", True) or corrected.strip().lower() == text.strip().lower():
            return None
        logger.info("assistant corrected %r -> %r", mask_pii(text), mask_pii(corrected))
        return corrected


def get_completion_client() -> Optional[CompletionClient]:
    """Configured client, or None when assistance is switched off."""
    if not Config.completion_enabled():
        return None
    return CompletionClient()
