# Overview: AI narrative summary of cash health through the Gemini generateContent API.

"""
Financial summary.

The summary is advisory only. It reads vouchers and representatives, never
writes, and never raises to the caller: failures degrade to the
ERROR_KEY_NOT_FOUND sentinel (missing/invalid key or model) or to a fallback
message for anything else.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable

import requests

from ..validation import UpstreamUnavailable


_LOGGER = logging.getLogger(__name__)

ERROR_KEY_NOT_FOUND = "ERROR_KEY_NOT_FOUND"

STATUS_OK = "ok"
STATUS_KEY_NOT_FOUND = "key_not_found"
STATUS_UNAVAILABLE = "unavailable"

KEY_NOT_FOUND_MESSAGE = "The AI service key is invalid or missing. Please reset the API settings."
UNAVAILABLE_MESSAGE = "AI analysis is not available right now. Please check that the API key is valid."

_NOT_FOUND_MARKER = "Requested entity was not found"


class KeyNotFound(UpstreamUnavailable):
    """The API key or model was rejected as not found."""


@dataclass(frozen=True)
class SummaryResult:
    status: str
    text: str

    def to_dict(self) -> dict:
        return {"status": self.status, "summary": self.text}


def build_prompt(vouchers: Iterable[dict], representatives: Iterable[dict], language: str = "Arabic") -> str:
    data_context = (
        f"Current transactions: {json.dumps(list(vouchers), ensure_ascii=False)}\n"
        f"Current sales representatives status: {json.dumps(list(representatives), ensure_ascii=False)}"
    )
    return f"""Analyze this financial data for a sales management system.
Provide a professional, deep financial summary in {language} (maximum 4 bullet points) regarding:
1. Overall cash health and liquidity.
2. Performance of sales reps based on their collections vs payments.
3. Identification of any risks (e.g., negative balances).
4. Strategic recommendation for the financial manager to optimize cash flow.
Data Context:
{data_context}
"""


class SummaryClient:
    """Minimal client for models/{model}:generateContent."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str,
        api_base: str,
        timeout: float = 60,
        thinking_budget: int | None = None,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.thinking_budget = thinking_budget
        self.session = session

    @classmethod
    def from_config(cls, config) -> "SummaryClient":
        return cls(
            config.get("GEMINI_API_KEY"),
            model=config.get("SUMMARY_MODEL", "gemini-3-pro-preview"),
            api_base=config.get("SUMMARY_API_BASE", "https://generativelanguage.googleapis.com/v1beta"),
            timeout=config.get("SUMMARY_TIMEOUT_SECONDS", 60),
            thinking_budget=config.get("SUMMARY_THINKING_BUDGET"),
        )

    def _payload(self, prompt: str) -> dict[str, Any]:
        payload: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if self.thinking_budget:
            payload["generationConfig"] = {"thinkingConfig": {"thinkingBudget": self.thinking_budget}}
        return payload

    def generate(self, prompt: str) -> str:
        """
        Returns the generated text.

        Raises:
            KeyNotFound: no key configured, or the API answered "not found"
            UpstreamUnavailable: transport error, other HTTP error, bad body
        """
        if not self.api_key:
            raise KeyNotFound("No API key configured")

        url = f"{self.api_base}/models/{self.model}:generateContent"
        try:
            post = self.session.post if self.session is not None else requests.post
            resp = post(
                url,
                json=self._payload(prompt),
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"Summary request failed: {exc}") from exc

        if resp.status_code == 404 or _NOT_FOUND_MARKER in (resp.text or ""):
            raise KeyNotFound(_NOT_FOUND_MARKER)
        try:
            resp.raise_for_status()
            data = resp.json()
        except (requests.HTTPError, ValueError) as exc:
            raise UpstreamUnavailable(f"Summary request failed: {exc}") from exc

        text = _response_text(data)
        if not text:
            raise UpstreamUnavailable("Summary response contained no text")
        return text


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _response_text(data) -> str:
    """Non-thought text parts of the first candidate that has any; "" when the body is off-shape."""
    if not isinstance(data, dict):
        return ""
    for candidate in _as_list(data.get("candidates")):
        if not isinstance(candidate, dict):
            continue
        content = candidate.get("content")
        if not isinstance(content, dict):
            continue
        texts = [
            part["text"]
            for part in _as_list(content.get("parts"))
            if isinstance(part, dict) and isinstance(part.get("text"), str) and not part.get("thought")
        ]
        if texts:
            return "".join(texts).strip()
    return ""


def summarize(vouchers: Iterable[dict], representatives: Iterable[dict], client: SummaryClient, language: str = "Arabic") -> str:
    """
    Text, or ERROR_KEY_NOT_FOUND, or the fallback message.
    """
    prompt = build_prompt(vouchers, representatives, language=language)
    try:
        return client.generate(prompt)
    except KeyNotFound as exc:
        _LOGGER.warning("AI summary key/model not found: %s", exc)
        return ERROR_KEY_NOT_FOUND
    except UpstreamUnavailable as exc:
        _LOGGER.warning("AI summary failed: %s", exc)
        return UNAVAILABLE_MESSAGE


def generate_summary(vouchers: Iterable[dict], representatives: Iterable[dict], client: SummaryClient, language: str = "Arabic") -> SummaryResult:
    """summarize() mapped to a result the dashboard can show as-is."""
    text = summarize(vouchers, representatives, client, language=language)
    if text == ERROR_KEY_NOT_FOUND:
        return SummaryResult(status=STATUS_KEY_NOT_FOUND, text=KEY_NOT_FOUND_MESSAGE)
    if text == UNAVAILABLE_MESSAGE:
        return SummaryResult(status=STATUS_UNAVAILABLE, text=text)
    return SummaryResult(status=STATUS_OK, text=text)
