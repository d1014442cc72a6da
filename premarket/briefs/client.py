from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

import httpx

log = logging.getLogger("brief_client")

UNAVAILABLE = "AI brief unavailable"


def build_prompt(tickers: List[str], today: Optional[date] = None) -> str:
    today = today or date.today()
    return (
        f"Give a concise pre-market outlook ({today.strftime('%a %b %d %Y')}) "
        f"for tickers: {','.join(tickers)}."
    )


class BriefClient:
    """
    Short pre-market text brief from an OpenAI-compatible chat endpoint.

    The key stays server-side; the UI only calls our /api/brief route.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_tokens: int = 120,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client or httpx.Client(timeout=30.0)

    def brief(self, tickers: List[str]) -> str:
        """
        Returns the brief text, or UNAVAILABLE when the model said nothing.
        Raises httpx.HTTPError on transport/HTTP failure.
        """
        if not self.api_key:
            log.warning("OPENAI_API_KEY not set, skipping brief")
            return UNAVAILABLE

        body = {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": build_prompt(tickers)}],
        }
        resp = self._client.post(
            f"{self.base_url}/chat/completions",
            json=body,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        resp.raise_for_status()

        data = resp.json()
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            log.warning("Unexpected brief payload keys=%s", list(data) if isinstance(data, dict) else type(data))
            return UNAVAILABLE
        return content or UNAVAILABLE

    def close(self) -> None:
        self._client.close()
