from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class Headline(BaseModel):
    """
    One news headline for the tracked symbol.

    sentiment:
      - "Bullish" (default, rendered green)
      - "Bearish" (rendered red)
    """

    id: int
    headline: str
    url: str
    source: Optional[str] = None
    datetime: Optional[int] = None
    sentiment: str = "Bullish"
