from __future__ import annotations

from pydantic import BaseModel


class Lot(BaseModel):
    """A single position lot entered by the user."""

    symbol: str
    qty: float
    price: float
