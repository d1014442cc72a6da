from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Union

from premarket.models.market import Tick
from premarket.models.news import Headline


class MarketDataProvider(ABC):
    """
    Provider contract (interface).

    Any provider must implement:
    - ws_url(): where the live trade stream lives
    - subscribe_message() / unsubscribe_message(): control frames for one symbol
    - parse_message(): inbound frame -> zero or more ticks
    - fetch_news(): latest headlines via REST
    """

    @abstractmethod
    def ws_url(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def subscribe_message(self, symbol: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def unsubscribe_message(self, symbol: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def parse_message(self, raw: Union[str, bytes]) -> List[Tick]:
        raise NotImplementedError

    @abstractmethod
    def fetch_news(self, symbol: str, limit: int = 20) -> List[Headline]:
        raise NotImplementedError

    def close(self) -> None:
        pass
