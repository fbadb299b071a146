"""
News feed: the engine's bounded notification stream.
"""

from collections import deque
from enum import Enum
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional
import logging

logger = logging.getLogger(__name__)


class NewsCategory(Enum):
    INFO = "info"
    BUY = "buy"
    SELL = "sell"
    ERROR = "error"
    SYSTEM = "system"
    EVENT = "event"


@dataclass
class NewsItem:
    message: str
    category: NewsCategory
    timestamp_ms: float = 0.0


class NewsFeed:
    """Append-only feed keeping the most recent ``max_entries`` items."""

    def __init__(self, max_entries: int = 40):
        self.max_entries = max_entries
        self._items: Deque[NewsItem] = deque(maxlen=max_entries)
        self._listeners: List[Callable[[NewsItem], None]] = []

    def post(self, message: str, category: NewsCategory = NewsCategory.INFO,
             timestamp_ms: float = 0.0) -> NewsItem:
        item = NewsItem(message=message, category=category, timestamp_ms=timestamp_ms)
        self._items.append(item)

        if category is NewsCategory.ERROR:
            logger.warning(message)
        else:
            logger.info(f"[{category.value}] {message}")

        for listener in self._listeners:
            listener(item)
        return item

    def add_listener(self, listener: Callable[[NewsItem], None]) -> None:
        self._listeners.append(listener)

    def items(self, newest_first: bool = True) -> List[NewsItem]:
        items = list(self._items)
        return items[::-1] if newest_first else items

    def latest(self) -> Optional[NewsItem]:
        return self._items[-1] if self._items else None

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
