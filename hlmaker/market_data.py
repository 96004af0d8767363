"""
Rolling market-data history for the signal engine.

Two fixed-capacity FIFO windows are kept: order-book samples (top of book
plus aggregated depth) and trade prints. New samples are appended at the
newest end; once a window is full the oldest sample is evicted. Samples are
immutable, so a window only ever changes by append/evict.

All reads are full-window scans in oldest-to-newest order.
"""
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, List


@dataclass(frozen=True)
class BookSample:
    """One order-book observation.

    Attributes:
        timestamp_ms: Venue timestamp of the snapshot (milliseconds)
        mid_price: (best_bid + best_ask) / 2
        best_bid: Highest bid price
        best_ask: Lowest ask price
        bid_volume: Total size across all bid levels received
        ask_volume: Total size across all ask levels received
    """
    timestamp_ms: int
    mid_price: float
    best_bid: float
    best_ask: float
    bid_volume: float
    ask_volume: float


@dataclass(frozen=True)
class TradeSample:
    """One trade print from the venue tape."""
    price: float
    size: float
    is_buy: bool
    timestamp_ms: int


class HistoryStore:
    """Bounded FIFO windows of book and trade samples.

    Args:
        book_capacity: Maximum number of book samples retained (default 120)
        trade_capacity: Maximum number of trade samples retained (default 80)
    """

    def __init__(self, book_capacity: int = 120, trade_capacity: int = 80):
        if book_capacity < 1 or trade_capacity < 1:
            raise ValueError("history capacities must be positive")
        self.book_capacity = book_capacity
        self.trade_capacity = trade_capacity
        self._books: Deque[BookSample] = deque()
        self._trades: Deque[TradeSample] = deque()

    def push_book(self, sample: BookSample) -> None:
        self._books.append(sample)
        while len(self._books) > self.book_capacity:
            self._books.popleft()

    def push_trade(self, sample: TradeSample) -> None:
        self._trades.append(sample)
        while len(self._trades) > self.trade_capacity:
            self._trades.popleft()

    @property
    def books(self) -> Iterator[BookSample]:
        return iter(self._books)

    @property
    def trades(self) -> Iterator[TradeSample]:
        return iter(self._trades)

    def mid_prices(self) -> List[float]:
        """Mid prices of the book window, oldest first."""
        return [s.mid_price for s in self._books]

    def book_len(self) -> int:
        return len(self._books)

    def trade_len(self) -> int:
        return len(self._trades)
