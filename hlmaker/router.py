"""
Event router: the single consumer that drives the quoting pipeline.

Feed producers call submit() from any coroutine; events land on an unbounded
FIFO queue. run() drains the queue one event at a time. Each event is
handled synchronously end to end (no await inside the pipeline), so the
router task is the only code that ever touches the engine's history,
snapshot and position, and nobody can observe a half-updated snapshot.

Book event:  parse levels → SignalEngine.on_book_update → build_quotes → RiskGate.evaluate
Trade event: SignalEngine.on_trade per record
Fill event:  confirmed fill applied to the ledger (only when fills are not simulated)
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from .logging import ErrorContext, JsonlLogger, log_debug, performance_trace
from .signals import SignalEngine, SignalSnapshot
from .trading import QuoteProposal, RiskGate, Side, build_quotes
from .types import BotConfig
from .utils import parse_float

# (price, size) as numeric strings, best price first
Level = Tuple[str, str]

BUY_TAG = "B"


@dataclass
class BookEvent:
    """Leveled book snapshot: bids and asks best-first, venue time in ms."""
    bids: Sequence[Level]
    asks: Sequence[Level]
    time: int


@dataclass
class TradeRecord:
    px: str
    sz: str
    side: str  # "B" buy, "A" sell
    time: int


@dataclass
class TradeEvent:
    trades: List[TradeRecord] = field(default_factory=list)


@dataclass
class FillEvent:
    """Execution confirmation from the order client."""
    side: Side
    price: float
    size: float
    time: int = 0


_CLOSED = object()


class EventRouter:
    """Owns the signal engine and risk gate and serializes all work on them.

    Args:
        cfg: Bot configuration (signal, quote, risk and logging sections)
        logger: Event logger shared by the engine and risk gate
        outbox: Optional queue receiving admitted proposals for an execution
                client; proposals are never sent anywhere by the router itself
    """

    def __init__(self, cfg: BotConfig, logger: JsonlLogger, outbox: Optional[asyncio.Queue] = None):
        self.cfg = cfg
        self.logger = logger
        self.engine = SignalEngine(cfg.signal, logger)
        self.risk = RiskGate(cfg.risk, logger)
        self.outbox = outbox
        self._queue: asyncio.Queue = asyncio.Queue()
        self._last_print = 0.0
        self.processed = 0

    @property
    def snapshot(self) -> SignalSnapshot:
        return self.engine.snapshot

    def submit(self, event: Any) -> None:
        """Enqueue an event; never blocks."""
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Stop run() once the events already queued are processed."""
        self._queue.put_nowait(_CLOSED)

    async def run(self) -> None:
        while True:
            event = await self._queue.get()
            if event is _CLOSED:
                break
            try:
                admitted = self.handle(event)
            except Exception as e:
                ErrorContext.log_operation_error(self.logger, "handle_event", e, {
                    "kind": type(event).__name__,
                    "processed": self.processed,
                })
                raise
            self.processed += 1
            if self.outbox is not None:
                for q in admitted:
                    self.outbox.put_nowait(q)
        self.logger.write("router_stopped", {"processed": self.processed})

    @performance_trace()
    def handle(self, event: Any) -> List[QuoteProposal]:
        """Process one event to completion; return admitted proposals."""
        if isinstance(event, BookEvent):
            return self._on_book(event)
        if isinstance(event, TradeEvent):
            self._on_trades(event)
        elif isinstance(event, FillEvent):
            self._on_fill(event)
        return []

    def _on_book(self, book: BookEvent) -> List[QuoteProposal]:
        if not book.bids or not book.asks:
            log_debug(self.logger, "book_dropped", {"n_bids": len(book.bids), "n_asks": len(book.asks)})
            return []
        bid_px = parse_float(book.bids[0][0])
        ask_px = parse_float(book.asks[0][0])
        bid_vol = sum(parse_float(sz) for _, sz in book.bids)
        ask_vol = sum(parse_float(sz) for _, sz in book.asks)

        snap = self.engine.on_book_update(book.time, bid_px, ask_px, bid_vol, ask_vol)
        quotes = build_quotes(snap, self.cfg.quote)
        admitted = self.risk.evaluate(snap, quotes)
        self._maybe_print(admitted)
        return admitted

    def _on_trades(self, msg: TradeEvent) -> None:
        for t in msg.trades:
            self.engine.on_trade(parse_float(t.px), parse_float(t.sz), t.side == BUY_TAG, t.time)

    def _on_fill(self, fill: FillEvent) -> None:
        if self.cfg.risk.simulate_fills:
            # ledger was already booked on admission
            log_debug(self.logger, "fill_ignored", {"side": fill.side.value, "price": fill.price, "size": fill.size})
            return
        pos = self.engine.position
        self.risk.release(fill.side, fill.size)
        self.risk.apply_fill(pos, fill.side, fill.price, fill.size)
        self.logger.write("fill_applied", {
            "side": fill.side.value, "price": fill.price, "size": fill.size,
            "pos_base": pos.base, "pos_quote": pos.quote,
            "pending_buy": self.risk.pending_buy, "pending_sell": self.risk.pending_sell,
        })

    def _maybe_print(self, admitted: List[QuoteProposal]) -> None:
        every = self.cfg.logging.print_every_s
        if every < 0 or time.time() - self._last_print < every:
            return
        print(self.engine.describe())
        for q in admitted:
            print(f"[Risk] Approved {q.side.value} {q.size:.3f} @ {q.price:.2f}")
        self._last_print = time.time()
