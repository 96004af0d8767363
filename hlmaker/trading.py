"""
Quote construction and inventory risk gate.

Pipeline per book update:
    SignalSnapshot → build_quotes() → RiskGate.evaluate() → admitted proposals

build_quotes is a pure function of the snapshot. The risk gate keeps no
position of its own: it reads and updates the Position carried by the
snapshot, which the signal engine owns.
"""
import enum
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .logging import JsonlLogger
from .signals import Position, SignalSnapshot
from .types import QuoteConfig, RiskConfig
from .utils import clip, round_to_tick


class Side(enum.Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class QuoteProposal:
    """A quote intent: not an order until an execution client sends it."""
    side: Side
    price: float
    size: float

    def as_dict(self) -> dict:
        return {"side": self.side.value, "price": self.price, "size": self.size}


def build_quotes(signal: SignalSnapshot, cfg: Optional[QuoteConfig] = None) -> List[QuoteProposal]:
    """Map a signal snapshot to zero, one or two quote proposals.

    Spread widens with volatility (capped at ``max_spread_mult`` times the
    base spread); size shrinks with volatility within
    [min_size_mult, max_size_mult] times the base size.

    Aggressive mode quotes both sides inside the touch (bid + spread,
    ask - spread) with boosted size. Otherwise a single side is quoted
    when the fill score clears ``fill_threshold``.
    """
    cfg = cfg or QuoteConfig()
    base_spread = cfg.aggressive_spread if signal.aggressive_mode else cfg.passive_spread
    spread_tick = base_spread * min(1.0 + signal.volatility * cfg.vol_spread_coeff, cfg.max_spread_mult)
    size = cfg.base_size * clip(1.0 / (1.0 + signal.volatility), cfg.min_size_mult, cfg.max_size_mult)

    buy_px = signal.best_bid + spread_tick
    sell_px = signal.best_ask - spread_tick
    if cfg.tick_size:
        buy_px = round_to_tick(buy_px, cfg.tick_size)
        sell_px = round_to_tick(sell_px, cfg.tick_size)

    quotes: List[QuoteProposal] = []
    if signal.aggressive_mode:
        boosted = size * cfg.aggressive_size_mult
        quotes.append(QuoteProposal(Side.BUY, buy_px, boosted))
        quotes.append(QuoteProposal(Side.SELL, sell_px, boosted))
    elif signal.fill_score > cfg.fill_threshold:
        quotes.append(QuoteProposal(Side.BUY, buy_px, size))
    elif signal.fill_score < -cfg.fill_threshold:
        quotes.append(QuoteProposal(Side.SELL, sell_px, size))
    return quotes


class RiskGate:
    """Inventory-limit admission control over quote proposals.

    A buy is admitted while base + size stays <= max_position, a sell while
    base - size stays >= -max_position. Proposals are checked in order
    against the ledger as updated by earlier admissions in the same batch.
    Rejections are logged and dropped; nothing is queued or retried.

    With ``simulate_fills`` (paper mode) every admitted proposal is booked
    immediately as if filled at its quoted price. Otherwise the ledger only
    moves through apply_fill() when a confirmed fill arrives, and admitted
    size is held as pending exposure per side until release() is called
    for it. The limit is checked against base plus that pending size, so
    any combination of outstanding fills keeps |base| <= max_position.
    """

    def __init__(self, cfg: Optional[RiskConfig] = None, logger: Optional[JsonlLogger] = None):
        self.cfg = cfg or RiskConfig()
        self.logger = logger
        self.pending_buy = 0.0
        self.pending_sell = 0.0

    @property
    def max_position(self) -> float:
        return self.cfg.max_position

    def check(self, position: Position, q: QuoteProposal) -> bool:
        """Pre-trade check; does not touch the ledger."""
        if q.side is Side.BUY:
            return position.base + self.pending_buy + q.size <= self.cfg.max_position
        return position.base - self.pending_sell - q.size >= -self.cfg.max_position

    def reserve(self, side: Side, size: float) -> None:
        if side is Side.BUY:
            self.pending_buy += size
        else:
            self.pending_sell += size

    def release(self, side: Side, size: float) -> None:
        """Drop pending exposure once filled or cancelled; never below zero."""
        if side is Side.BUY:
            self.pending_buy = max(0.0, self.pending_buy - size)
        else:
            self.pending_sell = max(0.0, self.pending_sell - size)

    @staticmethod
    def apply_fill(position: Position, side: Side, price: float, size: float) -> None:
        """Book a fill: base moves by ±size, quote by the opposite notional."""
        if side is Side.BUY:
            position.base += size
            position.quote -= size * price
        else:
            position.base -= size
            position.quote += size * price
        position.volume += size * price
        position.fills += 1

    def evaluate(self, state: SignalSnapshot, quotes: Sequence[QuoteProposal]) -> List[QuoteProposal]:
        """Admit or reject each proposal in order; return the admitted ones."""
        position = state.position
        admitted: List[QuoteProposal] = []
        for q in quotes:
            if not self.check(position, q):
                self._log("risk_rejected", {
                    **q.as_dict(),
                    "reason": "position_limit",
                    "pos_base": position.base,
                    "pending": self.pending_buy if q.side is Side.BUY else self.pending_sell,
                    "max_position": self.cfg.max_position,
                })
                continue
            if self.cfg.simulate_fills:
                self.apply_fill(position, q.side, q.price, q.size)
            else:
                self.reserve(q.side, q.size)
            admitted.append(q)
            self._log("risk_approved", {
                **q.as_dict(),
                "pos_base": position.base,
                "pos_quote": position.quote,
                "pending_buy": self.pending_buy,
                "pending_sell": self.pending_sell,
            })
        return admitted

    def _log(self, event: str, payload: dict) -> None:
        if self.logger is not None:
            self.logger.write(event, payload)
