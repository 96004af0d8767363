"""
Signal engine: statistical signals recomputed on every book update.

Signals derived from the rolling history:
- Trend (momentum): mid-price change across the most recent samples
- TWAP and the current mid's relative deviation from it
- Mean-reversion classification of that deviation
- Volatility: population standard deviation of mids over the window
- Aggressive mode: tight spread and calm market
- Decay-weighted order-flow slide from the trade tape
- Fill score: directional bias combining trend and order flow

The snapshot is rebuilt wholesale from the windows each time; nothing is
patched incrementally. Trades only feed the history; their effect on the
slide shows up at the next book update.

Flow decay note: trade weights are exp(-ln(1 + age_ms) / half_life), i.e.
logarithmic in age. With half_life = 8000 the weights fall off very slowly;
this is the intended weighting, not a standard exponential decay.
"""
import enum
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Tuple

from .logging import JsonlLogger
from .market_data import BookSample, HistoryStore, TradeSample
from .types import SignalConfig
from .utils import fmt, sign


class MeanReversion(enum.Enum):
    """Interpretation of the TWAP deviation."""
    FADE_BREAKOUT = "Fade breakout"
    SCALP_RETRACEMENT = "Scalp retracement"
    NEUTRAL = "Neutral"


@dataclass
class Position:
    """Simulated inventory ledger.

    Attributes:
        base: Asset holdings (e.g. BTC)
        quote: Quote-currency holdings (e.g. USD)
        volume: Traded notional, sum of size * price over applied fills
        fills: Number of fills applied
    """
    base: float = 0.0
    quote: float = 0.0
    volume: float = 0.0
    fills: int = 0

    def equity(self, mark: float) -> float:
        """Ledger value with the base position marked at ``mark``."""
        return self.quote + self.base * mark


@dataclass(frozen=True)
class SignalSnapshot:
    """Derived signal state, consistent with the history at computation time."""
    timestamp_ms: int = 0
    mid: float = 0.0
    trend_score: float = 0.0
    twap: float = 0.0
    twap_deviation: float = 0.0
    mean_revert_signal: MeanReversion = MeanReversion.NEUTRAL
    sliding_signal: float = 0.0
    normalized_slide: float = 0.0
    fill_score: float = 0.0
    best_bid: float = 0.0
    best_ask: float = 0.0
    volatility: float = 0.0
    aggressive_mode: bool = False
    position: Position = field(default_factory=Position)

    def as_dict(self) -> dict:
        return {
            "ts": self.timestamp_ms,
            "mid": self.mid,
            "trend": self.trend_score,
            "twap": self.twap,
            "dev": self.twap_deviation,
            "mean_revert": self.mean_revert_signal.value,
            "slide": self.sliding_signal,
            "norm_slide": self.normalized_slide,
            "fill_score": self.fill_score,
            "bid": self.best_bid,
            "ask": self.best_ask,
            "vol": self.volatility,
            "aggressive": self.aggressive_mode,
            "pos_base": self.position.base,
            "pos_quote": self.position.quote,
        }


# === Signal helpers ===

def compute_momentum(mids: Sequence[float], lookback: int = 10) -> float:
    """Newest minus oldest mid over the last ``lookback`` samples."""
    if len(mids) < 2:
        return 0.0
    recent = mids[-lookback:]
    return recent[-1] - recent[0]


def compute_twap(mids: Sequence[float], window: int = 120) -> float:
    """Arithmetic mean of the ``window`` most recent mids; 0 when empty."""
    n = min(len(mids), window)
    if n == 0:
        return 0.0
    return sum(mids[-n:]) / n


def twap_deviation(p: float, t: float, eps: float = 1e-6) -> float:
    if abs(t) < eps:
        return 0.0
    return (p - t) / t


def classify_mean_reversion(deviation: float, threshold: float = 0.002) -> MeanReversion:
    if deviation > threshold:
        return MeanReversion.FADE_BREAKOUT
    if deviation < -threshold:
        return MeanReversion.SCALP_RETRACEMENT
    return MeanReversion.NEUTRAL


def compute_volatility(mids: Sequence[float]) -> float:
    """Population standard deviation of mids; 0 with fewer than 2 samples."""
    n = len(mids)
    if n < 2:
        return 0.0
    mean = sum(mids) / n
    var = sum((m - mean) ** 2 for m in mids) / n
    return math.sqrt(var)


def decay_weighted_slide(
    trades: Iterable[TradeSample],
    now_ms: int,
    half_life_ms: float = 8000.0,
    eps: float = 1e-6,
) -> Tuple[float, float]:
    """Decay-weighted order-flow imbalance.

    Returns:
        (weighted_net, normalized) where normalized = net / total volume
        weight, in [-1, 1], or 0 when the total weight is negligible.
    """
    weighted_net = 0.0
    weighted_total = 0.0
    for t in trades:
        age = max(0.0, float(now_ms - t.timestamp_ms))
        weight = math.exp(-math.log1p(age) / half_life_ms)
        signed = t.size if t.is_buy else -t.size
        weighted_net += signed * weight
        weighted_total += t.size * weight
    norm = weighted_net / weighted_total if weighted_total > eps else 0.0
    return weighted_net, norm


def combine_fill_score(
    momentum: float,
    normalized_slide: float,
    trend_threshold: float = 0.1,
    flow_threshold: float = 0.4,
) -> float:
    """Trend takes priority over order flow; each must clear its threshold."""
    trend_strength = math.tanh(momentum)
    if abs(trend_strength) > trend_threshold:
        return sign(trend_strength)
    if abs(normalized_slide) > flow_threshold:
        return sign(normalized_slide)
    return 0.0


class SignalEngine:
    """Owns the history windows and the current SignalSnapshot.

    The engine is not thread-safe and does no locking; the event router is
    its only caller and serializes all access.
    """

    def __init__(self, cfg: Optional[SignalConfig] = None, logger: Optional[JsonlLogger] = None):
        self.cfg = cfg or SignalConfig()
        self.logger = logger
        self.history = HistoryStore(self.cfg.book_window, self.cfg.trade_window)
        self.snapshot = SignalSnapshot()

    @property
    def position(self) -> Position:
        return self.snapshot.position

    def on_book_update(
        self,
        ts: int,
        bid_px: float,
        ask_px: float,
        bid_vol: float,
        ask_vol: float,
    ) -> SignalSnapshot:
        """Ingest a book sample and rebuild the snapshot."""
        c = self.cfg
        mid = (bid_px + ask_px) / 2.0
        self.history.push_book(BookSample(
            timestamp_ms=ts,
            mid_price=mid,
            best_bid=bid_px,
            best_ask=ask_px,
            bid_volume=bid_vol,
            ask_volume=ask_vol,
        ))

        mids = self.history.mid_prices()
        momentum = compute_momentum(mids, c.momentum_lookback)
        twap = compute_twap(mids, c.twap_window)
        dev = twap_deviation(mid, twap, c.twap_eps)
        vol = compute_volatility(mids)
        aggressive = (ask_px - bid_px) <= c.aggressive_max_spread and vol < c.aggressive_max_volatility
        slide, norm = decay_weighted_slide(self.history.trades, ts, c.flow_half_life_ms, c.flow_eps)

        self.snapshot = SignalSnapshot(
            timestamp_ms=ts,
            mid=mid,
            trend_score=momentum,
            twap=twap,
            twap_deviation=dev,
            mean_revert_signal=classify_mean_reversion(dev, c.deviation_threshold),
            sliding_signal=slide,
            normalized_slide=norm,
            fill_score=combine_fill_score(momentum, norm, c.trend_threshold, c.flow_threshold),
            best_bid=bid_px,
            best_ask=ask_px,
            volatility=vol,
            aggressive_mode=aggressive,
            position=self.snapshot.position,
        )
        if self.logger is not None:
            self.logger.write("signal_snapshot", self.snapshot.as_dict())
        return self.snapshot

    def on_trade(self, price: float, size: float, is_buy: bool, ts: int) -> None:
        """Record a trade print. Signals refresh at the next book update."""
        self.history.push_trade(TradeSample(price=price, size=size, is_buy=is_buy, timestamp_ms=ts))

    def describe(self) -> str:
        """One-line console summary of the current snapshot."""
        s = self.snapshot
        return (
            f"[Signal] Trend: {fmt(s.trend_score, 3)} | TWAP: {fmt(s.twap, 2)} "
            f"| Slide: {fmt(s.sliding_signal, 3)} | NormSlide: {fmt(s.normalized_slide, 3)} "
            f"| FillScore: {fmt(s.fill_score, 2)} | Dev: {fmt(s.twap_deviation, 4)} "
            f"({s.mean_revert_signal.value}) | Vol: {fmt(s.volatility, 2)} | Aggro: {s.aggressive_mode} "
            f"| Pos: {fmt(s.position.base, 3)} | PnL: {fmt(s.position.equity(s.mid), 3)} "
            f"| Volume: {fmt(s.position.volume, 2)}"
        )
