"""
Configuration types and dataclasses for HLMaker.
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class FeedConfig:
    """Market-data subscription settings."""
    coin: str = "BTC"
    wss_url: str = "wss://api.hyperliquid.xyz/ws"
    subscribe_trades: bool = True


@dataclass
class SignalConfig:
    """Windows and thresholds used by the signal engine."""
    book_window: int = 120
    trade_window: int = 80
    momentum_lookback: int = 10
    twap_window: int = 120
    deviation_threshold: float = 0.002
    aggressive_max_spread: float = 2.0
    aggressive_max_volatility: float = 10.0
    flow_half_life_ms: float = 8000.0
    trend_threshold: float = 0.1
    flow_threshold: float = 0.4
    twap_eps: float = 1e-6
    flow_eps: float = 1e-6


@dataclass
class QuoteConfig:
    """Quote construction parameters."""
    aggressive_spread: float = 0.5
    passive_spread: float = 2.0
    vol_spread_coeff: float = 0.1
    max_spread_mult: float = 3.0
    base_size: float = 1.0
    min_size_mult: float = 0.5
    max_size_mult: float = 2.0
    aggressive_size_mult: float = 1.5
    fill_threshold: float = 0.1
    tick_size: Optional[float] = None  # None keeps raw prices


@dataclass
class RiskConfig:
    """Inventory limits for the risk gate."""
    max_position: float = 5.0
    simulate_fills: bool = True  # paper mode: admission applies the fill


@dataclass
class LoggingConfig:
    """Logging configuration for debugging and monitoring."""
    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    enable_performance: bool = False
    print_every_s: float = 0.0  # 0 prints every book event, < 0 disables


@dataclass
class BotConfig:
    """Complete bot configuration."""
    feed: FeedConfig = field(default_factory=FeedConfig)
    signal: SignalConfig = field(default_factory=SignalConfig)
    quote: QuoteConfig = field(default_factory=QuoteConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    log_path: str = "./data/logs/hl_events.jsonl"
