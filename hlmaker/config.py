"""
Configuration loading utilities for HLMaker.
"""
import json

from .types import BotConfig, FeedConfig, LoggingConfig, QuoteConfig, RiskConfig, SignalConfig


def load_config(path: str) -> BotConfig:
    """Load configuration from JSON file."""
    with open(path, "r") as fp:
        d = json.load(fp)
    feed = FeedConfig(**d.get("feed", {}))
    signal = SignalConfig(**d.get("signal", {}))
    quote = QuoteConfig(**d.get("quote", {}))
    risk = RiskConfig(**d.get("risk", {}))
    logging = LoggingConfig(**d.get("logging", {}))
    return BotConfig(
        feed=feed,
        signal=signal,
        quote=quote,
        risk=risk,
        logging=logging,
        log_path=d.get("log_path", "./data/logs/hl_events.jsonl"),
    )
