"""
Pytest configuration and shared fixtures for HLMaker tests.

This module provides:
- Temporary directories for file-backed loggers
- A mock JsonlLogger that still writes to disk
- Sample configurations and config files
- Builders for feed-shaped book and trade events
"""
import json
import tempfile
from pathlib import Path
from typing import List, Tuple
from unittest.mock import MagicMock

import pytest

from hlmaker.logging import JsonlLogger
from hlmaker.router import BookEvent, TradeEvent, TradeRecord
from hlmaker.types import (
    BotConfig,
    FeedConfig,
    LoggingConfig,
    QuoteConfig,
    RiskConfig,
    SignalConfig,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests that need file I/O."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config(temp_dir):
    """Default bot configuration with logs in a temp dir and console output off."""
    return BotConfig(
        feed=FeedConfig(),
        signal=SignalConfig(),
        quote=QuoteConfig(),
        risk=RiskConfig(max_position=5.0),
        logging=LoggingConfig(print_every_s=-1.0),
        log_path=str(temp_dir / "events.jsonl"),
    )


@pytest.fixture
def mock_logger(temp_dir):
    """JsonlLogger whose write() is a MagicMock wrapping the real one."""
    log_path = temp_dir / "test_log.jsonl"
    logger = JsonlLogger(str(log_path))

    original_write = logger.write
    logger.write = MagicMock(side_effect=original_write)

    yield logger

    logger.close()


@pytest.fixture
def sample_config_file(temp_dir):
    """Create a temporary config file for testing config loading."""
    config_path = temp_dir / "test_config.json"
    config_data = {
        "feed": {"coin": "ETH"},
        "signal": {},
        "quote": {},
        "risk": {"max_position": 2.5},
        "logging": {},
        "log_path": str(temp_dir / "events.jsonl"),
    }

    with open(config_path, 'w') as f:
        json.dump(config_data, f, indent=2)

    return config_path


def book_event(bid: float, ask: float, ts: int, bid_sz: float = 10.0, ask_sz: float = 5.0) -> BookEvent:
    """Single-level book in the venue's numeric-string encoding."""
    return BookEvent(bids=[(str(bid), str(bid_sz))], asks=[(str(ask), str(ask_sz))], time=ts)


def trade_event(trades: List[Tuple[float, float, bool, int]]) -> TradeEvent:
    """Trades given as (price, size, is_buy, ts)."""
    return TradeEvent(trades=[
        TradeRecord(px=str(p), sz=str(s), side="B" if is_buy else "A", time=ts)
        for p, s, is_buy, ts in trades
    ])
