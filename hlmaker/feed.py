"""
Hyperliquid WebSocket feed adapter.

Subscribes to the ``l2Book`` and ``trades`` channels for one coin and turns
each payload into a router event. Numeric fields are passed through as the
venue's strings; the router does the parsing.

    {"channel": "l2Book", "data": {"coin": "BTC", "time": 1717000000000,
     "levels": [[{"px": "67000.0", "sz": "1.2", "n": 3}, ...], [...]]}}
    {"channel": "trades", "data": [{"coin": "BTC", "side": "B", "px": "67000.5",
     "sz": "0.01", "time": 1717000000001, ...}]}

There is no reconnect: when the socket ends the router is closed, and
restarting is left to whoever runs the process.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional, Union

from .logging import JsonlLogger
from .router import BookEvent, EventRouter, Level, TradeEvent, TradeRecord
from .types import FeedConfig

# Control-plane channels that carry no market data
_SILENT_CHANNELS = {"subscriptionResponse", "pong"}


def _levels(side: Any) -> List[Level]:
    out: List[Level] = []
    for lvl in side or []:
        if isinstance(lvl, dict):
            out.append((lvl.get("px", ""), lvl.get("sz", "")))
    return out


def _int(value: Any) -> int:
    try:
        return int(value)
    except (ValueError, TypeError):
        return 0


def parse_message(msg: Dict[str, Any]) -> Optional[Union[BookEvent, TradeEvent]]:
    """Map a decoded feed message to a router event, or None if not market data."""
    channel = msg.get("channel")
    data = msg.get("data")
    if channel == "l2Book" and isinstance(data, dict):
        levels = data.get("levels") or []
        bids = _levels(levels[0]) if len(levels) > 0 else []
        asks = _levels(levels[1]) if len(levels) > 1 else []
        return BookEvent(bids=bids, asks=asks, time=_int(data.get("time")))
    if channel == "trades" and isinstance(data, list):
        trades = [
            TradeRecord(px=t.get("px", ""), sz=t.get("sz", ""), side=t.get("side", ""), time=_int(t.get("time")))
            for t in data if isinstance(t, dict)
        ]
        return TradeEvent(trades=trades)
    return None


def subscriptions(cfg: FeedConfig) -> List[Dict[str, Any]]:
    subs = [{"method": "subscribe", "subscription": {"type": "l2Book", "coin": cfg.coin}}]
    if cfg.subscribe_trades:
        subs.append({"method": "subscribe", "subscription": {"type": "trades", "coin": cfg.coin}})
    return subs


class HyperliquidFeed:
    """Producer side of the router queue."""

    def __init__(self, cfg: FeedConfig, logger: JsonlLogger):
        self.cfg = cfg
        self.logger = logger
        self._shutdown = asyncio.Event()

    async def shutdown(self):
        self._shutdown.set()

    async def wait_shutdown(self) -> None:
        await self._shutdown.wait()

    def dispatch(self, raw: Union[str, bytes], router: EventRouter) -> None:
        """Decode one frame and submit it to the router."""
        try:
            msg = json.loads(raw)
        except ValueError:
            self.logger.write("ws_parse_error", {"raw": str(raw)[:2000]})
            return
        if not isinstance(msg, dict):
            self.logger.write("ws_unknown", {"msg": msg})
            return
        event = parse_message(msg)
        if event is not None:
            router.submit(event)
        elif msg.get("channel") not in _SILENT_CHANNELS:
            self.logger.write("ws_unknown", {"msg": msg})

    async def run(self, router: EventRouter) -> None:
        import websockets
        try:
            async with websockets.connect(self.cfg.wss_url, ping_interval=20, ping_timeout=20) as ws:
                for sub in subscriptions(self.cfg):
                    await ws.send(json.dumps(sub))
                    self.logger.write("ws_subscribe", {"payload": sub})
                async for raw in ws:
                    self.dispatch(raw, router)
                    if self._shutdown.is_set():
                        break
        finally:
            router.close()
