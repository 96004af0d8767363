"""
Tests for quote construction and the risk gate in hlmaker/trading.py.

Tests cover:
- Aggressive two-sided quoting inside the touch
- Passive one-sided quoting driven by the fill score
- Volatility-scaled spread cap and size clamp
- Optional tick rounding
- Position-limit admission, in-batch ordering and rejection logging
- Paper-mode fills vs. confirmed-fill ledger updates
"""
import random

import pytest

from hlmaker.signals import Position, SignalSnapshot
from hlmaker.trading import QuoteProposal, RiskGate, Side, build_quotes
from hlmaker.types import QuoteConfig, RiskConfig


def snapshot(bid=100.0, ask=100.2, vol=0.0, aggressive=False, fill_score=0.0, position=None):
    return SignalSnapshot(
        mid=(bid + ask) / 2.0,
        best_bid=bid,
        best_ask=ask,
        volatility=vol,
        aggressive_mode=aggressive,
        fill_score=fill_score,
        position=position if position is not None else Position(),
    )


class TestBuildQuotes:

    @pytest.mark.unit
    def test_aggressive_two_sided(self):
        quotes = build_quotes(snapshot(aggressive=True))

        assert [q.side for q in quotes] == [Side.BUY, Side.SELL]
        buy, sell = quotes
        assert buy.price == pytest.approx(100.5)
        assert sell.price == pytest.approx(99.7)
        assert buy.size == pytest.approx(1.5)
        assert sell.size == pytest.approx(1.5)

    @pytest.mark.unit
    def test_aggressive_ignores_fill_score(self):
        quotes = build_quotes(snapshot(aggressive=True, fill_score=-1.0))

        assert len(quotes) == 2

    @pytest.mark.unit
    def test_passive_buy(self):
        quotes = build_quotes(snapshot(bid=100.0, ask=103.0, fill_score=1.0))

        assert quotes == [QuoteProposal(Side.BUY, 102.0, 1.0)]

    @pytest.mark.unit
    def test_passive_sell(self):
        quotes = build_quotes(snapshot(bid=100.0, ask=103.0, fill_score=-1.0))

        assert quotes == [QuoteProposal(Side.SELL, 101.0, 1.0)]

    @pytest.mark.unit
    @pytest.mark.parametrize("score", [0.0, 0.1, -0.1])
    def test_passive_neutral_no_quotes(self, score):
        assert build_quotes(snapshot(fill_score=score)) == []

    @pytest.mark.unit
    def test_volatility_widens_spread_and_shrinks_size(self):
        quotes = build_quotes(snapshot(bid=100.0, ask=103.0, vol=4.0, fill_score=1.0))

        # spread 2.0 * 1.4, size clip(1/5) -> 0.5
        assert quotes[0].price == pytest.approx(102.8)
        assert quotes[0].size == pytest.approx(0.5)

    @pytest.mark.unit
    def test_spread_capped(self):
        quotes = build_quotes(snapshot(bid=100.0, ask=110.0, vol=50.0, fill_score=1.0))

        # 2.0 * min(6.0, 3.0)
        assert quotes[0].price == pytest.approx(106.0)

    @pytest.mark.unit
    @pytest.mark.parametrize("seed", range(5))
    def test_size_within_bounds(self, seed):
        rng = random.Random(seed)
        cfg = QuoteConfig()
        lo = cfg.base_size * cfg.min_size_mult
        hi = cfg.base_size * cfg.max_size_mult
        for _ in range(100):
            vol = rng.uniform(0.0, 100.0)
            aggressive = rng.random() < 0.5
            boost = cfg.aggressive_size_mult if aggressive else 1.0
            for q in build_quotes(snapshot(vol=vol, aggressive=aggressive, fill_score=1.0), cfg):
                assert lo <= q.size / boost <= hi

    @pytest.mark.unit
    def test_custom_config(self):
        cfg = QuoteConfig(passive_spread=1.0, base_size=0.01)
        quotes = build_quotes(snapshot(bid=100.0, ask=103.0, fill_score=-1.0), cfg)

        assert quotes[0].price == pytest.approx(102.0)
        assert quotes[0].size == pytest.approx(0.01)

    @pytest.mark.unit
    def test_tick_rounding(self):
        cfg = QuoteConfig(tick_size=0.5)
        quotes = build_quotes(snapshot(bid=100.1, ask=100.3, aggressive=True), cfg)

        # raw 100.6 / 99.8
        assert quotes[0].price == pytest.approx(100.5)
        assert quotes[1].price == pytest.approx(100.0)

    @pytest.mark.unit
    def test_no_rounding_by_default(self):
        quotes = build_quotes(snapshot(bid=100.13, ask=100.31, aggressive=True))

        assert quotes[0].price == pytest.approx(100.63)

    @pytest.mark.unit
    def test_proposal_as_dict(self):
        assert QuoteProposal(Side.SELL, 99.7, 1.5).as_dict() == {"side": "SELL", "price": 99.7, "size": 1.5}


class TestRiskGateCheck:

    @pytest.fixture
    def gate(self):
        return RiskGate(RiskConfig(max_position=5.0))

    @pytest.mark.unit
    def test_max_position(self, gate):
        assert gate.max_position == 5.0

    @pytest.mark.unit
    @pytest.mark.parametrize("base,side,size,expected", [
        (0.0, Side.BUY, 1.0, True),
        (4.5, Side.BUY, 1.0, False),
        (4.5, Side.BUY, 0.5, True),   # lands exactly on the limit
        (-5.0, Side.BUY, 10.0, True),
        (0.0, Side.SELL, 1.0, True),
        (-4.5, Side.SELL, 1.0, False),
        (-4.5, Side.SELL, 0.5, True),
        (5.0, Side.SELL, 10.0, True),
    ])
    def test_check(self, gate, base, side, size, expected):
        assert gate.check(Position(base=base), QuoteProposal(side, 100.0, size)) is expected

    @pytest.mark.unit
    def test_check_does_not_touch_ledger(self, gate):
        pos = Position(base=1.0, quote=-100.0)
        gate.check(pos, QuoteProposal(Side.BUY, 100.0, 1.0))

        assert pos == Position(base=1.0, quote=-100.0)


class TestApplyFill:

    @pytest.mark.unit
    def test_buy(self):
        pos = Position()
        RiskGate.apply_fill(pos, Side.BUY, 100.5, 1.5)

        assert pos.base == pytest.approx(1.5)
        assert pos.quote == pytest.approx(-150.75)
        assert pos.volume == pytest.approx(150.75)
        assert pos.fills == 1

    @pytest.mark.unit
    def test_sell(self):
        pos = Position()
        RiskGate.apply_fill(pos, Side.SELL, 99.7, 1.5)

        assert pos.base == pytest.approx(-1.5)
        assert pos.quote == pytest.approx(149.55)
        assert pos.volume == pytest.approx(149.55)


class TestRiskGateEvaluate:

    @pytest.mark.unit
    def test_round_trip_books_spread(self, mock_logger):
        gate = RiskGate(RiskConfig(max_position=5.0), mock_logger)
        snap = snapshot(aggressive=True)

        admitted = gate.evaluate(snap, build_quotes(snap))

        assert len(admitted) == 2
        assert snap.position.base == pytest.approx(0.0)
        assert snap.position.quote == pytest.approx(-1.2)
        assert snap.position.fills == 2
        events = [c[0][0] for c in mock_logger.write.call_args_list]
        assert events == ["risk_approved", "risk_approved"]

    @pytest.mark.unit
    def test_rejection_logged_and_dropped(self, mock_logger):
        gate = RiskGate(RiskConfig(max_position=5.0), mock_logger)
        snap = snapshot(aggressive=True, position=Position(base=4.0))

        admitted = gate.evaluate(snap, build_quotes(snap))

        assert [q.side for q in admitted] == [Side.SELL]
        assert snap.position.base == pytest.approx(2.5)
        event, payload = mock_logger.write.call_args_list[0][0]
        assert event == "risk_rejected"
        assert payload["side"] == "BUY"
        assert payload["reason"] == "position_limit"
        assert payload["pos_base"] == 4.0
        assert payload["max_position"] == 5.0

    @pytest.mark.unit
    def test_batch_checked_against_updated_ledger(self):
        gate = RiskGate(RiskConfig(max_position=5.0))
        snap = snapshot(position=Position(base=4.0))
        quotes = [QuoteProposal(Side.BUY, 100.0, 1.0), QuoteProposal(Side.BUY, 100.0, 1.0)]

        admitted = gate.evaluate(snap, quotes)

        assert len(admitted) == 1
        assert snap.position.base == pytest.approx(5.0)

    @pytest.mark.unit
    def test_no_logger(self):
        gate = RiskGate()
        assert gate.evaluate(snapshot(), [QuoteProposal(Side.BUY, 100.0, 1.0)])

    @pytest.mark.unit
    def test_confirmed_fills_mode_leaves_ledger(self):
        gate = RiskGate(RiskConfig(max_position=5.0, simulate_fills=False))
        snap = snapshot(aggressive=True)

        admitted = gate.evaluate(snap, build_quotes(snap))

        assert len(admitted) == 2
        assert snap.position == Position()

    @pytest.mark.unit
    def test_confirmed_fills_mode_reserves_exposure(self):
        gate = RiskGate(RiskConfig(max_position=2.0, simulate_fills=False))
        pos = Position()
        quotes = [QuoteProposal(Side.BUY, 100.0, 0.8) for _ in range(4)]

        admitted = gate.evaluate(snapshot(position=pos), quotes)

        # 0.8 + 0.8 fits, a third would reach 2.4
        assert len(admitted) == 2
        assert gate.pending_buy == pytest.approx(1.6)
        assert gate.pending_sell == 0.0
        assert pos.base == 0.0

    @pytest.mark.unit
    def test_release_frees_exposure(self):
        gate = RiskGate(RiskConfig(max_position=2.0, simulate_fills=False))
        gate.reserve(Side.SELL, 1.5)

        assert not gate.check(Position(), QuoteProposal(Side.SELL, 100.0, 1.0))

        gate.release(Side.SELL, 1.5)
        assert gate.check(Position(), QuoteProposal(Side.SELL, 100.0, 1.0))

        gate.release(Side.SELL, 5.0)
        assert gate.pending_sell == 0.0

    @pytest.mark.unit
    def test_paper_mode_reserves_nothing(self):
        gate = RiskGate(RiskConfig(max_position=5.0))
        gate.evaluate(snapshot(aggressive=True), build_quotes(snapshot(aggressive=True)))

        assert gate.pending_buy == 0.0
        assert gate.pending_sell == 0.0

    @pytest.mark.unit
    @pytest.mark.parametrize("seed", range(5))
    def test_position_never_exceeds_limit(self, seed):
        rng = random.Random(seed)
        gate = RiskGate(RiskConfig(max_position=5.0))
        pos = Position()
        for _ in range(500):
            side = Side.BUY if rng.random() < 0.6 else Side.SELL
            quotes = [QuoteProposal(side, 100.0, rng.uniform(0.1, 3.0))]
            gate.evaluate(snapshot(position=pos), quotes)
            assert abs(pos.base) <= 5.0 + 1e-9
