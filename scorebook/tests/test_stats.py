"""Tests for the statistics aggregator."""

from __future__ import annotations

import itertools

import pytest

from scorebook.data.records import (
    Ball,
    ExtrasType,
    Over,
    OverDetail,
    Player,
    TeamSide,
    WicketType,
)
from scorebook.stats.aggregator import (
    FallOfWicket,
    Partnership,
    batting_appearance_order,
    build_dismissal_map,
    calculate_batting_stats,
    calculate_bowling_stats,
    calculate_extras,
    current_partnership,
    fall_of_wickets,
    format_dismissal,
)

_seq = itertools.count(1)


def make_ball(striker: str = "bat_1", non_striker: str = "bat_2", **kwargs) -> Ball:
    n = next(_seq)
    return Ball(
        ball_id=f"ball_{n}",
        over_id="ovr",
        ball_number=kwargs.pop("ball_number", 1),
        striker_id=striker,
        non_striker_id=non_striker,
        seq=n,
        **kwargs,
    )


def segment(bowler_id, balls: list[Ball], over_number: int = 1) -> OverDetail:
    n = next(_seq)
    return OverDetail(
        over=Over(over_id=f"ovr_{n}", innings_id="inn", over_number=over_number, bowler_id=bowler_id),
        balls=balls,
    )


def dots(count: int) -> list[Ball]:
    return [make_ball() for _ in range(count)]


@pytest.fixture
def players() -> dict[str, Player]:
    roster = [
        Player("bat_1", "m1", TeamSide.A, "Smith", 1),
        Player("bat_2", "m1", TeamSide.A, "Jones", 2),
        Player("bowl_1", "m1", TeamSide.B, "Starc", 1),
        Player("fld_1", "m1", TeamSide.B, "Carey", 2),
    ]
    return {p.player_id: p for p in roster}


class TestBattingStats:
    def test_runs_balls_and_boundaries(self):
        over = segment("bowl_1", [
            make_ball(runs_off_bat=4),
            make_ball(runs_off_bat=6),
            make_ball(extras_type=ExtrasType.WIDE, extras_runs=1),
            make_ball(runs_off_bat=1, extras_type=ExtrasType.NO_BALL, extras_runs=1),
            make_ball(extras_type=ExtrasType.LEG_BYE, extras_runs=1),
        ])
        stats = calculate_batting_stats([over])["bat_1"]
        assert stats.runs == 11
        assert stats.balls == 3
        assert stats.fours == 1
        assert stats.sixes == 1
        assert stats.strike_rate == "366.67"

    def test_batter_who_only_faced_wides(self):
        over = segment("bowl_1", [make_ball(extras_type=ExtrasType.WIDE, extras_runs=1)])
        stats = calculate_batting_stats([over])["bat_1"]
        assert stats.balls == 0
        assert stats.strike_rate == "-"


class TestBowlingStats:
    def test_maiden_over(self):
        stats = calculate_bowling_stats([segment("bowl_1", dots(6))])["bowl_1"]
        assert stats.maidens == 1
        assert stats.overs == "1"
        assert stats.economy == "0.00"

    def test_scoreless_wide_still_allows_maiden(self):
        balls = dots(3) + [make_ball(extras_type=ExtrasType.WIDE)] + dots(3)
        stats = calculate_bowling_stats([segment("bowl_1", balls)])["bowl_1"]
        assert stats.maidens == 1

    def test_all_runs_charged_to_bowler(self):
        balls = [
            make_ball(runs_off_bat=4),
            make_ball(extras_type=ExtrasType.BYE, extras_runs=2),
            make_ball(extras_type=ExtrasType.WIDE, extras_runs=1),
        ]
        stats = calculate_bowling_stats([segment("bowl_1", balls)])["bowl_1"]
        assert stats.runs == 7
        assert stats.legal_balls == 2
        assert stats.economy == "21.00"

    def test_run_out_not_credited(self):
        balls = [
            make_ball(wicket_type=WicketType.BOWLED, dismissed_player_id="bat_1"),
            make_ball(
                striker="bat_3", wicket_type=WicketType.RUN_OUT, dismissed_player_id="bat_2",
            ),
        ]
        stats = calculate_bowling_stats([segment("bowl_1", balls)])["bowl_1"]
        assert stats.wickets == 1

    def test_mid_over_change_splits_credit(self):
        overs = [segment("bowl_1", dots(3)), segment("bowl_2", dots(3))]
        stats = calculate_bowling_stats(overs)
        assert stats["bowl_1"].overs == "0.3"
        assert stats["bowl_2"].overs == "0.3"
        assert stats["bowl_1"].maidens == 0
        assert stats["bowl_2"].maidens == 0

    def test_segments_without_bowler_are_skipped(self):
        assert calculate_bowling_stats([segment(None, dots(6))]) == {}


class TestExtras:
    def test_breakdown(self):
        over = segment("bowl_1", [
            make_ball(extras_type=ExtrasType.WIDE, extras_runs=2),
            make_ball(runs_off_bat=2, extras_type=ExtrasType.NO_BALL, extras_runs=1),
            make_ball(extras_type=ExtrasType.BYE, extras_runs=4),
            make_ball(extras_type=ExtrasType.LEG_BYE, extras_runs=1),
        ])
        extras = calculate_extras([over])
        assert extras.total == 8
        assert str(extras) == "8 (wd 2, nb 1, b 4, lb 1)"


class TestDismissals:
    def test_caught(self, players):
        ball = make_ball(
            wicket_type=WicketType.CAUGHT, dismissed_player_id="bat_1", fielder_id="fld_1",
        )
        assert format_dismissal(ball, "Starc", players) == "c Carey b Starc"

    def test_caught_unknown_fielder(self, players):
        ball = make_ball(
            wicket_type=WicketType.CAUGHT, dismissed_player_id="bat_1", fielder_id="ghost",
        )
        assert format_dismissal(ball, "Starc", players) == "c b Starc"

    def test_stumped(self, players):
        ball = make_ball(
            wicket_type=WicketType.STUMPS, dismissed_player_id="bat_1", keeper_id="fld_1",
        )
        assert format_dismissal(ball, "Starc", players) == "stumped Carey b Starc"

    def test_run_out(self, players):
        with_fielder = make_ball(
            wicket_type=WicketType.RUN_OUT, dismissed_player_id="bat_2", fielder_id="fld_1",
        )
        without = make_ball(wicket_type=WicketType.RUN_OUT, dismissed_player_id="bat_2")
        assert format_dismissal(with_fielder, "Starc", players) == "run out (Carey)"
        assert format_dismissal(without, "Starc", players) == "run out"

    def test_bowled_and_lbw(self, players):
        bowled = make_ball(wicket_type=WicketType.BOWLED, dismissed_player_id="bat_1")
        lbw = make_ball(wicket_type=WicketType.LBW, dismissed_player_id="bat_1")
        assert format_dismissal(bowled, "Starc", players) == "b Starc"
        assert format_dismissal(bowled, None, players) == "b"
        assert format_dismissal(lbw, "Starc", players) == "lbw b Starc"

    def test_not_a_wicket(self, players):
        assert format_dismissal(make_ball(), "Starc", players) is None

    def test_first_dismissal_wins(self, players):
        over = segment("bowl_1", [
            make_ball(wicket_type=WicketType.BOWLED, dismissed_player_id="bat_1"),
            make_ball(wicket_type=WicketType.LBW, dismissed_player_id="bat_1"),
        ])
        assert build_dismissal_map([over], players) == {"bat_1": "b Starc"}


class TestInningsFlow:
    def test_appearance_order(self):
        overs = [
            segment("bowl_1", [make_ball("bat_1", "bat_2"), make_ball("bat_3", "bat_2")]),
        ]
        assert batting_appearance_order(overs) == {"bat_1": 0, "bat_2": 1, "bat_3": 2}

    def test_fall_of_wickets(self):
        over = segment("bowl_1", [
            make_ball(runs_off_bat=4),
            make_ball(wicket_type=WicketType.BOWLED, dismissed_player_id="bat_1"),
            make_ball("bat_3", runs_off_bat=1),
            make_ball("bat_2", "bat_3", extras_type=ExtrasType.WIDE, extras_runs=1),
            make_ball(
                "bat_2", "bat_3", runs_off_bat=1,
                wicket_type=WicketType.RUN_OUT, dismissed_player_id="bat_3",
            ),
        ])
        assert fall_of_wickets([over]) == [
            FallOfWicket(wicket_number=1, score=4, player_id="bat_1", overs="0.2"),
            FallOfWicket(wicket_number=2, score=7, player_id="bat_3", overs="0.4"),
        ]

    def test_partnership_resets_after_wicket(self):
        over = segment("bowl_1", [
            make_ball(runs_off_bat=4),
            make_ball(wicket_type=WicketType.BOWLED, dismissed_player_id="bat_1"),
            make_ball("bat_3", runs_off_bat=2),
            make_ball("bat_3", extras_type=ExtrasType.WIDE, extras_runs=1),
        ])
        assert current_partnership([over]) == Partnership(runs=3, balls=1)
