"""Tests for the record store."""

from __future__ import annotations

import pytest

from scorebook.data.records import Ball, Match, Over, Player, TeamSide
from scorebook.data.store import ScoringStore
from scorebook.errors import NotFoundError


def make_match(match_id: str = "m1") -> Match:
    return Match(match_id=match_id, team_a="Thunder", team_b="Strikers")


class TestRecords:
    def test_get_returns_a_copy(self, store: ScoringStore):
        store.save_match(make_match())
        fetched = store.get_match("m1")
        fetched.team_a = "Changed"
        assert store.get_match("m1").team_a == "Thunder"

    def test_missing_records(self, store: ScoringStore):
        assert store.find_match("nope") is None
        assert store.find_innings(None) is None
        with pytest.raises(NotFoundError, match="Match not found: nope") as exc:
            store.get_match("nope")
        assert exc.value.kind == "Match"
        assert exc.value.record_id == "nope"

    def test_players_sorted_by_team_then_order(self, store: ScoringStore):
        store.save_player(Player("p3", "m1", TeamSide.B, "Carey", 1))
        store.save_player(Player("p2", "m1", TeamSide.A, "Jones", 2))
        store.save_player(Player("p1", "m1", TeamSide.A, "Smith", 1))
        store.save_player(Player("p9", "other", TeamSide.A, "Elsewhere", 1))
        assert [p.player_id for p in store.players_for_match("m1")] == ["p1", "p2", "p3"]
        assert [p.player_id for p in store.players_for_match("m1", TeamSide.B)] == ["p3"]

    def test_ids_are_prefixed_and_unique(self, store: ScoringStore):
        ids = {store.new_id("ball") for _ in range(50)}
        assert len(ids) == 50
        assert all(i.startswith("ball_") for i in ids)


class TestBalls:
    def test_innings_log_is_chronological_across_segments(self, store: ScoringStore):
        store.save_over(Over("o1", "inn", 1, "b1", seq=store.next_seq()))
        store.save_over(Over("o2", "inn", 1, "b2", seq=store.next_seq()))
        store.insert_ball(Ball("x1", "o1", 1, "s", "n", seq=store.next_seq()))
        store.insert_ball(Ball("x2", "o2", 1, "s", "n", seq=store.next_seq()))
        store.insert_ball(Ball("x3", "o2", 2, "s", "n", seq=store.next_seq()))

        assert [b.ball_id for b in store.balls_for_innings("inn")] == ["x1", "x2", "x3"]
        assert [b.ball_id for b in store.balls_for_over("o2")] == ["x2", "x3"]
        assert store.last_ball("inn").ball_id == "x3"
        assert store.last_ball("empty") is None

    def test_delete_missing_ball(self, store: ScoringStore):
        with pytest.raises(NotFoundError):
            store.delete_ball("ghost")


class TestTransactions:
    def test_rollback_on_error(self, store: ScoringStore):
        store.save_match(make_match("keep"))
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.save_match(make_match("discard"))
                match = store.get_match("keep")
                match.team_a = "Changed"
                store.save_match(match)
                raise RuntimeError("boom")

        assert store.find_match("discard") is None
        assert store.get_match("keep").team_a == "Thunder"

    def test_nested_failure_rolls_back_inner_only(self, store: ScoringStore):
        with store.transaction():
            store.save_match(make_match("outer"))
            with pytest.raises(RuntimeError):
                with store.transaction():
                    store.save_match(make_match("inner"))
                    raise RuntimeError("boom")

        assert store.find_match("outer") is not None
        assert store.find_match("inner") is None

    def test_commit(self, store: ScoringStore):
        with store.transaction():
            store.save_match(make_match())
        assert store.find_match("m1") is not None
