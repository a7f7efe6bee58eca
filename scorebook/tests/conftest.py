"""Shared test fixtures for scoring engine tests."""

from __future__ import annotations

from typing import Callable, Optional

import pytest

from scorebook.config import EngineConfig
from scorebook.data.records import (
    Delivery,
    Innings,
    Match,
    Over,
    Player,
    TeamSide,
    TossDecision,
)
from scorebook.data.store import ScoringStore
from scorebook.orchestrator import MatchOrchestrator
from scorebook.state.innings import BallOutcome


@pytest.fixture
def engine_config() -> EngineConfig:
    """Two-over matches keep innings completion within reach of a test."""
    return EngineConfig(default_overs_per_innings=2)


@pytest.fixture
def store() -> ScoringStore:
    return ScoringStore()


@pytest.fixture
def orchestrator(store: ScoringStore, engine_config: EngineConfig) -> MatchOrchestrator:
    return MatchOrchestrator(store, engine_config)


@pytest.fixture
def match(orchestrator: MatchOrchestrator) -> Match:
    """Thunder (A) vs Strikers (B), eleven a side, Thunder won the toss and bat."""
    match = orchestrator.create_match("Thunder", "Strikers")
    for side, prefix in ((TeamSide.A, "Thunder"), (TeamSide.B, "Strikers")):
        for n in range(1, 12):
            orchestrator.add_player(match.match_id, side, f"{prefix}_{n}")
    return orchestrator.record_toss(match.match_id, TeamSide.A, TossDecision.BAT)


@pytest.fixture
def batters(orchestrator: MatchOrchestrator, match: Match) -> list[Player]:
    return orchestrator.get_players(match.match_id, TeamSide.A)


@pytest.fixture
def bowlers(orchestrator: MatchOrchestrator, match: Match) -> list[Player]:
    return orchestrator.get_players(match.match_id, TeamSide.B)


@pytest.fixture
def innings(orchestrator: MatchOrchestrator, match: Match) -> Innings:
    return orchestrator.start_innings(match.match_id)


@pytest.fixture
def over(orchestrator: MatchOrchestrator, innings: Innings, bowlers: list[Player]) -> Over:
    """Over 1, bowled by Strikers_11."""
    return orchestrator.start_over(innings.innings_id, None, bowlers[-1].player_id)


PlayOver = Callable[..., tuple[Optional[BallOutcome], tuple[str, str]]]


@pytest.fixture
def play_over(orchestrator: MatchOrchestrator) -> PlayOver:
    """Bowl a fresh over of plain runs; returns the last outcome and the batters on strike next."""

    def _play(
        innings_id: str, bowler_id: str, pair: tuple[str, str], runs: list[int]
    ) -> tuple[Optional[BallOutcome], tuple[str, str]]:
        over = orchestrator.start_over(innings_id, None, bowler_id)
        striker, non_striker = pair
        outcome = None
        for r in runs:
            outcome = orchestrator.record_ball(
                over.over_id, Delivery(striker, non_striker, runs_off_bat=r)
            )
            if outcome.innings_completed:
                break
            striker, non_striker = outcome.striker_id, outcome.non_striker_id
        return outcome, (striker, non_striker)

    return _play
