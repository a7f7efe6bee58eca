"""
Chase and match result rules.

Pure functions over the two innings of a match: the chase target,
what is still required, and how the match was decided.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from scorebook.config import BALLS_PER_OVER, MAX_WICKETS
from scorebook.data.records import Innings, Match, TeamSide
from scorebook.rules.scoring import required_run_rate, run_rate


class ResultKind(Enum):
    IN_PROGRESS = "in_progress"
    WIN = "win"
    TIE = "tie"
    DRAWN = "drawn"


@dataclass(frozen=True)
class ChaseState:
    """What the side batting second still needs."""

    target: int
    runs_needed: int
    balls_remaining: int
    current_run_rate: Optional[float]
    required_run_rate: Optional[float]

    @property
    def target_reached(self) -> bool:
        return self.runs_needed <= 0


@dataclass(frozen=True)
class MatchResult:
    kind: ResultKind
    winner: Optional[TeamSide] = None
    margin: int = 0
    margin_unit: str = ""  # "runs" or "wickets"

    @property
    def is_decided(self) -> bool:
        return self.kind is not ResultKind.IN_PROGRESS

    def describe(self, match: Match) -> Optional[str]:
        """Spectator text, e.g. "Thunder won by 5 runs."."""
        if self.kind is ResultKind.TIE:
            return "Match tied."
        if self.kind is ResultKind.DRAWN:
            return "Match drawn."
        if self.kind is not ResultKind.WIN:
            return None
        name = match.team_name(self.winner)
        if self.margin <= 0:
            return f"{name} won the match."
        unit = self.margin_unit if self.margin != 1 else self.margin_unit.rstrip("s")
        return f"{name} won by {self.margin} {unit}."


def chase_target(first_innings_runs: int) -> int:
    return first_innings_runs + 1


def chase_state(first: Innings, second: Innings, overs_per_innings: int) -> ChaseState:
    target = chase_target(first.total_runs)
    balls_remaining = max(0, overs_per_innings * BALLS_PER_OVER - second.balls_bowled)
    return ChaseState(
        target=target,
        runs_needed=target - second.total_runs,
        balls_remaining=balls_remaining,
        current_run_rate=run_rate(second.total_runs, second.balls_bowled),
        required_run_rate=required_run_rate(target, second.total_runs, balls_remaining),
    )


def decide_result(first: Optional[Innings], second: Optional[Innings]) -> MatchResult:
    """Result implied by the innings totals.

    The chasing side wins as soon as it passes the first-innings total;
    otherwise nothing is decided until the second innings completes.
    """
    if first is None or second is None or not first.is_completed:
        return MatchResult(ResultKind.IN_PROGRESS)

    if second.total_runs >= chase_target(first.total_runs):
        return MatchResult(
            ResultKind.WIN,
            winner=second.batting_team,
            margin=MAX_WICKETS - second.wickets,
            margin_unit="wickets",
        )
    if not second.is_completed:
        return MatchResult(ResultKind.IN_PROGRESS)
    if first.total_runs > second.total_runs:
        return MatchResult(
            ResultKind.WIN,
            winner=first.batting_team,
            margin=first.total_runs - second.total_runs,
            margin_unit="runs",
        )
    if first.total_runs == second.total_runs:
        return MatchResult(ResultKind.TIE)
    return MatchResult(ResultKind.DRAWN)


def result_for_winner(
    winner: Optional[TeamSide], first: Optional[Innings], second: Optional[Innings]
) -> MatchResult:
    """Describe an operator-recorded winner against the innings totals."""
    if winner is None:
        if first is not None and second is not None and first.total_runs == second.total_runs:
            return MatchResult(ResultKind.TIE)
        return MatchResult(ResultKind.DRAWN)
    if first is None or second is None:
        return MatchResult(ResultKind.WIN, winner=winner)
    if winner is first.batting_team:
        return MatchResult(
            ResultKind.WIN,
            winner=winner,
            margin=max(first.total_runs - second.total_runs, 0),
            margin_unit="runs",
        )
    return MatchResult(
        ResultKind.WIN,
        winner=winner,
        margin=max(MAX_WICKETS - second.wickets, 1),
        margin_unit="wickets",
    )
