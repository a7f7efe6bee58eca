"""
Read models served to spectators and the scoring screen.

Query views over the store: the current innings, recent and current-over
balls, the full over/ball tree, retirements, a scorecard, the match
summary with chase and result, and per-over progression. Reads never
raise for unknown ids; they return None or an empty list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from scorebook.config import BALLS_PER_OVER, DOT_BALL
from scorebook.data.records import (
    Ball,
    Innings,
    InningsDetail,
    InningsStatus,
    Match,
    MatchStatus,
    OverDetail,
    Retirement,
    TeamSide,
)
from scorebook.data.store import ScoringStore
from scorebook.rules.result import (
    ChaseState,
    MatchResult,
    ResultKind,
    chase_state,
    result_for_winner,
)
from scorebook.rules.scoring import (
    display_token_for,
    format_rate,
    format_score,
    is_free_hit,
    overs_as_decimal,
    run_rate,
)
from scorebook.stats.aggregator import (
    ExtrasBreakdown,
    FallOfWicket,
    Partnership,
    batting_appearance_order,
    build_dismissal_map,
    calculate_batting_stats,
    calculate_bowling_stats,
    calculate_extras,
    current_partnership,
    fall_of_wickets,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecentBall:
    ball: Ball
    bowler_id: Optional[str]
    over_number: int
    token: str


@dataclass
class BattingRow:
    player_id: str
    name: str
    runs: int
    balls: int
    fours: int
    sixes: int
    strike_rate: str
    dismissal: Optional[str]
    is_out: bool
    is_retired: bool
    has_batted: bool

    @property
    def at_crease(self) -> bool:
        return self.has_batted and not self.is_out and not self.is_retired


@dataclass
class BowlingRow:
    player_id: str
    name: str
    overs: str
    maidens: int
    runs: int
    wickets: int
    economy: str


@dataclass
class Scorecard:
    innings: Innings
    batting: list[BattingRow]
    bowling: list[BowlingRow]
    extras: ExtrasBreakdown
    fall_of_wickets: list[FallOfWicket]
    partnership: Partnership
    free_hit: bool

    @property
    def score(self) -> str:
        return format_score(self.innings.total_runs, self.innings.wickets)

    @property
    def overs(self) -> str:
        return overs_as_decimal(self.innings.balls_bowled)

    @property
    def run_rate(self) -> str:
        return format_rate(run_rate(self.innings.total_runs, self.innings.balls_bowled))


@dataclass(frozen=True)
class TeamSummary:
    side: TeamSide
    name: str
    runs: int
    wickets: int
    overs: str


@dataclass
class MatchSummary:
    match: Match
    innings: list[Innings]
    teams: dict[TeamSide, TeamSummary] = field(default_factory=dict)
    chase: Optional[ChaseState] = None
    result: MatchResult = field(
        default_factory=lambda: MatchResult(ResultKind.IN_PROGRESS)
    )

    @property
    def result_text(self) -> Optional[str]:
        return self.result.describe(self.match)


@dataclass
class InningsProgression:
    """Per scorecard over: runs, wickets, cumulative worm and run rate."""

    over_numbers: np.ndarray
    runs_per_over: np.ndarray
    wickets_per_over: np.ndarray
    cumulative_runs: np.ndarray
    run_rate: np.ndarray


# ── Innings lookups ─────────────────────────────────────────────────


def get_current_innings(store: ScoringStore, match_id: str) -> Optional[Innings]:
    """The innings in progress, if any."""
    current = [i for i in store.innings_for_match(match_id) if not i.is_completed]
    return current[-1] if current else None


def get_all_innings(store: ScoringStore, match_id: str) -> list[Innings]:
    return store.innings_for_match(match_id)


def get_innings_status(store: ScoringStore, match_id: str, number: int) -> InningsStatus:
    """Lifecycle of the first or second innings; NotStarted until it has a record."""
    innings = store.innings_for_match(match_id)
    if number < 1 or number > len(innings):
        return InningsStatus.NOT_STARTED
    return innings[number - 1].status


def get_innings_with_balls(store: ScoringStore, innings_id: str) -> Optional[InningsDetail]:
    innings = store.find_innings(innings_id)
    if innings is None:
        return None
    overs = [
        OverDetail(over=over, balls=store.balls_for_over(over.over_id))
        for over in store.overs_for_innings(innings_id)
    ]
    return InningsDetail(innings=innings, overs=overs)


def get_retirements_for_innings(store: ScoringStore, innings_id: str) -> list[Retirement]:
    return store.retirements_for_innings(innings_id)


# ── Ball views ──────────────────────────────────────────────────────


def _recent(store: ScoringStore, innings_id: str, dot_marker: str) -> list[RecentBall]:
    overs = {o.over_id: o for o in store.overs_for_innings(innings_id)}
    out = []
    for ball in reversed(store.balls_for_innings(innings_id)):
        over = overs[ball.over_id]
        out.append(
            RecentBall(
                ball=ball,
                bowler_id=over.bowler_id,
                over_number=over.over_number,
                token=display_token_for(ball, dot_marker),
            )
        )
    return out


def get_recent_balls(
    store: ScoringStore, innings_id: str, limit: int = 36, dot_marker: str = DOT_BALL
) -> list[RecentBall]:
    """Most recent deliveries first, with the bowler of their segment."""
    return _recent(store, innings_id, dot_marker)[:limit]


def current_over_balls(
    store: ScoringStore, innings_id: str, dot_marker: str = DOT_BALL
) -> list[RecentBall]:
    """Deliveries of the scorecard over in progress, across bowler segments, oldest first.

    Empty once an over has been completed and the next has not started.
    """
    innings = store.find_innings(innings_id)
    if innings is None:
        return []
    current = innings.balls_bowled // BALLS_PER_OVER + 1
    balls = []
    for recent in _recent(store, innings_id, dot_marker):
        if recent.over_number != current:
            break
        balls.append(recent)
    return list(reversed(balls))


# ── Scorecard ───────────────────────────────────────────────────────


def build_scorecard(store: ScoringStore, innings_id: str) -> Optional[Scorecard]:
    detail = get_innings_with_balls(store, innings_id)
    if detail is None:
        return None
    innings = detail.innings
    players = {p.player_id: p for p in store.players_for_match(innings.match_id)}

    batting_stats = calculate_batting_stats(detail.overs)
    bowling_stats = calculate_bowling_stats(detail.overs)
    dismissals = build_dismissal_map(detail.overs, players)
    appearance = batting_appearance_order(detail.overs)
    retired = {
        r.player_id: r.reason
        for r in store.retirements_for_innings(innings_id)
        if not r.resumed
    }

    batters = store.players_for_match(innings.match_id, innings.batting_team)
    batters.sort(
        key=lambda p: (0, appearance[p.player_id]) if p.player_id in appearance
        else (1, p.batting_order)
    )

    batting = []
    for player in batters:
        stats = batting_stats.get(player.player_id)
        dismissal = dismissals.get(player.player_id)
        is_retired = player.player_id in retired and dismissal is None
        if is_retired:
            dismissal = f"retired ({retired[player.player_id]})"
        batting.append(
            BattingRow(
                player_id=player.player_id,
                name=player.name,
                runs=stats.runs if stats else 0,
                balls=stats.balls if stats else 0,
                fours=stats.fours if stats else 0,
                sixes=stats.sixes if stats else 0,
                strike_rate=stats.strike_rate if stats else "-",
                dismissal=dismissal,
                is_out=player.player_id in dismissals,
                is_retired=is_retired,
                has_batted=player.player_id in appearance or is_retired,
            )
        )

    bowling = []
    for player_id, stats in bowling_stats.items():
        player = players.get(player_id)
        if player is None:
            logger.debug("Omitting unknown bowler %s from scorecard", player_id)
            continue
        bowling.append(
            BowlingRow(
                player_id=player_id,
                name=player.name,
                overs=stats.overs,
                maidens=stats.maidens,
                runs=stats.runs,
                wickets=stats.wickets,
                economy=stats.economy,
            )
        )

    balls = detail.all_balls()
    last = balls[-1] if balls else None
    return Scorecard(
        innings=innings,
        batting=batting,
        bowling=bowling,
        extras=calculate_extras(detail.overs),
        fall_of_wickets=fall_of_wickets(detail.overs),
        partnership=current_partnership(detail.overs),
        free_hit=is_free_hit(last),
    )


# ── Match summary ───────────────────────────────────────────────────


def match_summary(store: ScoringStore, match_id: str) -> Optional[MatchSummary]:
    match = store.find_match(match_id)
    if match is None:
        return None
    innings = store.innings_for_match(match_id)
    summary = MatchSummary(match=match, innings=innings)

    for inn in innings:
        summary.teams[inn.batting_team] = TeamSummary(
            side=inn.batting_team,
            name=match.team_name(inn.batting_team) or "",
            runs=inn.total_runs,
            wickets=inn.wickets,
            overs=overs_as_decimal(inn.balls_bowled),
        )

    first = innings[0] if innings else None
    second = innings[1] if len(innings) > 1 else None
    if first is not None and second is not None and first.is_completed:
        summary.chase = chase_state(first, second, match.overs_per_innings)

    if match.status is MatchStatus.COMPLETED:
        summary.result = result_for_winner(match.winner_team, first, second)
    return summary


# ── Progression ─────────────────────────────────────────────────────


def innings_progression(store: ScoringStore, innings_id: str) -> Optional[InningsProgression]:
    """Manhattan and worm data, one entry per scorecard over started."""
    detail = get_innings_with_balls(store, innings_id)
    if detail is None:
        return None

    n_overs = max((od.over.over_number for od in detail.overs), default=0)
    runs = np.zeros(n_overs, dtype=int)
    wickets = np.zeros(n_overs, dtype=int)
    legal = np.zeros(n_overs, dtype=int)
    for od in detail.overs:
        idx = od.over.over_number - 1
        for ball in od.balls:
            runs[idx] += ball.total_runs
            wickets[idx] += int(ball.is_wicket)
            legal[idx] += int(ball.is_legal_delivery)

    cumulative = np.cumsum(runs)
    legal_cumulative = np.cumsum(legal)
    rate = np.divide(
        cumulative * BALLS_PER_OVER,
        legal_cumulative,
        out=np.zeros(n_overs, dtype=float),
        where=legal_cumulative > 0,
    )
    return InningsProgression(
        over_numbers=np.arange(1, n_overs + 1),
        runs_per_over=runs,
        wickets_per_over=wickets,
        cumulative_runs=cumulative,
        run_rate=rate,
    )
