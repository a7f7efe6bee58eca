"""
Statistics Aggregator.

Derives per-player batting and bowling figures, dismissal text, extras
and fall of wickets from the ordered over/ball log of one innings.
Everything here is a pure function of its input and never raises on
unknown players: missing references are simply left out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from scorebook.data.records import Ball, ExtrasType, Player, WicketType
from scorebook.rules.scoring import (
    economy,
    format_rate,
    is_legal_delivery,
    overs_as_decimal,
    strike_rate,
    total_runs,
)


class OverSegment(Protocol):
    bowler_id: Optional[str]
    balls: Sequence[Ball]


@dataclass
class BattingStats:
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0

    @property
    def strike_rate(self) -> str:
        return format_rate(strike_rate(self.runs, self.balls))


@dataclass
class BowlingStats:
    runs: int = 0
    legal_balls: int = 0
    maidens: int = 0
    wickets: int = 0

    @property
    def overs(self) -> str:
        return overs_as_decimal(self.legal_balls)

    @property
    def economy(self) -> str:
        return format_rate(economy(self.runs, self.legal_balls))


@dataclass
class ExtrasBreakdown:
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0

    @property
    def total(self) -> int:
        return self.wides + self.no_balls + self.byes + self.leg_byes

    def __str__(self) -> str:
        return (
            f"{self.total} (wd {self.wides}, nb {self.no_balls}, "
            f"b {self.byes}, lb {self.leg_byes})"
        )


@dataclass(frozen=True)
class FallOfWicket:
    wicket_number: int
    score: int
    player_id: str
    overs: str  # legal balls at the fall, in overs notation


@dataclass
class Partnership:
    runs: int = 0
    balls: int = 0


def calculate_batting_stats(overs: Iterable[OverSegment]) -> dict[str, BattingStats]:
    """Runs off the bat and legal balls faced per striker."""
    stats: dict[str, BattingStats] = {}
    for over in overs:
        for ball in over.balls:
            bs = stats.setdefault(ball.striker_id, BattingStats())
            bs.runs += ball.runs_off_bat
            if is_legal_delivery(ball.extras_type):
                bs.balls += 1
            if ball.is_boundary_four:
                bs.fours += 1
            elif ball.is_boundary_six:
                bs.sixes += 1
    return stats


def calculate_bowling_stats(overs: Iterable[OverSegment]) -> dict[str, BowlingStats]:
    """Bowling figures keyed by each segment's bowler.

    Every run conceded on a delivery is charged to the bowler; run outs
    are not credited as wickets. A maiden needs a full six-legal-ball
    segment conceding nothing, so a segment split by a mid-over change
    never counts as one.
    """
    stats: dict[str, BowlingStats] = {}
    for over in overs:
        if not over.bowler_id:
            continue
        bowler = stats.setdefault(over.bowler_id, BowlingStats())

        runs_this_over = 0
        legal_this_over = 0
        for ball in over.balls:
            runs_this_over += total_runs(ball.runs_off_bat, ball.extras_runs)
            if is_legal_delivery(ball.extras_type):
                legal_this_over += 1
            if ball.wicket_type not in (WicketType.NONE, WicketType.RUN_OUT):
                bowler.wickets += 1

        bowler.runs += runs_this_over
        bowler.legal_balls += legal_this_over
        if runs_this_over == 0 and legal_this_over == 6:
            bowler.maidens += 1
    return stats


def calculate_extras(overs: Iterable[OverSegment]) -> ExtrasBreakdown:
    extras = ExtrasBreakdown()
    for over in overs:
        for ball in over.balls:
            if ball.extras_type is ExtrasType.WIDE:
                extras.wides += ball.extras_runs
            elif ball.extras_type is ExtrasType.NO_BALL:
                extras.no_balls += ball.extras_runs
            elif ball.extras_type is ExtrasType.BYE:
                extras.byes += ball.extras_runs
            elif ball.extras_type is ExtrasType.LEG_BYE:
                extras.leg_byes += ball.extras_runs
    return extras


def _name(players: Mapping[str, Player], player_id: Optional[str]) -> Optional[str]:
    if not player_id:
        return None
    player = players.get(player_id)
    return player.name if player else None


def format_dismissal(
    ball: Ball, bowler_name: Optional[str], players: Mapping[str, Player]
) -> Optional[str]:
    """Scorecard dismissal text, degrading when a name is unknown."""
    wt = ball.wicket_type

    if wt is WicketType.BOWLED:
        return f"b {bowler_name}" if bowler_name else "b"
    if wt is WicketType.LBW:
        return f"lbw b {bowler_name}" if bowler_name else "lbw"
    if wt is WicketType.HIT_WICKET:
        return f"hit wicket b {bowler_name}" if bowler_name else "hit wicket"
    if wt is WicketType.CAUGHT:
        fielder = _name(players, ball.fielder_id)
        if fielder and bowler_name:
            return f"c {fielder} b {bowler_name}"
        if bowler_name:
            return f"c b {bowler_name}"
        return f"c {fielder}" if fielder else "c"
    if wt is WicketType.STUMPS:
        keeper = _name(players, ball.keeper_id)
        if keeper and bowler_name:
            return f"stumped {keeper} b {bowler_name}"
        if bowler_name:
            return f"stumped b {bowler_name}"
        return f"stumped {keeper}" if keeper else "stumped"
    if wt is WicketType.RUN_OUT:
        fielder = _name(players, ball.fielder_id)
        return f"run out ({fielder})" if fielder else "run out"
    return None


def build_dismissal_map(
    overs: Iterable[OverSegment], players: Mapping[str, Player]
) -> dict[str, str]:
    """Dismissal text per dismissed player; the first dismissal wins."""
    dismissals: dict[str, str] = {}
    for over in overs:
        bowler_name = _name(players, over.bowler_id)
        for ball in over.balls:
            if (
                ball.wicket_type is WicketType.NONE
                or not ball.dismissed_player_id
                or ball.dismissed_player_id in dismissals
            ):
                continue
            text = format_dismissal(ball, bowler_name, players)
            if text:
                dismissals[ball.dismissed_player_id] = text
    return dismissals


def batting_appearance_order(overs: Iterable[OverSegment]) -> dict[str, int]:
    """Order in which batters first appeared at either end."""
    order: dict[str, int] = {}
    for over in overs:
        for ball in over.balls:
            for player_id in (ball.striker_id, ball.non_striker_id):
                if player_id and player_id not in order:
                    order[player_id] = len(order)
    return order


def fall_of_wickets(overs: Iterable[OverSegment]) -> list[FallOfWicket]:
    fow: list[FallOfWicket] = []
    score = 0
    legal = 0
    for over in overs:
        for ball in over.balls:
            score += ball.total_runs
            if ball.is_legal_delivery:
                legal += 1
            if ball.is_wicket:
                fow.append(
                    FallOfWicket(
                        wicket_number=len(fow) + 1,
                        score=score,
                        player_id=ball.dismissed_player_id or "",
                        overs=overs_as_decimal(legal),
                    )
                )
    return fow


def current_partnership(overs: Iterable[OverSegment]) -> Partnership:
    """Runs and legal balls since the last wicket."""
    partnership = Partnership()
    for over in overs:
        for ball in over.balls:
            if ball.is_wicket:
                partnership = Partnership()
                continue
            partnership.runs += ball.total_runs
            if ball.is_legal_delivery:
                partnership.balls += 1
    return partnership

