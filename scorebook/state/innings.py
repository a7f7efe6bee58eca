"""
Innings State Engine.

Owns the lifecycle of an innings (NotStarted -> InProgress -> Completed)
and every mutation an operator can make to it: starting bowler-segment
overs, recording and undoing deliveries, retirements and bowler
corrections. Each mutation validates first and then writes inside one
store transaction, so a rejected call leaves no trace.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from scorebook.config import BALLS_PER_OVER, EngineConfig
from scorebook.data.records import (
    Ball,
    Delivery,
    Innings,
    Match,
    MatchStatus,
    Over,
    Player,
    Retirement,
    TeamSide,
    WicketType,
)
from scorebook.data.store import ScoringStore
from scorebook.errors import StateError, ValidationError
from scorebook.rules.result import chase_target
from scorebook.rules.scoring import (
    innings_should_end,
    is_free_hit,
    is_legal_delivery,
    should_rotate_strike,
    validate_delivery,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BallOutcome:
    """What the scorer needs to know after a delivery is recorded."""

    ball: Ball
    is_legal: bool
    rotate_strike: bool  # per-ball rule combined with the end-of-over flip
    over_complete: bool
    innings_completed: bool
    free_hit: bool  # next delivery is a free hit
    striker_id: Optional[str]  # None where a dismissed batter must be replaced
    non_striker_id: Optional[str]


class InningsEngine:
    """Validates and applies innings mutations against a ScoringStore."""

    def __init__(self, store: ScoringStore, config: Optional[EngineConfig] = None):
        self.store = store
        self.config = config or EngineConfig()

    # ── Lifecycle ────────────────────────────────────────────────────

    def start_innings(
        self, match_id: str, batting_team: TeamSide, bowling_team: TeamSide
    ) -> Innings:
        batting_team = TeamSide(batting_team)
        bowling_team = TeamSide(bowling_team)

        with self.store.transaction():
            match = self.store.get_match(match_id)
            if match.toss_winner is None or match.toss_decision is None:
                raise StateError("Record the toss before starting an innings")
            if batting_team is bowling_team:
                raise ValidationError("Batting and bowling teams must differ")

            existing = self.store.innings_for_match(match_id)
            if any(not inn.is_completed for inn in existing):
                raise StateError("Another innings of this match is in progress")
            if len(existing) >= 2:
                raise StateError("Both innings of this match have been played")
            if existing and existing[0].batting_team is batting_team:
                raise ValidationError(
                    f"Team {batting_team.value} has already batted in this match"
                )

            innings = Innings(
                innings_id=self.store.new_id("inn"),
                match_id=match_id,
                batting_team=batting_team,
                bowling_team=bowling_team,
                seq=self.store.next_seq(),
            )
            self.store.save_innings(innings)

            match.status = MatchStatus.LIVE
            self.store.save_match(match)

        logger.info(
            "Innings %d started for match %s: team %s batting",
            len(existing) + 1, match_id, batting_team.value,
        )
        return innings

    def start_second_innings(self, match_id: str) -> Innings:
        """Start the chase with the sides of the first innings swapped."""
        existing = self.store.innings_for_match(match_id)
        if not existing:
            raise StateError("No first innings found for this match")
        first = existing[0]
        if not first.is_completed:
            raise StateError("First innings is not yet completed")
        return self.start_innings(match_id, first.bowling_team, first.batting_team)

    # ── Overs ────────────────────────────────────────────────────────

    def start_over(
        self, innings_id: str, over_number: Optional[int], bowler_id: str
    ) -> Over:
        """Open a new bowler-segment.

        ``over_number`` is the scorecard over in progress; leave it as
        None to have it derived. Starting a segment part-way through an
        over is how a bowler is replaced mid-over.
        """
        with self.store.transaction():
            innings = self._open_innings(innings_id)
            match = self.store.get_match(innings.match_id)

            expected = innings.balls_bowled // BALLS_PER_OVER + 1
            if over_number is None:
                over_number = expected
            elif over_number != expected:
                raise ValidationError(
                    f"Over {over_number} cannot start now; the current over is {expected}"
                )

            self._check_bowler(match, innings, bowler_id)
            self._check_not_consecutive(innings_id, bowler_id)

            over = Over(
                over_id=self.store.new_id("ovr"),
                innings_id=innings_id,
                over_number=over_number,
                bowler_id=bowler_id,
                seq=self.store.next_seq(),
            )
            self.store.save_over(over)

        logger.info(
            "Over %d started in innings %s (bowler %s)", over_number, innings_id, bowler_id,
        )
        return over

    def update_over_bowler(self, over_id: str, bowler_id: str) -> Over:
        """Correct the bowler of a segment nobody has bowled from yet."""
        with self.store.transaction():
            over = self.store.get_over(over_id)
            innings = self._open_innings(over.innings_id)
            match = self.store.get_match(innings.match_id)

            if self.store.balls_for_over(over_id):
                raise StateError(
                    "Bowler can only be corrected before the first delivery of the over; "
                    "start a new over segment instead"
                )
            self._check_bowler(match, innings, bowler_id)
            self._check_not_consecutive(innings.innings_id, bowler_id, exclude_over_id=over_id)

            over.bowler_id = bowler_id
            self.store.save_over(over)

        logger.info("Over %s bowler changed to %s", over_id, bowler_id)
        return over

    # ── Deliveries ───────────────────────────────────────────────────

    def record_ball(self, over_id: str, delivery: Delivery) -> BallOutcome:
        with self.store.transaction():
            over = self.store.get_over(over_id)
            innings = self._open_innings(over.innings_id)
            match = self.store.get_match(innings.match_id)

            segments = self.store.overs_for_innings(innings.innings_id)
            if segments[-1].over_id != over_id:
                raise StateError("Deliveries can only be added to the current over")
            current_over = innings.balls_bowled // BALLS_PER_OVER + 1
            if over.over_number != current_over:
                raise StateError(
                    f"Over {over.over_number} is not the over in progress; "
                    f"record into over {current_over}"
                )

            free_hit = is_free_hit(self.store.last_ball(innings.innings_id))
            validate_delivery(
                delivery.runs_off_bat,
                delivery.extras_type,
                delivery.extras_runs,
                delivery.wicket_type,
                delivery.dismissed_player_id,
                limits=self.config.limits,
                free_hit=free_hit,
            )
            self._check_batters(match, innings, delivery)

            legal = is_legal_delivery(delivery.extras_type)
            legal_in_segment = sum(
                1 for b in self.store.balls_for_over(over_id) if b.is_legal_delivery
            )
            ball = Ball(
                ball_id=self.store.new_id("ball"),
                over_id=over_id,
                ball_number=legal_in_segment + 1,
                striker_id=delivery.striker_id,
                non_striker_id=delivery.non_striker_id,
                runs_off_bat=delivery.runs_off_bat,
                extras_type=delivery.extras_type,
                extras_runs=delivery.extras_runs,
                wicket_type=delivery.wicket_type,
                dismissed_player_id=(
                    delivery.dismissed_player_id
                    if delivery.wicket_type is not WicketType.NONE
                    else None
                ),
                fielder_id=delivery.fielder_id,
                keeper_id=delivery.keeper_id,
                seq=self.store.next_seq(),
            )
            self.store.insert_ball(ball)

            innings.total_runs += ball.total_runs
            innings.wickets += 1 if ball.is_wicket else 0
            innings.balls_bowled += 1 if legal else 0
            innings.is_completed = self._should_complete(match, innings)
            self.store.save_innings(innings)

        over_complete = legal and innings.balls_bowled % BALLS_PER_OVER == 0
        rotate = should_rotate_strike(
            ball.runs_off_bat, ball.extras_type, ball.extras_runs
        ) != over_complete

        striker, non_striker = ball.striker_id, ball.non_striker_id
        if rotate:
            striker, non_striker = non_striker, striker
        if ball.dismissed_player_id == striker:
            striker = None
        elif ball.dismissed_player_id == non_striker:
            non_striker = None

        logger.debug(
            "Ball %s: %s | %s after %d legal balls",
            ball.ball_id, ball.total_runs, innings.score_str, innings.balls_bowled,
        )
        if innings.is_completed:
            logger.info(
                "Innings %s completed at %s", innings.innings_id, innings.score_str,
            )

        return BallOutcome(
            ball=ball,
            is_legal=legal,
            rotate_strike=rotate,
            over_complete=over_complete,
            innings_completed=innings.is_completed,
            free_hit=is_free_hit(ball),
            striker_id=striker,
            non_striker_id=non_striker,
        )

    def delete_last_ball(self, innings_id: str) -> Ball:
        """Undo the most recent delivery of the innings.

        Totals are rebuilt from the remaining ball log, which re-opens an
        innings that the deleted ball had completed.
        """
        with self.store.transaction():
            innings = self.store.get_innings(innings_id)
            match = self.store.get_match(innings.match_id)

            last = self.store.last_ball(innings_id)
            if last is None:
                raise StateError("No deliveries to delete")

            later = [
                i for i in self.store.innings_for_match(innings.match_id)
                if i.seq > innings.seq
            ]
            if later:
                raise StateError("Cannot undo a delivery once the next innings has started")

            self.store.delete_ball(last.ball_id)
            self._recompute_totals(match, innings)
            self.store.save_innings(innings)
            self._drop_stale_segments(innings)

        logger.info(
            "Deleted ball %s from innings %s, now %s", last.ball_id, innings_id, innings.score_str,
        )
        return last

    def is_free_hit(self, innings_id: str) -> bool:
        """Whether the next delivery of the innings is a free hit."""
        return is_free_hit(self.store.last_ball(innings_id))

    # ── Retirements ──────────────────────────────────────────────────

    def retire_batsman(self, innings_id: str, player_id: str, reason: str) -> Retirement:
        """Take a batter off without a wicket; the totals are untouched."""
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Retire reason is required")

        with self.store.transaction():
            innings = self._open_innings(innings_id)
            player = self.store.get_player(player_id)
            self._check_side(player, innings.batting_team, "batting")

            if self._active_retirement(innings_id, player_id) is not None:
                raise StateError("This batter is already marked as retired in this innings.")
            if player_id in self._dismissed(innings_id):
                raise StateError("A dismissed batter cannot retire")

            retirement = Retirement(
                retirement_id=self.store.new_id("ret"),
                innings_id=innings_id,
                player_id=player_id,
                reason=reason,
                seq=self.store.next_seq(),
            )
            self.store.save_retirement(retirement)

        logger.info("Player %s retired in innings %s: %s", player_id, innings_id, reason)
        return retirement

    def return_retired_batsman(self, innings_id: str, player_id: str) -> Retirement:
        """Let a retired batter resume their innings."""
        with self.store.transaction():
            self._open_innings(innings_id)
            retirement = self._active_retirement(innings_id, player_id)
            if retirement is None:
                raise StateError("This batter is not retired in this innings")
            retirement.resumed = True
            self.store.save_retirement(retirement)

        logger.info("Player %s resumed batting in innings %s", player_id, innings_id)
        return retirement

    # ── Internals ────────────────────────────────────────────────────

    def _open_innings(self, innings_id: str) -> Innings:
        innings = self.store.get_innings(innings_id)
        if innings.is_completed:
            raise StateError("Innings is already completed")
        return innings

    def _should_complete(self, match: Match, innings: Innings) -> bool:
        if innings_should_end(innings.balls_bowled, innings.wickets, match.overs_per_innings):
            return True
        first = self.store.innings_for_match(match.match_id)[0]
        return (
            first.innings_id != innings.innings_id
            and first.is_completed
            and innings.total_runs >= chase_target(first.total_runs)
        )

    def _recompute_totals(self, match: Match, innings: Innings) -> None:
        balls = self.store.balls_for_innings(innings.innings_id)
        innings.total_runs = sum(b.total_runs for b in balls)
        innings.wickets = sum(1 for b in balls if b.is_wicket)
        innings.balls_bowled = sum(1 for b in balls if b.is_legal_delivery)
        innings.is_completed = self._should_complete(match, innings)

    def _drop_stale_segments(self, innings: Innings) -> None:
        """Remove empty trailing segments opened for an over that an undo has re-opened."""
        current = innings.balls_bowled // BALLS_PER_OVER + 1
        for segment in reversed(self.store.overs_for_innings(innings.innings_id)):
            if segment.over_number == current or self.store.balls_for_over(segment.over_id):
                return
            self.store.delete_over(segment.over_id)
            logger.info(
                "Removed empty over %d segment %s after undo", segment.over_number, segment.over_id,
            )

    def _check_side(self, player: Player, side: TeamSide, role: str) -> None:
        if player.team is not side:
            raise ValidationError(f"{player.name} is not in the {role} side")

    def _check_bowler(self, match: Match, innings: Innings, bowler_id: str) -> None:
        if not bowler_id:
            raise ValidationError("Please select a bowler")
        bowler = self.store.get_player(bowler_id)
        if bowler.match_id != match.match_id:
            raise ValidationError(f"{bowler.name} is not playing in this match")
        self._check_side(bowler, innings.bowling_team, "bowling")

    def _check_not_consecutive(
        self, innings_id: str, bowler_id: str, exclude_over_id: Optional[str] = None
    ) -> None:
        """Compare against the latest segment that has deliveries; empty ones are corrections."""
        for segment in reversed(self.store.overs_for_innings(innings_id)):
            if segment.over_id == exclude_over_id:
                continue
            if not self.store.balls_for_over(segment.over_id):
                continue
            if segment.bowler_id == bowler_id:
                raise StateError(
                    "A bowler cannot bowl two consecutive overs. "
                    "Please select a different bowler."
                )
            return

    def _check_batters(self, match: Match, innings: Innings, delivery: Delivery) -> None:
        if delivery.striker_id == delivery.non_striker_id:
            raise ValidationError("Striker and non-striker must be different players")

        for player_id in (delivery.striker_id, delivery.non_striker_id):
            player = self.store.get_player(player_id)
            self._check_side(player, innings.batting_team, "batting")

        if delivery.wicket_type is not WicketType.NONE and delivery.dismissed_player_id not in (
            delivery.striker_id, delivery.non_striker_id,
        ):
            raise ValidationError("Dismissed player must be one of the batters at the crease")

        for player_id in (delivery.fielder_id, delivery.keeper_id):
            if player_id:
                self._check_side(self.store.get_player(player_id), innings.bowling_team, "fielding")

        dismissed = self._dismissed(innings.innings_id)
        for player_id in (delivery.striker_id, delivery.non_striker_id):
            if player_id in dismissed:
                raise StateError("A dismissed batter cannot bat again")
            if self._active_retirement(innings.innings_id, player_id) is not None:
                raise StateError("A retired batter must resume before batting again")

    def _dismissed(self, innings_id: str) -> set[str]:
        return {
            b.dismissed_player_id
            for b in self.store.balls_for_innings(innings_id)
            if b.is_wicket and b.dismissed_player_id
        }

    def _active_retirement(self, innings_id: str, player_id: str) -> Optional[Retirement]:
        for retirement in self.store.retirements_for_innings(innings_id):
            if retirement.player_id == player_id and not retirement.resumed:
                return retirement
        return None
