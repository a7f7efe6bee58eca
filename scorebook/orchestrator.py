"""
Scoring Engine Orchestrator.

Front door for the scoring screen and spectator views. Coordinates the
two innings of a match: setup (match, toss, players), every scoring
mutation, the chase and the result, plus the read models.

Usage:
    python -m scorebook.orchestrator --demo
    python -m scorebook.orchestrator --demo --overs 5 --seed 7
    python -m scorebook.orchestrator --replay data/match.csv
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from scorebook.config import EngineConfig
from scorebook.data.records import (
    Ball,
    Delivery,
    ExtrasType,
    Innings,
    InningsDetail,
    InningsStatus,
    Match,
    MatchStatus,
    Over,
    Player,
    Retirement,
    TeamSide,
    TossDecision,
    WicketType,
    coerce_enum,
)
from scorebook.data.store import ScoringStore
from scorebook.errors import ScoringError, StateError, ValidationError
from scorebook.rules.result import ChaseState, chase_state, decide_result
from scorebook.state.innings import BallOutcome, InningsEngine
from scorebook.views import read_models
from scorebook.views.read_models import (
    InningsProgression,
    MatchSummary,
    RecentBall,
    Scorecard,
)

logger = logging.getLogger("scorebook.orchestrator")


class MatchOrchestrator:
    """Coordinates one or more matches held in a ScoringStore.

    Every mutation runs in a single store transaction together with the
    match status/result bookkeeping it implies.
    """

    def __init__(
        self,
        store: Optional[ScoringStore] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.store = store or ScoringStore()
        self.config = config or EngineConfig()
        self.innings = InningsEngine(self.store, self.config)

    @contextmanager
    def _action(self, name: str) -> Iterator[None]:
        try:
            with self.store.transaction():
                yield
        except ScoringError as e:
            logger.warning("%s rejected: %s", name, e)
            raise

    # ── Match setup ──────────────────────────────────────────────────

    def create_match(
        self,
        team_a: str,
        team_b: str,
        overs_per_innings: Optional[int] = None,
        match_type: str = "",
        match_date: str = "",
    ) -> Match:
        overs = overs_per_innings or self.config.default_overs_per_innings
        with self._action("create_match"):
            if overs <= 0:
                raise ValidationError("Overs per innings must be positive")
            if not team_a.strip() or not team_b.strip():
                raise ValidationError("Both team names are required")

            match = Match(
                match_id=self.store.new_id("match"),
                team_a=team_a.strip(),
                team_b=team_b.strip(),
                overs_per_innings=overs,
                match_type=match_type,
                match_date=match_date,
            )
            self.store.save_match(match)
        logger.info("Match %s created: %s vs %s, %d overs", match.match_id, team_a, team_b, overs)
        return match

    def record_toss(self, match_id: str, winner: TeamSide, decision: TossDecision) -> Match:
        with self._action("record_toss"):
            match = self.store.get_match(match_id)
            match.toss_winner = coerce_enum(TeamSide, winner, "team")
            match.toss_decision = coerce_enum(TossDecision, decision, "toss decision")
            if match.status is MatchStatus.UPCOMING:
                match.status = MatchStatus.STARTING_SOON
            self.store.save_match(match)
        return match

    def add_player(
        self,
        match_id: str,
        team: TeamSide,
        name: str,
        batting_order: Optional[int] = None,
    ) -> Player:
        """Create a player on demand; names are unique within a team."""
        name = (name or "").strip()
        with self._action("add_player"):
            team = coerce_enum(TeamSide, team, "team")
            if not name:
                raise ValidationError("Player name is required")
            self.store.get_match(match_id)
            squad = self.store.players_for_match(match_id, team)
            if any(p.name == name for p in squad):
                raise ValidationError("This team already has a player with that name.")
            player = Player(
                player_id=self.store.new_id("plr"),
                match_id=match_id,
                team=team,
                name=name,
                batting_order=batting_order if batting_order is not None else len(squad) + 1,
            )
            self.store.save_player(player)
        return player

    def get_players(self, match_id: str, team: Optional[TeamSide] = None) -> list[Player]:
        return self.store.players_for_match(match_id, TeamSide(team) if team else None)

    def update_match_status(self, match_id: str, status: MatchStatus) -> Match:
        with self._action("update_match_status"):
            match = self.store.get_match(match_id)
            match.status = MatchStatus(status)
            self.store.save_match(match)
        logger.info("Match %s status set to %s", match_id, match.status.value)
        return match

    def update_match_winner(self, match_id: str, winner: Optional[TeamSide]) -> Match:
        """Operator override of the result; None records a tie / no result."""
        with self._action("update_match_winner"):
            match = self.store.get_match(match_id)
            match.winner_team = TeamSide(winner) if winner is not None else None
            match.status = MatchStatus.COMPLETED
            self.store.save_match(match)
        logger.info(
            "Match %s winner set to %s", match_id, match.winner_team.value if match.winner_team else "none",
        )
        return match

    # ── Innings ──────────────────────────────────────────────────────

    @staticmethod
    def sides_from_toss(match: Match) -> tuple[TeamSide, TeamSide]:
        """(batting, bowling) for the first innings."""
        if match.toss_winner is None or match.toss_decision is None:
            raise StateError("Record the toss before starting an innings")
        batting = (
            match.toss_winner
            if match.toss_decision is TossDecision.BAT
            else match.toss_winner.opponent
        )
        return batting, batting.opponent

    def start_innings(
        self,
        match_id: str,
        batting_team: Optional[TeamSide] = None,
        bowling_team: Optional[TeamSide] = None,
    ) -> Innings:
        """Start the next innings; sides default from the toss, then swap for the chase."""
        with self._action("start_innings"):
            if batting_team is None or bowling_team is None:
                if self.store.innings_for_match(match_id):
                    return self.innings.start_second_innings(match_id)
                batting_team, bowling_team = self.sides_from_toss(self.store.get_match(match_id))
            return self.innings.start_innings(match_id, batting_team, bowling_team)

    def start_second_innings(self, match_id: str) -> Innings:
        with self._action("start_second_innings"):
            return self.innings.start_second_innings(match_id)

    def start_over(
        self, innings_id: str, over_number: Optional[int], bowler_id: str
    ) -> Over:
        with self._action("start_over"):
            return self.innings.start_over(innings_id, over_number, bowler_id)

    def update_over_bowler(self, over_id: str, bowler_id: str) -> Over:
        with self._action("update_over_bowler"):
            return self.innings.update_over_bowler(over_id, bowler_id)

    def record_ball(self, over_id: str, delivery: Delivery) -> BallOutcome:
        with self._action("record_ball"):
            outcome = self.innings.record_ball(over_id, delivery)
            innings_id = self.store.get_over(over_id).innings_id
            self._settle_match(self.store.get_innings(innings_id).match_id)
        return outcome

    def delete_last_ball(self, innings_id: str) -> Ball:
        with self._action("delete_last_ball"):
            ball = self.innings.delete_last_ball(innings_id)
            self._settle_match(self.store.get_innings(innings_id).match_id)
        return ball

    def retire_batsman(self, innings_id: str, player_id: str, reason: str) -> Retirement:
        with self._action("retire_batsman"):
            return self.innings.retire_batsman(innings_id, player_id, reason)

    def return_retired_batsman(self, innings_id: str, player_id: str) -> Retirement:
        with self._action("return_retired_batsman"):
            return self.innings.return_retired_batsman(innings_id, player_id)

    def is_free_hit(self, innings_id: str) -> bool:
        return self.innings.is_free_hit(innings_id)

    def _settle_match(self, match_id: str) -> None:
        """Bring match status and winner in line with the innings totals."""
        match = self.store.get_match(match_id)
        all_innings = self.store.innings_for_match(match_id)
        if not all_innings:
            return
        first = all_innings[0]
        second = all_innings[1] if len(all_innings) > 1 else None

        if second is None:
            match.status = MatchStatus.INNINGS_BREAK if first.is_completed else MatchStatus.LIVE
        elif not second.is_completed:
            match.status = MatchStatus.LIVE
            match.winner_team = None
        elif self.config.auto_result:
            result = decide_result(first, second)
            match.status = MatchStatus.COMPLETED
            match.winner_team = result.winner
            logger.info("Match %s result: %s", match_id, result.describe(match))
        self.store.save_match(match)

    # ── Reads ────────────────────────────────────────────────────────

    def get_current_innings(self, match_id: str) -> Optional[Innings]:
        return read_models.get_current_innings(self.store, match_id)

    def get_all_innings(self, match_id: str) -> list[Innings]:
        return read_models.get_all_innings(self.store, match_id)

    def get_innings_status(self, match_id: str, number: int) -> InningsStatus:
        return read_models.get_innings_status(self.store, match_id, number)

    def get_recent_balls(self, innings_id: str, limit: Optional[int] = None) -> list[RecentBall]:
        return read_models.get_recent_balls(
            self.store,
            innings_id,
            limit=limit or self.config.display.recent_balls_limit,
            dot_marker=self.config.display.dot_ball_marker,
        )

    def current_over_balls(self, innings_id: str) -> list[RecentBall]:
        return read_models.current_over_balls(
            self.store, innings_id, dot_marker=self.config.display.dot_ball_marker,
        )

    def get_innings_with_balls(self, innings_id: str) -> Optional[InningsDetail]:
        return read_models.get_innings_with_balls(self.store, innings_id)

    def get_retirements_for_innings(self, innings_id: str) -> list[Retirement]:
        return read_models.get_retirements_for_innings(self.store, innings_id)

    def scorecard(self, innings_id: str) -> Optional[Scorecard]:
        return read_models.build_scorecard(self.store, innings_id)

    def match_summary(self, match_id: str) -> Optional[MatchSummary]:
        return read_models.match_summary(self.store, match_id)

    def progression(self, innings_id: str) -> Optional[InningsProgression]:
        return read_models.innings_progression(self.store, innings_id)

    def chase(self, match_id: str) -> Optional[ChaseState]:
        """Chase state once the first innings is complete and the second has begun."""
        match = self.store.find_match(match_id)
        all_innings = self.store.innings_for_match(match_id)
        if match is None or len(all_innings) < 2 or not all_innings[0].is_completed:
            return None
        return chase_state(all_innings[0], all_innings[1], match.overs_per_innings)


# ── CLI ─────────────────────────────────────────────────────────────


def print_scorecard(orchestrator: MatchOrchestrator, innings: Innings) -> None:
    match = orchestrator.store.get_match(innings.match_id)
    card = orchestrator.scorecard(innings.innings_id)
    if card is None:
        return

    print(f"\n{match.team_name(innings.batting_team)} innings: "
          f"{card.score} ({card.overs} ov, RR {card.run_rate})")
    print(f"{'Batter':<16}{'':<28}{'R':>4}{'B':>5}{'4s':>4}{'6s':>4}{'SR':>8}")
    for row in card.batting:
        if not row.has_batted:
            continue
        status = row.dismissal or "not out"
        print(f"{row.name:<16}{status:<28}{row.runs:>4}{row.balls:>5}"
              f"{row.fours:>4}{row.sixes:>4}{row.strike_rate:>8}")
    print(f"Extras: {card.extras}")
    if card.fall_of_wickets:
        fow = ", ".join(f"{f.score}-{f.wicket_number} ({f.overs})" for f in card.fall_of_wickets)
        print(f"Fall of wickets: {fow}")
    print(f"{'Bowler':<16}{'O':>6}{'M':>4}{'R':>5}{'W':>4}{'Econ':>8}")
    for row in card.bowling:
        print(f"{row.name:<16}{row.overs:>6}{row.maidens:>4}{row.runs:>5}"
              f"{row.wickets:>4}{row.economy:>8}")


def _random_delivery(
    rng: random.Random,
    striker: str,
    non_striker: str,
    free_hit: bool,
    fielders: list[Player],
) -> Delivery:
    r = rng.random()
    if r < 0.33:
        return Delivery(striker, non_striker)
    if r < 0.58:
        return Delivery(striker, non_striker, runs_off_bat=1)
    if r < 0.68:
        return Delivery(striker, non_striker, runs_off_bat=2)
    if r < 0.77:
        return Delivery(striker, non_striker, runs_off_bat=4)
    if r < 0.81:
        return Delivery(striker, non_striker, runs_off_bat=6)
    if r < 0.85:
        return Delivery(striker, non_striker, extras_type=ExtrasType.WIDE, extras_runs=1)
    if r < 0.87:
        return Delivery(
            striker, non_striker, runs_off_bat=rng.choice([0, 1]),
            extras_type=ExtrasType.NO_BALL, extras_runs=1,
        )
    if r < 0.90:
        return Delivery(striker, non_striker, extras_type=ExtrasType.LEG_BYE, extras_runs=1)
    if r < 0.95 and not free_hit:
        wicket = rng.choice([WicketType.BOWLED, WicketType.CAUGHT, WicketType.LBW])
        fielder = rng.choice(fielders).player_id if wicket is WicketType.CAUGHT else None
        return Delivery(
            striker, non_striker, wicket_type=wicket,
            dismissed_player_id=striker, fielder_id=fielder,
        )
    if r < 0.97:
        return Delivery(
            striker, non_striker, runs_off_bat=1, wicket_type=WicketType.RUN_OUT,
            dismissed_player_id=non_striker, fielder_id=rng.choice(fielders).player_id,
        )
    return Delivery(striker, non_striker, runs_off_bat=3)


def _simulate_innings(
    orchestrator: MatchOrchestrator, innings: Innings, rng: random.Random
) -> Innings:
    batting = orchestrator.get_players(innings.match_id, innings.batting_team)
    bowling = orchestrator.get_players(innings.match_id, innings.bowling_team)
    bowlers = bowling[-5:]

    striker, non_striker = batting[0].player_id, batting[1].player_id
    next_batter = 2
    over: Optional[Over] = None
    outcome: Optional[BallOutcome] = None
    spells = 0

    while not orchestrator.store.get_innings(innings.innings_id).is_completed:
        if over is None or (outcome is not None and outcome.over_complete):
            bowler = bowlers[spells % len(bowlers)]
            spells += 1
            over = orchestrator.start_over(innings.innings_id, None, bowler.player_id)

        delivery = _random_delivery(
            rng, striker, non_striker, orchestrator.is_free_hit(innings.innings_id), bowling,
        )
        outcome = orchestrator.record_ball(over.over_id, delivery)
        if outcome.innings_completed:
            break

        striker, non_striker = outcome.striker_id, outcome.non_striker_id
        if striker is None:
            striker = batting[next_batter].player_id
            next_batter += 1
        elif non_striker is None:
            non_striker = batting[next_batter].player_id
            next_batter += 1

    return orchestrator.store.get_innings(innings.innings_id)


def run_demo(config: EngineConfig, overs: int, seed: Optional[int] = None) -> None:
    """Simulate a short two-innings match through the full engine."""
    rng = random.Random(seed)
    orchestrator = MatchOrchestrator(config=config)

    logger.info("=" * 60)
    logger.info("SCOREBOOK - DEMO MODE")
    logger.info("=" * 60)

    match = orchestrator.create_match("Thunder", "Strikers", overs_per_innings=overs)
    for side, prefix in ((TeamSide.A, "Thunder"), (TeamSide.B, "Strikers")):
        for n in range(1, 12):
            orchestrator.add_player(match.match_id, side, f"{prefix}_{n}")
    orchestrator.record_toss(match.match_id, TeamSide.A, TossDecision.BAT)

    for _ in range(2):
        innings = orchestrator.start_innings(match.match_id)
        innings = _simulate_innings(orchestrator, innings, rng)
        print_scorecard(orchestrator, innings)

    summary = orchestrator.match_summary(match.match_id)
    print("\n" + "=" * 60)
    print(summary.result_text or "No result")
    print("=" * 60)


def run_replay(config: EngineConfig, path: Path, overs: int) -> None:
    """Replay a CSV ball log into a fresh match and print the scorecards."""
    from scorebook.data.ball_log import load_deliveries_from_csv, replay_deliveries

    deliveries = load_deliveries_from_csv(path)
    if not deliveries:
        logger.error("No deliveries found in %s", path)
        sys.exit(1)

    orchestrator = MatchOrchestrator(config=config)
    match = orchestrator.create_match("Team A", "Team B", overs_per_innings=overs)
    orchestrator.record_toss(match.match_id, TeamSide.A, TossDecision.BAT)
    replay_deliveries(orchestrator, match.match_id, deliveries)

    for innings in orchestrator.get_all_innings(match.match_id):
        print_scorecard(orchestrator, innings)
    summary = orchestrator.match_summary(match.match_id)
    if summary and summary.chase and not summary.result.is_decided:
        print(f"\nNeed {summary.chase.runs_needed} off {summary.chase.balls_remaining} balls")
    elif summary:
        print("\n" + (summary.result_text or "No result"))


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Ball-by-ball Cricket Scoring Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m scorebook.orchestrator --demo
  python -m scorebook.orchestrator --demo --overs 5 --seed 7
  python -m scorebook.orchestrator --replay data/match.csv --overs 20
        """,
    )

    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--demo", action="store_true", help="Simulate a match with random deliveries")
    mode.add_argument("--replay", type=Path, help="Replay a CSV ball log")

    parser.add_argument("--overs", type=int, help="Overs per innings")
    parser.add_argument("--seed", type=int, help="Random seed for the demo")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    config = EngineConfig.from_env()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    overs = args.overs or config.default_overs_per_innings

    if args.demo:
        run_demo(config, overs=overs, seed=args.seed)
    else:
        run_replay(config, args.replay, overs=overs)


if __name__ == "__main__":
    main()
