"""
Ball log CSV export and replay.

Writes the delivery log of an innings as a flat CSV with player names,
reads such a file back, and replays it through the orchestrator so a
scored match can be rebuilt from its log.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Mapping, Optional

from scorebook.data.records import (
    Delivery,
    ExtrasType,
    InningsDetail,
    Player,
    TeamSide,
    WicketType,
)

if TYPE_CHECKING:
    from scorebook.data.store import ScoringStore
    from scorebook.orchestrator import MatchOrchestrator

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "innings",
    "over",
    "ball",
    "bowler",
    "striker",
    "non_striker",
    "runs_off_bat",
    "extras_type",
    "extras_runs",
    "wicket_type",
    "player_dismissed",
    "fielder",
    "keeper",
]


@dataclass
class LoggedDelivery:
    """One CSV row: a delivery identified by player names."""

    innings: int
    over: int
    ball: int
    bowler: str
    striker: str
    non_striker: str
    runs_off_bat: int = 0
    extras_type: ExtrasType = ExtrasType.NONE
    extras_runs: int = 0
    wicket_type: WicketType = WicketType.NONE
    player_dismissed: Optional[str] = None
    fielder: Optional[str] = None
    keeper: Optional[str] = None


# ── Export ──────────────────────────────────────────────────────────


def _name(players: Mapping[str, Player], player_id: Optional[str]) -> str:
    if not player_id:
        return ""
    player = players.get(player_id)
    return player.name if player else player_id


def innings_rows(
    detail: InningsDetail, players: Mapping[str, Player], innings_number: int = 1
) -> list[dict[str, object]]:
    rows = []
    for od in detail.overs:
        for ball in od.balls:
            rows.append({
                "innings": innings_number,
                "over": od.over.over_number,
                "ball": ball.ball_number,
                "bowler": _name(players, od.bowler_id),
                "striker": _name(players, ball.striker_id),
                "non_striker": _name(players, ball.non_striker_id),
                "runs_off_bat": ball.runs_off_bat,
                "extras_type": ball.extras_type.value,
                "extras_runs": ball.extras_runs,
                "wicket_type": ball.wicket_type.value,
                "player_dismissed": _name(players, ball.dismissed_player_id),
                "fielder": _name(players, ball.fielder_id),
                "keeper": _name(players, ball.keeper_id),
            })
    return rows


def export_innings_csv(
    detail: InningsDetail,
    players: Mapping[str, Player],
    path: Path,
    innings_number: int = 1,
) -> int:
    """Write one innings to ``path``. Returns the number of deliveries written."""
    rows = innings_rows(detail, players, innings_number)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    logger.info("Exported %d deliveries of innings %d to %s", len(rows), innings_number, path)
    return len(rows)


def export_match_csv(store: "ScoringStore", match_id: str, path: Path) -> int:
    """Write every innings of a match to a single ball log."""
    from scorebook.views.read_models import get_innings_with_balls

    players = {p.player_id: p for p in store.players_for_match(match_id)}
    rows: list[dict[str, object]] = []
    for number, innings in enumerate(store.innings_for_match(match_id), start=1):
        detail = get_innings_with_balls(store, innings.innings_id)
        if detail is not None:
            rows.extend(innings_rows(detail, players, number))

    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    logger.info("Exported match %s: %d deliveries to %s", match_id, len(rows), path)
    return len(rows)


# ── Import ──────────────────────────────────────────────────────────


def _parse_row(row: dict[str, str]) -> LoggedDelivery:
    def text(column: str) -> Optional[str]:
        return (row.get(column) or "").strip() or None

    bowler, striker, non_striker = text("bowler"), text("striker"), text("non_striker")
    if not bowler or not striker or not non_striker:
        raise ValueError("bowler, striker and non_striker are required")

    return LoggedDelivery(
        innings=int(row["innings"]),
        over=int(row["over"]),
        ball=int(row.get("ball") or 0),
        bowler=bowler,
        striker=striker,
        non_striker=non_striker,
        runs_off_bat=int(row.get("runs_off_bat") or 0),
        extras_type=ExtrasType(text("extras_type") or ExtrasType.NONE.value),
        extras_runs=int(row.get("extras_runs") or 0),
        wicket_type=WicketType(text("wicket_type") or WicketType.NONE.value),
        player_dismissed=text("player_dismissed"),
        fielder=text("fielder"),
        keeper=text("keeper"),
    )


def load_deliveries_from_csv(path: Path) -> list[LoggedDelivery]:
    """Parse a ball log. Malformed rows are skipped with a warning.

    Raises:
        ValueError: if the file has no rows at all.
    """
    with open(path, "r", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    if not rows:
        raise ValueError(f"Empty CSV file: {path}")

    deliveries: list[LoggedDelivery] = []
    for line, row in enumerate(rows, start=2):
        try:
            deliveries.append(_parse_row(row))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping row %d of %s: %s", line, path, e)

    logger.info("Loaded %d deliveries from %s", len(deliveries), path)
    return deliveries


# ── Replay ──────────────────────────────────────────────────────────


class _Roster:
    """Name -> player id per side, creating players the first time they appear."""

    def __init__(self, orchestrator: "MatchOrchestrator", match_id: str):
        self.orchestrator = orchestrator
        self.match_id = match_id
        self.ids: dict[tuple[TeamSide, str], str] = {
            (p.team, p.name): p.player_id for p in orchestrator.get_players(match_id)
        }

    def player_id(self, side: TeamSide, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        key = (side, name)
        if key not in self.ids:
            player = self.orchestrator.add_player(self.match_id, side, name)
            self.ids[key] = player.player_id
        return self.ids[key]


def replay_deliveries(
    orchestrator: "MatchOrchestrator", match_id: str, deliveries: list[LoggedDelivery]
) -> int:
    """Drive the engine through a logged sequence of deliveries.

    Innings are started as the log moves on to them (sides from the
    toss, then swapped) and a new over segment is opened whenever the
    over number or the bowler changes. Returns the number of deliveries
    recorded.
    """
    roster = _Roster(orchestrator, match_id)
    innings = orchestrator.get_current_innings(match_id)
    started = len(orchestrator.get_all_innings(match_id))
    over = None
    over_bowler: Optional[str] = None
    recorded = 0

    for logged in deliveries:
        while started < logged.innings:
            innings = orchestrator.start_innings(match_id)
            started += 1
            over = None
        if innings is None:
            raise ValueError(f"No innings in progress for delivery in innings {logged.innings}")

        batting, bowling = innings.batting_team, innings.bowling_team
        bowler_id = roster.player_id(bowling, logged.bowler)
        if over is None or over.over_number != logged.over or over_bowler != bowler_id:
            over = orchestrator.start_over(innings.innings_id, logged.over, bowler_id)
            over_bowler = bowler_id

        delivery = Delivery(
            striker_id=roster.player_id(batting, logged.striker),
            non_striker_id=roster.player_id(batting, logged.non_striker),
            runs_off_bat=logged.runs_off_bat,
            extras_type=logged.extras_type,
            extras_runs=logged.extras_runs,
            wicket_type=logged.wicket_type,
            dismissed_player_id=roster.player_id(batting, logged.player_dismissed),
            fielder_id=roster.player_id(bowling, logged.fielder),
            keeper_id=roster.player_id(bowling, logged.keeper),
        )
        orchestrator.record_ball(over.over_id, delivery)
        recorded += 1

    logger.info("Replayed %d deliveries into match %s", recorded, match_id)
    return recorded
