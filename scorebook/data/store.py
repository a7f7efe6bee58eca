"""
Record store for the scoring engine.

Typed wrapper around in-memory tables for matches, players, innings,
over segments, balls and retirements. Every mutation in the engine runs
inside ``transaction()``: the tables are snapshotted on entry and
restored if anything raises, so the innings aggregates never drift from
the ball log that justifies them.

Records go in and come out as copies; callers change a record by saving
a modified copy back.
"""

from __future__ import annotations

import copy
import itertools
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional, TypeVar

from scorebook.data.records import (
    Ball,
    Innings,
    Match,
    Over,
    Player,
    Retirement,
    TeamSide,
)
from scorebook.errors import NotFoundError

logger = logging.getLogger(__name__)

R = TypeVar("R")

_KEYS = {
    "matches": ("match_id", "Match"),
    "players": ("player_id", "Player"),
    "innings": ("innings_id", "Innings"),
    "overs": ("over_id", "Over"),
    "balls": ("ball_id", "Ball"),
    "retirements": ("retirement_id", "Retirement"),
}


class ScoringStore:
    """Single-process store with atomic, re-entrant transactions."""

    def __init__(self):
        self._tables: dict[str, dict[str, Any]] = {name: {} for name in _KEYS}
        self._seq = itertools.count(1)
        self._lock = threading.RLock()

    # ── Transactions ─────────────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator["ScoringStore"]:
        """Apply a group of writes as one unit.

        Nested transactions join the outermost one; a failure anywhere
        rolls back to the state at the outermost entry.
        """
        with self._lock:
            snapshot = {name: dict(rows) for name, rows in self._tables.items()}
            try:
                yield self
            except Exception:
                self._tables = snapshot
                logger.debug("Transaction rolled back")
                raise

    def new_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:12]}"

    def next_seq(self) -> int:
        return next(self._seq)

    # ── Generic row access ───────────────────────────────────────────

    def _put(self, table: str, record: R) -> R:
        key_attr, _ = _KEYS[table]
        with self._lock:
            self._tables[table][getattr(record, key_attr)] = copy.copy(record)
        return record

    def _find(self, table: str, key: Optional[str]) -> Optional[Any]:
        if key is None:
            return None
        with self._lock:
            row = self._tables[table].get(key)
        return copy.copy(row) if row is not None else None

    def _require(self, table: str, key: Optional[str]) -> Any:
        row = self._find(table, key)
        if row is None:
            raise NotFoundError(_KEYS[table][1], str(key))
        return row

    def _rows(self, table: str) -> list[Any]:
        with self._lock:
            rows = list(self._tables[table].values())
        return [copy.copy(r) for r in rows]

    # ── Matches ──────────────────────────────────────────────────────

    def save_match(self, match: Match) -> Match:
        return self._put("matches", match)

    def find_match(self, match_id: Optional[str]) -> Optional[Match]:
        return self._find("matches", match_id)

    def get_match(self, match_id: str) -> Match:
        return self._require("matches", match_id)

    # ── Players ──────────────────────────────────────────────────────

    def save_player(self, player: Player) -> Player:
        return self._put("players", player)

    def find_player(self, player_id: Optional[str]) -> Optional[Player]:
        return self._find("players", player_id)

    def get_player(self, player_id: str) -> Player:
        return self._require("players", player_id)

    def players_for_match(
        self, match_id: str, team: Optional[TeamSide] = None
    ) -> list[Player]:
        players = [
            p for p in self._rows("players")
            if p.match_id == match_id and (team is None or p.team is team)
        ]
        return sorted(players, key=lambda p: (p.team.value, p.batting_order))

    # ── Innings ──────────────────────────────────────────────────────

    def save_innings(self, innings: Innings) -> Innings:
        return self._put("innings", innings)

    def find_innings(self, innings_id: Optional[str]) -> Optional[Innings]:
        return self._find("innings", innings_id)

    def get_innings(self, innings_id: str) -> Innings:
        return self._require("innings", innings_id)

    def innings_for_match(self, match_id: str) -> list[Innings]:
        """All innings of a match, oldest first."""
        rows = [i for i in self._rows("innings") if i.match_id == match_id]
        return sorted(rows, key=lambda i: i.seq)

    # ── Overs ────────────────────────────────────────────────────────

    def save_over(self, over: Over) -> Over:
        return self._put("overs", over)

    def find_over(self, over_id: Optional[str]) -> Optional[Over]:
        return self._find("overs", over_id)

    def get_over(self, over_id: str) -> Over:
        return self._require("overs", over_id)

    def delete_over(self, over_id: str) -> None:
        with self._lock:
            if self._tables["overs"].pop(over_id, None) is None:
                raise NotFoundError("Over", over_id)

    def overs_for_innings(self, innings_id: str) -> list[Over]:
        rows = [o for o in self._rows("overs") if o.innings_id == innings_id]
        return sorted(rows, key=lambda o: o.seq)

    # ── Balls ────────────────────────────────────────────────────────

    def insert_ball(self, ball: Ball) -> Ball:
        return self._put("balls", ball)

    def delete_ball(self, ball_id: str) -> None:
        with self._lock:
            if self._tables["balls"].pop(ball_id, None) is None:
                raise NotFoundError("Ball", ball_id)

    def balls_for_over(self, over_id: str) -> list[Ball]:
        rows = [b for b in self._rows("balls") if b.over_id == over_id]
        return sorted(rows, key=lambda b: b.seq)

    def balls_for_innings(self, innings_id: str) -> list[Ball]:
        """Chronological delivery log of an innings across all segments."""
        over_ids = {o.over_id for o in self.overs_for_innings(innings_id)}
        rows = [b for b in self._rows("balls") if b.over_id in over_ids]
        return sorted(rows, key=lambda b: b.seq)

    def last_ball(self, innings_id: str) -> Optional[Ball]:
        balls = self.balls_for_innings(innings_id)
        return balls[-1] if balls else None

    # ── Retirements ──────────────────────────────────────────────────

    def save_retirement(self, retirement: Retirement) -> Retirement:
        return self._put("retirements", retirement)

    def retirements_for_innings(self, innings_id: str) -> list[Retirement]:
        rows = [r for r in self._rows("retirements") if r.innings_id == innings_id]
        return sorted(rows, key=lambda r: r.seq)
