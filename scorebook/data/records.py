"""
Scoring record model.

Defines the records that flow from the operator's scoring actions
through the store and out to the read models: matches, innings,
bowler-segment overs, deliveries, players and retirements.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, TypeVar

from scorebook.errors import ValidationError

E = TypeVar("E", bound=Enum)


class MatchStatus(Enum):
    UPCOMING = "Upcoming"
    STARTING_SOON = "Starting Soon"
    LIVE = "Live"
    INNINGS_BREAK = "Innings Break"
    COMPLETED = "Completed"


class TeamSide(Enum):
    A = "A"
    B = "B"

    @property
    def opponent(self) -> "TeamSide":
        return TeamSide.B if self is TeamSide.A else TeamSide.A


class TossDecision(Enum):
    BAT = "Bat"
    BOWL = "Bowl"


class InningsStatus(Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class ExtrasType(Enum):
    NONE = "None"
    WIDE = "Wide"
    NO_BALL = "NoBall"
    BYE = "Bye"
    LEG_BYE = "LegBye"


class WicketType(Enum):
    NONE = "None"
    BOWLED = "Bowled"
    LBW = "LBW"
    CAUGHT = "Caught"
    STUMPS = "Stumps"
    RUN_OUT = "RunOut"
    HIT_WICKET = "HitWicket"


def coerce_enum(enum_cls: type[E], value: Any, label: str) -> E:
    """Convert operator input to an enum member, rejecting unknown values."""
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {label}: {value}") from None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


class Record:
    """Mixin giving every record a JSON-ready ``to_dict``."""

    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class Match(Record):
    """Pre-match metadata plus status, toss and result."""

    match_id: str
    team_a: str
    team_b: str
    overs_per_innings: int = 20
    status: MatchStatus = MatchStatus.UPCOMING
    toss_winner: Optional[TeamSide] = None
    toss_decision: Optional[TossDecision] = None
    winner_team: Optional[TeamSide] = None
    match_type: str = ""
    match_date: str = ""

    def team_name(self, side: Optional[TeamSide]) -> Optional[str]:
        if side is TeamSide.A:
            return self.team_a
        if side is TeamSide.B:
            return self.team_b
        return None


@dataclass
class Player(Record):
    player_id: str
    match_id: str
    team: TeamSide
    name: str
    batting_order: int = 0


@dataclass
class Innings(Record):
    """Aggregate state for one innings; a projection of its ball log."""

    innings_id: str
    match_id: str
    batting_team: TeamSide
    bowling_team: TeamSide
    total_runs: int = 0
    wickets: int = 0
    balls_bowled: int = 0  # legal deliveries only (wides / no-balls excluded)
    is_completed: bool = False
    seq: int = 0
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def status(self) -> InningsStatus:
        return InningsStatus.COMPLETED if self.is_completed else InningsStatus.IN_PROGRESS

    @property
    def score_str(self) -> str:
        return f"{self.total_runs}/{self.wickets}"


@dataclass
class Over(Record):
    """A bowler-segment of a scorecard over.

    A mid-over bowler change starts a second segment with the same
    ``over_number``, so one scorecard over may span several records.
    """

    over_id: str
    innings_id: str
    over_number: int
    bowler_id: Optional[str]
    seq: int = 0
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class Ball(Record):
    """A single delivery. Immutable once recorded."""

    ball_id: str
    over_id: str
    ball_number: int  # legal-delivery ordinal within the segment
    striker_id: str
    non_striker_id: str

    runs_off_bat: int = 0
    extras_type: ExtrasType = ExtrasType.NONE
    extras_runs: int = 0

    wicket_type: WicketType = WicketType.NONE
    dismissed_player_id: Optional[str] = None
    fielder_id: Optional[str] = None
    keeper_id: Optional[str] = None

    seq: int = 0
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def total_runs(self) -> int:
        return self.runs_off_bat + self.extras_runs

    @property
    def is_legal_delivery(self) -> bool:
        return self.extras_type not in (ExtrasType.WIDE, ExtrasType.NO_BALL)

    @property
    def is_wicket(self) -> bool:
        return self.wicket_type is not WicketType.NONE

    @property
    def is_boundary_four(self) -> bool:
        return self.runs_off_bat == 4

    @property
    def is_boundary_six(self) -> bool:
        return self.runs_off_bat == 6


@dataclass
class Retirement(Record):
    """A batter leaving the crease without being dismissed."""

    retirement_id: str
    innings_id: str
    player_id: str
    reason: str
    resumed: bool = False  # True once the batter has come back in
    seq: int = 0
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class Delivery:
    """Operator input for one delivery, before it becomes a Ball."""

    striker_id: str
    non_striker_id: str
    runs_off_bat: int = 0
    extras_type: ExtrasType = ExtrasType.NONE
    extras_runs: int = 0
    wicket_type: WicketType = WicketType.NONE
    dismissed_player_id: Optional[str] = None
    fielder_id: Optional[str] = None
    keeper_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.extras_type = coerce_enum(ExtrasType, self.extras_type, "extras type")
        self.wicket_type = coerce_enum(WicketType, self.wicket_type, "wicket type")


@dataclass
class OverDetail(Record):
    """An over segment with its deliveries in chronological order."""

    over: Over
    balls: list[Ball] = field(default_factory=list)

    @property
    def bowler_id(self) -> Optional[str]:
        return self.over.bowler_id


@dataclass
class InningsDetail(Record):
    """Full over/ball tree of one innings."""

    innings: Innings
    overs: list[OverDetail] = field(default_factory=list)

    def all_balls(self) -> list[Ball]:
        return [ball for od in self.overs for ball in od.balls]
