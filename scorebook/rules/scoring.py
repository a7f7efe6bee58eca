"""
Scoring rules.

Pure functions encoding delivery legality, strike rotation, over and
innings completion, display tokens and rate arithmetic. Stateless;
everything else in the engine is built on these.
"""

from __future__ import annotations

from typing import Optional, Union

from scorebook.config import BALLS_PER_OVER, DOT_BALL, MAX_WICKETS, DeliveryLimits
from scorebook.data.records import Ball, ExtrasType, WicketType, coerce_enum
from scorebook.errors import ValidationError

ExtrasLike = Union[ExtrasType, str]
WicketLike = Union[WicketType, str]

# Extras whose runs are bounded by DeliveryLimits.max_extras_runs
_EXTRAS_LABELS = {
    ExtrasType.WIDE: "Wide",
    ExtrasType.NO_BALL: "No Ball",
    ExtrasType.BYE: "Bye/Leg Bye",
    ExtrasType.LEG_BYE: "Bye/Leg Bye",
}


def is_legal_delivery(extras_type: ExtrasLike) -> bool:
    """Wides and no-balls do not count toward the six-ball over."""
    return ExtrasType(extras_type) not in (ExtrasType.WIDE, ExtrasType.NO_BALL)


def total_runs(runs_off_bat: int, extras_runs: int) -> int:
    return runs_off_bat + extras_runs


def should_rotate_strike(
    runs_off_bat: int, extras_type: ExtrasLike, extras_runs: int
) -> bool:
    """Whether the batters have swapped ends after this delivery.

    Wides never rotate. A no-ball rotates on an odd total, byes and leg
    byes on odd extras, anything else on odd runs off the bat. The
    end-of-over flip is applied separately by the innings engine.
    """
    extras_type = ExtrasType(extras_type)
    if extras_type is ExtrasType.WIDE:
        return False
    if extras_type is ExtrasType.NO_BALL:
        return (runs_off_bat + extras_runs) % 2 == 1
    if extras_type in (ExtrasType.BYE, ExtrasType.LEG_BYE):
        return extras_runs % 2 == 1
    return runs_off_bat % 2 == 1


def overs_as_decimal(legal_balls: int) -> str:
    """Cricket overs notation: 17 legal balls -> "2.5", 6 -> "1"."""
    complete_overs, balls = divmod(legal_balls, BALLS_PER_OVER)
    if balls == 0:
        return f"{complete_overs}"
    return f"{complete_overs}.{balls}"


def is_over_complete(legal_balls_in_over: int) -> bool:
    return legal_balls_in_over >= BALLS_PER_OVER


def innings_should_end(legal_balls: int, wickets: int, overs_per_innings: int) -> bool:
    """All overs bowled or all out."""
    return legal_balls >= overs_per_innings * BALLS_PER_OVER or wickets >= MAX_WICKETS


def ball_display_token(
    runs_off_bat: int,
    extras_type: ExtrasLike,
    extras_runs: int,
    wicket_type: WicketLike,
    dot_marker: str = DOT_BALL,
) -> str:
    """Short scorecard token for a delivery, e.g. "4", "W", "1W", "2nb", "1lb"."""
    extras_type = ExtrasType(extras_type)
    runs = total_runs(runs_off_bat, extras_runs)

    if WicketType(wicket_type) is not WicketType.NONE:
        return f"{runs}W" if runs > 0 else "W"
    if extras_type is ExtrasType.WIDE:
        return f"{extras_runs}wd" if extras_runs > 0 else "wd"
    if extras_type is ExtrasType.NO_BALL:
        return f"{runs}nb" if runs > 0 else "nb"
    if extras_type is ExtrasType.BYE:
        return f"{extras_runs}b"
    if extras_type is ExtrasType.LEG_BYE:
        return f"{extras_runs}lb"
    if runs_off_bat == 0:
        return dot_marker
    return str(runs_off_bat)


def display_token_for(ball: Ball, dot_marker: str = DOT_BALL) -> str:
    return ball_display_token(
        ball.runs_off_bat, ball.extras_type, ball.extras_runs, ball.wicket_type,
        dot_marker=dot_marker,
    )


def is_free_hit(last_ball: Optional[Ball]) -> bool:
    """The delivery after a no-ball is a free hit, unless that no-ball took a wicket."""
    if last_ball is None:
        return False
    return last_ball.extras_type is ExtrasType.NO_BALL and not last_ball.is_wicket


def validate_delivery(
    runs_off_bat: int,
    extras_type: ExtrasLike,
    extras_runs: int,
    wicket_type: WicketLike,
    dismissed_player_id: Optional[str],
    limits: Optional[DeliveryLimits] = None,
    free_hit: bool = False,
) -> None:
    """Reject a malformed delivery before anything is written.

    Raises:
        ValidationError: with an operator-facing message.
    """
    limits = limits or DeliveryLimits()
    extras_type = coerce_enum(ExtrasType, extras_type, "extras type")
    wicket_type = coerce_enum(WicketType, wicket_type, "wicket type")

    if runs_off_bat < 0 or runs_off_bat > limits.max_runs_off_bat:
        raise ValidationError(
            f"Runs off bat must be between 0 and {limits.max_runs_off_bat}"
        )

    if extras_type is ExtrasType.NONE:
        if extras_runs != 0:
            raise ValidationError("Extras runs require an extras type")
    elif extras_runs < 0 or extras_runs > limits.max_extras_runs:
        raise ValidationError(
            f"{_EXTRAS_LABELS[extras_type]} runs must be between 0 and "
            f"{limits.max_extras_runs}"
        )

    if wicket_type is not WicketType.NONE and not dismissed_player_id:
        raise ValidationError("Must select dismissed player for a wicket")

    if extras_type is ExtrasType.WIDE and runs_off_bat > 0:
        raise ValidationError("Cannot score runs off bat on a wide")

    if free_hit and wicket_type not in (WicketType.NONE, WicketType.RUN_OUT):
        raise ValidationError("Only a run out is possible on a free hit")


# --- Rates -------------------------------------------------------------------


def run_rate(runs: int, legal_balls: int) -> Optional[float]:
    """Runs per over, or None before the first legal ball."""
    if legal_balls <= 0:
        return None
    return runs * BALLS_PER_OVER / legal_balls


def required_run_rate(
    target: int, current_runs: int, balls_remaining: int
) -> Optional[float]:
    """Runs per over still needed, or None once nothing is needed or no balls remain."""
    runs_needed = target - current_runs
    if balls_remaining <= 0 or runs_needed <= 0:
        return None
    return runs_needed * BALLS_PER_OVER / balls_remaining


def strike_rate(runs: int, balls: int) -> Optional[float]:
    if balls <= 0:
        return None
    return runs * 100 / balls


def economy(runs: int, legal_balls: int) -> Optional[float]:
    if legal_balls <= 0:
        return None
    return runs * BALLS_PER_OVER / legal_balls


def format_rate(rate: Optional[float]) -> str:
    """Two decimals, or "-" when the rate is undefined."""
    if rate is None or rate != rate or rate in (float("inf"), float("-inf")):
        return "-"
    return f"{rate:.2f}"


def format_score(runs: int, wickets: int) -> str:
    return f"{runs}/{wickets}"
