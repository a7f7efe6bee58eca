"""
Configuration management for the Scoring Engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

BALLS_PER_OVER = 6
MAX_WICKETS = 10
DOT_BALL = "•"


@dataclass(frozen=True)
class DeliveryLimits:
    """Accepted range for the run fields of a delivery."""
    max_runs_off_bat: int = 10
    max_extras_runs: int = 10


@dataclass(frozen=True)
class DisplayConfig:
    """Spectator view settings."""
    recent_balls_limit: int = 36  # Always covers a full over incl. wides/no-balls
    dot_ball_marker: str = DOT_BALL


@dataclass
class EngineConfig:
    """Top-level engine configuration."""
    limits: DeliveryLimits = field(default_factory=DeliveryLimits)
    display: DisplayConfig = field(default_factory=DisplayConfig)

    default_overs_per_innings: int = 20
    auto_result: bool = True  # Settle the winner when the chase ends
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        return cls(
            limits=DeliveryLimits(
                max_runs_off_bat=int(os.getenv("SCOREBOOK_MAX_RUNS_OFF_BAT", "10")),
                max_extras_runs=int(os.getenv("SCOREBOOK_MAX_EXTRAS_RUNS", "10")),
            ),
            display=DisplayConfig(
                recent_balls_limit=int(os.getenv("SCOREBOOK_RECENT_BALLS", "36")),
            ),
            default_overs_per_innings=int(
                os.getenv("SCOREBOOK_OVERS_PER_INNINGS", "20")
            ),
            auto_result=os.getenv("SCOREBOOK_AUTO_RESULT", "true").lower() != "false",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
