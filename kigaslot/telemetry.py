"""Fire-and-forget telemetry and sound notifications."""
import logging
from dataclasses import dataclass
from typing import Any, Protocol


logger = logging.getLogger(__name__)

# Sound cue names consumed by the presentation layer
SOUND_SPIN = "spin"
SOUND_MEDAL = "medal"
SOUND_LINE_WIN = "lineWin"
SOUND_BOMB = "bomb"
SOUND_RELIC = "relic"


class TelemetrySink(Protocol):
    """Protocol for telemetry sinks."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Emit a telemetry event."""
        ...


class LoggingTelemetrySink:
    """Default sink that logs telemetry events."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Log telemetry event."""
        logger.info("TELEMETRY %s: %s", event_name, data)


@dataclass
class SpinProcessedEvent:
    """spin_processed telemetry event."""

    spin_count: int
    spin_cost: int
    total_medals: int
    coin_medals: int
    formed_lines: int
    bombs: int
    enemy: str | None
    enemy_hp: int
    config_hash: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {
            "spin_count": self.spin_count,
            "spin_cost": self.spin_cost,
            "total_medals": self.total_medals,
            "coin_medals": self.coin_medals,
            "formed_lines": self.formed_lines,
            "bombs": self.bombs,
            "enemy": self.enemy,
            "enemy_hp": self.enemy_hp,
            "config_hash": self.config_hash,
        }


@dataclass
class SpinRejectedEvent:
    """spin_rejected telemetry event."""

    reason: str  # "GAME_OVER" | "INSUFFICIENT_MEDALS" | "EMPTY_DECK" | "PHASE_PENDING"
    medals: int
    spin_cost_due: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {
            "reason": self.reason,
            "medals": self.medals,
            "spin_cost_due": self.spin_cost_due,
        }


@dataclass
class EnemyDefeatedEvent:
    """enemy_defeated telemetry event."""

    enemy: str
    spin_count: int
    overkill: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {
            "enemy": self.enemy,
            "spin_count": self.spin_count,
            "overkill": self.overkill,
        }


class TelemetryService:
    """Service for emitting telemetry events and sound cues."""

    def __init__(self, sink: TelemetrySink | None = None):
        self._sink = sink or LoggingTelemetrySink()
        self._sink_errors = 0  # Counter for sink failures

    @property
    def sink_errors(self) -> int:
        return self._sink_errors

    def set_sink(self, sink: TelemetrySink) -> None:
        """Set the telemetry sink (useful for testing)."""
        self._sink = sink

    def _safe_emit(self, event_name: str, data: dict[str, Any]) -> None:
        """
        Emit event with exception safety.

        Sink failures MUST NOT break an in-progress spin.
        """
        try:
            self._sink.emit(event_name, data)
        except Exception as e:
            self._sink_errors += 1
            logger.warning(
                "Telemetry sink error (count=%d): %s - %s",
                self._sink_errors,
                event_name,
                str(e),
            )

    def notify(self, sound_name: str) -> None:
        """Emit a sound cue (spin, medal, lineWin, bomb)."""
        self._safe_emit("sound", {"name": sound_name})

    def emit_spin_processed(self, event: SpinProcessedEvent) -> None:
        """Emit spin_processed event."""
        self._safe_emit("spin_processed", event.to_dict())

    def emit_spin_rejected(self, event: SpinRejectedEvent) -> None:
        """Emit spin_rejected event."""
        self._safe_emit("spin_rejected", event.to_dict())

    def emit_enemy_defeated(self, event: EnemyDefeatedEvent) -> None:
        """Emit enemy_defeated event."""
        self._safe_emit("enemy_defeated", event.to_dict())


# Global instance
telemetry_service = TelemetryService()
