"""Pytest fixtures for engine tests."""
from collections import deque
from typing import Any, Callable

import pytest

from kigaslot.logic.catalog import SymbolCatalog, default_catalog
from kigaslot.logic.models import Board, GameState, SymbolDef
from kigaslot.logic.rng import RNGBase
from kigaslot.telemetry import TelemetryService


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (long simulations)"
    )


class ScriptedRNG(RNGBase):
    """
    RNG that replays fixed sequences.

    Once a queue is exhausted, random() returns float_default and
    randint(a, b) returns a (or int_default clamped into [a, b]).
    """

    def __init__(
        self,
        floats: list[float] | None = None,
        ints: list[int] | None = None,
        float_default: float = 0.99,
        int_default: int | None = None,
    ):
        self.floats = deque(floats or [])
        self.ints = deque(ints or [])
        self.float_default = float_default
        self.int_default = int_default
        self.float_calls = 0
        self.int_calls: list[tuple[int, int]] = []

    def random(self) -> float:
        self.float_calls += 1
        if self.floats:
            return self.floats.popleft()
        return self.float_default

    def randint(self, a: int, b: int) -> int:
        self.int_calls.append((a, b))
        if self.ints:
            return self.ints.popleft()
        if self.int_default is None:
            return a
        return max(a, min(b, self.int_default))


class RecordingTelemetrySink:
    """Telemetry sink that records every event in order."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        self.events.append((event_name, data))

    def get_events(self, event_name: str) -> list[dict[str, Any]]:
        return [data for name, data in self.events if name == event_name]

    def sounds(self) -> list[str]:
        return [data["name"] for data in self.get_events("sound")]


class BrokenTelemetrySink:
    """Sink that always raises."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        raise RuntimeError("sink down")


@pytest.fixture
def catalog() -> SymbolCatalog:
    """Built-in symbol catalog."""
    return default_catalog()


@pytest.fixture
def sym(catalog: SymbolCatalog) -> Callable[[str], SymbolDef]:
    """Look up a catalog symbol by name."""
    return catalog.symbol


@pytest.fixture
def board_of(catalog: SymbolCatalog) -> Callable[..., Board]:
    """Build a 9-cell board from {index: symbol name}."""
    def build(cells: dict[int, str]) -> Board:
        board: Board = [None] * 9
        for index, name in cells.items():
            board[index] = catalog.symbol(name)
        return board
    return build


@pytest.fixture
def recording_sink() -> RecordingTelemetrySink:
    return RecordingTelemetrySink()


@pytest.fixture
def recording_telemetry(recording_sink: RecordingTelemetrySink) -> TelemetryService:
    """TelemetryService wired to a recording sink."""
    return TelemetryService(recording_sink)


@pytest.fixture
def make_state(catalog: SymbolCatalog) -> Callable[..., GameState]:
    """
    Build a GameState.

    deck is a list of symbol names; other keyword arguments are GameState
    fields.
    """
    def build(deck: list[str] | None = None, **fields: Any) -> GameState:
        names = deck if deck is not None else ["Bronze Coin"]
        values = {
            "medals": 100,
            "spin_cost": 10,
            "deck": [catalog.symbol(name) for name in names],
            "next_cost_increase_in": 5,
            "next_enemy_in": 10,
        }
        values.update(fields)
        return GameState(**values)
    return build
