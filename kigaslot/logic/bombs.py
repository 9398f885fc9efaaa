"""Bomb explosion resolver."""
import logging

from kigaslot.config import settings
from kigaslot.logic.board import neighbors_of, position_of
from kigaslot.logic.models import Board, BombResult, BombTrigger, SymbolName


logger = logging.getLogger(__name__)


def explode_bombs(
    bombs: list[BombTrigger],
    board: Board,
    medals_per_symbol: int | None = None,
) -> BombResult:
    """
    Explode queued bombs in order on a copy of the board.

    A trigger whose cell is empty or holds a different symbol is stale and
    skipped, so re-queuing the same bomb never destroys twice. Each non-bomb
    neighbor is cleared for a flat medal yield, then the bomb cell itself.
    """
    if medals_per_symbol is None:
        medals_per_symbol = settings.bomb_medals_per_symbol

    working = list(board)
    gained = 0
    destroyed_total = 0
    messages: list[str] = []

    for bomb in bombs:
        current = working[bomb.index]
        if current is None or current.no != bomb.symbol.no:
            continue

        row, col = position_of(bomb.index)
        destroyed = 0
        for n in neighbors_of(working, bomb.index):
            if n.symbol is not None and n.symbol.name != SymbolName.BOMB:
                working[n.index] = None
                destroyed += 1
        working[bomb.index] = None

        medals = destroyed * medals_per_symbol
        gained += medals
        destroyed_total += destroyed
        message = f"Bomb@({row},{col}) explodes!"
        if destroyed:
            message += f" Destroyed {destroyed}, +{medals}."
        messages.append(message)

    if messages:
        logger.debug("Bombs: %s", " ".join(messages))
    return BombResult(
        gained_medals=gained,
        board=working,
        message=" ".join(messages),
        destroyed=destroyed_total,
    )
