"""Enemy debuffs and board tricks, keyed by enemy name."""
import logging
from typing import Callable, NamedTuple

from kigaslot.config import settings
from kigaslot.logic.board import BOARD_SIZE
from kigaslot.logic.catalog import SymbolCatalog
from kigaslot.logic.models import Board, Debuff, Enemy, EnemyName, SymbolName
from kigaslot.logic.rng import RNGBase


logger = logging.getLogger(__name__)


class DebuffApplication(NamedTuple):
    """What an enemy inflicts at the start of a spin."""
    messages: list[str]
    debuffs: list[Debuff]


class TrickOutcome(NamedTuple):
    board: Board
    message: str | None
    index: int = -1


DebuffApplier = Callable[[], DebuffApplication]
EnemyTrick = Callable[[Board, SymbolCatalog, RNGBase, int], TrickOutcome]


# enemy name -> debuff template applied each spin while the enemy is present
ENEMY_DEBUFF_TEMPLATES: dict[str, Debuff] = {
    EnemyName.SLOT_GOBLIN.value: Debuff(type="SlotGoblinTransformationDebuff", duration=1),
}


def build_debuff(enemy: Enemy) -> Debuff | None:
    """Fresh debuff instance for the enemy, or None if it has none."""
    template = ENEMY_DEBUFF_TEMPLATES.get(enemy.name)
    if template is None:
        return None
    return template.model_copy(update={"origin_enemy": enemy.name})


def debuff_type_for(enemy: Enemy) -> str | None:
    template = ENEMY_DEBUFF_TEMPLATES.get(enemy.name)
    return template.type if template is not None else None


def default_debuff_applier(enemy: Enemy) -> DebuffApplier:
    """Applier that inflicts the enemy's template debuff once per call."""
    def apply() -> DebuffApplication:
        debuff = build_debuff(enemy)
        if debuff is None:
            return DebuffApplication(messages=[], debuffs=[])
        message = f"{enemy.name} casts {debuff.type} ({debuff.duration} turn)"
        return DebuffApplication(messages=[message], debuffs=[debuff])
    return apply


def _goblin_curse(
    board: Board, catalog: SymbolCatalog, rng: RNGBase, attempts: int
) -> TrickOutcome:
    """Turn one random occupied cell into a Cursed Mask."""
    mask = catalog.find(SymbolName.CURSED_MASK.value)
    if mask is None or all(s is None for s in board):
        return TrickOutcome(board=board, message=None)

    for _ in range(attempts):
        index = rng.randint(0, BOARD_SIZE - 1)
        victim = board[index]
        if victim is None:
            continue
        cursed = list(board)
        cursed[index] = mask
        return TrickOutcome(
            board=cursed,
            message=f"Goblin changed {victim.short_name} to Cursed Mask!",
            index=index,
        )

    logger.debug("Goblin trick found no occupied cell in %d attempts", attempts)
    return TrickOutcome(board=board, message=None)


# enemy name -> board corruption applied before lines are checked
ENEMY_TRICKS: dict[str, EnemyTrick] = {
    EnemyName.SLOT_GOBLIN.value: _goblin_curse,
}


def play_enemy_trick(
    enemy: Enemy,
    board: Board,
    catalog: SymbolCatalog,
    rng: RNGBase,
    attempts: int | None = None,
) -> TrickOutcome:
    trick = ENEMY_TRICKS.get(enemy.name)
    if trick is None:
        return TrickOutcome(board=board, message=None)
    if attempts is None:
        attempts = settings.enemy_trick_attempts
    return trick(board, catalog, rng, attempts)
