"""
Adjacency-bonus resolver.

Each AB symbol name maps to one rule in AB_RULES. Rules run in three passes
over indices 0..8:

- MUTATE: property directives (attribute / bonus) that later passes see
- MEDALS: flat medal yields and rare-chance changes
- SPIN_TOTAL: flat bonus and multiplier applied to the whole spin total

Rules never touch the caller's board. They write into an accumulator and the
resolver returns the directives as an AdjacencyResult.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, NamedTuple

from kigaslot.config import settings
from kigaslot.logic.board import neighbors_of, position_of
from kigaslot.logic.effect_text import parse_base_medal_value
from kigaslot.logic.models import (
    AdjacencyResult,
    Attribute,
    Board,
    BoardMutation,
    EffectSystem,
    PersistRequest,
    Rarity,
    Relic,
    RelicName,
    SymbolDef,
    SymbolName,
)


logger = logging.getLogger(__name__)

LODESTONE_MEDALS_PER_METAL = 3
HONEYBEE_MEDALS_PER_PLANT = 5
HONEYBEE_PERSIST_THRESHOLD = 2
HONEYBEE_PERSIST_DURATION = 1
RESONANCE_VALUES = {Rarity.COMMON: 2, Rarity.UNCOMMON: 4, Rarity.RARE: 7}
MAGIC_CIRCLE_RARE_PER_MYSTIC = 1
CHAIN_LINK_MAX_LINKS = 3
CHAIN_LINK_MEDALS_PER_LINK = 2
VINE_RATE_PER_PLANT = 2
VINE_RATE_CAP = 10


class AbPass(str, Enum):
    MUTATE = "mutate"
    MEDALS = "medals"
    SPIN_TOTAL = "spin_total"


PASS_ORDER = (AbPass.MUTATE, AbPass.MEDALS, AbPass.SPIN_TOTAL)


@dataclass
class AbContext:
    """Working state shared by all rules during one resolution."""
    board: Board
    relics: list[Relic]
    gained_medals: int = 0
    messages: list[str] = field(default_factory=list)
    rare_modifier: int = 0
    mutations: list[BoardMutation] = field(default_factory=list)
    persist: list[PersistRequest] = field(default_factory=list)
    flat_bonus: int = 0
    multiplier_rate: int = 0
    chained: set[int] = field(default_factory=set)

    def has_relic(self, name: RelicName) -> bool:
        return any(r.name == name for r in self.relics)

    def mutate(self, index: int, **changes) -> None:
        """Record a directive and update the working copy for later passes."""
        symbol = self.board[index]
        if symbol is None:
            return
        self.board[index] = symbol.model_copy(update=changes)
        self.mutations.append(BoardMutation(index=index, **changes))


class AdjacencyRule(NamedTuple):
    phase: AbPass
    apply: Callable[[AbContext, int, SymbolDef], None]


AB_RULES: dict[str, AdjacencyRule] = {}


def ab_rule(name: SymbolName, phase: AbPass):
    """Register an adjacency rule for a symbol name."""
    def decorator(fn: Callable[[AbContext, int, SymbolDef], None]):
        AB_RULES[name.value] = AdjacencyRule(phase, fn)
        return fn
    return decorator


def _where(index: int) -> str:
    row, col = position_of(index)
    return f"({row},{col})"


def _count_neighbors(board: Board, index: int, attribute: Attribute) -> int:
    return sum(
        1 for n in neighbors_of(board, index)
        if n.symbol is not None and n.symbol.effective_attribute == attribute
    )


# === MUTATE ===


@ab_rule(SymbolName.CHAMELEON_SCALE, AbPass.MUTATE)
def _chameleon_scale(ctx: AbContext, index: int, symbol: SymbolDef) -> None:
    counts = Counter(
        n.symbol.effective_attribute
        for n in neighbors_of(ctx.board, index)
        if n.symbol is not None
    )
    if not counts:
        return
    # most_common keeps first-seen order among ties
    attribute = counts.most_common(1)[0][0]
    ctx.mutate(index, dynamic_attribute=attribute)
    ctx.messages.append(f"{symbol.short_name}{_where(index)}: becomes {attribute.value}")


@ab_rule(SymbolName.WHETSTONE, AbPass.MUTATE)
def _whetstone(ctx: AbContext, index: int, symbol: SymbolDef) -> None:
    bonus = parse_base_medal_value(symbol.effect_text)
    if bonus <= 0:
        return
    sharpened = 0
    for n in neighbors_of(ctx.board, index):
        if n.symbol is not None and n.symbol.effective_attribute == Attribute.WEAPON:
            ctx.mutate(n.index, dynamic_bonus=n.symbol.dynamic_bonus + bonus)
            sharpened += 1
    if sharpened:
        ctx.messages.append(f"{symbol.short_name}{_where(index)}: {sharpened} Weapon +{bonus}")


# === MEDALS ===


@ab_rule(SymbolName.LODESTONE, AbPass.MEDALS)
def _lodestone(ctx: AbContext, index: int, symbol: SymbolDef) -> None:
    metals = _count_neighbors(ctx.board, index, Attribute.METAL)
    if metals:
        gain = metals * LODESTONE_MEDALS_PER_METAL
        ctx.gained_medals += gain
        ctx.messages.append(f"{symbol.short_name}{_where(index)}: +{gain} ({metals} Metal)")


@ab_rule(SymbolName.HONEYBEE, AbPass.MEDALS)
def _honeybee(ctx: AbContext, index: int, symbol: SymbolDef) -> None:
    plants = _count_neighbors(ctx.board, index, Attribute.PLANT)
    if not plants:
        return
    gain = plants * HONEYBEE_MEDALS_PER_PLANT
    ctx.gained_medals += gain
    message = f"{symbol.short_name}{_where(index)}: +{gain} ({plants} Plant)"
    if plants >= HONEYBEE_PERSIST_THRESHOLD:
        ctx.persist.append(
            PersistRequest(index=index, symbol=symbol.base(), duration=HONEYBEE_PERSIST_DURATION)
        )
        message += ", stays"
    ctx.messages.append(message)


@ab_rule(SymbolName.ARMORY_KEY, AbPass.MEDALS)
def _armory_key(ctx: AbContext, index: int, symbol: SymbolDef) -> None:
    if _count_neighbors(ctx.board, index, Attribute.WEAPON):
        gain = parse_base_medal_value(symbol.effect_text)
        if gain:
            ctx.gained_medals += gain
            ctx.messages.append(f"{symbol.short_name}{_where(index)}: +{gain}")


@ab_rule(SymbolName.RESONANCE_CRYSTAL, AbPass.MEDALS)
def _resonance_crystal(ctx: AbContext, index: int, symbol: SymbolDef) -> None:
    partners = sum(
        1 for n in neighbors_of(ctx.board, index)
        if n.symbol is not None and n.symbol.name == symbol.name
    )
    if partners:
        gain = partners * RESONANCE_VALUES[symbol.rarity]
        ctx.gained_medals += gain
        ctx.messages.append(f"{symbol.short_name}{_where(index)}: resonance +{gain}")


@ab_rule(SymbolName.MAGIC_CIRCLE_FRAGMENT, AbPass.MEDALS)
def _magic_circle_fragment(ctx: AbContext, index: int, symbol: SymbolDef) -> None:
    gain = parse_base_medal_value(symbol.effect_text)
    mystics = _count_neighbors(ctx.board, index, Attribute.MYSTIC)
    ctx.gained_medals += gain
    ctx.rare_modifier += mystics * MAGIC_CIRCLE_RARE_PER_MYSTIC
    message = f"{symbol.short_name}{_where(index)}: +{gain}"
    if mystics:
        message += f", rare +{mystics * MAGIC_CIRCLE_RARE_PER_MYSTIC}%"
    ctx.messages.append(message)


# === SPIN_TOTAL ===


@ab_rule(SymbolName.CHAIN_LINK, AbPass.SPIN_TOTAL)
def _chain_link(ctx: AbContext, index: int, symbol: SymbolDef) -> None:
    if index in ctx.chained:
        return

    group: list[int] = []
    frontier = [index]
    ctx.chained.add(index)
    while frontier:
        current = frontier.pop()
        group.append(current)
        for n in neighbors_of(ctx.board, current):
            if n.symbol is not None and n.symbol.name == symbol.name and n.index not in ctx.chained:
                ctx.chained.add(n.index)
                frontier.append(n.index)

    links = sum(
        min(
            CHAIN_LINK_MAX_LINKS,
            sum(1 for n in neighbors_of(ctx.board, member)
                if n.symbol is not None and n.symbol.name == symbol.name),
        )
        for member in group
    )
    bonus = links * CHAIN_LINK_MEDALS_PER_LINK
    if bonus <= 0:
        return
    if ctx.has_relic(RelicName.AUTOMATION_GEAR):
        bonus *= 2
    ctx.flat_bonus += bonus
    ctx.messages.append(f"{symbol.short_name} x{len(group)}: spin total +{bonus}")


@ab_rule(SymbolName.ENTANGLING_VINE, AbPass.SPIN_TOTAL)
def _entangling_vine(ctx: AbContext, index: int, symbol: SymbolDef) -> None:
    plants = _count_neighbors(ctx.board, index, Attribute.PLANT)
    if plants:
        rate = plants * VINE_RATE_PER_PLANT
        ctx.multiplier_rate += rate
        ctx.messages.append(f"{symbol.short_name}{_where(index)}: spin total +{rate}%")


def resolve_adjacency(
    board: Board, relics: list[Relic], rare_cap: int | None = None
) -> AdjacencyResult:
    """
    Evaluate every AB symbol on the board.

    The board is copied; the returned mutation directives must be applied by
    the caller (see apply_mutations). The rare-chance modifier is clamped to
    rare_cap, which defaults to settings.rare_bonus_cap.
    """
    if rare_cap is None:
        rare_cap = settings.rare_bonus_cap
    ctx = AbContext(board=list(board), relics=list(relics))

    for phase in PASS_ORDER:
        for index in range(len(ctx.board)):
            symbol = ctx.board[index]
            if symbol is None or symbol.effect_system != EffectSystem.AB:
                continue
            rule = AB_RULES.get(symbol.name)
            if rule is None or rule.phase != phase:
                continue
            rule.apply(ctx, index, symbol)

    multiplier = 1.0
    if ctx.multiplier_rate:
        multiplier = 1 + min(VINE_RATE_CAP, ctx.multiplier_rate) / 100

    result = AdjacencyResult(
        gained_medals=ctx.gained_medals,
        message=" | ".join(ctx.messages),
        rare_symbol_modifier=min(rare_cap, ctx.rare_modifier),
        board_mutations=ctx.mutations,
        symbols_to_persist=ctx.persist,
        total_spin_flat_bonus=ctx.flat_bonus,
        total_spin_multiplier=multiplier,
    )
    if result.message:
        logger.debug("Adjacency: %s", result.message)
    return result


def apply_mutations(board: Board, mutations: list[BoardMutation]) -> Board:
    """Return a copy of board with the mutation directives applied in order."""
    working = list(board)
    for mutation in mutations:
        symbol = working[mutation.index]
        if symbol is None:
            continue
        working[mutation.index] = symbol.model_copy(update=mutation.changes())
    return working
