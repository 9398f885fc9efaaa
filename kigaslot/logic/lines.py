"""
Line resolver.

Evaluates the 8 paylines of a (post-adjacency) board. Per line:

1. base medals from BM / RG symbols and the named base-value symbols
2. LB rules, once per distinct LB symbol on the line
3. line-level combos (3-of-a-kind bonuses, Cursed Mask purge, Dagger curse)
4. SS rules in on-line order, then relic line effects

Only lines with a positive total are recorded. Board and deck changes are
returned as directives on the LineResult; nothing here mutates its inputs.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Callable

from kigaslot.logic.board import PAYLINES, count_matching, neighbors_of
from kigaslot.logic.catalog import SymbolCatalog
from kigaslot.logic.effect_text import (
    apply_relic_bonus,
    parse_base_medal_value,
    parse_line_multiplier,
    parse_negative_medal_value,
)
from kigaslot.logic.models import (
    Attribute,
    Board,
    BoardPlacement,
    BombTrigger,
    Debuff,
    EffectSystem,
    ItemAward,
    LineResult,
    Rarity,
    Relic,
    RelicName,
    SymbolDef,
    SymbolName,
)
from kigaslot.logic.rng import RNGBase


logger = logging.getLogger(__name__)

NO_LINES_MESSAGE = "No lines/effects."

# Non-BM symbols whose own parsed value still counts toward the line base
BASE_VALUE_SYMBOLS = frozenset({
    SymbolName.BOMB.value,
    SymbolName.GEAR.value,
    SymbolName.LUCKY_CAT.value,
    SymbolName.HUNTER_WOLF.value,
    SymbolName.SUNBERRY.value,
    SymbolName.BLOODIED_DAGGER.value,
    SymbolName.CURSED_MASK.value,
    SymbolName.BAR.value,
})

WILD_ATTRIBUTE = Attribute.MYSTIC
CHAMELEON_LINE_BONUS = 1
SUNBERRY_PLANT_BONUS = 3
SQUIRREL_VALUES = (3, 4)
STARDUST_VALUES = (3, 5)

BELL_MULTIPLIER = 1.5
CHERRY_BONUS = {1: 3, 2: 8, 3: 20}
PURE_BAR_VALUE = 50
CLOVER_BONUS = 30
CLOVER_FRAGMENT_CHANCE = 0.15
FLAG_MEDALS_PER_ANIMAL = 3
LUCKY_CAT_JACKPOT_CHANCE = 0.15
LUCKY_CAT_JACKPOT = 25
LUCKY_CAT_COIN_CHANCE = 0.15
CHEST_OPEN_CHANCE = 0.3
CHEST_FRAGMENT_CHANCE = 0.5
CHEST_MEDALS = (10, 30)

CURSED_MASK_PURGE_MEDALS = 30
FISH_TRIO_BONUS = 10
NUT_TRIO_BONUS = 5
SHIELD_TRIO_COST_MODIFIER = 0.9

GEAR_MEDALS_PER_METAL = 2
HUNT_MULTIPLIER = 3
HUNT_MULTIPLIER_INSTINCT = 4
FLURRY_MEDALS_PER_WEAPON = 1
RICH_SOIL_BONUS = 3

RELIC_FRAGMENT = ItemAward(type="RelicFragment", name="Relic Fragment")
COIN_NAMES = (
    SymbolName.BRONZE_COIN.value,
    SymbolName.SILVER_COIN.value,
    SymbolName.GOLD_COIN.value,
)


def is_wild(symbol: SymbolDef) -> bool:
    return symbol.name == SymbolName.WILD


def resolve_line_attribute(symbols: list[SymbolDef | None]) -> Attribute | None:
    """
    Return the attribute a full line forms on, or None.

    Wilds take the attribute of the others; an all-wild line is Mystic.
    The result does not depend on the order of the symbols.
    """
    if len(symbols) != 3 or any(s is None for s in symbols):
        return None
    non_wild = [s.effective_attribute for s in symbols if not is_wild(s)]
    if not non_wild:
        return WILD_ATTRIBUTE
    if all(attribute == non_wild[0] for attribute in non_wild):
        return non_wild[0]
    return None


@dataclass
class SpinLines:
    """Directives accumulated across all lines of one board."""
    gained_medals: int = 0
    traces: list[str] = field(default_factory=list)
    formed_lines: list[list[int]] = field(default_factory=list)
    bombs: list[BombTrigger] = field(default_factory=list)
    items: list[ItemAward] = field(default_factory=list)
    placements: list[BoardPlacement] = field(default_factory=list)
    next_spin_cost_modifier: float | None = None
    removed: list[int] = field(default_factory=list)
    debuffs_prevented: bool = False
    deck_adds: list[SymbolDef] = field(default_factory=list)
    deck_removals: list[str] = field(default_factory=list)
    rg_medals: int = 0


@dataclass
class LineContext:
    """One payline under evaluation."""
    indices: tuple[int, int, int]
    symbols: list[SymbolDef]
    attribute: Attribute
    board: Board
    relics: list[Relic]
    deck: list[SymbolDef]
    catalog: SymbolCatalog
    debuffs: list[Debuff]
    rng: RNGBase
    spin: SpinLines
    total: int = 0
    base: int = 0
    parts: list[str] = field(default_factory=list)

    def count(self, name: SymbolName) -> int:
        return sum(1 for s in self.symbols if s.name == name)

    def is_pure(self, name: SymbolName) -> bool:
        return self.count(name) == len(self.symbols)

    def has_relic(self, name: RelicName) -> bool:
        return any(r.name == name for r in self.relics)

    def board_has(self, attribute: Attribute) -> bool:
        return count_matching(self.board, lambda s: s.effective_attribute == attribute) > 0

    def add(self, medals: int, note: str) -> None:
        self.total += medals
        self.parts.append(note)


LineRule = Callable[[LineContext, int, SymbolDef], None]

LB_RULES: dict[str, LineRule] = {}
SS_RULES: dict[str, LineRule] = {}


def line_rule(registry: dict[str, LineRule], name: SymbolName):
    def decorator(fn: LineRule) -> LineRule:
        registry[name.value] = fn
        return fn
    return decorator


# === Base medals ===


def symbol_base_value(ctx: LineContext, index: int, symbol: SymbolDef, sunberry_active: bool) -> int:
    """Medals one on-line symbol contributes to the line base."""
    if symbol.name == SymbolName.FOREST_SQUIRREL:
        gain = SQUIRREL_VALUES[ctx.board_has(Attribute.PLANT)]
    elif symbol.name == SymbolName.STARDUST:
        gain = STARDUST_VALUES[ctx.board_has(Attribute.MYSTIC)]
    elif symbol.name == SymbolName.CURSED_MASK:
        gain = parse_negative_medal_value(symbol.effect_text)
    else:
        gain = parse_base_medal_value(symbol.effect_text) + symbol.dynamic_bonus

    if (
        sunberry_active
        and symbol.effective_attribute == Attribute.PLANT
        and symbol.name != SymbolName.SUNBERRY
    ):
        gain += SUNBERRY_PLANT_BONUS
    return apply_relic_bonus(symbol, gain, ctx.relics, ctx.board, index)


def counts_toward_base(symbol: SymbolDef) -> bool:
    return (
        symbol.effect_system in (EffectSystem.BM, EffectSystem.RG)
        or symbol.name in BASE_VALUE_SYMBOLS
    )


# === LB rules ===


@line_rule(LB_RULES, SymbolName.BELL)
def _bell(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    if ctx.count(SymbolName.BELL) == 3 and ctx.base > 0:
        before = ctx.total
        ctx.total = math.floor(ctx.total * BELL_MULTIPLIER) + 1
        ctx.parts.append(f"[Bell x1.5+1: {before}->{ctx.total}]")


@line_rule(LB_RULES, SymbolName.CHERRY)
def _cherry(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    cherries = min(3, ctx.count(SymbolName.CHERRY))
    bonus = CHERRY_BONUS.get(cherries, 0)
    if bonus:
        ctx.add(bonus, f"[Cherry+{bonus}]")


@line_rule(LB_RULES, SymbolName.BAR)
def _bar(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    if ctx.is_pure(SymbolName.BAR):
        ctx.total = PURE_BAR_VALUE
        ctx.parts.append(f"[PureBAR->{PURE_BAR_VALUE}]")


@line_rule(LB_RULES, SymbolName.BUCKLER)
def _buckler(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    threatened = bool(ctx.debuffs) or any(
        s is not None and s.name in (SymbolName.CURSED_MASK, SymbolName.RUSTED_LUMP)
        for s in ctx.board
    )
    if threatened:
        ctx.spin.debuffs_prevented = True
        ctx.parts.append("[Buckler Protects!]")
    gain = parse_base_medal_value(symbol.effect_text)
    if gain:
        ctx.add(gain, f"Buckler(+{gain})")


@line_rule(LB_RULES, SymbolName.FOUR_LEAF_CLOVER)
def _four_leaf_clover(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    if ctx.count(SymbolName.FOUR_LEAF_CLOVER) != 3:
        return
    ctx.add(CLOVER_BONUS, f"[Clover+{CLOVER_BONUS}]")
    if ctx.rng.random() < CLOVER_FRAGMENT_CHANCE:
        ctx.spin.items.append(RELIC_FRAGMENT)
        ctx.parts.append("[Clover:Relic!]")


@line_rule(LB_RULES, SymbolName.BIG_CATCH_FLAG)
def _big_catch_flag(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    if ctx.count(SymbolName.BIG_CATCH_FLAG) != 3:
        return
    bonus = sum(1 for s in ctx.deck if s.attribute == Attribute.ANIMAL) * FLAG_MEDALS_PER_ANIMAL
    if bonus:
        ctx.add(bonus, f"[FlagBonus+{bonus}]")


@line_rule(LB_RULES, SymbolName.LUCKY_CAT)
def _lucky_cat(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    roll = ctx.rng.random()
    if roll < LUCKY_CAT_JACKPOT_CHANCE:
        ctx.add(LUCKY_CAT_JACKPOT, f"[LuckyCat:+{LUCKY_CAT_JACKPOT}!]")
    elif roll < LUCKY_CAT_JACKPOT_CHANCE + LUCKY_CAT_COIN_CHANCE:
        coins = [c for c in (ctx.catalog.find(name) for name in COIN_NAMES) if c is not None]
        if coins:
            coin = ctx.rng.choice(coins)
            ctx.spin.placements.append(BoardPlacement(index=index, symbol=coin))
            ctx.parts.append("[LuckyCat:CoinGen!]")


@line_rule(LB_RULES, SymbolName.TREASURE_CHEST)
def _treasure_chest(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    if ctx.rng.random() >= CHEST_OPEN_CHANCE:
        return
    if ctx.rng.random() < CHEST_FRAGMENT_CHANCE:
        ctx.spin.items.append(RELIC_FRAGMENT)
        ctx.parts.append("[Chest:Relic!]")
    else:
        medals = ctx.rng.randint(*CHEST_MEDALS)
        ctx.add(medals, f"[Chest:+{medals}!]")


# === SS rules ===


@line_rule(SS_RULES, SymbolName.WILD)
def _wild(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    factor = parse_line_multiplier(symbol.effect_text)
    if factor is not None and ctx.total > 0:
        ctx.total = int(ctx.total * factor)
        ctx.parts.append(f"[Wild x{factor:g}]")


@line_rule(SS_RULES, SymbolName.GEAR)
def _gear(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    metals = count_matching(ctx.board, lambda s: s.effective_attribute == Attribute.METAL)
    bonus = metals * GEAR_MEDALS_PER_METAL
    if ctx.has_relic(RelicName.AUTOMATION_GEAR):
        # Base was counted once already; doubling adds it again
        own = apply_relic_bonus(
            symbol, parse_base_medal_value(symbol.effect_text), ctx.relics, ctx.board, index
        )
        bonus = bonus * 2 + own
        ctx.parts.append("[AutoGear x2!]")
    if bonus:
        ctx.add(bonus, f"[GearBoard+{bonus}]")


@line_rule(SS_RULES, SymbolName.BOMB)
def _bomb(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    if all(b.index != index for b in ctx.spin.bombs):
        ctx.spin.bombs.append(BombTrigger(index=index, symbol=symbol.base()))


@line_rule(SS_RULES, SymbolName.HUNTER_WOLF)
def _hunter_wolf(ctx: LineContext, index: int, symbol: SymbolDef) -> None:
    prey_index = -1
    lowest: int | None = None
    for board_index, prey in enumerate(ctx.board):
        if (
            prey is None
            or prey.effective_attribute not in (Attribute.ANIMAL, Attribute.PLANT)
            or prey.name == SymbolName.HUNTER_WOLF
            or board_index in ctx.indices
            or board_index in ctx.spin.removed
        ):
            continue
        value = parse_base_medal_value(prey.effect_text)
        if lowest is None or value < lowest:
            lowest, prey_index = value, board_index
        elif value == lowest and ctx.rng.random() < 0.5:
            prey_index = board_index

    if prey_index == -1:
        return
    multiplier = HUNT_MULTIPLIER_INSTINCT if ctx.has_relic(RelicName.HUNTERS_INSTINCT) else HUNT_MULTIPLIER
    gain = (lowest or 0) * multiplier
    ctx.spin.removed.append(prey_index)
    ctx.add(gain, f"[WolfHunts({ctx.board[prey_index].short_name} x{multiplier}):+{gain}]")


# === Line evaluation ===


def _apply_line_combos(ctx: LineContext) -> None:
    if ctx.has_relic(RelicName.HORN_OF_PLENTY) and ctx.total > 0 and (
        ctx.is_pure(SymbolName.CHERRY) or ctx.is_pure(SymbolName.FOUR_LEAF_CLOVER)
    ):
        ctx.add(ctx.total, f"[Horn+{ctx.total}!]")

    if ctx.count(SymbolName.BLOODIED_DAGGER) and ctx.total > 0:
        mask = ctx.catalog.find(SymbolName.CURSED_MASK.value)
        if mask is not None:
            ctx.spin.deck_adds.append(mask)
            ctx.parts.append("[Dagger adds Curse!]")

    if ctx.is_pure(SymbolName.CURSED_MASK):
        if SymbolName.CURSED_MASK.value not in ctx.spin.deck_removals:
            ctx.spin.deck_removals.append(SymbolName.CURSED_MASK.value)
        ctx.spin.rg_medals += CURSED_MASK_PURGE_MEDALS
        ctx.parts.append(f"[3xCurseMasks Vanished!+{CURSED_MASK_PURGE_MEDALS}]")
        if ctx.has_relic(RelicName.FORBIDDEN_GRIMOIRE):
            rares = [
                s for s in ctx.catalog.filter(rarity=Rarity.RARE)
                if s.name != SymbolName.CURSED_MASK
            ]
            if rares:
                gift = ctx.rng.choice(rares)
                ctx.spin.deck_adds.append(gift)
                ctx.parts.append(f"[Grimoire adds {gift.short_name} to deck!]")

    if ctx.count(SymbolName.SMALL_FISH) == 3:
        ctx.add(FISH_TRIO_BONUS, f"[3xFish+{FISH_TRIO_BONUS}]")
    if ctx.count(SymbolName.NUT) == 3:
        ctx.add(NUT_TRIO_BONUS, f"[3xNut+{NUT_TRIO_BONUS}]")
    if ctx.count(SymbolName.WOODEN_SHIELD) == 3:
        ctx.spin.next_spin_cost_modifier = SHIELD_TRIO_COST_MODIFIER
        ctx.parts.append("[Shield:CostRedux!]")


def _apply_relic_line_effects(ctx: LineContext) -> None:
    if ctx.attribute == Attribute.WEAPON and ctx.has_relic(RelicName.GAUNTLET_OF_FLURRY):
        weapons = sum(1 for s in ctx.symbols if s.effective_attribute == Attribute.WEAPON)
        if weapons:
            bonus = weapons * FLURRY_MEDALS_PER_WEAPON
            ctx.add(bonus, f"[Flurry+{bonus}]")

    for index, symbol in zip(ctx.indices, ctx.symbols):
        if symbol.effective_attribute != Attribute.PLANT:
            continue
        if any(
            n.symbol is not None and n.symbol.name == SymbolName.RICH_SOIL
            for n in neighbors_of(ctx.board, index)
        ):
            ctx.add(RICH_SOIL_BONUS, f"[SoilBoost+{RICH_SOIL_BONUS}]")
            break


def _evaluate_line(ctx: LineContext, sunberry_active: bool) -> None:
    chameleon_active = False
    for index, symbol in zip(ctx.indices, ctx.symbols):
        if is_wild(symbol):
            ctx.parts.append("Wild")
        elif (
            symbol.name == SymbolName.CHAMELEON_SCALE
            and symbol.dynamic_attribute == ctx.attribute
        ):
            chameleon_active = True
            ctx.parts.append(f"Chameleon({ctx.attribute.value})")
        elif counts_toward_base(symbol):
            gain = symbol_base_value(ctx, index, symbol, sunberry_active)
            if gain or parse_base_medal_value(symbol.effect_text):
                ctx.add(gain, f"{symbol.short_name}({gain:+d})")

    # Bell needs a positive symbol base; Chameleon pays once per line
    ctx.base = ctx.total
    if chameleon_active:
        ctx.add(CHAMELEON_LINE_BONUS, f"[Chameleon+{CHAMELEON_LINE_BONUS}]")

    seen: set[str] = set()
    for index, symbol in zip(ctx.indices, ctx.symbols):
        if symbol.effect_system != EffectSystem.LB or symbol.name in seen:
            continue
        seen.add(symbol.name)
        rule = LB_RULES.get(symbol.name)
        if rule is not None:
            rule(ctx, index, symbol)

    _apply_line_combos(ctx)

    for index, symbol in zip(ctx.indices, ctx.symbols):
        if symbol.effect_system != EffectSystem.SS:
            continue
        rule = SS_RULES.get(symbol.name)
        if rule is not None:
            rule(ctx, index, symbol)

    _apply_relic_line_effects(ctx)


def _sunberry_on_formed_line(board: Board) -> bool:
    for indices in PAYLINES:
        symbols = [board[i] for i in indices]
        if resolve_line_attribute(symbols) is not None and any(
            s.name == SymbolName.SUNBERRY for s in symbols
        ):
            return True
    return False


def check_lines(
    board: Board,
    relics: list[Relic],
    deck: list[SymbolDef],
    catalog: SymbolCatalog,
    debuffs: list[Debuff],
    rng: RNGBase,
) -> LineResult:
    """
    Resolve every payline on the board.

    Args:
        board: Board after adjacency mutations
        relics: Acquired relics
        deck: Current deck (read only)
        catalog: Symbol catalog for generated symbols
        debuffs: Debuffs active this spin
        rng: Random source for chance-based line bonuses

    Returns:
        LineResult with medals, formed lines and all directives
    """
    spin = SpinLines()
    sunberry_active = _sunberry_on_formed_line(board)

    for indices in PAYLINES:
        symbols = [board[i] for i in indices]
        attribute = resolve_line_attribute(symbols)
        if attribute is None:
            continue

        wilds = sum(1 for s in symbols if is_wild(s))
        ctx = LineContext(
            indices=indices,
            symbols=symbols,
            attribute=attribute,
            board=board,
            relics=relics,
            deck=deck,
            catalog=catalog,
            debuffs=debuffs,
            rng=rng,
            spin=spin,
        )
        _evaluate_line(ctx, sunberry_active)

        if ctx.total > 0:
            spin.gained_medals += ctx.total
            spin.formed_lines.append(list(indices))
            trace = " ".join(ctx.parts)
            spin.traces.append(f"{attribute.value} Line (W:{wilds}): {trace} -> +{ctx.total}")

    result = LineResult(
        gained_medals=spin.gained_medals,
        message=" | ".join(spin.traces) or NO_LINES_MESSAGE,
        formed_lines=spin.formed_lines,
        bombs_to_explode=spin.bombs,
        items_awarded=spin.items,
        new_symbols_on_board=spin.placements,
        next_spin_cost_modifier=spin.next_spin_cost_modifier,
        symbols_to_remove_from_board=spin.removed,
        debuffs_prevented=spin.debuffs_prevented,
        symbols_to_add_to_deck=spin.deck_adds,
        symbols_to_remove_from_deck=spin.deck_removals,
        additional_medals_from_rg=spin.rg_medals,
    )
    logger.debug("Lines: %s (+%d)", result.message, result.gained_medals)
    return result
