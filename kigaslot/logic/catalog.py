"""Read-only content catalogs: symbols, relics and enemies.

The built-in tables below are the default content. A JSON file with the
same shape ({"symbols": [...], "relics": [...], "enemies": [...]}) can be
loaded instead via load_catalog().
"""
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from kigaslot.errors import ErrorCode, GameError
from kigaslot.logic.models import (
    Attribute,
    EffectSystem,
    Enemy,
    EnemyName,
    Rarity,
    Relic,
    RelicName,
    SymbolDef,
    SymbolName,
)


M, P, A, W, Y = (
    Attribute.METAL,
    Attribute.PLANT,
    Attribute.ANIMAL,
    Attribute.WEAPON,
    Attribute.MYSTIC,
)
C, U, R = Rarity.COMMON, Rarity.UNCOMMON, Rarity.RARE
BM, LB, AB, SS, RG = (
    EffectSystem.BM,
    EffectSystem.LB,
    EffectSystem.AB,
    EffectSystem.SS,
    EffectSystem.RG,
)

# (no, name, attribute, rarity, effect system, effect text)
_SYMBOL_ROWS: list[tuple[int, SymbolName, Attribute, Rarity, EffectSystem, str]] = [
    (1, SymbolName.BRONZE_COIN, M, C, BM, "Gain +2 medals per instance of this symbol."),
    (2, SymbolName.SILVER_COIN, M, U, BM, "Gain +4 medals per instance of this symbol."),
    (3, SymbolName.GOLD_COIN, M, R, BM, "Gain +6 medals per instance of this symbol."),
    (4, SymbolName.LODESTONE, M, U, AB, "Gains 3 medals for each adjacent Metal symbol."),
    (5, SymbolName.GEAR, M, U, SS,
     "On line formation, medals +2. Adds 2 medals for each Metal symbol on the board."),
    (6, SymbolName.CHAIN_LINK, M, U, AB,
     "Connected Chain Links add 2 to the spin total per linked neighbor (up to 3 each)."),
    (7, SymbolName.BOMB, M, R, SS,
     "On line formation, medals +3. Then explodes, destroying adjacent symbols for 6 medals each."),
    (8, SymbolName.RUSTED_LUMP, M, C, RG, "Medals +1. Slowly rusts in the deck."),
    (9, SymbolName.WHETSTONE, M, C, AB, "Adjacent Weapon symbols increase own medal gain by +2."),
    (10, SymbolName.BELL, M, U, LB, "Three Bells on one line: line medals x1.5, then one more."),
    (11, SymbolName.BAR, M, U, LB, "Medals +5. A line made only of BAR pays exactly 50."),
    (12, SymbolName.TREASURE_CHEST, M, R, LB,
     "On line formation, 30% chance to open: a relic fragment or 10 to 30 medals."),
    (13, SymbolName.HERB, P, C, BM, "Gain +2 medals per instance of this symbol."),
    (14, SymbolName.NUT, P, C, BM,
     "Gain +1 medals per instance of this symbol. Three on one line pay 5 more."),
    (15, SymbolName.CHERRY, P, C, LB, "Line bonus by Cherry count: one 3, two 8, three 20."),
    (16, SymbolName.FOUR_LEAF_CLOVER, P, R, LB,
     "Three on one line pay 30 more, with a 15% chance of a relic fragment."),
    (17, SymbolName.ENTANGLING_VINE, P, U, AB,
     "Each adjacent Plant raises the spin total by 2% (up to 10%)."),
    (18, SymbolName.SUNBERRY, P, U, SS,
     "On line formation, medals +3. Plants on formed lines earn 3 more while it forms a line."),
    (19, SymbolName.RICH_SOIL, P, C, BM,
     "Gain +1 medals per instance of this symbol. Adjacent Plants on a line add 3 to it."),
    (20, SymbolName.FOREST_SQUIRREL, A, C, BM,
     "Gain +3 medals per instance of this symbol. Earns 4 instead when a Plant is on the board."),
    (21, SymbolName.SMALL_FISH, A, C, BM,
     "Gain +2 medals per instance of this symbol. Three on one line pay 10 more."),
    (22, SymbolName.HONEYBEE, A, U, AB,
     "Gains 5 medals per adjacent Plant. With two or more it stays for another spin."),
    (23, SymbolName.CHAMELEON_SCALE, A, R, AB,
     "Takes on the most common attribute among its neighbors."),
    (24, SymbolName.BIG_CATCH_FLAG, A, U, LB,
     "Three on one line pay 3 for each Animal symbol in the deck."),
    (25, SymbolName.LUCKY_CAT, A, R, LB,
     "On line formation, medals +4. Sometimes beckons 25 medals or a coin."),
    (26, SymbolName.HUNTER_WOLF, A, R, SS,
     "On line formation, medals +3. Hunts the weakest Animal or Plant off the line for triple its value."),
    (27, SymbolName.SHORT_SWORD, W, C, BM, "Gain +3 medals per instance of this symbol."),
    (28, SymbolName.WOODEN_SHIELD, W, C, BM,
     "Gain +1 medals per instance of this symbol. Three on one line cut the next spin cost by 10%."),
    (29, SymbolName.BUCKLER, W, U, LB,
     "On line formation, medals +2. Blocks enemy tricks while curses or debuffs are present."),
    (30, SymbolName.ARMORY_KEY, W, U, AB, "When adjacent to a Weapon symbol (+5 medals)."),
    (31, SymbolName.BLOODIED_DAGGER, W, R, SS,
     "On line formation, medals +8. A paying line adds a Cursed Mask to the deck."),
    (32, SymbolName.STARDUST, Y, C, BM,
     "Gain +3 medals per instance of this symbol. Earns 5 instead when a Mystic is on the board."),
    (33, SymbolName.RESONANCE_CRYSTAL, Y, U, AB,
     "Resonates with adjacent Resonance Crystals: Common 2, Uncommon 4, Rare 7 each."),
    (34, SymbolName.MAGIC_CIRCLE_FRAGMENT, Y, U, AB,
     "Always (+2 medals). Each adjacent Mystic raises the rare chance by 1%."),
    (44, SymbolName.WILD, Y, R, SS, "Substitutes for any attribute. Line medals x2."),
    (45, SymbolName.CURSED_MASK, Y, C, RG,
     "Medals -2. Three Cursed Masks on one line vanish from the deck and pay 30."),
]

DEFAULT_SYMBOLS: list[SymbolDef] = [
    SymbolDef(
        no=no,
        name=name.value,
        attribute=attribute,
        rarity=rarity,
        effect_system=system,
        effect_text=text,
    )
    for no, name, attribute, rarity, system, text in _SYMBOL_ROWS
]

DEFAULT_RELICS: list[Relic] = [
    Relic(no=1, name=RelicName.ANVIL_OF_THE_FORGE_GOD.value, target_attribute=M,
          effect_text="All Metal symbols permanently earn 2 more base medals."),
    Relic(no=2, name=RelicName.MAGNETIC_CORE.value, target_attribute=M,
          effect_text="At spin start, sometimes places a random coin in an empty cell."),
    Relic(no=3, name=RelicName.AUTOMATION_GEAR.value, target_attribute=M,
          effect_text="Doubles the effect of Gear on a line and of Chain Link groups."),
    Relic(no=4, name=RelicName.DROPLET_OF_THE_LIFE_SPRING.value, target_attribute=P,
          effect_text="All Plant symbols permanently earn 2 more base medals."),
    Relic(no=5, name=RelicName.SYMBIOTIC_MYCELIUM.value, target_attribute=P,
          effect_text="Plants next to Animals, and Animals next to Plants, earn 3 more."),
    Relic(no=6, name=RelicName.HORN_OF_PLENTY.value, target_attribute=P,
          effect_text="Lines of three Cherries or three Clovers pay double."),
    Relic(no=7, name=RelicName.CREST_OF_THE_BEAST_KING.value, target_attribute=A,
          effect_text="All Animal symbols permanently earn 2 more base medals."),
    Relic(no=8, name=RelicName.HUNTERS_INSTINCT.value, target_attribute=A,
          effect_text="Hunter Wolf hunts for four times the value instead of three."),
    Relic(no=9, name=RelicName.PACK_UNITY.value, target_attribute=A,
          effect_text="Three or more Animals on the final board cut the next spin cost by 5% (up to 20%)."),
    Relic(no=10, name=RelicName.SHEATH_OF_THE_SWORDMASTER.value, target_attribute=W,
          effect_text="All Weapon symbols permanently earn 2 more base medals."),
    Relic(no=11, name=RelicName.GAUNTLET_OF_FLURRY.value, target_attribute=W,
          effect_text="Weapon lines pay 1 more per Weapon symbol on them."),
    Relic(no=13, name=RelicName.CRYSTAL_BALL_OF_STARGAZING.value, target_attribute=Y,
          effect_text="All Mystic symbols permanently earn 2 more base medals."),
    Relic(no=14, name=RelicName.FORBIDDEN_GRIMOIRE.value, target_attribute=Y,
          effect_text="When three Cursed Masks vanish, add a random Rare symbol to the deck."),
    Relic(no=15, name=RelicName.WILD_GEM.value, target_attribute=Y,
          effect_text="At spin start, if the deck holds a Wild, rarely pins a Wild to an empty cell."),
]

DEFAULT_ENEMIES: list[Enemy] = [
    Enemy(
        no=1,
        name=EnemyName.SLOT_GOBLIN.value,
        hp_multiplier=0.8,
        debuff_effect_text="At spin start, one random symbol turns into a Cursed Mask (1 turn).",
    ),
]

STARTER_DECK_NAMES: list[SymbolName] = [
    SymbolName.BRONZE_COIN, SymbolName.BRONZE_COIN, SymbolName.BRONZE_COIN,
    SymbolName.HERB, SymbolName.HERB, SymbolName.HERB,
    SymbolName.FOREST_SQUIRREL, SymbolName.FOREST_SQUIRREL, SymbolName.FOREST_SQUIRREL,
    SymbolName.SHORT_SWORD, SymbolName.SHORT_SWORD,
    SymbolName.STARDUST, SymbolName.STARDUST,
]


class CatalogFile(BaseModel):
    """On-disk catalog shape."""
    symbols: list[SymbolDef]
    relics: list[Relic] = []
    enemies: list[Enemy] = []


class SymbolCatalog:
    """Read-only lookup over symbol, relic and enemy definitions."""

    def __init__(
        self,
        symbols: list[SymbolDef],
        relics: list[Relic] | None = None,
        enemies: list[Enemy] | None = None,
    ):
        self._symbols = tuple(symbols)
        self._relics = tuple(relics or ())
        self._enemies = tuple(enemies or ())
        self._by_name = {s.name: s for s in self._symbols}

    @property
    def symbols(self) -> tuple[SymbolDef, ...]:
        return self._symbols

    @property
    def relics(self) -> tuple[Relic, ...]:
        return self._relics

    @property
    def enemies(self) -> tuple[Enemy, ...]:
        return self._enemies

    def find(self, name: str) -> SymbolDef | None:
        return self._by_name.get(name)

    def symbol(self, name: str) -> SymbolDef:
        """Look up a symbol by name, raising UNKNOWN_SYMBOL if absent."""
        found = self._by_name.get(name)
        if found is None:
            raise GameError(ErrorCode.UNKNOWN_SYMBOL, f"Symbol {name!r} is not in the catalog.")
        return found

    def relic(self, name: str) -> Relic:
        for relic in self._relics:
            if relic.name == name:
                return relic
        raise GameError(ErrorCode.UNKNOWN_RELIC, f"Relic {name!r} is not in the catalog.")

    def enemy(self, name: str) -> Enemy:
        for enemy in self._enemies:
            if enemy.name == name:
                return enemy
        raise GameError(ErrorCode.UNKNOWN_ENEMY, f"Enemy {name!r} is not in the catalog.")

    def filter(self, **criteria: Any) -> list[SymbolDef]:
        """Symbols whose fields equal every given criterion, in catalog order."""
        return [
            s for s in self._symbols
            if all(getattr(s, key) == value for key, value in criteria.items())
        ]

    def starter_deck(self) -> list[SymbolDef]:
        return [self.symbol(name.value) for name in STARTER_DECK_NAMES]


def default_catalog() -> SymbolCatalog:
    return SymbolCatalog(DEFAULT_SYMBOLS, DEFAULT_RELICS, DEFAULT_ENEMIES)


def load_catalog(path: str | Path) -> SymbolCatalog:
    """Load a catalog from a JSON file, raising INVALID_CATALOG on bad content."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        data = CatalogFile.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise GameError(ErrorCode.INVALID_CATALOG, f"Cannot load catalog {path}: {e}") from e
    return SymbolCatalog(data.symbols, data.relics, data.enemies)
