"""Game data model: catalog entries, game state and resolver results."""
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kigaslot.config import Settings, settings
from kigaslot.errors import ErrorCode


class Attribute(str, Enum):
    """Symbol attribute; lines form on a shared attribute."""
    METAL = "Metal"
    PLANT = "Plant"
    ANIMAL = "Animal"
    WEAPON = "Weapon"
    MYSTIC = "Mystic"


class Rarity(str, Enum):
    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"


class EffectSystem(str, Enum):
    """Selects which resolver phase evaluates a symbol."""
    BM = "BM"  # base medal
    LB = "LB"  # line bonus
    AB = "AB"  # adjacency bonus
    SS = "SS"  # special spin
    RG = "RG"  # recurring / persisting


class SymbolName(str, Enum):
    """Catalog symbols that carry a hand-written rule."""
    BRONZE_COIN = "Bronze Coin"
    SILVER_COIN = "Silver Coin"
    GOLD_COIN = "Gold Coin"
    LODESTONE = "Lodestone"
    GEAR = "Gear"
    CHAIN_LINK = "Chain Link"
    BOMB = "Bomb"
    RUSTED_LUMP = "Rusted Lump"
    WHETSTONE = "Whetstone"
    BELL = "Bell"
    BAR = "BAR"
    TREASURE_CHEST = "Treasure Chest"
    HERB = "Herb"
    NUT = "Nut"
    CHERRY = "Cherry"
    FOUR_LEAF_CLOVER = "Four-Leaf Clover"
    ENTANGLING_VINE = "Entangling Vine"
    SUNBERRY = "Sunberry"
    RICH_SOIL = "Rich Soil"
    FOREST_SQUIRREL = "Forest Squirrel"
    SMALL_FISH = "Small Fish"
    HONEYBEE = "Honeybee"
    CHAMELEON_SCALE = "Chameleon Scale"
    BIG_CATCH_FLAG = "Big Catch Flag"
    LUCKY_CAT = "Lucky Cat"
    HUNTER_WOLF = "Hunter Wolf"
    SHORT_SWORD = "Short Sword"
    WOODEN_SHIELD = "Wooden Shield"
    BUCKLER = "Buckler"
    ARMORY_KEY = "Armory Key"
    BLOODIED_DAGGER = "Bloodied Dagger"
    STARDUST = "Stardust"
    RESONANCE_CRYSTAL = "Resonance Crystal"
    MAGIC_CIRCLE_FRAGMENT = "Magic Circle Fragment"
    WILD = "Wild"
    CURSED_MASK = "Cursed Mask"


class RelicName(str, Enum):
    """Relics recognized by the resolvers (matched by name)."""
    ANVIL_OF_THE_FORGE_GOD = "Anvil of the Forge God"
    MAGNETIC_CORE = "Magnetic Core"
    AUTOMATION_GEAR = "Automation Gear"
    DROPLET_OF_THE_LIFE_SPRING = "Droplet of the Life Spring"
    SYMBIOTIC_MYCELIUM = "Symbiotic Mycelium"
    HORN_OF_PLENTY = "Horn of Plenty"
    CREST_OF_THE_BEAST_KING = "Crest of the Beast King"
    HUNTERS_INSTINCT = "Hunter's Instinct"
    PACK_UNITY = "Pack Unity"
    SHEATH_OF_THE_SWORDMASTER = "Sheath of the Legendary Swordmaster"
    GAUNTLET_OF_FLURRY = "Gauntlet of Flurry"
    CRYSTAL_BALL_OF_STARGAZING = "Crystal Ball of Stargazing"
    FORBIDDEN_GRIMOIRE = "Forbidden Grimoire"
    WILD_GEM = "Wild Gem"


class EnemyName(str, Enum):
    SLOT_GOBLIN = "Slot Goblin"


class TurnPhase(str, Enum):
    """Spin state machine; a spin may only start from IDLE."""
    IDLE = "IDLE"
    ACQUISITION_PENDING = "ACQUISITION_PENDING"
    RELIC_SELECTION_PENDING = "RELIC_SELECTION_PENDING"
    DECK_EDIT_PENDING = "DECK_EDIT_PENDING"
    GAME_OVER = "GAME_OVER"


class SymbolDef(BaseModel):
    """
    Immutable symbol definition.

    The effect text is the source of truth for numeric parameters.
    dynamic_attribute / dynamic_bonus stay at their defaults in the catalog;
    adjacency mutation directives set them on working-board copies only.
    """
    model_config = ConfigDict(frozen=True)

    no: int
    name: str
    attribute: Attribute
    rarity: Rarity
    effect_system: EffectSystem
    effect_text: str = ""
    flavor_text: str = ""

    dynamic_attribute: Attribute | None = None
    dynamic_bonus: int = 0

    @property
    def effective_attribute(self) -> Attribute:
        return self.dynamic_attribute or self.attribute

    @property
    def short_name(self) -> str:
        return self.name.split(" (")[0]

    def base(self) -> "SymbolDef":
        """Return the catalog form (dynamic fields cleared)."""
        if self.dynamic_attribute is None and self.dynamic_bonus == 0:
            return self
        return self.model_copy(update={"dynamic_attribute": None, "dynamic_bonus": 0})


Board = list[SymbolDef | None]


class Relic(BaseModel):
    """Permanent passive modifier, matched to rules by name."""
    model_config = ConfigDict(frozen=True)

    no: int
    name: str
    target_attribute: Attribute | None = None
    effect_text: str = ""
    flavor_text: str = ""


class Enemy(BaseModel):
    model_config = ConfigDict(frozen=True)

    no: int
    name: str
    hp_multiplier: float = 1.0
    debuff_effect_text: str = ""
    flavor_text: str = ""


class Debuff(BaseModel):
    """Timed negative modifier, aged once per spin."""
    type: str
    duration: int
    value: float | None = None
    origin_enemy: str | None = None


class PersistingSymbol(BaseModel):
    """A symbol pinned to a board index for a bounded number of spins."""
    index: int
    symbol: SymbolDef
    duration: int


class ItemAward(BaseModel):
    type: str
    name: str


class GameState(BaseModel):
    """
    Player run state, replaced once per spin.

    Tracks:
    - medals / spin cost / one-time cost modifier
    - deck (multiset, drawn uniformly with replacement)
    - enemy encounter (current enemy, hp, countdown)
    - relics, active debuffs, persisting symbols
    - the four phase flags gating whether a spin may start
    """
    medals: int = 0
    spin_cost: int = 10
    deck: list[SymbolDef] = Field(default_factory=list)
    current_rare_symbol_bonus: int = 0
    one_time_spin_cost_modifier: float = 1.0
    spin_count: int = 0
    next_cost_increase_in: int = 0
    next_enemy_in: int = 0
    current_enemy: Enemy | None = None
    enemy_hp: int = 0
    acquired_relics: list[Relic] = Field(default_factory=list)
    active_debuffs: list[Debuff] = Field(default_factory=list)
    persisting_symbols: list[PersistingSymbol] = Field(default_factory=list)
    board: Board = Field(default_factory=lambda: [None] * 9)

    # Phase flags
    is_game_over: bool = False
    is_symbol_acquisition_phase: bool = False
    is_relic_selection_phase: bool = False
    is_deck_edit_modal_open: bool = False

    @classmethod
    def new_game(cls, deck: list[SymbolDef], config: Settings | None = None) -> "GameState":
        """Create the state for a fresh run."""
        config = config or settings
        return cls(
            medals=config.initial_medals,
            spin_cost=config.base_spin_cost,
            deck=list(deck),
            next_cost_increase_in=config.cost_increase_interval,
            next_enemy_in=config.enemy_interval,
        )

    @property
    def phase(self) -> TurnPhase:
        if self.is_game_over:
            return TurnPhase.GAME_OVER
        if self.is_symbol_acquisition_phase:
            return TurnPhase.ACQUISITION_PENDING
        if self.is_relic_selection_phase:
            return TurnPhase.RELIC_SELECTION_PENDING
        if self.is_deck_edit_modal_open:
            return TurnPhase.DECK_EDIT_PENDING
        return TurnPhase.IDLE

    def spin_cost_due(self) -> int:
        """Actual cost of the next spin after the one-time modifier."""
        return max(1, round(self.spin_cost * self.one_time_spin_cost_modifier))

    def has_relic(self, name: RelicName) -> bool:
        return any(r.name == name for r in self.acquired_relics)


# === Resolver results ===


class BoardMutation(BaseModel):
    """Property change directive for one board cell."""
    index: int
    dynamic_attribute: Attribute | None = None
    dynamic_bonus: int | None = None

    def changes(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in (
                ("dynamic_attribute", self.dynamic_attribute),
                ("dynamic_bonus", self.dynamic_bonus),
            )
            if value is not None
        }


class BombTrigger(BaseModel):
    index: int
    symbol: SymbolDef


class BoardPlacement(BaseModel):
    index: int
    symbol: SymbolDef


class PersistRequest(BaseModel):
    index: int
    symbol: SymbolDef
    duration: int


class AdjacencyResult(BaseModel):
    """Output of the adjacency-bonus resolver."""
    gained_medals: int = 0
    message: str = ""
    rare_symbol_modifier: int = 0
    board_mutations: list[BoardMutation] = Field(default_factory=list)
    symbols_to_persist: list[PersistRequest] = Field(default_factory=list)
    total_spin_flat_bonus: int = 0
    total_spin_multiplier: float = 1.0


class LineResult(BaseModel):
    """Output of the line resolver."""
    gained_medals: int = 0
    message: str = ""
    formed_lines: list[list[int]] = Field(default_factory=list)
    bombs_to_explode: list[BombTrigger] = Field(default_factory=list)
    items_awarded: list[ItemAward] = Field(default_factory=list)
    new_symbols_on_board: list[BoardPlacement] = Field(default_factory=list)
    next_spin_cost_modifier: float | None = None
    symbols_to_remove_from_board: list[int] = Field(default_factory=list)
    debuffs_prevented: bool = False
    symbols_to_add_to_deck: list[SymbolDef] = Field(default_factory=list)
    symbols_to_remove_from_deck: list[str] = Field(default_factory=list)
    additional_medals_from_rg: int = 0


class BombResult(BaseModel):
    gained_medals: int = 0
    board: Board = Field(default_factory=list)
    message: str = ""
    destroyed: int = 0


class SpinResult(BaseModel):
    """Everything one spin changed, plus the state to continue from."""
    accepted: bool = True
    rejected_reason: ErrorCode | None = None
    spin_cost: int = 0

    initial_board: Board = Field(default_factory=list)
    board: Board = Field(default_factory=list)

    ab_medals: int = 0
    line_medals: int = 0
    rg_medals: int = 0
    bomb_medals: int = 0
    total_medals: int = 0
    # Paid on top of total_medals; never damages the enemy
    coin_medals: int = 0

    formed_lines: list[list[int]] = Field(default_factory=list)
    highlighted_line: list[int] | None = None
    highlight_clear_ms: int = 0
    line_message: str = ""
    game_messages: list[str] = Field(default_factory=list)
    items_awarded: list[ItemAward] = Field(default_factory=list)
    enemy_defeated: bool = False

    events: list[dict[str, Any]] = Field(default_factory=list)
    next_state: GameState = Field(default_factory=GameState)
