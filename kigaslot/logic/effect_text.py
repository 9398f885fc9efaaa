"""Numeric parameters embedded in symbol effect text.

Effect descriptions are the source of truth for base values. Content must
keep the numbers in the text in sync with the rule that reads them.
"""
import re

from kigaslot.logic.board import neighbors_of
from kigaslot.logic.models import Attribute, Board, Relic, RelicName, SymbolDef


# Tried in order, first match wins. New phrasings are appended, never
# inserted ahead of existing ones.
BASE_MEDAL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"gain\s*\+(\d+)\s*medals?\s+per\s+instance\s+of\s+this\s+symbol", re.IGNORECASE),
    re.compile(r"(?:on\s+line\s+formation,?\s*)?medals?\s*\+(\d+)", re.IGNORECASE),
    re.compile(r"\(\+(\d+)\s*medals?\)", re.IGNORECASE),
    re.compile(r"increase\s+own\s+medal\s+gain\s+by\s*\+(\d+)", re.IGNORECASE),
)

NEGATIVE_MEDAL_PATTERN = re.compile(r"medals?\s*-(\d+)", re.IGNORECASE)
LINE_MULTIPLIER_PATTERN = re.compile(r"line\s+medals\s*x\s*([\d.]+)", re.IGNORECASE)

ATTRIBUTE_RELIC_BONUS = 2
SYMBIOSIS_BONUS = 3

# Relic -> attribute whose symbols gain ATTRIBUTE_RELIC_BONUS
ATTRIBUTE_RELICS: dict[str, Attribute] = {
    RelicName.ANVIL_OF_THE_FORGE_GOD.value: Attribute.METAL,
    RelicName.DROPLET_OF_THE_LIFE_SPRING.value: Attribute.PLANT,
    RelicName.CREST_OF_THE_BEAST_KING.value: Attribute.ANIMAL,
    RelicName.SHEATH_OF_THE_SWORDMASTER.value: Attribute.WEAPON,
    RelicName.CRYSTAL_BALL_OF_STARGAZING.value: Attribute.MYSTIC,
}

_SYMBIOTIC_PARTNER = {
    Attribute.PLANT: Attribute.ANIMAL,
    Attribute.ANIMAL: Attribute.PLANT,
}


def parse_base_medal_value(effect_text: str) -> int:
    """Return the base medal value stated in effect text, 0 if none."""
    for pattern in BASE_MEDAL_PATTERNS:
        match = pattern.search(effect_text)
        if match:
            return int(match.group(1))
    return 0


def parse_negative_medal_value(effect_text: str) -> int:
    """Return the negative value of a 'medals -N' phrasing, 0 if none."""
    match = NEGATIVE_MEDAL_PATTERN.search(effect_text)
    if match:
        return -int(match.group(1))
    return 0


def parse_line_multiplier(effect_text: str) -> float | None:
    match = LINE_MULTIPLIER_PATTERN.search(effect_text)
    if not match:
        return None
    try:
        return float(match.group(1).rstrip("."))
    except ValueError:
        return None


def apply_relic_bonus(
    symbol: SymbolDef,
    base_gain: int,
    relics: list[Relic],
    board: Board | None = None,
    index: int | None = None,
) -> int:
    """
    Add relic bonuses to one symbol's medal gain.

    Attribute relics add +2 each and stack additively. Symbiotic Mycelium
    adds +3 to a Plant next to an Animal (or the reverse) when the board
    context is given.
    """
    gain = base_gain
    attribute = symbol.effective_attribute
    for relic in relics:
        target = ATTRIBUTE_RELICS.get(relic.name)
        if target is not None:
            if target == attribute:
                gain += ATTRIBUTE_RELIC_BONUS
        elif relic.name == RelicName.SYMBIOTIC_MYCELIUM and board is not None and index is not None:
            partner = _SYMBIOTIC_PARTNER.get(attribute)
            if partner is not None and any(
                n.symbol is not None and n.symbol.effective_attribute == partner
                for n in neighbors_of(board, index)
            ):
                gain += SYMBIOSIS_BONUS
    return gain
