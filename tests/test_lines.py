"""Line resolver tests."""
from itertools import permutations

import pytest

from conftest import ScriptedRNG
from kigaslot.logic.catalog import DEFAULT_RELICS
from kigaslot.logic.lines import (
    LB_RULES,
    NO_LINES_MESSAGE,
    LineContext,
    SpinLines,
    check_lines,
    resolve_line_attribute,
)
from kigaslot.logic.models import Attribute, Debuff, RelicName, SymbolName


def relic(name: RelicName):
    return next(r for r in DEFAULT_RELICS if r.name == name)


@pytest.fixture
def lines(catalog):
    """check_lines with empty relics/deck/debuffs unless given."""
    def run(board, relics=None, deck=None, debuffs=None, rng=None):
        return check_lines(
            board,
            relics or [],
            deck or [],
            catalog,
            debuffs or [],
            rng or ScriptedRNG(),
        )
    return run


class TestLineAttribute:
    """resolve_line_attribute priority rules."""

    def test_three_matching(self, sym):
        assert resolve_line_attribute([sym("Herb"), sym("Nut"), sym("Cherry")]) == Attribute.PLANT

    def test_two_matching_and_wild(self, sym):
        assert resolve_line_attribute([sym("Herb"), sym("Wild"), sym("Nut")]) == Attribute.PLANT

    def test_one_symbol_and_two_wilds(self, sym):
        assert resolve_line_attribute([sym("Wild"), sym("Gear"), sym("Wild")]) == Attribute.METAL

    def test_three_wilds_are_mystic(self, sym):
        assert resolve_line_attribute([sym("Wild")] * 3) == Attribute.MYSTIC

    def test_mixed_attributes_form_nothing(self, sym):
        assert resolve_line_attribute([sym("Herb"), sym("Wild"), sym("Gear")]) is None

    def test_empty_cell_forms_nothing(self, sym):
        assert resolve_line_attribute([sym("Herb"), None, sym("Herb")]) is None

    def test_dynamic_attribute_counts(self, sym):
        chameleon = sym("Chameleon Scale").model_copy(update={"dynamic_attribute": Attribute.PLANT})
        assert resolve_line_attribute([sym("Herb"), chameleon, sym("Nut")]) == Attribute.PLANT

    def test_order_does_not_matter(self, sym):
        symbols = [sym("Herb"), sym("Wild"), sym("Nut")]
        for order in permutations(symbols):
            assert resolve_line_attribute(list(order)) == Attribute.PLANT


class TestBaseMedals:
    """Line base from parsed symbol values."""

    def test_metal_top_row(self, board_of, lines):
        result = lines(board_of({0: "Bronze Coin", 1: "Silver Coin", 2: "Gold Coin"}))
        assert result.formed_lines == [[0, 1, 2]]
        assert result.gained_medals == 2 + 4 + 6
        assert result.message.startswith("Metal Line (W:0):")

    def test_relic_bonus_per_symbol(self, board_of, lines):
        board = board_of({0: "Bronze Coin", 1: "Bronze Coin", 2: "Bronze Coin"})
        result = lines(board, relics=[relic(RelicName.ANVIL_OF_THE_FORGE_GOD)])
        assert result.gained_medals == 12

    def test_mixed_attributes_no_line(self, board_of, lines):
        result = lines(board_of({0: "Bronze Coin", 1: "Herb", 2: "Bronze Coin"}))
        assert result.gained_medals == 0
        assert result.formed_lines == []
        assert result.message == NO_LINES_MESSAGE

    def test_line_with_empty_cell_never_forms(self, board_of, lines):
        result = lines(board_of({0: "Bronze Coin", 2: "Bronze Coin"}))
        assert result.formed_lines == []
        assert result.gained_medals == 0

    def test_empty_board(self, lines):
        result = lines([None] * 9)
        assert result.message == NO_LINES_MESSAGE
        assert result.gained_medals == 0

    def test_dynamic_bonus_is_added(self, board_of, lines, sym):
        board = board_of({1: "Short Sword", 2: "Short Sword"})
        board[0] = sym("Short Sword").model_copy(update={"dynamic_bonus": 2})
        assert lines(board).gained_medals == 11

    def test_squirrel_depends_on_plants(self, board_of, lines):
        row = {0: "Forest Squirrel", 1: "Forest Squirrel", 2: "Forest Squirrel"}
        assert lines(board_of(row)).gained_medals == 9
        assert lines(board_of({**row, 8: "Herb"})).gained_medals == 12

    def test_stardust_depends_on_mystic(self, board_of, lines):
        # Stardust is itself Mystic, so a Stardust line always sees one
        row = {0: "Stardust", 1: "Stardust", 2: "Stardust"}
        assert lines(board_of(row)).gained_medals == 15

    def test_cursed_mask_subtracts(self, board_of, lines):
        result = lines(board_of({0: "Stardust", 1: "Stardust", 2: "Cursed Mask"}))
        assert result.gained_medals == 8

    def test_non_positive_line_is_not_recorded(self, board_of, lines):
        result = lines(board_of({0: "Cursed Mask", 1: "Cursed Mask", 2: "Wild"}))
        assert result.formed_lines == []
        assert result.gained_medals == 0

    def test_chameleon_matching_line_adds_one(self, board_of, lines, sym):
        board = board_of({1: "Bronze Coin", 2: "Bronze Coin"})
        board[0] = sym("Chameleon Scale").model_copy(update={"dynamic_attribute": Attribute.METAL})
        assert lines(board).gained_medals == 5

    def test_two_chameleons_add_one_per_line(self, board_of, lines, sym):
        board = board_of({2: "Herb"})
        chameleon = sym("Chameleon Scale").model_copy(update={"dynamic_attribute": Attribute.PLANT})
        board[0] = chameleon
        board[1] = chameleon
        result = lines(board)
        assert result.gained_medals == 2 + 1
        assert result.message.count("[Chameleon+1]") == 1

    def test_sunberry_boosts_plants(self, board_of, lines):
        result = lines(board_of({0: "Sunberry", 1: "Herb", 2: "Herb"}))
        assert result.gained_medals == 3 + 5 + 5

    def test_shuffled_line_same_total(self, board_of, lines):
        names = ["Bronze Coin", "Silver Coin", "Wild"]
        totals = {
            lines(board_of(dict(zip((0, 1, 2), order)))).gained_medals
            for order in permutations(names)
        }
        assert totals == {12}


class TestLineBonuses:
    """LB rules and line-level combos."""

    def test_bell_trio_without_base_pays_nothing(self, board_of, lines):
        result = lines(board_of({0: "Bell", 1: "Bell", 2: "Bell"}))
        assert result.gained_medals == 0
        assert result.formed_lines == []

    @pytest.mark.parametrize("base,expected", [(0, 0), (10, 16)])
    def test_bell_rule_needs_positive_base(self, board_of, catalog, sym, base, expected):
        board = board_of({0: "Bell", 1: "Bell", 2: "Bell"})
        ctx = LineContext(
            indices=(0, 1, 2), symbols=board[:3], attribute=Attribute.METAL,
            board=board, relics=[], deck=[], catalog=catalog, debuffs=[],
            rng=ScriptedRNG(), spin=SpinLines(), total=base, base=base,
        )
        LB_RULES[SymbolName.BELL.value](ctx, 0, sym("Bell"))
        assert ctx.total == expected

    @pytest.mark.parametrize("cherries,expected", [(1, 4 + 3), (2, 2 + 8), (3, 20)])
    def test_cherry_tiers(self, board_of, lines, cherries, expected):
        names = ["Cherry"] * cherries + ["Herb"] * (3 - cherries)
        result = lines(board_of(dict(zip((0, 1, 2), names))))
        assert result.gained_medals == expected

    def test_horn_of_plenty_doubles_pure_cherry(self, board_of, lines):
        board = board_of({0: "Cherry", 1: "Cherry", 2: "Cherry"})
        result = lines(board, relics=[relic(RelicName.HORN_OF_PLENTY)])
        assert result.gained_medals == 40

    def test_pure_bar_is_fifty(self, board_of, lines):
        assert lines(board_of({0: "BAR", 1: "BAR", 2: "BAR"})).gained_medals == 50

    def test_mixed_bar_counts_its_own_value(self, board_of, lines):
        assert lines(board_of({0: "BAR", 1: "Bronze Coin", 2: "Bronze Coin"})).gained_medals == 9

    def test_buckler_adds_value(self, board_of, lines):
        result = lines(board_of({0: "Buckler", 1: "Short Sword", 2: "Short Sword"}))
        assert result.gained_medals == 8
        assert result.debuffs_prevented is False

    def test_buckler_prevents_with_active_debuff(self, board_of, lines):
        board = board_of({0: "Buckler", 1: "Short Sword", 2: "Short Sword"})
        debuff = Debuff(type="SlotGoblinTransformationDebuff", duration=1)
        assert lines(board, debuffs=[debuff]).debuffs_prevented is True

    def test_buckler_prevents_with_curse_on_board(self, board_of, lines):
        board = board_of({0: "Buckler", 1: "Short Sword", 2: "Short Sword", 8: "Cursed Mask"})
        assert lines(board).debuffs_prevented is True

    def test_clover_trio_with_fragment(self, board_of, lines):
        board = board_of({0: "Four-Leaf Clover", 1: "Four-Leaf Clover", 2: "Four-Leaf Clover"})
        result = lines(board, rng=ScriptedRNG(floats=[0.1]))
        assert result.gained_medals == 30
        assert [i.type for i in result.items_awarded] == ["RelicFragment"]

    def test_clover_trio_without_fragment(self, board_of, lines):
        board = board_of({0: "Four-Leaf Clover", 1: "Four-Leaf Clover", 2: "Four-Leaf Clover"})
        assert lines(board).items_awarded == []

    def test_big_catch_flag_counts_deck_animals(self, board_of, lines, sym):
        board = board_of({0: "Big Catch Flag", 1: "Big Catch Flag", 2: "Big Catch Flag"})
        deck = [sym("Small Fish")] * 4 + [sym("Herb")] * 2
        assert lines(board, deck=deck).gained_medals == 12

    def test_lucky_cat_jackpot(self, board_of, lines):
        board = board_of({0: "Lucky Cat", 1: "Small Fish", 2: "Small Fish"})
        assert lines(board, rng=ScriptedRNG(floats=[0.1])).gained_medals == 8 + 25

    def test_lucky_cat_coin(self, board_of, lines):
        board = board_of({0: "Lucky Cat", 1: "Small Fish", 2: "Small Fish"})
        result = lines(board, rng=ScriptedRNG(floats=[0.2], ints=[2]))
        assert result.gained_medals == 8
        assert len(result.new_symbols_on_board) == 1
        placement = result.new_symbols_on_board[0]
        assert placement.index == 0
        assert placement.symbol.name == "Gold Coin"

    def test_lucky_cat_miss(self, board_of, lines):
        board = board_of({0: "Lucky Cat", 1: "Small Fish", 2: "Small Fish"})
        result = lines(board, rng=ScriptedRNG(floats=[0.5]))
        assert result.gained_medals == 8
        assert result.new_symbols_on_board == []

    def test_treasure_chest_medals(self, board_of, lines):
        board = board_of({0: "Treasure Chest", 1: "Bronze Coin", 2: "Bronze Coin"})
        result = lines(board, rng=ScriptedRNG(floats=[0.1, 0.9], ints=[17]))
        assert result.gained_medals == 4 + 17

    def test_treasure_chest_fragment(self, board_of, lines):
        board = board_of({0: "Treasure Chest", 1: "Bronze Coin", 2: "Bronze Coin"})
        result = lines(board, rng=ScriptedRNG(floats=[0.1, 0.2]))
        assert result.gained_medals == 4
        assert len(result.items_awarded) == 1

    def test_fish_and_nut_trios(self, board_of, lines):
        assert lines(board_of({0: "Small Fish", 1: "Small Fish", 2: "Small Fish"})).gained_medals == 16
        assert lines(board_of({0: "Nut", 1: "Nut", 2: "Nut"})).gained_medals == 8

    def test_shield_trio_sets_cost_modifier(self, board_of, lines):
        result = lines(board_of({0: "Wooden Shield", 1: "Wooden Shield", 2: "Wooden Shield"}))
        assert result.gained_medals == 3
        assert result.next_spin_cost_modifier == 0.9

    def test_no_cost_modifier_by_default(self, board_of, lines):
        assert lines(board_of({0: "Herb", 1: "Herb", 2: "Herb"})).next_spin_cost_modifier is None

    def test_dagger_curses_deck(self, board_of, lines):
        result = lines(board_of({0: "Bloodied Dagger", 1: "Short Sword", 2: "Short Sword"}))
        assert result.gained_medals == 14
        assert [s.name for s in result.symbols_to_add_to_deck] == ["Cursed Mask"]

    def test_three_masks_vanish(self, board_of, lines):
        result = lines(board_of({0: "Cursed Mask", 1: "Cursed Mask", 2: "Cursed Mask"}))
        assert result.gained_medals == 0
        assert result.formed_lines == []
        assert result.additional_medals_from_rg == 30
        assert result.symbols_to_remove_from_deck == ["Cursed Mask"]

    def test_grimoire_adds_rare_on_vanish(self, board_of, lines):
        board = board_of({0: "Cursed Mask", 1: "Cursed Mask", 2: "Cursed Mask"})
        result = lines(
            board,
            relics=[relic(RelicName.FORBIDDEN_GRIMOIRE)],
            rng=ScriptedRNG(ints=[0]),
        )
        assert [s.name for s in result.symbols_to_add_to_deck] == ["Gold Coin"]


class TestSpecialSpin:
    """SS rules and relic line effects."""

    def test_wild_multiplies(self, board_of, lines):
        result = lines(board_of({0: "Bronze Coin", 1: "Wild", 2: "Bronze Coin"}))
        assert result.gained_medals == 8
        assert "W:1" in result.message

    def test_three_wilds_pay_nothing(self, board_of, lines):
        assert lines(board_of({0: "Wild", 1: "Wild", 2: "Wild"})).formed_lines == []

    def test_gear_counts_board_metal(self, board_of, lines):
        board = board_of({0: "Gear", 1: "Bronze Coin", 2: "Bronze Coin", 4: "Lodestone"})
        assert lines(board).gained_medals == 6 + 2 * 4

    def test_automation_gear_doubles_gear(self, board_of, lines):
        board = board_of({0: "Gear", 1: "Bronze Coin", 2: "Bronze Coin", 4: "Lodestone"})
        result = lines(board, relics=[relic(RelicName.AUTOMATION_GEAR)])
        # Coins 2 + 2, Gear's own 2 plus its 8 board bonus, doubled
        assert result.gained_medals == 2 + 2 + (2 + 8) * 2

    def test_bomb_queued_once_across_lines(self, board_of, lines):
        board = board_of({
            0: "Bomb", 1: "Bronze Coin", 2: "Bronze Coin",
            3: "Bronze Coin", 6: "Bronze Coin",
        })
        result = lines(board)
        assert result.formed_lines == [[0, 1, 2], [0, 3, 6]]
        assert [b.index for b in result.bombs_to_explode] == [0]
        assert result.gained_medals == 7 + 7

    def test_hunter_wolf_takes_weakest_off_line(self, board_of, lines):
        board = board_of({
            0: "Hunter Wolf", 1: "Small Fish", 2: "Small Fish",
            6: "Forest Squirrel", 8: "Herb",
        })
        result = lines(board)
        assert result.gained_medals == 7 + 2 * 3
        assert result.symbols_to_remove_from_board == [8]

    def test_hunters_instinct(self, board_of, lines):
        board = board_of({0: "Hunter Wolf", 1: "Small Fish", 2: "Small Fish", 8: "Herb"})
        result = lines(board, relics=[relic(RelicName.HUNTERS_INSTINCT)])
        assert result.gained_medals == 7 + 2 * 4

    def test_hunter_wolf_tie_uses_rng(self, board_of, lines):
        board = board_of({0: "Hunter Wolf", 1: "Small Fish", 2: "Small Fish", 6: "Herb", 8: "Herb"})
        assert lines(board).symbols_to_remove_from_board == [6]
        assert lines(board, rng=ScriptedRNG(floats=[0.3])).symbols_to_remove_from_board == [8]

    def test_hunter_wolf_without_prey(self, board_of, lines):
        board = board_of({0: "Hunter Wolf", 1: "Small Fish", 2: "Small Fish"})
        result = lines(board)
        assert result.gained_medals == 7
        assert result.symbols_to_remove_from_board == []

    def test_gauntlet_of_flurry(self, board_of, lines):
        board = board_of({0: "Short Sword", 1: "Short Sword", 2: "Short Sword"})
        result = lines(board, relics=[relic(RelicName.GAUNTLET_OF_FLURRY)])
        assert result.gained_medals == 9 + 3

    def test_rich_soil_once_per_line(self, board_of, lines):
        board = board_of({0: "Herb", 1: "Herb", 2: "Herb", 4: "Rich Soil"})
        assert lines(board).gained_medals == 6 + 3


class TestPurity:

    def test_inputs_untouched(self, board_of, lines, sym):
        board = board_of({0: "Hunter Wolf", 1: "Small Fish", 2: "Small Fish", 8: "Herb"})
        deck = [sym("Herb")]
        snapshot = list(board)
        lines(board, deck=deck)
        assert board == snapshot
        assert [s.name for s in deck] == ["Herb"]
