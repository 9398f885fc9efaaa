"""Adjacency-bonus resolver tests."""
import pytest

from kigaslot.logic.adjacency import AB_RULES, apply_mutations, resolve_adjacency
from kigaslot.logic.catalog import DEFAULT_RELICS
from kigaslot.logic.models import Attribute, EffectSystem, Rarity, RelicName, SymbolDef


def relic(name: RelicName):
    return next(r for r in DEFAULT_RELICS if r.name == name)


class TestMedalRules:
    """Rules that yield medals directly."""

    def test_lodestone_counts_metal_neighbors(self, board_of):
        board = board_of({4: "Lodestone", 0: "Bronze Coin", 1: "Gear", 8: "Herb"})
        result = resolve_adjacency(board, [])
        assert result.gained_medals == 6
        assert "Lodestone(1,1): +6 (2 Metal)" in result.message

    def test_lodestone_without_metal_is_silent(self, board_of):
        result = resolve_adjacency(board_of({4: "Lodestone", 0: "Herb"}), [])
        assert result.gained_medals == 0
        assert result.message == ""

    def test_honeybee_persists_with_two_plants(self, board_of):
        board = board_of({4: "Honeybee", 0: "Herb", 2: "Nut"})
        result = resolve_adjacency(board, [])
        assert result.gained_medals == 10
        assert len(result.symbols_to_persist) == 1
        request = result.symbols_to_persist[0]
        assert request.index == 4
        assert request.duration == 1
        assert request.symbol.name == "Honeybee"

    def test_honeybee_one_plant_does_not_persist(self, board_of):
        result = resolve_adjacency(board_of({4: "Honeybee", 0: "Herb"}), [])
        assert result.gained_medals == 5
        assert result.symbols_to_persist == []

    def test_armory_key_needs_weapon_neighbor(self, board_of):
        assert resolve_adjacency(board_of({0: "Armory Key", 1: "Short Sword"}), []).gained_medals == 5
        assert resolve_adjacency(board_of({0: "Armory Key", 8: "Short Sword"}), []).gained_medals == 0

    def test_resonance_crystal_pairs(self, board_of):
        # Each of the two crystals sees one partner: 4 + 4
        result = resolve_adjacency(board_of({0: "Resonance Crystal", 1: "Resonance Crystal"}), [])
        assert result.gained_medals == 8

    def test_magic_circle_raises_rare_chance(self, board_of):
        board = board_of({4: "Magic Circle Fragment", 0: "Stardust", 1: "Wild"})
        result = resolve_adjacency(board, [])
        assert result.gained_medals == 2
        assert result.rare_symbol_modifier == 2

    def test_rare_modifier_is_clamped(self, board_of):
        cells = {i: "Magic Circle Fragment" for i in range(9)}
        result = resolve_adjacency(board_of(cells), [])
        assert result.rare_symbol_modifier == 5

    def test_rare_modifier_uses_given_cap(self, board_of):
        cells = {i: "Magic Circle Fragment" for i in range(9)}
        result = resolve_adjacency(board_of(cells), [], rare_cap=2)
        assert result.rare_symbol_modifier == 2

    def test_messages_follow_board_order(self, board_of):
        board = board_of({0: "Lodestone", 1: "Gear", 8: "Lodestone", 7: "Gear"})
        parts = resolve_adjacency(board, []).message.split(" | ")
        assert parts[0].startswith("Lodestone(0,0)")
        assert parts[1].startswith("Lodestone(2,2)")


class TestMutationRules:
    """Directive-producing rules."""

    def test_chameleon_takes_dominant_attribute(self, board_of):
        board = board_of({4: "Chameleon Scale", 0: "Herb", 1: "Gear", 2: "Nut"})
        result = resolve_adjacency(board, [])
        assert len(result.board_mutations) == 1
        mutation = result.board_mutations[0]
        assert mutation.index == 4
        assert mutation.dynamic_attribute == Attribute.PLANT

    def test_chameleon_tie_goes_to_first_seen(self, board_of):
        board = board_of({4: "Chameleon Scale", 0: "Gear", 1: "Herb"})
        result = resolve_adjacency(board, [])
        assert result.board_mutations[0].dynamic_attribute == Attribute.METAL

    def test_chameleon_alone_stays(self, board_of):
        assert resolve_adjacency(board_of({4: "Chameleon Scale"}), []).board_mutations == []

    def test_whetstone_sharpens_adjacent_weapons(self, board_of):
        board = board_of({4: "Whetstone", 0: "Short Sword", 8: "Wooden Shield", 1: "Herb"})
        result = resolve_adjacency(board, [])
        by_index = {m.index: m for m in result.board_mutations}
        assert set(by_index) == {0, 8}
        assert by_index[0].dynamic_bonus == 2

    def test_two_whetstones_stack(self, board_of):
        board = board_of({0: "Whetstone", 2: "Whetstone", 1: "Short Sword"})
        result = resolve_adjacency(board, [])
        final = apply_mutations(board, result.board_mutations)
        assert final[1].dynamic_bonus == 4

    def test_input_board_is_not_mutated(self, board_of):
        board = board_of({4: "Chameleon Scale", 0: "Herb"})
        resolve_adjacency(board, [])
        assert board[4].dynamic_attribute is None

    def test_lodestone_sees_chameleon_as_metal(self, board_of):
        # Chameleon (index 1) becomes Metal before Lodestone counts neighbors
        board = board_of({0: "Lodestone", 1: "Chameleon Scale", 2: "Gear", 3: "Gear"})
        result = resolve_adjacency(board, [])
        assert result.gained_medals == 6


class TestSpinTotalRules:

    def test_chain_link_group(self, board_of):
        # 0-1-2 in a row: links 1 + 2 + 1 = 4 -> +8
        board = board_of({0: "Chain Link", 1: "Chain Link", 2: "Chain Link"})
        result = resolve_adjacency(board, [])
        assert result.total_spin_flat_bonus == 8
        assert result.gained_medals == 0

    def test_chain_link_caps_links_per_member(self, board_of):
        cells = {i: "Chain Link" for i in range(9)}
        # Corners see 3, edges 5, center 8; each capped at 3
        result = resolve_adjacency(board_of(cells), [])
        assert result.total_spin_flat_bonus == 9 * 3 * 2

    def test_lone_chain_link_adds_nothing(self, board_of):
        assert resolve_adjacency(board_of({0: "Chain Link", 8: "Chain Link"}), []).total_spin_flat_bonus == 0

    def test_automation_gear_doubles_chain_bonus(self, board_of):
        board = board_of({0: "Chain Link", 1: "Chain Link"})
        gear = relic(RelicName.AUTOMATION_GEAR)
        assert resolve_adjacency(board, [gear]).total_spin_flat_bonus == 8

    def test_vine_multiplier(self, board_of):
        board = board_of({4: "Entangling Vine", 0: "Herb", 1: "Nut"})
        assert resolve_adjacency(board, []).total_spin_multiplier == pytest.approx(1.04)

    def test_vine_multiplier_caps_at_ten_percent(self, board_of):
        cells = {i: "Herb" for i in range(9)}
        cells[4] = "Entangling Vine"
        cells[0] = "Entangling Vine"
        result = resolve_adjacency(board_of(cells), [])
        assert result.total_spin_multiplier == pytest.approx(1.10)

    def test_no_vine_keeps_multiplier_at_one(self, board_of):
        assert resolve_adjacency(board_of({0: "Herb"}), []).total_spin_multiplier == 1.0


class TestRegistry:

    def test_unregistered_ab_symbol_is_inert(self, board_of):
        board = board_of({1: "Bronze Coin"})
        board[0] = SymbolDef(
            no=99, name="Mystery Stone", attribute=Attribute.METAL,
            rarity=Rarity.COMMON, effect_system=EffectSystem.AB,
            effect_text="Gain +9 medals per instance of this symbol.",
        )
        result = resolve_adjacency(board, [])
        assert result.gained_medals == 0
        assert result.message == ""

    def test_every_ab_catalog_symbol_has_a_rule(self, catalog):
        ab_names = {s.name for s in catalog.filter(effect_system=EffectSystem.AB)}
        assert ab_names == set(AB_RULES)
