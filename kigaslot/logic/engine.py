"""Turn orchestrator: runs one spin from cost debit to turn resolution."""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable

from kigaslot.config import Settings, settings
from kigaslot.config_hash import get_config_hash
from kigaslot.errors import ErrorCode
from kigaslot.logic.adjacency import apply_mutations, resolve_adjacency
from kigaslot.logic.board import BOARD_SIZE
from kigaslot.logic.bombs import explode_bombs
from kigaslot.logic.catalog import SymbolCatalog
from kigaslot.logic.enemies import (
    ENEMY_TRICKS,
    DebuffApplier,
    debuff_type_for,
    default_debuff_applier,
    play_enemy_trick,
)
from kigaslot.logic.lines import NO_LINES_MESSAGE, check_lines
from kigaslot.logic.models import (
    Attribute,
    Board,
    BoardPlacement,
    Debuff,
    GameState,
    PersistingSymbol,
    PersistRequest,
    Relic,
    RelicName,
    SpinResult,
    SymbolDef,
    SymbolName,
    TurnPhase,
)
from kigaslot.logic.rng import ProductionRNG, RNGBase
from kigaslot.telemetry import (
    SOUND_BOMB,
    SOUND_LINE_WIN,
    SOUND_MEDAL,
    SOUND_RELIC,
    SOUND_SPIN,
    EnemyDefeatedEvent,
    SpinProcessedEvent,
    SpinRejectedEvent,
    TelemetryService,
    telemetry_service,
)


logger = logging.getLogger(__name__)

# Pack Unity
PACK_UNITY_MIN_ANIMALS = 3
PACK_UNITY_FACTOR = 0.95
PACK_UNITY_FLOOR = 0.8

# Medals each coin pays just for being revealed
COIN_INCOME = {
    SymbolName.BRONZE_COIN.value: 2,
    SymbolName.SILVER_COIN.value: 5,
    SymbolName.GOLD_COIN.value: 12,
}


def _noop(*args: Any) -> None:
    return None


@dataclass
class SpinHooks:
    """
    Collaborators owned by the surrounding game.

    apply_enemy_debuffs: called at most once per spin while an enemy is
        present; None means the enemy's default debuff template
    on_enemy_defeat: called once with the enemy name when its HP hits 0
    on_turn_resolved: called with the new spin count after every spin that
        does not end in game over
    """
    apply_enemy_debuffs: DebuffApplier | None = None
    on_enemy_defeat: Callable[[str], None] = field(default=_noop)
    on_turn_resolved: Callable[[int], None] = field(default=_noop)


def age_persisting(persisting: list[PersistingSymbol]) -> list[PersistingSymbol]:
    """Decrement durations, dropping entries that fall below 0."""
    aged = [p.model_copy(update={"duration": p.duration - 1}) for p in persisting]
    return [p for p in aged if p.duration >= 0]


def age_debuffs(debuffs: list[Debuff]) -> list[Debuff]:
    """Decrement durations, dropping debuffs that reach 0."""
    aged = [d.model_copy(update={"duration": d.duration - 1}) for d in debuffs]
    return [d for d in aged if d.duration > 0]


def _empty_cells(board: Board) -> list[int]:
    return [i for i, s in enumerate(board) if s is None]


def populate_board(
    persisting: list[PersistingSymbol],
    deck: list[SymbolDef],
    rng: RNGBase,
    relics: list[Relic] | None = None,
    catalog: SymbolCatalog | None = None,
    config: Settings | None = None,
) -> tuple[Board, list[tuple[RelicName, BoardPlacement]]]:
    """
    Fill the board for a new spin.

    Pinned symbols claim their cell first. Wild Gem, then Magnetic Core,
    may each claim one empty cell. Every remaining cell draws from the deck.

    Returns:
        (board, relic placements in the order they happened)
    """
    config = config or settings
    board: Board = [None] * BOARD_SIZE
    for p in persisting:
        if 0 <= p.index < BOARD_SIZE:
            board[p.index] = p.symbol

    placements: list[tuple[RelicName, BoardPlacement]] = []
    held = {r.name for r in relics or ()}

    if catalog is not None:
        wild = catalog.find(SymbolName.WILD.value)
        if (
            RelicName.WILD_GEM.value in held
            and wild is not None
            and any(s.name == SymbolName.WILD for s in deck)
            and rng.random() < config.wild_gem_chance
        ):
            empty = _empty_cells(board)
            if empty:
                index = rng.choice(empty)
                board[index] = wild
                placements.append((RelicName.WILD_GEM, BoardPlacement(index=index, symbol=wild)))

        if RelicName.MAGNETIC_CORE.value in held and rng.random() < config.magnetic_core_chance:
            empty = _empty_cells(board)
            coins = [c for c in (catalog.find(name) for name in COIN_INCOME) if c is not None]
            if empty and coins:
                index = rng.choice(empty)
                coin = rng.choice(coins)
                board[index] = coin
                placements.append((RelicName.MAGNETIC_CORE, BoardPlacement(index=index, symbol=coin)))

    if deck:
        for index in _empty_cells(board):
            board[index] = rng.choice(deck)
    return board, placements


def coin_income(board: Board) -> tuple[int, list[str]]:
    """Medals paid by coins on the revealed board, with one note per coin."""
    medals = 0
    notes: list[str] = []
    for symbol in board:
        if symbol is None:
            continue
        gain = COIN_INCOME.get(symbol.name, 0)
        if gain:
            medals += gain
            notes.append(f"{symbol.name.split(' ')[0]} +{gain}")
    return medals, notes


def apply_deck_changes(
    deck: list[SymbolDef],
    adds: list[SymbolDef],
    removals: list[str],
    mask_cap: int | None = None,
) -> tuple[list[SymbolDef], list[str]]:
    """
    Apply deck additions, then removals by name.

    Cursed Mask additions stop at mask_cap copies. A removal drops every
    copy of that name.

    Returns:
        (new deck, log messages)
    """
    if mask_cap is None:
        mask_cap = settings.cursed_mask_deck_cap

    new_deck = list(deck)
    messages: list[str] = []

    for symbol in adds:
        base = symbol.base()
        if base.name == SymbolName.CURSED_MASK:
            masks = sum(1 for s in new_deck if s.name == SymbolName.CURSED_MASK)
            if masks >= mask_cap:
                continue
        new_deck.append(base)
        messages.append(f"{base.short_name} added to deck!")

    for name in dict.fromkeys(removals):
        kept = [s for s in new_deck if s.name != name]
        if len(kept) < len(new_deck):
            messages.append(f"{name} removed from deck!")
        new_deck = kept

    return new_deck, messages


def merge_persisting(
    survivors: list[PersistingSymbol], requests: list[PersistRequest]
) -> list[PersistingSymbol]:
    """Next spin's pinned symbols: live survivors plus new requests by index."""
    merged = [p for p in survivors if p.duration > 0]
    for request in requests:
        merged = [p for p in merged if p.index != request.index]
        merged.append(
            PersistingSymbol(index=request.index, symbol=request.symbol.base(), duration=request.duration)
        )
    return merged


def _names(board: Board) -> list[str | None]:
    return [s.name if s is not None else None for s in board]


class SpinEngine:
    """
    Spin engine.

    Implements:
    - Eligibility guard (rejections leave the state untouched)
    - Board population from pinned symbols and the deck
    - Adjacency, enemy trick, line and bomb resolution
    - Spin medal accounting and enemy damage
    - Countdown bookkeeping and turn-resolution hand-off
    """

    def __init__(
        self,
        catalog: SymbolCatalog,
        rng: RNGBase | None = None,
        telemetry: TelemetryService | None = None,
        hooks: SpinHooks | None = None,
        config: Settings | None = None,
    ):
        self.catalog = catalog
        self.rng = rng or ProductionRNG()
        self.telemetry = telemetry or telemetry_service
        self.hooks = hooks or SpinHooks()
        self.config = config or settings

    def check_eligibility(self, state: GameState) -> ErrorCode | None:
        """Return why a spin cannot start, or None if it can."""
        phase = state.phase
        if phase == TurnPhase.GAME_OVER:
            return ErrorCode.GAME_OVER
        if phase != TurnPhase.IDLE:
            return ErrorCode.PHASE_PENDING
        if not state.deck:
            return ErrorCode.EMPTY_DECK
        if state.medals < state.spin_cost_due():
            return ErrorCode.INSUFFICIENT_MEDALS
        return None

    def spin(self, state: GameState) -> SpinResult:
        """
        Execute one spin.

        Args:
            state: State at spin start (never mutated)

        Returns:
            SpinResult with the ordered events and the next state
        """
        reason = self.check_eligibility(state)
        if reason is not None:
            return self._reject(state, reason)

        next_state = state.model_copy(deep=True)
        result = SpinResult(next_state=next_state)
        events: list[dict[str, Any]] = []
        messages: list[str] = []

        # 1) Debit cost, reset one-time modifier
        cost = state.spin_cost_due()
        next_state.medals = state.medals - cost
        next_state.spin_count = state.spin_count + 1
        if state.one_time_spin_cost_modifier != 1.0:
            messages.append(
                f"Spin cost x{state.one_time_spin_cost_modifier:.2f} applied ({cost})"
            )
        next_state.one_time_spin_cost_modifier = 1.0
        result.spin_cost = cost
        self.telemetry.notify(SOUND_SPIN)

        # 2) Age pinned symbols and debuffs from the pre-spin lists
        survivors = age_persisting(state.persisting_symbols)
        debuffs = age_debuffs(state.active_debuffs)

        # 3) Populate board
        board, placements = populate_board(
            survivors, state.deck, self.rng, state.acquired_relics, self.catalog, self.config
        )
        for relic_name, placement in placements:
            self.telemetry.notify(SOUND_RELIC)
            if relic_name == RelicName.WILD_GEM:
                messages.append("Wild Gem places a Wild!")
            else:
                messages.append(
                    f"Magnetic Core generates {placement.symbol.name.split(' ')[0]}!"
                )
            events.append({
                "type": "relicPlacement",
                "relic": relic_name.value,
                "index": placement.index,
                "symbol": placement.symbol.name,
            })
        result.initial_board = list(board)
        events.append({"type": "reveal", "board": _names(board)})

        # Coins pay on reveal, outside the spin total
        coin_medals, coin_notes = coin_income(board)
        if coin_medals:
            next_state.medals += coin_medals
            result.coin_medals = coin_medals
            self.telemetry.notify(SOUND_MEDAL)
            messages.append(" | ".join(coin_notes))
            events.append({"type": "coinIncome", "medals": coin_medals})

        # 4) Adjacency bonuses
        ab = resolve_adjacency(board, state.acquired_relics, self.config.rare_bonus_cap)
        if ab.gained_medals > 0:
            self.telemetry.notify(SOUND_MEDAL)
        if ab.rare_symbol_modifier:
            next_state.current_rare_symbol_bonus = min(
                self.config.rare_bonus_cap,
                state.current_rare_symbol_bonus + ab.rare_symbol_modifier,
            )
            messages.append(f"Rare chance up by {ab.rare_symbol_modifier}%!")
        if ab.message:
            messages.append(ab.message)
            events.append({
                "type": "adjacencyBonus",
                "medals": ab.gained_medals,
                "message": ab.message,
            })
        working = apply_mutations(board, ab.board_mutations)

        # 5) Enemy debuffs and board trick
        new_debuffs: list[Debuff] = []
        trick_blocked = False
        enemy = state.current_enemy
        if enemy is not None:
            applier = self.hooks.apply_enemy_debuffs or default_debuff_applier(enemy)
            applied = applier()
            new_debuffs = list(applied.debuffs)
            messages.extend(applied.messages)

            if enemy.name in ENEMY_TRICKS:
                trial = check_lines(
                    working, state.acquired_relics, state.deck, self.catalog, debuffs, self.rng
                )
                if trial.debuffs_prevented:
                    trick_blocked = True
                    blocked_type = debuff_type_for(enemy)
                    new_debuffs = [d for d in new_debuffs if d.type != blocked_type]
                    messages.append(f"Buckler prevents {enemy.name}'s trick!")
                    events.append({"type": "enemyTrick", "enemy": enemy.name, "blocked": True})
                else:
                    outcome = play_enemy_trick(
                        enemy, working, self.catalog, self.rng, self.config.enemy_trick_attempts
                    )
                    working = outcome.board
                    if outcome.message:
                        messages.append(outcome.message)
                        events.append({
                            "type": "enemyTrick",
                            "enemy": enemy.name,
                            "blocked": False,
                            "index": outcome.index,
                        })

        # 6) Authoritative debuffs for this spin
        debuffs = debuffs + new_debuffs
        next_state.active_debuffs = debuffs

        # 7) Lines
        lines = check_lines(
            working, state.acquired_relics, state.deck, self.catalog, debuffs, self.rng
        )
        if lines.debuffs_prevented and not trick_blocked:
            messages.append("Buckler's protection active!")
        if lines.gained_medals > 0:
            self.telemetry.notify(SOUND_LINE_WIN)
            if lines.formed_lines:
                result.highlighted_line = list(lines.formed_lines[0])
                result.highlight_clear_ms = self.config.highlight_clear_ms
        if lines.message != NO_LINES_MESSAGE:
            messages.append(lines.message)
        for line_index, indices in enumerate(lines.formed_lines):
            events.append({"type": "winLine", "lineIndex": line_index, "indices": list(indices)})

        # 8) Deck changes: adds (Cursed Mask capped), then removals by name
        if lines.symbols_to_add_to_deck or lines.symbols_to_remove_from_deck:
            deck, deck_messages = apply_deck_changes(
                state.deck,
                lines.symbols_to_add_to_deck,
                lines.symbols_to_remove_from_deck,
                self.config.cursed_mask_deck_cap,
            )
            next_state.deck = deck
            messages.extend(deck_messages)
            events.append({
                "type": "deckChange",
                "added": [s.name for s in lines.symbols_to_add_to_deck],
                "removed": list(lines.symbols_to_remove_from_deck),
                "deckSize": len(deck),
            })

        # 9) Board changes from line effects
        after_lines = list(working)
        removed: list[int] = []
        for index in lines.symbols_to_remove_from_board:
            victim = after_lines[index]
            if victim is not None:
                messages.append(f"{victim.short_name} hunted & removed!")
                after_lines[index] = None
                removed.append(index)
        for placement in lines.new_symbols_on_board:
            after_lines[placement.index] = placement.symbol.base()
            messages.append(f"{placement.symbol.short_name} appears on board!")
        if removed or lines.new_symbols_on_board:
            events.append({
                "type": "boardChange",
                "removed": removed,
                "placed": [
                    {"index": p.index, "symbol": p.symbol.name}
                    for p in lines.new_symbols_on_board
                ],
            })

        # 10) Bombs
        final_board = after_lines
        bomb_medals = 0
        if lines.bombs_to_explode:
            self.telemetry.notify(SOUND_BOMB)
            bombs = explode_bombs(
                lines.bombs_to_explode, after_lines, self.config.bomb_medals_per_symbol
            )
            final_board = bombs.board
            bomb_medals = bombs.gained_medals
            if bomb_medals > 0:
                self.telemetry.notify(SOUND_MEDAL)
            if bombs.message:
                messages.append(bombs.message)
            events.append({
                "type": "bombExplosion",
                "medals": bomb_medals,
                "destroyed": bombs.destroyed,
            })

        # 11) Spin total: sum, add flat bonus, then floor-multiply
        subtotal = (
            ab.gained_medals
            + lines.gained_medals
            + lines.additional_medals_from_rg
            + bomb_medals
        )
        total = subtotal
        if ab.total_spin_flat_bonus:
            total += ab.total_spin_flat_bonus
            messages.append(f"Chain Link Total: +{ab.total_spin_flat_bonus}")
        if ab.total_spin_multiplier != 1.0:
            total = math.floor(total * ab.total_spin_multiplier)
            messages.append(f"Entangling Vine Total: x{ab.total_spin_multiplier:.2f}")
        next_state.medals += total
        next_state.board = final_board

        result.board = list(final_board)
        result.ab_medals = ab.gained_medals
        result.line_medals = lines.gained_medals
        result.rg_medals = lines.additional_medals_from_rg
        result.bomb_medals = bomb_medals
        result.total_medals = total
        result.formed_lines = [list(indices) for indices in lines.formed_lines]
        result.items_awarded = list(lines.items_awarded)
        for item in lines.items_awarded:
            if item.type == "RelicFragment":
                messages.append("Gained a Relic Fragment!")

        # 12) Pinned symbols for the next spin
        next_state.persisting_symbols = merge_persisting(survivors, ab.symbols_to_persist)

        # One-time cost modifier for the next spin (Wooden Shield, Pack Unity)
        next_state.one_time_spin_cost_modifier = self._next_cost_modifier(
            state, lines.next_spin_cost_modifier, final_board, messages
        )

        # 13) Enemy damage
        if enemy is not None and total > 0:
            hp_before = state.enemy_hp
            next_state.enemy_hp = max(0, hp_before - total)
            events.append({
                "type": "enemyDamage",
                "enemy": enemy.name,
                "damage": total,
                "hp": next_state.enemy_hp,
            })
            if hp_before > 0 and next_state.enemy_hp == 0:
                result.enemy_defeated = True
                events.append({"type": "enemyDefeated", "enemy": enemy.name})
                messages.append(f"{enemy.name} defeated!")
                self.telemetry.emit_enemy_defeated(EnemyDefeatedEvent(
                    enemy=enemy.name,
                    spin_count=next_state.spin_count,
                    overkill=total - hp_before,
                ))
                self.hooks.on_enemy_defeat(enemy.name)

        # 14) Countdowns
        if state.next_cost_increase_in > 0:
            next_state.next_cost_increase_in = state.next_cost_increase_in - 1
        if state.next_enemy_in > 0 and enemy is None:
            next_state.next_enemy_in = state.next_enemy_in - 1

        result.line_message = " | ".join(m for m in messages if m) or "No bonuses or lines."
        result.game_messages = messages
        result.events = events

        self.telemetry.emit_spin_processed(SpinProcessedEvent(
            spin_count=next_state.spin_count,
            spin_cost=cost,
            total_medals=total,
            coin_medals=coin_medals,
            formed_lines=len(result.formed_lines),
            bombs=len(lines.bombs_to_explode),
            enemy=enemy.name if enemy is not None else None,
            enemy_hp=next_state.enemy_hp,
            config_hash=get_config_hash(self.config),
        ))
        logger.debug(
            "Spin %d: cost=%d coins=%d ab=%d lines=%d rg=%d bombs=%d total=%d",
            next_state.spin_count, cost, coin_medals, ab.gained_medals, lines.gained_medals,
            lines.additional_medals_from_rg, bomb_medals, total,
        )

        # 15) Turn resolution
        if not next_state.is_game_over:
            self.hooks.on_turn_resolved(next_state.spin_count)

        return result

    def _next_cost_modifier(
        self,
        state: GameState,
        line_modifier: float | None,
        final_board: Board,
        messages: list[str],
    ) -> float:
        modifier = line_modifier if line_modifier is not None else 1.0
        if not state.has_relic(RelicName.PACK_UNITY):
            return modifier

        animals = sum(1 for s in final_board if s is not None and s.attribute == Attribute.ANIMAL)
        if animals >= PACK_UNITY_MIN_ANIMALS:
            reduced = max(PACK_UNITY_FLOOR, modifier * PACK_UNITY_FACTOR)
            if reduced < modifier:
                messages.append(f"Pack Unity reduced next spin cost! (x{reduced:.2f})")
                return reduced
        return modifier

    def _reject(self, state: GameState, reason: ErrorCode) -> SpinResult:
        logger.info("Spin rejected: %s (medals=%d)", reason.value, state.medals)
        self.telemetry.emit_spin_rejected(SpinRejectedEvent(
            reason=reason.value,
            medals=state.medals,
            spin_cost_due=state.spin_cost_due(),
        ))
        return SpinResult(
            accepted=False,
            rejected_reason=reason,
            spin_cost=state.spin_cost_due(),
            board=list(state.board),
            next_state=state.model_copy(deep=True),
        )
