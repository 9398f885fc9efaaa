"""Config hash shared by the audit CSV and spin_processed telemetry.

The hash MUST be computed identically everywhere it is stamped, so both
scripts/audit_sim.py and the spin engine import it from here.
"""
import hashlib
import json

from kigaslot.config import Settings, settings


def get_config_hash(config: Settings | None = None) -> str:
    """
    Generate hash of the current engine configuration.

    Returns 16-char hex hash of config snapshot.
    Used for:
    - audit CSV config_hash column
    - spin_processed telemetry event config_hash field
    """
    config = config or settings
    config_snapshot = {
        "initial_medals": config.initial_medals,
        "base_spin_cost": config.base_spin_cost,
        "rare_bonus_cap": config.rare_bonus_cap,
        "cursed_mask_deck_cap": config.cursed_mask_deck_cap,
        "bomb_medals_per_symbol": config.bomb_medals_per_symbol,
        "enemy_trick_attempts": config.enemy_trick_attempts,
        "wild_gem_chance": config.wild_gem_chance,
        "magnetic_core_chance": config.magnetic_core_chance,
        "catalog_path": config.catalog_path,
    }
    canonical = json.dumps(config_snapshot, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()[:16]
