"""Engine configuration derived from environment (KIGASLOT_ prefix)."""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings with the game's default balance values."""

    model_config = ConfigDict(env_prefix="KIGASLOT_")

    # New game
    initial_medals: int = 100
    base_spin_cost: int = 10
    cost_increase_interval: int = 5
    enemy_interval: int = 10

    # Spin resolution
    rare_bonus_cap: int = 5
    cursed_mask_deck_cap: int = 3
    bomb_medals_per_symbol: int = 6
    enemy_trick_attempts: int = 20

    # Spin-start relic placements
    wild_gem_chance: float = 0.05
    magnetic_core_chance: float = 0.1

    # Presentation hint: highlighted line auto-clears after this many ms
    highlight_clear_ms: int = 800

    # Optional JSON catalog replacing the built-in content
    catalog_path: str | None = None


settings = Settings()
