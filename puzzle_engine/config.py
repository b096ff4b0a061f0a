from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Puzzle engine settings configuration."""

    # Geometry settings
    KNOB_RATIO: float = 0.28  # knob protrusion relative to the piece's minor dimension

    # Interaction settings
    SNAP_THRESHOLD_RATIO: float = 0.4  # per-axis snap distance relative to piece size
    TRAY_SLOT_COUNT: int = 4

    # Grid settings
    SUPPORTED_GRID_SIZES: list[int] = [3, 4, 5]
    DEFAULT_GRID_SIZE: int = 3

    # Board layout settings
    MAX_BOARD_SIZE: float = 450
    BOARD_MARGIN: float = 40
    HEADER_ALLOWANCE: float = 200

    LOG_LEVEL: str = "INFO"

    class Config:
        """Pydantic configuration class."""

        case_sensitive = True
        env_file = ".env"
        env_prefix = "PUZZLE_"

    @field_validator("KNOB_RATIO")
    @classmethod
    def validate_knob_ratio(cls, v: float) -> float:
        """Knobs must stay inside the neighbouring piece."""
        if not 0 < v < 0.5:
            raise ValueError("KNOB_RATIO must be between 0 and 0.5")
        return v

    @field_validator("SNAP_THRESHOLD_RATIO")
    @classmethod
    def validate_snap_threshold(cls, v: float) -> float:
        """Snap zones of neighbouring cells must not overlap."""
        if not 0 < v <= 0.5:
            raise ValueError("SNAP_THRESHOLD_RATIO must be in (0, 0.5]")
        return v

    @field_validator("TRAY_SLOT_COUNT")
    @classmethod
    def validate_tray_slot_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError("TRAY_SLOT_COUNT must be at least 1")
        return v

    @model_validator(mode="after")
    def validate_default_grid_size(self) -> "Settings":
        """The default grid size must be one of the supported sizes."""
        if self.DEFAULT_GRID_SIZE not in self.SUPPORTED_GRID_SIZES:
            raise ValueError(
                f"DEFAULT_GRID_SIZE {self.DEFAULT_GRID_SIZE} is not in SUPPORTED_GRID_SIZES "
                f"{self.SUPPORTED_GRID_SIZES}"
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
