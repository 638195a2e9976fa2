"""Level computation.

Levels are flat: every 100 XP is one level. These values MUST match the
frontend progress bar (level = floor(xp / 100) + 1).
"""

from __future__ import annotations

from studyhall.errors import ValidationError

XP_PER_LEVEL = 100


def derive_level(total_xp: int) -> dict:
    """Compute level info from total XP."""
    if total_xp < 0:
        raise ValidationError(f"total_xp must be >= 0, got {total_xp}")

    xp_into_level = total_xp % XP_PER_LEVEL
    return {
        "level": total_xp // XP_PER_LEVEL + 1,
        "xp_into_level": xp_into_level,
        "xp_to_next_level": XP_PER_LEVEL - xp_into_level,
        "xp_for_level": XP_PER_LEVEL,
    }


def level_table(max_level: int = 20) -> list[dict]:
    """Cumulative XP required for each level up to ``max_level``."""
    return [
        {"level": level, "xp_required": (level - 1) * XP_PER_LEVEL}
        for level in range(1, max_level + 1)
    ]
