"""Avatar evolution ladder: cumulative XP unlocks cosmetic ship stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class EvolutionStage:
    ordinal: int
    name: str
    glyph: str
    xp_threshold: int


EVOLUTION_STAGES: Tuple[EvolutionStage, ...] = (
    EvolutionStage(1, "Starter Shuttle", "🛸", 0),
    EvolutionStage(2, "Scout Rocket", "🚀", 500),
    EvolutionStage(3, "Orbital Skimmer", "🛰️", 1500),
    EvolutionStage(4, "Ion Spear", "☄️", 3500),
    EvolutionStage(5, "Nova Striker", "✨", 7000),
    EvolutionStage(6, "Starforged Cruiser", "🌌", 12000),
    EvolutionStage(7, "Celestial Apex", "⭐", 20000),
)

FINAL_STAGE = EVOLUTION_STAGES[-1].ordinal


@dataclass(frozen=True)
class EvolutionChange:
    from_stage: int
    to_stage: int


def stage_for_xp(xp: int) -> int:
    stage = EVOLUTION_STAGES[0].ordinal
    for evo in EVOLUTION_STAGES:
        if xp < evo.xp_threshold:
            break
        stage = evo.ordinal
    return stage


def stage_info(ordinal: int) -> EvolutionStage:
    for evo in EVOLUTION_STAGES:
        if evo.ordinal == ordinal:
            return evo
    return EVOLUTION_STAGES[0]


def next_stage(ordinal: int) -> Optional[EvolutionStage]:
    for evo in EVOLUTION_STAGES:
        if evo.ordinal == ordinal + 1:
            return evo
    return None


def xp_to_next_stage(xp: int, current_stage: int) -> int:
    nxt = next_stage(current_stage)
    if nxt is None:
        return 0
    return max(0, nxt.xp_threshold - xp)


def progress_within_stage(xp: int, current_stage: int) -> float:
    """Percent (0-100) of the way from the current stage to the next one."""
    nxt = next_stage(current_stage)
    if nxt is None:
        return 100.0
    current = stage_info(current_stage)
    span = nxt.xp_threshold - current.xp_threshold
    pct = (xp - current.xp_threshold) / span * 100
    return max(0.0, min(100.0, pct))


def detect_evolution(stage_before: int, xp_after: int) -> Optional[EvolutionChange]:
    # computed once from the final total, however many thresholds were crossed
    stage_after = stage_for_xp(xp_after)
    if stage_after > stage_before:
        return EvolutionChange(stage_before, stage_after)
    return None
