"""Data models for the combat system."""

from .combatant import Combatant, CombatantKind, HealthStatus
from .effect import Effect, EffectKind, EffectSpec, EffectType
from .rolls import (
    BreakFreeResult,
    Difficulty,
    InitiativeRoll,
    OutcomeTier,
    RollRequest,
    RollResult,
)
from .ability import (
    Ability,
    AbilityOption,
    CharacterAbilities,
    CompanionDescriptor,
    EnemyDescriptor,
    SpecialAbility,
    Tactics,
    TargetingMode,
    Trigger,
)
from .combat_state import (
    CombatLogEntry,
    CombatPhase,
    CombatState,
    CompanionState,
    EnemyState,
    InitiativeEntry,
)
from .decision import Decision, DecisionPayload, DecisionSource

__all__ = [
    "Combatant",
    "CombatantKind",
    "HealthStatus",
    "Effect",
    "EffectKind",
    "EffectSpec",
    "EffectType",
    "BreakFreeResult",
    "Difficulty",
    "InitiativeRoll",
    "OutcomeTier",
    "RollRequest",
    "RollResult",
    "Ability",
    "AbilityOption",
    "CharacterAbilities",
    "CompanionDescriptor",
    "EnemyDescriptor",
    "SpecialAbility",
    "Tactics",
    "TargetingMode",
    "Trigger",
    "CombatLogEntry",
    "CombatPhase",
    "CombatState",
    "CompanionState",
    "EnemyState",
    "InitiativeEntry",
    "Decision",
    "DecisionPayload",
    "DecisionSource",
]
