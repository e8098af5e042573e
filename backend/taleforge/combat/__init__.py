"""Combat system package."""

from .combat_flow import CombatFlow
from .combat_orchestrator import (
    CombatOrchestrator,
    DiceRollProvider,
    PlayerChoice,
    PlayerInput,
    TurnError,
    TurnOutcome,
)
from .data_repository import CombatDataRepository
from .decision_provider import DecisionContext, DecisionProvider, RetryPolicy
from .effects import EffectManager
from .errors import CombatError, CombatStateError, DecisionUnavailableError, InvalidDecisionError
from .events import CombatChannel, CombatEvent, CombatEventType
from .narrator import CombatNarrator
from .target_resolver import TargetResolver

__all__ = [
    "CombatFlow",
    "CombatOrchestrator",
    "DiceRollProvider",
    "PlayerChoice",
    "PlayerInput",
    "TurnError",
    "TurnOutcome",
    "CombatDataRepository",
    "DecisionContext",
    "DecisionProvider",
    "RetryPolicy",
    "EffectManager",
    "CombatError",
    "CombatStateError",
    "DecisionUnavailableError",
    "InvalidDecisionError",
    "CombatChannel",
    "CombatEvent",
    "CombatEventType",
    "CombatNarrator",
    "TargetResolver",
]
