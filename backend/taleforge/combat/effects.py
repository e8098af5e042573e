"""Status effect ledger helpers."""
import logging
from typing import List, Optional

from .models.combat_state import CombatState
from .models.effect import Effect, EffectType
from .rules import MARK_BONUS_DAMAGE

logger = logging.getLogger(__name__)


def _as_effect(effect, source: str) -> Effect:
    if isinstance(effect, Effect):
        return effect
    return Effect.from_spec(effect, source=source)


class EffectManager:
    """
    Mutates the three effect lists of a CombatState.

    Every applied effect lives until ``tick`` has run ``duration`` times;
    a mark can additionally be consumed early.
    """

    # ===== apply =====

    def apply_to_character(
        self,
        state: CombatState,
        character_id: str,
        effect,
        source: str = "",
    ) -> Effect:
        instance = _as_effect(effect, source)
        state.character_effects.setdefault(character_id, []).append(instance)
        return instance

    def apply_to_enemy(self, state: CombatState, effect, source: str = "") -> Effect:
        instance = _as_effect(effect, source)
        state.enemy.active_effects.append(instance)
        return instance

    def apply_to_party(self, state: CombatState, effect, source: str = "") -> Effect:
        instance = _as_effect(effect, source)
        state.party_effects.append(instance)
        return instance

    # ===== round boundary =====

    def tick(self, state: CombatState) -> None:
        """Decrement every effect and every running cooldown once."""
        for character_id, effects in state.character_effects.items():
            state.character_effects[character_id] = self._tick_list(effects, character_id)
        state.enemy.active_effects = self._tick_list(state.enemy.active_effects, state.enemy.id)
        state.party_effects = self._tick_list(state.party_effects, "party")

        for ability_id, remaining in state.cooldowns.items():
            if remaining > 0:
                state.cooldowns[ability_id] = remaining - 1

    @staticmethod
    def _tick_list(effects: List[Effect], owner: str) -> List[Effect]:
        kept = []
        for effect in effects:
            if effect.tick():
                logger.debug("[EffectManager] %s expired on %s", effect.type.value, owner)
            else:
                kept.append(effect)
        return kept

    # ===== queries =====

    def character_has_effect(self, state: CombatState, character_id: str, effect_type: EffectType) -> bool:
        return any(e.type == effect_type for e in state.character_effects.get(character_id, []))

    def enemy_has_effect(self, state: CombatState, effect_type: EffectType) -> bool:
        return any(e.type == effect_type for e in state.enemy.active_effects)

    def party_has_effect(self, state: CombatState, effect_type: EffectType) -> bool:
        return any(e.type == effect_type for e in state.party_effects)

    def has_effect(self, state: CombatState, target_id: Optional[str], effect_type: EffectType) -> bool:
        """``target_id`` is a character id, the enemy id, or ``None``/``"party"`` for the party ledger."""
        if target_id is None or target_id == "party":
            return self.party_has_effect(state, effect_type)
        if target_id == state.enemy.id or target_id == "enemy":
            return self.enemy_has_effect(state, effect_type)
        return self.character_has_effect(state, target_id, effect_type)

    def consume_mark(self, state: CombatState) -> int:
        """
        Remove the first mark on the enemy.

        Returns the mark's bonus damage, ``MARK_BONUS_DAMAGE`` for a mark without
        a configured bonus, and 0 when the enemy carries no mark.
        """
        for index, effect in enumerate(state.enemy.active_effects):
            if effect.type == EffectType.MARK:
                del state.enemy.active_effects[index]
                return effect.magnitude if effect.magnitude is not None else MARK_BONUS_DAMAGE
        return 0

    def accuracy_bonus(self, state: CombatState, character_id: Optional[str] = None) -> int:
        """Party-wide accuracy boosts plus the character's own."""
        return self._sum(state, character_id, EffectType.ACCURACY_BOOST)

    def haste_bonus(self, state: CombatState, character_id: str) -> int:
        """Party-wide haste plus the character's own haste."""
        return self._sum(state, character_id, EffectType.HASTE)

    @staticmethod
    def _sum(state: CombatState, character_id: Optional[str], effect_type: EffectType) -> int:
        effects = list(state.party_effects)
        if character_id:
            effects.extend(state.character_effects.get(character_id, []))
        return sum(e.magnitude or 1 for e in effects if e.type == effect_type)

    # ===== removal =====

    def remove_from_character(self, state: CombatState, character_id: str, effect_type: EffectType) -> int:
        """Drop every effect of a type from a character; returns how many were removed."""
        effects = state.character_effects.get(character_id, [])
        kept = [e for e in effects if e.type != effect_type]
        state.character_effects[character_id] = kept
        return len(effects) - len(kept)

    def clear(self, state: CombatState) -> None:
        state.character_effects.clear()
        state.enemy.active_effects.clear()
        state.party_effects.clear()
