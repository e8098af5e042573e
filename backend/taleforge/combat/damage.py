"""Damage modifiers derived from the effect ledger (pure, no side effects)."""
from .models.combat_state import CombatState
from .models.effect import EffectType

DEFAULT_REDUCTION = 1
SLOW_REDUCTION = 1
CONCEALMENT_REDUCTION = 1
DEFAULT_VULNERABILITY = 1


def damage_modifier(state: CombatState, target_id: str, attacker_is_player: bool) -> int:
    """
    Additive damage modifier for an attack (negative means reduction).

    Player attacking the enemy: enemy ``damage_reduction`` lowers damage and
    ``vulnerable`` raises it. Enemy or companion attacking a party member:
    party-wide concealment and shields, the enemy's own slow, the target's
    personal shields and the target's innate reduction all lower damage.
    """
    if state is None:
        return 0

    modifier = 0

    if attacker_is_player:
        for effect in state.enemy.active_effects:
            if effect.type == EffectType.DAMAGE_REDUCTION:
                modifier -= effect.magnitude or DEFAULT_REDUCTION
            elif effect.type == EffectType.VULNERABLE:
                modifier += effect.magnitude or DEFAULT_VULNERABILITY
        return modifier

    for effect in state.party_effects:
        if effect.type == EffectType.CONCEALMENT:
            modifier -= CONCEALMENT_REDUCTION
        elif effect.type == EffectType.SHIELD:
            modifier -= effect.magnitude or DEFAULT_REDUCTION

    for effect in state.enemy.active_effects:
        if effect.type == EffectType.SLOW:
            modifier -= SLOW_REDUCTION

    for effect in state.character_effects.get(target_id, []):
        if effect.type == EffectType.SHIELD:
            modifier -= effect.magnitude or DEFAULT_REDUCTION

    modifier -= state.innate_reductions.get(target_id, 0)
    return modifier


def calculate_final_damage(base_damage: int, modifier: int) -> int:
    """Apply a modifier to base damage; the result never goes below zero."""
    return max(0, base_damage + modifier)
