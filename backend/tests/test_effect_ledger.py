import pytest

from taleforge.combat.damage import calculate_final_damage, damage_modifier
from taleforge.combat.effects import EffectManager
from taleforge.combat.models import (
    CombatState,
    Combatant,
    CombatantKind,
    Effect,
    EffectSpec,
    EffectType,
    EnemyDescriptor,
    EnemyState,
)
from taleforge.combat.rules import MARK_BONUS_DAMAGE


def _state() -> CombatState:
    descriptor = EnemyDescriptor.model_validate(
        {
            "id": "ogre",
            "name": "Ogre",
            "health": 20,
            "attacks": [{"id": "club", "name": "Club", "damage": 3}],
        }
    )
    enemy = Combatant(id="ogre", name="Ogre", kind=CombatantKind.ENEMY, max_health=20)
    return CombatState(combat_id="combat_test", enemy=EnemyState(combatant=enemy, descriptor=descriptor))


def _effect(effect_type: EffectType, duration: int = 2, magnitude=None) -> Effect:
    return Effect(type=effect_type, turns_remaining=duration, magnitude=magnitude)


# ===== damage modifiers =====


def test_stacked_protection_reduces_enemy_damage():
    state = _state()
    manager = EffectManager()
    manager.apply_to_party(state, _effect(EffectType.CONCEALMENT, magnitude=5))
    manager.apply_to_party(state, _effect(EffectType.SHIELD, magnitude=1))
    manager.apply_to_enemy(state, _effect(EffectType.SLOW))

    modifier = damage_modifier(state, "hero", attacker_is_player=False)

    assert modifier == -3
    assert calculate_final_damage(5, modifier) == 2


def test_personal_shield_and_innate_reduction_only_protect_their_owner():
    state = _state()
    state.innate_reductions["hero"] = 1
    EffectManager().apply_to_character(state, "hero", _effect(EffectType.SHIELD, magnitude=2))

    assert damage_modifier(state, "hero", attacker_is_player=False) == -3
    assert damage_modifier(state, "sage", attacker_is_player=False) == 0


def test_player_attack_sees_enemy_reduction_and_vulnerability():
    state = _state()
    manager = EffectManager()
    manager.apply_to_enemy(state, _effect(EffectType.DAMAGE_REDUCTION, magnitude=2))
    manager.apply_to_enemy(state, _effect(EffectType.VULNERABLE))
    # 队伍增益不影响玩家对敌人的伤害
    manager.apply_to_party(state, _effect(EffectType.SHIELD, magnitude=3))

    assert damage_modifier(state, "ogre", attacker_is_player=True) == -1


def test_missing_state_means_no_modifier():
    assert damage_modifier(None, "hero", attacker_is_player=False) == 0


@pytest.mark.parametrize("base", [0, 1, 3, 10])
@pytest.mark.parametrize("modifier", [-20, -3, 0, 4])
def test_final_damage_is_never_negative(base, modifier):
    final = calculate_final_damage(base, modifier)
    assert final >= 0
    assert final == max(0, base + modifier)


# ===== ledger lifetime =====


@pytest.mark.parametrize("duration", [1, 2, 3, 4])
def test_effect_present_exactly_for_its_duration(duration):
    state = _state()
    manager = EffectManager()
    manager.apply_to_character(state, "hero", EffectSpec(type="restrain", duration=duration))
    manager.apply_to_enemy(state, EffectSpec(type="slow", duration=duration))
    manager.apply_to_party(state, EffectSpec(type="shield", amount=1, duration=duration))

    for ticks in range(duration + 2):
        present = ticks < duration
        assert manager.character_has_effect(state, "hero", EffectType.RESTRAIN) is present
        assert manager.enemy_has_effect(state, EffectType.SLOW) is present
        assert manager.party_has_effect(state, EffectType.SHIELD) is present
        manager.tick(state)


def test_spec_without_duration_lasts_one_tick():
    state = _state()
    manager = EffectManager()
    effect = manager.apply_to_enemy(state, EffectSpec(type="mark"))
    assert effect.turns_remaining == 1

    manager.tick(state)
    assert not manager.enemy_has_effect(state, EffectType.MARK)


def test_cooldowns_tick_down_and_stop_at_zero():
    state = _state()
    state.cooldowns = {"club": 2, "roar": 0}
    manager = EffectManager()

    manager.tick(state)
    assert state.cooldowns == {"club": 1, "roar": 0}
    manager.tick(state)
    manager.tick(state)
    assert state.cooldowns == {"club": 0, "roar": 0}


def test_has_effect_routes_to_the_right_ledger():
    state = _state()
    manager = EffectManager()
    manager.apply_to_party(state, _effect(EffectType.CONCEALMENT))
    manager.apply_to_enemy(state, _effect(EffectType.STUN))
    manager.apply_to_character(state, "hero", _effect(EffectType.HASTE))

    assert manager.has_effect(state, None, EffectType.CONCEALMENT)
    assert manager.has_effect(state, "party", EffectType.CONCEALMENT)
    assert manager.has_effect(state, "ogre", EffectType.STUN)
    assert manager.has_effect(state, "hero", EffectType.HASTE)
    assert not manager.has_effect(state, "sage", EffectType.HASTE)


# ===== mark / bonuses =====


def test_consume_mark_returns_bonus_once():
    state = _state()
    manager = EffectManager()
    manager.apply_to_enemy(state, EffectSpec(type="mark", bonus=2, duration=3))

    assert manager.consume_mark(state) == 2
    assert manager.consume_mark(state) == 0
    assert not manager.enemy_has_effect(state, EffectType.MARK)


def test_mark_without_bonus_uses_default():
    state = _state()
    manager = EffectManager()
    manager.apply_to_enemy(state, _effect(EffectType.MARK))
    manager.apply_to_enemy(state, _effect(EffectType.MARK, magnitude=4))

    # 只消耗第一个标记
    assert manager.consume_mark(state) == MARK_BONUS_DAMAGE
    assert manager.consume_mark(state) == 4


def test_accuracy_and_haste_bonuses_sum_party_and_personal():
    state = _state()
    manager = EffectManager()
    manager.apply_to_party(state, _effect(EffectType.ACCURACY_BOOST, magnitude=1))
    manager.apply_to_character(state, "hero", _effect(EffectType.ACCURACY_BOOST, magnitude=2))
    manager.apply_to_character(state, "hero", _effect(EffectType.HASTE))

    assert manager.accuracy_bonus(state) == 1
    assert manager.accuracy_bonus(state, "hero") == 3
    assert manager.accuracy_bonus(state, "sage") == 1
    assert manager.haste_bonus(state, "hero") == 1
    assert manager.haste_bonus(state, "sage") == 0


def test_remove_from_character_counts_removed():
    state = _state()
    manager = EffectManager()
    manager.apply_to_character(state, "hero", _effect(EffectType.RESTRAIN))
    manager.apply_to_character(state, "hero", _effect(EffectType.RESTRAIN))
    manager.apply_to_character(state, "hero", _effect(EffectType.HASTE))

    assert manager.remove_from_character(state, "hero", EffectType.RESTRAIN) == 2
    assert manager.character_has_effect(state, "hero", EffectType.HASTE)
    assert manager.remove_from_character(state, "nobody", EffectType.RESTRAIN) == 0
