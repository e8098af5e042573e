import random

import pytest

from taleforge.combat import CombatFlow, CombatStateError, EffectManager
from taleforge.combat.models import (
    CombatPhase,
    CombatState,
    Combatant,
    CombatantKind,
    Effect,
    EffectType,
    EnemyDescriptor,
    EnemyState,
)


def _enemy() -> Combatant:
    return Combatant(id="ogre", name="Ogre", kind=CombatantKind.ENEMY, max_health=20, stats={"cunning": 1})


def _party():
    return [
        Combatant(id="hero", name="Hero", kind=CombatantKind.PARTY, max_health=10, stats={"cunning": 2}),
        Combatant(id="sage", name="Sage", kind=CombatantKind.PARTY, max_health=8),
    ]


def _flow(rng=None, on_phase_change=None) -> CombatFlow:
    descriptor = EnemyDescriptor.model_validate(
        {"id": "ogre", "name": "Ogre", "health": 20, "attacks": [{"id": "club", "name": "Club", "damage": 3}]}
    )
    state = CombatState(combat_id="combat_flow", enemy=EnemyState(combatant=_enemy(), descriptor=descriptor))
    return CombatFlow(state, effects=EffectManager(), rng=rng, on_phase_change=on_phase_change)


def test_flow_starts_initializing():
    flow = _flow()
    assert flow.phase == CombatPhase.INITIALIZING
    assert not flow.is_over()


def test_roll_all_initiative_orders_everyone_once():
    flow = _flow(rng=random.Random(11))
    flow.state.current_turn_index = 2

    order = flow.roll_all_initiative(_party(), flow.state.enemy.combatant)

    assert sorted(entry.combatant_id for entry in order) == ["hero", "ogre", "sage"]
    assert [entry.total for entry in order] == sorted((entry.total for entry in order), reverse=True)
    assert flow.state.current_turn_index == 0
    for entry in order:
        assert entry.total == entry.rolled + entry.bonus
    assert flow.initiative_order_text().startswith("1. ")


def test_turn_pointer_walks_the_order_then_completes_round():
    flow = _flow(rng=random.Random(5))
    order = flow.roll_all_initiative(_party(), flow.state.enemy.combatant)

    seen = []
    current = flow.current_combatant()
    while current is not None:
        seen.append(current.combatant_id)
        assert flow.is_enemy_turn() == (current.combatant_id == "ogre")
        current = flow.advance_turn()

    assert seen == [entry.combatant_id for entry in order]
    assert flow.is_round_complete()
    assert flow.current_combatant() is None


def test_start_new_round_ticks_effects_and_resets_pointer():
    flow = _flow(rng=random.Random(1))
    flow.roll_all_initiative(_party(), flow.state.enemy.combatant)
    flow.state.current_turn_index = 3
    flow.state.cooldowns["club"] = 1
    flow.state.party_effects.append(Effect(type=EffectType.SHIELD, turns_remaining=1, magnitude=1))

    assert flow.start_new_round() == 2

    assert flow.phase == CombatPhase.ROUND_END
    assert flow.state.current_turn_index == 0
    assert flow.state.cooldowns["club"] == 0
    assert flow.state.party_effects == []


def test_phase_changes_are_reported():
    phases = []
    flow = _flow(on_phase_change=phases.append)

    flow.set_phase(CombatPhase.ENEMY_DECIDING)
    flow.set_phase(CombatPhase.ENEMY_RESOLUTION)
    flow.end_combat()

    assert phases == [CombatPhase.ENEMY_DECIDING, CombatPhase.ENEMY_RESOLUTION, CombatPhase.COMBAT_END]


def test_combat_end_is_final():
    flow = _flow()
    flow.end_combat()
    flow.end_combat()

    assert flow.is_over()
    with pytest.raises(CombatStateError):
        flow.set_phase(CombatPhase.PLAYER_ROLLING)
    with pytest.raises(CombatStateError):
        flow.roll_all_initiative(_party(), flow.state.enemy.combatant)


def test_combat_end_only_through_end_combat():
    flow = _flow()
    with pytest.raises(CombatStateError):
        flow.set_phase(CombatPhase.COMBAT_END)
    assert flow.phase == CombatPhase.INITIALIZING


def test_victory_and_defeat_checks():
    flow = _flow()
    party = _party()

    assert not flow.check_victory()
    flow.state.enemy.combatant.take_damage(99)
    assert flow.check_victory()

    assert not CombatFlow.check_defeat(party)
    assert CombatFlow.check_defeat([])
