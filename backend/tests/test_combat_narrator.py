import pytest

from taleforge.combat import CombatNarrator, DecisionProvider, RetryPolicy
from taleforge.combat.dice import resolve_roll
from taleforge.combat.models import (
    Ability,
    CombatState,
    Combatant,
    CombatantKind,
    Effect,
    EffectType,
    EnemyDescriptor,
    EnemyState,
)
from taleforge.combat.narrator import round_transition


class _FakeCollaborator:
    def __init__(self, reply="CRACK! The hammer sings."):
        self.reply = reply
        self.prompts = []

    async def complete(self, prompt, *, max_tokens):
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


async def _no_sleep(delay):
    return None


def _descriptor() -> EnemyDescriptor:
    return EnemyDescriptor.model_validate(
        {
            "id": "bog_witch",
            "name": "Morwenna the Bog Witch",
            "short_name": "Morwenna",
            "creature_type": "hag",
            "health": 40,
            "attacks": [{"id": "hex_bolt", "name": "Hex Bolt", "damage": 4, "narration_hints": ["green fire"]}],
        }
    )


def _state(enemy_health=40) -> CombatState:
    enemy = Combatant(
        id="bog_witch", name="Morwenna", kind=CombatantKind.ENEMY, max_health=40, current_health=enemy_health
    )
    return CombatState(combat_id="combat_narr", enemy=EnemyState(combatant=enemy, descriptor=_descriptor()))


def _member(cid, health, max_health=10) -> Combatant:
    return Combatant(id=cid, name=cid.title(), kind=CombatantKind.PARTY, max_health=max_health, current_health=health)


def _narrator(collaborator, enabled=True) -> CombatNarrator:
    provider = DecisionProvider(
        collaborator=collaborator,
        policy=RetryPolicy(max_retries=2, timeout_seconds=1.0, retry_delay_seconds=0.1),
        sleep=_no_sleep,
        max_tokens=150,
    )
    return CombatNarrator(provider, enabled=enabled)


@pytest.mark.parametrize(
    "healths, enemy_health, expected",
    [
        ((9, 10, 8), 10, "party dominating"),
        ((2, 2, 2), 30, "desperate situation"),
        ((10, 0, 0), 30, "desperate situation"),
        ((6, 6, 6), 8, "enemy on the ropes"),
        ((6, 6, 6), 30, "evenly matched"),
    ],
)
def test_momentum_labels(healths, enemy_health, expected):
    party = [_member(f"m{i}", health) for i, health in enumerate(healths)]
    context = CombatNarrator.momentum_context(_state(enemy_health), party)
    assert context["momentum"] == expected


def test_effect_context_summarises_ledgers():
    state = _state()
    state.party_effects.append(Effect(type=EffectType.SHIELD, turns_remaining=2, magnitude=1))
    context = CombatNarrator.effect_context(state)
    assert context == {"party_buffs": "shield (1) (2 turns)", "enemy_debuffs": "none"}


@pytest.mark.asyncio
async def test_collaborator_text_is_used_when_enabled():
    collaborator = _FakeCollaborator()
    narrator = _narrator(collaborator)
    state = _state()
    party = [_member("brannoc", 10)]

    text = await narrator.enemy_action(
        _descriptor(), _descriptor().attacks[0], "Brannoc", narrator.combat_context(state, party)
    )

    assert text == "CRACK! The hammer sings."
    prompt = collaborator.prompts[0]
    assert "Morwenna uses Hex Bolt against Brannoc!" in prompt
    assert "green fire" in prompt
    assert "COMBAT MOMENTUM" in prompt


@pytest.mark.asyncio
async def test_unavailable_collaborator_falls_back_to_template():
    narrator = _narrator(_FakeCollaborator(RuntimeError("quota")))
    hero = _member("brannoc", 10)
    swing = Ability(id="hammer_swing", name="Hammer Swing", damage=4)

    text = await narrator.player_outcome(hero, swing, resolve_roll(2, 0), _descriptor())

    assert text == "Brannoc attempts but fails Hammer Swing!"


@pytest.mark.asyncio
async def test_disabled_narration_never_calls_collaborator():
    collaborator = _FakeCollaborator()
    narrator = _narrator(collaborator, enabled=False)

    text = await narrator.enemy_action(_descriptor(), _descriptor().attacks[0], "Pim")

    assert collaborator.prompts == []
    assert text == "Morwenna uses Hex Bolt against Pim! Deals 4 damage."


def test_round_transition_text():
    assert round_transition(3) == "--- ROUND 3 ---"
