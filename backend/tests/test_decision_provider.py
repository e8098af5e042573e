import asyncio

import pytest

from taleforge.combat import DecisionContext, DecisionProvider, DecisionUnavailableError, RetryPolicy
from taleforge.combat.errors import InvalidDecisionError
from taleforge.combat.models import (
    CombatLogEntry,
    Combatant,
    CombatantKind,
    DecisionSource,
    EnemyDescriptor,
)


class _RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class _HangingCollaborator:
    def __init__(self):
        self.calls = 0

    async def complete(self, prompt: str, *, max_tokens: int) -> str:
        self.calls += 1
        await asyncio.sleep(10)
        return "{}"


class _ScriptedCollaborator:
    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = 0
        self.prompts = []

    async def complete(self, prompt: str, *, max_tokens: int) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _context(cooldowns=None) -> DecisionContext:
    descriptor = EnemyDescriptor.model_validate(
        {
            "id": "ogre",
            "name": "Grak the Ogre",
            "personality": "Brutish",
            "health": 20,
            "attacks": [
                {"id": "slam", "name": "Slam", "damage": 4, "cooldown": 2, "targeting": "highest_threat"},
                {"id": "club", "name": "Club", "damage": 2, "targeting": "lowest_health"},
            ],
            "tactics": {"hints": ["Crush the strongest first"]},
        }
    )
    enemy = Combatant(id="ogre", name="Grak", kind=CombatantKind.ENEMY, max_health=20, current_health=12)
    party = [Combatant(id="hero", name="Hero", kind=CombatantKind.PARTY, max_health=10, current_health=3)]
    log = [CombatLogEntry(round=1, actor="Hero", action="Strike", target="Grak")]
    return DecisionContext(
        descriptor=descriptor,
        enemy=enemy,
        party=party,
        round=2,
        cooldowns=cooldowns or {},
        recent_log=log,
    )


def _provider(collaborator, sleep=None, **policy) -> DecisionProvider:
    return DecisionProvider(
        collaborator=collaborator,
        policy=RetryPolicy(**{"max_retries": 3, "timeout_seconds": 0.01, "retry_delay_seconds": 0.5, **policy}),
        sleep=sleep or _RecordingSleep(),
        max_tokens=150,
    )


@pytest.mark.asyncio
async def test_hanging_collaborator_exhausts_all_attempts():
    collaborator = _HangingCollaborator()
    sleep = _RecordingSleep()
    provider = _provider(collaborator, sleep=sleep)

    with pytest.raises(DecisionUnavailableError) as exc_info:
        await provider.decide(_context())

    assert collaborator.calls == 3
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.last_error, asyncio.TimeoutError)
    # 线性退避：最后一次失败后不再等待
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_transient_failures_are_retried_until_success():
    collaborator = _ScriptedCollaborator(
        RuntimeError("boom"),
        RuntimeError("boom again"),
        '{"action_id": "club", "target": "hero"}',
    )
    sleep = _RecordingSleep()
    provider = _provider(collaborator, sleep=sleep, timeout_seconds=1.0)

    decision = await provider.decide(_context())

    assert collaborator.calls == 3
    assert sleep.delays == [0.5, 1.0]
    assert decision.action_id == "club"
    assert decision.target == "hero"
    assert decision.source == DecisionSource.COLLABORATOR


@pytest.mark.asyncio
async def test_unparsable_reply_falls_back_without_retry():
    collaborator = _ScriptedCollaborator("I will smash them all!")
    provider = _provider(collaborator, timeout_seconds=1.0)

    decision = await provider.decide(_context())

    assert collaborator.calls == 1
    assert decision.source == DecisionSource.FALLBACK
    assert decision.action_id == "slam"


@pytest.mark.asyncio
async def test_cooling_down_action_is_rejected():
    collaborator = _ScriptedCollaborator('{"action_id": "slam", "target": "hero"}')
    provider = _provider(collaborator, timeout_seconds=1.0)

    decision = await provider.decide(_context(cooldowns={"slam": 1}))

    assert collaborator.calls == 1
    assert decision.source == DecisionSource.FALLBACK
    assert decision.action_id == "club"


@pytest.mark.asyncio
async def test_fenced_json_is_accepted_and_target_defaults_to_attack_mode():
    collaborator = _ScriptedCollaborator('```json\n{"action_id": "slam", "reasoning": "biggest hit"}\n```')
    provider = _provider(collaborator, timeout_seconds=1.0)

    decision = await provider.decide(_context())

    assert decision.action_id == "slam"
    assert decision.target == "highest_threat"
    assert decision.reasoning == "biggest hit"


@pytest.mark.asyncio
async def test_without_collaborator_decide_uses_fallback():
    provider = DecisionProvider(collaborator=None, policy=RetryPolicy(), max_tokens=150)

    decision = await provider.decide(_context())
    assert decision.source == DecisionSource.FALLBACK

    with pytest.raises(DecisionUnavailableError) as exc_info:
        await provider.call_with_retry("prompt", 10)
    assert exc_info.value.attempts == 0


@pytest.mark.asyncio
async def test_cancellation_is_not_swallowed():
    collaborator = _HangingCollaborator()
    provider = _provider(collaborator, timeout_seconds=5.0)

    task = asyncio.create_task(provider.decide(_context()))
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


def test_parse_decision_rejects_unknown_action():
    provider = _provider(None)
    with pytest.raises(InvalidDecisionError):
        provider.parse_decision('{"action_id": "fireball"}', _context())
    with pytest.raises(InvalidDecisionError):
        provider.parse_decision('{"target": "hero"}', _context())


def test_prompt_lists_state_and_only_ready_attacks():
    prompt = _provider(None).build_prompt(_context(cooldowns={"slam": 2}))

    assert "Grak the Ogre" in prompt
    assert "Enemy HP: 12/20" in prompt
    assert "Hero [hero]: 3/10 HP" in prompt
    assert "- club: Club (2 damage)" in prompt
    assert "- slam" not in prompt
    assert "Round 1: Hero used Strike on Grak" in prompt
    assert "Crush the strongest first" in prompt


def test_retry_policy_delay_is_linear():
    policy = RetryPolicy(retry_delay_seconds=0.5)
    assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.0, 1.5]
