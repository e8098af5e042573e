"""
敌人决策适配器

包装外部决策者（LLM）：每次尝试都有超时，失败后线性退避重试；
返回内容非法时改用确定性兜底，全部尝试失败时抛出 DecisionUnavailableError。
"""
import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from ..config import settings
from .ai_opponent import OpponentAI, available_attacks, default_target
from .errors import DecisionUnavailableError, InvalidDecisionError
from .models.ability import EnemyDescriptor
from .models.combat_state import CombatLogEntry
from .models.combatant import Combatant
from .models.decision import Decision, DecisionPayload, DecisionSource

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


class DecisionCollaborator(Protocol):
    """外部决策/叙事协作者：给定提示返回文本"""

    async def complete(self, prompt: str, *, max_tokens: int) -> str:
        ...


@dataclass(frozen=True)
class RetryPolicy:
    """重试策略（尝试次数 / 单次超时 / 退避基数）"""

    max_retries: int = 3
    timeout_seconds: float = 5.0
    retry_delay_seconds: float = 0.5

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.decision_max_retries,
            timeout_seconds=settings.decision_timeout_seconds,
            retry_delay_seconds=settings.decision_retry_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        """第 attempt 次（从1开始）失败后的等待时间"""
        return self.retry_delay_seconds * attempt


@dataclass
class DecisionContext:
    """决策所需的战斗快照"""

    descriptor: EnemyDescriptor
    enemy: Combatant
    party: Sequence[Combatant]
    round: int
    cooldowns: Dict[str, int] = field(default_factory=dict)
    recent_log: List[CombatLogEntry] = field(default_factory=list)


def strip_code_block(text: str) -> str:
    """移除 markdown 代码块标记"""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```[a-zA-Z]*\n?", "", cleaned)
        cleaned = cleaned.rstrip("`").strip()
    return cleaned


class DecisionProvider:
    """
    决策适配器

    只有超时和异常会重试；解析失败或动作非法不重试，直接走兜底。
    """

    def __init__(
        self,
        collaborator: Optional[DecisionCollaborator] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFunc = asyncio.sleep,
        max_tokens: Optional[int] = None,
    ):
        self.collaborator = collaborator
        self.policy = policy or RetryPolicy.from_settings()
        self._sleep = sleep
        self.max_tokens = max_tokens or settings.decision_max_tokens

    async def call_with_retry(self, prompt: str, max_tokens: int) -> str:
        """
        调用协作者（超时 + 线性退避重试）

        Raises:
            DecisionUnavailableError: 全部尝试都超时或抛出异常
        """
        if self.collaborator is None:
            raise DecisionUnavailableError(0)

        last_error: Optional[BaseException] = None
        attempts = self.policy.max_retries

        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(
                    self.collaborator.complete(prompt, max_tokens=max_tokens),
                    timeout=self.policy.timeout_seconds,
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "[DecisionProvider] call failed (attempt %s/%s): %s: %r",
                    attempt,
                    attempts,
                    type(exc).__name__,
                    exc,
                )
                if attempt < attempts:
                    await self._sleep(self.policy.delay_for(attempt))

        raise DecisionUnavailableError(attempts, last_error) from last_error

    async def decide(self, context: DecisionContext) -> Decision:
        """
        获取敌人决策

        Args:
            context: 战斗快照

        Returns:
            Decision: 协作者决策（合法时）或兜底决策

        Raises:
            DecisionUnavailableError: 协作者在全部重试后仍不可用
        """
        if self.collaborator is None:
            return self.fallback(context)

        raw = await self.call_with_retry(self.build_prompt(context), self.max_tokens)

        try:
            return self.parse_decision(raw, context)
        except InvalidDecisionError as exc:
            logger.warning("[DecisionProvider] invalid decision, using fallback: %s", exc)
            return self.fallback(context)

    def fallback(self, context: DecisionContext) -> Decision:
        return OpponentAI(context.descriptor).decide_action(context.round, context.cooldowns)

    def parse_decision(self, raw: str, context: DecisionContext) -> Decision:
        """
        解析并校验协作者返回的 JSON

        Raises:
            InvalidDecisionError: 无法解析，或动作不在当前可用攻击里
        """
        try:
            data = json.loads(strip_code_block(raw or ""))
            payload = DecisionPayload.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise InvalidDecisionError(f"unparsable decision: {raw!r}") from exc

        available = available_attacks(context.descriptor.attacks, context.cooldowns)
        attack = next((a for a in available if a.id == payload.action_id), None)
        if attack is None:
            raise InvalidDecisionError(f"action {payload.action_id!r} is not available")

        return Decision(
            action_id=attack.id,
            target=payload.target or default_target(attack),
            source=DecisionSource.COLLABORATOR,
            reasoning=payload.reasoning,
        )

    def build_prompt(self, context: DecisionContext) -> str:
        """决策提示：敌人状态、队伍、可用攻击、最近日志、战术提示"""
        descriptor = context.descriptor
        enemy = context.enemy

        attack_lines = []
        for attack in available_attacks(descriptor.attacks, context.cooldowns):
            line = f"- {attack.id}: {attack.name}"
            if attack.damage:
                line += f" ({attack.damage} damage)"
            if attack.effect:
                line += f" ({attack.effect.type.value})"
            line += f" [targets: {attack.targeting.value}]"
            attack_lines.append(line)

        party_lines = [
            f"- {member.name} [{member.id}]: {member.current_health}/{member.max_health} HP ({member.status.value})"
            for member in context.party
        ]

        log_lines = [entry.to_display_text() for entry in context.recent_log[-3:]]
        tactics = descriptor.tactics.model_dump(exclude_none=True)

        return f"""You are the tactical AI for {descriptor.name}.
Personality: {descriptor.personality}

CURRENT STATE:
Enemy HP: {enemy.current_health}/{enemy.max_health} ({enemy.status.value})
Round: {context.round}

PARTY STATUS:
{chr(10).join(party_lines)}

AVAILABLE ACTIONS:
{chr(10).join(attack_lines)}

RECENT COMBAT LOG:
{chr(10).join(log_lines) or 'No previous actions'}

TACTICS GUIDANCE:
{json.dumps(tactics, ensure_ascii=False) if tactics else 'Fight smart, target the weak'}

Choose ONE action. Respond with ONLY a JSON object (no explanation):
{{"action_id": "attack_id", "target": "character_id_or_targeting_type"}}"""
