"""
战斗编排器

驱动一场完整战斗：先攻 → 逐回合行动（敌人决策 / 玩家选技能+掷骰）→ 结算 →
等待表现层确认 → 胜负判定 → 轮次结束。

设计原则：
- 严格串行：上一回合的动画确认（或看门狗超时）之前不会开始下一回合的决策
- 回合级错误：任何回合内异常都被捕获并通过 on_error 回调交出一个 retry 闭包，
  重试前回滚本回合消耗的资源（玩家技能次数 / 敌人与随从冷却）
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Protocol

from ..config import settings
from .combat_flow import CombatFlow
from .damage import calculate_final_damage, damage_modifier
from .decision_provider import DecisionContext, DecisionProvider
from .dice import perform_roll, resolve_roll
from .effects import EffectManager
from .errors import CombatStateError
from .events import CombatChannel, CombatEventType
from .models.ability import Ability, AbilityOption, TargetingMode
from .models.combat_state import CombatLogEntry, CombatPhase, CombatState
from .models.combatant import Combatant
from .models.effect import EffectKind, EffectType
from .models.rolls import OutcomeTier, RollRequest, RollResult
from .narrator import (
    CombatNarrator,
    break_free_narration,
    incapacitated_narration,
    initiative_announcement,
    round_transition,
)
from .rules import CRITICAL_HEAL_BONUS, ability_damage, attempt_break_free, should_trigger_ability
from .target_resolver import SELF_TOKENS, Resolved, TargetResolver

if TYPE_CHECKING:
    from ..state.game_state import GameState

logger = logging.getLogger(__name__)

NARRATOR_LABEL = "Narrator"


# ============================================
# 协作者接口
# ============================================


@dataclass
class PlayerChoice:
    """玩家选择的技能（ally 技能可以指定队友）"""

    ability_id: str
    target_id: Optional[str] = None


class PlayerInput(Protocol):
    async def choose_ability(self, character: Combatant, options: List[AbilityOption]) -> PlayerChoice:
        ...


class DiceRollProvider(Protocol):
    async def request_roll(self, request: RollRequest) -> RollResult:
        ...


class TurnOutcome(str, Enum):
    """回合处理结果"""

    CONTINUE = "continue"  # 回合完成，指针已前进
    ENDED = "ended"  # 战斗结束
    FAILED = "failed"  # 回合失败，等待 retry


@dataclass
class TurnError:
    """回合级错误（不会终止战斗）"""

    message: str
    actor_id: str
    error: BaseException
    retry: Callable[[], Awaitable[TurnOutcome]]


ErrorCallback = Callable[[TurnError], Optional[Awaitable[None]]]


class CombatOrchestrator:
    """战斗编排器"""

    def __init__(
        self,
        game_state: "GameState",
        decision_provider: Optional[DecisionProvider] = None,
        narrator: Optional[CombatNarrator] = None,
        channel: Optional[CombatChannel] = None,
        player_input: Optional[PlayerInput] = None,
        dice: Optional[DiceRollProvider] = None,
        effects: Optional[EffectManager] = None,
        rng: Optional[random.Random] = None,
        animation_timeout: Optional[float] = None,
        victory_timeout: Optional[float] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.game_state = game_state
        self.decision_provider = decision_provider or DecisionProvider()
        self.narrator = narrator or CombatNarrator(self.decision_provider)
        self.channel = channel or CombatChannel()
        self.player_input = player_input
        self.dice = dice
        self.effects = effects or EffectManager()
        self.rng = rng
        self.target_resolver = TargetResolver(rng=rng)
        self.animation_timeout = (
            settings.animation_timeout_seconds if animation_timeout is None else animation_timeout
        )
        self.victory_timeout = (
            settings.victory_timeout_seconds if victory_timeout is None else victory_timeout
        )
        self.on_error = on_error

        self.state: Optional[CombatState] = None
        self.flow: Optional[CombatFlow] = None
        self.result: Optional[str] = None
        self.last_error: Optional[TurnError] = None

    # ===== 生命周期 =====

    async def start_combat(self, enemy_id: str) -> CombatState:
        """
        开始战斗：创建战斗状态、掷先攻

        Raises:
            CombatStateError: 未知敌人
        """
        self.state = self.game_state.init_combat(enemy_id)
        self.flow = CombatFlow(self.state, effects=self.effects, rng=self.rng)
        self.result = None
        self.last_error = None

        enemy = self.state.enemy.combatant
        logger.info("[CombatOrchestrator] combat %s started against %s", self.state.combat_id, enemy.id)
        await self.channel.emit(CombatEventType.COMBATANT_SPAWNED, enemy.id, combatant=enemy.to_dict())
        if self.state.companion is not None:
            companion = self.state.companion.combatant
            await self.channel.emit(
                CombatEventType.COMBATANT_SPAWNED, companion.id, combatant=companion.to_dict()
            )

        order = self.flow.roll_all_initiative(self.game_state.active_party(), enemy)
        await self._narrate(initiative_announcement(order), NARRATOR_LABEL)
        await self.channel.emit(
            CombatEventType.INITIATIVE_ROLLED,
            order=[entry.combatant_id for entry in order],
            current_index=0,
        )
        return self.state

    async def play(self, enemy_id: str) -> TurnOutcome:
        await self.start_combat(enemy_id)
        return await self.run()

    async def run(self) -> TurnOutcome:
        """
        回合循环

        Returns:
            TurnOutcome: ENDED（分出胜负）或 FAILED（回合出错，等待 last_error.retry）
        """
        flow = self._require_flow()
        while not flow.is_over():
            outcome = await self.next_turn()
            if outcome == TurnOutcome.FAILED:
                return TurnOutcome.ENDED if flow.is_over() else TurnOutcome.FAILED
        return TurnOutcome.ENDED

    async def next_turn(self) -> TurnOutcome:
        """处理先攻顺序中的下一个行动者"""
        flow = self._require_flow()
        if flow.is_round_complete():
            await self.end_round()

        current = flow.current_combatant()
        if current is None:
            raise CombatStateError("initiative order is empty")

        await self.channel.emit(
            CombatEventType.TURN_CHANGED,
            current.combatant_id,
            current_index=self.state.current_turn_index,
            round=self.state.round,
        )

        if flow.is_enemy_turn():
            return await self.run_enemy_turn()
        return await self.run_party_member_turn(current.combatant_id)

    async def end_round(self) -> int:
        round_number = self._require_flow().start_new_round()
        await self._narrate(round_transition(round_number), NARRATOR_LABEL)
        return round_number

    # ===== 敌人回合 =====

    async def run_enemy_turn(self) -> TurnOutcome:
        flow = self._require_flow()
        state = self.state
        enemy = state.enemy.combatant
        descriptor = state.enemy.descriptor

        if flow.check_victory():
            await self.handle_victory()
            return TurnOutcome.ENDED

        cooldown_snapshot = dict(state.cooldowns)

        try:
            flow.set_phase(CombatPhase.ENEMY_DECIDING)

            if self.effects.enemy_has_effect(state, EffectType.STUN):
                await self._narrate(incapacitated_narration(enemy.name, "is stunned and loses the turn"), NARRATOR_LABEL)
            else:
                decision = await self.decision_provider.decide(
                    DecisionContext(
                        descriptor=descriptor,
                        enemy=enemy,
                        party=self.game_state.party,
                        round=state.round,
                        cooldowns=state.cooldowns,
                        recent_log=state.recent_log(),
                    )
                )
                attack = descriptor.get_attack(decision.action_id)
                if attack is None:
                    raise CombatStateError(f"enemy has no attack {decision.action_id!r}")

                resolved = self._resolve_attack_target(attack, decision.target, enemy)
                target_name = self._target_name(resolved)
                await self._spotlight(resolved)

                flow.set_phase(CombatPhase.ENEMY_NARRATION)
                narration = await self.narrator.enemy_action(
                    descriptor,
                    attack,
                    target_name,
                    self.narrator.combat_context(state, self.game_state.party),
                )
                await self._narrate(narration, descriptor.display_name)

                flow.set_phase(CombatPhase.ENEMY_RESOLUTION)
                gate = self.channel.expect_animation(enemy.id)
                await self.resolve_attack(enemy, attack, resolved)
                await self._await_animation(gate, enemy.id)
                await self.channel.emit(CombatEventType.TARGET_CLEARED)

            if flow.check_defeat(self.game_state.active_party()):
                await self.handle_defeat()
                return TurnOutcome.ENDED

            if self._companion_can_act():
                await self.run_companion_turn()
                if flow.check_defeat(self.game_state.active_party()):
                    await self.handle_defeat()
                    return TurnOutcome.ENDED

            flow.advance_turn()
            return TurnOutcome.CONTINUE

        except asyncio.CancelledError:
            raise
        except Exception as exc:

            def rollback() -> None:
                state.cooldowns.clear()
                state.cooldowns.update(cooldown_snapshot)

            return await self._report_error(
                "Enemy turn failed. Please try again.",
                enemy.id,
                exc,
                self.run_enemy_turn,
                rollback,
            )

    async def run_companion_turn(self) -> None:
        """随从在敌人行动后追加一次攻击（随机选择攻击）"""
        companion_state = self.state.companion
        companion = companion_state.combatant
        descriptor = companion_state.descriptor
        if not descriptor.attacks:
            return

        rng = self.rng if self.rng is not None else random.SystemRandom()
        attack = rng.choice(descriptor.attacks)
        resolved = self._resolve_attack_target(attack, attack.targeting.value, companion)
        if resolved is None:
            return

        target_name = self._target_name(resolved)
        await self._spotlight(resolved)
        narration = await self.narrator.companion_action(
            descriptor,
            attack,
            target_name,
            self.narrator.combat_context(self.state, self.game_state.party),
        )
        await self._narrate(narration, descriptor.name)

        gate = self.channel.expect_animation(companion.id)
        await self.resolve_attack(companion, attack, resolved)
        await self._await_animation(gate, companion.id)
        await self.channel.emit(CombatEventType.TARGET_CLEARED)

    async def resolve_attack(self, actor: Combatant, attack: Ability, resolved: Resolved) -> int:
        """
        结算敌人/随从攻击

        Returns:
            int: 对队伍造成的总伤害
        """
        state = self.state
        await self.channel.emit(
            CombatEventType.ACTION_EXECUTED, actor.id, ability_id=attack.id, action_type="attack"
        )

        total_damage = 0
        target_names: List[str] = []

        if attack.targeting == TargetingMode.SELF:
            if attack.effect is not None and attack.effect.is_status and actor.id == state.enemy.id:
                self.effects.apply_to_enemy(state, attack.effect, source=actor.id)
            target_names.append(actor.name)
        elif resolved is not None:
            targets = resolved if self.target_resolver.is_aoe(resolved) else [resolved]
            for target in targets:
                target_names.append(target.name)
                if attack.damage:
                    modifier = damage_modifier(state, target.id, attacker_is_player=False)
                    final_damage = calculate_final_damage(attack.damage, modifier)
                    if final_damage > 0:
                        dealt = target.take_damage(final_damage)
                        total_damage += dealt
                        await self.channel.emit(
                            CombatEventType.DAMAGE_TAKEN, target.id, amount=dealt, source=actor.id
                        )
                        if target.is_down():
                            await self.channel.emit(CombatEventType.COMBATANT_DEFEATED, target.id)
                if attack.effect is not None and attack.effect.is_status:
                    self.effects.apply_to_character(state, target.id, attack.effect, source=actor.id)

        if attack.cooldown:
            state.cooldowns[attack.id] = attack.cooldown

        state.add_log(
            CombatLogEntry(
                round=state.round,
                actor=actor.name,
                action=attack.name,
                target=", ".join(target_names),
                damage=total_damage,
            )
        )
        await self.channel.emit(
            CombatEventType.STATUS_UPDATED,
            party=[member.to_dict() for member in self.game_state.party],
            enemy=state.enemy.combatant.to_dict(),
        )
        return total_damage

    # ===== 队员回合 =====

    async def run_party_member_turn(self, character_id: str) -> TurnOutcome:
        flow = self._require_flow()
        state = self.state
        character = self.game_state.get_member(character_id)

        if character is None or character.is_down():
            name = character.name if character else "A party member"
            await self._narrate(incapacitated_narration(name), NARRATOR_LABEL)
            flow.advance_turn()
            return TurnOutcome.CONTINUE

        consumed: List[str] = []

        try:
            flow.set_phase(CombatPhase.PLAYER_CHAR_SELECT)

            if self.effects.character_has_effect(state, character_id, EffectType.RESTRAIN):
                if not await self._process_restrained(character):
                    flow.advance_turn()
                    return TurnOutcome.CONTINUE

            if self.effects.character_has_effect(state, character_id, EffectType.STUN):
                await self._narrate(
                    incapacitated_narration(character.name, "is stunned and loses the turn"), NARRATOR_LABEL
                )
                flow.advance_turn()
                return TurnOutcome.CONTINUE

            flow.set_phase(CombatPhase.PLAYER_ABILITY_SELECT)
            ability, target_id = await self._select_ability(character)

            flow.set_phase(CombatPhase.PLAYER_ROLLING)
            if ability.is_limited:
                self.game_state.use_ability(character_id, ability.id)
                consumed.append(ability.id)

            roll = await self._request_roll(self.build_roll_request(character, ability))

            flow.set_phase(CombatPhase.PLAYER_RESOLUTION)
            narration = await self.narrator.player_outcome(
                character,
                ability,
                roll,
                state.enemy.descriptor,
                self.narrator.combat_context(state, self.game_state.party),
            )
            await self._narrate(narration, NARRATOR_LABEL)

            gate = self.channel.expect_animation(character_id)
            damage = await self.resolve_player_action(character, ability, roll, target_id)
            await self._await_animation(gate, character_id)

            state.add_log(
                CombatLogEntry(
                    round=state.round,
                    actor=character.name,
                    action=ability.name,
                    target=state.enemy.combatant.name if damage else "",
                    result=roll.tier.value,
                    damage=damage,
                )
            )

            if flow.check_victory():
                await self.handle_victory()
                return TurnOutcome.ENDED

            flow.advance_turn()
            return TurnOutcome.CONTINUE

        except asyncio.CancelledError:
            raise
        except Exception as exc:

            def rollback() -> None:
                for ability_id in consumed:
                    self.game_state.release_ability(character_id, ability_id)
                consumed.clear()

            return await self._report_error(
                "Action failed. Please try again.",
                character_id,
                exc,
                lambda: self.run_party_member_turn(character_id),
                rollback,
            )

    def build_roll_request(self, character: Combatant, ability: Ability) -> RollRequest:
        """掷骰请求：属性加值 + 全队命中加成 + 角色急速加成"""
        bonus = (
            character.stat(ability.stat)
            + self.effects.accuracy_bonus(self.state)
            + self.effects.haste_bonus(self.state, character.id)
        )
        return RollRequest(
            actor_id=character.id,
            actor_name=character.name,
            ability_id=ability.id,
            ability_name=ability.name,
            stat=ability.stat,
            stat_bonus=bonus,
            difficulty=ability.difficulty,
        )

    async def resolve_player_action(
        self,
        character: Combatant,
        ability: Ability,
        roll: RollResult,
        target_id: Optional[str] = None,
    ) -> int:
        """
        结算玩家技能

        Returns:
            int: 对敌人造成的伤害
        """
        state = self.state
        enemy = state.enemy.combatant
        await self.channel.emit(
            CombatEventType.ACTION_EXECUTED,
            character.id,
            ability_id=ability.id,
            action_type="attack" if ability.deals_damage else "ability",
            tier=roll.tier.value,
        )

        dealt = 0
        if ability.deals_damage and roll.tier != OutcomeTier.FAILURE:
            base_damage = ability_damage(ability, roll.tier)
            modifier = damage_modifier(state, enemy.id, attacker_is_player=True)
            mark_bonus = self.effects.consume_mark(state)
            final_damage = calculate_final_damage(base_damage, modifier + mark_bonus)
            if final_damage > 0:
                dealt = enemy.take_damage(final_damage)
                await self.channel.emit(
                    CombatEventType.DAMAGE_TAKEN, enemy.id, amount=dealt, source=character.id
                )
                await self.channel.emit(CombatEventType.STATUS_UPDATED, enemy=enemy.to_dict())
                if enemy.is_down():
                    await self.channel.emit(CombatEventType.COMBATANT_DEFEATED, enemy.id)
            await self.check_enemy_triggers()

        effect = ability.effect
        if effect is None or roll.tier == OutcomeTier.FAILURE:
            return dealt

        if ability.is_heal:
            amount = (effect.magnitude or 0) + (CRITICAL_HEAL_BONUS if roll.tier == OutcomeTier.CRITICAL else 0)
            for member in self._heal_targets(character, ability, target_id):
                healed = member.heal(amount)
                await self.channel.emit(CombatEventType.HEAL_RECEIVED, member.id, amount=healed)
            await self.channel.emit(
                CombatEventType.STATUS_UPDATED, party=[member.to_dict() for member in self.game_state.party]
            )
        elif effect.is_status:
            self._apply_player_effect(character, ability, target_id)

        return dealt

    def _heal_targets(self, character: Combatant, ability: Ability, target_id: Optional[str]) -> List[Combatant]:
        if ability.targeting in (TargetingMode.PARTY, TargetingMode.AREA):
            return self.game_state.active_party()
        if ability.targeting == TargetingMode.ALLY and target_id:
            ally = self.game_state.get_member(target_id)
            if ally is not None and not ally.is_down():
                return [ally]
        return [character]

    def _apply_player_effect(self, character: Combatant, ability: Ability, target_id: Optional[str]) -> None:
        state = self.state
        targeting = ability.targeting
        if targeting in (TargetingMode.PARTY, TargetingMode.AREA):
            self.effects.apply_to_party(state, ability.effect, source=character.id)
        elif targeting == TargetingMode.SELF:
            self.effects.apply_to_character(state, character.id, ability.effect, source=character.id)
        elif targeting == TargetingMode.ALLY:
            ally = self.game_state.get_member(target_id) if target_id else None
            recipient = ally if ally is not None and not ally.is_down() else character
            self.effects.apply_to_character(state, recipient.id, ability.effect, source=character.id)
        else:
            self.effects.apply_to_enemy(state, ability.effect, source=character.id)

    async def _process_restrained(self, character: Combatant) -> bool:
        """挣脱束缚判定（d6 + brawn），返回是否已挣脱"""
        result = attempt_break_free(character.stat("brawn"), rng=self.rng)
        if result.success:
            self.effects.remove_from_character(self.state, character.id, EffectType.RESTRAIN)
        detail = f" (Rolled {result.roll}+{result.bonus}={result.total})"
        await self._narrate(break_free_narration(character.name, result.success) + detail, NARRATOR_LABEL)
        await self.channel.emit(
            CombatEventType.STATUS_UPDATED,
            character.id,
            restrained=not result.success,
            roll=result.total,
        )
        return result.success

    async def _select_ability(self, character: Combatant):
        options = self.game_state.available_abilities(character.id)
        available = [option for option in options if option.available]
        if not available:
            raise CombatStateError(f"{character.id} has no usable abilities")

        if self.player_input is None:
            chosen = next((o for o in available if o.ability.deals_damage), available[0])
            return chosen.ability, None

        choice = await self.player_input.choose_ability(character, options)
        for option in available:
            if option.ability.id == choice.ability_id:
                return option.ability, choice.target_id
        raise CombatStateError(f"ability {choice.ability_id!r} is not available to {character.id}")

    async def _request_roll(self, request: RollRequest) -> RollResult:
        """骰子UI只是结果通道，档位由核心按请求里的加值重新计算"""
        await self.channel.emit(
            CombatEventType.ROLL_REQUESTED,
            request.actor_id,
            ability_id=request.ability_id,
            bonus=request.stat_bonus,
            difficulty=request.difficulty.value,
        )
        if self.dice is None:
            return perform_roll(request.stat_bonus, request.difficulty, rng=self.rng)

        reported = await self.dice.request_roll(request)
        return resolve_roll(reported.roll, request.stat_bonus, request.difficulty)

    # ===== 特殊技能 =====

    async def check_enemy_triggers(self) -> Optional[str]:
        """
        检查生命阈值触发的特殊技能

        每次伤害后只触发第一个满足条件且未使用过的特殊技能，每个技能每场战斗最多一次。

        Returns:
            Optional[str]: 触发的技能ID
        """
        enemy_state = self.state.enemy
        enemy = enemy_state.combatant

        for special in enemy_state.descriptor.special_abilities:
            if special.id in enemy_state.used_specials:
                continue
            if should_trigger_ability(special, enemy.current_health, enemy.max_health):
                enemy_state.used_specials.add(special.id)
                await self.activate_enemy_special(special)
                return special.id
        return None

    async def activate_enemy_special(self, special) -> None:
        enemy_state = self.state.enemy
        descriptor = enemy_state.descriptor
        logger.info("[CombatOrchestrator] %s activates %s", enemy_state.id, special.id)

        narration = await self.narrator.enemy_special(descriptor, special)
        await self._narrate(narration, descriptor.display_name)

        effect = special.effect
        if effect.type == EffectKind.TRANSFORM:
            enemy_state.combatant.boost_health(effect.health_boost)
            enemy_state.transformed = effect.form
        elif effect.is_status:
            self.effects.apply_to_enemy(self.state, effect, source=enemy_state.id)

        await self.channel.emit(
            CombatEventType.STATUS_UPDATED,
            enemy_state.id,
            enemy=enemy_state.combatant.to_dict(),
            special=special.id,
        )

    # ===== 结束 =====

    async def handle_victory(self) -> None:
        """胜利：等表现层确认胜利演出结束（或看门狗超时）后才结束战斗"""
        gate = self.channel.expect_victory()
        await self.channel.emit(CombatEventType.VICTORY, self.state.enemy.id)
        if not await self.channel.wait(gate, self.victory_timeout):
            logger.warning("[CombatOrchestrator] victory acknowledgement timed out")
        await self._finish("victory")

    async def handle_defeat(self) -> None:
        await self._finish("defeat")

    async def _finish(self, result: str) -> None:
        self.result = result
        self._require_flow().end_combat()
        self.game_state.end_combat()
        logger.info("[CombatOrchestrator] combat %s ended: %s", self.state.combat_id, result)
        await self.channel.emit(CombatEventType.COMBAT_ENDED, result=result, round=self.state.round)

    def summary(self) -> Dict[str, Any]:
        """战斗摘要"""
        if self.state is None:
            return {}
        enemy = self.state.enemy.combatant
        return {
            "combat_id": self.state.combat_id,
            "round": self.state.round,
            "phase": self.state.phase.value,
            "result": self.result,
            "enemy": {
                "id": enemy.id,
                "name": enemy.name,
                "health": f"{enemy.current_health}/{enemy.max_health}",
                "status": enemy.status.value,
            },
            "party": [
                {
                    "id": member.id,
                    "name": member.name,
                    "health": f"{member.current_health}/{member.max_health}",
                    "status": member.status.value,
                }
                for member in self.game_state.party
            ],
        }

    # ===== 工具 =====

    def _require_flow(self) -> CombatFlow:
        if self.flow is None or self.state is None:
            raise CombatStateError("combat has not started")
        return self.flow

    def _companion_can_act(self) -> bool:
        companion = self.state.companion
        return companion is not None and companion.active and not companion.combatant.is_down()

    def _resolve_attack_target(self, attack: Ability, token: Optional[str], actor: Combatant) -> Resolved:
        if attack.targeting == TargetingMode.SELF:
            return actor
        # 攻击队伍的招式不能指向行动者自己
        if token in SELF_TOKENS:
            token = None
        return self.target_resolver.resolve(
            token or attack.targeting.value,
            self.game_state.party,
            self.game_state.active_party(),
            actor=actor,
        )

    def _target_name(self, resolved: Resolved) -> str:
        if self.target_resolver.is_aoe(resolved):
            return "the party"
        if resolved is None:
            return "a party member"
        return resolved.name

    async def _spotlight(self, resolved: Resolved) -> None:
        if resolved is None:
            return
        targets = resolved if self.target_resolver.is_aoe(resolved) else [resolved]
        await self.channel.emit(
            CombatEventType.TARGET_SPOTLIGHT, target_ids=[target.id for target in targets]
        )

    async def _narrate(self, text: str, speaker: str) -> None:
        await self.channel.emit(CombatEventType.NARRATION, text=text, speaker=speaker)

    async def _await_animation(self, gate: asyncio.Future, actor_id: str) -> bool:
        acknowledged = await self.channel.wait(gate, self.animation_timeout)
        if not acknowledged:
            logger.warning("[CombatOrchestrator] animation watchdog expired for %s", actor_id)
        return acknowledged

    async def _report_error(
        self,
        message: str,
        actor_id: str,
        error: BaseException,
        handler: Callable[[], Awaitable[TurnOutcome]],
        rollback: Callable[[], None],
    ) -> TurnOutcome:
        logger.error("[CombatOrchestrator] %s (actor=%s)", message, actor_id, exc_info=error)

        async def retry() -> TurnOutcome:
            rollback()
            self.last_error = None
            outcome = await handler()
            if outcome == TurnOutcome.CONTINUE:
                return await self.run()
            return outcome

        turn_error = TurnError(message=message, actor_id=actor_id, error=error, retry=retry)
        self.last_error = turn_error
        await self.channel.emit(CombatEventType.ERROR, actor_id, message=message)

        if self.on_error is not None:
            result = self.on_error(turn_error)
            if asyncio.iscoroutine(result):
                await result
        return TurnOutcome.FAILED
