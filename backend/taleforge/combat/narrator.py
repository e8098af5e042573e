"""
战斗叙事

构建 LLM 叙事提示（动量 / 效果上下文），协作者失败时返回模板文本。
叙事文本只交给表现层，核心从不解析它。
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..config import settings
from .decision_provider import DecisionProvider
from .errors import DecisionUnavailableError
from .models.ability import Ability, CompanionDescriptor, EnemyDescriptor, SpecialAbility, TargetingMode
from .models.combat_state import CombatState, InitiativeEntry
from .models.combatant import Combatant
from .models.effect import EffectSpec
from .models.rolls import OutcomeTier, RollResult
from .rules import CRITICAL_HEALTH_THRESHOLD

logger = logging.getLogger(__name__)

NARRATOR_TITLE = "Taleforge"

TONE = """TONE:
- Punchy and fast-paced
- Darkly funny
- Over-the-top dramatic
- Uses varied onomatopoeia (CRACK! THWACK! CRUNCH! SNAP! SIZZLE! SPLAT!)

RULES:
- Keep responses to 2-3 sentences MAX
- Never break character
- Make everything sound more epic than it probably is"""

_TIER_PHRASES = {
    OutcomeTier.CRITICAL: "lands a devastating",
    OutcomeTier.SUCCESS: "successfully uses",
    OutcomeTier.PARTIAL: "partially lands",
    OutcomeTier.FAILURE: "attempts but fails",
}


# ============================================
# 模板叙事（协作者不可用时）
# ============================================


def effect_description(effect: Optional[EffectSpec]) -> str:
    if effect is None:
        return ""
    if effect.description:
        return effect.description
    return f"{effect.type.value} effect applied!"


def enemy_attack_narration(
    enemy_name: str,
    attack_name: str,
    target_name: Optional[str] = None,
    damage: Optional[int] = None,
    effect: Optional[EffectSpec] = None,
) -> str:
    text = f"{enemy_name} uses {attack_name}"
    if target_name:
        text += f" against {target_name}"
    text += "!"
    if damage:
        text += f" Deals {damage} damage."
    if effect:
        text += f" {effect_description(effect)}"
    return text


def player_action_narration(
    character_name: str,
    ability_name: str,
    tier: OutcomeTier,
    target_name: Optional[str] = None,
    damage: Optional[int] = None,
    effect: Optional[EffectSpec] = None,
) -> str:
    text = f"{character_name} {_TIER_PHRASES.get(tier, 'uses')} {ability_name}"
    if target_name and tier != OutcomeTier.FAILURE:
        text += f" on {target_name}"
    text += "!"
    if tier != OutcomeTier.FAILURE:
        if damage:
            text += f" Deals {damage} damage."
        if effect:
            text += f" {effect_description(effect)}"
    return text


def initiative_announcement(order: Sequence[InitiativeEntry]) -> str:
    lines = [f"{index + 1}. {entry.to_display_text()}" for index, entry in enumerate(order)]
    return "INITIATIVE ORDER\n" + "\n".join(lines)


def round_transition(round_number: int) -> str:
    return f"--- ROUND {round_number} ---"


def break_free_narration(character_name: str, success: bool) -> str:
    if success:
        return f"{character_name} breaks free from the restraints!"
    return f"{character_name} struggles against the restraints but remains trapped!"


def incapacitated_narration(character_name: str, reason: str = "is unconscious and cannot act") -> str:
    return f"{character_name} {reason}!"


# ============================================
# 叙事器
# ============================================


class CombatNarrator:
    """
    叙事上下文 + 提示构建

    复用决策适配器的超时/重试；所有失败都降级为模板文本。
    """

    def __init__(self, provider: Optional[DecisionProvider] = None, enabled: Optional[bool] = None):
        self.provider = provider
        self.enabled = settings.narration_enabled if enabled is None else enabled
        self.max_tokens = settings.narration_max_tokens

    # ===== 上下文 =====

    @staticmethod
    def effect_context(state: CombatState) -> Dict[str, str]:
        """当前效果摘要（队伍增益 / 敌人减益）"""

        def describe(effects) -> str:
            if not effects:
                return "none"
            parts = []
            for effect in effects:
                magnitude = f" ({effect.magnitude})" if effect.magnitude else ""
                parts.append(f"{effect.type.value}{magnitude} ({effect.turns_remaining} turns)")
            return ", ".join(parts)

        return {
            "party_buffs": describe(state.party_effects),
            "enemy_debuffs": describe(state.enemy.active_effects),
        }

    @staticmethod
    def momentum_context(state: CombatState, party: Sequence[Combatant]) -> Dict[str, Any]:
        """战斗动量（用于叙事语气）"""
        enemy = state.enemy.combatant
        standing = sum(1 for member in party if not member.is_down())
        party_avg = (
            sum(member.current_health / member.max_health for member in party) / len(party)
            if party
            else 0.0
        )
        enemy_ratio = enemy.current_health / enemy.max_health

        if party_avg > 0.7 and enemy_ratio < 0.5:
            momentum = "party dominating"
        elif party_avg < 0.3 or standing <= 1:
            momentum = "desperate situation"
        elif enemy_ratio < CRITICAL_HEALTH_THRESHOLD:
            momentum = "enemy on the ropes"
        else:
            momentum = "evenly matched"

        return {
            "round": state.round,
            "party_standing": standing,
            "party_total": len(party),
            "party_avg_hp_percent": round(party_avg * 100),
            "enemy_hp_percent": round(enemy_ratio * 100),
            "momentum": momentum,
        }

    def combat_context(self, state: CombatState, party: Sequence[Combatant]) -> Dict[str, Any]:
        return {**self.effect_context(state), **self.momentum_context(state, party)}

    # ===== 叙事 =====

    async def enemy_action(
        self,
        descriptor: EnemyDescriptor,
        attack: Ability,
        target_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        fallback = enemy_attack_narration(
            descriptor.display_name, attack.name, target_name, attack.damage, attack.effect
        )
        hints = ", ".join(attack.narration_hints) or "be dramatic"
        prompt = f"""You are the narrator for "{NARRATOR_TITLE}".

{TONE}

THE ATTACKER - {descriptor.display_name.upper()} ({descriptor.creature_type}):
{descriptor.description}

ACTION:
{descriptor.display_name} uses {attack.name} against {target_name}!
Attack: {attack.description}
Narration hints: {hints}
{self._context_sections(context)}
Write 2-3 punchy sentences. Focus on {descriptor.display_name} attacking {target_name}."""
        return await self._narrate(prompt, fallback)

    async def player_outcome(
        self,
        character: Combatant,
        ability: Ability,
        roll: RollResult,
        descriptor: EnemyDescriptor,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        if ability.targeting == TargetingMode.SELF:
            target_text = f"TARGET: {character.name} (self)"
            target_name = character.name
        elif ability.targeting in (TargetingMode.PARTY, TargetingMode.AREA):
            target_text = "TARGET: The whole party"
            target_name = "the party"
        else:
            target_text = f"TARGET: {descriptor.display_name} (enemy)"
            target_name = descriptor.display_name

        fallback = player_action_narration(
            character.name, ability.name, roll.tier, target_name, ability.damage, ability.effect
        )

        if ability.damage:
            effect_text = f"Damage: {ability.damage} {ability.damage_type or ''}".rstrip()
        elif ability.is_heal:
            effect_text = f"Healing: {ability.effect.magnitude or 0} HP"
        else:
            effect_text = f"Effect: {effect_description(ability.effect) or ability.description}"

        instructions = f"Write 2-3 punchy sentences describing the {roll.tier.value} outcome!"
        if roll.tier == OutcomeTier.CRITICAL:
            instructions += "\nMake it EPIC!"
        elif roll.tier == OutcomeTier.FAILURE:
            instructions += "\nMake it funny but embarrassing - the move fizzles or backfires!"

        trait = f"\nCHARACTER TRAIT: {character.trait} - {character.description}" if character.trait else ""

        prompt = f"""You are the narrator for "{NARRATOR_TITLE}".

{TONE}
{trait}

PLAYER ACTION:
{character.name} uses {ability.name}!
Ability: {ability.description}
{effect_text}

ROLL RESULT: {roll.tier.value.upper()}
(Rolled {roll.roll} + {roll.bonus} = {roll.total})

{target_text}
{self._context_sections(context)}
{instructions}"""
        return await self._narrate(prompt, fallback)

    async def enemy_special(self, descriptor: EnemyDescriptor, special: SpecialAbility) -> str:
        effect_text = effect_description(special.effect) or special.description
        fallback = f"{descriptor.display_name} activates {special.name}! {effect_text}".strip()
        hints = ", ".join(special.narration_hints) or "be dramatic"
        prompt = f"""You are the narrator for "{NARRATOR_TITLE}".

{TONE}

{descriptor.display_name.upper()} ({descriptor.creature_type}):
{descriptor.description}

SPECIAL ABILITY:
{descriptor.display_name} activates {special.name}!
Description: {special.description}
Effect: {effect_text}
Narration hints: {hints}

Write 2-3 dramatic sentences. Focus on {descriptor.display_name} transforming or powering up."""
        return await self._narrate(prompt, fallback)

    async def companion_action(
        self,
        companion: CompanionDescriptor,
        attack: Ability,
        target_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        fallback = f"{companion.name} attacks {target_name} with {attack.name}!"
        hints = ", ".join(attack.narration_hints) or "be dramatic"
        prompt = f"""You are the narrator for "{NARRATOR_TITLE}".

{TONE}

THE ATTACKER - {companion.name.upper()} ({companion.creature_type}):
{companion.description}

ACTION:
{companion.name} uses {attack.name} against {target_name}!
Attack: {attack.description}
Narration hints: {hints}
{self._context_sections(context)}
Write 1-2 punchy sentences."""
        return await self._narrate(prompt, fallback)

    # ===== 内部 =====

    @staticmethod
    def _context_sections(context: Optional[Dict[str, Any]]) -> str:
        if not context:
            return ""

        sections: List[str] = []
        damage = context.get("damage_dealt")
        if damage:
            sections.append(f"COMBAT RESULT:\n- Damage dealt: {damage} points")
            if context.get("is_lethal"):
                sections.append("THIS BLOW TAKES THE TARGET DOWN! Make it dramatic!")

        if "party_buffs" in context:
            sections.append(
                "ACTIVE EFFECTS:\n"
                f"- Party buffs: {context['party_buffs']}\n"
                f"- Enemy debuffs: {context['enemy_debuffs']}"
            )

        if "momentum" in context:
            sections.append(
                "COMBAT MOMENTUM:\n"
                f"- Round: {context['round']}\n"
                f"- Party: {context['party_standing']}/{context['party_total']} standing "
                f"({context['party_avg_hp_percent']}% avg HP)\n"
                f"- Enemy: {context['enemy_hp_percent']}% HP\n"
                f"- Situation: {context['momentum']}"
            )

        return "\n".join(sections) + "\n"

    async def _narrate(self, prompt: str, fallback: str) -> str:
        if not self.enabled or self.provider is None or self.provider.collaborator is None:
            return fallback

        try:
            text = await self.provider.call_with_retry(prompt, self.max_tokens)
        except DecisionUnavailableError as exc:
            logger.warning("[CombatNarrator] narration unavailable, using template: %s", exc)
            return fallback

        return text.strip() or fallback
