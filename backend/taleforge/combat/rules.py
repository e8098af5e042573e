"""
战斗规则

定义所有战斗相关的常量和纯函数公式
"""
import math
import random
from typing import List, Optional, Sequence, TypeVar

from .dice import d6, d20
from .models.ability import Ability, SpecialAbility
from .models.combatant import HealthStatus
from .models.rolls import BreakFreeResult, InitiativeRoll, OutcomeTier


# ============================================
# 常量定义
# ============================================

# 伤害倍率
CRITICAL_MULTIPLIER = 1.5
PARTIAL_MULTIPLIER = 0.5

# 挣脱束缚判定DC（d6 + brawn，边界包含）
BREAKFREE_DC = 4

# 标记被消耗时的默认额外伤害
MARK_BONUS_DAMAGE = 1

# 生命状态阈值（比例，边界包含）
CRITICAL_HEALTH_THRESHOLD = 0.25
WOUNDED_HEALTH_THRESHOLD = 0.5

# 暴击治疗额外恢复
CRITICAL_HEAL_BONUS = 1


# ============================================
# 规则函数
# ============================================


def ability_damage(ability: Ability, tier: OutcomeTier) -> int:
    """
    按档位计算技能伤害

    Args:
        ability: 技能/攻击
        tier: 判定档位

    Returns:
        int: 伤害（critical ×1.5 向上取整，partial ×0.5 向上取整，failure 为0）
    """
    if not ability.damage:
        return 0

    base = ability.damage
    if tier == OutcomeTier.CRITICAL:
        return math.ceil(base * CRITICAL_MULTIPLIER)
    if tier == OutcomeTier.SUCCESS:
        return base
    if tier == OutcomeTier.PARTIAL:
        return math.ceil(base * PARTIAL_MULTIPLIER)
    return 0


def roll_initiative(bonus: int = 0, rng: Optional[random.Random] = None) -> InitiativeRoll:
    """先攻骰（d20 + 加值）"""
    roll = d20(rng)
    return InitiativeRoll(roll=roll, bonus=bonus, total=roll + bonus)


T = TypeVar("T")


def sort_by_initiative(entries: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """
    按先攻排序

    总值降序，同值按加值降序，再相同则随机。随机键每次排序都重新生成，
    所以对已排好的列表再次排序可能改变平局条目的顺序。

    Args:
        entries: 带 total / bonus 属性的条目

    Returns:
        List: 排序后的新列表
    """
    rng = rng if rng is not None else random.SystemRandom()
    keyed = [((-entry.total, -entry.bonus, rng.random()), index) for index, entry in enumerate(entries)]
    keyed.sort()
    return [entries[index] for _, index in keyed]


def attempt_break_free(bonus: int = 0, rng: Optional[random.Random] = None) -> BreakFreeResult:
    """
    挣脱束缚判定

    Args:
        bonus: brawn 加值

    Returns:
        BreakFreeResult: total >= BREAKFREE_DC 时成功
    """
    roll = d6(rng)
    total = roll + bonus
    return BreakFreeResult(roll=roll, bonus=bonus, total=total, success=total >= BREAKFREE_DC)


def health_status(current: int, maximum: int) -> HealthStatus:
    """
    生命比例 → 状态

    current 为0时为 defeated；比例 <= 0.25 为 critical；<= 0.5 为 wounded；否则 healthy。
    """
    if current <= 0:
        return HealthStatus.DEFEATED

    ratio = current / maximum
    if ratio <= CRITICAL_HEALTH_THRESHOLD:
        return HealthStatus.CRITICAL
    if ratio <= WOUNDED_HEALTH_THRESHOLD:
        return HealthStatus.WOUNDED
    return HealthStatus.HEALTHY


def should_trigger_ability(special: SpecialAbility, current: int, maximum: int) -> bool:
    """特殊技能的生命阈值触发条件（敌人必须仍存活）"""
    if current <= 0:
        return False
    return current / maximum <= special.trigger.threshold
