"""
骰子系统

d20 判定 + 档位分级。每次掷骰默认使用独立的 SystemRandom，不共享全局种子；
测试可以注入自己的 random.Random。
"""
import random
from typing import Dict, Optional

from .models.rolls import Difficulty, OutcomeTier, RollResult


# ============================================
# 难度阈值（严格递增：critical > success > partial）
# ============================================

DIFFICULTY_THRESHOLDS: Dict[Difficulty, Dict[OutcomeTier, int]] = {
    Difficulty.EASY: {
        OutcomeTier.CRITICAL: 18,
        OutcomeTier.SUCCESS: 8,
        OutcomeTier.PARTIAL: 4,
    },
    Difficulty.NORMAL: {
        OutcomeTier.CRITICAL: 20,
        OutcomeTier.SUCCESS: 12,
        OutcomeTier.PARTIAL: 6,
    },
    Difficulty.HARD: {
        OutcomeTier.CRITICAL: 22,
        OutcomeTier.SUCCESS: 15,
        OutcomeTier.PARTIAL: 8,
    },
    Difficulty.VERY_HARD: {
        OutcomeTier.CRITICAL: 24,
        OutcomeTier.SUCCESS: 18,
        OutcomeTier.PARTIAL: 10,
    },
}

NATURAL_MAX = 20
NATURAL_MIN = 1

_TIERS_HIGH_TO_LOW = (OutcomeTier.CRITICAL, OutcomeTier.SUCCESS, OutcomeTier.PARTIAL)


def _rng(rng: Optional[random.Random]) -> random.Random:
    return rng if rng is not None else random.SystemRandom()


def d20(rng: Optional[random.Random] = None) -> int:
    """投掷 d20"""
    return _rng(rng).randint(1, 20)


def d6(rng: Optional[random.Random] = None) -> int:
    """投掷 d6"""
    return _rng(rng).randint(1, 6)


def classify_outcome(total: int, difficulty: Difficulty = Difficulty.NORMAL) -> OutcomeTier:
    """
    根据总值划分档位

    Args:
        total: d20 + 加值
        difficulty: 难度预设

    Returns:
        OutcomeTier: 不超过 total 的最高阈值对应的档位，全部不满足时为 failure
    """
    thresholds = DIFFICULTY_THRESHOLDS[Difficulty(difficulty)]
    for tier in _TIERS_HIGH_TO_LOW:
        if total >= thresholds[tier]:
            return tier
    return OutcomeTier.FAILURE


def resolve_roll(
    roll: int,
    bonus: int,
    difficulty: Difficulty = Difficulty.NORMAL,
) -> RollResult:
    """
    由骰面和加值计算完整判定结果

    自然20保底：骰出20时档位至少为 success。自然1没有自动降档。
    骰子UI交回结果后也用这个函数重新计算档位，不信任外部给出的档位。

    Args:
        roll: 骰面（1-20）
        bonus: 加值（可以为负）
        difficulty: 难度预设

    Returns:
        RollResult: 判定结果
    """
    if not NATURAL_MIN <= roll <= NATURAL_MAX:
        raise ValueError(f"d20 roll out of range: {roll}")

    total = roll + bonus
    tier = classify_outcome(total, difficulty)
    is_nat20 = roll == NATURAL_MAX

    if is_nat20 and tier.rank < OutcomeTier.SUCCESS.rank:
        tier = OutcomeTier.SUCCESS

    return RollResult(
        roll=roll,
        bonus=bonus,
        total=total,
        tier=tier,
        is_nat20=is_nat20,
        is_nat1=roll == NATURAL_MIN,
    )


def perform_roll(
    bonus: int,
    difficulty: Difficulty = Difficulty.NORMAL,
    rng: Optional[random.Random] = None,
) -> RollResult:
    """掷 d20 + 加值并分级"""
    return resolve_roll(d20(rng), bonus, difficulty)


def probabilities(bonus: int, difficulty: Difficulty = Difficulty.NORMAL) -> Dict[str, int]:
    """
    各档位的概率（百分比，四舍五入）

    用于平衡调试和UI提示，包含自然20保底。
    """
    counts = {tier: 0 for tier in OutcomeTier}
    for roll in range(NATURAL_MIN, NATURAL_MAX + 1):
        counts[resolve_roll(roll, bonus, difficulty).tier] += 1

    return {tier.value: round(count / NATURAL_MAX * 100) for tier, count in counts.items()}
