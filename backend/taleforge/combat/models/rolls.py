"""
骰子与判定结果数据模型
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Difficulty(str, Enum):
    """难度预设"""

    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"
    VERY_HARD = "very_hard"


class OutcomeTier(str, Enum):
    """d20 判定结果档位"""

    CRITICAL = "critical"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"

    @property
    def rank(self) -> int:
        """档位高低（failure=0 ... critical=3）"""
        return _TIER_RANK[self]


_TIER_RANK = {
    OutcomeTier.FAILURE: 0,
    OutcomeTier.PARTIAL: 1,
    OutcomeTier.SUCCESS: 2,
    OutcomeTier.CRITICAL: 3,
}


@dataclass
class RollResult:
    """一次完整 d20 判定"""

    roll: int  # 骰出的值
    bonus: int  # 属性加值
    total: int  # 总值
    tier: OutcomeTier
    is_nat20: bool = False
    is_nat1: bool = False

    def to_display_text(self) -> str:
        sign = "+" if self.bonus >= 0 else "-"
        return f"d20 ({self.roll}) {sign} {abs(self.bonus)} = {self.total} → {self.tier.value.upper()}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roll": self.roll,
            "bonus": self.bonus,
            "total": self.total,
            "tier": self.tier.value,
            "is_nat20": self.is_nat20,
            "is_nat1": self.is_nat1,
        }


@dataclass
class InitiativeRoll:
    """先攻骰结果"""

    roll: int
    bonus: int
    total: int


@dataclass
class BreakFreeResult:
    """挣脱束缚判定（d6 + brawn）"""

    roll: int
    bonus: int
    total: int
    success: bool


@dataclass
class RollRequest:
    """
    发给骰子UI的请求

    UI 只负责调用纯函数掷骰并把结果交回，档位由核心重新计算。
    """

    actor_id: str
    actor_name: str
    ability_id: str
    ability_name: str
    stat: Optional[str]
    stat_bonus: int
    difficulty: Difficulty = Difficulty.NORMAL
