"""
状态效果数据模型
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field


class EffectType(str, Enum):
    """可挂在单位/全队上的计时状态"""

    RESTRAIN = "restrain"
    MARK = "mark"
    SHIELD = "shield"
    CONCEALMENT = "concealment"
    SLOW = "slow"
    DAMAGE_REDUCTION = "damage_reduction"
    ACCURACY_BOOST = "accuracy_boost"
    VULNERABLE = "vulnerable"
    HASTE = "haste"
    STUN = "stun"
    TAUNT = "taunt"
    STATIC_SHIELD = "static_shield"


class EffectKind(str, Enum):
    """技能效果种类：全部计时状态 + 即时效果（治疗/变身）"""

    RESTRAIN = "restrain"
    MARK = "mark"
    SHIELD = "shield"
    CONCEALMENT = "concealment"
    SLOW = "slow"
    DAMAGE_REDUCTION = "damage_reduction"
    ACCURACY_BOOST = "accuracy_boost"
    VULNERABLE = "vulnerable"
    HASTE = "haste"
    STUN = "stun"
    TAUNT = "taunt"
    STATIC_SHIELD = "static_shield"
    HEAL = "heal"
    TRANSFORM = "transform"


class EffectSpec(BaseModel):
    """技能/攻击描述里的效果（只读静态数据）"""

    type: EffectKind
    # 数据里可能写作 amount / reduction / bonus，统一成 magnitude
    magnitude: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("magnitude", "amount", "reduction", "bonus"),
    )
    duration: Optional[int] = Field(default=None, ge=1)
    health_boost: int = Field(default=0, ge=0)
    form: Optional[str] = None
    description: str = ""

    @property
    def is_status(self) -> bool:
        """是否会进入效果账本"""
        return self.type not in (EffectKind.HEAL, EffectKind.TRANSFORM)

    @property
    def status_type(self) -> EffectType:
        if not self.is_status:
            raise ValueError(f"{self.type.value} is not a timed status effect")
        return EffectType(self.type.value)


@dataclass
class Effect:
    """效果账本中的实例"""

    type: EffectType
    turns_remaining: int
    magnitude: Optional[int] = None
    source: str = ""  # 来源（谁施加的）

    @classmethod
    def from_spec(cls, spec: EffectSpec, source: str = "") -> "Effect":
        return cls(
            type=spec.status_type,
            turns_remaining=spec.duration if spec.duration is not None else 1,
            magnitude=spec.magnitude,
            source=source,
        )

    def tick(self) -> bool:
        """
        回合结束时调用，减少持续时间

        Returns:
            bool: 是否已过期
        """
        self.turns_remaining -= 1
        return self.turns_remaining <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "magnitude": self.magnitude,
            "turns_remaining": self.turns_remaining,
        }
