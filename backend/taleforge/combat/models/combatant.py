"""
战斗单位数据模型
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class CombatantKind(str, Enum):
    """战斗单位类型"""

    PARTY = "party"
    ENEMY = "enemy"
    COMPANION = "companion"  # 敌方随从


class HealthStatus(str, Enum):
    """生命状态"""

    HEALTHY = "healthy"
    WOUNDED = "wounded"
    CRITICAL = "critical"
    DOWN = "down"  # 队员倒地（终态）
    DEFEATED = "defeated"  # 敌人/随从被击败（终态）


TERMINAL_STATUSES = (HealthStatus.DOWN, HealthStatus.DEFEATED)


@dataclass
class Combatant:
    """
    战斗单位

    队员记录归属于 GameState，战斗核心只通过这里的方法修改生命值和状态：
    - 0 <= current_health <= max_health
    - 生命值归零后进入终态（down/defeated），只能由显式复活解除
    """

    # ===== 基础信息 =====
    id: str
    name: str
    kind: CombatantKind

    # ===== 生命值 =====
    max_health: int
    current_health: Optional[int] = None  # None 表示满血
    status: HealthStatus = HealthStatus.HEALTHY

    # ===== 属性（brawn / cunning / ...） =====
    stats: Dict[str, int] = field(default_factory=dict)

    # ===== 叙事用 =====
    description: str = ""
    trait: Optional[str] = None

    # ===== 固有减伤（数据驱动，战斗开始时汇总到 CombatState.innate_reductions） =====
    innate_damage_reduction: int = 0

    def __post_init__(self):
        if self.current_health is None:
            self.current_health = self.max_health
        self.current_health = max(0, min(self.current_health, self.max_health))
        self.refresh_status()

    # ===== 便捷方法 =====

    def is_party(self) -> bool:
        """是否是队员"""
        return self.kind == CombatantKind.PARTY

    def is_down(self) -> bool:
        """是否已进入终态"""
        return self.status in TERMINAL_STATUSES

    def stat(self, name: Optional[str]) -> int:
        """获取属性加值（缺省为0）"""
        if not name:
            return 0
        return self.stats.get(name, 0)

    def refresh_status(self) -> HealthStatus:
        """根据生命比例重新计算状态（终态保持不变）"""
        from ..rules import health_status

        if self.is_down():
            return self.status

        derived = health_status(self.current_health, self.max_health)
        if derived == HealthStatus.DEFEATED and self.is_party():
            derived = HealthStatus.DOWN
        self.status = derived
        return self.status

    def take_damage(self, amount: int) -> int:
        """
        受到伤害

        Args:
            amount: 伤害值

        Returns:
            int: 实际受到的伤害（不会为负，终态单位不再受伤）
        """
        if amount <= 0 or self.is_down():
            return 0

        actual_damage = min(amount, self.current_health)
        self.current_health -= actual_damage
        self.refresh_status()
        return actual_damage

    def heal(self, amount: int) -> int:
        """
        恢复生命值（不能复活终态单位）

        Returns:
            int: 实际恢复的量
        """
        if amount <= 0 or self.is_down():
            return 0

        actual_heal = min(amount, self.max_health - self.current_health)
        self.current_health += actual_heal
        self.refresh_status()
        return actual_heal

    def boost_health(self, amount: int) -> None:
        """同时提升最大和当前生命值（变身）"""
        if amount <= 0:
            return
        self.max_health += amount
        self.current_health += amount
        self.refresh_status()

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于序列化）"""
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "current_health": self.current_health,
            "max_health": self.max_health,
            "status": self.status.value,
            "stats": dict(self.stats),
        }
