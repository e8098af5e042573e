"""
目标解析

把敌人决策里的目标记号（角色ID / 目标模式）映射到具体的队员。
"""
import random
from typing import List, Optional, Sequence, Union

from .models.combatant import Combatant

Resolved = Union[Combatant, List[Combatant], None]

SELF_TOKENS = ("self", "acting")
AOE_TOKENS = ("party", "all", "grouped", "aoe", "area")


class TargetResolver:
    """
    目标解析器

    结果为单个单位、列表（范围攻击）或 None（没有合法目标，调用方跳过效果）。
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng

    def resolve(
        self,
        token: Optional[str],
        full_party: Sequence[Combatant],
        active_party: Sequence[Combatant],
        actor: Optional[Combatant] = None,
    ) -> Resolved:
        """
        解析目标记号

        Args:
            token: 目标记号
            full_party: 全部队员（用于按ID查找）
            active_party: 未倒地的队员
            actor: 行动者（self/acting 记号使用）

        Returns:
            Combatant | List[Combatant] | None
        """
        if not token:
            return None

        if token in SELF_TOKENS:
            return actor

        # 直接指定角色ID：倒地的角色不再是合法目标
        for member in full_party:
            if member.id == token:
                return None if member.is_down() else member

        if not active_party:
            return None

        if token in AOE_TOKENS:
            return list(active_party)
        if token == "lowest_health":
            return self.lowest_health(active_party)
        if token == "highest_health":
            return self.highest_health(active_party)
        if token == "highest_threat":
            return self.highest_threat(active_party)
        if token == "random":
            return self.random_member(active_party)

        # 未知目标模式：取第一个存活队员
        return active_party[0]

    @staticmethod
    def is_aoe(resolved: Resolved) -> bool:
        """解析结果是否为范围目标"""
        return isinstance(resolved, list)

    @staticmethod
    def lowest_health(active_party: Sequence[Combatant]) -> Combatant:
        return min(active_party, key=lambda member: member.current_health)

    @staticmethod
    def highest_health(active_party: Sequence[Combatant]) -> Combatant:
        return max(active_party, key=lambda member: member.current_health)

    @staticmethod
    def highest_threat(active_party: Sequence[Combatant]) -> Combatant:
        """威胁值 = max(brawn, cunning)，同值取靠前的队员"""
        return max(
            active_party,
            key=lambda member: max(member.stat("brawn"), member.stat("cunning")),
        )

    def random_member(self, active_party: Sequence[Combatant]) -> Combatant:
        rng = self._rng if self._rng is not None else random.SystemRandom()
        return rng.choice(list(active_party))
