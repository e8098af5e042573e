"""
敌人AI系统（确定性兜底）

外部决策者不可用或返回非法动作时，用这里的规则树选出行动。
"""
import logging
from typing import Dict, List, Optional, Sequence

from .models.ability import Ability, EnemyDescriptor
from .models.decision import Decision, DecisionSource

logger = logging.getLogger(__name__)

DEFAULT_TARGET = "random"


def available_attacks(attacks: Sequence[Ability], cooldowns: Dict[str, int]) -> List[Ability]:
    """未在冷却中的攻击（无冷却字段的攻击永远可用）"""
    return [
        attack
        for attack in attacks
        if not attack.cooldown or cooldowns.get(attack.id, 0) == 0
    ]


def default_target(attack: Optional[Ability]) -> str:
    """攻击自带的目标模式"""
    if attack is None:
        return DEFAULT_TARGET
    return attack.targeting.value


class OpponentAI:
    """
    敌人AI

    设计原则：
    - 简单规则树，结果只取决于敌人数据、冷却和轮次
    - 永远不会让回合卡住：全部冷却时仍然返回第一个攻击
    """

    def __init__(self, descriptor: EnemyDescriptor):
        """
        初始化AI

        Args:
            descriptor: 敌人数据
        """
        self.descriptor = descriptor

    def decide_action(self, round_number: int, cooldowns: Dict[str, int]) -> Decision:
        """
        为敌人决定行动

        Args:
            round_number: 当前轮次
            cooldowns: 攻击冷却表

        Returns:
            Decision: 兜底决策
        """
        available = available_attacks(self.descriptor.attacks, cooldowns)

        # 1. 全部冷却：使用第一个攻击，不卡回合
        if not available:
            logger.warning("[OpponentAI] %s 所有攻击都在冷却，使用第一个攻击", self.descriptor.id)
            return self._create_decision(self.descriptor.attacks[0])

        # 2. 第一轮优先开场技
        opener = self._opening_move(available, round_number)
        if opener:
            return self._create_decision(opener)

        # 3. 第一个有伤害的攻击，否则第一个可用攻击
        damaging = next((attack for attack in available if attack.deals_damage), None)
        return self._create_decision(damaging or available[0])

    # ===== 私有方法 =====

    def _opening_move(self, available: List[Ability], round_number: int) -> Optional[Ability]:
        opening_id = self.descriptor.tactics.opening_move
        if round_number != 1 or not opening_id:
            return None
        return next((attack for attack in available if attack.id == opening_id), None)

    @staticmethod
    def _create_decision(attack: Ability) -> Decision:
        return Decision(
            action_id=attack.id,
            target=default_target(attack),
            source=DecisionSource.FALLBACK,
        )
