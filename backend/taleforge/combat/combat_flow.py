"""
战斗流程状态机

只记录当前阶段、先攻顺序和回合指针；阶段转换全部由编排器驱动。
"""
import logging
import random
from typing import Callable, List, Optional, Sequence

from .effects import EffectManager
from .errors import CombatStateError
from .models.combat_state import CombatPhase, CombatState, InitiativeEntry
from .models.combatant import Combatant, HealthStatus
from .rules import roll_initiative, sort_by_initiative

logger = logging.getLogger(__name__)

INITIATIVE_STAT = "cunning"


class CombatFlow:
    """
    回合/轮次状态机

    初始阶段 INITIALIZING，终态 COMBAT_END（只能通过 end_combat 进入，之后不能再转换）。
    先攻顺序在战斗开始时掷出后冻结，不在战斗中重新排序。
    """

    def __init__(
        self,
        state: CombatState,
        effects: Optional[EffectManager] = None,
        rng: Optional[random.Random] = None,
        on_phase_change: Optional[Callable[[CombatPhase], None]] = None,
    ):
        self.state = state
        self.effects = effects or EffectManager()
        self._rng = rng
        self.on_phase_change = on_phase_change

    # ===== 阶段 =====

    @property
    def phase(self) -> CombatPhase:
        return self.state.phase

    def is_over(self) -> bool:
        return self.state.phase == CombatPhase.COMBAT_END

    def set_phase(self, phase: CombatPhase) -> None:
        """切换阶段（COMBAT_END 之后禁止任何转换）"""
        if self.is_over():
            raise CombatStateError(f"combat {self.state.combat_id} already ended")
        if phase == CombatPhase.COMBAT_END:
            raise CombatStateError("use end_combat() to finish a combat")
        self._set(phase)

    def _set(self, phase: CombatPhase) -> None:
        self.state.phase = phase
        if self.on_phase_change:
            self.on_phase_change(phase)

    # ===== 先攻 =====

    def roll_all_initiative(
        self,
        party: Sequence[Combatant],
        enemy: Combatant,
    ) -> List[InitiativeEntry]:
        """
        为所有存活队员和敌人掷先攻（d20 + cunning）

        Returns:
            List[InitiativeEntry]: 排好序的先攻顺序，同时重置回合指针
        """
        if self.is_over():
            raise CombatStateError(f"combat {self.state.combat_id} already ended")

        entries = []
        for combatant in [*party, enemy]:
            result = roll_initiative(combatant.stat(INITIATIVE_STAT), rng=self._rng)
            entries.append(
                InitiativeEntry(
                    combatant_id=combatant.id,
                    name=combatant.name,
                    kind=combatant.kind,
                    rolled=result.roll,
                    bonus=result.bonus,
                    total=result.total,
                )
            )

        self.state.initiative_order = sort_by_initiative(entries, rng=self._rng)
        self.state.current_turn_index = 0
        logger.info(
            "[CombatFlow] initiative: %s",
            ", ".join(entry.combatant_id for entry in self.state.initiative_order),
        )
        return list(self.state.initiative_order)

    def initiative_order_text(self) -> str:
        return "\n".join(
            f"{index + 1}. {entry.to_display_text()}"
            for index, entry in enumerate(self.state.initiative_order)
        )

    # ===== 回合指针 =====

    def current_combatant(self) -> Optional[InitiativeEntry]:
        """当前行动者（本轮结束时为 None）"""
        if self.is_round_complete():
            return None
        return self.state.initiative_order[self.state.current_turn_index]

    def is_enemy_turn(self) -> bool:
        current = self.current_combatant()
        return current is not None and current.combatant_id == self.state.enemy.id

    def advance_turn(self) -> Optional[InitiativeEntry]:
        self.state.current_turn_index += 1
        return self.current_combatant()

    def is_round_complete(self) -> bool:
        return self.state.current_turn_index >= len(self.state.initiative_order)

    def start_new_round(self) -> int:
        """
        结束本轮：效果/冷却各减1，轮次+1，指针归零

        Returns:
            int: 新的轮次
        """
        self.set_phase(CombatPhase.ROUND_END)
        self.effects.tick(self.state)
        self.state.round += 1
        self.state.current_turn_index = 0
        logger.debug("[CombatFlow] round %s begins", self.state.round)
        return self.state.round

    # ===== 胜负 =====

    def check_victory(self) -> bool:
        return self.state.enemy.combatant.status == HealthStatus.DEFEATED

    @staticmethod
    def check_defeat(active_party: Sequence[Combatant]) -> bool:
        return len(active_party) == 0

    def end_combat(self) -> None:
        """进入终态（幂等）"""
        if self.is_over():
            return
        self._set(CombatPhase.COMBAT_END)
