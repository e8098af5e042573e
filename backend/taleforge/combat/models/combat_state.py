"""
战斗状态数据模型

CombatState 是一场战斗的聚合根：战斗开始时创建，胜利/失败时销毁，不跨战斗持久化。
"""
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Set

from .ability import CompanionDescriptor, EnemyDescriptor
from .combatant import Combatant, CombatantKind
from .effect import Effect


class CombatPhase(str, Enum):
    """战斗阶段（状态机状态）"""

    INITIALIZING = "initializing"
    ENEMY_DECIDING = "enemy_deciding"
    ENEMY_NARRATION = "enemy_narration"
    ENEMY_RESOLUTION = "enemy_resolution"
    PLAYER_CHAR_SELECT = "player_char_select"
    PLAYER_ABILITY_SELECT = "player_ability_select"
    PLAYER_ROLLING = "player_rolling"
    PLAYER_RESOLUTION = "player_resolution"
    ROUND_END = "round_end"
    COMBAT_END = "combat_end"


@dataclass(frozen=True)
class InitiativeEntry:
    """先攻条目（回合开始后不可变）"""

    combatant_id: str
    name: str
    kind: CombatantKind
    rolled: int
    bonus: int
    total: int

    def to_display_text(self) -> str:
        return f"{self.name} ({self.rolled}+{self.bonus}={self.total})"


@dataclass
class CombatLogEntry:
    """战斗日志条目"""

    round: int
    actor: str
    action: str
    target: str = ""
    result: Optional[str] = None
    damage: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def to_display_text(self) -> str:
        text = f"Round {self.round}: {self.actor} used {self.action}"
        if self.target:
            text += f" on {self.target}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round": self.round,
            "actor": self.actor,
            "action": self.action,
            "target": self.target,
            "result": self.result,
            "damage": self.damage,
        }


@dataclass
class EnemyState:
    """敌人的战斗内状态"""

    combatant: Combatant
    descriptor: EnemyDescriptor
    active_effects: List[Effect] = field(default_factory=list)
    used_specials: Set[str] = field(default_factory=set)
    transformed: Optional[str] = None

    @property
    def id(self) -> str:
        return self.combatant.id


@dataclass
class CompanionState:
    """敌方随从（每次敌人行动后追加一次行动）"""

    combatant: Combatant
    descriptor: CompanionDescriptor
    active: bool = True


@dataclass
class CombatState:
    """
    战斗状态聚合根

    只有编排器以及它调用的规则/效果模块可以修改这里的字段。
    """

    # ===== 基础信息 =====
    combat_id: str
    enemy: EnemyState
    companion: Optional[CompanionState] = None

    # ===== 回合 =====
    round: int = 1
    phase: CombatPhase = CombatPhase.INITIALIZING
    initiative_order: List[InitiativeEntry] = field(default_factory=list)
    current_turn_index: int = 0

    # ===== 资源 =====
    ability_usage: Dict[str, Dict[str, int]] = field(default_factory=dict)
    cooldowns: Dict[str, int] = field(default_factory=dict)

    # ===== 效果账本 =====
    character_effects: Dict[str, List[Effect]] = field(default_factory=dict)
    party_effects: List[Effect] = field(default_factory=list)

    # ===== 固有减伤表（按单位ID） =====
    innate_reductions: Dict[str, int] = field(default_factory=dict)

    # ===== 战斗日志（环形缓冲） =====
    log_size: int = 5
    combat_log: Deque[CombatLogEntry] = field(default_factory=deque)

    def __post_init__(self):
        self.combat_log = deque(self.combat_log, maxlen=self.log_size)

    def add_log(self, entry: CombatLogEntry) -> None:
        """添加日志（超出容量时丢弃最旧条目）"""
        self.combat_log.append(entry)

    def recent_log(self, limit: int = 3) -> List[CombatLogEntry]:
        return list(self.combat_log)[-limit:]

    def get_usage(self, character_id: str, ability_id: str) -> int:
        return self.ability_usage.get(character_id, {}).get(ability_id, 0)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "combat_id": self.combat_id,
            "round": self.round,
            "phase": self.phase.value,
            "current_turn_index": self.current_turn_index,
            "initiative_order": [entry.combatant_id for entry in self.initiative_order],
            "enemy": {
                **self.enemy.combatant.to_dict(),
                "active_effects": [e.to_dict() for e in self.enemy.active_effects],
                "transformed": self.enemy.transformed,
            },
            "party_effects": [e.to_dict() for e in self.party_effects],
            "character_effects": {
                cid: [e.to_dict() for e in effects]
                for cid, effects in self.character_effects.items()
            },
            "cooldowns": dict(self.cooldowns),
            "combat_log": [entry.to_dict() for entry in self.combat_log],
        }
