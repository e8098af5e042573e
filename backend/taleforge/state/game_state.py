"""
游戏状态

显式构造、注入到编排器的 GameState：持有队员记录、敌人/技能目录和当前战斗状态。
队员记录的生命周期不归战斗核心所有，跨战斗保留。
"""
import logging
import uuid
from typing import Dict, List, Optional, Sequence

from ..combat.data_repository import CombatDataRepository
from ..combat.errors import CombatStateError
from ..combat.models.ability import Ability, AbilityOption, CharacterAbilities, EnemyDescriptor
from ..combat.models.combat_state import CombatState, CompanionState, EnemyState
from ..combat.models.combatant import Combatant, CombatantKind
from ..config import settings

logger = logging.getLogger(__name__)


class GameState:
    """队伍 + 目录 + 当前战斗"""

    def __init__(
        self,
        party: Sequence[Combatant],
        enemies: Dict[str, EnemyDescriptor],
        abilities: Optional[Dict[str, CharacterAbilities]] = None,
        log_size: Optional[int] = None,
    ):
        self.party: List[Combatant] = list(party)
        self.enemies = dict(enemies)
        self.abilities = dict(abilities or {})
        self.log_size = log_size or settings.combat_log_size
        self.combat: Optional[CombatState] = None

    @classmethod
    def from_repository(cls, repository: CombatDataRepository) -> "GameState":
        return cls(
            party=repository.load_party(),
            enemies={enemy.id: enemy for enemy in repository.list_enemies()},
            abilities=repository.abilities(),
        )

    # ===== 队伍 =====

    def get_member(self, character_id: str) -> Optional[Combatant]:
        for member in self.party:
            if member.id == character_id:
                return member
        return None

    def active_party(self) -> List[Combatant]:
        """未倒地的队员"""
        return [member for member in self.party if not member.is_down()]

    def is_party_wiped(self) -> bool:
        return not self.active_party()

    # ===== 战斗 =====

    def get_enemy(self, enemy_id: str) -> Optional[EnemyDescriptor]:
        return self.enemies.get(enemy_id)

    def init_combat(self, enemy_id: str) -> CombatState:
        """
        创建新的战斗状态

        Raises:
            CombatStateError: 未知敌人
        """
        descriptor = self.get_enemy(enemy_id)
        if descriptor is None:
            raise CombatStateError(f"unknown enemy: {enemy_id}")

        enemy = Combatant(
            id=descriptor.id,
            name=descriptor.display_name,
            kind=CombatantKind.ENEMY,
            max_health=descriptor.health,
            stats=dict(descriptor.stats),
            description=descriptor.description,
        )

        companion = None
        if descriptor.companion is not None:
            companion = CompanionState(
                combatant=Combatant(
                    id=descriptor.companion.id,
                    name=descriptor.companion.name,
                    kind=CombatantKind.COMPANION,
                    max_health=descriptor.companion.health,
                    description=descriptor.companion.description,
                ),
                descriptor=descriptor.companion,
            )

        self.combat = CombatState(
            combat_id=f"combat_{uuid.uuid4().hex[:8]}",
            enemy=EnemyState(combatant=enemy, descriptor=descriptor),
            companion=companion,
            innate_reductions={
                member.id: member.innate_damage_reduction
                for member in self.party
                if member.innate_damage_reduction
            },
            log_size=self.log_size,
        )
        return self.combat

    def end_combat(self) -> None:
        self.combat = None

    # ===== 技能 =====

    def abilities_for(self, character_id: str) -> CharacterAbilities:
        return self.abilities.get(character_id, CharacterAbilities())

    def find_ability(self, character_id: str, ability_id: str) -> Optional[Ability]:
        for ability in self.abilities_for(character_id).all():
            if ability.id == ability_id:
                return ability
        return None

    def available_abilities(self, character_id: str) -> List[AbilityOption]:
        """
        角色可选技能

        基础攻击无次数限制；特殊技能带剩余次数，用完后 available=False。
        """
        character_abilities = self.abilities_for(character_id)
        options = [AbilityOption(ability=ability) for ability in character_abilities.basic_attacks]

        for ability in character_abilities.special_abilities:
            if not ability.is_limited:
                options.append(AbilityOption(ability=ability))
                continue
            remaining = ability.uses - self.ability_usage(character_id, ability.id)
            options.append(
                AbilityOption(ability=ability, uses_remaining=remaining, available=remaining > 0)
            )
        return options

    def ability_usage(self, character_id: str, ability_id: str) -> int:
        if self.combat is None:
            return 0
        return self.combat.get_usage(character_id, ability_id)

    def use_ability(self, character_id: str, ability_id: str) -> int:
        """使用次数+1，返回新的次数"""
        if self.combat is None:
            raise CombatStateError("no active combat")
        usage = self.combat.ability_usage.setdefault(character_id, {})
        usage[ability_id] = usage.get(ability_id, 0) + 1
        return usage[ability_id]

    def release_ability(self, character_id: str, ability_id: str) -> int:
        """回滚一次使用（失败回合重试前调用）"""
        if self.combat is None:
            raise CombatStateError("no active combat")
        usage = self.combat.ability_usage.setdefault(character_id, {})
        usage[ability_id] = max(0, usage.get(ability_id, 0) - 1)
        return usage[ability_id]
