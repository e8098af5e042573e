"""Static ability, attack and enemy descriptors (read-only to the combat core)."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .effect import EffectKind, EffectSpec
from .rolls import Difficulty


class TargetingMode(str, Enum):
    """Closed set of targeting modes an ability or attack can declare."""

    SELF = "self"
    ALLY = "ally"
    PARTY = "party"
    ENEMY = "enemy"
    AREA = "area"
    RANDOM = "random"
    LOWEST_HEALTH = "lowest_health"
    HIGHEST_HEALTH = "highest_health"
    HIGHEST_THREAT = "highest_threat"


class Ability(BaseModel):
    """Player ability or enemy/companion attack."""

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    damage: Optional[int] = Field(default=None, ge=0)
    damage_type: Optional[str] = None
    effect: Optional[EffectSpec] = None
    cooldown: Optional[int] = Field(default=None, ge=0)
    uses: Optional[int] = Field(default=None, ge=0)
    targeting: TargetingMode = TargetingMode.ENEMY
    stat: Optional[str] = None
    difficulty: Difficulty = Difficulty.NORMAL
    narration_hints: List[str] = Field(default_factory=list)

    @property
    def deals_damage(self) -> bool:
        return bool(self.damage)

    @property
    def is_heal(self) -> bool:
        return self.effect is not None and self.effect.type == EffectKind.HEAL

    @property
    def is_limited(self) -> bool:
        return self.uses is not None


class Trigger(BaseModel):
    """Special ability trigger; only health thresholds are supported."""

    type: Literal["health_below"] = "health_below"
    threshold: float = Field(..., gt=0, le=1)


class SpecialAbility(BaseModel):
    """Enemy special fired once per combat when its trigger is satisfied."""

    id: str
    name: str
    description: str = ""
    trigger: Trigger
    effect: EffectSpec
    narration_hints: List[str] = Field(default_factory=list)


class Tactics(BaseModel):
    opening_move: Optional[str] = None
    hints: List[str] = Field(default_factory=list)


class CompanionDescriptor(BaseModel):
    id: str
    name: str
    description: str = ""
    creature_type: str = "creature"
    health: int = Field(..., ge=1)
    attacks: List[Ability] = Field(default_factory=list)


class EnemyDescriptor(BaseModel):
    """Enemy data as stored in the bestiary."""

    id: str = Field(..., min_length=1)
    name: str
    short_name: Optional[str] = None
    description: str = ""
    personality: str = ""
    creature_type: str = "creature"
    health: int = Field(..., ge=1)
    stats: Dict[str, int] = Field(default_factory=dict)
    attacks: List[Ability] = Field(..., min_length=1)
    special_abilities: List[SpecialAbility] = Field(default_factory=list)
    tactics: Tactics = Field(default_factory=Tactics)
    companion: Optional[CompanionDescriptor] = None

    @property
    def display_name(self) -> str:
        return self.short_name or self.name

    def get_attack(self, attack_id: Optional[str]) -> Optional[Ability]:
        for attack in self.attacks:
            if attack.id == attack_id:
                return attack
        return None


class CharacterAbilities(BaseModel):
    """Per-character ability set: unlimited basic attacks plus limited-use specials."""

    basic_attacks: List[Ability] = Field(default_factory=list)
    special_abilities: List[Ability] = Field(default_factory=list)

    def all(self) -> List[Ability]:
        return [*self.basic_attacks, *self.special_abilities]


class AbilityOption(BaseModel):
    """Ability offered to the player together with its remaining uses."""

    ability: Ability
    uses_remaining: Optional[int] = None
    available: bool = True
