"""Combat data repository for the bestiary, ability catalog and party roster.

Source: JSON files under ``settings.data_dir`` (bundled ``taleforge/data`` by default).
Entries are validated into pydantic models; malformed entries are skipped with a warning.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..config import settings
from .models.ability import CharacterAbilities, EnemyDescriptor
from .models.combatant import Combatant, CombatantKind

logger = logging.getLogger(__name__)


def _safe_slug(value: str) -> str:
    text = (value or "").strip().lower()
    if not text:
        return ""
    out = []
    for ch in text:
        if ch.isalnum() or ch in ("_", "-"):
            out.append(ch)
        elif ch.isspace() or ch in ("/", "\\", ":", "|", "."):
            out.append("_")
    slug = "".join(out).strip("_")
    while "__" in slug:
        slug = slug.replace("__", "_")
    return slug


class CombatDataRepository:
    """Read enemies, per-character abilities and the party from local JSON."""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None) -> None:
        self.data_dir = Path(data_dir or settings.data_dir)
        self._cache: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_enemies(self) -> List[EnemyDescriptor]:
        return list(self._enemies().values())

    def get_enemy(self, enemy_id: str) -> Optional[EnemyDescriptor]:
        enemies = self._enemies()
        key = _safe_slug(enemy_id)
        if key in enemies:
            return enemies[key]
        for enemy in enemies.values():
            if _safe_slug(enemy.name) == key:
                return enemy
        return None

    def abilities(self) -> Dict[str, CharacterAbilities]:
        if "abilities" not in self._cache:
            payload = self._read("abilities.json").get("characters", {})
            catalog: Dict[str, CharacterAbilities] = {}
            for character_id, entry in payload.items():
                try:
                    catalog[character_id] = CharacterAbilities.model_validate(entry)
                except ValidationError as exc:
                    logger.warning("[CombatData] skip abilities for %s: %s", character_id, exc)
            self._cache["abilities"] = catalog
        return dict(self._cache["abilities"])

    def load_party(self) -> List[Combatant]:
        """Fresh party records (callers own their lifecycle)."""
        party: List[Combatant] = []
        for entry in self._read("party.json").get("party", []):
            try:
                party.append(
                    Combatant(
                        id=entry["id"],
                        name=entry.get("name", entry["id"]),
                        kind=CombatantKind.PARTY,
                        max_health=int(entry["max_health"]),
                        current_health=entry.get("current_health"),
                        stats=dict(entry.get("stats", {})),
                        description=entry.get("description", ""),
                        trait=entry.get("trait"),
                        innate_damage_reduction=int(entry.get("innate_damage_reduction", 0)),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("[CombatData] skip party entry %r: %s", entry, exc)
        return party

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _enemies(self) -> Dict[str, EnemyDescriptor]:
        if "enemies" not in self._cache:
            enemies: Dict[str, EnemyDescriptor] = {}
            for entry in self._read("enemies.json").get("enemies", []):
                try:
                    enemy = EnemyDescriptor.model_validate(entry)
                except ValidationError as exc:
                    logger.warning("[CombatData] skip enemy %r: %s", entry.get("id"), exc)
                    continue
                enemies[_safe_slug(enemy.id)] = enemy
            logger.info("[CombatData] loaded %s enemies from %s", len(enemies), self.data_dir)
            self._cache["enemies"] = enemies
        return self._cache["enemies"]

    def _read(self, filename: str) -> Dict[str, Any]:
        path = self.data_dir / filename
        if not path.exists():
            logger.warning("[CombatData] missing data file: %s", path)
            return {}
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to load %s: %s", path, exc)
            return {}
        return payload if isinstance(payload, dict) else {}
