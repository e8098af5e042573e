import json

import pytest

from taleforge.combat import CombatDataRepository, CombatStateError
from taleforge.combat.models import EffectKind, HealthStatus, TargetingMode
from taleforge.state import GameState


def test_bundled_data_loads():
    repository = CombatDataRepository()

    witch = repository.get_enemy("bog_witch")
    assert witch is not None
    assert witch.display_name == "Morwenna"
    assert witch.tactics.opening_move == "strangling_vines"
    assert witch.companion is not None
    assert [s.id for s in witch.special_abilities] == ["barkskin", "marsh_form"]
    assert witch.special_abilities[1].effect.type == EffectKind.TRANSFORM

    party = repository.load_party()
    assert [member.id for member in party] == ["brannoc", "isolde", "pim"]
    assert party[0].innate_damage_reduction == 1

    abilities = repository.abilities()
    assert set(abilities) == {"brannoc", "isolde", "pim"}
    iron_wall = next(a for a in abilities["brannoc"].special_abilities if a.id == "iron_wall")
    assert iron_wall.targeting == TargetingMode.PARTY
    assert iron_wall.effect.magnitude == 1


def test_get_enemy_matches_by_name_slug():
    repository = CombatDataRepository()
    assert repository.get_enemy("Bog Witch") is not None
    assert repository.get_enemy("nobody") is None


def test_invalid_entries_are_skipped(tmp_path):
    (tmp_path / "enemies.json").write_text(
        json.dumps(
            {
                "enemies": [
                    {"id": "rat", "name": "Rat", "health": 3, "attacks": [{"id": "bite", "name": "Bite", "damage": 1}]},
                    {"id": "ghost", "name": "Ghost", "health": 5, "attacks": []},
                ]
            }
        ),
        encoding="utf-8",
    )
    (tmp_path / "party.json").write_text(
        json.dumps({"party": [{"id": "solo", "max_health": 6}, {"name": "no id"}]}),
        encoding="utf-8",
    )
    repository = CombatDataRepository(tmp_path)

    assert [enemy.id for enemy in repository.list_enemies()] == ["rat"]
    assert [member.id for member in repository.load_party()] == ["solo"]
    assert repository.abilities() == {}


def test_broken_json_reads_as_empty(tmp_path):
    (tmp_path / "enemies.json").write_text("{not json", encoding="utf-8")
    assert CombatDataRepository(tmp_path).list_enemies() == []


def test_game_state_from_repository_tracks_ability_uses():
    game_state = GameState.from_repository(CombatDataRepository())
    state = game_state.init_combat("bog_witch")

    assert state.companion is not None
    assert state.innate_reductions == {"brannoc": 1}
    assert state.enemy.combatant.max_health == 40

    def uses(option_id):
        options = {o.ability.id: o for o in game_state.available_abilities("brannoc")}
        return options[option_id]

    assert uses("hammer_swing").uses_remaining is None
    assert uses("skull_crack").uses_remaining == 1

    assert game_state.use_ability("brannoc", "skull_crack") == 1
    assert uses("skull_crack").available is False

    assert game_state.release_ability("brannoc", "skull_crack") == 0
    assert game_state.release_ability("brannoc", "skull_crack") == 0
    assert uses("skull_crack").available is True


def test_party_records_outlive_the_combat():
    game_state = GameState.from_repository(CombatDataRepository())
    game_state.init_combat("bog_witch")
    game_state.get_member("pim").take_damage(100)
    game_state.end_combat()

    assert game_state.combat is None
    assert game_state.get_member("pim").status == HealthStatus.DOWN
    assert [m.id for m in game_state.active_party()] == ["brannoc", "isolde"]
    assert not game_state.is_party_wiped()


def test_unknown_enemy_or_missing_combat_raises():
    game_state = GameState.from_repository(CombatDataRepository())
    with pytest.raises(CombatStateError):
        game_state.init_combat("dragon")
    with pytest.raises(CombatStateError):
        game_state.use_ability("brannoc", "skull_crack")
