import random

from taleforge.combat.models import Combatant, CombatantKind
from taleforge.combat.target_resolver import TargetResolver


def _member(cid: str, health: int, **stats) -> Combatant:
    return Combatant(
        id=cid,
        name=cid.title(),
        kind=CombatantKind.PARTY,
        max_health=10,
        current_health=health,
        stats=stats,
    )


def _party():
    return [
        _member("brannoc", 9, brawn=3),
        _member("isolde", 4, wits=3, cunning=2),
        _member("pim", 7, cunning=3),
    ]


def test_literal_id_resolves_to_that_member():
    party = _party()
    resolved = TargetResolver().resolve("isolde", party, party)
    assert resolved is party[1]


def test_literal_id_of_downed_member_resolves_to_none():
    party = _party()
    party[1].take_damage(10)
    active = [m for m in party if not m.is_down()]

    assert TargetResolver().resolve("isolde", party, active) is None


def test_aoe_tokens_return_every_active_member():
    party = _party()
    party[2].take_damage(10)
    active = [m for m in party if not m.is_down()]
    resolver = TargetResolver()

    for token in ("party", "all", "grouped", "aoe", "area"):
        resolved = resolver.resolve(token, party, active)
        assert TargetResolver.is_aoe(resolved)
        assert [m.id for m in resolved] == ["brannoc", "isolde"]


def test_health_based_modes():
    party = _party()
    resolver = TargetResolver()
    assert resolver.resolve("lowest_health", party, party).id == "isolde"
    assert resolver.resolve("highest_health", party, party).id == "brannoc"


def test_highest_threat_ties_keep_party_order():
    party = _party()
    # brannoc brawn 3 与 pim cunning 3 同值，取靠前者
    assert TargetResolver().resolve("highest_threat", party, party).id == "brannoc"


def test_random_mode_uses_injected_rng():
    party = _party()
    picks = {
        TargetResolver(rng=random.Random(seed)).resolve("random", party, party).id
        for seed in range(30)
    }
    assert picks <= {"brannoc", "isolde", "pim"}
    assert len(picks) > 1


def test_self_tokens_return_the_actor():
    party = _party()
    actor = party[2]
    resolver = TargetResolver()
    assert resolver.resolve("self", party, party, actor=actor) is actor
    assert resolver.resolve("acting", party, party, actor=actor) is actor


def test_unknown_token_falls_back_to_first_active():
    party = _party()
    party[0].take_damage(10)
    active = [m for m in party if not m.is_down()]
    assert TargetResolver().resolve("whoever", party, active).id == "isolde"


def test_no_target_when_party_is_wiped_or_token_missing():
    party = _party()
    resolver = TargetResolver()
    assert resolver.resolve(None, party, party) is None
    assert resolver.resolve("lowest_health", party, []) is None
    assert resolver.resolve("party", party, []) is None
