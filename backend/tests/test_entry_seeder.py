"""
Entry seeding: bracket sizing, fold order, bye placement and force-gated regeneration.
"""
import pytest
from sqlmodel import Session, select

from bracket_engine.models.bracket import Bracket, BracketStatus
from bracket_engine.models.bracket_entry import BracketEntry
from bracket_engine.models.bracket_game import BracketGame
from bracket_engine.models.seeding_score import SeedingScore
from bracket_engine.services.bracket_builder import generate_games
from bracket_engine.services.entry_seeder import (
    assign_seed_positions,
    bracket_size_for,
    generate_entries,
    next_power_of_two,
    standard_seed_order,
)
from bracket_engine.services.errors import ConflictError, ValidationError
from bracket_engine.services.seeding_rankings import recalculate_rankings


class TestBracketSize:
    def test_next_power_of_two(self):
        assert [next_power_of_two(n) for n in (1, 2, 3, 5, 9, 33)] == [1, 2, 4, 8, 16, 64]

    def test_clamped_between_4_and_64(self):
        assert bracket_size_for(1) == 4
        assert bracket_size_for(4) == 4
        assert bracket_size_for(5) == 8
        assert bracket_size_for(64) == 64
        assert bracket_size_for(100) == 64

    def test_bye_count_for_every_team_count(self):
        for team_count in range(1, 65):
            size = bracket_size_for(team_count)
            seeded = assign_seed_positions(list(range(team_count)), size)
            assert len(seeded) == size
            assert seeded.count(None) == size - team_count


class TestStandardSeedOrder:
    def test_4(self):
        assert standard_seed_order(4) == [1, 4, 2, 3]

    def test_8(self):
        assert standard_seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]

    def test_16(self):
        assert standard_seed_order(16) == [1, 16, 8, 9, 4, 13, 5, 12, 2, 15, 7, 10, 3, 14, 6, 11]

    def test_pairs_sum_to_size_plus_one(self):
        for n in (4, 8, 16, 32, 64):
            order = standard_seed_order(n)
            assert sorted(order) == list(range(1, n + 1))
            assert all(order[i] + order[i + 1] == n + 1 for i in range(0, n, 2))

    def test_top_two_seeds_in_opposite_halves(self):
        for n in (4, 8, 16, 32, 64):
            order = standard_seed_order(n)
            assert 1 in order[: n // 2]
            assert 2 in order[n // 2:]


def _bracket(session: Session, event_id: int, size: int = 8, name: str = "Main", **kwargs) -> Bracket:
    bracket = Bracket(event_id=event_id, name=name, bracket_size=size, **kwargs)
    session.add(bracket)
    session.commit()
    session.refresh(bracket)
    return bracket


def _entries(session: Session, bracket_id: int):
    return session.exec(
        select(BracketEntry).where(BracketEntry.bracket_id == bracket_id).order_by(BracketEntry.seed_position)
    ).all()


class TestGenerateEntries:
    def test_five_teams_fill_eight_with_three_byes(self, session: Session, make_event):
        event = make_event(team_count=5)
        bracket = _bracket(session, event.id)

        result = generate_entries(session, bracket.id)

        assert result == {"entries_created": 8, "bye_count": 3, "team_count": 5, "bracket_size": 8}
        entries = _entries(session, bracket.id)
        assert [e.seed_position for e in entries] == list(range(1, 9))
        byes = [e.seed_position for e in entries if e.is_bye]
        assert byes == [6, 7, 8]
        assert all(e.is_bye == (e.team_id is None) for e in entries)

    def test_byes_face_the_top_seeds(self, session: Session, make_event):
        event = make_event(team_count=5)
        bracket = _bracket(session, event.id)
        generate_entries(session, bracket.id)

        bye_positions = {e.seed_position for e in _entries(session, bracket.id) if e.is_bye}
        order = standard_seed_order(8)
        opponents = {order[i ^ 1] for i, seed in enumerate(order) if seed in bye_positions}
        assert opponents == {1, 2, 3}

    def test_seeds_follow_rankings(self, session: Session, make_event, teams_of):
        event = make_event(team_count=4)
        teams = teams_of(event.id)
        for team, score in zip(teams, (10, 40, 30, 20)):
            session.add(SeedingScore(team_id=team.id, round_number=1, score=score))
        session.commit()
        recalculate_rankings(session, event.id)
        bracket = _bracket(session, event.id, size=4)

        generate_entries(session, bracket.id)

        seeded = [e.team_id for e in _entries(session, bracket.id)]
        assert seeded == [teams[1].id, teams[2].id, teams[3].id, teams[0].id]

    def test_team_number_order_without_rankings(self, session: Session, make_event, teams_of):
        event = make_event(team_count=4)
        teams = teams_of(event.id)
        bracket = _bracket(session, event.id, size=4)

        generate_entries(session, bracket.id)

        assert [e.team_id for e in _entries(session, bracket.id)] == [t.id for t in teams]

    def test_actual_team_count_limits_seeded_teams(self, session: Session, make_event):
        event = make_event(team_count=8)
        bracket = _bracket(session, event.id, actual_team_count=6)

        result = generate_entries(session, bracket.id)

        assert result["team_count"] == 6
        assert result["bye_count"] == 2

    def test_teams_in_other_brackets_are_skipped(self, session: Session, make_event, teams_of):
        event = make_event(team_count=6)
        teams = teams_of(event.id)
        first = _bracket(session, event.id, size=4, name="Gold")
        generate_entries(session, first.id)
        second = _bracket(session, event.id, size=4, name="Silver")

        result = generate_entries(session, second.id)

        assert result["team_count"] == 2
        seeded = [e.team_id for e in _entries(session, second.id) if e.team_id]
        assert seeded == [teams[4].id, teams[5].id]

    def test_explicit_team_ids_overlapping_another_bracket(self, session: Session, make_event, teams_of):
        event = make_event(team_count=4)
        teams = teams_of(event.id)
        first = _bracket(session, event.id, size=4, name="Gold")
        generate_entries(session, first.id, team_ids=[teams[0].id, teams[1].id])
        second = _bracket(session, event.id, size=4, name="Silver")

        with pytest.raises(ConflictError) as exc:
            generate_entries(session, second.id, team_ids=[teams[1].id, teams[2].id])

        assert exc.value.conflicts == [
            {"team_id": teams[1].id, "team_name": "Team 2", "bracket_id": first.id, "bracket_name": "Gold"}
        ]

    def test_no_teams_is_a_validation_error(self, session: Session, make_event):
        event = make_event(team_count=0)
        bracket = _bracket(session, event.id)
        with pytest.raises(ValidationError):
            generate_entries(session, bracket.id)

    def test_existing_entries_need_force(self, session: Session, make_event):
        event = make_event(team_count=4)
        bracket = _bracket(session, event.id, size=4)
        generate_entries(session, bracket.id)

        with pytest.raises(ConflictError) as exc:
            generate_entries(session, bracket.id)
        assert exc.value.context["entries_count"] == 4

    def test_force_replaces_entries_and_games(self, session: Session, make_event):
        event = make_event(team_count=4)
        bracket = _bracket(session, event.id, size=4)
        generate_entries(session, bracket.id)
        generate_games(session, bracket.id)
        bracket.status = BracketStatus.in_progress
        session.add(bracket)
        session.commit()

        result = generate_entries(session, bracket.id, force=True)

        assert result["entries_created"] == 4
        assert len(_entries(session, bracket.id)) == 4
        games = session.exec(select(BracketGame).where(BracketGame.bracket_id == bracket.id)).all()
        assert games == []
        session.refresh(bracket)
        assert bracket.status == BracketStatus.setup
