"""
Seeding rankings: top-2 average, 75/25 standing/score blend, full replace on recalculation.
"""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from bracket_engine.models.queue_item import QueueItem, QueueStatus
from bracket_engine.models.seeding_ranking import SeedingRanking
from bracket_engine.models.seeding_score import SeedingScore
from bracket_engine.services import queue_service
from bracket_engine.services.errors import NotFoundError, ValidationError
from bracket_engine.services.seeding_rankings import (
    TeamScores,
    compute_rankings,
    recalculate_rankings,
    record_seeding_score,
    seed_average,
    tiebreaker_value,
)


class TestSeedAverage:
    def test_mean_of_two_best(self):
        assert seed_average([10, 30, 20]) == 25.0

    def test_single_score_is_the_average(self):
        assert seed_average([None, 42, None]) == 42.0

    def test_no_scores(self):
        assert seed_average([None, None]) is None
        assert seed_average([]) is None


class TestTiebreaker:
    def test_third_best_when_three_rounds(self):
        assert tiebreaker_value([10, 30, 20]) == 10.0

    def test_sum_when_fewer_than_three(self):
        assert tiebreaker_value([10, 30, None]) == 40.0

    def test_none_without_scores(self):
        assert tiebreaker_value([None]) is None


class TestComputeRankings:
    def test_weighted_raw_score_and_unscored_last(self):
        rows = compute_rankings(
            [
                TeamScores(team_id=11, team_number=1, scores=[100, 80, 90]),
                TeamScores(team_id=12, team_number=2, scores=[90, 90, 10]),
                TeamScores(team_id=13, team_number=3, scores=[None, None, None]),
                TeamScores(team_id=14, team_number=4, scores=[50]),
            ]
        )

        assert [r.team_id for r in rows] == [11, 12, 14, 13]
        assert [r.seed_rank for r in rows] == [1, 2, 3, 4]

        top, second, third, unscored = rows
        assert top.raw_seed_score == pytest.approx(1.0)
        assert second.raw_seed_score == pytest.approx(0.75 * 2 / 3 + 0.25 * 90 / 95)
        assert third.raw_seed_score == pytest.approx(0.75 * 1 / 3 + 0.25 * 50 / 95)
        assert unscored.raw_seed_score == 0.0
        assert unscored.seed_average is None

    def test_tiebreaker_orders_equal_averages(self):
        rows = compute_rankings(
            [
                TeamScores(team_id=1, team_number=1, scores=[80, 80, 70]),
                TeamScores(team_id=2, team_number=2, scores=[80, 80, 75]),
            ]
        )
        assert [r.team_id for r in rows] == [2, 1]

    def test_team_number_breaks_exact_ties(self):
        rows = compute_rankings(
            [
                TeamScores(team_id=7, team_number=9, scores=[60, 60, 60]),
                TeamScores(team_id=8, team_number=3, scores=[60, 60, 60]),
            ]
        )
        assert [r.team_number for r in rows] == [3, 9]

    def test_all_zero_scores_have_no_score_ratio(self):
        rows = compute_rankings(
            [
                TeamScores(team_id=1, team_number=1, scores=[0, 0]),
                TeamScores(team_id=2, team_number=2, scores=[0]),
            ]
        )
        assert rows[0].raw_seed_score == pytest.approx(0.75)
        assert rows[1].raw_seed_score == pytest.approx(0.375)


def _score_all(session: Session, event_id: int, teams, table):
    for team in teams:
        for round_number, score in enumerate(table.get(team.team_number, []), start=1):
            session.add(SeedingScore(team_id=team.id, round_number=round_number, score=score))
    session.commit()


class TestRecalculateRankings:
    def test_recalculation_is_idempotent(self, session: Session, make_event, teams_of):
        event = make_event(team_count=5)
        teams = teams_of(event.id)
        _score_all(session, event.id, teams, {1: [50, 60, 70], 2: [90, 10, 40], 3: [70, 70], 5: [30]})

        first = [(r.team_id, r.seed_rank, r.raw_seed_score) for r in recalculate_rankings(session, event.id)]
        second = [(r.team_id, r.seed_rank, r.raw_seed_score) for r in recalculate_rankings(session, event.id)]

        assert first == second
        assert len(first) == 5
        stored = session.exec(select(SeedingRanking).where(SeedingRanking.event_id == event.id)).all()
        assert len(stored) == 5

    def test_unscored_team_ranked_last(self, session: Session, make_event, teams_of):
        event = make_event(team_count=3)
        teams = teams_of(event.id)
        _score_all(session, event.id, teams, {2: [40], 3: [80]})

        rankings = recalculate_rankings(session, event.id)

        assert [r.team_id for r in rankings] == [teams[2].id, teams[1].id, teams[0].id]
        assert rankings[-1].raw_seed_score == 0.0

    def test_unknown_event(self, session: Session):
        with pytest.raises(NotFoundError):
            recalculate_rankings(session, 999)


class TestRecordSeedingScore:
    def test_upsert_rescores_and_reranks(self, session: Session, make_event, teams_of):
        event = make_event(team_count=2)
        t1, t2 = teams_of(event.id)

        record_seeding_score(session, event.id, t1.id, 1, 50)
        record_seeding_score(session, event.id, t2.id, 1, 60)
        ranks = {r.team_id: r.seed_rank for r in session.exec(select(SeedingRanking)).all()}
        assert ranks == {t2.id: 1, t1.id: 2}

        row = record_seeding_score(session, event.id, t1.id, 1, 70)
        assert row.score == 70
        assert row.scored_at is not None
        scores = session.exec(select(SeedingScore).where(SeedingScore.team_id == t1.id)).all()
        assert len(scores) == 1
        ranks = {r.team_id: r.seed_rank for r in session.exec(select(SeedingRanking)).all()}
        assert ranks == {t1.id: 1, t2.id: 2}

    def test_round_outside_event_rounds(self, session: Session, make_event, teams_of):
        event = make_event(team_count=1, seeding_rounds=2)
        (team,) = teams_of(event.id)
        with pytest.raises(ValidationError) as exc:
            record_seeding_score(session, event.id, team.id, 3, 10)
        assert exc.value.field == "round_number"

    def test_team_from_another_event(self, session: Session, make_event, teams_of):
        event = make_event(team_count=1)
        other = make_event(team_count=1, name="Other")
        (foreign,) = teams_of(other.id)
        with pytest.raises(NotFoundError):
            record_seeding_score(session, event.id, foreign.id, 1, 10)

    def test_recorded_score_completes_queue_item(self, session: Session, make_event, teams_of):
        event = make_event(team_count=2, seeding_rounds=1)
        t1, _ = teams_of(event.id)
        queue_service.populate_from_seeding(session, event.id)

        record_seeding_score(session, event.id, t1.id, 1, 25)

        item = session.exec(select(QueueItem).where(QueueItem.seeding_team_id == t1.id)).one()
        assert item.status == QueueStatus.completed


class TestSeedingApi:
    def test_put_score_then_read_rankings(self, client: TestClient, session: Session, make_event, teams_of):
        event = make_event(team_count=2)
        t1, t2 = teams_of(event.id)

        r = client.put(f"/api/events/{event.id}/seeding/scores", json={"team_id": t2.id, "round_number": 1, "score": 30})
        assert r.status_code == 200
        assert r.json()["score"] == 30

        r = client.get(f"/api/events/{event.id}/seeding/rankings")
        assert r.status_code == 200
        body = r.json()
        assert [row["team_id"] for row in body] == [t2.id, t1.id]
        assert body[1]["seed_average"] is None

        r = client.get(f"/api/events/{event.id}/seeding/scores")
        assert [row["team_id"] for row in r.json()] == [t2.id]

    def test_negative_score_rejected(self, client: TestClient, make_event, teams_of):
        event = make_event(team_count=1)
        (team,) = teams_of(event.id)
        r = client.put(f"/api/events/{event.id}/seeding/scores", json={"team_id": team.id, "round_number": 1, "score": -1})
        assert r.status_code == 422

    def test_recalculate_endpoint(self, client: TestClient, make_event):
        event = make_event(team_count=3)
        r = client.post(f"/api/events/{event.id}/seeding/rankings/recalculate")
        assert r.status_code == 200
        assert [row["seed_rank"] for row in r.json()] == [1, 2, 3]

    def test_recalculate_unknown_event(self, client: TestClient):
        r = client.post("/api/events/999/seeding/rankings/recalculate")
        assert r.status_code == 404
