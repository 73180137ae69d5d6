"""
Match queue: population, dense reordering, call/uncall and status transitions.
"""
import threading

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from bracket_engine.models.bracket import EliminationType
from bracket_engine.models.bracket_game import BracketGame
from bracket_engine.models.queue_item import QueueItem, QueueStatus, QueueType
from bracket_engine.models.seeding_score import SeedingScore
from bracket_engine.services import queue_service
from bracket_engine.services.advancement_service import submit_game_result
from bracket_engine.services.bracket_service import create_bracket, start_bracket
from bracket_engine.services.entry_seeder import generate_entries
from bracket_engine.services.errors import ConflictError, NotFoundError, StateError, ValidationError


def positions(session: Session, event_id: int):
    items = session.exec(select(QueueItem).where(QueueItem.event_id == event_id).order_by(QueueItem.queue_position)).all()
    return [(item.id, item.queue_position) for item in items]


@pytest.fixture
def seeding_queue(session: Session, make_event):
    """Event with five teams and one seeding round each, queued in team order."""
    event = make_event(team_count=5, seeding_rounds=1)
    queue_service.populate_from_seeding(session, event.id)
    items = queue_service.list_queue(session, event.id)
    return event, [item.id for item in items]


class TestPopulateFromSeeding:
    def test_skips_scored_rounds(self, session: Session, make_event, teams_of):
        event = make_event(team_count=10, seeding_rounds=3)
        teams = teams_of(event.id)
        for team, round_number in ((teams[0], 1), (teams[0], 2), (teams[3], 3), (teams[9], 1)):
            session.add(SeedingScore(team_id=team.id, round_number=round_number, score=50))
        session.commit()

        result = queue_service.populate_from_seeding(session, event.id)

        assert result == {"created": 26, "removed": 0}
        items = queue_service.list_queue(session, event.id)
        assert [i.queue_position for i in items] == list(range(1, 27))
        assert (items[0].seeding_team_id, items[0].seeding_round) == (teams[0].id, 3)
        assert all(i.queue_type == QueueType.seeding for i in items)

    def test_score_row_without_score_is_still_queued(self, session: Session, make_event, teams_of):
        event = make_event(team_count=1, seeding_rounds=2)
        (team,) = teams_of(event.id)
        session.add(SeedingScore(team_id=team.id, round_number=1, score=None))
        session.commit()

        assert queue_service.populate_from_seeding(session, event.id)["created"] == 2

    def test_replaces_existing_queue(self, session: Session, seeding_queue):
        event, _ = seeding_queue
        assert queue_service.populate_from_seeding(session, event.id) == {"created": 5, "removed": 5}


class TestPopulateFromBracket:
    def test_only_ready_games_in_game_order(self, session: Session, make_event, teams_of):
        event = make_event(team_count=4)
        teams = teams_of(event.id)
        bracket = create_bracket(
            session, event.id, "Main", team_ids=[t.id for t in teams], elimination_type=EliminationType.single
        )
        start_bracket(session, bracket.id)

        assert queue_service.populate_from_bracket(session, event.id, bracket.id) == {"created": 2, "removed": 0}
        game_numbers = [
            session.get(BracketGame, item.bracket_game_id).game_number
            for item in queue_service.list_queue(session, event.id)
        ]
        assert game_numbers == [1, 2]

        first = session.exec(
            select(BracketGame).where(BracketGame.bracket_id == bracket.id, BracketGame.game_number == 1)
        ).one()
        submit_game_result(session, first.id, teams[0].id)

        assert queue_service.populate_from_bracket(session, event.id, bracket.id) == {"created": 1, "removed": 2}

    def test_bracket_from_another_event(self, session: Session, make_event):
        event = make_event(team_count=4)
        other = make_event(team_count=4, name="Other")
        bracket = create_bracket(session, other.id, "Main", bracket_size=4)

        with pytest.raises(NotFoundError):
            queue_service.populate_from_bracket(session, event.id, bracket.id)

    def test_regenerating_entries_drops_game_items(self, session: Session, make_event, teams_of):
        event = make_event(team_count=4)
        teams = teams_of(event.id)
        bracket = create_bracket(session, event.id, "Main", team_ids=[t.id for t in teams])
        queue_service.populate_from_seeding(session, event.id)
        seeding_count = len(queue_service.list_queue(session, event.id))
        for game in session.exec(select(BracketGame).where(BracketGame.bracket_id == bracket.id)).all():
            if game.game_number in (1, 2):
                queue_service.add_queue_item(session, event.id, QueueType.bracket, bracket_game_id=game.id)

        generate_entries(session, bracket.id, force=True)

        items = queue_service.list_queue(session, event.id)
        assert len(items) == seeding_count
        assert [i.queue_position for i in items] == list(range(1, seeding_count + 1))


class TestAddQueueItem:
    def test_appends_at_the_end(self, session: Session, seeding_queue, teams_of):
        event, ids = seeding_queue
        team = teams_of(event.id)[0]
        # leave a gap at the front: new items still go after the highest position
        session.delete(session.get(QueueItem, ids[0]))
        session.commit()

        item = queue_service.add_queue_item(
            session, event.id, QueueType.seeding, seeding_team_id=team.id, seeding_round=1, table_number=2
        )

        assert item.queue_position == 6
        assert item.table_number == 2

    def test_duplicate_is_a_conflict(self, session: Session, seeding_queue, teams_of):
        event, ids = seeding_queue
        team = teams_of(event.id)[0]

        with pytest.raises(ConflictError) as exc:
            queue_service.add_queue_item(session, event.id, QueueType.seeding, seeding_team_id=team.id, seeding_round=1)

        assert exc.value.context == {"queue_item_id": ids[0], "queue_position": 1}

    def test_seeding_round_out_of_range(self, session: Session, seeding_queue, teams_of):
        event, _ = seeding_queue
        team = teams_of(event.id)[0]
        with pytest.raises(ValidationError):
            queue_service.add_queue_item(session, event.id, QueueType.seeding, seeding_team_id=team.id, seeding_round=2)

    def test_bracket_item_needs_a_game(self, session: Session, seeding_queue):
        event, _ = seeding_queue
        with pytest.raises(ValidationError):
            queue_service.add_queue_item(session, event.id, QueueType.bracket)
        with pytest.raises(NotFoundError):
            queue_service.add_queue_item(session, event.id, QueueType.bracket, bracket_game_id=999)


class TestReorder:
    def test_moved_item_takes_its_slot(self, session: Session, seeding_queue):
        event, (a, b, c, d, e) = seeding_queue

        queue_service.reorder_queue(session, event.id, [(e, 1)])
        assert [i for i, _ in positions(session, event.id)] == [e, a, b, c, d]

        queue_service.reorder_queue(session, event.id, [(e, 4)])
        assert [i for i, _ in positions(session, event.id)] == [a, b, c, e, d]

    def test_positions_stay_dense(self, session: Session, seeding_queue):
        event, (a, b, c, d, e) = seeding_queue

        items = queue_service.reorder_queue(session, event.id, [(a, 99), (b, 3), (c, 3)])

        assert [i.queue_position for i in items] == [1, 2, 3, 4, 5]
        assert [i.id for i in items] == [d, e, b, c, a]

    def test_unknown_item(self, session: Session, seeding_queue):
        event, _ = seeding_queue
        with pytest.raises(NotFoundError):
            queue_service.reorder_queue(session, event.id, [(999, 1)])


class TestMoveAndRemove:
    def test_move_swaps_neighbours(self, session: Session, seeding_queue):
        event, (a, b, c, d, e) = seeding_queue

        queue_service.move_queue_item(session, c, "up")
        assert [i for i, _ in positions(session, event.id)] == [a, c, b, d, e]

        queue_service.move_queue_item(session, c, "down")
        assert [i for i, _ in positions(session, event.id)] == [a, b, c, d, e]

    def test_move_past_the_end_is_a_no_op(self, session: Session, seeding_queue):
        event, ids = seeding_queue
        queue_service.move_queue_item(session, ids[0], "up")
        queue_service.move_queue_item(session, ids[-1], "down")
        assert [i for i, _ in positions(session, event.id)] == ids

    def test_bad_direction(self, session: Session, seeding_queue):
        _, ids = seeding_queue
        with pytest.raises(ValidationError):
            queue_service.move_queue_item(session, ids[0], "sideways")

    def test_remove_closes_the_gap(self, session: Session, seeding_queue):
        event, (a, b, c, d, e) = seeding_queue

        queue_service.remove_queue_item(session, c)

        assert positions(session, event.id) == [(a, 1), (b, 2), (d, 3), (e, 4)]


class TestCallAndStatus:
    def test_call_then_uncall(self, session: Session, seeding_queue):
        _, ids = seeding_queue

        item = queue_service.call_queue_item(session, ids[0], table_number=3)
        assert item.status == QueueStatus.called
        assert item.called_at is not None
        assert item.table_number == 3

        item = queue_service.uncall_queue_item(session, ids[0])
        assert item.status == QueueStatus.queued
        assert item.called_at is None
        assert item.table_number is None

    def test_call_requires_queued(self, session: Session, seeding_queue):
        _, ids = seeding_queue
        queue_service.call_queue_item(session, ids[0])
        with pytest.raises(StateError):
            queue_service.call_queue_item(session, ids[0])

    def test_uncall_requires_called(self, session: Session, seeding_queue):
        _, ids = seeding_queue
        with pytest.raises(StateError):
            queue_service.uncall_queue_item(session, ids[0])

    def test_transitions(self, session: Session, seeding_queue):
        _, ids = seeding_queue

        with pytest.raises(StateError):
            queue_service.update_queue_item(session, ids[0], status=QueueStatus.completed)

        assert queue_service.update_queue_item(session, ids[0], status=QueueStatus.skipped).status == QueueStatus.skipped
        assert queue_service.update_queue_item(session, ids[0], status=QueueStatus.queued).status == QueueStatus.queued

        queue_service.call_queue_item(session, ids[1])
        queue_service.update_queue_item(session, ids[1], status=QueueStatus.in_progress)
        item = queue_service.update_queue_item(session, ids[1], status=QueueStatus.completed)
        assert item.status == QueueStatus.completed
        with pytest.raises(StateError):
            queue_service.update_queue_item(session, ids[1], status=QueueStatus.queued)

    def test_table_number_update(self, session: Session, seeding_queue):
        _, ids = seeding_queue
        assert queue_service.update_queue_item(session, ids[2], table_number=7).table_number == 7


class TestConcurrentWriters:
    def test_parallel_appends_get_distinct_positions(self, file_engine, make_file_event):
        event_id, team_ids = make_file_event(6)
        barrier = threading.Barrier(len(team_ids))
        errors = []

        def append(team_id):
            with Session(file_engine) as session:
                barrier.wait()
                try:
                    queue_service.add_queue_item(
                        session, event_id, QueueType.seeding, seeding_team_id=team_id, seeding_round=1
                    )
                except Exception as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=append, args=(team_id,)) for team_id in team_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert errors == []
        with Session(file_engine) as session:
            items = queue_service.list_queue(session, event_id)
            assert [item.queue_position for item in items] == [1, 2, 3, 4, 5, 6]
            assert sorted(item.seeding_team_id for item in items) == sorted(team_ids)

    def test_append_waits_for_an_open_append(self, file_engine, make_file_event, monkeypatch):
        event_id, team_ids = make_file_event(2)
        rival_items = []

        def rival_append():
            with Session(file_engine) as other:
                item = queue_service.add_queue_item(
                    other, event_id, QueueType.seeding, seeding_team_id=team_ids[1], seeding_round=1
                )
                rival_items.append((item.id, item.queue_position))

        rival = threading.Thread(target=rival_append)
        original_next_position = queue_service._next_position

        def next_position_while_rival_appends(session, event_id):
            if rival.ident is None:
                rival.start()
                rival.join(timeout=0.5)
            return original_next_position(session, event_id)

        monkeypatch.setattr(queue_service, "_next_position", next_position_while_rival_appends)

        with Session(file_engine) as writer:
            item = queue_service.add_queue_item(
                writer, event_id, QueueType.seeding, seeding_team_id=team_ids[0], seeding_round=1
            )
            first = (item.id, item.queue_position)
        rival.join(timeout=30)

        assert not rival.is_alive()
        assert first[1] == 1
        assert rival_items[0][1] == 2


class TestQueueApi:
    def test_populate_and_list(self, client: TestClient, make_event):
        event = make_event(team_count=3, seeding_rounds=2)

        r = client.post(f"/api/events/{event.id}/queue/populate-from-seeding")
        assert r.status_code == 200
        assert r.json() == {"created": 6, "removed": 0}

        r = client.get(f"/api/events/{event.id}/queue", params={"status": "queued", "queue_type": "seeding"})
        assert [row["queue_position"] for row in r.json()] == [1, 2, 3, 4, 5, 6]

    def test_reorder_move_call_delete(self, client: TestClient, seeding_queue):
        event, (a, b, c, d, e) = seeding_queue

        r = client.post(f"/api/events/{event.id}/queue/reorder", json={"items": [{"id": d, "queue_position": 1}]})
        assert r.status_code == 200
        assert [row["id"] for row in r.json()] == [d, a, b, c, e]

        r = client.post(f"/api/queue/{a}/move", json={"direction": "up"})
        assert [row["id"] for row in r.json()] == [a, d, b, c, e]

        r = client.post(f"/api/queue/{b}/call", json={"table_number": 4})
        assert r.status_code == 200
        assert (r.json()["status"], r.json()["table_number"]) == ("called", 4)

        r = client.post(f"/api/queue/{b}/call")
        assert r.status_code == 400

        r = client.delete(f"/api/queue/{a}")
        assert r.status_code == 204
        r = client.get(f"/api/events/{event.id}/queue")
        assert [(row["id"], row["queue_position"]) for row in r.json()] == [(d, 1), (b, 2), (c, 3), (e, 4)]

    def test_invalid_requests(self, client: TestClient, seeding_queue):
        event, ids = seeding_queue

        assert client.post(f"/api/queue/{ids[0]}/move", json={"direction": "left"}).status_code == 422
        r = client.post(f"/api/events/{event.id}/queue/reorder", json={"items": [{"id": ids[0], "queue_position": 0}]})
        assert r.status_code == 422
        assert client.get("/api/events/999/queue").status_code == 404
        assert client.patch("/api/queue/999", json={"table_number": 1}).status_code == 404
