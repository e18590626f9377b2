from datetime import timedelta

import pytest

from study_core.errors import ConcurrencyConflictError
from study_core.fsrs import database
from study_core.fsrs.constants import Rating
from study_core.fsrs.memory_state import new_card
from study_core.fsrs.scheduler import schedule

from conftest import NOW, USER


def test_put_card_versions_every_write(session, seed, no_fuzz):
    seed.course("bio")
    seed.questions("bio", ["q1"])
    card = schedule(new_card(NOW), Rating.GOOD, NOW, no_fuzz)

    assert database.put_card(session, USER, "q1", card) == 1
    session.commit()

    stored = database.load_card(session, USER, "q1")
    assert stored.version == 1
    assert stored.card == card

    later = schedule(card, Rating.GOOD, card.due, no_fuzz)
    assert database.put_card(session, USER, "q1", later, expected_version=1) == 2
    session.commit()
    assert database.get_card(session, USER, "q1") == later


def test_put_card_rejects_stale_version(session, seed, no_fuzz):
    seed.course("bio")
    seed.questions("bio", ["q1"])
    card = schedule(new_card(NOW), Rating.GOOD, NOW, no_fuzz)
    seed.card("q1", card)
    database.put_card(session, USER, "q1", card, expected_version=1)
    session.commit()

    with pytest.raises(ConcurrencyConflictError):
        database.put_card(session, USER, "q1", card, expected_version=1)
    session.rollback()

    assert database.load_card(session, USER, "q1").version == 2


def test_concurrent_first_write_conflicts(session_factory, seed, no_fuzz):
    seed.course("bio")
    seed.questions("bio", ["q1"])
    card = schedule(new_card(NOW), Rating.GOOD, NOW, no_fuzz)
    seed.card("q1", card)

    other = session_factory()
    try:
        with pytest.raises(ConcurrencyConflictError):
            database.put_card(other, USER, "q1", card)
        other.rollback()
    finally:
        other.close()


def test_missing_card_is_none(session):
    assert database.load_card(session, USER, "nope") is None
    assert database.get_card(session, USER, "nope") is None


def test_list_due_cards_orders_by_due_and_filters_course(session, seed, make_review_card):
    seed.course("bio")
    seed.course("chem")
    seed.questions("bio", ["b1", "b2", "b3"])
    seed.questions("chem", ["c1"])
    seed.card("b1", make_review_card(due=NOW - timedelta(days=1)))
    seed.card("b2", make_review_card(due=NOW - timedelta(days=4)))
    seed.card("b3", make_review_card(due=NOW + timedelta(days=2)))
    seed.card("c1", make_review_card(due=NOW - timedelta(days=2)))

    due = database.list_due_cards(session, USER, as_of=NOW)
    assert [d.question_id for d in due] == ["b2", "c1", "b1"]
    assert due[0].course_id == "bio"

    bio_only = database.list_due_cards(session, USER, as_of=NOW, course_id="bio")
    assert [d.question_id for d in bio_only] == ["b2", "b1"]

    assert database.list_due_cards(session, "someone-else", as_of=NOW) == []


def test_list_user_cards_by_course(session, seed, make_review_card):
    seed.course("bio")
    seed.course("chem")
    seed.questions("bio", ["b1"])
    seed.questions("chem", ["c1"])
    seed.card("b1", make_review_card(due=NOW))
    seed.card("c1", make_review_card(due=NOW))

    assert set(database.list_user_cards(session, USER)) == {"b1", "c1"}
    assert set(database.list_user_cards(session, USER, "chem")) == {"c1"}


def test_topic_schedule_order(session, seed):
    today = NOW.date()
    seed.course("bio")
    seed.topic("cells", "bio", today - timedelta(days=3))
    seed.topic("genes", "bio", today + timedelta(days=4))
    seed.topic("extra", "bio", None)
    seed.topic("membranes", "bio", today - timedelta(days=3), position=1)

    topics = database.list_topic_schedule(session, "bio")
    assert [t.id for t in topics] == ["cells", "membranes", "genes", "extra"]


def test_enrollments_and_exams(session, seed):
    today = NOW.date()
    seed.course("chem")
    seed.course("bio")
    seed.course("art", enroll=())
    seed.exam("bio", "Midterm", today + timedelta(days=5))
    seed.exam("bio", "Final", today + timedelta(days=40))
    seed.exam("bio", "Quiz", today - timedelta(days=1))

    assert database.list_enrolled_courses(session, USER) == ["bio", "chem"]
    assert [e.title for e in database.list_upcoming_exams(session, "bio", today)] == ["Midterm", "Final"]
    assert [e.title for e in database.list_upcoming_exams(session, "bio", today, within_days=14)] == ["Midterm"]


def test_append_attempt(session, seed):
    seed.course("bio")
    seed.questions("bio", ["q1"])

    row = database.append_attempt(
        session,
        user_id=USER,
        question_id="q1",
        is_correct=True,
        confidence="unsure",
        rating=3,
        time_spent_ms=4200,
        created_at=NOW,
    )
    session.commit()
    assert row.id is not None


def test_recalculate_elapsed_is_idempotent(session, seed, make_review_card):
    seed.course("bio")
    seed.questions("bio", ["old", "today"])
    stale = make_review_card(due=NOW, last_review=NOW - timedelta(days=6))
    seed.card("old", stale)
    fresh = make_review_card(due=NOW + timedelta(days=3), last_review=NOW - timedelta(hours=1))
    seed.card("today", fresh)

    updated, processed = database.recalculate_elapsed_for_user(session, USER, now=NOW)
    session.commit()
    assert (updated, processed) == (1, 1)

    stored = database.load_card(session, USER, "old")
    assert stored.card.elapsed_days == pytest.approx(6.0)
    assert stored.version == 2
    # Scheduling fields are untouched
    assert stored.card.stability == stale.stability
    assert stored.card.due == stale.due

    assert database.recalculate_elapsed_for_user(session, USER, now=NOW) == (0, 1)
