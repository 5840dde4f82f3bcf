import math

import pytest

from movietier.models import RankedMovie
from movietier.ranking.errors import (
    ComparisonTargetUnavailable,
    DuplicateItem,
    InvalidPreference,
    NoActiveSession,
    RankedItemNotFound,
)

from tests.helpers import movie, ranks_of, seed_ranked, titles_of


def test_first_movie_is_inserted_without_session(controller, sessions, store, user):
    result = controller.begin_insertion(user.id, movie(550, "Fight Club"))

    assert result.status == "inserted"
    assert result.rank == 1
    assert result.movie_id == 550
    assert sessions.get(user.id) is None
    assert ranks_of(store, user.id) == [1]


def test_duplicate_is_rejected_without_mutation(db, controller, sessions, store, user):
    seed_ranked(db, user.id, ["A", "B"])

    for _ in range(2):
        with pytest.raises(DuplicateItem):
            controller.begin_insertion(user.id, movie(2, "B"))

    assert titles_of(store, user.id) == ["A", "B"]
    assert sessions.get(user.id) is None


def test_begin_returns_middle_pivot(db, controller, sessions, user):
    seed_ranked(db, user.id, ["A", "B", "C"])

    result = controller.begin_insertion(user.id, movie(4, "D"))

    assert result.status == "compare"
    assert result.pivot.title == "B"
    session = sessions.get(user.id)
    assert (session.low, session.high) == (0, 2)
    assert session.candidate.movie_id == 4


def test_worked_example_places_d_second(db, controller, sessions, store, user):
    seed_ranked(db, user.id, ["A", "B", "C"])
    d = movie(4, "D")

    result = controller.begin_insertion(user.id, d)
    assert result.pivot.title == "B"

    # D beats B
    result = controller.submit_comparison(user.id, preferred_movie_id=4, compared_movie_id=2)
    assert result.status == "compare"
    assert result.pivot.title == "A"
    assert (sessions.get(user.id).low, sessions.get(user.id).high) == (0, 0)

    # A beats D
    result = controller.submit_comparison(user.id, preferred_movie_id=1, compared_movie_id=1)
    assert result.status == "inserted"
    assert result.rank == 2
    assert result.movie_id == 4

    assert titles_of(store, user.id) == ["A", "D", "B", "C"]
    assert ranks_of(store, user.id) == [1, 2, 3, 4]
    assert sessions.get(user.id) is None


def test_candidate_can_land_at_top_and_bottom(db, controller, store, user):
    seed_ranked(db, user.id, ["A", "B"])

    controller.begin_insertion(user.id, movie(10, "Top"))
    while controller.submit_comparison(user.id, preferred_movie_id=10).status == "compare":
        pass

    controller.begin_insertion(user.id, movie(11, "Bottom"))
    result = controller.submit_comparison(user.id, preferred_movie_id=-1)
    while result.status == "compare":
        result = controller.submit_comparison(user.id, preferred_movie_id=result.pivot.movie_id)

    assert titles_of(store, user.id) == ["Top", "A", "B", "Bottom"]
    assert ranks_of(store, user.id) == [1, 2, 3, 4]


@pytest.mark.parametrize("size", list(range(1, 18)))
def test_comparisons_bounded_by_log2(db, controller, store, size):
    """Every insertion position is reachable within ceil(log2(n+1)) answers."""
    limit = math.ceil(math.log2(size + 1))

    for target in range(size + 1):
        owner = 1000 + size * 100 + target
        seed_ranked(db, owner, [f"M{i}" for i in range(size)])
        candidate_id = 10_000

        result = controller.begin_insertion(owner, movie(candidate_id, "New"))
        answers = 0
        while result.status == "compare":
            pivot_index = result.pivot.movie_id - 1
            preferred = candidate_id if target <= pivot_index else result.pivot.movie_id
            result = controller.submit_comparison(owner, preferred_movie_id=preferred)
            answers += 1

        assert answers <= limit
        assert result.rank == target + 1
        assert ranks_of(store, owner) == list(range(1, size + 2))
        assert store.list(owner)[target].movie_id == candidate_id


def test_submit_without_session(controller, user):
    with pytest.raises(NoActiveSession):
        controller.submit_comparison(user.id, preferred_movie_id=1)


def test_preference_must_be_one_of_the_pair(db, controller, sessions, user):
    seed_ranked(db, user.id, ["A", "B", "C"])
    controller.begin_insertion(user.id, movie(4, "D"))

    with pytest.raises(InvalidPreference):
        controller.submit_comparison(user.id, preferred_movie_id=3, compared_movie_id=2)

    session = sessions.get(user.id)
    assert (session.low, session.high) == (0, 2)


def test_failed_finalize_keeps_session_for_retry(db, controller, sessions, store, user, monkeypatch):
    seed_ranked(db, user.id, ["A"])
    controller.begin_insertion(user.id, movie(2, "B"))

    real_insert = store.insert_at_rank

    def broken(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(store, "insert_at_rank", broken)
    with pytest.raises(RuntimeError):
        controller.submit_comparison(user.id, preferred_movie_id=2, compared_movie_id=1)

    session = sessions.get(user.id)
    assert session is not None
    assert (session.low, session.high) == (0, 0)
    assert titles_of(store, user.id) == ["A"]

    monkeypatch.setattr(store, "insert_at_rank", real_insert)
    result = controller.submit_comparison(user.id, preferred_movie_id=2, compared_movie_id=1)
    assert result.status == "inserted"
    assert result.rank == 1
    assert titles_of(store, user.id) == ["B", "A"]


def test_missing_pivot_is_reported(db, controller, sessions, user):
    seed_ranked(db, user.id, ["A", "B", "C"])
    controller.begin_insertion(user.id, movie(4, "D"))

    # Someone deletes C behind the session's back
    db.query(RankedMovie).filter(RankedMovie.user_id == user.id, RankedMovie.movie_id == 3).delete()
    db.commit()

    with pytest.raises(ComparisonTargetUnavailable):
        controller.submit_comparison(user.id, preferred_movie_id=2, compared_movie_id=2)
    assert sessions.get(user.id) is None


def test_sessions_are_isolated_between_owners(db, controller, sessions, user, other_user):
    seed_ranked(db, user.id, ["A", "B", "C", "D"])
    seed_ranked(db, other_user.id, ["W", "X", "Y", "Z"])

    controller.begin_insertion(user.id, movie(50, "Mine"))
    controller.begin_insertion(other_user.id, movie(60, "Theirs"))
    controller.submit_comparison(user.id, preferred_movie_id=50)

    theirs = sessions.get(other_user.id)
    assert theirs.candidate.movie_id == 60
    assert (theirs.low, theirs.high) == (0, 3)

    with pytest.raises(InvalidPreference):
        controller.submit_comparison(other_user.id, preferred_movie_id=50, compared_movie_id=2)


def test_new_insertion_replaces_active_session(db, controller, sessions, user):
    seed_ranked(db, user.id, ["A", "B", "C"])
    controller.begin_insertion(user.id, movie(4, "D"))
    controller.submit_comparison(user.id, preferred_movie_id=4)

    result = controller.begin_insertion(user.id, movie(5, "E"))

    assert result.pivot.title == "B"
    session = sessions.get(user.id)
    assert session.candidate.movie_id == 5
    assert (session.low, session.high) == (0, 2)


def test_cancel(db, controller, user):
    seed_ranked(db, user.id, ["A"])
    controller.begin_insertion(user.id, movie(2, "B"))

    assert controller.cancel(user.id) is True
    assert controller.cancel(user.id) is False
    with pytest.raises(NoActiveSession):
        controller.submit_comparison(user.id, preferred_movie_id=2)


def test_remove_compacts(db, controller, store, user):
    seed_ranked(db, user.id, ["A", "B", "C", "D"])

    removed = controller.remove(user.id, 2)

    assert removed.rank == 2
    assert titles_of(store, user.id) == ["A", "C", "D"]
    assert ranks_of(store, user.id) == [1, 2, 3]


def test_remove_unknown(controller, user):
    with pytest.raises(RankedItemNotFound):
        controller.remove(user.id, 123)


def test_rerank_moves_movie_to_top(db, controller, sessions, store, user):
    seed_ranked(db, user.id, ["A", "B", "C"])

    result = controller.begin_rerank(user.id, 3)
    assert result.status == "compare"
    assert result.pivot.title == "A"
    assert titles_of(store, user.id) == ["A", "B"]
    assert sessions.get(user.id).high == 1

    result = controller.submit_comparison(user.id, preferred_movie_id=3, compared_movie_id=1)
    assert result.status == "inserted"
    assert result.rank == 1
    assert titles_of(store, user.id) == ["C", "A", "B"]
    assert ranks_of(store, user.id) == [1, 2, 3]


def test_rerank_only_movie_reinserts_directly(db, controller, sessions, store, user):
    seed_ranked(db, user.id, ["A"])

    result = controller.begin_rerank(user.id, 1)

    assert result.status == "inserted"
    assert result.rank == 1
    assert sessions.get(user.id) is None
    assert titles_of(store, user.id) == ["A"]


def test_rerank_unknown(controller, user):
    with pytest.raises(RankedItemNotFound):
        controller.begin_rerank(user.id, 77)


def test_finalize_after_list_shrank_is_reported(db, controller, sessions, store, user):
    seed_ranked(db, user.id, ["A", "B"])
    controller.begin_insertion(user.id, movie(4, "D"))
    result = controller.submit_comparison(user.id, preferred_movie_id=1, compared_movie_id=1)
    assert result.pivot.title == "B"

    # B disappears without going through the controller
    store.remove_and_compact(user.id, 2)

    with pytest.raises(ComparisonTargetUnavailable):
        controller.submit_comparison(user.id, preferred_movie_id=2, compared_movie_id=2)

    assert sessions.get(user.id) is None
    assert titles_of(store, user.id) == ["A"]
    with pytest.raises(NoActiveSession):
        controller.submit_comparison(user.id, preferred_movie_id=2)


def test_remove_ends_active_comparison(db, controller, sessions, store, user):
    seed_ranked(db, user.id, ["A", "B"])
    controller.begin_insertion(user.id, movie(4, "D"))
    controller.submit_comparison(user.id, preferred_movie_id=1, compared_movie_id=1)

    controller.remove(user.id, 2)

    assert sessions.get(user.id) is None
    with pytest.raises(NoActiveSession):
        controller.submit_comparison(user.id, preferred_movie_id=2, compared_movie_id=2)

    result = controller.begin_insertion(user.id, movie(4, "D"))
    assert result.pivot.title == "A"
