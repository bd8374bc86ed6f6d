import json

import pytest

from conduit_db.collection import Collection


@pytest.fixture
def rows():
    return Collection([
        {"id": 1, "team": "red", "score": 5},
        {"id": 2, "team": "blue", "score": 9},
        {"id": 3, "team": "red", "score": 2},
    ])


def test_sequence_protocol(rows):
    assert len(rows) == 3
    assert rows[0]["id"] == 1
    assert isinstance(rows[1:], Collection)
    assert [r["id"] for r in rows] == [1, 2, 3]
    assert rows == rows.all()


def test_first_last_with_predicate(rows):
    assert rows.first()["id"] == 1
    assert rows.first(lambda r: r["team"] == "blue")["id"] == 2
    assert rows.last(lambda r: r["team"] == "red")["id"] == 3
    assert Collection().first(default="none") == "none"


def test_pluck_and_key_by(rows):
    assert rows.pluck("id").all() == [1, 2, 3]
    assert rows.pluck("score", "id") == {1: 5, 2: 9, 3: 2}
    assert rows.key_by("id")[2]["team"] == "blue"


def test_group_and_sort(rows):
    groups = rows.group_by("team")
    assert [r["id"] for r in groups["red"]] == [1, 3]
    assert rows.sort_by("score").pluck("id").all() == [3, 1, 2]
    assert rows.sort_by_desc(lambda r: r["score"]).pluck("id").all() == [2, 1, 3]


def test_transformations_do_not_mutate(rows):
    filtered = rows.filter(lambda r: r["score"] > 3)
    assert len(filtered) == 2
    assert len(rows) == 3
    assert rows.reject(lambda r: r["team"] == "red").pluck("id").all() == [2]
    assert rows.map(lambda r: r["score"] * 2).all() == [10, 18, 4]


def test_unique_chunk_take_skip(rows):
    assert rows.unique("team").pluck("id").all() == [1, 2]
    assert [len(c) for c in rows.chunk(2)] == [2, 1]
    assert rows.take(2).pluck("id").all() == [1, 2]
    assert rows.take(-1).pluck("id").all() == [3]
    assert rows.skip(2).pluck("id").all() == [3]
    with pytest.raises(ValueError):
        rows.chunk(0)


def test_contains_sum_reduce(rows):
    assert rows.contains(2, "id")
    assert rows.contains(lambda r: r["score"] > 8)
    assert not rows.contains(99, "id")
    assert rows.sum("score") == 16
    assert rows.reduce(lambda acc, r: acc + r["score"], 0) == 16


def test_each_stops_on_false(rows):
    seen = []
    rows.each(lambda r: seen.append(r["id"]) if r["id"] < 2 else False)
    assert seen == [1]


def test_to_json(rows):
    assert json.loads(rows.take(1).to_json()) == [{"id": 1, "team": "red", "score": 5}]
