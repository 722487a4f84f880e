from __future__ import annotations

import pytest

from rowmapper.db import (
    Database,
    find_all_from,
    find_by_primary_key,
    find_one_from,
    find_one_to,
    insert,
    reload,
    select_all_from,
    select_one_from,
    select_one_to,
    select_query,
    select_rows,
)
from rowmapper.errors import NoRowsError

from _models import Person, PersonName, ProjectMember


@pytest.fixture
def people(db: Database) -> list[Person]:
    rows = [
        Person(name="Ann", email="ann@example.com", score=3),
        Person(name="Bob", score=5),
        Person(name="Cid", email="cid@example.com", score=5),
    ]
    for person in rows:
        insert(db, person)
    return rows


def test_select_query() -> None:
    assert select_query(PersonName.__view__) == "SELECT people.id, people.name FROM people"
    assert select_query(PersonName.__view__, "ORDER BY id") == (
        "SELECT people.id, people.name FROM people ORDER BY id"
    )


def test_select_rows(db: Database, people) -> None:
    rows = select_rows(db, PersonName.__view__, "WHERE score = ? ORDER BY id", 5)

    assert [tuple(row) for row in rows] == [(2, "Bob"), (3, "Cid")]


def test_select_all_from(db: Database, people) -> None:
    result = select_all_from(db, Person.__table__, "ORDER BY id DESC")

    assert [p.name for p in result] == ["Cid", "Bob", "Ann"]
    assert all(isinstance(p, Person) for p in result)
    assert result[2] == people[0]


def test_select_all_from_without_matches(db: Database) -> None:
    assert select_all_from(db, Person.__table__) == []


def test_select_one_from(db: Database, people) -> None:
    person = select_one_from(db, Person.__table__, "WHERE email = ?", "cid@example.com")

    assert person == people[2]


def test_select_one_from_without_match(db: Database) -> None:
    with pytest.raises(NoRowsError):
        select_one_from(db, Person.__table__, "WHERE id = ?", 1)


def test_select_one_to(db: Database, people) -> None:
    name = PersonName()

    select_one_to(db, name, "WHERE id = ?", 2)

    assert (name.id, name.name) == (2, "Bob")


def test_find_one_from(db: Database, people, recorder) -> None:
    recorder.clear()

    person = find_one_from(db, Person.__table__, "name", "Bob")

    assert person.id == 2
    assert recorder.queries == [
        "SELECT people.id, people.name, people.email, people.score, people.updated_at "
        "FROM people WHERE name = ? LIMIT 1"
    ]


def test_find_one_from_null(db: Database, people, recorder) -> None:
    recorder.clear()

    person = find_one_from(db, Person.__table__, "email", None)

    assert person.name == "Bob"
    assert recorder.queries[0].endswith("WHERE email IS NULL LIMIT 1")


def test_find_one_to(db: Database, people) -> None:
    name = PersonName()

    find_one_to(db, name, "id", 3)

    assert name.name == "Cid"


def test_find_one_to_without_match(db: Database) -> None:
    with pytest.raises(NoRowsError):
        find_one_to(db, PersonName(), "id", 99)


def test_find_all_from(db: Database, people, recorder) -> None:
    recorder.clear()

    result = find_all_from(db, PersonName.__view__, "id", 1, 3, 99)

    assert sorted(p.name for p in result) == ["Ann", "Cid"]
    assert recorder.queries[0].endswith("WHERE id IN (?, ?, ?)")


def test_find_all_from_without_args_skips_query(db: Database, recorder) -> None:
    assert find_all_from(db, PersonName.__view__, "id") == []
    assert recorder.queries == []


def test_find_by_primary_key(db: Database, people) -> None:
    assert find_by_primary_key(db, Person.__table__, 1).name == "Ann"

    with pytest.raises(NoRowsError):
        find_by_primary_key(db, Person.__table__, 99)


def test_find_by_composite_primary_key(db: Database, recorder) -> None:
    insert(db, ProjectMember(project_id=1, user_id=2, role="owner"))
    insert(db, ProjectMember(project_id=1, user_id=3, role="viewer"))
    recorder.clear()

    member = find_by_primary_key(db, ProjectMember.__table__, (1, 3))

    assert member.role == "viewer"
    assert recorder.queries[0].endswith("WHERE project_id = ? AND user_id = ? LIMIT 1")


def test_reload(db: Database, people) -> None:
    db.execute("UPDATE people SET score = ? WHERE id = ?", 42, 1)
    person = Person(id=1)

    reload(db, person)

    assert person == Person(id=1, name="Ann", email="ann@example.com", score=42)


def test_reload_missing_row(db: Database) -> None:
    with pytest.raises(NoRowsError):
        reload(db, Person(id=5))
