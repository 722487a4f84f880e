from __future__ import annotations

from datetime import datetime
from typing import Optional

from rowmapper.db import Record, Struct, column, table, view
from rowmapper.types import JSONText


@table("people", updated_column="updated_at")
class Person(Record):
    id: int = column(pk=True)
    name: str = column()
    email: Optional[str] = column(omit_empty=True)
    score: int = column(omit_empty=True)
    updated_at: int = column()

    def before_update(self) -> None:
        self.updated_at += 1


@table("project_members")
class ProjectMember(Record):
    project_id: int = column(pk=True)
    user_id: int = column(pk=True)
    role: str = column()


@view("people")
class PersonName(Struct):
    id: int = column()
    name: str = column()


class Address:
    def __init__(self, city: str) -> None:
        self.city = city


@view("documents")
class Document(Struct):
    id: int = column()
    title: str = column()
    published_at: Optional[datetime] = column()
    body: Optional[JSONText] = column()
    tags: list[str] = column()
    address: Optional[Address] = column()


class Point:
    __slots__ = ("x",)

    def __init__(self, x: int) -> None:
        self.x = x


@view("pins")
class Pin(Struct):
    id: int = column()
    point: Optional[Point] = column()
