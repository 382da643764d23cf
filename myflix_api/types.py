"""Type definitions for the myFlix API."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from typing_extensions import TypedDict

T = TypeVar("T")


class GenreRecord(TypedDict, total=False):
    """Genre embedded in a movie record."""

    name: str
    description: str


class DirectorRecord(TypedDict, total=False):
    """Director embedded in a movie record."""

    name: str
    bio: str
    birth: str | None
    death: str | None


class MovieRecord(TypedDict, total=False):
    """Stored movie document."""

    id: str
    title: str
    description: str
    genre: GenreRecord
    director: DirectorRecord
    image_path: str | None
    featured: bool


class UserRecord(TypedDict, total=False):
    """Stored user document. ``password_hash`` never leaves the service layer."""

    id: str
    username: str
    password_hash: str
    email: str
    birthday: str | None
    favorite_movies: list[str]


class Violation(TypedDict, total=False):
    """A single failed field rule."""

    location: str
    param: str
    msg: str
    value: object


class HealthStatus(TypedDict):
    """Health status of system components."""

    storage: bool


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a repository update: a value, or the reason it failed.

    A successful update of a record that does not exist is ``ok`` with
    ``value`` set to ``None``.
    """

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> "Result[T]":
        return cls(error=reason)
