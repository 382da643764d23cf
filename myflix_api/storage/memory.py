"""In-memory repository for development and tests."""

import copy
import uuid
from typing import Any

from ..exceptions import ConflictError
from ..types import DirectorRecord, GenreRecord, MovieRecord, Result, UserRecord

_USER_FIELDS = ("username", "password_hash", "email", "birthday")


class InMemoryRepository:
    """Dict-backed repository.

    Each method runs without awaiting, so every mutation is atomic with
    respect to other requests on the same event loop.
    """

    def __init__(self) -> None:
        self._movies: dict[str, MovieRecord] = {}
        self._users: dict[str, dict[str, Any]] = {}

    async def startup(self) -> None:
        pass

    async def shutdown(self) -> None:
        pass

    async def health_check(self) -> bool:
        return True

    async def list_movies(self) -> list[MovieRecord]:
        return sorted((copy.deepcopy(m) for m in self._movies.values()), key=lambda m: m["title"])

    async def get_movie(self, movie_id: str) -> MovieRecord | None:
        movie = self._movies.get(movie_id)
        return copy.deepcopy(movie) if movie else None

    async def get_movie_by_title(self, title: str) -> MovieRecord | None:
        return next((copy.deepcopy(m) for m in self._movies.values() if m["title"] == title), None)

    async def find_genre(self, name: str) -> GenreRecord | None:
        for movie in self._movies.values():
            if movie.get("genre", {}).get("name") == name:
                return copy.deepcopy(movie["genre"])
        return None

    async def find_director(self, name: str) -> DirectorRecord | None:
        for movie in self._movies.values():
            if movie.get("director", {}).get("name") == name:
                return copy.deepcopy(movie["director"])
        return None

    async def add_movie(self, movie: MovieRecord) -> MovieRecord:
        record: MovieRecord = {"description": "", "featured": False, **copy.deepcopy(movie)}
        record["id"] = record.get("id") or uuid.uuid4().hex
        self._movies[record["id"]] = record
        return copy.deepcopy(record)

    async def list_users(self) -> list[UserRecord]:
        return [self._snapshot(u) for _, u in sorted(self._users.items())]

    async def get_user(self, username: str) -> UserRecord | None:
        user = self._users.get(username)
        return self._snapshot(user) if user else None

    async def create_user(self, user: UserRecord) -> UserRecord:
        if user["username"] in self._users:
            raise ConflictError(f"{user['username']} already exists")
        stored = {f: user.get(f) for f in _USER_FIELDS}
        stored["id"] = user.get("id") or uuid.uuid4().hex
        stored["favorite_movies"] = set()
        self._users[user["username"]] = stored
        return self._snapshot(stored)

    async def update_user(self, username: str, changes: dict[str, Any]) -> Result[UserRecord]:
        user = self._users.get(username)
        if user is None:
            return Result.success(None)
        values = {k: v for k, v in changes.items() if k in _USER_FIELDS}
        new_username = values.get("username", username)
        if new_username != username:
            if new_username in self._users:
                raise ConflictError(f"{new_username} already exists")
            self._users[new_username] = self._users.pop(username)
        user.update(values)
        return Result.success(self._snapshot(user))

    async def delete_user(self, username: str) -> Result[UserRecord]:
        user = self._users.pop(username, None)
        return Result.success(self._snapshot(user) if user else None)

    async def add_favorite(self, username: str, movie_id: str) -> Result[UserRecord]:
        user = self._users.get(username)
        if user is None:
            return Result.success(None)
        user["favorite_movies"].add(movie_id)
        return Result.success(self._snapshot(user))

    async def remove_favorite(self, username: str, movie_id: str) -> Result[UserRecord]:
        user = self._users.get(username)
        if user is None:
            return Result.success(None)
        user["favorite_movies"].discard(movie_id)
        return Result.success(self._snapshot(user))

    @staticmethod
    def _snapshot(user: dict[str, Any]) -> UserRecord:
        return {**user, "favorite_movies": sorted(user["favorite_movies"])}  # type: ignore[typeddict-item]
