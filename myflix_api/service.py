"""Catalog and account operations behind the HTTP routes."""

from collections.abc import Awaitable
from typing import Any, TypeVar

from loguru import logger

from .exceptions import AuthenticationError, ConflictError, MyFlixError, NotFoundError, RepositoryError
from .favorites import FavoritesManager
from .security import hash_password, verify_password
from .storage import Repository
from .types import DirectorRecord, GenreRecord, HealthStatus, MovieRecord, Result, UserRecord
from .validation import profile_update_rules, registration_rules, validate_payload

T = TypeVar("T")


class MyFlixService:
    """Composes the repository, validation and favorites for the routes."""

    def __init__(self, repository: Repository, verify_favorite_movies: bool = True) -> None:
        """Initialize with injected dependencies."""
        self.repository = repository
        self.favorites = FavoritesManager(repository, verify_movies=verify_favorite_movies)

    # Catalog

    async def list_movies(self) -> list[MovieRecord]:
        return await self._call("list movies", self.repository.list_movies())

    async def get_movie(self, title: str) -> MovieRecord:
        movie = await self._call("get movie", self.repository.get_movie_by_title(title))
        if movie is None:
            raise NotFoundError(f"Movie {title} was not found")
        return movie

    async def get_genre(self, name: str) -> GenreRecord:
        genre = await self._call("get genre", self.repository.find_genre(name))
        if genre is None:
            raise NotFoundError(f"Genre {name} was not found")
        return genre

    async def get_director(self, name: str) -> DirectorRecord:
        director = await self._call("get director", self.repository.find_director(name))
        if director is None:
            raise NotFoundError(f"Director {name} was not found")
        return director

    # Accounts

    async def list_users(self) -> list[UserRecord]:
        return await self._call("list users", self.repository.list_users())

    async def get_user(self, username: str) -> UserRecord:
        user = await self._call("get user", self.repository.get_user(username))
        if user is None:
            raise NotFoundError(f"{username} was not found")
        return user

    async def register(self, payload: dict[str, Any]) -> UserRecord:
        """Create an account after every registration rule passes.

        Raises:
            ValidationError: With every violated rule.
            ConflictError: If the username is already taken.
        """
        validate_payload(payload, registration_rules())

        username = payload["username"]
        if await self._call("check username", self.repository.get_user(username)) is not None:
            raise ConflictError(f"{username} already exists")

        user: UserRecord = {
            "username": username,
            "password_hash": hash_password(payload["password"]),
            "email": payload["email"],
            "birthday": payload.get("birthday"),
        }
        created = await self._call("create user", self.repository.create_user(user))
        logger.info(f"Registered {username}")
        return created

    async def authenticate(self, username: str, password: str) -> UserRecord:
        """Check a username/password pair and return the matching user."""
        user = await self._call("load user", self.repository.get_user(username))
        if user is None or not verify_password(password, user.get("password_hash", "")):
            logger.info(f"Failed login for {username}")
            raise AuthenticationError("Incorrect username or password")
        return user

    async def update_profile(self, username: str, payload: dict[str, Any]) -> UserRecord:
        """Apply a partial profile update. Only fields present in ``payload`` change."""
        validate_payload(payload, profile_update_rules())

        changes = {k: v for k, v in payload.items() if k in ("username", "email") and v is not None}
        if "birthday" in payload:
            changes["birthday"] = payload["birthday"]
        if payload.get("password") is not None:
            changes["password_hash"] = hash_password(payload["password"])

        new_username = changes.get("username")
        if new_username is not None and new_username != username:
            existing = await self._call("check username", self.repository.get_user(new_username))
            if existing is not None:
                raise ConflictError(f"{new_username} already exists")

        result = await self._call("update user", self.repository.update_user(username, changes))
        user = self._unwrap(result, "update user")
        if user is None:
            raise NotFoundError(f"{username} was not found")
        logger.info(f"Updated profile of {username}")
        return user

    async def deregister(self, username: str) -> UserRecord:
        result = await self._call("delete user", self.repository.delete_user(username))
        user = self._unwrap(result, "delete user")
        if user is None:
            raise NotFoundError(f"{username} was not found")
        logger.info(f"Deregistered {username}")
        return user

    async def health_check(self) -> HealthStatus:
        """Check health of all components."""
        try:
            storage_ok = await self.repository.health_check()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Storage health check failed: {e}")
            storage_ok = False
        return {"storage": storage_ok}

    @staticmethod
    async def _call(operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except MyFlixError:
            raise
        except Exception as e:
            logger.error(f"Failed to {operation}: {e}")
            raise RepositoryError(f"Failed to {operation}: {e}") from e

    @staticmethod
    def _unwrap(result: Result[UserRecord], operation: str) -> UserRecord | None:
        if not result.ok:
            logger.error(f"Failed to {operation}: {result.error}")
            raise RepositoryError(f"Failed to {operation}: {result.error}")
        return result.value
