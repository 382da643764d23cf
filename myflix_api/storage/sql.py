"""SQL repository implementation."""

import asyncio
import sqlite3
import uuid
from typing import Any

import databases
import sqlalchemy as sa
from loguru import logger

from ..exceptions import ConfigurationError, ConflictError, RepositoryError
from ..retry import with_storage_retry
from ..types import DirectorRecord, GenreRecord, MovieRecord, Result, UserRecord

_USER_FIELDS = ("username", "password_hash", "email", "birthday")


def _is_unique_violation(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.IntegrityError) or type(exc).__name__ in (
        "IntegrityError",
        "UniqueViolationError",
    )


class SQLRepository:
    """SQLite/PostgreSQL repository using databases."""

    def __init__(self, database_url: str):
        """Initialize SQL repository.

        Args:
            database_url: Database connection URL.
        """
        self.database = databases.Database(database_url)
        self.metadata = sa.MetaData()

        self.movies = sa.Table(
            "movies",
            self.metadata,
            sa.Column("id", sa.String, primary_key=True),
            sa.Column("title", sa.String, nullable=False, unique=True),
            sa.Column("description", sa.Text),
            sa.Column("genre_name", sa.String, index=True),
            sa.Column("genre_description", sa.Text),
            sa.Column("director_name", sa.String, index=True),
            sa.Column("director_bio", sa.Text),
            sa.Column("director_birth", sa.String),
            sa.Column("director_death", sa.String),
            sa.Column("image_path", sa.String),
            sa.Column("featured", sa.Boolean, default=False),
        )
        self.users = sa.Table(
            "users",
            self.metadata,
            sa.Column("id", sa.String, primary_key=True),
            sa.Column("username", sa.String, nullable=False, unique=True),
            sa.Column("password_hash", sa.String, nullable=False),
            sa.Column("email", sa.String, nullable=False),
            sa.Column("birthday", sa.String),
        )
        # One row per association: adding or removing a favorite touches exactly one row
        self.favorites = sa.Table(
            "favorite_movies",
            self.metadata,
            sa.Column("user_id", sa.String, nullable=False),
            sa.Column("movie_id", sa.String, nullable=False),
            sa.PrimaryKeyConstraint("user_id", "movie_id"),
        )

    async def startup(self) -> None:
        """Initialize database connection and create tables."""
        sync_url = self._get_sync_url()
        await self.database.connect()

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._create_tables_sync, sync_url)
        logger.info(f"SQL repository ready ({self.database.url.dialect})")

    async def shutdown(self) -> None:
        """Close database connection."""
        await self.database.disconnect()

    # Movies

    @with_storage_retry("sql")
    async def list_movies(self) -> list[MovieRecord]:
        rows = await self.database.fetch_all(self.movies.select().order_by(self.movies.c.title))
        return [self._movie_from_row(row) for row in rows]

    @with_storage_retry("sql")
    async def get_movie(self, movie_id: str) -> MovieRecord | None:
        row = await self.database.fetch_one(self.movies.select().where(self.movies.c.id == movie_id))
        return self._movie_from_row(row) if row else None

    @with_storage_retry("sql")
    async def get_movie_by_title(self, title: str) -> MovieRecord | None:
        row = await self.database.fetch_one(self.movies.select().where(self.movies.c.title == title))
        return self._movie_from_row(row) if row else None

    @with_storage_retry("sql")
    async def find_genre(self, name: str) -> GenreRecord | None:
        row = await self.database.fetch_one(
            self.movies.select().where(self.movies.c.genre_name == name).limit(1)
        )
        return self._movie_from_row(row)["genre"] if row else None

    @with_storage_retry("sql")
    async def find_director(self, name: str) -> DirectorRecord | None:
        row = await self.database.fetch_one(
            self.movies.select().where(self.movies.c.director_name == name).limit(1)
        )
        return self._movie_from_row(row)["director"] if row else None

    @with_storage_retry("sql")
    async def add_movie(self, movie: MovieRecord) -> MovieRecord:
        genre = movie.get("genre") or {}
        director = movie.get("director") or {}
        movie_id = movie.get("id") or uuid.uuid4().hex
        await self.database.execute(
            self.movies.insert().values(
                id=movie_id,
                title=movie["title"],
                description=movie.get("description", ""),
                genre_name=genre.get("name"),
                genre_description=genre.get("description", ""),
                director_name=director.get("name"),
                director_bio=director.get("bio", ""),
                director_birth=director.get("birth"),
                director_death=director.get("death"),
                image_path=movie.get("image_path"),
                featured=bool(movie.get("featured", False)),
            )
        )
        return {**movie, "id": movie_id}

    # Users

    @with_storage_retry("sql")
    async def list_users(self) -> list[UserRecord]:
        rows = await self.database.fetch_all(self.users.select().order_by(self.users.c.username))
        favorite_rows = await self.database.fetch_all(self.favorites.select())

        favorites: dict[str, list[str]] = {}
        for row in favorite_rows:
            favorites.setdefault(row["user_id"], []).append(row["movie_id"])

        return [self._user_from_row(row, favorites.get(row["id"], [])) for row in rows]

    @with_storage_retry("sql")
    async def get_user(self, username: str) -> UserRecord | None:
        return await self._load_user(username)

    @with_storage_retry("sql")
    async def create_user(self, user: UserRecord) -> UserRecord:
        user_id = user.get("id") or uuid.uuid4().hex
        try:
            await self.database.execute(
                self.users.insert().values(id=user_id, **{f: user.get(f) for f in _USER_FIELDS})
            )
        except Exception as e:
            if _is_unique_violation(e):
                raise ConflictError(f"{user['username']} already exists") from e
            raise
        return {**user, "id": user_id, "favorite_movies": []}

    async def update_user(self, username: str, changes: dict[str, Any]) -> Result[UserRecord]:
        try:
            return Result.success(await self._update_user(username, changes))
        except RepositoryError as e:
            return Result.failure(str(e))

    async def delete_user(self, username: str) -> Result[UserRecord]:
        try:
            return Result.success(await self._delete_user(username))
        except RepositoryError as e:
            return Result.failure(str(e))

    async def add_favorite(self, username: str, movie_id: str) -> Result[UserRecord]:
        try:
            return Result.success(await self._add_favorite(username, movie_id))
        except RepositoryError as e:
            return Result.failure(str(e))

    async def remove_favorite(self, username: str, movie_id: str) -> Result[UserRecord]:
        try:
            return Result.success(await self._remove_favorite(username, movie_id))
        except RepositoryError as e:
            return Result.failure(str(e))

    async def health_check(self) -> bool:
        """Check if database is accessible.

        Returns:
            True if database is healthy, False otherwise.
        """
        try:
            await self.database.execute("SELECT 1")
            return True
        except (ConnectionError, TimeoutError):
            logger.exception("Database health check failed")
            return False

    @with_storage_retry("sql")
    async def _update_user(self, username: str, changes: dict[str, Any]) -> UserRecord | None:
        values = {k: v for k, v in changes.items() if k in _USER_FIELDS}
        async with self.database.transaction():
            user_id = await self._user_id(username)
            if user_id is None:
                return None
            if values:
                try:
                    await self.database.execute(
                        self.users.update().where(self.users.c.id == user_id).values(**values)
                    )
                except Exception as e:
                    if _is_unique_violation(e):
                        raise ConflictError(f"{values.get('username')} already exists") from e
                    raise
            return await self._load_user(values.get("username", username))

    @with_storage_retry("sql")
    async def _delete_user(self, username: str) -> UserRecord | None:
        async with self.database.transaction():
            user = await self._load_user(username)
            if user is None:
                return None
            await self.database.execute(
                self.favorites.delete().where(self.favorites.c.user_id == user["id"])
            )
            await self.database.execute(self.users.delete().where(self.users.c.id == user["id"]))
            return user

    @with_storage_retry("sql")
    async def _add_favorite(self, username: str, movie_id: str) -> UserRecord | None:
        user_id = await self._user_id(username)
        if user_id is None:
            return None
        try:
            await self.database.execute(
                self.favorites.insert().values(user_id=user_id, movie_id=movie_id)
            )
        except Exception as e:
            # Already a favorite: set semantics make this a no-op
            if not _is_unique_violation(e):
                raise
        return await self._load_user(username)

    @with_storage_retry("sql")
    async def _remove_favorite(self, username: str, movie_id: str) -> UserRecord | None:
        user_id = await self._user_id(username)
        if user_id is None:
            return None
        await self.database.execute(
            self.favorites.delete().where(
                (self.favorites.c.user_id == user_id) & (self.favorites.c.movie_id == movie_id)
            )
        )
        return await self._load_user(username)

    async def _user_id(self, username: str) -> str | None:
        row = await self.database.fetch_one(
            sa.select(self.users.c.id).where(self.users.c.username == username)
        )
        return row["id"] if row else None

    async def _load_user(self, username: str) -> UserRecord | None:
        row = await self.database.fetch_one(self.users.select().where(self.users.c.username == username))
        if row is None:
            return None
        favorite_rows = await self.database.fetch_all(
            sa.select(self.favorites.c.movie_id).where(self.favorites.c.user_id == row["id"])
        )
        return self._user_from_row(row, [r["movie_id"] for r in favorite_rows])

    @staticmethod
    def _user_from_row(row: Any, favorites: list[str]) -> UserRecord:
        return {
            "id": row["id"],
            "username": row["username"],
            "password_hash": row["password_hash"],
            "email": row["email"],
            "birthday": row["birthday"],
            "favorite_movies": sorted(favorites),
        }

    @staticmethod
    def _movie_from_row(row: Any) -> MovieRecord:
        return {
            "id": row["id"],
            "title": row["title"],
            "description": row["description"] or "",
            "genre": {"name": row["genre_name"], "description": row["genre_description"] or ""},
            "director": {
                "name": row["director_name"],
                "bio": row["director_bio"] or "",
                "birth": row["director_birth"],
                "death": row["director_death"],
            },
            "image_path": row["image_path"],
            "featured": bool(row["featured"]),
        }

    def _get_sync_url(self) -> str:
        """Get synchronous database URL for table creation."""
        url = sa.engine.make_url(str(self.database.url))
        if url.database in (None, "", ":memory:") and url.get_backend_name() == "sqlite":
            # Every connection to an in-memory SQLite database sees a different database
            raise ConfigurationError(
                "In-memory SQLite is not supported; use a file path or memory:// instead"
            )
        return url.set(drivername=url.get_backend_name()).render_as_string(hide_password=False)

    def _create_tables_sync(self, sync_url: str) -> None:
        """Synchronously create database tables."""
        engine = sa.create_engine(sync_url)
        self.metadata.create_all(engine)
        engine.dispose()
