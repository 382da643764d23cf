"""Per-user favorite movies."""

from loguru import logger

from .exceptions import NotFoundError, RepositoryError
from .storage import Repository
from .types import Result, UserRecord


class FavoritesManager:
    """Adds and removes movie references on a user's favorites set.

    Set updates are delegated to the repository's atomic single-record
    primitives, so concurrent add/remove calls for one user do not lose each
    other's writes. The optional movie existence check is a separate read and
    is not atomic with the update.
    """

    def __init__(self, repository: Repository, verify_movies: bool = True) -> None:
        self.repository = repository
        self.verify_movies = verify_movies

    async def add_favorite(self, username: str, movie_id: str) -> UserRecord:
        if self.verify_movies:
            try:
                movie = await self.repository.get_movie(movie_id)
            except RepositoryError:
                raise
            except Exception as e:
                raise RepositoryError(f"Failed to look up movie: {e}") from e
            if movie is None:
                raise NotFoundError(f"Movie {movie_id} was not found")

        result = await self.repository.add_favorite(username, movie_id)
        user = self._unwrap(result, username, "add favorite")
        logger.info(f"{username} added {movie_id} to favorites")
        return user

    async def remove_favorite(self, username: str, movie_id: str) -> UserRecord:
        result = await self.repository.remove_favorite(username, movie_id)
        user = self._unwrap(result, username, "remove favorite")
        logger.info(f"{username} removed {movie_id} from favorites")
        return user

    async def list_favorites(self, username: str) -> list[str]:
        try:
            user = await self.repository.get_user(username)
        except RepositoryError:
            raise
        except Exception as e:
            raise RepositoryError(f"Failed to load user: {e}") from e
        if user is None:
            raise NotFoundError(f"{username} was not found")
        return list(user.get("favorite_movies") or [])

    @staticmethod
    def _unwrap(result: Result[UserRecord], username: str, action: str) -> UserRecord:
        if not result.ok:
            logger.error(f"Failed to {action} for {username}: {result.error}")
            raise RepositoryError(f"Failed to {action}: {result.error}")
        if result.value is None:
            raise NotFoundError(f"{username} was not found")
        return result.value
