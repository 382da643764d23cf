"""Shared test fixtures."""

import os

# Set test environment before the package reads its settings
os.environ["MYFLIX_DATABASE_URL"] = "memory://"
os.environ["MYFLIX_RATE_LIMIT"] = "1000/minute"
os.environ["MYFLIX_LOG_LEVEL"] = "ERROR"  # Reduce log noise
os.environ["MYFLIX_BCRYPT_ROUNDS"] = "4"
os.environ["MYFLIX_SECRET_KEY"] = "test-secret-key"

from collections.abc import AsyncGenerator, Callable  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from myflix_api import app  # noqa: E402
from myflix_api.middleware import JWTAuthenticator  # noqa: E402
from myflix_api.security import create_token  # noqa: E402
from myflix_api.service import MyFlixService  # noqa: E402
from myflix_api.storage import InMemoryRepository, seed_movies  # noqa: E402
from myflix_api.types import MovieRecord  # noqa: E402

SAMPLE_MOVIES: list[MovieRecord] = [
    {
        "id": "abc123",
        "title": "Silence of the Lambs",
        "description": "A young FBI cadet seeks the help of an incarcerated killer.",
        "genre": {"name": "Thriller", "description": "Suspense and tension."},
        "director": {"name": "Jonathan Demme", "bio": "American director.", "birth": "1944", "death": "2017"},
        "image_path": "silenceofthelambs.png",
        "featured": True,
    },
    {
        "id": "def456",
        "title": "Lost in Translation",
        "description": "A faded movie star bonds with a young woman in Tokyo.",
        "genre": {"name": "Drama", "description": "Character-driven stories."},
        "director": {"name": "Sofia Coppola", "bio": "American director.", "birth": "1971", "death": None},
        "image_path": "lostintranslation.png",
        "featured": False,
    },
]


@pytest.fixture
def sample_movies() -> list[MovieRecord]:
    return [dict(m) for m in SAMPLE_MOVIES]  # type: ignore[misc]


@pytest_asyncio.fixture
async def repository(sample_movies) -> InMemoryRepository:
    """In-memory repository seeded with the sample catalog."""
    repo = InMemoryRepository()
    await seed_movies(repo, sample_movies)
    return repo


@pytest.fixture
def service(repository) -> MyFlixService:
    return MyFlixService(repository)


@pytest_asyncio.fixture
async def client(service) -> AsyncGenerator[AsyncClient, None]:
    """Test client wired to the in-memory repository via app.state."""
    app.state.repository = service.repository
    app.state.service = service
    app.state.authenticator = JWTAuthenticator()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Build an Authorization header carrying a valid token for a username."""

    def build(username: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_token(username)}"}

    return build


@pytest.fixture
def registration() -> dict[str, str]:
    """A valid registration payload."""
    return {
        "username": "MovieFan1",
        "password": "hunter2",
        "email": "a@b.com",
        "birthday": "1990-05-17",
    }
