"""FastAPI application and route handlers."""

import sys
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import settings
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    MyFlixError,
    NotFoundError,
    RepositoryError,
    ValidationError,
)
from .middleware import JWTAuthenticator, add_request_id, authorize, get_current_principal
from .models import Director, Genre, LoginRequest, LoginResponse, Movie, Principal, User, UserPayload
from .security import create_token
from .service import MyFlixService
from .storage import create_repository

HTTP_422_UNPROCESSABLE = 422


def configure_logging() -> None:
    """Configure logging - should be called at startup, not import time."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
        serialize=False,
    )
    if settings.is_lambda_environment:
        # Lambda logs to stdout
        logger.add(sys.stdout, level=settings.log_level, serialize=False)
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level=settings.log_level,
        )


def get_limiter() -> Limiter:
    """Create the rate limiter for the unauthenticated write endpoints."""
    return Limiter(key_func=get_remote_address, storage_uri="memory://")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    configure_logging()

    repository = create_repository()
    try:
        await repository.startup()
    except Exception as e:
        logger.error(f"Storage startup failed: {e}")
        raise

    app.state.repository = repository
    app.state.service = MyFlixService(
        repository, verify_favorite_movies=settings.verify_favorite_movies
    )
    app.state.authenticator = JWTAuthenticator()

    logger.info("Application started successfully")

    yield

    await repository.shutdown()
    app.state.service = None
    logger.info("Application shutdown complete")


app = FastAPI(
    title="myFlix API",
    version="1.0.0",
    description="Movies, users and favorite movies behind JWT authentication",
    lifespan=lifespan,
)

app.middleware("http")(add_request_id)

limiter = get_limiter()
app.state.limiter = limiter  # Required by slowapi
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report malformed request bodies in the same shape as field-rule violations."""
    violations = []

    for error in exc.errors():  # type: ignore[attr-defined]
        location = error["loc"][0] if error["loc"] else "body"
        field = error["loc"][-1] if error["loc"] else "field"
        message = error.get("msg", f"Invalid {field}")

        match error["type"]:
            case "missing":
                message = f"Required field '{field}' is missing"
            case "json_invalid":
                message = "Invalid JSON format"

        violations.append({"location": location, "param": field, "msg": message})

    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE,
        content={"errors": violations},
    )


app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]


@app.exception_handler(MyFlixError)
async def myflix_exception_handler(request: Request, exc: MyFlixError) -> JSONResponse:
    """Map domain errors to HTTP responses."""
    headers = {"X-Request-ID": getattr(request.state, "request_id", "")}

    match exc:
        case AuthenticationError():
            logger.info(f"Authentication failed: {exc}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Could not validate credentials"},
                headers={**headers, "WWW-Authenticate": "Bearer"},
            )
        case ValidationError():
            logger.info(f"Validation failed: {exc}")
            return JSONResponse(
                status_code=HTTP_422_UNPROCESSABLE,
                content={"errors": exc.violations},
                headers=headers,
            )
        case AuthorizationError():
            status_code = status.HTTP_403_FORBIDDEN
        case NotFoundError():
            status_code = status.HTTP_404_NOT_FOUND
        case ConflictError():
            status_code = status.HTTP_400_BAD_REQUEST
        case RepositoryError():
            logger.error(f"Repository error: {exc}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": "Internal server error"},
                headers=headers,
            )
        case _:
            logger.error(f"myFlix API error: {exc}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": "Internal server error"},
                headers=headers,
            )

    logger.info(f"{exc.__class__.__name__}: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)}, headers=headers)


def get_service(request: Request) -> MyFlixService:
    """Get the service built at startup."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise RuntimeError("Service not initialized")
    return service


ServiceDep = Annotated[MyFlixService, Depends(get_service)]
PrincipalDep = Annotated[Principal, Depends(get_current_principal)]


@app.get("/", tags=["health"], response_class=PlainTextResponse)
async def root_endpoint() -> str:
    """Welcome message."""
    return "Hello, welcome to myFlix App."


@app.get("/health", tags=["health"])
async def health_endpoint(response: Response, service: ServiceDep) -> dict[str, Any]:
    """Check health of the storage backend."""
    services = await service.health_check()
    all_healthy = all(services.values())

    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": services,
    }


@app.post("/login", tags=["auth"])
@limiter.limit(settings.rate_limit)
async def login_endpoint(request: Request, credentials: LoginRequest, service: ServiceDep) -> LoginResponse:
    """Exchange a username and password for a bearer token."""
    user = await service.authenticate(credentials.username, credentials.password)
    return LoginResponse(user=User.from_record(user), token=create_token(user["username"]))


# Movies


@app.get("/movies", tags=["movies"])
async def list_movies_endpoint(principal: PrincipalDep, service: ServiceDep) -> list[Movie]:
    """All movies in the catalog."""
    return [Movie.from_record(m) for m in await service.list_movies()]


@app.get("/movies/{title}", tags=["movies"])
async def get_movie_endpoint(title: str, principal: PrincipalDep, service: ServiceDep) -> Movie:
    """A single movie by title."""
    return Movie.from_record(await service.get_movie(title))


@app.get("/genres/{genre_name}", tags=["movies"])
async def get_genre_endpoint(genre_name: str, principal: PrincipalDep, service: ServiceDep) -> Genre:
    """A genre by name."""
    return Genre.model_validate(await service.get_genre(genre_name))


@app.get("/directors/{name}", tags=["movies"])
async def get_director_endpoint(name: str, principal: PrincipalDep, service: ServiceDep) -> Director:
    """A director by name."""
    return Director.model_validate(await service.get_director(name))


# Users


@app.get("/users", tags=["users"])
async def list_users_endpoint(principal: PrincipalDep, service: ServiceDep) -> list[User]:
    return [User.from_record(u) for u in await service.list_users()]


@app.get("/users/favorites/{username}", tags=["favorites"])
@app.get("/users/favoriteMovies/{username}", tags=["favorites"], include_in_schema=False)
async def list_favorites_endpoint(
    username: str, principal: PrincipalDep, service: ServiceDep
) -> list[str]:
    """Movie references on a user's favorites list."""
    return await service.favorites.list_favorites(username)


@app.get("/users/{username}", tags=["users"])
async def get_user_endpoint(username: str, principal: PrincipalDep, service: ServiceDep) -> User:
    return User.from_record(await service.get_user(username))


@app.post("/users", tags=["users"], status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit)
async def register_endpoint(
    request: Request, service: ServiceDep, payload: UserPayload | None = Body(default=None)
) -> User:
    """Register a new account. No authentication required."""
    user = await service.register((payload or UserPayload()).model_dump())
    return User.from_record(user)


@app.put("/users/{username}", tags=["users"])
async def update_user_endpoint(
    username: str,
    principal: PrincipalDep,
    service: ServiceDep,
    payload: UserPayload | None = Body(default=None),
) -> User:
    """Update the fields present in the body."""
    authorize(principal, username)
    changes = payload.provided() if payload is not None else {}
    return User.from_record(await service.update_profile(username, changes))


@app.delete("/users/{username}", tags=["users"], response_class=PlainTextResponse)
async def delete_user_endpoint(
    username: str, principal: PrincipalDep, service: ServiceDep
) -> PlainTextResponse:
    """Deregister an account."""
    authorize(principal, username)
    try:
        await service.deregister(username)
    except NotFoundError:
        return PlainTextResponse(f"{username} was not found", status_code=status.HTTP_400_BAD_REQUEST)
    return PlainTextResponse(f"{username} was deleted")


# Favorites


@app.post("/users/{username}/favoriteMovies/{movie_id}", tags=["favorites"])
async def add_favorite_endpoint(
    username: str, movie_id: str, principal: PrincipalDep, service: ServiceDep
) -> User:
    authorize(principal, username)
    return User.from_record(await service.favorites.add_favorite(username, movie_id))


@app.delete("/users/{username}/movies/{movie_id}", tags=["favorites"])
async def remove_favorite_endpoint(
    username: str, movie_id: str, principal: PrincipalDep, service: ServiceDep
) -> User:
    authorize(principal, username)
    return User.from_record(await service.favorites.remove_favorite(username, movie_id))


app.openapi_tags = [
    {"name": "movies", "description": "Movie catalog"},
    {"name": "users", "description": "Accounts"},
    {"name": "favorites", "description": "Favorite movies"},
    {"name": "auth", "description": "Authentication"},
    {"name": "health", "description": "Health checks"},
]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    return app
