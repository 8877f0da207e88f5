"""Entry point for the FastAPI-powered catalog backend."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import AccessGate, AccessPolicy, Principal
from .config import settings
from .database import Database
from .errors import CatalogError, InvalidRequestError, UpstreamServiceError
from .kv_store import SQLKeyValueStore
from .models import CONTENT_TYPES, ContentType, Title
from .repository import CatalogRepository
from .services.catalog import CatalogService
from .services.favorites import FavoritesService
from .services.storage import StorageClient
from .services.supabase_auth import SupabaseAuthClient
from .services.tmdb import TMDBClient
from .services.users import UserService
from .utils import coerce_bool

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    database = Database(settings.database_url)
    await database.create_all()
    repository = CatalogRepository(SQLKeyValueStore(database.session_factory))
    policy = AccessPolicy(settings.super_admin_email)

    storage: StorageClient | None = None
    access_gate: AccessGate | None = None
    user_service: UserService | None = None
    supabase_base = settings.supabase_base_url
    if supabase_base and settings.supabase_service_role_key:
        auth_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=f"{supabase_base}/auth/v1",
                timeout=httpx.Timeout(20.0, connect=10.0),
            )
        )
        storage_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=f"{supabase_base}/storage/v1",
                timeout=httpx.Timeout(20.0, connect=10.0),
            )
        )
        auth_provider = SupabaseAuthClient(settings, auth_http_client)
        storage = StorageClient(settings, storage_http_client)
        access_gate = AccessGate(auth_provider, policy)
        user_service = UserService(auth_provider, policy)
        try:
            await storage.ensure_bucket(settings.slider_bucket)
        except UpstreamServiceError:
            logger.exception("Unable to prepare storage bucket %s", settings.slider_bucket)
    else:
        logger.warning(
            "SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY missing; "
            "authenticated endpoints will be unavailable"
        )

    tmdb_client: TMDBClient | None = None
    if settings.tmdb_api_key:
        tmdb_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=str(settings.tmdb_api_url),
                timeout=httpx.Timeout(15.0, connect=5.0),
            )
        )
        tmdb_client = TMDBClient(settings, tmdb_http_client)

    fastapi_app.state.database = database
    fastapi_app.state.catalog_service = CatalogService(settings, repository, storage)
    fastapi_app.state.favorites_service = FavoritesService(repository)
    fastapi_app.state.access_gate = access_gate
    fastapi_app.state.user_service = user_service
    fastapi_app.state.tmdb_client = tmdb_client

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Movie and series catalog with curated home feeds",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_catalog_service(app: FastAPI) -> CatalogService:
    service = getattr(app.state, "catalog_service", None)
    if not isinstance(service, CatalogService):
        raise RuntimeError("Catalog service not initialised")
    return service


def get_favorites_service(app: FastAPI) -> FavoritesService:
    service = getattr(app.state, "favorites_service", None)
    if not isinstance(service, FavoritesService):
        raise RuntimeError("Favorites service not initialised")
    return service


def get_access_gate(app: FastAPI) -> AccessGate:
    gate = getattr(app.state, "access_gate", None)
    if not isinstance(gate, AccessGate):
        raise UpstreamServiceError("Authentication provider is not configured")
    return gate


def get_user_service(app: FastAPI) -> UserService:
    service = getattr(app.state, "user_service", None)
    if not isinstance(service, UserService):
        raise UpstreamServiceError("Authentication provider is not configured")
    return service


def get_tmdb_client(app: FastAPI) -> TMDBClient:
    client = getattr(app.state, "tmdb_client", None)
    if not isinstance(client, TMDBClient):
        raise UpstreamServiceError("TMDB API key is not configured")
    return client


def register_exception_handlers(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(CatalogError)
    async def catalog_error_handler(_: Request, exc: CatalogError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @fastapi_app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            {"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers
        )

    @fastapi_app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse({"error": _format_errors(exc.errors())}, status_code=400)

    @fastapi_app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": str(exc)}, status_code=500)


def register_routes(fastapi_app: FastAPI) -> None:
    register_exception_handlers(fastapi_app)

    async def _require_user(request: Request) -> Principal:
        gate = get_access_gate(fastapi_app)
        return await gate.require_user(request.headers.get("authorization"))

    async def _require_admin(request: Request) -> Principal:
        gate = get_access_gate(fastapi_app)
        return await gate.require_admin(request.headers.get("authorization"))

    async def _list_titles(content_type: ContentType) -> JSONResponse:
        titles = await get_catalog_service(fastapi_app).list_titles(content_type)
        return JSONResponse([title.to_record() for title in titles])

    async def _get_title(content_type: ContentType, content_id: str) -> JSONResponse:
        title = await get_catalog_service(fastapi_app).get_title(content_type, content_id)
        return JSONResponse(title.to_record())

    async def _create_title(request: Request, content_type: ContentType) -> dict[str, Any]:
        await _require_admin(request)
        payload = _validate_title(await _read_json(request))
        title = await get_catalog_service(fastapi_app).create_title(content_type, payload)
        return {"success": True, "id": title.id}

    async def _update_title(
        request: Request, content_type: ContentType, content_id: str
    ) -> dict[str, Any]:
        await _require_admin(request)
        payload = _validate_title(await _read_json(request))
        await get_catalog_service(fastapi_app).update_title(content_type, content_id, payload)
        return {"success": True}

    async def _delete_title(
        request: Request, content_type: ContentType, content_id: str
    ) -> dict[str, Any]:
        await _require_admin(request)
        outcome = await get_catalog_service(fastapi_app).delete_title(content_type, content_id)
        return outcome.to_payload()

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.post("/signup")
    async def signup(request: Request) -> dict[str, Any]:
        payload = await _read_json(request)
        user = await get_user_service(fastapi_app).signup(
            str(payload.get("email") or ""),
            str(payload.get("password") or ""),
            payload.get("name"),
        )
        return {"success": True, "user": user.model_dump()}

    @fastapi_app.post("/update-password")
    async def update_password(request: Request) -> dict[str, Any]:
        principal = await _require_user(request)
        payload = await _read_json(request)
        await get_user_service(fastapi_app).update_password(
            principal.user, str(payload.get("newPassword") or "")
        )
        return {"success": True}

    @fastapi_app.get("/tmdb/search/movie")
    async def tmdb_search_movie(request: Request, query: str = "") -> JSONResponse:
        await _require_admin(request)
        return JSONResponse(await get_tmdb_client(fastapi_app).search_movie(query))

    @fastapi_app.get("/tmdb/search/tv")
    async def tmdb_search_tv(request: Request, query: str = "") -> JSONResponse:
        await _require_admin(request)
        return JSONResponse(await get_tmdb_client(fastapi_app).search_tv(query))

    @fastapi_app.get("/tmdb/movie/{tmdb_id}")
    async def tmdb_movie(request: Request, tmdb_id: str) -> JSONResponse:
        await _require_admin(request)
        return JSONResponse(await get_tmdb_client(fastapi_app).get_movie(tmdb_id))

    @fastapi_app.get("/tmdb/movie/{tmdb_id}/draft")
    async def tmdb_movie_draft(request: Request, tmdb_id: str) -> JSONResponse:
        await _require_admin(request)
        draft = await get_tmdb_client(fastapi_app).movie_draft(tmdb_id)
        return JSONResponse(draft.to_record())

    @fastapi_app.get("/tmdb/tv/{tmdb_id}")
    async def tmdb_tv(request: Request, tmdb_id: str) -> JSONResponse:
        await _require_admin(request)
        return JSONResponse(await get_tmdb_client(fastapi_app).get_tv(tmdb_id))

    @fastapi_app.get("/tmdb/tv/{tmdb_id}/draft")
    async def tmdb_tv_draft(request: Request, tmdb_id: str) -> JSONResponse:
        await _require_admin(request)
        draft = await get_tmdb_client(fastapi_app).tv_draft(tmdb_id)
        return JSONResponse(draft.to_record())

    @fastapi_app.get("/tmdb/tv/{tmdb_id}/season/{season_number}")
    async def tmdb_season(request: Request, tmdb_id: str, season_number: int) -> JSONResponse:
        await _require_admin(request)
        return JSONResponse(
            await get_tmdb_client(fastapi_app).get_season(tmdb_id, season_number)
        )

    @fastapi_app.get("/tmdb/tv/{tmdb_id}/season/{season_number}/draft")
    async def tmdb_season_draft(
        request: Request, tmdb_id: str, season_number: int
    ) -> JSONResponse:
        await _require_admin(request)
        season = await get_tmdb_client(fastapi_app).season_draft(tmdb_id, season_number)
        return JSONResponse(season.to_record())

    @fastapi_app.get("/movies")
    async def list_movies() -> JSONResponse:
        return await _list_titles("movie")

    @fastapi_app.get("/movies/{content_id}")
    async def get_movie(content_id: str) -> JSONResponse:
        return await _get_title("movie", content_id)

    @fastapi_app.post("/movies")
    async def create_movie(request: Request) -> dict[str, Any]:
        return await _create_title(request, "movie")

    @fastapi_app.put("/movies/{content_id}")
    async def update_movie(request: Request, content_id: str) -> dict[str, Any]:
        return await _update_title(request, "movie", content_id)

    @fastapi_app.delete("/movies/{content_id}")
    async def delete_movie(request: Request, content_id: str) -> dict[str, Any]:
        return await _delete_title(request, "movie", content_id)

    @fastapi_app.get("/series")
    async def list_series() -> JSONResponse:
        return await _list_titles("series")

    @fastapi_app.get("/series/{content_id}")
    async def get_series(content_id: str) -> JSONResponse:
        return await _get_title("series", content_id)

    @fastapi_app.post("/series")
    async def create_series(request: Request) -> dict[str, Any]:
        return await _create_title(request, "series")

    @fastapi_app.put("/series/{content_id}")
    async def update_series(request: Request, content_id: str) -> dict[str, Any]:
        return await _update_title(request, "series", content_id)

    @fastapi_app.delete("/series/{content_id}")
    async def delete_series(request: Request, content_id: str) -> dict[str, Any]:
        return await _delete_title(request, "series", content_id)

    @fastapi_app.get("/favorites")
    async def list_favorites(request: Request) -> JSONResponse:
        principal = await _require_user(request)
        favorites = await get_favorites_service(fastapi_app).list_favorites(principal.user.id)
        return JSONResponse([entry.to_record() for entry in favorites])

    @fastapi_app.post("/favorites")
    async def add_favorite(request: Request) -> dict[str, Any]:
        principal = await _require_user(request)
        payload = await _read_json(request)
        content_id = payload.get("contentId")
        if content_id is None or str(content_id).strip() == "":
            raise InvalidRequestError("contentId is required")
        await get_favorites_service(fastapi_app).add_favorite(
            principal.user.id, str(content_id), _optional_content_type(payload.get("type"))
        )
        return {"success": True}

    @fastapi_app.delete("/favorites/{content_id}")
    async def remove_favorite(request: Request, content_id: str) -> dict[str, Any]:
        principal = await _require_user(request)
        await get_favorites_service(fastapi_app).remove_favorite(principal.user.id, content_id)
        return {"success": True}

    @fastapi_app.get("/slider")
    async def list_slider() -> JSONResponse:
        entries = await get_catalog_service(fastapi_app).list_slider()
        return JSONResponse([entry.to_record() for entry in entries])

    @fastapi_app.post("/slider/upload")
    async def upload_slider(request: Request) -> dict[str, Any]:
        await _require_admin(request)
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise InvalidRequestError("No file provided")
        content_id = form.get("contentId")
        entry = await get_catalog_service(fastapi_app).upload_slider_image(
            upload.filename or "upload",
            await upload.read(),
            upload.content_type,
            content_id=content_id if isinstance(content_id, str) and content_id else None,
            content_type=_optional_content_type(form.get("type")),
        )
        return {"success": True, "url": entry.url}

    @fastapi_app.delete("/slider/{index}")
    async def delete_slider_entry(request: Request, index: int) -> dict[str, Any]:
        await _require_admin(request)
        await get_catalog_service(fastapi_app).remove_slider_entry(index)
        return {"success": True}

    @fastapi_app.get("/users")
    async def list_users(request: Request) -> JSONResponse:
        await _require_admin(request)
        users = await get_user_service(fastapi_app).list_users()
        return JSONResponse([user.model_dump() for user in users])

    @fastapi_app.post("/users")
    async def create_user(request: Request) -> dict[str, Any]:
        await _require_admin(request)
        payload = await _read_json(request)
        user = await get_user_service(fastapi_app).signup(
            str(payload.get("email") or ""),
            str(payload.get("password") or ""),
            payload.get("name"),
        )
        return {"success": True, "user": user.model_dump()}

    @fastapi_app.delete("/users/{user_id}")
    async def delete_user(request: Request, user_id: str) -> dict[str, Any]:
        await _require_admin(request)
        await get_user_service(fastapi_app).delete_user(user_id)
        return {"success": True}

    @fastapi_app.put("/users/{user_id}/admin")
    async def set_user_admin(request: Request, user_id: str) -> dict[str, Any]:
        await _require_admin(request)
        payload = await _read_json(request)
        await get_user_service(fastapi_app).set_admin(
            user_id, coerce_bool(payload.get("isAdmin"))
        )
        return {"success": True}

    @fastapi_app.post("/releases/refresh")
    async def refresh_releases(request: Request) -> dict[str, Any]:
        await _require_admin(request)
        updated = await get_catalog_service(fastapi_app).refresh_release_categories()
        return {"success": True, "updated": updated}

    @fastapi_app.get("/home")
    async def home_feed() -> JSONResponse:
        feed = await get_catalog_service(fastapi_app).home_feed()
        return JSONResponse(feed.to_payload())

    @fastapi_app.get("/search")
    async def search(q: str = "") -> JSONResponse:
        results = await get_catalog_service(fastapi_app).search_titles(q)
        return JSONResponse(
            {
                "movies": [title.to_record() for title in results["movie"]],
                "series": [title.to_record() for title in results["series"]],
            }
        )


async def _read_json(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidRequestError("Request body must be valid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidRequestError("Invalid payload")
    return payload


def _validate_title(payload: dict[str, Any]) -> Title:
    try:
        return Title.model_validate(payload)
    except ValidationError as exc:
        raise InvalidRequestError(_format_errors(exc.errors())) from exc


def _optional_content_type(value: object) -> ContentType | None:
    if isinstance(value, str) and value in CONTENT_TYPES:
        return value  # type: ignore[return-value]
    return None


def _format_errors(errors: Any) -> str:
    parts: list[str] = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else str(message))
    return "; ".join(parts) or "Invalid request"


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
