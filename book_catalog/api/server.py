from __future__ import annotations

import traceback
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from book_catalog import __version__
from book_catalog.auth import SqlIdentityStore, get_identity_context, require_identity
from book_catalog.auth import service as auth_service
from book_catalog.catalog import books, genres
from book_catalog.config import Config, load_config
from book_catalog.db import connect, init_db
from book_catalog.errors import ServiceError


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def _envelope(success: bool, message: str, data: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    return body


# -----------------------------
# Request bodies
# -----------------------------
# Fields are optional so missing values reach the operations, which own the
# validation messages.


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class GenreRequest(BaseModel):
    name: Optional[str] = None


class BookRequest(BaseModel):
    title: Optional[str] = None
    writer: Optional[str] = None
    publisher: Optional[str] = None
    publication_year: Optional[int] = None
    description: Optional[str] = None
    price: Optional[float] = None
    stock_quantity: Optional[int] = None
    genre_id: Optional[str] = None


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    cfg = cfg or load_config()
    app = FastAPI(title="Book Catalog API", version=__version__)
    # Make config available to auth deps.
    app.state.cfg = cfg

    _cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if _cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.on_event("startup")
    def _on_startup() -> None:
        if cfg.INIT_DB_ON_STARTUP:
            init_db(cfg.DB_DSN)
        if not cfg.AUTH_JWT_SECRET:
            _debug("WARNING: JWT_SECRET is not set; /auth/login will answer 500 until it is configured")

    # -----------------------------
    # Error handling
    # -----------------------------

    @app.exception_handler(ServiceError)
    def _service_error(request: Request, exc: ServiceError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(False, exc.message),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_envelope(False, "Invalid request"))

    @app.exception_handler(StarletteHTTPException)
    def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(False, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        _debug(f"{request.method} {request.url.path} error: {exc!r}\n{traceback.format_exc()}")
        return JSONResponse(status_code=500, content=_envelope(False, "Internal server error"))

    # -----------------------------
    # Health
    # -----------------------------

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    # -----------------------------
    # Auth
    # -----------------------------

    @app.post("/auth/register", status_code=201)
    def auth_register(payload: RegisterRequest) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            summary = auth_service.register(
                SqlIdentityStore(conn),
                payload.email,
                payload.password,
                payload.username,
                password_scheme=cfg.AUTH_PASSWORD_SCHEME,
            )
        return _envelope(True, "User registered successfully", summary)

    @app.post("/auth/login")
    def auth_login(payload: LoginRequest) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            token = auth_service.login(
                SqlIdentityStore(conn),
                payload.email,
                payload.password,
                secret=cfg.AUTH_JWT_SECRET,
                expires_in=cfg.AUTH_TOKEN_EXPIRES_IN,
                password_scheme=cfg.AUTH_PASSWORD_SCHEME,
            )
        return _envelope(True, "Login successful", {"access_token": token})

    @app.get("/auth/me")
    def auth_me(identity_id: Optional[str] = Depends(get_identity_context)) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            profile = auth_service.get_profile(SqlIdentityStore(conn), identity_id)
        return _envelope(True, "Profile fetched successfully", profile)

    # -----------------------------
    # Genres
    # -----------------------------

    @app.post("/genres", status_code=201)
    def create_genre(payload: GenreRequest, _identity: str = Depends(require_identity)) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            genre = genres.create_genre(conn, payload.name)
        return _envelope(True, "Genre created", genre)

    @app.get("/genres")
    def list_genres() -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            rows = genres.list_genres(conn)
        return _envelope(True, "Genres fetched", rows)

    @app.put("/genres/{genre_id}")
    def update_genre(
        genre_id: str,
        payload: GenreRequest,
        _identity: str = Depends(require_identity),
    ) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            genre = genres.update_genre(conn, genre_id, payload.name)
        return _envelope(True, "Genre updated", genre)

    @app.delete("/genres/{genre_id}")
    def delete_genre(genre_id: str, _identity: str = Depends(require_identity)) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            genres.delete_genre(conn, genre_id)
        return _envelope(True, "Genre deleted")

    # -----------------------------
    # Books
    # -----------------------------

    @app.post("/books", status_code=201)
    def create_book(payload: BookRequest, _identity: str = Depends(require_identity)) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            book = books.create_book(conn, payload.model_dump())
        return _envelope(True, "Book created", book)

    @app.get("/books")
    def list_books(
        title: Optional[str] = None,
        page: int = Query(books.DEFAULT_PAGE, ge=1),
        limit: int = Query(books.DEFAULT_LIMIT, ge=1, le=books.MAX_LIMIT),
    ) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            rows = books.list_books(conn, title=title, page=page, limit=limit)
        return _envelope(True, "Books fetched", rows)

    @app.get("/books/{book_id}")
    def get_book(book_id: str) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            book = books.get_book(conn, book_id)
        return _envelope(True, "Book fetched", book)

    @app.put("/books/{book_id}")
    def update_book(
        book_id: str,
        payload: BookRequest,
        _identity: str = Depends(require_identity),
    ) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            book = books.update_book(conn, book_id, payload.model_dump(exclude_unset=True))
        return _envelope(True, "Book updated", book)

    @app.delete("/books/{book_id}")
    def delete_book(book_id: str, _identity: str = Depends(require_identity)) -> Dict[str, Any]:
        with connect(cfg.DB_DSN) as conn:
            books.delete_book(conn, book_id)
        return _envelope(True, "Book deleted")

    return app


app = create_app()
