"""Web app: book pages, Open Library search and reading status."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import requests
from fastapi import APIRouter, Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import RedirectResponse

from betterreads.client import OpenLibraryClient, ResponseTooLargeError
from betterreads.config import Config
from betterreads.database import Database
from betterreads.models import UserBook
from betterreads.parse import RecordError, parse_user_book_form

logger = logging.getLogger(__name__)

router = APIRouter()


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_db(request: Request):
    return request.app.state.db


def get_search_client(request: Request) -> OpenLibraryClient:
    return request.app.state.search_client


def get_login(request: Request, config: Config = Depends(get_config)) -> Optional[str]:
    """Login of the authenticated user, as forwarded by the OAuth proxy."""
    login = request.headers.get(config.LOGIN_HEADER, "").strip()
    return login or None


@router.get("/")
def home(login: Optional[str] = Depends(get_login)):
    if login is None:
        return {"page": "index"}
    return {"page": "home", "login": login}


@router.get("/books/{book_id}")
def get_book(book_id: str, db=Depends(get_db), login: Optional[str] = Depends(get_login)):
    """Book detail page, with the user's reading status when signed in."""
    book = db.get_book(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="book-not-found")

    context = {"page": "book", "book": book, "cover_image": book.cover_url}
    if login is not None:
        context["login"] = login
        context["user_book"] = db.get_user_book(login, book_id) or UserBook(user_id=login, book_id=book_id)
    return context


@router.get("/search")
def search(
    query: str,
    client: OpenLibraryClient = Depends(get_search_client),
    config: Config = Depends(get_config)
):
    """Proxy a free-text search to Open Library."""
    try:
        books = client.search_books(query, limit=config.SEARCH_RESULT_LIMIT)
    except (requests.RequestException, ResponseTooLargeError, ValueError) as e:
        logger.error(f"Search failed for {query!r}: {e}")
        raise HTTPException(status_code=502, detail="search-failed") from e

    return {"page": "search", "query": query, "search_result": books}


@router.post("/addUserBook")
def add_user_book(
    book_id: str = Form(..., alias="bookId"),
    start_date: str = Form("", alias="startDate"),
    completed_date: str = Form("", alias="completedDate"),
    rating: str = Form(""),
    status: str = Form(""),
    db=Depends(get_db),
    login: Optional[str] = Depends(get_login)
):
    """Save the signed-in user's reading status and go back to the book page."""
    if login is None:
        raise HTTPException(status_code=401, detail="login-required")

    form = {
        "bookId": book_id,
        "startDate": start_date,
        "completedDate": completed_date,
        "rating": rating,
        "status": status,
    }
    try:
        user_book = parse_user_book_form(form, login)
    except RecordError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    if not db.upsert_user_book(user_book):
        raise HTTPException(status_code=500, detail="save-failed")

    return RedirectResponse(url=f"/books/{user_book.book_id}", status_code=303)


def create_app(db=None, search_client: Optional[OpenLibraryClient] = None, config: Optional[Config] = None) -> FastAPI:
    """
    Build the web app.

    Collaborators that are not passed in are created from config on startup
    and closed on shutdown.
    """
    config = config or Config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = []
        if app.state.db is None:
            app.state.db = Database(config.DATABASE_URL)
            app.state.db.init_schema()
            owned.append(app.state.db)
        if app.state.search_client is None:
            app.state.search_client = OpenLibraryClient(
                base_url=config.OPEN_LIBRARY_SEARCH_URL,
                timeout=config.DEFAULT_TIMEOUT,
                max_buffer_bytes=config.SEARCH_MAX_BUFFER_BYTES
            )
            owned.append(app.state.search_client)
        yield
        for resource in owned:
            resource.close()

    app = FastAPI(title="Betterreads", lifespan=lifespan)
    app.state.config = config
    app.state.db = db
    app.state.search_client = search_client
    app.include_router(router)
    return app
