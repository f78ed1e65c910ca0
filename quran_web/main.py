from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from .client import (
    MAX_CHAPTER_ID,
    MIN_CHAPTER_ID,
    Chapter,
    QuranApi,
    QuranApiClient,
    QuranApiError,
    is_verse_key,
)
from .settings import SettingsManager
from .storage import BookmarkStore, ChapterCache
from .templates import (
    render_bookmarks_page,
    render_chapter_page,
    render_chapters_page,
    render_error_page,
)

DATA_DIR = Path("data")
DATA_DIR.mkdir(parents=True, exist_ok=True)
LOG_FILE = DATA_DIR / "server.log"
SETTINGS_PATH = DATA_DIR / "settings.json"

CHAPTERS_ERROR = "Failed to load chapters. Please try again later."
CHAPTER_ERROR = "Failed to load chapter. Please try again later."
BOOKMARKS_ERROR = "Failed to load bookmarks. Please try again later."
INVALID_CHAPTER = "Invalid chapter ID"
INVALID_BOOKMARK = "Invalid bookmark data"
UNEXPECTED_ERROR = "Something went wrong. Please try again later."


def _configure_logging() -> logging.Logger:
    logger = logging.getLogger("quran_web")
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler = RotatingFileHandler(
        LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.INFO)
    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)
    logger.propagate = False
    logger.debug("Logging initialised, writing to %s", LOG_FILE)
    return logger


logger = _configure_logging()


@dataclass
class AppState:
    """
    Everything the request handlers share for the lifetime of the process.
    """

    client: QuranApi
    bookmarks: BookmarkStore
    chapters: ChapterCache

    @classmethod
    def create(cls, client: QuranApi) -> "AppState":
        async def load_chapters() -> List[Chapter]:
            return await asyncio.to_thread(client.list_chapters)

        return cls(
            client=client,
            bookmarks=BookmarkStore(),
            chapters=ChapterCache(load_chapters),
        )

    @classmethod
    def from_settings(cls, settings_manager: SettingsManager) -> "AppState":
        return cls.create(QuranApiClient.from_settings(settings_manager.api))


async def gather_or_cancel(*aws: Awaitable[Any]) -> List[Any]:
    """
    Await all of ``aws`` concurrently and return their results in order.

    On the first failure every sibling still in flight is cancelled before the
    exception propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def parse_chapter_id(raw: Optional[str]) -> Optional[int]:
    if raw is None or not re.fullmatch(r"[+-]?[0-9]+", raw.strip()):
        return None
    return int(raw.strip())


def _client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def _get_state(request: Request) -> AppState:
    return request.app.state.quran


def _error(message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(render_error_page(message), status_code=status_code)


async def _read_form(request: Request) -> Dict[str, str]:
    body_bytes = await request.body()
    form_data = parse_qs(body_bytes.decode("utf-8", errors="replace"))
    return {key: values[-1] for key, values in form_data.items() if values}


async def _unexpected_error(request: Request, exc: Exception) -> HTMLResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(UNEXPECTED_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)


router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def list_chapters(state: AppState = Depends(_get_state)) -> HTMLResponse:
    try:
        chapters = await state.chapters.get()
    except QuranApiError as exc:
        logger.error("Error in chapters route: %s", exc)
        return _error(CHAPTERS_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTMLResponse(render_chapters_page(chapters))


@router.get("/chapter")
@router.get("/chapter/")
async def chapter_without_id() -> RedirectResponse:
    return RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)


@router.get("/chapter/{chapter_id}", response_class=HTMLResponse)
async def view_chapter(
    chapter_id: str,
    request: Request,
    state: AppState = Depends(_get_state),
) -> HTMLResponse:
    parsed_id = parse_chapter_id(chapter_id)
    if parsed_id is None or not MIN_CHAPTER_ID <= parsed_id <= MAX_CHAPTER_ID:
        return _error(INVALID_CHAPTER, status.HTTP_400_BAD_REQUEST)
    address = _client_address(request)
    try:
        verses, chapter = await gather_or_cancel(
            asyncio.to_thread(state.client.verses_by_chapter, parsed_id),
            asyncio.to_thread(state.client.get_chapter, parsed_id),
        )
    except QuranApiError as exc:
        logger.error("Error fetching chapter %d: %s", parsed_id, exc)
        return _error(CHAPTER_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.debug("Rendering chapter %d (%d verses) for %s", parsed_id, len(verses), address)
    html = render_chapter_page(
        chapter=chapter,
        verses=verses,
        bookmarks=state.bookmarks.list(address),
        client_address=address,
    )
    return HTMLResponse(html)


async def _bookmark_form(request: Request) -> Optional[Tuple[str, int]]:
    form = await _read_form(request)
    verse_id = (form.get("verseId") or "").strip()
    chapter_id = parse_chapter_id(form.get("chapterId"))
    if chapter_id is None or not MIN_CHAPTER_ID <= chapter_id <= MAX_CHAPTER_ID:
        return None
    if not is_verse_key(verse_id):
        return None
    return verse_id, chapter_id


@router.post("/bookmark")
async def add_bookmark(request: Request, state: AppState = Depends(_get_state)):
    parsed = await _bookmark_form(request)
    if parsed is None:
        return _error(INVALID_BOOKMARK, status.HTTP_400_BAD_REQUEST)
    verse_id, chapter_id = parsed
    state.bookmarks.add(_client_address(request), verse_id)
    return RedirectResponse(url=f"/chapter/{chapter_id}", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/remove-bookmark")
async def remove_bookmark(request: Request, state: AppState = Depends(_get_state)):
    parsed = await _bookmark_form(request)
    if parsed is None:
        return _error(INVALID_BOOKMARK, status.HTTP_400_BAD_REQUEST)
    verse_id, chapter_id = parsed
    state.bookmarks.remove(_client_address(request), verse_id)
    return RedirectResponse(url=f"/chapter/{chapter_id}", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/bookmarks", response_class=HTMLResponse)
async def list_bookmarks(request: Request, state: AppState = Depends(_get_state)) -> HTMLResponse:
    keys = state.bookmarks.list(_client_address(request))
    if not keys:
        return HTMLResponse(render_bookmarks_page([]))
    try:
        verses = await gather_or_cancel(
            *(asyncio.to_thread(state.client.verse_by_key, key) for key in keys)
        )
    except QuranApiError as exc:
        logger.error("Error in bookmarks route: %s", exc)
        return _error(BOOKMARKS_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTMLResponse(render_bookmarks_page(verses))


def create_app(state: Optional[AppState] = None) -> FastAPI:
    """
    Build the web application around ``state``.

    Without an explicit state the client is configured from ``data/settings.json``.
    """
    if state is None:
        state = AppState.from_settings(SettingsManager(SETTINGS_PATH))
    application = FastAPI(title="Quran Reader")
    application.state.quran = state
    application.add_exception_handler(Exception, _unexpected_error)
    application.include_router(router)
    return application


app = create_app()

__all__ = ["app", "create_app", "AppState"]
