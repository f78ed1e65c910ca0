from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol

import requests


logger = logging.getLogger("quran_web.client")

MIN_CHAPTER_ID = 1
MAX_CHAPTER_ID = 114

_FOOTNOTE_PATTERN = re.compile(r"<sup\b[^>]*>.*?</sup>", re.IGNORECASE | re.DOTALL)
_TAG_PATTERN = re.compile(r"<[^>]+>")


class QuranApiError(RuntimeError):
    """Raised when the Quran API is unreachable or returns an error or malformed response."""


@dataclass(frozen=True)
class Chapter:
    id: int
    name: str
    name_arabic: str = ""
    translated_name: str = ""
    revelation_place: str = ""
    verses_count: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Chapter":
        try:
            chapter_id = int(payload["id"])
            name = str(payload["name_simple"])
            verses_count = payload.get("verses_count")
            verses_count = int(verses_count) if verses_count is not None else None
        except (KeyError, TypeError, ValueError) as exc:
            raise QuranApiError(f"Malformed chapter payload: {exc!r}") from exc
        translated = payload.get("translated_name") or {}
        return cls(
            id=chapter_id,
            name=name,
            name_arabic=str(payload.get("name_arabic") or ""),
            translated_name=str(translated.get("name") or "") if isinstance(translated, dict) else "",
            revelation_place=str(payload.get("revelation_place") or ""),
            verses_count=verses_count,
        )


@dataclass(frozen=True)
class Verse:
    verse_key: str
    text: str
    translation: str

    @property
    def chapter_id(self) -> int:
        return int(self.verse_key.split(":", 1)[0])

    @property
    def verse_number(self) -> str:
        return self.verse_key.split(":", 1)[1]

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Verse":
        try:
            verse_key = str(payload["verse_key"])
            text = str(payload["text_uthmani"])
            translation = payload["translations"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise QuranApiError(f"Malformed verse payload: {exc!r}") from exc
        if not is_verse_key(verse_key):
            raise QuranApiError(f"Malformed verse key {verse_key!r}")
        return cls(
            verse_key=verse_key,
            text=text,
            translation=clean_translation(str(translation)),
        )


def is_verse_key(value: str) -> bool:
    match = re.fullmatch(r"([0-9]+):([0-9]+)", value or "")
    if match is None:
        return False
    return MIN_CHAPTER_ID <= int(match.group(1)) <= MAX_CHAPTER_ID and int(match.group(2)) >= 1


def clean_translation(text: str) -> str:
    """
    Strip footnote markers and inline markup from a translation string.
    """
    without_notes = _FOOTNOTE_PATTERN.sub("", text)
    return _TAG_PATTERN.sub("", without_notes).strip()


class QuranApi(Protocol):
    """The upstream calls the web handlers depend on."""

    def list_chapters(self) -> List[Chapter]: ...

    def get_chapter(self, chapter_id: int) -> Chapter: ...

    def verses_by_chapter(self, chapter_id: int) -> List[Verse]: ...

    def verse_by_key(self, verse_key: str) -> Verse: ...


class QuranApiClient:
    """
    Minimal HTTP client for the quran.com v4 REST API.

    Calls are blocking; the web layer runs them in worker threads.
    """

    def __init__(
        self,
        base_url: str,
        *,
        language: str = "en",
        translation_id: int = 131,
        per_page: int = 50,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.language = language
        self.translation_id = translation_id
        self.per_page = per_page
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, api_settings: Dict[str, Any]) -> "QuranApiClient":
        return cls(
            api_settings["base_url"],
            language=api_settings.get("language", "en"),
            translation_id=int(api_settings.get("translation_id", 131)),
            per_page=int(api_settings.get("per_page", 50)),
            timeout=float(api_settings.get("timeout", 30)),
        )

    def list_chapters(self) -> List[Chapter]:
        data = self._get("/chapters", {"language": self.language})
        chapters = data.get("chapters")
        if not isinstance(chapters, list):
            raise QuranApiError("Chapter list response is missing 'chapters'.")
        return [Chapter.from_payload(item) for item in chapters]

    def get_chapter(self, chapter_id: int) -> Chapter:
        data = self._get(f"/chapters/{chapter_id}", {"language": self.language})
        chapter = data.get("chapter")
        if not isinstance(chapter, dict):
            raise QuranApiError(f"Chapter {chapter_id} response is missing 'chapter'.")
        return Chapter.from_payload(chapter)

    def verses_by_chapter(self, chapter_id: int) -> List[Verse]:
        verses: List[Verse] = []
        page: Optional[int] = 1
        while page:
            data = self._get(
                f"/verses/by_chapter/{chapter_id}",
                {
                    "language": self.language,
                    "translations": self.translation_id,
                    "per_page": self.per_page,
                    "page": page,
                },
            )
            items = data.get("verses")
            if not isinstance(items, list):
                raise QuranApiError(f"Chapter {chapter_id} verses response is missing 'verses'.")
            verses.extend(Verse.from_payload(item) for item in items)
            pagination = data.get("pagination") or {}
            next_page = pagination.get("next_page")
            # Guard against an upstream that keeps pointing at the same page.
            page = int(next_page) if next_page and int(next_page) > page else None
        return verses

    def verse_by_key(self, verse_key: str) -> Verse:
        data = self._get(
            f"/verses/by_key/{verse_key}",
            {"language": self.language, "translations": self.translation_id},
        )
        verse = data.get("verse")
        if not isinstance(verse, dict):
            raise QuranApiError(f"Verse {verse_key} response is missing 'verse'.")
        return Verse.from_payload(verse)

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug("GET %s params=%s", url, params)
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise QuranApiError(f"Request to {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise QuranApiError(
                f"Quran API returned {response.status_code} for {url}: {response.text[:200]}"
            )
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise QuranApiError(f"Failed to decode Quran API response from {url} as JSON.") from exc
        if not isinstance(data, dict):
            raise QuranApiError(f"Unexpected Quran API response shape from {url}.")
        return data
