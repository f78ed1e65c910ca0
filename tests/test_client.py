import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from quran_web.client import (  # noqa: E402
    Chapter,
    QuranApiClient,
    QuranApiError,
    Verse,
    clean_translation,
    is_verse_key,
)


def _verse(key: str, translation: str = "In the name of God") -> Dict[str, Any]:
    return {
        "id": 1,
        "verse_key": key,
        "text_uthmani": "بِسْمِ ٱللَّهِ",
        "translations": [{"id": 131, "resource_id": 131, "text": translation}],
    }


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Replays canned responses and records requested URLs and params."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, timeout: Any = None):
        self.requests.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _client(responses: List[Any]) -> QuranApiClient:
    return QuranApiClient(
        "https://api.example.test/api/v4/",
        translation_id=131,
        per_page=2,
        timeout=5,
        session=FakeSession(responses),
    )


def test_list_chapters_parses_payload() -> None:
    client = _client(
        [
            FakeResponse(
                payload={
                    "chapters": [
                        {
                            "id": 1,
                            "name_simple": "Al-Fatihah",
                            "name_arabic": "الفاتحة",
                            "revelation_place": "makkah",
                            "verses_count": 7,
                            "translated_name": {"language_name": "english", "name": "The Opener"},
                        },
                        {"id": 2, "name_simple": "Al-Baqarah"},
                    ]
                }
            )
        ]
    )
    chapters = client.list_chapters()
    assert chapters[0] == Chapter(
        id=1,
        name="Al-Fatihah",
        name_arabic="الفاتحة",
        translated_name="The Opener",
        revelation_place="makkah",
        verses_count=7,
    )
    assert chapters[1].name == "Al-Baqarah"
    assert chapters[1].verses_count is None
    request = client.session.requests[0]
    assert request["url"] == "https://api.example.test/api/v4/chapters"
    assert request["params"] == {"language": "en"}
    assert request["timeout"] == 5


def test_get_chapter() -> None:
    client = _client([FakeResponse(payload={"chapter": {"id": 36, "name_simple": "Ya-Sin"}})])
    chapter = client.get_chapter(36)
    assert chapter.id == 36
    assert chapter.name == "Ya-Sin"
    assert client.session.requests[0]["url"].endswith("/chapters/36")


def test_verses_by_chapter_follows_pagination() -> None:
    client = _client(
        [
            FakeResponse(
                payload={"verses": [_verse("1:1"), _verse("1:2")], "pagination": {"next_page": 2}}
            ),
            FakeResponse(payload={"verses": [_verse("1:3")], "pagination": {"next_page": None}}),
        ]
    )
    verses = client.verses_by_chapter(1)
    assert [verse.verse_key for verse in verses] == ["1:1", "1:2", "1:3"]
    first, second = client.session.requests
    assert first["url"].endswith("/verses/by_chapter/1")
    assert first["params"] == {"language": "en", "translations": 131, "per_page": 2, "page": 1}
    assert second["params"]["page"] == 2


def test_verses_by_chapter_stops_on_repeated_page() -> None:
    client = _client(
        [FakeResponse(payload={"verses": [_verse("1:1")], "pagination": {"next_page": 1}})]
    )
    assert len(client.verses_by_chapter(1)) == 1
    assert len(client.session.requests) == 1


def test_verse_by_key() -> None:
    client = _client([FakeResponse(payload={"verse": _verse("2:255", "Allah - there is no deity")})])
    verse = client.verse_by_key("2:255")
    assert verse == Verse(verse_key="2:255", text="بِسْمِ ٱللَّهِ", translation="Allah - there is no deity")
    assert verse.verse_number == "255"
    assert verse.chapter_id == 2
    request = client.session.requests[0]
    assert request["url"].endswith("/verses/by_key/2:255")
    assert request["params"] == {"language": "en", "translations": 131}


def test_translation_footnotes_removed() -> None:
    client = _client(
        [
            FakeResponse(
                payload={
                    "verse": _verse(
                        "1:2", "[All] praise is [due] to Allah<sup foot_note=77231>1</sup>, Lord"
                    )
                }
            )
        ]
    )
    assert client.verse_by_key("1:2").translation == "[All] praise is [due] to Allah, Lord"


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(status_code=404, text="not found"),
        FakeResponse(status_code=503, text="unavailable"),
        FakeResponse(payload=ValueError("bad json")),
        FakeResponse(payload=["not", "a", "mapping"]),
        FakeResponse(payload={"verse": {"verse_key": "2:255"}}),
        FakeResponse(payload={"verse": {**_verse("2:255"), "translations": []}}),
        FakeResponse(payload={}),
        requests.ConnectionError("connection refused"),
        requests.Timeout("read timed out"),
    ],
)
def test_upstream_errors_raise_api_error(response: Any) -> None:
    client = _client([response])
    with pytest.raises(QuranApiError):
        client.verse_by_key("2:255")


def test_from_settings() -> None:
    client = QuranApiClient.from_settings(
        {
            "base_url": "https://api.example.test/v4",
            "language": "en",
            "translation_id": 20,
            "per_page": 10,
            "timeout": 3,
        }
    )
    assert client.base_url == "https://api.example.test/v4"
    assert client.translation_id == 20
    assert client.per_page == 10
    assert client.timeout == 3.0
    assert isinstance(client.session, requests.Session)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2:255", True),
        ("114:6", True),
        ("2", False),
        ("2:", False),
        (":1", False),
        ("a:b", False),
        ("", False),
        ("0:5", False),
        ("115:1", False),
        ("2:0", False),
    ],
)
def test_is_verse_key(value: str, expected: bool) -> None:
    assert is_verse_key(value) is expected


def test_clean_translation_strips_markup() -> None:
    assert clean_translation("Say, <i>He is</i> Allah<sup foot_note=1>2</sup>") == "Say, He is Allah"
