from __future__ import annotations

from html import escape
from typing import Iterable, List, Sequence

from .client import Chapter, Verse


_STYLE = """
    :root {
      color-scheme: light dark;
      font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
      --bg: #f5f7fb;
      --border: #c7cad6;
      --panel: #ffffff;
      --accent: #1f6f5c;
      --muted: #657185;
    }
    body {
      margin: 0;
      padding: 1.5rem;
      background: var(--bg);
      color: #0f172a;
      line-height: 1.55;
    }
    header.site {
      display: flex;
      justify-content: space-between;
      align-items: center;
      margin-bottom: 1rem;
    }
    header.site nav a {
      margin-left: 0.75rem;
    }
    h1 {
      margin: 0;
      font-size: 1.4rem;
    }
    a {
      color: var(--accent);
      text-decoration: none;
    }
    .chapter-list {
      list-style: none;
      padding: 0;
      display: grid;
      grid-template-columns: repeat(auto-fill, minmax(220px, 1fr));
      gap: 0.5rem;
    }
    .chapter-list li a {
      display: block;
      padding: 0.6rem 0.8rem;
      background: var(--panel);
      border: 1px solid var(--border);
      border-radius: 8px;
    }
    .chapter-list .meta {
      display: block;
      font-size: 0.75rem;
      color: var(--muted);
    }
    .chapter-list .arabic {
      float: right;
      font-size: 1.1rem;
    }
    article.verse {
      background: var(--panel);
      border: 1px solid var(--border);
      border-radius: 8px;
      padding: 0.75rem 1rem;
      margin-bottom: 0.6rem;
    }
    article.verse.bookmarked {
      border-color: var(--accent);
    }
    .verse-header {
      display: flex;
      justify-content: space-between;
      align-items: center;
      font-size: 0.8rem;
      color: var(--muted);
    }
    .verse-text {
      font-size: 1.5rem;
      text-align: right;
      margin: 0.5rem 0;
    }
    .verse-translation {
      margin: 0;
    }
    form.bookmark button {
      font-size: 0.75rem;
      padding: 0.2rem 0.55rem;
      border-radius: 999px;
      border: 1px solid var(--border);
      background: #fff;
      cursor: pointer;
    }
    .placeholder {
      color: var(--muted);
    }
    .error {
      background: #ffe8e6;
      border: 1px solid #e3a49c;
      border-radius: 8px;
      padding: 1rem;
    }
    footer {
      margin-top: 1.5rem;
      font-size: 0.75rem;
      color: var(--muted);
    }
"""


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{escape(title)}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <header class="site">
    <h1>{escape(title)}</h1>
    <nav><a href="/">Chapters</a><a href="/bookmarks">Bookmarks</a></nav>
  </header>
  {body}
</body>
</html>"""


def render_chapters_page(chapters: Sequence[Chapter]) -> str:
    if not chapters:
        return _page("Chapters", "<p class='placeholder'>No chapters available.</p>")
    items = "\n".join(_render_chapter_item(chapter) for chapter in chapters)
    return _page("Chapters", f'<ul class="chapter-list">{items}</ul>')


def _render_chapter_item(chapter: Chapter) -> str:
    meta_parts: List[str] = []
    if chapter.translated_name:
        meta_parts.append(chapter.translated_name)
    if chapter.verses_count is not None:
        meta_parts.append(f"{chapter.verses_count} verses")
    if chapter.revelation_place:
        meta_parts.append(chapter.revelation_place.title())
    meta_html = (
        f'<span class="meta">{escape(" · ".join(meta_parts))}</span>' if meta_parts else ""
    )
    arabic_html = (
        f'<span class="arabic" lang="ar" dir="rtl">{escape(chapter.name_arabic)}</span>'
        if chapter.name_arabic
        else ""
    )
    return (
        f'<li><a href="/chapter/{chapter.id}">{arabic_html}'
        f"<strong>{chapter.id}. {escape(chapter.name)}</strong>{meta_html}</a></li>"
    )


def render_chapter_page(
    *,
    chapter: Chapter,
    verses: Sequence[Verse],
    bookmarks: Iterable[str],
    client_address: str,
) -> str:
    bookmarked = set(bookmarks)
    if verses:
        verses_html = "\n".join(
            _render_verse(verse, chapter_id=chapter.id, bookmarked=verse.verse_key in bookmarked)
            for verse in verses
        )
    else:
        verses_html = "<p class='placeholder'>No verses found for this chapter.</p>"
    body = f"""
  <section class="chapter" data-chapter-id="{chapter.id}">
    {verses_html}
  </section>
  <footer>Bookmarks are kept for {escape(client_address)} until the server restarts.</footer>
"""
    return _page(f"{chapter.id}. {chapter.name}", body)


def render_bookmarks_page(verses: Sequence[Verse]) -> str:
    if not verses:
        return _page("Bookmarks", "<p class='placeholder'>No bookmarks yet.</p>")
    verses_html = "\n".join(
        _render_verse(verse, chapter_id=verse.chapter_id, bookmarked=True, link_chapter=True)
        for verse in verses
    )
    return _page("Bookmarks", f'<section class="bookmarks">{verses_html}</section>')


def render_error_page(message: str) -> str:
    return _page("Error", f'<div class="error"><p>{escape(message)}</p></div>')


def _render_verse(
    verse: Verse,
    *,
    chapter_id: int,
    bookmarked: bool,
    link_chapter: bool = False,
) -> str:
    key = escape(verse.verse_key)
    label = f"Verse {escape(verse.verse_number)}"
    if link_chapter:
        label = f'<a href="/chapter/{chapter_id}">{key}</a>'
    action = "/remove-bookmark" if bookmarked else "/bookmark"
    button = "Remove bookmark" if bookmarked else "Bookmark"
    classes = "verse bookmarked" if bookmarked else "verse"
    return f"""
    <article class="{classes}" data-verse-key="{key}">
      <div class="verse-header">
        <span>{label}</span>
        <form method="post" action="{action}" class="bookmark">
          <input type="hidden" name="verseId" value="{key}" />
          <input type="hidden" name="chapterId" value="{chapter_id}" />
          <button type="submit">{button}</button>
        </form>
      </div>
      <p class="verse-text" lang="ar" dir="rtl">{escape(verse.text)}</p>
      <p class="verse-translation">{escape(verse.translation)}</p>
    </article>
    """
