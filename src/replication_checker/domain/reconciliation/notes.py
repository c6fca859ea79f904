"""Rendering and append-only merging of reconciliation notes.

A note is identified by its ``<h2>`` heading. Its first ``<ul>`` holds one
``<li>`` per related study; merging only ever inserts new ``<li>`` elements
before the closing tag and leaves every existing byte untouched.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import TYPE_CHECKING, Final

from replication_checker.domain.identifiers import normalize_doi, normalize_title, normalize_url

from .profiles import FEEDBACK_URL

if TYPE_CHECKING:
    from collections.abc import Sequence

    from replication_checker.domain.model import Note, RelatedStudy

    from .profiles import RelationProfile

NOTE_WARNING: Final[str] = "This is an automatically generated note. Do not make changes!"
NOTE_FOOTER: Final[str] = (
    "Generated by Replication Checker using the FORRT Replication Database (FReD)"
)

_DOI_LINK_PREFIX: Final[str] = "https://doi.org/"
_LIST_CLOSE = re.compile(r"</ul\s*>", re.IGNORECASE)
_LIST_OPEN = re.compile(r"<ul[\s>]", re.IGNORECASE)


def heading_html(profile: RelationProfile) -> str:
    return f"<h2>{html.escape(profile.note_heading)}</h2>"


def is_note_for(note: Note, profile: RelationProfile) -> bool:
    return note.html.lstrip().startswith(heading_html(profile))


def find_note(notes: Sequence[Note], profile: RelationProfile) -> Note | None:
    for note in notes:
        if is_note_for(note, profile):
            return note
    return None


def format_authors(study: RelatedStudy) -> str:
    names = [name for author in study.authors if (name := author.citation_name)]
    if not names:
        return "No authors available"
    return " &amp; ".join(html.escape(name) for name in names)


def render_entry(study: RelatedStudy) -> str:
    parts = ["<li>"]
    parts.append(f"<strong>{html.escape(study.title or 'No title available')}</strong><br>")
    year = str(study.year) if study.year is not None else "N/A"
    parts.append(f"{format_authors(study)} ({html.escape(year)})<br>")
    parts.append(f"<em>{html.escape(study.journal or 'No journal')}</em><br>")
    if study.doi is not None:
        doi = html.escape(study.doi)
        parts.append(f'DOI: <a href="{_DOI_LINK_PREFIX}{doi}">{doi}</a><br>')
    else:
        parts.append("DOI: N/A<br>")
    if study.outcome_label:
        parts.append(
            f"Author Reported Outcome: <strong>{html.escape(study.outcome_label)}</strong><br>"
        )
    if study.outcome_quote:
        parts.append(f"<em>&quot;{html.escape(study.outcome_quote)}&quot;</em><br>")
    report_url = study.report_url
    if report_url is not None:
        url = html.escape(report_url)
        parts.append(
            f'This study has a linked report: <a href="{url}" target="_blank">{url}</a><br>'
        )
    elif study.doi is None and study.url:
        url = html.escape(study.url.strip())
        parts.append(f'Link: <a href="{url}" target="_blank">{url}</a><br>')
    parts.append("</li>")
    return "".join(parts)


def render_note(profile: RelationProfile, studies: Sequence[RelatedStudy]) -> str:
    entries = "".join(render_entry(study) for study in studies)
    return (
        f"{heading_html(profile)}"
        f"<i>{html.escape(NOTE_WARNING)}</i><br>"
        f"<p>{html.escape(profile.note_intro)}</p>"
        f"<ul>{entries}</ul>"
        "<hr/>"
        '<div style="padding:10px; border-radius:5px; margin-top:15px;">'
        "<p><strong>Did you find this result useful? Provide feedback "
        f'<a href="{FEEDBACK_URL}" target="_blank">here</a>!</strong></p>'
        "</div>"
        f"<p><small>{html.escape(NOTE_FOOTER)}</small></p>"
    )


@dataclass(slots=True)
class NoteIndex:
    """Identifiers and titles of the entries already listed in a note."""

    has_list: bool = False
    dois: set[str] = field(default_factory=set[str])
    urls: set[str] = field(default_factory=set[str])
    titles: set[str] = field(default_factory=set[str])
    entries: int = 0

    def contains(self, study: RelatedStudy) -> bool:
        if study.doi is not None:
            return study.doi in self.dois
        url = study.normalized_url
        if url is not None:
            return url in self.urls
        title = normalize_title(study.title)
        return title is not None and title in self.titles


class _NoteIndexParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.index = NoteIndex()
        self._list_depth = 0
        self._list_done = False
        self._in_item = False
        self._in_title = False
        self._title_seen = False
        self._title_parts: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self._list_done:
            return
        if tag == "ul":
            self._list_depth += 1
            self.index.has_list = True
        elif tag == "li" and self._list_depth == 1:
            self._in_item = True
            self._title_seen = False
            self.index.entries += 1
        elif tag == "strong" and self._in_item and not self._title_seen:
            self._in_title = True
            self._title_parts = []
        elif tag == "a" and self._in_item:
            self._record_link(dict(attrs).get("href"))

    def handle_endtag(self, tag: str) -> None:
        if self._list_done:
            return
        if tag == "ul" and self._list_depth:
            self._list_depth -= 1
            if self._list_depth == 0:
                self._list_done = True
        elif tag == "li" and self._list_depth == 1:
            self._in_item = False
        elif tag == "strong" and self._in_title:
            self._in_title = False
            self._title_seen = True
            title = normalize_title("".join(self._title_parts))
            if title is not None:
                self.index.titles.add(title)

    def handle_data(self, data: str) -> None:
        if self._in_title:
            self._title_parts.append(data)

    def _record_link(self, href: str | None) -> None:
        if not href:
            return
        # A doi.org href may be a DOI entry or the report link of a URL-only study.
        if href.strip().lower().startswith(_DOI_LINK_PREFIX):
            doi = normalize_doi(href)
            if doi is not None:
                self.index.dois.add(doi)
        url = normalize_url(href)
        if url is not None:
            self.index.urls.add(url)


def index_note(note_html: str) -> NoteIndex:
    parser = _NoteIndexParser()
    parser.feed(note_html)
    parser.close()
    return parser.index


@dataclass(frozen=True, slots=True)
class NoteMerge:
    html: str
    added: int
    changed: bool


def merge_note(
    note_html: str,
    profile: RelationProfile,
    studies: Sequence[RelatedStudy],
) -> NoteMerge:
    """Append ``studies`` missing from ``note_html``.

    A note without a list cannot be indexed: it is replaced by a freshly rendered
    note followed by its previous body, so nothing the user saw is dropped.
    """

    index = index_note(note_html)
    if not index.has_list:
        body = note_html.lstrip()
        heading = heading_html(profile)
        if body.startswith(heading):
            body = body[len(heading) :]
        rebuilt = render_note(profile, studies) + (f"<hr/>{body}" if body.strip() else "")
        return NoteMerge(html=rebuilt, added=len(studies), changed=True)

    additions: list[str] = []
    for study in studies:
        if index.contains(study):
            continue
        additions.append(render_entry(study))
        _remember(index, study)
    if not additions:
        return NoteMerge(html=note_html, added=0, changed=False)

    list_open = _LIST_OPEN.search(note_html)
    start = list_open.end() if list_open else 0
    close = _LIST_CLOSE.search(note_html, start)
    if close is None:
        merged = note_html + "".join(additions) + "</ul>"
    else:
        merged = note_html[: close.start()] + "".join(additions) + note_html[close.start() :]
    return NoteMerge(html=merged, added=len(additions), changed=True)


def _remember(index: NoteIndex, study: RelatedStudy) -> None:
    if study.doi is not None:
        index.dois.add(study.doi)
    url = study.normalized_url
    if url is not None:
        index.urls.add(url)
    title = normalize_title(study.title)
    if title is not None:
        index.titles.add(title)


__all__ = [
    "NoteIndex",
    "NoteMerge",
    "find_note",
    "index_note",
    "merge_note",
    "render_entry",
    "render_note",
]
