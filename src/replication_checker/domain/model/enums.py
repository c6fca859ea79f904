"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class RelationKind(StrEnum):
    """Relationship between a local record and a matched related study."""

    REPLICATION = "replication"
    REPRODUCTION = "reproduction"
    ORIGINAL = "original"


class Outcome(StrEnum):
    SUCCESSFUL = "successful"
    FAILURE = "failure"
    MIXED = "mixed"
    INFORMATIONAL = "informational"

    CS_ROBUST = "computationally successful, robust"
    CS_ROBUSTNESS_CHALLENGES = "computationally successful, robustness challenges"
    CS_ROBUSTNESS_NOT_CHECKED = "computationally successful, robustness not checked"
    CI_ROBUST = "computational issues, robust"
    CI_ROBUSTNESS_CHALLENGES = "computational issues, robustness challenges"
    CI_ROBUSTNESS_NOT_CHECKED = "computational issues, robustness not checked"

    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> Outcome:
        """Map a free-form outcome label onto a known outcome.

        The source spells "computationally" as "computionally" in some records.
        """

        if not raw:
            return cls.UNKNOWN
        value = " ".join(raw.strip().lower().split())
        value = value.replace("computionally", "computationally")
        if value == "failed":
            return cls.FAILURE
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class BanReason(StrEnum):
    MANUAL = "manual"
    DELETION = "deletion"


class ItemType(StrEnum):
    JOURNAL_ARTICLE = "journalArticle"
    BOOK = "book"
    BOOK_SECTION = "bookSection"
    CONFERENCE_PAPER = "conferencePaper"
    THESIS = "thesis"
    REPORT = "report"
    DOCUMENT = "document"
    WEBPAGE = "webpage"
    NOTE = "note"
    ATTACHMENT = "attachment"

    @property
    def is_regular(self) -> bool:
        return self not in {ItemType.NOTE, ItemType.ATTACHMENT}


class RecordField(StrEnum):
    TITLE = "title"
    DOI = "DOI"
    URL = "url"
    DATE = "date"
    PUBLICATION_TITLE = "publicationTitle"
    VOLUME = "volume"
    ISSUE = "issue"
    PAGES = "pages"
    PUBLISHER = "publisher"
    PLACE = "place"
    INSTITUTION = "institution"
    BOOK_TITLE = "bookTitle"
    ISBN = "ISBN"
    ABSTRACT = "abstractNote"
    EXTRA = "extra"
