"""Per relation kind markers: tags, folders and note wording.

Tag strings are stored on user records and must never be localised or renamed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from replication_checker.domain.model import ItemType, Outcome, RelationKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

TAG_HAS_REPLICATION: Final[str] = "Has Replication"
TAG_IS_REPLICATION: Final[str] = "Is Replication"
TAG_HAS_REPRODUCTION: Final[str] = "Has Reproduction"
TAG_IS_REPRODUCTION: Final[str] = "Is Reproduction"
TAG_ADDED_BY_CHECKER: Final[str] = "Added by Replication Checker"
TAG_READONLY_ORIGIN: Final[str] = "Original present in Read-Only Library"

TAG_REPLICATION_SUCCESS: Final[str] = "Replication: Successful"
TAG_REPLICATION_FAILURE: Final[str] = "Replication: Failure"
TAG_REPLICATION_MIXED: Final[str] = "Replication: Mixed"

TAG_REPRO_CS_ROBUST: Final[str] = "Reproduction: Computationally Successful, Robust"
TAG_REPRO_CS_CHALLENGES: Final[str] = (
    "Reproduction: Computationally Successful, Robustness Challenges"
)
TAG_REPRO_CS_NOT_CHECKED: Final[str] = (
    "Reproduction: Computationally Successful, Robustness Not Checked"
)
TAG_REPRO_CI_ROBUST: Final[str] = "Reproduction: Computational Issues, Robust"
TAG_REPRO_CI_CHALLENGES: Final[str] = "Reproduction: Computational Issues, Robustness Challenges"
TAG_REPRO_CI_NOT_CHECKED: Final[str] = "Reproduction: Computational Issues, Robustness Not Checked"

REPLICATION_FOLDER: Final[str] = "Replication folder"
REPRODUCTION_FOLDER: Final[str] = "Reproduction folder"
READONLY_COLLECTION_SUFFIX: Final[str] = " [Read-Only]"

FEEDBACK_URL: Final[str] = "https://tinyurl.com/y5evebv9"


@dataclass(frozen=True, slots=True)
class RelationProfile:
    """Everything that differs between replications, reproductions and originals."""

    kind: RelationKind
    has_tag: str
    is_tag: str
    note_heading: str
    note_intro: str
    new_item_type: ItemType
    folder: str | None = None
    outcome_tags: Mapping[Outcome, str] = field(default_factory=dict[Outcome, str])
    mixed_tag: str | None = None

    @property
    def outcome_vocabulary(self) -> frozenset[str]:
        tags = set(self.outcome_tags.values())
        if self.mixed_tag is not None:
            tags.add(self.mixed_tag)
        return frozenset(tags)

    def outcome_markers(self, outcomes: Iterable[Outcome]) -> set[str]:
        """Tags for the distinct recognised ``outcomes``.

        With a mixed marker, anything but a unanimous outcome collapses to it;
        otherwise every distinct outcome gets its own tag.
        """

        known = {outcome for outcome in outcomes if outcome in self.outcome_tags}
        if not known:
            return set()
        if self.mixed_tag is not None:
            if len(known) > 1:
                return {self.mixed_tag}
            return {self.outcome_tags[next(iter(known))]}
        return {self.outcome_tags[outcome] for outcome in known}


REPLICATION_PROFILE: Final[RelationProfile] = RelationProfile(
    kind=RelationKind.REPLICATION,
    has_tag=TAG_HAS_REPLICATION,
    is_tag=TAG_IS_REPLICATION,
    note_heading="Replications Found",
    note_intro="This study has been replicated:",
    new_item_type=ItemType.JOURNAL_ARTICLE,
    folder=REPLICATION_FOLDER,
    outcome_tags={
        Outcome.SUCCESSFUL: TAG_REPLICATION_SUCCESS,
        Outcome.FAILURE: TAG_REPLICATION_FAILURE,
        Outcome.MIXED: TAG_REPLICATION_MIXED,
    },
    mixed_tag=TAG_REPLICATION_MIXED,
)

REPRODUCTION_PROFILE: Final[RelationProfile] = RelationProfile(
    kind=RelationKind.REPRODUCTION,
    has_tag=TAG_HAS_REPRODUCTION,
    is_tag=TAG_IS_REPRODUCTION,
    note_heading="Reproductions Found",
    note_intro="This study has been reproduced:",
    new_item_type=ItemType.DOCUMENT,
    folder=REPRODUCTION_FOLDER,
    outcome_tags={
        Outcome.CS_ROBUST: TAG_REPRO_CS_ROBUST,
        Outcome.CS_ROBUSTNESS_CHALLENGES: TAG_REPRO_CS_CHALLENGES,
        Outcome.CS_ROBUSTNESS_NOT_CHECKED: TAG_REPRO_CS_NOT_CHECKED,
        Outcome.CI_ROBUST: TAG_REPRO_CI_ROBUST,
        Outcome.CI_ROBUSTNESS_CHALLENGES: TAG_REPRO_CI_CHALLENGES,
        Outcome.CI_ROBUSTNESS_NOT_CHECKED: TAG_REPRO_CI_NOT_CHECKED,
    },
)

# A record with originals is itself a replication; the originals it points to
# are materialized as records that "have" a replication.
ORIGINAL_PROFILE: Final[RelationProfile] = RelationProfile(
    kind=RelationKind.ORIGINAL,
    has_tag=TAG_IS_REPLICATION,
    is_tag=TAG_HAS_REPLICATION,
    note_heading="Original Studies Found",
    note_intro="This study replicates:",
    new_item_type=ItemType.JOURNAL_ARTICLE,
)

PROFILES: Final[Mapping[RelationKind, RelationProfile]] = {
    RelationKind.REPLICATION: REPLICATION_PROFILE,
    RelationKind.REPRODUCTION: REPRODUCTION_PROFILE,
    RelationKind.ORIGINAL: ORIGINAL_PROFILE,
}


def readonly_collection_name(library_name: str) -> str:
    return f"{library_name}{READONLY_COLLECTION_SUFFIX}"
