"""Schema validation against a captured prefix-lookup payload."""

from __future__ import annotations

from replication_checker.adapters.flora.schema import FloraStudy, PrefixLookupResponse


def test_prefix_lookup_payload_validates(prefix_lookup_payload: dict[str, object]) -> None:
    response = PrefixLookupResponse.model_validate(prefix_lookup_payload)

    assert set(response.results) == {"564", "cf3", "3ed"}
    assert response.results["cf3"] == []
    assert response.results["3ed"] == []
    [article] = response.results["564"]
    assert article.doi == "10.1037/pspa0000073"
    assert article.year == 2016
    assert [(a.given, a.family) for a in article.authors] == [("Lara", "Aknin")]
    assert article.record.originals == []
    assert len(article.record.replications) == 3
    assert article.record.stats is not None
    assert article.record.stats.n_reproductions == 1


def test_missing_markers_become_none(prefix_lookup_payload: dict[str, object]) -> None:
    response = PrefixLookupResponse.model_validate(prefix_lookup_payload)
    failed = response.results["564"][0].record.replications[1]

    assert failed.year is None
    assert failed.url is None
    assert failed.authors == []
    assert failed.outcome == "failed"


def test_scalar_fields_are_coerced_to_text() -> None:
    study = FloraStudy.model_validate(
        {"issue": 3, "volume": 12.0, "year": "Published 2021", "title": "  Spaced  "}
    )

    assert study.issue == "3"
    assert study.volume == "12"
    assert study.year == 2021
    assert study.title == "Spaced"


def test_author_strings_are_split_into_family_names() -> None:
    study = FloraStudy.model_validate({"authors": "Aknin; Dunn"})
    single = FloraStudy.model_validate({"authors": {"given": "Ada", "family": "Lovelace"}})

    assert [author.family for author in study.authors] == ["Aknin", "Dunn"]
    assert [author.given for author in single.authors] == ["Ada"]


def test_unmodeled_keys_are_kept_as_extras(prefix_lookup_payload: dict[str, object]) -> None:
    response = PrefixLookupResponse.model_validate(prefix_lookup_payload)
    article = response.results["564"][0]

    assert article.model_extra == {"unused_api_field": "ignored"}
