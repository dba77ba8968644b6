"""
Tests for LanguageDocumentExtractor.
"""

import logging

import pytest

from studyindexer.exceptions import InvalidStudyError
from studyindexer.language import LanguageDocumentExtractor
from studyindexer.models import DataCollectionPeriod, Publisher, Study


def bilingual_study(**overrides) -> Study:
    """Complete in English, missing a French publisher, nothing in German."""
    values = dict(
        study_number="1234",
        last_modified="2018-02-01T07:48:38Z",
        title={"en": "Survey", "fr": "Enquete"},
        abstract={"en": "Abstract", "fr": "Resume"},
        publisher={"en": Publisher(iso2_code="UKDA", name="UK Data Archive")},
        creators={"en": ["Smith, J."]},
        file_languages=frozenset({"fr", "en"}),
        data_collection_period=DataCollectionPeriod(start="2004-01-15", end="2004-12-31", year=2004),
    )
    values.update(overrides)
    return Study(**values)


@pytest.fixture
def extractor(config):
    return LanguageDocumentExtractor(config.languages)


class TestProject:
    """Test the per-language fan-out."""

    def test_every_language_has_a_bucket(self, extractor, repository):
        """Test every configured language gets a key, even when empty."""
        buckets = extractor.project([], repository)

        assert buckets == {"en": [], "fr": [], "de": []}

    def test_incomplete_language_is_excluded(self, extractor, repository, caplog):
        """Test an incomplete language is excluded with a logged reason."""
        with caplog.at_level(logging.WARNING):
            buckets = extractor.project([bilingual_study()], repository)

        assert [d.id for d in buckets["en"]] == ["UK-Data-Service__1234"]
        assert buckets["fr"] == []
        assert buckets["de"] == []
        assert "Study does not have a publisher [fr]: [UK-Data-Service__1234]" in caplog.text

    def test_tombstone_goes_into_every_bucket(self, extractor, repository):
        """Test a tombstone is written to every language."""
        tombstone = Study.tombstone("99", last_modified="2018-03-01T00:00:00Z")

        buckets = extractor.project([tombstone], repository)

        for lang in ("en", "fr", "de"):
            (document,) = buckets[lang]
            assert document.id == "UK-Data-Service__99"
            assert document.language == lang
            assert document.active is False
            assert document.code == "UKDS"
            assert document.title_study is None

    def test_uses_passed_logger(self, extractor, repository):
        """Test exclusions are logged through the passed logger."""
        calls = []

        class Recorder(logging.LoggerAdapter):
            def log(self, level, msg, *args, **kwargs):
                calls.append(level)

        extractor.project([bilingual_study()], repository, log=Recorder(logging.getLogger("t"), {}))

        assert logging.WARNING in calls


class TestLanguagesAvailable:
    """Test lang_available_in computation."""

    def test_only_complete_languages(self, extractor):
        """Test only languages passing validation are available."""
        assert extractor.languages_available(bilingual_study()) == ["en"]

    def test_sorted(self, extractor):
        """Test available languages are sorted."""
        study = bilingual_study(
            publisher={
                "en": Publisher(iso2_code="A", name="A"),
                "fr": Publisher(iso2_code="B", name="B"),
            }
        )

        assert extractor.languages_available(study) == ["en", "fr"]

    def test_tombstone_is_available_nowhere(self, extractor):
        """Test a tombstone is available in no language."""
        assert extractor.languages_available(Study.tombstone("1")) == []


class TestBuildDocument:
    """Test projection of one study into one language."""

    def test_active_document_fields(self, repository):
        """Test document fields are taken from the study's language."""
        document = LanguageDocumentExtractor.build_document(
            bilingual_study(), repository, "en", ["en"]
        )

        assert document.title_study == "Survey"
        assert document.abstract == "Abstract"
        assert document.publisher.name == "UK Data Archive"
        assert document.creators == ["Smith, J."]
        assert document.file_languages == ["en", "fr"]
        assert document.data_collection_period_startdate == "2004-01-15"
        assert document.data_collection_period_enddate == "2004-12-31"
        assert document.data_collection_year == 2004
        assert document.lang_available_in == ["en"]
        assert document.code == "UKDS"

    def test_missing_language_raises(self, repository):
        """Test a language without title raises InvalidStudyError."""
        with pytest.raises(InvalidStudyError, match="title"):
            LanguageDocumentExtractor.build_document(bilingual_study(), repository, "de")
