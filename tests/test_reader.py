"""
Tests for ScrollReader over the in-memory search index.
"""

import pytest

from studyindexer.exceptions import ReaderExhaustedError, SearchDecodeError
from studyindexer.models import Publisher, StudyOfLanguage
from studyindexer.search import ScrollReader


def seed_documents(index, count: int, language: str = "en") -> None:
    for number in range(count):
        index.seed(
            StudyOfLanguage.build(
                id=f"UK-Data-Service__{number}",
                language=language,
                study_number=str(number),
                title_study=f"Study {number}",
                abstract="Abstract",
                publisher=Publisher(iso2_code="UKDA", name="UK Data Archive"),
            )
        )


class TestScrollReader:
    """Test paging, single-pass iteration and scroll cleanup."""

    @pytest.mark.asyncio
    async def test_yields_every_document_once_across_pages(self, fake_index):
        """Test every document is yielded once across pages."""
        seed_documents(fake_index, 5)
        reader = ScrollReader(fake_index, "en", page_size=2)

        ids = [study.id async for study in reader]

        assert len(ids) == 5
        assert len(set(ids)) == 5
        assert await reader.size() == 5

    @pytest.mark.asyncio
    async def test_documents_are_decoded_with_reader_language(self, fake_index):
        """Test documents are decoded with the reader's language."""
        seed_documents(fake_index, 1, language="fi")

        studies = [study async for study in ScrollReader(fake_index, "fi")]

        assert studies[0].language == "fi"
        assert studies[0].title_study == "Study 0"

    @pytest.mark.asyncio
    async def test_scroll_is_cleared_after_iteration(self, fake_index):
        """Test the scroll is cleared after iteration."""
        seed_documents(fake_index, 3)

        async for _ in ScrollReader(fake_index, "en", page_size=2):
            pass

        assert fake_index.cleared_scrolls == ["scroll-1"]

    @pytest.mark.asyncio
    async def test_second_iteration_raises(self, fake_index):
        """Test a reader cannot be iterated twice."""
        seed_documents(fake_index, 1)
        reader = ScrollReader(fake_index, "en")
        async for _ in reader:
            pass

        with pytest.raises(ReaderExhaustedError):
            async for _ in reader:
                pass

    @pytest.mark.asyncio
    async def test_size_without_iteration(self, fake_index):
        """Test size counts without iterating."""
        seed_documents(fake_index, 4)

        assert await ScrollReader(fake_index, "en").size() == 4
        assert await ScrollReader(fake_index, "de").size() == 0

    @pytest.mark.asyncio
    async def test_empty_index(self, fake_index):
        """Test an empty index yields nothing."""
        assert [s async for s in ScrollReader(fake_index, "en")] == []

    @pytest.mark.asyncio
    async def test_close_on_early_exit(self, fake_index):
        """Test leaving the context early clears the scroll."""
        seed_documents(fake_index, 5)

        async with ScrollReader(fake_index, "en", page_size=2) as reader:
            async for _ in reader:
                break

        assert fake_index.cleared_scrolls == ["scroll-1"]

    @pytest.mark.asyncio
    async def test_undecodable_document_raises(self, fake_index):
        """Test an undecodable document raises SearchDecodeError."""
        fake_index.documents["en"] = {"broken": {"studyNumber": "1"}}

        with pytest.raises(SearchDecodeError):
            async for _ in ScrollReader(fake_index, "en"):
                pass

        assert fake_index.cleared_scrolls == ["scroll-1"]
