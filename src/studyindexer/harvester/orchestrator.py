"""
Harvest Orchestrator.

Orchestrates the List -> Fetch -> Parse -> Fan-out -> Diff -> Bulk write flow
for every configured repository, repositories running concurrently.

Only one run may be in progress at a time; a second trigger fails
immediately with AlreadyRunningError.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ..config import OAI_PMH_HANDLER, IndexerConfig, Repository
from ..exceptions import (
    AlreadyRunningError,
    IndexerError,
    MalformedRecordError,
    ProtocolError,
    SearchDecodeError,
    TransportError,
)
from ..language import LanguageDocumentExtractor
from ..models import DiffCounts, RepositoryResult, RunResult, StudyOfLanguage
from ..parser.record import RecordParser
from ..search.engine import SearchIndex
from ..search.reader import ScrollReader
from .context import RunContext
from .oaipmh import OaiPmhClient

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"

# Stands in for a stored document that exists but could not be decoded
_UNREADABLE = object()


def classify_change(new: StudyOfLanguage, existing) -> Optional[str]:
    """Diff outcome of writing ``new`` over ``existing`` (None when absent).

    Returns CREATED, UPDATED, DELETED, or None for no counted change.
    """
    if existing is None:
        return CREATED if new.active else None
    if existing == new:
        return None
    return UPDATED if new.active else DELETED


def count_changes(documents: Iterable[StudyOfLanguage], existing: Iterable) -> DiffCounts:
    created = updated = deleted = 0
    for new, old in zip(documents, existing):
        change = classify_change(new, old)
        if change == CREATED:
            created += 1
        elif change == UPDATED:
            updated += 1
        elif change == DELETED:
            deleted += 1
    return DiffCounts(created=created, updated=updated, deleted=deleted)


class HarvestOrchestrator:
    """
    Runs harvests over all configured repositories.

    - Repositories are harvested concurrently, bounded by
      harvester.max_concurrent_repositories
    - A failing repository, record or language bucket never aborts the others
    - Each (repository, language) bucket is diffed against the index and
      written back with one bulk request
    """

    def __init__(
        self,
        config: IndexerConfig,
        repositories: List[Repository],
        oai_client: OaiPmhClient,
        index: SearchIndex,
        parser: Optional[RecordParser] = None,
        extractor: Optional[LanguageDocumentExtractor] = None,
    ):
        self.config = config
        self.repositories = list(repositories)
        self.oai_client = oai_client
        self.index = index
        self.parser = parser or RecordParser(config.oai_pmh)
        self.extractor = extractor or LanguageDocumentExtractor(config.languages)
        self._running = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    @contextmanager
    def _single_flight(self):
        if not self._running.acquire(blocking=False):
            raise AlreadyRunningError("A harvest is already in progress")
        try:
            yield
        finally:
            self._running.release()

    async def run_full(self) -> RunResult:
        """Harvest every record of every repository."""
        return await self.run(since=None)

    async def run_incremental(self) -> RunResult:
        """Harvest records modified after the newest document in the index.

        Falls back to a full harvest when the index is empty.

        Raises:
            AlreadyRunningError: another run is in progress
        """
        with self._single_flight():
            since = await self.index.most_recent_last_modified()
            if since is None:
                logger.info("Index holds no documents, running a full harvest")
            return await self._run(RunContext.create(since))

    async def run(self, since: Optional[datetime] = None) -> RunResult:
        """Run one harvest.

        Args:
            since: only harvest records modified strictly after this time

        Raises:
            AlreadyRunningError: another run is in progress
        """
        with self._single_flight():
            return await self._run(RunContext.create(since))

    async def _run(self, context: RunContext) -> RunResult:
        """Harvest all repositories. Caller holds the single-flight guard."""
        log = context.logger(logger)
        mode = "incremental" if context.incremental else "full"
        log.info(f"Starting {mode} harvest of {len(self.repositories)} repositories")

        result = RunResult(
            job_id=context.job_id, started_at=context.started_at, since=context.since
        )
        semaphore = asyncio.Semaphore(self.config.harvester.max_concurrent_repositories)

        async def bounded(repository: Repository) -> RepositoryResult:
            async with semaphore:
                return await self._harvest_repository(context, repository)

        outcomes = await asyncio.gather(
            *(bounded(repository) for repository in self.repositories)
        )
        for outcome in outcomes:
            result.repositories[outcome.code] = outcome

        result.finished_at = datetime.now(timezone.utc)
        elapsed = (result.finished_at - result.started_at).total_seconds()
        totals = result.totals
        log.info(
            f"Harvest complete in {elapsed:.1f}s: harvested={result.harvested} "
            f"rejected={result.rejected} created={totals.created} "
            f"updated={totals.updated} deleted={totals.deleted}"
        )
        await self._log_index_totals(context)
        return result

    async def _harvest_repository(
        self, context: RunContext, repository: Repository
    ) -> RepositoryResult:
        """Harvest one repository. Never raises."""
        log = context.logger(logger, repository=repository.code)
        result = RepositoryResult(code=repository.code)

        if repository.handler != OAI_PMH_HANDLER:
            log.warning(f"Skipping repository with unsupported handler {repository.handler}")
            result.error = f"Unsupported handler {repository.handler}"
            return result

        try:
            headers = await self.oai_client.list_record_headers(repository, context.since)
        except IndexerError as e:
            log.error(f"Listing record headers failed: {e}")
            result.error = str(e)
            return result

        try:
            studies = []
            for header in headers:
                try:
                    parsed = await self.oai_client.fetch_study(repository, header, self.parser)
                except (ProtocolError, MalformedRecordError, TransportError) as e:
                    log.warning(f"Record {header.identifier} rejected: {e}")
                    result.rejected += 1
                    continue
                studies.append(parsed.study)
                result.harvested += 1

            buckets = self.extractor.project(studies, repository, log)
            for language, documents in buckets.items():
                if not documents:
                    continue
                await self._sync_bucket(context, repository, language, documents, result)
        except Exception as e:
            log.exception(f"Harvest of {repository.code} failed")
            result.error = f"Harvest error: {e}"

        return result

    async def _sync_bucket(
        self,
        context: RunContext,
        repository: Repository,
        language: str,
        documents: List[StudyOfLanguage],
        result: RepositoryResult,
    ) -> None:
        """Diff one language bucket against the index and bulk write it."""
        log = context.logger(logger, repository=repository.code, language=language)

        try:
            existing = await self._lookup_existing(documents, language, log)
            counts = count_changes(documents, existing)
            written = await self.index.bulk_index(documents, language)
        except TransportError as e:
            log.error(f"Indexing {len(documents)} documents failed: {e}")
            result.failed_buckets.append(language)
            return

        if not written:
            log.error(f"Bulk write of {len(documents)} documents was not acknowledged")
            result.failed_buckets.append(language)
            return

        result.counts[language] = counts
        log.info(
            f"Indexed {len(documents)} documents: created={counts.created} "
            f"updated={counts.updated} deleted={counts.deleted}"
        )

    async def _lookup_existing(
        self,
        documents: List[StudyOfLanguage],
        language: str,
        log: logging.LoggerAdapter,
    ) -> list:
        semaphore = asyncio.Semaphore(self.config.harvester.max_concurrent_lookups)

        async def lookup(document: StudyOfLanguage):
            async with semaphore:
                try:
                    return await self.index.get_study(document.id, language)
                except SearchDecodeError as e:
                    log.warning(f"Stored document {document.id} is unreadable: {e}")
                    return _UNREADABLE

        return await asyncio.gather(*(lookup(document) for document in documents))

    async def _log_index_totals(self, context: RunContext) -> None:
        log = context.logger(logger)
        total = 0
        for language in self.config.languages:
            reader = ScrollReader(
                self.index,
                language,
                page_size=self.config.search.page_size,
                scroll_timeout=self.config.search.scroll_timeout,
            )
            try:
                total += await reader.size()
            except TransportError as e:
                log.warning(f"Could not count documents for {language}: {e}")
                return
        log.info(f"Index now holds {total} documents")


__all__ = [
    "HarvestOrchestrator",
    "classify_change",
    "count_changes",
    "CREATED",
    "UPDATED",
    "DELETED",
]
