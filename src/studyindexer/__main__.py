"""StudyIndexer command line entry point.

Run one full harvest:
    python -m studyindexer run

Run one incremental harvest (records modified since the newest indexed one):
    python -m studyindexer run --incremental

Start the harvest scheduler:
    python -m studyindexer schedule

Count indexed documents:
    python -m studyindexer count --language en

Environment Variables:
    INDEXER_LANGUAGES - Comma-separated index languages (default: en)
    INDEXER_REPOSITORIES_FILE - TOML file of [[repository]] tables
    ELASTICSEARCH_URL - Search engine endpoint
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

import httpx
from dotenv import load_dotenv

from .config import IndexerConfig, get_config, load_repositories
from .exceptions import AlreadyRunningError, IndexerError

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def run_harvest(
    config: IndexerConfig, repositories_file: str, incremental: bool = False
) -> dict:
    """Run one harvest and return its result as a dict."""
    from .harvester import HarvestOrchestrator, OaiPmhClient
    from .search import ElasticsearchIndex

    repositories = load_repositories(repositories_file)
    index = ElasticsearchIndex(config.search)
    async with httpx.AsyncClient(timeout=config.oai_pmh.request_timeout) as http:
        orchestrator = HarvestOrchestrator(
            config, repositories, OaiPmhClient(http), index
        )
        try:
            if incremental:
                result = await orchestrator.run_incremental()
            else:
                result = await orchestrator.run_full()
        finally:
            await index.close()
    return result.to_dict()


async def run_scheduler(config: IndexerConfig, repositories_file: str):
    """Run the scheduler until interrupted."""
    from .harvester import HarvestOrchestrator, IndexerScheduler, OaiPmhClient
    from .search import ElasticsearchIndex

    if not config.scheduler.enabled:
        logger.warning("Scheduler disabled (SCHEDULER_ENABLED=false), nothing to do")
        return

    repositories = load_repositories(repositories_file)
    index = ElasticsearchIndex(config.search)
    async with httpx.AsyncClient(timeout=config.oai_pmh.request_timeout) as http:
        orchestrator = HarvestOrchestrator(
            config, repositories, OaiPmhClient(http), index
        )
        scheduler = IndexerScheduler(orchestrator, config.scheduler)
        scheduler.start()
        try:
            # Keep running
            while True:
                await asyncio.sleep(3600)
        finally:
            scheduler.stop()
            await index.close()


async def count_documents(config: IndexerConfig, language: Optional[str] = None) -> dict:
    """Indexed document count per language."""
    from .search import ElasticsearchIndex, ScrollReader

    index = ElasticsearchIndex(config.search)
    languages = [language] if language else config.languages
    try:
        counts = {}
        for lang in languages:
            reader = ScrollReader(index, lang, page_size=config.search.page_size)
            counts[lang] = await reader.size()
        return counts
    finally:
        await index.close()


def main(argv: Optional[list] = None):
    """CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="StudyIndexer: OAI-PMH study metadata harvester",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL env or INFO)",
    )
    parser.add_argument(
        "--repositories",
        "-r",
        default=None,
        help="Repositories TOML file (default: INDEXER_REPOSITORIES_FILE env)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one harvest")
    run_parser.add_argument(
        "--incremental",
        action="store_true",
        help="Only harvest records modified since the newest indexed document",
    )
    subparsers.add_parser("schedule", help="Start the harvest scheduler")
    count_parser = subparsers.add_parser("count", help="Count indexed documents")
    count_parser.add_argument("--language", "-l", help="Single language to count")

    args = parser.parse_args(argv)

    config = get_config()
    setup_logging(args.log_level or config.log_level)
    repositories_file = args.repositories or config.repositories_file

    try:
        if args.command == "run":
            result = asyncio.run(run_harvest(config, repositories_file, args.incremental))
            print(json.dumps(result, indent=2))
        elif args.command == "schedule":
            asyncio.run(run_scheduler(config, repositories_file))
        elif args.command == "count":
            counts = asyncio.run(count_documents(config, args.language))
            print(json.dumps(counts, indent=2))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        sys.exit(0)
    except AlreadyRunningError as e:
        logger.error(str(e))
        sys.exit(2)
    except (IndexerError, FileNotFoundError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
