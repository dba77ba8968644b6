"""
StudyIndexer - OAI-PMH study metadata harvester for a multi-language search index.

Harvests DDI records from OAI-PMH repositories, maps them to canonical
multi-language studies, projects one document per configured language and
keeps the search index in sync.

Usage:
    from studyindexer import HarvestOrchestrator, IndexerConfig, load_repositories

    config = IndexerConfig.from_env()
    repositories = load_repositories(config.repositories_file)
    orchestrator = HarvestOrchestrator(config, repositories, oai_client, index)

    result = await orchestrator.run_full()
"""

__version__ = "0.1.0"

from .config import IndexerConfig, Repository, get_config, load_repositories
from .harvester import HarvestOrchestrator, IndexerScheduler, OaiPmhClient
from .language import LanguageDocumentExtractor
from .models import Study, StudyOfLanguage
from .parser import RecordParser
from .search import ElasticsearchIndex, ScrollReader

__all__ = [
    "__version__",
    # Config
    "IndexerConfig",
    "Repository",
    "get_config",
    "load_repositories",
    # Harvest
    "HarvestOrchestrator",
    "IndexerScheduler",
    "OaiPmhClient",
    "RecordParser",
    "LanguageDocumentExtractor",
    # Models
    "Study",
    "StudyOfLanguage",
    # Search
    "ElasticsearchIndex",
    "ScrollReader",
]
