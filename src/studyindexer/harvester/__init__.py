"""
Harvester - OAI-PMH harvesting, diffing and indexing of study metadata.

Usage:
    python -m studyindexer run
    python -m studyindexer run --incremental
    python -m studyindexer schedule
"""

from .context import RunContext
from .oaipmh import OaiPmhClient
from .orchestrator import HarvestOrchestrator
from .scheduler import IndexerScheduler

__all__ = ["RunContext", "OaiPmhClient", "HarvestOrchestrator", "IndexerScheduler"]
