"""Data types for harvested studies and run results."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

from .exceptions import InvalidStudyError


# --- Value types -------------------------------------------------------------


@dataclass(frozen=True)
class TermVocabAttributes:
    """A term from a controlled vocabulary."""

    term: str
    vocab: str = ""
    vocab_uri: str = ""
    id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "term": self.term,
            "vocab": self.vocab,
            "vocabUri": self.vocab_uri,
            "id": self.id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TermVocabAttributes:
        return cls(
            term=data.get("term", ""),
            vocab=data.get("vocab", ""),
            vocab_uri=data.get("vocabUri", ""),
            id=data.get("id", ""),
        )


@dataclass(frozen=True)
class VocabAttributes:
    """Vocabulary reference without a term, used for sampling procedures."""

    vocab: str = ""
    vocab_uri: str = ""
    id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"vocab": self.vocab, "vocabUri": self.vocab_uri, "id": self.id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VocabAttributes:
        return cls(
            vocab=data.get("vocab", ""),
            vocab_uri=data.get("vocabUri", ""),
            id=data.get("id", ""),
        )


@dataclass(frozen=True)
class Country:
    iso2_code: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"abbr": self.iso2_code, "country": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Country:
        return cls(iso2_code=data.get("abbr", "?"), name=data.get("country", ""))


@dataclass(frozen=True)
class Pid:
    agency: str
    pid: str

    def to_dict(self) -> Dict[str, Any]:
        return {"agency": self.agency, "pid": self.pid}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Pid:
        return cls(agency=data.get("agency", "?"), pid=data.get("pid", ""))


@dataclass(frozen=True)
class Publisher:
    iso2_code: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"abbr": self.iso2_code, "publisher": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Publisher:
        return cls(iso2_code=data.get("abbr", "?"), name=data.get("publisher", ""))


@dataclass(frozen=True)
class DataCollectionFreeText:
    text: str
    event: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"dataCollectionFreeText": self.text}
        if self.event is not None:
            result["event"] = self.event
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DataCollectionFreeText:
        return cls(text=data.get("dataCollectionFreeText", ""), event=data.get("event"))


@dataclass(frozen=True)
class RelatedPublication:
    title: str
    holdings: List[str] = field(default_factory=list)
    publication_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"title": self.title, "holdings": list(self.holdings)}
        if self.publication_date is not None:
            result["publicationDate"] = self.publication_date
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RelatedPublication:
        return cls(
            title=data.get("title", ""),
            holdings=list(data.get("holdings", [])),
            publication_date=data.get("publicationDate"),
        )


@dataclass(frozen=True)
class Universe:
    """Inclusion and exclusion clauses of a study population."""

    inclusion: Optional[str] = None
    exclusion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        if self.inclusion is not None:
            result["inclusion"] = self.inclusion
        if self.exclusion is not None:
            result["exclusion"] = self.exclusion
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Universe:
        return cls(inclusion=data.get("inclusion"), exclusion=data.get("exclusion"))


@dataclass(frozen=True)
class DataCollectionPeriod:
    start: Optional[str] = None
    end: Optional[str] = None
    year: Optional[int] = None


# --- Harvest records ---------------------------------------------------------


@dataclass(frozen=True)
class RecordHeader:
    """One entry of a ListIdentifiers response."""

    identifier: str
    last_modified: Optional[str] = None  # raw datestamp
    deleted: bool = False


@dataclass(frozen=True)
class Study:
    """Canonical multi-language study.

    Every language-keyed field maps a language code to a value or a list of
    values. An inactive study (tombstone) carries header fields only.
    """

    study_number: Optional[str]
    active: bool = True
    last_modified: Optional[str] = None
    publication_year: Optional[str] = None
    data_collection_period: DataCollectionPeriod = field(
        default_factory=DataCollectionPeriod
    )
    file_languages: frozenset = frozenset()
    study_xml_source_url: Optional[str] = None

    title: Dict[str, str] = field(default_factory=dict)
    abstract: Dict[str, str] = field(default_factory=dict)
    keywords: Dict[str, List[TermVocabAttributes]] = field(default_factory=dict)
    classifications: Dict[str, List[TermVocabAttributes]] = field(default_factory=dict)
    type_of_time_methods: Dict[str, List[TermVocabAttributes]] = field(
        default_factory=dict
    )
    type_of_mode_of_collections: Dict[str, List[TermVocabAttributes]] = field(
        default_factory=dict
    )
    unit_types: Dict[str, List[TermVocabAttributes]] = field(default_factory=dict)
    type_of_sampling_procedures: Dict[str, List[VocabAttributes]] = field(
        default_factory=dict
    )
    sampling_procedure_free_texts: Dict[str, List[str]] = field(default_factory=dict)
    study_area_countries: Dict[str, List[Country]] = field(default_factory=dict)
    publisher: Dict[str, Publisher] = field(default_factory=dict)
    pid_studies: Dict[str, List[Pid]] = field(default_factory=dict)
    creators: Dict[str, List[str]] = field(default_factory=dict)
    data_collection_free_texts: Dict[str, List[DataCollectionFreeText]] = field(
        default_factory=dict
    )
    data_access_free_texts: Dict[str, List[str]] = field(default_factory=dict)
    study_url: Dict[str, str] = field(default_factory=dict)
    universes: Dict[str, Universe] = field(default_factory=dict)
    related_publications: Dict[str, List[RelatedPublication]] = field(
        default_factory=dict
    )

    @classmethod
    def tombstone(
        cls,
        study_number: Optional[str],
        last_modified: Optional[str] = None,
        study_xml_source_url: Optional[str] = None,
    ) -> Study:
        """Inactive study for a record deleted at the source."""
        return cls(
            study_number=study_number,
            active=False,
            last_modified=last_modified,
            study_xml_source_url=study_xml_source_url,
        )


def sanitize_repository_name(name: str) -> str:
    """'UK Data Service' -> 'UK-Data-Service'."""
    return name.strip().replace(" ", "-")


def document_id(repository_name: str, study_number: Optional[str]) -> str:
    return f"{sanitize_repository_name(repository_name)}__{study_number}"


# Persisted JSON key for each StudyOfLanguage field
_PERSISTED_KEYS = {
    "id": "id",
    "study_number": "studyNumber",
    "title_study": "titleStudy",
    "abstract": "abstract",
    "classifications": "classifications",
    "keywords": "keywords",
    "type_of_time_methods": "typeOfTimeMethods",
    "type_of_mode_of_collections": "typeOfModeOfCollections",
    "study_area_countries": "studyAreaCountries",
    "unit_types": "unitTypes",
    "publisher": "publisher",
    "publication_year": "publicationYear",
    "pid_studies": "pidStudies",
    "file_languages": "fileLanguages",
    "creators": "creators",
    "type_of_sampling_procedures": "typeOfSamplingProcedures",
    "sampling_procedure_free_texts": "samplingProcedureFreeTexts",
    "data_collection_period_startdate": "dataCollectionPeriodStartdate",
    "data_collection_period_enddate": "dataCollectionPeriodEnddate",
    "data_collection_year": "dataCollectionYear",
    "data_collection_free_texts": "dataCollectionFreeTexts",
    "data_access_free_texts": "dataAccessFreeTexts",
    "study_url": "studyUrl",
    "universe": "universe",
    "related_publications": "relatedPublications",
    "study_xml_source_url": "studyXmlSourceUrl",
    "lang_available_in": "langAvailableIn",
    "last_modified": "lastModified",
    "active": "isActive",
    "code": "code",
}

# Fields holding lists of value types, and the type to decode them with
_LIST_VALUE_TYPES = {
    "classifications": TermVocabAttributes,
    "keywords": TermVocabAttributes,
    "type_of_time_methods": TermVocabAttributes,
    "type_of_mode_of_collections": TermVocabAttributes,
    "unit_types": TermVocabAttributes,
    "study_area_countries": Country,
    "pid_studies": Pid,
    "type_of_sampling_procedures": VocabAttributes,
    "data_collection_free_texts": DataCollectionFreeText,
    "related_publications": RelatedPublication,
}

_SINGLE_VALUE_TYPES = {
    "publisher": Publisher,
    "universe": Universe,
}


@dataclass(frozen=True)
class StudyOfLanguage:
    """Flattened single-language study, the document stored in the search index.

    Use StudyOfLanguage.build() to construct one; it enforces the required
    fields of an active document.
    """

    id: str
    language: str
    active: bool = True
    study_number: Optional[str] = None
    last_modified: Optional[str] = None
    code: Optional[str] = None

    title_study: Optional[str] = None
    abstract: Optional[str] = None
    classifications: Optional[List[TermVocabAttributes]] = None
    keywords: Optional[List[TermVocabAttributes]] = None
    type_of_time_methods: Optional[List[TermVocabAttributes]] = None
    type_of_mode_of_collections: Optional[List[TermVocabAttributes]] = None
    study_area_countries: Optional[List[Country]] = None
    unit_types: Optional[List[TermVocabAttributes]] = None
    publisher: Optional[Publisher] = None
    publication_year: Optional[str] = None
    pid_studies: Optional[List[Pid]] = None
    file_languages: Optional[List[str]] = None
    creators: Optional[List[str]] = None
    type_of_sampling_procedures: Optional[List[VocabAttributes]] = None
    sampling_procedure_free_texts: Optional[List[str]] = None
    data_collection_period_startdate: Optional[str] = None
    data_collection_period_enddate: Optional[str] = None
    data_collection_year: Optional[int] = None
    data_collection_free_texts: Optional[List[DataCollectionFreeText]] = None
    data_access_free_texts: Optional[List[str]] = None
    study_url: Optional[str] = None
    universe: Optional[Universe] = None
    related_publications: Optional[List[RelatedPublication]] = None
    study_xml_source_url: Optional[str] = None
    lang_available_in: Optional[List[str]] = None

    @classmethod
    def build(cls, **values: Any) -> StudyOfLanguage:
        """Validated constructor.

        Raises:
            InvalidStudyError: an active document lacks a title, abstract,
                study number or publisher.
        """
        if values.get("active", True):
            reason = missing_required_field(
                values.get("title_study"),
                values.get("abstract"),
                values.get("study_number"),
                values.get("publisher"),
            )
            if reason:
                raise InvalidStudyError(reason)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Persisted JSON shape. None fields are omitted, the language is not stored."""
        result: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "language":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name in _LIST_VALUE_TYPES:
                value = [item.to_dict() for item in value]
            elif f.name in _SINGLE_VALUE_TYPES:
                value = value.to_dict()
            elif isinstance(value, list):
                value = list(value)
            result[_PERSISTED_KEYS[f.name]] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], language: str) -> StudyOfLanguage:
        """Read back a document stored by to_dict()."""
        values: Dict[str, Any] = {"language": language}
        for name, key in _PERSISTED_KEYS.items():
            if key not in data or data[key] is None:
                continue
            value = data[key]
            if name in _LIST_VALUE_TYPES:
                value = [_LIST_VALUE_TYPES[name].from_dict(item) for item in value]
            elif name in _SINGLE_VALUE_TYPES:
                value = _SINGLE_VALUE_TYPES[name].from_dict(value)
            elif isinstance(value, list):
                value = list(value)
            values[name] = value
        if "id" not in values:
            raise KeyError("id")
        return cls(**values)


def missing_required_field(
    title: Optional[str],
    abstract: Optional[str],
    study_number: Optional[str],
    publisher: Optional[Publisher],
) -> Optional[str]:
    """Reason an active document would be rejected, or None if it is complete."""
    if not title:
        return "Study does not have a title"
    if not abstract:
        return "Study does not have an abstract"
    if not study_number:
        return "Study does not have a studyNumber"
    if publisher is None:
        return "Study does not have a publisher"
    return None


# --- Run accounting ----------------------------------------------------------


@dataclass(frozen=True)
class DiffCounts:
    """Created/updated/deleted counts for one (repository, language) bucket."""

    created: int = 0
    updated: int = 0
    deleted: int = 0

    def __add__(self, other: DiffCounts) -> DiffCounts:
        return DiffCounts(
            created=self.created + other.created,
            updated=self.updated + other.updated,
            deleted=self.deleted + other.deleted,
        )

    def to_dict(self) -> Dict[str, int]:
        return {"created": self.created, "updated": self.updated, "deleted": self.deleted}


@dataclass
class RepositoryResult:
    """Outcome of harvesting one repository."""

    code: str
    harvested: int = 0
    rejected: int = 0
    counts: Dict[str, DiffCounts] = field(default_factory=dict)
    failed_buckets: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "harvested": self.harvested,
            "rejected": self.rejected,
            "counts": {lang: c.to_dict() for lang, c in self.counts.items()},
            "failed_buckets": list(self.failed_buckets),
            "error": self.error,
        }


@dataclass
class RunResult:
    """Aggregate outcome of one harvest run."""

    job_id: str
    started_at: datetime
    since: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    repositories: Dict[str, RepositoryResult] = field(default_factory=dict)

    @property
    def totals(self) -> DiffCounts:
        total = DiffCounts()
        for repository in self.repositories.values():
            for counts in repository.counts.values():
                total = total + counts
        return total

    @property
    def harvested(self) -> int:
        return sum(r.harvested for r in self.repositories.values())

    @property
    def rejected(self) -> int:
        return sum(r.rejected for r in self.repositories.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "since": self.since.isoformat() if self.since else None,
            "harvested": self.harvested,
            "rejected": self.rejected,
            "totals": self.totals.to_dict(),
            "repositories": {
                code: result.to_dict() for code, result in self.repositories.items()
            },
        }


__all__ = [
    "TermVocabAttributes",
    "VocabAttributes",
    "Country",
    "Pid",
    "Publisher",
    "DataCollectionFreeText",
    "RelatedPublication",
    "Universe",
    "DataCollectionPeriod",
    "RecordHeader",
    "Study",
    "StudyOfLanguage",
    "sanitize_repository_name",
    "document_id",
    "missing_required_field",
    "DiffCounts",
    "RepositoryResult",
    "RunResult",
]
