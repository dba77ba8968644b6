"""
Record parser: one OAI-PMH GetRecord payload to one canonical Study.

Usage:
    parser = RecordParser(config.oai_pmh)
    parsed = parser.parse(raw_xml, repository, source_url=url)
    parsed.study, parsed.errors
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from lxml import etree

from ..config import OaiPmhConfig, Repository
from ..exceptions import FieldParseError, MalformedRecordError, ProtocolError
from ..models import Study
from . import mapper
from .extraction import resolve_default_language, select
from .xpaths import OAI_NAMESPACE, XPaths, xpaths_for_prefix

logger = logging.getLogger(__name__)

OAI_NAMESPACES = {"oai": OAI_NAMESPACE}

DELETED_STATUS = "deleted"


@dataclass
class ParsedRecord:
    """A parsed Study plus the non-fatal field errors met on the way."""

    study: Study
    errors: List[FieldParseError] = field(default_factory=list)


@dataclass(frozen=True)
class HeaderElement:
    study_number: Optional[str]
    last_modified: Optional[str]
    active: bool


def parse_xml(raw_xml: Union[bytes, str]) -> etree._Element:
    """Parse a payload with a parser created for this call.

    The parser never touches the network and does not resolve entities.

    Raises:
        MalformedRecordError: the payload is not well-formed XML.
    """
    if isinstance(raw_xml, str):
        raw_xml = raw_xml.encode("utf-8")
    xml_parser = etree.XMLParser(
        resolve_entities=False, no_network=True, remove_blank_text=False
    )
    try:
        return etree.fromstring(raw_xml, parser=xml_parser)
    except etree.XMLSyntaxError as e:
        raise MalformedRecordError(f"Cannot parse record XML: {e}") from e


def raise_for_oai_error(doc: etree._Element) -> None:
    """Raise ProtocolError for an OAI-PMH <error> element."""
    errors = select(doc, "//oai:error", OAI_NAMESPACES)
    if not errors:
        return
    error = errors[0]
    code = error.get("code")
    message = "".join(error.itertext()).strip()
    raise ProtocolError(f"{code}: {message}", code=code)


def _first_text(doc: etree._Element, xpath: str) -> Optional[str]:
    for element in select(doc, xpath, OAI_NAMESPACES):
        text = (element.text or "").strip()
        return text or None
    return None


def parse_header(doc: etree._Element) -> HeaderElement:
    status = None
    for value in select(doc, "//oai:header/@status", OAI_NAMESPACES):
        status = str(value)
        break
    return HeaderElement(
        study_number=_first_text(doc, "//oai:header/oai:identifier"),
        last_modified=_first_text(doc, "//oai:header/oai:datestamp"),
        active=not (status is not None and status.strip().lower() == DELETED_STATUS),
    )


class RecordParser:
    """Maps OAI-PMH DDI records to canonical Study objects.

    Holds only configuration; safe to share between tasks.
    """

    def __init__(self, config: Optional[OaiPmhConfig] = None):
        self.config = config or OaiPmhConfig()

    def parse(
        self,
        raw_xml: Union[bytes, str],
        repository: Repository,
        source_url: Optional[str] = None,
    ) -> ParsedRecord:
        """Parse one record.

        A deleted record is returned as a tombstone without parsing its body.

        Raises:
            MalformedRecordError: the payload is not well-formed XML.
            ProtocolError: the payload is an OAI-PMH error response.
        """
        doc = parse_xml(raw_xml)
        raise_for_oai_error(doc)

        header = parse_header(doc)
        if not header.active:
            logger.debug(f"Record {header.study_number} is deleted")
            return ParsedRecord(
                study=Study.tombstone(
                    header.study_number,
                    last_modified=header.last_modified,
                    study_xml_source_url=source_url,
                )
            )

        xpaths = xpaths_for_prefix(repository.metadata_prefix)
        return self._parse_body(doc, header, xpaths, repository, source_url)

    def _parse_body(
        self,
        doc: etree._Element,
        header: HeaderElement,
        xpaths: XPaths,
        repository: Repository,
        source_url: Optional[str],
    ) -> ParsedRecord:
        lang = resolve_default_language(
            doc, xpaths, repository, self.config.default_language
        )
        errors: List[FieldParseError] = []

        study_url, url_errors = mapper.parse_study_url(doc, xpaths, lang)
        errors.extend(url_errors)
        period, period_errors = mapper.parse_data_collection_period(doc, xpaths)
        errors.extend(period_errors)

        study = Study(
            study_number=header.study_number,
            active=True,
            last_modified=header.last_modified,
            publication_year=mapper.parse_publication_year(doc, xpaths),
            data_collection_period=period,
            file_languages=mapper.parse_file_languages(doc, xpaths),
            study_xml_source_url=source_url,
            title=mapper.parse_title(doc, xpaths, lang),
            abstract=mapper.parse_abstract(
                doc,
                xpaths,
                lang,
                self.config.concat_repeated_elements,
                self.config.concat_separator,
            ),
            keywords=mapper.parse_keywords(doc, xpaths, lang),
            classifications=mapper.parse_classifications(doc, xpaths, lang),
            type_of_time_methods=mapper.parse_type_of_time_methods(doc, xpaths, lang),
            type_of_mode_of_collections=mapper.parse_type_of_mode_of_collections(
                doc, xpaths, lang
            ),
            unit_types=mapper.parse_unit_types(doc, xpaths, lang),
            type_of_sampling_procedures=mapper.parse_type_of_sampling_procedures(
                doc, xpaths, lang
            ),
            sampling_procedure_free_texts=mapper.parse_sampling_procedure_free_texts(
                doc, xpaths, lang
            ),
            study_area_countries=mapper.parse_study_area_countries(doc, xpaths, lang),
            publisher=mapper.parse_publisher(doc, xpaths, lang),
            pid_studies=mapper.parse_pid_studies(doc, xpaths, lang),
            creators=mapper.parse_creators(doc, xpaths, lang),
            data_collection_free_texts=mapper.parse_data_collection_free_texts(
                doc, xpaths, lang
            ),
            data_access_free_texts=mapper.parse_data_access_free_texts(doc, xpaths, lang),
            study_url=study_url,
            universes=mapper.parse_universes(doc, xpaths, lang),
            related_publications=mapper.parse_related_publications(doc, xpaths, lang),
        )

        for error in errors:
            logger.warning(
                f"[{repository.code}] Field {error.field} of "
                f"{header.study_number} not parsed: {error}"
            )
        return ParsedRecord(study=study, errors=errors)


__all__ = [
    "ParsedRecord",
    "HeaderElement",
    "RecordParser",
    "parse_xml",
    "parse_header",
    "raise_for_oai_error",
]
