"""
Field mappers: one function per Study field.

Each mapper selects its XPath from an XPaths set and applies its field
strategy. Mappers that can hit field-level failures return them alongside
the value instead of raising.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Optional, Tuple

from lxml import etree

from ..exceptions import DateNotParsedError, FieldParseError
from ..models import (
    Country,
    DataCollectionFreeText,
    DataCollectionPeriod,
    Pid,
    Publisher,
    RelatedPublication,
    TermVocabAttributes,
    Universe,
    VocabAttributes,
)
from ..timeutils import parse_year
from . import strategies
from .extraction import (
    attribute_values,
    date_attributes_by_event,
    extract_first_per_language,
    extract_per_language,
    extract_text_per_language,
    first_attribute_value,
)
from .xpaths import XPaths

SINGLE_EVENT = "single"
START_EVENT = "start"
END_EVENT = "end"


def parse_title(doc: etree._Element, xpaths: XPaths, lang: str) -> Dict[str, str]:
    """Primary titles, completed by parallel titles for missing languages only."""
    titles = extract_first_per_language(
        doc, xpaths.title, xpaths.namespaces, lang, strategies.text_strategy
    )
    if not titles:
        return titles

    parallel = extract_first_per_language(
        doc, xpaths.par_title, xpaths.namespaces, lang, strategies.text_strategy
    )
    for par_lang, par_title in parallel.items():
        titles.setdefault(par_lang, par_title)

    return {k: strategies.clean_character_returns(v) for k, v in titles.items()}


def parse_abstract(
    doc: etree._Element, xpaths: XPaths, lang: str, concatenate: bool, separator: str
) -> Dict[str, str]:
    return extract_text_per_language(
        doc, xpaths.abstract, xpaths.namespaces, lang, concatenate, separator
    )


def parse_pid_studies(doc: etree._Element, xpaths: XPaths, lang: str) -> Dict[str, List[Pid]]:
    return extract_per_language(
        doc, xpaths.pid_study, xpaths.namespaces, lang, strategies.pid_strategy
    )


def parse_creators(doc: etree._Element, xpaths: XPaths, lang: str) -> Dict[str, List[str]]:
    return extract_per_language(
        doc, xpaths.creators, xpaths.namespaces, lang, strategies.creator_strategy
    )


def parse_classifications(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[TermVocabAttributes]]:
    return extract_per_language(
        doc, xpaths.classifications, xpaths.namespaces, lang, strategies.term_vocab_strategy
    )


def parse_keywords(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[TermVocabAttributes]]:
    return extract_per_language(
        doc, xpaths.keywords, xpaths.namespaces, lang, strategies.term_vocab_strategy
    )


def parse_type_of_time_methods(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[TermVocabAttributes]]:
    return extract_per_language(
        doc,
        xpaths.type_of_time_method,
        xpaths.namespaces,
        lang,
        strategies.controlled_term_vocab_strategy,
    )


def parse_type_of_mode_of_collections(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[TermVocabAttributes]]:
    return extract_per_language(
        doc,
        xpaths.type_of_mode_of_collection,
        xpaths.namespaces,
        lang,
        strategies.controlled_term_vocab_strategy,
    )


def parse_unit_types(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[TermVocabAttributes]]:
    return extract_per_language(
        doc,
        xpaths.unit_type,
        xpaths.namespaces,
        lang,
        strategies.controlled_term_vocab_strategy,
    )


def parse_type_of_sampling_procedures(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[VocabAttributes]]:
    return extract_per_language(
        doc, xpaths.sampling, xpaths.namespaces, lang, strategies.sampling_vocab_strategy
    )


def parse_sampling_procedure_free_texts(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[str]]:
    return extract_per_language(
        doc, xpaths.sampling, xpaths.namespaces, lang, strategies.nullable_text_strategy
    )


def parse_data_access_free_texts(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[str]]:
    return extract_per_language(
        doc,
        xpaths.data_restriction,
        xpaths.namespaces,
        lang,
        strategies.nullable_text_strategy,
    )


def parse_study_area_countries(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[Country]]:
    return extract_per_language(
        doc,
        xpaths.study_area_countries,
        xpaths.namespaces,
        lang,
        strategies.country_strategy,
    )


def parse_publisher(doc: etree._Element, xpaths: XPaths, lang: str) -> Dict[str, Publisher]:
    """Producer per language, with the distributor filling missing languages."""
    publishers = extract_first_per_language(
        doc, xpaths.publisher, xpaths.namespaces, lang, strategies.publisher_strategy
    )
    distributors = extract_first_per_language(
        doc, xpaths.distributor, xpaths.namespaces, lang, strategies.publisher_strategy
    )
    for dist_lang, distributor in distributors.items():
        publishers.setdefault(dist_lang, distributor)
    return publishers


def parse_study_url(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Tuple[Dict[str, str], List[FieldParseError]]:
    """Study URL per language.

    The document description URLs win; study description URLs fill in the
    languages they lack. Without a document description XPath the study
    description URLs are the result.
    """
    errors: List[FieldParseError] = []
    from_stdy_dscr = extract_first_per_language(
        doc,
        xpaths.study_url_stdy_dscr,
        xpaths.namespaces,
        lang,
        strategies.uri_strategy,
        errors,
    )
    if xpaths.study_url_doc_dscr is None:
        return from_stdy_dscr, errors

    urls = extract_first_per_language(
        doc,
        xpaths.study_url_doc_dscr,
        xpaths.namespaces,
        lang,
        strategies.uri_strategy,
        errors,
    )
    for url_lang, url in from_stdy_dscr.items():
        urls.setdefault(url_lang, url)
    return urls, errors


def parse_data_collection_free_texts(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[DataCollectionFreeText]]:
    return extract_per_language(
        doc,
        xpaths.data_collection_periods,
        xpaths.namespaces,
        lang,
        strategies.data_collection_free_text_strategy,
    )


def parse_data_collection_period(
    doc: etree._Element, xpaths: XPaths
) -> Tuple[DataCollectionPeriod, List[FieldParseError]]:
    """Start, end and year of data collection from the dated <collDate>s.

    A single date is the start with no end. The year comes from the start.
    """
    dates = date_attributes_by_event(
        doc, xpaths.data_collection_periods, xpaths.namespaces
    )
    if SINGLE_EVENT in dates:
        start, end = dates[SINGLE_EVENT], None
    else:
        start, end = dates.get(START_EVENT), dates.get(END_EVENT)

    errors: List[FieldParseError] = []
    year = None
    if start is not None:
        year = parse_year(start)
        if year is None:
            errors.append(
                DateNotParsedError(
                    f"Cannot parse data collection start date [{start}]",
                    field="dataCollectionYear",
                    value=start,
                )
            )
    return DataCollectionPeriod(start=start, end=end, year=year), errors


def parse_publication_year(doc: etree._Element, xpaths: XPaths) -> Optional[str]:
    value = first_attribute_value(doc, xpaths.year_of_publication, xpaths.namespaces)
    if value is None or not value.strip():
        return None
    return value.strip()


def parse_file_languages(doc: etree._Element, xpaths: XPaths) -> FrozenSet[str]:
    languages = set()
    for xpath in (*xpaths.file_txt_languages, *xpaths.filename_languages):
        languages.update(attribute_values(doc, xpath, xpaths.namespaces))
    return frozenset(languages)


def parse_universes(doc: etree._Element, xpaths: XPaths, lang: str) -> Dict[str, Universe]:
    """One Universe per language; later clauses of the same kind overwrite earlier ones."""
    if xpaths.universe is None:
        return {}

    clauses = extract_per_language(
        doc, xpaths.universe, xpaths.namespaces, lang, strategies.universe_strategy
    )
    universes = {}
    for clause_lang, entries in clauses.items():
        inclusion = exclusion = None
        for clusion, text in entries:
            if clusion == strategies.EXCLUSION:
                exclusion = text
            else:
                inclusion = text
        universes[clause_lang] = Universe(inclusion=inclusion, exclusion=exclusion)
    return universes


def parse_related_publications(
    doc: etree._Element, xpaths: XPaths, lang: str
) -> Dict[str, List[RelatedPublication]]:
    if xpaths.related_publications is None:
        return {}
    return extract_per_language(
        doc,
        xpaths.related_publications,
        xpaths.namespaces,
        lang,
        strategies.related_publication_strategy,
    )
