"""
Language resolution and per-language field extraction.

Pure functions over a parsed XML document. Each matched element is keyed by
its own ``xml:lang`` if present and non-blank, else by the document's
resolved default language.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from lxml import etree

from ..config import Repository
from ..exceptions import FieldParseError
from .strategies import text_strategy
from .xpaths import XPaths

logger = logging.getLogger(__name__)

XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

T = TypeVar("T")
Strategy = Callable[[etree._Element, Dict[str, str]], Optional[T]]


def select(doc: etree._Element, xpath: str, namespaces: Dict[str, str]) -> List[Any]:
    """Evaluate an XPath, always returning a list."""
    result = doc.xpath(xpath, namespaces=namespaces)
    if isinstance(result, list):
        return result
    return [result]


def first_attribute_value(
    doc: etree._Element, xpath: str, namespaces: Dict[str, str]
) -> Optional[str]:
    """First attribute value matched by an ``.../@attr`` XPath."""
    for value in select(doc, xpath, namespaces):
        return str(value)
    return None


def attribute_values(
    doc: etree._Element, xpath: str, namespaces: Dict[str, str]
) -> List[str]:
    return [str(value).strip() for value in select(doc, xpath, namespaces) if str(value).strip()]


def resolve_default_language(
    doc: etree._Element,
    xpaths: XPaths,
    repository: Repository,
    global_default: str,
) -> str:
    """Default language of a record.

    Precedence: the codebook's own xml:lang if non-blank, then the
    repository override, then the global default. Repositories that omit
    the codebook language rely on the override.
    """
    codebook_lang = first_attribute_value(
        doc, xpaths.record_default_language, xpaths.namespaces
    )
    if codebook_lang and codebook_lang.strip():
        return codebook_lang.strip()
    if repository.default_language:
        return repository.default_language
    return global_default


def element_language(element: etree._Element, default_lang: str) -> str:
    lang = element.get(XML_LANG)
    if lang and lang.strip():
        return lang.strip()
    return default_lang


def _extract(
    doc: etree._Element,
    xpath: str,
    namespaces: Dict[str, str],
    default_lang: str,
    strategy: Strategy,
    errors: Optional[List[FieldParseError]],
):
    """Yield ``(lang, value)`` in document order, dropping None values."""
    for element in select(doc, xpath, namespaces):
        if not isinstance(element, etree._Element):
            continue
        try:
            value = strategy(element, namespaces)
        except FieldParseError as e:
            if errors is None:
                raise
            errors.append(e)
            continue
        if value is None:
            continue
        yield element_language(element, default_lang), value


def extract_per_language(
    doc: etree._Element,
    xpath: str,
    namespaces: Dict[str, str],
    default_lang: str,
    strategy: Strategy,
    errors: Optional[List[FieldParseError]] = None,
) -> Dict[str, List[Any]]:
    """All values of a repeated field, grouped by language in document order.

    If ``errors`` is given, FieldParseErrors raised by the strategy are
    collected there and the offending element is skipped.
    """
    result: Dict[str, List[Any]] = {}
    for lang, value in _extract(doc, xpath, namespaces, default_lang, strategy, errors):
        result.setdefault(lang, []).append(value)
    return result


def extract_first_per_language(
    doc: etree._Element,
    xpath: str,
    namespaces: Dict[str, str],
    default_lang: str,
    strategy: Strategy,
    errors: Optional[List[FieldParseError]] = None,
) -> Dict[str, Any]:
    """First value of a single-valued field for each language."""
    result: Dict[str, Any] = {}
    for lang, value in _extract(doc, xpath, namespaces, default_lang, strategy, errors):
        result.setdefault(lang, value)
    return result


def extract_text_per_language(
    doc: etree._Element,
    xpath: str,
    namespaces: Dict[str, str],
    default_lang: str,
    concatenate: bool,
    separator: str,
) -> Dict[str, str]:
    """Text of a field per language.

    Repeated elements of one language are joined with ``separator`` in
    document order when ``concatenate`` is set, otherwise the first wins.
    """
    if not concatenate:
        return extract_first_per_language(
            doc, xpath, namespaces, default_lang, text_strategy
        )
    grouped = extract_per_language(doc, xpath, namespaces, default_lang, text_strategy)
    return {lang: separator.join(values) for lang, values in grouped.items()}


def date_attributes_by_event(
    doc: etree._Element, xpath: str, namespaces: Dict[str, str]
) -> Dict[str, str]:
    """Map each ``@event`` of the matched elements to its ``@date``.

    Elements without a date are ignored; the first date of each event wins.
    """
    dates: Dict[str, str] = {}
    for element in select(doc, xpath, namespaces):
        if not isinstance(element, etree._Element):
            continue
        date = element.get("date")
        if date is None or not date.strip():
            continue
        event = (element.get("event") or "single").strip()
        dates.setdefault(event, date.strip())
    return dates


__all__ = [
    "XML_LANG",
    "select",
    "first_attribute_value",
    "attribute_values",
    "resolve_default_language",
    "element_language",
    "extract_per_language",
    "extract_first_per_language",
    "extract_text_per_language",
    "date_attributes_by_event",
]
