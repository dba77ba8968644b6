"""
Field strategies: convert one matched DDI element into a value.

Every strategy takes ``(element, namespaces)`` and returns a value, or None
to drop the element. Mapper functions pick the strategy for their field
explicitly.
"""

from __future__ import annotations

import re
from typing import Dict, Optional, Tuple
from urllib.parse import urlsplit

from lxml import etree

from ..exceptions import InvalidURIError
from ..models import (
    Country,
    DataCollectionFreeText,
    Pid,
    Publisher,
    RelatedPublication,
    TermVocabAttributes,
    VocabAttributes,
)

NOT_AVAILABLE = "?"

_WHITESPACE = re.compile(r"\s+")
_CHARACTER_RETURNS = re.compile(r"[\r\n]+")
# Whitespace, control characters and characters a URI reference may not contain unescaped
_ILLEGAL_URI_CHARACTERS = re.compile(r"[\s\x00-\x1f\x7f<>\"{}|\\^`]")

INCLUSION = "I"
EXCLUSION = "E"


def clean_text(value: Optional[str]) -> str:
    """Trim and collapse whitespace runs, line returns included."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def clean_character_returns(value: str) -> str:
    return _CHARACTER_RETURNS.sub(" ", value).strip()


def full_text(element: etree._Element) -> str:
    """All text of the element and its descendants."""
    return clean_text("".join(element.itertext()))


def own_text(element: etree._Element) -> str:
    """Text directly under the element, ignoring child elements."""
    return clean_text("".join(element.xpath("text()")))


def _attribute(element: etree._Element, name: str) -> Optional[str]:
    value = element.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


# --- Text --------------------------------------------------------------------


def text_strategy(element: etree._Element, namespaces: Dict[str, str]) -> str:
    return full_text(element)


def nullable_text_strategy(
    element: etree._Element, namespaces: Dict[str, str]
) -> Optional[str]:
    """Own text of the element, child elements such as <concept> ignored."""
    return own_text(element) or None


def creator_strategy(element: etree._Element, namespaces: Dict[str, str]) -> Optional[str]:
    """Creator name, followed by its affiliation in brackets when present."""
    name = full_text(element)
    if not name:
        return None
    affiliation = _attribute(element, "affiliation")
    if affiliation:
        return f"{name} ({affiliation})"
    return name


# --- Controlled vocabularies -------------------------------------------------


def _concept(element: etree._Element, namespaces: Dict[str, str]):
    return element.find("ddi:concept", namespaces)


def term_vocab_strategy(
    element: etree._Element, namespaces: Dict[str, str]
) -> Optional[TermVocabAttributes]:
    """Term whose vocabulary is declared on the element itself (keywords, topics)."""
    term = own_text(element)
    if not term:
        return None
    return TermVocabAttributes(
        term=term,
        vocab=_attribute(element, "vocab") or "",
        vocab_uri=_attribute(element, "vocabURI") or "",
        id=_attribute(element, "ID") or "",
    )


def controlled_term_vocab_strategy(
    element: etree._Element, namespaces: Dict[str, str]
) -> Optional[TermVocabAttributes]:
    """Term with a controlled value in a nested <concept> child.

    Falls back to the element's own vocabulary attributes when there is no
    concept.
    """
    concept = _concept(element, namespaces)
    if concept is None:
        return term_vocab_strategy(element, namespaces)

    term = own_text(element)
    concept_id = full_text(concept)
    if not term and not concept_id:
        return None
    return TermVocabAttributes(
        term=term,
        vocab=_attribute(concept, "vocab") or "",
        vocab_uri=_attribute(concept, "vocabURI") or "",
        id=concept_id,
    )


def sampling_vocab_strategy(
    element: etree._Element, namespaces: Dict[str, str]
) -> Optional[VocabAttributes]:
    """Sampling procedure vocabulary. Elements without a <concept> are dropped."""
    concept = _concept(element, namespaces)
    if concept is None:
        return None
    return VocabAttributes(
        vocab=_attribute(concept, "vocab") or "",
        vocab_uri=_attribute(concept, "vocabURI") or "",
        id=full_text(concept),
    )


# --- Structured values -------------------------------------------------------


def country_strategy(element: etree._Element, namespaces: Dict[str, str]) -> Country:
    return Country(
        iso2_code=_attribute(element, "abbr") or NOT_AVAILABLE,
        name=full_text(element),
    )


def pid_strategy(element: etree._Element, namespaces: Dict[str, str]) -> Optional[Pid]:
    pid = full_text(element)
    if not pid:
        return None
    return Pid(agency=_attribute(element, "agency") or NOT_AVAILABLE, pid=pid)


def publisher_strategy(element: etree._Element, namespaces: Dict[str, str]) -> Publisher:
    return Publisher(
        iso2_code=_attribute(element, "abbr") or NOT_AVAILABLE,
        name=full_text(element),
    )


def uri_strategy(element: etree._Element, namespaces: Dict[str, str]) -> Optional[str]:
    """Value of the URI attribute.

    Relative and schemeless references such as ``www.example.org/study/1``
    are kept as they are.

    Raises:
        InvalidURIError: the attribute is not a valid URI reference.
    """
    raw = element.get("URI")
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    try:
        urlsplit(value)
    except ValueError as e:
        raise InvalidURIError(
            f"Invalid study URL [{value}]: {e}", field="studyUrl", value=value
        ) from e
    if _ILLEGAL_URI_CHARACTERS.search(value):
        raise InvalidURIError(
            f"Invalid study URL [{value}]", field="studyUrl", value=value
        )
    return value


def data_collection_free_text_strategy(
    element: etree._Element, namespaces: Dict[str, str]
) -> Optional[DataCollectionFreeText]:
    """Free text of a <collDate>. Elements carrying a @date are dates, not free text."""
    if element.get("date") is not None:
        return None
    text = full_text(element)
    if not text:
        return None
    return DataCollectionFreeText(text=text, event=_attribute(element, "event"))


def universe_strategy(
    element: etree._Element, namespaces: Dict[str, str]
) -> Optional[Tuple[str, str]]:
    """``(clusion, text)`` where clusion is INCLUSION (the default) or EXCLUSION."""
    text = full_text(element)
    if not text:
        return None
    clusion = (element.get("clusion") or INCLUSION).strip().upper()
    return (EXCLUSION if clusion == EXCLUSION else INCLUSION, text)


def related_publication_strategy(
    element: etree._Element, namespaces: Dict[str, str]
) -> Optional[RelatedPublication]:
    """Related publication from a <relPubl>/<citation>."""
    titles = element.xpath("ddi:titlStmt/ddi:titl", namespaces=namespaces)
    title = full_text(titles[0]) if titles else ""
    if not title:
        return None

    holdings = []
    for holding in element.xpath("ddi:holdings", namespaces=namespaces):
        value = _attribute(holding, "URI") or full_text(holding)
        if value:
            holdings.append(value)

    dates = element.xpath("ddi:distStmt/ddi:distDate/@date", namespaces=namespaces)
    return RelatedPublication(
        title=title,
        holdings=holdings,
        publication_date=str(dates[0]).strip() if dates else None,
    )


__all__ = [
    "NOT_AVAILABLE",
    "INCLUSION",
    "EXCLUSION",
    "clean_text",
    "clean_character_returns",
    "full_text",
    "own_text",
    "text_strategy",
    "nullable_text_strategy",
    "creator_strategy",
    "term_vocab_strategy",
    "controlled_term_vocab_strategy",
    "sampling_vocab_strategy",
    "country_strategy",
    "pid_strategy",
    "publisher_strategy",
    "uri_strategy",
    "data_collection_free_text_strategy",
    "universe_strategy",
    "related_publication_strategy",
]
