"""
Shared fixtures: OAI-PMH/DDI payload builders and an in-memory search index.
"""

from datetime import datetime
from typing import Dict, List, Optional

import pytest

from studyindexer.config import IndexerConfig, Repository
from studyindexer.models import StudyOfLanguage
from studyindexer.search.engine import ScrollPage
from studyindexer.timeutils import parse_datetime

OAI_NS = "http://www.openarchives.org/OAI/2.0/"

FULL_DDI_BODY = """
<docDscr>
  <citation>
    <prodStmt><producer abbr="UKDA">UK Data Archive</producer></prodStmt>
    <holdings URI="https://doc.example.org/study/1234"/>
  </citation>
</docDscr>
<stdyDscr>
  <citation>
    <titlStmt>
      <titl>Social Attitudes Survey</titl>
      <parTitl xml:lang="fr">Enquete sur les attitudes sociales</parTitl>
      <IDNo agency="DOI">10.5255/UKDA-SN-1234-1</IDNo>
    </titlStmt>
    <rspStmt>
      <AuthEnty affiliation="University of Essex">Smith, J.</AuthEnty>
      <AuthEnty>Jones, K.</AuthEnty>
    </rspStmt>
    <distStmt>
      <distrbtr abbr="UKDS">UK Data Service</distrbtr>
      <distDate date="2005-06-01">2005</distDate>
    </distStmt>
    <holdings URI="https://stdy.example.org/study/1234"/>
  </citation>
  <stdyInfo>
    <subject>
      <keyword vocab="ELSST" vocabURI="https://elsst.example.org" ID="K1">ATTITUDES</keyword>
      <topcClas vocab="CESSDA" vocabURI="https://cessda.example.org" ID="T1">Society and culture</topcClas>
    </subject>
    <abstract>First</abstract>
    <abstract>Second</abstract>
    <sumDscr>
      <collDate event="start" date="2004-01-15">15 January 2004</collDate>
      <collDate event="end" date="2004-12-31"/>
      <collDate>Fieldwork ran through 2004</collDate>
      <nation abbr="GB">United Kingdom</nation>
      <anlyUnit>Individual<concept vocab="DDI Analysis Unit" vocabURI="urn:ddi:analysisunit">Individual</concept></anlyUnit>
      <universe clusion="I">Adults aged 18 and over</universe>
      <universe clusion="E">Residents of institutions</universe>
    </sumDscr>
  </stdyInfo>
  <method>
    <dataColl>
      <timeMeth>Cross-section<concept vocab="DDI Time Method" vocabURI="urn:ddi:timemethod">CrossSection</concept></timeMeth>
      <sampProc>Multi-stage random sample<concept vocab="DDI Sampling" vocabURI="urn:ddi:sampling">Probability.Multistage</concept></sampProc>
      <sampProc>Quota sample</sampProc>
      <collMode>Face-to-face interview<concept vocab="DDI Mode" vocabURI="urn:ddi:mode">Interview.FaceToFace</concept></collMode>
    </dataColl>
  </method>
  <dataAccs>
    <useStmt><restrctn>Available to registered users</restrctn></useStmt>
  </dataAccs>
  <othrStdyMat>
    <relPubl>
      <citation>
        <titlStmt><titl>Attitudes in Britain</titl></titlStmt>
        <distStmt><distDate date="2006"/></distStmt>
        <holdings URI="https://pub.example.org/1"/>
      </citation>
    </relPubl>
  </othrStdyMat>
</stdyDscr>
<fileDscr>
  <fileTxt xml:lang="en"><fileName xml:lang="en">data.tab</fileName></fileTxt>
</fileDscr>
"""


def build_record(
    body: str = FULL_DDI_BODY,
    identifier: str = "1234",
    lang: Optional[str] = "en",
    deleted: bool = False,
    datestamp: str = "2018-02-01T07:48:38Z",
    namespace: str = "ddi:codebook:2_5",
) -> bytes:
    """GetRecord response wrapping a DDI codebook body."""
    status = ' status="deleted"' if deleted else ""
    lang_attr = f' xml:lang="{lang}"' if lang is not None else ""
    metadata = (
        ""
        if deleted
        else f'<metadata><codeBook xmlns="{namespace}"{lang_attr}>{body}</codeBook></metadata>'
    )
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<OAI-PMH xmlns="{OAI_NS}">'
        f"<responseDate>2018-03-01T00:00:00Z</responseDate>"
        f'<request verb="GetRecord">https://oai.example.org/provider</request>'
        f"<GetRecord><record>"
        f"<header{status}><identifier>{identifier}</identifier>"
        f"<datestamp>{datestamp}</datestamp></header>"
        f"{metadata}"
        f"</record></GetRecord></OAI-PMH>"
    ).encode("utf-8")


def build_list_identifiers(headers: List[tuple], token: Optional[str] = None) -> bytes:
    """ListIdentifiers response from ``(identifier, datestamp[, status])`` tuples."""
    parts = []
    for header in headers:
        identifier, datestamp = header[0], header[1]
        status = f' status="{header[2]}"' if len(header) > 2 else ""
        parts.append(
            f"<header{status}><identifier>{identifier}</identifier>"
            f"<datestamp>{datestamp}</datestamp></header>"
        )
    token_xml = ""
    if token is not None:
        token_xml = f"<resumptionToken>{token}</resumptionToken>"
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<OAI-PMH xmlns="{OAI_NS}">'
        f"<responseDate>2018-03-01T00:00:00Z</responseDate>"
        f'<request verb="ListIdentifiers">https://oai.example.org/provider</request>'
        f"<ListIdentifiers>{''.join(parts)}{token_xml}</ListIdentifiers>"
        f"</OAI-PMH>"
    ).encode("utf-8")


def build_oai_error(code: str, message: str) -> bytes:
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<OAI-PMH xmlns="{OAI_NS}">'
        f"<responseDate>2018-03-01T00:00:00Z</responseDate>"
        f'<error code="{code}">{message}</error>'
        f"</OAI-PMH>"
    ).encode("utf-8")


class FakeSearchIndex:
    """In-memory SearchIndex storing documents in their persisted JSON shape."""

    def __init__(self):
        self.documents: Dict[str, Dict[str, dict]] = {}
        self.bulk_calls: List[tuple] = []
        self.failing_languages = set()
        self.open_scrolls: Dict[str, tuple] = {}
        self.cleared_scrolls: List[str] = []
        self._scroll_counter = 0

    def seed(self, document: StudyOfLanguage) -> None:
        self.documents.setdefault(document.language, {})[document.id] = document.to_dict()

    async def get_study(self, study_id: str, language: str) -> Optional[StudyOfLanguage]:
        source = self.documents.get(language, {}).get(study_id)
        if source is None:
            return None
        return StudyOfLanguage.from_dict(source, language)

    async def bulk_index(self, documents: List[StudyOfLanguage], language: str) -> bool:
        self.bulk_calls.append((language, [d.id for d in documents]))
        if language in self.failing_languages:
            return False
        for document in documents:
            self.documents.setdefault(language, {})[document.id] = document.to_dict()
        return True

    async def count(self, language: str, query: str = "*") -> int:
        return len(self.documents.get(language, {}))

    async def most_recent_last_modified(self) -> Optional[datetime]:
        dates = [
            parse_datetime(source.get("lastModified"))
            for docs in self.documents.values()
            for source in docs.values()
        ]
        dates = [d for d in dates if d is not None]
        return max(dates) if dates else None

    def _next_page(self, scroll_id: str) -> ScrollPage:
        sources, page_size = self.open_scrolls[scroll_id]
        page, rest = sources[:page_size], sources[page_size:]
        self.open_scrolls[scroll_id] = (rest, page_size)
        return ScrollPage(scroll_id=scroll_id, hits=page)

    async def open_scroll(
        self, language: str, query: str, page_size: int, scroll_timeout: str
    ) -> ScrollPage:
        self._scroll_counter += 1
        scroll_id = f"scroll-{self._scroll_counter}"
        sources = [self.documents[language][k] for k in sorted(self.documents.get(language, {}))]
        self.open_scrolls[scroll_id] = (sources, page_size)
        return self._next_page(scroll_id)

    async def next_scroll_page(self, scroll_id: str, scroll_timeout: str) -> ScrollPage:
        return self._next_page(scroll_id)

    async def clear_scroll(self, scroll_id: str) -> None:
        self.cleared_scrolls.append(scroll_id)
        self.open_scrolls.pop(scroll_id, None)


@pytest.fixture
def repository():
    return Repository(
        url="https://oai.example.org/provider",
        code="UKDS",
        name="UK Data Service",
        metadata_prefix="ddi",
    )


@pytest.fixture
def config():
    return IndexerConfig(languages=["en", "fr", "de"])


@pytest.fixture
def fake_index():
    return FakeSearchIndex()
