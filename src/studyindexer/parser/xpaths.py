"""XPath sets for the DDI flavours served by the harvested repositories."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

OAI_NAMESPACE = "http://www.openarchives.org/OAI/2.0/"
DDI25_NAMESPACE = "ddi:codebook:2_5"
NESSTAR_NAMESPACE = "http://www.icpsr.umich.edu/DDI"


@dataclass(frozen=True)
class XPaths:
    """Locations of every harvested field within one DDI flavour.

    All expressions use the ``ddi`` prefix, bound to ``namespace``.
    """

    namespace: str
    record_default_language: str
    title: str
    par_title: str
    abstract: str
    pid_study: str
    creators: str
    data_restriction: str
    data_collection_periods: str
    classifications: str
    keywords: str
    type_of_time_method: str
    type_of_mode_of_collection: str
    sampling: str
    study_area_countries: str
    unit_type: str
    publisher: str
    distributor: str
    year_of_publication: str
    study_url_stdy_dscr: str
    file_txt_languages: Tuple[str, ...] = ()
    filename_languages: Tuple[str, ...] = ()
    study_url_doc_dscr: Optional[str] = None
    universe: Optional[str] = None
    related_publications: Optional[str] = None
    extra_namespaces: Dict[str, str] = field(default_factory=dict)

    @property
    def namespaces(self) -> Dict[str, str]:
        return {"ddi": self.namespace, "oai": OAI_NAMESPACE, **self.extra_namespaces}


_STDY = "//ddi:codeBook/ddi:stdyDscr"

DDI_2_5_XPATHS = XPaths(
    namespace=DDI25_NAMESPACE,
    record_default_language="//ddi:codeBook/@xml:lang",
    title=f"{_STDY}/ddi:citation/ddi:titlStmt/ddi:titl",
    par_title=f"{_STDY}/ddi:citation/ddi:titlStmt/ddi:parTitl",
    abstract=f"{_STDY}/ddi:stdyInfo/ddi:abstract",
    pid_study=f"{_STDY}/ddi:citation/ddi:titlStmt/ddi:IDNo",
    creators=f"{_STDY}/ddi:citation/ddi:rspStmt/ddi:AuthEnty",
    data_restriction=f"{_STDY}/ddi:dataAccs/ddi:useStmt/ddi:restrctn",
    data_collection_periods=f"{_STDY}/ddi:stdyInfo/ddi:sumDscr/ddi:collDate",
    classifications=f"{_STDY}/ddi:stdyInfo/ddi:subject/ddi:topcClas",
    keywords=f"{_STDY}/ddi:stdyInfo/ddi:subject/ddi:keyword",
    type_of_time_method=f"{_STDY}/ddi:method/ddi:dataColl/ddi:timeMeth",
    type_of_mode_of_collection=f"{_STDY}/ddi:method/ddi:dataColl/ddi:collMode",
    sampling=f"{_STDY}/ddi:method/ddi:dataColl/ddi:sampProc",
    study_area_countries=f"{_STDY}/ddi:stdyInfo/ddi:sumDscr/ddi:nation",
    unit_type=f"{_STDY}/ddi:stdyInfo/ddi:sumDscr/ddi:anlyUnit",
    publisher="//ddi:codeBook/ddi:docDscr/ddi:citation/ddi:prodStmt/ddi:producer",
    distributor=f"{_STDY}/ddi:citation/ddi:distStmt/ddi:distrbtr",
    year_of_publication=f"{_STDY}/ddi:citation/ddi:distStmt/ddi:distDate[1]/@date",
    study_url_stdy_dscr=f"{_STDY}/ddi:citation/ddi:holdings",
    file_txt_languages=("//ddi:codeBook/ddi:fileDscr/ddi:fileTxt/@xml:lang",),
    filename_languages=(
        "//ddi:codeBook/ddi:fileDscr/ddi:fileTxt/ddi:fileName/@xml:lang",
    ),
    study_url_doc_dscr="//ddi:codeBook/ddi:docDscr/ddi:citation/ddi:holdings",
    universe=f"{_STDY}/ddi:stdyInfo/ddi:sumDscr/ddi:universe",
    related_publications=f"{_STDY}/ddi:othrStdyMat/ddi:relPubl/ddi:citation",
)

# NESSTAR serves DDI 1.2 under the ICPSR namespace. It has no document
# description holdings, universe or structured related publications.
NESSTAR_XPATHS = XPaths(
    namespace=NESSTAR_NAMESPACE,
    record_default_language="//ddi:codeBook/@xml:lang",
    title=f"{_STDY}/ddi:citation/ddi:titlStmt/ddi:titl",
    par_title=f"{_STDY}/ddi:citation/ddi:titlStmt/ddi:parTitl",
    abstract=f"{_STDY}/ddi:stdyInfo/ddi:abstract",
    pid_study=f"{_STDY}/ddi:citation/ddi:titlStmt/ddi:IDNo",
    creators=f"{_STDY}/ddi:citation/ddi:rspStmt/ddi:AuthEnty",
    data_restriction=f"{_STDY}/ddi:dataAccs/ddi:useStmt/ddi:restrctn",
    data_collection_periods=f"{_STDY}/ddi:stdyInfo/ddi:sumDscr/ddi:collDate",
    classifications=f"{_STDY}/ddi:stdyInfo/ddi:subject/ddi:topcClas",
    keywords=f"{_STDY}/ddi:stdyInfo/ddi:subject/ddi:keyword",
    type_of_time_method=f"{_STDY}/ddi:method/ddi:dataColl/ddi:timeMeth",
    type_of_mode_of_collection=f"{_STDY}/ddi:method/ddi:dataColl/ddi:collMode",
    sampling=f"{_STDY}/ddi:method/ddi:dataColl/ddi:sampProc",
    study_area_countries=f"{_STDY}/ddi:stdyInfo/ddi:sumDscr/ddi:nation",
    unit_type=f"{_STDY}/ddi:stdyInfo/ddi:sumDscr/ddi:anlyUnit",
    publisher="//ddi:codeBook/ddi:docDscr/ddi:citation/ddi:prodStmt/ddi:producer",
    distributor=f"{_STDY}/ddi:citation/ddi:distStmt/ddi:distrbtr",
    year_of_publication=f"{_STDY}/ddi:citation/ddi:distStmt/ddi:distDate[1]/@date",
    study_url_stdy_dscr=f"{_STDY}/ddi:citation/ddi:holdings",
    file_txt_languages=(),
    filename_languages=(
        "//ddi:codeBook/ddi:fileDscr/ddi:fileTxt/ddi:fileName/@xml:lang",
    ),
)

_PRESETS_BY_PREFIX = {
    "ddi": DDI_2_5_XPATHS,
    "oai_ddi25": DDI_2_5_XPATHS,
    "ddi25": DDI_2_5_XPATHS,
    "oai_ddi": NESSTAR_XPATHS,
}


def xpaths_for_prefix(metadata_prefix: str) -> XPaths:
    """XPath set for an OAI-PMH metadata prefix. Unknown prefixes use DDI 2.5."""
    preset = _PRESETS_BY_PREFIX.get(metadata_prefix)
    if preset is None:
        logger.debug(f"Unknown metadata prefix {metadata_prefix}, using DDI 2.5 XPaths")
        return DDI_2_5_XPATHS
    return preset


__all__ = [
    "OAI_NAMESPACE",
    "DDI25_NAMESPACE",
    "NESSTAR_NAMESPACE",
    "XPaths",
    "DDI_2_5_XPATHS",
    "NESSTAR_XPATHS",
    "xpaths_for_prefix",
]
