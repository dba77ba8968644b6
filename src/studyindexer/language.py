"""
Language fan-out: project canonical studies into one document per language.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .config import Repository
from .exceptions import InvalidStudyError
from .models import Study, StudyOfLanguage, document_id, missing_required_field

logger = logging.getLogger(__name__)


def _copy(values: Optional[list]) -> Optional[list]:
    return list(values) if values is not None else None


class LanguageDocumentExtractor:
    """Builds the per-language StudyOfLanguage buckets for a repository.

    Tombstones go into every bucket. An active study goes into a bucket only
    if it has a title, abstract, study number and publisher in that language.
    """

    def __init__(self, languages: Iterable[str]):
        self.languages = list(languages)

    def project(
        self,
        studies: Iterable[Study],
        repository: Repository,
        log: Optional[logging.Logger | logging.LoggerAdapter] = None,
    ) -> Dict[str, List[StudyOfLanguage]]:
        """Map studies to ``{language: [StudyOfLanguage]}``; every language has a key."""
        log = log or logger
        studies = list(studies)
        log.info(
            f"Mapping {len(studies)} studies to {len(self.languages)} languages "
            f"for {repository.name}"
        )

        buckets: Dict[str, List[StudyOfLanguage]] = {lang: [] for lang in self.languages}
        for study in studies:
            available_in = self.languages_available(study)
            for lang in self.languages:
                try:
                    document = self.build_document(study, repository, lang, available_in)
                except InvalidStudyError as e:
                    study_id = document_id(repository.name, study.study_number)
                    log.warning(f"{e} [{lang}]: [{study_id}]")
                    continue
                buckets[lang].append(document)

        for lang, documents in buckets.items():
            log.debug(f"Language [{lang}] has [{len(documents)}] records passed")
        return buckets

    def languages_available(self, study: Study) -> List[str]:
        """Configured languages in which the study would pass validation."""
        if not study.active:
            return []
        return sorted(
            lang
            for lang in self.languages
            if missing_required_field(
                study.title.get(lang),
                study.abstract.get(lang),
                study.study_number,
                study.publisher.get(lang),
            )
            is None
        )

    @staticmethod
    def build_document(
        study: Study,
        repository: Repository,
        lang: str,
        lang_available_in: Optional[List[str]] = None,
    ) -> StudyOfLanguage:
        """Project one study into one language.

        Raises:
            InvalidStudyError: the study is active and incomplete in ``lang``.
        """
        doc_id = document_id(repository.name, study.study_number)
        if not study.active:
            return StudyOfLanguage.build(
                id=doc_id,
                language=lang,
                active=False,
                study_number=study.study_number,
                last_modified=study.last_modified,
                code=repository.code,
                study_xml_source_url=study.study_xml_source_url,
            )

        period = study.data_collection_period
        return StudyOfLanguage.build(
            id=doc_id,
            language=lang,
            active=True,
            study_number=study.study_number,
            last_modified=study.last_modified,
            code=repository.code,
            publication_year=study.publication_year,
            file_languages=sorted(study.file_languages) if study.file_languages else None,
            data_collection_period_startdate=period.start,
            data_collection_period_enddate=period.end,
            data_collection_year=period.year,
            study_xml_source_url=study.study_xml_source_url,
            lang_available_in=_copy(lang_available_in),
            title_study=study.title.get(lang),
            abstract=study.abstract.get(lang),
            keywords=_copy(study.keywords.get(lang)),
            classifications=_copy(study.classifications.get(lang)),
            type_of_time_methods=_copy(study.type_of_time_methods.get(lang)),
            type_of_mode_of_collections=_copy(study.type_of_mode_of_collections.get(lang)),
            unit_types=_copy(study.unit_types.get(lang)),
            type_of_sampling_procedures=_copy(study.type_of_sampling_procedures.get(lang)),
            sampling_procedure_free_texts=_copy(
                study.sampling_procedure_free_texts.get(lang)
            ),
            study_area_countries=_copy(study.study_area_countries.get(lang)),
            publisher=study.publisher.get(lang),
            pid_studies=_copy(study.pid_studies.get(lang)),
            creators=_copy(study.creators.get(lang)),
            data_collection_free_texts=_copy(study.data_collection_free_texts.get(lang)),
            data_access_free_texts=_copy(study.data_access_free_texts.get(lang)),
            study_url=study.study_url.get(lang),
            universe=study.universes.get(lang),
            related_publications=_copy(study.related_publications.get(lang)),
        )


__all__ = ["LanguageDocumentExtractor"]
