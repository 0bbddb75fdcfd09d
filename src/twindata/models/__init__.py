from twindata.models.book import BookAnalysis, BookMain, BookMainDocument
from twindata.models.chapters import (
    ChapterIndex,
    ChapterSubdivision,
    DocumentPage,
    ExtractedChapter,
    ExtractedSubChapter,
    Subtema,
)
from twindata.models.course import CourseBuild
from twindata.models.diary import DiaryAnalysis, DiarySearchHit, DiarySearchPage, DiarySearchQuery
from twindata.models.enums import FilterOperator, JobApplicationStatus, RecordEventType, SearchMode
from twindata.models.events import RecordEvent
from twindata.models.job import JobOpportunity, JobOpportunityQuery, JobOpportunityStats
from twindata.models.mortgage import MortgageDocument, MortgageStatementReport
from twindata.models.query import DocumentQuery, FieldFilter, TextMatch
from twindata.models.results import Result
from twindata.models.search import (
    IndexDefinition,
    IndexField,
    IndexInfo,
    IndexingOutcome,
    RangeFilter,
    SearchHit,
    SearchPage,
    SearchRequest,
    SemanticConfiguration,
)
from twindata.models.semistructured import (
    BatchUploadResult,
    SemistructuredDocument,
    SemistructuredSearchDocument,
    SemistructuredSearchOptions,
    UploadResult,
)
from twindata.models.vision import ImageAnalysis, PhotoContext

__all__ = [
    "BatchUploadResult",
    "BookAnalysis",
    "BookMain",
    "BookMainDocument",
    "ChapterIndex",
    "ChapterSubdivision",
    "CourseBuild",
    "DiaryAnalysis",
    "DiarySearchHit",
    "DiarySearchPage",
    "DiarySearchQuery",
    "DocumentPage",
    "DocumentQuery",
    "ExtractedChapter",
    "ExtractedSubChapter",
    "FieldFilter",
    "FilterOperator",
    "ImageAnalysis",
    "IndexDefinition",
    "IndexField",
    "IndexInfo",
    "IndexingOutcome",
    "JobApplicationStatus",
    "JobOpportunity",
    "JobOpportunityQuery",
    "JobOpportunityStats",
    "MortgageDocument",
    "MortgageStatementReport",
    "PhotoContext",
    "RangeFilter",
    "RecordEvent",
    "RecordEventType",
    "Result",
    "SearchHit",
    "SearchMode",
    "SearchPage",
    "SearchRequest",
    "SemanticConfiguration",
    "SemistructuredDocument",
    "SemistructuredSearchDocument",
    "SemistructuredSearchOptions",
    "Subtema",
    "TextMatch",
    "UploadResult",
]
