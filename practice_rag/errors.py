from __future__ import annotations


class PracticeRagError(Exception):
    """Base class for every error raised by practice_rag."""


class IngestError(PracticeRagError):
    """A document could not be turned into indexed chunks."""


class ExtractionError(IngestError):
    """The file was empty, unreadable or produced no text."""


class UnsupportedFileTypeError(ExtractionError):
    def __init__(self, file_type: str, reason: str = ""):
        self.file_type = file_type
        msg = f"Unsupported file type: {file_type}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class NoChunksError(IngestError):
    """Text was extracted but chunking produced nothing to index."""


class SearchError(PracticeRagError):
    """One of the search strategies failed; the pipeline does not guess at partial results."""

    def __init__(self, strategy: str, cause: BaseException):
        self.strategy = strategy
        super().__init__(f"{strategy} search failed: {cause}")


class DocumentNotFoundError(PracticeRagError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class CategoryNotFoundError(PracticeRagError):
    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category not found: {category_id}")


class CategoryExistsError(PracticeRagError):
    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category already exists: {category_id}")


class CategoryInUseError(PracticeRagError):
    """A category cannot be removed while documents still belong to it."""

    def __init__(self, category_id: str, document_count: int):
        self.category_id = category_id
        self.document_count = document_count
        super().__init__(
            f"Cannot delete category {category_id}: {document_count} document(s) still use it"
        )
