from __future__ import annotations

from typing import Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, Field

Intent = Literal["location", "content", "action"]
MatchType = Literal["exact", "fuzzy", "keyword"]
MatchKind = Literal["document_only", "with_content"]
FileType = Literal["pdf", "docx", "xlsx", "image"]
DocumentStatus = Literal["processing", "ready", "error"]


# ---- ingest side ----

class Chunk(BaseModel):
    text: str
    page_number: Optional[int] = None
    chunk_index: int


class ChunkMetadata(BaseModel):
    page_number: Optional[int] = None
    chunk_index: int


class EntryFilters(BaseModel):
    category: str
    file_type: FileType
    uploaded_at: int           # epoch millis


class EntryMetadata(BaseModel):
    document_id: str
    page_count: Optional[int] = None
    word_count: Optional[int] = None


class IndexedEntry(BaseModel):
    entry_id: str
    key: str                   # document id; re-adding a key replaces the entry
    title: str
    filters: EntryFilters
    metadata: EntryMetadata


class DocumentMeta(BaseModel):
    page_count: Optional[int] = None
    chunk_count: Optional[int] = None
    word_count: Optional[int] = None
    error_message: Optional[str] = None


class Category(BaseModel):
    id: str                    # slug; documents refer to it by this id
    name: str
    description: str = ""
    icon: str = "folder"
    order: int
    created_at: int            # epoch millis


class Document(BaseModel):
    id: str
    title: str
    file_type: FileType
    status: DocumentStatus = "processing"
    category: str
    uploaded_at: int
    file_size: int = 0
    rag_entry_id: Optional[str] = None
    metadata: DocumentMeta = Field(default_factory=DocumentMeta)


class ExtractedText(BaseModel):
    text: str
    page_count: int
    page_texts: Optional[Dict[int, str]] = None
    word_count: int
    extra: dict = Field(default_factory=dict)   # e.g. {"sheet_names": [...]}


# ---- external index / store shapes ----

class ContentItem(BaseModel):
    text: str
    metadata: ChunkMetadata


class VectorHit(BaseModel):
    entry_id: str
    score: float
    content: List[ContentItem] = Field(default_factory=list)


class EntryRef(BaseModel):
    entry_id: str
    title: Optional[str] = None


class VectorSearchResult(BaseModel):
    results: List[VectorHit] = Field(default_factory=list)
    entries: List[EntryRef] = Field(default_factory=list)


class TitleHit(BaseModel):
    title: str
    file_type: FileType


class TitleRecord(BaseModel):
    id: str
    title: str
    file_type: FileType


# ---- query side ----

class ClassifiedQuery(BaseModel):
    intent: Intent
    original_query: str
    extracted_document_names: List[str] = Field(default_factory=list)
    rewritten_query: str


class DocumentMatch(BaseModel):
    title: str
    file_type: FileType
    score: float = Field(ge=0.0, le=1.0)
    match_type: MatchType


class ContentMatch(BaseModel):
    title: str
    entry_id: str
    chunk_text: str
    page_number: Optional[int] = None
    score: float


class HybridSearchResult(BaseModel):
    document_matches: List[DocumentMatch] = Field(default_factory=list)
    content_matches: List[ContentMatch] = Field(default_factory=list)


class Source(BaseModel):
    title: str
    entry_id: str = ""
    chunk_text: str = ""
    page_number: Optional[int] = None

    @property
    def kind(self) -> MatchKind:
        return "with_content" if self.entry_id.strip() else "document_only"


class AssembledContext(BaseModel):
    context_text: str
    sources: List[Source] = Field(default_factory=list)


# ---- collaborator contracts ----

class ContentIndex(Protocol):
    def add(
        self,
        namespace: str,
        key: str,
        chunks: List[Chunk],
        title: str,
        filters: EntryFilters,
        metadata: EntryMetadata,
    ) -> str: ...

    def search(
        self,
        namespace: str,
        query: str,
        limit: int,
        vector_score_threshold: float,
    ) -> VectorSearchResult: ...

    def delete(self, namespace: str, entry_id: str) -> bool: ...


class TitleStore(Protocol):
    def search_titles(self, query: str) -> List[TitleHit]: ...

    def get_all_titles(self) -> List[TitleRecord]: ...
