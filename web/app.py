# app.py
import logging
import os
from functools import lru_cache
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from practice_rag.app import (
    DEFAULT_CATEGORY,
    Services,
    answer_question,
    build_services,
    create_document,
    delete_category,
    delete_document,
    list_categories,
    load_config,
    process_document,
    search_only,
)
from practice_rag.errors import (
    CategoryExistsError,
    CategoryInUseError,
    CategoryNotFoundError,
    DocumentNotFoundError,
    SearchError,
    UnsupportedFileTypeError,
)
from practice_rag.ingest.extract import file_type_from_path
from practice_rag.logging_utils import setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Practice RAG (hybrid search + Chroma)", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], allow_credentials=True,
    allow_methods=["*"], allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_services() -> Services:
    setup_logging(json_logs=os.getenv("LOG_JSON", "") == "1")
    cfg = load_config(os.getenv("PRACTICE_RAG_CONFIG", "config.yaml"))
    return build_services(cfg)


class ChatRequest(BaseModel):
    message: str
    generate: bool = True


class CategoryRequest(BaseModel):
    name: str
    icon: Optional[str] = None


@app.exception_handler(DocumentNotFoundError)
async def _not_found(request: Request, exc: DocumentNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(CategoryNotFoundError)
async def _category_not_found(request: Request, exc: CategoryNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(CategoryExistsError)
@app.exception_handler(CategoryInUseError)
async def _category_conflict(request: Request, exc: Exception):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(UnsupportedFileTypeError)
async def _unsupported(request: Request, exc: UnsupportedFileTypeError):
    return JSONResponse(status_code=415, content={"detail": str(exc)})


@app.exception_handler(SearchError)
async def _search_failed(request: Request, exc: SearchError):
    return JSONResponse(status_code=502, content={"detail": str(exc), "strategy": exc.strategy})


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/documents")
def list_documents(
    category: Optional[str] = None,
    file_type: Optional[str] = None,
    services: Services = Depends(get_services),
):
    return [d.model_dump() for d in services.store.list(category=category, file_type=file_type)]


def _process_in_background(services: Services, document_id: str, data: bytes) -> None:
    try:
        process_document(services, document_id, data)
    except Exception as e:
        # already recorded on the document as status=error
        logger.warning("background processing of %s failed: %s", document_id, e)


@app.post("/documents", status_code=202)
async def upload_document(
    background: BackgroundTasks,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    category: str = Form(DEFAULT_CATEGORY),
    services: Services = Depends(get_services),
):
    name = file.filename or ""
    file_type = file_type_from_path(name)
    data = await file.read()
    doc = create_document(
        services,
        title=title or os.path.splitext(os.path.basename(name))[0] or name,
        file_type=file_type,
        category=category,
        file_size=len(data),
    )
    background.add_task(_process_in_background, services, doc.id, data)
    return doc.model_dump()


@app.delete("/documents/{document_id}")
def remove_document(document_id: str, services: Services = Depends(get_services)):
    doc = delete_document(services, document_id)
    return {"deleted": doc.id, "title": doc.title}


@app.post("/chat")
def chat(req: ChatRequest, services: Services = Depends(get_services)):
    ans = answer_question(services, req.message, generate=req.generate)
    return {
        "response": ans["answer"],
        "sources": ans["sources"],
        "metadata": ans["metadata"],
    }


@app.get("/search")
def search(
    q: str = Query(..., description="Search text"),
    k: Optional[int] = None,
    services: Services = Depends(get_services),
):
    return [m.model_dump() for m in search_only(services, q, k=k)]


@app.get("/categories")
def get_categories(services: Services = Depends(get_services)):
    return list_categories(services)


@app.post("/categories", status_code=201)
def add_category(req: CategoryRequest, services: Services = Depends(get_services)):
    return services.categories.create(req.name, icon=req.icon).model_dump()


@app.get("/categories/{category_id}")
def get_category(category_id: str, services: Services = Depends(get_services)):
    return services.categories.require(category_id).model_dump()


@app.put("/categories/{category_id}")
def rename_category(category_id: str, req: CategoryRequest, services: Services = Depends(get_services)):
    return services.categories.update(category_id, req.name, icon=req.icon).model_dump()


@app.delete("/categories/{category_id}")
def remove_category(category_id: str, services: Services = Depends(get_services)):
    cat = delete_category(services, category_id)
    return {"deleted": cat.id, "name": cat.name}
