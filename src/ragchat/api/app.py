"""FastAPI application exposing ragchat services."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Sequence
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ragchat.api.schemas import (
    DOCUMENT_ID_PATTERN,
    ChatRequest,
    DocumentDetail,
    DocumentListResponse,
    DocumentSummary,
    IngestionProgressModel,
    MessageModel,
    MessagesResponse,
    TextDocumentRequest,
)
from ragchat.config import Settings, get_settings
from ragchat.documents import DocumentStore, InMemoryDocumentStore, JsonDocumentStore
from ragchat.embeddings import (
    EmbeddingBackend,
    EmbeddingClient,
    EmbeddingConfig,
    HashEmbeddingBackend,
    VectorIndex,
)
from ragchat.ingestion import DocumentIngestor, DuplicateDocumentError, IngestionConfig, IngestionError
from ragchat.metrics.observability import (
    bind_correlation_id,
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
)
from ragchat.models import ChunkingMode
from ragchat.providers import ProviderClient
from ragchat.services import ChatService, CompletionClient, GenerationConfig


@dataclass(frozen=True)
class AppDependencies:
    store: DocumentStore
    index: VectorIndex
    ingestor: DocumentIngestor
    chat_service: ChatService
    providers: Sequence[ProviderClient] = field(default_factory=tuple)


def _build_dependencies(settings: Settings) -> AppDependencies:
    store: DocumentStore
    if settings.persist_documents:
        store = JsonDocumentStore(settings.documents_path)
    else:
        store = InMemoryDocumentStore()
    completion_client = CompletionClient(GenerationConfig.from_settings(settings))
    providers: list[ProviderClient] = [completion_client]
    embedding_backend: EmbeddingBackend
    if settings.embedding_backend == "hash":
        embedding_backend = HashEmbeddingBackend()
    else:
        embedding_client = EmbeddingClient(EmbeddingConfig.from_settings(settings))
        providers.insert(0, embedding_client)
        embedding_backend = embedding_client
    index = VectorIndex(embedding_backend)
    ingestor = DocumentIngestor(store, index, embedding_backend, IngestionConfig.from_settings(settings))
    chat_service = ChatService(settings, store, index, completion_client)
    return AppDependencies(
        store=store,
        index=index,
        ingestor=ingestor,
        chat_service=chat_service,
        providers=tuple(providers),
    )


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        restored = deps.index.rebuild(deps.store.list())
        logger.info("index.rebuilt", chunk_count=restored)
        try:
            yield
        finally:
            for provider in deps.providers:
                await provider.aclose()

    app = FastAPI(title="ragchat API", version="0.1.0", lifespan=lifespan)
    app.state.dependencies = deps

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(IngestionError)
    async def handle_ingestion_error(request: Request, exc: IngestionError) -> JSONResponse:
        correlation_id = get_correlation_id()
        status_code = status.HTTP_400_BAD_REQUEST
        if isinstance(exc, DuplicateDocumentError):
            status_code = status.HTTP_409_CONFLICT
        logger.warning("ingestion.error", status_code=status_code, detail=str(exc))
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "correlation_id": correlation_id},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_store(dep: AppDependencies = Depends(get_dependencies)) -> DocumentStore:
        return dep.store

    def get_ingestor(dep: AppDependencies = Depends(get_dependencies)) -> DocumentIngestor:
        return dep.ingestor

    def get_chat_service(dep: AppDependencies = Depends(get_dependencies)) -> ChatService:
        return dep.chat_service

    def parse_mode(mode: str | None) -> ChunkingMode | None:
        if not mode:
            return None
        try:
            return ChunkingMode(mode)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown chunking mode: {mode}") from exc

    @app.post("/documents", response_model=DocumentSummary, status_code=status.HTTP_201_CREATED)
    async def upload_document(
        file: UploadFile = File(...),
        mode: str | None = Form(default=None),
        document_id: str | None = Form(default=None, pattern=DOCUMENT_ID_PATTERN),
        ingestor: DocumentIngestor = Depends(get_ingestor),
    ) -> DocumentSummary:
        chunking_mode = parse_mode(mode)
        limit = settings.max_upload_size_mb * 1024 * 1024
        data = await upload_bytes(file, limit)
        if not data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File is empty: {file.filename}")
        name = file.filename or f"upload-{uuid4().hex}"
        document = await ingestor.ingest_bytes(
            data,
            name,
            file.content_type or "application/octet-stream",
            mode=chunking_mode,
            document_id=document_id,
        )
        return DocumentSummary.from_document(document)

    @app.post("/documents/text", response_model=DocumentSummary, status_code=status.HTTP_201_CREATED)
    async def upload_text(
        payload: TextDocumentRequest,
        ingestor: DocumentIngestor = Depends(get_ingestor),
    ) -> DocumentSummary:
        document = await ingestor.ingest_text(
            payload.text,
            payload.name,
            payload.media_type,
            mode=payload.mode,
            document_id=payload.document_id,
        )
        return DocumentSummary.from_document(document)

    @app.get("/documents", response_model=DocumentListResponse)
    async def list_documents(store: DocumentStore = Depends(get_store)) -> DocumentListResponse:
        return DocumentListResponse(documents=[DocumentSummary.from_document(doc) for doc in store.list()])

    @app.get("/documents/{document_id}", response_model=DocumentDetail)
    async def get_document(document_id: str, store: DocumentStore = Depends(get_store)) -> DocumentDetail:
        document = store.get(document_id)
        if document is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        return DocumentDetail.from_document(document)

    @app.get("/documents/{document_id}/progress", response_model=IngestionProgressModel)
    async def get_progress(document_id: str, ingestor: DocumentIngestor = Depends(get_ingestor)) -> IngestionProgressModel:
        progress = ingestor.progress(document_id)
        if progress is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No ingestion recorded for document")
        return IngestionProgressModel.from_progress(progress)

    @app.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_document(document_id: str, ingestor: DocumentIngestor = Depends(get_ingestor)) -> Response:
        if not ingestor.remove(document_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/chat", response_model=MessageModel)
    async def chat(payload: ChatRequest, service: ChatService = Depends(get_chat_service)) -> MessageModel:
        if not payload.question.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Question is empty")
        message = await service.ask(payload.question)
        return MessageModel.from_message(message)

    @app.get("/messages", response_model=MessagesResponse)
    async def list_messages(service: ChatService = Depends(get_chat_service)) -> MessagesResponse:
        return MessagesResponse(messages=[MessageModel.from_message(m) for m in service.conversation.messages()])

    @app.delete("/messages", status_code=status.HTTP_204_NO_CONTENT)
    async def clear_messages(service: ChatService = Depends(get_chat_service)) -> Response:
        service.conversation.clear()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, object]:
        from ragchat import __version__

        return {
            "status": "ok",
            "version": __version__,
            "environment": settings.environment,
            "credential_configured": settings.has_credential,
        }

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    return app


async def upload_bytes(upload: UploadFile, limit: int) -> bytes:
    """Read an upload in 1MB pieces, rejecting it once it exceeds ``limit`` bytes."""

    buffer = bytearray()
    try:
        while True:
            piece = await upload.read(1024 * 1024)
            if not piece:
                break
            buffer.extend(piece)
            if len(buffer) > limit:
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"File too large: {upload.filename}",
                )
    finally:
        await upload.close()
    return bytes(buffer)


app = create_app()
