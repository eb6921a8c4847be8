"""FastAPI application exposing the FlowRead library over HTTP.

WHY: The browser reader needs an HTTP API to upload documents, fetch
their annotated words, and save reading progress. FastAPI provides
automatic OpenAPI documentation, request validation, and runs the slow
upload pipeline off the event loop.

HOW: create_app() builds the app around an injected Library. When none
is given, the lifespan opens the configured store (database or JSON-file
fallback) once at startup and closes it at shutdown. Endpoints translate
library exceptions into HTTP errors with a consistent ErrorResponse body.

RULES:
- Uploads are extracted and tokenized in a worker thread, bounded by
  UPLOAD_TIMEOUT_S; nothing is stored unless that finishes
- ExtractionError → 422, NotFoundError → 404, PersistenceError → 503,
  ValidationError → 422, oversize upload → 413, empty upload → 400
- Session updates ignore identity fields in the payload
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import Response

from flowread import __version__, config
from flowread.errors import ExtractionError, NotFoundError, PersistenceError, ValidationError
from flowread.library import Library
from flowread.server.models import (
    DocumentResponse,
    DocumentWordsResponse,
    ErrorResponse,
    HealthResponse,
    SessionCreateRequest,
    SessionResponse,
    SessionUpdateRequest,
    StatsResponse,
    SuccessResponse,
    UploadResponse,
)
from flowread.storage import open_store

logger = logging.getLogger(__name__)


def get_library(request: Request) -> Library:
    """Return the Library bound to the running app."""
    return request.app.state.library


LibraryDep = Annotated[Library, Depends(get_library)]


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


def _unavailable(exc: PersistenceError) -> HTTPException:
    logger.error("Store error: %s", exc)
    return HTTPException(status_code=503, detail="Storage unavailable: {}".format(exc))


def create_app(library: Optional[Library] = None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        library: Library to serve. When None, the configured store is
                 opened at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_store = None
        if getattr(app.state, "library", None) is None:
            owned_store = open_store()
            app.state.library = Library(owned_store)
        yield
        if owned_store is not None:
            owned_store.close()
            app.state.library = None

    app = FastAPI(
        lifespan=lifespan,
        title="FlowRead API",
        description=(
            "Upload PDF, DOCX or text documents, fetch their syllable-annotated "
            "words for speed reading, and save per-document reading progress."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.library = library
    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    # -----------------------------------------------------------------------
    # Endpoints: Upload and documents
    # -----------------------------------------------------------------------

    @app.post(
        "/upload",
        response_model=UploadResponse,
        status_code=201,
        tags=["documents"],
        summary="Upload a document",
        description=(
            "Upload a PDF, DOCX or UTF-8 text file. The text is extracted and "
            "split into syllable-annotated words before the document is stored."
        ),
        responses={
            400: {"model": ErrorResponse, "description": "Empty upload"},
            413: {"model": ErrorResponse, "description": "File too large"},
            422: {"model": ErrorResponse, "description": "Text could not be extracted"},
            503: {"model": ErrorResponse, "description": "Storage unavailable"},
            504: {"model": ErrorResponse, "description": "Processing timed out"},
        },
    )
    async def upload_document(
        library: LibraryDep,
        file: Annotated[UploadFile, File(description="Document to read (.pdf, .docx, .txt)")],
    ) -> UploadResponse:
        # Sanitize filename to prevent path traversal
        filename = Path(file.filename or "upload.txt").name
        content = await file.read()
        if not content:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")
        if len(content) > config.MAX_UPLOAD_BYTES:
            raise HTTPException(
                status_code=413,
                detail="File too large ({} bytes, max {})".format(
                    len(content), config.MAX_UPLOAD_BYTES
                ),
            )

        try:
            document, words = await asyncio.wait_for(
                asyncio.to_thread(library.prepare_document, content, filename),
                timeout=config.UPLOAD_TIMEOUT_S,
            )
        except asyncio.TimeoutError:
            logger.warning("Upload of %s timed out after %ss", filename, config.UPLOAD_TIMEOUT_S)
            raise HTTPException(status_code=504, detail="Processing the document timed out")
        except ExtractionError as exc:
            raise HTTPException(status_code=422, detail=str(exc))

        try:
            await asyncio.to_thread(library.save_document, document, words)
        except PersistenceError as exc:
            raise _unavailable(exc)

        return UploadResponse(id=document.id, title=document.title, word_count=document.word_count)

    @app.get(
        "/documents",
        response_model=List[DocumentResponse],
        tags=["documents"],
        summary="List documents",
        description="All uploaded documents, newest first.",
    )
    def list_documents(library: LibraryDep) -> List[DocumentResponse]:
        try:
            documents = library.list_documents()
        except PersistenceError as exc:
            raise _unavailable(exc)
        return [DocumentResponse(**d.to_dict()) for d in documents]

    @app.get(
        "/documents/{document_id}",
        response_model=DocumentResponse,
        tags=["documents"],
        summary="Get document metadata",
        responses={404: {"model": ErrorResponse, "description": "Document not found"}},
    )
    def get_document(document_id: str, library: LibraryDep) -> DocumentResponse:
        try:
            return DocumentResponse(**library.get_document(document_id).to_dict())
        except NotFoundError as exc:
            raise _not_found(exc)
        except PersistenceError as exc:
            raise _unavailable(exc)

    @app.delete(
        "/documents/{document_id}",
        status_code=204,
        tags=["documents"],
        summary="Delete a document",
        description="Delete a document together with its words and all of its reading sessions.",
        responses={404: {"model": ErrorResponse, "description": "Document not found"}},
    )
    def delete_document(document_id: str, library: LibraryDep) -> Response:
        try:
            library.delete_document(document_id)
        except NotFoundError as exc:
            raise _not_found(exc)
        except PersistenceError as exc:
            raise _unavailable(exc)
        return Response(status_code=204)

    @app.get(
        "/documents/{document_id}/words",
        response_model=DocumentWordsResponse,
        tags=["documents"],
        summary="Get annotated words",
        description="The document's words with syllables and vowel offsets, in reading order.",
        responses={404: {"model": ErrorResponse, "description": "Words not found"}},
    )
    def get_document_words(document_id: str, library: LibraryDep) -> DocumentWordsResponse:
        try:
            words = library.get_words(document_id)
        except NotFoundError as exc:
            raise _not_found(exc)
        except PersistenceError as exc:
            raise _unavailable(exc)
        return DocumentWordsResponse(
            document_id=document_id,
            words=[w.to_dict() for w in words],
        )

    # -----------------------------------------------------------------------
    # Endpoints: Sessions
    # -----------------------------------------------------------------------

    @app.post(
        "/sessions",
        response_model=SessionResponse,
        status_code=201,
        tags=["sessions"],
        summary="Start a reading session",
        responses={
            404: {"model": ErrorResponse, "description": "Document not found"},
            503: {"model": ErrorResponse, "description": "Storage unavailable"},
        },
    )
    def create_session(body: SessionCreateRequest, library: LibraryDep) -> SessionResponse:
        speed = body.speed_wpm if body.speed_wpm is not None else config.DEFAULT_WPM
        try:
            session = library.create_session(body.document_id, speed)
        except NotFoundError as exc:
            raise _not_found(exc)
        except PersistenceError as exc:
            raise _unavailable(exc)
        return SessionResponse(**session.to_dict())

    @app.get(
        "/sessions/document/{document_id}",
        response_model=Optional[SessionResponse],
        tags=["sessions"],
        summary="Latest session for a document",
        description="The most recently updated session of the document, or null.",
    )
    def get_latest_session(document_id: str, library: LibraryDep) -> Optional[SessionResponse]:
        try:
            session = library.get_latest_session(document_id)
        except PersistenceError as exc:
            raise _unavailable(exc)
        if session is None:
            return None
        return SessionResponse(**session.to_dict())

    @app.get(
        "/sessions/{session_id}",
        response_model=SessionResponse,
        tags=["sessions"],
        summary="Get a session",
        responses={404: {"model": ErrorResponse, "description": "Session not found"}},
    )
    def get_session(session_id: str, library: LibraryDep) -> SessionResponse:
        try:
            return SessionResponse(**library.get_session(session_id).to_dict())
        except NotFoundError as exc:
            raise _not_found(exc)
        except PersistenceError as exc:
            raise _unavailable(exc)

    @app.put(
        "/sessions/{session_id}",
        response_model=SuccessResponse,
        tags=["sessions"],
        summary="Save session progress",
        description=(
            "Merge a partial progress snapshot into the session. Identity fields "
            "in the payload are ignored; the latest write wins."
        ),
        responses={
            404: {"model": ErrorResponse, "description": "Session not found"},
            422: {"model": ErrorResponse, "description": "Invalid field values"},
        },
    )
    def update_session(
        session_id: str, body: SessionUpdateRequest, library: LibraryDep
    ) -> SuccessResponse:
        try:
            library.update_session(session_id, body.model_dump(exclude_none=True))
        except NotFoundError as exc:
            raise _not_found(exc)
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        except PersistenceError as exc:
            raise _unavailable(exc)
        return SuccessResponse()

    # -----------------------------------------------------------------------
    # Endpoints: Stats and health
    # -----------------------------------------------------------------------

    @app.get(
        "/stats",
        response_model=StatsResponse,
        tags=["stats"],
        summary="Reading statistics",
        description="Totals across every document and session.",
    )
    def get_stats(library: LibraryDep) -> StatsResponse:
        try:
            return StatsResponse(**library.get_stats().to_dict())
        except PersistenceError as exc:
            raise _unavailable(exc)

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
        summary="Health check",
    )
    def health_check(library: LibraryDep) -> HealthResponse:
        return HealthResponse(status="ok", version=__version__, store=library.store.name)


app = create_app()


def run_api(host: str = "127.0.0.1", port: int = 8000) -> None:
    """Serve the API with uvicorn."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
