import structlog
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

from workledger import __version__, config
from workledger.core.auth import Identity, get_current_identity, get_resolver
from workledger.core.errors import (
    AuthenticationError, NotFoundError, PersistenceError, PlagiarismRejected,
    UnsupportedFormatError, ValidationError, WorkLedgerError
)
from workledger.core.licenses import LicenseRegistry
from workledger.core.storage import LedgerStorage
from workledger.core.utils import utcnow
from workledger.core.works import WorkStore
from workledger.models.license import (
    DownloadUrlRequest, License, LicenseIssueRequest, LicenseListResponse, LicenseMetadata,
    LicenseVerificationResponse, VerificationInfo
)
from workledger.models.similarity import ErrorResponse, HealthResponse, PlagiarismResult, SubmissionResponse
from workledger.models.work import (
    RevisionListResponse, Work, WorkEditRequest, WorkListResponse, WorkSubmitRequest
)
from workledger.services.extraction import is_supported
from workledger.services.notifications import NotificationDispatcher
from workledger.services.similarity import get_engine, get_similarity_info
from workledger.services.submission import SubmissionService

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

VERIFIED_BY = f"WorkLedger API v{__version__}"

def init_services(app: FastAPI, data_dir: Optional[str] = None) -> None:
    """Load persisted state and wire the stores and services onto app.state."""
    storage = LedgerStorage(data_dir)
    counts = storage.load_all()

    dispatcher = NotificationDispatcher()
    work_store = WorkStore(storage)

    app.state.storage = storage
    app.state.dispatcher = dispatcher
    app.state.work_store = work_store
    app.state.licenses = LicenseRegistry(storage, work_store, dispatcher)
    app.state.submissions = SubmissionService(work_store, get_engine(), dispatcher)
    app.state.identity_resolver = get_resolver()

    logger.info("Services initialized", data_dir=storage.data_dir, **counts)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("Starting WorkLedger API")
    try:
        init_services(app)
        app.state.dispatcher.start()
    except Exception as e:
        logger.error("Failed to initialize application", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down WorkLedger API")
    if app.state.dispatcher.stop():
        app.state.dispatcher.drain()

# Create FastAPI application
app = FastAPI(
    title="WorkLedger API",
    description="Originality checks, revision history and licensing for written works",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    responses={
        400: {"model": ErrorResponse, "description": "Validation Error"},
        401: {"model": ErrorResponse, "description": "Authentication Error"},
        404: {"model": ErrorResponse, "description": "Not Found"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    }
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def get_work_store(request: Request) -> WorkStore:
    return request.app.state.work_store

def get_license_registry(request: Request) -> LicenseRegistry:
    return request.app.state.licenses

def get_submission_service(request: Request) -> SubmissionService:
    return request.app.state.submissions

@app.get("/", response_model=dict)
async def root():
    """Root endpoint with API information."""
    return {
        "name": "WorkLedger API",
        "version": __version__,
        "description": "Originality checks, revision history and licensing for written works",
        "docs_url": "/docs",
        "health_url": "/health",
        "verify_url": "/licenses/verify/{license_id}",
    }

@app.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint with storage and similarity scan status."""
    try:
        storage_health = request.app.state.storage.health_check()
        components = {
            "storage": "healthy" if storage_health["writable"] else "unhealthy",
            "notifications": "healthy",
        }
        overall_status = "healthy" if all(state == "healthy" for state in components.values()) else "degraded"

        return HealthResponse(
            status=overall_status,
            version=__version__,
            components={
                **components,
                "storage_health": storage_health,
                "similarity": get_similarity_info(),
            }
        )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return HealthResponse(
            status="unhealthy",
            version=__version__,
            components={"error": "health_check_failed"}
        )

@app.post("/works", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
def submit_work(
    body: WorkSubmitRequest,
    identity: Identity = Depends(get_current_identity),
    submissions: SubmissionService = Depends(get_submission_service),
):
    """
    Submit a written work.

    The text is scanned against every other author's works first; a
    submission scoring at or above the flag threshold is rejected with 409
    and nothing is stored.
    """
    logger.info("Processing work submission", owner_id=identity.id, title=body.title)
    return submissions.submit_work(identity.id, body.title, body.content, email=identity.email)

@app.post("/works/upload", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def upload_work(
    title: str = Form("", description="Title of the work"),
    file: UploadFile = File(..., description="Plain-text document (.txt or .md)"),
    identity: Identity = Depends(get_current_identity),
    submissions: SubmissionService = Depends(get_submission_service),
):
    """Submit a work from an uploaded plain-text document."""
    logger.info("Processing document upload",
               owner_id=identity.id, filename=file.filename, content_type=file.content_type)

    data = await file.read()
    if len(data) > config.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size exceeds maximum allowed size of {config.MAX_UPLOAD_SIZE} bytes"
        )

    # Browsers often send application/octet-stream for .md files; fall back to the filename
    declared_type = file.content_type or ""
    if not is_supported(declared_type) and file.filename:
        declared_type = file.filename

    return await run_in_threadpool(
        submissions.submit_document, identity.id, title, data, declared_type, identity.email)

@app.get("/works", response_model=WorkListResponse)
def list_works(
    identity: Identity = Depends(get_current_identity),
    work_store: WorkStore = Depends(get_work_store),
):
    """List the caller's works."""
    return WorkListResponse(works=work_store.list_works(identity.id))

@app.get("/works/{work_id}", response_model=Work)
def get_work(
    work_id: str,
    identity: Identity = Depends(get_current_identity),
    work_store: WorkStore = Depends(get_work_store),
):
    return work_store.get_work(work_id, identity.id)

@app.put("/works/{work_id}", response_model=Work)
def edit_work(
    work_id: str,
    body: WorkEditRequest,
    identity: Identity = Depends(get_current_identity),
    submissions: SubmissionService = Depends(get_submission_service),
):
    """Edit title and/or content. Every accepted edit is recorded as a revision."""
    return submissions.update_work(work_id, identity.id, title=body.title, content=body.content)

@app.get("/works/{work_id}/revisions", response_model=RevisionListResponse)
def get_work_revisions(
    work_id: str,
    identity: Identity = Depends(get_current_identity),
    work_store: WorkStore = Depends(get_work_store),
):
    """Edit history of a work, oldest first."""
    return RevisionListResponse(revisions=work_store.get_revisions(work_id, identity.id))

@app.get("/works/{work_id}/plagiarism", response_model=PlagiarismResult)
def check_work_plagiarism(
    work_id: str,
    identity: Identity = Depends(get_current_identity),
    submissions: SubmissionService = Depends(get_submission_service),
):
    """Re-scan a stored work against the current corpus."""
    return submissions.check_work(work_id, identity.id, email=identity.email)

@app.post("/licenses", response_model=License, status_code=status.HTTP_201_CREATED)
def issue_license(
    body: LicenseIssueRequest,
    identity: Identity = Depends(get_current_identity),
    registry: LicenseRegistry = Depends(get_license_registry),
):
    """Issue the license for one of the caller's works. Repeat requests return the same license."""
    if not body.work_id:
        raise ValidationError("Work ID is required", field="workId")

    metadata = LicenseMetadata.model_validate(body.model_dump(exclude={"work_id"}))
    return registry.issue_license(body.work_id, identity.id, metadata, email=identity.email)

@app.get("/licenses", response_model=LicenseListResponse)
def list_licenses(
    identity: Identity = Depends(get_current_identity),
    registry: LicenseRegistry = Depends(get_license_registry),
):
    return LicenseListResponse(licenses=registry.get_user_licenses(identity.id))

@app.get("/licenses/verify/{license_id}", response_model=LicenseVerificationResponse)
def verify_license(
    license_id: str,
    registry: LicenseRegistry = Depends(get_license_registry),
    work_store: WorkStore = Depends(get_work_store),
):
    """Public license lookup. No authentication; only non-sensitive fields are returned."""
    public_license = registry.verify_license(license_id)
    return LicenseVerificationResponse(
        license=public_license,
        work=work_store.get_public_summary(public_license.work_id),
        verification=VerificationInfo(verified=True, verified_at=utcnow(), verified_by=VERIFIED_BY),
    )

@app.get("/licenses/{license_id}", response_model=License)
def get_license(
    license_id: str,
    identity: Identity = Depends(get_current_identity),
    registry: LicenseRegistry = Depends(get_license_registry),
):
    """Full license record, owner only."""
    return registry.get_license(license_id, identity.id)

@app.put("/licenses/{license_id}/download-url", response_model=License)
def attach_download_url(
    license_id: str,
    body: DownloadUrlRequest,
    identity: Identity = Depends(get_current_identity),
    registry: LicenseRegistry = Depends(get_license_registry),
):
    """Record where the rendered certificate for a license can be downloaded."""
    registry.get_license(license_id, identity.id)
    return registry.attach_download_url(license_id, body.url)

def error_response(status_code: int, error: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message, details=details).model_dump(by_alias=True),
    )

@app.exception_handler(ValidationError)
async def validation_error_handler(request, exc: ValidationError):
    logger.info("Request rejected", url=str(request.url), field=exc.field, message=exc.message)
    return error_response(status.HTTP_400_BAD_REQUEST, "validation_error", exc.message, {"field": exc.field})

@app.exception_handler(PlagiarismRejected)
async def plagiarism_rejected_handler(request, exc: PlagiarismRejected):
    return error_response(
        status.HTTP_409_CONFLICT, "plagiarism_detected", str(exc),
        exc.result.model_dump(mode="json", by_alias=True),
    )

@app.exception_handler(NotFoundError)
async def not_found_handler(request, exc: NotFoundError):
    return error_response(status.HTTP_404_NOT_FOUND, "not_found", str(exc))

@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request, exc: AuthenticationError):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=ErrorResponse(error="authentication_failed", message=str(exc)).model_dump(by_alias=True),
        headers={"WWW-Authenticate": "Bearer"},
    )

@app.exception_handler(UnsupportedFormatError)
async def unsupported_format_handler(request, exc: UnsupportedFormatError):
    return error_response(
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "unsupported_format", str(exc),
        {"declaredType": exc.declared_type},
    )

@app.exception_handler(PersistenceError)
async def persistence_error_handler(request, exc: PersistenceError):
    logger.error("Persistence failure", url=str(request.url), method=request.method, error=str(exc))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "persistence_error", "Failed to save changes")

@app.exception_handler(WorkLedgerError)
async def domain_error_handler(request, exc: WorkLedgerError):
    logger.error("Unhandled domain error", url=str(request.url), error=str(exc))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_server_error", "An unexpected error occurred")

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error("Unhandled exception",
                url=str(request.url), method=request.method, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_server_error", "message": "An unexpected error occurred"}
    )

if __name__ == "__main__":
    uvicorn.run(
        "workledger.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.DEBUG,
        log_config=None,  # We handle logging with structlog
    )
