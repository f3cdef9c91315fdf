"""FastAPI application for the Excel consolidator."""

import asyncio
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any

from fastapi import (
    FastAPI,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError as PydanticValidationError

from excel_consolidator.config import settings, validate_settings_on_startup
from excel_consolidator.excel_document import SourceFile
from excel_consolidator.models import ErrorDetail, HealthResponse, MergeConfig
from excel_consolidator.services.merger import XLSX_MEDIA_TYPE, ExcelMerger
from excel_consolidator.utils.exceptions import (
    ConfigParseError,
    ConsolidatorError,
    ErrorCode,
    FileTooLargeError,
    NoFilesProvidedError,
    TooManyFilesError,
    UnsupportedFormatError,
)
from excel_consolidator.utils.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

configure_logging(
    level=settings.log_level_int,
    use_structured_formatter=True,
)
logger = get_logger(__name__)

API_VERSION = "0.1.0"

SUPPORTED_EXTENSIONS = [".xlsx", ".xlsm", ".xltx", ".xltm"]

GENERIC_FAILURE_MESSAGE = "Failed to merge files"


def build_output_filename(now: datetime | None = None) -> str:
    """Suggested download name, e.g. ``merged_2024-05-01.xlsx``."""
    moment = now or datetime.now(UTC)
    return f"merged_{moment.date().isoformat()}.xlsx"


def parse_merge_config(raw: str | None) -> MergeConfig:
    """Parse the ``config`` form field; defaults apply when it is absent.

    Raises:
        ConfigParseError: If the text is not valid JSON or fails validation.
    """
    if raw is None or not raw.strip():
        return MergeConfig()
    try:
        return MergeConfig.model_validate_json(raw)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigParseError(
            message=f"Invalid merge configuration: {'; '.join(errors)}",
            errors=errors,
        ) from e


async def read_upload(upload: UploadFile) -> SourceFile:
    """Validate one uploaded workbook and read it fully into memory.

    Raises:
        UnsupportedFormatError: If the extension is not a supported workbook.
        FileTooLargeError: If the file exceeds the configured size limit.
    """
    filename = upload.filename or "unknown"
    extension = Path(filename).suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            filename=filename,
            extension=extension,
            supported=SUPPORTED_EXTENSIONS,
        )

    content = await upload.read()
    if len(content) > settings.max_file_size_bytes:
        raise FileTooLargeError(
            file_size=len(content),
            max_size=settings.max_file_size_bytes,
            filename=filename,
        )
    return SourceFile(filename=filename, content=content)


def error_response(
    request: Request,
    status_code: int,
    detail: str,
    error_code: ErrorCode | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build the JSON error body shared by every exception handler."""
    body = ErrorDetail(
        detail=detail,
        error_code=error_code.value if error_code else None,
        details=details or None,
        request_id=getattr(request.state, "request_id", None) or get_request_id(),
    )
    return JSONResponse(
        status_code=status_code, content=body.model_dump(exclude_none=True)
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Excel Consolidator API",
        description=(
            "Merge multiple spreadsheet workbooks into one consolidated sheet, "
            "keeping cell formatting, header rows, totals and signature blocks."
        ),
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Origins come from XLC_CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    validate_settings_on_startup(settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, bind it to the log context and echo it back."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(ConsolidatorError)
    async def consolidator_exception_handler(
        request: Request, exc: ConsolidatorError
    ) -> JSONResponse:
        server_side = exc.http_status >= 500
        (logger.error if server_side else logger.warning)(
            f"Request failed: {exc.message}",
            error_code=exc.error_code.value,
            http_status=exc.http_status,
        )
        # Merge failures reach clients as one generic message.
        hide = server_side and not settings.debug
        return error_response(
            request,
            exc.http_status,
            GENERIC_FAILURE_MESSAGE if hide else exc.message,
            error_code=exc.error_code,
            details=exc.details,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning("HTTP error", status_code=exc.status_code, detail=exc.detail)
        return error_response(request, exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all: log the traceback, answer with a generic 500."""
        error_type = type(exc).__name__
        logger.exception("Unexpected error during merge", error_type=error_type)
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"{error_type}: {exc}" if settings.debug else GENERIC_FAILURE_MESSAGE,
            error_code=ErrorCode.INTERNAL_ERROR,
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> dict[str, Any]:
        """Check the health status of the service."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": API_VERSION,
        }

    @app.get("/merge-excel/defaults", tags=["Merge"])
    async def merge_defaults() -> dict[str, Any]:
        """Return the default merge configuration shown to users."""
        return MergeConfig().model_dump(by_alias=True)

    @app.post(
        "/merge-excel",
        tags=["Merge"],
        response_class=Response,
        responses={
            200: {
                "content": {XLSX_MEDIA_TYPE: {}},
                "description": "The consolidated workbook",
            },
            400: {"model": ErrorDetail, "description": "Missing files or bad config"},
            413: {"model": ErrorDetail, "description": "File too large"},
            500: {"model": ErrorDetail, "description": "Merge failed"},
        },
    )
    async def merge_excel(
        files: Annotated[
            list[UploadFile] | None,
            File(description="Workbooks to merge, in order"),
        ] = None,
        config: Annotated[
            str | None,
            Form(description="MergeConfig as JSON text"),
        ] = None,
    ) -> Response:
        """Merge the uploaded workbooks and return the consolidated workbook.

        Args:
            files: Repeated ``files`` parts, merged in upload order
            config: Optional JSON ``MergeConfig``; defaults apply when omitted

        Returns:
            The xlsx document as an attachment.

        Raises:
            NoFilesProvidedError: 400 if no file was uploaded
            UnsupportedFormatError: 400 for non-workbook uploads
            TooManyFilesError: 400 above the configured file count
            FileTooLargeError: 413 if any file exceeds the size limit
            ConfigParseError: 400 if the config is not valid
        """
        uploads = [upload for upload in files or [] if upload.filename]

        if not uploads:
            logger.warning("Merge request without files")
            raise NoFilesProvidedError()

        if len(uploads) > settings.max_files:
            raise TooManyFilesError(
                file_count=len(uploads), max_files=settings.max_files
            )

        sources = [await read_upload(upload) for upload in uploads]
        merge_config = parse_merge_config(config)

        logger.info(
            "Merge requested",
            files=len(sources),
            total_bytes=sum(source.size for source in sources),
            config=merge_config.model_dump_json(by_alias=True),
        )

        merger = ExcelMerger()
        result = await asyncio.to_thread(merger.merge, sources, merge_config)

        return Response(
            content=result.content,
            media_type=XLSX_MEDIA_TYPE,
            headers={
                "Content-Disposition": (
                    f'attachment; filename="{build_output_filename()}"'
                ),
                "X-Merged-Files": str(result.stats.files_processed),
                "X-Merged-Rows": str(result.stats.rows_written),
            },
        )

    logger.info("FastAPI application created successfully")
    return app


app = create_app()
