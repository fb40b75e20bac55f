"""
HTTP API for lab telemetry: event intake, raw listings, timing stats and scores.

Run with: uvicorn main:app
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from scoring import (
    Entry,
    ScoringService,
    StorageError,
    ValidationError,
    load_config,
    validate_entry,
)
from scoring.log import setup_logging

logger = logging.getLogger(__name__)

DENIED_DETAIL = "these are not the droids you are looking for"


class EntryPayload(BaseModel):
    timestamp: int = Field(..., ge=0)
    event_type: str = Field(..., min_length=1)
    lab: str = Field(..., min_length=1)
    comment: str | None = None


def get_service(request: Request) -> ScoringService:
    return request.app.state.service


def require_headers_for_write(request: Request, service: ScoringService = Depends(get_service)):
    """Refuse writes without the configured headers."""
    if not service.validate_headers(request.headers):
        raise HTTPException(status_code=403, detail=DENIED_DETAIL)


def require_headers_for_read(request: Request, service: ScoringService = Depends(get_service)):
    """Hide read endpoints from clients without the configured headers."""
    if not service.validate_headers(request.headers):
        raise HTTPException(status_code=404, detail=DENIED_DETAIL)


def create_app(service: ScoringService | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        service: Ready service to use; when omitted it is created from the
            config file on startup and closed on shutdown
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if service is not None:
            app.state.service = service
            yield
            return

        setup_logging("labscore.log")
        config = load_config()
        app.state.service = ScoringService.from_config(config)
        logger.info(f"Starting labscore server on {config.server.host}:{config.server.port}")
        for header in config.api.required_headers:
            logger.debug(f"Requiring header {header.name}: {header.value}")
        try:
            yield
        finally:
            app.state.service.close()

    app = FastAPI(title="labscore", lifespan=lifespan)
    if service is not None:
        app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Failed to access storage"})

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.debug(f"Invalid request body on {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"detail": "Invalid request body"})

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.post(
        "/api/v1/{course}/analytics",
        response_class=PlainTextResponse,
        dependencies=[Depends(require_headers_for_write)],
    )
    def post_lab_event(
        course: str,
        payload: EntryPayload,
        request: Request,
        service: ScoringService = Depends(get_service),
    ):
        student = request.headers.get(service.config.api.student_id_header)
        if not student:
            raise HTTPException(status_code=401, detail="Invalid student id specified")

        entry = Entry(
            timestamp=payload.timestamp,
            event_type=payload.event_type,
            lab=payload.lab,
            student=student,
            course=course,
            comment=payload.comment,
        )
        validate_entry(entry)
        service.store.create_entry(entry)
        logger.info(f"Recorded {entry.event_type} for {course}/{entry.lab}/{student}")
        return "OK"

    @app.get("/api/v1/{course}/analytics", dependencies=[Depends(require_headers_for_read)])
    def get_lab_events(course: str, service: ScoringService = Depends(get_service)):
        entries = service.store.list_entries(course)
        return {"rows": [entry.to_row() for entry in entries]}

    @app.get("/api/v1/{course}/analytics/finish", dependencies=[Depends(require_headers_for_read)])
    def get_lab_finish_stats(
        course: str,
        human_dttm: bool = False,
        service: ScoringService = Depends(get_service),
    ):
        stats = service.get_detailed_stats(course, include_human_dttm=human_dttm)
        return {
            "stats": {
                student: {lab: stat.to_dict() for lab, stat in labs.items()}
                for student, labs in stats.items()
            }
        }

    @app.get("/api/v1/{course}/scoring", dependencies=[Depends(require_headers_for_read)])
    def get_course_scoring(course: str, service: ScoringService = Depends(get_service)):
        return {"stats": service.get_scoring(course)}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = load_config()
    uvicorn.run("main:app", host=config.server.host, port=config.server.port)
