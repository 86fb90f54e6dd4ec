"""HTTP surface for job-description refinement and saved analyses."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from jd_refiner.auth import Authorizer, StaticTokenAuthorizer
from jd_refiner.export import ExportError, export_pdf
from jd_refiner.refinement import (
    AccessDeniedError,
    AnalysisRefinementService,
    ChatMessage,
    FeedbackLedger,
    InvalidInputError,
    RefinementEngine,
    RefinementError,
    RefinementPolicy,
)
from jd_refiner.refinement.errors import AuthenticationError
from jd_refiner.settings import ServiceSettings
from jd_refiner.storage import (
    AnalysisFilters,
    AnalysisNotFoundError,
    AnalysisStore,
    JsonFileAnalysisStore,
    VersionConflictError,
)

logger = logging.getLogger(__name__)


class SaveAnalysisBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document: dict[str, Any]
    title: str = ""
    finalized: bool = False


class RefineSavedBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refinements: FeedbackLedger
    chat_history: list[ChatMessage] = Field(default_factory=list, alias="chatHistory")
    expected_version: Optional[int] = Field(default=None, alias="expectedVersion")
    strict: bool = False


def _failure(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    payload: dict[str, Any] = {"success": False, "error": error}
    if details:
        payload["details"] = details
    return JSONResponse(payload, status_code=status_code)


def create_app(
    settings: Optional[ServiceSettings] = None,
    engine: Optional[RefinementEngine] = None,
    store: Optional[AnalysisStore] = None,
    authorizer: Optional[Authorizer] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Collaborators not passed in are built from ``settings``.
    """
    settings = settings or ServiceSettings.from_env()
    engine = engine or RefinementEngine(settings.refinement_config())
    store = store or JsonFileAnalysisStore(settings.store_dir)
    authorizer = authorizer or StaticTokenAuthorizer.from_string(settings.api_tokens)

    history_dir = store.root if isinstance(store, JsonFileAnalysisStore) else None
    service = AnalysisRefinementService(engine, store, history_dir=history_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await engine.start()
        try:
            yield
        finally:
            await engine.stop()

    app = FastAPI(
        title="JD Refiner API",
        description="Feedback-driven refinement of job-description packages",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RefinementError)
    async def _refinement_error(request: Request, exc: RefinementError):
        return JSONResponse(exc.to_payload(), status_code=exc.status_code)

    @app.exception_handler(AnalysisNotFoundError)
    async def _not_found(request: Request, exc: AnalysisNotFoundError):
        return _failure(404, "Analysis not found")

    @app.exception_handler(VersionConflictError)
    async def _conflict(request: Request, exc: VersionConflictError):
        return _failure(409, "Analysis was modified by another request", str(exc))

    @app.exception_handler(ExportError)
    async def _export_failed(request: Request, exc: ExportError):
        return _failure(422, "Failed to generate PDF", str(exc))

    def current_user(authorization: Optional[str] = Header(default=None)) -> str:
        token = None
        if authorization and authorization.lower().startswith("bearer "):
            token = authorization[7:].strip()
        user_id = authorizer.user_for_token(token)
        if user_id is None:
            raise AuthenticationError()
        return user_id

    def owned_analysis(analysis_id: str, user_id: str):
        analysis = store.get(analysis_id)
        if analysis.owner_id != user_id:
            raise AccessDeniedError()
        return analysis

    async def _read_json(request: Request) -> Any:
        try:
            return await request.json()
        except ValueError:
            return None

    @app.get("/health")
    async def health():
        return {"status": "ok", "provider": settings.provider.value}

    @app.post("/api/jd/refine")
    async def refine(request: Request):
        status, body = await engine.handle_payload(
            await _read_json(request), policy=RefinementPolicy.LENIENT_ECHO
        )
        return JSONResponse(body, status_code=status)

    @app.post("/api/jd/refine/strict")
    async def refine_strict(request: Request):
        status, body = await engine.handle_payload(
            await _read_json(request), policy=RefinementPolicy.STRICT_GATE
        )
        return JSONResponse(body, status_code=status)

    @app.post("/api/jd/analyses", status_code=201)
    async def save_analysis(body: SaveAnalysisBody, user_id: str = Depends(current_user)):
        saved = store.save(
            body.document, owner_id=user_id, title=body.title, finalized=body.finalized
        )
        return {"success": True, "data": saved.to_listing()}

    @app.get("/api/jd/analyses")
    async def list_analyses(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        finalized: Optional[bool] = None,
        search: Optional[str] = None,
        user_id: str = Depends(current_user),
    ):
        filters = AnalysisFilters(page=page, limit=limit, finalized=finalized, search=search)
        return {"success": True, "data": store.list_by_owner(user_id, filters).to_payload()}

    @app.delete("/api/jd/analyses/{analysis_id}")
    async def delete_analysis(analysis_id: str, user_id: str = Depends(current_user)):
        owned_analysis(analysis_id, user_id)
        store.delete(analysis_id)
        return {"success": True, "message": "Analysis deleted successfully"}

    @app.patch("/api/jd/analyses/{analysis_id}")
    async def refine_analysis(
        analysis_id: str,
        request: Request,
        user_id: str = Depends(current_user),
    ):
        try:
            body = RefineSavedBody.model_validate(await _read_json(request))
        except ValidationError as e:
            raise InvalidInputError(
                "Missing required fields: refinements", details=str(e)
            ) from e

        outcome = await service.refine_saved(
            analysis_id,
            user_id,
            body.refinements,
            chat_history=body.chat_history,
            expected_version=body.expected_version,
            policy=RefinementPolicy.STRICT_GATE if body.strict else None,
        )
        payload = outcome.result.to_payload()
        payload["data"]["analysis"] = outcome.analysis.to_listing()
        payload["data"]["saved"] = outcome.saved
        return payload

    @app.get("/api/jd/analyses/{analysis_id}/pdf")
    async def download_pdf(analysis_id: str, user_id: str = Depends(current_user)):
        analysis = owned_analysis(analysis_id, user_id)
        content = export_pdf(analysis.document)
        filename = f"job-description-{analysis_id}.pdf"
        return Response(
            content=content,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app
