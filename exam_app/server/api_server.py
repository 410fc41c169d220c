"""FastAPI server exposing accounts, exam sessions, history, the bank and shared exams."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, Field

from exam_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from exam_app.constants.network_constants import API_PREFIX, DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.errors import (
    AuthenticationError,
    EmptyExamError,
    ExamAppError,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)
from exam_app.core.exam_builder import build_exam_definition, prepare_exam
from exam_app.core.exam_manager import ExamManager
from exam_app.core.models import AnswerRecord, ExamDefinition, Question
from exam_app.core.question_importer import (
    normalize_question_set,
    parse_question_blocks,
    parse_question_set,
)
from exam_app.server import serializers

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[ExamAppError], int] = {
    ValidationError: 422,
    EmptyExamError: 422,
    NotFoundError: 404,
    AuthenticationError: 401,
    PersistenceFailure: 503,
}


def _http_error(exc: ExamAppError | RuntimeError) -> HTTPException:
    if isinstance(exc, ExamAppError):
        status_code = next(
            (code for error_type, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
            400,
        )
    else:
        status_code = 409
    return HTTPException(status_code=status_code, detail=str(exc))


class CredentialsPayload(BaseModel):
    """Payload schema for register and login."""

    email: str
    password: str
    name: str | None = None


class QuestionSetPayload(BaseModel):
    """Exam definition as pasted by the user; questions are normalized server-side.

    With ``format="json"`` the questions are a record list or the pasted JSON
    text; with ``format="text"`` they are the Q:/A:/CORRECT: block text.
    """

    title: str
    subject: str | None = None
    questions: list[dict[str, Any]] | str
    format: Literal["json", "text"] = "json"
    time_limit_seconds: int | None = None


class SessionStartPayload(QuestionSetPayload):
    shuffle_questions: bool = False
    shuffle_options: bool = False
    question_count: int = Field(default=0, ge=0)


class AnswerPayload(BaseModel):
    question_id: str
    selected_answers: list[str] = Field(default_factory=list)
    time_spent_seconds: int = Field(default=0, ge=0)
    flagged: bool = False


class SubmitPayload(QuestionSetPayload):
    """A client-run attempt: the questions it answered plus the raw answers."""

    exam_id: str | None = None
    submission_id: str | None = None
    time_taken_seconds: int = Field(ge=0)
    answers: list[AnswerPayload]


class SelectPayload(BaseModel):
    question_id: str
    options: list[str]


class NavigatePayload(BaseModel):
    delta: int | None = None
    index: int | None = None


class FlagPayload(BaseModel):
    question_id: str


class ScorePayload(BaseModel):
    """Payload schema for a public leaderboard submission."""

    nickname: str | None = None
    score: Any = None
    total: int = Field(gt=0)
    time_taken_seconds: int = Field(default=0, ge=0)
    percentage: float | None = None


def _questions_from_payload(payload: QuestionSetPayload) -> list[Question]:
    if payload.format == "text":
        if not isinstance(payload.questions, str):
            raise ValidationError("text format expects the question blocks as a string")
        return parse_question_blocks(payload.questions)
    if isinstance(payload.questions, str):
        return parse_question_set(payload.questions)
    return normalize_question_set(payload.questions)


def _definition_from_payload(payload: QuestionSetPayload) -> ExamDefinition:
    questions = _questions_from_payload(payload)
    return build_exam_definition(
        payload.title,
        questions,
        subject=payload.subject,
        time_limit_seconds=payload.time_limit_seconds,
    )


def _get_exam_manager_dependency(exam_manager: ExamManager):
    def dependency() -> ExamManager:
        return exam_manager

    return dependency


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def create_api_app(exam_manager: ExamManager) -> FastAPI:
    """Create a FastAPI application wired to the provided exam manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    manager_dep = _get_exam_manager_dependency(exam_manager)

    def optional_user(
        authorization: str | None = Header(default=None),
        manager: ExamManager = Depends(manager_dep),
    ) -> str | None:
        token = _bearer_token(authorization)
        if token is None:
            return None
        try:
            return manager.credentials.authenticate(token)
        except AuthenticationError as exc:
            raise _http_error(exc) from exc

    def current_user(user_id: str | None = Depends(optional_user)) -> str:
        if user_id is None:
            raise HTTPException(status_code=401, detail="Access token required")
        return user_id

    @app.get("/")
    def root() -> dict[str, object]:
        return {"message": APP_ABOUT_TEXT, "version": APP_VERSION, "license": APP_LICENSE, "docs": "/docs"}

    api = APIRouter(prefix=API_PREFIX)

    @api.get("/health")
    def health_check() -> dict[str, object]:
        return {"status": "ok", "timestamp": datetime.now().isoformat()}

    # --- Auth ---

    @api.post("/auth/register", status_code=201)
    def register(payload: CredentialsPayload, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            profile, token = manager.credentials.register(payload.email, payload.password, payload.name)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"token": token, "user": serializers.profile_to_dict(profile)}

    @api.post("/auth/login")
    def login(payload: CredentialsPayload, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            profile, token = manager.credentials.login(payload.email, payload.password)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"token": token, "user": serializers.profile_to_dict(profile)}

    @api.get("/auth/me")
    def me(user_id: str = Depends(current_user), manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            profile = manager.get_user(user_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        user = serializers.profile_to_dict(profile)
        user["exam_history"] = [serializers.result_summary_to_dict(r) for r in manager.get_history(user_id)]
        user["streak"] = serializers.streak_to_dict(profile.streak)
        return {"user": user}

    # --- Results & history ---

    @api.post("/exams/submit", status_code=201)
    def submit_exam(
        payload: SubmitPayload,
        user_id: str = Depends(current_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            definition = _definition_from_payload(payload)
            answers = [
                AnswerRecord(
                    question_id=answer.question_id,
                    selected_answers=frozenset(answer.selected_answers),
                    time_spent_seconds=answer.time_spent_seconds,
                    flagged=answer.flagged,
                )
                for answer in payload.answers
            ]
            outcome = manager.submit_answers(
                user_id,
                definition,
                answers,
                payload.time_taken_seconds,
                exam_id=payload.exam_id,
                submission_id=payload.submission_id,
            )
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return serializers.outcome_to_dict(outcome)

    @api.get("/exams/history")
    def get_history(user_id: str = Depends(current_user), manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            history = manager.get_history(user_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"history": [serializers.result_summary_to_dict(r) for r in history]}

    @api.get("/exams/history/overview")
    def get_history_overview(
        user_id: str = Depends(current_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            overview = manager.get_history_overview(user_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return serializers.overview_to_dict(overview)

    @api.get("/exams/result/{result_id}")
    def get_result(
        result_id: str,
        user_id: str = Depends(current_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            result = manager.get_result(user_id, result_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"result": serializers.result_to_dict(result)}

    @api.get("/exams/result/{result_id}/review")
    def review_result(
        result_id: str,
        user_id: str = Depends(current_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            result = manager.get_result(user_id, result_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"result": serializers.result_to_dict(result, render=True)}

    # --- Exam bank ---

    @api.get("/exams/bank")
    def list_bank(user_id: str = Depends(current_user), manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        return {"exams": [serializers.saved_exam_to_dict(e) for e in manager.list_bank(user_id)]}

    @api.post("/exams/bank", status_code=201)
    def save_to_bank(
        payload: QuestionSetPayload,
        user_id: str = Depends(current_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            saved = manager.save_to_bank(user_id, _definition_from_payload(payload))
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"exam": serializers.saved_exam_to_dict(saved)}

    @api.get("/exams/bank/{exam_id}/export")
    def export_from_bank(
        exam_id: str,
        format: Literal["json", "text"] = "json",
        user_id: str = Depends(current_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> Response:
        try:
            saved, document = manager.export_from_bank(user_id, exam_id, as_text=format == "text")
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        if isinstance(document, str):
            return PlainTextResponse(document)
        definition = saved.definition
        return JSONResponse({"title": definition.title, "subject": definition.subject, "questions": document})

    @api.delete("/exams/bank/{exam_id}")
    def delete_from_bank(
        exam_id: str,
        user_id: str = Depends(current_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            manager.delete_from_bank(user_id, exam_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"message": "Deleted"}

    # --- Shared exams ---

    @api.post("/exams/share", status_code=201)
    def share_exam(
        payload: QuestionSetPayload,
        user_id: str = Depends(current_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            saved = manager.share_exam(user_id, _definition_from_payload(payload))
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"share_id": saved.share_id, "exam": serializers.saved_exam_to_dict(saved)}

    @api.get("/exams/shared/{share_id}")
    def get_shared_exam(share_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            saved = manager.get_shared_exam(share_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        exam = serializers.definition_to_dict(saved.definition)
        exam["share_id"] = saved.share_id
        return {"exam": exam}

    @api.post("/exams/shared/{share_id}/score", status_code=201)
    def submit_shared_score(
        share_id: str,
        payload: ScorePayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            ranking, rank = manager.submit_shared_score(
                share_id,
                payload.nickname,
                payload.score,
                payload.total,
                payload.time_taken_seconds,
                percentage=payload.percentage,
            )
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"leaderboard": [serializers.leaderboard_entry_to_dict(e) for e in ranking], "rank": rank}

    @api.get("/exams/shared/{share_id}/leaderboard")
    def get_leaderboard(share_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            title, ranking = manager.get_leaderboard(share_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"title": title, "leaderboard": [serializers.leaderboard_entry_to_dict(e) for e in ranking]}

    # --- Weak areas ---

    @api.get("/exams/weak-areas")
    def get_weak_areas(user_id: str = Depends(current_user), manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            weak_areas = manager.get_weak_areas(user_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"weak_areas": [serializers.weak_area_to_dict(a) for a in weak_areas]}

    @api.get("/exams/weak-areas/drill")
    def get_weak_area_drill(
        user_id: str = Depends(current_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            drill = manager.get_weak_area_drill(user_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return {"exam": serializers.definition_to_dict(drill)}

    # --- Server-side exam sessions ---

    @api.post("/sessions", status_code=201)
    def start_session(
        payload: SessionStartPayload,
        user_id: str | None = Depends(optional_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            definition = prepare_exam(
                _definition_from_payload(payload),
                shuffle_questions=payload.shuffle_questions,
                shuffle_options=payload.shuffle_options,
                question_count=payload.question_count,
            )
            entry = manager.start_session(definition, owner_id=user_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return serializers.session_to_dict(entry)

    @api.post("/exams/shared/{share_id}/sessions", status_code=201)
    def start_shared_session(
        share_id: str,
        user_id: str | None = Depends(optional_user),
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            entry = manager.start_shared_session(share_id, owner_id=user_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return serializers.session_to_dict(entry)

    @api.get("/sessions/{session_id}")
    def get_session(session_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            entry = manager.get_session(session_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return serializers.session_to_dict(entry)

    @api.post("/sessions/{session_id}/select")
    def select_answer(
        session_id: str,
        payload: SelectPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            entry = manager.select_answer(session_id, payload.question_id, payload.options)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return serializers.session_to_dict(entry)

    @api.post("/sessions/{session_id}/navigate")
    def navigate(
        session_id: str,
        payload: NavigatePayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        if (payload.delta is None) == (payload.index is None):
            raise HTTPException(status_code=422, detail="Provide exactly one of delta or index")
        try:
            if payload.index is not None:
                entry = manager.go_to(session_id, payload.index)
            else:
                entry = manager.navigate(session_id, payload.delta or 0)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return serializers.session_to_dict(entry)

    @api.post("/sessions/{session_id}/flag")
    def toggle_flag(
        session_id: str,
        payload: FlagPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            entry = manager.toggle_flag(session_id, payload.question_id)
        except ExamAppError as exc:
            raise _http_error(exc) from exc
        return serializers.session_to_dict(entry)

    @api.post("/sessions/{session_id}/submit")
    def submit_session(session_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            entry = manager.submit_session(session_id)
        except (ExamAppError, RuntimeError) as exc:
            raise _http_error(exc) from exc
        return serializers.session_to_dict(entry)

    @api.post("/sessions/{session_id}/quit")
    def quit_session(session_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            manager.quit_session(session_id)
        except (ExamAppError, RuntimeError) as exc:
            raise _http_error(exc) from exc
        return {"session_id": session_id, "state": "abandoned"}

    app.include_router(api)
    return app


def run_api_server(
    exam_manager: ExamManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API with uvicorn until interrupted."""
    app = create_api_app(exam_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    logger.info("Serving %s API on http://%s:%s%s", APP_NAME, host, port, API_PREFIX)
    server.run()
