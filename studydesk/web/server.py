"""FastAPI application powering the Study Desk web UI."""

from __future__ import annotations

import contextvars
import logging
import sqlite3
import uuid
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr
from starlette.types import ASGIApp, Receive, Scope, Send

from ..config import AppConfig
from ..errors import StaleStateError
from ..services.catalog import (
    TAG_PRACTICE,
    TAG_THEORY,
    StudyItem,
    build_tree,
    count_by_category,
    scan_materials,
    serialize_tree,
)
from ..services.events import emit_db_event, emit_event
from ..services.last_folder import LastFolderStore
from ..services.metadata import ensure_entries, move_item, prune, set_last_page, set_tag
from ..services.notes import NoteStore
from ..services.queue import QueueSnapshot, build_queue
from ..services.schedule import Schedule, js_weekday, parse_weekday, subject_urgency
from ..services.shortcuts import ShortcutLibrary, youtube_embed_url
from ..services.state import AppState, StateStore
from ..services.storage import ProgressRepository


_REQUEST_ID_VAR: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "studydesk_request_id",
    default=None,
)


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


def _collect_correlation_context() -> Dict[str, str]:
    request_id = _REQUEST_ID_VAR.get()
    return {"request_id": request_id} if request_id else {}


class RequestContextMiddleware:
    """Assign a correlation identifier to each request and expose it via contextvars."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _new_correlation_id()
        scope_state = scope.get("state")
        if scope_state is None:
            scope_state = {}
            scope["state"] = scope_state
        if isinstance(scope_state, dict):
            scope_state["request_id"] = request_id
        else:
            setattr(scope_state, "request_id", request_id)

        request_token = _REQUEST_ID_VAR.set(request_id)
        try:
            await self.app(scope, receive, send)
        finally:
            _REQUEST_ID_VAR.reset(request_token)


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that injects correlation context into records."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple[Any, Dict[str, Any]]:  # type: ignore[override]
        extra: Dict[str, Any] = dict(self.extra or {})
        provided = kwargs.get("extra")
        if isinstance(provided, dict):
            extra.update(provided)
        for key, value in _collect_correlation_context().items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


LOGGER = ContextualLoggerAdapter(logging.getLogger(__name__), {})
EVENT_LOGGER = ContextualLoggerAdapter(logging.getLogger("studydesk.events"), {})


def _log_event(message: str, **context: Any) -> None:
    emit_event(
        "APP_EVENT",
        message,
        fields={**_collect_correlation_context(), **context},
        logger=EVENT_LOGGER,
    )


def _emit_db_event(action: str, **kwargs: Any) -> None:
    emit_db_event(action, logger=EVENT_LOGGER, **kwargs)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PathPayload(_CamelModel):
    path: StrictStr = Field(..., min_length=1)


class NavigatePayload(_CamelModel):
    direction: Literal["previous", "next"]
    current: Optional[StrictStr] = None


class CompletionPayload(_CamelModel):
    path: StrictStr = Field(..., min_length=1)
    completed: StrictBool
    version: Optional[StrictInt] = None


class SchedulePayload(_CamelModel):
    theory: Dict[str, Any] = Field(default_factory=dict)
    practice: Dict[str, Any] = Field(default_factory=dict)


class TagPayload(_CamelModel):
    path: StrictStr = Field(..., min_length=1)
    tag: Literal["theory", "practice", "unset"]


class MovePayload(_CamelModel):
    path: StrictStr = Field(..., min_length=1)
    direction: Literal["up", "down"]


class PagePayload(_CamelModel):
    path: StrictStr = Field(..., min_length=1)
    page: StrictInt = Field(..., ge=0)


class ProgressDeltaPayload(_CamelModel):
    subject: StrictStr
    table_type: StrictStr = Field(..., alias="tableType")
    delta: StrictInt


class ProgressMarkPayload(_CamelModel):
    subject_name: StrictStr = Field(..., alias="subjectName")
    table_type: StrictStr = Field(..., alias="tableType")
    checked: StrictBool


class TimePayload(_CamelModel):
    date: StrictStr
    weekday: StrictStr
    minutes: StrictInt = Field(..., ge=0)


class VideoPayload(_CamelModel):
    title: StrictStr = ""
    url: StrictStr = Field(..., min_length=1)


class LastFolderPayload(_CamelModel):
    path: StrictStr = Field(..., min_length=1)


class NotePayload(_CamelModel):
    name: StrictStr = Field(..., min_length=1)
    data: Any = None


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def _resolve_within(root: Path, relative_path: str) -> Path:
    """Return *relative_path* under *root*, refusing anything that escapes it."""

    resolved_root = root.resolve()
    candidate = (resolved_root / relative_path).resolve()
    candidate.relative_to(resolved_root)
    return candidate


def create_app(
    repository: ProgressRepository,
    *,
    config: AppConfig,
    root_path: str | None = None,
    weekday_provider: Callable[[], int] = js_weekday,
) -> FastAPI:
    """Return a configured FastAPI application."""

    app = FastAPI(
        title="Study Desk",
        description="Track study materials, progress and schedules",
        root_path=root_path or "",
    )
    app.state.server = None

    configure_emitter = getattr(repository, "configure_event_emitter", None)
    if callable(configure_emitter):
        configure_emitter(lambda _event_type, action, **kwargs: _emit_db_event(action, **kwargs))

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    state_store = StateStore(config)
    note_store = NoteStore(config)
    last_folder_store = LastFolderStore(config)
    shortcut_library = ShortcutLibrary(config)
    app.state.state_store = state_store

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(
        request: Request, error: RequestValidationError
    ) -> JSONResponse:
        LOGGER.debug("Rejected malformed request to %s: %s", request.url.path, error.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid body", "errors": jsonable_errors(error)},
        )

    @app.exception_handler(sqlite3.Error)
    async def _handle_database_error(request: Request, error: sqlite3.Error) -> JSONResponse:
        LOGGER.exception("Database failure while serving %s", request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "message": str(error)},
        )

    @app.exception_handler(OSError)
    async def _handle_storage_error(request: Request, error: OSError) -> JSONResponse:
        LOGGER.exception("Storage failure while serving %s", request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "message": str(error)},
        )

    def _materials_root(state: AppState) -> Path:
        if state.base_path:
            return Path(state.base_path).expanduser()
        return config.materials_root

    def _scan(state: AppState, *, persist: bool = False) -> List[StudyItem]:
        """Scan the materials; with *persist* the metadata map follows the files."""

        items = scan_materials(_materials_root(state), state.metadata)
        if not persist or not items:
            return items
        refreshed = prune(ensure_entries(state.metadata, items), (item.path for item in items))
        if refreshed != state.metadata:
            state_store.update(lambda latest: replace(
                latest,
                metadata=prune(
                    ensure_entries(latest.metadata, items),
                    (item.path for item in items),
                ),
            ))
        return items

    def _snapshot(
        state: AppState,
        items: List[StudyItem],
        *,
        current: Optional[str] = None,
        today: Optional[int] = None,
    ) -> QueueSnapshot:
        return build_queue(
            build_tree(items),
            state.completed,
            state.schedule,
            weekday_provider() if today is None else today,
            metadata=ensure_entries(state.metadata, items),
            session_current=current,
            last_opened=state.last_opened,
        )

    def _require_item(items: List[StudyItem], path: str) -> StudyItem:
        for item in items:
            if item.path == path:
                return item
        raise HTTPException(status_code=404, detail="File not found")

    def _save(state: AppState, expected_version: Optional[int] = None) -> AppState:
        try:
            return state_store.save(state, expected_version=expected_version)
        except StaleStateError as error:
            LOGGER.info("Rejected stale state write: %s", error)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"error": str(error), "version": error.current},
            ) from error
        except OSError as error:
            LOGGER.exception("Failed to persist state to %s", state_store.path)
            raise HTTPException(status_code=500, detail="Failed to persist state") from error

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------
    @app.get("/files")
    async def list_files() -> Dict[str, Any]:
        state = state_store.load()
        items = _scan(state, persist=True)
        _log_event("Listed files", item_count=len(items))
        return serialize_tree(build_tree(items))

    @app.get("/pdf")
    async def serve_pdf(path: Optional[str] = None) -> FileResponse:
        if not path:
            raise HTTPException(status_code=400, detail="path required")
        root = _materials_root(state_store.load())
        try:
            target = _resolve_within(root, path)
        except ValueError as error:
            raise HTTPException(status_code=404, detail="not found") from error
        if not target.is_file():
            raise HTTPException(status_code=404, detail="not found")
        return FileResponse(target, media_type="application/pdf")

    # ------------------------------------------------------------------
    # Application state
    # ------------------------------------------------------------------
    @app.get("/config")
    async def read_config() -> Dict[str, Any]:
        return state_store.load().to_mapping()

    @app.post("/config")
    async def write_config(request: Request) -> Dict[str, Any]:
        try:
            payload = await request.json()
        except ValueError as error:
            raise HTTPException(status_code=400, detail="Invalid JSON body") from error
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Configuration must be a JSON object")
        version = payload.get("version")
        expected = version if isinstance(version, int) and not isinstance(version, bool) else None
        stored = _save(AppState.from_mapping(payload), expected)
        _log_event("Saved configuration", version=stored.version)
        return {"ok": True, "version": stored.version}

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------
    @app.get("/queue")
    async def get_queue(
        current: Optional[str] = None,
        today: Optional[int] = Query(None, ge=0, le=6),
    ) -> Dict[str, Any]:
        state = state_store.load()
        snapshot = _snapshot(state, _scan(state), current=current, today=today)
        return snapshot.to_dict()

    @app.post("/queue/open")
    async def open_item(payload: PathPayload) -> Dict[str, Any]:
        state = state_store.load()
        items = _scan(state)
        _require_item(items, payload.path)
        state = state_store.update(lambda latest: replace(latest, last_opened=payload.path))
        _log_event("Opened item", path=payload.path)
        return _snapshot(state, items, current=payload.path).to_dict()

    @app.post("/queue/navigate")
    async def navigate(payload: NavigatePayload) -> Dict[str, Any]:
        state = state_store.load()
        items = _scan(state)
        snapshot = _snapshot(state, items, current=payload.current)
        moved = snapshot.step(-1 if payload.direction == "previous" else 1)
        target = moved.current
        if target is not None and target.path != state.last_opened:
            state_store.update(lambda latest: replace(latest, last_opened=target.path))
        return moved.to_dict()

    @app.post("/completion")
    async def toggle_completion(payload: CompletionPayload) -> Dict[str, Any]:
        state = state_store.load()
        items = _scan(state)
        item = _require_item(items, payload.path)
        was_completed = bool(state.completed.get(payload.path))
        completed = dict(state.completed)
        completed[payload.path] = payload.completed
        state = _save(replace(state, completed=completed), payload.version)

        if was_completed != payload.completed and item.tag in (TAG_THEORY, TAG_PRACTICE):
            try:
                repository.adjust(item.subject, item.tag, 1 if payload.completed else -1)
            except sqlite3.Error:
                LOGGER.warning(
                    "Could not update progress counter for %s/%s", item.subject, item.tag,
                    exc_info=True,
                )
        _log_event("Toggled completion", path=payload.path, completed=payload.completed)
        return {
            "path": payload.path,
            "completed": payload.completed,
            "version": state.version,
            "queue": _snapshot(state, items, current=payload.path).to_dict(),
        }

    # ------------------------------------------------------------------
    # Schedule and metadata
    # ------------------------------------------------------------------
    @app.get("/schedule")
    async def get_schedule(today: Optional[int] = Query(None, ge=0, le=6)) -> Dict[str, Any]:
        schedule = state_store.load().schedule
        weekday = weekday_provider() if today is None else today
        subjects = sorted(set(schedule.theory) | set(schedule.practice))
        return {
            **schedule.to_mapping(),
            "today": weekday,
            "urgency": {subject: subject_urgency(subject, schedule, weekday) for subject in subjects},
        }

    @app.put("/schedule")
    async def update_schedule(payload: SchedulePayload) -> Dict[str, Any]:
        cleaned: Dict[str, Dict[str, Any]] = {}
        for category, table in (("theory", payload.theory), ("practice", payload.practice)):
            cleaned[category] = {}
            for subject, value in table.items():
                if value is None or value == "":
                    continue
                if parse_weekday(value) is None:
                    raise HTTPException(
                        status_code=400,
                        detail=f"Unknown weekday {value!r} for {category} of {subject}",
                    )
                cleaned[category][subject] = value
        schedule = Schedule(theory=cleaned["theory"], practice=cleaned["practice"])
        state_store.update(lambda latest: replace(latest, schedule=schedule))
        _log_event("Updated schedule", subjects=len(set(schedule.theory) | set(schedule.practice)))
        return schedule.to_mapping()

    @app.post("/metadata/tag")
    async def tag_item(payload: TagPayload) -> Dict[str, Any]:
        state = state_store.load()
        _require_item(_scan(state), payload.path)
        state = state_store.update(
            lambda latest: replace(latest, metadata=set_tag(latest.metadata, payload.path, payload.tag))
        )
        return {"path": payload.path, "metadata": state.metadata[payload.path].to_mapping()}

    @app.post("/metadata/move")
    async def move(payload: MovePayload) -> Dict[str, Any]:
        state = state_store.load()
        items = _scan(state)
        _require_item(items, payload.path)
        state = state_store.update(
            lambda latest: replace(
                latest,
                metadata=move_item(latest.metadata, items, payload.path, payload.direction),
            )
        )
        _log_event("Moved item", path=payload.path, direction=payload.direction)
        return _snapshot(state, items, current=payload.path).to_dict()

    @app.post("/metadata/page")
    async def record_page(payload: PagePayload) -> Dict[str, Any]:
        state = state_store.load()
        _require_item(_scan(state), payload.path)
        state = state_store.update(
            lambda latest: replace(
                latest,
                metadata=set_last_page(latest.metadata, payload.path, payload.page),
            )
        )
        return {"path": payload.path, "metadata": state.metadata[payload.path].to_mapping()}

    # ------------------------------------------------------------------
    # Progress counters and time tracking
    # ------------------------------------------------------------------
    @app.get("/progress")
    async def list_progress() -> List[Dict[str, Any]]:
        return [asdict(record) for record in repository.list_progress()]

    @app.post("/progress")
    async def adjust_progress(payload: ProgressDeltaPayload) -> Dict[str, Any]:
        record = repository.adjust(payload.subject, payload.table_type, payload.delta)
        return {"ok": True, "progress": asdict(record) if record else None}

    @app.post("/progress/mark")
    async def mark_progress(payload: ProgressMarkPayload) -> Dict[str, Any]:
        record = repository.mark(payload.subject_name, payload.table_type, payload.checked)
        return asdict(record) if record else {}

    @app.post("/progress/sync-totals")
    async def sync_totals() -> List[Dict[str, Any]]:
        state = state_store.load()
        counts = count_by_category(_scan(state))
        records = repository.sync_totals(counts)
        _log_event("Synchronised totals", pairs=len(records))
        return [asdict(record) for record in records]

    @app.get("/time")
    async def list_time(limit: Optional[int] = Query(None, ge=1)) -> List[Dict[str, Any]]:
        return [asdict(record) for record in repository.list_time(limit)]

    @app.post("/time")
    async def record_time(payload: TimePayload) -> Dict[str, Any]:
        try:
            record = repository.record_time(payload.date, payload.weekday, payload.minutes)
        except ValueError as error:
            raise HTTPException(status_code=400, detail=f"Invalid date: {payload.date}") from error
        return {"ok": True, "entry": asdict(record)}

    # ------------------------------------------------------------------
    # Keyed storage
    # ------------------------------------------------------------------
    @app.get("/videos")
    async def list_videos() -> List[Dict[str, str]]:
        return [
            {**link.to_dict(), "embed": youtube_embed_url(link.url)}
            for link in shortcut_library.list()
        ]

    @app.post("/videos", status_code=status.HTTP_201_CREATED)
    async def add_video(payload: VideoPayload) -> Dict[str, Any]:
        try:
            link = shortcut_library.add(payload.title, payload.url)
        except ValueError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error
        return {"ok": True, "video": link.to_dict()}

    @app.get("/last-folder")
    async def recall_last_folder(request: Request) -> Dict[str, Optional[str]]:
        return {"path": last_folder_store.recall(_client_key(request))}

    @app.post("/last-folder")
    async def remember_last_folder(request: Request, payload: LastFolderPayload) -> Dict[str, bool]:
        last_folder_store.remember(_client_key(request), payload.path)
        return {"ok": True}

    @app.get("/note")
    async def read_note(name: Optional[str] = None) -> Any:
        if not name:
            raise HTTPException(status_code=400, detail="name required")
        try:
            return note_store.read(name)
        except ValueError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error

    @app.post("/note")
    async def write_note(payload: NotePayload) -> Dict[str, bool]:
        try:
            note_store.write(payload.name, payload.data)
        except ValueError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error
        return {"ok": True}

    @app.get("/notes")
    async def read_notes(file: Optional[str] = None) -> Any:
        try:
            return note_store.read(file)
        except ValueError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error

    @app.post("/notes")
    async def write_notes(request: Request, file: Optional[str] = None) -> Dict[str, bool]:
        try:
            data = await request.json()
        except ValueError as error:
            raise HTTPException(status_code=400, detail="Invalid JSON body") from error
        try:
            note_store.write(file, data)
        except ValueError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error
        except OSError as error:
            LOGGER.exception("Failed to write notes file %s", file)
            raise HTTPException(status_code=500, detail="Failed to write notes") from error
        return {"ok": True}

    return app


def jsonable_errors(error: RequestValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": list(entry.get("loc", ())), "msg": str(entry.get("msg", ""))}
        for entry in error.errors()
    ]


__all__ = ["create_app"]
