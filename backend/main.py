# file: backend/main.py
"""
FastAPI Backend — Org Chart Reorganization API v1.

One ReorganizationSession per process, created and loaded at startup
(lifespan) and handed to every endpoint through the get_session
dependency. The directory is read when the session is created and
re-read only on explicit reload or after a fully persisted commit.

Endpoints:
  GET  /hierarchy            — tree + roles + diagnostics (?reload=true re-reads)
  GET  /roles/{node_id}      — role of one node
  POST /reorg/enable         — enter EDITING
  POST /reorg/layout         — replace on-screen bounding boxes
  POST /reorg/drag-start     — begin dragging a node
  POST /reorg/drag-move      — hit-test only
  POST /reorg/drag-end       — resolve the drop
  POST /reorg/undo|redo      — history
  POST /reorg/commit         — persist moves, back to VIEW
  POST /reorg/cancel         — revert moves, back to VIEW
  GET  /reorg/metrics        — session metrics
  GET  /reorg/divergence     — nodes whose local state differs from the directory
  GET  /view-state           — load expand/collapse map + transform
  PUT  /view-state           — save it
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(__file__), ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from reorg_kernel.constants import DEFAULT_TOP_EXECUTIVE_TITLES
from reorg_kernel.hashing import canonical_hash
from reorg_kernel.hit_test import DragPointer, NodeBox
from reorg_kernel.invariants import InvariantViolationError
from reorg_kernel.roles import UnknownPositionError
from reorg_runtime.directory_store import DirectoryStore, SqliteDirectoryStore
from reorg_runtime.session import ReorganizationSession, SessionStateError
from reorg_runtime.view_state import ViewState, ViewStateCache

from backend.postgres_directory_store import PostgresDirectoryStore

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DATABASE_URL = os.environ.get("DATABASE_URL", "")
DIRECTORY_DB_PATH = os.environ.get("DIRECTORY_DB_PATH", "directory.db")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
TOP_EXECUTIVE_TITLES = tuple(
    t.strip() for t in os.environ.get("TOP_EXECUTIVE_TITLES", "").split(",") if t.strip()
) or DEFAULT_TOP_EXECUTIVE_TITLES

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _build_store() -> DirectoryStore:
    if DATABASE_URL:
        logger.info("directory store: postgres")
        return PostgresDirectoryStore(DATABASE_URL)
    logger.info("directory store: sqlite at %s", DIRECTORY_DB_PATH)
    return SqliteDirectoryStore(DIRECTORY_DB_PATH)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the store and load the single session before serving requests."""
    store = _build_store()
    session = ReorganizationSession(store, top_executive_titles=TOP_EXECUTIVE_TITLES)
    await session.load()
    app.state.session = session
    app.state.view_cache = ViewStateCache(store)
    logger.info("session loaded with %d position(s)", len(session.tree))
    yield


def get_session(request: Request) -> ReorganizationSession:
    return request.app.state.session


def get_view_cache(request: Request) -> ViewStateCache:
    return request.app.state.view_cache


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="OrgChart Reorganization API",
    version="1.0.0",
    description="Interactive drag-and-drop reorganization of a company directory",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        FRONTEND_URL,
        "http://localhost:3000",
        "http://localhost:3001",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class BoxModel(BaseModel):
    x: float
    y: float
    width: float
    height: float


class LayoutRequest(BaseModel):
    boxes: Dict[str, BoxModel] = {}


class DragStartRequest(BaseModel):
    node_id: str


class PointerRequest(BaseModel):
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0


class ViewStateRequest(BaseModel):
    expanded: Dict[str, bool] = {}
    transform: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _hierarchy_payload(session: ReorganizationSession) -> dict:
    tree = session.tree
    return {
        "mode": session.mode,
        "tree": tree.to_dict(),
        "roles": session.get_roles(),
        "diagnostics": session.get_diagnostics(),
        "tree_hash": canonical_hash(tree),
        "undo_depth": len(session.undo_stack),
        "redo_depth": len(session.redo_stack),
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok", "version": "1.0.0"}


@app.get("/hierarchy")
async def get_hierarchy(
    reload: bool = False,
    session: ReorganizationSession = Depends(get_session),
):
    """Current tree with computed roles. reload=true re-reads the directory."""
    if reload:
        try:
            await session.load()
        except SessionStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
    return _hierarchy_payload(session)


@app.get("/roles/{node_id}")
def get_role(node_id: str, session: ReorganizationSession = Depends(get_session)):
    try:
        role = session.get_role(node_id)
    except UnknownPositionError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {"node_id": node_id, "role": role}


@app.post("/reorg/enable")
def enable_editing(session: ReorganizationSession = Depends(get_session)):
    session.enable_editing()
    return {"mode": session.mode}


@app.post("/reorg/layout")
def update_layout(req: LayoutRequest, session: ReorganizationSession = Depends(get_session)):
    session.update_layout({
        nid: NodeBox(x=b.x, y=b.y, width=b.width, height=b.height)
        for nid, b in req.boxes.items()
    })
    return {"node_count": len(req.boxes)}


@app.post("/reorg/drag-start")
def drag_start(req: DragStartRequest, session: ReorganizationSession = Depends(get_session)):
    return session.on_drag_start(req.node_id).to_dict()


@app.post("/reorg/drag-move")
def drag_move(req: PointerRequest, session: ReorganizationSession = Depends(get_session)):
    pointer = DragPointer(x=req.x, y=req.y, width=req.width, height=req.height)
    return session.on_drag_move(pointer).to_dict()


@app.post("/reorg/drag-end")
def drag_end(req: PointerRequest, session: ReorganizationSession = Depends(get_session)):
    """
    Resolve the drop. An ignored drop is a normal response with
    accepted=false; only a kernel invariant failure is an error.
    """
    pointer = DragPointer(x=req.x, y=req.y, width=req.width, height=req.height)
    try:
        result = session.on_drag_end(pointer)
    except InvariantViolationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    payload = result.to_dict()
    payload["hierarchy"] = _hierarchy_payload(session)
    return payload


@app.post("/reorg/undo")
def undo(session: ReorganizationSession = Depends(get_session)):
    try:
        applied = session.undo()
    except InvariantViolationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"applied": applied, "hierarchy": _hierarchy_payload(session)}


@app.post("/reorg/redo")
def redo(session: ReorganizationSession = Depends(get_session)):
    try:
        applied = session.redo()
    except InvariantViolationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"applied": applied, "hierarchy": _hierarchy_payload(session)}


@app.post("/reorg/commit")
async def commit(session: ReorganizationSession = Depends(get_session)):
    """
    Persist the session's moves. Partial failure is reported in the body
    (fully_persisted=false), not as an HTTP error.
    """
    result = await session.commit()
    if not result.fully_persisted:
        logger.warning("commit: %d node(s) not persisted: %s", len(result.failed), result.failed_ids)
    return {"commit": result.to_dict(), "hierarchy": _hierarchy_payload(session)}


@app.post("/reorg/cancel")
def cancel(session: ReorganizationSession = Depends(get_session)):
    try:
        session.cancel()
    except InvariantViolationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _hierarchy_payload(session)


@app.get("/reorg/metrics")
def metrics(session: ReorganizationSession = Depends(get_session)):
    return session.get_metrics().to_dict()


@app.get("/reorg/divergence")
async def divergence(session: ReorganizationSession = Depends(get_session)):
    nodes: List[dict] = await session.find_divergence()
    return {"divergent": nodes, "count": len(nodes)}


@app.get("/view-state")
async def get_view_state(
    cache: ViewStateCache = Depends(get_view_cache),
    session: ReorganizationSession = Depends(get_session),
):
    """Stored view state, with entries for vanished nodes dropped."""
    await cache.load()
    cache.prune(session.tree.ids())
    return cache.state.to_dict()


@app.put("/view-state")
async def put_view_state(
    req: ViewStateRequest,
    cache: ViewStateCache = Depends(get_view_cache),
):
    try:
        state = ViewState.from_dict({"expanded": req.expanded, "transform": req.transform})
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    cache.replace(state)
    await cache.save()
    return cache.state.to_dict()
