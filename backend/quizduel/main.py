from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional

from .db import settings
from .events import event_store
from .game import ActionResult, controller
from .schemas import (
    ActionOut,
    AdjustIn,
    AdminUpsertQuestionsIn,
    AwardIn,
    CreateSessionIn,
    FinalizeIn,
    PublicGameOut,
    RenameIn,
    ResetSessionIn,
    SideIn,
    WagerIn,
)
from .utils import setup_logging

setup_logging()

app = FastAPI(title="Quiz Duel API")

origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
origin_regex = settings.CORS_ORIGIN_REGEX or None

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_origin_regex=origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def require_admin(x_admin_key: Optional[str] = Header(default=None)):
    if x_admin_key != settings.ADMIN_KEY:
        raise HTTPException(status_code=401, detail="Invalid admin key")


def _action_out(result: Optional[ActionResult]) -> ActionOut:
    if result is None:
        raise HTTPException(404, "Session not found")
    accepted, game = result
    return ActionOut(accepted=accepted, game=game)


@app.get("/api/session/{session_id}/events")
async def list_events(session_id: str, after: int | None = None, limit: int = 200):
    events = await event_store.list(session_id, after=after, limit=limit)
    latest_seq = events[-1]["seq"] if events else after
    return {"events": events, "latest_seq": latest_seq}


@app.post("/api/session", response_model=PublicGameOut)
async def create_or_get_session(payload: CreateSessionIn):
    return await controller.create_or_get(payload.session_id, payload.bonus_policy)


@app.get("/api/session/{session_id}", response_model=PublicGameOut)
async def get_session(session_id: str):
    game = await controller.get_game(session_id)
    if not game:
        raise HTTPException(404, "Session not found")
    return game


@app.post("/api/session/{session_id}/advance", response_model=ActionOut)
async def advance(session_id: str):
    return _action_out(await controller.advance(session_id))


@app.post("/api/session/{session_id}/retreat", response_model=ActionOut)
async def retreat(session_id: str):
    return _action_out(await controller.retreat(session_id))


@app.post("/api/session/{session_id}/award", response_model=ActionOut)
async def award(session_id: str, payload: AwardIn):
    return _action_out(await controller.award(session_id, payload.side, payload.amount))


@app.post("/api/session/{session_id}/no-answer", response_model=ActionOut)
async def no_answer(session_id: str):
    return _action_out(await controller.no_answer(session_id))


@app.post("/api/session/{session_id}/adjust", response_model=ActionOut)
async def adjust(session_id: str, payload: AdjustIn):
    return _action_out(await controller.adjust_score(session_id, payload.side, payload.delta))


@app.post("/api/session/{session_id}/wager", response_model=ActionOut)
async def wager(session_id: str, payload: WagerIn):
    return _action_out(await controller.set_wager(session_id, payload.side, payload.amount))


@app.post("/api/session/{session_id}/finalize", response_model=ActionOut)
async def finalize(session_id: str, payload: FinalizeIn):
    return _action_out(await controller.finalize(session_id, payload.side, payload.outcome))


@app.post("/api/session/{session_id}/arm", response_model=ActionOut)
async def arm(session_id: str, payload: SideIn):
    return _action_out(await controller.arm(session_id, payload.side))


@app.post("/api/session/{session_id}/rename", response_model=ActionOut)
async def rename(session_id: str, payload: RenameIn):
    return _action_out(await controller.rename(session_id, payload.side, payload.name))


@app.post("/api/admin/questions")
async def upsert_questions(payload: AdminUpsertQuestionsIn, _: None = Depends(require_admin)):
    try:
        await controller.set_questions(payload.session_id, payload.questions)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True}


@app.get("/api/admin/verify")
async def verify(_: None = Depends(require_admin)):
    return {"ok": True}


@app.post("/api/admin/reset", response_model=PublicGameOut)
async def reset(payload: ResetSessionIn, _: None = Depends(require_admin)):
    game = await controller.reset(payload.session_id)
    if not game:
        raise HTTPException(404, "Session not found")
    return game
