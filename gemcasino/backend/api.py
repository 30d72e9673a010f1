"""FastAPI endpoints for sessions, blackjack, mines, case battles and rain."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import BackendSettings, configure_logging, load_settings
from .errors import GameError, InsufficientFundsError, InvalidActionError, InvalidBetError, InvalidConfigurationError
from .rain import RainScheduler
from .rng import RandomOutcomeSource, SystemRandomSource
from .scheduler import TickScheduler
from .session import BattleLobby, CollectingSink, GameSession, SessionRegistry, seed_lobby
from .store import ProfileStore, create_store

logger = logging.getLogger(__name__)

TICK_RESOLUTION_SECONDS = 0.1

ERROR_STATUS = {
    InvalidBetError: 400,
    InvalidConfigurationError: 400,
    InsufficientFundsError: 402,
    InvalidActionError: 409,
}


class OpenSessionRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)


class BetRequest(BaseModel):
    bet: float


class StartMinesRequest(BaseModel):
    bet: float
    mines_count: int


class RevealRequest(BaseModel):
    index: int


class CreateBattleRequest(BaseModel):
    name: str = Field(default="", max_length=200)
    price_per_player: int
    cases_to_open: int
    max_players: int
    case_type: int = 0


def _error_status(error: GameError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def _session_payload(session: GameSession) -> dict[str, Any]:
    return {"session_id": session.id, "profile": session.account.profile.to_dict()}


def create_app(
    store: ProfileStore | None = None,
    scheduler: TickScheduler | None = None,
    rng: RandomOutcomeSource | None = None,
    settings: BackendSettings | None = None,
    drive_scheduler: bool = True,
) -> FastAPI:
    settings = settings if settings is not None else load_settings()
    configure_logging(settings)
    profile_store = store if store is not None else create_store(settings.database_url)
    tick_scheduler = scheduler if scheduler is not None else TickScheduler()
    outcome_source = rng if rng is not None else SystemRandomSource(settings.rng_seed)

    registry = SessionRegistry(
        store=profile_store,
        scheduler=tick_scheduler,
        rng=outcome_source,
        starting_balance=settings.starting_balance,
        lobby=seed_lobby(BattleLobby()),
    )
    rain = RainScheduler(
        scheduler=tick_scheduler,
        credit=registry.credit,
        total_amount=settings.rain_amount,
        countdown_seconds=settings.rain_interval_seconds,
        interval_seconds=settings.rain_interval_seconds,
    )
    registry.attach_rain(rain)
    rain.start()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not drive_scheduler:
            yield
            return

        # Game steps must run on the event loop, not in the executor thread pool.
        async def drive_ticks() -> None:
            tick_scheduler.run_due()

        job_scheduler = AsyncIOScheduler()
        job_scheduler.add_job(
            drive_ticks,
            "interval",
            seconds=TICK_RESOLUTION_SECONDS,
            max_instances=1,
            coalesce=True,
        )
        job_scheduler.start()
        app.state.job_scheduler = job_scheduler
        try:
            yield
        finally:
            job_scheduler.shutdown(wait=False)
            logger.info("tick driver stopped")

    app = FastAPI(title="Gem Casino API", version="0.1.0", lifespan=lifespan)
    app.state.registry = registry
    app.state.scheduler = tick_scheduler

    @app.exception_handler(GameError)
    async def handle_game_error(request: Request, exc: GameError) -> JSONResponse:
        return JSONResponse(status_code=_error_status(exc), content={"error": exc.kind, "detail": str(exc)})

    def get_registry() -> SessionRegistry:
        return registry

    def get_session(session_id: str, local_registry: SessionRegistry = Depends(get_registry)) -> GameSession:
        session = local_registry.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    @app.post("/api/sessions")
    async def open_session(
        payload: OpenSessionRequest,
        local_registry: SessionRegistry = Depends(get_registry),
    ) -> dict[str, Any]:
        return _session_payload(local_registry.open_session(payload.username))

    @app.get("/api/sessions/{session_id}")
    async def get_profile(session: GameSession = Depends(get_session)) -> dict[str, Any]:
        return _session_payload(session)

    @app.delete("/api/sessions/{session_id}")
    async def logout(
        session: GameSession = Depends(get_session),
        local_registry: SessionRegistry = Depends(get_registry),
    ) -> dict[str, Any]:
        local_registry.close_session(session.id)
        session.account.logout()
        return {"status": "logged-out"}

    @app.get("/api/sessions/{session_id}/notifications")
    async def drain_notifications(session: GameSession = Depends(get_session)) -> dict[str, Any]:
        sink = session.sink
        events = sink.drain() if isinstance(sink, CollectingSink) else []
        return {"notifications": events}

    @app.get("/api/sessions/{session_id}/blackjack")
    async def get_blackjack(session: GameSession = Depends(get_session)) -> dict[str, Any]:
        return {"round": session.blackjack.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/blackjack/deal")
    async def deal(payload: BetRequest, session: GameSession = Depends(get_session)) -> dict[str, Any]:
        round_ = session.deal(payload.bet)
        return {"round": round_.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/blackjack/hit")
    async def hit(session: GameSession = Depends(get_session)) -> dict[str, Any]:
        round_ = session.hit()
        return {"round": round_.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/blackjack/stand")
    async def stand(session: GameSession = Depends(get_session)) -> dict[str, Any]:
        round_ = session.stand()
        return {"round": round_.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/blackjack/reset")
    async def reset_blackjack(session: GameSession = Depends(get_session)) -> dict[str, Any]:
        round_ = session.reset_blackjack()
        return {"round": round_.to_dict(), "balance": session.account.get_balance()}

    @app.get("/api/sessions/{session_id}/mines")
    async def get_mines(session: GameSession = Depends(get_session)) -> dict[str, Any]:
        return {"game": session.mines.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/mines/start")
    async def start_mines(payload: StartMinesRequest, session: GameSession = Depends(get_session)) -> dict[str, Any]:
        game = session.start_mines(payload.bet, payload.mines_count)
        return {"game": game.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/mines/reveal")
    async def reveal(payload: RevealRequest, session: GameSession = Depends(get_session)) -> dict[str, Any]:
        game = session.reveal(payload.index)
        return {"game": game.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/mines/cashout")
    async def cashout(session: GameSession = Depends(get_session)) -> dict[str, Any]:
        game = session.cashout()
        return {"game": game.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/mines/reset")
    async def reset_mines(session: GameSession = Depends(get_session)) -> dict[str, Any]:
        game = session.reset_mines()
        return {"game": game.to_dict(), "balance": session.account.get_balance()}

    @app.get("/api/battles")
    async def list_battles(local_registry: SessionRegistry = Depends(get_registry)) -> dict[str, Any]:
        return {"battles": [battle.to_dict() for battle in local_registry.lobby.open_battles()]}

    @app.get("/api/battles/{battle_id}/settlement")
    async def get_settlement(battle_id: str, local_registry: SessionRegistry = Depends(get_registry)) -> dict[str, Any]:
        settlement = local_registry.lobby.settlement(battle_id)
        if settlement is None:
            raise HTTPException(status_code=404, detail="Battle not settled")
        return settlement.to_dict()

    @app.post("/api/sessions/{session_id}/battles")
    async def create_battle(payload: CreateBattleRequest, session: GameSession = Depends(get_session)) -> dict[str, Any]:
        battle = session.create_battle(
            price_per_player=payload.price_per_player,
            cases_to_open=payload.cases_to_open,
            max_players=payload.max_players,
            name=payload.name,
            case_type=payload.case_type,
        )
        return {"battle": battle.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/battles/{battle_id}/join")
    async def join_battle(battle_id: str, session: GameSession = Depends(get_session)) -> dict[str, Any]:
        battle = session.join_battle(battle_id)
        return {"battle": battle.to_dict(), "balance": session.account.get_balance()}

    @app.post("/api/sessions/{session_id}/battles/{battle_id}/start")
    async def start_battle(battle_id: str, session: GameSession = Depends(get_session)) -> dict[str, Any]:
        battle = session.play_against_opponents(battle_id)
        return {"battle": battle.to_dict(), "balance": session.account.get_balance()}

    @app.get("/api/rain")
    async def get_rain(local_registry: SessionRegistry = Depends(get_registry)) -> dict[str, Any]:
        current = local_registry.rain.current if local_registry.rain is not None else None
        return {"rain": current.to_dict() if current is not None else None}

    @app.post("/api/sessions/{session_id}/rain/join")
    async def join_rain(
        session: GameSession = Depends(get_session),
        local_registry: SessionRegistry = Depends(get_registry),
    ) -> dict[str, Any]:
        joined = session.join_rain()
        current = local_registry.rain.current if local_registry.rain is not None else None
        return {"joined": joined, "rain": current.to_dict() if current is not None else None}

    return app


app = create_app()
