"""Per-player game sessions.

A ``GameSession`` is the single control point for one player: it holds the
live blackjack round, mines game and battle seats, applies every engine
delta to the player's ``Account`` and forwards notifications to the sink.
Timed steps are queued on the shared ``TickScheduler`` under the session's
owner keys so a reset cancels them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol, TypeVar

from . import battles, blackjack, mines
from .account import Account
from .battles import BattleSettlement, BattleStatus, CaseBattle
from .cases import REEL_LENGTH, REEL_STOP_INDEX
from .errors import GameError, InvalidActionError
from .models import ActionResult
from .rain import RainScheduler
from .rng import RandomOutcomeSource
from .scheduler import TickScheduler
from .security import generate_session_id
from .store import ProfileStore

logger = logging.getLogger(__name__)

DEALER_STEP_DELAY = 0.8
BATTLE_REVEAL_DELAY = 2.0

StateT = TypeVar("StateT")


class NotificationSink(Protocol):
    def notify(self, event: dict[str, Any]) -> None:
        """Receive a {kind, message, amount?} event."""


class CollectingSink:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def notify(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    def drain(self) -> list[dict[str, Any]]:
        drained, self.events = self.events, []
        return drained


class BattleLobby:
    """Process-wide list of open and finished case battles."""

    def __init__(self) -> None:
        self._battles: dict[str, CaseBattle] = {}
        self._settlements: dict[str, BattleSettlement] = {}

    def put(self, battle: CaseBattle) -> None:
        self._battles[battle.id] = battle

    def get(self, battle_id: str) -> CaseBattle:
        battle = self._battles.get(battle_id)
        if battle is None:
            raise InvalidActionError("Battle not found")
        return battle

    def open_battles(self) -> list[CaseBattle]:
        return [battle for battle in self._battles.values() if battle.status is not BattleStatus.COMPLETED]

    def record(self, settlement: BattleSettlement) -> None:
        self._battles.pop(settlement.battle.id, None)
        self._settlements[settlement.battle.id] = settlement

    def settlement(self, battle_id: str) -> BattleSettlement | None:
        return self._settlements.get(battle_id)


def seed_lobby(lobby: BattleLobby) -> BattleLobby:
    for ticket in (
        {"id": "1", "name": "Gems Galore", "price_per_player": 500, "cases_to_open": 5, "max_players": 2},
        {
            "id": "2",
            "name": "High Rollers",
            "price_per_player": 1000,
            "cases_to_open": 3,
            "max_players": 4,
            "participant_ids": ["bot-1", "bot-2"],
            "case_type": 2,
        },
        {
            "id": "3",
            "name": "Budget Battle",
            "price_per_player": 200,
            "cases_to_open": 2,
            "max_players": 2,
            "participant_ids": ["bot-1"],
        },
        {"id": "4", "name": "Gem Hunters", "price_per_player": 750, "cases_to_open": 4, "max_players": 3, "case_type": 1},
    ):
        lobby.put(battles.battle_from_ticket(ticket))
    return lobby


class GameSession:
    def __init__(
        self,
        account: Account,
        scheduler: TickScheduler,
        rng: RandomOutcomeSource,
        registry: "SessionRegistry",
        sink: NotificationSink | None = None,
        session_id: str | None = None,
        dealer_step_delay: float = DEALER_STEP_DELAY,
        battle_reveal_delay: float = BATTLE_REVEAL_DELAY,
    ) -> None:
        self.id = session_id if session_id is not None else generate_session_id()
        self.account = account
        self.sink = sink if sink is not None else CollectingSink()
        self._scheduler = scheduler
        self._rng = rng
        self._registry = registry
        self._dealer_step_delay = dealer_step_delay
        self._battle_reveal_delay = battle_reveal_delay
        self.blackjack = blackjack.new_round()
        self.mines = mines.new_game()

    @property
    def blackjack_owner(self) -> tuple[str, str]:
        return (self.id, "blackjack")

    @property
    def battles_owner(self) -> tuple[str, str]:
        return (self.id, "battles")

    def receive(self, amount: int, event: dict[str, Any] | None = None) -> None:
        if amount:
            self.account.apply_delta(amount)
        if event is not None:
            self.sink.notify(event)

    # Blackjack

    def deal(self, bet: Any) -> blackjack.BlackjackRound:
        with self._surface_errors("deal"):
            result = blackjack.deal(self.blackjack, bet, self.account.get_balance(), self._rng)
        self._scheduler.cancel_owner(self.blackjack_owner)
        self.blackjack = self._apply(result)
        return self.blackjack

    def hit(self) -> blackjack.BlackjackRound:
        with self._surface_errors("hit"):
            result = blackjack.hit(self.blackjack)
        self.blackjack = self._apply(result)
        return self.blackjack

    def stand(self) -> blackjack.BlackjackRound:
        with self._surface_errors("stand"):
            result = blackjack.stand(self.blackjack)
        self.blackjack = self._apply(result)
        self._scheduler.call_later(self._dealer_step_delay, self._dealer_tick, owner=self.blackjack_owner)
        return self.blackjack

    def reset_blackjack(self) -> blackjack.BlackjackRound:
        self._scheduler.cancel_owner(self.blackjack_owner)
        self.blackjack = blackjack.reset(self.blackjack)
        return self.blackjack

    def _dealer_tick(self) -> None:
        if self.blackjack.state is not blackjack.RoundState.DEALER_TURN:
            return
        self.blackjack = self._apply(blackjack.dealer_step(self.blackjack))
        if self.blackjack.state is blackjack.RoundState.DEALER_TURN:
            self._scheduler.call_later(self._dealer_step_delay, self._dealer_tick, owner=self.blackjack_owner)

    # Mines

    def start_mines(self, bet: Any, mines_count: Any) -> mines.MinesGame:
        with self._surface_errors("start_mines"):
            if self.mines.active:
                raise InvalidActionError("Finish the current mines game first")
            result = mines.start_game(bet, mines_count, self.account.get_balance(), self._rng)
        self.mines = self._apply(result)
        return self.mines

    def reveal(self, index: Any) -> mines.MinesGame:
        self.mines = self._apply(mines.reveal(self.mines, index))
        return self.mines

    def cashout(self) -> mines.MinesGame:
        with self._surface_errors("cashout"):
            result = mines.cashout(self.mines)
        self.mines = self._apply(result)
        return self.mines

    def reset_mines(self) -> mines.MinesGame:
        if self.mines.active:
            logger.warning("session %s abandoned an active mines game", self.id)
        self.mines = mines.new_game()
        return self.mines

    # Case battles

    def create_battle(
        self,
        price_per_player: Any,
        cases_to_open: Any,
        max_players: Any,
        name: str = "",
        case_type: int = 0,
    ) -> CaseBattle:
        with self._surface_errors("create_battle"):
            result = battles.create_battle(
                creator_id=self.account.id,
                balance=self.account.get_balance(),
                price_per_player=price_per_player,
                cases_to_open=cases_to_open,
                max_players=max_players,
                name=name or f"{self.account.profile.username}'s Battle",
                case_type=case_type,
            )
        battle = self._apply(result)
        self._registry.lobby.put(battle)
        return battle

    def join_battle(self, battle_id: str) -> CaseBattle:
        with self._surface_errors("join_battle"):
            battle = self._registry.lobby.get(battle_id)
            result = battles.join_battle(battle, self.account.id, self.account.get_balance())
        battle = self._apply(result)
        self._registry.lobby.put(battle)
        if battle.status is BattleStatus.IN_PROGRESS:
            self._schedule_battle(battle.id)
        return battle

    def play_against_opponents(self, battle_id: str) -> CaseBattle:
        with self._surface_errors("play_against_opponents"):
            battle = self._registry.lobby.get(battle_id)
            if self.account.id not in battle.participant_ids:
                raise InvalidActionError("Join the battle before starting it")
            battle = battles.fill_with_opponents(battle)
        self._registry.lobby.put(battle)
        self.sink.notify({"kind": "info", "message": "Battle starting!"})
        self._schedule_battle(battle.id)
        return battle

    def _schedule_battle(self, battle_id: str) -> None:
        self._scheduler.call_later(
            self._battle_reveal_delay,
            lambda: self._registry.settle_battle(battle_id),
            owner=self.battles_owner,
        )

    # Rain

    def join_rain(self) -> bool:
        rain = self._registry.rain
        if rain is None or not rain.join(self.account.id):
            return False
        self.sink.notify({"kind": "info", "message": "You've joined the rain! Wait for distribution."})
        return True

    def close(self) -> None:
        self._scheduler.cancel_owner(self.blackjack_owner)

    def _apply(self, result: ActionResult[StateT]) -> StateT:
        if result.balance_delta:
            self.account.apply_delta(result.balance_delta)
        for event in result.events:
            self.sink.notify(event)
        return result.state

    @contextmanager
    def _surface_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except GameError as exc:
            logger.warning("session %s %s rejected: %s", self.id, action, exc)
            self.sink.notify(exc.to_event())
            raise


class SessionRegistry:
    """Creates sessions and routes credits that arrive from shared games."""

    def __init__(
        self,
        store: ProfileStore,
        scheduler: TickScheduler,
        rng: RandomOutcomeSource,
        starting_balance: int = 5000,
        lobby: BattleLobby | None = None,
        dealer_step_delay: float = DEALER_STEP_DELAY,
        battle_reveal_delay: float = BATTLE_REVEAL_DELAY,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.rng = rng
        self.starting_balance = starting_balance
        self.lobby = lobby if lobby is not None else BattleLobby()
        self.rain: RainScheduler | None = None
        self._dealer_step_delay = dealer_step_delay
        self._battle_reveal_delay = battle_reveal_delay
        self._sessions: dict[str, GameSession] = {}
        self._by_profile: dict[str, GameSession] = {}

    def attach_rain(self, rain: RainScheduler) -> None:
        self.rain = rain

    def open_session(self, username: str) -> GameSession:
        account = Account.load_or_create(self.store, username, self.starting_balance)
        previous = self._by_profile.get(account.id)
        if previous is not None:
            # One live session per profile; the newest login takes over.
            self.close_session(previous.id)
        session = GameSession(
            account=account,
            scheduler=self.scheduler,
            rng=self.rng,
            registry=self,
            dealer_step_delay=self._dealer_step_delay,
            battle_reveal_delay=self._battle_reveal_delay,
        )
        self._sessions[session.id] = session
        self._by_profile[account.id] = session
        logger.info("session %s opened for %s", session.id, account.profile.username)
        return session

    def get(self, session_id: str) -> GameSession | None:
        return self._sessions.get(session_id)

    def close_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.close()
        if self._by_profile.get(session.account.id) is session:
            self._by_profile.pop(session.account.id, None)

    def credit(self, profile_id: str, amount: int, event: dict[str, Any] | None = None) -> None:
        session = self._by_profile.get(profile_id)
        if session is None:
            logger.warning("no live session for %s, %s gems not credited", profile_id, amount)
            return
        session.receive(amount, event)

    def settle_battle(self, battle_id: str) -> BattleSettlement | None:
        try:
            battle = self.lobby.get(battle_id)
        except InvalidActionError:
            return None
        if battle.status is not BattleStatus.IN_PROGRESS:
            return None
        settlement = battles.run_battle(battle, self.rng, reel_length=REEL_LENGTH, stop_index=REEL_STOP_INDEX)
        self.lobby.record(settlement)
        for participant_id in settlement.battle.participant_ids:
            if battles.is_simulated(participant_id):
                continue
            events = battles.settlement_events(settlement, participant_id)
            self.credit(participant_id, settlement.delta_for(participant_id), events[0])
        return settlement
