"""Mines engine: a 5x5 board with hidden mines and a growing cashout multiplier."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .errors import InvalidActionError, InvalidConfigurationError
from .models import ActionResult, notification, validate_bet
from .rng import RandomOutcomeSource, randbelow

logger = logging.getLogger(__name__)

GRID_SIZE = 25
MIN_MINES = 1
MAX_MINES = GRID_SIZE - 1
RETURN_RATE = 0.95


class MinesResult(str, Enum):
    PENDING = "pending"
    WIN = "win"
    LOSE = "lose"


@dataclass(frozen=True)
class MineCell:
    revealed: bool = False
    is_mine: bool = False
    multiplier: float = 0.0


@dataclass(frozen=True)
class MinesGame:
    cells: tuple[MineCell, ...] = tuple(MineCell() for _ in range(GRID_SIZE))
    bet_amount: int = 0
    mines_count: int = 0
    revealed_count: int = 0
    active: bool = False
    result: MinesResult = MinesResult.PENDING

    @property
    def safe_cells(self) -> int:
        return GRID_SIZE - self.mines_count

    @property
    def current_multiplier(self) -> float:
        return multiplier(self.mines_count, self.revealed_count)

    @property
    def next_multiplier(self) -> float:
        return multiplier(self.mines_count, self.revealed_count + 1)

    @property
    def potential_win(self) -> int:
        return math.floor(self.bet_amount * self.current_multiplier)

    @property
    def can_cashout(self) -> bool:
        return self.active and self.revealed_count > 0

    def mine_indices(self) -> list[int]:
        return [index for index, cell in enumerate(self.cells) if cell.is_mine]

    def to_dict(self) -> dict[str, Any]:
        # Unrevealed mines stay hidden from the caller while the game is live.
        return {
            "grid": [
                {
                    "revealed": cell.revealed,
                    "isMine": cell.is_mine if cell.revealed else None,
                    "multiplier": cell.multiplier,
                }
                for cell in self.cells
            ],
            "betAmount": self.bet_amount,
            "minesCount": self.mines_count,
            "revealedCount": self.revealed_count,
            "active": self.active,
            "result": self.result.value,
            "potentialWin": self.potential_win if self.mines_count else 0,
            "nextMultiplier": self.next_multiplier if self.mines_count else 0.0,
            "canCashout": self.can_cashout,
        }


def multiplier(mines: int, revealed: int) -> float:
    """Payout multiplier after ``revealed`` safe cells on a board with ``mines`` mines.

    The remaining safe pool is clamped to one cell so a cleared board keeps the
    last finite multiplier.
    """
    remaining = max(1, GRID_SIZE - mines - revealed)
    return max(1.0, RETURN_RATE * GRID_SIZE / remaining)


def place_mines(mines_count: int, rng: RandomOutcomeSource) -> frozenset[int]:
    """Pick ``mines_count`` distinct indices with a partial Fisher-Yates shuffle."""
    indices = list(range(GRID_SIZE))
    for i in range(mines_count):
        j = i + randbelow(rng, GRID_SIZE - i)
        indices[i], indices[j] = indices[j], indices[i]
    return frozenset(indices[:mines_count])


def new_game() -> MinesGame:
    return MinesGame()


def start_game(bet: Any, mines_count: Any, balance: int, rng: RandomOutcomeSource) -> ActionResult[MinesGame]:
    if isinstance(mines_count, bool) or not isinstance(mines_count, int):
        raise InvalidConfigurationError("Mines count must be a whole number")
    if not MIN_MINES <= mines_count <= MAX_MINES:
        raise InvalidConfigurationError(f"Mines count must be between {MIN_MINES} and {MAX_MINES}")
    bet_amount = validate_bet(bet, balance)

    mines = place_mines(mines_count, rng)
    game = MinesGame(
        cells=tuple(MineCell(is_mine=index in mines) for index in range(GRID_SIZE)),
        bet_amount=bet_amount,
        mines_count=mines_count,
        active=True,
    )
    logger.debug("mines game started bet=%s mines=%s", bet_amount, mines_count)
    return ActionResult(state=game, balance_delta=-bet_amount)


def reveal(game: MinesGame, index: Any) -> ActionResult[MinesGame]:
    if not game.active or isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < GRID_SIZE:
        return ActionResult(state=game)
    cell = game.cells[index]
    if cell.revealed:
        return ActionResult(state=game)

    if cell.is_mine:
        cells = tuple(
            replace(other, revealed=other.revealed or other.is_mine or i == index) for i, other in enumerate(game.cells)
        )
        lost = replace(game, cells=cells, active=False, result=MinesResult.LOSE)
        logger.info("mines lost bet=%s after %s reveals", game.bet_amount, game.revealed_count)
        return ActionResult(state=lost, events=[notification("lose", "BOOM! You hit a mine!")])

    cells = list(game.cells)
    cells[index] = replace(cell, revealed=True, multiplier=game.next_multiplier)
    next_game = replace(game, cells=tuple(cells), revealed_count=game.revealed_count + 1)
    if next_game.revealed_count >= next_game.safe_cells:
        return _settle_win(next_game, "You cleared the board and won")
    return ActionResult(state=next_game)


def cashout(game: MinesGame) -> ActionResult[MinesGame]:
    if not game.active:
        raise InvalidActionError("There is no active mines game")
    if game.revealed_count == 0:
        raise InvalidActionError("Reveal at least one cell before cashing out")
    return _settle_win(game, "You cashed out")


def _settle_win(game: MinesGame, message: str) -> ActionResult[MinesGame]:
    payout = game.potential_win
    cells = tuple(replace(cell, revealed=cell.revealed or cell.is_mine) for cell in game.cells)
    won = replace(game, cells=cells, active=False, result=MinesResult.WIN)
    logger.info("mines won bet=%s reveals=%s payout=%s", game.bet_amount, game.revealed_count, payout)
    return ActionResult(state=won, balance_delta=payout, events=[notification("win", f"{message} {payout} gems!", payout)])
