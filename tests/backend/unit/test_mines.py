import math

import pytest

from gemcasino.backend import mines
from gemcasino.backend.errors import InsufficientFundsError, InvalidActionError, InvalidConfigurationError
from gemcasino.backend.mines import GRID_SIZE, MinesResult
from gemcasino.backend.rng import FixedSequenceSource, SystemRandomSource

# Zero draws make the partial shuffle keep indices in place, so mines land on 0..m-1.
FIRST_CELLS = FixedSequenceSource([0.0])


def started(bet: int = 100, mines_count: int = 3) -> mines.MinesGame:
    return mines.start_game(bet, mines_count, 1000, FIRST_CELLS).state


@pytest.mark.parametrize("mines_count", [1, 3, 12, 24])
def test_start_places_exactly_the_requested_mines(mines_count: int) -> None:
    for seed in range(20):
        result = mines.start_game(100, mines_count, 1000, SystemRandomSource(seed))
        assert len(result.state.mine_indices()) == mines_count
        assert len(result.state.cells) == GRID_SIZE


def test_start_debits_bet_and_activates() -> None:
    result = mines.start_game(100, 3, 1000, FIRST_CELLS)

    assert result.balance_delta == -100
    assert result.state.active is True
    assert result.state.result is MinesResult.PENDING
    assert result.state.mine_indices() == [0, 1, 2]


@pytest.mark.parametrize("mines_count", [0, 25, -1, "3", 2.5])
def test_start_rejects_invalid_mines_count(mines_count) -> None:
    with pytest.raises(InvalidConfigurationError):
        mines.start_game(100, mines_count, 1000, FIRST_CELLS)


def test_start_rejects_bet_above_balance() -> None:
    with pytest.raises(InsufficientFundsError):
        mines.start_game(2000, 3, 1000, FIRST_CELLS)


def test_multiplier_formula_and_floor() -> None:
    assert mines.multiplier(3, 1) == pytest.approx(0.95 * 25 / 21)
    assert math.floor(100 * mines.multiplier(3, 1)) == 113
    assert mines.multiplier(1, 0) == 1.0


@pytest.mark.parametrize("mines_count", [1, 3, 5, 12, 20])
def test_multiplier_strictly_increases_until_exhaustion(mines_count: int) -> None:
    safe = GRID_SIZE - mines_count
    values = [mines.multiplier(mines_count, revealed) for revealed in range(safe)]

    assert all(later > earlier for earlier, later in zip(values, values[1:]))
    assert mines.multiplier(mines_count, safe) == values[-1]


def test_reveal_safe_cell_records_next_multiplier_and_potential_win() -> None:
    game = started()

    result = mines.reveal(game, 10)

    assert result.state.revealed_count == 1
    assert result.state.cells[10].revealed is True
    assert result.state.cells[10].multiplier == pytest.approx(mines.multiplier(3, 1))
    assert result.state.potential_win == 113
    assert result.balance_delta == 0


def test_reveal_mine_loses_and_shows_all_mines() -> None:
    game = mines.reveal(started(), 10).state

    result = mines.reveal(game, 1)

    assert result.state.active is False
    assert result.state.result is MinesResult.LOSE
    assert result.balance_delta == 0
    assert all(result.state.cells[index].revealed for index in (0, 1, 2))
    assert result.state.cells[3].revealed is False
    assert result.events[0]["kind"] == "lose"


@pytest.mark.parametrize("index", [-1, 25, 100, "3", None, True, False])
def test_reveal_out_of_range_is_a_no_op(index) -> None:
    game = started()

    result = mines.reveal(game, index)

    assert result.state is game
    assert result.balance_delta == 0


def test_reveal_already_revealed_or_inactive_is_a_no_op() -> None:
    game = mines.reveal(started(), 10).state

    assert mines.reveal(game, 10).state is game
    idle = mines.new_game()
    assert mines.reveal(idle, 5).state is idle


def test_cashout_requires_a_revealed_cell() -> None:
    with pytest.raises(InvalidActionError):
        mines.cashout(started())
    with pytest.raises(InvalidActionError):
        mines.cashout(mines.new_game())


def test_cashout_credits_potential_win_and_reveals_mines() -> None:
    game = mines.reveal(started(), 10).state

    result = mines.cashout(game)

    assert result.balance_delta == 113
    assert result.state.result is MinesResult.WIN
    assert result.state.active is False
    assert all(result.state.cells[index].revealed for index in (0, 1, 2))
    assert result.events[0]["amount"] == 113


def test_clearing_every_safe_cell_auto_settles_as_win() -> None:
    game = mines.start_game(100, 24, 1000, FIRST_CELLS).state

    result = mines.reveal(game, 24)

    assert result.state.result is MinesResult.WIN
    assert result.state.active is False
    assert result.balance_delta == 2375


def test_to_dict_hides_unrevealed_mines() -> None:
    payload = started().to_dict()

    assert payload["grid"][0]["isMine"] is None
    assert payload["potentialWin"] == 107
    assert payload["canCashout"] is False
