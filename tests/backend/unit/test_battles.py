import pytest

from gemcasino.backend import battles
from gemcasino.backend.battles import BattleStatus, CaseBattleTicket
from gemcasino.backend.errors import InsufficientFundsError, InvalidActionError, InvalidConfigurationError
from gemcasino.backend.rng import FixedSequenceSource

COMMON = 0.0
LEGENDARY = 0.99


def full_battle(**overrides) -> battles.CaseBattle:
    ticket = {
        "id": "b1",
        "name": "Gems Galore",
        "price_per_player": 500,
        "cases_to_open": 1,
        "max_players": 2,
        "participant_ids": ["user_a", "bot-1"],
        "status": "in-progress",
    }
    ticket.update(overrides)
    return battles.battle_from_ticket(ticket)


def test_ticket_is_tagged_and_round_trips() -> None:
    battle = full_battle()

    ticket = battle.to_ticket()

    assert ticket.kind == "case-battle"
    assert battles.battle_from_ticket(ticket) == battle
    assert battles.battle_from_ticket(ticket.model_dump()) == battle


@pytest.mark.parametrize(
    "overrides",
    [
        {"kind": "mines"},
        {"price_per_player": 0},
        {"cases_to_open": 0},
        {"max_players": 1},
        {"participant_ids": ["a", "b", "c"]},
        {"participant_ids": ["a", "a"]},
        {"status": "finished"},
    ],
)
def test_ticket_validation_rejects_bad_payloads(overrides) -> None:
    with pytest.raises(InvalidConfigurationError):
        full_battle(**overrides)


def test_create_battle_seats_creator_and_debits_price() -> None:
    result = battles.create_battle("user_a", 1000, price_per_player=100, cases_to_open=3, max_players=2)

    assert result.state.participant_ids == ("user_a",)
    assert result.state.status is BattleStatus.WAITING
    assert result.state.name == "user_a's Battle"
    assert result.balance_delta == -100


def test_create_battle_checks_balance_and_details() -> None:
    with pytest.raises(InsufficientFundsError):
        battles.create_battle("user_a", 50, price_per_player=100, cases_to_open=3, max_players=2)
    with pytest.raises(InvalidConfigurationError):
        battles.create_battle("user_a", 1000, price_per_player=100, cases_to_open=3, max_players=1)


def test_joining_the_last_seat_starts_the_battle() -> None:
    waiting = full_battle(participant_ids=["bot-1"], status="waiting")

    result = battles.join_battle(waiting, "user_a", 1000)

    assert result.state.current_players == 2
    assert result.state.status is BattleStatus.IN_PROGRESS
    assert result.balance_delta == -500
    assert result.events[0]["message"] == "Battle starting!"


def test_join_rejections() -> None:
    waiting = full_battle(participant_ids=["user_a"], status="waiting", max_players=3)

    with pytest.raises(InvalidActionError):
        battles.join_battle(waiting, "user_a", 1000)
    with pytest.raises(InsufficientFundsError):
        battles.join_battle(waiting, "user_b", 499)
    with pytest.raises(InvalidActionError):
        battles.join_battle(full_battle(), "user_b", 1000)


def test_fill_with_opponents_takes_free_bot_names() -> None:
    waiting = full_battle(participant_ids=["bot-1"], status="waiting", max_players=4)

    filled = battles.fill_with_opponents(waiting)

    assert filled.participant_ids == ("bot-1", "bot-2", "bot-3", "bot-4")
    assert filled.status is BattleStatus.IN_PROGRESS


def test_highest_final_value_wins_pot_minus_fee() -> None:
    rng = FixedSequenceSource([LEGENDARY, COMMON])

    settlement = battles.run_battle(full_battle(), rng)

    assert settlement.winner_id == "user_a"
    assert settlement.delta_for("user_a") == 900
    assert settlement.delta_for("bot-1") == 0
    assert settlement.battle.status is BattleStatus.COMPLETED
    assert [opening.final_value for opening in settlement.openings] == [1000, 50]


def test_final_revealed_item_decides_not_the_total() -> None:
    # user_a opens Legendary then Common, bot-1 opens Common then Rare.
    rng = FixedSequenceSource([LEGENDARY, COMMON, COMMON, 0.8])

    settlement = battles.run_battle(full_battle(cases_to_open=2), rng)

    user, bot = settlement.openings
    assert user.total_value > bot.total_value
    assert settlement.winner_id == "bot-1"


def test_tie_returns_every_stake() -> None:
    settlement = battles.run_battle(full_battle(max_players=3, participant_ids=["user_a", "bot-1", "bot-2"]), FixedSequenceSource([COMMON]))

    assert settlement.winner_id is None
    assert settlement.payouts == {"user_a": 500, "bot-1": 500, "bot-2": 500}
    assert battles.settlement_events(settlement, "user_a")[0]["kind"] == "push"


def test_settle_requires_full_battle_and_every_opening() -> None:
    waiting = full_battle(participant_ids=["user_a"], status="waiting")
    with pytest.raises(InvalidActionError):
        battles.settle_battle(waiting, ())

    battle = full_battle()
    only_one = (battles.open_cases(battle, "user_a", FixedSequenceSource([COMMON])),)
    with pytest.raises(InvalidActionError):
        battles.settle_battle(battle, only_one)


def test_open_cases_uses_case_type_multiplier() -> None:
    battle = full_battle(case_type=4, price_per_player=100)

    opening = battles.open_cases(battle, "user_a", FixedSequenceSource([LEGENDARY]))

    assert opening.final_value == 1000


def test_winner_payout_is_floored() -> None:
    assert full_battle(price_per_player=333).winner_payout == 599


def test_ticket_model_defaults() -> None:
    ticket = CaseBattleTicket(id="x", name="n", price_per_player=1, cases_to_open=1, max_players=2)

    assert ticket.status is BattleStatus.WAITING
    assert ticket.participant_ids == []
