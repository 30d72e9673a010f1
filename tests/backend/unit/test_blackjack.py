import pytest

from gemcasino.backend import blackjack
from gemcasino.backend.blackjack import RoundResult, RoundState
from gemcasino.backend.cards import describe_hand
from gemcasino.backend.errors import InsufficientFundsError, InvalidActionError, InvalidBetError
from gemcasino.backend.rng import SystemRandomSource


def test_deal_alternates_player_and_dealer_and_debits_bet(stacked_deck) -> None:
    result = blackjack.deal(blackjack.new_round(), 100, 1000, stacked_deck(["10♠", "6♥", "9♦", "5♣"]))

    assert describe_hand(result.state.player_hand) == ["10♠", "9♦"]
    assert describe_hand(result.state.dealer_hand) == ["6♥", "5♣"]
    assert len(result.state.deck) == 48
    assert result.state.state is RoundState.PLAYING
    assert result.balance_delta == -100
    assert result.events == []


def test_player_blackjack_settles_immediately_with_two_and_a_half_payout(stacked_deck) -> None:
    balance = 1000

    result = blackjack.deal(blackjack.new_round(), 100, balance, stacked_deck(["A♠", "5♥", "K♦", "7♣"]))

    assert result.state.state is RoundState.COMPLETE
    assert result.state.result is RoundResult.PLAYER_BLACKJACK
    assert len(result.state.dealer_hand) == 2
    assert balance + result.balance_delta == 1150
    assert result.events[0]["kind"] == "win"
    assert result.events[0]["amount"] == 250


def test_both_blackjack_is_a_push(stacked_deck) -> None:
    result = blackjack.deal(blackjack.new_round(), 100, 1000, stacked_deck(["A♠", "A♥", "K♦", "Q♣"]))

    assert result.state.result is RoundResult.PUSH
    assert result.balance_delta == 0
    assert result.events[0]["kind"] == "push"


def test_hit_bust_settles_dealer_win(stacked_deck) -> None:
    dealt = blackjack.deal(blackjack.new_round(), 100, 1000, stacked_deck(["10♠", "5♥", "9♦", "7♣", "5♠"])).state

    result = blackjack.hit(dealt)

    assert result.state.player_value == 24
    assert result.state.state is RoundState.COMPLETE
    assert result.state.result is RoundResult.DEALER_WIN
    assert result.balance_delta == 0
    assert result.events[0]["kind"] == "lose"


def test_hit_without_bust_keeps_playing(stacked_deck) -> None:
    dealt = blackjack.deal(blackjack.new_round(), 100, 1000, stacked_deck(["2♠", "5♥", "3♦", "7♣", "4♠"])).state

    result = blackjack.hit(dealt)

    assert result.state.player_value == 9
    assert result.state.state is RoundState.PLAYING
    assert result.balance_delta == 0


def test_dealer_draws_one_card_per_step_until_bust(stacked_deck) -> None:
    dealt = blackjack.deal(
        blackjack.new_round(), 100, 1000, stacked_deck(["10♠", "6♥", "9♦", "5♣", "4♠", "K♥"])
    ).state
    stood = blackjack.stand(dealt).state
    assert stood.state is RoundState.DEALER_TURN
    assert len(stood.dealer_hand) == 2

    first = blackjack.dealer_step(stood)
    assert first.state.dealer_value == 15
    assert first.state.state is RoundState.DEALER_TURN
    assert first.balance_delta == 0

    second = blackjack.dealer_step(first.state)
    assert second.state.dealer_value == 25
    assert second.state.state is RoundState.DEALER_TURN

    final = blackjack.dealer_step(second.state)
    assert final.state.result is RoundResult.PLAYER_WIN
    assert final.balance_delta == 200


@pytest.mark.parametrize(
    ("top", "expected", "payout"),
    [
        (["10♠", "10♥", "8♦", "8♣"], RoundResult.PUSH, 100),
        (["10♠", "10♥", "7♦", "9♣"], RoundResult.DEALER_WIN, 0),
        (["10♠", "A♥", "8♦", "6♣"], RoundResult.PLAYER_WIN, 200),
    ],
)
def test_stand_settlement(stacked_deck, top: list[str], expected: RoundResult, payout: int) -> None:
    dealt = blackjack.deal(blackjack.new_round(), 100, 1000, stacked_deck(top)).state

    result = blackjack.play_dealer(blackjack.stand(dealt).state)

    assert result.state.result is expected
    assert result.state.state is RoundState.COMPLETE
    assert result.balance_delta == payout


def test_dealer_stands_on_soft_seventeen(stacked_deck) -> None:
    dealt = blackjack.deal(blackjack.new_round(), 100, 1000, stacked_deck(["10♠", "A♥", "8♦", "6♣"])).state

    result = blackjack.play_dealer(blackjack.stand(dealt).state)

    assert len(result.state.dealer_hand) == 2
    assert result.state.dealer_value == 17


def test_settlement_is_deterministic_for_a_fixed_deck(stacked_deck) -> None:
    outcomes = []
    for _ in range(2):
        dealt = blackjack.deal(blackjack.new_round(), 100, 1000, stacked_deck(["10♠", "6♥", "7♦", "5♣", "3♠"])).state
        outcomes.append(blackjack.play_dealer(blackjack.stand(dealt).state))

    assert outcomes[0].state == outcomes[1].state
    assert outcomes[0].balance_delta == outcomes[1].balance_delta


def test_blackjack_payout_is_floored() -> None:
    assert blackjack.payout_for(RoundResult.PLAYER_BLACKJACK, 15) == 37


@pytest.mark.parametrize("bet", [0, -5, "100", None, True, 10.5, float("nan")])
def test_deal_rejects_invalid_bets(bet) -> None:
    with pytest.raises(InvalidBetError):
        blackjack.deal(blackjack.new_round(), bet, 1000, SystemRandomSource(1))


def test_deal_rejects_bet_above_balance() -> None:
    with pytest.raises(InsufficientFundsError):
        blackjack.deal(blackjack.new_round(), 1001, 1000, SystemRandomSource(1))


def test_actions_in_the_wrong_state_are_rejected(stacked_deck) -> None:
    fresh = blackjack.new_round()
    with pytest.raises(InvalidActionError):
        blackjack.hit(fresh)
    with pytest.raises(InvalidActionError):
        blackjack.stand(fresh)
    with pytest.raises(InvalidActionError):
        blackjack.dealer_step(fresh)

    dealt = blackjack.deal(fresh, 100, 1000, stacked_deck(["10♠", "6♥", "9♦", "5♣"])).state
    with pytest.raises(InvalidActionError):
        blackjack.deal(dealt, 100, 900, SystemRandomSource(1))


def test_deal_is_allowed_again_after_completion(stacked_deck) -> None:
    finished = blackjack.deal(blackjack.new_round(), 100, 1000, stacked_deck(["A♠", "5♥", "K♦", "7♣"])).state

    again = blackjack.deal(finished, 50, 1150, stacked_deck(["10♠", "6♥", "9♦", "5♣"]))

    assert again.state.state is RoundState.PLAYING
    assert again.state.bet_amount == 50


def test_reset_returns_to_betting(stacked_deck) -> None:
    dealt = blackjack.deal(blackjack.new_round(), 100, 1000, stacked_deck(["10♠", "6♥", "9♦", "5♣"])).state

    reset = blackjack.reset(dealt)

    assert reset.state is RoundState.BETTING
    assert reset.player_hand == ()
    assert reset.deck == ()
    assert reset.to_dict()["status"] == "betting"
