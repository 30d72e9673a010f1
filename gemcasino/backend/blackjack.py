"""Blackjack round engine.

The round is an immutable value; every operation returns an ``ActionResult``
with the next round, the balance delta to apply and notification events.
The dealer's turn is advanced one card per ``dealer_step`` call so the caller
can schedule each draw as its own tick.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .cards import Card, describe_hand, draw_card, fresh_deck, hand_value, is_blackjack
from .errors import InvalidActionError
from .models import ActionResult, notification, validate_bet
from .rng import RandomOutcomeSource

logger = logging.getLogger(__name__)

DEALER_STANDS_ON = 17


class RoundState(str, Enum):
    BETTING = "betting"
    PLAYING = "playing"
    DEALER_TURN = "dealer-turn"
    COMPLETE = "complete"


class RoundResult(str, Enum):
    PENDING = "pending"
    PLAYER_BLACKJACK = "player-blackjack"
    PLAYER_WIN = "player-win"
    DEALER_WIN = "dealer-win"
    PUSH = "push"


PAYOUT_MULTIPLIERS = {
    RoundResult.PLAYER_BLACKJACK: 2.5,
    RoundResult.PLAYER_WIN: 2.0,
    RoundResult.PUSH: 1.0,
    RoundResult.DEALER_WIN: 0.0,
}


@dataclass(frozen=True)
class BlackjackRound:
    deck: tuple[Card, ...] = ()
    player_hand: tuple[Card, ...] = ()
    dealer_hand: tuple[Card, ...] = ()
    bet_amount: int = 0
    state: RoundState = RoundState.BETTING
    result: RoundResult = RoundResult.PENDING

    @property
    def player_value(self) -> int:
        return hand_value(self.player_hand)

    @property
    def dealer_value(self) -> int:
        return hand_value(self.dealer_hand)

    @property
    def in_progress(self) -> bool:
        return self.state in (RoundState.PLAYING, RoundState.DEALER_TURN)

    def to_dict(self) -> dict[str, Any]:
        return {
            "playerHand": describe_hand(self.player_hand),
            "dealerHand": describe_hand(self.dealer_hand),
            "playerValue": self.player_value,
            "dealerValue": self.dealer_value,
            "betAmount": self.bet_amount,
            "status": self.state.value,
            "result": self.result.value,
            "cardsRemaining": len(self.deck),
        }


def new_round() -> BlackjackRound:
    return BlackjackRound()


def payout_for(result: RoundResult, bet_amount: int) -> int:
    return math.floor(bet_amount * PAYOUT_MULTIPLIERS.get(result, 0.0))


def deal(round_: BlackjackRound, bet: Any, balance: int, rng: RandomOutcomeSource) -> ActionResult[BlackjackRound]:
    if round_.in_progress:
        raise InvalidActionError("Finish the current hand before dealing")
    bet_amount = validate_bet(bet, balance)

    deck = fresh_deck(rng)
    player: list[Card] = []
    dealer: list[Card] = []
    for _ in range(2):
        card, deck = draw_card(deck)
        player.append(card)
        card, deck = draw_card(deck)
        dealer.append(card)

    dealt = BlackjackRound(
        deck=deck,
        player_hand=tuple(player),
        dealer_hand=tuple(dealer),
        bet_amount=bet_amount,
        state=RoundState.PLAYING,
        result=RoundResult.PENDING,
    )
    logger.debug("dealt player=%s dealer=%s bet=%s", describe_hand(player), describe_hand(dealer), bet_amount)

    if is_blackjack(dealt.player_hand):
        outcome = RoundResult.PUSH if is_blackjack(dealt.dealer_hand) else RoundResult.PLAYER_BLACKJACK
        settled = _settle(dealt, outcome)
        return ActionResult(
            state=settled.state,
            balance_delta=settled.balance_delta - bet_amount,
            events=settled.events,
        )
    return ActionResult(state=dealt, balance_delta=-bet_amount, events=[])


def hit(round_: BlackjackRound) -> ActionResult[BlackjackRound]:
    if round_.state is not RoundState.PLAYING:
        raise InvalidActionError("You can only hit while playing a hand")
    card, deck = draw_card(round_.deck)
    next_round = replace(round_, deck=deck, player_hand=round_.player_hand + (card,))
    if next_round.player_value > 21:
        return _settle(next_round, RoundResult.DEALER_WIN)
    return ActionResult(state=next_round)


def stand(round_: BlackjackRound) -> ActionResult[BlackjackRound]:
    if round_.state is not RoundState.PLAYING:
        raise InvalidActionError("You can only stand while playing a hand")
    return ActionResult(state=replace(round_, state=RoundState.DEALER_TURN))


def dealer_should_draw(round_: BlackjackRound) -> bool:
    return round_.dealer_value < DEALER_STANDS_ON


def dealer_step(round_: BlackjackRound) -> ActionResult[BlackjackRound]:
    """Draw one dealer card, or settle the hand once the dealer stands."""
    if round_.state is not RoundState.DEALER_TURN:
        raise InvalidActionError("It is not the dealer's turn")
    if dealer_should_draw(round_):
        card, deck = draw_card(round_.deck)
        logger.debug("dealer draws %s", card)
        return ActionResult(state=replace(round_, deck=deck, dealer_hand=round_.dealer_hand + (card,)))

    player_value = round_.player_value
    dealer_value = round_.dealer_value
    if dealer_value > 21 or player_value > dealer_value:
        outcome = RoundResult.PLAYER_WIN
    elif dealer_value > player_value:
        outcome = RoundResult.DEALER_WIN
    else:
        outcome = RoundResult.PUSH
    return _settle(round_, outcome)


def play_dealer(round_: BlackjackRound) -> ActionResult[BlackjackRound]:
    """Run the dealer's turn to completion and fold every step into one result."""
    current = round_
    delta = 0
    events: list[dict[str, Any]] = []
    while current.state is RoundState.DEALER_TURN:
        step = dealer_step(current)
        current = step.state
        delta += step.balance_delta
        events.extend(step.events)
    return ActionResult(state=current, balance_delta=delta, events=events)


def reset(round_: BlackjackRound) -> BlackjackRound:
    if round_.in_progress:
        logger.warning("resetting unsettled round, bet of %s is forfeited", round_.bet_amount)
    return new_round()


def _settle(round_: BlackjackRound, outcome: RoundResult) -> ActionResult[BlackjackRound]:
    payout = payout_for(outcome, round_.bet_amount)
    settled = replace(round_, state=RoundState.COMPLETE, result=outcome)
    logger.info(
        "blackjack settled result=%s player=%s dealer=%s payout=%s",
        outcome.value,
        settled.player_value,
        settled.dealer_value,
        payout,
    )
    return ActionResult(state=settled, balance_delta=payout, events=[_outcome_event(outcome, payout)])


def _outcome_event(outcome: RoundResult, payout: int) -> dict[str, Any]:
    if outcome is RoundResult.PLAYER_BLACKJACK:
        return notification("win", f"Blackjack! You won {payout} gems!", payout)
    if outcome is RoundResult.PLAYER_WIN:
        return notification("win", f"You win! You won {payout} gems!", payout)
    if outcome is RoundResult.PUSH:
        return notification("push", "Push! Your bet has been returned.", payout)
    return notification("lose", "Dealer wins! Better luck next time.")
