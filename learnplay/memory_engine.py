"""
Memory-match engine core logic for the LearnPlay bot.
Deals a shuffled deck of paired cards and tracks flips, matches, moves and time.
"""
import logging
import random
from collections import Counter
from dataclasses import replace
from typing import Callable, Optional, Sequence, Tuple

from .models import Card, CardDefinition, MemorySession

logger = logging.getLogger(__name__)

MemoryCompletionCallback = Callable[[int, int], None]


def memory_score(move_count: int, elapsed_seconds: int) -> int:
    """One point lost per move and per started ten seconds, never below zero."""
    return max(0, 100 - move_count - elapsed_seconds // 10)


class MemoryEngine:
    """
    State machine for one memory-match run.

    Cards go Unflipped -> Flipped -> Matched, or back to Unflipped once a
    mismatched pair is hidden. The session goes NotStarted -> InProgress ->
    Complete. A mismatched pair stays face up until hide_mismatch() is called
    by the host after its delay window.
    """

    def __init__(
        self,
        card_definitions: Sequence[CardDefinition],
        on_complete: Optional[MemoryCompletionCallback] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the engine and deal the first deck.

        Args:
            card_definitions: Cards already in pairs, each pair key exactly twice
            on_complete: Called once with (final_score, elapsed_seconds)
            rng: Random source used for shuffling; seed it for fixed layouts

        Raises:
            ValueError: If the card list cannot form complete pairs
        """
        self._validate_definitions(card_definitions)
        self._definitions: Tuple[CardDefinition, ...] = tuple(card_definitions)
        self._on_complete = on_complete
        self._rng = rng or random.Random()
        self._session = self._deal()

    @staticmethod
    def _validate_definitions(card_definitions: Sequence[CardDefinition]) -> None:
        if not card_definitions:
            raise ValueError("Cannot deal a memory deck without cards")

        if len(card_definitions) % 2 != 0:
            raise ValueError(f"Memory deck needs an even number of cards, got {len(card_definitions)}")

        counts = Counter(definition.pair_key for definition in card_definitions)
        unpaired = sorted(key for key, count in counts.items() if count != 2)
        if unpaired:
            raise ValueError(f"Pair keys must appear exactly twice: {unpaired}")

    def _deal(self) -> MemorySession:
        shuffled = list(self._definitions)
        self._rng.shuffle(shuffled)
        cards = tuple(
            Card(identity=position, pair_key=definition.pair_key, label=definition.label)
            for position, definition in enumerate(shuffled)
        )
        return MemorySession(cards=cards, total_pairs=len(cards) // 2)

    @property
    def session(self) -> MemorySession:
        return self._session

    @property
    def awaiting_mismatch(self) -> bool:
        """True while a mismatched pair is face up waiting to be hidden."""
        return len(self._session.flipped_pending) == 2

    def tick(self) -> MemorySession:
        """Add one second to the stopwatch while the game is in progress."""
        session = self._session
        if not session.started or session.is_complete:
            return session

        self._session = replace(session, elapsed_seconds=session.elapsed_seconds + 1)
        return self._session

    def flip_card(self, index: int) -> MemorySession:
        """
        Turn a card face up; the second pending card resolves the move.

        Args:
            index: Position of the card in the deck

        Returns:
            The current session snapshot
        """
        session = self._session
        if session.is_complete:
            logger.debug("Ignoring flip on a completed memory game")
            return session

        if isinstance(index, bool) or not 0 <= index < len(session.cards):
            logger.debug(f"Ignoring flip of out-of-range card {index}")
            return session

        card = session.cards[index]
        if card.is_flipped or card.is_matched:
            logger.debug(f"Ignoring flip of card {index}: already face up")
            return session

        if len(session.flipped_pending) >= 2:
            logger.debug(f"Ignoring flip of card {index}: two cards are pending")
            return session

        cards = list(session.cards)
        cards[index] = replace(card, is_flipped=True)
        self._session = replace(
            session,
            cards=tuple(cards),
            flipped_pending=session.flipped_pending + (index,),
            started=True
        )

        if len(self._session.flipped_pending) == 2:
            self._resolve_pending()
        return self._session

    def _resolve_pending(self) -> None:
        session = self._session
        first, second = session.flipped_pending
        move_count = session.move_count + 1

        if session.cards[first].pair_key != session.cards[second].pair_key:
            logger.debug(f"Cards {first} and {second} do not match")
            self._session = replace(session, move_count=move_count)
            return

        cards = list(session.cards)
        for index in (first, second):
            cards[index] = replace(cards[index], is_matched=True)
        self._session = replace(
            session,
            cards=tuple(cards),
            flipped_pending=(),
            matched_pair_count=session.matched_pair_count + 1,
            move_count=move_count
        )
        self._check_completion()

    def _check_completion(self) -> None:
        session = self._session
        if session.is_complete or not session.started:
            return
        if session.matched_pair_count != session.total_pairs:
            return

        final_score = memory_score(session.move_count, session.elapsed_seconds)
        self._session = replace(session, is_complete=True, final_score=final_score)
        logger.info(
            f"Memory game completed in {session.move_count} moves and "
            f"{session.elapsed_seconds}s, score {final_score}"
        )
        if self._on_complete is not None:
            self._on_complete(final_score, session.elapsed_seconds)

    def hide_mismatch(self) -> MemorySession:
        """Turn a mismatched pending pair back face down."""
        session = self._session
        if not self.awaiting_mismatch:
            return session

        cards = list(session.cards)
        for index in session.flipped_pending:
            cards[index] = replace(cards[index], is_flipped=False)
        self._session = replace(session, cards=tuple(cards), flipped_pending=())
        return self._session

    def reset(self) -> MemorySession:
        """Re-shuffle the original cards and start over."""
        self._session = self._deal()
        return self._session

