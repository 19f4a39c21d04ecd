"""
Game session controller for the LearnPlay bot.
Hosts one game per Discord channel: builds engines, drives their timers,
and persists scores when a game completes.
"""
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .config_manager import ConfigManager
from .data_manager import DataManager
from .game_timer import DelayedCallback, GameTimer
from .memory_engine import MemoryEngine
from .models import (
    GameDefinition,
    GameSettings,
    GameType,
    MemorySession,
    Question,
    QuizSession,
    ScoreRecord,
)
from .progress_store import ProgressStore
from .quiz_engine import QuizEngine


class SessionState(Enum):
    """Enumeration of possible game session states."""
    INACTIVE = "inactive"
    ACTIVE = "active"
    COMPLETED = "completed"


class GameControllerError(Exception):
    """Base exception for game controller errors."""
    pass


class SessionConflictError(GameControllerError):
    """Raised when a channel already has a game in progress."""
    pass


class SessionNotFoundError(GameControllerError):
    """Raised when operating on a channel without a game."""
    pass


class InvalidSessionStateError(GameControllerError):
    """Raised when the channel's game cannot perform the requested operation."""
    pass


class GameNotFoundError(GameControllerError):
    """Raised when the requested game is not loaded."""
    pass


@dataclass
class ActiveGame:
    """A game being played in a channel, with the timers that drive it."""
    channel_id: int
    user_id: int
    game: GameDefinition
    engine: Union[QuizEngine, MemoryEngine]
    ticker: GameTimer
    mismatch_timer: Optional[DelayedCallback]
    on_update: Optional[Callable[["ActiveGame"], Awaitable[Any]]]
    started_at: datetime
    score_record: Optional[ScoreRecord] = None

    @property
    def session(self) -> Union[QuizSession, MemorySession]:
        return self.engine.session

    @property
    def is_complete(self) -> bool:
        return self.engine.session.is_complete

    @property
    def session_id(self) -> str:
        return f"{self.channel_id}:{self.game.game_id}"


UpdateCallback = Callable[[ActiveGame], Awaitable[Any]]


class GameController:
    """
    Orchestrates game sessions across Discord channels.

    Each channel holds at most one game. A completed game stays visible until
    it is reset, stopped, or replaced by a new game.
    """

    def __init__(
        self,
        data_manager: DataManager,
        config_manager: ConfigManager,
        progress_store: ProgressStore,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the game controller.

        Args:
            data_manager: Source of game definitions
            config_manager: Source of game settings
            progress_store: Where completed scores are persisted
            rng: Random source for question order and card shuffles
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.progress_store = progress_store
        self._rng = rng or random.Random()
        self._games: Dict[int, ActiveGame] = {}

        self.logger.info("GameController initialized")

    def select_questions(self, questions: List[Question], settings: GameSettings) -> List[Question]:
        """
        Select and order quiz questions based on settings.

        Args:
            questions: Questions defined by the game
            settings: Game configuration settings

        Returns:
            List of selected and ordered questions

        Raises:
            ValueError: If questions list is empty
        """
        if not questions:
            raise ValueError("Cannot select questions from empty list")

        selected = list(questions)
        if settings.random_order:
            self._rng.shuffle(selected)

        if settings.question_count is not None:
            selected = selected[:max(settings.question_count, 1)]

        return selected

    async def start_game(
        self,
        channel_id: int,
        user_id: int,
        game_id: str,
        on_update: Optional[UpdateCallback] = None
    ) -> ActiveGame:
        """
        Start a game in a channel and begin ticking.

        Args:
            channel_id: Discord channel identifier
            user_id: Player who owns the game
            game_id: Identifier of a loaded game
            on_update: Awaited after timer-driven state changes

        Returns:
            The started game

        Raises:
            SessionConflictError: If the channel already has a game in progress
            GameNotFoundError: If the game is not loaded
        """
        if self.has_active_game(channel_id):
            raise SessionConflictError(f"A game is already in progress in channel {channel_id}")

        game = self.data_manager.get_game(game_id)
        if game is None:
            raise GameNotFoundError(f"No game named '{game_id}'")

        if channel_id in self._games:
            await self.stop_game(channel_id)

        settings = self.config_manager.get_game_settings()
        session_id = f"{channel_id}:{game_id}"

        if game.game_type is GameType.QUIZ:
            engine = QuizEngine(
                self.select_questions(game.questions, settings),
                on_complete=lambda score, answers: self._handle_completion(channel_id, score, None),
                time_limit=settings.timer_duration
            )
            mismatch_timer = None
        else:
            engine = MemoryEngine(
                game.cards,
                on_complete=lambda score, elapsed: self._handle_completion(channel_id, score, elapsed),
                rng=self._rng
            )
            mismatch_timer = DelayedCallback(session_id, settings.mismatch_delay)

        active = ActiveGame(
            channel_id=channel_id,
            user_id=user_id,
            game=game,
            engine=engine,
            ticker=GameTimer(session_id),
            mismatch_timer=mismatch_timer,
            on_update=on_update,
            started_at=datetime.now()
        )
        self._games[channel_id] = active
        self._start_ticker(active)

        self.logger.info(
            f"Started {game.game_type.value} game '{game_id}' in channel {channel_id} for user {user_id}",
            extra={
                'event_type': 'game_started',
                'channel_id': channel_id,
                'user_id': user_id,
                'game_id': game_id,
                'timestamp': time.time()
            }
        )
        return active

    def _start_ticker(self, active: ActiveGame) -> None:
        async def on_tick():
            before = active.engine.session
            after = active.engine.tick()
            if after is not before:
                await self._notify(active)

        active.ticker.start(on_tick, should_continue=lambda: not active.engine.session.is_complete)

    async def _notify(self, active: ActiveGame) -> None:
        if active.on_update is not None:
            await active.on_update(active)

    def _handle_completion(self, channel_id: int, score: int, time_spent: Optional[int]) -> None:
        active = self._games.get(channel_id)
        if active is None:
            return

        try:
            active.score_record = self.progress_store.record_score(
                active.user_id,
                active.game.game_id,
                score,
                time_spent
            )
        except OSError as e:
            self.logger.error(
                f"Failed to persist score for channel {channel_id}: {e}",
                extra={
                    'event_type': 'score_persist_failed',
                    'channel_id': channel_id,
                    'game_id': active.game.game_id,
                    'timestamp': time.time()
                }
            )

        self.logger.info(
            f"Game '{active.game.game_id}' completed in channel {channel_id} with score {score}",
            extra={
                'event_type': 'game_completed',
                'channel_id': channel_id,
                'score': score,
                'time_spent': time_spent,
                'timestamp': time.time()
            }
        )

    def _require_game(self, channel_id: int, game_type: Optional[GameType] = None) -> ActiveGame:
        active = self._games.get(channel_id)
        if active is None:
            raise SessionNotFoundError(f"No game in channel {channel_id}")
        if game_type is not None and active.game.game_type is not game_type:
            raise InvalidSessionStateError(
                f"Channel {channel_id} is playing a {active.game.game_type.value} game"
            )
        return active

    def select_answer(self, channel_id: int, option_index: int) -> QuizSession:
        """Set the pending answer of the channel's quiz."""
        return self._require_game(channel_id, GameType.QUIZ).engine.select_answer(option_index)

    def advance(self, channel_id: int) -> QuizSession:
        """Submit the pending answer of the channel's quiz and move on."""
        return self._require_game(channel_id, GameType.QUIZ).engine.advance()

    def flip_card(self, channel_id: int, index: int) -> MemorySession:
        """
        Flip a card in the channel's memory game.

        A mismatch schedules the pair to be hidden after the configured delay.
        Must be called from the running event loop.
        """
        active = self._require_game(channel_id, GameType.MEMORY)
        session = active.engine.flip_card(index)

        if active.engine.awaiting_mismatch and not active.mismatch_timer.is_pending:
            async def hide_cards():
                active.engine.hide_mismatch()
                await self._notify(active)

            active.mismatch_timer.schedule(hide_cards)

        return session

    async def _cancel_timers(self, active: ActiveGame) -> None:
        active.ticker.cancel()
        if active.mismatch_timer is not None:
            active.mismatch_timer.cancel()

        await active.ticker.wait_closed()
        if active.mismatch_timer is not None:
            await active.mismatch_timer.wait_closed()

    async def reset_game(self, channel_id: int) -> Union[QuizSession, MemorySession]:
        """
        Restart the channel's game from its initial state.

        Raises:
            SessionNotFoundError: If the channel has no game
        """
        active = self._require_game(channel_id)
        await self._cancel_timers(active)

        session = active.engine.reset()
        active.score_record = None
        active.ticker = GameTimer(active.session_id)
        self._start_ticker(active)

        self.logger.info(f"Reset game '{active.game.game_id}' in channel {channel_id}")
        return session

    async def stop_game(self, channel_id: int) -> bool:
        """
        Stop and remove the channel's game.

        Returns:
            True if a game was stopped, False if there was none
        """
        active = self._games.pop(channel_id, None)
        if active is None:
            return False

        await self._cancel_timers(active)
        self.logger.info(f"Stopped game '{active.game.game_id}' in channel {channel_id}")
        return True

    async def shutdown(self) -> None:
        """Stop every game; used when the bot closes."""
        for channel_id in list(self._games.keys()):
            await self.stop_game(channel_id)

    def get_game(self, channel_id: int) -> Optional[ActiveGame]:
        return self._games.get(channel_id)

    def has_active_game(self, channel_id: int) -> bool:
        """True if the channel has a game that is not yet complete."""
        active = self._games.get(channel_id)
        return active is not None and not active.is_complete

    def get_session_state(self, channel_id: int) -> SessionState:
        active = self._games.get(channel_id)
        if active is None:
            return SessionState.INACTIVE
        if active.is_complete:
            return SessionState.COMPLETED
        return SessionState.ACTIVE

    def get_game_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Summarize the channel's game for status displays.

        Returns:
            Dictionary describing progress, or None without a game
        """
        active = self._games.get(channel_id)
        if active is None:
            return None

        progress = {
            'game_id': active.game.game_id,
            'title': active.game.title,
            'game_type': active.game.game_type.value,
            'user_id': active.user_id,
            'state': self.get_session_state(channel_id).value,
            'started_at': active.started_at,
        }
        session = active.session
        if isinstance(session, QuizSession):
            progress.update({
                'current_question': min(session.current_index + 1, session.question_count),
                'total_questions': session.question_count,
                'time_remaining': session.time_remaining,
                'final_score': session.final_score,
            })
        else:
            progress.update({
                'matched_pairs': session.matched_pair_count,
                'total_pairs': session.total_pairs,
                'moves': session.move_count,
                'elapsed_seconds': session.elapsed_seconds,
                'final_score': session.final_score,
            })
        return progress
