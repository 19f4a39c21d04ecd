"""
Quiz engine core logic for the LearnPlay bot.
Drives a run of multiple-choice questions, each under a countdown, and scores it.
"""
import logging
from dataclasses import replace
from typing import Callable, List, Optional, Sequence, Tuple

from .models import Question, QuizSession

logger = logging.getLogger(__name__)

QuizCompletionCallback = Callable[[int, Tuple[int, ...]], None]

NO_ANSWER = -1


def percentage_score(correct_count: int, question_count: int) -> int:
    """
    Integer percentage of correct answers, halves rounded up.

    Args:
        correct_count: Number of correct answers
        question_count: Number of questions in the run

    Returns:
        Score between 0 and 100
    """
    return (200 * correct_count + question_count) // (2 * question_count)


class QuizEngine:
    """
    State machine for one quiz run.

    The session is AwaitingAnswer(i) until the last question is advanced past,
    then Complete. Only reset() leaves Complete. Every mutator returns the
    current QuizSession snapshot; rejected calls return it unchanged.
    """

    DEFAULT_TIME_LIMIT = 30

    def __init__(
        self,
        questions: Sequence[Question],
        on_complete: Optional[QuizCompletionCallback] = None,
        time_limit: int = DEFAULT_TIME_LIMIT
    ):
        """
        Initialize the engine with the questions to play.

        Args:
            questions: Ordered, non-empty list of questions
            on_complete: Called once with (final_score, recorded_answers)
            time_limit: Seconds allowed per question

        Raises:
            ValueError: If the question list or a question is malformed
        """
        self._validate_questions(questions)
        if time_limit < 1:
            raise ValueError(f"Time limit must be at least 1 second, got {time_limit}")

        self._questions: Tuple[Question, ...] = tuple(questions)
        self._on_complete = on_complete
        self._time_limit = time_limit
        self._session = self._initial_session()

    @staticmethod
    def _validate_questions(questions: Sequence[Question]) -> None:
        if not questions:
            raise ValueError("Cannot start a quiz without questions")

        for i, question in enumerate(questions):
            if not question.options:
                raise ValueError(f"Question {i} has no options")
            if not 0 <= question.correct_index < len(question.options):
                raise ValueError(
                    f"Question {i} correct index {question.correct_index} is outside "
                    f"its {len(question.options)} options"
                )

    def _initial_session(self) -> QuizSession:
        return QuizSession(questions=self._questions, time_remaining=self._time_limit)

    @property
    def session(self) -> QuizSession:
        return self._session

    @property
    def questions(self) -> List[Question]:
        return list(self._questions)

    @property
    def time_limit(self) -> int:
        return self._time_limit

    def select_answer(self, option_index: int) -> QuizSession:
        """
        Set the pending answer for the current question without advancing.

        Args:
            option_index: Index into the current question's options

        Returns:
            The current session snapshot
        """
        session = self._session
        if session.is_complete:
            logger.debug("Ignoring answer selection on a completed quiz")
            return session

        options = session.current_question.options
        if isinstance(option_index, bool) or not 0 <= option_index < len(options):
            logger.debug(f"Ignoring out-of-range option {option_index} for question {session.current_index}")
            return session

        self._session = replace(session, selected_answer=option_index)
        return self._session

    def tick(self) -> QuizSession:
        """Count down one second; a countdown reaching zero advances the quiz."""
        session = self._session
        if session.is_complete:
            return session

        self._session = replace(session, time_remaining=session.time_remaining - 1)
        if self._session.time_remaining <= 0:
            logger.debug(f"Question {session.current_index} timed out")
            return self.advance()
        return self._session

    def advance(self) -> QuizSession:
        """
        Record the pending answer and move on, completing after the last question.

        Returns:
            The current session snapshot
        """
        session = self._session
        if session.is_complete:
            logger.debug("Ignoring advance on a completed quiz")
            return session

        answer = session.selected_answer if session.selected_answer is not None else NO_ANSWER
        recorded = session.recorded_answers + (answer,)
        correct_count = session.correct_count
        if answer == session.current_question.correct_index:
            correct_count += 1

        if session.current_index == len(self._questions) - 1:
            final_score = percentage_score(correct_count, len(self._questions))
            self._session = replace(
                session,
                current_index=len(self._questions),
                selected_answer=None,
                recorded_answers=recorded,
                correct_count=correct_count,
                is_complete=True,
                final_score=final_score
            )
            logger.info(f"Quiz completed: {correct_count}/{len(self._questions)} correct, score {final_score}")
            if self._on_complete is not None:
                self._on_complete(final_score, recorded)
        else:
            self._session = replace(
                session,
                current_index=session.current_index + 1,
                selected_answer=None,
                recorded_answers=recorded,
                correct_count=correct_count,
                time_remaining=self._time_limit
            )
        return self._session

    def reset(self) -> QuizSession:
        """Return to the initial state with the same questions."""
        self._session = self._initial_session()
        return self._session
