"""
Core data models for the LearnPlay bot.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class GameType(Enum):
    """Kinds of mini-games a game file can describe."""
    QUIZ = "multiple-choice"
    MEMORY = "memory"


@dataclass(frozen=True)
class Question:
    """A single multiple-choice question."""
    text: str
    options: Tuple[str, ...]
    correct_index: int


@dataclass(frozen=True)
class QuizSession:
    """Snapshot of a quiz run. Engines replace it on every accepted action."""
    questions: Tuple[Question, ...]
    current_index: int = 0
    selected_answer: Optional[int] = None
    recorded_answers: Tuple[int, ...] = ()
    correct_count: int = 0
    time_remaining: int = 30
    is_complete: bool = False
    final_score: Optional[int] = None

    @property
    def current_question(self) -> Optional[Question]:
        if self.is_complete:
            return None
        return self.questions[self.current_index]

    @property
    def question_count(self) -> int:
        return len(self.questions)


@dataclass(frozen=True)
class CardDefinition:
    """Host-supplied card: a face label and the key it shares with its twin."""
    label: str
    pair_key: int


@dataclass(frozen=True)
class Card:
    """A card as dealt into a memory deck."""
    identity: int
    pair_key: int
    label: str
    is_flipped: bool = False
    is_matched: bool = False


@dataclass(frozen=True)
class MemorySession:
    """Snapshot of a memory run."""
    cards: Tuple[Card, ...]
    total_pairs: int
    flipped_pending: Tuple[int, ...] = ()
    matched_pair_count: int = 0
    move_count: int = 0
    elapsed_seconds: int = 0
    started: bool = False
    is_complete: bool = False
    final_score: Optional[int] = None


@dataclass
class GameSettings:
    """Configuration settings applied when a game is started."""
    question_count: Optional[int] = None
    random_order: bool = False
    timer_duration: int = 30
    mismatch_delay: float = 1.0


@dataclass
class GameDefinition:
    """A playable game loaded from a content file."""
    game_id: str
    title: str
    game_type: GameType
    description: str = ""
    questions: List[Question] = field(default_factory=list)
    cards: List[CardDefinition] = field(default_factory=list)


@dataclass
class Lesson:
    """A readable lesson loaded from a content file."""
    lesson_id: str
    title: str
    content: str
    order: int = 0
    description: str = ""
    is_published: bool = True


@dataclass
class ScoreRecord:
    """A persisted game result."""
    user_id: int
    game_id: str
    score: int
    completed_at: datetime
    time_spent: Optional[int] = None


@dataclass
class LessonProgress:
    """A user's completion state for one lesson."""
    user_id: int
    lesson_id: str
    completed: bool
    completed_at: Optional[datetime] = None
