"""
JSON-file persistence for game scores and lesson progress.
"""
import json
import logging
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import LessonProgress, ScoreRecord


class ProgressStore:
    """
    Stores per-user game scores and lesson completion in one JSON file.

    File layout:
    {
        "scores": [{"user_id", "game_id", "score", "time_spent", "completed_at"}],
        "lesson_progress": {"<user_id>": {"<lesson_id>": {"completed", "completed_at"}}}
    }
    """

    def __init__(self, file_path: str = "./data/progress.json"):
        self.file_path = Path(file_path)
        self.logger = logging.getLogger(__name__)
        self._data = self._load()

    @staticmethod
    def _empty() -> Dict[str, Any]:
        return {"scores": [], "lesson_progress": {}}

    def _load(self) -> Dict[str, Any]:
        if not self.file_path.exists():
            return self._empty()

        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            backup_path = self.file_path.with_suffix(self.file_path.suffix + ".bak")
            self.logger.error(f"Corrupt progress file {self.file_path}: {e}; moved to {backup_path}")
            shutil.move(str(self.file_path), str(backup_path))
            return self._empty()
        except OSError as e:
            self.logger.error(f"Failed to read progress file {self.file_path}: {e}")
            return self._empty()

        if not isinstance(data, dict):
            self.logger.error(f"Progress file {self.file_path} is not a JSON object, starting empty")
            return self._empty()

        data.setdefault("scores", [])
        data.setdefault("lesson_progress", {})
        return data

    def _save(self) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
        os.replace(temp_path, self.file_path)

    def record_score(
        self,
        user_id: int,
        game_id: str,
        score: int,
        time_spent: Optional[int] = None
    ) -> ScoreRecord:
        """
        Persist a finished game's score.

        Args:
            user_id: Player identifier
            game_id: Identifier of the game played
            score: Final score, clamped to 0..100
            time_spent: Seconds played, when the game measures it

        Returns:
            The stored record
        """
        record = ScoreRecord(
            user_id=user_id,
            game_id=game_id,
            score=max(0, min(100, int(score))),
            completed_at=datetime.now(timezone.utc),
            time_spent=time_spent
        )
        self._data["scores"].append({
            "user_id": record.user_id,
            "game_id": record.game_id,
            "score": record.score,
            "time_spent": record.time_spent,
            "completed_at": record.completed_at.isoformat()
        })
        try:
            self._save()
        except OSError:
            self._data["scores"].pop()
            raise
        self.logger.info(f"Recorded score {record.score} for user {user_id} on game '{game_id}'")
        return record

    def get_user_scores(self, user_id: int) -> List[ScoreRecord]:
        """All of a user's scores, newest first."""
        records = [
            ScoreRecord(
                user_id=entry["user_id"],
                game_id=entry["game_id"],
                score=entry["score"],
                completed_at=datetime.fromisoformat(entry["completed_at"]),
                time_spent=entry.get("time_spent")
            )
            for entry in self._data["scores"]
            if entry.get("user_id") == user_id
        ]
        return sorted(records, key=lambda record: record.completed_at, reverse=True)

    def get_user_stats(self, user_id: int) -> Dict[str, int]:
        """
        Summarize a user's game results.

        Returns:
            Dictionary with games_played, average_score and best_score
        """
        scores = [record.score for record in self.get_user_scores(user_id)]
        if not scores:
            return {'games_played': 0, 'average_score': 0, 'best_score': 0}

        return {
            'games_played': len(scores),
            'average_score': (2 * sum(scores) + len(scores)) // (2 * len(scores)),
            'best_score': max(scores)
        }

    def set_lesson_progress(self, user_id: int, lesson_id: str, completed: bool) -> LessonProgress:
        """
        Create or update a user's completion state for a lesson.

        Args:
            user_id: Reader identifier
            lesson_id: Identifier of the lesson
            completed: Whether the lesson is finished

        Returns:
            The stored progress
        """
        completed_at = datetime.now(timezone.utc) if completed else None
        user_progress = self._data["lesson_progress"].setdefault(str(user_id), {})
        previous = user_progress.get(lesson_id)
        user_progress[lesson_id] = {
            "completed": completed,
            "completed_at": completed_at.isoformat() if completed_at else None
        }
        try:
            self._save()
        except OSError:
            if previous is None:
                del user_progress[lesson_id]
            else:
                user_progress[lesson_id] = previous
            raise
        self.logger.info(f"Lesson '{lesson_id}' marked {'complete' if completed else 'incomplete'} for user {user_id}")
        return LessonProgress(user_id=user_id, lesson_id=lesson_id, completed=completed, completed_at=completed_at)

    def get_lesson_progress(self, user_id: int) -> Dict[str, LessonProgress]:
        """A user's lesson progress keyed by lesson id."""
        user_progress = self._data["lesson_progress"].get(str(user_id), {})
        return {
            lesson_id: LessonProgress(
                user_id=user_id,
                lesson_id=lesson_id,
                completed=entry.get("completed", False),
                completed_at=datetime.fromisoformat(entry["completed_at"]) if entry.get("completed_at") else None
            )
            for lesson_id, entry in user_progress.items()
        }
