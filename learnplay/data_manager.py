"""
Data manager for JSON content files: games and lessons.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import CardDefinition, GameDefinition, GameType, Lesson, Question

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_OPTIONS = 20
MAX_MEMORY_CARDS = 20  # one button per card, four rows of five

SAMPLE_GAMES = {
    "programming_quiz": {
        "title": "Programming quiz",
        "description": "Test your programming knowledge",
        "type": "multiple-choice",
        "config": {
            "questions": [
                {
                    "question": "What is a variable?",
                    "options": [
                        "A data type",
                        "A container for storing data",
                        "A function",
                        "A loop"
                    ],
                    "correct": 1
                },
                {
                    "question": "Which symbol starts a single-line comment in JavaScript?",
                    "options": ["//", "/* */", "#", "<!-- -->"],
                    "correct": 0
                }
            ]
        }
    },
    "concept_memory": {
        "title": "Concept memory",
        "description": "Match the programming concepts",
        "type": "memory",
        "config": {
            "pairs": ["Variable", "Function", "Loop"]
        }
    }
}


class DataManager:
    """Manages loading and validation of game and lesson files."""

    def __init__(self, content_directory: str = "./content/"):
        """
        Initialize DataManager with the content directory path.

        Args:
            content_directory: Directory holding games/ and lessons/ subdirectories
        """
        self.content_directory = Path(content_directory)
        self.loaded_games: Dict[str, GameDefinition] = {}
        self.loaded_lessons: Dict[str, Lesson] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for user feedback
        self.sample_games_created = False

    @property
    def games_directory(self) -> Path:
        return self.content_directory / "games"

    @property
    def lessons_directory(self) -> Path:
        return self.content_directory / "lessons"

    def load_content(self) -> Dict[str, GameDefinition]:
        """
        Load all game and lesson files.

        Returns:
            Dictionary mapping game ids to loaded games
        """
        self.loaded_games.clear()
        self.loaded_lessons.clear()
        self.load_errors.clear()
        self.sample_games_created = False

        for directory in (self.games_directory, self.lessons_directory):
            directory_result = self._ensure_directory(directory)
            if not directory_result['success']:
                self.load_errors.append(directory_result['error'])

        for game_file in self._scan_files(self.games_directory):
            result = self._load_file_safely(game_file, self._register_game)
            if not result['success']:
                self.load_errors.append(f"{game_file.name}: {result['error']}")

        for lesson_file in self._scan_files(self.lessons_directory):
            result = self._load_file_safely(lesson_file, self._register_lesson)
            if not result['success']:
                self.load_errors.append(f"{lesson_file.name}: {result['error']}")

        if not self.loaded_games:
            self.logger.warning(f"No games could be loaded from {self.games_directory}")
            self.load_errors.append(f"No game files loaded from {self.games_directory}")
            self._create_sample_games()

        self.logger.info(
            f"Loaded {len(self.loaded_games)} games and {len(self.loaded_lessons)} lessons"
        )
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self.loaded_games

    def _ensure_directory(self, directory: Path) -> Dict[str, Any]:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot create directory {directory}"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"Failed to create directory {directory}: {e}"
            }

        if not os.access(directory, os.R_OK):
            return {
                'success': False,
                'error': f"Permission denied: Cannot read from {directory}"
            }
        return {'success': True}

    def _scan_files(self, directory: Path) -> List[Path]:
        try:
            return sorted(directory.glob("*.json"))
        except OSError as e:
            self.load_errors.append(f"System error scanning {directory}: {e}")
            return []

    def _load_file_safely(self, json_file: Path, register) -> Dict[str, Any]:
        """
        Load one JSON file and hand the parsed data to a register function.

        Args:
            json_file: Path to the JSON file to load
            register: Callable(file_id, data) returning an error string or None

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            file_size = json_file.stat().st_size
            if file_size > MAX_FILE_SIZE:
                return {
                    'success': False,
                    'error': f"File too large ({file_size / 1024 / 1024:.1f}MB). Maximum size is {MAX_FILE_SIZE / 1024 / 1024}MB"
                }

            with open(json_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {json_file}: {e}")
            return {'success': False, 'error': f"Invalid JSON: {e}"}
        except UnicodeDecodeError as e:
            self.logger.error(f"Invalid encoding in {json_file}: {e}")
            return {'success': False, 'error': f"File is not valid UTF-8: {e}"}
        except PermissionError:
            return {'success': False, 'error': "Permission denied: Cannot read file"}
        except OSError as e:
            return {'success': False, 'error': f"System error: {e}"}

        error = register(json_file.stem, data)
        if error:
            self.logger.error(f"Rejected {json_file}: {error}")
            return {'success': False, 'error': error}
        return {'success': True}

    def _register_game(self, game_id: str, data: Any) -> Optional[str]:
        error = self.validate_game_structure(data)
        if error:
            return error

        game = self.parse_game(game_id, data)
        self.loaded_games[game_id] = game
        self.logger.info(f"Loaded {game.game_type.value} game '{game_id}'")
        return None

    def _register_lesson(self, lesson_id: str, data: Any) -> Optional[str]:
        error = self.validate_lesson_structure(data)
        if error:
            return error

        self.loaded_lessons[lesson_id] = Lesson(
            lesson_id=lesson_id,
            title=data["title"],
            content=data["content"],
            order=data.get("order", 0),
            description=data.get("description", ""),
            is_published=data.get("published", True)
        )
        self.logger.info(f"Loaded lesson '{lesson_id}'")
        return None

    def validate_game_structure(self, data: Any) -> Optional[str]:
        """
        Validate that JSON data describes a playable game.

        Expected structure:
        {
            "title": str,
            "description": str,  # Optional
            "type": "multiple-choice" | "memory",
            "config": {"questions": [...]} | {"cards": [...]} | {"pairs": [...]}
        }

        Args:
            data: Parsed JSON data to validate

        Returns:
            None if valid, otherwise a description of the first problem found
        """
        if not isinstance(data, dict):
            return "Game data must be a JSON object"

        if not isinstance(data.get("title"), str) or not data["title"].strip():
            return "Game must have a non-empty 'title' string"

        if "description" in data and not isinstance(data["description"], str):
            return "'description' must be a string"

        game_types = [game_type.value for game_type in GameType]
        if data.get("type") not in game_types:
            return f"'type' must be one of {game_types}"

        config = data.get("config")
        if not isinstance(config, dict):
            return "Game must have a 'config' object"

        if data["type"] == GameType.QUIZ.value:
            return self._validate_quiz_config(config)
        return self._validate_memory_config(config)

    def _validate_quiz_config(self, config: dict) -> Optional[str]:
        questions = config.get("questions")
        if not isinstance(questions, list) or not questions:
            return "Quiz config must contain a non-empty 'questions' array"

        for i, question_data in enumerate(questions):
            if not isinstance(question_data, dict):
                return f"Question {i} must be an object"

            if not isinstance(question_data.get("question"), str):
                return f"Question {i} 'question' field must be a string"

            options = question_data.get("options")
            if not isinstance(options, list) or not options:
                return f"Question {i} 'options' field must be a non-empty array"

            if len(options) > MAX_OPTIONS:
                return f"Question {i} has more than {MAX_OPTIONS} options"

            if not all(isinstance(option, str) for option in options):
                return f"Question {i} options must be strings"

            correct = question_data.get("correct")
            if not isinstance(correct, int) or isinstance(correct, bool):
                return f"Question {i} 'correct' field must be an integer"

            if not 0 <= correct < len(options):
                return f"Question {i} 'correct' index {correct} is outside its options"

        return None

    def _validate_memory_config(self, config: dict) -> Optional[str]:
        if "pairs" in config:
            pairs = config["pairs"]
            if not isinstance(pairs, list) or not pairs:
                return "Memory 'pairs' must be a non-empty array"
            if not all(isinstance(label, str) and label.strip() for label in pairs):
                return "Memory 'pairs' entries must be non-empty strings"
            duplicates = sorted({label for label in pairs if pairs.count(label) > 1})
            if duplicates:
                return f"Memory 'pairs' labels must be unique: {duplicates}"
            if len(pairs) * 2 > MAX_MEMORY_CARDS:
                return f"Memory games are limited to {MAX_MEMORY_CARDS // 2} pairs"
            return None

        cards = config.get("cards")
        if not isinstance(cards, list) or not cards:
            return "Memory config must contain a non-empty 'cards' or 'pairs' array"
        if len(cards) > MAX_MEMORY_CARDS:
            return f"Memory games are limited to {MAX_MEMORY_CARDS} cards"

        counts: Dict[int, int] = {}
        for i, card_data in enumerate(cards):
            if not isinstance(card_data, dict):
                return f"Card {i} must be an object"
            label = card_data.get("label")
            if not isinstance(label, str) or not label.strip():
                return f"Card {i} 'label' field must be a non-empty string"
            pair_key = card_data.get("pair")
            if not isinstance(pair_key, int) or isinstance(pair_key, bool):
                return f"Card {i} 'pair' field must be an integer"
            counts[pair_key] = counts.get(pair_key, 0) + 1

        unpaired = sorted(key for key, count in counts.items() if count != 2)
        if unpaired:
            return f"Memory pair keys must appear exactly twice: {unpaired}"

        return None

    def validate_lesson_structure(self, data: Any) -> Optional[str]:
        """
        Validate lesson JSON data.

        Args:
            data: Parsed JSON data to validate

        Returns:
            None if valid, otherwise a description of the first problem found
        """
        if not isinstance(data, dict):
            return "Lesson data must be a JSON object"

        for key in ("title", "content"):
            if not isinstance(data.get(key), str) or not data[key].strip():
                return f"Lesson must have a non-empty '{key}' string"

        if "order" in data and (not isinstance(data["order"], int) or isinstance(data["order"], bool)):
            return "'order' must be an integer"

        if "published" in data and not isinstance(data["published"], bool):
            return "'published' must be true or false"

        return None

    def parse_game(self, game_id: str, data: dict) -> GameDefinition:
        """
        Build a GameDefinition from validated game data.

        Memory games given as 'pairs' are duplicated here so the engine always
        receives two cards per pair key.

        Args:
            game_id: Identifier for the game (file stem)
            data: Validated game data dictionary

        Returns:
            The parsed game
        """
        game_type = GameType(data["type"])
        config = data["config"]
        game = GameDefinition(
            game_id=game_id,
            title=data["title"],
            game_type=game_type,
            description=data.get("description", "")
        )

        if game_type is GameType.QUIZ:
            game.questions = [
                Question(
                    text=question_data["question"],
                    options=tuple(question_data["options"]),
                    correct_index=question_data["correct"]
                )
                for question_data in config["questions"]
            ]
        elif "pairs" in config:
            game.cards = [
                CardDefinition(label=label, pair_key=pair_key)
                for pair_key, label in enumerate(config["pairs"])
                for _ in range(2)
            ]
        else:
            game.cards = [
                CardDefinition(label=card_data["label"], pair_key=card_data["pair"])
                for card_data in config["cards"]
            ]

        return game

    def _create_sample_games(self) -> None:
        """Write and load the sample games when no game file could be loaded."""
        for game_id, game_data in SAMPLE_GAMES.items():
            sample_path = self.games_directory / f"{game_id}.json"
            try:
                if not sample_path.exists():
                    with open(sample_path, 'w', encoding='utf-8') as f:
                        json.dump(game_data, f, indent=2, ensure_ascii=False)
                    self.logger.info(f"Created sample game file: {sample_path}")
            except OSError as e:
                self.logger.error(f"Failed to write sample game {sample_path}: {e}")
                self.load_errors.append(f"Failed to write sample game: {e}")

            self.loaded_games[game_id] = self.parse_game(game_id, game_data)

        self.sample_games_created = True

    def get_available_games(self) -> List[str]:
        return list(self.loaded_games.keys())

    def get_game(self, game_id: str) -> Optional[GameDefinition]:
        """
        Retrieve a loaded game.

        Args:
            game_id: Identifier of the game (file stem)

        Returns:
            The game, or None if not found
        """
        return self.loaded_games.get(game_id)

    def game_exists(self, game_id: str) -> bool:
        return game_id in self.loaded_games

    def get_published_lessons(self) -> List[Lesson]:
        """Published lessons in reading order."""
        lessons = [lesson for lesson in self.loaded_lessons.values() if lesson.is_published]
        return sorted(lessons, key=lambda lesson: (lesson.order, lesson.lesson_id))

    def get_lesson(self, lesson_id: str) -> Optional[Lesson]:
        """Retrieve a published lesson, or None."""
        lesson = self.loaded_lessons.get(lesson_id)
        if lesson is None or not lesson.is_published:
            return None
        return lesson

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_games': len(self.loaded_games),
            'total_lessons': len(self.loaded_lessons),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'sample_games_active': self.sample_games_created,
            'content_directory': str(self.content_directory),
            'available_games': self.get_available_games()
        }
