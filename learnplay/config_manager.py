"""
Configuration manager for LearnPlay game settings and storage locations.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import GameSettings


class ConfigManager:
    """Manages bot configuration settings and game parameters."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = None  # Use all questions by default
    DEFAULT_RANDOM_ORDER = False
    DEFAULT_TIMER_DURATION = 30
    DEFAULT_MISMATCH_DELAY = 1.0
    DEFAULT_CONTENT_DIRECTORY = "./content/"
    DEFAULT_PROGRESS_FILE = "./data/progress.json"

    # Validation limits
    MIN_TIMER_DURATION = 5
    MAX_TIMER_DURATION = 300  # 5 minutes
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100
    MIN_MISMATCH_DELAY = 0.5
    MAX_MISMATCH_DELAY = 5.0

    SYSTEM_DIRECTORIES = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = GameSettings()
        self._content_directory = self.DEFAULT_CONTENT_DIRECTORY
        self._progress_file = self.DEFAULT_PROGRESS_FILE

    def get_game_settings(self) -> GameSettings:
        """
        Get a copy of the current game settings.

        Returns:
            GameSettings object with current configuration
        """
        return GameSettings(
            question_count=self._global_settings.question_count,
            random_order=self._global_settings.random_order,
            timer_duration=self._global_settings.timer_duration,
            mismatch_delay=self._global_settings.mismatch_delay
        )

    def set_question_count(self, count: Optional[int]) -> Dict[str, Any]:
        """
        Set the number of questions played per quiz.

        Args:
            count: Number of questions, or None to use all questions

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if count is None:
            self._global_settings.question_count = None
            self.logger.info("Question count set to use all available questions")
            return {
                'success': True,
                'message': "Question count set to use all available questions",
                'user_message': "✅ Quizzes will use all of their questions"
            }

        if not isinstance(count, int) or isinstance(count, bool):
            error_msg = f"Question count must be an integer, got {type(count).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(count).__name__}"
            }

        if count < self.MIN_QUESTION_COUNT:
            error_msg = f"Question count must be at least {self.MIN_QUESTION_COUNT}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too few questions: Minimum is {self.MIN_QUESTION_COUNT}"
            }

        if count > self.MAX_QUESTION_COUNT:
            error_msg = f"Question count cannot exceed {self.MAX_QUESTION_COUNT}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too many questions: Maximum is {self.MAX_QUESTION_COUNT}"
            }

        self._global_settings.question_count = count
        self.logger.info(f"Question count set to {count}")
        return {
            'success': True,
            'message': f"Question count set to {count}",
            'user_message': f"✅ Question count set to {count}"
        }

    def get_question_count(self) -> Optional[int]:
        return self._global_settings.question_count

    def set_random_order(self, random_order: bool) -> Dict[str, Any]:
        """
        Set whether quiz questions are shuffled before play.

        Args:
            random_order: True for random order, False for file order

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(random_order, bool):
            error_msg = f"Random order must be a boolean, got {type(random_order).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected true/false, got {type(random_order).__name__}"
            }

        self._global_settings.random_order = random_order
        order_type = "random" if random_order else "sequential"
        self.logger.info(f"Question order set to {order_type}")
        return {
            'success': True,
            'message': f"Question order set to {order_type}",
            'user_message': f"✅ Questions will be presented in {order_type} order"
        }

    def get_random_order(self) -> bool:
        return self._global_settings.random_order

    def toggle_random_order(self) -> Dict[str, Any]:
        """
        Toggle the random order setting.

        Returns:
            Dictionary with success status, new value, and user-friendly message
        """
        new_value = not self._global_settings.random_order
        result = self.set_random_order(new_value)
        if result['success']:
            result['new_value'] = new_value
        return result

    def set_timer_duration(self, duration: int) -> Dict[str, Any]:
        """
        Set the countdown for each quiz question.

        Args:
            duration: Timer duration in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(duration, int) or isinstance(duration, bool):
            error_msg = f"Timer duration must be an integer, got {type(duration).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(duration).__name__}"
            }

        if duration < self.MIN_TIMER_DURATION:
            error_msg = f"Timer duration must be at least {self.MIN_TIMER_DURATION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too short: Minimum is {self.MIN_TIMER_DURATION} seconds"
            }

        if duration > self.MAX_TIMER_DURATION:
            error_msg = f"Timer duration cannot exceed {self.MAX_TIMER_DURATION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too long: Maximum is {self.MAX_TIMER_DURATION} seconds ({self.MAX_TIMER_DURATION // 60} minutes)"
            }

        self._global_settings.timer_duration = duration
        self.logger.info(f"Timer duration set to {duration} seconds")
        return {
            'success': True,
            'message': f"Timer duration set to {duration} seconds",
            'user_message': f"✅ Timer set to {duration} seconds"
        }

    def get_timer_duration(self) -> int:
        return self._global_settings.timer_duration

    def set_mismatch_delay(self, delay: float) -> Dict[str, Any]:
        """
        Set how long a mismatched memory pair stays face up.

        Args:
            delay: Delay in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(delay, (int, float)) or isinstance(delay, bool):
            error_msg = f"Mismatch delay must be a number, got {type(delay).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(delay).__name__}"
            }

        if not self.MIN_MISMATCH_DELAY <= delay <= self.MAX_MISMATCH_DELAY:
            error_msg = (
                f"Mismatch delay must be between {self.MIN_MISMATCH_DELAY} "
                f"and {self.MAX_MISMATCH_DELAY} seconds"
            )
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {error_msg}"
            }

        self._global_settings.mismatch_delay = float(delay)
        self.logger.info(f"Mismatch delay set to {delay} seconds")
        return {
            'success': True,
            'message': f"Mismatch delay set to {delay} seconds",
            'user_message': f"✅ Mismatched cards stay visible for {delay} seconds"
        }

    def get_mismatch_delay(self) -> float:
        return self._global_settings.mismatch_delay

    def _validate_path(self, path: str, label: str) -> Dict[str, Any]:
        if not isinstance(path, str):
            error_msg = f"{label} must be a string, got {type(path).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a path string, got {type(path).__name__}"
            }

        if not path.strip():
            error_msg = f"{label} cannot be empty"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Path cannot be empty"
            }

        try:
            normalized_path = str(Path(path).resolve())
        except (OSError, ValueError) as e:
            error_msg = f"Invalid {label.lower()} format: {e}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid path format: {path}"
            }

        if any(normalized_path.startswith(sys_dir) for sys_dir in self.SYSTEM_DIRECTORIES):
            error_msg = f"Cannot use system directory: {normalized_path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Cannot use system directory: {path}"
            }

        return {'success': True, 'path': normalized_path}

    def set_content_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory holding game and lesson files.

        Args:
            directory: Path to the content directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        result = self._validate_path(directory, "Content directory")
        if not result['success']:
            return result

        self._content_directory = result['path']
        self.logger.info(f"Content directory set to {self._content_directory}")
        return {
            'success': True,
            'message': f"Content directory set to {self._content_directory}",
            'user_message': f"✅ Content directory set to {self._content_directory}"
        }

    def get_content_directory(self) -> str:
        return self._content_directory

    def set_progress_file(self, file_path: str) -> Dict[str, Any]:
        """
        Set the JSON file where scores and lesson progress are stored.

        Args:
            file_path: Path to the progress file

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        result = self._validate_path(file_path, "Progress file")
        if not result['success']:
            return result

        self._progress_file = result['path']
        self.logger.info(f"Progress file set to {self._progress_file}")
        return {
            'success': True,
            'message': f"Progress file set to {self._progress_file}",
            'user_message': f"✅ Progress file set to {self._progress_file}"
        }

    def get_progress_file(self) -> str:
        return self._progress_file

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the 'game' and 'storage' sections of a loaded config.json.

        Args:
            config: Parsed configuration dictionary

        Returns:
            Error messages for settings that were rejected (defaults kept)
        """
        self.reset_to_defaults()
        errors = []
        game_config = config.get('game', {})
        storage_config = config.get('storage', {})

        results = [
            self.set_question_count(game_config.get('default_question_count')),
            self.set_random_order(game_config.get('default_random_order', self.DEFAULT_RANDOM_ORDER)),
            self.set_timer_duration(game_config.get('default_timer_duration', self.DEFAULT_TIMER_DURATION)),
            self.set_mismatch_delay(game_config.get('mismatch_delay', self.DEFAULT_MISMATCH_DELAY)),
            self.set_content_directory(storage_config.get('content_directory', self.DEFAULT_CONTENT_DIRECTORY)),
            self.set_progress_file(storage_config.get('progress_file', self.DEFAULT_PROGRESS_FILE)),
        ]
        for result in results:
            if not result['success']:
                errors.append(result['error'])

        if errors:
            self.logger.warning(f"Configuration applied with {len(errors)} rejected settings")
        else:
            self.logger.info("Configuration applied successfully")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._global_settings = GameSettings(
            question_count=self.DEFAULT_QUESTION_COUNT,
            random_order=self.DEFAULT_RANDOM_ORDER,
            timer_duration=self.DEFAULT_TIMER_DURATION,
            mismatch_delay=self.DEFAULT_MISMATCH_DELAY
        )
        self._content_directory = self.DEFAULT_CONTENT_DIRECTORY
        self._progress_file = self.DEFAULT_PROGRESS_FILE
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        settings = self._global_settings

        if settings.question_count is not None:
            if (not isinstance(settings.question_count, int) or
                settings.question_count < self.MIN_QUESTION_COUNT or
                settings.question_count > self.MAX_QUESTION_COUNT):
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid question count: {settings.question_count}")

        if not isinstance(settings.random_order, bool):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid random order setting: {settings.random_order}")

        if (not isinstance(settings.timer_duration, int) or
            settings.timer_duration < self.MIN_TIMER_DURATION or
            settings.timer_duration > self.MAX_TIMER_DURATION):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid timer duration: {settings.timer_duration}")

        if (not isinstance(settings.mismatch_delay, (int, float)) or
            not self.MIN_MISMATCH_DELAY <= settings.mismatch_delay <= self.MAX_MISMATCH_DELAY):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid mismatch delay: {settings.mismatch_delay}")

        if not isinstance(self._content_directory, str) or not self._content_directory.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid content directory: {self._content_directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._global_settings
        question_count_str = (
            str(settings.question_count)
            if settings.question_count is not None
            else "all available"
        )
        order_str = "random" if settings.random_order else "sequential"

        return (
            f"Game Settings:\n"
            f"• Quiz questions: {question_count_str}\n"
            f"• Quiz order: {order_str}\n"
            f"• Quiz timer: {settings.timer_duration} seconds\n"
            f"• Memory mismatch delay: {settings.mismatch_delay} seconds\n"
            f"• Content directory: {self._content_directory}"
        )

    def get_user_friendly_validation_errors(self) -> List[str]:
        """
        Get user-friendly validation error messages for current settings.

        Returns:
            List of user-friendly error messages
        """
        user_friendly_errors = []

        for issue in self.validate_settings().get("issues", []):
            lowered = issue.lower()
            if "question count" in lowered:
                user_friendly_errors.append(
                    f"❌ Question Count Issue: {issue}. "
                    f"Please set a value between {self.MIN_QUESTION_COUNT} and {self.MAX_QUESTION_COUNT}."
                )
            elif "random order" in lowered:
                user_friendly_errors.append(
                    f"❌ Random Order Issue: {issue}. "
                    "Please use /random_order to toggle this setting."
                )
            elif "timer duration" in lowered:
                user_friendly_errors.append(
                    f"❌ Timer Duration Issue: {issue}. "
                    f"Please set a value between {self.MIN_TIMER_DURATION} and {self.MAX_TIMER_DURATION} seconds."
                )
            elif "mismatch delay" in lowered:
                user_friendly_errors.append(
                    f"❌ Mismatch Delay Issue: {issue}. "
                    f"Please set a value between {self.MIN_MISMATCH_DELAY} and {self.MAX_MISMATCH_DELAY} seconds."
                )
            elif "content directory" in lowered:
                user_friendly_errors.append(
                    f"❌ Content Directory Issue: {issue}. "
                    "Please check the directory path and permissions."
                )
            else:
                user_friendly_errors.append(f"❌ Configuration Issue: {issue}")

        return user_friendly_errors
