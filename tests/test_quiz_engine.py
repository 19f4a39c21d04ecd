"""
Unit tests for the QuizEngine class.
"""
import unittest
from unittest.mock import Mock

from learnplay.models import Question
from learnplay.quiz_engine import NO_ANSWER, QuizEngine, percentage_score
from tests.test_fixtures import TestFixtures


class TestPercentageScore(unittest.TestCase):
    """Test cases for the quiz score formula."""

    def test_exact_percentages(self):
        self.assertEqual(percentage_score(0, 4), 0)
        self.assertEqual(percentage_score(1, 2), 50)
        self.assertEqual(percentage_score(4, 4), 100)

    def test_half_rounds_up(self):
        """1/8 is 12.5% and must round to 13."""
        self.assertEqual(percentage_score(1, 8), 13)
        self.assertEqual(percentage_score(3, 8), 38)

    def test_rounds_to_nearest(self):
        self.assertEqual(percentage_score(1, 3), 33)
        self.assertEqual(percentage_score(2, 3), 67)

    def test_matches_round_for_all_small_counts(self):
        for count in range(1, 21):
            for correct in range(count + 1):
                expected = int(100 * correct / count + 0.5)
                self.assertEqual(percentage_score(correct, count), expected, f"{correct}/{count}")
                self.assertTrue(0 <= percentage_score(correct, count) <= 100)


class TestQuizEngineInitialization(unittest.TestCase):
    """Test cases for QuizEngine construction."""

    def test_initial_state(self):
        questions = TestFixtures.create_sample_questions()
        engine = QuizEngine(questions)
        session = engine.session

        self.assertEqual(session.current_index, 0)
        self.assertIsNone(session.selected_answer)
        self.assertEqual(session.recorded_answers, ())
        self.assertEqual(session.correct_count, 0)
        self.assertEqual(session.time_remaining, 30)
        self.assertFalse(session.is_complete)
        self.assertIsNone(session.final_score)
        self.assertEqual(session.current_question, questions[0])
        self.assertEqual(engine.questions, questions)

    def test_custom_time_limit(self):
        engine = QuizEngine(TestFixtures.create_sample_questions(), time_limit=10)
        self.assertEqual(engine.session.time_remaining, 10)
        self.assertEqual(engine.time_limit, 10)

    def test_empty_question_list_rejected(self):
        with self.assertRaises(ValueError) as context:
            QuizEngine([])
        self.assertIn("without questions", str(context.exception))

    def test_question_without_options_rejected(self):
        with self.assertRaises(ValueError):
            QuizEngine([Question("Empty?", (), 0)])

    def test_correct_index_outside_options_rejected(self):
        with self.assertRaises(ValueError):
            QuizEngine([Question("Q?", ("a", "b"), 2)])
        with self.assertRaises(ValueError):
            QuizEngine([Question("Q?", ("a", "b"), -1)])

    def test_time_limit_must_be_positive(self):
        with self.assertRaises(ValueError):
            QuizEngine(TestFixtures.create_sample_questions(), time_limit=0)


class TestQuizEngineAnswers(unittest.TestCase):
    """Test cases for answer selection and advancing."""

    def setUp(self):
        self.on_complete = Mock()
        self.questions = [
            Question("First?", ("a", "b", "c"), 1),
            Question("Second?", ("x", "y"), 0),
        ]
        self.engine = QuizEngine(self.questions, on_complete=self.on_complete)

    def test_select_answer_sets_pending_without_advancing(self):
        session = self.engine.select_answer(2)
        self.assertEqual(session.selected_answer, 2)
        self.assertEqual(session.current_index, 0)
        self.assertEqual(session.recorded_answers, ())

    def test_select_answer_replaces_previous_selection(self):
        self.engine.select_answer(0)
        session = self.engine.select_answer(1)
        self.assertEqual(session.selected_answer, 1)

    def test_select_answer_out_of_range_is_noop(self):
        before = self.engine.session
        self.assertIs(self.engine.select_answer(3), before)
        self.assertIs(self.engine.select_answer(-1), before)
        self.assertIsNone(self.engine.session.selected_answer)

    def test_select_answer_rejects_bool(self):
        before = self.engine.session
        self.assertIs(self.engine.select_answer(True), before)

    def test_advance_records_answer_and_resets_timer(self):
        self.engine.tick()
        self.engine.select_answer(1)
        session = self.engine.advance()

        self.assertEqual(session.current_index, 1)
        self.assertEqual(session.recorded_answers, (1,))
        self.assertEqual(session.correct_count, 1)
        self.assertIsNone(session.selected_answer)
        self.assertEqual(session.time_remaining, 30)

    def test_advance_without_selection_records_no_answer(self):
        session = self.engine.advance()
        self.assertEqual(session.recorded_answers, (NO_ANSWER,))
        self.assertEqual(session.correct_count, 0)

    def test_scenario_half_correct(self):
        """Correct answers [1, 0], chosen [1, 1]: one correct, 50%."""
        self.engine.select_answer(1)
        self.engine.advance()
        self.engine.select_answer(1)
        session = self.engine.advance()

        self.assertTrue(session.is_complete)
        self.assertEqual(session.correct_count, 1)
        self.assertEqual(session.final_score, 50)
        self.assertEqual(session.recorded_answers, (1, 1))
        self.assertEqual(session.current_index, 2)
        self.assertIsNone(session.current_question)
        self.on_complete.assert_called_once_with(50, (1, 1))

    def test_first_option_counts_as_an_answer(self):
        """Option 0 is a real selection, not a missing one."""
        self.engine.advance()
        self.engine.select_answer(0)
        session = self.engine.advance()
        self.assertEqual(session.recorded_answers, (NO_ANSWER, 0))
        self.assertEqual(session.correct_count, 1)

    def test_completed_session_ignores_mutators(self):
        self.engine.advance()
        completed = self.engine.advance()

        self.assertIs(self.engine.advance(), completed)
        self.assertIs(self.engine.select_answer(0), completed)
        self.assertIs(self.engine.tick(), completed)
        self.on_complete.assert_called_once()

    def test_snapshots_are_immutable(self):
        first = self.engine.session
        self.engine.select_answer(1)
        self.assertIsNone(first.selected_answer)
        self.assertIsNot(self.engine.session, first)


class TestQuizEngineTimer(unittest.TestCase):
    """Test cases for countdown ticks."""

    def test_tick_decrements(self):
        engine = QuizEngine(TestFixtures.create_sample_questions(), time_limit=5)
        session = engine.tick()
        self.assertEqual(session.time_remaining, 4)
        self.assertEqual(session.current_index, 0)

    def test_timeout_without_selection(self):
        """One question, nothing selected, ticks to zero: [-1] and 0%."""
        on_complete = Mock()
        engine = QuizEngine([Question("Q?", ("a", "b"), 0)], on_complete=on_complete, time_limit=3)

        for _ in range(3):
            session = engine.tick()

        self.assertTrue(session.is_complete)
        self.assertEqual(session.recorded_answers, (NO_ANSWER,))
        self.assertEqual(session.correct_count, 0)
        self.assertEqual(session.final_score, 0)
        on_complete.assert_called_once_with(0, (NO_ANSWER,))

    def test_timeout_keeps_pending_selection(self):
        engine = QuizEngine(TestFixtures.create_sample_questions(), time_limit=2)
        engine.select_answer(1)
        engine.tick()
        session = engine.tick()

        self.assertEqual(session.current_index, 1)
        self.assertEqual(session.recorded_answers, (1,))
        self.assertEqual(session.correct_count, 1)
        self.assertEqual(session.time_remaining, 2)

    def test_full_run_by_timeouts(self):
        questions = TestFixtures.create_sample_questions()
        engine = QuizEngine(questions, time_limit=1)
        for _ in questions:
            engine.tick()

        session = engine.session
        self.assertTrue(session.is_complete)
        self.assertEqual(session.recorded_answers, (NO_ANSWER,) * len(questions))
        self.assertEqual(session.final_score, 0)


class TestQuizEngineReset(unittest.TestCase):
    """Test cases for resetting a quiz."""

    def test_reset_restores_initial_state(self):
        questions = TestFixtures.create_sample_questions()
        engine = QuizEngine(questions, time_limit=7)
        initial = engine.session

        engine.select_answer(1)
        engine.advance()
        engine.tick()
        session = engine.reset()

        self.assertEqual(session, initial)
        self.assertEqual(session.time_remaining, 7)

    def test_completion_emits_again_after_reset(self):
        on_complete = Mock()
        engine = QuizEngine([Question("Q?", ("a", "b"), 1)], on_complete=on_complete)

        engine.select_answer(1)
        engine.advance()
        engine.reset()
        engine.advance()

        self.assertEqual(on_complete.call_count, 2)
        self.assertEqual(on_complete.call_args_list[0].args, (100, (1,)))
        self.assertEqual(on_complete.call_args_list[1].args, (0, (NO_ANSWER,)))


if __name__ == '__main__':
    unittest.main()
