"""
Tests for the Discord embeds and button views.
Embed builders are pure; views are built inside a running loop as discord.py requires.
"""
import random
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock

from learnplay.game_controller import ActiveGame, GameController
from learnplay.game_timer import DelayedCallback, GameTimer
from learnplay.memory_engine import MemoryEngine
from learnplay.models import GameDefinition, GameType, Lesson, LessonProgress, Question, ScoreRecord
from learnplay.quiz_engine import QuizEngine
from learnplay.views import (
    GREEN,
    RED,
    YELLOW,
    MemoryView,
    QuizView,
    attach_view,
    build_lesson_embed,
    build_lessons_embed,
    build_memory_embed,
    build_memory_result_embed,
    build_quiz_embed,
    build_quiz_result_embed,
    build_stats_embed,
    format_time,
    result_band,
)
from tests.test_fixtures import MockDiscordObjects, TestFixtures
from tests.test_memory_engine import pair_positions

QUESTIONS = [
    Question("First?", ("a", "b", "c"), 1),
    Question("Second?", ("x", "y"), 0),
]


def quiz_game() -> GameDefinition:
    return GameDefinition("basics", "Basics", GameType.QUIZ, questions=list(QUESTIONS))


def memory_game() -> GameDefinition:
    return GameDefinition("pairs", "Pairs", GameType.MEMORY, description="Find them", cards=TestFixtures.create_sample_cards(2))


def make_active(game: GameDefinition, user_id: int = 67890) -> ActiveGame:
    if game.game_type is GameType.QUIZ:
        engine = QuizEngine(game.questions)
        mismatch_timer = None
    else:
        engine = MemoryEngine(game.cards, rng=random.Random(4))
        mismatch_timer = DelayedCallback("test", 1.0)
    return ActiveGame(
        channel_id=12345,
        user_id=user_id,
        game=game,
        engine=engine,
        ticker=GameTimer("test"),
        mismatch_timer=mismatch_timer,
        on_update=None,
        started_at=datetime.now()
    )


def make_controller(active: ActiveGame) -> Mock:
    controller = Mock(spec=GameController)
    controller.get_game.return_value = active
    controller.select_answer.side_effect = lambda channel_id, index: active.engine.select_answer(index)
    controller.advance.side_effect = lambda channel_id: active.engine.advance()
    controller.flip_card.side_effect = lambda channel_id, index: active.engine.flip_card(index)
    return controller


class TestFormatting(unittest.TestCase):
    """Test cases for small formatting helpers."""

    def test_format_time(self):
        self.assertEqual(format_time(0), "0:00")
        self.assertEqual(format_time(20), "0:20")
        self.assertEqual(format_time(65), "1:05")
        self.assertEqual(format_time(600), "10:00")

    def test_result_band(self):
        self.assertEqual(result_band(100)[1], GREEN)
        self.assertEqual(result_band(70)[1], GREEN)
        self.assertEqual(result_band(69)[1], YELLOW)
        self.assertEqual(result_band(50)[1], YELLOW)
        self.assertEqual(result_band(49)[1], RED)
        self.assertIn("Keep practising", result_band(0)[0])


class TestQuizEmbeds(unittest.TestCase):
    """Test cases for quiz embeds."""

    def test_question_embed(self):
        engine = QuizEngine(QUESTIONS, time_limit=10)
        engine.select_answer(2)
        embed = build_quiz_embed(quiz_game(), engine.session)

        self.assertIn("Question 1/2", embed.title)
        self.assertEqual(embed.description, "First?")
        options = embed.fields[0].value.split("\n")
        self.assertEqual(options[0], "**A.** a")
        self.assertEqual(options[2], "👉 **C.** c")
        self.assertEqual(embed.fields[1].value, "10 seconds")
        self.assertEqual(embed.colour.value, GREEN)

    def test_timer_colour_turns_red(self):
        engine = QuizEngine(QUESTIONS, time_limit=2)
        embed = build_quiz_embed(quiz_game(), engine.tick())

        self.assertEqual(embed.colour.value, RED)
        self.assertEqual(embed.fields[1].value, "1 second")

    def test_result_embed(self):
        engine = QuizEngine(QUESTIONS)
        engine.select_answer(1)
        engine.advance()
        session = engine.advance()
        record = ScoreRecord(1, "basics", 50, datetime.now(timezone.utc))

        embed = build_quiz_result_embed(quiz_game(), session, record)

        self.assertIn("You got 1 correct answers out of 2 questions.", embed.description)
        self.assertEqual(embed.fields[0].value, "50%")
        review = embed.fields[1].value.split("\n")
        self.assertTrue(review[0].startswith("✅"))
        self.assertIn("no answer", review[1])
        self.assertEqual(embed.colour.value, YELLOW)
        self.assertIsNone(embed.footer.text)

    def test_result_embed_flags_unsaved_score(self):
        engine = QuizEngine(QUESTIONS)
        engine.advance()
        embed = build_quiz_result_embed(quiz_game(), engine.advance(), None)
        self.assertIn("could not be saved", embed.footer.text)


class TestMemoryEmbeds(unittest.TestCase):
    """Test cases for memory embeds."""

    def test_progress_embed(self):
        engine = MemoryEngine(TestFixtures.create_sample_cards(2), rng=random.Random(4))
        embed = build_memory_embed(memory_game(), engine.session)

        values = {field.name: field.value for field in embed.fields}
        self.assertEqual(values["⏱️ Time"], "0:00")
        self.assertEqual(values["Moves"], "0")
        self.assertEqual(values["Pairs found"], "0/2")
        self.assertIn("Flip a card", embed.footer.text)

    def test_result_embed(self):
        engine = MemoryEngine(TestFixtures.create_sample_cards(2), rng=random.Random(4))
        positions = pair_positions(engine.session)
        engine.flip_card(positions[0][0])
        for _ in range(65):
            engine.tick()
        engine.flip_card(positions[0][1])
        engine.flip_card(positions[1][0])
        session = engine.flip_card(positions[1][1])

        embed = build_memory_result_embed(memory_game(), session, None)

        self.assertEqual(embed.description, "You finished in 2 moves and 1:05!")
        self.assertEqual(embed.fields[0].value, "92/100")
        self.assertEqual(embed.colour.value, GREEN)


class TestStatsAndLessonEmbeds(unittest.TestCase):
    """Test cases for score and lesson embeds."""

    def test_stats_embed(self):
        records = [
            ScoreRecord(1, "basics", 50, datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)),
            ScoreRecord(1, "removed", 95, datetime(2024, 4, 1, 9, 30, tzinfo=timezone.utc), time_spent=20),
        ]
        stats = {'games_played': 2, 'average_score': 73, 'best_score': 95}

        embed = build_stats_embed("Tester", stats, records, {"basics": quiz_game()})

        self.assertEqual([field.value for field in embed.fields[:3]], ["2", "73", "95"])
        recent = embed.fields[3].value.split("\n")
        self.assertEqual(recent[0], "**Basics**: 50 (2024-05-01 12:00)")
        self.assertEqual(recent[1], "**removed**: 95 (2024-04-01 09:30) in 0:20")

    def test_stats_embed_without_games(self):
        stats = {'games_played': 0, 'average_score': 0, 'best_score': 0}
        embed = build_stats_embed("Tester", stats, [], {})
        self.assertIn("No games played yet", embed.fields[3].value)

    def test_lessons_embed(self):
        lessons = [Lesson("intro", "Intro", "text", order=1), Lesson("vars", "Variables", "text", order=2)]
        progress = {"intro": LessonProgress(1, "intro", True)}

        embed = build_lessons_embed(lessons, progress)

        self.assertEqual(embed.description, "1/2 completed")
        self.assertTrue(embed.fields[0].name.startswith("✅"))
        self.assertTrue(embed.fields[1].name.startswith("⬜"))

    def test_lesson_embed(self):
        lesson = Lesson("intro", "Intro", "Lesson body")
        embed = build_lesson_embed(lesson, None)

        self.assertEqual(embed.description, "Lesson body")
        self.assertIn("/complete_lesson intro", embed.footer.text)

        done = LessonProgress(1, "intro", True, datetime(2024, 5, 1, tzinfo=timezone.utc))
        self.assertIn("2024-05-01", build_lesson_embed(lesson, done).footer.text)


class TestQuizView(unittest.IsolatedAsyncioTestCase):
    """Test cases for quiz buttons."""

    async def asyncSetUp(self):
        self.active = make_active(quiz_game())
        self.controller = make_controller(self.active)
        self.view = attach_view(self.controller, self.active)

    async def test_attach_view_routes_updates(self):
        self.assertIsInstance(self.view, QuizView)
        self.assertEqual(self.active.on_update, self.view.on_engine_update)

    async def test_initial_buttons(self):
        labels = [item.label for item in self.view.children]
        self.assertEqual(labels, ["A", "B", "C", "Next question"])
        self.assertTrue(self.view.children[-1].disabled)

    async def test_option_press_selects_and_enables_next(self):
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.view.children[1].callback(interaction)

        self.controller.select_answer.assert_called_once_with(12345, 1)
        self.assertEqual(self.active.session.selected_answer, 1)
        self.assertFalse(self.view.children[-1].disabled)
        interaction.response.edit_message.assert_awaited_once()

    async def test_next_press_advances(self):
        interaction = MockDiscordObjects.create_mock_interaction()
        self.active.engine.select_answer(1)
        self.view.refresh(self.active)

        await self.view.children[-1].callback(interaction)

        self.assertEqual(self.active.session.current_index, 1)
        self.assertEqual([item.label for item in self.view.children], ["A", "B", "Finish quiz"])

    async def test_completed_quiz_offers_restart(self):
        self.active.engine.advance()
        self.active.engine.advance()
        self.view.refresh(self.active)

        self.assertEqual([item.label for item in self.view.children], ["Restart quiz"])

    async def test_other_players_rejected(self):
        interaction = MockDiscordObjects.create_mock_interaction(user_id=1)

        allowed = await self.view.interaction_check(interaction)

        self.assertFalse(allowed)
        interaction.response.send_message.assert_awaited_once()
        self.assertTrue(interaction.response.send_message.call_args.kwargs['ephemeral'])

    async def test_owner_allowed(self):
        interaction = MockDiscordObjects.create_mock_interaction()
        self.assertTrue(await self.view.interaction_check(interaction))

    async def test_replaced_game_rejected(self):
        self.controller.get_game.return_value = make_active(quiz_game())
        interaction = MockDiscordObjects.create_mock_interaction()

        self.assertFalse(await self.view.interaction_check(interaction))

    async def test_engine_update_edits_message(self):
        self.view.message = MockDiscordObjects.create_mock_message()
        self.active.engine.tick()

        await self.view.on_engine_update(self.active)

        self.view.message.edit.assert_awaited_once()
        embed = self.view.message.edit.call_args.kwargs['embed']
        self.assertIn("29 seconds", embed.fields[1].value)

    async def test_close_disables_buttons(self):
        self.view.message = MockDiscordObjects.create_mock_message()

        await self.view.close()

        self.assertTrue(all(item.disabled for item in self.view.children))
        self.assertTrue(self.view.is_finished())
        self.view.message.edit.assert_awaited_once_with(view=self.view)


class TestMemoryView(unittest.IsolatedAsyncioTestCase):
    """Test cases for memory buttons."""

    async def asyncSetUp(self):
        self.active = make_active(memory_game())
        self.controller = make_controller(self.active)
        self.view = attach_view(self.controller, self.active)

    async def test_cards_face_down(self):
        self.assertIsInstance(self.view, MemoryView)
        labels = [item.label for item in self.view.children]
        self.assertEqual(labels, ["?", "?", "?", "?", "Restart"])

    async def test_flip_reveals_label(self):
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.view.children[0].callback(interaction)

        self.controller.flip_card.assert_called_once_with(12345, 0)
        card_button = self.view.children[0]
        self.assertEqual(card_button.label, self.active.session.cards[0].label)
        self.assertTrue(card_button.disabled)

    async def test_restart_resets_game(self):
        interaction = MockDiscordObjects.create_mock_interaction()

        await self.view.children[-1].callback(interaction)

        self.controller.reset_game.assert_awaited_once_with(12345)
        interaction.response.edit_message.assert_awaited_once()


if __name__ == '__main__':
    unittest.main()
