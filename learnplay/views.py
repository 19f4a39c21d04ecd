"""
Discord embeds and button views for the LearnPlay games.
Embeds are built from engine snapshots; views forward button presses to the controller.
"""
import logging
import string
from typing import Dict, List, Optional, Tuple

import discord

from .game_controller import ActiveGame, GameController
from .models import GameDefinition, Lesson, LessonProgress, MemorySession, QuizSession, ScoreRecord

logger = logging.getLogger(__name__)

GREEN = 0x00ff00
ORANGE = 0xff6600
RED = 0xff0000
YELLOW = 0xffcc00
BLUE = 0x3498db

OPTION_LETTERS = string.ascii_uppercase
CARDS_PER_ROW = 5
MAX_BUTTON_LABEL = 80
VIEW_TIMEOUT = 900  # seconds of inactivity before buttons are disabled


def format_time(seconds: int) -> str:
    """Format seconds as m:ss."""
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes}:{secs:02d}"


def result_band(score: int) -> Tuple[str, int]:
    """Headline and colour for a final score."""
    if score >= 70:
        return "🏆 Excellent!", GREEN
    if score >= 50:
        return "👍 Well played!", YELLOW
    return "📚 Keep practising!", RED


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit - 1] + "…"


def build_quiz_embed(game: GameDefinition, session: QuizSession) -> discord.Embed:
    """Embed for the question currently being played."""
    question = session.current_question
    remaining = session.time_remaining

    if remaining > 5:
        color, timer_emoji = GREEN, "⏱️"
    elif remaining > 2:
        color, timer_emoji = ORANGE, "⚠️"
    else:
        color, timer_emoji = RED, "🚨"

    embed = discord.Embed(
        title=f"🎯 {game.title} - Question {session.current_index + 1}/{session.question_count}",
        description=question.text,
        color=color
    )

    lines = []
    for index, option in enumerate(question.options):
        marker = "👉 " if index == session.selected_answer else ""
        lines.append(f"{marker}**{OPTION_LETTERS[index]}.** {option}")
    embed.add_field(name="Options", value=_truncate("\n".join(lines), 1024), inline=False)

    embed.add_field(
        name=f"{timer_emoji} Time Remaining",
        value=f"{remaining} second{'s' if remaining != 1 else ''}",
        inline=True
    )
    embed.set_footer(text="Pick an option, then press Next. Unanswered questions count as wrong.")
    return embed


def build_quiz_result_embed(
    game: GameDefinition,
    session: QuizSession,
    score_record: Optional[ScoreRecord] = None
) -> discord.Embed:
    """Embed shown once a quiz is complete."""
    headline, color = result_band(session.final_score)
    embed = discord.Embed(
        title=f"{headline} - {game.title}",
        description=(
            f"You got {session.correct_count} correct answers "
            f"out of {session.question_count} questions."
        ),
        color=color
    )
    embed.add_field(name="Score", value=f"{session.final_score}%", inline=True)

    review = []
    for question, answer in zip(session.questions, session.recorded_answers):
        status = "✅" if answer == question.correct_index else "❌"
        given = OPTION_LETTERS[answer] if answer >= 0 else "no answer"
        review.append(f"{status} {_truncate(question.text, 60)} ({given})")
    embed.add_field(name="Review", value=_truncate("\n".join(review), 1024), inline=False)

    if score_record is None:
        embed.set_footer(text="⚠️ This score could not be saved")
    return embed


def build_memory_embed(game: GameDefinition, session: MemorySession) -> discord.Embed:
    """Embed for a memory game in progress."""
    embed = discord.Embed(title=f"🧠 {game.title}", description=game.description or None, color=BLUE)
    embed.add_field(name="⏱️ Time", value=format_time(session.elapsed_seconds), inline=True)
    embed.add_field(name="Moves", value=str(session.move_count), inline=True)
    embed.add_field(
        name="Pairs found",
        value=f"{session.matched_pair_count}/{session.total_pairs}",
        inline=True
    )
    if not session.started:
        embed.set_footer(text="Flip a card to start. Find every pair in as few moves as possible.")
    return embed


def build_memory_result_embed(
    game: GameDefinition,
    session: MemorySession,
    score_record: Optional[ScoreRecord] = None
) -> discord.Embed:
    """Embed shown once every pair has been found."""
    headline, color = result_band(session.final_score)
    embed = discord.Embed(
        title=f"{headline} - {game.title}",
        description=(
            f"You finished in {session.move_count} moves "
            f"and {format_time(session.elapsed_seconds)}!"
        ),
        color=color
    )
    embed.add_field(name="Score", value=f"{session.final_score}/100", inline=True)
    embed.add_field(name="Moves", value=str(session.move_count), inline=True)
    embed.add_field(name="Time", value=format_time(session.elapsed_seconds), inline=True)
    if score_record is None:
        embed.set_footer(text="⚠️ This score could not be saved")
    return embed


def build_game_embed(active: ActiveGame) -> discord.Embed:
    """Pick the embed matching the game's type and state."""
    session = active.session
    if isinstance(session, QuizSession):
        if session.is_complete:
            return build_quiz_result_embed(active.game, session, active.score_record)
        return build_quiz_embed(active.game, session)
    if session.is_complete:
        return build_memory_result_embed(active.game, session, active.score_record)
    return build_memory_embed(active.game, session)


def build_stats_embed(
    user_name: str,
    stats: Dict[str, int],
    recent_scores: List[ScoreRecord],
    games: Dict[str, GameDefinition]
) -> discord.Embed:
    """Performance overview: totals plus the latest results."""
    embed = discord.Embed(title=f"📊 Scores for {user_name}", color=BLUE)
    embed.add_field(name="Games played", value=str(stats['games_played']), inline=True)
    embed.add_field(name="Average score", value=str(stats['average_score']), inline=True)
    embed.add_field(name="Best score", value=str(stats['best_score']), inline=True)

    if recent_scores:
        lines = []
        for record in recent_scores[:10]:
            game = games.get(record.game_id)
            title = game.title if game else record.game_id
            line = f"**{title}**: {record.score} ({record.completed_at:%Y-%m-%d %H:%M})"
            if record.time_spent is not None:
                line += f" in {format_time(record.time_spent)}"
            lines.append(line)
        embed.add_field(name="Recent games", value=_truncate("\n".join(lines), 1024), inline=False)
    else:
        embed.add_field(name="Recent games", value="No games played yet. Try `/games`.", inline=False)
    return embed


def build_lessons_embed(lessons: List[Lesson], progress: Dict[str, LessonProgress]) -> discord.Embed:
    """List of published lessons with the reader's completion marks."""
    completed = sum(1 for lesson in lessons if lesson.lesson_id in progress and progress[lesson.lesson_id].completed)
    embed = discord.Embed(
        title="📖 Lessons",
        description=f"{completed}/{len(lessons)} completed",
        color=BLUE
    )
    for lesson in lessons[:25]:
        done = lesson.lesson_id in progress and progress[lesson.lesson_id].completed
        embed.add_field(
            name=f"{'✅' if done else '⬜'} {lesson.order}. {_truncate(lesson.title, 200)}",
            value=f"`{lesson.lesson_id}` {_truncate(lesson.description, 900)}".strip(),
            inline=False
        )
    return embed


def build_lesson_embed(lesson: Lesson, progress: Optional[LessonProgress]) -> discord.Embed:
    """A lesson's full text."""
    embed = discord.Embed(
        title=f"📖 {lesson.title}",
        description=_truncate(lesson.content, 4096),
        color=GREEN if progress and progress.completed else BLUE
    )
    if progress and progress.completed and progress.completed_at:
        embed.set_footer(text=f"Completed on {progress.completed_at:%Y-%m-%d}")
    else:
        embed.set_footer(text=f"Use /complete_lesson {lesson.lesson_id} when you are done")
    return embed


class GameView(discord.ui.View):
    """Buttons for one channel's game; only the player may press them."""

    def __init__(self, controller: GameController, active: ActiveGame):
        super().__init__(timeout=VIEW_TIMEOUT)
        self.controller = controller
        self.channel_id = active.channel_id
        self.user_id = active.user_id
        self.active = active
        self.message: Optional[discord.Message] = None
        self.refresh(active)

    def refresh(self, active: ActiveGame) -> None:
        """Rebuild the buttons from the game's current snapshot."""
        raise NotImplementedError

    def _active_game(self) -> Optional[ActiveGame]:
        active = self.controller.get_game(self.channel_id)
        if active is not self.active:
            return None
        return active

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id != self.user_id:
            await interaction.response.send_message("❌ This game belongs to another player.", ephemeral=True)
            return False
        if self._active_game() is None:
            await interaction.response.send_message("❌ This game has ended.", ephemeral=True)
            return False
        return True

    async def render(self, interaction: discord.Interaction) -> None:
        """Answer a button press by redrawing the game message."""
        active = self._active_game()
        self.refresh(active)
        await interaction.response.edit_message(embed=build_game_embed(active), view=self)

    async def on_engine_update(self, active: ActiveGame) -> None:
        """Redraw after a timer-driven change."""
        if self.message is None:
            return
        self.refresh(active)
        try:
            await self.message.edit(embed=build_game_embed(active), view=self)
        except discord.HTTPException as e:
            logger.error(f"Failed to update game message in channel {self.channel_id}: {e}")

    async def restart(self, interaction: discord.Interaction) -> None:
        await self.controller.reset_game(self.channel_id)
        await self.render(interaction)

    async def on_timeout(self) -> None:
        if self._active_game() is not None:
            await self.controller.stop_game(self.channel_id)
        await self.close()

    async def close(self) -> None:
        """Disable every button and stop listening for presses."""
        self.stop()
        for item in self.children:
            item.disabled = True
        if self.message is not None:
            try:
                await self.message.edit(view=self)
            except discord.HTTPException as e:
                logger.error(f"Failed to disable buttons in channel {self.channel_id}: {e}")


class RestartButton(discord.ui.Button):
    def __init__(self, label: str, row: int):
        super().__init__(style=discord.ButtonStyle.danger, label=label, emoji="🔄", row=row)

    async def callback(self, interaction: discord.Interaction):
        await self.view.restart(interaction)


class QuizOptionButton(discord.ui.Button):
    def __init__(self, option_index: int, selected: bool):
        super().__init__(
            style=discord.ButtonStyle.primary if selected else discord.ButtonStyle.secondary,
            label=OPTION_LETTERS[option_index],
            row=option_index // CARDS_PER_ROW
        )
        self.option_index = option_index

    async def callback(self, interaction: discord.Interaction):
        self.view.controller.select_answer(self.view.channel_id, self.option_index)
        await self.view.render(interaction)


class QuizNextButton(discord.ui.Button):
    def __init__(self, is_last: bool, has_selection: bool):
        super().__init__(
            style=discord.ButtonStyle.success,
            label="Finish quiz" if is_last else "Next question",
            disabled=not has_selection,
            row=4
        )

    async def callback(self, interaction: discord.Interaction):
        self.view.controller.advance(self.view.channel_id)
        await self.view.render(interaction)


class QuizView(GameView):
    """Option buttons plus Next; a restart button once the quiz is over."""

    def refresh(self, active: ActiveGame) -> None:
        session: QuizSession = active.session
        self.clear_items()

        if session.is_complete:
            self.add_item(RestartButton("Restart quiz", row=0))
            return

        for index in range(len(session.current_question.options)):
            self.add_item(QuizOptionButton(index, selected=index == session.selected_answer))
        self.add_item(QuizNextButton(
            is_last=session.current_index == session.question_count - 1,
            has_selection=session.selected_answer is not None
        ))


class MemoryCardButton(discord.ui.Button):
    def __init__(self, index: int, label: str, is_flipped: bool, is_matched: bool):
        if is_matched:
            style = discord.ButtonStyle.success
        elif is_flipped:
            style = discord.ButtonStyle.primary
        else:
            style = discord.ButtonStyle.secondary

        super().__init__(
            style=style,
            label=_truncate(label, MAX_BUTTON_LABEL) if is_flipped or is_matched else "?",
            disabled=is_flipped or is_matched,
            row=index // CARDS_PER_ROW
        )
        self.index = index

    async def callback(self, interaction: discord.Interaction):
        self.view.controller.flip_card(self.view.channel_id, self.index)
        await self.view.render(interaction)


class MemoryView(GameView):
    """One button per card plus a restart button."""

    def refresh(self, active: ActiveGame) -> None:
        session: MemorySession = active.session
        self.clear_items()

        for index, card in enumerate(session.cards):
            self.add_item(MemoryCardButton(index, card.label, card.is_flipped, card.is_matched))
        self.add_item(RestartButton("Restart", row=4))


def attach_view(controller: GameController, active: ActiveGame) -> GameView:
    """Create the view for a started game and route timer updates to it."""
    view_class = QuizView if isinstance(active.session, QuizSession) else MemoryView
    view = view_class(controller, active)
    active.on_update = view.on_engine_update
    return view

