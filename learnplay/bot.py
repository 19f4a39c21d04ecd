import discord
from discord import app_commands
from discord.ext import commands
import logging
import os
from typing import Dict, List, Optional

from .config_manager import ConfigManager
from .data_manager import DataManager
from .game_controller import GameController, GameNotFoundError, SessionConflictError, SessionNotFoundError
from .models import GameType
from .progress_store import ProgressStore
from .views import (
    GameView,
    attach_view,
    build_game_embed,
    build_lesson_embed,
    build_lessons_embed,
    build_stats_embed,
)

logger = logging.getLogger(__name__)


class LearnPlayBot(commands.Bot):
    """Discord bot hosting quizzes, memory games and lessons"""

    def __init__(self, config=None):
        # Minimal intents for slash commands
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.progress_store: Optional[ProgressStore] = None
        self.game_controller: Optional[GameController] = None
        self.game_views: Dict[int, GameView] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                self.apply_configuration()

            self.data_manager = DataManager(self.config_manager.get_content_directory())
            self.progress_store = ProgressStore(self.config_manager.get_progress_file())
            self.game_controller = GameController(self.data_manager, self.config_manager, self.progress_store)

            self.load_content()
            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def apply_configuration(self):
        """Apply settings from the configuration file; rejected values keep their defaults."""
        for error in self.config_manager.apply_config(self.app_config):
            logger.warning(f"Ignoring configuration value: {error}")
        for issue in self.config_manager.get_user_friendly_validation_errors():
            logger.error(issue)

    def load_content(self):
        """Load games and lessons from the content directory"""
        self.data_manager.load_content()
        summary = self.data_manager.get_loading_summary()
        logger.info(
            f"Loaded {summary['total_games']} games and {summary['total_lessons']} lessons "
            f"from {summary['content_directory']}"
        )
        for error in summary['errors']:
            logger.warning(f"Content loading error: {error}")

    async def setup_commands(self):
        """Register all slash commands"""

        async def game_autocomplete(interaction: discord.Interaction, current: str) -> List[app_commands.Choice[str]]:
            return self.game_choices(current)

        async def lesson_autocomplete(interaction: discord.Interaction, current: str) -> List[app_commands.Choice[str]]:
            return self.lesson_choices(current)

        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        # Game commands
        @self.tree.command(name="games", description="List the available games")
        async def games_command(interaction: discord.Interaction):
            await self.handle_games(interaction)

        @self.tree.command(name="play", description="Start a game in this channel")
        @app_commands.describe(game="Game to play")
        @app_commands.autocomplete(game=game_autocomplete)
        async def play_command(interaction: discord.Interaction, game: str):
            await self.handle_play(interaction, game)

        @self.tree.command(name="reset", description="Restart the game in this channel")
        async def reset_command(interaction: discord.Interaction):
            await self.handle_reset(interaction)

        @self.tree.command(name="stop", description="Stop the game in this channel")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="scores", description="Show your game results")
        async def scores_command(interaction: discord.Interaction):
            await self.handle_scores(interaction)

        # Lesson commands
        @self.tree.command(name="lessons", description="List the published lessons")
        async def lessons_command(interaction: discord.Interaction):
            await self.handle_lessons(interaction)

        @self.tree.command(name="lesson", description="Read a lesson")
        @app_commands.describe(lesson="Lesson to read")
        @app_commands.autocomplete(lesson=lesson_autocomplete)
        async def lesson_command(interaction: discord.Interaction, lesson: str):
            await self.handle_lesson(interaction, lesson)

        @self.tree.command(name="complete_lesson", description="Mark a lesson as completed")
        @app_commands.describe(lesson="Lesson you finished")
        @app_commands.autocomplete(lesson=lesson_autocomplete)
        async def complete_lesson_command(interaction: discord.Interaction, lesson: str):
            await self.handle_complete_lesson(interaction, lesson)

        @self.tree.command(name="progress", description="Show your lesson and game progress")
        async def progress_command(interaction: discord.Interaction):
            await self.handle_progress(interaction)

        # Configuration commands
        @self.tree.command(name="set_timer", description="Set the quiz timer for each question (5-300 seconds)")
        async def set_timer_command(interaction: discord.Interaction, seconds: int):
            await self.handle_set_timer(interaction, seconds)

        @self.tree.command(name="set_questions", description="Set the number of questions for the next quiz")
        async def set_questions_command(interaction: discord.Interaction, number: int):
            await self.handle_set_questions(interaction, number)

        @self.tree.command(name="random_order", description="Toggle between random and sequential question order")
        async def random_order_command(interaction: discord.Interaction):
            await self.handle_random_order(interaction)

        logger.info("Slash commands registered successfully")

    def game_choices(self, current: str) -> List[app_commands.Choice[str]]:
        """Autocomplete choices for games whose id or title contains the typed text"""
        current = current.lower()
        choices = []
        for game_id in self.data_manager.get_available_games():
            game = self.data_manager.get_game(game_id)
            if current in game_id.lower() or current in game.title.lower():
                choices.append(app_commands.Choice(name=game.title[:100], value=game_id))
        return choices[:25]

    def lesson_choices(self, current: str) -> List[app_commands.Choice[str]]:
        """Autocomplete choices for published lessons"""
        current = current.lower()
        return [
            app_commands.Choice(name=lesson.title[:100], value=lesson.lesson_id)
            for lesson in self.data_manager.get_published_lessons()
            if current in lesson.lesson_id.lower() or current in lesson.title.lower()
        ][:25]

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        """Stop running games before disconnecting"""
        if self.game_controller is not None:
            await self.game_controller.shutdown()
        await super().close()

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🎮 LearnPlay Commands",
                description="Play learning games and read lessons",
                color=0x00ff00
            )

            help_embed.add_field(
                name="🎯 Games",
                value=(
                    "`/games` - List the available games\n"
                    "`/play <game>` - Start a game in this channel\n"
                    "`/reset` - Restart the game in this channel\n"
                    "`/stop` - Stop the game in this channel\n"
                    "`/scores` - Show your game results"
                ),
                inline=False
            )

            help_embed.add_field(
                name="📖 Lessons",
                value=(
                    "`/lessons` - List the published lessons\n"
                    "`/lesson <lesson>` - Read a lesson\n"
                    "`/complete_lesson <lesson>` - Mark a lesson as completed\n"
                    "`/progress` - Show your lesson and game progress"
                ),
                inline=False
            )

            help_embed.add_field(
                name="📋 Settings",
                value=(
                    "`/set_timer <seconds>` - Quiz timer for each question (5-300 sec)\n"
                    "`/set_questions <number>` - Number of questions for the next quiz\n"
                    "`/random_order` - Toggle random question order"
                ),
                inline=False
            )

            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )

            help_embed.set_footer(text="Use slash commands to interact with the bot")
            await interaction.response.send_message(embed=help_embed)

        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")
            await self.send_error_response(interaction, "Failed to display help", "❌ Help Error")

    async def handle_games(self, interaction: discord.Interaction):
        """Handle /games command"""
        try:
            summary = self.data_manager.get_loading_summary()
            embed = discord.Embed(
                title="🎮 Available Games",
                description=f"{summary['total_games']} games loaded. Start one with `/play <game>`.",
                color=0x00ff00
            )

            for game_id in summary['available_games'][:25]:
                game = self.data_manager.get_game(game_id)
                kind = "🎯 Quiz" if game.game_type is GameType.QUIZ else "🧠 Memory"
                embed.add_field(
                    name=f"{kind}: {game.title}",
                    value=f"`{game_id}` {game.description}".strip(),
                    inline=False
                )

            if summary['sample_games_active']:
                embed.set_footer(text="⚠️ Showing sample games. Add JSON files to content/games/ to replace them.")

            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            logger.error(f"Error in games command: {e}")
            await self.send_error_response(interaction, "Failed to list games", "❌ Games Error")

    async def handle_play(self, interaction: discord.Interaction, game_id: str):
        """Handle /play command"""
        channel_id = interaction.channel_id
        try:
            active = await self.game_controller.start_game(channel_id, interaction.user.id, game_id)
        except SessionConflictError:
            progress = self.game_controller.get_game_progress(channel_id)
            await self.send_warning_response(
                interaction,
                f"**{progress['title']}** is already being played here. Use `/stop` to end it first.",
                "⚠️ Game In Progress"
            )
            return
        except GameNotFoundError:
            await self.send_error_response(
                interaction,
                f"No game named `{game_id}`. Use `/games` to see what is available.",
                "❌ Unknown Game"
            )
            return
        except ValueError as e:
            logger.error(f"Game '{game_id}' could not be started: {e}")
            await self.send_error_response(interaction, f"This game is not playable: {e}", "❌ Invalid Game")
            return

        old_view = self.game_views.pop(channel_id, None)
        if old_view is not None:
            await old_view.close()

        view = attach_view(self.game_controller, active)
        self.game_views[channel_id] = view

        try:
            await interaction.response.send_message(embed=build_game_embed(active), view=view)
            view.message = await interaction.original_response()
        except discord.HTTPException as e:
            logger.error(f"Failed to present game in channel {channel_id}: {e}")
            await self.game_controller.stop_game(channel_id)
            self.game_views.pop(channel_id, None)
            await self.send_error_response(interaction, "Failed to start the game. Please try again.", "❌ Game Error")

    async def handle_reset(self, interaction: discord.Interaction):
        """Handle /reset command"""
        channel_id = interaction.channel_id
        active = self.game_controller.get_game(channel_id)

        if active is None:
            await self.send_info_response(interaction, "There is no game in this channel. Use `/play` to start one.")
            return
        if active.user_id != interaction.user.id:
            await self.send_error_response(interaction, "Only the player who started this game can reset it.")
            return

        try:
            await self.game_controller.reset_game(channel_id)
        except SessionNotFoundError:
            await self.send_info_response(interaction, "This game has already ended.")
            return

        if active.on_update is not None:
            await active.on_update(active)
        await self.send_info_response(interaction, f"**{active.game.title}** was restarted.", "🔄 Game Reset")

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        try:
            channel_id = interaction.channel_id
            progress = self.game_controller.get_game_progress(channel_id)

            if not await self.game_controller.stop_game(channel_id):
                embed = discord.Embed(
                    title="ℹ️ No Active Game",
                    description="There is no game in this channel.",
                    color=0x6699ff
                )
                embed.add_field(name="Start a Game", value="Use `/play <game>` to begin", inline=False)
                await interaction.response.send_message(embed=embed, ephemeral=True)
                return

            view = self.game_views.pop(channel_id, None)
            if view is not None:
                await view.close()

            embed = discord.Embed(
                title="🛑 Game Stopped",
                description=f"**{progress['title']}** has been ended",
                color=0xff6600
            )
            if progress['final_score'] is not None:
                embed.add_field(name="Final Score", value=str(progress['final_score']), inline=False)
            embed.set_footer(text="Use /play to begin a new game")
            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            logger.error(f"Error in stop command: {e}")
            await self.send_error_response(interaction, "Failed to stop the game", "❌ Game Control Error")

    async def handle_scores(self, interaction: discord.Interaction):
        """Handle /scores command"""
        try:
            user_id = interaction.user.id
            embed = build_stats_embed(
                interaction.user.display_name,
                self.progress_store.get_user_stats(user_id),
                self.progress_store.get_user_scores(user_id),
                self.data_manager.loaded_games
            )
            await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            logger.error(f"Error in scores command: {e}")
            await self.send_error_response(interaction, "Failed to show scores", "❌ Scores Error")

    async def handle_lessons(self, interaction: discord.Interaction):
        """Handle /lessons command"""
        lessons = self.data_manager.get_published_lessons()
        if not lessons:
            await self.send_info_response(interaction, "No lessons have been published yet.", "📖 Lessons")
            return

        try:
            progress = self.progress_store.get_lesson_progress(interaction.user.id)
            await interaction.response.send_message(embed=build_lessons_embed(lessons, progress), ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Error in lessons command: {e}")
            await self.send_error_response(interaction, "Failed to list lessons", "❌ Lessons Error")

    async def handle_lesson(self, interaction: discord.Interaction, lesson_id: str):
        """Handle /lesson command"""
        lesson = self.data_manager.get_lesson(lesson_id)
        if lesson is None:
            await self.send_error_response(
                interaction,
                f"No lesson named `{lesson_id}`. Use `/lessons` to see what is available.",
                "❌ Unknown Lesson"
            )
            return

        try:
            progress = self.progress_store.get_lesson_progress(interaction.user.id).get(lesson_id)
            await interaction.response.send_message(embed=build_lesson_embed(lesson, progress), ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Error in lesson command: {e}")
            await self.send_error_response(interaction, "Failed to show the lesson", "❌ Lesson Error")

    async def handle_complete_lesson(self, interaction: discord.Interaction, lesson_id: str):
        """Handle /complete_lesson command"""
        lesson = self.data_manager.get_lesson(lesson_id)
        if lesson is None:
            await self.send_error_response(interaction, f"No lesson named `{lesson_id}`.", "❌ Unknown Lesson")
            return

        try:
            self.progress_store.set_lesson_progress(interaction.user.id, lesson_id, True)
        except OSError as e:
            logger.error(f"Failed to save lesson progress for user {interaction.user.id}: {e}")
            await self.send_error_response(interaction, "Your progress could not be saved. Please try again.")
            return

        lessons = self.data_manager.get_published_lessons()
        progress = self.progress_store.get_lesson_progress(interaction.user.id)
        completed = sum(1 for item in lessons if item.lesson_id in progress and progress[item.lesson_id].completed)
        await self.send_info_response(
            interaction,
            f"**{lesson.title}** completed. {completed}/{len(lessons)} lessons done.",
            "✅ Lesson Completed"
        )

    async def handle_progress(self, interaction: discord.Interaction):
        """Handle /progress command"""
        try:
            user_id = interaction.user.id
            lessons = self.data_manager.get_published_lessons()
            lesson_progress = self.progress_store.get_lesson_progress(user_id)
            completed = [
                lesson for lesson in lessons
                if lesson.lesson_id in lesson_progress and lesson_progress[lesson.lesson_id].completed
            ]

            embed = build_stats_embed(
                interaction.user.display_name,
                self.progress_store.get_user_stats(user_id),
                self.progress_store.get_user_scores(user_id)[:3],
                self.data_manager.loaded_games
            )
            embed.title = f"📈 Progress for {interaction.user.display_name}"

            percent = (200 * len(completed) + len(lessons)) // (2 * len(lessons)) if lessons else 0
            embed.add_field(
                name="📖 Lessons",
                value=f"{len(completed)}/{len(lessons)} completed ({percent}%)",
                inline=False
            )
            next_lesson = next((lesson for lesson in lessons if lesson not in completed), None)
            if next_lesson is not None:
                embed.add_field(
                    name="Up next",
                    value=f"{next_lesson.title} (`/lesson {next_lesson.lesson_id}`)",
                    inline=False
                )

            await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            logger.error(f"Error in progress command: {e}")
            await self.send_error_response(interaction, "Failed to show progress", "❌ Progress Error")

    def current_settings_line(self) -> str:
        settings = self.config_manager.get_game_settings()
        question_count_str = str(settings.question_count) if settings.question_count else "all available"
        order_str = "random" if settings.random_order else "sequential"
        return f"Questions: {question_count_str} | Order: {order_str} | Timer: {settings.timer_duration}s"

    async def handle_set_timer(self, interaction: discord.Interaction, seconds: int):
        """Handle /set_timer command"""
        result = self.config_manager.set_timer_duration(seconds)
        if not result['success']:
            await interaction.response.send_message(
                result.get('user_message', f"❌ Failed to set timer duration: {result.get('error', 'Unknown error')}"),
                ephemeral=True
            )
            return

        embed = discord.Embed(
            title="✅ Timer Duration Updated",
            description=f"Each quiz question will now have **{seconds} seconds**",
            color=0x00ff00
        )
        if seconds <= 10:
            embed.add_field(name="⚡ Quick Timer", value="Players will need to think quickly.", inline=False)
        elif seconds <= 30:
            embed.add_field(name="⏱️ Standard Timer", value="Good balance between thinking time and pace.", inline=False)
        else:
            embed.add_field(name="🕐 Extended Timer", value="Plenty of time for careful answers.", inline=False)
        embed.add_field(name="⚙️ Current Settings", value=self.current_settings_line(), inline=False)
        embed.set_footer(text="Applies to the next quiz started")
        await interaction.response.send_message(embed=embed)

    async def handle_set_questions(self, interaction: discord.Interaction, number: int):
        """Handle /set_questions command"""
        result = self.config_manager.set_question_count(number)
        if not result['success']:
            await interaction.response.send_message(
                result.get('user_message', f"❌ Failed to set question count: {result.get('error', 'Unknown error')}"),
                ephemeral=True
            )
            return

        embed = discord.Embed(
            title="✅ Question Count Updated",
            description=f"Set to use **{number}** questions per quiz",
            color=0x00ff00
        )

        quiz_info = []
        for game_id in self.data_manager.get_available_games():
            game = self.data_manager.get_game(game_id)
            if game.game_type is GameType.QUIZ:
                available = len(game.questions)
                quiz_info.append(f"• {game.title}: {min(number, available)}/{available} questions")
        if quiz_info:
            embed.add_field(name="Impact on Available Quizzes", value="\n".join(quiz_info[:5]), inline=False)

        await interaction.response.send_message(embed=embed)

    async def handle_random_order(self, interaction: discord.Interaction):
        """Handle /random_order command"""
        result = self.config_manager.toggle_random_order()
        if not result['success']:
            await interaction.response.send_message(
                result.get('user_message', f"❌ Failed to toggle random order: {result.get('error', 'Unknown error')}"),
                ephemeral=True
            )
            return

        new_value = result['new_value']
        embed = discord.Embed(
            title="✅ Question Order Updated" if new_value else "📝 Question Order Updated",
            description=f"Questions will now be presented in **{'random' if new_value else 'sequential'}** order",
            color=0x00ff00 if new_value else 0x0099ff
        )
        embed.add_field(name="⚙️ Current Settings", value=self.current_settings_line(), inline=False)
        await interaction.response.send_message(embed=embed)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0x6699ff
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send formatted warning response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xffaa00
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send warning response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = LearnPlayBot(config)

    try:
        logger.info("Starting LearnPlay bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
