"""
OmniAgent — Telegram Bot.

Thin chat front-end over the agent pipeline. Free text and voice notes go to
the Planner → Executor → Reviewer chain; commands expose the task list, the
calendar and the agent trail of the last run.

Each chat gets its own in-memory AssistantSession; nothing is persisted.
Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
import tempfile
from functools import wraps
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from pydantic import ValidationError
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.config import settings
from src.core.orchestrator import EventDraft, TaskDraft
from src.core.session import AssistantSession
from src.data.models import EVENT_TYPES

if TYPE_CHECKING:
    from src.data.models import AgentLog, CalendarEvent, Task
    from src.ports.speech_port import SpeechPort

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "I'm still working on your previous message. Please wait for my reply."


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Session lookup
# ---------------------------------------------------------------------------


def _get_session(context: ContextTypes.DEFAULT_TYPE) -> AssistantSession:
    """Return this chat's session, creating a seeded one on first contact."""
    session = context.chat_data.get("session")
    if session is None:
        factory = context.bot_data.get("session_factory", AssistantSession)
        session = factory()
        context.chat_data["session"] = session
    return session


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_task(task: Task) -> str:
    mark = "✅" if task.completed else "⬜"
    line = f"{mark} {task.title} [{task.priority}] · {task.category}"
    if task.due_date:
        line += f" (due {task.due_date})"
    return line


def format_event(event: CalendarEvent) -> str:
    line = f"• {event.start_time} – {event.end_time}  {event.title} ({event.type})"
    if event.location:
        line += f" @ {event.location}"
    return line


def format_log(log: AgentLog) -> str:
    return f"[{log.timestamp:%H:%M:%S}] {log.role.value}: {log.content}"


def _split_args(text: str) -> list[str]:
    """Split "/cmd a | b | c" style arguments on "|", keeping empty slots."""
    _, _, rest = text.partition(" ")
    if not rest.strip():
        return []
    return [part.strip() for part in rest.split("|")]


def _task_keyboard(tasks: list[Task]) -> InlineKeyboardMarkup:
    keyboard = [
        [InlineKeyboardButton(format_task(t)[:60], callback_data=f"toggle:{t.id}")]
        for t in tasks
    ]
    return InlineKeyboardMarkup(keyboard)


# ---------------------------------------------------------------------------
# Agent pipeline: text → session.send → reply
# ---------------------------------------------------------------------------


async def _process_text(text: str, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Shared logic for typed and transcribed messages."""
    session = _get_session(context)

    if session.is_processing:
        await update.message.reply_text(BUSY_MESSAGE)
        return

    status_msg = None
    lines: list[str] = []

    async def _on_progress(log: AgentLog) -> None:
        nonlocal status_msg
        lines.append(format_log(log))
        body = "🧠 Agent orchestration\n\n" + "\n".join(lines)
        if status_msg is None:
            status_msg = await update.message.reply_text(body)
        else:
            await status_msg.edit_text(body)

    result = await session.send(
        text, on_progress=_on_progress if settings.SHOW_AGENT_LOGS else None,
    )
    if result is None:
        await update.message.reply_text(BUSY_MESSAGE)
        return

    await update.message.reply_text(result.response)

    added = []
    if result.proposed_tasks:
        added.append(f"{len(result.proposed_tasks)} task(s)")
    if result.proposed_events:
        added.append(f"{len(result.proposed_events)} event(s)")
    if added:
        await update.message.reply_text(f"Added {' and '.join(added)}. Use /tasks or /events to review.")


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message (the seeded greeting)."""
    session = _get_session(context)
    greeting = session.controller.state.messages[0].content if session.controller.state.messages else ""
    await update.message.reply_text(
        f"{greeting}\n\n"
        "Send me a text or voice message and my Planner, Executor and Reviewer "
        "agents will work on it. Type /help for the command list."
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/tasks — Show tasks (tap one to toggle it)\n"
        "/events [type] — Show events, optionally only work/personal/health/social\n"
        "/addtask title | priority | category — Add a task\n"
        "/addevent title | start | end | type | location — Add an event\n"
        "/logs — Show the agent trail of the last request\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_tasks(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /tasks — list tasks with toggle buttons."""
    controller = _get_session(context).controller
    tasks = controller.state.tasks

    if not tasks:
        await update.message.reply_text("No tasks yet.")
        return

    await update.message.reply_text(
        f"Tasks ({len(controller.pending_tasks())} pending):",
        reply_markup=_task_keyboard(tasks),
    )


async def _handle_toggle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the inline button tap to toggle a task."""
    query = update.callback_query
    await query.answer()

    # Verify the user is authorized
    user = query.from_user
    if user is None or user.id not in settings.ALLOWED_USER_IDS:
        return

    controller = _get_session(context).controller
    task_id = query.data.split(":", 1)[1]
    task = controller.toggle_task(task_id)
    if task is None:
        await query.edit_message_text("That task no longer exists. Use /tasks to refresh.")
        return

    await query.edit_message_text(
        f"Tasks ({len(controller.pending_tasks())} pending):",
        reply_markup=_task_keyboard(controller.state.tasks),
    )


@authorized_only
async def cmd_events(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /events [type] — list events, optionally filtered by type."""
    controller = _get_session(context).controller
    event_type = (context.args[0].lower() if context.args else "all")

    if event_type != "all" and event_type not in EVENT_TYPES:
        await update.message.reply_text(
            f"Unknown event type '{event_type}'. Use one of: all, {', '.join(EVENT_TYPES)}."
        )
        return

    events = controller.events_by_type(event_type)
    if not events:
        await update.message.reply_text("No events scheduled.")
        return

    lines = ["Schedule:"] + [format_event(e) for e in events]
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_addtask(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addtask title | priority | category."""
    parts = _split_args(update.message.text)
    if not parts or not parts[0]:
        await update.message.reply_text("Usage: /addtask title | priority | category")
        return

    fields = dict(zip(("title", "priority", "category"), parts))
    try:
        draft = TaskDraft(**{k: v for k, v in fields.items() if v})
    except ValidationError:
        await update.message.reply_text("Usage: /addtask title | priority | category")
        return

    task = _get_session(context).controller.add_task(draft)
    await update.message.reply_text(f"✅ Added task: {format_task(task)}")


@authorized_only
async def cmd_addevent(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addevent title | start | end | type | location."""
    usage = "Usage: /addevent title | start | end | type | location (start like 09:00)"
    parts = _split_args(update.message.text)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        await update.message.reply_text(usage)
        return

    fields = dict(zip(("title", "start_time", "end_time", "type", "location"), parts))
    try:
        draft = EventDraft(**{k: v for k, v in fields.items() if v})
    except ValidationError:
        await update.message.reply_text(usage)
        return

    event = _get_session(context).controller.add_event(draft)
    await update.message.reply_text(f"📅 Added event: {format_event(event)}")


@authorized_only
async def cmd_logs(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /logs — show the agent trail of the latest run."""
    logs = _get_session(context).controller.current_logs
    if not logs:
        await update.message.reply_text("No agent activity yet. Send me a request first.")
        return
    await update.message.reply_text("\n".join(format_log(log) for log in logs))


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — run the agent pipeline."""
    try:
        await _process_text(update.message.text, update, context)
    except Exception as exc:
        logger.error("Text handling error: %s", exc)
        await update.message.reply_text("Sorry, something went wrong. Please try again.")


@authorized_only
async def handle_voice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle voice messages — transcribe, then run the agent pipeline."""
    speech: SpeechPort = context.bot_data["speech"]
    if not speech.available:
        await update.message.reply_text("Speech recognition is not supported in this deployment.")
        return

    voice = update.message.voice
    tmp_path: str | None = None

    try:
        # Download voice file to a temp directory
        voice_file = await context.bot.get_file(voice.file_id)
        with tempfile.NamedTemporaryFile(suffix=".ogg", delete=False) as tmp:
            tmp_path = tmp.name
        await voice_file.download_to_drive(tmp_path)

        text = await speech.transcribe(tmp_path)
        logger.info("Voice transcribed: %s", text[:80])

        if not text:
            await update.message.reply_text("I couldn't hear anything in that voice message.")
            return

        # Show what was heard, then process
        await update.message.reply_text(f"🎤 I heard: {text}")
        await _process_text(text, update, context)

    except Exception as exc:
        logger.error("Voice handling error: %s", exc)
        await update.message.reply_text(
            "Sorry, I couldn't process your voice message. Please try again."
        )
    finally:
        # Cleanup temp file
        if tmp_path:
            try:
                Path(tmp_path).unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove temp file %s: %s", tmp_path, exc)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    speech: SpeechPort | None = None,
    session_factory: Callable[[], AssistantSession] | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        speech: Speech port implementation. Defaults to the factory choice
                (Whisper when OPENAI_API_KEY is set).
        session_factory: Builds a fresh per-chat session. Defaults to a
                seeded AssistantSession.
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if speech is None:
        from src.adapters.speech_factory import create_speech_adapter
        speech = create_speech_adapter()

    app.bot_data["speech"] = speech
    app.bot_data["session_factory"] = session_factory or AssistantSession

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("tasks", cmd_tasks))
    app.add_handler(CommandHandler("events", cmd_events))
    app.add_handler(CommandHandler("addtask", cmd_addtask))
    app.add_handler(CommandHandler("addevent", cmd_addevent))
    app.add_handler(CommandHandler("logs", cmd_logs))
    app.add_handler(CallbackQueryHandler(_handle_toggle_callback, pattern=r"^toggle:"))

    # Text messages (non-command)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    # Voice messages
    app.add_handler(MessageHandler(filters.VOICE, handle_voice))

    logger.info(
        "Telegram bot application built with %d handlers (voice %s)",
        len(app.handlers[0]), "on" if speech.available else "off",
    )
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting OmniAgent bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
