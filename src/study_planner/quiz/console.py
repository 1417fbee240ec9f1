"""Rich-rendered terminal quiz for one topic.

The runner drives a :class:`~.session.QuizEngine` built on a
:class:`~.session.ManualScheduler`: after each answer it renders feedback,
waits out the engine's advance delay and then runs the queued advance.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..errors import NoContextError
from .session import (
    ManualScheduler,
    QuizEngine,
    QuizSession,
    SessionState,
)

__all__ = [
    "QuizOutcome",
    "parse_answer",
    "run_quiz",
]

InputProvider = Callable[[], str]
ExitAction = Literal["finished", "failed", "no-context", "quit"]

_LETTERS = "ABCD"


@dataclass(frozen=True)
class QuizOutcome:
    exit_action: ExitAction
    score: int = 0
    total: int = 0
    message: Optional[str] = None


def parse_answer(raw: Optional[str], option_count: int = 4) -> Optional[int | str]:
    """Turn console input into an option index or the ``"quit"`` command.

    Accepts letters (``a``-``d``) or 1-based numbers. Returns ``None`` for
    anything else.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in {"q", "quit", "exit"}:
        return "quit"
    if len(text) == 1 and text.upper() in _LETTERS[:option_count]:
        return _LETTERS.index(text.upper())
    if text.isdecimal() and 1 <= int(text) <= option_count:
        return int(text) - 1
    return None


def run_quiz(
    engine: QuizEngine,
    scheduler: ManualScheduler,
    subject_id: str,
    topic_id: str,
    *,
    console: Console,
    input_provider: InputProvider,
    sleep: Callable[[float], None] = time.sleep,
) -> QuizOutcome:
    """Run a full quiz for a topic and return how it ended."""

    try:
        session = engine.start_quiz(subject_id, topic_id)
    except NoContextError:
        message = "No study materials. Attach a note or PDF first to generate a quiz!"
        console.print(Panel(message, title="Quiz", border_style="yellow"))
        return QuizOutcome("no-context", message=message)

    try:
        with console.status("Reading notes & generating questions..."):
            engine.load(session)

        if session.state is SessionState.FAILED:
            message = session.error.user_message if session.error else "Quiz failed."
            console.print(
                Panel(message, title="Generation failed", border_style="red")
            )
            return QuizOutcome("failed", message=message)

        while session.state is SessionState.ACTIVE:
            _render_question(console, session)
            try:
                raw = input_provider()
            except (EOFError, KeyboardInterrupt, StopIteration):
                console.print("\n[bold yellow]Quiz interrupted.[/]")
                return QuizOutcome("quit", session.score, session.total)
            choice = parse_answer(raw, len(session.current_question.options))
            if choice is None:
                console.print("[red]Answer with A-D (or 1-4), or 'q' to quit.[/]")
                continue
            if choice == "quit":
                console.print("\n[bold yellow]Quiz closed.[/]")
                return QuizOutcome("quit", session.score, session.total)
            feedback = engine.submit_answer(session.session_id, choice)
            if feedback is None:
                continue
            _render_feedback(console, session, feedback.selected_index)
            sleep(engine.advance_delay)
            scheduler.run_pending()

        _render_summary(console, session)
        return QuizOutcome("finished", session.score, session.total)
    finally:
        engine.close_quiz(session.session_id)


def _render_question(console: Console, session: QuizSession) -> None:
    question = session.current_question
    header = Text.assemble(
        (f"Question {session.current_index + 1}", "bold cyan"),
        (f" of {session.total}", "dim"),
        (f"   Score: {session.score}", "dim"),
    )
    console.print()
    console.rule(header)
    console.print(Text(question.prompt, style="bold"))
    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Option")
    for idx, option in enumerate(question.options):
        table.add_row(_LETTERS[idx], Text(option))
    console.print(table)


def _render_feedback(console: Console, session: QuizSession, selected: int) -> None:
    question = session.current_question
    if question.is_correct(selected):
        console.print("[bold green]Correct![/]")
        return
    letter = _LETTERS[question.correct_index]
    console.print(
        f"[bold red]Incorrect.[/] Answer: "
        f"[green]{letter}) {escape(question.correct_option)}[/]"
    )


def _render_summary(console: Console, session: QuizSession) -> None:
    console.print()
    console.rule(Text(f"Quiz Complete: {session.topic_title}", style="bold magenta"))
    if session.score == session.total:
        remark = "Perfect Score! 🎉"
    else:
        remark = "Good practice! Review your notes for the ones you missed."
    console.print(
        Panel(
            Text.assemble(
                (f"{session.score} / {session.total}\n", "bold"),
                (remark, "dim"),
            ),
            border_style="green",
        )
    )
