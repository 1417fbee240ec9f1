"""Command-line entry point for the study planner."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table
from rich.tree import Tree

from .config import PlannerConfig, load_config, write_template
from .content import (
    ContentStore,
    JsonContentRepository,
    Subject,
    TopicCategory,
    category_progress,
    overall_progress,
    subject_progress,
)
from .core import (
    attachment_from_path,
    collect_upload_paths,
    configure_logger,
    ensure_workspace,
    load_client,
)
from .core.workspace import WorkspaceLayout
from .errors import (
    ConfigError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    WorkspaceError,
)
from .quiz.console import run_quiz
from .quiz.generator import ContentService, OpenAIContentService
from .quiz.session import ManualScheduler, QuizEngine

__all__ = ["build_arg_parser", "main"]


@dataclass
class _Runtime:
    config: PlannerConfig
    layout: WorkspaceLayout
    store: ContentStore
    console: Console
    logger: logging.Logger


def _parse_topic_spec(raw: str) -> tuple[str, TopicCategory]:
    category, sep, title = raw.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(
            f"Expected CATEGORY:TITLE, got '{raw}'"
        )
    try:
        return title.strip(), TopicCategory.parse(category)
    except ValidationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="study-planner",
        description="Plan subjects and topics, attach notes and quiz yourself.",
    )
    p.add_argument("--config", type=Path, help="Path to study-planner.toml")
    p.add_argument(
        "--workspace",
        type=Path,
        help="Data directory (defaults to STUDY_PLANNER_HOME or ~/.study-planner)",
    )
    p.add_argument("--verbose", action="store_true", help="Log to stderr too")
    sub = p.add_subparsers(dest="command", required=True)

    sp_init = sub.add_parser("init", help="Create the workspace and config file")
    sp_init.add_argument(
        "--force", action="store_true", help="Overwrite an existing config"
    )

    sp_subject = sub.add_parser("subject", help="Subject commands")
    subject_sub = sp_subject.add_subparsers(dest="action", required=True)
    sp_s_create = subject_sub.add_parser("create", help="Create a subject")
    sp_s_create.add_argument("name")
    sp_s_create.add_argument(
        "--topic",
        dest="topics",
        action="append",
        type=_parse_topic_spec,
        default=[],
        metavar="CATEGORY:TITLE",
        help="Initial topic, e.g. midterm:Sorting (repeatable)",
    )
    subject_sub.add_parser("list", help="List subjects with progress")
    sp_s_show = subject_sub.add_parser("show", help="Show a subject's topics")
    sp_s_show.add_argument("subject_id")
    sp_s_delete = subject_sub.add_parser("delete", help="Delete a subject")
    sp_s_delete.add_argument("subject_id")
    sp_s_delete.add_argument("--yes", action="store_true", help="Skip confirmation")

    sp_topic = sub.add_parser("topic", help="Topic commands")
    topic_sub = sp_topic.add_subparsers(dest="action", required=True)
    sp_t_add = topic_sub.add_parser("add", help="Add a topic to a subject")
    sp_t_add.add_argument("subject_id")
    sp_t_add.add_argument("title")
    sp_t_add.add_argument(
        "--category",
        choices=[category.value for category in TopicCategory],
        default=TopicCategory.MIDTERM.value,
    )
    sp_t_toggle = topic_sub.add_parser("toggle", help="Flip topic completion")
    sp_t_toggle.add_argument("subject_id")
    sp_t_toggle.add_argument("topic_id")

    sp_attach = sub.add_parser("attach", help="Attach files to a topic")
    sp_attach.add_argument("subject_id")
    sp_attach.add_argument("topic_id")
    sp_attach.add_argument("paths", nargs="+", type=Path)

    sp_detach = sub.add_parser("detach", help="Remove an attachment")
    sp_detach.add_argument("subject_id")
    sp_detach.add_argument("topic_id")
    sp_detach.add_argument("attachment_id")

    sp_progress = sub.add_parser("progress", help="Show completion progress")
    sp_progress.add_argument("subject_id", nargs="?")

    sp_quiz = sub.add_parser("quiz", help="Generate and take a quiz for a topic")
    sp_quiz.add_argument("subject_id")
    sp_quiz.add_argument("topic_id")
    sp_quiz.add_argument("--questions", type=int, help="Questions to request")
    return p


def _cmd_init(args: argparse.Namespace, console: Console) -> int:
    layout = ensure_workspace(path=args.workspace)
    target = args.config or layout.config_file
    try:
        write_template(target, overwrite=bool(args.force))
        config_status = "written"
    except ConfigError:
        config_status = "exists"
    console.print(f"Workspace ready at {layout.home}")
    for name, directory in layout.directories.items():
        status = "created" if layout.created.get(name) else "exists"
        console.print(f"  {name:<8} {directory} ({status})")
    console.print(f"Config: {target} ({config_status})")
    return 0


def _progress_cell(subject: Subject) -> str:
    progress = subject_progress(subject)
    return f"{progress.label} ({progress.percent}%)"


def _cmd_subject_create(args: argparse.Namespace, rt: _Runtime) -> int:
    subject = rt.store.create_subject(args.name, args.topics)
    rt.console.print(
        f"[green]Subject created:[/] {escape(subject.name)} "
        f"[dim]({subject.id}, {len(subject.topics)} topic(s))[/]"
    )
    return 0


def _cmd_subject_list(args: argparse.Namespace, rt: _Runtime) -> int:
    subjects = rt.store.subjects()
    if not subjects:
        rt.console.print("No subjects yet. Create one with 'subject create'.")
        return 0
    table = Table(title="Subjects", box=box.SIMPLE)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Progress", justify="right")
    for subject in subjects:
        table.add_row(subject.id, escape(subject.name), _progress_cell(subject))
    rt.console.print(table)
    return 0


def _cmd_subject_show(args: argparse.Namespace, rt: _Runtime) -> int:
    subject = rt.store.get_subject(args.subject_id)
    tree = Tree(
        f"[bold]{escape(subject.name)}[/] [dim]{_progress_cell(subject)}[/]"
    )
    grouped = rt.store.topics_by_category(subject.id)
    for category, topics in grouped.items():
        branch = tree.add(f"[cyan]{category.label}[/]")
        for index, topic in enumerate(topics, start=1):
            mark = "[green]✔[/]" if topic.completed else "[dim]○[/]"
            node = branch.add(
                f"{mark} {index:02d}. {escape(topic.title)} [dim]({topic.id})[/]"
            )
            for attachment in topic.attachments:
                node.add(
                    f"[dim]{attachment.kind.value}[/] {escape(attachment.name)} "
                    f"[dim]({attachment.id})[/]"
                )
    rt.console.print(tree)
    return 0


def _cmd_subject_delete(args: argparse.Namespace, rt: _Runtime) -> int:
    subject = rt.store.get_subject(args.subject_id)
    if not args.yes and not Confirm.ask(
        f"Delete subject '{escape(subject.name)}'?", console=rt.console
    ):
        rt.console.print("Cancelled.")
        return 1
    rt.store.delete_subject(subject.id)
    rt.console.print(f"[green]Deleted[/] {escape(subject.name)}")
    return 0


def _cmd_topic_add(args: argparse.Namespace, rt: _Runtime) -> int:
    subject = rt.store.add_topic(args.subject_id, args.title, args.category)
    topic = subject.topics[-1]
    rt.console.print(
        f"[green]Topic added[/] to {TopicCategory.parse(args.category).label} "
        f"list: {escape(topic.title)} [dim]({topic.id})[/]"
    )
    return 0


def _cmd_topic_toggle(args: argparse.Namespace, rt: _Runtime) -> int:
    rt.store.toggle_topic_completion(args.subject_id, args.topic_id)
    topic = rt.store.get_topic(args.subject_id, args.topic_id)
    state = "completed" if topic.completed else "not completed"
    rt.console.print(f"{escape(topic.title)}: {state}")
    return 0


def _cmd_attach(args: argparse.Namespace, rt: _Runtime) -> int:
    rt.store.get_topic(args.subject_id, args.topic_id)
    for path in collect_upload_paths(args.paths):
        name, kind, payload = attachment_from_path(path)
        rt.store.add_attachment(args.subject_id, args.topic_id, name, kind, payload)
        rt.console.print(
            f"[green]File attached:[/] {escape(name)} [dim]({kind.value})[/]"
        )
    return 0


def _cmd_detach(args: argparse.Namespace, rt: _Runtime) -> int:
    rt.store.delete_attachment(args.subject_id, args.topic_id, args.attachment_id)
    rt.console.print(f"Removed attachment {args.attachment_id}")
    return 0


def _cmd_progress(args: argparse.Namespace, rt: _Runtime) -> int:
    if args.subject_id:
        subject = rt.store.get_subject(args.subject_id)
        table = Table(title=escape(subject.name), box=box.SIMPLE)
        table.add_column("Category")
        table.add_column("Done", justify="right")
        table.add_column("Percent", justify="right")
        for category, progress in category_progress(subject).items():
            table.add_row(category.label, progress.label, f"{progress.percent}%")
        overall = subject_progress(subject)
        table.add_row("[bold]All[/]", overall.label, f"{overall.percent}%")
        rt.console.print(table)
        return 0
    overall = overall_progress(rt.store.subjects())
    rt.console.print(
        f"{overall.label} topics completed across "
        f"{len(rt.store.subjects())} subject(s) ({overall.percent}%)"
    )
    return 0


def _build_service(config: PlannerConfig) -> ContentService:
    client = load_client(
        api_key_env=config.openai.api_key_env,
        api_base=config.openai.api_base,
        timeout=config.openai.request_timeout_seconds,
    )
    return OpenAIContentService(
        client,
        model=config.openai.model,
        temperature=config.openai.temperature,
        max_tokens=config.openai.max_tokens,
    )


def _cmd_quiz(
    args: argparse.Namespace,
    rt: _Runtime,
    input_provider: Optional[Callable[[], str]] = None,
) -> int:
    rt.store.get_topic(args.subject_id, args.topic_id)
    try:
        service = _build_service(rt.config)
    except RuntimeError as exc:
        rt.console.print(f"[red]Error:[/] {escape(str(exc))}")
        return 2
    count = (
        args.questions
        if args.questions is not None
        else rt.config.quiz.question_count
    )
    if count <= 0:
        raise ValidationError("--questions must be positive.")
    scheduler = ManualScheduler()
    engine = QuizEngine(
        rt.store,
        service,
        scheduler=scheduler,
        question_count=count,
        advance_delay=rt.config.quiz.advance_delay_seconds,
        context_max_chars=rt.config.quiz.context_max_chars,
    )
    outcome = run_quiz(
        engine,
        scheduler,
        args.subject_id,
        args.topic_id,
        console=rt.console,
        input_provider=input_provider
        or (lambda: rt.console.input("[bold]Your answer:[/] ")),
    )
    return 0 if outcome.exit_action in ("finished", "quit") else 1


_HANDLERS = {
    ("subject", "create"): _cmd_subject_create,
    ("subject", "list"): _cmd_subject_list,
    ("subject", "show"): _cmd_subject_show,
    ("subject", "delete"): _cmd_subject_delete,
    ("topic", "add"): _cmd_topic_add,
    ("topic", "toggle"): _cmd_topic_toggle,
    ("attach", None): _cmd_attach,
    ("detach", None): _cmd_detach,
    ("progress", None): _cmd_progress,
    ("quiz", None): _cmd_quiz,
}


def _build_runtime(args: argparse.Namespace, console: Console) -> _Runtime:
    layout = ensure_workspace(path=args.workspace)
    config = load_config(
        explicit_path=args.config, default_path=layout.config_file
    )
    if args.workspace is None and config.data_home is not None:
        layout = ensure_workspace(path=config.data_home)
    logger, _ = configure_logger(
        log_dir=layout.path_for("logs"),
        level=config.logging.level,
        verbose=bool(args.verbose or config.logging.verbose),
    )
    store = ContentStore.open(JsonContentRepository(layout.content_file))
    return _Runtime(
        config=config,
        layout=layout,
        store=store,
        console=console,
        logger=logger,
    )


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    console: Optional[Console] = None,
    input_provider: Optional[Callable[[], str]] = None,
) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    console = console or Console()

    if args.command == "init":
        try:
            return _cmd_init(args, console)
        except WorkspaceError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            return 2

    try:
        rt = _build_runtime(args, console)
    except (ConfigError, WorkspaceError, PersistenceError) as exc:
        console.print(f"[red]Error:[/] {escape(str(exc))}")
        return 2

    handler = _HANDLERS[(args.command, getattr(args, "action", None))]
    rt.logger.debug(
        "CLI invoked",
        extra={"command": args.command, "action": getattr(args, "action", None)},
    )
    try:
        if handler is _cmd_quiz:
            code = _cmd_quiz(args, rt, input_provider)
        else:
            code = handler(args, rt)
    except (ValidationError, NotFoundError) as exc:
        console.print(f"[red]Error:[/] {escape(str(exc))}")
        return 1

    if rt.store.persistence_error is not None:
        console.print(
            "[yellow]Warning:[/] changes could not be saved and will be lost "
            f"when this command exits: {escape(str(rt.store.persistence_error))}"
        )
        return 1
    return code


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
