"""
Command-Line Interface for bedrock-core.

Modes:
- (default): interactive chat with the selected model
- --init: write the default config file and exit
- -c DIR [-x]: caption every supported image in DIR (JSON or XML output)
- -s DIR: review the source code in DIR, then continue as a chat

Interactive commands:
    /q quit   /c clear   /s save   /r recall   /h export to HTML
"""

import asyncio
from pathlib import Path
from typing import Optional

import click
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from bedrock_core.agents.chat_agent import ChatAgent
from bedrock_core.api.service import create_chat_agent
from bedrock_core.config.settings import settings, write_default_config
from bedrock_core.domain.exceptions import BusinessError
from bedrock_core.infrastructure.storage.json_store import sanitize_title
from bedrock_core.providers.registry import resolve_model_name
from bedrock_core.tasks.captioner import ImageItem, caption_images, list_images, write_captions
from bedrock_core.tasks.export import export_html
from bedrock_core.tasks.source_review import build_review_question, guess_extensions

console = Console()

# 单轮失败只打印错误，不退出交互循环
TURN_ERRORS = (BusinessError, ClientError, BotoCoreError, OSError)

HISTORY_PREVIEW_CHARS = 1000

HELP_TEXT = "/q quit · /c clear · /s save · /r recall · /h export HTML"


def _echo_fragment(text: str) -> None:
    click.echo(text, nl=False)


def _banner(model_id: str) -> None:
    console.print(
        Panel.fit(
            f"[bold]bedrock-core[/]\nmodel: [cyan]{model_id}[/]\nregion: {settings.aws_region}\n[dim]{HELP_TEXT}[/]",
            border_style="blue",
        )
    )


# ---- 交互命令 ----


async def _save(agent: ChatAgent) -> None:
    with console.status("Generating title and summary..."):
        filename = await agent.save()
    console.print(f"[green]Saved:[/] {filename}")


def _recall(agent: ChatAgent) -> None:
    names = agent.list_saved()
    if not names:
        console.print("[yellow]No saved conversations.[/]")
        return
    table = Table(title="Saved conversations")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("File")
    for idx, name in enumerate(names):
        table.add_row(str(idx), name)
    console.print(table)
    try:
        choice = click.prompt("Pick a conversation", type=click.IntRange(0, len(names) - 1))
        session = agent.load(names[choice])
        console.print(f"[bold]{escape(session.title or names[choice])}[/]")
        if session.summary:
            console.print(escape(session.summary))
        console.print(f"[dim]{len(session.messages)} messages loaded[/]")
        _print_history(agent.session.to_transcript())
    except click.Abort:
        click.echo("")
        console.print("[yellow]Recall cancelled.[/]")


def _print_history(history: str) -> None:
    """询问后打印已载入的对话；超过 HISTORY_PREVIEW_CHARS 时再确认一次，否则只打印开头。"""

    if not click.confirm("Print the conversation history?", default=False):
        return
    if len(history) > HISTORY_PREVIEW_CHARS and not click.confirm(
        f"This conversation history is very long ({len(history)} characters). Print all of it?",
        default=False,
    ):
        click.echo(f"Displaying first {HISTORY_PREVIEW_CHARS} characters:")
        click.echo(click.style(history[:HISTORY_PREVIEW_CHARS], fg="yellow"))
        click.echo("... (truncated)")
        return
    click.echo(click.style(history, fg="yellow"))


def _export(agent: ChatAgent) -> None:
    session = agent.session
    name = sanitize_title(session.title or "conversation")
    path = export_html(session, Path.cwd() / f"{name}.html")
    console.print(f"[green]Exported:[/] {path}")


async def _turn(agent: ChatAgent, text: str) -> None:
    await agent.run_turn(text, sink=_echo_fragment)
    click.echo("")


async def _handle(agent: ChatAgent, line: str) -> bool:
    """处理一行输入，返回 False 表示退出。"""

    cmd = line.strip()
    if cmd == "/q":
        return False
    if cmd == "/c":
        agent.clear()
        console.print("[green]Conversation cleared.[/]")
    elif cmd == "/s":
        await _save(agent)
    elif cmd == "/r":
        _recall(agent)
    elif cmd == "/h":
        _export(agent)
    elif cmd:
        await _turn(agent, line)
    return True


async def _chat_loop(agent: ChatAgent, first_question: Optional[str] = None) -> None:
    pending = first_question
    while True:
        if pending is not None:
            line, pending = pending, None
        else:
            try:
                line = click.prompt(click.style(">", fg="cyan", bold=True), prompt_suffix=" ", default="", show_default=False)
            except click.Abort:
                click.echo("")
                return
        try:
            if not await _handle(agent, line):
                return
        except TURN_ERRORS as e:
            console.print(f"[red]Error:[/] {escape(str(e))}")


# ---- 图片描述 ----


async def _caption(agent: ChatAgent, directory: Path, xml: bool) -> Path:
    files = list_images(directory, settings.supported_images)
    console.print(f"Found {len(files)} images in {directory}")
    images = [ImageItem.from_path(p) for p in files]
    await caption_images(
        agent.client,
        agent.model_id,
        settings.caption_prompt,
        images,
        on_progress=lambda item: console.print(f"  • {item.path.name}"),
    )
    fmt = "xml" if xml else "json"
    return write_captions(images, fmt, Path.cwd() / f"captions.{fmt}")


# ---- 源码审阅 ----


async def _review_question(agent: ChatAgent, source: Path) -> str:
    try:
        with console.status("Guessing project type..."):
            extensions = await guess_extensions(
                agent.client,
                agent.retry_policy,
                agent.housekeeping_model,
                source,
                settings.source_ignore_dirs,
            )
    except TURN_ERRORS as e:
        console.print(f"[yellow]Project type guess failed, using configured extensions:[/] {escape(str(e))}")
        extensions = settings.source_extensions
    console.print(f"Including the following file extensions: {', '.join(extensions)}")
    return build_review_question(source, extensions, settings.source_ignore_dirs)


@click.command()
@click.version_option(version="0.1.0")
@click.option("--init", "init_config", is_flag=True, help="Write the default config file and exit")
@click.option("--model-id", "-m", default=None, help="Model alias or full Bedrock model id")
@click.option(
    "--caption", "-c", default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Caption every supported image in this directory",
)
@click.option("--xml", "-x", is_flag=True, help="Write captions as XML instead of JSON")
@click.option(
    "--source", "-s", default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Review the source code in this directory",
)
def main(init_config: bool, model_id: Optional[str], caption: Optional[Path], xml: bool, source: Optional[Path]):
    """
    Chat with AWS Bedrock foundation models from the terminal.

    Example:
        bedrock-core -m claude-v3-haiku
        bedrock-core -m claude-v3-sonnet -c ./images -x
    """
    if init_config:
        path = write_default_config()
        console.print(f"[green]Config written to:[/] {path}")
        return

    try:
        resolved = resolve_model_name(model_id or settings.default_model)
        agent = create_chat_agent(resolved)
    except (BusinessError, BotoCoreError) as e:
        console.print(f"[red]Startup failed:[/] {escape(str(e))}")
        raise SystemExit(1)

    if caption is not None:
        try:
            outfile = asyncio.run(_caption(agent, caption, xml))
        except TURN_ERRORS as e:
            console.print(f"[red]Captioning failed:[/] {escape(str(e))}")
            raise SystemExit(1)
        console.print(f"[green]Captioning complete:[/] {outfile}")
        return

    first_question = None
    if source is not None:
        console.print(f"[bold blue]Reviewing source in:[/] {source}")
        first_question = asyncio.run(_review_question(agent, source))

    if settings.show_banner:
        _banner(resolved)
    asyncio.run(_chat_loop(agent, first_question))


if __name__ == "__main__":
    main()
