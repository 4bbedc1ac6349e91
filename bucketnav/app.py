from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.prompt import Confirm, Prompt
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Footer, OptionList, Static, TextArea
from textual.widgets.option_list import Option

from .config import ConfigError, load_config
from .host import MenuItem
from .navigator import browse
from .preview import render_error
from .s3 import S3Store, StoreError

logger = logging.getLogger(__name__)

# Editor language hints that differ from textual's language names.
EDITOR_LANGUAGES = {
    "plaintext": None,
    "shell": "bash",
    "typescript": "javascript",
}


class SelectApp(App[Optional[str]]):
    """Pick one item from a list; items with a preview render it on highlight."""

    BINDINGS = [
        Binding("escape", "abandon", "Back"),
    ]
    CSS = """
    #select-prompt {
        height: 3;
        padding: 0 1;
        border: round $panel;
        background: $surface;
        color: $text;
        content-align: left middle;
    }

    #select-body {
        height: 1fr;
    }

    #select-list {
        width: 2fr;
        border: round $panel;
    }

    #select-preview {
        width: 3fr;
        padding: 0 1;
        border: round $panel;
        background: $surface;
    }
    """

    def __init__(self, prompt: str, items: list[MenuItem]) -> None:
        super().__init__()
        self._prompt = prompt
        self._items = list(items)

    @property
    def has_previews(self) -> bool:
        return any(item.preview is not None for item in self._items)

    def compose(self) -> ComposeResult:
        yield Static(Text(self._prompt), id="select-prompt")
        with Horizontal(id="select-body"):
            yield OptionList(
                *[
                    Option(Text(item.label), id=str(index))
                    for index, item in enumerate(self._items)
                ],
                id="select-list",
            )
            if self.has_previews:
                with VerticalScroll(id="select-preview"):
                    yield Static("", id="preview-body")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#select-list", OptionList).focus()

    def on_option_list_option_highlighted(
        self, event: OptionList.OptionHighlighted
    ) -> None:
        if not self.has_previews:
            return
        item = self._items[event.option_index]
        if item.preview is None:
            self._set_preview("")
            return
        self._set_preview(f"Loading {item.value}...")
        self.run_worker(
            self._load_preview(item), exclusive=True, group="preview"
        )

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.exit(self._items[event.option_index].value)

    async def _load_preview(self, item: MenuItem) -> None:
        try:
            rendered = await asyncio.to_thread(item.preview)
        except Exception as exc:
            rendered = render_error(item.value, exc)
        self._set_preview(rendered)

    def _set_preview(self, text: str) -> None:
        self.query_one("#preview-body", Static).update(Markdown(text))

    def action_abandon(self) -> None:
        self.exit(None)


class EditorApp(App[Optional[str]]):
    BINDINGS = [
        Binding("ctrl+s", "save", "Save", priority=True),
        Binding("escape", "discard", "Discard", priority=True),
    ]
    CSS = """
    #editor-title {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }

    #editor {
        height: 1fr;
    }
    """

    def __init__(self, text: str, language: Optional[str] = None) -> None:
        super().__init__()
        self._text = text
        self._language = language

    def compose(self) -> ComposeResult:
        title = f"Editing ({self._language})" if self._language else "Editing"
        yield Static(title, id="editor-title")
        yield TextArea(self._text, id="editor", show_line_numbers=True)
        yield Footer()

    def on_mount(self) -> None:
        editor = self.query_one("#editor", TextArea)
        language = EDITOR_LANGUAGES.get(self._language, self._language)
        if language and language in editor.available_languages:
            editor.language = language
        editor.focus()

    def action_save(self) -> None:
        self.exit(self.query_one("#editor", TextArea).text)

    def action_discard(self) -> None:
        self.exit(None)


class TerminalHost:
    """Interactive host backed by short-lived textual apps and rich prompts."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def select_one(self, prompt: str, items: list[MenuItem]) -> Optional[str]:
        return SelectApp(prompt, items).run()

    def prompt_text(self, prompt: str) -> Optional[str]:
        value = Prompt.ask(prompt, default="", show_default=False, console=self.console)
        return value.strip() or None

    def prompt_path(self, hint: str) -> Optional[str]:
        value = Prompt.ask(
            f"{hint} (leave empty to cancel)",
            default="",
            show_default=False,
            console=self.console,
        )
        return value.strip() or None

    def confirm(self, prompt: str) -> bool:
        return Confirm.ask(prompt, default=False, console=self.console)

    def edit(self, text: str, language: Optional[str] = None) -> Optional[str]:
        return EditorApp(text, language).run()

    def show(self, message: str) -> None:
        self.console.print(Markdown(message))


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    # botocore is very chatty at DEBUG.
    for name in ("botocore", "boto3", "urllib3", "s3transfer"):
        logging.getLogger(name).setLevel(max(level, logging.INFO))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bucketnav", description="Interactive terminal browser for S3 buckets"
    )
    parser.add_argument(
        "bucket",
        nargs="?",
        help="Open this bucket directly instead of showing the bucket list first",
    )
    parser.add_argument(
        "--region",
        help="AWS region for the S3 client (defaults to $AWS_REGION or us-west-2)",
    )
    parser.add_argument(
        "--endpoint-url",
        help="Custom S3-compatible endpoint, e.g. a MinIO server",
    )
    parser.add_argument(
        "--url-expiry",
        type=int,
        help="Lifetime in seconds of signed read URLs (default 3600)",
    )
    parser.add_argument("--log-file", help="Write logs to this file instead of stderr")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def _run_browser_command(args: argparse.Namespace) -> int:
    console = Console()
    try:
        config = load_config(
            region=args.region,
            endpoint_url=args.endpoint_url,
            url_expiry=args.url_expiry,
        )
        browse(S3Store(config), TerminalHost(console), bucket=args.bucket)
    except (ConfigError, StoreError) as exc:
        logger.debug("Exiting after error", exc_info=True)
        console.print(Text.assemble(("Error: ", "bold red"), str(exc)))
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, log_file=args.log_file)
    return _run_browser_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
