from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

PreviewFn = Callable[[], str]


@dataclass(frozen=True)
class MenuItem:
    label: str
    value: str
    preview: Optional[PreviewFn] = None


class Host(Protocol):
    """Interactive capabilities the browser needs from its terminal.

    ``None`` from a prompt means the user abandoned it (escape, or an empty
    answer); callers treat that as navigation, never as an error.
    """

    def select_one(self, prompt: str, items: list[MenuItem]) -> Optional[str]: ...

    def prompt_text(self, prompt: str) -> Optional[str]: ...

    def prompt_path(self, hint: str) -> Optional[str]: ...

    def confirm(self, prompt: str) -> bool: ...

    def edit(self, text: str, language: Optional[str] = None) -> Optional[str]: ...

    def show(self, message: str) -> None: ...
