from __future__ import annotations

import enum
import json
from typing import Optional

import yaml

PREVIEW_MAX_BYTES = 64 * 1024

# Checked in order against the end of the key; case-sensitive.
TEXT_SUFFIXES: tuple[tuple[str, str], ...] = (
    (".txt", "plaintext"),
    (".json", "json"),
    (".yml", "yaml"),
    (".yaml", "yaml"),
    (".js", "javascript"),
    (".ts", "typescript"),
    (".html", "html"),
    (".css", "css"),
    (".md", "markdown"),
    (".xml", "xml"),
    (".sh", "shell"),
    (".py", "python"),
)

YAML_CONTENT_TYPES = {"application/x-yaml", "text/yaml"}


class PreviewKind(enum.Enum):
    IMAGE = "image"
    JSON = "json"
    YAML = "yaml"
    TEXT = "text"


def text_language(key: str) -> Optional[str]:
    """Return the editor language for a text object, or None for binary."""
    for suffix, language in TEXT_SUFFIXES:
        if key.endswith(suffix):
            return language
    return None


def preview_kind(key: str, content_type: str = "") -> PreviewKind:
    content_type = (content_type or "").split(";", 1)[0].strip().lower()
    if content_type.startswith("image/"):
        return PreviewKind.IMAGE
    if content_type == "application/json" or key.endswith(".json"):
        return PreviewKind.JSON
    if (
        content_type in YAML_CONTENT_TYPES
        or key.endswith(".yml")
        or key.endswith(".yaml")
    ):
        return PreviewKind.YAML
    return PreviewKind.TEXT


def pretty_json(text: str) -> Optional[str]:
    """Re-indent ``text`` when it parses as JSON."""
    try:
        data = json.loads(text)
        return json.dumps(data, indent=2, ensure_ascii=False)
    except (ValueError, RecursionError):
        return None


def pretty_yaml(text: str) -> Optional[str]:
    try:
        data = yaml.safe_load(text)
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    except (yaml.YAMLError, RecursionError):
        return None


def _fenced(key: str, language: str, body: str) -> str:
    body = body.rstrip("\n")
    return f"### {key}\n```{language}\n{body}\n```"


def render_preview(
    kind: PreviewKind, key: str, url: str = "", body: Optional[str] = None
) -> str:
    """Render markdown for one object preview.

    IMAGE only needs the signed URL; every other kind needs the fetched body.
    Bodies that fail to parse as their declared format are shown as text.
    """
    if kind is PreviewKind.IMAGE:
        return f"### {key}\n![{key}]({url})"
    body = body or ""
    if kind is PreviewKind.JSON:
        formatted = pretty_json(body)
        if formatted is not None:
            return _fenced(key, "json", formatted)
    elif kind is PreviewKind.YAML:
        formatted = pretty_yaml(body)
        if formatted is not None:
            return _fenced(key, "yaml", formatted)
    return _fenced(key, "text", body)


def render_error(key: str, exc: Exception) -> str:
    return f"### {key}\nPreview unavailable: {exc}"
