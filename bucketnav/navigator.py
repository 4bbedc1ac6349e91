from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .actions import handle_object, handle_upload
from .host import Host, MenuItem, PreviewFn
from .preview import (
    PREVIEW_MAX_BYTES,
    PreviewKind,
    preview_kind,
    render_error,
    render_preview,
)
from .s3 import DELIMITER, Listing, S3Store, StoreError

logger = logging.getLogger(__name__)

# Control values start with NUL, which S3 listings (XML 1.0) cannot return
# inside a key, so they never collide with a real object named e.g. "UPLOAD".
RETURN_TO_BUCKET_SELECTION = "\x00RETURN_TO_BUCKET_SELECTION"
PARENT = "\x00.."
UPLOAD = "\x00UPLOAD"


class Action(enum.Enum):
    STAY = "stay"
    EXIT = "exit"
    UPLOAD = "upload"
    OPEN_OBJECT = "open_object"


class SessionEnd(enum.Enum):
    RETURNED = "returned"
    OBJECT_HANDLED = "object_handled"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class NavigatorState:
    prefix: str = ""
    history: list[str] = field(default_factory=list)

    def descend(self, prefix: str) -> None:
        self.history.append(self.prefix)
        self.prefix = prefix

    def ascend(self) -> None:
        self.prefix = self.history.pop() if self.history else ""


def apply_selection(state: NavigatorState, selection: Optional[str]) -> Action:
    """Apply one menu selection to ``state`` and say what the caller runs next.

    ``None`` is the abandon gesture and behaves like ``..``.
    """
    if selection is None or selection == PARENT:
        state.ascend()
        return Action.STAY
    if selection == RETURN_TO_BUCKET_SELECTION:
        return Action.EXIT
    if selection == UPLOAD:
        return Action.UPLOAD
    if selection.endswith(DELIMITER):
        state.descend(selection)
        return Action.STAY
    return Action.OPEN_OBJECT


def format_size(size: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(size)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            if unit == "B":
                return f"{int(value)} {unit}"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def display_name(key: str, prefix: str) -> str:
    if prefix and key.startswith(prefix):
        return key[len(prefix) :]
    return key


def build_menu(
    listing: Listing,
    prefix: str,
    preview_for: Optional[Callable[[str], PreviewFn]] = None,
) -> list[MenuItem]:
    items = [MenuItem("🪣 Return to Bucket Selection", RETURN_TO_BUCKET_SELECTION)]
    if prefix:
        items.append(MenuItem("📁 ..", PARENT))
    items.append(MenuItem("⬆ Upload", UPLOAD))
    for common in listing.common_prefixes:
        items.append(MenuItem(f"📁 {display_name(common, prefix)}", common))
    for obj in listing.contents:
        label = display_name(obj.key, prefix)
        if obj.size is not None:
            label = f"{label}  ({format_size(obj.size)})"
        preview = preview_for(obj.key) if preview_for else None
        items.append(MenuItem(label, obj.key, preview))
    return items


def select_bucket(store: S3Store, host: Host) -> Optional[str]:
    buckets = store.list_buckets()
    if not buckets:
        host.show("### No buckets found")
        return None
    items = [MenuItem(f"🪣 {name}", name) for name in buckets]
    return host.select_one("Select a bucket", items)


class Navigator:
    """One browsing session inside a single bucket."""

    def __init__(self, store: S3Store, host: Host, bucket: str, prefix: str = "") -> None:
        self.store = store
        self.host = host
        self.bucket = bucket
        self.state = NavigatorState(prefix=prefix)

    def run(self) -> SessionEnd:
        try:
            return self._loop()
        except (StoreError, OSError) as exc:
            logger.error("Browsing s3://%s/%s failed: %s", self.bucket, self.state.prefix, exc)
            logger.debug("Navigator session failure", exc_info=True)
            self.host.show(f"### Error: {exc}")
            return SessionEnd.FAILED

    def _loop(self) -> SessionEnd:
        while True:
            prefix = self.state.prefix
            listing = self.store.list_objects(self.bucket, prefix)
            if listing.is_empty:
                self.host.show(
                    f"### No objects found in bucket: {self.bucket} with prefix: {prefix}"
                )
                return SessionEnd.EMPTY

            items = build_menu(listing, prefix, self.preview_for)
            selection = self.host.select_one(
                f"Select an item in {self.bucket} (prefix: {prefix})", items
            )
            action = apply_selection(self.state, selection)
            if action is Action.EXIT:
                return SessionEnd.RETURNED
            if action is Action.UPLOAD:
                handle_upload(self.store, self.host, self.bucket, prefix)
            elif action is Action.OPEN_OBJECT:
                handle_object(self.store, self.host, self.bucket, selection)
                return SessionEnd.OBJECT_HANDLED

    def preview_for(self, key: str) -> PreviewFn:
        def produce() -> str:
            try:
                head = self.store.head_object(self.bucket, key)
                kind = preview_kind(key, head.content_type)
                url = self.store.signed_url(self.bucket, key)
                body = None
                if kind is not PreviewKind.IMAGE:
                    body = self.store.fetch_text(url, max_bytes=PREVIEW_MAX_BYTES)
            except StoreError as exc:
                logger.debug("Preview of %s failed: %s", key, exc)
                return render_error(key, exc)
            return render_preview(kind, key, url, body)

        return produce


def browse(store: S3Store, host: Host, bucket: Optional[str] = None) -> None:
    """Alternate between bucket selection and navigator sessions.

    Ends when there are no buckets or the user abandons the bucket list.
    """
    while True:
        if bucket is None:
            bucket = select_bucket(store, host)
            if bucket is None:
                return
        logger.info("Opening bucket %s", bucket)
        Navigator(store, host, bucket).run()
        bucket = None
