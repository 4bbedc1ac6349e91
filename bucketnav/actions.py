from __future__ import annotations

import logging
import mimetypes
from pathlib import Path, PurePosixPath
from typing import Optional

from .host import Host, MenuItem
from .preview import pretty_json, text_language
from .s3 import ObjectHead, S3Store

logger = logging.getLogger(__name__)

TEXT_ACTIONS = [
    MenuItem("Download", "download"),
    MenuItem("Open in editor", "open"),
    MenuItem("Delete", "delete"),
]
SAVE_ACTIONS = [
    MenuItem("Save Locally", "saveLocal"),
    MenuItem("Save to Bucket", "saveBucket"),
]


def resolve_download_path(target: str, key: str) -> Path:
    path = Path(target).expanduser()
    if target.endswith(("/", "\\")) or path.is_dir():
        filename = PurePosixPath(key).name or "download"
        path = path / filename
    return path


def upload_key(prefix: str, entered: str) -> str:
    return f"{prefix}{entered}" if prefix else entered


def guess_content_type(key: str) -> Optional[str]:
    content_type, _ = mimetypes.guess_type(key)
    return content_type


def handle_object(store: S3Store, host: Host, bucket: str, key: str) -> None:
    """Offer the actions available for one object and run the chosen one.

    Metadata and the signed URL are resolved before anything is offered, so
    a store failure surfaces before the user is asked for anything.
    """
    head = store.head_object(bucket, key)
    url = store.signed_url(bucket, key)
    language = text_language(key)
    if language is None:
        download_object(store, host, key, url)
        return

    action = host.select_one(f"What would you like to do with {key}?", TEXT_ACTIONS)
    if action == "download":
        download_object(store, host, key, url)
    elif action == "open":
        edit_object(store, host, bucket, head, url, language)
    elif action == "delete":
        delete_object(store, host, bucket, key)


def download_object(store: S3Store, host: Host, key: str, url: str) -> Optional[Path]:
    target = host.prompt_path(f"Select download location for {key}")
    if not target:
        return None
    destination = store.download(url, resolve_download_path(target, key))
    host.show(f"### File successfully downloaded to {destination}")
    return destination


def edit_object(
    store: S3Store,
    host: Host,
    bucket: str,
    head: ObjectHead,
    url: str,
    language: str,
) -> None:
    try:
        text = store.fetch_text(url, strict=True)
    except UnicodeDecodeError:
        host.show(f"### {head.key} is not valid UTF-8 text and cannot be edited")
        return
    formatted = pretty_json(text)
    if formatted is not None:
        text = formatted
    edited = host.edit(text, language)
    if edited is None:
        return

    next_action = host.select_one(
        f"What would you like to do with the edited version of: {head.key}?",
        SAVE_ACTIONS,
    )
    if next_action == "saveLocal":
        target = host.prompt_path("Select where to save the edited file")
        if not target:
            return
        destination = resolve_download_path(target, head.key)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(edited, encoding="utf-8")
        host.show(f"### File successfully saved locally to {destination}")
    elif next_action == "saveBucket":
        if not host.confirm(f"Are you sure you want to overwrite the file at {head.key}?"):
            return
        store.put_object(bucket, head.key, edited, content_type=head.content_type or None)
        host.show(f"### File successfully saved to {head.key}")


def delete_object(store: S3Store, host: Host, bucket: str, key: str) -> bool:
    if not host.confirm(f"Are you sure you want to delete the file at {key}?"):
        return False
    store.delete_object(bucket, key)
    host.show(f"### File successfully deleted: {key}")
    return True


def handle_upload(store: S3Store, host: Host, bucket: str, prefix: str) -> Optional[str]:
    """Upload a local file below ``prefix``; returns the key written, if any."""
    entered = host.prompt_text("Enter the key path to upload:")
    if not entered:
        return None
    final_key = upload_key(prefix, entered.strip().lstrip("/"))
    if not final_key or final_key.endswith("/"):
        host.show(f"### Not a valid object key: {final_key or entered}")
        return None

    if store.object_exists(bucket, final_key):
        overwrite = host.confirm(
            f"File already exists at {final_key}. Do you want to overwrite it?"
        )
        if not overwrite:
            logger.info("Upload to s3://%s/%s declined", bucket, final_key)
            return None

    source = host.prompt_path(f"Select the file to upload to {final_key}")
    if not source:
        return None
    body = Path(source).expanduser().read_bytes()
    store.put_object(bucket, final_key, body, content_type=guess_content_type(final_key))
    host.show(f"### File successfully uploaded to {final_key}")
    return final_key
