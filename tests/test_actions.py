import tempfile
import unittest
from pathlib import Path

from bucketnav.actions import (
    guess_content_type,
    handle_object,
    handle_upload,
    resolve_download_path,
    upload_key,
)
from bucketnav.s3 import StoreError

from fakes import FakeStore, ScriptedHost


def _store() -> FakeStore:
    return FakeStore(
        {
            "data": {
                "reports/q1.csv": (b"old,content\n", "text/csv"),
                "config/app.json": (b'{"debug":false}', "application/json"),
                "config/notes.md": (b"# keep me\n", "text/markdown"),
                "images/cat.gif": (b"GIF89a", "image/gif"),
            }
        }
    )


class TestHelpers(unittest.TestCase):
    def test_upload_key(self) -> None:
        self.assertEqual(upload_key("new/", "data.txt"), "new/data.txt")
        self.assertEqual(upload_key("", "data.txt"), "data.txt")

    def test_resolve_download_path(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            self.assertEqual(
                resolve_download_path(temp_dir, "a/b/report.pdf"),
                Path(temp_dir) / "report.pdf",
            )
            self.assertEqual(
                resolve_download_path(f"{temp_dir}/named.pdf", "a/b/report.pdf"),
                Path(temp_dir) / "named.pdf",
            )
            self.assertEqual(
                resolve_download_path(f"{temp_dir}/missing/", "report.pdf"),
                Path(temp_dir) / "missing" / "report.pdf",
            )

    def test_guess_content_type(self) -> None:
        self.assertEqual(guess_content_type("a/b.json"), "application/json")
        self.assertIsNone(guess_content_type("a/b.unknownext"))


class TestUpload(unittest.TestCase):
    def test_declined_overwrite_leaves_object_unchanged(self) -> None:
        store = _store()
        host = ScriptedHost(texts=["q1.csv"], confirms=[False])
        self.assertIsNone(handle_upload(store, host, "data", "reports/"))
        self.assertEqual(store.buckets["data"]["reports/q1.csv"], (b"old,content\n", "text/csv"))
        self.assertNotIn("put_object", [call[0] for call in store.calls])
        self.assertEqual(
            host.confirm_prompts,
            ["File already exists at reports/q1.csv. Do you want to overwrite it?"],
        )
        head = store.head_object("data", "reports/q1.csv")
        self.assertEqual(head.size, len(b"old,content\n"))

    def test_confirmed_overwrite_replaces_object(self) -> None:
        store = _store()
        with tempfile.TemporaryDirectory() as temp_dir:
            source = Path(temp_dir) / "q1.csv"
            source.write_bytes(b"new,content\n")
            host = ScriptedHost(texts=["q1.csv"], confirms=[True], paths=[str(source)])
            self.assertEqual(handle_upload(store, host, "data", "reports/"), "reports/q1.csv")
        self.assertEqual(store.buckets["data"]["reports/q1.csv"][0], b"new,content\n")
        self.assertEqual(host.messages, ["### File successfully uploaded to reports/q1.csv"])

    def test_fresh_key_is_joined_to_prefix(self) -> None:
        store = FakeStore({"data": {"new/existing.txt": (b"x", "text/plain")}})
        with tempfile.TemporaryDirectory() as temp_dir:
            source = Path(temp_dir) / "local.txt"
            source.write_text("payload")
            host = ScriptedHost(texts=["data.txt"], paths=[str(source)])
            self.assertEqual(handle_upload(store, host, "data", "new/"), "new/data.txt")
        self.assertEqual(store.buckets["data"]["new/data.txt"], (b"payload", "text/plain"))
        self.assertEqual(host.confirm_prompts, [])

    def test_root_upload_uses_entered_key(self) -> None:
        store = FakeStore({"data": {}})
        with tempfile.TemporaryDirectory() as temp_dir:
            source = Path(temp_dir) / "blob"
            source.write_bytes(b"\x00\x01")
            host = ScriptedHost(texts=["blob.bin"], paths=[str(source)])
            self.assertEqual(handle_upload(store, host, "data", ""), "blob.bin")

    def test_empty_key_cancels(self) -> None:
        store = _store()
        host = ScriptedHost(texts=[None])
        self.assertIsNone(handle_upload(store, host, "data", "reports/"))
        self.assertEqual(store.calls, [])

    def test_folder_key_is_rejected(self) -> None:
        store = _store()
        host = ScriptedHost(texts=["sub/"])
        self.assertIsNone(handle_upload(store, host, "data", "reports/"))
        self.assertEqual(host.messages, ["### Not a valid object key: reports/sub/"])

    def test_cancelled_source_path_writes_nothing(self) -> None:
        store = _store()
        host = ScriptedHost(texts=["fresh.txt"], paths=[None])
        self.assertIsNone(handle_upload(store, host, "data", "reports/"))
        self.assertNotIn("reports/fresh.txt", store.buckets["data"])

    def test_existence_check_failure_other_than_not_found_aborts(self) -> None:
        store = _store()
        store.failures["head_object"] = StoreError("HeadObject", "throttled")
        host = ScriptedHost(texts=["fresh.txt"])
        with self.assertRaises(StoreError):
            handle_upload(store, host, "data", "reports/")
        self.assertNotIn("put_object", [call[0] for call in store.calls])


class TestObjectActions(unittest.TestCase):
    def test_binary_object_downloads_directly(self) -> None:
        store = _store()
        with tempfile.TemporaryDirectory() as temp_dir:
            target = Path(temp_dir) / "cat.gif"
            host = ScriptedHost(paths=[str(target)])
            handle_object(store, host, "data", "images/cat.gif")
            self.assertEqual(target.read_bytes(), b"GIF89a")
        self.assertEqual(host.menus, [])

    def test_text_object_offers_three_actions(self) -> None:
        store = _store()
        with tempfile.TemporaryDirectory() as temp_dir:
            host = ScriptedHost(selections=["download"], paths=[temp_dir])
            handle_object(store, host, "data", "config/notes.md")
            self.assertEqual((Path(temp_dir) / "notes.md").read_bytes(), b"# keep me\n")
        prompt, items = host.menus[0]
        self.assertEqual(prompt, "What would you like to do with config/notes.md?")
        self.assertEqual([item.value for item in items], ["download", "open", "delete"])

    def test_confirmed_delete_removes_key(self) -> None:
        store = _store()
        host = ScriptedHost(selections=["delete"], confirms=[True])
        handle_object(store, host, "data", "config/notes.md")
        listing = store.list_objects("data", "config/")
        self.assertNotIn("config/notes.md", [obj.key for obj in listing.contents])
        self.assertEqual(host.messages, ["### File successfully deleted: config/notes.md"])

    def test_declined_delete_keeps_key(self) -> None:
        store = _store()
        host = ScriptedHost(selections=["delete"], confirms=[False])
        handle_object(store, host, "data", "config/notes.md")
        listing = store.list_objects("data", "config/")
        self.assertIn("config/notes.md", [obj.key for obj in listing.contents])

    def test_save_to_bucket_keeps_content_type(self) -> None:
        store = _store()
        host = ScriptedHost(
            selections=["open", "saveBucket"],
            edits=['{\n  "debug": true\n}'],
            confirms=[True],
        )
        handle_object(store, host, "data", "config/app.json")
        self.assertEqual(host.edited, [('{\n  "debug": false\n}', "json")])
        body, content_type = store.buckets["data"]["config/app.json"]
        self.assertEqual(body, b'{\n  "debug": true\n}')
        self.assertEqual(content_type, "application/json")
        self.assertEqual(store.head_object("data", "config/app.json").content_type, "application/json")

    def test_declined_save_to_bucket_writes_nothing(self) -> None:
        store = _store()
        host = ScriptedHost(
            selections=["open", "saveBucket"], edits=["changed"], confirms=[False]
        )
        handle_object(store, host, "data", "config/app.json")
        self.assertEqual(store.buckets["data"]["config/app.json"][0], b'{"debug":false}')

    def test_save_locally(self) -> None:
        store = _store()
        with tempfile.TemporaryDirectory() as temp_dir:
            target = Path(temp_dir) / "out" / "notes.md"
            host = ScriptedHost(
                selections=["open", "saveLocal"], edits=["# edited\n"], paths=[str(target)]
            )
            handle_object(store, host, "data", "config/notes.md")
            self.assertEqual(target.read_text(), "# edited\n")
        self.assertEqual(host.edited, [("# keep me\n", "markdown")])
        self.assertEqual(store.buckets["data"]["config/notes.md"][0], b"# keep me\n")

    def test_cancelled_edit_offers_nothing_more(self) -> None:
        store = _store()
        host = ScriptedHost(selections=["open"], edits=[None])
        handle_object(store, host, "data", "config/notes.md")
        self.assertEqual(len(host.menus), 1)
        self.assertNotIn("put_object", [call[0] for call in store.calls])

    def test_metadata_failure_stops_before_any_prompt(self) -> None:
        store = _store()
        store.failures["head_object"] = StoreError("HeadObject", "denied")
        host = ScriptedHost()
        with self.assertRaises(StoreError):
            handle_object(store, host, "data", "config/notes.md")
        self.assertEqual(host.menus, [])

    def test_content_failure_leaves_no_edit_state(self) -> None:
        store = _store()
        store.failures["fetch_text"] = StoreError("GetObject", "403 Forbidden")
        host = ScriptedHost(selections=["open"])
        with self.assertRaises(StoreError):
            handle_object(store, host, "data", "config/notes.md")
        self.assertEqual(host.edited, [])

    def test_deeply_nested_json_opens_unformatted(self) -> None:
        raw = "[" * 100000 + "]" * 100000
        store = FakeStore({"data": {"deep.json": (raw.encode(), "application/json")}})
        host = ScriptedHost(selections=["open"], edits=[None])
        handle_object(store, host, "data", "deep.json")
        self.assertEqual(host.edited, [(raw, "json")])

    def test_non_utf8_text_is_not_opened(self) -> None:
        store = FakeStore({"data": {"legacy.txt": (b"caf\xe9", "text/plain")}})
        host = ScriptedHost(selections=["open"])
        handle_object(store, host, "data", "legacy.txt")
        self.assertEqual(host.edited, [])
        self.assertEqual(
            host.messages, ["### legacy.txt is not valid UTF-8 text and cannot be edited"]
        )
        self.assertNotIn("put_object", [call[0] for call in store.calls])
        self.assertEqual(store.buckets["data"]["legacy.txt"][0], b"caf\xe9")


if __name__ == "__main__":
    unittest.main()
