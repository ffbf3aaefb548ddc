"""Tests for opdoc.parser.builder: path safety, validation and collected errors."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from opdoc.errors import DocumentValidationError
from opdoc.parser.builder import TransactionBuilder, check_relative_path, infer_language
from opdoc.parser.models import ActionKind
from opdoc.parser.tokenizer import tokenize


def build(text: str):
    return TransactionBuilder().build_document(tokenize(text), "test.op")


def errors_of(text: str) -> list[tuple[int, str]]:
    with pytest.raises(DocumentValidationError) as exc_info:
        build(text)
    return [(e.transaction_index, e.field) for e in exc_info.value.errors]


# ── Path safety ────────────────────────────────────────────────────


class TestCheckRelativePath:
    @pytest.mark.parametrize("value,expected", [
        ("hello.txt", "hello.txt"),
        ("src/app/main.py", "src/app/main.py"),
        ("./src//main.py", "src/main.py"),
        ("src\\win\\file.txt", "src/win/file.txt"),
        ("  padded.txt  ", "padded.txt"),
    ])
    def test_accepts(self, value, expected):
        assert check_relative_path(value) == (expected, None)

    @pytest.mark.parametrize("value", [
        "",
        "   ",
        "/etc/passwd",
        "\\\\server\\share\\x",
        "C:/Windows/x.txt",
        "c:relative.txt",
        "../outside.txt",
        "a/../../outside.txt",
        "a/..",
        "bad\x00name",
        ".",
        "./",
        ".hello.txt.1234.opdoc-stage",
    ])
    def test_rejects(self, value):
        normalized, reason = check_relative_path(value)
        assert normalized is None
        assert reason

    def test_custom_reserved_suffix(self):
        assert check_relative_path("x.tmp-stage", ".tmp-stage")[0] is None
        assert check_relative_path("x.opdoc-stage", ".tmp-stage")[0] == "x.opdoc-stage"


class TestInferLanguage:
    def test_from_extension(self):
        assert infer_language("src/Main.PY") == ".py"

    def test_override_wins(self):
        assert infer_language("notes.txt", "Python") == "python"

    def test_no_extension(self):
        assert infer_language("Makefile") == ""


# ── Building transactions ──────────────────────────────────────────


class TestBuild:
    def test_create_transaction(self, record):
        doc = build(record("create", "src/app.py", "print('hi')", author="dana", ticket="OPS-7"))
        txn = doc.transactions[0]
        assert txn.index == 0
        assert txn.action is ActionKind.CREATE
        assert txn.target == "src/app.py"
        assert txn.author == "dana"
        assert txn.extra == {"ticket": "OPS-7"}
        assert txn.line == 1
        assert txn.blocks[0].language == ".py"
        assert txn.blocks[0].raw_content == "print('hi')"
        assert txn.blocks[0].processed_content is None

    def test_action_is_case_insensitive(self, record):
        assert build(record("MODIFY", "a.txt", "x")).transactions[0].action is ActionKind.MODIFY

    def test_developer_notes(self, record):
        txn = build(record("delete", "a.txt", developer_notes="check later")).transactions[0]
        assert txn.developer_notes == "check later"
        assert txn.blocks == ()

    def test_block_language_override(self, record):
        txn = build(record("create", "script", "print(1)", lang="python")).transactions[0]
        assert txn.blocks[0].language == "python"

    def test_rename(self, record):
        txn = build(record("rename", "old.txt", destination="new/name.txt")).transactions[0]
        assert txn.destination == "new/name.txt"
        assert txn.touched_paths == ["old.txt", "new/name.txt"]

    def test_document_order_and_indices(self, record, make_doc):
        doc = build(make_doc(
            record("create", "a.txt", "a"),
            record("delete", "b.txt"),
            record("append", "c.txt", "c"),
        ))
        assert [(t.index, t.target) for t in doc.transactions] == [(0, "a.txt"), (1, "b.txt"), (2, "c.txt")]

    def test_transaction_is_frozen(self, record):
        txn = build(record("delete", "a.txt")).transactions[0]
        with pytest.raises(PydanticValidationError):
            txn.target = "b.txt"


class TestValidationErrors:
    def test_missing_action(self):
        text = "~\ntarget: a.txt\nreasoning: x\n[block]a[/block]\n~\n"
        assert errors_of(text) == [(0, "action")]

    def test_unknown_action(self, record):
        assert errors_of(record("explode", "a.txt", "x")) == [(0, "action")]

    def test_unsafe_target(self, record):
        assert errors_of(record("create", "../escape.txt", "x")) == [(0, "target")]

    def test_staging_suffix_target(self, record):
        assert errors_of(record("create", "a.txt.opdoc-stage", "x")) == [(0, "target")]

    def test_empty_reasoning(self, record):
        assert errors_of(record("create", "a.txt", "x", reasoning="   ")) == [(0, "reasoning")]

    def test_delete_with_block(self, record):
        assert errors_of(record("delete", "a.txt", "x")) == [(0, "blocks")]

    @pytest.mark.parametrize("action", ["create", "modify", "append"])
    def test_content_action_without_block(self, record, action):
        assert errors_of(record(action, "a.txt")) == [(0, "blocks")]

    def test_rename_requires_destination(self, record):
        assert errors_of(record("rename", "a.txt")) == [(0, "destination")]

    def test_rename_to_same_path(self, record):
        assert errors_of(record("rename", "a.txt", destination="./a.txt")) == [(0, "destination")]

    def test_destination_only_for_rename(self, record):
        assert errors_of(record("create", "a.txt", "x", destination="b.txt")) == [(0, "destination")]

    def test_all_errors_collected_across_transactions(self, record, make_doc):
        text = make_doc(
            record("create", "ok.txt", "fine"),
            record("create", "/abs.txt", "x", reasoning=" "),
            record("delete", "gone.txt", "unexpected"),
        )
        assert errors_of(text) == [(1, "target"), (1, "reasoning"), (2, "blocks")]

    def test_error_record(self, record):
        with pytest.raises(DocumentValidationError) as exc_info:
            build(record("create", "../x", "x"))
        rec = exc_info.value.errors[0].to_record()
        assert rec.kind == "validation"
        assert rec.transaction_index == 0
        assert rec.field == "target"

