from __future__ import annotations

import unittest

from firemock.firestore.errors import InvalidPath
from firemock.firestore.paths import (
    DatabaseId,
    DocumentName,
    build_document_name,
    child_collections_of,
    database_root,
    parent_of,
    parse_collection_name,
    parse_document_name,
    parse_parent,
    validate_segment,
)

ROOT = "projects/demo/databases/(default)/documents"


class BuildDocumentNameTest(unittest.TestCase):
    def test_top_level_and_nested(self) -> None:
        self.assertEqual(
            build_document_name("demo", "(default)", ["users"], "alice"),
            f"{ROOT}/users/alice",
        )
        self.assertEqual(
            build_document_name("demo", "(default)", ["users", "alice", "posts"], "p1"),
            f"{ROOT}/users/alice/posts/p1",
        )

    def test_collection_path_must_have_odd_length(self) -> None:
        with self.assertRaises(InvalidPath):
            build_document_name("demo", "(default)", ["users", "alice"], "p1")
        with self.assertRaises(InvalidPath):
            build_document_name("demo", "(default)", [], "p1")

    def test_invalid_segments(self) -> None:
        for segment in ("", "a/b", ".", "..", "__id__", "x" * 1501):
            with self.subTest(segment=segment[:10]):
                with self.assertRaises(InvalidPath):
                    build_document_name("demo", "(default)", ["users"], segment)

    def test_segment_limit_counts_utf8_bytes(self) -> None:
        self.assertEqual(validate_segment("a" * 1500), "a" * 1500)
        with self.assertRaises(InvalidPath):
            validate_segment("あ" * 501)

    def test_database_root_validates_ids(self) -> None:
        self.assertEqual(database_root("demo"), ROOT)
        with self.assertRaises(InvalidPath):
            database_root("demo/x")


class ParseNameTest(unittest.TestCase):
    def test_parse_document_name(self) -> None:
        parsed = parse_document_name(f"{ROOT}/users/alice/posts/p1")

        self.assertEqual(
            parsed,
            DocumentName("demo", "(default)", ("users", "alice", "posts"), "p1"),
        )
        self.assertEqual(parsed.database_id, DatabaseId("demo"))
        self.assertEqual(parsed.name, f"{ROOT}/users/alice/posts/p1")
        self.assertEqual(parsed.parent.name, f"{ROOT}/users/alice/posts")

    def test_parse_document_name_rejects_bad_names(self) -> None:
        for name in (
            f"{ROOT}/users",
            ROOT,
            "users/alice",
            "projects/demo/databases/(default)/docs/users/alice",
            f"{ROOT}/users//alice",
            f"{ROOT}/__meta__/x",
        ):
            with self.subTest(name=name):
                with self.assertRaises(InvalidPath):
                    parse_document_name(name)

    def test_parent_of(self) -> None:
        self.assertEqual(parent_of(f"{ROOT}/users/alice"), f"{ROOT}/users")
        self.assertEqual(parent_of(f"{ROOT}/users/alice/posts/p1"), f"{ROOT}/users/alice/posts")

    def test_parse_collection_name(self) -> None:
        parsed = parse_collection_name(f"{ROOT}/users/alice/posts")

        self.assertEqual(parsed.segments, ("users", "alice", "posts"))
        self.assertEqual(parsed.document("p1").name, f"{ROOT}/users/alice/posts/p1")
        with self.assertRaises(InvalidPath):
            parse_collection_name(f"{ROOT}/users/alice")
        with self.assertRaises(InvalidPath):
            parsed.document("a/b")

    def test_parse_parent(self) -> None:
        self.assertEqual(parse_parent(ROOT), DatabaseId("demo", "(default)"))
        self.assertEqual(parse_parent(f"{ROOT}/users/alice").document_id, "alice")
        with self.assertRaises(InvalidPath):
            parse_parent(f"{ROOT}/users")


class ChildCollectionsTest(unittest.TestCase):
    def test_collects_direct_children_only(self) -> None:
        names = [
            f"{ROOT}/users/a",
            f"{ROOT}/users/b",
            f"{ROOT}/products/x",
            f"{ROOT}/users/a/posts/p1",
            f"{ROOT}/users/a/likes/l1",
            f"{ROOT}/users/a/posts/p1/comments/c1",
            f"{ROOT}/users/ab/other/o1",
        ]

        self.assertEqual(child_collections_of(names, ROOT), {"users", "products"})
        self.assertEqual(child_collections_of(names, f"{ROOT}/users/a"), {"posts", "likes"})
        self.assertEqual(child_collections_of(names, f"{ROOT}/users/b"), set())


if __name__ == "__main__":
    unittest.main()
