import unittest
from unittest.mock import patch

from peridex_data_model.index_packets import IndexEntry
from peridex_db.engine.index_builder import IndexBuilder
from peridex_db.indexing.emit import emit
from peridex_db.indexing.index_definition import FunctionIndex, IndexRegistry
from peridex_db.indexing.key_codec import ForwardKey, ReverseKey, partition_prefix
from peridex_db.tests.test_helper import Post, StoreTestCase
from peridex_exception_model.exception import KeyEncodingException


class TestEmit(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.builder = IndexBuilder(IndexRegistry([self.tags_index]))

    def test_document_with_two_tags_writes_four_index_keys(self):
        self.put(Post("POST:001", tags=["golang", "nosql"]))
        h = self.tags_index.hash
        expected = sorted([
            b"POST:001",
            b"^" + h + b">^POST:001^golang",
            b"^" + h + b">^POST:001^nosql",
            b"^" + h + b"<^golang^POST:001",
            b"^" + h + b"<^nosql^POST:001",
        ])
        self.assertEqual(expected, self.all_keys())

        items = self.all_items()
        self.assertEqual(b"^" + h + b"<^golang^POST:001", items[b"^" + h + b">^POST:001^golang"])
        self.assertEqual(b"", items[b"^" + h + b"<^golang^POST:001"])

    def test_emit_is_idempotent(self):
        post = Post("POST:001", tags=["golang", "nosql"])
        self.put(post)
        first = self.all_items()
        self.put(post)
        self.put(post)
        self.assertEqual(first, self.all_items())

    def test_changed_value_replaces_stale_entries(self):
        self.put(Post("POST:001", tags=["golang", "nosql"]))
        self.put(Post("POST:001", tags=["nosql", "rust"]))
        h = self.tags_index.hash
        self.assertEqual(
            sorted([
                ForwardKey(h, b"POST:001", b"nosql").encode(),
                ForwardKey(h, b"POST:001", b"rust").encode(),
                ReverseKey(h, b"nosql", b"POST:001").encode(),
                ReverseKey(h, b"rust", b"POST:001").encode(),
            ]),
            self.index_keys())

    def test_duplicate_derived_values_collapse(self):
        self.put(Post("POST:001", tags=["golang", "golang"]))
        self.assertEqual(2, len(self.index_keys()))

    def test_deleted_document_leaves_no_index_keys(self):
        self.put(Post("POST:001", tags=["golang", "nosql"]), Post("POST:002", tags=["golang"]))
        self.remove("POST:001")
        keys = self.index_keys()
        self.assertEqual(2, len(keys))
        self.assertTrue(all(b"POST:001" not in k for k in keys))

        self.remove("POST:002")
        self.assertEqual([], self.all_keys())

    def test_document_with_no_entries_writes_nothing(self):
        self.put(Post("POST:001", tags=[]))
        self.assertEqual([b"POST:001"], self.all_keys())

    def test_entries_of_prefix_sharing_keys_stay_apart(self):
        self.put(Post("a", tags=["x"]), Post("ab", tags=["y"]))
        self.put(Post("a", tags=["z"]))
        reverse_partition = partition_prefix(self.tags_index.hash)
        derived = sorted(ReverseKey.decode(k).derived_value
                         for k in self.index_keys() if k.startswith(reverse_partition))
        self.assertEqual([b"y", b"z"], derived)

    def test_payload_is_stored_under_reverse_key(self):
        builder = IndexBuilder(IndexRegistry([self.by_index]))
        self.put(Post("POST:001", by="alice", text="hello"), builder=builder)
        reverse = ReverseKey(self.by_index.hash, b"alice", b"POST:001").encode()
        self.assertEqual(b"hello", self.all_items()[reverse])

    def test_indexes_do_not_touch_each_other(self):
        builder = IndexBuilder(self.registry)
        self.put(Post("POST:001", by="alice", tags=["golang"]), builder=builder)
        self.assertEqual(2, len(self.index_keys(self.tags_index)))
        self.assertEqual(2, len(self.index_keys(self.by_index)))

        self.put(Post("POST:001", by="bob", tags=["golang"]), builder=IndexBuilder(IndexRegistry([self.by_index])))
        tags_keys = self.index_keys(self.tags_index)
        self.assertEqual(2, len(tags_keys))
        self.assertIn(ForwardKey(self.tags_index.hash, b"POST:001", b"golang").encode(), tags_keys)

    def test_index_function_error_propagates_and_writes_nothing(self):
        error = ValueError("bad document")

        def failing(key, value):
            raise error

        builder = IndexBuilder(IndexRegistry([FunctionIndex("failing", failing)]))
        with self.assertRaises(ValueError) as ctx:
            self.put(Post("POST:001"), builder=builder)
        self.assertIs(error, ctx.exception)
        self.assertEqual([], self.all_keys())

    def test_delimiter_in_derived_value_is_rejected(self):
        self.put(Post("POST:001", tags=["ok"]))
        with self.assertRaises(KeyEncodingException):
            self.put(Post("POST:001", tags=["fine", "not^ok"]))
        # the failed commit left the earlier state untouched
        self.assertEqual(2, len(self.index_keys()))

    def test_delimiter_in_primary_key_is_rejected(self):
        with self.assertRaises(KeyEncodingException):
            self.put(Post("POST^001", tags=["golang"]))
        self.assertEqual([], self.all_keys())

    def test_store_error_surfaces_unchanged(self):
        error = RuntimeError("map full")
        with self.store.begin(write=True) as txn:
            with patch.object(txn, "set_internal", side_effect=error):
                with self.assertRaises(RuntimeError) as ctx:
                    emit(txn, self.tags_index, b"POST:001", Post("POST:001", tags=["a"]).to_bytes())
        self.assertIs(error, ctx.exception)

    def test_emit_directly_in_transaction(self):
        index = FunctionIndex("direct", lambda k, v: [IndexEntry(v, b"p"), (b"second", b"q")])
        with self.store.begin(write=True) as txn:
            emit(txn, index, b"doc", b"first")
            txn.commit()
        items = self.all_items()
        self.assertEqual(b"p", items[ReverseKey(index.hash, b"first", b"doc").encode()])
        self.assertEqual(b"q", items[ReverseKey(index.hash, b"second", b"doc").encode()])

        with self.store.begin(write=True) as txn:
            emit(txn, index, b"doc", None)
            txn.commit()
        self.assertEqual([], self.all_keys())


if __name__ == '__main__':
    unittest.main()
