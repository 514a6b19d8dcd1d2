import unittest
from unittest.mock import patch

from peridex_data_model.index_packets import IndexEntry
from peridex_db.config import settings
from peridex_db.indexing import key_codec
from peridex_db.indexing.index_definition import BaseIndex, FunctionIndex, IndexRegistry
from peridex_exception_model.exception import IndexDefinitionException, IndexHashCollisionException


def noop(key, value):
    return []


class TestFunctionIndex(unittest.TestCase):

    def test_name_and_hash(self):
        index = FunctionIndex("tags", noop)
        self.assertEqual("tags", index.name)
        self.assertEqual(key_codec.index_hash("tags"), index.hash)
        self.assertIn("tags", repr(index))

    def test_missing_name(self):
        with self.assertRaises(IndexDefinitionException):
            FunctionIndex("", noop)

    def test_missing_or_invalid_function(self):
        with self.assertRaises(IndexDefinitionException) as ctx:
            FunctionIndex("tags", None)
        self.assertEqual("tags", ctx.exception.index_name)
        with self.assertRaises(IndexDefinitionException):
            FunctionIndex("tags", "not callable")

    def test_unknown_hash_algorithm(self):
        with patch.object(settings, "index_hash_algorithm", "nope"):
            with self.assertRaises(IndexDefinitionException):
                FunctionIndex("tags", noop)

    def test_derive_entries_accepts_shorthand(self):
        index = FunctionIndex("mixed", lambda k, v: [b"a", "b", (b"c", b"payload"), IndexEntry(b"d")])
        entries = index.derive_entries(b"k", b"v")
        self.assertEqual([b"a", b"b", b"c", b"d"], [e.derived_value for e in entries])
        self.assertEqual(b"payload", entries[2].payload)

        self.assertEqual([], FunctionIndex("none", lambda k, v: None).derive_entries(b"k", b"v"))

    def test_base_index_is_abstract(self):
        with self.assertRaises(TypeError):
            BaseIndex("tags")


class TestIndexRegistry(unittest.TestCase):

    def test_register_and_lookup(self):
        tags = FunctionIndex("tags", noop)
        by = FunctionIndex("by", noop)
        registry = IndexRegistry([tags, by])
        self.assertEqual(2, len(registry))
        self.assertIs(tags, registry.get("tags"))
        self.assertIn("by", registry)
        self.assertEqual(["tags", "by"], registry.names())
        self.assertEqual([tags, by], list(registry))

    def test_same_name_replaces(self):
        registry = IndexRegistry([FunctionIndex("tags", noop)])
        replacement = FunctionIndex("tags", lambda k, v: [b"x"])
        with self.assertLogs("peridex_db.indexing.index_definition", level="WARNING"):
            registry.register(replacement)
        self.assertEqual(1, len(registry))
        self.assertIs(replacement, registry.get("tags"))

    def test_hash_collision_is_refused(self):
        existing = FunctionIndex("tags", noop)
        colliding = FunctionIndex("other", noop)
        colliding._hash = existing.hash
        registry = IndexRegistry([existing])
        with self.assertRaises(IndexHashCollisionException) as ctx:
            registry.register(colliding)
        self.assertEqual("other", ctx.exception.index_name)
        self.assertEqual("tags", ctx.exception.existing_name)
        self.assertEqual(["tags"], registry.names())

    def test_unregister(self):
        tags = FunctionIndex("tags", noop)
        registry = IndexRegistry([tags])
        self.assertIs(tags, registry.unregister("tags"))
        self.assertIsNone(registry.unregister("tags"))
        self.assertIsNone(registry.get("tags"))


if __name__ == '__main__':
    unittest.main()
