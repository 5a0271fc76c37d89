"""Tests for object generation, seeding, and mutation values."""

from __future__ import annotations

import random
import unittest

from benchmarks.moray_batch.mutations import (
    MutationValue,
    RandomMutationGenerator,
    alter_objects,
    apply_mutation,
)
from benchmarks.moray_batch.objects import generate_objects, random_object, seed_objects
from lib.moray_client import MemoryStoreClient, PersistenceError


class TestGenerateObjects(unittest.TestCase):

    def test_count_and_unique_keys(self):
        for n in (1, 2, 37, 500):
            with self.subTest(n=n):
                objects = generate_objects(n, random.Random(n))
                self.assertEqual(len(objects), n)
                self.assertEqual(len({fields["objectId"] for fields in objects.values()}), n)

    def test_key_is_object_id(self):
        for key, fields in generate_objects(10, random.Random(0)).items():
            self.assertEqual(key, fields["objectId"])
            self.assertEqual(fields["etag"], fields["objectId"])

    def test_deterministic_with_seed(self):
        a = generate_objects(5, random.Random(42))
        b = generate_objects(5, random.Random(42))
        self.assertEqual(list(a), list(b))

    def test_record_shape(self):
        fields = random_object(random.Random(1)).to_value()
        for name in ("objectId", "owner", "dirname", "name", "type", "key",
                     "contentLength", "contentMD5", "sharks"):
            self.assertIn(name, fields)
        self.assertEqual(fields["type"], "object")
        self.assertEqual(fields["key"], f"{fields['dirname']}/{fields['name']}")

    def test_two_sharks_on_expected_nodes(self):
        rng = random.Random(9)
        for _ in range(50):
            sharks = random_object(rng).to_value()["sharks"]
            self.assertEqual(len(sharks), 2)
            self.assertIn(sharks[0]["manta_storage_id"], {"1.stor.domain", "2.stor.domain"})
            self.assertIn(sharks[1]["manta_storage_id"], {"3.stor.domain", "4.stor.domain"})


class TestSeedObjects(unittest.TestCase):

    def test_exactly_n_objects_seeded(self):
        store = MemoryStoreClient()
        store.create_bucket("b", {})
        objects = generate_objects(64, random.Random(3))
        created = seed_objects(store, "b", objects, progress=False)
        self.assertEqual(created, 64)
        self.assertEqual(sorted(store.keys("b")), sorted(objects))
        for key, fields in objects.items():
            self.assertEqual(store.get_object("b", key), fields)

    def test_stops_on_first_failure(self):
        class FailingStore(MemoryStoreClient):
            def __init__(self):
                super().__init__()
                self.puts = 0

            def put_object(self, bucket, key, value):
                self.puts += 1
                if self.puts == 3:
                    raise PersistenceError("disk full")
                super().put_object(bucket, key, value)

        store = FailingStore()
        store.create_bucket("b", {})
        with self.assertRaises(PersistenceError):
            seed_objects(store, "b", generate_objects(10, random.Random(1)), progress=False)
        self.assertEqual(store.puts, 3)
        self.assertEqual(len(store.keys("b")), 2)


class TestMutations(unittest.TestCase):

    def test_random_generator_ranges(self):
        gen = RandomMutationGenerator(random.Random(5))
        for _ in range(100):
            value = gen.next_value()
            self.assertEqual(len(value.datacenter), 10)
            self.assertTrue(value.datacenter.isalnum())
            self.assertTrue(0 <= value.storage_id <= 65535)

    def test_random_generator_seeded(self):
        a = RandomMutationGenerator(random.Random(11))
        b = RandomMutationGenerator(random.Random(11))
        self.assertEqual([a.next_value() for _ in range(3)], [b.next_value() for _ in range(3)])

    def test_apply_replaces_last_shark_only(self):
        fields = random_object(random.Random(2)).to_value()
        altered = apply_mutation(fields, MutationValue("newdc", 812))
        self.assertEqual(altered["sharks"][0], fields["sharks"][0])
        self.assertEqual(altered["sharks"][1], {
            "datacenter": "newdc", "manta_storage_id": "812.stor.domain",
        })
        for name in fields:
            if name != "sharks":
                self.assertEqual(altered[name], fields[name])

    def test_apply_does_not_modify_input(self):
        fields = random_object(random.Random(2)).to_value()
        before = [dict(s) for s in fields["sharks"]]
        apply_mutation(fields, MutationValue("x", 1))
        self.assertEqual(fields["sharks"], before)

    def test_apply_idempotent(self):
        fields = random_object(random.Random(4)).to_value()
        value = MutationValue("dc", 3)
        once = apply_mutation(fields, value)
        self.assertEqual(apply_mutation(once, value), once)

    def test_apply_to_record_without_sharks(self):
        altered = apply_mutation({"objectId": "x"}, MutationValue("dc", 3))
        self.assertEqual(altered["sharks"], [{"datacenter": "dc", "manta_storage_id": "3.stor.domain"}])

    def test_alter_objects_keeps_keys(self):
        objects = generate_objects(8, random.Random(6))
        altered = alter_objects(objects, MutationValue("dc", 3))
        self.assertEqual(list(altered), list(objects))


if __name__ == "__main__":
    unittest.main()
