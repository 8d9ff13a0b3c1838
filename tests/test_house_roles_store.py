from __future__ import annotations

import os
import tempfile
import unittest

from guildkit.errors import OperationOnUninitialized
from guildkit.services.house_roles_store import HouseRolesStore


class HouseRolesStoreTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "test.sqlite3")

    async def asyncTearDown(self):
        self.tmp.cleanup()

    async def test_operations_require_init(self):
        store = HouseRolesStore(self.path)
        self.assertFalse(store.initialized)
        with self.assertRaises(OperationOnUninitialized):
            await store.record_change(1, 2, 64)
        with self.assertRaises(OperationOnUninitialized):
            await store.get_record(1, 2)

    async def test_double_init_raises(self):
        store = HouseRolesStore(self.path)
        await store.init()
        with self.assertRaises(OperationOnUninitialized):
            await store.init()

    async def test_record_and_read_back(self):
        store = HouseRolesStore(self.path)
        await store.init()

        self.assertIsNone(await store.get_record(1, 2))
        await store.record_change(1, 2, 64)
        await store.record_change(1, 2, 128)

        cached = await store.get_record(1, 2)
        self.assertEqual(cached.flags, 128)

        # A second store reads what the first one wrote
        other = HouseRolesStore(self.path)
        await other.init()
        stored = await other.get_record(1, 2, use_cache=False)
        self.assertEqual((stored.guild_id, stored.member_id, stored.flags), (1, 2, 128))

    def test_rejects_odd_table_names(self):
        with self.assertRaises(ValueError):
            HouseRolesStore(self.path, table_name="x; DROP TABLE y")


if __name__ == "__main__":
    unittest.main()
