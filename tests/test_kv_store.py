"""Tests for the key-value store."""
from zipgeo.services.kv_store import EPOCH_KEY, LIST_KEY, MASTER_KEY, Entry


class TestGetPut:
    """Tests for reads and writes."""

    async def test_missing_key(self, store):
        assert await store.get("00501") is None
        assert await store.get_json("00501") is None
        assert await store.get_with_metadata("00501") == (None, None)

    async def test_put_and_get_json(self, store):
        await store.put("00501", {"zip": "00501", "latitude": 40.81})
        assert await store.get_json("00501") == {"zip": "00501", "latitude": 40.81}

    async def test_strings_are_stored_verbatim(self, store):
        await store.put("raw", '{"a": 1}')
        assert await store.get("raw") == '{"a": 1}'

    async def test_put_overwrites(self, store):
        await store.put("k", [1], {"epoch": 1})
        await store.put("k", [2], {"epoch": 2})
        assert await store.get_with_metadata("k") == ([2], {"epoch": 2})

    async def test_put_many(self, store):
        written = await store.put_many([
            Entry("a", 1),
            Entry("b", 2, {"zip": "b"}),
            Entry("a", 3),
        ])
        assert written == 3
        assert await store.get_json("a") == 3
        assert await store.get_with_metadata("b") == (2, {"zip": "b"})

    async def test_put_many_empty(self, store):
        assert await store.put_many([]) == 0

    async def test_get_many_with_metadata(self, store):
        await store.put_many([
            Entry(LIST_KEY, [1], {"epoch": 4}),
            Entry(MASTER_KEY, [2], {"epoch": 4}),
        ])
        entries = await store.get_many_with_metadata([LIST_KEY, MASTER_KEY, EPOCH_KEY])
        assert entries == {
            LIST_KEY: ([1], {"epoch": 4}),
            MASTER_KEY: ([2], {"epoch": 4}),
        }


class TestListing:
    """Tests for paginated key listing."""

    async def _seed(self, store, *keys):
        await store.put_many([Entry(key, key, {"zip": key}) for key in keys])

    async def test_single_page(self, store):
        await self._seed(store, "b", "a", "c")
        page = await store.list_keys()
        assert [k.name for k in page.keys] == ["a", "b", "c"]
        assert page.list_complete is True
        assert page.cursor is None
        assert page.keys[0].metadata == {"zip": "a"}

    async def test_cursor_pagination(self, store):
        await self._seed(store, "00501", "00544", "00601", "02108", "10001")
        first = await store.list_keys(limit=2)
        assert [k.name for k in first.keys] == ["00501", "00544"]
        assert first.list_complete is False
        assert first.cursor == "00544"

        second = await store.list_keys(limit=2, cursor=first.cursor)
        assert [k.name for k in second.keys] == ["00601", "02108"]

        third = await store.list_keys(limit=2, cursor=second.cursor)
        assert [k.name for k in third.keys] == ["10001"]
        assert third.list_complete is True

    async def test_exact_page_boundary(self, store):
        await self._seed(store, "a", "b")
        page = await store.list_keys(limit=2)
        assert page.list_complete is True

    async def test_prefix(self, store):
        await self._seed(store, "00501", "00544", "10001")
        page = await store.list_keys(prefix="005")
        assert [k.name for k in page.keys] == ["00501", "00544"]

    async def test_list_all_skips_reserved_keys(self, store):
        await self._seed(store, "00501", "00544", "02108", MASTER_KEY, LIST_KEY, EPOCH_KEY)
        keys = await store.list_all(page_size=2)
        assert [k.name for k in keys] == ["00501", "00544", "02108"]
