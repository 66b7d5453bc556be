import json
import tempfile
import unittest
from pathlib import Path

from ccbot.store import CommandStore, CommandStoreError


class CommandStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "data" / "commands.json"
        self.store = CommandStore(self.path)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_add_is_case_insensitive_and_persisted(self) -> None:
        command = await self.store.add(1, "Greet", "Hello {user.username}", created_by=42)
        self.assertEqual(command.name, "greet")
        self.assertIs(self.store.find(1, "GREET"), command)

        reloaded = CommandStore(self.path)
        restored = reloaded.find(1, "greet")
        self.assertIsNotNone(restored)
        self.assertEqual(restored.id, command.id)
        self.assertEqual(restored.response, "Hello {user.username}")
        self.assertEqual(restored.created_by, 42)
        self.assertEqual(restored.created_at, command.created_at)

    async def test_duplicates_and_bad_names_are_rejected(self) -> None:
        await self.store.add(1, "greet", "hi")
        with self.assertRaises(CommandStoreError):
            await self.store.add(1, "Greet", "again")
        with self.assertRaises(CommandStoreError):
            await self.store.add(1, "two words", "hi")
        with self.assertRaises(CommandStoreError):
            await self.store.add(1, "empty", "   ")

    async def test_commands_are_scoped_per_guild(self) -> None:
        command = await self.store.add(1, "greet", "hi")
        await self.store.add(2, "greet", "hello")
        self.assertEqual(self.store.find(2, "greet").response, "hello")
        self.assertIsNone(self.store.find_by_identifier(3, command.id))
        with self.assertRaises(CommandStoreError):
            await self.store.remove(2, command.id)

    async def test_edit_and_remove_by_id_or_name(self) -> None:
        command = await self.store.add(1, "greet", "hi")
        edited = await self.store.edit(1, command.id, "hello there")
        self.assertEqual(edited.response, "hello there")
        self.assertGreaterEqual(edited.updated_at, edited.created_at)

        removed = await self.store.remove(1, "GREET")
        self.assertEqual(removed.id, command.id)
        self.assertEqual(self.store.list_commands(1), [])
        self.assertEqual(CommandStore(self.path).list_commands(1), [])

    async def test_list_is_sorted_by_name(self) -> None:
        for name in ("zeta", "alpha", "mid"):
            await self.store.add(1, name, "x")
        self.assertEqual([command.name for command in self.store.list_commands(1)], ["alpha", "mid", "zeta"])

    async def test_prefix_settings(self) -> None:
        self.assertEqual(self.store.prefix_for(1, "!"), "!")
        self.assertEqual(self.store.prefix_for(None, "!"), "!")
        await self.store.set_prefix(1, "?")
        self.assertEqual(self.store.prefix_for(1, "!"), "?")
        self.assertEqual(CommandStore(self.path).prefix_for(1, "!"), "?")
        with self.assertRaises(CommandStoreError):
            await self.store.set_prefix(1, "a b")

    def test_corrupt_file_starts_empty(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("{not json", encoding="utf-8")
        with self.assertLogs("ccbot.store", level="WARNING"):
            store = CommandStore(self.path)
        self.assertEqual(store.commands, {})

    def test_malformed_guild_ids_are_skipped(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"commands": [], "guilds": {"abc": {"prefix": "?"}, "7": {"prefix": "$"}}}
        self.path.write_text(json.dumps(payload), encoding="utf-8")
        with self.assertLogs("ccbot.store", level="WARNING"):
            store = CommandStore(self.path)
        self.assertEqual(list(store.settings), [7])
        self.assertEqual(store.prefix_for(7, "!"), "$")


if __name__ == "__main__":
    unittest.main()
