import unittest

from ccbot.errors import ConfigurationError, InstructionError, PermissionDenied
from ccbot.permissions import enforce_not, enforce_require

from factories import make_snapshot


class RequireTests(unittest.TestCase):
    def test_server_mod(self) -> None:
        enforce_require("serverMod", make_snapshot(manage_guild=True))
        with self.assertRaises(PermissionDenied) as ctx:
            enforce_require("serverMod", make_snapshot())
        self.assertEqual(ctx.exception.user_message, "You do not have permission to use this command.")

    def test_channel_requirement(self) -> None:
        enforce_require("#general", make_snapshot(channel="general"))
        with self.assertRaises(PermissionDenied) as ctx:
            enforce_require("#general", make_snapshot(channel="bot-commands"))
        self.assertIn("<#10>", ctx.exception.user_message)

    def test_missing_or_non_text_channel_is_a_configuration_error(self) -> None:
        for requirement in ("#nowhere", "#Lounge"):
            with self.subTest(requirement=requirement):
                with self.assertRaises(ConfigurationError) as ctx:
                    enforce_require(requirement, make_snapshot())
                self.assertIn(requirement, ctx.exception.user_message)

    def test_role_requirement(self) -> None:
        enforce_require("Member", make_snapshot(roles=["Member"]))
        with self.assertRaises(PermissionDenied):
            enforce_require("Moderator", make_snapshot(roles=["Member"]))
        with self.assertRaises(ConfigurationError) as ctx:
            enforce_require("Ghost", make_snapshot())
        self.assertIn("Ghost", ctx.exception.user_message)

    def test_empty_requirement(self) -> None:
        with self.assertRaises(InstructionError):
            enforce_require("  ", make_snapshot())


class NotTests(unittest.TestCase):
    def test_server_mod_is_excluded(self) -> None:
        enforce_not("serverMod", make_snapshot())
        with self.assertRaises(PermissionDenied):
            enforce_not("serverMod", make_snapshot(manage_guild=True))

    def test_role_exclusion(self) -> None:
        enforce_not("Muted", make_snapshot(roles=["Member"]))
        with self.assertRaises(PermissionDenied):
            enforce_not("Muted", make_snapshot(roles=["Member", "Muted"]))

    def test_channel_exclusion(self) -> None:
        enforce_not("#general", make_snapshot(channel="bot-commands"))
        with self.assertRaises(PermissionDenied) as ctx:
            enforce_not("#general", make_snapshot(channel="general"))
        self.assertIn("cannot be used in <#10>", ctx.exception.user_message)

    def test_unknown_entities_pass(self) -> None:
        enforce_not("Ghost", make_snapshot())
        enforce_not("#nowhere", make_snapshot())


if __name__ == "__main__":
    unittest.main()
