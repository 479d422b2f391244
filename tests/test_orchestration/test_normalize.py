"""Tests for argument normalization."""

import pytest

from chatops_orchestrator.orchestration.normalize import normalize_args


class TestServer:
    @pytest.mark.parametrize("alias", [None, "", "  ", "current server", "this guild", "here"])
    def test_alias_resolves_to_guild(self, alias):
        args = normalize_args("createRole", {"server": alias}, "guild-1", "100")
        assert args["server"] == "guild-1"

    def test_missing_server_defaults_to_guild(self):
        assert normalize_args("createRole", {}, "guild-1", "100")["server"] == "guild-1"

    def test_explicit_server_stripped(self):
        args = normalize_args("createRole", {"server": " My Server "}, "guild-1", "100")
        assert args["server"] == "My Server"

    def test_no_guild_removes_alias(self):
        args = normalize_args("createRole", {"server": "current"}, None, "100")
        assert "server" not in args


class TestChannel:
    @pytest.mark.parametrize("alias", [None, "", "this channel", "Current Channel"])
    def test_alias_resolves_to_channel(self, alias):
        args = normalize_args("sendMessage", {"channel": alias}, "guild-1", "100")
        assert args["channel"] == "100"

    def test_named_channel_untouched(self):
        args = normalize_args("sendMessage", {"channel": "general"}, "guild-1", "100")
        assert args["channel"] == "general"

    def test_absent_channel_left_absent(self):
        assert "channel" not in normalize_args("sendMessage", {}, "guild-1", "100")

    @pytest.mark.parametrize("name", ["clearDiscordMessages", "purgeChannel"])
    def test_bulk_operations_default_channel(self, name):
        assert normalize_args(name, {}, "guild-1", "100")["channel"] == "100"


def test_input_not_mutated():
    original = {"channel": "this channel"}
    normalize_args("sendMessage", original, "guild-1", "100")
    assert original == {"channel": "this channel"}


def test_non_mapping_args():
    assert normalize_args("ping", None, "guild-1", "100") == {"server": "guild-1"}
