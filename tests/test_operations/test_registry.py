"""Tests for the operation registry and operation context."""

from chatops_orchestrator.operations import (
    OperationContext,
    OperationRegistry,
    current_operation,
    operation_scope,
)


async def _noop(args, context):
    return "ok"


class TestOperationRegistry:
    """Tests for OperationRegistry."""

    def test_builtins_registered(self):
        """search and calculate register themselves on import."""
        assert OperationRegistry.get("search") is not None
        assert OperationRegistry.get("calculate") is not None

    def test_string_parameters_expanded(self):
        OperationRegistry.register(
            "createRole",
            "Create a role",
            {"name": "role name", "color": {"type": "string", "enum": ["red", "blue"]}},
            _noop,
            required=["name"],
        )
        tool = OperationRegistry.get("createRole").to_tool()
        assert tool["type"] == "function"
        assert tool["function"]["name"] == "createRole"
        properties = tool["function"]["parameters"]["properties"]
        assert properties["name"] == {"type": "string", "description": "role name"}
        assert properties["color"]["enum"] == ["red", "blue"]
        assert tool["function"]["parameters"]["required"] == ["name"]

    def test_suggest_ignores_case_and_underscores(self):
        OperationRegistry.register("createRole", "Create a role", {}, _noop)
        assert OperationRegistry.suggest("create_role") == "createRole"
        assert OperationRegistry.suggest("CREATEROLE") == "createRole"
        assert OperationRegistry.suggest("deleteRole") is None

    def test_tool_definitions_cover_all(self):
        names = [t["function"]["name"] for t in OperationRegistry.tool_definitions()]
        assert names == OperationRegistry.names()

    def test_all_operations_is_copy(self):
        snapshot = OperationRegistry.all_operations()
        snapshot.clear()
        assert OperationRegistry.get("search") is not None


class TestOperationScope:
    """Tests for the ambient operation context."""

    def test_scope_installs_and_resets(self):
        context = OperationContext(message=None, user_id="u", channel_id="c", guild_id="g")
        assert current_operation() is None
        with operation_scope(context) as active:
            assert active is context
            assert current_operation() is context
        assert current_operation() is None
