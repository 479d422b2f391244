"""Tests for operation execution and per-call bookkeeping."""

import logging

from chatops_orchestrator.models import ExecutionStatus, OperationCall
from chatops_orchestrator.operations import OperationRegistry, current_operation
from chatops_orchestrator.orchestration.checklist import ChecklistRenderer, ChecklistReporter
from chatops_orchestrator.orchestration.dedup import format_duplicate_message
from chatops_orchestrator.orchestration.executor import (
    OperationExecutor,
    RunState,
    extract_new_channel_id,
)


def _executor(sleeper, delay=0.5):
    return OperationExecutor(post_call_delay=delay, sleep=sleeper)


class TestExtractNewChannelId:
    def test_token_extracted_and_stripped(self):
        assert extract_new_channel_id("Channel purged. NEW_CHANNEL_ID:987") == (
            "987",
            "Channel purged.",
        )

    def test_no_token(self):
        assert extract_new_channel_id("Channel purged.") == (None, "Channel purged.")


class TestExecute:
    async def test_unknown_operation_suggests_name(self, operations, message, sleeper):
        operations.make("createRole")
        outcome = await _executor(sleeper).execute(OperationCall("create_role", {}), message)
        assert outcome.status is ExecutionStatus.ERROR
        assert outcome.result == {
            "error": "Unknown function: create_role. Did you mean 'createRole'? "
            "Use exact function names from your tools."
        }

    async def test_unknown_operation_without_suggestion(self, message, sleeper):
        outcome = await _executor(sleeper).execute(OperationCall("fly", {}), message)
        assert outcome.result == {"error": "Unknown function: fly"}

    async def test_handler_exception_becomes_error_result(self, operations, message, sleeper):
        operations.make("createRole", error=RuntimeError("Missing Permissions"))
        outcome = await _executor(sleeper).execute(OperationCall("createRole", {}), message)
        assert outcome.status is ExecutionStatus.ERROR
        assert outcome.result == {"error": "Missing Permissions"}

    async def test_error_mapping_marks_error(self, operations, message, sleeper):
        operations.make("createRole", result={"error": "Role exists"})
        outcome = await _executor(sleeper).execute(OperationCall("createRole", {}), message)
        assert outcome.status is ExecutionStatus.ERROR

    async def test_arguments_normalized(self, operations, message, sleeper):
        operations.make("sendMessage")
        await _executor(sleeper).execute(
            OperationCall("sendMessage", {"channel": "this channel", "text": "hi"}), message
        )
        assert operations.calls == [
            ("sendMessage", {"channel": "100", "text": "hi", "server": "guild-1"})
        ]

    async def test_operation_context_scoped(self, message, sleeper):
        seen = {}

        async def handler(args, context):
            seen["current"] = current_operation()
            seen["context"] = context
            raise ValueError("fail")

        OperationRegistry.register("kickUser", "Kick", {}, handler)
        await _executor(sleeper).execute(OperationCall("kickUser", {}), message)

        assert seen["current"] is seen["context"]
        assert seen["context"].user_id == "user-1"
        assert seen["context"].channel_id == "100"
        assert seen["context"].guild_id == "guild-1"
        assert seen["context"].message is message
        assert current_operation() is None

    async def test_purge_returns_new_channel(self, operations, message, sleeper):
        operations.make("purgeChannel", result="Channel recreated NEW_CHANNEL_ID:555")
        outcome = await _executor(sleeper).execute(OperationCall("purgeChannel", {}), message)
        assert outcome.result == "Channel recreated"
        assert outcome.new_channel_id == "555"


class TestProcess:
    async def test_identical_calls_execute_once(self, operations, message, sleeper):
        operations.make("createRole", result="Role Mods created")
        executor = _executor(sleeper)
        state = RunState(message=message)
        batch = [
            OperationCall("createRole", {"name": "Mods", "color": "red"}),
            OperationCall("createRole", {"color": "red", "name": "Mods"}),
        ]

        executor.preregister(batch, state)
        assert len(state.log) == 1
        first = await executor.process(batch[0], state)
        second = await executor.process(batch[1], state)

        assert operations.count("createRole") == 1
        assert first.status is ExecutionStatus.SUCCESS
        assert second.status is ExecutionStatus.SKIPPED
        assert second.result == format_duplicate_message("createRole", "Role Mods created")
        statuses = [e.status for e in state.log.ordered()]
        assert statuses == [ExecutionStatus.SUCCESS, ExecutionStatus.SKIPPED]
        assert state.caches.loop_guard == 1

    async def test_single_execution_runs_once(self, operations, message, sleeper):
        operations.make("search", result={"summary": "first"})
        executor = _executor(sleeper)
        state = RunState(message=message)

        await executor.process(OperationCall("search", {"query": "a"}), state)
        second = await executor.process(OperationCall("search", {"query": "b"}), state)

        assert operations.count("search") == 1
        assert second.result == format_duplicate_message("search", {"summary": "first"})

    async def test_post_call_delay_after_every_call(self, operations, message, sleeper):
        operations.make("createRole")
        operations.make("deleteRole", error=RuntimeError("x"))
        executor = _executor(sleeper, delay=0.5)
        state = RunState(message=message)

        await executor.process(OperationCall("createRole", {}), state)
        await executor.process(OperationCall("createRole", {}), state)
        await executor.process(OperationCall("deleteRole", {}), state)
        await executor.process(OperationCall("unknownOp", {}), state)

        assert sleeper.delays == [0.5, 0.5, 0.5, 0.5]

    async def test_missing_handler_not_cached(self, message, sleeper):
        executor = _executor(sleeper, delay=0)
        state = RunState(message=message)
        await executor.process(OperationCall("unknownOp", {}), state)
        result = await executor.process(OperationCall("unknownOp", {}), state)
        assert result.status is ExecutionStatus.ERROR
        assert state.caches.loop_guard == 0
        assert [e.status for e in state.log] == [ExecutionStatus.ERROR] * 2

    async def test_claims_planner_placeholder(self, operations, message, sleeper):
        operations.make("createRole")
        executor = _executor(sleeper, delay=0)
        state = RunState(message=message)
        state.log.add_placeholder("createChannel")
        placeholder = state.log.add_placeholder("createRole")

        await executor.process(OperationCall("createRole", {"name": "Mods"}), state)

        entry = state.log[placeholder]
        assert len(state.log) == 2
        assert entry.status is ExecutionStatus.SUCCESS
        assert entry.args == {"name": "Mods", "server": "guild-1"}
        assert entry.planned_order == 1

    async def test_purge_sets_new_channel(self, operations, message, sleeper):
        operations.make("purgeChannel", result="Done NEW_CHANNEL_ID:42")
        state = RunState(message=message)
        result = await _executor(sleeper, delay=0).process(OperationCall("purgeChannel", {}), state)
        assert state.new_channel_id == "42"
        assert result.result == "Done"

    async def test_checklist_updated_per_call(self, operations, message, platform, sleeper):
        operations.make("createRole")
        executor = _executor(sleeper, delay=0)
        state = RunState(
            message=message, reporter=ChecklistReporter(ChecklistRenderer(), settle_delay=0)
        )
        batch = [OperationCall("createRole", {"name": "A"}), OperationCall("createRole", {"name": "B"})]
        executor.preregister(batch, state)
        await state.reporter.start(message, state.log)

        for call in batch:
            await executor.process(call, state)

        checklist = platform.bot_messages("100")[0]
        assert checklist.edits == 2
        assert checklist.display.state == "succeeded"

    async def test_structured_log_lines(self, operations, message, sleeper, caplog):
        operations.make("createRole")
        state = RunState(message=message)
        with caplog.at_level(logging.INFO, logger="chatops_orchestrator.orchestration.executor"):
            await _executor(sleeper, delay=0).process(OperationCall("createRole", {}), state)
        lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("[operation]")]
        assert len(lines) == 2
        assert '"event": "execute-start"' in lines[0]
        assert '"event": "execute-success"' in lines[1]
        assert '"guild": "guild-1"' in lines[0]


class TestPreregister:
    def test_skips_single_execution_repeats(self, operations, message):
        operations.make("search")
        state = RunState(message=message)
        executor = OperationExecutor(post_call_delay=0)
        executor.preregister(
            [OperationCall("search", {"query": "a"}), OperationCall("search", {"query": "b"})],
            state,
        )
        assert len(state.log) == 1

    def test_claims_placeholders_in_batch(self, operations, message):
        state = RunState(message=message)
        state.log.add_placeholder("createRole")
        OperationExecutor(post_call_delay=0).preregister(
            [OperationCall("createRole", {"name": "A"}), OperationCall("createRole", {"name": "B"})],
            state,
        )
        assert len(state.log) == 2
        assert state.log[0].args == {"name": "A", "server": "guild-1"}
