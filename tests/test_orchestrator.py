"""Tests for eduassist.ai.orchestrator.TurnOrchestrator and message building."""

import pytest

from eduassist.ai.client import TextDelta, ToolCallRequest
from eduassist.ai.conversation import build_messages, tool_round_messages
from eduassist.ai.orchestrator import TurnOrchestrator, summarize_context
from eduassist.ai.tools.base import ToolResult
from eduassist.ai.tools.dto import DataPoints
from eduassist.client.accumulator import TurnAccumulator
from eduassist.config import AIConfig
from eduassist.core.types import ContextUsed
from eduassist.errors import StreamTransportError
from eduassist.gateway.frames import (
    TURN_FAILED_MESSAGE,
    CompleteFrame,
    ErrorFrame,
    FunctionResultsFrame,
    TextFrame,
)

from .conftest import PARENT, ScriptedAIClient


async def run(orchestrator, message="Con tôi học thế nào?", history=()):
    return [frame async for frame in orchestrator.run_turn(message, list(history), PARENT)]


@pytest.fixture
def make_orchestrator(registry, records):
    def _make(*rounds):
        client = ScriptedAIClient(*rounds)
        return TurnOrchestrator(client, registry, records, AIConfig()), client

    return _make


class TestPlainTurn:

    async def test_no_tools_streams_text_then_completes(self, make_orchestrator):
        orchestrator, client = make_orchestrator([TextDelta("Xin "), TextDelta("chào!")])
        frames = await run(orchestrator)
        assert frames == [TextFrame("Xin "), TextFrame("chào!"), CompleteFrame(ContextUsed(), 0)]
        assert len(client.calls) == 1

    async def test_consumer_sees_one_message_with_base_strength(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([TextDelta("Xin "), TextDelta("chào!")])
        acc = TurnAccumulator()
        acc.begin("a1")
        for frame in await run(orchestrator):
            acc.apply(frame)
        assert acc.message.content == "Xin chào!"
        assert acc.message.function_calls == 0
        assert acc.message.context_used.is_empty
        assert acc.message.prompt_strength == 0.3

    async def test_system_prompt_names_linked_children(self, make_orchestrator):
        orchestrator, client = make_orchestrator([TextDelta("ok")])
        await run(orchestrator)
        system = client.calls[0]["system"]
        assert "Nguyễn Văn An" in system
        assert "Trần Thị Bình" in system
        assert "Lê Văn Cường" not in system

    async def test_declarations_are_offered_with_tool_use_enabled(self, make_orchestrator):
        orchestrator, client = make_orchestrator([TextDelta("ok")])
        await run(orchestrator)
        assert len(client.calls[0]["tools"]) == 5
        assert client.calls[0]["allow_tool_use"] is True

    async def test_history_roles_are_mapped(self, make_orchestrator):
        orchestrator, client = make_orchestrator([TextDelta("ok")])
        history = [("model", "Chào phụ huynh!"), ("user", "Điểm Toán?"), ("model", "8.5")]
        await run(orchestrator, "Còn Văn?", history)
        assert client.calls[0]["messages"] == [
            {"role": "user", "content": "Điểm Toán?"},
            {"role": "assistant", "content": "8.5"},
            {"role": "user", "content": "Còn Văn?"},
        ]


class TestToolTurn:

    async def test_frame_order_and_summary(self, make_orchestrator):
        orchestrator, client = make_orchestrator(
            [
                TextDelta("Để tôi xem. "),
                ToolCallRequest("t1", "getDetailedGrades", {"studentName": "An"}),
                ToolCallRequest("t2", "getViolationHistory", {"studentName": "An"}),
            ],
            [TextDelta("An học tốt.")],
        )
        frames = await run(orchestrator)

        assert [type(f) for f in frames] == [TextFrame, FunctionResultsFrame, TextFrame, CompleteFrame]
        results = frames[1].results
        assert [r["name"] for r in results] == ["getDetailedGrades", "getViolationHistory"]
        assert results[0]["result"]["summary"]["totalGrades"] == 2
        assert frames[-1] == CompleteFrame(
            ContextUsed(students_count=1, grades_count=2, violations_count=1), function_calls=2
        )

    async def test_synthesis_call_disables_tools_and_carries_results(self, make_orchestrator):
        orchestrator, client = make_orchestrator(
            [ToolCallRequest("t1", "getTeacherFeedback", {"studentName": "An"})],
            [TextDelta("Cô giáo khen.")],
        )
        await run(orchestrator)

        second = client.calls[1]
        assert second["allow_tool_use"] is False
        assistant_turn, tool_turn = second["messages"][-2:]
        assert assistant_turn["content"] == [
            {"type": "tool_use", "id": "t1", "name": "getTeacherFeedback", "input": {"studentName": "An"}}
        ]
        assert tool_turn["role"] == "user"
        assert tool_turn["content"][0]["tool_use_id"] == "t1"
        assert "is_error" not in tool_turn["content"][0]

    async def test_missing_child_still_completes(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            [ToolCallRequest("t1", "getDetailedGrades", {"studentName": "Khoa"})],
            [TextDelta("Không tìm thấy học sinh Khoa.")],
        )
        frames = await run(orchestrator)
        assert frames[0] == FunctionResultsFrame(
            [{"name": "getDetailedGrades", "result": {"error": 'Student "Khoa" not found in your children list'}}]
        )
        assert frames[-1] == CompleteFrame(ContextUsed(), function_calls=1)

    async def test_failing_tool_does_not_affect_siblings(self, make_orchestrator):
        orchestrator, client = make_orchestrator(
            [
                ToolCallRequest("t1", "dropTables", {}),
                ToolCallRequest("t2", "getDetailedGrades", {"studentName": "An"}),
            ],
            [TextDelta("ok")],
        )
        frames = await run(orchestrator)
        unknown, grades = frames[0].results
        assert unknown == {"name": "dropTables", "result": {"error": "dropTables: Unknown tool: dropTables"}}
        assert grades["result"]["studentName"] == "Nguyễn Văn An"
        assert frames[-1].function_calls == 2
        assert frames[-1].context_used.students_count == 1
        tool_turn = client.calls[1]["messages"][-1]
        assert tool_turn["content"][0]["is_error"] is True

    async def test_tool_requests_during_synthesis_are_ignored(self, make_orchestrator):
        orchestrator, client = make_orchestrator(
            [ToolCallRequest("t1", "getDetailedGrades", {"studentName": "An"})],
            [TextDelta("xong"), ToolCallRequest("t2", "getDetailedGrades", {"studentName": "An"})],
        )
        frames = await run(orchestrator)
        assert sum(isinstance(f, FunctionResultsFrame) for f in frames) == 1
        assert frames[-1].function_calls == 1
        assert len(client.calls) == 2


class TestFailures:

    async def test_model_unreachable(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([StreamTransportError("connection refused")])
        assert await run(orchestrator) == [ErrorFrame(TURN_FAILED_MESSAGE)]

    async def test_failure_after_text_keeps_text(self, make_orchestrator):
        orchestrator, _ = make_orchestrator([TextDelta("Một"), RuntimeError("stream reset")])
        assert await run(orchestrator) == [TextFrame("Một"), ErrorFrame()]

    async def test_failure_in_synthesis_call(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            [ToolCallRequest("t1", "getDetailedGrades", {"studentName": "An"})],
            [StreamTransportError("overloaded")],
        )
        frames = await run(orchestrator)
        assert isinstance(frames[0], FunctionResultsFrame)
        assert frames[1:] == [ErrorFrame()]

    @pytest.mark.parametrize(
        "rounds",
        [
            ([TextDelta("a")],),
            ([ToolCallRequest("t1", "getDetailedGrades", {"studentName": "An"})], [TextDelta("b")]),
            ([RuntimeError("x")],),
        ],
    )
    async def test_exactly_one_terminal_frame_last(self, make_orchestrator, rounds):
        orchestrator, _ = make_orchestrator(*rounds)
        frames = await run(orchestrator)
        terminal = [f for f in frames if isinstance(f, (CompleteFrame, ErrorFrame))]
        assert len(terminal) == 1
        assert frames[-1] is terminal[0]


class TestMessageBuilding:

    def test_leading_model_turns_and_empty_content_are_dropped(self):
        messages = build_messages([("model", "Xin chào"), ("user", ""), ("user", "Hỏi")], "Tiếp")
        assert messages == [{"role": "user", "content": "Hỏi\n\nTiếp"}]

    def test_tool_round_marks_errors(self):
        calls = [ToolCallRequest("t1", "getDetailedGrades", {"studentName": "X"})]
        results = [ToolResult.failure("getDetailedGrades", "nope")]
        assistant, user = tool_round_messages("", calls, results)
        assert assistant["content"][0]["type"] == "tool_use"
        assert user["content"][0] == {
            "type": "tool_result",
            "tool_use_id": "t1",
            "content": '{"error": "nope"}',
            "is_error": True,
        }

    def test_summary_counts_distinct_students_from_successes(self):
        results = [
            ToolResult("a", payload={}, student_id="s1", data_points=DataPoints(grades=2)),
            ToolResult("b", payload={}, student_id="s1", data_points=DataPoints(feedback=1)),
            ToolResult("c", payload={}, student_id="s2", data_points=DataPoints(violations=3)),
            ToolResult.failure("d", "boom"),
        ]
        assert summarize_context(results) == ContextUsed(
            students_count=2, feedback_count=1, grades_count=2, violations_count=3
        )
