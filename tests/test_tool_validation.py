"""
Tests for tool definitions and boundary validation of tool-call arguments.
"""

import pytest

from briefing.domain.errors import ToolValidationError
from briefing.domain.tool.tool_registry import ACTION, NAVIGATION, ToolRegistry
from briefing.domain.tool.tool_validator import (
    ACTION_TOOL_NAMES, GoBackCall, MarkReadCall, MuteSenderCall, NAVIGATION_TOOL_NAMES,
    StopBriefingCall, ToolParameterValidator
)

validate = ToolParameterValidator.validate_tool_call


class TestToolRegistry:

    def test_every_validated_tool_is_defined(self):
        registry = ToolRegistry()
        defined = {tool["id"] for tool in registry.get_available_tools()}
        assert defined == NAVIGATION_TOOL_NAMES | ACTION_TOOL_NAMES

    def test_categories(self):
        registry = ToolRegistry()
        assert {t["id"] for t in registry.get_tools_by_category(NAVIGATION)} == NAVIGATION_TOOL_NAMES
        assert {t["id"] for t in registry.get_tools_by_category(ACTION)} == ACTION_TOOL_NAMES
        assert registry.is_navigation_tool("go_back")
        assert not registry.is_navigation_tool("archive_email")

    def test_function_schema(self):
        schema = ToolRegistry().to_function_schema("mute_sender")
        assert schema["type"] == "function"
        assert schema["function"]["name"] == "mute_sender"
        params = schema["function"]["parameters"]
        assert params["required"] == ["sender_email"]
        assert params["properties"]["duration"]["enum"] == ["1_day", "1_week", "1_month", "forever"]

    def test_search(self):
        ids = [tool["id"] for tool in ToolRegistry().search_tools("vip")]
        assert ids == ["prioritize_vip"]


class TestValidation:

    def test_unknown_tool(self):
        with pytest.raises(ToolValidationError) as excinfo:
            validate("launch_rocket", {})
        assert excinfo.value.message == "Unknown tool: launch_rocket"

    def test_go_back_defaults_to_one(self):
        call = validate("go_back", None)
        assert isinstance(call, GoBackCall)
        assert call.steps == 1

    @pytest.mark.parametrize("raw, expected", [("2", 2), (3, 3), ("topic_start", "topic_start")])
    def test_go_back_steps(self, raw, expected):
        assert validate("go_back", {"steps": raw}).steps == expected

    @pytest.mark.parametrize("raw", [0, "-1", "yesterday"])
    def test_go_back_rejects_bad_steps(self, raw):
        with pytest.raises(ToolValidationError) as excinfo:
            validate("go_back", {"steps": raw})
        assert excinfo.value.message.startswith("Invalid arguments for go_back:")

    def test_mark_read_accepts_comma_string(self):
        call = validate("mark_read", {"email_ids": "a, b,,c"})
        assert isinstance(call, MarkReadCall)
        assert call.email_ids == ["a", "b", "c"]

    def test_mute_sender_requires_sender(self):
        with pytest.raises(ToolValidationError) as excinfo:
            validate("mute_sender", {"duration": "1_day"})
        assert "sender_email" in excinfo.value.message

    def test_mute_sender_duration_enum(self):
        with pytest.raises(ToolValidationError):
            validate("mute_sender", {"sender_email": "x@example.com", "duration": "1_year"})
        call = validate("mute_sender", {"sender_email": "x@example.com"})
        assert isinstance(call, MuteSenderCall)
        assert call.duration == "forever"
        assert call.confirmed is False

    def test_go_deeper_aspect_enum(self):
        assert validate("go_deeper", {}).aspect == "full_email"
        with pytest.raises(ToolValidationError):
            validate("go_deeper", {"aspect": "gossip"})

    def test_stop_defaults_to_saving(self):
        call = validate("stop_briefing", {})
        assert isinstance(call, StopBriefingCall)
        assert call.save_progress is True

    def test_extra_arguments_are_ignored(self):
        assert validate("next_item", {"unexpected": 1}).tool == "next_item"
