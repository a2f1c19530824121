from typing import Dict, List, Any, Optional


NAVIGATION = "navigation"
ACTION = "action"


class ToolRegistry:
    """Registry of the tools exposed to the reasoning component"""

    def __init__(self):
        self.tools: Dict[str, Dict[str, Any]] = {}
        self.tool_categories: Dict[str, List[str]] = {}
        self._initialize_briefing_tools()

    def _initialize_briefing_tools(self):
        """Initialize with the navigation and item-action vocabulary"""

        briefing_tools = [
            {
                "id": "skip_topic",
                "description": "Skip the current topic entirely and move to the next one.",
                "category": NAVIGATION,
                "parameters": {
                    "reason": {"type": "string", "description": "Optional reason for skipping (for learning)"}
                }
            },
            {
                "id": "next_item",
                "description": "Move to the next item within the current topic.",
                "category": NAVIGATION,
                "parameters": {}
            },
            {
                "id": "go_back",
                "description": "Go back to the previous item or topic.",
                "category": NAVIGATION,
                "parameters": {
                    "steps": {
                        "type": "string",
                        "description": "How far to go back",
                        "enum": ["1", "2", "3", "topic_start"]
                    }
                }
            },
            {
                "id": "repeat_that",
                "description": "Repeat the last thing that was said.",
                "category": NAVIGATION,
                "parameters": {}
            },
            {
                "id": "go_deeper",
                "description": "Get more details about the current item (full email, thread context, etc.).",
                "category": NAVIGATION,
                "parameters": {
                    "aspect": {
                        "type": "string",
                        "description": "What aspect to explore",
                        "enum": ["full_email", "thread_history", "sender_info", "attachments", "related_emails"]
                    },
                    "email_id": {"type": "string", "description": "Item to explore instead of the current one"}
                }
            },
            {
                "id": "pause_briefing",
                "description": "Pause the current briefing. Can be resumed later.",
                "category": NAVIGATION,
                "parameters": {}
            },
            {
                "id": "resume_briefing",
                "description": "Resume a paused briefing from where it left off.",
                "category": NAVIGATION,
                "parameters": {}
            },
            {
                "id": "stop_briefing",
                "description": "Stop the briefing entirely.",
                "category": NAVIGATION,
                "parameters": {
                    "save_progress": {
                        "type": "string",
                        "description": "Whether to save progress for next time",
                        "enum": ["true", "false"]
                    }
                }
            },
            {
                "id": "archive_email",
                "description": "Archive an email.",
                "category": ACTION,
                "parameters": {
                    "email_id": {"type": "string", "description": "Email to archive (defaults to the current one)"}
                }
            },
            {
                "id": "mark_read",
                "description": "Mark one or more emails as read.",
                "category": ACTION,
                "parameters": {
                    "email_ids": {"type": "string", "description": "Comma-separated email ids (defaults to the current one)"}
                }
            },
            {
                "id": "flag_followup",
                "description": "Flag an email for follow-up.",
                "category": ACTION,
                "parameters": {
                    "email_id": {"type": "string", "description": "Email to flag (defaults to the current one)"},
                    "due_date": {
                        "type": "string",
                        "description": "When to follow up",
                        "enum": ["today", "tomorrow", "this_week", "next_week", "no_date"]
                    },
                    "note": {"type": "string", "description": "Optional note"}
                }
            },
            {
                "id": "mute_sender",
                "description": "Mute all future emails from a sender.",
                "category": ACTION,
                "parameters": {
                    "sender_email": {"type": "string", "description": "Sender to mute", "required": True},
                    "duration": {
                        "type": "string",
                        "description": "How long to mute the sender",
                        "enum": ["1_day", "1_week", "1_month", "forever"]
                    },
                    "confirmed": {
                        "type": "boolean",
                        "description": "Set once the user has confirmed muting a VIP sender"
                    }
                }
            },
            {
                "id": "prioritize_vip",
                "description": "Add a sender to the VIP list. Their emails will be prioritized in future briefings.",
                "category": ACTION,
                "parameters": {
                    "sender_email": {"type": "string", "description": "Sender to add as VIP", "required": True},
                    "sender_name": {"type": "string", "description": "Display name of the sender"}
                }
            },
            {
                "id": "undo_last_action",
                "description": "Undo the most recent email action (if possible).",
                "category": ACTION,
                "parameters": {}
            },
        ]

        for tool in briefing_tools:
            self.register_tool(tool)

    def register_tool(self, tool_config: Dict[str, Any]):
        """Register a new tool"""

        tool_id = tool_config["id"]
        category = tool_config.get("category", "general")

        self.tools[tool_id] = tool_config

        if category not in self.tool_categories:
            self.tool_categories[category] = []
        if tool_id not in self.tool_categories[category]:
            self.tool_categories[category].append(tool_id)

    def get_available_tools(self) -> List[Dict[str, Any]]:
        return list(self.tools.values())

    def get_tools_by_category(self, category: str) -> List[Dict[str, Any]]:
        tool_ids = self.tool_categories.get(category, [])
        return [self.tools[tool_id] for tool_id in tool_ids if tool_id in self.tools]

    def is_navigation_tool(self, tool_id: str) -> bool:
        return tool_id in self.tool_categories.get(NAVIGATION, [])

    def search_tools(self, query: str) -> List[Dict[str, Any]]:
        """Search tools by id or description"""

        query_lower = query.lower()
        return [
            tool for tool in self.tools.values()
            if query_lower in tool["id"].lower() or query_lower in tool.get("description", "").lower()
        ]

    def to_function_schema(self, tool_id: str) -> Dict[str, Any]:
        """Render a tool as a function-calling definition for the LLM"""

        tool = self.tools[tool_id]
        properties = {}
        required = []
        for name, spec in tool.get("parameters", {}).items():
            prop = {"type": spec["type"], "description": spec.get("description", "")}
            if "enum" in spec:
                prop["enum"] = spec["enum"]
            properties[name] = prop
            if spec.get("required"):
                required.append(name)

        return {
            "type": "function",
            "function": {
                "name": tool_id,
                "description": tool["description"],
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    def get_function_schemas(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        tools = self.get_tools_by_category(category) if category else self.get_available_tools()
        return [self.to_function_schema(tool["id"]) for tool in tools]
