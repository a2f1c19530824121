class BriefingError(Exception):
    """Base class for briefing domain errors"""

    user_message = "Something went wrong with the briefing."

    def __init__(self, message: str = None):
        super().__init__(message or self.user_message)
        self.message = message or self.user_message


class UnknownItemError(BriefingError):
    """An item id was never registered in this session"""

    user_message = "I couldn't find that item in this briefing."

    def __init__(self, item_id: str):
        super().__init__(f"Unknown item: {item_id}")
        self.item_id = item_id


class InvalidNavigationError(BriefingError):
    """A navigation command does not apply to the current state"""

    user_message = "I can't do that right now."


class ToolValidationError(BriefingError):
    """Tool arguments failed validation at the boundary"""

    user_message = "I didn't understand that command."

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class PersistenceError(BriefingError):
    """The durable store could not be reached"""

    user_message = "Progress could not be saved."
