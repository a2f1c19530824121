import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "briefing-session"
) -> None:
    """Setup structured logging configuration"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    # Processors for structlog
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    # Add appropriate renderer based on format
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Set service name in context
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    context = structlog.contextvars.get_contextvars()
    for key in ("session_id", "user_id"):
        if key in context and key not in event_dict:
            event_dict[key] = context[key]

    return event_dict


def bind_session(session_id: str, user_id: Optional[str] = None) -> None:
    """Attach session identifiers to every log line of the current task"""

    structlog.contextvars.bind_contextvars(session_id=session_id)
    if user_id:
        structlog.contextvars.bind_contextvars(user_id=user_id)


class BriefingLogger:
    """Specialized logger for briefing operations"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_navigation(
        self,
        session_id: str,
        action: str,
        success: bool,
        cursor: Optional[Dict[str, int]] = None,
        status_changes: int = 0,
        message: Optional[str] = None
    ):
        """Log navigation transitions"""

        self.logger.info(
            "navigation",
            session_id=session_id,
            action=action,
            success=success,
            cursor=cursor or {},
            status_changes=status_changes,
            message=message
        )

    def log_tool_execution(
        self,
        tool_name: str,
        session_id: str,
        input_data: Dict[str, Any],
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log tool execution events"""

        self.logger.info(
            "tool_execution",
            tool_name=tool_name,
            session_id=session_id,
            input_data=input_data,
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_session_event(
        self,
        session_id: str,
        event_type: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log session lifecycle events"""

        self.logger.info(
            "session_event",
            session_id=session_id,
            event_type=event_type,
            details=details or {}
        )


# Global logger instance
briefing_logger = BriefingLogger("briefing")
