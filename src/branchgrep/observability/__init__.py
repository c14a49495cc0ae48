from .events import EventSink, emit_event, format_event, get_run_id, log_event

__all__ = [
    "EventSink",
    "emit_event",
    "format_event",
    "get_run_id",
    "log_event",
]
