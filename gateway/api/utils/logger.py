# gateway/api/utils/logger.py
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Basic structured logging function
def write_log(entry: dict, stream: str = "default"):
    entry = dict(entry)
    entry.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    entry.setdefault("stream", stream)
    print(json.dumps(entry, ensure_ascii=False, default=str), flush=True)


def log_error(event: str, error: BaseException, stream: str = "error", **fields: Any):
    """
    Emit a structured error event. The exception type and message are
    always included; extra keyword fields are merged into the entry.
    """
    entry: Dict[str, Any] = {
        "event": event,
        "error_type": type(error).__name__,
        "error": str(error),
    }
    entry.update(fields)
    write_log(entry, stream=stream)


def caller_fields(context: Optional[Any]) -> Dict[str, Any]:
    # Identity fields of a request context for audit entries
    if context is None:
        return {"user_id": None, "anonymous": True}
    user = getattr(context, "user", None)
    token = getattr(context, "token", None)
    return {
        "user_id": getattr(user, "id", None),
        "role": getattr(user, "role", None),
        "anonymous": user is None,
        "token_sent": token is not None,
    }
