from mcpbridge.utils.ids import NIL_SESSION_ID, new_request_id, new_session_id

__all__ = [
    "NIL_SESSION_ID",
    "new_request_id",
    "new_session_id",
]
