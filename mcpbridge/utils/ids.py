from uuid import UUID, uuid4

NIL_SESSION_ID = str(UUID(int=0))


def new_session_id() -> str:
    """Mint a client-side session id (32 hex chars, no dashes)."""
    return uuid4().hex


def new_request_id() -> str:
    return uuid4().hex
