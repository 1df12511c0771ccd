from fastapi import Header, HTTPException, status


def get_owner_id(x_user_id: str | None = Header(default=None)) -> str:
    """Identity of the caller, set by the authenticating gateway in front of the API."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id


def ensure_same_owner(owner_user_id: str, event_owner_id: str) -> None:
    """Reject events that would write to another user's chunks."""
    if owner_user_id != event_owner_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Event owner does not match the caller",
        )
