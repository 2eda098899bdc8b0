"""Shared request dependencies."""

from fastapi import Header


async def get_actor_id(x_actor_id: str | None = Header(default=None)) -> str:
    """Operator identity for audit entries. Authentication happens upstream."""
    return x_actor_id or "system"
