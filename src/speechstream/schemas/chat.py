"""Pydantic models for conversation turns."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    """A single conversation turn. Immutable once created."""

    role: Role
    content: str

    model_config = ConfigDict(frozen=True)

    def to_openai(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


__all__ = ["ChatMessage", "Role"]
