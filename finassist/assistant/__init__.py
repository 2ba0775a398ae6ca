"""Chat context and response types shared with the host application."""

from .schema import (
    Action,
    ActionKind,
    Card,
    CardKind,
    ChatContext,
    ChatResponse,
    Cost,
    ModelTier,
    Priority,
    Source,
    SourceKind,
)

__all__ = [
    "Action",
    "ActionKind",
    "Card",
    "CardKind",
    "ChatContext",
    "ChatResponse",
    "Cost",
    "ModelTier",
    "Priority",
    "Source",
    "SourceKind",
]
