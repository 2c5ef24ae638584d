"""Error taxonomy surfaced by the retrieval core.

Callers (a routing layer, the CLI) map ``kind`` to their own wire format.
Degraded reranking and empty result sets are not errors and never raise.
"""
from typing import Optional


class RetrievalError(RuntimeError):
    """Base class for failures raised by search, ingest and delete."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ValidationError(RetrievalError):
    """Invalid caller input, detected before any external call."""

    kind = "validation"


class CollaboratorError(RetrievalError):
    """Embedding provider, vector index or relational store call failed.

    The original exception is kept as ``__cause__`` (``raise ... from exc``).
    """

    kind = "collaborator"

    def __init__(self, collaborator: str, message: str):
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["collaborator"] = self.collaborator
        return data


class RequestCancelledError(RetrievalError):
    """The request was cancelled or its deadline expired."""

    kind = "cancelled"

    def __init__(self, message: str = "Request cancelled", stage: Optional[str] = None):
        super().__init__(message if stage is None else f"{message} during {stage}")
        self.stage = stage
