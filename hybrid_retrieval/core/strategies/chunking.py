"""Paragraph-aware chunking with trailing-character overlap."""
import re
from dataclasses import dataclass

from ..models.document import Chunk

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def make_chunk_id(document_id: str, ordinal: int) -> str:
    return f"{document_id}-chunk-{ordinal}"


@dataclass(frozen=True)
class ParagraphChunker:
    """Split text into overlapping chunks along blank-line boundaries.

    Attributes:
        max_size: Buffer length (characters) that triggers emitting a chunk.
        min_size: Minimum length for the trailing buffer to become a chunk.
        overlap_percent: Fraction of an emitted chunk carried into the next one.
    """
    max_size: int = 512
    min_size: int = 100
    overlap_percent: float = 0.15

    def chunk(self, text: str, document_id: str) -> list[Chunk]:
        """Chunk text for one document.

        Args:
            text: Raw document content. Non-string input is treated as empty.
            document_id: Parent document id.

        Returns:
            At least one chunk, ordinals contiguous from 0.
        """
        if not isinstance(text, str):
            text = ""

        pieces: list[str] = []
        buffer = ""

        for para in _PARAGRAPH_BREAK.split(text):
            para = para.strip()
            if not para:
                continue

            if buffer and len(buffer) + len(para) > self.max_size:
                emitted = buffer.strip()
                pieces.append(emitted)
                buffer = self._overlap(emitted)

            buffer = f"{buffer}\n\n{para}" if buffer else para

        tail = buffer.strip()
        if len(tail) >= self.min_size:
            pieces.append(tail)

        if not pieces:
            pieces = [text.strip()]

        return [
            Chunk(
                id=make_chunk_id(document_id, i),
                content=piece,
                parent_id=document_id,
                chunk_index=i,
            )
            for i, piece in enumerate(pieces)
        ]

    def _overlap(self, emitted: str) -> str:
        # Raw character slice; may cut a word in half.
        size = int(len(emitted) * self.overlap_percent)
        return emitted[-size:] if size > 0 else ""
