import logging
from pathlib import Path
from typing import Optional

from hybrid_retrieval.core.models.document import Document

from .docx_loader import DocxLoader
from .pdf_loader import PDFLoader
from .text_loader import TextLoader

logger = logging.getLogger(__name__)


class CompositeLoader:
    """Pick a loader by file extension and wrap the text as a Document."""

    def __init__(self, category: Optional[str] = None):
        self._category = category
        self._loaders = [
            PDFLoader(),
            DocxLoader(),
            TextLoader(),
        ]

    def supports(self, file_path: Path) -> bool:
        return file_path.is_file() and any(
            loader.supports(file_path) for loader in self._loaders
        )

    def load(self, file_path: Path) -> Optional[str]:
        for loader in self._loaders:
            if loader.supports(file_path):
                try:
                    return loader.load(file_path)
                except Exception as e:
                    logger.error(f"Failed to load {file_path}: {e}")
                    return None
        return None

    def load_document(self, file_path: Path) -> Optional[Document]:
        """Load a file as a document with id = file stem."""
        content = self.load(file_path)
        if content is None:
            return None
        return Document(
            id=file_path.stem,
            content=content,
            title=file_path.stem.replace("_", " ").replace("-", " "),
            source=file_path.name,
            category=self._category or file_path.suffix.lower().lstrip("."),
        )
