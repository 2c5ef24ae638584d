from pathlib import Path

from docx import Document as DocxDocument


class DocxLoader:

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() == ".docx"

    def load(self, file_path: Path) -> str:
        doc = DocxDocument(file_path)
        return "\n\n".join(p.text.strip() for p in doc.paragraphs if p.text.strip())
