from pathlib import Path

from pypdf import PdfReader


class PDFLoader:

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() == ".pdf"

    def load(self, file_path: Path) -> str:
        reader = PdfReader(file_path)
        # One paragraph per page so chunk boundaries can fall between pages
        pages = [(page.extract_text() or "").strip() for page in reader.pages]
        return "\n\n".join(p for p in pages if p)
