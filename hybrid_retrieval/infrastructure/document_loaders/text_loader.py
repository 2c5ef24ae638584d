from pathlib import Path


class TextLoader:

    EXTENSIONS = {".txt", ".md", ".markdown", ".rst"}

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.EXTENSIONS

    def load(self, file_path: Path) -> str:
        text = file_path.read_text(encoding="utf-8", errors="replace")
        return text.replace("\r\n", "\n").replace("\r", "\n")
