"""
Text processing utilities.
"""

import re
from typing import List


class TextProcessor:
    """Text processing utilities."""

    @staticmethod
    def markdown_to_whatsapp(text: str) -> str:
        """Convert common Markdown emphasis to WhatsApp formatting."""
        if not text:
            return ""

        # WhatsApp marks bold with a single asterisk
        text = re.sub(r"\*\*(.+?)\*\*", r"*\1*", text)
        text = re.sub(r"__(.+?)__", r"_\1_", text)
        text = re.sub(r"~~(.+?)~~", r"~\1~", text)
        text = re.sub(r"^#{1,6}\s+(.+)$", r"*\1*", text, flags=re.MULTILINE)
        text = re.sub(r"\[([^\]]+)\]\((\S+)\)", r"\1 (\2)", text)
        return text.strip()

    @staticmethod
    def split_text_for_whatsapp(text: str, max_length: int = 4096) -> List[str]:
        """Split text into chunks suitable for WhatsApp, keeping line breaks."""
        if len(text) <= max_length:
            return [text]

        chunks = []
        current_chunk = ""

        for line in text.split("\n"):
            candidate = f"{current_chunk}\n{line}" if current_chunk else line
            if len(candidate) <= max_length:
                current_chunk = candidate
                continue

            if current_chunk:
                chunks.append(current_chunk)
                current_chunk = ""

            # Lines longer than a chunk are split on words
            for word in line.split(" "):
                candidate = f"{current_chunk} {word}" if current_chunk else word
                if len(candidate) <= max_length:
                    current_chunk = candidate
                else:
                    if current_chunk:
                        chunks.append(current_chunk)
                    current_chunk = word[:max_length]

        if current_chunk:
            chunks.append(current_chunk)

        return chunks
