"""Bounded append-only text accumulator for job stdout/stderr.

The restore server streams job output as deltas. The client keeps only
the newest ``max_length`` characters of each stream and remembers that
older data was dropped.
"""

from dataclasses import dataclass

DEFAULT_MAX_OUTPUT_LENGTH = 8192


@dataclass
class OutputBuffer:
    """Append-only text buffer that keeps the trailing ``max_length`` characters.

    Attributes:
        content: Retained text.
        truncated: True once any data has been dropped. Only reset() clears it.
        max_length: Maximum number of characters retained.
        truncate: When False, append() never discards data.
    """

    content: str = ""
    truncated: bool = False
    max_length: int = DEFAULT_MAX_OUTPUT_LENGTH
    truncate: bool = True

    def append(self, delta: str) -> None:
        """Append a delta, dropping the oldest characters past ``max_length``."""
        if not delta:
            return
        content = self.content + delta
        if self.truncate and len(content) > self.max_length:
            self.truncated = True
            content = content[len(content) - self.max_length:]
        self.content = content

    def reset(self) -> None:
        """Clear content and the truncation flag."""
        self.content = ""
        self.truncated = False

    def __len__(self) -> int:
        return len(self.content)

    @property
    def is_trimmed(self) -> bool:
        """True when there is visible content and older data was dropped."""
        return bool(self.content) and self.truncated
