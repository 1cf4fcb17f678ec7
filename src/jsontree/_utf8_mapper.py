"""UTF-8 byte offset to character offset mapping for ``str`` input."""

from __future__ import annotations

from bisect import bisect_right
from typing import Final


class UTF8PositionMapper:
    """Maps byte offsets in the UTF-8 encoding of a text back to characters.

    The parser works on bytes, so error offsets and the unconsumed input
    are byte positions. Instead of a full map, the mapper keeps a
    checkpoint every ``checkpoint_interval`` characters and walks forward
    from the nearest one.
    """

    def __init__(self, text: str, checkpoint_interval: int = 256) -> None:
        """Initialize position mapper with checkpoint system.

        Args:
            text: The text the byte offsets refer to
            checkpoint_interval: Characters between checkpoints (default 256)
        """
        if checkpoint_interval < 1:
            raise ValueError("checkpoint_interval must be positive")

        self.text: Final = text
        self.checkpoint_interval: Final = checkpoint_interval
        self._byte_checkpoints: list[int] = []
        self._total_bytes = 0
        self._is_ascii_only: bool = text.isascii()

        if self._is_ascii_only:
            self._total_bytes = len(text)
        else:
            self._build_checkpoints()

    def _build_checkpoints(self) -> None:
        """Record the byte offset of every checkpoint character."""
        byte_pos = 0
        for char_pos, char in enumerate(self.text):
            if char_pos % self.checkpoint_interval == 0:
                self._byte_checkpoints.append(byte_pos)
            byte_pos += _utf8_width(char)
        self._total_bytes = byte_pos

    def byte_to_char(self, byte_pos: int) -> int:
        """Convert a byte offset to a character offset.

        Offsets inside a multi-byte character map to the character that
        follows it; offsets past the end map to ``len(text)``.

        Args:
            byte_pos: Byte offset in the UTF-8 encoded text

        Returns:
            Character offset in the original text
        """
        if byte_pos >= self._total_bytes:
            return len(self.text)
        if self._is_ascii_only:
            return byte_pos

        index = bisect_right(self._byte_checkpoints, byte_pos) - 1
        current_byte = self._byte_checkpoints[index]
        current_char = index * self.checkpoint_interval

        while current_byte < byte_pos:
            current_byte += _utf8_width(self.text[current_char])
            current_char += 1

        return current_char


def _utf8_width(char: str) -> int:
    code_point = ord(char)
    if code_point < 0x80:
        return 1
    if code_point < 0x800:
        return 2
    if code_point < 0x10000:
        return 3
    return 4
