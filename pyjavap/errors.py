"""
Exceptions raised while reading class files.
"""

from typing import Optional


class ClassReadError(Exception):
    """Base class for every failure to decode a class file."""
    pass


class TruncatedInputError(ClassReadError, EOFError):
    """The input ended before a field could be read in full."""

    def __init__(self, offset: int, wanted: int, available: int):
        self.offset = offset
        self.wanted = wanted
        self.available = available
        super().__init__(
            f"unexpected end of input at offset {offset}: "
            f"wanted {wanted} byte(s), got {available}"
        )


class ClassFormatError(ClassReadError):
    """The input does not follow the class file grammar."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.message = message
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)


class BytecodeDecodeError(ClassFormatError):
    """A Code attribute holds an undecodable instruction stream."""
    pass


class DescriptorError(ClassReadError, ValueError):
    """A field or method descriptor is malformed."""
    pass
