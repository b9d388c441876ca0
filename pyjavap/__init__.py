"""pyjavap - A reader for Java class files."""

from .classreader import ClassReader, ClassPath, read_class, read_class_file
from .descriptors import DescriptorParser
from .errors import (
    ClassReadError,
    TruncatedInputError,
    ClassFormatError,
    BytecodeDecodeError,
    DescriptorError,
)
from .instructions import decode_code
from .model import ClassFile, ConstantPool
from .mutf8 import decode_modified_utf8
from .printer import render_class

__version__ = "0.1.0"
__all__ = [
    'ClassReader',
    'ClassPath',
    'read_class',
    'read_class_file',
    'DescriptorParser',
    'ClassReadError',
    'TruncatedInputError',
    'ClassFormatError',
    'BytecodeDecodeError',
    'DescriptorError',
    'decode_code',
    'ClassFile',
    'ConstantPool',
    'decode_modified_utf8',
    'render_class',
]
