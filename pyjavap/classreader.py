"""
Java class file reader.
Decodes a complete class file into a ClassFile value.
"""

import logging
import zipfile
from pathlib import Path
from typing import Iterator, Optional, Union

from .attributes import AttributeReader
from .classfile import CLASS_FILE_MAGIC
from .constant_pool import read_constant_pool
from .cursor import ByteCursor, ByteSource
from .errors import ClassFormatError
from .model import ClassFile, Field, Method

logger = logging.getLogger(__name__)


class ClassReader:
    """Reads one class file from a byte source.

    A reader decodes a single class; all state lives on the instance, so
    independent readers may run concurrently.
    """

    def __init__(self, source: ByteSource, strict_magic: bool = False):
        self.r = ByteCursor(source)
        self.strict_magic = strict_magic

    def _read_member(self, attrs: AttributeReader, kind: type):
        access = self.r.read_u2()
        name_idx = self.r.read_u2()
        desc_idx = self.r.read_u2()
        return kind(access, name_idx, desc_idx, attrs.read_attributes())

    def read(self) -> ClassFile:
        """Read the class file and return a ClassFile."""
        magic = self.r.read_u4()
        if self.strict_magic and magic != CLASS_FILE_MAGIC:
            raise ClassFormatError(f"invalid class file magic: {magic:#010x}", 0)

        minor = self.r.read_u2()
        major = self.r.read_u2()
        logger.debug("class file version %d.%d", major, minor)

        constant_pool = read_constant_pool(self.r)
        attrs = AttributeReader(self.r, constant_pool)

        access_flags = self.r.read_u2()
        this_class = self.r.read_u2()
        super_class = self.r.read_u2()

        interfaces_count = self.r.read_u2()
        interfaces = tuple(self.r.read_u2() for _ in range(interfaces_count))

        fields_count = self.r.read_u2()
        fields = tuple(self._read_member(attrs, Field) for _ in range(fields_count))

        methods_count = self.r.read_u2()
        methods = tuple(self._read_member(attrs, Method) for _ in range(methods_count))

        attributes = attrs.read_attributes()
        logger.debug("read class with %d fields, %d methods, %d attributes (%d bytes)",
                     len(fields), len(methods), len(attributes), self.r.position)

        return ClassFile(
            magic=magic,
            minor_version=minor,
            major_version=major,
            constant_pool=constant_pool,
            access_flags=access_flags,
            this_class=this_class,
            super_class=super_class,
            interfaces=interfaces,
            fields=fields,
            methods=methods,
            attributes=attributes,
        )


def read_class(source: ByteSource, strict_magic: bool = False) -> ClassFile:
    """Decode a class from bytes or a binary stream."""
    return ClassReader(source, strict_magic=strict_magic).read()


def read_class_file(path: Union[str, Path], strict_magic: bool = False) -> ClassFile:
    """Read a single class file."""
    with open(path, "rb") as f:
        return read_class(f, strict_magic=strict_magic)


class ClassPath:
    """Manages a classpath for looking up classes."""

    def __init__(self, strict_magic: bool = False):
        self.strict_magic = strict_magic
        self.entries: list[Union[Path, zipfile.ZipFile]] = []
        self._cache: dict[str, ClassFile] = {}
        self._zip_files: list[zipfile.ZipFile] = []

    def add_path(self, path: Union[str, Path]):
        """Add a path to the classpath (directory or jar/zip)."""
        path = Path(path)
        if path.suffix in (".jar", ".zip"):
            zf = zipfile.ZipFile(path, "r")
            self._zip_files.append(zf)
            self.entries.append(zf)
        elif path.is_dir():
            self.entries.append(path)
        else:
            raise ValueError(f"Invalid classpath entry: {path}")

    def find_class(self, class_name: str) -> Optional[ClassFile]:
        """Find and decode a class by internal name (e.g., 'java/lang/String')."""
        if class_name in self._cache:
            return self._cache[class_name]

        class_file = class_name + ".class"

        for entry in self.entries:
            if isinstance(entry, zipfile.ZipFile):
                try:
                    data = entry.read(class_file)
                except KeyError:
                    continue
                info = read_class(data, strict_magic=self.strict_magic)
            else:
                path = entry / class_file
                if not path.exists():
                    continue
                info = read_class_file(path, strict_magic=self.strict_magic)
            self._cache[class_name] = info
            return info

        return None

    def class_names(self) -> Iterator[str]:
        """Yield the internal names of all classes on the classpath, in entry order."""
        for entry in self.entries:
            if isinstance(entry, zipfile.ZipFile):
                names = (n for n in entry.namelist() if n.endswith(".class"))
            else:
                names = (p.relative_to(entry).as_posix() for p in sorted(entry.rglob("*.class")))
            for name in names:
                yield name[:-len(".class")]

    def close(self):
        """Close all zip files."""
        for zf in self._zip_files:
            zf.close()
        self._zip_files.clear()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
