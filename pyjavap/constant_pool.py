"""
Constant pool decoding.
"""

import logging
import struct

from .classfile import ConstantPoolTag
from .cursor import ByteCursor
from .errors import ClassFormatError
from .model import (
    ConstantPool, ConstantPoolInfo, ConstantUtf8, ConstantInteger, ConstantFloat,
    ConstantLong, ConstantDouble, ConstantClass, ConstantString, ConstantFieldref,
    ConstantMethodref, ConstantInterfaceMethodref, ConstantNameAndType,
    ConstantMethodHandle, ConstantMethodType, ConstantInvokeDynamic, ConstantInvalid,
)
from .mutf8 import decode_modified_utf8

logger = logging.getLogger(__name__)


def read_constant_pool_info(r: ByteCursor) -> ConstantPoolInfo:
    """Read one tagged constant pool entry."""
    offset = r.position
    tag = r.read_u1()
    logger.debug("constant pool tag %d at offset %d", tag, offset)

    if tag == ConstantPoolTag.UTF8:
        length = r.read_u2()
        return ConstantUtf8(decode_modified_utf8(r.read_bytes(length)))

    elif tag == ConstantPoolTag.INTEGER:
        return ConstantInteger(r.read_i4())

    elif tag == ConstantPoolTag.FLOAT:
        raw = r.read_u4()
        return ConstantFloat(struct.unpack(">f", struct.pack(">I", raw))[0], raw)

    elif tag == ConstantPoolTag.LONG:
        return ConstantLong(r.read_i8())

    elif tag == ConstantPoolTag.DOUBLE:
        raw = r.read_u8()
        return ConstantDouble(struct.unpack(">d", struct.pack(">Q", raw))[0], raw)

    elif tag == ConstantPoolTag.CLASS:
        return ConstantClass(r.read_u2())

    elif tag == ConstantPoolTag.STRING:
        return ConstantString(r.read_u2())

    elif tag == ConstantPoolTag.FIELDREF:
        class_idx = r.read_u2()
        return ConstantFieldref(class_idx, r.read_u2())

    elif tag == ConstantPoolTag.METHODREF:
        class_idx = r.read_u2()
        return ConstantMethodref(class_idx, r.read_u2())

    elif tag == ConstantPoolTag.INTERFACE_METHODREF:
        class_idx = r.read_u2()
        return ConstantInterfaceMethodref(class_idx, r.read_u2())

    elif tag == ConstantPoolTag.NAME_AND_TYPE:
        name_idx = r.read_u2()
        return ConstantNameAndType(name_idx, r.read_u2())

    elif tag == ConstantPoolTag.METHOD_HANDLE:
        kind = r.read_u1()
        return ConstantMethodHandle(kind, r.read_u2())

    elif tag == ConstantPoolTag.METHOD_TYPE:
        return ConstantMethodType(r.read_u2())

    elif tag == ConstantPoolTag.INVOKE_DYNAMIC:
        bootstrap_idx = r.read_u2()
        return ConstantInvokeDynamic(bootstrap_idx, r.read_u2())

    raise ClassFormatError(f"unknown constant pool tag {tag}", offset)


def read_constant_pool(r: ByteCursor) -> ConstantPool:
    """Read constant_pool_count and the entries that follow it.

    Long and Double entries take two slots; the second is a ConstantInvalid
    filler so that list positions keep matching pool indices.
    """
    count = r.read_u2()
    entries = []
    while len(entries) < count - 1:
        entry = read_constant_pool_info(r)
        entries.append(entry)
        if isinstance(entry, (ConstantLong, ConstantDouble)):
            entries.append(ConstantInvalid())
    logger.debug("read %d constant pool slots", len(entries))
    return ConstantPool(tuple(entries))
