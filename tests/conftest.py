"""Shared fixtures: class file bytes assembled field by field."""

import struct

import pytest


def u1(v):
    return struct.pack(">B", v)


def u2(v):
    return struct.pack(">H", v)


def u4(v):
    return struct.pack(">I", v)


def i1(v):
    return struct.pack(">b", v)


def i2(v):
    return struct.pack(">h", v)


def i4(v):
    return struct.pack(">i", v)


def attribute(name_index, body):
    """attribute_info with the given name index and body."""
    return u2(name_index) + u4(len(body)) + body


class PoolBuilder:
    """Builds constant pool bytes; methods return the index of the new entry."""

    def __init__(self):
        self.entries = []
        self.count = 1
        self._utf8 = {}

    def _add(self, data, slots=1):
        index = self.count
        self.entries.append(data)
        self.count += slots
        return index

    def raw_utf8(self, data):
        return self._add(u1(1) + u2(len(data)) + data)

    def utf8(self, text):
        if text not in self._utf8:
            self._utf8[text] = self.raw_utf8(text.encode("utf-8"))
        return self._utf8[text]

    def integer(self, value):
        return self._add(u1(3) + i4(value))

    def float_bits(self, raw):
        return self._add(u1(4) + u4(raw))

    def long(self, value):
        return self._add(u1(5) + struct.pack(">q", value), slots=2)

    def double_bits(self, raw):
        return self._add(u1(6) + struct.pack(">Q", raw), slots=2)

    def class_(self, name):
        return self._add(u1(7) + u2(self.utf8(name)))

    def string(self, text):
        return self._add(u1(8) + u2(self.utf8(text)))

    def name_and_type(self, name, descriptor):
        return self._add(u1(12) + u2(self.utf8(name)) + u2(self.utf8(descriptor)))

    def _member_ref(self, tag, owner, name, descriptor):
        class_index = self.class_(owner)
        nat_index = self.name_and_type(name, descriptor)
        return self._add(u1(tag) + u2(class_index) + u2(nat_index))

    def fieldref(self, owner, name, descriptor):
        return self._member_ref(9, owner, name, descriptor)

    def methodref(self, owner, name, descriptor):
        return self._member_ref(10, owner, name, descriptor)

    def interface_methodref(self, owner, name, descriptor):
        return self._member_ref(11, owner, name, descriptor)

    def method_handle(self, kind, reference_index):
        return self._add(u1(15) + u1(kind) + u2(reference_index))

    def method_type(self, descriptor):
        return self._add(u1(16) + u2(self.utf8(descriptor)))

    def invoke_dynamic(self, bootstrap_index, name, descriptor):
        return self._add(u1(18) + u2(bootstrap_index) + u2(self.name_and_type(name, descriptor)))

    def to_bytes(self):
        return u2(self.count) + b"".join(self.entries)


class ClassBuilder:
    """Assembles a class file. Members and attributes take pre-built bodies."""

    def __init__(self, name="Test", super_name="java/lang/Object",
                 access_flags=0x0021, major=52, minor=0, magic=0xCAFEBABE):
        self.pool = PoolBuilder()
        self.magic = magic
        self.major = major
        self.minor = minor
        self.access_flags = access_flags
        self.this_class = self.pool.class_(name)
        self.super_class = self.pool.class_(super_name) if super_name else 0
        self.interfaces = []
        self.fields = []
        self.methods = []
        self.attributes = []

    def attribute(self, name, body):
        return attribute(self.pool.utf8(name), body)

    def code(self, code, max_stack=1, max_locals=1, exception_table=(), attributes=()):
        """Body of a Code attribute wrapped as an attribute_info."""
        body = u2(max_stack) + u2(max_locals) + u4(len(code)) + code
        body += u2(len(exception_table))
        for start_pc, end_pc, handler_pc, catch_type in exception_table:
            body += u2(start_pc) + u2(end_pc) + u2(handler_pc) + u2(catch_type)
        body += u2(len(attributes)) + b"".join(attributes)
        return self.attribute("Code", body)

    def add_interface(self, name):
        self.interfaces.append(self.pool.class_(name))

    def _member(self, access_flags, name, descriptor, attributes):
        data = u2(access_flags) + u2(self.pool.utf8(name)) + u2(self.pool.utf8(descriptor))
        return data + u2(len(attributes)) + b"".join(attributes)

    def add_field(self, access_flags, name, descriptor, attributes=()):
        self.fields.append(self._member(access_flags, name, descriptor, attributes))

    def add_method(self, access_flags, name, descriptor, attributes=()):
        self.methods.append(self._member(access_flags, name, descriptor, attributes))

    def add_attribute(self, name, body):
        self.attributes.append(self.attribute(name, body))

    def to_bytes(self):
        data = u4(self.magic) + u2(self.minor) + u2(self.major)
        data += self.pool.to_bytes()
        data += u2(self.access_flags) + u2(self.this_class) + u2(self.super_class)
        data += u2(len(self.interfaces)) + b"".join(u2(i) for i in self.interfaces)
        data += u2(len(self.fields)) + b"".join(self.fields)
        data += u2(len(self.methods)) + b"".join(self.methods)
        data += u2(len(self.attributes)) + b"".join(self.attributes)
        return data


def minimal_class():
    """Smallest useful class: one Utf8 "Code" entry and one method returning 0."""
    code = bytes([0x03, 0xAC])  # iconst_0; ireturn
    code_attr = attribute(1, u2(2) + u2(3) + u4(len(code)) + code + u2(0) + u2(0))
    method = u2(0x0009) + u2(1) + u2(1) + u2(1) + code_attr
    return (
        u4(0xCAFEBABE) + u2(0) + u2(52)
        + u2(2) + u1(1) + u2(4) + b"Code"
        + u2(0x0021) + u2(0) + u2(0)
        + u2(0)
        + u2(0)
        + u2(1) + method
        + u2(0)
    )


@pytest.fixture
def builder():
    return ClassBuilder()


@pytest.fixture
def minimal_class_bytes():
    return minimal_class()


@pytest.fixture
def hello_class_bytes():
    """A class shaped like javac output for a small HelloWorld."""
    b = ClassBuilder(name="com/example/Hello")
    pool = b.pool
    init = pool.methodref("java/lang/Object", "<init>", "()V")
    out = pool.fieldref("java/lang/System", "out", "Ljava/io/PrintStream;")
    greeting = pool.string("Hello")
    println = pool.methodref("java/io/PrintStream", "println", "(Ljava/lang/String;)V")
    b.add_interface("java/io/Serializable")

    b.add_field(0x001A, "serialVersionUID", "J",
                [b.attribute("ConstantValue", u2(pool.long(1)))])
    b.add_field(0x0002, "count", "I")

    ctor = bytes([0x2A, 0xB7]) + u2(init) + bytes([0xB1])  # aload_0; invokespecial; return
    b.add_method(0x0001, "<init>", "()V", [b.code(ctor, max_stack=1, max_locals=1)])

    main = (
        bytes([0xB2]) + u2(out)          # getstatic
        + bytes([0x12, greeting])        # ldc
        + bytes([0xB6]) + u2(println)    # invokevirtual
        + bytes([0xB1])                  # return
    )
    lines = b.attribute("LineNumberTable", u2(2) + u2(0) + u2(5) + u2(8) + u2(6))
    b.add_method(0x0009, "main", "([Ljava/lang/String;)V",
                 [b.code(main, max_stack=2, max_locals=1, attributes=[lines])])

    loop = (
        bytes([0x03, 0x3C])                   # 0: iconst_0; 1: istore_1
        + bytes([0x1B, 0x10, 10])             # 2: iload_1; 3: bipush 10
        + bytes([0xA2]) + i2(9)               # 5: if_icmpge 14
        + bytes([0x84, 1, 1])                 # 8: iinc 1, 1
        + bytes([0xA7]) + i2(-9)              # 11: goto 2
        + bytes([0xB1])                       # 14: return
    )
    b.add_method(0x000A, "loop", "()V", [b.code(loop, max_stack=2, max_locals=2)])
    b.add_attribute("SourceFile", u2(pool.utf8("Hello.java")))
    return b.to_bytes()
