"""
Immutable representation of a decoded class file.
All nodes are frozen dataclasses; collections are tuples.

Cross references inside a class file are constant pool indices. They are kept
as plain integers and resolved on demand through ConstantPool.
"""

import enum
import json
from dataclasses import dataclass
from typing import ClassVar, Optional, Type, TypeVar

from .classfile import (
    AccessFlags, ClassFileVersion, TargetType, TypePathKind, VerificationTypeTag,
)
from .errors import ClassFormatError


class Node:
    """Base class for all decoded values."""

    def to_dict(self) -> dict:
        """Convert node to dictionary for JSON serialization."""
        result = {"_type": self.__class__.__name__}
        for key, value in self.__dict__.items():
            if key.startswith("_"):
                continue
            result[key] = _serialize_value(value)
        return result

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


def _serialize_value(value):
    """Helper to serialize a value for JSON."""
    if value is None:
        return None
    if isinstance(value, Node):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return str(value)


def has_flag(flags: int, mask: int) -> bool:
    """Test one access flag bit."""
    return flags & mask != 0


def _flag(mask: AccessFlags) -> property:
    return property(lambda self: has_flag(self.access_flags, mask))


class _Modifiers:
    """Modifier predicates shared by classes, fields and methods."""
    is_public = _flag(AccessFlags.PUBLIC)
    is_private = _flag(AccessFlags.PRIVATE)
    is_protected = _flag(AccessFlags.PROTECTED)
    is_static = _flag(AccessFlags.STATIC)
    is_final = _flag(AccessFlags.FINAL)
    is_abstract = _flag(AccessFlags.ABSTRACT)
    is_synthetic = _flag(AccessFlags.SYNTHETIC)


# ==================== CONSTANT POOL ====================

class ConstantPoolInfo(Node):
    """Base class for constant pool entries."""
    pass


@dataclass(frozen=True)
class ConstantUtf8(ConstantPoolInfo):
    value: str


@dataclass(frozen=True)
class ConstantInteger(ConstantPoolInfo):
    value: int


@dataclass(frozen=True, eq=False)
class ConstantFloat(ConstantPoolInfo):
    """A 32-bit float; equality compares the raw bits so NaN payloads match."""
    value: float
    raw: int

    def __eq__(self, other):
        if other.__class__ is not self.__class__:
            return NotImplemented
        return self.raw == other.raw

    def __hash__(self):
        return hash((self.__class__, self.raw))


@dataclass(frozen=True)
class ConstantLong(ConstantPoolInfo):
    value: int


@dataclass(frozen=True, eq=False)
class ConstantDouble(ConstantPoolInfo):
    """A 64-bit double; equality compares the raw bits."""
    value: float
    raw: int

    def __eq__(self, other):
        if other.__class__ is not self.__class__:
            return NotImplemented
        return self.raw == other.raw

    def __hash__(self):
        return hash((self.__class__, self.raw))


@dataclass(frozen=True)
class ConstantClass(ConstantPoolInfo):
    name_index: int


@dataclass(frozen=True)
class ConstantString(ConstantPoolInfo):
    string_index: int


@dataclass(frozen=True)
class ConstantFieldref(ConstantPoolInfo):
    class_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class ConstantMethodref(ConstantPoolInfo):
    class_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class ConstantInterfaceMethodref(ConstantPoolInfo):
    class_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class ConstantNameAndType(ConstantPoolInfo):
    name_index: int
    descriptor_index: int


@dataclass(frozen=True)
class ConstantMethodHandle(ConstantPoolInfo):
    reference_kind: int
    reference_index: int


@dataclass(frozen=True)
class ConstantMethodType(ConstantPoolInfo):
    descriptor_index: int


@dataclass(frozen=True)
class ConstantInvokeDynamic(ConstantPoolInfo):
    bootstrap_method_attr_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class ConstantInvalid(ConstantPoolInfo):
    """Filler occupying the second slot of a Long or Double."""
    pass


C = TypeVar("C", bound=ConstantPoolInfo)


@dataclass(frozen=True)
class ConstantPool(Node):
    """The constant pool, indexed from 1 as the rest of the class file does."""
    entries: tuple[ConstantPoolInfo, ...]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __getitem__(self, index: int) -> ConstantPoolInfo:
        if not 1 <= index <= len(self.entries):
            raise ClassFormatError(
                f"constant pool index {index} out of range 1..{len(self.entries)}")
        return self.entries[index - 1]

    def items(self):
        """Yield (index, entry) pairs, skipping Long/Double fillers."""
        for index, entry in enumerate(self.entries, start=1):
            if not isinstance(entry, ConstantInvalid):
                yield index, entry

    def get(self, index: int, kind: Type[C]) -> C:
        """Look up an entry and check its kind."""
        entry = self[index]
        if not isinstance(entry, kind):
            raise ClassFormatError(
                f"expected {kind.__name__} at index {index} but got {type(entry).__name__}")
        return entry

    def get_utf8(self, index: int) -> str:
        return self.get(index, ConstantUtf8).value

    def get_class_name(self, index: int) -> Optional[str]:
        """Internal name of a CONSTANT_Class entry; index 0 means none."""
        if index == 0:
            return None
        return self.get_utf8(self.get(index, ConstantClass).name_index)

    def get_name_and_type(self, index: int) -> tuple[str, str]:
        nat = self.get(index, ConstantNameAndType)
        return self.get_utf8(nat.name_index), self.get_utf8(nat.descriptor_index)


# ==================== ANNOTATIONS ====================

@dataclass(frozen=True)
class ElementValue(Node):
    """Base class for annotation element values; tag is the JVMS tag character."""
    tag: str


@dataclass(frozen=True)
class ConstValue(ElementValue):
    const_value_index: int


@dataclass(frozen=True)
class EnumConstValue(ElementValue):
    type_name_index: int
    const_name_index: int


@dataclass(frozen=True)
class ClassValue(ElementValue):
    class_info_index: int


@dataclass(frozen=True)
class AnnotationValue(ElementValue):
    annotation: "Annotation"


@dataclass(frozen=True)
class ArrayValue(ElementValue):
    values: tuple[ElementValue, ...]


@dataclass(frozen=True)
class ElementValuePair(Node):
    element_name_index: int
    value: ElementValue


@dataclass(frozen=True)
class Annotation(Node):
    type_index: int
    element_value_pairs: tuple[ElementValuePair, ...]


class TargetInfo(Node):
    """Base class for the target_info union of type annotations."""
    pass


@dataclass(frozen=True)
class TypeParameterTarget(TargetInfo):
    type_parameter_index: int


@dataclass(frozen=True)
class SupertypeTarget(TargetInfo):
    supertype_index: int


@dataclass(frozen=True)
class TypeParameterBoundTarget(TargetInfo):
    type_parameter_index: int
    bound_index: int


@dataclass(frozen=True)
class EmptyTarget(TargetInfo):
    pass


@dataclass(frozen=True)
class FormalParameterTarget(TargetInfo):
    formal_parameter_index: int


@dataclass(frozen=True)
class ThrowsTarget(TargetInfo):
    throws_type_index: int


@dataclass(frozen=True)
class LocalVarTargetEntry(Node):
    start_pc: int
    length: int
    index: int


@dataclass(frozen=True)
class LocalVarTarget(TargetInfo):
    table: tuple[LocalVarTargetEntry, ...]


@dataclass(frozen=True)
class CatchTarget(TargetInfo):
    exception_table_index: int


@dataclass(frozen=True)
class OffsetTarget(TargetInfo):
    offset: int


@dataclass(frozen=True)
class TypeArgumentTarget(TargetInfo):
    offset: int
    type_argument_index: int


@dataclass(frozen=True)
class TypePathEntry(Node):
    type_path_kind: TypePathKind
    type_argument_index: int


@dataclass(frozen=True)
class TypePath(Node):
    path: tuple[TypePathEntry, ...]


@dataclass(frozen=True)
class TypeAnnotation(Node):
    target_type: TargetType
    target_info: TargetInfo
    target_path: TypePath
    type_index: int
    element_value_pairs: tuple[ElementValuePair, ...]


# ==================== STACK MAP FRAMES ====================

@dataclass(frozen=True)
class VerificationType(Node):
    """A verification type without operands (top, int, null, ...)."""
    tag: VerificationTypeTag


@dataclass(frozen=True)
class ObjectVariableInfo(VerificationType):
    cpool_index: int


@dataclass(frozen=True)
class UninitializedVariableInfo(VerificationType):
    offset: int


class StackMapFrame(Node):
    """Base class for stack map frames."""
    pass


@dataclass(frozen=True)
class SameFrame(StackMapFrame):
    frame_type: int

    @property
    def offset_delta(self) -> int:
        return self.frame_type


@dataclass(frozen=True)
class SameLocals1StackItemFrame(StackMapFrame):
    frame_type: int
    stack: VerificationType

    @property
    def offset_delta(self) -> int:
        return self.frame_type - 64


@dataclass(frozen=True)
class SameLocals1StackItemFrameExtended(StackMapFrame):
    offset_delta: int
    stack: VerificationType


@dataclass(frozen=True)
class ChopFrame(StackMapFrame):
    frame_type: int
    offset_delta: int

    @property
    def chopped(self) -> int:
        """Number of trailing locals removed."""
        return 251 - self.frame_type


@dataclass(frozen=True)
class SameFrameExtended(StackMapFrame):
    offset_delta: int


@dataclass(frozen=True)
class AppendFrame(StackMapFrame):
    frame_type: int
    offset_delta: int
    locals: tuple[VerificationType, ...]


@dataclass(frozen=True)
class FullFrame(StackMapFrame):
    offset_delta: int
    locals: tuple[VerificationType, ...]
    stack: tuple[VerificationType, ...]


# ==================== ATTRIBUTES ====================

class Attribute(Node):
    """Base class for attributes; NAME is the attribute_name the class decodes."""
    NAME: ClassVar[str] = ""


A = TypeVar("A", bound=Attribute)


def find_attribute(attributes: tuple[Attribute, ...], kind: Type[A]) -> Optional[A]:
    """Return the first attribute of the given kind, or None."""
    for attr in attributes:
        if isinstance(attr, kind):
            return attr
    return None


@dataclass(frozen=True)
class ExceptionTableEntry(Node):
    """An entry in the exception table; catch_type 0 catches everything."""
    start_pc: int
    end_pc: int
    handler_pc: int
    catch_type: int


@dataclass(frozen=True)
class ConstantValueAttribute(Attribute):
    NAME = "ConstantValue"
    constantvalue_index: int


@dataclass(frozen=True)
class CodeAttribute(Attribute):
    """Method body: sizing, decoded instructions, handlers and nested attributes."""
    NAME = "Code"
    max_stack: int
    max_locals: int
    code_length: int
    instructions: tuple
    exception_table: tuple[ExceptionTableEntry, ...]
    attributes: tuple[Attribute, ...]

    def instruction_at(self, offset: int):
        """Return the instruction starting at a code offset, or None."""
        for pos, insn in self.instructions:
            if pos == offset:
                return insn
        return None

    def get_attribute(self, kind: Type[A]) -> Optional[A]:
        return find_attribute(self.attributes, kind)


@dataclass(frozen=True)
class StackMapTableAttribute(Attribute):
    NAME = "StackMapTable"
    entries: tuple[StackMapFrame, ...]


@dataclass(frozen=True)
class ExceptionsAttribute(Attribute):
    NAME = "Exceptions"
    exception_index_table: tuple[int, ...]


@dataclass(frozen=True)
class InnerClass(_Modifiers, Node):
    inner_class_info_index: int
    outer_class_info_index: int
    inner_name_index: int
    inner_class_access_flags: int

    @property
    def access_flags(self) -> int:
        return self.inner_class_access_flags


@dataclass(frozen=True)
class InnerClassesAttribute(Attribute):
    NAME = "InnerClasses"
    classes: tuple[InnerClass, ...]


@dataclass(frozen=True)
class EnclosingMethodAttribute(Attribute):
    NAME = "EnclosingMethod"
    class_index: int
    method_index: int


@dataclass(frozen=True)
class SyntheticAttribute(Attribute):
    NAME = "Synthetic"


@dataclass(frozen=True)
class SignatureAttribute(Attribute):
    NAME = "Signature"
    signature_index: int


@dataclass(frozen=True)
class SourceFileAttribute(Attribute):
    NAME = "SourceFile"
    sourcefile_index: int


@dataclass(frozen=True)
class SourceDebugExtensionAttribute(Attribute):
    NAME = "SourceDebugExtension"
    debug_extension: bytes


@dataclass(frozen=True)
class LineNumber(Node):
    start_pc: int
    line_number: int


@dataclass(frozen=True)
class LineNumberTableAttribute(Attribute):
    NAME = "LineNumberTable"
    line_number_table: tuple[LineNumber, ...]


@dataclass(frozen=True)
class LocalVariable(Node):
    """A local variable entry; descriptor_index holds a signature in LocalVariableTypeTable."""
    start_pc: int
    length: int
    name_index: int
    descriptor_index: int
    index: int


@dataclass(frozen=True)
class LocalVariableTableAttribute(Attribute):
    NAME = "LocalVariableTable"
    local_variable_table: tuple[LocalVariable, ...]


@dataclass(frozen=True)
class LocalVariableTypeTableAttribute(Attribute):
    NAME = "LocalVariableTypeTable"
    local_variable_table: tuple[LocalVariable, ...]


@dataclass(frozen=True)
class DeprecatedAttribute(Attribute):
    NAME = "Deprecated"


@dataclass(frozen=True)
class RuntimeVisibleAnnotationsAttribute(Attribute):
    NAME = "RuntimeVisibleAnnotations"
    annotations: tuple[Annotation, ...]


@dataclass(frozen=True)
class RuntimeInvisibleAnnotationsAttribute(Attribute):
    NAME = "RuntimeInvisibleAnnotations"
    annotations: tuple[Annotation, ...]


@dataclass(frozen=True)
class RuntimeVisibleParameterAnnotationsAttribute(Attribute):
    NAME = "RuntimeVisibleParameterAnnotations"
    parameter_annotations: tuple[tuple[Annotation, ...], ...]


@dataclass(frozen=True)
class RuntimeInvisibleParameterAnnotationsAttribute(Attribute):
    NAME = "RuntimeInvisibleParameterAnnotations"
    parameter_annotations: tuple[tuple[Annotation, ...], ...]


@dataclass(frozen=True)
class RuntimeVisibleTypeAnnotationsAttribute(Attribute):
    NAME = "RuntimeVisibleTypeAnnotations"
    annotations: tuple[TypeAnnotation, ...]


@dataclass(frozen=True)
class RuntimeInvisibleTypeAnnotationsAttribute(Attribute):
    NAME = "RuntimeInvisibleTypeAnnotations"
    annotations: tuple[TypeAnnotation, ...]


@dataclass(frozen=True)
class AnnotationDefaultAttribute(Attribute):
    NAME = "AnnotationDefault"
    default_value: ElementValue


@dataclass(frozen=True)
class BootstrapMethod(Node):
    bootstrap_method_ref: int
    bootstrap_arguments: tuple[int, ...]


@dataclass(frozen=True)
class BootstrapMethodsAttribute(Attribute):
    NAME = "BootstrapMethods"
    bootstrap_methods: tuple[BootstrapMethod, ...]


@dataclass(frozen=True)
class MethodParameter(Node):
    """A formal parameter; name_index 0 means the parameter is unnamed."""
    name_index: int
    access_flags: int

    @property
    def is_final(self) -> bool:
        return has_flag(self.access_flags, AccessFlags.FINAL)

    @property
    def is_synthetic(self) -> bool:
        return has_flag(self.access_flags, AccessFlags.SYNTHETIC)

    @property
    def is_mandated(self) -> bool:
        return has_flag(self.access_flags, AccessFlags.MANDATED)


@dataclass(frozen=True)
class MethodParametersAttribute(Attribute):
    NAME = "MethodParameters"
    parameters: tuple[MethodParameter, ...]


@dataclass(frozen=True)
class NestHostAttribute(Attribute):
    NAME = "NestHost"
    host_class_index: int


@dataclass(frozen=True)
class NestMembersAttribute(Attribute):
    NAME = "NestMembers"
    classes: tuple[int, ...]


@dataclass(frozen=True)
class PermittedSubclassesAttribute(Attribute):
    NAME = "PermittedSubclasses"
    classes: tuple[int, ...]


@dataclass(frozen=True)
class RecordComponent(Node):
    name_index: int
    descriptor_index: int
    attributes: tuple[Attribute, ...]


@dataclass(frozen=True)
class RecordAttribute(Attribute):
    NAME = "Record"
    components: tuple[RecordComponent, ...]


@dataclass(frozen=True)
class UnknownAttribute(Attribute):
    """An attribute with an unrecognized name, kept as raw bytes."""
    name: str
    info: bytes


# ==================== MEMBERS ====================

class _Member(_Modifiers):
    """Name/descriptor resolution and attribute lookup shared by fields and methods."""

    def get_name(self, pool: ConstantPool) -> str:
        return pool.get_utf8(self.name_index)

    def get_descriptor(self, pool: ConstantPool) -> str:
        return pool.get_utf8(self.descriptor_index)

    def get_attribute(self, kind: Type[A]) -> Optional[A]:
        return find_attribute(self.attributes, kind)


@dataclass(frozen=True)
class Field(_Member, Node):
    """A field_info structure."""
    access_flags: int
    name_index: int
    descriptor_index: int
    attributes: tuple[Attribute, ...]

    is_volatile = _flag(AccessFlags.VOLATILE)
    is_transient = _flag(AccessFlags.TRANSIENT)
    is_enum = _flag(AccessFlags.ENUM)


@dataclass(frozen=True)
class Method(_Member, Node):
    """A method_info structure."""
    access_flags: int
    name_index: int
    descriptor_index: int
    attributes: tuple[Attribute, ...]

    is_synchronized = _flag(AccessFlags.SYNCHRONIZED)
    is_bridge = _flag(AccessFlags.BRIDGE)
    is_varargs = _flag(AccessFlags.VARARGS)
    is_native = _flag(AccessFlags.NATIVE)
    is_strict = _flag(AccessFlags.STRICT)

    @property
    def code(self) -> Optional[CodeAttribute]:
        return self.get_attribute(CodeAttribute)


@dataclass(frozen=True)
class ClassFile(_Modifiers, Node):
    """A decoded class file."""
    magic: int
    minor_version: int
    major_version: int
    constant_pool: ConstantPool
    access_flags: int
    this_class: int
    super_class: int
    interfaces: tuple[int, ...]
    fields: tuple[Field, ...]
    methods: tuple[Method, ...]
    attributes: tuple[Attribute, ...]

    is_super = _flag(AccessFlags.SUPER)
    is_interface = _flag(AccessFlags.INTERFACE)
    is_annotation = _flag(AccessFlags.ANNOTATION)
    is_enum = _flag(AccessFlags.ENUM)
    is_module = _flag(AccessFlags.MODULE)

    @property
    def version(self) -> tuple[int, int]:
        return (self.major_version, self.minor_version)

    @property
    def release(self) -> str:
        return ClassFileVersion.release_name(self.major_version)

    @property
    def name(self) -> str:
        return self.constant_pool.get_class_name(self.this_class)

    @property
    def super_name(self) -> Optional[str]:
        return self.constant_pool.get_class_name(self.super_class)

    @property
    def interface_names(self) -> tuple[str, ...]:
        return tuple(self.constant_pool.get_class_name(i) for i in self.interfaces)

    @property
    def source_file(self) -> Optional[str]:
        attr = self.get_attribute(SourceFileAttribute)
        if attr is None:
            return None
        return self.constant_pool.get_utf8(attr.sourcefile_index)

    def get_attribute(self, kind: Type[A]) -> Optional[A]:
        return find_attribute(self.attributes, kind)

    def find_method(self, name: str, descriptor: Optional[str] = None) -> Optional[Method]:
        """Find a method by name and, optionally, descriptor."""
        for method in self.methods:
            if method.get_name(self.constant_pool) != name:
                continue
            if descriptor is None or method.get_descriptor(self.constant_pool) == descriptor:
                return method
        return None

    def find_field(self, name: str) -> Optional[Field]:
        for fld in self.fields:
            if fld.get_name(self.constant_pool) == name:
                return fld
        return None
