"""Tests for attribute decoding."""

import pytest

from conftest import PoolBuilder, attribute, u1, u2, u4
from pyjavap.attributes import AttributeReader
from pyjavap.classfile import Opcode, TargetType, TypePathKind, VerificationTypeTag
from pyjavap.constant_pool import read_constant_pool
from pyjavap.cursor import ByteCursor
from pyjavap.errors import BytecodeDecodeError, ClassFormatError, TruncatedInputError
from pyjavap.instructions import Instruction
from pyjavap.model import (
    Annotation, AnnotationValue, AppendFrame, ArrayValue, BootstrapMethod,
    BootstrapMethodsAttribute, CatchTarget, ChopFrame, ClassValue, CodeAttribute,
    ConstValue, ConstantValueAttribute, DeprecatedAttribute, ElementValuePair,
    EmptyTarget, EnclosingMethodAttribute, EnumConstValue, ExceptionTableEntry,
    ExceptionsAttribute, FormalParameterTarget, FullFrame, InnerClass,
    InnerClassesAttribute, LineNumber, LineNumberTableAttribute, LocalVarTarget,
    LocalVarTargetEntry, LocalVariable, LocalVariableTableAttribute,
    LocalVariableTypeTableAttribute, MethodParameter, MethodParametersAttribute,
    NestHostAttribute, NestMembersAttribute, ObjectVariableInfo, OffsetTarget,
    PermittedSubclassesAttribute, RecordAttribute, RecordComponent,
    RuntimeInvisibleAnnotationsAttribute, RuntimeInvisibleParameterAnnotationsAttribute,
    RuntimeVisibleAnnotationsAttribute, RuntimeVisibleParameterAnnotationsAttribute,
    RuntimeVisibleTypeAnnotationsAttribute, RuntimeInvisibleTypeAnnotationsAttribute,
    SameFrame, SameFrameExtended, SameLocals1StackItemFrame,
    SameLocals1StackItemFrameExtended, SignatureAttribute, SourceDebugExtensionAttribute,
    SourceFileAttribute, StackMapTableAttribute, SupertypeTarget, SyntheticAttribute,
    ThrowsTarget, TypeArgumentTarget, TypeParameterBoundTarget, TypeParameterTarget,
    TypePath, TypePathEntry, UninitializedVariableInfo, UnknownAttribute, VerificationType,
    AnnotationDefaultAttribute,
)


class Attrs:
    """Builds attribute bytes against a pool and decodes them."""

    def __init__(self):
        self.pool = PoolBuilder()

    def build(self, name, body):
        return attribute(self.pool.utf8(name), body)

    def decode(self, data):
        cp = read_constant_pool(ByteCursor(self.pool.to_bytes()))
        r = ByteCursor(data)
        attr = AttributeReader(r, cp).read_attribute()
        assert r.position == len(data)
        return attr

    def read(self, name, body):
        return self.decode(self.build(name, body))


@pytest.fixture
def attrs():
    return Attrs()


class TestSimpleAttributes:
    def test_constant_value(self, attrs):
        assert attrs.read("ConstantValue", u2(9)) == ConstantValueAttribute(9)

    def test_exceptions(self, attrs):
        attr = attrs.read("Exceptions", u2(2) + u2(4) + u2(5))
        assert attr == ExceptionsAttribute((4, 5))

    def test_inner_classes(self, attrs):
        attr = attrs.read("InnerClasses", u2(1) + u2(2) + u2(3) + u2(4) + u2(0x0019))
        assert attr == InnerClassesAttribute((InnerClass(2, 3, 4, 0x0019),))
        inner = attr.classes[0]
        assert inner.is_public and inner.is_static and inner.is_final
        assert not inner.is_private

    def test_enclosing_method(self, attrs):
        assert attrs.read("EnclosingMethod", u2(3) + u2(0)) == EnclosingMethodAttribute(3, 0)

    def test_marker_attributes(self, attrs):
        assert attrs.read("Synthetic", b"") == SyntheticAttribute()
        assert attrs.read("Deprecated", b"") == DeprecatedAttribute()

    def test_signature_and_source_file(self, attrs):
        assert attrs.read("Signature", u2(7)) == SignatureAttribute(7)
        assert attrs.read("SourceFile", u2(8)) == SourceFileAttribute(8)

    def test_source_debug_extension(self, attrs):
        body = b"SMAP\nfoo\n"
        assert attrs.read("SourceDebugExtension", body) == SourceDebugExtensionAttribute(body)

    def test_line_number_table(self, attrs):
        attr = attrs.read("LineNumberTable", u2(2) + u2(0) + u2(10) + u2(4) + u2(11))
        assert attr == LineNumberTableAttribute((LineNumber(0, 10), LineNumber(4, 11)))

    def test_local_variable_tables_are_distinct(self, attrs):
        body = u2(1) + u2(0) + u2(5) + u2(6) + u2(7) + u2(1)
        lvt = attrs.read("LocalVariableTable", body)
        lvtt = attrs.read("LocalVariableTypeTable", body)
        entry = LocalVariable(0, 5, 6, 7, 1)
        assert lvt == LocalVariableTableAttribute((entry,))
        assert lvtt == LocalVariableTypeTableAttribute((entry,))
        assert type(lvt) is not type(lvtt)

    def test_bootstrap_methods(self, attrs):
        body = u2(2) + u2(10) + u2(2) + u2(11) + u2(12) + u2(13) + u2(0)
        attr = attrs.read("BootstrapMethods", body)
        assert attr == BootstrapMethodsAttribute((
            BootstrapMethod(10, (11, 12)),
            BootstrapMethod(13, ()),
        ))

    def test_method_parameters(self, attrs):
        body = u1(2) + u2(5) + u2(0x0010) + u2(0) + u2(0x8000)
        attr = attrs.read("MethodParameters", body)
        assert attr == MethodParametersAttribute((
            MethodParameter(5, 0x0010), MethodParameter(0, 0x8000),
        ))
        assert attr.parameters[0].is_final
        assert attr.parameters[1].is_mandated
        assert not attr.parameters[1].is_synthetic

    def test_nest_and_permitted(self, attrs):
        assert attrs.read("NestHost", u2(3)) == NestHostAttribute(3)
        assert attrs.read("NestMembers", u2(2) + u2(4) + u2(5)) == NestMembersAttribute((4, 5))
        assert attrs.read("PermittedSubclasses", u2(1) + u2(6)) == PermittedSubclassesAttribute((6,))

    def test_record(self, attrs):
        signature = attrs.build("Signature", u2(9))
        body = u2(2) + u2(3) + u2(4) + u2(0) + u2(5) + u2(6) + u2(1) + signature
        attr = attrs.read("Record", body)
        assert attr == RecordAttribute((
            RecordComponent(3, 4, ()),
            RecordComponent(5, 6, (SignatureAttribute(9),)),
        ))


class TestUnknownAttributes:
    def test_unknown_kept_raw(self, attrs):
        attr = attrs.read("org.example.Custom", b"\x01\x02\x03")
        assert attr == UnknownAttribute("org.example.Custom", b"\x01\x02\x03")

    def test_unknown_empty(self, attrs):
        assert attrs.read("Nothing", b"") == UnknownAttribute("Nothing", b"")

    def test_name_must_be_utf8(self, attrs):
        class_index = attrs.pool.class_("A")
        with pytest.raises(ClassFormatError) as exc:
            attrs.decode(attribute(class_index, b""))
        assert "ConstantUtf8" in str(exc.value)
        assert "ConstantClass" in str(exc.value)

    def test_name_index_out_of_range(self, attrs):
        attrs.pool.utf8("Code")
        with pytest.raises(ClassFormatError):
            attrs.decode(attribute(40, b""))

    def test_truncated_body(self, attrs):
        data = attrs.build("Exceptions", u2(3) + u2(1))
        with pytest.raises(TruncatedInputError):
            attrs.decode(data)


class TestCodeAttribute:
    def test_code_with_exception_table_and_nested(self, attrs):
        lines = attrs.build("LineNumberTable", u2(1) + u2(0) + u2(3))
        code = bytes([0x03, 0xAC])
        body = (u2(2) + u2(1) + u4(len(code)) + code
                + u2(1) + u2(0) + u2(1) + u2(1) + u2(0)
                + u2(1) + lines)
        attr = attrs.read("Code", body)
        assert isinstance(attr, CodeAttribute)
        assert attr.max_stack == 2
        assert attr.max_locals == 1
        assert attr.code_length == 2
        assert attr.instructions == (
            (0, Instruction(Opcode.ICONST_0)),
            (1, Instruction(Opcode.IRETURN)),
        )
        assert attr.exception_table == (ExceptionTableEntry(0, 1, 1, 0),)
        assert attr.get_attribute(LineNumberTableAttribute) == LineNumberTableAttribute(
            (LineNumber(0, 3),))
        assert attr.instruction_at(1) == Instruction(Opcode.IRETURN)
        assert attr.instruction_at(2) is None

    def test_bad_bytecode(self, attrs):
        code = bytes([0xBA])  # invokedynamic with no operands
        body = u2(0) + u2(0) + u4(1) + code + u2(0) + u2(0)
        with pytest.raises(BytecodeDecodeError):
            attrs.read("Code", body)


class TestStackMapTable:
    def frames(self, attrs, *frames):
        body = u2(len(frames)) + b"".join(frames)
        return attrs.read("StackMapTable", body).entries

    def test_same_frames(self, attrs):
        frames = self.frames(attrs, u1(0), u1(63), u1(251) + u2(300))
        assert frames == (SameFrame(0), SameFrame(63), SameFrameExtended(300))
        assert frames[1].offset_delta == 63

    def test_same_locals_one_stack_item(self, attrs):
        frames = self.frames(attrs, u1(64) + u1(1), u1(127) + u1(7) + u2(4),
                             u1(247) + u2(1000) + u1(8) + u2(12))
        assert frames[0] == SameLocals1StackItemFrame(64, VerificationType(VerificationTypeTag.INTEGER))
        assert frames[0].offset_delta == 0
        assert frames[1] == SameLocals1StackItemFrame(127, ObjectVariableInfo(VerificationTypeTag.OBJECT, 4))
        assert frames[1].offset_delta == 63
        assert frames[2] == SameLocals1StackItemFrameExtended(
            1000, UninitializedVariableInfo(VerificationTypeTag.UNINITIALIZED, 12))

    def test_chop_frames(self, attrs):
        frames = self.frames(attrs, u1(248) + u2(5), u1(250) + u2(6))
        assert frames == (ChopFrame(248, 5), ChopFrame(250, 6))
        assert frames[0].chopped == 3
        assert frames[1].chopped == 1

    def test_append_frames(self, attrs):
        frames = self.frames(
            attrs,
            u1(252) + u2(2) + u1(1),
            u1(254) + u2(3) + u1(3) + u1(4) + u1(7) + u2(9),
        )
        assert frames[0] == AppendFrame(252, 2, (VerificationType(VerificationTypeTag.INTEGER),))
        assert frames[1] == AppendFrame(254, 3, (
            VerificationType(VerificationTypeTag.DOUBLE),
            VerificationType(VerificationTypeTag.LONG),
            ObjectVariableInfo(VerificationTypeTag.OBJECT, 9),
        ))

    def test_full_frame(self, attrs):
        frame = u1(255) + u2(7) + u2(2) + u1(6) + u1(0) + u2(1) + u1(5)
        (result,) = self.frames(attrs, frame)
        assert result == FullFrame(
            7,
            (VerificationType(VerificationTypeTag.UNINITIALIZED_THIS),
             VerificationType(VerificationTypeTag.TOP)),
            (VerificationType(VerificationTypeTag.NULL),),
        )

    @pytest.mark.parametrize("frame_type", [128, 200, 246])
    def test_reserved_frame_types(self, attrs, frame_type):
        with pytest.raises(ClassFormatError) as exc:
            self.frames(attrs, u1(frame_type))
        assert "reserved" in str(exc.value)

    def test_unknown_verification_tag(self, attrs):
        with pytest.raises(ClassFormatError):
            self.frames(attrs, u1(64) + u1(9))


class TestAnnotations:
    def test_const_and_enum_values(self, attrs):
        body = (u2(1)
                + u2(10) + u2(3)
                + u2(11) + u1(ord("I")) + u2(20)
                + u2(12) + u1(ord("e")) + u2(21) + u2(22)
                + u2(13) + u1(ord("c")) + u2(23))
        attr = attrs.read("RuntimeVisibleAnnotations", body)
        assert attr == RuntimeVisibleAnnotationsAttribute((
            Annotation(10, (
                ElementValuePair(11, ConstValue("I", 20)),
                ElementValuePair(12, EnumConstValue("e", 21, 22)),
                ElementValuePair(13, ClassValue("c", 23)),
            )),
        ))

    def test_nested_annotation_and_array(self, attrs):
        nested = u1(ord("@")) + u2(30) + u2(0)
        array = u1(ord("[")) + u2(2) + u1(ord("s")) + u2(31) + u1(ord("Z")) + u2(32)
        body = u2(1) + u2(10) + u2(2) + u2(11) + nested + u2(12) + array
        attr = attrs.read("RuntimeInvisibleAnnotations", body)
        assert attr == RuntimeInvisibleAnnotationsAttribute((
            Annotation(10, (
                ElementValuePair(11, AnnotationValue("@", Annotation(30, ()))),
                ElementValuePair(12, ArrayValue("[", (ConstValue("s", 31), ConstValue("Z", 32)))),
            )),
        ))

    def test_parameter_annotations(self, attrs):
        body = u1(2) + u2(0) + u2(1) + u2(40) + u2(0)
        visible = attrs.read("RuntimeVisibleParameterAnnotations", body)
        invisible = attrs.read("RuntimeInvisibleParameterAnnotations", body)
        assert visible == RuntimeVisibleParameterAnnotationsAttribute(((), (Annotation(40, ()),)))
        assert invisible == RuntimeInvisibleParameterAnnotationsAttribute(((), (Annotation(40, ()),)))

    def test_annotation_default(self, attrs):
        attr = attrs.read("AnnotationDefault", u1(ord("J")) + u2(5))
        assert attr == AnnotationDefaultAttribute(ConstValue("J", 5))

    def test_unknown_element_tag(self, attrs):
        body = u2(1) + u2(10) + u2(1) + u2(11) + u1(ord("x")) + u2(0)
        with pytest.raises(ClassFormatError) as exc:
            attrs.read("RuntimeVisibleAnnotations", body)
        assert "'x'" in str(exc.value)


class TestTypeAnnotations:
    def read_one(self, attrs, target, path=b"\x00"):
        body = u2(1) + target + path + u2(50) + u2(0)
        attr = attrs.read("RuntimeVisibleTypeAnnotations", body)
        assert isinstance(attr, RuntimeVisibleTypeAnnotationsAttribute)
        (annotation,) = attr.annotations
        assert annotation.type_index == 50
        return annotation

    @pytest.mark.parametrize("target,expected_type,expected_info", [
        (u1(0x00) + u1(1), TargetType.TYPE_PARAMETER, TypeParameterTarget(1)),
        (u1(0x01) + u1(2), TargetType.METHOD_TYPE_PARAMETER, TypeParameterTarget(2)),
        (u1(0x10) + u2(0xFFFF), TargetType.SUPERTYPE, SupertypeTarget(0xFFFF)),
        (u1(0x11) + u1(0) + u1(1), TargetType.TYPE_PARAMETER_BOUND, TypeParameterBoundTarget(0, 1)),
        (u1(0x12) + u1(1) + u1(0), TargetType.METHOD_TYPE_PARAMETER_BOUND, TypeParameterBoundTarget(1, 0)),
        (u1(0x13), TargetType.FIELD, EmptyTarget()),
        (u1(0x14), TargetType.METHOD_RETURN, EmptyTarget()),
        (u1(0x15), TargetType.METHOD_RECEIVER, EmptyTarget()),
        (u1(0x16) + u1(3), TargetType.METHOD_FORMAL_PARAMETER, FormalParameterTarget(3)),
        (u1(0x17) + u2(1), TargetType.THROWS, ThrowsTarget(1)),
        (u1(0x42) + u2(2), TargetType.EXCEPTION_PARAMETER, CatchTarget(2)),
        (u1(0x43) + u2(7), TargetType.INSTANCEOF, OffsetTarget(7)),
        (u1(0x44) + u2(8), TargetType.NEW, OffsetTarget(8)),
        (u1(0x45) + u2(9), TargetType.CONSTRUCTOR_REFERENCE, OffsetTarget(9)),
        (u1(0x46) + u2(10), TargetType.METHOD_REFERENCE, OffsetTarget(10)),
        (u1(0x47) + u2(11) + u1(0), TargetType.CAST, TypeArgumentTarget(11, 0)),
        (u1(0x48) + u2(12) + u1(1), TargetType.CONSTRUCTOR_INVOCATION_TYPE_ARGUMENT, TypeArgumentTarget(12, 1)),
        (u1(0x49) + u2(13) + u1(2), TargetType.METHOD_INVOCATION_TYPE_ARGUMENT, TypeArgumentTarget(13, 2)),
        (u1(0x4A) + u2(14) + u1(3), TargetType.CONSTRUCTOR_REFERENCE_TYPE_ARGUMENT, TypeArgumentTarget(14, 3)),
        (u1(0x4B) + u2(15) + u1(4), TargetType.METHOD_REFERENCE_TYPE_ARGUMENT, TypeArgumentTarget(15, 4)),
    ])
    def test_target_info(self, attrs, target, expected_type, expected_info):
        annotation = self.read_one(attrs, target)
        assert annotation.target_type is expected_type
        assert annotation.target_info == expected_info
        assert annotation.target_path == TypePath(())

    @pytest.mark.parametrize("tag", [0x40, 0x41])
    def test_local_variable_targets(self, attrs, tag):
        target = u1(tag) + u2(2) + u2(0) + u2(10) + u2(1) + u2(4) + u2(6) + u2(2)
        annotation = self.read_one(attrs, target)
        assert annotation.target_info == LocalVarTarget((
            LocalVarTargetEntry(0, 10, 1), LocalVarTargetEntry(4, 6, 2),
        ))

    def test_type_path(self, attrs):
        path = u1(3) + u1(0) + u1(0) + u1(3) + u1(1) + u1(2) + u1(0)
        annotation = self.read_one(attrs, u1(0x13), path)
        assert annotation.target_path == TypePath((
            TypePathEntry(TypePathKind.ARRAY, 0),
            TypePathEntry(TypePathKind.TYPE_ARGUMENT, 1),
            TypePathEntry(TypePathKind.WILDCARD_BOUND, 0),
        ))

    def test_invisible_kind(self, attrs):
        body = u2(1) + u1(0x13) + u1(0) + u2(50) + u2(0)
        attr = attrs.read("RuntimeInvisibleTypeAnnotations", body)
        assert isinstance(attr, RuntimeInvisibleTypeAnnotationsAttribute)

    def test_unknown_target_type(self, attrs):
        body = u2(1) + u1(0x20) + u1(0) + u2(50) + u2(0)
        with pytest.raises(ClassFormatError):
            attrs.read("RuntimeVisibleTypeAnnotations", body)

    def test_unknown_type_path_kind(self, attrs):
        body = u2(1) + u1(0x13) + u1(1) + u1(4) + u1(0) + u2(50) + u2(0)
        with pytest.raises(ClassFormatError):
            attrs.read("RuntimeVisibleTypeAnnotations", body)
