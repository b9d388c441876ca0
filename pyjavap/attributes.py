"""
Attribute decoding (JVMS 4.7).

AttributeReader dispatches on the attribute name, resolved through an already
complete constant pool, to a reader that knows the exact layout. Names it does
not recognize are kept as raw bytes.
"""

import logging
from typing import Callable

from .classfile import TargetType, TypePathKind, VerificationTypeTag
from .cursor import ByteCursor
from .errors import ClassFormatError
from .instructions import decode_code
from .model import (
    Attribute, ConstantPool, ConstantUtf8,
    ConstValue, EnumConstValue, ClassValue, AnnotationValue, ArrayValue, ElementValue,
    ElementValuePair, Annotation, TypeAnnotation, TypePath, TypePathEntry, TargetInfo,
    TypeParameterTarget, SupertypeTarget, TypeParameterBoundTarget, EmptyTarget,
    FormalParameterTarget, ThrowsTarget, LocalVarTarget, LocalVarTargetEntry,
    CatchTarget, OffsetTarget, TypeArgumentTarget,
    VerificationType, ObjectVariableInfo, UninitializedVariableInfo,
    StackMapFrame, SameFrame, SameLocals1StackItemFrame, SameLocals1StackItemFrameExtended,
    ChopFrame, SameFrameExtended, AppendFrame, FullFrame,
    ExceptionTableEntry, InnerClass, LineNumber, LocalVariable, BootstrapMethod,
    MethodParameter, RecordComponent,
    ConstantValueAttribute, CodeAttribute, StackMapTableAttribute, ExceptionsAttribute,
    InnerClassesAttribute, EnclosingMethodAttribute, SyntheticAttribute,
    SignatureAttribute, SourceFileAttribute, SourceDebugExtensionAttribute,
    LineNumberTableAttribute, LocalVariableTableAttribute, LocalVariableTypeTableAttribute,
    DeprecatedAttribute, RuntimeVisibleAnnotationsAttribute,
    RuntimeInvisibleAnnotationsAttribute, RuntimeVisibleParameterAnnotationsAttribute,
    RuntimeInvisibleParameterAnnotationsAttribute, RuntimeVisibleTypeAnnotationsAttribute,
    RuntimeInvisibleTypeAnnotationsAttribute, AnnotationDefaultAttribute,
    BootstrapMethodsAttribute, MethodParametersAttribute, NestHostAttribute,
    NestMembersAttribute, PermittedSubclassesAttribute, RecordAttribute, UnknownAttribute,
)

logger = logging.getLogger(__name__)

CONST_VALUE_TAGS = "BCDFIJSZs"


class AttributeReader:
    """Reads attributes from a cursor, resolving names through a constant pool."""

    def __init__(self, r: ByteCursor, constant_pool: ConstantPool):
        self.r = r
        self.constant_pool = constant_pool
        self._readers: dict[str, Callable[[str, int], Attribute]] = {
            "ConstantValue": self._read_constant_value,
            "Code": self._read_code,
            "StackMapTable": self._read_stack_map_table,
            "Exceptions": self._read_exceptions,
            "InnerClasses": self._read_inner_classes,
            "EnclosingMethod": self._read_enclosing_method,
            "Synthetic": lambda name, length: SyntheticAttribute(),
            "Signature": lambda name, length: SignatureAttribute(self.r.read_u2()),
            "SourceFile": lambda name, length: SourceFileAttribute(self.r.read_u2()),
            "SourceDebugExtension": self._read_source_debug_extension,
            "LineNumberTable": self._read_line_number_table,
            "LocalVariableTable": self._read_local_variable_table,
            "LocalVariableTypeTable": self._read_local_variable_table,
            "Deprecated": lambda name, length: DeprecatedAttribute(),
            "RuntimeVisibleAnnotations": self._read_annotations_attribute,
            "RuntimeInvisibleAnnotations": self._read_annotations_attribute,
            "RuntimeVisibleParameterAnnotations": self._read_parameter_annotations,
            "RuntimeInvisibleParameterAnnotations": self._read_parameter_annotations,
            "RuntimeVisibleTypeAnnotations": self._read_type_annotations_attribute,
            "RuntimeInvisibleTypeAnnotations": self._read_type_annotations_attribute,
            "AnnotationDefault": self._read_annotation_default,
            "BootstrapMethods": self._read_bootstrap_methods,
            "MethodParameters": self._read_method_parameters,
            "NestHost": lambda name, length: NestHostAttribute(self.r.read_u2()),
            "NestMembers": self._read_class_list,
            "PermittedSubclasses": self._read_class_list,
            "Record": self._read_record,
        }

    def _read_u2_list(self) -> tuple[int, ...]:
        count = self.r.read_u2()
        return tuple(self.r.read_u2() for _ in range(count))

    # ==================== ATTRIBUTE LISTS ====================

    def read_attributes(self) -> tuple[Attribute, ...]:
        """Read attributes_count and that many attributes."""
        count = self.r.read_u2()
        return tuple(self.read_attribute() for _ in range(count))

    def read_attribute(self) -> Attribute:
        name_offset = self.r.position
        name_idx = self.r.read_u2()
        length = self.r.read_u4()
        entry = self.constant_pool[name_idx]
        if not isinstance(entry, ConstantUtf8):
            raise ClassFormatError(
                f"expected ConstantUtf8 for attribute name at index {name_idx} "
                f"but got {type(entry).__name__}", name_offset)
        name = entry.value
        logger.debug("attribute %s (%d bytes) at offset %d", name, length, name_offset)

        reader = self._readers.get(name)
        if reader is None:
            return UnknownAttribute(name, self.r.read_bytes(length))

        start = self.r.position
        attr = reader(name, length)
        consumed = self.r.position - start
        if consumed != length:
            logger.debug("attribute %s declared %d bytes but its layout used %d",
                         name, length, consumed)
        return attr

    # ==================== SIMPLE ATTRIBUTES ====================

    def _read_constant_value(self, name: str, length: int) -> Attribute:
        return ConstantValueAttribute(self.r.read_u2())

    def _read_exceptions(self, name: str, length: int) -> Attribute:
        return ExceptionsAttribute(self._read_u2_list())

    def _read_enclosing_method(self, name: str, length: int) -> Attribute:
        class_idx = self.r.read_u2()
        return EnclosingMethodAttribute(class_idx, self.r.read_u2())

    def _read_source_debug_extension(self, name: str, length: int) -> Attribute:
        return SourceDebugExtensionAttribute(self.r.read_bytes(length))

    def _read_class_list(self, name: str, length: int) -> Attribute:
        classes = self._read_u2_list()
        if name == "NestMembers":
            return NestMembersAttribute(classes)
        return PermittedSubclassesAttribute(classes)

    def _read_inner_classes(self, name: str, length: int) -> Attribute:
        count = self.r.read_u2()
        classes = []
        for _ in range(count):
            inner_class_idx = self.r.read_u2()
            outer_class_idx = self.r.read_u2()
            inner_name_idx = self.r.read_u2()
            inner_access = self.r.read_u2()
            classes.append(InnerClass(inner_class_idx, outer_class_idx, inner_name_idx, inner_access))
        return InnerClassesAttribute(tuple(classes))

    def _read_line_number_table(self, name: str, length: int) -> Attribute:
        count = self.r.read_u2()
        entries = []
        for _ in range(count):
            start_pc = self.r.read_u2()
            entries.append(LineNumber(start_pc, self.r.read_u2()))
        return LineNumberTableAttribute(tuple(entries))

    def _read_local_variable_table(self, name: str, length: int) -> Attribute:
        count = self.r.read_u2()
        entries = []
        for _ in range(count):
            start_pc = self.r.read_u2()
            var_length = self.r.read_u2()
            name_idx = self.r.read_u2()
            desc_idx = self.r.read_u2()
            index = self.r.read_u2()
            entries.append(LocalVariable(start_pc, var_length, name_idx, desc_idx, index))
        if name == "LocalVariableTable":
            return LocalVariableTableAttribute(tuple(entries))
        return LocalVariableTypeTableAttribute(tuple(entries))

    def _read_bootstrap_methods(self, name: str, length: int) -> Attribute:
        count = self.r.read_u2()
        methods = []
        for _ in range(count):
            method_ref = self.r.read_u2()
            methods.append(BootstrapMethod(method_ref, self._read_u2_list()))
        return BootstrapMethodsAttribute(tuple(methods))

    def _read_method_parameters(self, name: str, length: int) -> Attribute:
        count = self.r.read_u1()
        params = []
        for _ in range(count):
            name_idx = self.r.read_u2()
            params.append(MethodParameter(name_idx, self.r.read_u2()))
        return MethodParametersAttribute(tuple(params))

    def _read_record(self, name: str, length: int) -> Attribute:
        count = self.r.read_u2()
        components = []
        for _ in range(count):
            name_idx = self.r.read_u2()
            desc_idx = self.r.read_u2()
            components.append(RecordComponent(name_idx, desc_idx, self.read_attributes()))
        return RecordAttribute(tuple(components))

    # ==================== CODE ====================

    def _read_code(self, name: str, length: int) -> Attribute:
        max_stack = self.r.read_u2()
        max_locals = self.r.read_u2()
        code_length = self.r.read_u4()
        code = self.r.read_bytes(code_length)
        exception_table = []
        for _ in range(self.r.read_u2()):
            start_pc = self.r.read_u2()
            end_pc = self.r.read_u2()
            handler_pc = self.r.read_u2()
            catch_type = self.r.read_u2()
            exception_table.append(ExceptionTableEntry(start_pc, end_pc, handler_pc, catch_type))
        attributes = self.read_attributes()
        return CodeAttribute(
            max_stack=max_stack,
            max_locals=max_locals,
            code_length=code_length,
            instructions=decode_code(code),
            exception_table=tuple(exception_table),
            attributes=attributes,
        )

    # ==================== STACK MAP FRAMES ====================

    def _read_stack_map_table(self, name: str, length: int) -> Attribute:
        count = self.r.read_u2()
        return StackMapTableAttribute(tuple(self._read_frame() for _ in range(count)))

    def _read_frame(self) -> StackMapFrame:
        offset = self.r.position
        frame_type = self.r.read_u1()

        if frame_type <= 63:
            return SameFrame(frame_type)

        elif frame_type <= 127:
            return SameLocals1StackItemFrame(frame_type, self._read_verification_type())

        elif frame_type <= 246:
            raise ClassFormatError(f"reserved stack map frame type {frame_type}", offset)

        elif frame_type == 247:
            offset_delta = self.r.read_u2()
            return SameLocals1StackItemFrameExtended(offset_delta, self._read_verification_type())

        elif frame_type <= 250:
            return ChopFrame(frame_type, self.r.read_u2())

        elif frame_type == 251:
            return SameFrameExtended(self.r.read_u2())

        elif frame_type <= 254:
            offset_delta = self.r.read_u2()
            return AppendFrame(frame_type, offset_delta,
                               self._read_verification_types(frame_type - 251))

        offset_delta = self.r.read_u2()
        locals_ = self._read_verification_types(self.r.read_u2())
        stack = self._read_verification_types(self.r.read_u2())
        return FullFrame(offset_delta, locals_, stack)

    def _read_verification_types(self, count: int) -> tuple[VerificationType, ...]:
        return tuple(self._read_verification_type() for _ in range(count))

    def _read_verification_type(self) -> VerificationType:
        offset = self.r.position
        tag = self.r.read_u1()
        if tag == VerificationTypeTag.OBJECT:
            return ObjectVariableInfo(VerificationTypeTag.OBJECT, self.r.read_u2())
        if tag == VerificationTypeTag.UNINITIALIZED:
            return UninitializedVariableInfo(VerificationTypeTag.UNINITIALIZED, self.r.read_u2())
        try:
            return VerificationType(VerificationTypeTag(tag))
        except ValueError:
            raise ClassFormatError(f"unknown verification type tag {tag}", offset) from None

    # ==================== ANNOTATIONS ====================

    def _read_annotations_attribute(self, name: str, length: int) -> Attribute:
        annotations = self._read_annotations()
        if name == "RuntimeVisibleAnnotations":
            return RuntimeVisibleAnnotationsAttribute(annotations)
        return RuntimeInvisibleAnnotationsAttribute(annotations)

    def _read_parameter_annotations(self, name: str, length: int) -> Attribute:
        num_parameters = self.r.read_u1()
        params = tuple(self._read_annotations() for _ in range(num_parameters))
        if name == "RuntimeVisibleParameterAnnotations":
            return RuntimeVisibleParameterAnnotationsAttribute(params)
        return RuntimeInvisibleParameterAnnotationsAttribute(params)

    def _read_type_annotations_attribute(self, name: str, length: int) -> Attribute:
        count = self.r.read_u2()
        annotations = tuple(self._read_type_annotation() for _ in range(count))
        if name == "RuntimeVisibleTypeAnnotations":
            return RuntimeVisibleTypeAnnotationsAttribute(annotations)
        return RuntimeInvisibleTypeAnnotationsAttribute(annotations)

    def _read_annotation_default(self, name: str, length: int) -> Attribute:
        return AnnotationDefaultAttribute(self._read_element_value())

    def _read_annotations(self) -> tuple[Annotation, ...]:
        count = self.r.read_u2()
        return tuple(self._read_annotation() for _ in range(count))

    def _read_annotation(self) -> Annotation:
        type_idx = self.r.read_u2()
        return Annotation(type_idx, self._read_element_value_pairs())

    def _read_element_value_pairs(self) -> tuple[ElementValuePair, ...]:
        count = self.r.read_u2()
        pairs = []
        for _ in range(count):
            name_idx = self.r.read_u2()
            pairs.append(ElementValuePair(name_idx, self._read_element_value()))
        return tuple(pairs)

    def _read_element_value(self) -> ElementValue:
        offset = self.r.position
        tag = chr(self.r.read_u1())

        if tag in CONST_VALUE_TAGS:
            return ConstValue(tag, self.r.read_u2())

        elif tag == "e":
            type_idx = self.r.read_u2()
            return EnumConstValue(tag, type_idx, self.r.read_u2())

        elif tag == "c":
            return ClassValue(tag, self.r.read_u2())

        elif tag == "@":
            return AnnotationValue(tag, self._read_annotation())

        elif tag == "[":
            count = self.r.read_u2()
            return ArrayValue(tag, tuple(self._read_element_value() for _ in range(count)))

        raise ClassFormatError(f"unknown element value tag {tag!r}", offset)

    # ==================== TYPE ANNOTATIONS ====================

    def _read_type_annotation(self) -> TypeAnnotation:
        offset = self.r.position
        tag = self.r.read_u1()
        try:
            target_type = TargetType(tag)
        except ValueError:
            raise ClassFormatError(f"unknown type annotation target type {tag:#04x}", offset) from None
        target_info = self._read_target_info(target_type)
        target_path = self._read_type_path()
        type_idx = self.r.read_u2()
        return TypeAnnotation(target_type, target_info, target_path, type_idx,
                              self._read_element_value_pairs())

    def _read_target_info(self, target_type: TargetType) -> TargetInfo:
        if target_type in (TargetType.TYPE_PARAMETER, TargetType.METHOD_TYPE_PARAMETER):
            return TypeParameterTarget(self.r.read_u1())

        elif target_type == TargetType.SUPERTYPE:
            return SupertypeTarget(self.r.read_u2())

        elif target_type in (TargetType.TYPE_PARAMETER_BOUND,
                             TargetType.METHOD_TYPE_PARAMETER_BOUND):
            param_idx = self.r.read_u1()
            return TypeParameterBoundTarget(param_idx, self.r.read_u1())

        elif target_type in (TargetType.FIELD, TargetType.METHOD_RETURN,
                             TargetType.METHOD_RECEIVER):
            return EmptyTarget()

        elif target_type == TargetType.METHOD_FORMAL_PARAMETER:
            return FormalParameterTarget(self.r.read_u1())

        elif target_type == TargetType.THROWS:
            return ThrowsTarget(self.r.read_u2())

        elif target_type in (TargetType.LOCAL_VARIABLE, TargetType.RESOURCE_VARIABLE):
            count = self.r.read_u2()
            table = []
            for _ in range(count):
                start_pc = self.r.read_u2()
                var_length = self.r.read_u2()
                table.append(LocalVarTargetEntry(start_pc, var_length, self.r.read_u2()))
            return LocalVarTarget(tuple(table))

        elif target_type == TargetType.EXCEPTION_PARAMETER:
            return CatchTarget(self.r.read_u2())

        elif target_type in (TargetType.INSTANCEOF, TargetType.NEW,
                             TargetType.CONSTRUCTOR_REFERENCE, TargetType.METHOD_REFERENCE):
            return OffsetTarget(self.r.read_u2())

        # cast and the four type-argument targets
        code_offset = self.r.read_u2()
        return TypeArgumentTarget(code_offset, self.r.read_u1())

    def _read_type_path(self) -> TypePath:
        length = self.r.read_u1()
        path = []
        for _ in range(length):
            offset = self.r.position
            kind = self.r.read_u1()
            try:
                kind = TypePathKind(kind)
            except ValueError:
                raise ClassFormatError(f"unknown type path kind {kind}", offset) from None
            path.append(TypePathEntry(kind, self.r.read_u1()))
        return TypePath(tuple(path))
