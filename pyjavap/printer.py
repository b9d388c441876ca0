"""
javap-style text listing of a decoded class.
"""

from typing import Optional

from .classfile import AccessFlags, ReferenceKind
from .descriptors import DescriptorParser, default_parser
from .errors import DescriptorError
from .instructions import (
    Instruction, BranchInstruction, ConstantPoolInstruction, IncrementInstruction,
    InvokeInterfaceInstruction, LocalVariableInstruction, LookupSwitchInstruction,
    MultiANewArrayInstruction, NewArrayInstruction, PushInstruction, TableSwitchInstruction,
)
from .model import (
    ClassFile, CodeAttribute, ConstantPoolInfo, ConstantUtf8, ConstantInteger,
    ConstantFloat, ConstantLong, ConstantDouble, ConstantClass, ConstantString,
    ConstantFieldref, ConstantMethodref, ConstantInterfaceMethodref, ConstantNameAndType,
    ConstantMethodHandle, ConstantMethodType, ConstantInvokeDynamic, ExceptionsAttribute,
    Field, LineNumberTableAttribute, Method, SignatureAttribute,
)


CLASS_FLAGS = (
    (AccessFlags.PUBLIC, "ACC_PUBLIC"),
    (AccessFlags.FINAL, "ACC_FINAL"),
    (AccessFlags.SUPER, "ACC_SUPER"),
    (AccessFlags.INTERFACE, "ACC_INTERFACE"),
    (AccessFlags.ABSTRACT, "ACC_ABSTRACT"),
    (AccessFlags.SYNTHETIC, "ACC_SYNTHETIC"),
    (AccessFlags.ANNOTATION, "ACC_ANNOTATION"),
    (AccessFlags.ENUM, "ACC_ENUM"),
    (AccessFlags.MODULE, "ACC_MODULE"),
)

FIELD_FLAGS = (
    (AccessFlags.PUBLIC, "ACC_PUBLIC"),
    (AccessFlags.PRIVATE, "ACC_PRIVATE"),
    (AccessFlags.PROTECTED, "ACC_PROTECTED"),
    (AccessFlags.STATIC, "ACC_STATIC"),
    (AccessFlags.FINAL, "ACC_FINAL"),
    (AccessFlags.VOLATILE, "ACC_VOLATILE"),
    (AccessFlags.TRANSIENT, "ACC_TRANSIENT"),
    (AccessFlags.SYNTHETIC, "ACC_SYNTHETIC"),
    (AccessFlags.ENUM, "ACC_ENUM"),
)

METHOD_FLAGS = (
    (AccessFlags.PUBLIC, "ACC_PUBLIC"),
    (AccessFlags.PRIVATE, "ACC_PRIVATE"),
    (AccessFlags.PROTECTED, "ACC_PROTECTED"),
    (AccessFlags.STATIC, "ACC_STATIC"),
    (AccessFlags.FINAL, "ACC_FINAL"),
    (AccessFlags.SYNCHRONIZED, "ACC_SYNCHRONIZED"),
    (AccessFlags.BRIDGE, "ACC_BRIDGE"),
    (AccessFlags.VARARGS, "ACC_VARARGS"),
    (AccessFlags.NATIVE, "ACC_NATIVE"),
    (AccessFlags.ABSTRACT, "ACC_ABSTRACT"),
    (AccessFlags.STRICT, "ACC_STRICT"),
    (AccessFlags.SYNTHETIC, "ACC_SYNTHETIC"),
)

# Source keywords, in javap order, for each member kind.
CLASS_KEYWORDS = ((AccessFlags.PUBLIC, "public"), (AccessFlags.FINAL, "final"))

FIELD_KEYWORDS = (
    (AccessFlags.PUBLIC, "public"), (AccessFlags.PRIVATE, "private"),
    (AccessFlags.PROTECTED, "protected"), (AccessFlags.STATIC, "static"),
    (AccessFlags.FINAL, "final"), (AccessFlags.VOLATILE, "volatile"),
    (AccessFlags.TRANSIENT, "transient"),
)

METHOD_KEYWORDS = (
    (AccessFlags.PUBLIC, "public"), (AccessFlags.PRIVATE, "private"),
    (AccessFlags.PROTECTED, "protected"), (AccessFlags.STATIC, "static"),
    (AccessFlags.FINAL, "final"), (AccessFlags.SYNCHRONIZED, "synchronized"),
    (AccessFlags.NATIVE, "native"), (AccessFlags.ABSTRACT, "abstract"),
    (AccessFlags.STRICT, "strictfp"),
)


def flag_names(flags: int, table) -> list[str]:
    return [name for mask, name in table if flags & mask]


def reference_kind_name(kind: int) -> str:
    """javap name of a method handle kind, e.g. 6 -> "REF_invokeStatic"."""
    try:
        first, *rest = ReferenceKind(kind).name.lower().split("_")
    except ValueError:
        return str(kind)
    return "REF_" + first + "".join(part.capitalize() for part in rest)


def _keywords(flags: int, table) -> str:
    words = [word for mask, word in table if flags & mask]
    return " ".join(words) + " " if words else ""


class ClassPrinter:
    """Renders a ClassFile as text, similar to `javap -v`."""

    def __init__(self, cls: ClassFile, show_code: bool = True, show_private: bool = True,
                 descriptors: Optional[DescriptorParser] = None):
        self.cls = cls
        self.pool = cls.constant_pool
        self.show_code = show_code
        self.show_private = show_private
        self.descriptors = descriptors or default_parser()
        self.lines: list[str] = []

    def _java_name(self, internal_name: str) -> str:
        return internal_name.replace("/", ".")

    def _field_type(self, descriptor: str) -> str:
        try:
            return self.descriptors.parse_field(descriptor).java_name
        except DescriptorError:
            return descriptor

    def _method_types(self, descriptor: str) -> tuple[str, str]:
        """Return (parameter list, return type) as Java source text."""
        try:
            desc = self.descriptors.parse_method(descriptor)
        except DescriptorError:
            return descriptor, ""
        params = ", ".join(t.java_name for t in desc.parameter_types)
        return params, desc.return_type.java_name

    # ==================== CONSTANTS ====================

    def describe_constant(self, index: int) -> str:
        """One-line description of a constant pool entry, as in javap comments."""
        entry = self.pool[index]
        return self._describe(entry)

    def _member_ref(self, entry) -> str:
        owner = self.pool.get_class_name(entry.class_index)
        name, desc = self.pool.get_name_and_type(entry.name_and_type_index)
        if owner == self.cls.name:
            return f"{name}:{desc}"
        return f"{owner}.{name}:{desc}"

    def _describe(self, entry: ConstantPoolInfo) -> str:
        if isinstance(entry, ConstantUtf8):
            return entry.value
        if isinstance(entry, ConstantInteger):
            return f"int {entry.value}"
        if isinstance(entry, ConstantFloat):
            return f"float {entry.value}f"
        if isinstance(entry, ConstantLong):
            return f"long {entry.value}l"
        if isinstance(entry, ConstantDouble):
            return f"double {entry.value}d"
        if isinstance(entry, ConstantClass):
            return f"class {self.pool.get_utf8(entry.name_index)}"
        if isinstance(entry, ConstantString):
            return f"String {self.pool.get_utf8(entry.string_index)}"
        if isinstance(entry, ConstantFieldref):
            return f"Field {self._member_ref(entry)}"
        if isinstance(entry, ConstantMethodref):
            return f"Method {self._member_ref(entry)}"
        if isinstance(entry, ConstantInterfaceMethodref):
            return f"InterfaceMethod {self._member_ref(entry)}"
        if isinstance(entry, ConstantNameAndType):
            name = self.pool.get_utf8(entry.name_index)
            desc = self.pool.get_utf8(entry.descriptor_index)
            return f"NameAndType {name}:{desc}"
        if isinstance(entry, ConstantMethodHandle):
            kind = reference_kind_name(entry.reference_kind)
            return f"MethodHandle {kind}:{self.describe_constant(entry.reference_index)}"
        if isinstance(entry, ConstantMethodType):
            return f"MethodType {self.pool.get_utf8(entry.descriptor_index)}"
        if isinstance(entry, ConstantInvokeDynamic):
            name, desc = self.pool.get_name_and_type(entry.name_and_type_index)
            return f"InvokeDynamic #{entry.bootstrap_method_attr_index}:{name}:{desc}"
        return type(entry).__name__

    def _pool_tag_name(self, entry: ConstantPoolInfo) -> str:
        return type(entry).__name__[len("Constant"):]

    # ==================== OUTPUT ====================

    def render(self) -> str:
        """Return the complete listing."""
        self.lines = []
        self._header()
        self._constant_pool()
        self.lines.append("{")
        for fld in self.cls.fields:
            if fld.is_private and not self.show_private:
                continue
            self._field(fld)
        for method in self.cls.methods:
            if method.is_private and not self.show_private:
                continue
            self._method(method)
        self.lines.append("}")
        source = self.cls.source_file
        if source is not None:
            self.lines.append(f'SourceFile: "{source}"')
        return "\n".join(self.lines) + "\n"

    def _header(self):
        cls = self.cls
        if cls.is_annotation:
            kind = "@interface"
        elif cls.is_interface:
            kind = "interface"
        elif cls.is_enum:
            kind = "enum"
        else:
            kind = "class"
        flags = cls.access_flags
        keywords = _keywords(flags, CLASS_KEYWORDS)
        if cls.is_abstract and not cls.is_interface:
            keywords += "abstract "
        line = f"{keywords}{kind} {self._java_name(cls.name or '')}"
        if cls.super_name is not None and not cls.is_interface:
            line += f" extends {self._java_name(cls.super_name)}"
        interfaces = [self._java_name(n) for n in cls.interface_names]
        if interfaces:
            line += (" extends " if cls.is_interface else " implements ") + ", ".join(interfaces)
        self.lines.append(line)
        self.lines.append(f"  minor version: {cls.minor_version}")
        self.lines.append(f"  major version: {cls.major_version} (Java {cls.release})")
        self.lines.append(f"  flags: ({flags:#06x}) {', '.join(flag_names(flags, CLASS_FLAGS))}")
        self.lines.append(f"  this_class: #{cls.this_class}")
        self.lines.append(f"  super_class: #{cls.super_class}")
        self.lines.append(
            f"  interfaces: {len(cls.interfaces)}, fields: {len(cls.fields)}, "
            f"methods: {len(cls.methods)}, attributes: {len(cls.attributes)}")

    def _constant_pool(self):
        self.lines.append("Constant pool:")
        width = len(str(len(self.pool)))
        for index, entry in self.pool.items():
            label = f"#{index}".rjust(width + 1)
            self.lines.append(f"  {label} = {self._pool_tag_name(entry):<18} {self._describe(entry)}")

    def _field(self, fld: Field):
        name = fld.get_name(self.pool)
        desc = fld.get_descriptor(self.pool)
        keywords = _keywords(fld.access_flags, FIELD_KEYWORDS)
        self.lines.append(f"  {keywords}{self._field_type(desc)} {name};")
        self.lines.append(f"    descriptor: {desc}")
        self.lines.append(
            f"    flags: ({fld.access_flags:#06x}) "
            f"{', '.join(flag_names(fld.access_flags, FIELD_FLAGS))}")
        signature = fld.get_attribute(SignatureAttribute)
        if signature is not None:
            self.lines.append(f"    Signature: {self.pool.get_utf8(signature.signature_index)}")
        self.lines.append("")

    def _method(self, method: Method):
        name = method.get_name(self.pool)
        desc = method.get_descriptor(self.pool)
        params, ret = self._method_types(desc)
        keywords = _keywords(method.access_flags, METHOD_KEYWORDS)
        if name == "<clinit>":
            header = "static {}"
        elif name == "<init>":
            header = f"{keywords}{self._java_name(self.cls.name or '')}({params})"
        else:
            header = f"{keywords}{ret} {name}({params})"
        exceptions = method.get_attribute(ExceptionsAttribute)
        if exceptions is not None and exceptions.exception_index_table:
            names = [self._java_name(self.pool.get_class_name(i))
                     for i in exceptions.exception_index_table]
            header += " throws " + ", ".join(names)
        self.lines.append(f"  {header};")
        self.lines.append(f"    descriptor: {desc}")
        self.lines.append(
            f"    flags: ({method.access_flags:#06x}) "
            f"{', '.join(flag_names(method.access_flags, METHOD_FLAGS))}")
        code = method.code
        if code is not None and self.show_code:
            self._code(code)
        self.lines.append("")

    # ==================== CODE ====================

    def _code(self, code: CodeAttribute):
        self.lines.append("    Code:")
        self.lines.append(f"      stack={code.max_stack}, locals={code.max_locals}")
        for pos, insn in code.instructions:
            self.lines.extend(self.format_instruction(pos, insn))
        if code.exception_table:
            self.lines.append("      Exception table:")
            self.lines.append("         from    to  target type")
            for entry in code.exception_table:
                catch = "any"
                if entry.catch_type:
                    catch = f"Class {self.pool.get_class_name(entry.catch_type)}"
                self.lines.append(
                    f"        {entry.start_pc:>5} {entry.end_pc:>5} {entry.handler_pc:>5}   {catch}")
        lines = code.get_attribute(LineNumberTableAttribute)
        if lines is not None:
            self.lines.append("      LineNumberTable:")
            for entry in lines.line_number_table:
                self.lines.append(f"        line {entry.line_number}: {entry.start_pc}")

    def format_instruction(self, pos: int, insn: Instruction) -> list[str]:
        """Render one instruction as one or more listing lines."""
        prefix = f"{pos:>10}: {insn.mnemonic:<13}"

        if isinstance(insn, TableSwitchInstruction):
            out = [f"{pos:>10}: {insn.mnemonic}   {{ // {insn.low} to {insn.high}"]
            for value, target in insn.targets(pos).items():
                out.append(f"{value:>24}: {target}")
            out.append(f"{'default':>24}: {pos + insn.default}")
            out.append(" " * 12 + "}")
            return out

        if isinstance(insn, LookupSwitchInstruction):
            out = [f"{pos:>10}: {insn.mnemonic}  {{ // {len(insn.pairs)}"]
            for value, target in insn.targets(pos).items():
                out.append(f"{value:>24}: {target}")
            out.append(f"{'default':>24}: {pos + insn.default}")
            out.append(" " * 12 + "}")
            return out

        if isinstance(insn, BranchInstruction):
            return [f"{prefix} {insn.target(pos)}"]

        if isinstance(insn, (ConstantPoolInstruction, MultiANewArrayInstruction,
                             InvokeInterfaceInstruction)):
            operand = f"#{insn.index}"
            if isinstance(insn, MultiANewArrayInstruction):
                operand += f",  {insn.dimensions}"
            elif isinstance(insn, InvokeInterfaceInstruction):
                operand += f",  {insn.count}"
            return [f"{prefix} {operand:<18} // {self.describe_constant(insn.index)}"]

        if isinstance(insn, IncrementInstruction):
            return [f"{prefix} {insn.index}, {insn.const}"]

        if isinstance(insn, (LocalVariableInstruction, PushInstruction)):
            return [f"{prefix} {insn.operands()[0]}"]

        if isinstance(insn, NewArrayInstruction):
            return [f"{prefix} {insn.atype.name.lower()}"]

        return [prefix.rstrip()]


def render_class(cls: ClassFile, show_code: bool = True, show_private: bool = True) -> str:
    """Render a class as a javap-style listing."""
    return ClassPrinter(cls, show_code=show_code, show_private=show_private).render()
