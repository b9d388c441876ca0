"""
Field and method descriptor parser using Lark.
"""

from dataclasses import dataclass
from pathlib import Path

from lark import Lark, Transformer, LarkError

from .errors import DescriptorError
from .model import Node


GRAMMAR_FILE = Path(__file__).parent / "descriptor.lark"

BASE_TYPE_NAMES = {
    "B": "byte", "C": "char", "D": "double", "F": "float",
    "I": "int", "J": "long", "S": "short", "Z": "boolean",
}


class FieldType(Node):
    """Base class for parsed descriptor types."""

    @property
    def java_name(self) -> str:
        raise NotImplementedError

    @property
    def slots(self) -> int:
        """Local variable / operand stack slots taken by a value of this type."""
        return 1


@dataclass(frozen=True)
class BaseType(FieldType):
    """Primitive type (B, C, D, F, I, J, S, Z)."""
    descriptor: str

    @property
    def java_name(self) -> str:
        return BASE_TYPE_NAMES[self.descriptor]

    @property
    def slots(self) -> int:
        return 2 if self.descriptor in "DJ" else 1


@dataclass(frozen=True)
class ObjectType(FieldType):
    """Class or interface type, by internal name (java/lang/String)."""
    class_name: str

    @property
    def java_name(self) -> str:
        return self.class_name.replace("/", ".")


@dataclass(frozen=True)
class ArrayOfType(FieldType):
    component: FieldType

    @property
    def dimensions(self) -> int:
        if isinstance(self.component, ArrayOfType):
            return self.component.dimensions + 1
        return 1

    @property
    def java_name(self) -> str:
        return f"{self.component.java_name}[]"


@dataclass(frozen=True)
class VoidType(FieldType):
    """The V return descriptor."""

    @property
    def java_name(self) -> str:
        return "void"

    @property
    def slots(self) -> int:
        return 0


@dataclass(frozen=True)
class MethodDescriptor(Node):
    parameter_types: tuple[FieldType, ...]
    return_type: FieldType

    @property
    def argument_slots(self) -> int:
        """Slots used by the arguments, excluding the receiver."""
        return sum(t.slots for t in self.parameter_types)


class DescriptorTransformer(Transformer):
    """Transforms the Lark parse tree into descriptor values."""

    def base_type(self, items):
        return BaseType(str(items[0]))

    def object_type(self, items):
        return ObjectType(str(items[0])[1:-1])

    def array_type(self, items):
        return ArrayOfType(items[0])

    def void_type(self, items):
        return VoidType()

    def field_descriptor(self, items):
        return items[0]

    def method_descriptor(self, items):
        return MethodDescriptor(tuple(items[:-1]), items[-1])


class DescriptorParser:
    """Parses field and method descriptors."""

    def __init__(self):
        with open(GRAMMAR_FILE, "r") as f:
            grammar = f.read()

        self._parser = Lark(
            grammar,
            parser="lalr",
            start=["field_descriptor", "method_descriptor"],
        )
        self._transformer = DescriptorTransformer()

    def _parse(self, text: str, start: str):
        try:
            tree = self._parser.parse(text, start=start)
        except LarkError as e:
            raise DescriptorError(f"invalid descriptor {text!r}: {e}") from e
        return self._transformer.transform(tree)

    def parse_field(self, descriptor: str) -> FieldType:
        """Parse a field descriptor such as '[Ljava/lang/String;'."""
        return self._parse(descriptor, "field_descriptor")

    def parse_method(self, descriptor: str) -> MethodDescriptor:
        """Parse a method descriptor such as '(IJ)V'."""
        return self._parse(descriptor, "method_descriptor")


_default_parser = None


def default_parser() -> DescriptorParser:
    """Return a DescriptorParser shared by callers that do not supply one."""
    global _default_parser
    if _default_parser is None:
        _default_parser = DescriptorParser()
    return _default_parser
