"""
Binding validation (validate.py).

Two gates per binding, in this order:
1) key: the token must be a constant of the enum type the table is keyed by
   (unknown key -> warning, entry dropped);
2) value: the target must fit the table's value type
   (mismatch -> GenerationError, nothing is written).
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from registry import Binding, GenerationError, ScanContext, TableDecl

WILDCARD_SPELLINGS = ("interface{}", "any")


@dataclass(frozen=True)
class Concrete:
    text: str


@dataclass(frozen=True)
class Wildcard:
    pointer: bool = False


TypeDescriptor = Union[Concrete, Wildcard]


def describe_type(text: str) -> TypeDescriptor:
    compact = text.replace(" ", "")
    if compact in WILDCARD_SPELLINGS:
        return Wildcard()
    if compact.startswith("*") and compact[1:] in WILDCARD_SPELLINGS:
        return Wildcard(pointer=True)
    return Concrete(text)


def accepts(table_value: TypeDescriptor, signature: Optional[str]) -> bool:
    """Wildcard takes anything; a concrete table value only an identical signature."""
    if isinstance(table_value, Wildcard):
        return True
    return signature is not None and signature == table_value.text


@dataclass
class ValidatedTables:
    router: List[Tuple[str, str]] = field(default_factory=list)
    mapping: List[Tuple[str, str]] = field(default_factory=list)


def key_is_valid(context: ScanContext, table: TableDecl, key: str) -> bool:
    enum = context.enum_types.get(table.key_type)
    if enum is None or not enum.underlying:
        return False
    return key in enum.members


def _check_key(context: ScanContext, table: TableDecl, binding: Binding) -> bool:
    if key_is_valid(context, table, binding.key):
        return True
    context.warn(
        f"constant {binding.key} is not declared or is not of the map key type {table.key_type}; entry skipped",
        binding.directive.path,
        binding.directive.line,
    )
    return False


def _value_mismatch(table: TableDecl, binding: Binding, what: str) -> GenerationError:
    decl = binding.declaration
    return GenerationError(
        f"{decl.path}:{decl.line}: {what} does not match value type {table.value_type} "
        f"of map {table.name} declared at {table.path}:{table.line}; generation aborted"
    )


def _validate_router(context: ScanContext, out: ValidatedTables) -> None:
    table = context.router_table
    if table is None:
        first = context.router_bindings[0].directive
        context.warn("#RouterMap is not defined, #Router targets are not generated", first.path, first.line)
        return
    value = describe_type(table.value_type)
    for binding in context.router_bindings:
        if not _check_key(context, table, binding):
            continue
        decl = binding.declaration
        if not accepts(value, decl.signature):
            raise _value_mismatch(table, binding, f"function {decl.name} of type {decl.signature}")
        out.router.append((binding.key, decl.name))


def _validate_mapping(context: ScanContext, out: ValidatedTables) -> None:
    table = context.mapping_table
    if table is None:
        first = context.mapping_bindings[0].directive
        context.warn("#MappingMap is not defined, #Mapping targets are not generated", first.path, first.line)
        return
    value = describe_type(table.value_type)
    for binding in context.mapping_bindings:
        if not _check_key(context, table, binding):
            continue
        decl = binding.declaration
        # struct values have no signature; only a wildcard table can hold them
        if not isinstance(value, Wildcard):
            raise _value_mismatch(table, binding, f"struct {decl.name}")
        out.mapping.append((binding.key, decl.name))


def validate(context: ScanContext) -> ValidatedTables:
    out = ValidatedTables()
    if context.router_bindings:
        _validate_router(context, out)
    if context.mapping_bindings:
        _validate_mapping(context, out)
    return out
