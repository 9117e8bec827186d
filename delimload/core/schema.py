"""
Table declarations.

A declaration reads `[schema.]table(col type, col type, ...)` and yields the
column order and types used by the row parser plus the INSERT statement every
worker binds its rows to.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..exceptions import SchemaError

IDENTIFIER_REGEX = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
DECLARATION_REGEX = re.compile(r'^\s*(?P<name>[^()\s]+)\s*\((?P<columns>.*)\)\s*;?\s*$', re.DOTALL)

# Declared type -> canonical column kind
TYPE_ALIASES: Dict[str, str] = {
    "int": "integer",
    "int4": "integer",
    "integer": "integer",
    "smallint": "integer",
    "int2": "integer",
    "bigint": "integer",
    "int8": "integer",
    "float": "float",
    "float4": "float",
    "float8": "float",
    "real": "float",
    "double": "float",
    "double precision": "float",
    "decimal": "decimal",
    "numeric": "decimal",
    "text": "text",
    "varchar": "text",
    "character varying": "text",
    "char": "text",
    "boolean": "boolean",
    "bool": "boolean",
    "date": "date",
    "timestamp": "timestamp",
    "timestamptz": "timestamp",
    "uuid": "uuid",
}


def quote_ident(ident: str) -> str:
    if not IDENTIFIER_REGEX.match(ident):
        raise SchemaError(f"Invalid identifier: {ident!r}")
    return f'"{ident}"'


@dataclass(frozen=True)
class Column:
    name: str
    declared_type: str
    kind: str


@dataclass(frozen=True)
class TableSchema:
    """Parsed table declaration; immutable and safe to share across workers."""

    table: str
    columns: Tuple[Column, ...]
    namespace: Optional[str] = None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def qualified_name(self) -> str:
        if self.namespace:
            return f"{quote_ident(self.namespace)}.{quote_ident(self.table)}"
        return quote_ident(self.table)

    def insert_statement(self) -> str:
        collist = ", ".join(quote_ident(c.name) for c in self.columns)
        placeholders = ", ".join(f"${i}" for i in range(1, len(self.columns) + 1))
        return f"INSERT INTO {self.qualified_name} ({collist}) VALUES ({placeholders})"


def _normalize_type(declared: str) -> str:
    # varchar(20), numeric(10,2) -> varchar, numeric
    base = re.sub(r'\(.*\)$', '', declared.strip().lower()).strip()
    return re.sub(r'\s+', ' ', base)


def _split_columns(body: str) -> List[str]:
    """Split on commas that are not inside a type's parentheses."""
    parts, depth, current = [], 0, []
    for ch in body:
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        if ch == ',' and depth == 0:
            parts.append(''.join(current))
            current = []
        else:
            current.append(ch)
    parts.append(''.join(current))
    return [p.strip() for p in parts]


def parse_schema(text: str) -> TableSchema:
    """
    Parse a table declaration such as `public.orders(id bigint, note text)`.

    Raises:
        SchemaError: On malformed declarations, bad identifiers, unknown types
            or duplicate columns.
    """
    match = DECLARATION_REGEX.match(text or "")
    if not match:
        raise SchemaError(f"Schema must look like 'table(col type, ...)': {text!r}")

    name = match.group("name")
    namespace, _, table = name.rpartition(".")
    namespace = namespace or None
    if namespace is not None:
        quote_ident(namespace)
    quote_ident(table)

    columns = []
    seen = set()
    for column_def in _split_columns(match.group("columns")):
        if not column_def:
            raise SchemaError(f"Empty column definition in schema: {text!r}")
        col_name, *rest = re.split(r"\s+", column_def, maxsplit=1)
        declared = rest[0] if rest else ""
        if not declared.strip():
            raise SchemaError(f"Column {col_name!r} has no type")
        quote_ident(col_name)
        kind = TYPE_ALIASES.get(_normalize_type(declared))
        if kind is None:
            raise SchemaError(f"Unsupported type {declared.strip()!r} for column {col_name!r}")
        if col_name.lower() in seen:
            raise SchemaError(f"Duplicate column {col_name!r}")
        seen.add(col_name.lower())
        columns.append(Column(col_name, declared.strip(), kind))

    return TableSchema(table=table, columns=tuple(columns), namespace=namespace)
