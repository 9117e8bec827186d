"""
parser.py
Turns one delimited line into a tuple of typed values aligned to the schema.

A RowParser is built once per worker from the shared IngestionConfig and owned
by that worker only.
"""
import csv
import functools
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..exceptions import ParseFailure
from ..setup.config import BoolStyle, IngestionConfig
from .schema import Column, TableSchema


def _empty_is_null(convert):
    """Blank fields of non-text columns load as NULL."""
    @functools.wraps(convert)
    def wrapper(self, raw: str):
        if not raw.strip():
            return None
        return convert(self, raw)
    return wrapper


class RowParser:
    """Stateful line parser for one table declaration and one set of format options."""

    def __init__(
        self,
        schema: TableSchema,
        delimiter: str = ",",
        null_string: Optional[str] = None,
        delimiter_in_quotes: bool = False,
        date_format: Optional[str] = None,
        bool_style: BoolStyle = BoolStyle.TRUE_FALSE,
        decimal_delimiter: str = ".",
    ):
        self.schema = schema
        self.delimiter = delimiter
        self.null_string = null_string
        self.delimiter_in_quotes = delimiter_in_quotes
        self.date_format = date_format
        self.bool_style = bool_style
        self.decimal_delimiter = decimal_delimiter
        self._true_token, self._false_token = bool_style.tokens
        self._converters: List[Callable[[str], Any]] = [self._converter_for(c) for c in schema.columns]

    @classmethod
    def from_config(cls, schema: TableSchema, config: IngestionConfig) -> "RowParser":
        return cls(
            schema,
            delimiter=config.delimiter,
            null_string=config.null_string,
            delimiter_in_quotes=config.delimiter_in_quotes,
            date_format=config.date_format,
            bool_style=config.bool_style,
            decimal_delimiter=config.decimal_delimiter,
        )

    def split(self, line: str) -> List[str]:
        if self.delimiter_in_quotes:
            rows = list(csv.reader([line], delimiter=self.delimiter, quotechar='"', strict=True))
            return rows[0] if rows else []
        return line.split(self.delimiter)

    def parse(self, line: str) -> Tuple[Any, ...]:
        """
        Parse one line.

        Raises:
            ParseFailure: Wrong field count or a field that does not convert to
                its column type.
        """
        try:
            fields = self.split(line)
        except csv.Error as e:
            raise ParseFailure(f"Malformed quoting: {e}") from e

        if len(fields) != len(self._converters):
            raise ParseFailure(f"Expected {len(self._converters)} fields, found {len(fields)}")

        values = []
        for column, convert, raw in zip(self.schema.columns, self._converters, fields):
            if self.null_string is not None and raw == self.null_string:
                values.append(None)
                continue
            try:
                values.append(convert(raw))
            except (ValueError, ArithmeticError) as e:
                raise ParseFailure(f"Column {column.name} ({column.declared_type}): {e}", column.name) from e
        return tuple(values)

    def _converter_for(self, column: Column) -> Callable[[str], Any]:
        converters: Dict[str, Callable[[str], Any]] = {
            "integer": self._parse_int,
            "float": self._parse_float,
            "decimal": self._parse_decimal,
            "text": lambda raw: raw,
            "boolean": self._parse_bool,
            "date": self._parse_date,
            "timestamp": self._parse_timestamp,
            "uuid": self._parse_uuid,
        }
        return converters[column.kind]

    def _normalize_number(self, raw: str) -> str:
        text = raw.strip()
        if self.decimal_delimiter == ",":
            # 1.234,5 -> 1234.5
            text = text.replace(".", "").replace(",", ".")
        return text

    @_empty_is_null
    def _parse_int(self, raw: str) -> int:
        return int(self._normalize_number(raw))

    @_empty_is_null
    def _parse_float(self, raw: str) -> float:
        return float(self._normalize_number(raw))

    @_empty_is_null
    def _parse_decimal(self, raw: str) -> Decimal:
        try:
            return Decimal(self._normalize_number(raw))
        except InvalidOperation as e:
            raise ValueError(f"invalid decimal {raw!r}") from e

    @_empty_is_null
    def _parse_bool(self, raw: str) -> bool:
        token = raw.strip().lower()
        if token == self._true_token:
            return True
        if token == self._false_token:
            return False
        raise ValueError(f"invalid boolean {raw!r} for style {self.bool_style.value}")

    @_empty_is_null
    def _parse_date(self, raw: str) -> date:
        if self.date_format:
            return datetime.strptime(raw.strip(), self.date_format).date()
        return date.fromisoformat(raw.strip())

    @_empty_is_null
    def _parse_timestamp(self, raw: str) -> datetime:
        if self.date_format:
            return datetime.strptime(raw.strip(), self.date_format)
        return datetime.fromisoformat(raw.strip())

    @_empty_is_null
    def _parse_uuid(self, raw: str) -> uuid.UUID:
        return uuid.UUID(raw.strip())
