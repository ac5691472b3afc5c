"""Common imports, logging and error classes across the binfields modules."""

from typing import Any, override, Self, ClassVar
from collections.abc import Iterable, Mapping, Callable
from dataclasses import dataclass, field
from textwrap import dedent
from config import *
from util import pformat

import logging
logger = logging.getLogger('binfields')
logging.basicConfig(format=LOG_FORMAT)

if DEBUG:
    logger.setLevel(logging.DEBUG)
else:
    logger.setLevel(logging.WARNING)

class CodecError(ValueError):
    pass

@dataclass
class DecodeError(CodecError):
    source: bytes
    description: str
    field: str|None = None

    @override
    def __str__(self) -> str:
        where = '' if self.field is None else f' in field {self.field!r}'
        return dedent(f"""\
            Error decoding {pformat(self.source, byteslen=PFORMAT_BYTESLEN)}{where}
            {self.description}""")

    def above(self, source: bytes, outer: str|None = None) -> Self:
        """The same error seen from an enclosing container named outer."""
        if outer is None:
            path = self.field
        elif self.field is None:
            path = outer
        else:
            path = f'{outer}.{self.field}'
        return type(self)(source, self.description, path)

@dataclass
class UnknownSymbolError(CodecError):
    symbol: Any
    table: str

    @override
    def __str__(self) -> str:
        return f"unknown {self.table} {self.symbol!r}"

class UnsupportedConversionError(CodecError, TypeError):
    pass
