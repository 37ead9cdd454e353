"""Variable types and the variable header table."""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Union

from .errors import MalformedHeader, UnknownVariable, UnsupportedType

logger = logging.getLogger(__name__)


class IbtType(IntEnum):
    """Physical type codes that can be decoded.

    The file format also defines char (0), bool (1) and bitfield (3);
    lookup rejects those.
    """
    INT32 = 2
    FLOAT32 = 4
    FLOAT64 = 5


Value = Union[int, float]


@dataclass(frozen=True)
class TypeDescriptor:
    type: IbtType
    size: int
    fmt: str      # struct format, little-endian
    dtype: str    # numpy dtype string

    def decode(self, raw: bytes) -> Value:
        """Decode exactly ``size`` bytes from the start of ``raw``."""
        return struct.unpack_from(self.fmt, raw, 0)[0]


class TypeRegistry:
    """Read-only mapping of type code -> TypeDescriptor."""

    def __init__(self, descriptors: Iterable[TypeDescriptor]):
        self._by_code: dict[int, TypeDescriptor] = {int(d.type): d for d in descriptors}

    def lookup(self, code: int) -> TypeDescriptor:
        try:
            return self._by_code[code]
        except KeyError:
            raise UnsupportedType(code) from None

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    def codes(self) -> list[int]:
        return sorted(self._by_code)


DEFAULT_REGISTRY = TypeRegistry([
    TypeDescriptor(IbtType.INT32, 4, "<i", "<i4"),
    TypeDescriptor(IbtType.FLOAT32, 4, "<f", "<f4"),
    TypeDescriptor(IbtType.FLOAT64, 8, "<d", "<f8"),
])


def type_name(code: int) -> str:
    """Human-readable name for a type code, e.g. "FLOAT32" or "type3"."""
    try:
        return IbtType(code).name
    except ValueError:
        return f"type{code}"


# ---------------------------------------------------------------------------
# Variable headers
# ---------------------------------------------------------------------------

NAME_MAX = 32
DESC_MAX = 64
UNIT_MAX = 32

# type, offset, count, countAsTime, pad[3], name, desc, unit
VAR_HEADER_FMT = f"<3ib3x{NAME_MAX}s{DESC_MAX}s{UNIT_MAX}s"
VAR_HEADER_SIZE = struct.calcsize(VAR_HEADER_FMT)  # 144


@dataclass(frozen=True)
class VarHeader:
    type: int
    offset: int
    count: int
    count_as_time: bool
    name: str
    description: str = ""
    unit: str = ""

    @property
    def key(self) -> str:
        return self.name.lower()

    def window(self, size: int, index: int, buf_len: int) -> tuple[int, int]:
        """Byte range [start, end) of element ``index`` within a frame.

        ``size`` is the element width.  The whole descriptor
        (``count`` elements) must fit in a ``buf_len``-byte frame.
        """
        count = max(self.count, 1)
        if not 0 <= index < count:
            raise IndexError(f"{self.name}[{index}] out of range (count={self.count})")
        if self.offset < 0 or self.offset + size * count > buf_len:
            raise MalformedHeader(
                f"variable {self.name!r} [{self.offset}, {self.offset + size * count}) "
                f"does not fit a {buf_len}-byte frame")
        start = self.offset + index * size
        return start, start + size


def _unpack_str(raw: bytes) -> str:
    """Decode a null-padded fixed-size text field."""
    return raw.split(b"\x00", 1)[0].decode("latin-1")


def unpack_var_header(data, offset: int) -> VarHeader:
    vtype, voffset, count, count_as_time, name_raw, desc_raw, unit_raw = \
        struct.unpack_from(VAR_HEADER_FMT, data, offset)
    return VarHeader(vtype, voffset, count, bool(count_as_time),
                     _unpack_str(name_raw), _unpack_str(desc_raw),
                     _unpack_str(unit_raw))


@dataclass
class VarTable(Mapping):
    """Case-insensitive name -> VarHeader lookup.

    ``records`` keeps every header in file order (including the skipped
    first one) for listing purposes.
    """
    by_key: dict[str, VarHeader] = field(default_factory=dict)
    records: list[VarHeader] = field(default_factory=list)

    def __getitem__(self, name: str) -> VarHeader:
        try:
            return self.by_key[name.lower()]
        except KeyError:
            raise UnknownVariable(name) from None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self.by_key

    def __iter__(self) -> Iterator[str]:
        return iter(self.by_key)

    def __len__(self) -> int:
        return len(self.by_key)


def build_var_table(data, count: int, offset: int) -> VarTable:
    """Read ``count`` variable headers starting at ``offset``.

    Record 0 is dropped from the lookup table: in captures seen so far it
    never decodes to a usable channel. This is kept for compatibility only
    and is not applied to any other index.
    """
    if count < 0 or offset < 0:
        raise MalformedHeader(
            f"bad variable table: count={count} offset={offset}")
    end = offset + count * VAR_HEADER_SIZE
    if end > len(data):
        raise MalformedHeader(
            f"variable table [{offset}, {end}) exceeds source length {len(data)}")

    table = VarTable()
    for i in range(count):
        var = unpack_var_header(data, offset + i * VAR_HEADER_SIZE)
        table.records.append(var)
        if i == 0:
            logger.debug("skipping variable header 0 (%r)", var.name)
            continue
        if var.key in table.by_key:
            logger.debug("duplicate variable name %r at index %d, replacing",
                         var.name, i)
        table.by_key[var.key] = var

    return table
