"""Headers, frame iteration and the file reader for .ibt captures.

File layout (little-endian):
  [primary header]      112 bytes at offset 0
  [disk header]          32 bytes at offset 112
  [variable header × N] 144 bytes each, at var_header_offset
  [session info text]   session_info_length bytes at session_info_offset
  [frame 0]
  [frame 1]             buf_len bytes each, starting at buf_offset
  ...

The header carries no reliable count of complete frames (a capture may be
cut off mid-write), so frames are discovered by bounds-checking each one
against the source length.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Sequence

from .errors import MalformedHeader
from .schema import DEFAULT_REGISTRY, TypeRegistry, VarTable, build_var_table

logger = logging.getLogger(__name__)

# version, status, tickRate, sessionInfoUpdate, sessionInfoLength,
# sessionInfoOffset, numVars, varHeaderOffset, numBuf, bufLen, pad, bufOffset
HEADER_FMT = "<10i12xi"
HEADER_SIZE = 112  # region size; only the first calcsize(HEADER_FMT) bytes are decoded

DISK_HEADER_FMT = "<dddii"
DISK_HEADER_OFFSET = HEADER_SIZE
DISK_HEADER_SIZE = struct.calcsize(DISK_HEADER_FMT)  # 32

MIN_SOURCE_SIZE = HEADER_SIZE + DISK_HEADER_SIZE  # 144


@dataclass(frozen=True)
class PrimaryHeader:
    version: int
    status: int
    tick_rate: int
    session_info_update: int
    session_info_length: int
    session_info_offset: int
    num_vars: int
    var_header_offset: int
    num_buf: int
    buf_len: int
    buf_offset: int


@dataclass(frozen=True)
class DiskHeader:
    start_date: float
    start_time: float
    end_time: float
    lap_count: int
    record_count: int


def decode_headers(data) -> tuple[PrimaryHeader, DiskHeader]:
    """Decode the primary and disk headers from the start of ``data``."""
    if len(data) < MIN_SOURCE_SIZE:
        raise MalformedHeader(
            f"source is {len(data)} bytes, need at least {MIN_SOURCE_SIZE}")

    header = PrimaryHeader(*struct.unpack_from(HEADER_FMT, data, 0))
    disk = DiskHeader(*struct.unpack_from(DISK_HEADER_FMT, data, DISK_HEADER_OFFSET))

    if header.num_buf != 1:
        logger.warning("header declares %d buffers, only the first is read",
                       header.num_buf)
    return header, disk


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Frame:
    """One tick of sample data: ``buf_len`` bytes at an absolute offset.

    ``buf_len`` is the declared frame length; ``data`` shorter than that
    is a truncated frame.  None means ``len(data)``.
    """
    index: int
    offset: int
    data: memoryview
    buf_len: int | None = None

    def __len__(self) -> int:
        return len(self.data)

    @property
    def size(self) -> int:
        return self.buf_len if self.buf_len is not None else len(self.data)


class FrameIterator:
    """Forward-only view over the frame region.

    Every call to ``iter()`` starts again from frame 0.  Iteration stops at
    the first frame whose end would pass the end of the source.
    """

    def __init__(self, data, buf_offset: int, buf_len: int):
        if buf_len <= 0:
            raise MalformedHeader(f"bad frame length: {buf_len}")
        if buf_offset < 0:
            raise MalformedHeader(f"bad frame offset: {buf_offset}")
        self._data = memoryview(data).toreadonly()
        self.buf_offset = buf_offset
        self.buf_len = buf_len

    def __iter__(self) -> Iterator[Frame]:
        i = 0
        size = len(self._data)
        while True:
            start = self.buf_offset + i * self.buf_len
            end = start + self.buf_len
            if end > size:
                if start < size:
                    logger.debug("ignoring partial frame %d (%d of %d bytes)",
                                 i, size - start, self.buf_len)
                return
            yield Frame(i, start, self._data[start:end], self.buf_len)
            i += 1

    def count(self) -> int:
        """Number of complete frames in the source."""
        avail = len(self._data) - self.buf_offset
        return max(avail, 0) // self.buf_len


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------

class IbtReader:
    """Reads an .ibt capture.

    The whole file is loaded into memory on open(); headers, the variable
    table and frames are then addressed by absolute offset.
    """

    def __init__(self, path: str | Path | None = None,
                 registry: TypeRegistry = DEFAULT_REGISTRY):
        self._path = Path(path) if path is not None else None
        self.registry = registry
        self._data: memoryview | None = None
        self._header: PrimaryHeader | None = None
        self._disk_header: DiskHeader | None = None
        self._vars: VarTable | None = None

    @classmethod
    def from_bytes(cls, data: bytes,
                   registry: TypeRegistry = DEFAULT_REGISTRY) -> IbtReader:
        """Reader over an in-memory capture; already open."""
        reader = cls(registry=registry)
        reader._load(data)
        return reader

    def open(self) -> PrimaryHeader:
        """Read the file, decode headers and the variable table."""
        if self._path is None:
            raise RuntimeError("no path to open")
        with open(self._path, "rb") as f:
            self._load(f.read())
        return self.header

    def _load(self, data: bytes) -> None:
        view = memoryview(data).toreadonly()
        header, disk_header = decode_headers(view)
        var_table = build_var_table(view, header.num_vars, header.var_header_offset)

        self._data = view
        self._header, self._disk_header = header, disk_header
        self._vars = var_table
        logger.debug("ibt v%d: %d vars, frame %d bytes at %d, %d Hz",
                     header.version, header.num_vars, header.buf_len,
                     header.buf_offset, header.tick_rate)

    def _check_open(self) -> None:
        if self._data is None:
            raise RuntimeError("Call open() first")

    @property
    def data(self) -> memoryview:
        self._check_open()
        assert self._data is not None
        return self._data

    @property
    def header(self) -> PrimaryHeader:
        self._check_open()
        assert self._header is not None
        return self._header

    @property
    def disk_header(self) -> DiskHeader:
        self._check_open()
        assert self._disk_header is not None
        return self._disk_header

    @property
    def vars(self) -> VarTable:
        self._check_open()
        assert self._vars is not None
        return self._vars

    @property
    def session_info(self) -> str:
        """Raw session-info text block (not parsed)."""
        h = self.header
        start = h.session_info_offset
        end = start + h.session_info_length
        if start < 0 or h.session_info_length < 0 or end > len(self.data):
            raise MalformedHeader(
                f"session info [{start}, {end}) exceeds source length {len(self.data)}")
        raw = bytes(self.data[start:end])
        return raw.split(b"\x00", 1)[0].decode("latin-1")

    def frames(self) -> FrameIterator:
        h = self.header
        return FrameIterator(self.data, h.buf_offset, h.buf_len)

    def samples(self, channels: Sequence[str],
                predicate: Callable | None = None):
        """Iterate per-frame sample tuples; see :func:`ibtelem.decoder.scan`."""
        from .decoder import scan
        return scan(self.frames(), self.vars, channels, predicate,
                    registry=self.registry)

    def close(self) -> None:
        self._data = None
        self._header = None
        self._disk_header = None
        self._vars = None

    def __enter__(self):
        if self._data is None:
            self.open()
        return self

    def __exit__(self, *exc):
        self.close()
