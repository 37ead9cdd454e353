"""Sample extraction from frames."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Sequence

from .errors import EndOfData, UnknownVariable
from .schema import (DEFAULT_REGISTRY, IbtType, TypeDescriptor, TypeRegistry,
                     Value, VarHeader, VarTable)
from .storage import Frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sample:
    """One decoded channel value.  ``kind`` says which numeric type it is."""
    name: str
    kind: IbtType
    value: Value


Predicate = Callable[[Sequence[Sample]], bool]


def _read(data, buf_len: int, var: VarHeader, tdesc: TypeDescriptor,
          index: int = 0) -> Sample:
    start, end = var.window(tdesc.size, index, buf_len)
    if end > len(data):
        raise EndOfData(f"{var.name} needs bytes [{start}, {end}), frame has {len(data)}")
    return Sample(var.name, tdesc.type, tdesc.decode(data[start:end]))


def extract_sample(frame: Frame | bytes, table: VarTable, name: str,
                   registry: TypeRegistry = DEFAULT_REGISTRY,
                   index: int = 0) -> Sample:
    """Decode channel ``name`` (element ``index`` for array channels) from a frame.

    Raises UnknownVariable, UnsupportedType, MalformedHeader when the
    variable does not fit the declared frame length, or EndOfData when a
    truncated frame is too short to hold the value.
    """
    if isinstance(frame, Frame):
        data, buf_len = frame.data, frame.size
    else:
        data, buf_len = frame, len(frame)
    var = table[name]
    return _read(data, buf_len, var, registry.lookup(var.type), index)


def extract_samples(frame: Frame | bytes, table: VarTable, names: Iterable[str],
                    registry: TypeRegistry = DEFAULT_REGISTRY) -> tuple[Sample, ...]:
    """Decode several channels from one frame, in request order."""
    return tuple(extract_sample(frame, table, n, registry) for n in names)


def scan(frames: Iterable[Frame], table: VarTable, channels: Sequence[str],
         predicate: Predicate | None = None,
         registry: TypeRegistry = DEFAULT_REGISTRY) -> Iterator[tuple[Sample, ...]]:
    """Yield a tuple of samples per frame for the requested channels.

    All channels live in the same frame, so an incomplete frame ends the
    whole pass.  Frames for which ``predicate(samples)`` is false are
    skipped.
    """
    resolved: list[tuple[VarHeader, TypeDescriptor]] = []
    for name in channels:
        var = table[name]
        resolved.append((var, registry.lookup(var.type)))

    for frame in frames:
        try:
            samples = tuple(_read(frame.data, frame.size, var, tdesc)
                            for var, tdesc in resolved)
        except EndOfData:
            logger.debug("end of data at frame %d", frame.index)
            return
        if predicate is None or predicate(samples):
            yield samples


def lap_filter(lap: int, channel: str = "Lap") -> Predicate:
    """Predicate selecting frames where ``channel`` equals ``lap``.

    ``channel`` must be one of the scanned channels.
    """
    key = channel.lower()

    def _match(samples: Sequence[Sample]) -> bool:
        for s in samples:
            if s.name.lower() == key:
                return s.value == lap
        raise UnknownVariable(channel)

    return _match


def values(samples: Iterable[Sample]) -> tuple[Value, ...]:
    return tuple(s.value for s in samples)
