"""numpy extraction of whole channels from an .ibt capture.

Capture slices every complete frame at once through a strided view of the
frame region, so pulling a channel costs one copy rather than a Python
loop over frames.  Values match what :func:`ibtelem.decoder.extract_sample`
returns frame by frame.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import numpy as np

from .errors import MalformedHeader
from .schema import DEFAULT_REGISTRY, TypeRegistry
from .storage import IbtReader


class Capture:
    """Channel arrays over all complete frames of a capture."""

    def __init__(self, source: str | Path | IbtReader,
                 registry: TypeRegistry = DEFAULT_REGISTRY):
        if isinstance(source, IbtReader):
            self._reader = source
            self._owns_reader = False
            registry = source.registry
        else:
            self._reader = IbtReader(source, registry=registry)
            self._reader.open()
            self._owns_reader = True
        self.registry = registry

        h = self._reader.header
        self.num_frames = self._reader.frames().count()
        if self.num_frames:
            self._rows = np.frombuffer(self._reader.data, dtype=np.uint8,
                                       count=self.num_frames * h.buf_len,
                                       offset=h.buf_offset).reshape(self.num_frames, h.buf_len)
        else:
            self._rows = np.empty((0, h.buf_len), dtype=np.uint8)

    @property
    def reader(self) -> IbtReader:
        return self._reader

    def time(self) -> np.ndarray:
        """Seconds since the first frame, from the header tick rate."""
        tick_rate = self._reader.header.tick_rate
        if tick_rate <= 0:
            raise MalformedHeader(f"bad tick rate: {tick_rate}")
        return np.arange(self.num_frames, dtype=np.float64) / tick_rate

    def _column(self, name: str, index: int = 0) -> np.ndarray:
        var = self._reader.vars[name]
        tdesc = self.registry.lookup(var.type)
        start, end = var.window(tdesc.size, index, self._rows.shape[1])
        raw = np.ascontiguousarray(self._rows[:, start:end])
        return raw.view(tdesc.dtype).reshape(self.num_frames)

    def _mask(self, t: np.ndarray, t0: float | None, t1: float | None,
              lap: int | None, lap_channel: str) -> np.ndarray | None:
        mask = None
        if t0 is not None:
            mask = t >= t0
        if t1 is not None:
            m = t <= t1
            mask = m if mask is None else mask & m
        if lap is not None:
            m = self._column(lap_channel) == lap
            mask = m if mask is None else mask & m
        return mask

    def series(self, name: str, t0: float | None = None, t1: float | None = None,
               lap: int | None = None, index: int = 0,
               lap_channel: str = "Lap") -> tuple[np.ndarray, np.ndarray]:
        """Return (t, values) for one channel.

        ``t0``/``t1`` bound the time axis (seconds, inclusive); ``lap``
        keeps only frames where ``lap_channel`` equals it.
        """
        values = self._column(name, index)
        t = self.time()
        mask = self._mask(t, t0, t1, lap, lap_channel)
        if mask is not None:
            t, values = t[mask], values[mask]
        return t, values

    def table(self, names: Iterable[str], t0: float | None = None,
              t1: float | None = None, lap: int | None = None,
              lap_channel: str = "Lap") -> dict[str, np.ndarray]:
        """Several channels on one time axis, keyed by name plus "_time"."""
        t = self.time()
        tbl: dict[str, np.ndarray] = {}
        for name in names:
            tbl[self._reader.vars[name].name] = self._column(name)
        mask = self._mask(t, t0, t1, lap, lap_channel)
        if mask is not None:
            t = t[mask]
            tbl = {k: v[mask] for k, v in tbl.items()}
        return {"_time": t, **tbl}

    def laps(self, channel: str = "Lap") -> list[tuple[int, int, int]]:
        """Runs of constant lap number as (lap, first_frame, end_frame)."""
        lap = self._column(channel)
        if len(lap) == 0:
            return []
        edges = np.flatnonzero(lap[1:] != lap[:-1]) + 1
        starts = np.concatenate(([0], edges))
        ends = np.concatenate((edges, [len(lap)]))
        return [(int(lap[s]), int(s), int(e)) for s, e in zip(starts, ends)]

    def close(self) -> None:
        self._rows = np.empty((0, 0), dtype=np.uint8)
        if self._owns_reader:
            self._reader.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
