"""ibtelem - decoder for .ibt racing-simulator telemetry captures."""

from .errors import IbtError, MalformedHeader, UnknownVariable, UnsupportedType, EndOfData
from .schema import (IbtType, TypeDescriptor, TypeRegistry, DEFAULT_REGISTRY,
                     VarHeader, VarTable, build_var_table)
from .storage import (PrimaryHeader, DiskHeader, Frame, FrameIterator, IbtReader,
                      decode_headers)
from .decoder import Sample, extract_sample, extract_samples, scan, lap_filter
from .capture import Capture

__all__ = [
    "IbtError", "MalformedHeader", "UnknownVariable", "UnsupportedType", "EndOfData",
    "IbtType", "TypeDescriptor", "TypeRegistry", "DEFAULT_REGISTRY",
    "VarHeader", "VarTable", "build_var_table",
    "PrimaryHeader", "DiskHeader", "Frame", "FrameIterator", "IbtReader",
    "decode_headers",
    "Sample", "extract_sample", "extract_samples", "scan", "lap_filter",
    "Capture",
]
