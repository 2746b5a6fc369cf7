"""Metadata extraction: byte-range selection, backends, parsers and the engine."""

from mediaprobe.extraction.box_mapper import BoxMetadataMapper
from mediaprobe.extraction.byte_range import ByteRange, ByteRangeSelector, Operation
from mediaprobe.extraction.diagnostic_parser import DiagnosticTextParser
from mediaprobe.extraction.engine import ExtractionEngine, ExtractionSession, SessionPermit
from mediaprobe.extraction.errors import (
    BackendError,
    BackendLoadCause,
    BackendLoadError,
    ExportFallbackExhausted,
    ExtractionTimeout,
    MediaProbeError,
    ParseError,
    ParseErrorKind,
    ValidationError,
    WriteError,
)

__all__ = [
    "BackendError",
    "BackendLoadCause",
    "BackendLoadError",
    "BoxMetadataMapper",
    "ByteRange",
    "ByteRangeSelector",
    "DiagnosticTextParser",
    "ExportFallbackExhausted",
    "ExtractionEngine",
    "ExtractionSession",
    "ExtractionTimeout",
    "MediaProbeError",
    "Operation",
    "ParseError",
    "ParseErrorKind",
    "SessionPermit",
    "ValidationError",
    "WriteError",
]
