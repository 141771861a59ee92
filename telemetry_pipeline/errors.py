"""Excepciones del pipeline."""

from __future__ import annotations


class PipelineError(Exception):
    """Error base del pipeline."""


class MalformedItemError(PipelineError):
    """Un elemento de cola no se puede interpretar como Reading/Event."""


class TransportError(PipelineError):
    """Cola o store temporalmente inaccesible."""
