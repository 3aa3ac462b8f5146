"""Exceptions raised by the answer pipeline."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for answer pipeline failures."""


class AnswerTimeoutError(PipelineError):
    """A caller's overall answer budget elapsed before a result was ready."""


class DedupeTimeoutError(PipelineError):
    """A shared in-flight request exceeded its bound; every waiter receives this."""
