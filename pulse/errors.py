"""
Exception types raised across the pipeline.
"""
from __future__ import annotations


class PulseError(Exception):
    """Base class for pipeline errors."""


class ServiceError(PulseError):
    """An external service call failed or the service is not configured."""


class ModelOutputError(PulseError):
    """The completion service returned something that is not the JSON we asked for."""


class RunInProgressError(PulseError):
    """Another pipeline run currently holds the run claim."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id} is already in progress")
        self.run_id = run_id
