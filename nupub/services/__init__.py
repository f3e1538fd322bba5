"""Publish services: version extraction, command lines, the release pipeline."""

from .pipeline import PipelineOutcome, ReleasePipeline, Step
from .version import extract_version

__all__ = [
    "PipelineOutcome",
    "ReleasePipeline",
    "Step",
    "extract_version",
]
