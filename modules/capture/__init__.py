"""Frame extractor process handling."""

from .extractor import ExtractorRunner

__all__ = ["ExtractorRunner"]
