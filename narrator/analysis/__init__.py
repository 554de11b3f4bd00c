"""Paragraph metadata analyzers."""

from .metadata import KeywordMetadataAnalyzer, MetadataAnalyzer, OpenAIMetadataAnalyzer

__all__ = ["KeywordMetadataAnalyzer", "MetadataAnalyzer", "OpenAIMetadataAnalyzer"]
