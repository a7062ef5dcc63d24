"""
Core module containing data models, decoding, storage and the pipeline.

Uses lazy imports for modules with heavy dependencies (librosa).
"""

# Models are lightweight - import directly
from autotag.core.models import (
    PcmSource,
    LevelFeatures,
    TempoEstimate,
    KeyEstimate,
    TagResult,
    AnalysisResult,
    FileRecord,
    UploadEvent,
    UploadTarget,
    validate_unit,
)

__all__ = [
    # Models (always available)
    "PcmSource",
    "LevelFeatures",
    "TempoEstimate",
    "KeyEstimate",
    "TagResult",
    "AnalysisResult",
    "FileRecord",
    "UploadEvent",
    "UploadTarget",
    "validate_unit",
    # Heavy modules (lazy loaded)
    "AudioDecoder",
    "create_audio_decoder",
    "Analyzer",
    "BaseAnalyzer",
    "InMemoryDocumentStore",
    "create_document_store",
    "ReconciliationEngine",
    "AnalysisPipeline",
    "create_pipeline",
]


def __getattr__(name: str):
    """Lazy load modules with heavy dependencies."""
    if name in ("AudioDecoder", "create_audio_decoder"):
        from autotag.core.decoder import AudioDecoder, create_audio_decoder
        return AudioDecoder if name == "AudioDecoder" else create_audio_decoder
    elif name in ("Analyzer", "BaseAnalyzer"):
        from autotag.core.analyzer_base import Analyzer, BaseAnalyzer
        return Analyzer if name == "Analyzer" else BaseAnalyzer
    elif name in ("InMemoryDocumentStore", "create_document_store"):
        from autotag.core.store import InMemoryDocumentStore, create_document_store
        return InMemoryDocumentStore if name == "InMemoryDocumentStore" else create_document_store
    elif name == "ReconciliationEngine":
        from autotag.core.reconcile import ReconciliationEngine
        return ReconciliationEngine
    elif name in ("AnalysisPipeline", "create_pipeline"):
        from autotag.core.engine import AnalysisPipeline, create_pipeline
        return AnalysisPipeline if name == "AnalysisPipeline" else create_pipeline
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
