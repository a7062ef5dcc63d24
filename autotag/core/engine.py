"""
Analysis pipeline for the auto-tagging service.

Main orchestration that routes an upload, decodes it, runs the
estimators and hands the result to reconciliation.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterable, Optional, Union

from autotag.analyzers import KeyAnalyzer, LevelsAnalyzer, TempoAnalyzer
from autotag.analyzers.tags import apply_tag_rules
from autotag.core.analyzer_base import Analyzer
from autotag.core.decoder import AudioDecoder, create_audio_decoder
from autotag.core.models import (
    AnalysisResult,
    KeyEstimate,
    LevelFeatures,
    PcmSource,
    TempoEstimate,
    UploadEvent,
    utcnow,
)
from autotag.core.reconcile import ReconcileSettings, ReconciliationEngine
from autotag.core.store import DocumentStore, create_document_store
from autotag.core.uploads import AUDIO_EXTENSIONS, PREVIEW_FILENAME, parse_upload
from autotag.utils.errors import AnalysisError, DecodeError
from autotag.utils.logging import create_logger_with_context


class AnalysisPipeline:
    """
    Upload-to-record pipeline.

    Design:
    - Dependency Injection: decoder, estimators and reconciler are passed in
    - Parallel Execution: the three estimators run concurrently
    - Error Handling: partial results on estimator failure, a
      timestamp-only result on decode failure
    """

    def __init__(
        self,
        decoder: AudioDecoder,
        levels: Analyzer[LevelFeatures],
        tempo: Analyzer[TempoEstimate],
        key: Analyzer[KeyEstimate],
        reconciler: ReconciliationEngine,
        max_workers: int = 3,
        preview_filename: str = PREVIEW_FILENAME,
        audio_extensions: Iterable[str] = AUDIO_EXTENSIONS,
    ):
        """
        Initialize pipeline.

        Args:
            decoder: AudioDecoder instance
            levels: Loudness/brightness/percussiveness analyzer
            tempo: Tempo estimator
            key: Key estimator
            reconciler: Writes results into the record store
            max_workers: Maximum parallel estimator threads
            preview_filename: Reserved filename skipped by routing
            audio_extensions: Extensions accepted as audio
        """
        self.decoder = decoder
        self.reconciler = reconciler
        self.analyzers = {
            'levels': levels,
            'tempo': tempo,
            'key': key,
        }
        self.preview_filename = preview_filename
        self.audio_extensions = tuple(audio_extensions)

        self.executor = ThreadPoolExecutor(max_workers=max_workers)
        self.logger = logging.getLogger('pipeline')

    def process(
        self,
        event: UploadEvent,
        source: Union[str, Path, BinaryIO],
    ) -> Optional[AnalysisResult]:
        """
        Handle one finalized upload.

        Args:
            event: The uploaded object
            source: Where to read its bytes from

        Returns:
            The stored AnalysisResult, or None when the upload was skipped
        """
        target = parse_upload(event, self.preview_filename, self.audio_extensions)
        if target is None:
            return None

        logger = create_logger_with_context(
            'pipeline',
            {'record_key': target.record_key, 'object_path': event.object_path},
        )
        start_time = time.perf_counter()

        try:
            pcm = self.decoder.decode(source)
        except DecodeError as e:
            logger.warning(f"Decode failed, storing timestamp only: {e}")
            result = AnalysisResult()
        else:
            result = self.analyze_pcm(pcm, duration=self._source_duration(source, pcm))

        self.reconciler.on_analyzed(target.record_key, result)

        logger.info(f"Processed upload in {time.perf_counter() - start_time:.3f}s")
        return result

    def _source_duration(
        self,
        source: Union[str, Path, BinaryIO],
        pcm: PcmSource,
    ) -> float:
        """Full length of the upload; decoded audio stops at max_duration."""
        if not isinstance(source, (str, Path)):
            return pcm.duration
        try:
            return self.decoder.container_duration(source)
        except DecodeError as e:
            self.logger.debug(f"Using decoded length for {source}: {e}")
            return pcm.duration

    def analyze_pcm(
        self,
        pcm: PcmSource,
        duration: Optional[float] = None,
    ) -> AnalysisResult:
        """
        Run every estimator on decoded audio.

        A failing estimator leaves its fields None; this never raises.

        Args:
            pcm: Decoded mono samples
            duration: Length of the whole recording in seconds, used for
                the duration field and the one-shot/loop/demo rules.
                Defaults to the decoded length.
        """
        if duration is None:
            duration = pcm.duration
        analyzed_at = utcnow()
        futures = {
            name: self.executor.submit(analyzer.analyze, pcm)
            for name, analyzer in self.analyzers.items()
        }

        results: Dict[str, Any] = {}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except AnalysisError as e:
                self.logger.warning(f"{name} failed, fields left empty: {e}")
                results[name] = None

        return self._create_analysis_result(duration, results, analyzed_at)

    def _create_analysis_result(
        self,
        duration: float,
        results: Dict[str, Any],
        analyzed_at: datetime,
    ) -> AnalysisResult:
        levels: Optional[LevelFeatures] = results.get('levels')
        tempo: Optional[TempoEstimate] = results.get('tempo')
        key: Optional[KeyEstimate] = results.get('key')

        fields: Dict[str, Any] = {'duration': round(duration, 3)}

        if levels is not None:
            fields.update(
                loudness=levels.loudness,
                brightness=levels.brightness,
                percussive=levels.percussive,
            )

        bpm_for_tags = None
        if tempo is not None:
            fields.update(
                bpm=tempo.bpm,
                bpm_confidence=tempo.confidence,
                bpm_norm=tempo.bpm_norm,
                alt_bpms=list(tempo.alt_bpms),
            )
            bpm_for_tags = tempo.bpm_norm if tempo.bpm_norm is not None else tempo.bpm

        if key is not None:
            fields.update(key=key.key, key_confidence=key.confidence)

        # Tone and percussiveness rules need the level features
        if levels is not None:
            tag_result = apply_tag_rules(
                duration=duration,
                percussive=levels.percussive,
                brightness=levels.brightness,
                bpm_norm=bpm_for_tags,
                key=key.key if key is not None else None,
            )
            fields.update(tags=tag_result.tags, type_guess=tag_result.type_guess)

        return AnalysisResult(analyzed_at=analyzed_at, **fields)

    def shutdown(self) -> None:
        """Shutdown thread pool gracefully."""
        self.logger.info("Shutting down analysis pipeline")
        self.executor.shutdown(wait=True)

    def __enter__(self) -> "AnalysisPipeline":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()


def create_pipeline(
    config: Dict[str, Any],
    store: Optional[DocumentStore] = None,
    reactive: bool = True,
) -> AnalysisPipeline:
    """
    Factory function to create a fully configured pipeline.

    Args:
        config: Configuration dict
        store: Record store; an in-memory store is created when omitted
        reactive: Subscribe the reconciler to the store so auto fields
            are promoted on every write

    Returns:
        AnalysisPipeline: Configured pipeline
    """
    analyzers_config = config.get('analyzers', {})
    uploads_config = config.get('uploads', {})

    if store is None:
        store = create_document_store(config.get('store', {}))

    decoder = create_audio_decoder(config.get('audio', {}))
    levels = LevelsAnalyzer(**analyzers_config.get('levels', {}))
    tempo = TempoAnalyzer(**analyzers_config.get('tempo', {}))
    key = KeyAnalyzer(**analyzers_config.get('key', {}))

    reconciler = ReconciliationEngine(
        store,
        ReconcileSettings.from_config(config.get('reconcile', {})),
    )
    if reactive:
        reconciler.attach()

    return AnalysisPipeline(
        decoder=decoder,
        levels=levels,
        tempo=tempo,
        key=key,
        reconciler=reconciler,
        max_workers=config.get('performance', {}).get('max_workers', 3),
        preview_filename=uploads_config.get('preview_filename', PREVIEW_FILENAME),
        audio_extensions=uploads_config.get('audio_extensions', AUDIO_EXTENSIONS),
    )
