"""
Estimator interface shared by the level, tempo and key analyzers.

The pipeline only depends on `Analyzer`; `BaseAnalyzer` is the
convenience base the bundled estimators build on.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Generic, Protocol, TypeVar, runtime_checkable

from autotag.core.models import PcmSource
from autotag.utils.errors import AnalysisError

T = TypeVar('T')
T_co = TypeVar('T_co', covariant=True)


@runtime_checkable
class Analyzer(Protocol[T_co]):
    """What AnalysisPipeline calls on each estimator it is given."""

    @property
    def name(self) -> str:
        ...

    @property
    def version(self) -> str:
        ...

    def analyze(self, pcm: PcmSource) -> T_co:
        """Estimate from decoded mono audio; raises AnalysisError."""
        ...


class BaseAnalyzer(ABC, Generic[T]):
    """
    Timing, debug logging and AnalysisError wrapping around `_analyze_impl`.

    Silent or empty input is a result, not a failure: subclasses return
    their null estimate for it.
    """

    def __init__(self, name: str, version: str):
        self._name = name
        self._version = version
        self.logger = logging.getLogger(f"analyzer.{name}")

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._version

    def analyze(self, pcm: PcmSource) -> T:
        """
        Run the estimator on `pcm`.

        Raises:
            AnalysisError: wraps anything `_analyze_impl` raises, keeping
                the original exception as `original_error`
        """
        start_time = time.perf_counter()
        self.logger.debug(
            f"{len(pcm.samples)} samples @ {pcm.sample_rate} Hz ({self._version})"
        )

        try:
            result = self._analyze_impl(pcm)
        except AnalysisError:
            raise
        except Exception as e:
            self.logger.error(f"Analysis failed: {e}")
            raise AnalysisError(
                f"{self.name} analysis failed: {e}",
                analyzer_name=self.name,
                original_error=e
            ) from e

        self.logger.debug(f"Done in {time.perf_counter() - start_time:.3f}s")
        return result

    @abstractmethod
    def _analyze_impl(self, pcm: PcmSource) -> T:
        ...
