"""
Pipeline observers - hooks the chain calls as a run progresses

The chain never reaches for a global logger or metrics singleton; the host
passes an observer in. PipelineObserver is a no-op base, LoggingObserver
writes structured log lines, CompositeObserver fans out to several.
"""

import logging
from typing import Iterable, List, Optional

from services.error_types import ManualJError
from services.pipeline_contracts import PipelineStage, RunSummary

logger = logging.getLogger(__name__)


class PipelineObserver:
    """Base observer; override the hooks you care about"""

    def on_run_start(self, run_id: str, stages: List[PipelineStage], location: str, pdf_size_bytes: int) -> None:
        pass

    def on_stage_start(self, run_id: str, stage: PipelineStage, attempt: int) -> None:
        pass

    def on_stage_complete(self, run_id: str, stage: PipelineStage, duration_ms: float, output_chars: int) -> None:
        pass

    def on_stage_failed(self, run_id: str, stage: PipelineStage, error: ManualJError, will_retry: bool) -> None:
        pass

    def on_run_complete(self, summary: RunSummary) -> None:
        pass


class LoggingObserver(PipelineObserver):
    """Writes every pipeline event to a logger"""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def on_run_start(self, run_id, stages, location, pdf_size_bytes):
        self.log.info(
            f"Run {run_id}: starting {len(stages)} stages for location '{location}' ({pdf_size_bytes} bytes)",
            extra={'run_id': run_id, 'stages': [s.value for s in stages]},
        )

    def on_stage_start(self, run_id, stage, attempt):
        suffix = f" (attempt {attempt})" if attempt > 1 else ""
        self.log.info(f"Run {run_id}: starting stage {stage.value}{suffix}")

    def on_stage_complete(self, run_id, stage, duration_ms, output_chars):
        self.log.info(
            f"Run {run_id}: stage {stage.value} completed in {duration_ms:.0f}ms ({output_chars} chars)",
            extra={'run_id': run_id, 'stage': stage.value, 'duration_ms': duration_ms},
        )

    def on_stage_failed(self, run_id, stage, error, will_retry):
        if will_retry:
            self.log.warning(f"Run {run_id}: stage {stage.value} failed ({error.kind}), retrying: {error.message}")
        else:
            self.log.error(
                f"Run {run_id}: stage {stage.value} failed ({error.kind}): {error.message}",
                extra={'run_id': run_id, 'stage': stage.value, 'error_kind': error.kind},
            )

    def on_run_complete(self, summary):
        if summary.error:
            self.log.error(
                f"Run {summary.run_id} {summary.state.value} at "
                f"{summary.failed_stage.value if summary.failed_stage else 'input'} "
                f"after {summary.total_duration_ms:.0f}ms"
            )
        else:
            self.log.info(f"Run {summary.run_id} {summary.state.value} in {summary.total_duration_ms:.0f}ms")


class CompositeObserver(PipelineObserver):
    """Forwards each hook to every wrapped observer in order"""

    def __init__(self, observers: Iterable[PipelineObserver]):
        self.observers = list(observers)

    def on_run_start(self, *args, **kwargs):
        for observer in self.observers:
            observer.on_run_start(*args, **kwargs)

    def on_stage_start(self, *args, **kwargs):
        for observer in self.observers:
            observer.on_stage_start(*args, **kwargs)

    def on_stage_complete(self, *args, **kwargs):
        for observer in self.observers:
            observer.on_stage_complete(*args, **kwargs)

    def on_stage_failed(self, *args, **kwargs):
        for observer in self.observers:
            observer.on_stage_failed(*args, **kwargs)

    def on_run_complete(self, *args, **kwargs):
        for observer in self.observers:
            observer.on_run_complete(*args, **kwargs)
