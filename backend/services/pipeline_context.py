"""
Pipeline Context - per-run state for one Manual J chain invocation
Enforces the state machine: the planned states are entered strictly in
order, none is revisited, and FAILED/DONE are terminal.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from services.pipeline_contracts import (
    PipelineStage,
    PipelineState,
    RunSummary,
    StageRecord,
    StageStatus,
)

logger = logging.getLogger(__name__)

TERMINAL_STATES = (PipelineState.DONE, PipelineState.FAILED)


class PipelineRunContext:
    """
    State for a single run. Created by the chain for every invocation and
    dropped when the run returns; nothing here is shared between runs.
    """

    def __init__(
        self,
        plan: Sequence[PipelineState],
        location: str = "",
        pdf_size_bytes: int = 0,
        run_id: Optional[str] = None,
    ):
        if not plan:
            raise ValueError("A run needs at least one planned state")
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.plan: List[PipelineState] = list(plan)
        self.location = location
        self.pdf_size_bytes = pdf_size_bytes
        self.state = PipelineState.IDLE
        self.history: List[PipelineState] = [PipelineState.IDLE]
        self.records: Dict[PipelineStage, StageRecord] = {}
        self.failed_stage: Optional[PipelineStage] = None
        self.error: Optional[str] = None
        self._position = -1
        self._started = time.time()

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, new_state: PipelineState, stage: PipelineStage) -> StageRecord:
        """
        Enter the next planned in-progress state.

        Raises:
            RuntimeError: When new_state is not the next state in the plan
        """
        if self.is_terminal:
            raise RuntimeError(f"Run {self.run_id} already finished in state {self.state.value}")

        expected = self.plan[self._position + 1] if self._position + 1 < len(self.plan) else None
        if new_state != expected:
            raise RuntimeError(
                f"Illegal transition {self.state.value} -> {new_state.value} "
                f"(expected {expected.value if expected else 'done'})"
            )

        self._position += 1
        self.state = new_state
        self.history.append(new_state)

        record = StageRecord(
            stage=stage,
            status=StageStatus.IN_PROGRESS,
            started_at=datetime.now(timezone.utc),
        )
        self.records[stage] = record
        logger.debug(f"[CONTEXT] Run {self.run_id}: entered {new_state.value}")
        return record

    def complete_stage(self, stage: PipelineStage, duration_ms: float, output_chars: int) -> None:
        record = self.records[stage]
        record.status = StageStatus.SUCCESS
        record.duration_ms = duration_ms
        record.output_chars = output_chars

    def finish(self) -> None:
        """Move to DONE; only legal once every planned state has run"""
        if self._position != len(self.plan) - 1 or self.is_terminal:
            raise RuntimeError(f"Run {self.run_id} cannot finish from state {self.state.value}")
        self.state = PipelineState.DONE
        self.history.append(PipelineState.DONE)

    def fail(self, stage: Optional[PipelineStage], error: str, duration_ms: float = 0.0) -> None:
        if self.is_terminal:
            return
        self.failed_stage = stage
        self.error = error
        if stage is not None and stage in self.records:
            record = self.records[stage]
            record.status = StageStatus.FAILED
            record.duration_ms = duration_ms
            record.error = error
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)

    def summary(self) -> RunSummary:
        return RunSummary(
            run_id=self.run_id,
            state=self.state,
            location=self.location,
            pdf_size_bytes=self.pdf_size_bytes,
            stages=list(self.records.values()),
            failed_stage=self.failed_stage,
            error=self.error,
            total_duration_ms=(time.time() - self._started) * 1000,
        )
