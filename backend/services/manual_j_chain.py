"""
Manual J Chain - sequences the four model-backed stages of a calculation

PDF extraction -> assumption generation -> load calculation -> visualization.
Each stage consumes the previous stage's output, so they run strictly in
order. Any stage failure aborts the whole run with one stage-tagged error;
callers never see a partial result.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from app.config import ManualJConfig
from services import prompts
from services.error_types import (
    InputValidationError,
    ManualJError,
    ModelEmptyResponseError,
    ModelMalformedResponseError,
    categorize_exception,
)
from services.model_client import PDF_MIME_TYPE, ModelClient, encode_document
from services.pipeline_context import PipelineRunContext
from services.pipeline_contracts import (
    CalculationRequest,
    PipelineResult,
    PipelineStage,
    PipelineState,
    VisualizationData,
)
from services.pipeline_observer import LoggingObserver, PipelineObserver
from services.strict_json_parser import StrictJSONParser
from utils.logging_utils import truncate_for_log

logger = logging.getLogger(__name__)

INPUT_STAGE = "input"

Artifacts = Dict[str, Any]
StageHandler = Callable[[Artifacts, str], Awaitable[Artifacts]]


@dataclass(frozen=True)
class Stage:
    """One entry of the ordered stage list"""
    name: PipelineStage
    state: PipelineState
    handler: StageHandler
    inputs: Tuple[str, ...]
    outputs: Tuple[str, ...]


class ManualJChain:
    """
    Orchestrates the Manual J calculation chain.

    The model client, configuration and observer are injected; the chain
    keeps no state between runs.
    """

    def __init__(
        self,
        client: ModelClient,
        config: Optional[ManualJConfig] = None,
        observer: Optional[PipelineObserver] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.config = config or ManualJConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.observer = observer or LoggingObserver(self.logger)
        self.stages: Tuple[Stage, ...] = (
            Stage(
                PipelineStage.EXTRACT_STATIC_DATA,
                PipelineState.EXTRACTING_STATIC_DATA,
                self._run_extract_static_data,
                inputs=("pdf_bytes",),
                outputs=("static_data",),
            ),
            Stage(
                PipelineStage.GENERATE_DYNAMIC_ASSUMPTIONS,
                PipelineState.GENERATING_ASSUMPTIONS,
                self._run_generate_dynamic_assumptions,
                inputs=("location", "static_data"),
                outputs=("dynamic_assumptions",),
            ),
            Stage(
                PipelineStage.CALCULATE_RESULTS,
                PipelineState.CALCULATING_RESULTS,
                self._run_calculate_results,
                inputs=("static_data", "dynamic_assumptions"),
                outputs=("manual_j_results",),
            ),
            Stage(
                PipelineStage.GENERATE_VISUALIZATION,
                PipelineState.GENERATING_VISUALIZATION,
                self._run_generate_visualization,
                inputs=("manual_j_results",),
                outputs=("chart_data", "csv_data"),
            ),
        )

    @property
    def stage_names(self) -> List[PipelineStage]:
        return [stage.name for stage in self.stages]

    async def run(self, pdf_bytes: bytes, location: str) -> PipelineResult:
        """
        Run the complete chain over one uploaded plan set.

        Args:
            pdf_bytes: Raw PDF content
            location: Free-form location (ZIP, city, address); the model interprets it

        Returns:
            PipelineResult with all four artifacts

        Raises:
            InputValidationError: Empty PDF or blank location, before any model call
            ManualJError: Any stage failure, tagged with the stage name
        """
        try:
            request = CalculationRequest(pdf_bytes=pdf_bytes, location=location)
        except ValidationError as e:
            problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise InputValidationError(
                "No PDF content provided" if not pdf_bytes else "Location is required",
                stage=INPUT_STAGE,
                details={"problems": problems},
            ) from e

        artifacts: Artifacts = {"pdf_bytes": request.pdf_bytes, "location": request.location}
        artifacts = await self._execute(self.stages, artifacts, request.location, len(request.pdf_bytes))
        return self._build_result(artifacts)

    async def recalculate(self, static_data: str, dynamic_assumptions: str) -> PipelineResult:
        """
        Re-run the dependent tail (calculation, visualization) on stored
        static data and user-edited assumptions.
        """
        if not static_data or not static_data.strip():
            raise InputValidationError("Stored static data is empty", stage=INPUT_STAGE)
        if not dynamic_assumptions or not dynamic_assumptions.strip():
            raise InputValidationError("Assumptions are required", stage=INPUT_STAGE)

        tail = tuple(
            stage for stage in self.stages
            if stage.name in (PipelineStage.CALCULATE_RESULTS, PipelineStage.GENERATE_VISUALIZATION)
        )
        artifacts: Artifacts = {"static_data": static_data, "dynamic_assumptions": dynamic_assumptions}
        artifacts = await self._execute(tail, artifacts, location="", pdf_size_bytes=0)
        return self._build_result(artifacts)

    # Stage operations. Each is usable on its own; run() wires them together.

    async def extract_static_data(self, pdf_bytes: bytes, run_id: str = "adhoc") -> str:
        """Step 1: send the encoded PDF to the vision model"""
        stage = PipelineStage.EXTRACT_STATIC_DATA
        document_b64 = encode_document(pdf_bytes)
        instruction = prompts.static_data_instruction()
        return await self._invoke(
            stage,
            lambda: self.client.generate_from_document(instruction, document_b64, PDF_MIME_TYPE),
            run_id,
        )

    async def generate_dynamic_assumptions(self, location: str, static_data: str, run_id: str = "adhoc") -> str:
        """Step 2: climate and construction assumptions from location + building data"""
        prompt = prompts.dynamic_assumptions_prompt(location, static_data)
        return await self._invoke(
            PipelineStage.GENERATE_DYNAMIC_ASSUMPTIONS,
            lambda: self.client.generate_text(prompt),
            run_id,
        )

    async def calculate_results(self, static_data: str, dynamic_assumptions: str, run_id: str = "adhoc") -> str:
        """Step 3: heating/cooling loads, room breakdown, peak conditions"""
        prompt = prompts.manual_j_results_prompt(static_data, dynamic_assumptions)
        return await self._invoke(
            PipelineStage.CALCULATE_RESULTS,
            lambda: self.client.generate_text(prompt),
            run_id,
        )

    async def generate_visualization(self, manual_j_results: str, run_id: str = "adhoc") -> VisualizationData:
        """Step 4: chart image + CSV, parsed out of a JSON completion"""
        stage = PipelineStage.GENERATE_VISUALIZATION
        prompt = prompts.visualization_prompt(manual_j_results)
        text = await self._invoke(stage, lambda: self.client.generate_text(prompt), run_id)
        return self._parse_visualization(text, run_id)

    # Stage list adapters

    async def _run_extract_static_data(self, inputs: Artifacts, run_id: str) -> Artifacts:
        return {"static_data": await self.extract_static_data(inputs["pdf_bytes"], run_id=run_id)}

    async def _run_generate_dynamic_assumptions(self, inputs: Artifacts, run_id: str) -> Artifacts:
        assumptions = await self.generate_dynamic_assumptions(inputs["location"], inputs["static_data"], run_id=run_id)
        return {"dynamic_assumptions": assumptions}

    async def _run_calculate_results(self, inputs: Artifacts, run_id: str) -> Artifacts:
        results = await self.calculate_results(inputs["static_data"], inputs["dynamic_assumptions"], run_id=run_id)
        return {"manual_j_results": results}

    async def _run_generate_visualization(self, inputs: Artifacts, run_id: str) -> Artifacts:
        visualization = await self.generate_visualization(inputs["manual_j_results"], run_id=run_id)
        return {"chart_data": visualization.chart_data, "csv_data": visualization.csv_data}

    async def _execute(
        self,
        stages: Sequence[Stage],
        artifacts: Artifacts,
        location: str,
        pdf_size_bytes: int,
    ) -> Artifacts:
        ctx = PipelineRunContext(
            plan=[stage.state for stage in stages],
            location=location,
            pdf_size_bytes=pdf_size_bytes,
        )
        self.observer.on_run_start(ctx.run_id, [stage.name for stage in stages], location, pdf_size_bytes)

        for stage in stages:
            ctx.advance(stage.state, stage.name)
            started = time.time()
            try:
                outputs = await stage.handler({key: artifacts[key] for key in stage.inputs}, ctx.run_id)
            except Exception as e:
                ctx.fail(stage.name, str(e), (time.time() - started) * 1000)
                self.observer.on_run_complete(ctx.summary())
                raise

            artifacts.update(outputs)
            duration_ms = (time.time() - started) * 1000
            output_chars = sum(len(outputs[key]) for key in stage.outputs)
            ctx.complete_stage(stage.name, duration_ms, output_chars)
            self.observer.on_stage_complete(ctx.run_id, stage.name, duration_ms, output_chars)

        ctx.finish()
        self.observer.on_run_complete(ctx.summary())
        return artifacts

    async def _invoke(self, stage: PipelineStage, call: Callable[[], Awaitable[str]], run_id: str) -> str:
        """
        One model call with timeout, bounded retry and response checks.

        Transport failures and rate limiting are retried with exponential
        backoff; everything else fails immediately.
        """
        attempt = 0
        while True:
            attempt += 1
            self.observer.on_stage_start(run_id, stage, attempt)
            try:
                text = await asyncio.wait_for(call(), timeout=self.config.request_timeout_seconds)
            except Exception as e:
                error = categorize_exception(e, stage.value)
                will_retry = error.retryable and attempt <= self.config.max_retries
                self.observer.on_stage_failed(run_id, stage, error, will_retry)
                if not will_retry:
                    if error is e:
                        raise
                    raise error from e
                await asyncio.sleep(self.config.retry_base_delay_seconds * (2 ** (attempt - 1)))
                continue

            return self._require_text(stage, text, run_id)

    def _require_text(self, stage: PipelineStage, text: Optional[str], run_id: str) -> str:
        if text is None or len(text.strip()) < self.config.min_response_chars:
            error = ModelEmptyResponseError(
                "No response generated from the AI model" if not text else "Generated response is too short or incomplete",
                stage=stage.value,
                details={"length": len(text or "")},
            )
            self.observer.on_stage_failed(run_id, stage, error, False)
            raise error
        self.logger.debug(f"{stage.value} response: {truncate_for_log(text)}")
        return text

    def _parse_visualization(self, text: str, run_id: str) -> VisualizationData:
        stage = PipelineStage.GENERATE_VISUALIZATION
        data = StrictJSONParser.extract_json(text, VisualizationData)
        if data is None:
            error = ModelMalformedResponseError(
                "Visualization response is not valid JSON",
                stage=stage.value,
                details={"preview": truncate_for_log(text, 120)},
            )
            self.observer.on_stage_failed(run_id, stage, error, False)
            raise error

        is_valid, visualization, error_message = StrictJSONParser.validate_against_schema(data, VisualizationData)
        if not is_valid:
            error = ModelMalformedResponseError(
                "Visualization response is missing chart or CSV data",
                stage=stage.value,
                details={"validation": error_message, "keys": sorted(data.keys())},
            )
            self.observer.on_stage_failed(run_id, stage, error, False)
            raise error
        return visualization

    @staticmethod
    def _build_result(artifacts: Artifacts) -> PipelineResult:
        return PipelineResult(
            static_data=artifacts["static_data"],
            dynamic_assumptions=artifacts["dynamic_assumptions"],
            manual_j_results=artifacts["manual_j_results"],
            chart_data=artifacts["chart_data"],
            csv_data=artifacts["csv_data"],
        )
