"""
Pipeline Contracts - Strict Pydantic models for inter-stage data transfer
Ensures type safety and validation between pipeline stages
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from enum import Enum


class PipelineStage(str, Enum):
    """Named stages of the Manual J chain, in execution order"""
    EXTRACT_STATIC_DATA = "extract_static_data"
    GENERATE_DYNAMIC_ASSUMPTIONS = "generate_dynamic_assumptions"
    CALCULATE_RESULTS = "calculate_results"
    GENERATE_VISUALIZATION = "generate_visualization"


class PipelineState(str, Enum):
    """Run lifecycle; FAILED is reachable from any in-progress state"""
    IDLE = "idle"
    EXTRACTING_STATIC_DATA = "extracting_static_data"
    GENERATING_ASSUMPTIONS = "generating_assumptions"
    CALCULATING_RESULTS = "calculating_results"
    GENERATING_VISUALIZATION = "generating_visualization"
    DONE = "done"
    FAILED = "failed"


class StageStatus(str, Enum):
    """Status of a pipeline stage"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


def _require_text(v: str, field_name: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return v


class CalculationRequest(BaseModel):
    """Immutable input to a single pipeline run"""
    model_config = ConfigDict(frozen=True)

    pdf_bytes: bytes
    location: str

    @field_validator('pdf_bytes')
    @classmethod
    def validate_pdf_not_empty(cls, v):
        if not v:
            raise ValueError("PDF content is empty")
        return v

    @field_validator('location')
    @classmethod
    def validate_location(cls, v):
        return _require_text(v, "location").strip()


class VisualizationData(BaseModel):
    """Output from Stage 4: chart image and CSV export"""
    model_config = ConfigDict(populate_by_name=True)

    chart_data: str = Field(..., alias="chartData", description="Encoded chart image")
    csv_data: str = Field(..., alias="csvData")

    @field_validator('chart_data', 'csv_data')
    @classmethod
    def validate_non_empty(cls, v, info):
        return _require_text(v, info.field_name)


class PipelineResult(BaseModel):
    """Aggregate of all stage outputs; camelCase on the wire"""
    model_config = ConfigDict(populate_by_name=True)

    static_data: str = Field(..., alias="staticData")
    dynamic_assumptions: str = Field(..., alias="dynamicAssumptions")
    manual_j_results: str = Field(..., alias="manualJResults")
    chart_data: str = Field(..., alias="chartData")
    csv_data: str = Field(..., alias="csvData")

    @field_validator('static_data', 'dynamic_assumptions', 'manual_j_results', 'chart_data', 'csv_data')
    @classmethod
    def validate_non_empty(cls, v, info):
        return _require_text(v, info.field_name)

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)


class StageRecord(BaseModel):
    """Timing and outcome of one stage within a run"""
    stage: PipelineStage
    status: StageStatus = StageStatus.PENDING
    started_at: Optional[datetime] = None
    duration_ms: float = Field(0.0, ge=0)
    output_chars: int = Field(0, ge=0)
    error: Optional[str] = None


class RunSummary(BaseModel):
    """Snapshot of a run for observers and logs"""
    run_id: str
    state: PipelineState
    location: str
    pdf_size_bytes: int = Field(..., ge=0)
    stages: List[StageRecord] = Field(default_factory=list)
    failed_stage: Optional[PipelineStage] = None
    error: Optional[str] = None
    total_duration_ms: float = Field(0.0, ge=0)
