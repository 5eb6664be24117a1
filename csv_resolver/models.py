from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator

from .rules import DEFAULT_SEARCH_MOVES, DEFAULT_SEARCH_SECONDS
from .solver import ResolveOptions, SearchBudget


class ResolveRequest(BaseModel):
    fixed_column_count: Optional[int] = Field(default=None, ge=1)
    absorbing_column: Optional[int] = Field(default=None, ge=0)
    header: bool = True
    max_moves: Optional[int] = Field(default=DEFAULT_SEARCH_MOVES, ge=0)
    max_seconds: Optional[float] = Field(default=DEFAULT_SEARCH_SECONDS, ge=0)

    @model_validator(mode="after")
    def check_absorbing_column(self) -> "ResolveRequest":
        if (
            self.absorbing_column is not None
            and self.fixed_column_count is not None
            and self.absorbing_column >= self.fixed_column_count
        ):
            raise ValueError("absorbing_column must be smaller than fixed_column_count")
        return self

    def to_options(self) -> ResolveOptions:
        return ResolveOptions(
            fixed_column_count=self.fixed_column_count,
            search_budget=SearchBudget(max_moves=self.max_moves, max_seconds=self.max_seconds),
            header=self.header,
            absorbing_column=self.absorbing_column,
        )


class ReportSummary(BaseModel):
    rows: int = 0
    columns: Optional[int] = None
    warnings: int = 0
    errors: int = 0


class ReportItem(BaseModel):
    row: Optional[int] = None
    column: Optional[int] = None
    issue: str
    value: Optional[str] = None
    action: str


class ResolutionReport(BaseModel):
    summary: ReportSummary
    resolution: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[ReportItem] = Field(default_factory=list)
    errors: List[ReportItem] = Field(default_factory=list)


class ResolveResponse(BaseModel):
    rows: List[List[str]]
    report: ResolutionReport

class HealthResponse(BaseModel):
    ok: bool = True
