"""
Record Schemas
==============
Pydantic models for the per-document outcome of the extraction pipeline
and the statistics aggregated over a batch.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ── Per-document outcome ─────────────────────────────────
class ExtractedRecord(BaseModel):
    """
    Tariff and consumption data decoded from one bill's comparator link.

    Field order is the column order of the CSV report.
    """

    model_config = ConfigDict(frozen=True)

    cnmc_url: str
    postal_code: Optional[str] = None
    contracted_power_p1: float = 0.0
    contracted_power_p2: float = 0.0
    max_power_p1: float = 0.0
    max_power_p2: float = 0.0
    consumption_p1: float = 0.0
    consumption_p2: float = 0.0
    consumption_p3: float = 0.0
    contract_start_date: Optional[str] = None
    contract_end_date: Optional[str] = None
    billing_start_date: Optional[str] = None
    billing_end_date: Optional[str] = None
    invoice_date: Optional[str] = None
    power_cost: float = 0.0
    energy_cost: float = 0.0
    total_amount: float = 0.0
    additional_services_cost: float = 0.0
    other_costs_with_tax: float = 0.0
    other_costs_without_tax: float = 0.0
    discount: float = 0.0
    power_rate_p1: float = 0.0
    power_rate_p2: float = 0.0
    energy_rate_p1: float = 0.0
    energy_rate_p2: float = 0.0
    energy_rate_p3: float = 0.0
    cups: Optional[str] = None
    tariff_code: Optional[str] = None
    marketer_code: Optional[str] = None
    green_energy: bool = False
    has_permanence: bool = False
    filename: Optional[str] = None
    filepath: Optional[str] = None


class ProcessingFailure(BaseModel):
    """Why a single document produced no record."""

    model_config = ConfigDict(frozen=True)

    doc_id: str
    filename: str
    reason: str
    error_type: str


# A document yields exactly one of these.
DocumentResult = Union[ExtractedRecord, ProcessingFailure]

REPORT_FIELDS: tuple[str, ...] = tuple(ExtractedRecord.model_fields)


# ── Batch aggregate ──────────────────────────────────────
class DateRange(BaseModel):
    """Earliest billing start and latest billing end (string comparison)."""

    model_config = ConfigDict(frozen=True)

    start: str = ""
    end: str = ""


class SummaryStats(BaseModel):
    """Statistics over the successfully extracted records of a batch."""

    model_config = ConfigDict(frozen=True)

    total_files_processed: int
    total_consumption_p1: float
    total_amount: float
    average_monthly_cost: float
    date_range: DateRange = Field(default_factory=DateRange)
    failed_files: int = 0
