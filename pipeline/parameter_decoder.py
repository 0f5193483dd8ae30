"""
Parameter Decoder
=================
Turns the comparator link's query string into an ExtractedRecord.

Decoding never fails: a missing or unparseable number becomes ``0.0`` and
a missing text field stays ``None``, so a bill with partial data still
contributes a row.
"""

import math
import re
from typing import Any, Optional
from urllib.parse import parse_qsl, urlsplit

from schemas.records import ExtractedRecord

# Sentinel the comparator uses for "no permanence end date".
NO_PERMANENCE = "0000-00-00"

# ── Query key → record field ─────────────────────────────
NUMERIC_PARAMS: dict[str, str] = {
    "contracted_power_p1": "pP1",
    "contracted_power_p2": "pP2",
    "max_power_p1": "pmaxP1",
    "max_power_p2": "pmaxP2",
    "consumption_p1": "caP1",
    "consumption_p2": "caP2",
    "consumption_p3": "caP3",
    "power_cost": "impPot",
    "energy_cost": "impEner",
    "total_amount": "imp",
    "additional_services_cost": "impSA",
    "other_costs_with_tax": "impOtrosConIE",
    "other_costs_without_tax": "impOtrosSinIE",
    "discount": "dto",
    "power_rate_p1": "prP1",
    "power_rate_p2": "prP2",
    "energy_rate_p1": "prE1",
    "energy_rate_p2": "prE2",
    "energy_rate_p3": "prE3",
}

TEXT_PARAMS: dict[str, str] = {
    "postal_code": "cp",
    "contract_start_date": "iniA",
    "contract_end_date": "finContrato",
    "billing_start_date": "iniF",
    "billing_end_date": "finF",
    "invoice_date": "fFact",
    "cups": "cups",
    "tariff_code": "tc",
    "marketer_code": "com",
}

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_number(raw: Optional[str]) -> float:
    """Parse the leading decimal of ``raw``; anything unusable is 0.0."""
    if not raw:
        return 0.0
    match = _LEADING_NUMBER.match(raw)
    if match is None:
        return 0.0
    value = float(match.group(0))
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return value


def query_params(uri: str) -> dict[str, str]:
    """Return the query parameters of ``uri``; the last value of a repeated key wins."""
    try:
        query = urlsplit(uri).query
    except ValueError:
        return {}
    return dict(parse_qsl(query, keep_blank_values=True))


def decode_parameters(uri: str) -> ExtractedRecord:
    """Decode a comparator URI into a record without file metadata."""
    params = query_params(uri)

    fields: dict[str, Any] = {"cnmc_url": uri}
    for field_name, key in NUMERIC_PARAMS.items():
        fields[field_name] = parse_number(params.get(key))
    for field_name, key in TEXT_PARAMS.items():
        fields[field_name] = params.get(key)

    fields["green_energy"] = params.get("verde") == "true"
    # A missing finPen also means permanence applies.
    fields["has_permanence"] = params.get("finPen") != NO_PERMANENCE

    return ExtractedRecord(**fields)
