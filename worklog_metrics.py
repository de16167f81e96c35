# worklog_metrics.py
# Normalizes time-tracking records and aggregates them by case, stage and operator.
import math
import numbers
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Mapping

import pandas as pd

# Monthly capacity assumed for one operator: 20 working days x 8 hours
HOURS_PER_OPERATOR = 20 * 8

ONE_MIN_ENTRY = 1
LONG_ENTRY_MINUTES = 300

SURPLUS = 'surplus'
SHORTAGE = 'shortage'
BALANCED = 'balanced'

LOW_UTILIZATION_PCT = 40
HIGH_UTILIZATION_PCT = 85

# Canonical field -> accepted input columns, first match wins
FIELD_COLUMNS: Dict[str, tuple] = {
    'case': ('Caso', 'Case'),
    'client': ('Cliente', 'Client'),
    'operator': ('Operador', 'Operator'),
    'stage': ('Esteira', 'Stage'),
    'minutes': ('Tempo trabalhado (min)', 'Duration (min)', 'Minutes'),
}
TEXT_FIELDS = ('case', 'client', 'operator', 'stage')
COLUMNS = list(FIELD_COLUMNS)

# Longer entries are treated as unreadable; keeps int64 totals far from overflow
MAX_ENTRY_MINUTES = 10 ** 9

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


# --------------------------- Normalization --------------------------------

def parse_minutes(value) -> int:
    """Parse a duration the lenient way: leading integer, anything else is 0.

    Values above MAX_ENTRY_MINUTES count as unreadable and also give 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, numbers.Integral):
        minutes = int(value)
    elif isinstance(value, numbers.Real):
        if not math.isfinite(value):
            return 0
        minutes = int(value)
    else:
        match = _LEADING_INT.match(str(value))
        if not match:
            return 0
        digits = match.group(1).lstrip('+-').lstrip('0')
        if len(digits) > len(str(MAX_ENTRY_MINUTES)):
            return 0
        minutes = int(match.group(1))
    if minutes > MAX_ENTRY_MINUTES:
        return 0
    return max(minutes, 0)


def _pick(record: Mapping, field: str):
    for column in FIELD_COLUMNS[field]:
        if column in record:
            return record[column]
    return None


def _text(value) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ''
    return str(value)


def normalize_records(records: Iterable[Mapping]) -> pd.DataFrame:
    """Project raw records onto the canonical columns with integer minutes."""
    rows = []
    for record in records:
        row = {field: _text(_pick(record, field)) for field in TEXT_FIELDS}
        row['minutes'] = parse_minutes(_pick(record, 'minutes'))
        rows.append(row)
    df = pd.DataFrame(rows, columns=COLUMNS)
    df['minutes'] = df['minutes'].astype('int64')
    return df


# --------------------------- Helpers ---------------------------------------

def _with_flags(df: pd.DataFrame) -> pd.DataFrame:
    flagged = df.copy()
    flagged['is_one_min'] = flagged['minutes'] == ONE_MIN_ENTRY
    flagged['is_long'] = flagged['minutes'] > LONG_ENTRY_MINUTES
    return flagged


def _ratio(numerator: pd.Series, denominator: pd.Series) -> pd.Series:
    # zero denominators give 0.0, never NaN or inf
    return (numerator / denominator.where(denominator != 0)).fillna(0.0).astype('float64')


def _safe_div(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def _distinct(values: Iterable[str]) -> tuple:
    return tuple(dict.fromkeys(v for v in values if v))


def round_half_up(value: float, places: int) -> Decimal:
    """Round the exact binary value half-up, so 12.5 -> 13 and 0.25 -> 0.3 at one place."""
    quantum = Decimal(1).scaleb(-places)
    return Decimal(float(value)).quantize(quantum, rounding=ROUND_HALF_UP)


# --------------------------- Aggregations ----------------------------------

def aggregate_cases(df: pd.DataFrame) -> pd.DataFrame:
    flagged = _with_flags(df)
    flagged['first_name'] = flagged['operator'].str.split().str[0].fillna('')

    grouped = flagged.groupby('case', sort=False)
    out = grouped.agg(
        client=('client', 'first'),
        total_minutes=('minutes', 'sum'),
        entries=('minutes', 'count'),
        one_min_count=('is_one_min', 'sum'),
        long_count=('is_long', 'sum'),
    ).reset_index()

    first_names = {case: _distinct(names) for case, names in grouped['first_name']}
    out.insert(4, 'operators', out['case'].map(first_names))
    out = out.astype({'total_minutes': 'int64', 'entries': 'int64',
                      'one_min_count': 'int64', 'long_count': 'int64'})

    # stable sort keeps first-appearance order between equal totals
    return out.sort_values('total_minutes', ascending=False, kind='stable', ignore_index=True)


def aggregate_stages(df: pd.DataFrame) -> pd.DataFrame:
    flagged = _with_flags(df)
    out = flagged.groupby('stage', sort=False).agg(
        case_count=('case', 'nunique'),
        total_minutes=('minutes', 'sum'),
        entries=('minutes', 'count'),
        one_min_count=('is_one_min', 'sum'),
        long_count=('is_long', 'sum'),
    ).reset_index()
    out = out.astype({'case_count': 'int64', 'total_minutes': 'int64', 'entries': 'int64',
                      'one_min_count': 'int64', 'long_count': 'int64'})

    out['avg_minutes'] = _ratio(out['total_minutes'], out['entries'])
    out['total_hours'] = (out['total_minutes'] / 60).astype('float64')
    out['one_min_pct'] = _ratio(out['one_min_count'], out['entries']) * 100
    out['long_pct'] = _ratio(out['long_count'], out['entries']) * 100
    return out


def aggregate_operators(df: pd.DataFrame) -> pd.DataFrame:
    flagged = _with_flags(df)
    out = flagged.groupby('operator', sort=False).agg(
        total_minutes=('minutes', 'sum'),
        entries=('minutes', 'count'),
        one_min_count=('is_one_min', 'sum'),
        case_count=('case', 'nunique'),
    ).reset_index()
    out = out.astype({'total_minutes': 'int64', 'entries': 'int64',
                      'one_min_count': 'int64', 'case_count': 'int64'})

    out['avg_minutes'] = _ratio(out['total_minutes'], out['entries'])
    out['one_min_pct'] = _ratio(out['one_min_count'], out['entries']) * 100
    return out.sort_values('total_minutes', ascending=False, kind='stable', ignore_index=True)


# --------------------------- Efficiency ------------------------------------

@dataclass(frozen=True)
class EfficiencySummary:
    total_minutes: int
    total_hours: float
    operator_count: int
    hours_per_operator: int
    capacity_hours: int
    utilization_pct: float
    filtered_minutes: int
    filtered_hours: float
    filtered_utilization_pct: float
    verdict: str


def classify_utilization(utilization_pct: float) -> str:
    if utilization_pct < LOW_UTILIZATION_PCT:
        return SURPLUS
    if utilization_pct > HIGH_UTILIZATION_PCT:
        return SHORTAGE
    return BALANCED


def analyze_efficiency(df: pd.DataFrame, hours_per_operator: int = HOURS_PER_OPERATOR) -> EfficiencySummary:
    """Compare logged hours with the estimated team capacity.

    Operators with a blank name are not counted. With no operators the
    capacity is 0 h and both utilization figures are reported as 0.0.
    """
    total_minutes = int(df['minutes'].sum())
    total_hours = total_minutes / 60
    operator_count = int(df.loc[df['operator'] != '', 'operator'].nunique())
    capacity_hours = operator_count * hours_per_operator
    utilization = _safe_div(total_hours, capacity_hours) * 100

    # Same figure without 1-minute and >300-minute entries
    typical = (df['minutes'] > ONE_MIN_ENTRY) & (df['minutes'] <= LONG_ENTRY_MINUTES)
    filtered_minutes = int(df.loc[typical, 'minutes'].sum())
    filtered_hours = filtered_minutes / 60
    filtered_utilization = _safe_div(filtered_hours, capacity_hours) * 100

    return EfficiencySummary(
        total_minutes=total_minutes,
        total_hours=total_hours,
        operator_count=operator_count,
        hours_per_operator=hours_per_operator,
        capacity_hours=capacity_hours,
        utilization_pct=utilization,
        filtered_minutes=filtered_minutes,
        filtered_hours=filtered_hours,
        filtered_utilization_pct=filtered_utilization,
        verdict=classify_utilization(utilization),
    )


# --------------------------- Report container ------------------------------

@dataclass(frozen=True)
class WorklogReport:
    cases: pd.DataFrame
    stages: pd.DataFrame
    operators: pd.DataFrame
    efficiency: EfficiencySummary
    record_count: int


def build_report(df: pd.DataFrame, hours_per_operator: int = HOURS_PER_OPERATOR) -> WorklogReport:
    """Run the four aggregations over one normalized frame."""
    return WorklogReport(
        cases=aggregate_cases(df),
        stages=aggregate_stages(df),
        operators=aggregate_operators(df),
        efficiency=analyze_efficiency(df, hours_per_operator),
        record_count=len(df),
    )

