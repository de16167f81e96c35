# analyze_logs.py
# Reads a time-tracking log (JSON or CSV) and reports on cases, stages, operators and capacity.
import argparse
import io
import json
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from worklog_metrics import HOURS_PER_OPERATOR, WorklogReport, build_report, normalize_records
from worklog_report import render_html, render_text, write_summary_csvs

HOURS_ENV_VAR = 'WORKLOG_HOURS_PER_OPERATOR'


class WorklogError(Exception):
    """Base class for errors that abort an analysis run."""


class InputUnreadableError(WorklogError):
    pass


class InputMalformedError(WorklogError):
    pass


# --------------------------- Input ------------------------------------------

def load_records(input_path: str) -> List[Dict]:
    """Read records from .json (array of objects) or .csv (one record per row)."""
    p = Path(input_path)
    try:
        text = p.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise InputUnreadableError(f"Could not read {input_path}: {e}") from e

    suffix = p.suffix.lower()
    if suffix == '.json':
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InputMalformedError(f"{input_path} is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise InputMalformedError(f"{input_path} must contain a JSON array of objects")
        for i, item in enumerate(data):
            if not isinstance(item, dict):
                raise InputMalformedError(f"{input_path}: item {i} is not a JSON object")
        return data
    elif suffix == '.csv':
        try:
            df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
        except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
            raise InputMalformedError(f"{input_path} is not a valid CSV file: {e}") from e
        return df.to_dict('records')
    else:
        raise InputMalformedError("Unsupported file type. Use .json or .csv")


# --------------------------- Analysis ---------------------------------------

def analyze(records: List[Dict], hours_per_operator: int = HOURS_PER_OPERATOR) -> WorklogReport:
    df = normalize_records(records)
    return build_report(df, hours_per_operator)


def analyze_file(input_path: str, hours_per_operator: int = HOURS_PER_OPERATOR) -> WorklogReport:
    records = load_records(input_path)
    print(f"[INFO] Loaded {len(records)} records from {input_path}", file=sys.stderr)
    return analyze(records, hours_per_operator)


def hours_per_operator_from_env(environ: Optional[Dict[str, str]] = None) -> int:
    """Monthly hours per operator, overridable through WORKLOG_HOURS_PER_OPERATOR."""
    environ = os.environ if environ is None else environ
    raw = environ.get(HOURS_ENV_VAR)
    if not raw:
        return HOURS_PER_OPERATOR
    try:
        hours = int(raw)
    except ValueError:
        hours = 0
    if hours <= 0:
        print(f"[WARN] Ignoring {HOURS_ENV_VAR}={raw!r}; using {HOURS_PER_OPERATOR} h", file=sys.stderr)
        return HOURS_PER_OPERATOR
    return hours


# --------------------------- CLI --------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Summarize a time-tracking log by case, stage, operator and team capacity.")
    parser.add_argument('input', nargs='?', default='worklog_sample.json', help="Input file (.json array of records or .csv)")
    parser.add_argument('-o', '--output', help="Write the report to this file instead of stdout")
    parser.add_argument('--format', choices=('text', 'html'), default='text', help="Report format (default: text)")
    parser.add_argument('--summary-csv', help="Also save the tables as CSV files named after this path")
    args = parser.parse_args(argv)

    try:
        report = analyze_file(args.input, hours_per_operator_from_env())
    except WorklogError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    rendered = render_html(report) if args.format == 'html' else render_text(report)

    # CSVs first, so a failed write never follows a printed report
    try:
        if args.summary_csv:
            write_summary_csvs(report, args.summary_csv)
        if args.output:
            Path(args.output).write_text(rendered, encoding='utf-8')
            print(f"[INFO] Report written to {args.output}", file=sys.stderr)
    except OSError as e:
        print(f"[ERROR] Could not write output: {e}", file=sys.stderr)
        return 1

    if not args.output:
        print(rendered)
    return 0


if __name__ == '__main__':
    sys.exit(main())
