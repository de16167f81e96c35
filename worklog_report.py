# worklog_report.py
# Turns the aggregated work-log figures into text or HTML report sections.
import html
import sys
from pathlib import Path
from typing import Callable, List, Tuple

import pandas as pd

from worklog_metrics import (
    BALANCED,
    LONG_ENTRY_MINUTES,
    SHORTAGE,
    SURPLUS,
    EfficiencySummary,
    WorklogReport,
    round_half_up,
)

CASE_TITLE = 'Case Analysis'
STAGE_TITLE = 'Stage Analysis'
OPERATOR_TITLE = 'Operator Analysis'
EFFICIENCY_TITLE = 'Efficiency Analysis'

CASE_HEADERS = ['Case', 'Client', 'Total Time (min)', 'Entries', 'Operators', 'Anomalies']
STAGE_HEADERS = ['Stage', '# Cases', 'Avg Time/Entry (min)', 'Total Hours', '% 1 min',
                 f'% Long (>{LONG_ENTRY_MINUTES} min)']
OPERATOR_HEADERS = ['Operator', 'Total Time (min)', 'Entries', 'Avg Time/Entry (min)', '% 1 min', '# Cases']


def fixed(value: float, places: int) -> str:
    return str(round_half_up(value, places))


def percent(value: float) -> str:
    return f"{fixed(value, 0)}%"


def percent_1(value: float) -> str:
    return f"{fixed(value, 1)}%"


def format_anomalies(one_min: int, long: int) -> str:
    """Describe a case's anomalies, 1-minute entries first; "None" if there are none."""
    parts = []
    if one_min > 0:
        parts.append(f"{one_min}x 1 min")
    if long > 0:
        parts.append(f"{long}x long (>{LONG_ENTRY_MINUTES} min)")
    return '; '.join(parts) if parts else 'None'


# --------------------------- Tables ----------------------------------------

def case_table(cases: pd.DataFrame) -> pd.DataFrame:
    rows = [
        [r.case, r.client, int(r.total_minutes), int(r.entries), ', '.join(r.operators),
         format_anomalies(int(r.one_min_count), int(r.long_count))]
        for r in cases.itertuples(index=False)
    ]
    return pd.DataFrame(rows, columns=CASE_HEADERS)


def stage_table(stages: pd.DataFrame) -> pd.DataFrame:
    rows = [
        [r.stage, int(r.case_count), fixed(r.avg_minutes, 1), fixed(r.total_hours, 1),
         percent(r.one_min_pct), percent(r.long_pct)]
        for r in stages.itertuples(index=False)
    ]
    return pd.DataFrame(rows, columns=STAGE_HEADERS)


def operator_table(operators: pd.DataFrame) -> pd.DataFrame:
    rows = [
        [r.operator, int(r.total_minutes), int(r.entries), fixed(r.avg_minutes, 1),
         percent(r.one_min_pct), int(r.case_count)]
        for r in operators.itertuples(index=False)
    ]
    return pd.DataFrame(rows, columns=OPERATOR_HEADERS)


# --------------------------- Efficiency ------------------------------------

def efficiency_panel(summary: EfficiencySummary) -> List[Tuple[str, str]]:
    return [
        ('Total Workload', f"{fixed(summary.total_hours, 1)} h"),
        ('Operators', str(summary.operator_count)),
        ('Estimated Total Capacity', f"{summary.capacity_hours} h"),
        ('Utilization Rate', percent_1(summary.utilization_pct)),
    ]


def recommendation_paragraphs(summary: EfficiencySummary,
                              emphasize: Callable[[str], str] = str) -> List[str]:
    """Headline, narrative and recommendation for the utilization verdict.

    Only the surplus narrative quotes the utilization without anomalies, to
    show that it stays low even when edge-case entries are dropped.
    """
    utilization = emphasize(percent_1(summary.utilization_pct))
    label = emphasize('Recommendation:')

    if summary.verdict == SURPLUS:
        filtered = emphasize(percent_1(summary.filtered_utilization_pct))
        return [
            'There is spare capacity.',
            f"With a utilization of only {utilization}, the team is significantly underused. "
            f"Even after removing anomalies (1-minute and >{LONG_ENTRY_MINUTES}-minute entries), "
            f"utilization stays at {filtered}. "
            "This suggests that current capacity exceeds demand.",
            f"{label} Consider reducing the team by 1 or 2 operators and reallocating them to other "
            "functions, or use the idle capacity to invest in training, process automation and "
            "continuous improvement.",
        ]
    if summary.verdict == SHORTAGE:
        return [
            'There may be a shortage.',
            f"With a utilization of {utilization}, the team is operating close to its maximum capacity. "
            "This can lead to bottlenecks, delays and operator burnout, especially during demand peaks.",
            f"{label} Monitor deadlines and team morale closely. Consider hiring one more operator to "
            "absorb the workload, protect quality and keep the working environment sustainable.",
        ]
    if summary.verdict == BALANCED:
        return [
            'The team looks well sized.',
            f"A utilization of {utilization} indicates a good balance between workload and team capacity. "
            "The operation looks efficient, with room to absorb demand swings without overloading operators.",
            f"{label} Keep monitoring the current KPIs. Focus on internal processes, such as reducing "
            "1-minute entries (which may point to misuse of the time tracker) and investigating "
            "excessively long entries to find training opportunities.",
        ]
    raise ValueError(f"Unknown utilization verdict: {summary.verdict!r}")


# --------------------------- Text ------------------------------------------

def _text_table(table: pd.DataFrame) -> str:
    if table.empty:
        return 'None'
    return table.to_string(index=False)


def _text_efficiency(summary: EfficiencySummary) -> str:
    panel = efficiency_panel(summary)
    width = max(len(label) for label, _ in panel)
    lines = [f"{label.ljust(width)} : {value}" for label, value in panel]
    lines.append('')
    lines.append('Capacity analysis and recommendation')
    lines.extend(recommendation_paragraphs(summary))
    return '\n'.join(lines)


def render_text(report: WorklogReport) -> str:
    sections = [
        (CASE_TITLE, _text_table(case_table(report.cases))),
        (STAGE_TITLE, _text_table(stage_table(report.stages))),
        (OPERATOR_TITLE, _text_table(operator_table(report.operators))),
        (EFFICIENCY_TITLE, _text_efficiency(report.efficiency)),
    ]
    return '\n\n'.join(f"=== {title} ===\n{body}" for title, body in sections)


# --------------------------- HTML ------------------------------------------

def _html_section(title: str, content: str, is_table: bool = True) -> str:
    if is_table:
        content = f'<div class="table-wrapper">{content}</div>'
    return (
        '<section class="report-section">\n'
        f'<h3>{html.escape(title)}</h3>\n'
        f'{content}\n'
        '</section>'
    )


def _html_table(table: pd.DataFrame) -> str:
    if table.empty:
        return '<p>None</p>'
    return table.to_html(index=False, escape=True, border=0, classes='report-table')


def _html_efficiency(summary: EfficiencySummary) -> str:
    metrics = '\n'.join(
        f'<div class="metric"><p class="metric-label">{html.escape(label)}</p>'
        f'<p class="metric-value">{html.escape(value)}</p></div>'
        for label, value in efficiency_panel(summary)
    )
    paragraphs = recommendation_paragraphs(summary, emphasize=lambda s: f"<strong>{html.escape(s)}</strong>")
    headline, body = paragraphs[0], paragraphs[1:]
    body_html = '\n'.join(f'<p>{p}</p>' for p in body)
    return (
        f'<div class="metric-panel">\n{metrics}\n</div>\n'
        f'<div class="recommendation verdict-{summary.verdict}">\n'
        '<h4>Capacity analysis and recommendation</h4>\n'
        f'<p class="verdict">{html.escape(headline)}</p>\n'
        f'{body_html}\n'
        '</div>'
    )


def render_html(report: WorklogReport) -> str:
    sections = [
        _html_section(CASE_TITLE, _html_table(case_table(report.cases))),
        _html_section(STAGE_TITLE, _html_table(stage_table(report.stages))),
        _html_section(OPERATOR_TITLE, _html_table(operator_table(report.operators))),
        _html_section(EFFICIENCY_TITLE, _html_efficiency(report.efficiency), is_table=False),
    ]
    return (
        '<!DOCTYPE html>\n<html>\n<head>\n<meta charset="utf-8">\n'
        '<title>Work log analysis</title>\n</head>\n<body>\n'
        + '\n'.join(sections)
        + '\n</body>\n</html>\n'
    )


# --------------------------- CSV export ------------------------------------

def write_summary_csvs(report: WorklogReport, output_summary_csv: str) -> List[str]:
    """Save each table into its own CSV, named after output_summary_csv with a suffix."""
    base = Path(output_summary_csv)
    suffix = base.suffix or '.csv'
    summary = report.efficiency
    efficiency = pd.DataFrame(
        efficiency_panel(summary) + [
            ('Utilization Without Anomalies', percent_1(summary.filtered_utilization_pct)),
            ('Verdict', summary.verdict),
        ],
        columns=['Metric', 'Value'],
    )
    tables = {
        'cases': case_table(report.cases),
        'stages': stage_table(report.stages),
        'operators': operator_table(report.operators),
        'efficiency': efficiency,
    }
    written = []
    for name, table in tables.items():
        path = base.with_name(f"{base.stem}_{name}{suffix}")
        table.to_csv(path, index=False)
        written.append(str(path))
        print(f"[INFO] {name} table written to {path}", file=sys.stderr)
    return written
