"""
终端输出 - 科目明细表与学期 GPA 汇总
"""

import math
from typing import List, Optional

from calculator import GPACalculator
from models import CalculatedGPA, EvaluationProject, Subject


# 官方 GPA 与计算结果之差超过该值才提示
GPA_DISCREPANCY_TOLERANCE = 0.01

_COLUMNS = (34, 16, 8, 8, 16)


def _format_row(cells) -> str:
    return "  ".join(f"{str(cell):<{width}}" for cell, width in zip(cells, _COLUMNS)).rstrip()


def subject_type_label(subject: Subject) -> str:
    label = "Weighted" if subject.is_weighted else "Regular"
    if subject.is_elective:
        label += " Elective"
    return label


def format_score(subject: Subject) -> str:
    text = f"{subject.score:.1f}"
    if subject.extra_credit > 0.0:
        text += f" (+{subject.extra_credit:.2f})"
    return text


def _project_rows(project: EvaluationProject, indent: str, show_tasks: bool) -> List[str]:
    gpa_text = "" if math.isnan(project.gpa) else f"{project.gpa:.2f}"
    rows = [_format_row((
        indent + project.name,
        f"{project.score:.1f}",
        project.level,
        gpa_text,
        f"{project.proportion:.2f}%",
    ))]

    if show_tasks:
        graded = [t for t in project.tasks if t.percentage is not None]
        if graded:
            task_weight = project.proportion / len(graded)
            for task in graded:
                rows.append(_format_row((
                    f"{indent}- {task.name}",
                    f"{task.score:.0f} / {task.total_score:.0f}",
                    f"{task.percentage:.2f}%",
                    "",
                    f"{indent}- {task_weight:.2f}%",
                )))

    for child in project.children:
        if child.score_is_null:
            continue
        rows.extend(_project_rows(child, indent + "- ", show_tasks))
    return rows


def render_subject(calculator: GPACalculator, subject: Subject, show_tasks: bool = False) -> str:
    """单科明细表：首行为科目汇总，其下为已评分的评价项目"""
    gpa_text = "N/A" if math.isnan(subject.gpa) else f"{subject.gpa:.2f}"
    header = _format_row((
        subject.name,
        format_score(subject),
        calculator.score_level(subject.score, subject.is_weighted),
        gpa_text,
        subject_type_label(subject),
    ))
    lines = [header, "-" * len(header)]
    for project in subject.evaluation_details:
        if project.score_is_null:
            continue
        lines.extend(_project_rows(project, "", show_tasks))
    if not subject.is_in_grade:
        lines.append("(not counted toward GPA)")
    return "\n".join(lines)


def _percent(value: float, maximum: float) -> str:
    if not maximum:
        return "-"
    return f"{value / maximum * 100:.1f}%"


def render_summary(result: CalculatedGPA, official_gpa: Optional[float] = None) -> str:
    """学期 GPA 汇总；结果为 NaN 时给出无法计算的提示"""
    if not result.is_defined:
        return "Unable to calculate GPA - no valid subjects found"

    lines = [
        f"Weighted GPA: {result.weighted_gpa:.2f} / {result.max_gpa:.2f} "
        f"({_percent(result.weighted_gpa, result.max_gpa)})",
        f"Unweighted GPA: {result.unweighted_gpa:.2f} / {result.unweighted_max_gpa:.2f} "
        f"({_percent(result.unweighted_gpa, result.unweighted_max_gpa)})",
        "",
    ]

    if official_gpa is None:
        lines.append("Official GPA not yet published")
    else:
        diff = result.weighted_gpa - official_gpa
        if abs(diff) > GPA_DISCREPANCY_TOLERANCE:
            sign = "+" if diff > 0 else ""
            lines.append(f"Official GPA: {official_gpa:.2f} ({sign}{diff:.2f})")
            lines.append("")
            lines.append(f"Found a discrepancy of {diff:.2f} points in the GPA calculation.")
            lines.append("This may be caused by special courses that are weighted differently "
                         "or excluded from the official GPA calculation.")
        else:
            lines.append(f"Official GPA: {official_gpa:.2f}")

    lines.append("")
    lines.append(f"Calculated GPA from {len(result.subjects)} subjects")
    return "\n".join(lines)
