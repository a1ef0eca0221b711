import sys
from pathlib import Path

import pytest

# 把仓库根目录加入 sys.path，便于直接导入平铺的模块
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())

from calculator import GPACalculator  # noqa: E402
from models import EvaluationProject, SubjectDetail  # noqa: E402
from score_mapping import parse_score_mappings  # noqa: E402


def _bands(gpas):
    edges = [
        (97.0, 100.0, "A+"), (93.0, 96.9, "A"), (90.0, 92.9, "A-"),
        (87.0, 89.9, "B+"), (83.0, 86.9, "B"), (80.0, 82.9, "B-"),
        (77.0, 79.9, "C+"), (73.0, 76.9, "C"), (70.0, 72.9, "C-"),
        (67.0, 69.9, "D+"), (63.0, 66.9, "D"), (60.0, 62.9, "D-"),
        (0.0, 59.9, "F"),
    ]
    return [
        {"min_value": lo, "max_value": hi, "level": level, "gpa": gpa}
        for (lo, hi, level), gpa in zip(edges, gpas)
    ]


WEIGHTED_GPAS = [4.8, 4.5, 4.2, 3.9, 3.6, 3.3, 3.0, 2.7, 2.4, 2.1, 1.8, 1.5, 0.0]
NON_WEIGHTED_GPAS = [4.3, 4.0, 3.7, 3.3, 3.0, 2.7, 2.3, 2.0, 1.7, 1.3, 1.0, 0.7, 0.0]


@pytest.fixture
def mapping_data():
    """映射表原始配置（与默认 score_mapping.yaml 一致）"""
    return {
        "weighted": _bands(WEIGHTED_GPAS),
        "non-weighted": _bands(NON_WEIGHTED_GPAS),
        "course_classification": {
            "weighted": ["Linear Algebra", "Multivariable Calculus"],
            "unweighted": ["AP Seminar Lab"],
        },
    }


@pytest.fixture
def mappings(mapping_data):
    return parse_score_mappings(mapping_data)


@pytest.fixture
def calculator(mappings):
    return GPACalculator(mappings)


def project(name, proportion, score=None, children=None):
    """构造评价项目节点，score 为 None 表示未评分"""
    return EvaluationProject(
        name=name,
        proportion=proportion,
        score=0.0 if score is None else score,
        score_is_null=score is None,
        gpa=0.0,
        children=list(children or []),
    )


def detail(name="English 10", subject_id=1, class_id=10, semester_id=100):
    return SubjectDetail(subject_name=name, class_id=class_id, subject_id=subject_id, semester_id=semester_id)
