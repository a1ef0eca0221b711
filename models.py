"""
数据模型定义

API 原始记录（学期、科目、评价项目树、学期动态成绩）以及计算结果
（Subject / CalculatedGPA）。
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional


def _to_float(value, default: float = 0.0) -> float:
    """把 API 字段解析为浮点数，空值或非法值返回 default"""
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_optional_float(value) -> Optional[float]:
    """可空分数：None / 空串 / 非数值 均视为未评分"""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class Semester:
    """学期"""

    id: int
    year: int
    semester: int
    is_now: bool = False
    start_date: str = ""
    end_date: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.year}-{self.year + 1} Semester {self.semester}"

    @classmethod
    def from_raw_data(cls, raw: dict):
        """从原始API数据创建学期对象"""
        return cls(
            id=_to_int(raw.get("id")),
            year=_to_int(raw.get("year")),
            semester=_to_int(raw.get("semester")),
            is_now=bool(raw.get("isNow", False)),
            start_date=raw.get("startDate") or "",
            end_date=raw.get("endDate") or "",
        )


@dataclass
class SubjectSimple:
    """科目列表中的一项（只有 ID 和名称）"""

    id: int
    name: str

    @classmethod
    def from_raw_data(cls, raw: dict):
        return cls(id=_to_int(raw.get("id")), name=raw.get("name") or "")


@dataclass
class SubjectDetail:
    """学习任务详情中携带的科目信息"""

    subject_name: str
    class_id: int
    subject_id: int
    semester_id: int

    @classmethod
    def from_raw_data(cls, raw: dict):
        return cls(
            subject_name=raw.get("subjectName") or "",
            class_id=_to_int(raw.get("classId")),
            subject_id=_to_int(raw.get("subjectId")),
            semester_id=_to_int(raw.get("schoolSemesterId")),
        )


@dataclass
class LearningTask:
    """学习任务 / 考试，仅用于展示，不参与总分计算"""

    name: str
    score: Optional[float]  # None 表示尚未评分
    total_score: float

    @property
    def percentage(self) -> Optional[float]:
        """得分百分比；未评分或总分非正时返回 None"""
        if self.score is None or self.total_score <= 0:
            return None
        return self.score / self.total_score * 100.0

    @classmethod
    def from_raw_data(cls, raw: dict):
        return cls(
            name=raw.get("name") or "",
            score=_to_optional_float(raw.get("score")),
            total_score=_to_float(raw.get("totalScore")),
        )


@dataclass
class EvaluationProject:
    """评价项目（树节点），children 为嵌套的子项目

    proportion 是占父节点的百分比，归一化时会被原地改写。
    """

    name: str
    proportion: float
    score: float = 0.0
    score_is_null: bool = False
    level: str = ""
    gpa: float = math.nan
    tasks: List[LearningTask] = field(default_factory=list)
    children: List["EvaluationProject"] = field(default_factory=list)

    @classmethod
    def from_raw_data(cls, raw: dict):
        """从原始API数据递归创建评价项目树"""
        score = _to_optional_float(raw.get("score"))
        return cls(
            name=raw.get("evaluationProjectEName") or raw.get("evaluationProjectName") or "",
            proportion=_to_float(raw.get("proportion")),
            score=score if score is not None else 0.0,
            score_is_null=bool(raw.get("scoreIsNull", score is None)),
            level=raw.get("scoreLevel") or "",
            gpa=_to_float(raw.get("gpa"), default=math.nan),
            tasks=[LearningTask.from_raw_data(t) for t in raw.get("learningTaskAndExamList") or []],
            children=[cls.from_raw_data(p) for p in raw.get("evaluationProjectList") or []],
        )

    @classmethod
    def list_from_raw_data(cls, raw_list) -> List["EvaluationProject"]:
        return [cls.from_raw_data(p) for p in raw_list or []]


@dataclass
class SubjectDynamicScore:
    """学期动态成绩中的单科记录（官方分数 / 是否计入 GPA）"""

    class_id: int
    subject_id: int
    subject_name: str
    is_in_grade: bool
    subject_score: Optional[float]
    subject_total_score: float
    class_name: str = ""
    score_mapping_id: int = 0

    @property
    def official_score(self) -> Optional[float]:
        """换算到百分制的官方分数；分数缺失或总分非正时为 None"""
        if self.subject_score is None or self.subject_total_score <= 0:
            return None
        return self.subject_score / self.subject_total_score * 100.0

    @classmethod
    def from_raw_data(cls, raw: dict):
        return cls(
            class_id=_to_int(raw.get("classId")),
            subject_id=_to_int(raw.get("subjectId")),
            subject_name=raw.get("subjectName") or "",
            is_in_grade=bool(raw.get("isInGrade", True)),
            subject_score=_to_optional_float(raw.get("subjectScore")),
            subject_total_score=_to_float(raw.get("subjectTotalScore")),
            class_name=raw.get("className") or "",
            score_mapping_id=_to_int(raw.get("scoreMappingId")),
        )


@dataclass(frozen=True)
class Subject:
    """单科计算结果，创建后不再修改"""

    id: int
    name: str
    class_id: int
    score: float  # 最终分数，保留一位小数
    gpa: float
    unweighted_gpa: float
    max_gpa: float
    unweighted_max_gpa: float
    official_score: Optional[float] = None
    extra_credit: float = 0.0
    weight: float = 1.0  # 选修课 0.5
    is_weighted: bool = False
    is_elective: bool = False
    is_in_grade: bool = True
    evaluation_details: List[EvaluationProject] = field(default_factory=list)


@dataclass(frozen=True)
class CalculatedGPA:
    """学期 GPA 汇总；没有可计入的科目时四个数值均为 NaN"""

    weighted_gpa: float
    max_gpa: float
    unweighted_gpa: float
    unweighted_max_gpa: float
    subjects: List[Subject] = field(default_factory=list)

    @property
    def is_defined(self) -> bool:
        return not math.isnan(self.weighted_gpa)
