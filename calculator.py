"""
GPA 计算核心

流程：每门科目 归一化占比 → 汇总分数 → 查表得到 GPA；
所有科目处理完后再按学分权重汇总学期 GPA。
"""

import copy
import math
from typing import Iterable, List, Optional, Sequence

from models import CalculatedGPA, EvaluationProject, Subject, SubjectDetail, SubjectDynamicScore
from score_mapping import ScoreMappings, is_weighted_subject


# 按半学分计入的人文课程（名称不含选修关键词）
HALF_CREDIT_SUBJECTS = ("C-Humanities",)

ELECTIVE_WEIGHT = 0.5
REGULAR_WEIGHT = 1.0


def round_one_decimal(value: float) -> float:
    """保留一位小数，四舍五入（.5 远离零），NaN / inf 原样返回"""
    if not math.isfinite(value):
        return value
    return math.copysign(math.floor(abs(value) * 10 + 0.5), value) / 10


def adjust_proportions(projects: Sequence[EvaluationProject], parent_proportion: float = 100.0) -> None:
    """原地归一化评价项目占比

    同级中只有已评分（score_is_null 为 False）的项目参与分配，它们的占比
    之和被缩放为 parent_proportion；之后以每个项目的新占比递归处理子项目。
    同级已评分占比之和为 0 时本级不做任何处理。
    """
    total_proportion = sum(p.proportion for p in projects if not p.score_is_null)
    if total_proportion == 0:
        return

    for project in projects:
        if not project.score_is_null:
            project.proportion = project.proportion / total_proportion * parent_proportion

    for project in projects:
        if project.children:
            adjust_proportions(project.children, project.proportion)


def calculate_subject_score(projects: Iterable[EvaluationProject]) -> float:
    """按归一化后的占比汇总分数（不取整）

    有子项目的节点由子项目贡献分数，叶子节点贡献 score * proportion / 100。
    必须在 adjust_proportions 之后调用。
    """
    total_score = 0.0
    for project in projects:
        if project.score_is_null:
            continue
        if project.children:
            total_score += calculate_subject_score(project.children)
        else:
            total_score += project.score * project.proportion / 100.0
    return total_score


class GPACalculator:
    """基于映射表的 GPA 计算器，映射表在构造时注入"""

    def __init__(self, mappings: ScoreMappings):
        self.mappings = mappings

    def is_weighted(self, subject_name: str) -> bool:
        return is_weighted_subject(subject_name, self.mappings.classification)

    def score_to_gpa(self, score: float, is_weighted: bool) -> float:
        """分数保留一位小数后查表，无匹配分数段时返回 NaN"""
        rounded = round_one_decimal(score)
        for band in self.mappings.bands(is_weighted):
            if band.contains(rounded):
                return band.gpa
        return math.nan

    def score_level(self, score: float, is_weighted: bool) -> str:
        """查表得到等级名称，无匹配时返回空串

        注意：这里用未取整的分数比较，与 score_to_gpa 不同。
        """
        for band in self.mappings.bands(is_weighted):
            if band.contains(score):
                return band.level
        return ""

    def max_gpa(self, is_weighted: bool) -> float:
        """满绩点，即该组第一个分数段的 GPA"""
        bands = self.mappings.bands(is_weighted)
        if not bands:
            return math.nan
        return bands[0].gpa

    def process_subject(
        self,
        detail: SubjectDetail,
        projects: Sequence[EvaluationProject],
        dynamic_info: Optional[SubjectDynamicScore] = None,
        is_elective: bool = False,
    ) -> Subject:
        """计算单科分数与 GPA

        传入的评价项目树不会被修改，归一化在副本上进行，副本保存在
        Subject.evaluation_details 中用于展示。有官方分数时以官方分数为准，
        并记录与计算分数之差（extra_credit）。
        """
        evaluation_details: List[EvaluationProject] = copy.deepcopy(list(projects))

        weight = REGULAR_WEIGHT
        if is_elective or detail.subject_name in HALF_CREDIT_SUBJECTS:
            weight = ELECTIVE_WEIGHT
            is_elective = True

        is_weighted = self.is_weighted(detail.subject_name)

        adjust_proportions(evaluation_details)
        score = calculate_subject_score(evaluation_details)

        is_in_grade = True
        official_score = None
        extra_credit = 0.0
        if dynamic_info is not None:
            is_in_grade = dynamic_info.is_in_grade
            official_score = dynamic_info.official_score
            if official_score is not None:
                extra_credit = official_score - round_one_decimal(score)
                score = official_score

        score = round_one_decimal(score)

        return Subject(
            id=detail.subject_id,
            name=detail.subject_name,
            class_id=detail.class_id,
            score=score,
            gpa=self.score_to_gpa(score, is_weighted),
            unweighted_gpa=self.score_to_gpa(score, False),
            max_gpa=self.max_gpa(is_weighted),
            unweighted_max_gpa=self.max_gpa(False),
            official_score=official_score,
            extra_credit=extra_credit,
            weight=weight,
            is_weighted=is_weighted,
            is_elective=is_elective,
            is_in_grade=is_in_grade,
            evaluation_details=evaluation_details,
        )

    def calculate_gpa(self, subjects: Iterable[Subject]) -> CalculatedGPA:
        """按学分权重汇总学期 GPA

        跳过不计入 GPA 或 GPA 为 NaN 的科目；没有剩余科目时结果全为 NaN。
        非加权满绩点直接取映射表常量，不做加权平均。
        """
        total_weight = 0.0
        total_weighted_gpa = 0.0
        total_unweighted_gpa = 0.0
        total_max_gpa = 0.0
        valid_subjects = []

        for subject in subjects:
            if not subject.is_in_grade or math.isnan(subject.gpa):
                continue
            valid_subjects.append(subject)
            total_weight += subject.weight
            total_weighted_gpa += subject.gpa * subject.weight
            total_unweighted_gpa += subject.unweighted_gpa * subject.weight
            total_max_gpa += subject.max_gpa * subject.weight

        if total_weight > 0:
            return CalculatedGPA(
                weighted_gpa=total_weighted_gpa / total_weight,
                max_gpa=total_max_gpa / total_weight,
                unweighted_gpa=total_unweighted_gpa / total_weight,
                unweighted_max_gpa=self.max_gpa(False),
                subjects=valid_subjects,
            )

        return CalculatedGPA(
            weighted_gpa=math.nan,
            max_gpa=math.nan,
            unweighted_gpa=math.nan,
            unweighted_max_gpa=math.nan,
            subjects=valid_subjects,
        )
