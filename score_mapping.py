"""
分数 → GPA 映射表与课程分类

映射表（加权 / 非加权两组分数段）和课程分类名单在启动时从 YAML 文件
加载一次，之后只读。加载失败属于致命错误，抛出 ConfigError。
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Tuple, Union

import yaml


DEFAULT_MAPPING_FILE = Path(__file__).resolve().parent / "score_mapping.yaml"
MAPPING_ENV_VAR = "MYXB_SCORE_MAPPING"

# 关键词启发式，按顺序匹配。"AS " 带尾随空格，避免误中含 AS 的普通单词
WEIGHTED_KEYWORDS = ("A Level", "AS ", "AP")


class ConfigError(Exception):
    """映射表 / 分类配置缺失或格式错误"""


@dataclass(frozen=True)
class ScoreBand:
    """分数段，min_value 与 max_value 两端均为闭区间"""

    min_value: float
    max_value: float
    level: str
    gpa: float

    def contains(self, score: float) -> bool:
        return self.min_value <= score <= self.max_value


@dataclass(frozen=True)
class CourseClassification:
    """显式指定的加权 / 非加权课程名单，优先级高于关键词启发式"""

    weighted: FrozenSet[str] = field(default_factory=frozenset)
    unweighted: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ScoreMappings:
    """完整的映射配置。第一个分数段约定为最高 GPA 段"""

    weighted: Tuple[ScoreBand, ...]
    non_weighted: Tuple[ScoreBand, ...]
    classification: CourseClassification = field(default_factory=CourseClassification)

    def bands(self, is_weighted: bool) -> Tuple[ScoreBand, ...]:
        return self.weighted if is_weighted else self.non_weighted


def is_weighted_subject(subject_name: str, classification: CourseClassification) -> bool:
    """判断科目是否按加权 GPA 计算

    1. 在非加权名单中 → False
    2. 在加权名单中 → True
    3. 名称包含 "A Level" / "AS " / "AP" → True
    4. 其余 → False
    """
    if subject_name in classification.unweighted:
        return False
    if subject_name in classification.weighted:
        return True
    return any(keyword in subject_name for keyword in WEIGHTED_KEYWORDS)


def _parse_band(raw, list_name: str, index: int) -> ScoreBand:
    where = f"{list_name}[{index}]"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: 分数段必须是映射，实际为 {type(raw).__name__}")

    level = raw.get("level", raw.get("display_name"))
    missing = [k for k, v in (("min_value", raw.get("min_value")),
                              ("max_value", raw.get("max_value")),
                              ("level", level),
                              ("gpa", raw.get("gpa"))) if v is None]
    if missing:
        raise ConfigError(f"{where}: 缺少字段 {', '.join(missing)}")

    try:
        min_value = float(raw["min_value"])
        max_value = float(raw["max_value"])
        gpa = float(raw["gpa"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{where}: 数值字段无法解析 - {e}") from e

    if min_value > max_value:
        raise ConfigError(f"{where}: min_value ({min_value}) 大于 max_value ({max_value})")

    return ScoreBand(min_value=min_value, max_value=max_value, level=str(level), gpa=gpa)


def _parse_band_list(data: dict, list_name: str) -> Tuple[ScoreBand, ...]:
    raw_list = data.get(list_name)
    if raw_list is None:
        raise ConfigError(f"映射表缺少必要字段: {list_name}")
    if not isinstance(raw_list, list) or not raw_list:
        raise ConfigError(f"{list_name} 必须是非空列表")
    return tuple(_parse_band(raw, list_name, i) for i, raw in enumerate(raw_list))


def _parse_name_list(raw, list_name: str) -> FrozenSet[str]:
    if raw is None:
        return frozenset()
    if not isinstance(raw, list) or not all(isinstance(name, str) for name in raw):
        raise ConfigError(f"course_classification.{list_name} 必须是字符串列表")
    return frozenset(raw)


def _parse_classification(raw) -> CourseClassification:
    if raw is None:
        return CourseClassification()
    if not isinstance(raw, dict):
        raise ConfigError("course_classification 必须是映射")
    return CourseClassification(
        weighted=_parse_name_list(raw.get("weighted"), "weighted"),
        unweighted=_parse_name_list(raw.get("unweighted"), "unweighted"),
    )


def parse_score_mappings(data) -> ScoreMappings:
    """从已解析的配置字典构建 ScoreMappings"""
    if not isinstance(data, dict):
        raise ConfigError("映射表配置必须是映射（YAML/JSON 对象）")
    return ScoreMappings(
        weighted=_parse_band_list(data, "weighted"),
        non_weighted=_parse_band_list(data, "non-weighted"),
        classification=_parse_classification(data.get("course_classification")),
    )


def resolve_mapping_path(path: Union[str, Path, None] = None) -> Path:
    """命令行参数 > 环境变量 > 默认文件"""
    if path:
        return Path(path)
    env_path = os.environ.get(MAPPING_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_MAPPING_FILE


def load_score_mappings(path: Union[str, Path, None] = None) -> ScoreMappings:
    """加载映射表文件（YAML，JSON 亦可）

    Raises:
        ConfigError: 文件不存在、无法解析或字段不完整
    """
    mapping_path = resolve_mapping_path(path)
    if not mapping_path.exists():
        raise ConfigError(f"映射表文件 {mapping_path} 不存在")

    try:
        with open(mapping_path, "r", encoding="utf-8") as f:
            data = yaml.load(f, Loader=yaml.FullLoader)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"读取映射表文件失败: {e}") from e

    return parse_score_mappings(data)
