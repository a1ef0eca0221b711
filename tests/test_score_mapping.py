"""
映射表加载与课程分类测试
"""

import json

import pytest

from score_mapping import (
    DEFAULT_MAPPING_FILE,
    MAPPING_ENV_VAR,
    ConfigError,
    CourseClassification,
    ScoreBand,
    is_weighted_subject,
    load_score_mappings,
    parse_score_mappings,
    resolve_mapping_path,
)


class TestParseScoreMappings:
    """parse_score_mappings / load_score_mappings"""

    def test_parse_when_valid_then_keeps_band_order(self, mapping_data):
        mappings = parse_score_mappings(mapping_data)
        assert len(mappings.weighted) == 13
        assert mappings.weighted[0] == ScoreBand(97.0, 100.0, "A+", 4.8)
        assert mappings.non_weighted[-1].level == "F"
        assert "Linear Algebra" in mappings.classification.weighted
        assert "AP Seminar Lab" in mappings.classification.unweighted

    def test_parse_when_display_name_alias_then_used_as_level(self):
        data = {
            "weighted": [{"min_value": 0, "max_value": 100, "display_name": "P", "gpa": 1}],
            "non-weighted": [{"min_value": 0, "max_value": 100, "level": "P", "gpa": 1}],
        }
        mappings = parse_score_mappings(data)
        assert mappings.weighted[0].level == "P"
        assert mappings.classification == CourseClassification()

    def test_parse_when_not_mapping_then_raises(self):
        with pytest.raises(ConfigError):
            parse_score_mappings(["weighted"])

    @pytest.mark.parametrize("missing", ["weighted", "non-weighted"])
    def test_parse_when_band_list_missing_then_raises(self, mapping_data, missing):
        del mapping_data[missing]
        with pytest.raises(ConfigError, match=missing):
            parse_score_mappings(mapping_data)

    def test_parse_when_band_list_empty_then_raises(self, mapping_data):
        mapping_data["weighted"] = []
        with pytest.raises(ConfigError, match="非空列表"):
            parse_score_mappings(mapping_data)

    def test_parse_when_band_field_missing_then_raises(self, mapping_data):
        del mapping_data["non-weighted"][2]["gpa"]
        with pytest.raises(ConfigError, match=r"non-weighted\[2\]"):
            parse_score_mappings(mapping_data)

    def test_parse_when_bound_not_numeric_then_raises(self, mapping_data):
        mapping_data["weighted"][0]["min_value"] = "high"
        with pytest.raises(ConfigError):
            parse_score_mappings(mapping_data)

    def test_parse_when_min_above_max_then_raises(self, mapping_data):
        mapping_data["weighted"][0]["min_value"] = 101
        with pytest.raises(ConfigError, match="min_value"):
            parse_score_mappings(mapping_data)

    def test_parse_when_classification_not_list_then_raises(self, mapping_data):
        mapping_data["course_classification"]["weighted"] = "Linear Algebra"
        with pytest.raises(ConfigError, match="course_classification.weighted"):
            parse_score_mappings(mapping_data)

    def test_load_when_file_missing_then_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="不存在"):
            load_score_mappings(tmp_path / "nope.yaml")

    def test_load_when_invalid_yaml_then_raises(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("weighted: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_score_mappings(path)

    def test_load_when_json_file_then_parsed(self, tmp_path, mapping_data):
        path = tmp_path / "mapping.json"
        path.write_text(json.dumps(mapping_data), encoding="utf-8")
        mappings = load_score_mappings(path)
        assert mappings.non_weighted[0].gpa == 4.3

    def test_load_when_default_file_then_first_band_is_highest(self):
        mappings = load_score_mappings(DEFAULT_MAPPING_FILE)
        for bands in (mappings.weighted, mappings.non_weighted):
            assert bands[0].gpa == max(b.gpa for b in bands)
        assert "Multivariable Calculus" in mappings.classification.weighted

    def test_resolve_path_when_env_set_then_used(self, monkeypatch, tmp_path):
        monkeypatch.setenv(MAPPING_ENV_VAR, str(tmp_path / "env.yaml"))
        assert resolve_mapping_path() == tmp_path / "env.yaml"
        assert resolve_mapping_path(tmp_path / "arg.yaml") == tmp_path / "arg.yaml"

    def test_resolve_path_when_nothing_set_then_default(self, monkeypatch):
        monkeypatch.delenv(MAPPING_ENV_VAR, raising=False)
        assert resolve_mapping_path() == DEFAULT_MAPPING_FILE


class TestIsWeightedSubject:
    """课程分类：名单优先，然后关键词"""

    @pytest.fixture
    def classification(self):
        return CourseClassification(
            weighted=frozenset({"Linear Algebra"}),
            unweighted=frozenset({"AP Seminar Lab", "Linear Algebra Review"}),
        )

    @pytest.mark.parametrize("name", [
        "AP Calculus BC",
        "A Level Physics",
        "AS Chemistry",
        "Linear Algebra",
    ])
    def test_weighted_names(self, classification, name):
        assert is_weighted_subject(name, classification) is True

    @pytest.mark.parametrize("name", [
        "English 10",
        "GLASS Art",      # 含 "AS" 但没有尾随空格
        "Chemistry AS",   # 结尾的 "AS" 也不算
        "ap biology",     # 大小写敏感
        "",
    ])
    def test_unweighted_names(self, classification, name):
        assert is_weighted_subject(name, classification) is False

    def test_unweighted_list_overrides_keyword(self, classification):
        assert is_weighted_subject("AP Seminar Lab", classification) is False

    def test_unweighted_list_checked_before_weighted_list(self):
        both = CourseClassification(weighted=frozenset({"Music"}), unweighted=frozenset({"Music"}))
        assert is_weighted_subject("Music", both) is False

    def test_repeated_calls_are_stable(self, classification):
        results = {is_weighted_subject("AP Statistics", classification) for _ in range(3)}
        assert results == {True}
