"""Tests for merge configuration models."""

import pytest
from pydantic import ValidationError

from excel_consolidator.models import ErrorDetail, MergeConfig


class TestMergeConfig:
    """Tests for MergeConfig parsing and validation."""

    def test_defaults(self) -> None:
        config = MergeConfig()

        assert config.include_total is True
        assert config.start_row == 2
        assert config.start_column == "A"
        assert config.end_column == "Z"
        assert config.include_signature is True
        assert config.start_column_index == 1
        assert config.end_column_index == 26

    def test_camel_case_keys(self) -> None:
        config = MergeConfig.model_validate(
            {
                "includeTotal": False,
                "startRow": 5,
                "startColumn": "C",
                "endColumn": "AB",
                "includeSignature": False,
            }
        )

        assert config.include_total is False
        assert config.start_row == 5
        assert config.start_column_index == 3
        assert config.end_column_index == 28
        assert config.include_signature is False

    def test_snake_case_keys(self) -> None:
        config = MergeConfig(start_column="b", end_column=" d ")
        assert (config.start_column, config.end_column) == ("B", "D")

    def test_dump_uses_camel_case(self) -> None:
        assert set(MergeConfig().model_dump(by_alias=True)) == {
            "includeTotal",
            "startRow",
            "startColumn",
            "endColumn",
            "includeSignature",
        }

    def test_single_column_window(self) -> None:
        config = MergeConfig(start_column="C", end_column="C")
        assert config.start_column_index == config.end_column_index == 3

    @pytest.mark.parametrize(
        "payload",
        [
            {"startRow": 0},
            {"startColumn": "1"},
            {"endColumn": "ABC"},
            {"endColumn": ""},
            {"startColumn": "AA", "endColumn": "Z"},
        ],
    )
    def test_invalid_values(self, payload: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            MergeConfig.model_validate(payload)

    def test_frozen(self) -> None:
        config = MergeConfig()
        with pytest.raises(ValidationError):
            config.start_row = 3  # type: ignore[misc]


def test_error_detail_excludes_empty_fields() -> None:
    detail = ErrorDetail(detail="No files provided", error_code="E1001")
    assert detail.model_dump(exclude_none=True) == {
        "detail": "No files provided",
        "error_code": "E1001",
    }
