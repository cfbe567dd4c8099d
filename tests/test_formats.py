"""Tests for document loading, validation and the report model."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from openapi_gql.errors import InvalidInputError
from openapi_gql.formats.openapi import get_valid_oas3, load_spec
from openapi_gql.formats.report import Report, TranslationWarning


class TestLoadSpec:
    def test_yaml(self, tmp_path: Path, users_spec: dict[str, Any]) -> None:
        path = tmp_path / "api.yaml"
        path.write_text(yaml.safe_dump(users_spec))
        assert load_spec(path) == users_spec

    def test_json(self, tmp_path: Path, users_spec: dict[str, Any]) -> None:
        path = tmp_path / "api.json"
        path.write_text(json.dumps(users_spec))
        assert load_spec(str(path)) == users_spec

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(InvalidInputError):
            load_spec(path)

    def test_unparsable(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("openapi: [unclosed\n")
        with pytest.raises(InvalidInputError):
            load_spec(path)


class TestGetValidOas3:
    def test_returns_document(self, users_spec: dict[str, Any]) -> None:
        assert get_valid_oas3(users_spec) is users_spec

    def test_numeric_version(self) -> None:
        document = {"openapi": 3.0, "info": {"title": "x", "version": 1}, "paths": {}}
        assert get_valid_oas3(document) is document

    @pytest.mark.parametrize(
        "document",
        [
            {"openapi": "2.0", "info": {"title": "x"}, "paths": {}},
            {"info": {"title": "x"}, "paths": {}},
            {"openapi": "3.0.3", "info": {}, "paths": {}},
            {"openapi": "3.0.3", "info": {"title": "x"}, "paths": []},
        ],
    )
    def test_invalid(self, document: dict[str, Any]) -> None:
        with pytest.raises(InvalidInputError):
            get_valid_oas3(document)

    def test_swagger_converter(self, users_spec: dict[str, Any]) -> None:
        assert get_valid_oas3({"swagger": "2.0"}, converter=lambda _: users_spec) is users_spec


class TestReport:
    def test_aliases(self) -> None:
        report = Report(numOps=2, num_queries_created=1)
        report.warnings.append(TranslationWarning(type="NameCollision", message="m", mitigation="x"))
        dumped = report.model_dump(by_alias=True)
        assert dumped["numOps"] == 2
        assert dumped["numQueriesCreated"] == 1
        assert dumped["warnings"] == [{"type": "NameCollision", "message": "m", "mitigation": "x"}]
