"""Unit tests for stack document loading."""

import pytest

from stack_curator.errors import ConfigurationError
from stack_curator.loader import load_stack, parse_stack
from tests.consts import TEST_ROLE_ARN

VALID_STACK = f"""
name: test-stack
region: us-east-1
role-arn: {TEST_ROLE_ARN}
filters:
  - name: tag:Stack
    values: [test-stack]
groups:
  - name: databases
    filters:
      - name: tag:Group
        values: [db]
  - name: web
    filters:
      - name: tag:Group
        values: [web, api]
"""


def document(**overrides):
    doc = {
        "name": "test-stack",
        "filters": [{"name": "tag:Stack", "values": ["test-stack"]}],
        "groups": [{"name": "g1", "filters": [{"name": "tag:Group", "values": ["g1"]}]}],
    }
    doc.update(overrides)
    return doc


class TestLoadStack:
    """YAML files on disk"""

    def test_valid_document(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text(VALID_STACK)

        stack = load_stack(path)

        assert stack.name == "test-stack"
        assert stack.region == "us-east-1"
        assert stack.role_arn == TEST_ROLE_ARN
        assert [g.name for g in stack.groups] == ["databases", "web"]
        assert stack.groups[1].filters[0].values == ["web", "api"]
        assert [f.name for f in stack.group_filters(stack.groups[0])] == ["tag:Stack", "tag:Group"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="cannot read"):
            load_stack(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text("name: [unterminated\n")
        with pytest.raises(ConfigurationError, match="cannot parse"):
            load_stack(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text("")
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_stack(path)


class TestParseStack:
    """Document validation"""

    def test_optional_fields_default_to_none(self):
        stack = parse_stack(document())
        assert stack.region is None
        assert stack.role_arn is None

    @pytest.mark.parametrize("overrides", [
        dict(groups=[]),
        dict(filters=[]),
        dict(name=""),
        dict(groups=[{"name": "g1", "filters": []}]),
        dict(filters=[{"name": "tag:Stack", "values": []}]),
        dict(filters=[{"name": "tag:Stack", "values": [""]}]),
        dict(filters=[{"name": "", "values": ["x"]}]),
        dict(unexpected="value"),
    ])
    def test_invalid_documents(self, overrides):
        with pytest.raises(ConfigurationError, match="invalid stack document"):
            parse_stack(document(**overrides))

    def test_missing_groups(self):
        doc = document()
        del doc["groups"]
        with pytest.raises(ConfigurationError, match="groups"):
            parse_stack(doc)

    def test_document_instances_are_ignored(self):
        doc = document(groups=[{
            "name": "g1",
            "filters": [{"name": "tag:Group", "values": ["g1"]}],
            "instances": [{"instance_id": "i-bogus"}],
        }])

        stack = parse_stack(doc)

        assert stack.groups[0].instances == []
