import pytest

from k3snode.pulumi_resources.lib import ssh_command, validate_aws_tags


def test_validate_aws_tags_normal() -> None:
    tags = {"team": "web", "cost-center": "1234", "Name": "shop01-prod"}
    assert validate_aws_tags(tags) is tags


def test_validate_aws_tags_empty_dict() -> None:
    assert validate_aws_tags({}) == {}


def test_validate_aws_tags_empty_value_allowed() -> None:
    assert validate_aws_tags({"key": ""}) == {"key": ""}


def test_validate_aws_tags_empty_key() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        validate_aws_tags({"": "value"})


def test_validate_aws_tags_aws_reserved_prefix() -> None:
    with pytest.raises(ValueError, match="reserved 'aws:' prefix"):
        validate_aws_tags({"aws:foo": "bar"})


def test_validate_aws_tags_aws_reserved_prefix_any_case() -> None:
    with pytest.raises(ValueError, match="reserved 'aws:' prefix"):
        validate_aws_tags({"AWS:foo": "bar"})


def test_validate_aws_tags_key_too_long() -> None:
    with pytest.raises(ValueError, match="128-character limit"):
        validate_aws_tags({"k" * 129: "value"})


def test_validate_aws_tags_value_too_long() -> None:
    with pytest.raises(ValueError, match="256-character limit"):
        validate_aws_tags({"key": "v" * 257})


def test_validate_aws_tags_none_value() -> None:
    with pytest.raises(ValueError, match="must not be None"):
        validate_aws_tags({"key": None})  # type: ignore[dict-item]


def test_validate_aws_tags_non_string_value() -> None:
    with pytest.raises(ValueError, match="must be a string, got int: key=cost-center"):
        validate_aws_tags({"cost-center": 1234})  # type: ignore[dict-item]


def test_validate_aws_tags_too_many() -> None:
    with pytest.raises(ValueError, match="too many resource tags"):
        validate_aws_tags({f"key{i}": "v" for i in range(51)})


def test_ssh_command_with_key() -> None:
    assert ssh_command("203.0.113.10", "shop01-key", "ubuntu") == "ssh -i ~/.ssh/shop01-key.pem ubuntu@203.0.113.10"


def test_ssh_command_without_key() -> None:
    assert ssh_command("203.0.113.10", None, "ubuntu") == "ssh ubuntu@203.0.113.10"
