_AWS_TAG_KEY_MAX_LENGTH = 128
_AWS_TAG_VALUE_MAX_LENGTH = 256
_AWS_MAX_TAGS = 50


def validate_aws_tags(tags: dict[str, str]) -> dict[str, str]:
    """Validate user supplied resource tags against AWS tag limits.

    Returns the tags unchanged so the call can be chained into a merge.
    Empty values are allowed by AWS and accepted here; keys may not be empty
    or use the reserved ``aws:`` prefix.
    """
    if len(tags) > _AWS_MAX_TAGS:
        msg = f"too many resource tags ({len(tags)}), AWS allows at most {_AWS_MAX_TAGS}"
        raise ValueError(msg)
    for key, value in tags.items():
        if not key:
            msg = "resource tag key must not be empty"
            raise ValueError(msg)
        if key.lower().startswith("aws:"):
            msg = f"resource tag key uses reserved 'aws:' prefix: {key!r}"
            raise ValueError(msg)
        if len(key) > _AWS_TAG_KEY_MAX_LENGTH:
            msg = f"resource tag key exceeds AWS 128-character limit ({len(key)} chars): {key!r}"
            raise ValueError(msg)
        if value is None:
            msg = f"resource tag value must not be None: key={key}"
            raise ValueError(msg)
        if not isinstance(value, str):
            msg = f"resource tag value must be a string, got {type(value).__name__}: key={key}"
            raise ValueError(msg)
        if len(value) > _AWS_TAG_VALUE_MAX_LENGTH:
            msg = f"resource tag value exceeds AWS 256-character limit ({len(value)} chars): key={key}"
            raise ValueError(msg)
    return tags


def ssh_command(public_ip: str, key_name: str | None, user: str) -> str:
    if key_name:
        return f"ssh -i ~/.ssh/{key_name}.pem {user}@{public_ip}"

    return f"ssh {user}@{public_ip}"
