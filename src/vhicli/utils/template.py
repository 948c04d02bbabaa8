"""Variable substitution for cloud-init user-data templates.

Placeholders look like ``{{%name%}}``. Values come from a ``key:value``
string as given to ``--ci-data``.
"""

from pydantic import BaseModel, Field

from ..api.exceptions import ValidationError

VARIABLE_PREFIX = "{{%"
VARIABLE_SUFFIX = "%}}"


class TemplateValidation(BaseModel):
    """Result of checking a template against a set of values."""

    valid: bool = True
    missing_variables: list[str] = Field(default_factory=list)
    unused_variables: list[str] = Field(default_factory=list)


def extract_variables(template: str) -> list[str]:
    """Return the unique placeholder names of *template* in order of appearance."""
    variables: list[str] = []
    start_idx = 0
    while True:
        start = template.find(VARIABLE_PREFIX, start_idx)
        if start == -1:
            break
        end = template.find(VARIABLE_SUFFIX, start)
        if end == -1:
            break
        name = template[start + len(VARIABLE_PREFIX):end]
        if name and name not in variables:
            variables.append(name)
        start_idx = end + len(VARIABLE_SUFFIX)
    return variables


def validate_template(template: str, values: dict[str, str]) -> TemplateValidation:
    """Compare the placeholders of *template* with the provided *values*.

    The template is valid when every placeholder has a value. Values with no
    placeholder are reported as unused but do not invalidate it.
    """
    template_vars = extract_variables(template)
    missing = [v for v in template_vars if v not in values]
    unused = [k for k in values if k not in template_vars]
    return TemplateValidation(
        valid=not missing,
        missing_variables=missing,
        unused_variables=unused,
    )


def replace_variables(template: str, values: dict[str, str]) -> str:
    """Substitute every ``{{%key%}}`` occurrence with its value."""
    result = template
    for key, value in values.items():
        result = result.replace(f"{VARIABLE_PREFIX}{key}{VARIABLE_SUFFIX}", value)
    return result


def _split_quoted(raw: str) -> list[str]:
    """Split on commas that are not inside a quoted value.

    A quote only opens at the start of a value, right after the ``:``, so
    apostrophes inside unquoted values are taken literally.
    """
    fields = []
    current: list[str] = []
    quote = None
    for char in raw:
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"') and "".join(current).rstrip().endswith(":"):
            quote = char
        elif char == ",":
            fields.append("".join(current))
            current = []
            continue
        current.append(char)
    if current:
        fields.append("".join(current))
    return fields


def _parse_pair(pair: str) -> tuple[str, str]:
    if ":" not in pair:
        raise ValidationError(f"invalid key-value pair format: {pair} (expected key:value)")
    key, value = pair.split(":", 1)
    key = key.strip()
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    if not key:
        raise ValidationError(f"empty key in pair: {pair}")
    return key, value


def parse_key_value_string(raw: str) -> dict[str, str]:
    """Parse ``key:value,key:value`` into a dict.

    Values may contain colons. Quotes protect commas inside a value
    (``name:"a, b"`` or ``name:'a, b'``) and are stripped.

    Raises:
        ValidationError: On a pair without ``:`` or with an empty key
    """
    result: dict[str, str] = {}
    if not raw:
        return result
    pairs = _split_quoted(raw)
    for pair in pairs:
        key, value = _parse_pair(pair)
        result[key] = value
    return result


def render_key_value_string(values: dict[str, str]) -> str:
    """Serialize a mapping back into ``key:value,key:value`` form."""
    return ",".join(f"{key}:{value}" for key, value in values.items())


def render_template(template: str, values: dict[str, str]) -> str:
    """Validate strictly and substitute.

    Both missing and unused variables are errors; nothing is substituted
    unless the variable sets match exactly.

    Raises:
        ValidationError: Listing missing and unused variables
    """
    validation = validate_template(template, values)
    problems = []
    if validation.missing_variables:
        problems.append(f"missing vars {validation.missing_variables}")
    if validation.unused_variables:
        problems.append(f"unused vars {validation.unused_variables}")
    if problems:
        raise ValidationError(f"template validation failed: {'; '.join(problems)}")
    return replace_variables(template, values)
