"""
Prompt Templates

Placeholder substitution for prompt text and chat messages.
Placeholders are written ``{name}``.
"""

import json
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ...core.exceptions import ValidationException

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URL = re.compile(r"^https?://")

Message = Tuple[str, str]


def _substitute(text: str, variables: Sequence[str], values: Mapping[str, Any]) -> str:
    for key in variables:
        if key not in values:
            raise ValidationException(f"Missing value for variable: {key}", field=key)
        text = text.replace(f"{{{key}}}", str(values[key]))
    return text


def create_template(
    template: str, variables: Sequence[str] = ()
) -> Callable[[Mapping[str, Any]], str]:
    """
    Create a simple template.

    Every listed variable must be supplied; all of its occurrences are replaced.

    Example:
        >>> greet = create_template("Hi {name}", ["name"])
        >>> greet({"name": "Ada"})
        'Hi Ada'
    """
    variables = tuple(variables)

    def render(values: Mapping[str, Any]) -> str:
        return _substitute(template, variables, values)

    return render


def create_message_template(
    messages: Sequence[Message], variables: Sequence[str] = ()
) -> Callable[[Mapping[str, Any]], List[Message]]:
    """Template over ``(role, content)`` pairs; only content is substituted."""
    messages = [tuple(message) for message in messages]
    variables = tuple(variables)

    def render(values: Mapping[str, Any]) -> List[Message]:
        return [(role, _substitute(content, variables, values)) for role, content in messages]

    return render


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


VALIDATORS: Dict[str, Callable[[Any], bool]] = {
    "string": lambda value: isinstance(value, str),
    "number": _is_number,
    "boolean": lambda value: isinstance(value, bool),
    "array": lambda value: isinstance(value, (list, tuple)),
    "email": lambda value: isinstance(value, str) and bool(_EMAIL.match(value)),
    "url": lambda value: isinstance(value, str) and bool(_URL.match(value)),
}


def _to_number(value: Any) -> Union[int, float]:
    number = float(value)
    return int(number) if number.is_integer() else number


def _to_iso_date(value: Any) -> str:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif _is_number(value):
        # Epoch milliseconds
        moment = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


FORMATTERS: Dict[str, Callable[[Any], Any]] = {
    "lowercase": lambda value: value.lower(),
    "uppercase": lambda value: value.upper(),
    "trim": lambda value: value.strip(),
    "number": _to_number,
    "json": lambda value: json.dumps(value, separators=(",", ":")),
    "date": _to_iso_date,
}


def _process_field(key: str, config: Mapping[str, Any], values: Mapping[str, Any]) -> Any:
    value = values.get(key)

    if value is None:
        if config.get("default") is not None:
            value = config["default"]
        elif config.get("required", True):
            raise ValidationException(f"Missing required value for {key}", field=key)
        else:
            return None

    type_name = config.get("type")
    if type_name:
        validator = VALIDATORS.get(type_name)
        if validator is None:
            raise ValidationException(f"Unknown type for {key}: {type_name}", field=key)
        if not validator(value):
            raise ValidationException(
                f"Invalid type for {key}: expected {type_name}", field=key
            )

    validate = config.get("validate")
    if validate is not None and not validate(value):
        raise ValidationException(f"Validation failed for {key}", field=key)

    fmt = config.get("format")
    if fmt is not None:
        formatter = fmt if callable(fmt) else FORMATTERS.get(fmt)
        if formatter is not None:
            try:
                value = formatter(value)
            except (TypeError, ValueError, AttributeError) as e:
                raise ValidationException(
                    f"Formatting failed for {key}: {e}", field=key
                )

    return value


def create_advanced_template(
    template: str, schema: Optional[Mapping[str, Mapping[str, Any]]] = None
) -> Callable[[Mapping[str, Any]], str]:
    """
    Create a template with per-field validation and formatting.

    Each schema entry may define ``type`` (a key of VALIDATORS), ``default``,
    ``required`` (defaults to True), ``validate`` (predicate) and ``format``
    (a key of FORMATTERS or a callable). Placeholders with no processed value
    are left as written.

    Raises:
        ValidationException: On a missing required value, a type mismatch,
            a failed custom validation or a failed formatter
    """
    schema = dict(schema or {})

    def render(values: Mapping[str, Any]) -> str:
        processed = {
            key: _process_field(key, config, values) for key, config in schema.items()
        }

        def replace(match: "re.Match[str]") -> str:
            value = processed.get(match.group(1))
            return match.group(0) if value is None else str(value)

        return _PLACEHOLDER.sub(replace, template)

    return render
