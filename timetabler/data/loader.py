"""Load and validate problem input from JSON."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from .models import InvalidInputError, ProblemInput, SolveConfig


PROBLEM_SECTIONS = ("courses", "faculty", "student_groups", "rooms", "timeslots")


def load_problem(path: Union[str, Path]) -> ProblemInput:
    """
    Load a problem description from a JSON file.

    Args:
        path: Path to the JSON file

    Returns:
        Validated ProblemInput

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidInputError: If the file isn't valid JSON or fails validation
    """
    problem, _ = load_problem_with_config(path)
    return problem


def load_problem_with_config(
    path: Union[str, Path],
) -> tuple[ProblemInput, Optional[SolveConfig]]:
    """
    Load a problem and its optional ``config`` block from a JSON file.

    Returns:
        Tuple of (problem, config); config is None when the file has none
    """
    path = Path(path)

    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"{path}: invalid JSON ({e})") from e

    return parse_problem_with_config(data)


def parse_problem(data: dict[str, Any]) -> ProblemInput:
    """Validate a problem dictionary (camelCase or snake_case keys)."""
    problem, _ = parse_problem_with_config(data)
    return problem


def parse_problem_with_config(
    data: dict[str, Any],
) -> tuple[ProblemInput, Optional[SolveConfig]]:
    """Validate a problem dictionary and split off its ``config`` block."""
    if not isinstance(data, dict):
        raise InvalidInputError("Problem input must be a JSON object")

    converted = _convert_keys_to_snake_case(data)
    config_data = converted.pop("config", None)

    unknown = sorted(set(converted) - set(PROBLEM_SECTIONS))
    if unknown:
        raise InvalidInputError([f"Unknown top-level field: '{key}'" for key in unknown])

    try:
        problem = ProblemInput.model_validate(converted)
        config = SolveConfig.model_validate(config_data) if config_data is not None else None
    except ValidationError as e:
        raise InvalidInputError(_format_validation_errors(e)) from e

    return problem, config


def _format_validation_errors(error: ValidationError) -> list[str]:
    """Flatten pydantic errors into 'path: message' strings."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        messages.append(f"{location}: {item['msg']}" if location else item["msg"])
    return messages


def _convert_keys_to_snake_case(obj: Any) -> Any:
    """Recursively convert dictionary keys from camelCase to snake_case."""

    def to_snake_case(name: str) -> str:
        name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
        name = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', name)
        return name.lower()

    if isinstance(obj, dict):
        return {to_snake_case(k): _convert_keys_to_snake_case(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_keys_to_snake_case(item) for item in obj]
    else:
        return obj
