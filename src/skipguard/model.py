import json
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Union
import io

import pydantic
import yaml

from skipguard.errors import InvalidInputs


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", populate_by_name=True)


Trigger = Literal["pull_request", "push", "workflow_dispatch", "schedule", "release"]


class ConcurrentSkipping(str, Enum):
    never = "never"
    always = "always"
    same_content = "same_content"
    same_content_newer = "same_content_newer"
    outdated_runs = "outdated_runs"


class PathFilter(Model):
    paths: List[str] = pydantic.Field(default_factory=list)
    paths_ignore: List[str] = pydantic.Field(
        default_factory=list, alias="paths-ignore"
    )
    # True: unlimited, False: only the current commit, int: number of commits
    backtracking: Union[bool, pydantic.NonNegativeInt] = True

    def bound_reached(self, distance: int) -> bool:
        if isinstance(self.backtracking, bool):
            return self.backtracking is False and distance == 1
        return self.backtracking == distance


GLOBAL_FILTER = "global"


class Inputs(Model):
    paths: List[str] = pydantic.Field(default_factory=list)
    paths_ignore: List[str] = pydantic.Field(default_factory=list)
    paths_filter: Dict[str, PathFilter] = pydantic.Field(default_factory=dict)
    do_not_skip: List[Trigger] = pydantic.Field(
        default_factory=lambda: ["workflow_dispatch", "schedule"]
    )
    concurrent_skipping: ConcurrentSkipping = ConcurrentSkipping.never
    cancel_others: bool = False
    skip_after_successful_duplicate: bool = True

    @pydantic.field_validator("paths_filter")
    @classmethod
    def validate_filter_names(cls, value: Dict[str, PathFilter]):
        if GLOBAL_FILTER in value:
            raise ValueError(f"'{GLOBAL_FILTER}' is a reserved filter name")
        return value

    @property
    def has_path_filters(self) -> bool:
        return (
            len(self.paths) > 0
            or len(self.paths_ignore) > 0
            or len(self.paths_filter) > 0
        )

    def path_filters(self) -> Dict[str, PathFilter]:
        filters = dict(self.paths_filter)
        if len(self.paths) > 0 or len(self.paths_ignore) > 0:
            filters[GLOBAL_FILTER] = PathFilter(
                paths=self.paths, paths_ignore=self.paths_ignore, backtracking=True
            )
        return filters

    @classmethod
    def from_action_inputs(cls, raw: Mapping[str, Optional[str]]) -> "Inputs":
        """Parse the raw string inputs of the action.

        List inputs are JSON, ``paths_filter`` is YAML and booleans follow the
        YAML 1.2 core schema (``true``/``True``/``TRUE`` and the ``false``
        counterparts). Empty or missing inputs fall back to the defaults.
        """
        data: Dict[str, Any] = {}
        for name in ("paths", "paths_ignore", "do_not_skip"):
            if value := raw.get(name):
                data[name] = _parse_json(name, value)
        if value := raw.get("paths_filter"):
            data["paths_filter"] = _parse_yaml("paths_filter", value)
        if value := raw.get("concurrent_skipping"):
            data["concurrent_skipping"] = value
        for name in ("cancel_others", "skip_after_successful_duplicate"):
            if value := raw.get(name):
                data[name] = _parse_bool(name, value)

        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as e:
            error = e.errors()[0]
            name = str(error["loc"][0]) if error["loc"] else "inputs"
            raise InvalidInputs(
                _compose_validation_error(e), name=name, raw_value=str(raw.get(name))
            )


def _parse_json(name: str, value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise InvalidInputs(f"not valid JSON ({e})", name=name, raw_value=value)


def _parse_yaml(name: str, value: str) -> Any:
    try:
        data = yaml.safe_load(io.StringIO(value))
    except yaml.YAMLError as e:
        raise InvalidInputs(f"not valid YAML ({e})", name=name, raw_value=value)
    return {} if data is None else data


def _parse_bool(name: str, value: str) -> bool:
    if value in ("true", "True", "TRUE"):
        return True
    if value in ("false", "False", "FALSE"):
        return False
    raise InvalidInputs(
        "expected one of true, True, TRUE, false, False, FALSE",
        name=name,
        raw_value=value,
    )


def _compose_validation_error(error: pydantic.ValidationError) -> str:
    lines = []
    for issue in error.errors():
        key_path = ""
        for index, key in enumerate(issue["loc"]):
            if isinstance(key, int):
                key_path += f"[{key}]"
            else:
                key_path += f"{'.' if index > 0 else ''}{key}"
        lines.append(f"{key_path + ': ' if key_path else ''}{issue['msg']}")
    if len(lines) == 1:
        return lines[0]
    return "\n".join(f"- {line}" for line in lines)
