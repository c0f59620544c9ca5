import logging
import math
import re
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

import yaml

from elbisaur.errors import ValidationError
from elbisaur.listen import Listen, TRACK_KEYS
from elbisaur.timestamp import parse_timestamp

logger = logging.getLogger(__name__)

#: Condition of a filter, `<key><operator><value>`. Longer operators are tried first.
CONDITION_PATTERN = re.compile(r"^(?P<key>\w+)(?P<operator>==|!=|<=|<|>=|>|\^)(?P<value>.*)$", re.DOTALL)

#: Assignment of an edit, `<key>=<value>`.
EDIT_PATTERN = re.compile(r"^(?P<key>\w+)=(?P<value>.*)$", re.DOTALL)

#: Separator of the conditions of a filter, all conditions have to be met.
CONDITION_SEPARATOR = "&&"


class Condition(NamedTuple):
    key: str
    operator: str
    value: Union[str, Sequence[Union[str, int, float]]]


class Edit(NamedTuple):
    key: str
    value: str


def parse_conditions(specification: Optional[str]) -> List[Condition]:
    """ Parses a filter specification into a list of conditions.

    Raises:
        ValidationError: if one of the expressions is malformed
    """
    if not specification:
        return []

    conditions = []
    for expression in specification.split(CONDITION_SEPARATOR):
        match = CONDITION_PATTERN.match(expression)
        if not match:
            raise ValidationError(f'Invalid filter expression "{expression}"')
        conditions.append(Condition(match["key"], match["operator"], match["value"]))
    return conditions


def load_conditions_from_yaml(path: str, operator: str) -> List[Condition]:
    """ Loads conditions from a YAML file which maps track metadata keys to lists of values.

    Args:
        path: path of the YAML file
        operator: `==` for a list of allowed values, `!=` for a list of forbidden values
    """
    with open(path, encoding="utf-8") as f:
        try:
            value_lists = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValidationError(f'"{path}" is no valid YAML file: {e}')

    if not value_lists:
        return []
    if not isinstance(value_lists, dict):
        raise ValidationError(f'"{path}" has to map keys to lists of values')

    conditions = []
    for key, values in value_lists.items():
        if not isinstance(values, list):
            raise ValidationError(f'"{key}" from "{path}" has to be a list')
        conditions.append(Condition(str(key), operator, [_yaml_value(value) for value in values]))
    return conditions


def _yaml_value(value: Any) -> Union[str, int, float]:
    # scalars keep their type, so that `true` matches boolean fields
    if value is None:
        return ""
    if isinstance(value, (bool, int, float)):
        return value
    return str(value)


def compare(actual_value: Any, value: Union[str, int, float]) -> float:
    """ Compares two operands numerically (numbers) or lexicographically (strings).

    The type of comparison depends on the type of the actual value. Booleans are
    treated as numbers 0 and 1, a missing value is treated as an empty string.

    Returns:
        a negative number, zero or a positive number (NaN for invalid numbers)

    Raises:
        ValidationError: if the actual value has any other type
    """
    if isinstance(actual_value, bool):
        actual_value = int(actual_value)
    elif actual_value is None:
        actual_value = ""

    if isinstance(actual_value, (int, float)):
        return actual_value - _to_number(value)
    if isinstance(actual_value, str):
        value = _to_string(value)
        return (actual_value > value) - (actual_value < value)
    raise ValidationError(f"Comparison is not allowed for {actual_value!r}")


def _to_number(value: Union[str, int, float]) -> float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    value = value.strip()
    if not value:
        return 0
    try:
        return float(value)
    except ValueError:
        return math.nan


def _to_string(value: Union[str, int, float]) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def get_track_value(listen: Listen, key: str) -> Any:
    """ Looks up a key in the track metadata, falling back to the additional info. """
    track = listen["track_metadata"]
    value = track.get(key)
    if value is None:
        value = (track.get("additional_info") or {}).get(key)
    return value


class ListenFilter:
    """Selects listens which were listened to within a time range and meet all conditions.

    Args:
        conditions: conditions which all have to be met
        min_ts: lower bound (exclusive) of the listen timestamps
        max_ts: upper bound (exclusive) of the listen timestamps
    """

    def __init__(self, conditions: Iterable[Condition] = (), min_ts: Optional[int] = None,
                 max_ts: Optional[int] = None):
        self.conditions = list(conditions)
        self.min_ts = 0 if min_ts is None else min_ts
        self.max_ts = math.inf if max_ts is None else max_ts

    @classmethod
    def create(cls, specification: Optional[str] = None, after: Optional[str] = None,
               before: Optional[str] = None, exclude_list: Optional[str] = None,
               include_list: Optional[str] = None) -> "ListenFilter":
        """ Compiles a filter from the textual specifications given by the user.

        Args:
            specification: conditions joined by `&&`
            after: only keep listens after this date/time
            before: only keep listens before this date/time
            exclude_list: YAML file with lists of forbidden values
            include_list: YAML file with lists of allowed values
        """
        conditions = parse_conditions(specification)

        min_ts = max_ts = None
        if after:
            min_ts = parse_timestamp(after)
            if min_ts is None:
                raise ValidationError(f'Invalid date "{after}"')
        if before:
            max_ts = parse_timestamp(before)
            if max_ts is None:
                raise ValidationError(f'Invalid date "{before}"')

        if exclude_list:
            conditions.extend(load_conditions_from_yaml(exclude_list, "!="))
        if include_list:
            conditions.extend(load_conditions_from_yaml(include_list, "=="))

        return cls(conditions, min_ts, max_ts)

    def time_range(self) -> Tuple[Optional[int], Optional[int]]:
        """ Returns the time range bounds, `None` for unbounded. """
        return (self.min_ts or None, None if self.max_ts == math.inf else self.max_ts)

    def __call__(self, listen: Listen) -> bool:
        if listen["listened_at"] <= self.min_ts or listen["listened_at"] >= self.max_ts:
            return False
        return all(self.check(listen, condition) for condition in self.conditions)

    @staticmethod
    def check(listen: Listen, condition: Condition) -> bool:
        key, operator, value = condition
        actual_value = get_track_value(listen, key)

        if isinstance(actual_value, list):
            logger.warning('Ignoring condition for "%s" (has multiple values)', key)
            return True

        if not isinstance(value, str):
            if operator == "==":
                return any(compare(actual_value, v) == 0 for v in value)
            if operator == "!=":
                return all(compare(actual_value, v) != 0 for v in value)
            logger.warning('Ignoring condition for "%s" ("%s" does not accept multiple values)', key, operator)
            return True

        if operator == "^":
            return bool(actual_value) != bool(value)
        if operator == "==":
            return compare(actual_value, value) == 0
        if operator == "!=":
            return compare(actual_value, value) != 0
        if operator == "<=":
            return compare(actual_value, value) <= 0
        if operator == "<":
            return compare(actual_value, value) < 0
        if operator == ">=":
            return compare(actual_value, value) >= 0
        if operator == ">":
            return compare(actual_value, value) > 0
        raise ValidationError(f'Unsupported operator "{operator}"')


def parse_edits(expressions: Optional[Iterable[str]]) -> List[Edit]:
    """ Parses edit expressions, `<key>=<value>`, preserving their order.

    Raises:
        ValidationError: if one of the expressions is malformed
    """
    edits = []
    for expression in expressions or ():
        match = EDIT_PATTERN.match(expression)
        if not match:
            raise ValidationError(f'Invalid edit expression "{expression}"')
        edits.append(Edit(match["key"], match["value"]))
    return edits


class ListenModifier:
    """Assigns values to track metadata fields of listens, in the given order.

    Keys of the basic track metadata are set directly, all other keys are
    stored in the additional info.
    """

    def __init__(self, edits: Iterable[Edit] = ()):
        self.edits = list(edits)

    @classmethod
    def create(cls, expressions: Optional[Iterable[str]] = None) -> "ListenModifier":
        return cls(parse_edits(expressions))

    def __call__(self, listen: Listen) -> Listen:
        track = listen["track_metadata"]
        for key, value in self.edits:
            if key in TRACK_KEYS:
                track[key] = value
            else:
                additional_info = track.get("additional_info")
                if additional_info is None:
                    additional_info = track["additional_info"] = {}
                additional_info[key] = value
        return listen


