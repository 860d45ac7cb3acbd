# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Resolution of stage directives into typed values.
"""
import logging
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence

from ..MODELS.directive_value import (
    DEV_CMD_LIVE,
    DEV_COPY,
    DEV_ENV,
    DEV_RUN,
    DirectiveValue,
    EnvOverrides,
    LiveCommand,
    LiveCopy,
    LiveRun,
    RawDirective,
)
from ..MODELS.dockerfile_ast import Directive, Stage
from ..PARSERS.env_parser import EnvParser
from ..UTILS.errors import InvalidDirectiveValueError, UnknownStageError

logger = logging.getLogger(__name__)

DirectiveParser = Callable[[Directive], DirectiveValue]


def _require_value(directive: Directive) -> str:
    value = directive.value.strip()
    if not value:
        raise InvalidDirectiveValueError(
            directive.key, directive.value, "value must not be empty", directive.lineno
        )
    return value


def parse_env(directive: Directive) -> EnvOverrides:
    try:
        variables = EnvParser.parse_entries(directive.value)
    except ValueError as e:
        raise InvalidDirectiveValueError(
            directive.key, directive.value, str(e), directive.lineno
        ) from e
    return EnvOverrides(variables=variables)


def parse_live_command(directive: Directive) -> LiveCommand:
    return LiveCommand(command=_require_value(directive))


def parse_live_run(directive: Directive) -> LiveRun:
    return LiveRun(command=_require_value(directive))


def parse_live_copy(directive: Directive) -> LiveCopy:
    return LiveCopy(arguments=_require_value(directive))


DEFAULT_PARSERS: Mapping[str, DirectiveParser] = MappingProxyType({
    DEV_ENV: parse_env,
    DEV_CMD_LIVE: parse_live_command,
    DEV_RUN: parse_live_run,
    DEV_COPY: parse_live_copy,
})


def find_directive(stage: Stage, key: str) -> Optional[Directive]:
    """
    Returns the last directive of the stage with the given key, if any.
    """
    key = key.lower()
    for directive in reversed(stage.directives):
        if directive.key == key:
            return directive
    return None


def resolve_directive(
    stage: Stage,
    key: str,
    parsers: Optional[Mapping[str, DirectiveParser]] = None,
) -> Optional[DirectiveValue]:
    """
    Looks up a directive of a stage and parses its value.

    Duplicate keys resolve to the last occurrence. Keys without a registered
    parser resolve to a RawDirective holding the value verbatim.

    :param stage: The stage to look in.
    :param key: Directive key, case-insensitive.
    :param parsers: Registry of value parsers; defaults to DEFAULT_PARSERS.
    :return: The parsed value, or None when the stage has no such directive.
    :raises InvalidDirectiveValueError: If a recognised value is malformed.
    """
    directive = find_directive(stage, key)
    if directive is None:
        return None

    registry = DEFAULT_PARSERS if parsers is None else parsers
    parser = registry.get(directive.key)
    if parser is None:
        logger.debug("Passing through unknown directive '%s' of stage %s", directive.key, stage.ref)
        return RawDirective(key=directive.key, value=directive.value)
    return parser(directive)


def find_stage(stages: Sequence[Stage], reference: str) -> Stage:
    """
    Finds a stage by its alias or, failing that, by its positional index.

    :raises UnknownStageError: If no stage matches.
    """
    for stage in stages:
        if stage.name is not None and stage.name.lower() == reference.lower():
            return stage
    try:
        index = int(reference)
    except ValueError:
        raise UnknownStageError(reference) from None
    if 0 <= index < len(stages):
        return stages[index]
    raise UnknownStageError(reference)
