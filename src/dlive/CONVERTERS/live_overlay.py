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
Converters producing the "live" (development) variant of stages and Dockerfiles.
"""
import logging
from typing import Dict, List, Optional, Sequence, Union

from ..MODELS.directive_value import DEV_CMD_LIVE, DEV_COPY, DEV_ENV, DEV_RUN
from ..MODELS.dockerfile_ast import Dockerfile, Instruction, Stage
from ..PARSERS.dockerfile_parser import PARSER_DIRECTIVE_KEYS
from ..PARSERS.env_parser import EnvParser
from ..RESOLVERS.directive_resolver import find_directive, resolve_directive
from ..UTILS.errors import LiveCommandConflictError

logger = logging.getLogger(__name__)

_COMMAND_KEYWORDS = ("CMD", "ENTRYPOINT")


def apply_live_overlay(stage: Stage) -> List[Instruction]:
    """
    Returns the stage's instructions with its live directives applied.

    - ``dev-env`` values override matching keys of existing ENV instructions;
      keys no ENV sets are appended as a single ENV instruction.
    - ``dev-copy`` / ``dev-run`` add a COPY / RUN before the stage command,
      unless an identical instruction is already present.
    - ``dev-cmd-live`` replaces the final CMD or ENTRYPOINT with ``CMD <value>``,
      or appends it when the stage has neither.

    The stage is not modified, and applying the overlay to its own output
    changes nothing.

    :param stage: The stage to overlay.
    :return: A new list of instructions.
    :raises InvalidDirectiveValueError: If a live directive is malformed.
    """
    instructions = list(stage.instructions)

    env = resolve_directive(stage, DEV_ENV)
    if env is not None and env.variables:
        instructions = _merge_env(instructions, env.variables)

    extras = []
    copy = resolve_directive(stage, DEV_COPY)
    if copy is not None:
        extras.append(Instruction.build("COPY", copy.arguments))
    run = resolve_directive(stage, DEV_RUN)
    if run is not None:
        extras.append(Instruction.build("RUN", run.command))
    extras = [e for e in extras if not _contains(instructions, e)]
    if extras:
        position = _last_command_index(instructions)
        if position is None:
            position = len(instructions)
        instructions[position:position] = extras

    live_cmd = resolve_directive(stage, DEV_CMD_LIVE)
    if live_cmd is not None:
        cmd = Instruction.build("CMD", live_cmd.command)
        position = _last_command_index(instructions)
        if position is None:
            instructions.append(cmd)
        else:
            instructions[position] = cmd

    return instructions


def with_live_overlay(stage: Stage) -> Stage:
    """
    Returns a copy of the stage whose instructions have the overlay applied.
    """
    return stage.model_copy(update={"instructions": tuple(apply_live_overlay(stage))})


def render_dockerfile(dockerfile: Union[Dockerfile, Sequence[Stage]]) -> str:
    """
    Serialises parsed stages back to Dockerfile text, directives included.

    Parsing the result yields the same stages, directives and instructions.
    """
    dockerfile = _as_document(dockerfile)
    lines = _head(dockerfile)
    first = dockerfile.stages[0] if dockerfile.stages else None
    if not lines and first is not None and any(
        d.key in PARSER_DIRECTIVE_KEYS for d in first.directives
    ):
        # Keep the stage directive off line 1, where it would read as a parser directive
        lines.append("")
    for stage in dockerfile.stages:
        if lines and lines[-1] != "":
            lines.append("")
        lines.extend(d.raw for d in stage.directives)
        lines.append(stage.from_instruction.raw)
        lines.extend(i.raw for i in stage.instructions)
    return "\n".join(lines) + "\n"


def render_live_dockerfile(dockerfile: Union[Dockerfile, Sequence[Stage]]) -> str:
    """
    Serialises the live variant of a Dockerfile.

    Every stage gets its overlay applied and its directives are consumed.
    Stages following the one carrying ``dev-cmd-live`` are dropped, so the
    live stage becomes the final build target.

    :raises LiveCommandConflictError: If more than one stage has ``dev-cmd-live``.
    """
    dockerfile = _as_document(dockerfile)
    stages = list(dockerfile.stages)

    live = [s for s in stages if find_directive(s, DEV_CMD_LIVE) is not None]
    if len(live) > 1:
        raise LiveCommandConflictError(
            "Only a single dev-cmd-live directive may be specified, found in stages: "
            + ", ".join(s.ref for s in live)
        )
    if live:
        dropped = stages[live[0].index + 1:]
        if dropped:
            logger.info(
                "Dropping stage(s) %s following live stage %s",
                [s.ref for s in dropped],
                live[0].ref,
            )
        stages = stages[:live[0].index + 1]

    lines = _head(dockerfile)
    for stage in stages:
        if lines:
            lines.append("")
        lines.append(stage.from_instruction.raw)
        lines.extend(i.raw for i in apply_live_overlay(stage))
    return "\n".join(lines) + "\n"


def _as_document(dockerfile: Union[Dockerfile, Sequence[Stage]]) -> Dockerfile:
    if isinstance(dockerfile, Dockerfile):
        return dockerfile
    return Dockerfile(stages=tuple(dockerfile))


def _head(dockerfile: Dockerfile) -> List[str]:
    lines = [f"# {d.key}={d.value}" for d in dockerfile.parser_directives]
    if lines:
        lines.append("")
    lines.extend(i.raw for i in dockerfile.preamble)
    return lines


def _merge_env(instructions: List[Instruction], overrides: Dict[str, str]) -> List[Instruction]:
    merged = []
    covered = set()
    for instruction in instructions:
        if instruction.keyword != "ENV":
            merged.append(instruction)
            continue
        try:
            entries = EnvParser.parse_instruction_entries(instruction.arguments)
        except ValueError:
            logger.warning("Leaving unparsable ENV on line %s untouched", instruction.lineno)
            merged.append(instruction)
            continue

        keys = {key for key, _, _ in entries}
        covered.update(keys & overrides.keys())
        if all(overrides.get(key, value) == value for key, value, _ in entries):
            merged.append(instruction)
            continue

        # Only overridden entries are rewritten, the rest keep their quoting
        arguments = ' '.join(
            EnvParser.format_pairs([(key, overrides[key])]) if key in overrides else source
            for key, _, source in entries
        )
        merged.append(instruction.model_copy(update={
            "arguments": arguments,
            "raw": f"ENV {arguments}",
        }))

    missing = [(key, value) for key, value in overrides.items() if key not in covered]
    if missing:
        merged.append(Instruction.build("ENV", EnvParser.format_pairs(missing)))
    return merged


def _contains(instructions: List[Instruction], candidate: Instruction) -> bool:
    return any(
        i.keyword == candidate.keyword and i.arguments == candidate.arguments
        for i in instructions
    )


def _last_command_index(instructions: List[Instruction]) -> Optional[int]:
    for index in range(len(instructions) - 1, -1, -1):
        if instructions[index].keyword in _COMMAND_KEYWORDS:
            return index
    return None
