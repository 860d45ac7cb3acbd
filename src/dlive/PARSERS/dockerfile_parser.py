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
Parser for Dockerfiles, splitting them into build stages and attaching
``#key=value`` directive comments to the stage they annotate.
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from ..MODELS.dockerfile_ast import Directive, Dockerfile, Instruction, Stage
from ..UTILS.errors import MalformedStageError, NoStagesError

logger = logging.getLogger(__name__)

_COMMENT = re.compile(r'^\s*#')
_DIRECTIVE = re.compile(r'^\s*#+\s*([A-Za-z0-9_-]+)=(.*)$')

DEFAULT_ESCAPE = '\\'
# Directives Docker itself reads, only valid at the very top of the file
PARSER_DIRECTIVE_KEYS = frozenset({"syntax", "escape", "check"})


class ContiguityPolicy(str, Enum):
    """
    Decides which directive comments attach to a stage.

    STRICT: only comments directly above FROM, a blank line breaks the block.
    PERMISSIVE: blank lines do not break the block, and a block written
    between a FROM and the stage's first instruction attaches to that stage.
    """
    STRICT = "strict"
    PERMISSIVE = "permissive"


@dataclass
class _StageBuilder:
    index: int
    name: Optional[str]
    base: str
    platform: Optional[str]
    from_instruction: Instruction
    directives: List[Directive] = field(default_factory=list)
    instructions: List[Instruction] = field(default_factory=list)

    def build(self) -> Stage:
        return Stage(
            index=self.index,
            name=self.name,
            base=self.base,
            platform=self.platform,
            from_instruction=self.from_instruction,
            directives=tuple(self.directives),
            instructions=tuple(self.instructions),
        )


class DockerfileParser:
    """
    Parser for Dockerfile stages and their live directives.
    """
    def __init__(self, policy: Union[ContiguityPolicy, str] = ContiguityPolicy.PERMISSIVE):
        """
        :param policy: Contiguity policy used to attach directive blocks.
        """
        self.policy = ContiguityPolicy(policy)

    def parse(self, dockerfile_path: str) -> List[Stage]:
        """
        Parses a Dockerfile from a file path.

        Args:
            dockerfile_path (str): Path to the Dockerfile.

        Returns:
            List[Stage]: The build stages, in file order.
        """
        with open(dockerfile_path, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> List[Stage]:
        """
        Parses a Dockerfile from a string content.

        Args:
            content (str): Content of the Dockerfile.

        Returns:
            List[Stage]: The build stages, in file order.
        """
        return list(self.parse_document(content).stages)

    def parse_document(self, content: str) -> Dockerfile:
        """
        Parses a Dockerfile into its parser directives, global preamble and stages.

        Raises:
            MalformedStageError: A FROM line has no image reference or
                unexpected trailing tokens.
            NoStagesError: There is no FROM line at all.
        """
        state = _ParseState(self.policy)
        lines = re.split(r'\r?\n', content)
        continued: Optional[List[str]] = None
        start = 0
        in_head = True

        for lineno, line in enumerate(lines, 1):
            if continued is not None:
                continued.append(line)
                if not line.strip() or _COMMENT.match(line):
                    continue
                if line.rstrip().endswith(state.escape):
                    continue
                state.instruction(continued, start)
                continued = None
                continue

            if in_head:
                match = _DIRECTIVE.match(line)
                if match and match.group(1).lower() in PARSER_DIRECTIVE_KEYS:
                    state.parser_directive(match.group(1).lower(), match.group(2).strip(), lineno)
                    continue
                in_head = False

            if not line.strip():
                state.blank()
                continue

            if _COMMENT.match(line):
                match = _DIRECTIVE.match(line)
                if match:
                    state.directive(match.group(1).lower(), match.group(2).rstrip(), lineno)
                else:
                    state.break_block("comment", lineno)
                continue

            if line.rstrip().endswith(state.escape):
                continued = [line]
                start = lineno
                continue

            state.instruction([line], lineno)

        if continued is not None:
            state.instruction(continued, start)

        return state.finish()


class _ParseState:
    """
    Mutable bookkeeping for a single parse call.
    """
    def __init__(self, policy: ContiguityPolicy):
        self.policy = policy
        self.escape = DEFAULT_ESCAPE
        self.parser_directives: List[Directive] = []
        self.preamble: List[Instruction] = []
        self.stages: List[_StageBuilder] = []
        self.pending: List[Directive] = []

    @property
    def current(self) -> Optional[_StageBuilder]:
        return self.stages[-1] if self.stages else None

    def parser_directive(self, key: str, value: str, lineno: int) -> None:
        if key == 'escape':
            if value not in ('\\', '`'):
                logger.warning("Ignoring invalid escape character %r on line %d", value, lineno)
            else:
                self.escape = value
        self.parser_directives.append(Directive(key=key, value=value, lineno=lineno))

    def blank(self) -> None:
        if self.policy is ContiguityPolicy.STRICT:
            self.break_block("blank line")

    def directive(self, key: str, value: str, lineno: int) -> None:
        self.pending.append(Directive(key=key, value=value, lineno=lineno))

    def break_block(self, reason: str, lineno: Optional[int] = None) -> None:
        if self.pending:
            logger.debug(
                "Discarding directive(s) %s: block broken by %s%s",
                [d.key for d in self.pending],
                reason,
                f" on line {lineno}" if lineno else "",
            )
            self.pending = []

    def instruction(self, physical_lines: List[str], lineno: int) -> None:
        text = self._join(physical_lines)
        parts = text.split(None, 1)
        if not parts:
            return
        keyword = parts[0].upper()
        arguments = parts[1].strip() if len(parts) > 1 else ''
        instruction = Instruction(
            keyword=keyword,
            arguments=arguments,
            raw='\n'.join(physical_lines),
            lineno=lineno,
        )

        if keyword == 'FROM':
            self._open_stage(instruction)
            return

        current = self.current
        if self.pending:
            if self._in_stage_preamble():
                current.directives.extend(self.pending)
                logger.debug(
                    "Attached directive(s) %s to stage %d from its preamble",
                    [d.key for d in self.pending],
                    current.index,
                )
                self.pending = []
            else:
                self.break_block(f"{keyword} instruction", lineno)

        if current is None:
            self.preamble.append(instruction)
        else:
            current.instructions.append(instruction)

    def finish(self) -> Dockerfile:
        if self.pending:
            if self._in_stage_preamble():
                self.current.directives.extend(self.pending)
                self.pending = []
            else:
                self.break_block("end of file")

        if not self.stages:
            raise NoStagesError()

        return Dockerfile(
            parser_directives=tuple(self.parser_directives),
            preamble=tuple(self.preamble),
            stages=tuple(stage.build() for stage in self.stages),
        )

    def _in_stage_preamble(self) -> bool:
        current = self.current
        return (
            self.policy is ContiguityPolicy.PERMISSIVE
            and current is not None
            and not current.instructions
        )

    def _open_stage(self, instruction: Instruction) -> None:
        tokens = instruction.arguments.split()
        platform = None
        while tokens and tokens[0].startswith('--'):
            flag_name, _, flag_value = tokens.pop(0)[2:].partition('=')
            if flag_name == 'platform':
                platform = flag_value

        if not tokens:
            raise MalformedStageError(instruction.lineno, instruction.raw)
        if len(tokens) == 1:
            name = None
        elif len(tokens) == 3 and tokens[1].lower() == 'as':
            name = tokens[2]
        else:
            raise MalformedStageError(
                instruction.lineno, instruction.raw, "expected FROM <image> [AS <name>]"
            )

        if name is not None and any(
            s.name is not None and s.name.lower() == name.lower() for s in self.stages
        ):
            raise MalformedStageError(
                instruction.lineno, instruction.raw, f"duplicate stage name '{name}'"
            )

        stage = _StageBuilder(
            index=len(self.stages),
            name=name,
            base=tokens[0],
            platform=platform,
            from_instruction=instruction,
            directives=list(self.pending),
        )
        self.pending = []
        self.stages.append(stage)
        logger.debug(
            "Opened stage %d (%s) from %s with %d directive(s)",
            stage.index,
            name or "unnamed",
            stage.base,
            len(stage.directives),
        )

    def _join(self, physical_lines: List[str]) -> str:
        segments = []
        for i, line in enumerate(physical_lines):
            if i > 0 and (not line.strip() or _COMMENT.match(line)):
                continue
            segment = line.rstrip()
            if segment.endswith(self.escape):
                segment = segment[:-1]
            segments.append(segment.strip())
        return ' '.join(s for s in segments if s)


def parse(text: str, policy: Union[ContiguityPolicy, str] = ContiguityPolicy.PERMISSIVE) -> List[Stage]:
    """
    Parses Dockerfile text into its build stages.

    :param text: Full Dockerfile content.
    :param policy: Contiguity policy used to attach directive blocks.
    :return: The stages, in file order.
    """
    return DockerfileParser(policy).parse_from_string(text)
