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
Models for the parsed Dockerfile: instructions, directives and build stages.
"""
from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict


class Instruction(BaseModel):
    """
    Represents a single (logical) instruction in a Dockerfile.
    """
    model_config = ConfigDict(frozen=True)

    keyword: str
    arguments: str
    raw: str
    lineno: Optional[int] = None

    @classmethod
    def build(cls, keyword: str, arguments: str) -> "Instruction":
        """
        Creates a synthetic instruction, as generated by an overlay.

        :param keyword: Instruction keyword, e.g. ``CMD``.
        :param arguments: Everything after the keyword.
        :return: An Instruction without a source line number.
        """
        keyword = keyword.upper()
        return cls(keyword=keyword, arguments=arguments, raw=f"{keyword} {arguments}")


class Directive(BaseModel):
    """
    A ``#key=value`` comment found above (or in the preamble of) a stage.
    """
    model_config = ConfigDict(frozen=True)

    key: str
    value: str
    lineno: Optional[int] = None

    @property
    def raw(self) -> str:
        return f"#{self.key}={self.value}"


class Stage(BaseModel):
    """
    One ``FROM ... [AS name]`` block and the instructions up to the next FROM.
    """
    model_config = ConfigDict(frozen=True)

    index: int
    name: Optional[str] = None
    base: str
    platform: Optional[str] = None
    from_instruction: Instruction
    directives: Tuple[Directive, ...] = ()
    instructions: Tuple[Instruction, ...] = ()

    @property
    def ref(self) -> str:
        """Name used to address the stage: its alias, or its index."""
        return self.name if self.name is not None else str(self.index)


class Dockerfile(BaseModel):
    """
    The complete parse result of a Dockerfile.
    """
    model_config = ConfigDict(frozen=True)

    parser_directives: Tuple[Directive, ...] = ()
    preamble: Tuple[Instruction, ...] = ()
    stages: Tuple[Stage, ...]
