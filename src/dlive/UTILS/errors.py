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
Errors raised while parsing Dockerfiles and resolving live directives.
"""
from typing import Optional


class DockerfileError(ValueError):
    """Base class for every error raised by dlive."""


class MalformedStageError(DockerfileError):
    """A FROM line could not be parsed."""

    def __init__(self, lineno: int, line: str, reason: str = "missing image reference"):
        self.lineno = lineno
        self.line = line
        super().__init__(f"Could not parse FROM instruction on line {lineno}: {reason} ({line!r})")


class NoStagesError(DockerfileError):
    """The Dockerfile does not contain a single FROM instruction."""

    def __init__(self, message: str = "Dockerfile contains no FROM instruction"):
        super().__init__(message)


class InvalidDirectiveValueError(DockerfileError):
    """
    A recognised directive carries a value that does not follow its grammar.

    Raised when the directive is resolved or applied, never at parse time.
    """

    def __init__(self, key: str, value: str, reason: str, lineno: Optional[int] = None):
        self.key = key
        self.value = value
        self.lineno = lineno
        where = f" on line {lineno}" if lineno is not None else ""
        super().__init__(f"Invalid value for directive '{key}'{where}: {reason} ({value!r})")


class UnknownStageError(DockerfileError):
    """No stage matches the given name or index."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Could not find stage with name or index: {reference}")


class LiveCommandConflictError(DockerfileError):
    """More than one stage carries a dev-cmd-live directive."""
