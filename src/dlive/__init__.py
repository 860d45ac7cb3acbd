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
dlive - Dockerfile live directives

Extracts development-only directives (``#dev-env=...``, ``#dev-cmd-live=...``)
from Dockerfile comments, attaches them to build stages and derives the
"live" overlay of a stage or of the whole Dockerfile.
"""

__version__ = "0.1.0"
__author__ = "Michael Maillet, Damien Davison, Sacha Davison"
__license__ = "Apache-2.0"

from .PARSERS.dockerfile_parser import ContiguityPolicy, DockerfileParser, parse
from .RESOLVERS.directive_resolver import find_stage, resolve_directive
from .CONVERTERS.live_overlay import (
    apply_live_overlay,
    render_dockerfile,
    render_live_dockerfile,
    with_live_overlay,
)
from .UTILS.errors import (
    DockerfileError,
    InvalidDirectiveValueError,
    LiveCommandConflictError,
    MalformedStageError,
    NoStagesError,
    UnknownStageError,
)

__all__ = [
    "ContiguityPolicy",
    "DockerfileParser",
    "parse",
    "find_stage",
    "resolve_directive",
    "apply_live_overlay",
    "with_live_overlay",
    "render_dockerfile",
    "render_live_dockerfile",
    "DockerfileError",
    "InvalidDirectiveValueError",
    "LiveCommandConflictError",
    "MalformedStageError",
    "NoStagesError",
    "UnknownStageError",
]
