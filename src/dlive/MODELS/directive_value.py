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
Typed values of resolved directives.

The recognised directive keys form a closed set; anything else resolves to a
RawDirective so that newer keys pass through untouched.
"""
from typing import Annotated, Dict, Literal, Union
from pydantic import BaseModel, ConfigDict, Field

DEV_ENV = "dev-env"
DEV_CMD_LIVE = "dev-cmd-live"
DEV_RUN = "dev-run"
DEV_COPY = "dev-copy"


class EnvOverrides(BaseModel):
    """Environment variables to set for live runs (``#dev-env=A=1 B=2``)."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["dev-env"] = DEV_ENV
    variables: Dict[str, str]


class LiveCommand(BaseModel):
    """Replacement command for live runs (``#dev-cmd-live=npm run dev``)."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["dev-cmd-live"] = DEV_CMD_LIVE
    command: str


class LiveRun(BaseModel):
    """Extra RUN instruction executed only for live builds."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["dev-run"] = DEV_RUN
    command: str


class LiveCopy(BaseModel):
    """Extra COPY instruction performed only for live builds."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["dev-copy"] = DEV_COPY
    arguments: str


class RawDirective(BaseModel):
    """A directive whose key is not recognised; the value is kept verbatim."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["raw"] = "raw"
    key: str
    value: str


DirectiveValue = Annotated[
    Union[EnvOverrides, LiveCommand, LiveRun, LiveCopy, RawDirective],
    Field(discriminator="kind"),
]
