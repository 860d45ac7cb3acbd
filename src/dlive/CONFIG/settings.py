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
Configuration loaded from the environment and an optional .env file.
"""
import logging
import os
from typing import Literal, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from ..PARSERS.dockerfile_parser import ContiguityPolicy

logger = logging.getLogger(__name__)

ENV_PREFIX = "DLIVE_"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class SettingsError(ValueError):
    """Raised when environment settings are malformed."""


class Settings(BaseModel):
    """
    Runtime configuration of dlive.

    Every field can be set through a ``DLIVE_<FIELD>`` environment variable.
    """
    policy: ContiguityPolicy = ContiguityPolicy.PERMISSIVE
    log_level: LogLevel = "WARNING"
    dockerfile: str = "Dockerfile"


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[str] = ".env",
) -> Settings:
    """
    Builds the settings from environment variables.

    :param environ: Variables to read; defaults to the process environment,
        after loading ``env_file`` into it (existing variables win).
    :param env_file: Path of a .env file to load, or None to skip it.
    :return: Validated settings.
    :raises SettingsError: If a variable has an invalid value.
    """
    if environ is None:
        if env_file and os.path.exists(env_file):
            load_dotenv(env_file, override=False)
            logger.debug("Loaded environment from %s", env_file)
        environ = os.environ

    values = {}
    for name in Settings.model_fields:
        raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is None or raw == "":
            continue
        raw = raw.strip()
        if name == "policy":
            raw = raw.lower()
        elif name == "log_level":
            raw = raw.upper()
        values[name] = raw

    try:
        return Settings(**values)
    except ValidationError as e:
        raise SettingsError(f"Invalid dlive settings: {e}") from e
