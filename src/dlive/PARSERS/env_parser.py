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
Parsers for KEY=VALUE environment lists, as found in ``#dev-env`` directives
and ENV instructions. Supports single and double quotes.
"""
import re
import shlex
from typing import Dict, Iterable, List, Tuple

_SAFE_VALUE = re.compile(r'^[^\s"\'\\]+$')


class EnvParser:
    """
    Parser for whitespace separated KEY=VALUE lists.
    """
    @staticmethod
    def parse_entries(content: str) -> Dict[str, str]:
        """
        Parses a ``KEY=VALUE KEY2="some value"`` list.

        :param content: The list, as written after ``#dev-env=``.
        :return: Mapping of variable name to value, later entries win.
        :raises ValueError: If an entry is not of the form KEY=VALUE or quotes
            are unbalanced.
        """
        env = {}
        for key, value in EnvParser._split_pairs(content):
            env[key] = value
        return env

    @staticmethod
    def parse_instruction(arguments: str) -> List[Tuple[str, str]]:
        """
        Parses the arguments of an ENV instruction.

        Handles both ``ENV KEY=VALUE ...`` and the legacy ``ENV KEY VALUE`` form.

        :param arguments: Everything after the ENV keyword.
        :return: Ordered (key, value) pairs.
        :raises ValueError: If the arguments cannot be tokenised.
        """
        return [(key, value) for key, value, _ in EnvParser.parse_instruction_entries(arguments)]

    @staticmethod
    def parse_instruction_entries(arguments: str) -> List[Tuple[str, str, str]]:
        """
        Like parse_instruction, but also returns each entry's source text
        (quotes included) so untouched entries can be written back verbatim.

        :return: Ordered (key, value, source) triples.
        """
        arguments = arguments.strip()
        first = arguments.split(None, 1)
        if first and '=' not in first[0]:
            # Legacy form: the value is the rest of the line, verbatim
            key = first[0]
            value = first[1].strip() if len(first) > 1 else ''
            return [(key, value, arguments)]

        entries = []
        for source in EnvParser._split_source(arguments):
            [(key, value)] = EnvParser._split_pairs(source)
            entries.append((key, value, source))
        return entries

    @staticmethod
    def format_pairs(pairs: Iterable[Tuple[str, str]]) -> str:
        """
        Serialises pairs back to ``KEY=VALUE`` form, quoting values when needed.
        """
        return ' '.join(f"{key}={EnvParser.quote(value)}" for key, value in pairs)

    @staticmethod
    def quote(value: str) -> str:
        if _SAFE_VALUE.match(value):
            return value
        escaped = value.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'

    @staticmethod
    def _split_pairs(content: str) -> List[Tuple[str, str]]:
        try:
            tokens = shlex.split(content, posix=True)
        except ValueError as e:
            raise ValueError(f"cannot tokenise: {e}") from e

        pairs = []
        for token in tokens:
            if '=' not in token:
                raise ValueError(f"entry {token!r} is not of the form KEY=VALUE")
            key, value = token.split('=', 1)
            if not key:
                raise ValueError(f"entry {token!r} has an empty variable name")
            pairs.append((key, value))
        return pairs

    @staticmethod
    def _split_source(content: str) -> List[str]:
        """
        Splits on unquoted whitespace, keeping quotes and escapes in each token.
        """
        tokens = []
        current = []
        quote = None
        escaped = False
        for char in content:
            if escaped:
                current.append(char)
                escaped = False
            elif char == '\\' and quote != "'":
                current.append(char)
                escaped = True
            elif quote:
                current.append(char)
                if char == quote:
                    quote = None
            elif char in ('"', "'"):
                current.append(char)
                quote = char
            elif char.isspace():
                if current:
                    tokens.append(''.join(current))
                    current = []
            else:
                current.append(char)
        if quote or escaped:
            raise ValueError("cannot tokenise: No closing quotation")
        if current:
            tokens.append(''.join(current))
        return tokens
