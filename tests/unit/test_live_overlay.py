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
Unit tests for the live overlay and Dockerfile rendering.
"""
import pytest
from dlive.CONVERTERS.live_overlay import (
    apply_live_overlay,
    render_dockerfile,
    render_live_dockerfile,
    with_live_overlay,
)
from dlive.PARSERS.dockerfile_parser import ContiguityPolicy, DockerfileParser, parse
from dlive.UTILS.errors import InvalidDirectiveValueError, LiveCommandConflictError

FIXTURE_TEXT = """FROM build AS build

#dev-env=UDEV=1 ANOTHER=true
#dev-cmd-live=live

COPY testfile ./
RUN build

FROM run as target

ENV UDEV=1 ANOTHER=true

COPY --from=build /build/smth /tmp/smth
CMD run
"""

APP_TEXT = """#dev-env=PORT=3000 DEBUG=1
FROM node AS app
ENV PORT=80 NAME=app
ENV LEGACY some value
RUN npm ci
CMD ["node", "server.js"]
"""


def raws(instructions):
    return [i.raw for i in instructions]


class TestApplyLiveOverlay:
    """Tests for apply_live_overlay."""

    def test_fixture_build_stage(self):
        build = parse(FIXTURE_TEXT)[0]
        assert raws(apply_live_overlay(build)) == [
            "COPY testfile ./",
            "RUN build",
            "ENV UDEV=1 ANOTHER=true",
            "CMD live",
        ]

    def test_stage_without_directives_is_unchanged(self):
        target = parse(FIXTURE_TEXT)[1]
        assert apply_live_overlay(target) == list(target.instructions)

    def test_env_merge(self):
        stage = parse(APP_TEXT)[0]
        assert raws(apply_live_overlay(stage)) == [
            "ENV PORT=3000 NAME=app",
            "ENV LEGACY some value",
            "RUN npm ci",
            'CMD ["node", "server.js"]',
            "ENV DEBUG=1",
        ]

    def test_env_merge_keeps_line_numbers(self):
        stage = parse(APP_TEXT)[0]
        assert apply_live_overlay(stage)[0].lineno == 3

    def test_env_override_of_legacy_form(self):
        stage = parse("#dev-env=LEGACY=new\nFROM a\nENV LEGACY some value\n")[0]
        assert raws(apply_live_overlay(stage)) == ["ENV LEGACY=new"]

    def test_env_merge_keeps_untouched_entries_verbatim(self):
        stage = parse("#dev-env=B=2\nFROM a\nENV A='$HOME' C=\"x y\" B=1\n")[0]
        assert raws(apply_live_overlay(stage)) == ["ENV A='$HOME' C=\"x y\" B=2"]

    def test_env_values_with_spaces_are_quoted(self):
        stage = parse("#dev-env=MSG='hello world'\nFROM a\n")[0]
        assert raws(apply_live_overlay(stage)) == ['ENV MSG="hello world"']

    def test_replaces_final_command(self):
        stage = parse('#dev-cmd-live=npm run dev\nFROM a\nENTRYPOINT ["tini"]\nCMD node\n')[0]
        assert raws(apply_live_overlay(stage)) == ['ENTRYPOINT ["tini"]', "CMD npm run dev"]

    def test_replaces_entrypoint(self):
        stage = parse('#dev-cmd-live=npm run dev\nFROM a\nENTRYPOINT ["node"]\nRUN x\n')[0]
        assert raws(apply_live_overlay(stage)) == ["CMD npm run dev", "RUN x"]

    def test_appends_command_when_missing(self):
        stage = parse("#dev-cmd-live=live\nFROM a\nRUN x\n")[0]
        assert raws(apply_live_overlay(stage)) == ["RUN x", "CMD live"]

    def test_dev_copy_and_dev_run(self):
        content = "#dev-copy=. /app\n#dev-run=npm install --dev\nFROM node\nRUN npm ci\nCMD node a\n"
        stage = parse(content)[0]
        assert raws(apply_live_overlay(stage)) == [
            "RUN npm ci",
            "COPY . /app",
            "RUN npm install --dev",
            "CMD node a",
        ]

    def test_dev_run_not_duplicated(self):
        stage = parse("#dev-run=npm ci\nFROM node\nRUN npm ci\n")[0]
        assert raws(apply_live_overlay(stage)) == ["RUN npm ci"]

    def test_original_instructions_untouched(self):
        stage = parse(APP_TEXT)[0]
        before = stage.instructions
        apply_live_overlay(stage)
        assert stage.instructions == before
        assert stage.instructions[0].raw == "ENV PORT=80 NAME=app"

    @pytest.mark.parametrize("content", [
        FIXTURE_TEXT,
        APP_TEXT,
        "#dev-copy=. /app\n#dev-run=make\n#dev-cmd-live=serve\nFROM a\nRUN x\n",
        "#dev-env=A='x y' B=2\n#dev-cmd-live=serve\nFROM a\nENV A old\nCMD run\n",
    ])
    def test_idempotent(self, content):
        for stage in parse(content):
            once = apply_live_overlay(stage)
            assert apply_live_overlay(with_live_overlay(stage)) == once

    def test_invalid_env_raises(self):
        stage = parse("#dev-env=NOPE\nFROM a\n")[0]
        with pytest.raises(InvalidDirectiveValueError):
            apply_live_overlay(stage)


def stage_shape(stage):
    return (
        stage.name,
        stage.base,
        [(d.key, d.value) for d in stage.directives],
        [(i.keyword, i.arguments, i.raw) for i in stage.instructions],
    )


class TestRenderDockerfile:
    """Tests for serialising stages back to text."""

    @pytest.mark.parametrize("policy", list(ContiguityPolicy))
    def test_round_trip(self, policy):
        content = "\n".join([
            "# syntax=docker/dockerfile:1",
            "ARG BASE=alpine",
            "#dev-env=A=1",
            "FROM ${BASE} AS one",
            "RUN apk add \\",
            "    curl",
            "#dev-cmd-live=sh -c 'sleep 1'",
            "FROM one",
            "CMD sh",
        ])
        parser = DockerfileParser(policy)
        document = parser.parse_document(content)
        rendered = parser.parse_document(render_dockerfile(document))
        assert [stage_shape(s) for s in rendered.stages] == [stage_shape(s) for s in document.stages]
        assert [i.raw for i in rendered.preamble] == ["ARG BASE=alpine"]
        assert rendered.parser_directives[0].value == "docker/dockerfile:1"

    @pytest.mark.parametrize("policy", list(ContiguityPolicy))
    @pytest.mark.parametrize("key", ["syntax", "escape", "check"])
    def test_round_trip_stage_directive_named_like_parser_directive(self, policy, key):
        parser = DockerfileParser(policy)
        document = parser.parse_document(f"\n#{key}=x\nFROM a AS app\nRUN y \\\n    z\n")
        rendered = render_dockerfile(document)
        assert rendered.startswith("\n")

        reparsed = parser.parse_document(rendered)
        assert reparsed.parser_directives == ()
        assert [stage_shape(s) for s in reparsed.stages] == [stage_shape(s) for s in document.stages]
        assert [(d.key, d.value) for d in reparsed.stages[0].directives] == [(key, "x")]

    def test_render_stage_list(self):
        stages = parse(FIXTURE_TEXT)
        assert render_dockerfile(stages) == (
            "#dev-env=UDEV=1 ANOTHER=true\n"
            "#dev-cmd-live=live\n"
            "FROM build AS build\n"
            "COPY testfile ./\n"
            "RUN build\n"
            "\n"
            "FROM run as target\n"
            "ENV UDEV=1 ANOTHER=true\n"
            "COPY --from=build /build/smth /tmp/smth\n"
            "CMD run\n"
        )


class TestRenderLiveDockerfile:
    """Tests for the live Dockerfile."""

    def test_fixture(self):
        document = DockerfileParser().parse_document(FIXTURE_TEXT)
        assert render_live_dockerfile(document) == (
            "FROM build AS build\n"
            "COPY testfile ./\n"
            "RUN build\n"
            "ENV UDEV=1 ANOTHER=true\n"
            "CMD live\n"
        )

    def test_without_live_command_keeps_all_stages(self):
        document = DockerfileParser(ContiguityPolicy.STRICT).parse_document(FIXTURE_TEXT)
        rendered = render_live_dockerfile(document)
        assert [s.name for s in parse(rendered)] == ["build", "target"]

    def test_live_file_is_stable(self):
        live = render_live_dockerfile(parse(APP_TEXT))
        assert render_live_dockerfile(parse(live)) == live

    def test_keeps_head(self):
        content = "# syntax=docker/dockerfile:1\nARG V=1\n#dev-cmd-live=x\nFROM a\n"
        assert render_live_dockerfile(DockerfileParser().parse_document(content)) == (
            "# syntax=docker/dockerfile:1\n"
            "\n"
            "ARG V=1\n"
            "\n"
            "FROM a\n"
            "CMD x\n"
        )

    def test_multiple_live_commands(self):
        content = "#dev-cmd-live=a\nFROM a AS one\n#dev-cmd-live=b\nFROM b AS two\n"
        with pytest.raises(LiveCommandConflictError):
            render_live_dockerfile(parse(content))
