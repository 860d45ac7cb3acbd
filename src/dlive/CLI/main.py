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
Command Line Interface for dlive.
"""
import json
import logging
import os

import click
import yaml

from ..CONFIG.settings import SettingsError, load_settings
from ..CONVERTERS.live_overlay import apply_live_overlay, render_live_dockerfile
from ..MODELS.dockerfile_ast import Dockerfile, Stage
from ..PARSERS.dockerfile_parser import ContiguityPolicy, DockerfileParser
from ..RESOLVERS.directive_resolver import find_stage, resolve_directive
from ..UTILS.errors import DockerfileError

logger = logging.getLogger(__name__)


@click.group()
@click.option('--file', '-f', default=None, help='Dockerfile path (default: $DLIVE_DOCKERFILE or Dockerfile)')
@click.option('--policy', type=click.Choice([p.value for p in ContiguityPolicy]), default=None,
              help='How directive comments attach to stages')
@click.option('--verbosity', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']), default=None,
              help='Set logging level')
@click.pass_context
def cli(ctx, file, policy, verbosity):
    """
    dlive - live development directives for Dockerfiles.

    Reads #dev-env / #dev-cmd-live style comments and derives the live
    variant of each build stage.
    """
    try:
        settings = load_settings()
    except SettingsError as e:
        raise click.ClickException(str(e))

    logging.basicConfig(level=getattr(logging, verbosity or settings.log_level))

    ctx.ensure_object(dict)
    ctx.obj['file'] = file or settings.dockerfile
    ctx.obj['parser'] = DockerfileParser(policy or settings.policy)


def _load(ctx) -> Dockerfile:
    path = ctx.obj['file']
    if not os.path.exists(path):
        raise click.ClickException(f"{path} not found.")
    with open(path, 'r', encoding='utf-8') as f:
        content = f.read()
    try:
        dockerfile = ctx.obj['parser'].parse_document(content)
    except DockerfileError as e:
        raise click.ClickException(str(e))
    logger.info("Parsed %d stage(s) from %s", len(dockerfile.stages), path)
    return dockerfile


def _stage(dockerfile: Dockerfile, reference: str) -> Stage:
    try:
        return find_stage(dockerfile.stages, reference)
    except DockerfileError as e:
        raise click.ClickException(str(e))


def _stage_summary(stage: Stage) -> dict:
    return {
        'index': stage.index,
        'name': stage.name,
        'base': stage.base,
        'platform': stage.platform,
        'directives': [{'key': d.key, 'value': d.value} for d in stage.directives],
        'instructions': [i.raw for i in stage.instructions],
    }


def _dump(data, fmt: str) -> str:
    if fmt == 'json':
        return json.dumps(data, indent=2)
    return yaml.safe_dump(data, sort_keys=False).rstrip()


@cli.command()
@click.option('--format', 'fmt', type=click.Choice(['yaml', 'json']), default='yaml')
@click.pass_context
def stages(ctx, fmt):
    """List build stages and their directives"""
    dockerfile = _load(ctx)
    click.echo(_dump([_stage_summary(s) for s in dockerfile.stages], fmt))


@cli.command()
@click.argument('stage')
@click.argument('key')
@click.option('--format', 'fmt', type=click.Choice(['yaml', 'json']), default='yaml')
@click.pass_context
def directive(ctx, stage, key, fmt):
    """Resolve directive KEY of STAGE (name or index)"""
    target = _stage(_load(ctx), stage)
    try:
        value = resolve_directive(target, key)
    except DockerfileError as e:
        raise click.ClickException(str(e))
    if value is None:
        click.echo(f"No directive '{key}' on stage {target.ref}", err=True)
        ctx.exit(1)
    click.echo(_dump(value.model_dump(mode='json'), fmt))


@cli.command()
@click.argument('stage')
@click.pass_context
def overlay(ctx, stage):
    """Print the live instructions of STAGE"""
    target = _stage(_load(ctx), stage)
    try:
        instructions = apply_live_overlay(target)
    except DockerfileError as e:
        raise click.ClickException(str(e))
    click.echo(target.from_instruction.raw)
    for instruction in instructions:
        click.echo(instruction.raw)


@cli.command()
@click.option('--out', '-o', default=None, help='Write the live Dockerfile here instead of stdout')
@click.pass_context
def live(ctx, out):
    """Generate the live Dockerfile"""
    dockerfile = _load(ctx)
    try:
        content = render_live_dockerfile(dockerfile)
    except DockerfileError as e:
        raise click.ClickException(str(e))

    if out:
        with open(out, 'w', encoding='utf-8') as f:
            f.write(content)
        click.echo(f"Live Dockerfile written to {out}")
    else:
        click.echo(content, nl=False)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
