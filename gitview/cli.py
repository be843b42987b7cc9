"""
Command-line interface for gitview.

This module provides diagnostic commands that exercise the full component
stack (runner, service, read cache, change watcher) against a repository:
- info: Repository summary
- status: Working tree status
- log: Recent commits
- branches: Local and remote branches
- watch: Print a line for every debounced change notification
- version: gitview and git versions
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

import click

from gitview import __version__
from gitview.config import GitViewConfig, WatcherConfig, get_settings
from gitview.exceptions import GitViewException
from gitview.factories import Repository, open_repository
from gitview.git.models import FileStatus
from gitview.process.runner import ProcessRunner, TimeoutClass

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _load_config(watcher: bool = False) -> GitViewConfig:
    config = GitViewConfig.from_settings(get_settings())
    if not watcher:
        # One-shot commands never consume change notifications.
        config.watcher = WatcherConfig(enabled=False, debounce=config.watcher.debounce)
    return config


def _run(
    path: Path,
    action: Callable[[Repository], Awaitable[int]],
    watcher: bool = False,
) -> int:
    """Open the repository at ``path``, run ``action`` and map errors to an exit code."""

    async def run_action() -> int:
        try:
            repo = await open_repository(path, config=_load_config(watcher))
        except GitViewException as e:
            click.echo(click.style(f"Error: {e.message}", fg='red'), err=True)
            return 1

        try:
            return await action(repo)
        except GitViewException as e:
            click.echo(click.style(f"Error: {e.message}", fg='red'), err=True)
            logger.debug(f"Command failed: {e.to_dict()}")
            return 1
        finally:
            await repo.close()

    return asyncio.run(run_action())


def _status_to_dict(entry: FileStatus) -> dict:
    return {
        "path": entry.path,
        "orig_path": entry.orig_path,
        "staging": entry.staging.value,
        "worktree": entry.worktree.value,
        "is_staged": entry.is_staged,
    }


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option(
    '--path', '-C',
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    default=Path('.'),
    help='Run as if started in this directory (default: current directory)'
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, path: Path):
    """
    gitview CLI.

    Diagnostic commands for the git mediation layer.
    """
    ctx.ensure_object(dict)
    ctx.obj['path'] = path

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")
    else:
        logging.getLogger().setLevel(get_settings().log_level.upper())


@cli.command('info')
@click.pass_context
def info_command(ctx: click.Context):
    """
    Show a summary of the repository.

    Examples:

        \b
        gitview info
        gitview -C ../other-repo info
    """
    async def show_info(repo: Repository) -> int:
        service = repo.service
        head, upstream, (ahead, behind), clean, merging, rebasing = await asyncio.gather(
            service.head(),
            service.upstream(),
            service.ahead_behind(),
            service.is_clean(),
            service.is_merging(),
            service.is_rebasing(),
        )

        click.echo(click.style("Repository", fg='blue', bold=True))
        click.echo(f"  Root: {repo.root}")
        click.echo(f"  Git dir: {repo.git_dir}")
        click.echo(f"  HEAD: {head}")
        if upstream:
            click.echo(f"  Upstream: {upstream} (ahead {ahead}, behind {behind})")
        else:
            click.echo("  Upstream: none")
        click.echo(f"  Clean: {'yes' if clean else 'no'}")
        if merging:
            click.echo(click.style("  Merge in progress", fg='yellow'))
        if rebasing:
            click.echo(click.style("  Rebase in progress", fg='yellow'))
        return 0

    raise SystemExit(_run(ctx.obj['path'], show_info))


@cli.command('status')
@click.option(
    '--json',
    'output_json',
    is_flag=True,
    help='Output status as JSON'
)
@click.pass_context
def status_command(ctx: click.Context, output_json: bool):
    """
    Show the working tree status, grouped by section.

    Examples:

        \b
        gitview status
        gitview status --json
    """
    async def show_status(repo: Repository) -> int:
        result = await repo.service.status()

        if output_json:
            click.echo(json.dumps({
                "staged": [_status_to_dict(e) for e in result.staged],
                "unstaged": [_status_to_dict(e) for e in result.unstaged],
                "untracked": [_status_to_dict(e) for e in result.untracked],
                "conflicts": [_status_to_dict(e) for e in result.conflicts],
            }, indent=2))
            return 0

        if result.is_empty:
            click.echo("Nothing to commit, working tree clean")
            return 0

        sections = [
            ("Conflicts", result.conflicts, 'red'),
            ("Staged", result.staged, 'green'),
            ("Unstaged", result.unstaged, 'yellow'),
            ("Untracked", result.untracked, None),
        ]
        for title, entries, color in sections:
            if not entries:
                continue
            click.echo(click.style(f"{title} ({len(entries)}):", fg=color, bold=True))
            for entry in entries:
                code = entry.staging if title == "Staged" else entry.worktree
                name = entry.path
                if entry.orig_path:
                    name = f"{entry.orig_path} -> {entry.path}"
                click.echo(f"  {code.label:<12} {name}")
        return 0

    raise SystemExit(_run(ctx.obj['path'], show_status))


@cli.command('log')
@click.option(
    '--max-count', '-n',
    default=20,
    type=click.IntRange(1, 10000),
    help='Number of commits to show (default: 20)'
)
@click.pass_context
def log_command(ctx: click.Context, max_count: int):
    """
    Show recent commits on the current branch.
    """
    async def show_log(repo: Repository) -> int:
        commits = await repo.service.log(max_count)
        for commit in commits:
            decoration = ""
            if commit.refs:
                decoration = " (" + ", ".join(ref.name for ref in commit.refs) + ")"
            click.echo(
                f"{click.style(commit.short_hash, fg='yellow')}{decoration} "
                f"{commit.subject} - {commit.author}, {commit.relative_date}"
            )
        return 0

    raise SystemExit(_run(ctx.obj['path'], show_log))


@cli.command('branches')
@click.pass_context
def branches_command(ctx: click.Context):
    """
    List local and remote branches, most recently active first.
    """
    async def show_branches(repo: Repository) -> int:
        for branch in await repo.service.branches():
            marker = "*" if branch.is_current else " "
            tracking = ""
            if branch.upstream_gone:
                tracking = f" [{branch.upstream}: gone]"
            elif branch.upstream:
                tracking = f" [{branch.upstream}: ahead {branch.ahead}, behind {branch.behind}]"
            name = click.style(branch.name, fg='red' if branch.is_remote else 'green')
            click.echo(f"{marker} {name} {branch.hash}{tracking} {branch.subject}")
        return 0

    raise SystemExit(_run(ctx.obj['path'], show_branches))


@cli.command('watch')
@click.option(
    '--count', '-c',
    default=0,
    type=click.IntRange(0, None),
    help='Exit after this many notifications (default: 0, run until interrupted)'
)
@click.pass_context
def watch_command(ctx: click.Context, count: int):
    """
    Print a line with the current HEAD whenever repository state changes.

    Examples:

        \b
        # Watch until Ctrl+C
        gitview watch

        \b
        # Exit after the first notification
        gitview watch --count 1
    """
    async def watch(repo: Repository) -> int:
        if repo.watcher is None:
            click.echo(click.style("Watcher is disabled (GITVIEW_WATCHER_ENABLED)", fg='yellow'), err=True)
            return 1

        click.echo(f"Watching {repo.git_dir} (Ctrl+C to stop)")
        seen = 0
        async for _ in repo.watcher:
            head = await repo.service.head()
            status = await repo.service.status()
            seen += 1
            click.echo(f"[{seen}] HEAD={head} changes={status.total_count}")
            if count and seen >= count:
                break

        if repo.watcher.terminated:
            click.echo(click.style("Watcher terminated; refresh manually", fg='yellow'), err=True)
            return 1
        return 0

    try:
        exit_code = _run(ctx.obj['path'], watch, watcher=True)
    except KeyboardInterrupt:
        exit_code = 0
    raise SystemExit(exit_code)


@cli.command('version')
@click.option(
    '--json',
    'output_json',
    is_flag=True,
    help='Output versions as JSON'
)
def version_command(output_json: bool):
    """
    Show the gitview version and the version of the git executable in use.
    """
    async def git_version() -> Optional[str]:
        config = GitViewConfig.from_settings(get_settings())
        runner = ProcessRunner(
            executable=config.runner.executable,
            read_timeout=config.runner.read_timeout,
        )
        try:
            out = await runner.run(["--version"], TimeoutClass.READ)
        except GitViewException as e:
            logger.debug(f"Cannot determine git version: {e.message}")
            return None
        return out.strip()

    git = asyncio.run(git_version())

    if output_json:
        click.echo(json.dumps({"gitview": __version__, "git": git}, indent=2))
    else:
        click.echo(f"gitview {__version__}")
        click.echo(git or click.style("git: not available", fg='yellow'))


if __name__ == '__main__':
    cli()
