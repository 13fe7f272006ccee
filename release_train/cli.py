"""CLI entry point for release-train."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import click

from .errors import ReleaseTrainError
from .github import GitHub
from .manifest import Manifest
from .models import DEFAULT_CONFIG_FILE, DEFAULT_MANIFEST_FILE


def _validate_repo(ctx: click.Context, param: click.Parameter, value: str) -> str:
    if value.count("/") != 1 or not all(value.split("/")):
        raise click.BadParameter("expected owner/name")
    return value


def manifest_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that loads a manifest."""
    options = [
        click.option(
            "--repo",
            envvar="GITHUB_REPOSITORY",
            required=True,
            callback=_validate_repo,
            help="Repository as owner/name. Defaults to $GITHUB_REPOSITORY.",
        ),
        click.option("--target-branch", default="main", show_default=True, help="Branch releases are cut from."),
        click.option("--config-file", default=DEFAULT_CONFIG_FILE, show_default=True),
        click.option("--manifest-file", default=DEFAULT_MANIFEST_FILE, show_default=True),
        click.option("--path", default=None, help="Only release this package path."),
        click.option("--release-as", default=None, help="Force this version for the selected paths."),
        click.option("--dry-run", is_flag=True, help="Print what would change without writing anything."),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn release-train errors into a clean CLI failure."""
    try:
        yield
    except ReleaseTrainError as e:
        raise click.ClickException(str(e)) from e


def load_manifest(
    repo: str,
    target_branch: str,
    config_file: str,
    manifest_file: str,
    path: str | None,
    release_as: str | None,
) -> Manifest:
    return Manifest.from_manifest(
        GitHub(repo),
        target_branch,
        config_file,
        manifest_file,
        path=path,
        release_as=release_as,
    )


@click.group()
@click.version_option(package_name="release-train")
def cli() -> None:
    """Release pull requests and GitHub releases from conventional commits."""


@cli.command("release-pr")
@manifest_options
def release_pr(
    repo: str,
    target_branch: str,
    config_file: str,
    manifest_file: str,
    path: str | None,
    release_as: str | None,
    dry_run: bool,
) -> None:
    """Open or refresh release pull requests."""
    with reported_errors():
        manifest = load_manifest(repo, target_branch, config_file, manifest_file, path, release_as)
        if dry_run:
            for pull_request in manifest.build_pull_requests():
                click.echo(f"{pull_request.head_ref_name}: {pull_request.title}")
            return
        for written in manifest.create_pull_requests():
            click.echo(f"#{written.number} {written.title}")


@cli.command("github-release")
@manifest_options
def github_release(
    repo: str,
    target_branch: str,
    config_file: str,
    manifest_file: str,
    path: str | None,
    release_as: str | None,
    dry_run: bool,
) -> None:
    """Tag and publish releases for merged release pull requests."""
    with reported_errors():
        manifest = load_manifest(repo, target_branch, config_file, manifest_file, path, release_as)
        if dry_run:
            for release in manifest.build_releases():
                click.echo(f"{release.tag} {release.sha[:7]}")
            return
        for created in manifest.create_releases():
            click.echo(f"{created.tag_name} {created.url}")
