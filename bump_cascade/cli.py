"""CLI entry point for bump-cascade."""

from __future__ import annotations

import json
from pathlib import Path

import click
from packaging.utils import canonicalize_name

from bump_cascade import console
from bump_cascade.config import STATE_ENV, STATE_FILENAME, Context
from bump_cascade.errors import BumpCascadeError, MalformedTemplate, NotPublishable
from bump_cascade.graph import PackageGraph
from bump_cascade.manifest import read_last_published, read_manifest
from bump_cascade.models import Todo
from bump_cascade.session import create_session, load_session, write_session
from bump_cascade.template import format_help
from bump_cascade.workflow import ALL_KEYS, BASIC_KEYS, WorkflowState, gather, keys_help

STATUS_FORMAT = "$path[ ($invalidated)][ = $hash][ $ready][ :: $unmet]"
REQUIRES_STATE = f"Requires the {STATE_ENV} environment variable to be set, see 'init'."


def _verbatim(text: str) -> str:
    """Stop click from rewrapping each paragraph of text."""
    paragraphs = [p for p in text.strip("\n").split("\n\n") if p.strip()]
    return "\n\n".join(f"\b\n{p}" for p in paragraphs)


BASIC_FORMAT_HELP = _verbatim(format_help(keys_help(BASIC_KEYS)))
FORMAT_HELP = _verbatim(format_help(keys_help(ALL_KEYS)))


class _Group(click.Group):
    """Command group that reports library errors as click errors."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except BumpCascadeError as exc:
            raise click.ClickException(str(exc)) from exc


def _context() -> Context:
    return Context.from_env()


def _gather(context: Context, name: str) -> list[Todo]:
    graph = PackageGraph.load(context.require_store_root(), context.root)
    return gather(graph, canonicalize_name(name))


def _load(context: Context) -> tuple[Path, WorkflowState]:
    path = context.require_state_file()
    return path, load_session(path, context.src_root)


def _current_package(context: Context, package: str | None) -> str:
    if package:
        return canonicalize_name(package)
    return read_manifest(context.root).name


def _render_all(
    state: WorkflowState, todos: list[Todo], fmtstr: str
) -> tuple[list[tuple[Todo, str]], bool]:
    """Render every todo, reporting per-record failures.

    Syntax errors in fmtstr abort; any other failure is reported and the
    record skipped.
    """
    rendered: list[tuple[Todo, str]] = []
    failed = False
    for todo in todos:
        try:
            rendered.append((todo, state.format(todo, fmtstr)))
        except MalformedTemplate:
            raise
        except BumpCascadeError as exc:
            console.warn(str(exc))
            failed = True
    return rendered, failed


def _has_key(state: WorkflowState, todo: Todo, key: str) -> bool:
    try:
        _, present = state.get(todo, key)
    except BumpCascadeError:
        return False
    return present


@click.group(cls=_Group)
@click.version_option(package_name="bump-cascade")
def cli() -> None:
    """Coordinate cascading updates of a dependency through its dependents."""


@cli.command(
    short_help="Show packages that need to change to change NAME.",
    help=_verbatim(
        """
Show the dependencies that need to be changed in order to change NAME in
the current package.  The normal output lists each package and what that
package directly depends on, with a blank line between levels.  With
--json a detailed JSON listing is given.  With --list only the packages
are listed.

The -f option can be used to customize the output.  It defaults to
'$path[ :: $deps]' for the normal output and '$path' with --list.
"""
    )
    + "\n\n"
    + BASIC_FORMAT_HELP
)
@click.option("--json", "as_json", is_flag=True, help="Detailed JSON output.")
@click.option("--list", "as_list", is_flag=True, help="Only list the packages.")
@click.option("-f", "fmtstr", default=None, help="Format string.")
@click.argument("name")
def preview(as_json: bool, as_list: bool, fmtstr: str | None, name: str) -> None:
    if as_json and as_list:
        raise click.UsageError("--json and --list are mutually exclusive")
    context = _context()
    todos = _gather(context, name)
    if as_json:
        click.echo(json.dumps([t.model_dump(exclude_defaults=True) for t in todos], indent=2))
        return

    state = WorkflowState(todos, src_root=context.src_root)
    if fmtstr is None:
        fmtstr = "$path" if as_list else "$path[ :: $deps]"
    level = 0
    for todo in state.todos:
        if not as_list and todo.level != level:
            click.echo()
            level = todo.level
        click.echo(state.format(todo, fmtstr))


@cli.command()
@click.argument("name")
def init(name: str) -> None:
    """Start a new session for updating NAME in the current package.

    Creates .bump-cascade-state.json in the current directory and prints
    the command that points BUMP_CASCADE_STATE at it.
    """
    context = _context()
    console.step(f"Gathering packages that depend on {name}")
    todos = _gather(context, name)
    state = WorkflowState(todos, src_root=context.src_root)
    console.info(f"{len(todos)} packages in {todos[-1].level + 1} levels")

    path = context.root.resolve() / STATE_FILENAME
    create_session(path, state)
    click.echo(f"export {STATE_ENV}={path}")


@cli.command(
    "list",
    short_help="List packages in the session, optionally filtered.",
    help=_verbatim(
        """
List all packages in the session, optionally only those for which the
key COND is set (e.g. ready, published, or a metadata key).  Prefix COND
with 'not' to invert the condition.

The -f option customizes the output and defaults to '$path'.  The
--by-level option separates the levels of the reverse dependency graph.

To list all packages that are ready to be updated by directory:
  bump-cascade list -f '$dir' ready
"""
    )
    + "\n\n"
    + FORMAT_HELP
    + "\n\n"
    + REQUIRES_STATE,
)
@click.option("-f", "fmtstr", default="$path", show_default=True, help="Format string.")
@click.option("--by-level", is_flag=True, help="Separate levels with a blank line.")
@click.argument("cond", nargs=-1)
def list_cmd(fmtstr: str, by_level: bool, cond: tuple[str, ...]) -> None:
    invert = bool(cond) and cond[0] == "not"
    if invert:
        cond = cond[1:]
        if not cond:
            raise click.UsageError("'not' needs a condition")
    if len(cond) > 1:
        raise click.UsageError(f"expected at most one condition, got: {' '.join(cond)}")
    key = cond[0] if cond else ""

    _, state = _load(_context())
    todos = [t for t in state.todos if not key or _has_key(state, t, key) != invert]
    rendered, failed = _render_all(state, todos, fmtstr)
    level = -1
    for todo, line in rendered:
        if by_level and level != -1 and todo.level != level:
            console.separator()
        level = todo.level
        click.echo(line)
    if failed:
        raise click.ClickException("some entries could not be displayed")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show current status.

    Alias for: list -f '$path[ ($invalidated)][ = $hash][ $ready][ :: $unmet]' --by-level
    """
    ctx.invoke(list_cmd, fmtstr=STATUS_FORMAT, by_level=True, cond=())


@cli.command()
def state() -> None:
    """Show the session file."""
    path, _ = _load(_context())
    click.echo(path.read_text(), nl=False)


DEPS_KINDS = ["direct", "also", "to-update", "specified", "indirect", "all"]


@cli.command(
    short_help="List dependencies of a package in the session.",
    help=_verbatim(
        """
List dependencies of the current or specified package.  With no KIND the
direct dependencies are listed, otherwise:

  direct:               deps. that triggered the update
  also:                 other deps. in the manifest also being updated
  to-update|specified:  all deps. listed in the manifest (direct + also)
  indirect:             all other deps. being updated
  all:                  everything above

The -f option defaults to '$path'.
"""
    )
    + "\n\n"
    + FORMAT_HELP
    + "\n\n"
    + REQUIRES_STATE
)
@click.option("-f", "fmtstr", default="$path", show_default=True, help="Format string.")
@click.option("-p", "package", default=None, help="Package to use instead of the current one.")
@click.argument("kinds", nargs=-1, type=click.Choice(DEPS_KINDS))
def deps(fmtstr: str, package: str | None, kinds: tuple[str, ...]) -> None:
    context = _context()
    _, state = _load(context)
    todo = state.get_todo(_current_package(context, package))

    wanted = set(kinds or ["direct"])
    names: set[str] = set()
    if wanted & {"direct", "to-update", "specified", "all"}:
        names.update(todo.deps)
    if wanted & {"also", "to-update", "specified", "all"}:
        names.update(todo.also_update)
    if wanted & {"indirect", "all"}:
        names.update(todo.indirect)

    rendered, failed = _render_all(state, [state.by_name[n] for n in sorted(names)], fmtstr)
    if failed:
        raise click.ClickException("aborting due to previous errors")
    for _, line in rendered:
        click.echo(line)


@cli.command()
@click.argument("mode", default="mark", type=click.Choice(["mark", "reset", "clean"]))
def published(mode: str) -> None:
    """Change the published state of packages.

    \b
    mark (default): mark the current package as published, using the hash
        in .bump-cascade/lastpubver and the dependency hashes in its
        pyproject.toml.  If a dependency hash does not match what that
        dependency published, the package is left invalidated.
    reset: clear the published info of the current package.
    clean: clear the published info of ALL invalidated packages.
    """
    context = _context()
    path, state = _load(context)
    failure: NotPublishable | None = None
    if mode == "clean":
        for todo in state.clean():
            console.info(f"cleared {todo.name}")
    else:
        manifest = read_manifest(context.root)
        if mode == "mark":
            try:
                state.mark(manifest, read_last_published(context.root))
            except NotPublishable as exc:
                failure = exc
        else:
            state.reset(manifest.name)
    write_session(path, state)
    if failure is not None:
        raise click.ClickException(f"{failure}, run 'bump-cascade status' for more info")


@cli.command(
    "to-pin",
    short_help="List the pins of published packages.",
    help=_verbatim(
        """
List the pins of all packages once done.  Fails if any package except
the last (the final target, which need not be published) is not yet
published.

The -f option defaults to '$hash $path $version'.
"""
    )
    + "\n\n"
    + FORMAT_HELP
    + "\n\n"
    + REQUIRES_STATE,
)
@click.option("-f", "fmtstr", default="$hash $path $version", show_default=True)
def to_pin(fmtstr: str) -> None:
    _, state = _load(_context())
    unpublished: list[str] = []
    last = len(state.todos) - 1
    for i, todo in enumerate(state.todos):
        if todo.published:
            click.echo(state.format(todo, fmtstr))
        elif i != last:
            unpublished.append(todo.name)
    if unpublished:
        raise click.ClickException(f"unpublished dependencies: {' '.join(unpublished)}")


@cli.group()
@click.option("-p", "package", default=None, help="Package to use instead of the current one.")
@click.pass_context
def meta(ctx: click.Context, package: str | None) -> None:
    """Change metadata of a package, or the shared defaults."""
    ctx.ensure_object(dict)["package"] = package


def _meta_target(ctx: click.Context) -> tuple[Path, WorkflowState, Todo]:
    context = _context()
    path, state = _load(context)
    todo = state.get_todo(_current_package(context, ctx.obj["package"]))
    return path, state, todo


@meta.command("get")
@click.argument("key")
@click.pass_context
def meta_get(ctx: click.Context, key: str) -> None:
    """Print KEY, falling back to the shared defaults."""
    _, state, todo = _meta_target(ctx)
    value = todo.meta.get(key, state.defaults.get(key))
    if value is None:
        raise click.ClickException(f"{key} not defined")
    click.echo(value)


@meta.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def meta_set(ctx: click.Context, key: str, value: str) -> None:
    path, state, todo = _meta_target(ctx)
    state.set_meta(todo.name, key, value)
    write_session(path, state)


@meta.command("unset")
@click.argument("key")
@click.pass_context
def meta_unset(ctx: click.Context, key: str) -> None:
    path, state, todo = _meta_target(ctx)
    state.unset_meta(todo.name, key)
    write_session(path, state)


@meta.command("vals")
@click.pass_context
def meta_vals(ctx: click.Context) -> None:
    """List all key/value pairs of the package."""
    _, _, todo = _meta_target(ctx)
    for key, value in sorted(todo.meta.items()):
        click.echo(f"{key} {value}")


@meta.group("default")
def meta_default() -> None:
    """Change the shared default metadata."""


@meta_default.command("get")
@click.argument("key")
def default_get(key: str) -> None:
    _, state = _load(_context())
    if key not in state.defaults:
        raise click.ClickException(f"{key} not defined")
    click.echo(state.defaults[key])


@meta_default.command("set")
@click.argument("key")
@click.argument("value")
def default_set(key: str, value: str) -> None:
    path, state = _load(_context())
    state.set_default(key, value)
    write_session(path, state)


@meta_default.command("unset")
@click.argument("key")
def default_unset(key: str) -> None:
    path, state = _load(_context())
    state.unset_default(key)
    write_session(path, state)


@meta_default.command("vals")
def default_vals() -> None:
    _, state = _load(_context())
    for key, value in sorted(state.defaults.items()):
        click.echo(f"{key} {value}")
