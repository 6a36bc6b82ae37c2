"""CLI for age-env - encrypted environments for the age encryption tool."""

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from . import __version__
from .cipher import AgeCipher, RecipientSet, check_age_keygen_installed
from .config import StorePaths, get_config_dir, load_settings
from .errors import (
    AbortedByUser,
    AgeEnvError,
    CipherProcessError,
    StoreNotInitialized,
)
from .log import resolve_level, setup_logging
from .session import Session
from .store import EnvironmentStore

console = Console()
err_console = Console(stderr=True)


def confirm(prompt: str) -> bool:
    """Ask a yes/no question on the terminal (prompt goes to stderr)."""
    return Confirm.ask(escape(prompt), console=err_console, default=False)


def make_store(args) -> EnvironmentStore:
    """Build the store for this invocation from parsed arguments."""
    paths = StorePaths(args.config_dir)
    paths.ensure()
    settings = load_settings(paths.settings_file)
    setup_logging(resolve_level(args.verbose, settings.log_level))
    return EnvironmentStore(
        paths,
        AgeCipher(settings.age_binary),
        session=Session(),
        confirm=confirm if sys.stdin.isatty() else None,
    )


def recipient_set(args) -> RecipientSet:
    return RecipientSet(
        recipients=list(args.recipient or []),
        recipient_files=[Path(path).expanduser() for path in args.recipients_file or []],
    )


def cmd_add_identity(store, args):
    """Append identities read from stdin to the identities file."""
    path = store.add_identity(sys.stdin.read())
    err_console.print(f"[green]Added identities to[/green] {path}")
    return 0


def cmd_add_recipient(store, args):
    """Append recipients read from stdin to the global recipients file."""
    path = store.add_recipient(sys.stdin.read())
    err_console.print(f"[green]Added recipients to[/green] {path}")
    return 0


def cmd_list(store, args):
    """List all environments (names only, nothing is decrypted)."""
    names = store.list_environments()

    if not names:
        console.print("[dim]No environments found.[/dim]")
        return 0

    table = Table(title="Environments", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("File", style="dim")

    for name in names:
        table.add_row(name, str(store.paths.envs_dir / name))

    console.print(table)
    console.print(f"\n[dim]Total: {len(names)} environments[/dim]")
    return 0


def cmd_create(store, args):
    """
    Create an environment from an env file or stdin.

    Existing environments are only overwritten after confirmation, or
    with -y.
    """
    if args.from_env_file:
        env_file = Path(args.from_env_file).expanduser()
        if not env_file.exists():
            err_console.print(f"[red]Error:[/red] File not found: {env_file}")
            return 1
        source = env_file.read_text()
    else:
        source = sys.stdin.read()

    path = store.create(
        args.name,
        source,
        recipients=recipient_set(args),
        skip_confirmation=args.skip_upsert_confirmation,
        only=args.only,
        exclude=args.exclude,
    )
    err_console.print(f"[green]Created environment[/green] {args.name} in {path}")
    return 0


def cmd_show(store, args):
    """
    Print an environment as KEY=VALUE lines (UNSAFE - shows values).

    With --key only the raw value is printed, without a newline, for piping.
    """
    result = store.show(
        args.name,
        only=args.only,
        exclude=args.exclude,
        key=args.key,
        passthrough=args.passthrough,
    )
    if args.key is not None:
        print(result, end="")
    else:
        for line in result:
            print(line)
    return 0


def cmd_show_for_eval(store, args):
    """
    Print export statements, to be used as: eval "$(age-env se NAME)"
    """
    lines = store.show_for_eval(
        args.name,
        only=args.only,
        exclude=args.exclude,
        preload=args.preload,
        passthrough=args.passthrough,
    )
    for line in lines:
        print(line)
    return 0


def cmd_run_with_env(store, args):
    """
    Run a command with an environment injected.

    The exit status of the command becomes the exit status of age-env.
    """
    return store.run_with_env(
        args.name,
        args.exec_command,
        only=args.only,
        exclude=args.exclude,
        passthrough=args.passthrough,
    )


def cmd_reencrypt(store, args):
    """Re-encrypt one environment to a new set of recipients."""
    path = store.reencrypt(args.name, recipient_set(args))
    err_console.print(f"[green]Re-encrypted[/green] {args.name} in {path}")
    return 0


def cmd_reencrypt_all(store, args):
    """Re-encrypt every environment to a new set of recipients."""
    names = store.reencrypt_all(recipient_set(args))
    if not names:
        err_console.print("[dim]No environments to re-encrypt[/dim]")
    for name in names:
        err_console.print(f"[green]Re-encrypted[/green] {name}")
    return 0


def cmd_delete(store, args):
    """Delete an environment."""
    path = store.delete(args.name)
    err_console.print(f"[green]Deleted environment[/green] {path}")
    return 0


def cmd_delete_all(store, args):
    """Delete all environments after listing them and asking."""
    err_console.print(f"Deleting all environments in {store.paths.envs_dir}\n")
    deleted = store.delete_all()
    if not deleted:
        err_console.print("[dim]No environments to delete[/dim]")
        return 0
    for path in deleted:
        err_console.print(f"[green]Deleted[/green] {path}")
    return 0


def cmd_reset(store, args):
    """Remove the store directory with identities, recipients and environments."""
    root = store.reset()
    err_console.print(f"[green]Removed[/green] {root}")
    return 0


def cmd_status(store, args):
    """Show status and configuration."""
    console.print("[bold]age-env status[/bold]\n")

    paths = store.paths
    age_ok = store.cipher.is_installed()
    keygen_ok = check_age_keygen_installed()

    table = Table(show_header=True)
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_column("Path/Info", style="dim")

    table.add_row(
        "age",
        "[green]installed[/green]" if age_ok else "[red]not found[/red]",
        "https://github.com/FiloSottile/age" if not age_ok else store.cipher.binary,
    )
    table.add_row(
        "age-keygen",
        "[green]installed[/green]" if keygen_ok else "[yellow]not found[/yellow]",
        "",
    )
    table.add_row(
        "identities",
        "[green]exists[/green]" if paths.identities_file.exists() else "[yellow]not found[/yellow]",
        str(paths.identities_file),
    )
    table.add_row(
        "recipients",
        "[green]exists[/green]" if paths.recipients_file.exists() else "[dim]not set[/dim]",
        str(paths.recipients_file),
    )
    table.add_row("environments", str(len(store.list_environments())), str(paths.envs_dir))

    console.print(table)
    return 0


COMMANDS = {
    "add-identity": cmd_add_identity,
    "add-recipient": cmd_add_recipient,
    "list": cmd_list,
    "create": cmd_create,
    "show": cmd_show,
    "show-for-eval": cmd_show_for_eval,
    "run-with-env": cmd_run_with_env,
    "reencrypt": cmd_reencrypt,
    "reencrypt-all": cmd_reencrypt_all,
    "delete": cmd_delete,
    "delete-all": cmd_delete_all,
    "reset": cmd_reset,
    "status": cmd_status,
}


def _add_filters(parser, short_only=False):
    only_flags = ["-o", "--only"] if short_only else ["--only"]
    parser.add_argument(*only_flags, action="append", metavar="KEY",
                        help="Keep only this key (can repeat)")
    parser.add_argument("--exclude", action="append", metavar="KEY",
                        help="Drop this key (can repeat)")


def _add_recipients(parser):
    parser.add_argument("-r", "--recipient", action="append",
                        help="age recipient (can repeat)")
    parser.add_argument("-R", "--recipients-file", action="append",
                        help="File with age recipients (can repeat)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="age-env",
        description="Manage encrypted environments for the age encryption tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  age-keygen | age-env add-identity        # Set up the identity
  age-env create api -e .env -r age1...    # Encrypt an env file
  age-env show api --only TOKEN            # Print selected keys
  eval "$(age-env se api)"                 # Export into this shell
  eval "$(age-env se api --preload)"       # Cache for this shell session
  age-env rwe api -- ./deploy.sh           # Run with the environment

Environment:
  AGE_ENV_CONFIG_DIR   Override the store directory (default: ~/.age-env)
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-d", "--config-dir", type=Path, default=None,
                        help="Store directory (default: $AGE_ENV_CONFIG_DIR or ~/.age-env)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="More logging on stderr (repeat for debug)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("add-identity", aliases=["ai"],
                          help="Add identities from stdin to the store")
    subparsers.add_parser("add-recipient", aliases=["ar"],
                          help="Add recipients from stdin to the global recipients file")
    subparsers.add_parser("list", aliases=["l"], help="List environments")

    create_parser = subparsers.add_parser("create", aliases=["c"], help="Create an environment")
    create_parser.add_argument("name", help="Environment name")
    create_parser.add_argument("-e", "--from-env-file", help="Read env from file instead of stdin")
    _add_recipients(create_parser)
    create_parser.add_argument("-y", "--skip-upsert-confirmation", action="store_true",
                               help="Overwrite an existing environment without asking")
    _add_filters(create_parser)

    show_parser = subparsers.add_parser("show", aliases=["s"], help="Show an environment")
    show_parser.add_argument("name", help="Environment name")
    _add_filters(show_parser)
    show_parser.add_argument("-k", "--key", help="Print only the value of this key")
    show_parser.add_argument("--passthrough", action="store_true",
                             help="Reuse values already exported in this shell")

    eval_parser = subparsers.add_parser("show-for-eval", aliases=["se"],
                                        help="Show an environment as export statements")
    eval_parser.add_argument("name", help="Environment name")
    _add_filters(eval_parser)
    eval_parser.add_argument("--preload", action="store_true",
                             help="Export the session preload cache instead")
    eval_parser.add_argument("--passthrough", action="store_true",
                             help="Reuse values already exported in this shell")

    run_parser = subparsers.add_parser("run-with-env", aliases=["rwe"],
                                       help="Run a command with an environment")
    run_parser.add_argument("name", help="Environment name, or - to read the env from stdin")
    _add_filters(run_parser, short_only=True)
    run_parser.add_argument("--passthrough", action="store_true",
                            help="Reuse values already exported in this shell")

    reencrypt_parser = subparsers.add_parser("reencrypt", aliases=["re"],
                                             help="Re-encrypt an environment to new recipients")
    reencrypt_parser.add_argument("name", help="Environment name")
    _add_recipients(reencrypt_parser)

    reencrypt_all_parser = subparsers.add_parser("reencrypt-all", aliases=["rea"],
                                                 help="Re-encrypt all environments")
    _add_recipients(reencrypt_all_parser)

    delete_parser = subparsers.add_parser("delete", aliases=["d"], help="Delete an environment")
    delete_parser.add_argument("name", help="Environment name")

    subparsers.add_parser("delete-all", aliases=["da"], help="Delete all environments")
    subparsers.add_parser("reset", aliases=["r"], help="Remove the store directory")
    subparsers.add_parser("status", help="Show status and configuration")

    return parser


ALIASES = {
    "ai": "add-identity",
    "ar": "add-recipient",
    "l": "list",
    "c": "create",
    "s": "show",
    "se": "show-for-eval",
    "rwe": "run-with-env",
    "re": "reencrypt",
    "rea": "reencrypt-all",
    "d": "delete",
    "da": "delete-all",
    "r": "reset",
}


def split_command(argv):
    """Split argv at the first '--': options before it, the command after it."""
    if "--" in argv:
        index = argv.index("--")
        return argv[:index], argv[index + 1:]
    return argv, []


def main(argv=None):
    """Main entry point."""
    argv = list(sys.argv[1:] if argv is None else argv)
    argv, exec_command = split_command(argv)

    parser = build_parser()
    args = parser.parse_args(argv)
    args.exec_command = exec_command

    if not args.command:
        parser.print_help()
        return 0

    command = ALIASES.get(args.command, args.command)
    if args.config_dir is None:
        args.config_dir = get_config_dir()
    else:
        args.config_dir = args.config_dir.expanduser()

    try:
        store = make_store(args)
        return COMMANDS[command](store, args)

    except AbortedByUser:
        err_console.print("[yellow]Aborted[/yellow]")
        return 1
    except StoreNotInitialized as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        err_console.print("[dim]Initialize with: age-keygen | age-env add-identity[/dim]")
        return 1
    except CipherProcessError as e:
        err_console.print(f"[red]age Error:[/red] {escape(str(e))}")
        if e.stderr:
            err_console.print(escape(e.stderr), style="dim")
        return 1
    except AgeEnvError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    except OSError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
