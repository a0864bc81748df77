"""CLI entry point for totpguard."""

from __future__ import annotations

import fcntl
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from cryptography.exceptions import InvalidTag
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from totpguard.errors import TimeError, VerifyError
from totpguard.otp import MAX_WINDOW
from totpguard.totp import Totp

console = Console()
logger = logging.getLogger(__name__)

EXIT_REJECTED = 1
EXIT_CLOCK = 2


def _resolve_state(ctx: click.Context, param: click.Parameter, value: Path) -> Path:
    from totpguard.config import settings

    if value.is_absolute():
        return value
    return settings.state_dir / value


def _read_state(path: Path, sealed: bool) -> Totp:
    try:
        raw = path.read_text().strip()
        if sealed:
            from totpguard.crypto import unseal

            return unseal(raw)
        return Totp.from_json(raw)
    except FileNotFoundError:
        raise click.ClickException(f"State file not found: {path}") from None
    except ValidationError as e:
        raise click.ClickException(f"Corrupt state file {path}: {e.error_count()} invalid field(s)") from None
    except InvalidTag:
        raise click.ClickException(f"Cannot decrypt {path}: wrong master key or not a sealed file") from None
    except (RuntimeError, ValueError) as e:
        raise click.ClickException(f"Cannot read {path}: {e}") from None


def _write_state(path: Path, totp: Totp, sealed: bool) -> None:
    if sealed:
        from totpguard.crypto import seal

        try:
            data = seal(totp)
        except (RuntimeError, ValueError) as e:
            raise click.ClickException(f"Cannot seal {path}: {e}") from None
    else:
        data = totp.to_json()
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(data + "\n")
    os.replace(tmp, path)


@contextmanager
def locked_state(path: Path, sealed: bool) -> Iterator[Totp]:
    """Load a state file under an exclusive lock and save it back on success.

    The lock is held on a sibling ``.lock`` file for the whole
    load -> use -> save sequence so concurrent verifications can't replay a code.
    """
    lock_path = path.with_name(path.name + ".lock")
    with open(lock_path, "a") as lock:
        fcntl.flock(lock, fcntl.LOCK_EX)
        try:
            totp = _read_state(path, sealed)
            yield totp
            _write_state(path, totp, sealed)
        finally:
            fcntl.flock(lock, fcntl.LOCK_UN)


sealed_option = click.option("--sealed", is_flag=True, help="State file is AES-GCM sealed.")
state_argument = click.argument(
    "state_file", type=click.Path(dir_okay=False, path_type=Path), callback=_resolve_state
)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """totpguard: TOTP second factor with scratch codes and replay protection."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
def status() -> None:
    """Show effective settings."""
    from totpguard.config import settings

    console.print("[bold]totpguard settings[/bold]")
    console.print(f"  Scratch codes: {settings.scratch_count}")
    console.print(f"  Window: {settings.window}")
    console.print(f"  Reusable: {settings.reusable}")
    console.print(f"  Issuer: {settings.issuer}")
    console.print(f"  Master key: {'set' if settings.master_key else 'not set'}")
    console.print(f"  State dir: {settings.state_dir}")


@main.command()
@state_argument
@click.option("--name", required=True, help="Account name shown in the authenticator app.")
@click.option("--issuer", default=None, help="Issuer shown in the authenticator app.")
@click.option("--policy", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None)
@click.option("--force", is_flag=True, help="Overwrite an existing state file.")
@sealed_option
def enroll(state_file: Path, name: str, issuer: str | None, policy: Path | None, force: bool, sealed: bool) -> None:
    """Create a new credential and print its provisioning details."""
    from totpguard.config import apply_policy, load_policy_file, settings

    effective = settings
    if policy is not None:
        try:
            effective = apply_policy(settings, load_policy_file(policy))
        except ValueError as e:
            raise click.ClickException(str(e)) from None

    if state_file.exists() and not force:
        raise click.ClickException(f"State file already exists: {state_file} (use --force)")

    totp = Totp.from_settings(effective)
    state_file.parent.mkdir(parents=True, exist_ok=True)
    _write_state(state_file, totp, sealed)
    logger.info("Enrolled %s into %s", name, state_file)

    issuer = issuer or effective.issuer
    console.print(f"[bold]Secret:[/bold] {totp.secret}")
    console.print(f"[bold]URI:[/bold] {totp.uri(name, issuer)}", soft_wrap=True)
    if totp.scratch_codes:
        console.print("[bold]Scratch codes:[/bold]")
        for code in totp.scratch_codes:
            console.print(f"  {code}")


@main.command()
@state_argument
@click.argument("code")
@sealed_option
def verify(state_file: Path, code: str, sealed: bool) -> None:
    """Verify CODE and persist the updated credential."""
    if not state_file.exists():
        raise click.ClickException(f"State file not found: {state_file}")
    try:
        with locked_state(state_file, sealed) as totp:
            totp.verify_code(code.strip())
    except TimeError as e:
        console.print(f"[red]Clock error:[/red] {e}")
        sys.exit(EXIT_CLOCK)
    except VerifyError as e:
        console.print(f"[red]Rejected:[/red] {e}")
        sys.exit(EXIT_REJECTED)
    console.print("[green]OK[/green]")


@main.command()
@state_argument
@sealed_option
def show(state_file: Path, sealed: bool) -> None:
    """Show a credential's policy and usage, without its secret."""
    totp = _read_state(state_file, sealed)
    table = Table(title=str(state_file))
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("window", str(totp.window))
    table.add_row("reusable", str(totp.reusable))
    table.add_row("scratch codes left", str(len(totp.scratch_codes)))
    table.add_row("last step", str(totp.last_step))
    console.print(table)


@main.command()
@state_argument
@click.option("--window", type=click.IntRange(min=0, max=MAX_WINDOW), default=None)
@click.option("--reusable/--no-reusable", default=None)
@click.option("--scratch", type=click.IntRange(min=0), default=None, help="Regenerate N scratch codes.")
@sealed_option
def configure(state_file: Path, window: int | None, reusable: bool | None, scratch: int | None, sealed: bool) -> None:
    """Change window, reuse policy or scratch codes of a credential."""
    if not state_file.exists():
        raise click.ClickException(f"State file not found: {state_file}")
    with locked_state(state_file, sealed) as totp:
        if window is not None:
            totp.with_window(window)
        if reusable is not None:
            totp.with_reusable(reusable)
        if scratch is not None:
            totp.with_scratch(scratch)
    if scratch:
        console.print("[bold]New scratch codes:[/bold]")
        for code in totp.scratch_codes:
            console.print(f"  {code}")
    console.print(f"[green]Updated[/green] {totp!r}")


@main.command()
@state_argument
@sealed_option
def code(state_file: Path, sealed: bool) -> None:
    """Print the current 6-digit code (for testing setups)."""
    from totpguard.otp import compute_code, current_step

    totp = _read_state(state_file, sealed)
    try:
        step = current_step()
    except TimeError as e:
        console.print(f"[red]Clock error:[/red] {e}")
        sys.exit(EXIT_CLOCK)
    console.print(compute_code(totp.secret, step))


if __name__ == "__main__":
    main()
