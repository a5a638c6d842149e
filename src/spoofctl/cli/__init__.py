"""CLI entry point — one command, combinable action flags."""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console

from spoofctl import __version__
from spoofctl.cli.dispatch import Action, exit_code, plan_actions, run_actions
from spoofctl.cli.render import print_progress, print_report
from spoofctl.config import SpoofConfig
from spoofctl.errors import ConfigError
from spoofctl.state.manager import RedirectionStateManager

console = Console(stderr=True)

_EPILOG = """\b
Examples:
  sudo spoofctl --install --enable-proxy
  sudo spoofctl --disable-proxy
  SPOOFDPI_INTERFACES="en0,utun0" sudo spoofctl --enable-redirect
  spoofctl --status --redirect-status

\b
Environment:
  SPOOFDPI_PORT           Port for SpoofDPI (default: 53210)
  SPOOFDPI_BIN            Full path to the spoofdpi binary
  SPOOFDPI_INTERFACES     Comma-separated interfaces for pf rules (default: auto-detect)
  SPOOFDPI_NOTIFICATIONS  "0" or "false" disables notifications
  SPOOFDPI_KEEP_BINARY    "1" keeps the binary during --uninstall
  SPOOFDPI_REMOVE_BINARY  "1" removes the Homebrew binary during --uninstall
  SPOOFDPI_CONFIG         Path to a YAML config file
"""


def _flag(*names: str, help: str):
    return click.option(*names, is_flag=True, help=help)


@click.command(epilog=_EPILOG, context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="spoofctl")
@_flag("--install", "install", help="Install SpoofDPI and write the LaunchDaemon.")
@_flag("--enable-proxy", "--enable", "enable_proxy", help="Start the daemon and enable system proxies.")
@_flag("--disable-proxy", "--disable", "disable_proxy", help="Disable system proxies and remove the daemon.")
@_flag("--status", "status", help="Show daemon, proxy, and pf status.")
@_flag("--enable-redirect", "--pf-enable", "enable_redirect", help="Enable transparent pf redirection.")
@_flag("--disable-redirect", "--pf-disable", "disable_redirect", help="Disable pf redirection.")
@_flag("--redirect-status", "--pf-status", "redirect_status", help="Show pf redirection status.")
@_flag("--uninstall", "uninstall", help="Remove every SpoofDPI component.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, verbose: bool, **flags: bool) -> None:
    """spoofctl — route macOS web traffic through a local SpoofDPI proxy."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    actions = plan_actions(Action(name.replace("_", "-")) for name, on in flags.items() if on)
    if not actions:
        click.echo(ctx.get_help())
        ctx.exit(0)

    try:
        config = SpoofConfig.load()
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    manager = RedirectionStateManager.from_config(
        config, on_progress=lambda msg, level: print_progress(console, msg, level)
    )
    reports = run_actions(
        manager, actions, on_report=lambda action, report: print_report(console, report)
    )
    sys.exit(exit_code(reports))
