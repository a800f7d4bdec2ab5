"""CLI main entry point."""

import click

from .commands.up import up


@click.group()
@click.option(
    "--loglevel",
    type=int,
    default=None,
    help="Sets the logging verbosity (default 3, 4+ adds debug output)",
)
@click.version_option(package_name="cluster-up", prog_name="cluster")
@click.pass_context
def cli(ctx: click.Context, loglevel: int | None) -> None:
    """Minimal OpenShift cluster bootstrap tool."""
    ctx.ensure_object(dict)
    ctx.obj["loglevel"] = loglevel


cli.add_command(up)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
