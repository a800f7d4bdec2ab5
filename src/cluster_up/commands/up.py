"""`cluster up` command.

Brings up a minimal cluster using Docker containers. Before anything is
created the Docker environment is validated, then the host network is
probed to pick the server IP.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import click

from ..config import load_config
from ..container import EngineClient
from ..container.docker_client import DockerEngineClient
from ..errors import ClusterUpError
from ..network import NetworkConfig, NetworkProbe, ProxyConfig
from ..preflight import new_validator
from ..shared.logging import Logger, configure_logging, get_logger, level_for_verbosity
from ..shared.paths import resolve_base_dir


def create_engine_client() -> EngineClient:
    """Connect to the Docker daemon configured by the environment."""
    return DockerEngineClient()


@dataclass
class ClusterUpOptions:
    """Options and resolved state for a cluster up invocation."""

    client: EngineClient
    logger: Logger
    image: str
    public_hostname: str = ""
    routing_suffix: str = ""
    port_forwarding: bool = False
    skip_registry_check: bool = False
    base_dir: str = ""
    server_loglevel: int = 3
    http_proxy: str = ""
    https_proxy: str = ""
    no_proxy: list[str] = field(default_factory=list)

    host_base_dir: Path | None = None
    proxy_config: ProxyConfig | None = None
    network_config: NetworkConfig | None = None

    async def validate(self) -> None:
        """Run the pre-flight checks."""
        chain = new_validator(
            self.client,
            port_forward=self.port_forwarding,
            skip_registry_check=self.skip_registry_check,
            logger=self.logger,
        )
        await chain.validate()

    async def complete(self) -> None:
        """Resolve the host directories and the network configuration."""
        self.host_base_dir = resolve_base_dir(self.base_dir)

        if self.http_proxy or self.https_proxy:
            self.proxy_config = ProxyConfig(
                http_proxy=self.http_proxy,
                https_proxy=self.https_proxy,
                no_proxy=list(self.no_proxy),
            )

        probe = NetworkProbe(
            self.client,
            self.image,
            logger=self.logger,
            # Probe container logs are only kept when a base dir was given
            base_dir=self.host_base_dir if self.base_dir else None,
        )
        self.network_config = await probe.build(
            public_hostname=self.public_hostname,
            port_forward=self.port_forwarding,
            proxy=self.proxy_config,
        )
        self.logger.info(f"--> Networking configuration: {self.network_config}")

    async def run(self) -> None:
        """Start the cluster containers.

        routing_suffix and server_loglevel are only consumed by the origin
        container, which this step does not start yet.
        """
        # TODO: pull the origin image and start the origin container
        self.logger.debug(
            "Cluster start is not implemented yet",
            image=self.image,
            routing_suffix=self.routing_suffix,
            server_loglevel=self.server_loglevel,
        )


async def _run_up(options: ClusterUpOptions) -> None:
    try:
        await options.validate()
        await options.complete()
        await options.run()
    finally:
        await options.client.close()


@click.command()
@click.option("--tag", default=None, hidden=True, help="Specify the tag for OpenShift images")
@click.option("--image", default=None, help="Specify the images to use for OpenShift")
@click.option("--skip-registry-check", is_flag=True, help="Skip Docker daemon registry check")
@click.option("--public-hostname", default="", help="Public hostname for OpenShift cluster")
@click.option("--routing-suffix", default="", help="Default suffix for server routes")
@click.option(
    "--base-dir",
    default=None,
    help="Directory on Docker host for cluster up configuration",
)
@click.option(
    "--forward-ports",
    is_flag=True,
    help="Use Docker port-forwarding to communicate with origin container. "
    "Requires 'socat' locally.",
)
@click.option("--server-loglevel", default=3, type=int, help="Log level for OpenShift server")
@click.option("--http-proxy", default="", help="HTTP proxy to use for master and builds")
@click.option("--https-proxy", default="", help="HTTPS proxy to use for master and builds")
@click.option(
    "--no-proxy",
    multiple=True,
    help="List of hosts or subnets for which a proxy should not be used",
)
@click.pass_context
def up(
    ctx: click.Context,
    tag: str | None,
    image: str | None,
    skip_registry_check: bool,
    public_hostname: str,
    routing_suffix: str,
    base_dir: str | None,
    forward_ports: bool,
    server_loglevel: int,
    http_proxy: str,
    https_proxy: str,
    no_proxy: tuple[str, ...],
) -> None:
    """Brings up a minimal OpenShift cluster.

    This command will attempt to use an existing connection to a Docker
    daemon. Before running the command, ensure that you can execute docker
    commands successfully (i.e. 'docker ps').

    Examples:

        # Start OpenShift using a specific public host name
        cluster up --public-hostname=my.address.example.com

        # Use a different set of images
        cluster up --image="registry.example.com/origin"
    """
    ctx.ensure_object(dict)
    config = load_config().apply_overrides(
        image=image,
        tag=tag,
        base_dir=base_dir,
        loglevel=ctx.obj.get("loglevel"),
    )
    configure_logging(level_for_verbosity(config.loglevel))
    logger = get_logger("cluster_up", config.loglevel)

    try:
        client = create_engine_client()
        options = ClusterUpOptions(
            client=client,
            logger=logger,
            image=config.origin_image(),
            public_hostname=public_hostname,
            routing_suffix=routing_suffix,
            port_forwarding=forward_ports,
            skip_registry_check=skip_registry_check,
            base_dir=config.base_dir,
            server_loglevel=server_loglevel,
            http_proxy=http_proxy,
            https_proxy=https_proxy,
            no_proxy=list(no_proxy),
        )
        asyncio.run(_run_up(options))
    except ClusterUpError as e:
        logger.fatal(e)

    network = options.network_config
    click.echo(f"\n✓ Server IP: {network.server_ip}")
    if network.additional_ips:
        click.echo(f"  Additional IPs: {', '.join(network.additional_ips)}")
    click.echo(f"  Base dir: {options.host_base_dir}")
