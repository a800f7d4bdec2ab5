"""Host network configuration.

Decides which IP the cluster server binds to and which other host IPs it
should answer on. When neither port forwarding nor a concrete public IP
decides it, a throwaway listener container is started on the host network
and dialed on 127.0.0.1 to find out whether loopback is usable.
"""

from __future__ import annotations

import asyncio
import ipaddress
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from pathlib import Path

from ..container import ContainerRunner, EngineClient
from ..defaults import REGISTRY_SERVICE_CLUSTER_IP
from ..errors import DialError, EngineCallError, ProbeTimeoutError
from ..shared.logging import Logger, get_logger
from .dial import wait_for_successful_dial

LOOPBACK_IP = "127.0.0.1"

# Port the probe listener binds on the host
PROBE_PORT = 8443

# Overall budget for the loopback probe
PROBE_TIMEOUT = 10.0

TEST_LOCALHOST_BIND = "test-localhost-bind"
TEST_ADDITIONAL_IPS = "test-additional-ips"

Dialer = Callable[[str, int], Awaitable[None]]


@dataclass
class ProxyConfig:
    """Proxy settings passed to the cluster."""

    http_proxy: str = ""
    https_proxy: str = ""
    no_proxy: list[str] = field(default_factory=list)


class NetworkConfig:
    """Resolved host network configuration."""

    def __init__(
        self,
        server_ip: str,
        additional_ips: list[str] | None = None,
        proxy: ProxyConfig | None = None,
    ):
        self.server_ip = server_ip
        self.additional_ips = list(additional_ips or [])
        self.proxy = proxy

    def proxy_config(self) -> ProxyConfig | None:
        """Return the proxy config with the cluster's own addresses excluded.

        Returns:
            A new ProxyConfig whose no_proxy list also holds loopback, the
            server IP, localhost and the registry service IP, or None when
            no proxy was configured.
        """
        if self.proxy is None:
            return None
        no_proxy = list(self.proxy.no_proxy)
        seen = set(no_proxy)
        for value in (LOOPBACK_IP, self.server_ip, "localhost", REGISTRY_SERVICE_CLUSTER_IP):
            if value and value not in seen:
                seen.add(value)
                no_proxy.append(value)
        return replace(self.proxy, no_proxy=no_proxy)

    def __str__(self) -> str:
        return f"server: {self.server_ip}, additional: {','.join(self.additional_ips)}"


class NetworkProbe:
    """Builds a NetworkConfig by probing the host through the container engine."""

    def __init__(
        self,
        client: EngineClient,
        image: str,
        logger: Logger | None = None,
        probe_timeout: float = PROBE_TIMEOUT,
        port: int = PROBE_PORT,
        dial: Dialer | None = None,
        base_dir: str | Path | None = None,
    ):
        """Initialize network probe.

        Args:
            client: Container engine client.
            image: Image used for the probe containers (needs socat and hostname).
            logger: Logging capability.
            probe_timeout: Seconds before the loopback probe gives up.
            port: Host port the probe listener binds.
            dial: Coroutine dialing (host, port); defaults to wait_for_successful_dial.
            base_dir: When set, probe container output is kept under <base_dir>/logs.
        """
        self.client = client
        self.image = image
        self.logger = logger or get_logger(__name__)
        self.probe_timeout = probe_timeout
        self.port = port
        self.base_dir = base_dir
        self.dial = dial or self._dial

    async def _dial(self, host: str, port: int) -> None:
        await wait_for_successful_dial(host, port, logger=self.logger)

    async def build(
        self,
        public_hostname: str = "",
        port_forward: bool = False,
        proxy: ProxyConfig | None = None,
    ) -> NetworkConfig:
        """Resolve the server IP and the additional host IPs.

        Raises:
            DialError: The probe listener was started but could not be dialed.
            ProbeTimeoutError: The loopback probe did not finish in time.
            ClusterUpError: A probe container failed.
        """
        server_ip = await self._server_ip(public_hostname, port_forward)
        additional_ips = await self._additional_ips(server_ip)
        self.logger.debug(f"Using {','.join(additional_ips)!r} as additional IPs")
        return NetworkConfig(server_ip, additional_ips, proxy)

    async def _server_ip(self, public_hostname: str, port_forward: bool) -> str:
        if port_forward:
            self.logger.debug(f"Using {LOOPBACK_IP} IP as the host IP, ports will be forwarded")
            return LOOPBACK_IP

        ip = _parse_ip(public_hostname)
        if ip is not None and not ip.is_unspecified:
            self.logger.debug(f"Using public hostname {public_hostname} IP {ip} as the host IP")
            return str(ip)

        await self._probe_loopback()
        self.logger.debug(f"Using {LOOPBACK_IP} IP as the host IP")
        return LOOPBACK_IP

    async def _probe_loopback(self) -> None:
        """Check that a host-network listener is reachable on loopback."""
        loop = asyncio.get_running_loop()
        dialed: asyncio.Future = loop.create_future()
        dial_task: asyncio.Task | None = None

        async def dial_into_future() -> None:
            try:
                await self.dial(LOOPBACK_IP, self.port)
            except DialError as e:
                if not dialed.done():
                    dialed.set_exception(e)
            else:
                if not dialed.done():
                    dialed.set_result(None)

        async def listener_started(container_id: str) -> None:
            nonlocal dial_task
            dial_task = asyncio.create_task(dial_into_future())

        runner = (
            ContainerRunner(self.client, base_dir=self.base_dir, logger=self.logger)
            .discard()
            .host_network()
            .privileged()
            .on_start(listener_started)
            .entrypoint("socat")
            .command(f"TCP-LISTEN:{self.port},crlf,reuseaddr,fork", "SYSTEM:\"echo 'hello world'\"")
        )
        server = asyncio.create_task(runner.run(self.image, TEST_LOCALHOST_BIND))

        try:
            done, _ = await asyncio.wait(
                {dialed, server},
                timeout=self.probe_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if dialed in done:
                try:
                    dialed.result()
                except DialError as e:
                    raise self.logger.error("dial localhost test", e)
                return
            if server in done and server.result().error is not None:
                raise self.logger.error("test localhost bind", server.result().error)
            raise ProbeTimeoutError()
        finally:
            if dial_task is not None and not dial_task.done():
                dial_task.cancel()
            if not dialed.done():
                dialed.cancel()
            elif not dialed.cancelled():
                dialed.exception()  # consumed even when the timeout won
            await self._stop_listener(server)

    async def _stop_listener(self, server: asyncio.Task) -> None:
        """Kill the probe listener and wait until its runner finished."""
        try:
            await self.client.container_kill(TEST_LOCALHOST_BIND, "TERM")
        except EngineCallError as e:
            self.logger.error("killing test container", e)
        self.logger.debug("Waiting for the test server to finish ...")
        result = await server
        if result.error is not None:
            self.logger.debug("Test server finished", error=str(result.error))

    async def _additional_ips(self, server_ip: str) -> list[str]:
        runner = (
            ContainerRunner(self.client, base_dir=self.base_dir, logger=self.logger)
            .discard()
            .host_network()
            .privileged()
            .entrypoint("hostname")
            .command("-I")
        )
        result = await runner.run(self.image, TEST_ADDITIONAL_IPS)
        if result.error is not None:
            raise self.logger.error(TEST_ADDITIONAL_IPS, result.error)

        additional: list[str] = []
        for candidate in runner.output().decode("utf-8", errors="replace").split():
            if candidate == server_ip or ":" in candidate:
                continue
            additional.append(candidate)
        return additional


def _parse_ip(value: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError:
        return None


async def build_network_config(
    client: EngineClient,
    image: str,
    public_hostname: str = "",
    port_forward: bool = False,
    proxy: ProxyConfig | None = None,
    logger: Logger | None = None,
    base_dir: str | Path | None = None,
) -> NetworkConfig:
    """Build the host NetworkConfig. See NetworkProbe.build()."""
    return await NetworkProbe(client, image, logger=logger, base_dir=base_dir).build(
        public_hostname=public_hostname,
        port_forward=port_forward,
        proxy=proxy,
    )
