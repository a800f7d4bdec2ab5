"""Host network discovery for cluster up.

Resolves the server IP (port forwarding, explicit public IP, or a loopback
probe through a throwaway listener container) and the additional host IPs.
"""

from .config import (
    LOOPBACK_IP,
    PROBE_PORT,
    PROBE_TIMEOUT,
    TEST_ADDITIONAL_IPS,
    TEST_LOCALHOST_BIND,
    NetworkConfig,
    NetworkProbe,
    ProxyConfig,
    build_network_config,
)
from .dial import wait_for_successful_dial

__all__ = [
    "LOOPBACK_IP",
    "PROBE_PORT",
    "PROBE_TIMEOUT",
    "TEST_ADDITIONAL_IPS",
    "TEST_LOCALHOST_BIND",
    "NetworkConfig",
    "NetworkProbe",
    "ProxyConfig",
    "build_network_config",
    "wait_for_successful_dial",
]
