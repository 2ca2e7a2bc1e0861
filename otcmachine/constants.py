"""Centralized constants and enums for otcmachine.

Driver defaults, provider status strings and the fixed port tables are
defined here so every provisioning step reads them from one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final

# =============================================================================
# Driver Identity
# =============================================================================

DRIVER_NAME: Final = "otc-v2"
DOCKER_PORT: Final = 2376

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_SECURITY_GROUP: Final = "docker-machine-grp"
DEFAULT_AZ: Final = "eu-de-01"
DEFAULT_FLAVOR: Final = "s2.large.4"
DEFAULT_IMAGE: Final = "Standard_Ubuntu_18.04_latest"
DEFAULT_SSH_USER: Final = "ubuntu"
DEFAULT_SSH_PORT: Final = 22
DEFAULT_REGION: Final = "eu-de"
DEFAULT_AUTH_URL: Final = "https://iam.eu-de.otc.t-systems.com/v3"
DEFAULT_VPC_NAME: Final = "vpc-docker-machine"
DEFAULT_SUBNET_NAME: Final = "subnet-docker-machine"
DEFAULT_VOLUME_SIZE: Final = 200
DEFAULT_VOLUME_TYPE: Final = "SSD"
DEFAULT_FLOATING_IP_TYPE: Final = "5_bgp"
DEFAULT_BANDWIDTH_NAME: Final = "bandwidth-docker-machine"
DEFAULT_BANDWIDTH_SIZE: Final = 100
DEFAULT_BANDWIDTH_TYPE: Final = "PER"
DEFAULT_ENDPOINT_TYPE: Final = "public"
DEFAULT_IP_VERSION: Final = 4
K8S_GROUP_NAME: Final = "sg-k8s"

DEFAULT_SUBNET_CIDR: Final = "192.168.0.0/16"
DEFAULT_SUBNET_GATEWAY: Final = "192.168.0.1"
VPC_SERVICE_TYPE: Final = "vpc"

# Timeouts (in seconds)
DEFAULT_WAIT_TIMEOUT: Final = 600
WAIT_INTERVAL: Final = 5

# =============================================================================
# Provider Status Strings
# =============================================================================


class InstanceStatus(StrEnum):
    """Compute instance status strings reported by the provider."""

    RUNNING = "ACTIVE"
    STOPPED = "SHUTOFF"
    PAUSED = "PAUSED"
    BUILDING = "BUILDING"
    BUILD = "BUILD"
    ERROR = "ERROR"


NETWORK_ACTIVE: Final = "ACTIVE"
SUBNET_ACTIVE: Final = "ACTIVE"
FLOATING_IP_ACTIVE: Final = "ACTIVE"

# =============================================================================
# Port Tables
# =============================================================================


@dataclass(frozen=True, slots=True)
class PortRange:
    """Inclusive TCP port range; ``to == 0`` means a single port."""

    start: int
    to: int = 0

    @property
    def end(self) -> int:
        return self.to or self.start


# https://kubernetes.io/docs/setup/production-environment/tools/kubeadm/install-kubeadm/#check-required-ports
K8S_PORTS: Final[tuple[PortRange, ...]] = (
    # control-plane node(s)
    PortRange(6443),
    PortRange(2379, 2380),
    PortRange(10250, 10252),
    # worker node(s)
    PortRange(30000, 32767),
)
