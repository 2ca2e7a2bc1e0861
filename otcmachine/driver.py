"""Machine driver.

Driver exposes the host contract (create, remove, power operations and
address queries) for one machine. It owns the DriverState and a lazily
authenticated provider client, and sequences the provisioning steps:

    resolve -> network -> subnet -> security groups -> key pair
            -> instance -> address

Remove runs the teardown steps in the reverse order, driven only by
the managed values recorded in the state.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import cached_property
from pathlib import Path

from loguru import logger

from otcmachine.address import ensure_address
from otcmachine.client import AuthOptions, Client, DiskOpts, ElasticIPOpts
from otcmachine.constants import (
    DEFAULT_IP_VERSION,
    DEFAULT_SECURITY_GROUP,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
    DOCKER_PORT,
    DRIVER_NAME,
    K8S_GROUP_NAME,
    InstanceStatus,
)
from otcmachine.exceptions import AddressNotSetError, ConfigurationError
from otcmachine.flags import CREATE_FLAGS, DriverOptions, Flag
from otcmachine.instance import check_user_data, ensure_instance
from otcmachine.keypair import acquire_key_pair
from otcmachine.managed import Managed
from otcmachine.network import ensure_network, ensure_subnet
from otcmachine.resolve import resolve_ids
from otcmachine.security import ensure_default_group, ensure_k8s_group
from otcmachine.state import DriverState, MachineState, map_status
from otcmachine.teardown import run_teardown

type ClientFactory = Callable[[DriverState], Client]

SSH_KEY_FILE = "id_rsa"


def auth_options(state: DriverState) -> AuthOptions:
    return AuthOptions(
        cloud=state.cloud,
        auth_url=state.auth_url,
        ca_cert=state.ca_cert,
        region=state.region,
        endpoint_type=state.endpoint_type,
        domain_id=state.domain_id,
        domain_name=state.domain_name,
        username=state.username,
        password=state.password,
        project_name=state.project_name,
        project_id=state.project_id,
        access_key=state.access_key,
        secret_key=state.secret_key,
        token=state.token,
    )


def openstack_client(state: DriverState) -> Client:
    from otcmachine.providers.openstack import OpenStackClient

    return OpenStackClient(auth_options(state), wait_timeout=state.wait_timeout)


def join_host_port(host: str, port: int) -> str:
    """``host:port``, bracketing IPv6 literals."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def check_config(state: DriverState) -> None:
    """Validate option combinations before any provider call.

    Raises:
        ConfigurationError: On a half-configured key pair, missing
            credentials, an IP version other than 4, or conflicting user
            data options.
    """
    if bool(state.key_pair.value) != bool(state.private_key_file):
        raise ConfigurationError("both `--otc-keypair-name` and `--otc-private-key-file` must be specified")
    has_password = bool(state.username and state.password)
    has_aksk = bool(state.access_key and state.secret_key)
    if not (state.cloud or has_password or state.token or has_aksk):
        raise ConfigurationError("at least one authorization method must be provided")
    if state.ip_version != DEFAULT_IP_VERSION:
        raise ConfigurationError(f"IP version {state.ip_version} is not supported, only IPv4 subnets are created")
    check_user_data(state)


class Driver:
    """Driver for one machine.

    Args:
        machine_name: Machine name, also used as the instance name.
        store_path: Storage root; machine files live under
            ``<store_path>/machines/<machine_name>``.
        state: Previously persisted state to continue from.
        client_factory: Builds the provider client from the state.
            Defaults to the openstacksdk client.
    """

    def __init__(
        self,
        machine_name: str,
        store_path: str | Path,
        *,
        state: DriverState | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.state = state or DriverState()
        self.state.machine_name = machine_name
        self.state.store_path = str(store_path)
        self._client_factory = client_factory or openstack_client

    @property
    def machine_name(self) -> str:
        return self.state.machine_name

    @property
    def machine_dir(self) -> Path:
        return Path(self.state.store_path) / "machines" / self.machine_name

    @cached_property
    def client(self) -> Client:
        """Authenticated provider client, created on first use."""
        client = self._client_factory(self.state)
        client.authenticate()
        return client

    def authenticate(self) -> Client:
        return self.client

    # =========================================================================
    # Configuration
    # =========================================================================

    def driver_name(self) -> str:
        return DRIVER_NAME

    def get_create_flags(self) -> tuple[Flag, ...]:
        return CREATE_FLAGS

    def set_config_from_flags(self, options: DriverOptions) -> None:
        """Bind option values onto the state and validate them.

        Deprecated options take precedence over their replacements when
        they are set.

        Raises:
            ConfigurationError: If the resulting configuration is invalid.
        """
        s = self.state
        s.auth_url = options.string("otc-auth-url")
        s.cloud = options.string("otc-cloud")
        s.ca_cert = options.string("otc-cacert")
        s.domain_id = options.string("otc-domain-id")
        s.domain_name = options.string("otc-domain-name")
        s.username = options.string("otc-username")
        s.password = options.string("otc-password")
        s.project_name = options.string("otc-project-name")
        s.project_id = options.string("otc-tenant-id") or options.string("otc-project-id")
        s.region = options.string("otc-region")
        s.endpoint_type = options.string("otc-endpoint-type")
        s.access_key = options.string("otc-access-key-id")
        s.secret_key = options.string("otc-access-key-key")
        s.token = options.string("otc-token")

        s.flavor_id = options.string("otc-flavor-id")
        s.flavor_name = options.string("otc-flavor-name")
        s.image_name = options.string("otc-image-name")
        s.root_volume = DiskOpts(
            source_id=options.string("otc-image-id"),
            size=options.int("otc-root-volume-size"),
            volume_type=options.string("otc-root-volume-type"),
        )
        s.availability_zone = options.string("otc-available-zone") or options.string("otc-availability-zone")
        s.server_group = options.string("otc-server-group")
        s.server_group_id = options.string("otc-server-group-id")
        s.tags = split_list(options.string("otc-tags"))
        s.user_data_file = options.string("otc-user-data-file")
        s.user_data = options.string("otc-user-data-raw").encode()

        s.network = Managed[str].external(options.string("otc-vpc-id"))
        s.network_name = options.string("otc-vpc-name")
        s.subnet = Managed[str].external(options.string("otc-subnet-id"))
        s.subnet_name = options.string("otc-subnet-name")
        s.security_groups = split_list(options.string("otc-sec-groups"))
        s.default_security_group = "" if options.bool("otc-skip-default-sg") else DEFAULT_SECURITY_GROUP
        s.k8s_security_group = K8S_GROUP_NAME if options.bool("otc-k8s-group") else ""

        s.floating_ip = Managed[str].external(options.string("otc-floating-ip"))
        s.floating_ip_opts = ElasticIPOpts(
            ip_type=options.string("otc-elastic-ip-type") or options.string("otc-floating-ip-type"),
            bandwidth_name=f"bandwidth-{s.machine_name}",
            bandwidth_size=options.int("otc-bandwidth-size"),
            bandwidth_type=options.string("otc-bandwidth-type"),
        )
        s.skip_floating_ip = options.int("otc-elastic-ip") == 0 or options.bool("otc-skip-ip")
        s.ip_version = options.int("otc-ip-version")

        s.key_pair = Managed[str].external(options.string("otc-keypair-name"))
        s.private_key_file = options.string("otc-private-key-file")
        s.ssh_user = options.string("otc-ssh-user")
        s.ssh_port = options.int("otc-ssh-port")
        s.wait_timeout = options.int("otc-wait-timeout")

        check_config(s)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create(self) -> None:
        """Provision every resource and the instance.

        Safe to call again after a partial failure: steps whose resource
        is already recorded in the state are skipped.
        """
        logger.debug(f"Creating machine {self.machine_name!r}")
        check_user_data(self.state)
        client = self.authenticate()

        resolve_ids(client, self.state)
        ensure_network(client, self.state)
        ensure_subnet(client, self.state)
        ensure_default_group(client, self.state)
        ensure_k8s_group(client, self.state)
        acquire_key_pair(client, self.state, self.get_ssh_key_path())
        ensure_instance(client, self.state)
        ensure_address(client, self.state)

        self.state.ip_address = self.state.floating_ip.value
        logger.info(f"Machine {self.machine_name!r} created (instance={self.state.instance_id})")

    def remove(self) -> None:
        """Delete every driver-managed resource.

        Raises:
            TeardownError: If one or more deletion steps failed.
        """
        logger.debug(f"Removing machine {self.machine_name!r}")
        client = self.authenticate()
        run_teardown(client, self.state)
        logger.info(f"Machine {self.machine_name!r} removed")

    def start(self) -> None:
        client = self.authenticate()
        client.start_instance(self.state.instance_id)
        client.wait_for_instance_status(self.state.instance_id, InstanceStatus.RUNNING)

    def stop(self) -> None:
        client = self.authenticate()
        client.stop_instance(self.state.instance_id)
        client.wait_for_instance_status(self.state.instance_id, InstanceStatus.STOPPED)

    def restart(self) -> None:
        self.stop()
        self.start()

    def kill(self) -> None:
        self.stop()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_state(self) -> MachineState:
        if not self.state.instance_id:
            return MachineState.UNKNOWN
        info = self.authenticate().get_instance_status(self.state.instance_id)
        return map_status(info.status)

    def get_ip(self) -> str:
        """Floating (or local) address of the machine.

        Raises:
            AddressNotSetError: If no address is known yet.
        """
        self.state.ip_address = self.state.floating_ip.value
        if not self.state.ip_address:
            raise AddressNotSetError()
        return self.state.ip_address

    def get_ssh_hostname(self) -> str:
        return self.get_ip()

    def get_url(self) -> str:
        return f"tcp://{join_host_port(self.get_ip(), DOCKER_PORT)}"

    def get_ssh_port(self) -> int:
        if not self.state.ssh_port:
            self.state.ssh_port = DEFAULT_SSH_PORT
        return self.state.ssh_port

    def get_ssh_username(self) -> str:
        if not self.state.ssh_user:
            self.state.ssh_user = DEFAULT_SSH_USER
        return self.state.ssh_user

    def get_ssh_key_path(self) -> Path:
        path = self.machine_dir / SSH_KEY_FILE
        self.state.ssh_key_path = str(path)
        return path
