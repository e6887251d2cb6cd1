"""Provision Docker hosts as AWS EC2 instances."""

from __future__ import annotations

import logging
import os
import socket
import time
import uuid
from pathlib import Path
from typing import Callable, Optional

from pydantic import Field

from dh_common.errors import (
    ConfigurationError,
    HostNotReadyError,
    ProvisioningCancelledError,
    ProvisioningTimeoutError,
    RemoteAPIError,
    RemoteCommandError,
    RetryExhaustedError,
    StoreError,
)
from dh_common.stop_token import StopToken
from dh_hosts.drivers import BaseDriverOptions, BaseDriverState, Driver
from dh_hosts.ssh import FabricShell, RemoteCommand, RemoteShell
from dh_hosts.state import State

from .api import Boto3Ec2Api, Ec2Api, Ec2Instance
from .auth import env_auth

logger = logging.getLogger(__name__)

# "Ubuntu 14.04 LTS with Docker and Runit"
DEFAULT_IMAGE_ID = "ami-27939962"
DEFAULT_INSTANCE_TYPE = "t1.micro"
DEFAULT_SSH_USERNAME = "ubuntu"
DEFAULT_SECURITY_GROUP = "docker-hosts"
DEFAULT_REGION = "us-west-1"

INSTANCE_NAME_PREFIX = "docker-host-"
SSH_PORT = 22
DOCKER_PORT = 2375
INGRESS_PORTS = (SSH_PORT, 80, DOCKER_PORT)
INGRESS_CIDR = "0.0.0.0/0"

GROUP_EXISTS_CODE = "InvalidGroup.Duplicate"
PERMISSION_EXISTS_CODE = "InvalidPermission.Duplicate"
INSTANCE_NOT_FOUND_CODE = "InvalidInstanceID.NotFound"

MAX_INGRESS_ATTEMPTS = 5
INGRESS_RETRY_INTERVAL = 1.0
MAX_POLL_ATTEMPTS = 60
POLL_INTERVAL = 1.0
PROBE_TIMEOUT = 5.0

_STATUS_MAP = {
    "pending": State.STARTING,
    "running": State.RUNNING,
    "stopping": State.STOPPED,
    "stopped": State.STOPPED,
}

BOOTSTRAP_STEPS = (
    (
        "install docker",
        "command -v docker >/dev/null 2>&1 || curl -sSL https://get.docker.com | sudo sh",
    ),
    (
        "set daemon options",
        f"echo 'DOCKER_OPTS=\"--host 0.0.0.0:{DOCKER_PORT}\"' | sudo tee /etc/default/docker",
    ),
    ("restart daemon", "sudo service docker restart"),
)


class Ec2DriverOptions(BaseDriverOptions):
    """Creation options for the ec2 driver."""

    access_key: str = Field(default="", description="AWS access key")
    secret_key: str = Field(default="", description="AWS secret key")
    image_id: str = Field(default=DEFAULT_IMAGE_ID, description="AMI to use for the selected region")
    region: str = Field(default=DEFAULT_REGION, description="AWS region")
    instance_type: str = Field(default=DEFAULT_INSTANCE_TYPE, description="Type of instance to create")
    instance_name: str = Field(default="", description="Name of created instance")
    username: str = Field(default=DEFAULT_SSH_USERNAME, description="SSH username (depends on AMI)")
    security_group: str = Field(default=DEFAULT_SECURITY_GROUP, description="Security group for the instance")
    no_provision: bool = Field(default=False, description="Skip waiting for SSH and bootstrapping")
    install_docker: bool = Field(default=True, description="Install docker when the image lacks it")
    timeout: Optional[float] = Field(
        default=None, gt=0, description="Deadline in seconds for the blocking waits of create"
    )


class Ec2DriverState(BaseDriverState):
    """Persisted fields of an ec2 host."""

    access_key: str = ""
    secret_key: str = ""
    image_id: str = DEFAULT_IMAGE_ID
    region: str = DEFAULT_REGION
    instance_type: str = DEFAULT_INSTANCE_TYPE
    instance_id: str = ""
    instance_name: str = ""
    key_name: str = ""
    public_dns_name: str = ""
    ip_address: str = ""
    security_group: str = DEFAULT_SECURITY_GROUP
    username: str = DEFAULT_SSH_USERNAME
    no_provision: bool = False
    install_docker: bool = True


def tcp_probe(address: str, port: int, timeout: float) -> bool:
    """Return True when a TCP connection to address:port succeeds."""
    try:
        with socket.create_connection((address, port), timeout=timeout):
            return True
    except OSError:
        return False


class Ec2Driver(Driver[Ec2DriverOptions, Ec2DriverState]):
    """One EC2 instance with Docker listening on port 2375."""

    state_cls = Ec2DriverState

    def __init__(
        self,
        store_path: Path,
        *,
        api_factory: Optional[Callable[[Ec2DriverState], Ec2Api]] = None,
        shell: Optional[RemoteShell] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        port_probe: Callable[[str, int, float], bool] = tcp_probe,
        stop_token: Optional[StopToken] = None,
        max_poll_attempts: int = MAX_POLL_ATTEMPTS,
        poll_interval: float = POLL_INTERVAL,
        max_ingress_attempts: int = MAX_INGRESS_ATTEMPTS,
        ingress_retry_interval: float = INGRESS_RETRY_INTERVAL,
        probe_timeout: float = PROBE_TIMEOUT,
    ) -> None:
        super().__init__(store_path)
        self._api_factory = api_factory or _boto3_api
        self._api_client: Optional[Ec2Api] = None
        self._shell = shell or FabricShell()
        self._sleep = sleep
        self._clock = clock
        self._port_probe = port_probe
        self.stop_token = stop_token
        self.timeout: Optional[float] = None
        self.max_poll_attempts = max_poll_attempts
        self.poll_interval = poll_interval
        self.max_ingress_attempts = max_ingress_attempts
        self.ingress_retry_interval = ingress_retry_interval
        self.probe_timeout = probe_timeout

    def driver_name(self) -> str:
        return "ec2"

    def set_config_from_flags(self, options: Ec2DriverOptions) -> None:
        if (options.region == DEFAULT_REGION) != (options.image_id == DEFAULT_IMAGE_ID):
            raise ConfigurationError(
                "Setting a region without an image id (or an image id without a "
                "region) is disallowed: the default image only exists in "
                f"{DEFAULT_REGION}",
                context={"region": options.region, "image_id": options.image_id},
            )

        if options.access_key and options.secret_key:
            access_key, secret_key = options.access_key, options.secret_key
        else:
            auth = env_auth()
            access_key, secret_key = auth.access_key, auth.secret_key

        self.config = Ec2DriverState(
            access_key=access_key,
            secret_key=secret_key,
            image_id=options.image_id,
            region=options.region,
            instance_type=options.instance_type,
            instance_name=options.instance_name,
            username=options.username,
            security_group=options.security_group,
            no_provision=options.no_provision,
            install_docker=options.install_docker,
        )
        self._api_client = None
        self.timeout = options.timeout

    def get_url(self) -> str:
        address = self.config.public_dns_name or self.config.ip_address
        if not address:
            raise HostNotReadyError("Public URL does not exist yet")
        return f"tcp://{address}:{DOCKER_PORT}"

    def get_ip(self) -> str:
        if not self.config.ip_address:
            raise HostNotReadyError("IP Address does not exist yet")
        return self.config.ip_address

    def get_state(self) -> State:
        if not self.config.instance_id:
            return State.NONE
        instance = self._api().describe_instance(self.config.instance_id)
        self._update_address(instance)
        state, diagnostic = State.from_provider_status(instance.state_name, _STATUS_MAP)
        if diagnostic:
            logger.warning("Instance %s: %s", self.config.instance_id, diagnostic)
        return state

    def create(self) -> None:
        # The deadline covers the blocking waits of this call only.
        if self.timeout is not None and self.stop_token is None:
            self.stop_token = StopToken(deadline=self.timeout, clock=self._clock)
        self._set_instance_name_if_not_set()

        logger.info("Ensuring security group %s...", self.config.security_group)
        self._ensure_security_group()

        logger.info("Creating key pair...")
        self._create_key_pair()

        logger.info("Creating AWS EC2 instance...")
        instance = self._api().run_instance(
            image_id=self.config.image_id,
            instance_type=self.config.instance_type,
            availability_zone=f"{self.config.region}a",
            security_group=self.config.security_group,
            key_name=self.config.key_name,
        )
        self.config.instance_id = instance.instance_id
        self._update_address(instance)

        if self.config.no_provision:
            logger.info("Skipping provisioning of %s", self.config.instance_id)
        else:
            self._wait_for_ssh()
            self._provision()

        logger.info("Tagging instance %s", self.config.instance_name)
        self._api().create_tags(self.config.instance_id, {"Name": self.config.instance_name})

    def start(self) -> None:
        self._api().start_instances(self._require_instance_id())

    def stop(self) -> None:
        self._api().stop_instances(self._require_instance_id())

    def restart(self) -> None:
        self._api().reboot_instances(self._require_instance_id())

    def kill(self) -> None:
        # EC2 has no hard power-off; this is the same request as stop().
        self._api().stop_instances(self._require_instance_id())

    def remove(self) -> None:
        if self.config.instance_id:
            self._api().terminate_instances(self.config.instance_id)
        else:
            logger.warning("Host has no instance id; nothing to terminate")
        if self.config.key_name:
            try:
                self._api().delete_key_pair(self.config.key_name)
            except RemoteAPIError as exc:
                logger.warning("Failed to delete key pair %s: %s", self.config.key_name, exc)

    def get_ssh_command(self, *args: str) -> RemoteCommand:
        return self._shell.command(
            self.get_ip(),
            SSH_PORT,
            self.config.username,
            self.ssh_key_path(),
            " ".join(args),
        )

    def ssh_key_path(self) -> Path:
        return self.store_path / f"{self.config.key_name}.pem"

    def _api(self) -> Ec2Api:
        if self._api_client is None:
            self._api_client = self._api_factory(self.config)
        return self._api_client

    def _require_instance_id(self) -> str:
        if not self.config.instance_id:
            raise HostNotReadyError("Instance does not exist yet")
        return self.config.instance_id

    def _set_instance_name_if_not_set(self) -> None:
        if not self.config.instance_name:
            self.config.instance_name = f"{INSTANCE_NAME_PREFIX}{uuid.uuid4().hex}"

    def _update_address(self, instance: Ec2Instance) -> None:
        if instance.public_ip:
            self.config.ip_address = instance.public_ip
        if instance.public_dns_name:
            self.config.public_dns_name = instance.public_dns_name

    def _check_stop(self, phase: str) -> None:
        if self.stop_token is not None and self.stop_token.should_stop():
            raise ProvisioningCancelledError(
                f"{phase} cancelled: {self.stop_token.reason}",
                context={"instance_name": self.config.instance_name},
            )

    def _ensure_security_group(self) -> None:
        group = self.config.security_group
        try:
            self._api().create_security_group(group, "Docker hosts")
        except RemoteAPIError as exc:
            if exc.is_absorbable(GROUP_EXISTS_CODE):
                logger.info("Security group %s already exists, reusing it", group)
                return
            raise
        self._authorize_ingress()

    def _authorize_ingress(self) -> None:
        """Open the ingress ports, retrying while the new group propagates."""
        last_error: Optional[RemoteAPIError] = None
        for attempt in range(1, self.max_ingress_attempts + 1):
            self._check_stop("Security group setup")
            try:
                self._api().authorize_ingress(
                    self.config.security_group, INGRESS_PORTS, INGRESS_CIDR
                )
                return
            except RemoteAPIError as exc:
                if exc.is_absorbable(PERMISSION_EXISTS_CODE):
                    return
                last_error = exc
                logger.debug(
                    "Ingress authorization attempt %d/%d failed: %s",
                    attempt,
                    self.max_ingress_attempts,
                    exc,
                )
            if attempt < self.max_ingress_attempts:
                self._sleep(self.ingress_retry_interval)
        raise RetryExhaustedError(
            "AuthorizeSecurityGroupIngress",
            self.max_ingress_attempts,
            last_error=last_error,
        )

    def _create_key_pair(self) -> None:
        self.config.key_name = f"{self.config.instance_name}-key"
        key_pair = self._api().create_key_pair(self.config.key_name)
        key_path = self.ssh_key_path()
        try:
            fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o400)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(key_pair.key_material)
        except OSError as exc:
            raise StoreError(
                f"Error writing SSH key to file: {exc}",
                context={"path": key_path},
                cause=exc,
            ) from exc

    def _wait_for_ssh(self) -> None:
        """Poll until the instance runs and its SSH port accepts connections."""
        logger.info("Waiting for SSH to become available...")
        for attempt in range(1, self.max_poll_attempts + 1):
            self._check_stop("Waiting for SSH")
            try:
                state = self.get_state()
            except RemoteAPIError as exc:
                # A fresh instance id may not be visible to describe calls yet.
                if not exc.is_absorbable(INSTANCE_NOT_FOUND_CODE):
                    raise
                state = State.NONE
            address = self.config.ip_address
            if state is State.RUNNING and address:
                if self._port_probe(address, SSH_PORT, self.probe_timeout):
                    logger.info("SSH is available on %s", address)
                    return
            logger.debug(
                "Instance %s not ready (attempt %d/%d, state=%s)",
                self.config.instance_id,
                attempt,
                self.max_poll_attempts,
                state,
            )
            if attempt < self.max_poll_attempts:
                self._sleep(self.poll_interval)
        raise ProvisioningTimeoutError(
            f"SSH not reachable on instance {self.config.instance_id} after "
            f"{self.max_poll_attempts} attempts",
            context={
                "instance_id": self.config.instance_id,
                "attempts": self.max_poll_attempts,
            },
        )

    def _provision(self) -> None:
        logger.info("Provisioning instance...")
        for step, command in BOOTSTRAP_STEPS:
            if step == "install docker" and not self.config.install_docker:
                continue
            try:
                self.get_ssh_command(command).run()
            except RemoteCommandError as exc:
                raise RemoteCommandError(
                    f"Error running '{step}' over SSH: {exc}",
                    step=step,
                    context={"instance_id": self.config.instance_id},
                    cause=exc,
                ) from exc


def _boto3_api(config: Ec2DriverState) -> Ec2Api:
    return Boto3Ec2Api(
        region=config.region,
        access_key=config.access_key,
        secret_key=config.secret_key,
    )
