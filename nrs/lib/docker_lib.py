'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound

from nrs.lib.errors import LaunchFailure, PreflightError

log = logging.getLogger(__name__)

MEMLOCK_LIMIT = 999332768


@dataclass
class ContainerSpec:
    """Everything needed for one 'docker run -d'."""

    name: str
    image: str
    command: List[str]
    devices: List[str] = field(default_factory=list)
    volumes: Dict[str, str] = field(default_factory=dict)  # host path -> container path
    environment: Dict[str, str] = field(default_factory=dict)
    shm_size: str = "128G"
    network: str = "host"
    hostname: Optional[str] = None
    entrypoint: Optional[str] = None
    working_dir: str = "/workspace/"

    @property
    def group_add(self) -> List[str]:
        # AMD GPUs are reached through /dev/kfd and need the video group
        return ["video"] if "/dev/kfd" in self.devices else []


class DockerProvider:
    """
    Compute environment provider backed by the local docker daemon.

    Containers are addressed by name; every method looks the container up
    again so a container removed behind our back (watchdog, user) is
    reported as gone instead of raising.
    """

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    def ping(self):
        """Raise PreflightError if the docker daemon cannot be reached."""
        try:
            self.client.ping()
        except DockerException as e:
            raise PreflightError(f"Docker daemon is not reachable: {e}") from e

    def create(self, spec: ContainerSpec):
        """
        Launch a detached container.

        Returns:
            The running docker Container object

        Raises:
            LaunchFailure: If the image is missing or the daemon refuses the container
        """
        volumes = {host: {"bind": target, "mode": "rw"} for host, target in spec.volumes.items()}
        log.info(f"Launching container {spec.name}")
        log.info(f"  Image: {spec.image}")
        try:
            container = self.client.containers.run(
                image=spec.image,
                command=spec.command,
                name=spec.name,
                detach=True,
                network_mode=spec.network,
                ipc_mode="host",
                shm_size=spec.shm_size,
                devices=spec.devices,
                group_add=spec.group_add,
                volumes=volumes,
                environment=spec.environment,
                working_dir=spec.working_dir,
                hostname=spec.hostname,
                entrypoint=spec.entrypoint,
                user="root",
                cap_add=["SYS_PTRACE", "SYS_ADMIN"],
                security_opt=["seccomp=unconfined"],
                ulimits=[docker.types.Ulimit(name="memlock", soft=MEMLOCK_LIMIT, hard=MEMLOCK_LIMIT)],
            )
        except ImageNotFound as e:
            raise LaunchFailure(f"Image not found: {spec.image}") from e
        except DockerException as e:
            raise LaunchFailure(f"Failed to launch container {spec.name}: {e}") from e
        log.info(f"Container {spec.name} started (ID: {container.short_id})")
        return container

    def destroy(self, name: str) -> bool:
        """
        Force-remove a container. Idempotent and never raises.

        Returns:
            True if a container was removed, False if there was none or removal failed
        """
        try:
            container = self.client.containers.get(name)
            container.remove(force=True)
        except NotFound:
            return False
        except APIError as e:
            # 409: removal already in progress, e.g. the watchdog got there first
            if e.status_code == 409:
                return False
            log.warning(f"Error removing container {name}: {e}")
            return False
        except DockerException as e:
            log.warning(f"Error removing container {name}: {e}")
            return False
        log.info(f"Container {name} removed")
        return True

    def is_alive(self, name: str) -> bool:
        try:
            container = self.client.containers.get(name)
        except NotFound:
            return False
        except DockerException as e:
            log.warning(f"Could not inspect container {name}: {e}")
            return False
        return container.status == "running"

    def exec_inside(self, name: str, cmd, detach: bool = False) -> Tuple[Optional[int], str]:
        """
        Run a command inside a running container.

        Returns:
            Tuple of (exit_code, output). exit_code is None for detached commands
            and -1 if the container is gone.
        """
        try:
            container = self.client.containers.get(name)
            exit_code, output = container.exec_run(cmd, detach=detach)
        except NotFound:
            return -1, ""
        except DockerException as e:
            log.warning(f"exec in {name} failed: {e}")
            return -1, ""
        if isinstance(output, bytes):
            output = output.decode("utf-8", errors="replace")
        return exit_code, output or ""

    def stream_logs(self, name: str) -> Iterator[bytes]:
        """Follow stdout/stderr of a container until it goes away."""
        try:
            container = self.client.containers.get(name)
            yield from container.logs(stream=True, follow=True, stdout=True, stderr=True)
        except NotFound:
            return
        except DockerException as e:
            log.debug(f"Log stream for {name} ended: {e}")
            return
