'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import os
import logging
import threading
from dataclasses import dataclass

from nrs.lib.docker_lib import ContainerSpec
from nrs.lib.errors import LaunchFailure
from nrs.lib.probe_lib import SystemClock
from nrs.lib.utils_lib import server_args_to_flags, short_hostname

log = logging.getLogger(__name__)

FALLBACK_PROCESS_PATTERN = "sglang.launch_server|vllm serve|python.*-m sglang|python.*-m vllm"
SERVER_LOG_PATH = "/tmp/server.log"
WORKSPACE_MOUNT = "/workspace/"


@dataclass
class Environment:
    name: str
    persistent: bool = False
    running: bool = True


class LogCapture:
    """Background thread copying a container's log stream into an iteration log."""

    def __init__(self, provider, env, iter_log):
        self.provider = provider
        self.env = env
        self.iter_log = iter_log
        self._thread = threading.Thread(target=self._run, name=f"logs-{env.name}", daemon=True)

    def start(self):
        self._thread.start()
        return self

    def _run(self):
        try:
            for chunk in self.provider.stream_logs(self.env.name):
                self.iter_log.write_bytes(chunk)
        except Exception as e:
            log.debug(f"Log capture for {self.env.name} stopped: {e}")

    def stop(self, timeout=5):
        # the stream ends on its own once the container is removed
        self._thread.join(timeout)
        return not self._thread.is_alive()


class EnvironmentManager:
    """
    Creates, recycles and destroys the serving environment.

    Container mode creates a new container running the server for every
    iteration. Server mode keeps one container alive with 'sleep infinity'
    and starts/stops only the server process inside it.
    """

    def __init__(self, provider, config, adapter, clock=None, stop_timeout=30, stop_poll=1, settle=2):
        self.provider = provider
        self.config = config
        self.adapter = adapter
        self.clock = clock or SystemClock()
        self.stop_timeout = stop_timeout
        self.stop_poll = stop_poll
        self.settle = settle
        self.run_id = os.getpid()

    @property
    def server_command(self):
        extra_args = server_args_to_flags(self.config.server_args)
        return self.adapter.build_launch_command(self.config.server.model_path, self.config.server.port, extra_args)

    @property
    def process_pattern(self):
        return self.adapter.process_pattern() or FALLBACK_PROCESS_PATTERN

    def environment_name(self, index=None):
        if index is None:
            return f"{self.config.framework}_stress_persistent_{self.run_id}"
        return f"{self.config.framework}_stress_iter{index}_{self.run_id}"

    def container_spec(self, name, command):
        base_dir = self.config.workspace.base_dir
        volumes = {base_dir: WORKSPACE_MOUNT}
        for mount in self.config.workspace.mounts:
            volumes[os.path.join(base_dir, mount)] = os.path.join(WORKSPACE_MOUNT, mount)
        for mount in self.adapter.extra_mounts():
            host, _, target = mount.partition(":")
            volumes[host] = target or host

        environment = {
            "HF_HOME": "/workspace/.cache/huggingface",
            "HF_TOKEN": os.environ.get("HF_TOKEN", ""),
        }
        environment.update(self.config.env)

        return ContainerSpec(
            name=name,
            image=self.config.docker.image,
            command=command,
            devices=list(self.config.docker.devices),
            volumes=volumes,
            environment=environment,
            shm_size=self.config.docker.shm_size,
            network=self.config.docker.network,
            hostname=f"STRESS-{short_hostname()}",
            entrypoint=self.adapter.entrypoint_override(),
        )

    def create(self, index):
        """
        Launch a fresh container for one iteration with the server as its workload.

        Raises:
            LaunchFailure: If the container could not be started
        """
        name = self.environment_name(index)
        # a leftover from an interrupted run would make the name collide
        self.provider.destroy(name)
        log.info("Starting Docker container ...")
        self.provider.create(self.container_spec(name, ["bash", "-c", self.server_command]))
        return Environment(name=name, persistent=False)

    def create_persistent(self):
        """
        Launch the long-lived container used by server mode.

        Raises:
            LaunchFailure: If the container is not running after it settles
        """
        name = self.environment_name()
        self.provider.destroy(name)
        log.info("Starting persistent Docker container ...")
        self.provider.create(self.container_spec(name, ["bash", "-c", "sleep infinity"]))
        self.clock.sleep(self.settle)
        if not self.provider.is_alive(name):
            raise LaunchFailure(f"Persistent container {name} failed to start.")
        log.info("Persistent container started successfully.")
        return Environment(name=name, persistent=True)

    def destroy(self, env):
        """Remove the container. Safe to call repeatedly and from the watchdog thread."""
        if env is None:
            return
        env.running = False
        try:
            self.provider.destroy(env.name)
        except Exception as e:
            log.warning(f"Teardown of {env.name} failed (non-fatal): {e}")

    def is_alive(self, env):
        if not self.provider.is_alive(env.name):
            return False
        if env.persistent:
            return self.is_running(env)
        return True

    def is_running(self, env):
        exit_code, _ = self.provider.exec_inside(env.name, ["pgrep", "-f", self.process_pattern])
        return exit_code == 0

    def start_workload(self, env, cmd=None):
        """
        Start the server process in the background inside a persistent container.

        Returns:
            True if the server process is running after a short settle
        """
        cmd = cmd or self.server_command
        log.info("Starting server inside container ...")
        self.provider.exec_inside(env.name, ["bash", "-c", f"rm -f {SERVER_LOG_PATH}; touch {SERVER_LOG_PATH}"])
        self.provider.exec_inside(env.name, ["bash", "-c", f"{cmd} > {SERVER_LOG_PATH} 2>&1"], detach=True)
        self.clock.sleep(self.settle)
        if self.is_running(env):
            log.info("Server process started.")
            return True
        log.error("FAIL: Server process failed to start.")
        return False

    def stop_workload(self, env, force=False):
        """
        Stop the server process, leaving the container running.

        Sends SIGTERM, waits up to stop_timeout seconds, then escalates to
        SIGKILL. A False return is a warning only; the iteration outcome has
        already been decided by the time this runs.
        """
        pattern = self.process_pattern
        if not force:
            log.info("Stopping server inside container ...")
            self.provider.exec_inside(env.name, ["pkill", "-f", pattern])
            waited = 0
            while waited < self.stop_timeout:
                if not self.is_running(env):
                    log.info("Server stopped.")
                    return True
                self.clock.sleep(self.stop_poll)
                waited += self.stop_poll
            log.info("Server did not stop gracefully, force killing ...")

        self.provider.exec_inside(env.name, ["pkill", "-9", "-f", pattern])
        self.clock.sleep(self.settle)
        if not self.is_running(env):
            log.info("Server force killed.")
            return True
        log.warning("WARNING: Could not stop server process.")
        return False

    def start_log_capture(self, env, iter_log):
        return LogCapture(self.provider, env, iter_log).start()

    def capture_workload_log(self, env, iter_log):
        """Append the in-container server log to the iteration log."""
        exit_code, output = self.provider.exec_inside(env.name, ["cat", SERVER_LOG_PATH])
        if exit_code == 0 and output:
            iter_log.write(output)
