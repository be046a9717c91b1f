import inspect
import logging
import os
import signal
import subprocess
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from rich.console import Console

from .errors import BuildError, BuildInterrupted
from .models import BuildConfig, ContainerIdentity, TestRunResult
from .services.command_runner import CommandRunner
from .services.docker_runtime import DockerRuntimeService
from .services.environment import EnvironmentService
from .services.reporter import Reporter
from .services.test_runner import GoTestService

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger("gotestci")

TERMINATION_SIGNALS = ("SIGHUP", "SIGINT", "SIGQUIT", "SIGPIPE", "SIGTERM")


class SignalGuard:
    """Turns termination signals into :class:`BuildInterrupted`.

    Inside :meth:`shield` a signal is only recorded and is raised once the
    shielded block has finished. Signals after the first one are ignored.
    """

    def __init__(self):
        self.received: List[int] = []
        self.pending: Optional[int] = None
        self.shielded = False

    def handler(self, signum, _frame):
        if self.received:
            logger.warning("Ignoring signal %s while cleaning up", signum)
            return
        self.received.append(signum)
        if self.shielded:
            logger.warning("Signal %s received; finishing cleanup first", signum)
            self.pending = signum
            return
        raise BuildInterrupted(signum)

    @contextmanager
    def shield(self) -> Iterator[None]:
        self.shielded = True
        try:
            yield
        finally:
            self.shielded = False
        if self.pending is not None:
            signum, self.pending = self.pending, None
            raise BuildInterrupted(signum)


@contextmanager
def terminate_on_signals(names: Sequence[str] = TERMINATION_SIGNALS) -> Iterator[SignalGuard]:
    guard = SignalGuard()
    if threading.current_thread() is not threading.main_thread():
        yield guard
        return

    previous = {}
    for name in names:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        previous[signum] = signal.signal(signum, guard.handler)

    try:
        yield guard
    finally:
        for signum, old_handler in previous.items():
            signal.signal(signum, old_handler)


class BuildOrchestrator:
    """Runs the unit test build on this host or inside a throwaway container."""

    FUNCTIONS = {
        "unit-tests": "unit_tests",
        "docker-check": "docker_check",
        "build-container": "build_container",
        "get-artifacts": "get_container_artifacts",
        "remove-container": "remove_container",
        "cleanup-containers": "cleanup_containers",
    }

    def __init__(self, config: Optional[BuildConfig] = None):
        self.config = config or BuildConfig()

        self.reporter = Reporter(logger=logger, console=console, err_console=err_console)
        self.command_runner = CommandRunner(logger=logger, subprocess_module=subprocess)
        self.environment_service = EnvironmentService(
            logger=logger,
            cgroup_file=self.config.cgroup_file,
            markers=self.config.container_markers,
        )
        self.docker_runtime_service = DockerRuntimeService(
            config=self.config,
            logger=logger,
            reporter=self.reporter,
            run_cmd=self._run_cmd,
        )
        self.test_service = GoTestService(
            config=self.config,
            logger=logger,
            reporter=self.reporter,
            command_runner=self.command_runner,
        )

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        warn: bool = True,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, warn=warn)

    def print_settings(self):
        console.print("Building with the following settings")
        console.print(f"        RUN_LOCALLY: '{str(self.config.run_locally).lower()}'")
        console.print(f"        MAX_FAILURES: '{self.config.max_failures}'")
        logger.debug("Build configuration: %s", self.config)

    def should_run_locally(self) -> bool:
        if self.config.run_locally:
            return True
        inside = self.environment_service.inside_container()
        if inside:
            logger.info("Detected a container runtime; running the build in place.")
        return inside

    def unit_tests(self, goos: Optional[str] = None) -> TestRunResult:
        goos = goos or self.config.goos or self.environment_service.native_goos()
        return self.test_service.run(goos=goos)

    def docker_check(self):
        self.docker_runtime_service.require_engine()
        self.reporter.info(f"{self.config.engine} is available.")

    def build_container(self, name: str, dockerfile: Optional[str] = None):
        self.docker_runtime_service.build(
            ContainerIdentity(name),
            dockerfile or self.config.dockerfile,
        )

    def get_container_artifacts(self, name: str, destination: str = "."):
        self.docker_runtime_service.get_artifacts(ContainerIdentity(name), destination)

    def remove_container(self, name: str):
        self.docker_runtime_service.remove(ContainerIdentity(name))

    def cleanup_containers(self):
        self.docker_runtime_service.cleanup_all()

    def run_in_container(self) -> ContainerIdentity:
        identity = ContainerIdentity.generate(self.config.container_prefix)
        logger.info("Using container name %s", identity.name)

        self.docker_runtime_service.cleanup_all()

        with terminate_on_signals() as guard:
            with self.docker_runtime_service.provisioned(
                identity,
                self.config.dockerfile,
                shield=guard.shield,
            ):
                self.docker_runtime_service.get_artifacts(identity)

        self.docker_runtime_service.cleanup_all()
        return identity

    def build(self):
        if self.should_run_locally():
            self.unit_tests()
        else:
            self.run_in_container()

    def _execute(self, callback, *args) -> int:
        try:
            callback(*args)
            return 0
        except KeyboardInterrupt:
            self.reporter.error("Operation cancelled by user.")
            return 130
        except BuildError as exc:
            self.reporter.error(str(exc))
            return exc.exit_code
        except Exception as exc:
            err_console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return 1

    def run(self) -> int:
        self.print_settings()

        project_dir = self.config.project_dir
        if project_dir and project_dir != ".":
            try:
                os.chdir(project_dir)
            except OSError as exc:
                self.reporter.error(f"Cannot enter project directory '{project_dir}': {exc}")
                return 1

        exit_code = self._execute(self.build)
        if exit_code == 0:
            logger.info("Build finished successfully.")
        return exit_code

    def dispatch(self, name: str, args: Sequence[str] = ()) -> int:
        method_name = self.FUNCTIONS.get(name)
        if method_name is None:
            self.reporter.error(
                f"Unknown function '{name}'. Available: {', '.join(sorted(self.FUNCTIONS))}"
            )
            return 2

        handler = getattr(self, method_name)
        try:
            inspect.signature(handler).bind(*args)
        except TypeError as exc:
            self.reporter.error(f"Invalid arguments for '{name}': {exc}")
            return 2

        return self._execute(handler, *args)
