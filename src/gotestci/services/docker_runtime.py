"""Docker runtime services for gotestci."""

import re
import shutil
from contextlib import contextmanager, nullcontext
from typing import Callable, Iterator, List, Optional

from packaging import version

from gotestci.errors_catalog import actionable_error
from gotestci.models import BuildConfig, ContainerIdentity

VERSION_PATTERN = re.compile(r"version\s+v?(\d+(?:\.\d+)*)", re.IGNORECASE)


class DockerRuntimeService:
    """Builds, inspects and tears down the build container.

    Removal and housekeeping are best-effort and only warn. The engine check,
    the build itself and artifact retrieval are fatal.
    """

    def __init__(self, config: BuildConfig, logger, reporter, run_cmd: Callable, which=shutil.which):
        self.config = config
        self.logger = logger
        self.reporter = reporter
        self.run_cmd = run_cmd
        self.which = which

    @property
    def engine(self) -> str:
        return self.config.engine

    def parse_engine_version(self, output: str) -> Optional[version.Version]:
        match = VERSION_PATTERN.search(output or "")
        if not match:
            return None
        try:
            return version.parse(match.group(1))
        except version.InvalidVersion:
            return None

    def check_engine_available(self) -> bool:
        if self.which(self.engine) is None:
            self.logger.debug("%s not found on PATH", self.engine)
            return False

        result = self.run_cmd([self.engine, "--version"], check=False, capture_output=True)
        if result.returncode != 0:
            return False

        installed = self.parse_engine_version(result.stdout)
        if installed is None:
            self.logger.debug("Could not parse %s version from: %s", self.engine, result.stdout)
            return False

        return installed >= version.parse(self.config.min_engine_version)

    def require_engine(self):
        if not self.check_engine_available():
            self.reporter.die(
                actionable_error(
                    "engine_missing",
                    engine=self.engine,
                    min_version=self.config.min_engine_version,
                )
            )

    def build(self, identity: ContainerIdentity, build_file: str):
        self.require_engine()

        self.remove(identity)

        result = self.run_cmd(
            [self.engine, "build", "-t", identity.image_name, "-f", build_file, "."],
            check=False,
        )
        if result.returncode != 0:
            self.reporter.die(
                actionable_error(
                    "container_build_failed",
                    image=identity.image_name,
                    build_file=build_file,
                    engine=self.engine,
                )
            )

        result = self.run_cmd(
            [self.engine, "run", "-itd", "--name", identity.container_name, identity.image_name],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            self.reporter.die(
                actionable_error(
                    "container_start_failed",
                    image=identity.image_name,
                    engine=self.engine,
                )
            )

        self.reporter.info(
            f"Created container successfully for '{identity.name}' from '{build_file}'"
        )

    def read_artifacts_path(self, identity: ContainerIdentity) -> str:
        variable = self.config.artifacts_path_var
        result = self.run_cmd(
            [
                self.engine,
                "exec",
                identity.container_name,
                "bash",
                "-c",
                f'printf "%s" "${variable}"',
            ],
            check=False,
            capture_output=True,
        )
        path = (result.stdout or "").strip()
        if result.returncode != 0 or not path:
            self.reporter.die(
                actionable_error(
                    "artifact_path_unknown",
                    variable=variable,
                    container=identity.container_name,
                )
            )
        return path

    def get_artifacts(self, identity: ContainerIdentity, destination: str = ".") -> List[str]:
        self.require_engine()

        artifacts_path = self.read_artifacts_path(identity).rstrip("/")
        retrieved = []
        for artifact in self.config.artifacts:
            source = f"{identity.container_name}:{artifacts_path}/{artifact}"
            result = self.run_cmd([self.engine, "cp", source, destination], check=False)
            if result.returncode != 0:
                self.reporter.die(
                    actionable_error(
                        "artifact_missing",
                        artifact=artifact,
                        container=identity.container_name,
                    )
                )
            self.reporter.info(
                f"Retrieved {artifact} successfully from container '{identity.name}'"
            )
            retrieved.append(artifact)
        return retrieved

    def _exists(self, name: str) -> bool:
        result = self.run_cmd(
            [self.engine, "inspect", name],
            check=False,
            capture_output=True,
            warn=False,
        )
        return result.returncode == 0

    def remove(self, identity: ContainerIdentity):
        self.require_engine()

        self.reporter.info(f"Removing container and associated image for {identity.name}...")

        if self._exists(identity.container_name):
            result = self.run_cmd(
                [self.engine, "rm", "--force", identity.container_name],
                check=False,
                capture_output=True,
            )
            if result.returncode != 0:
                self.reporter.warn(f"failed to remove container {identity.container_name}")

        if self._exists(identity.image_name):
            result = self.run_cmd(
                [self.engine, "rmi", "--force", identity.image_name],
                check=False,
                capture_output=True,
            )
            if result.returncode != 0:
                self.reporter.warn(f"failed to remove image {identity.image_name}")

    def _remove_listed(self, list_cmd: List[str], remove_cmd: List[str], warning: str):
        listed = self.run_cmd(list_cmd, check=False, capture_output=True)
        if listed.returncode != 0:
            self.reporter.warn(warning)
            return

        ids = [line.strip() for line in (listed.stdout or "").splitlines() if line.strip()]
        if not ids:
            return

        result = self.run_cmd(remove_cmd + ids, check=False, capture_output=True)
        if result.returncode != 0:
            self.reporter.warn(warning)

    def cleanup_all(self):
        self.require_engine()
        self.logger.info("Cleaning up %s disk space...", self.engine)

        self._remove_listed(
            [self.engine, "ps", "-a", "-q", "-f", "status=exited"],
            [self.engine, "rm", "-v"],
            "failed to cleanup containers that have exited",
        )
        self._remove_listed(
            [self.engine, "volume", "ls", "-qf", "dangling=true"],
            [self.engine, "volume", "rm"],
            "failed to cleanup volumes that are dangling",
        )

        if self.config.volume_cleanup_image:
            result = self.run_cmd(
                [
                    self.engine,
                    "run",
                    "-v",
                    "/var/run/docker.sock:/var/run/docker.sock",
                    "-v",
                    "/var/lib/docker:/var/lib/docker",
                    "--rm",
                    self.config.volume_cleanup_image,
                ],
                check=False,
                capture_output=True,
            )
            if result.returncode != 0:
                self.reporter.warn("failed to run the volume cleanup container")

        self._remove_listed(
            [self.engine, "images", "-f", "dangling=true", "-q"],
            [self.engine, "rmi"],
            "failed to cleanup images that are dangling",
        )

    @contextmanager
    def provisioned(
        self,
        identity: ContainerIdentity,
        build_file: str,
        shield: Optional[Callable] = None,
    ) -> Iterator[ContainerIdentity]:
        """Builds the container and removes it exactly once, however the block exits.

        ``shield`` returns a context manager that holds back interruptions while
        the removal runs.
        """
        try:
            self.build(identity, build_file)
            yield identity
        finally:
            with shield() if shield else nullcontext():
                self.remove(identity)
