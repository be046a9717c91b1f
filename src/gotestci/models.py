"""Shared domain models for gotestci."""

import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class BuildConfig:
    """Explicit build settings handed to every service."""

    run_locally: bool = False
    max_failures: int = 0
    dockerfile: str = "build/centos7/Dockerfile"
    container_prefix: str = "centos7"
    engine: str = "docker"
    min_engine_version: str = "17"
    artifacts_path_var: str = "GOTS_PATH"
    artifacts: Tuple[str, ...] = ("coverage.xml", "junit.xml")
    goos: Optional[str] = None
    goarch: Optional[str] = None
    test_timeout_seconds: int = 60
    exclude_patterns: Tuple[str, ...] = ("vendor", "itests", "rpm")
    cover_mode: str = "set"
    volume_cleanup_image: Optional[str] = None
    project_dir: str = "."
    cgroup_file: str = "/proc/1/cgroup"
    container_markers: Tuple[str, ...] = ("docker",)


@dataclass(frozen=True)
class ContainerIdentity:
    """Names of the container and image owned by one build invocation."""

    name: str

    @property
    def container_name(self) -> str:
        return f"{self.name}-cont"

    @property
    def image_name(self) -> str:
        return f"{self.name}-img"

    @classmethod
    def generate(cls, prefix: str) -> "ContainerIdentity":
        return cls(name=f"{prefix}-{str(uuid.uuid4()).lower()}")


@dataclass
class TestRunResult:
    """Outcome of one pass over every test package."""

    __test__ = False

    attempted: int = 0
    failed_packages: List[str] = field(default_factory=list)
    coverage_report: Optional[str] = None
    test_report: Optional[str] = None

    @property
    def failed(self) -> int:
        return len(self.failed_packages)
