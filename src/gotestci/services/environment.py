"""Host inspection helpers for gotestci."""

import sys
from pathlib import Path
from typing import Iterable, Optional


class EnvironmentService:
    """Answers where the build is running."""

    GOOS_BY_PLATFORM = {
        "linux": "linux",
        "darwin": "darwin",
        "win32": "windows",
        "cygwin": "windows",
        "freebsd": "freebsd",
        "openbsd": "openbsd",
        "netbsd": "netbsd",
    }

    def __init__(self, logger, cgroup_file: str = "/proc/1/cgroup", markers: Iterable[str] = ("docker",)):
        self.logger = logger
        self.cgroup_file = cgroup_file
        self.markers = tuple(marker.lower() for marker in markers)

    def inside_container(self) -> bool:
        """Checks the control groups of the init process for a container runtime marker."""
        try:
            content = Path(self.cgroup_file).read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            self.logger.debug("Could not read %s: %s", self.cgroup_file, exc)
            return False

        for line in content.splitlines():
            fields = line.split(":", 2)
            if len(fields) < 3:
                continue
            segments = fields[2].split("/")
            if len(segments) < 2:
                continue
            segment = segments[1].lower()
            if any(marker in segment for marker in self.markers):
                return True
        return False

    def native_goos(self, platform: Optional[str] = None) -> str:
        platform = platform or sys.platform
        for prefix, goos in self.GOOS_BY_PLATFORM.items():
            if platform.startswith(prefix):
                return goos
        return platform
