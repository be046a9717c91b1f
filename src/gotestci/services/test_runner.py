"""Go unit test execution with coverage for gotestci."""

import os
import shutil
from typing import Dict, List, Optional

from gotestci.errors import BuildError
from gotestci.errors_catalog import actionable_error
from gotestci.models import BuildConfig, TestRunResult
from gotestci.services.coverage import CoverageAccumulator

# Largest exit status a process can report.
MAX_EXIT_CODE = 255


class GoTestService:
    """Runs every Go package test sequentially and writes XML reports."""

    TEST_OUTPUT_FILE = "gotest.out"
    COVERAGE_OUTPUT_FILE = "coverage.out"
    COVERAGE_REPORT = "coverage.xml"
    TEST_REPORT = "junit.xml"

    def __init__(self, config: BuildConfig, logger, reporter, command_runner, which=shutil.which):
        self.config = config
        self.logger = logger
        self.reporter = reporter
        self.command_runner = command_runner
        self.which = which

    @property
    def coverage_tmp_file(self) -> str:
        return f"{self.COVERAGE_OUTPUT_FILE}.tmp"

    def list_packages(self) -> List[str]:
        if self.which("go") is None:
            self.reporter.die(actionable_error("go_missing"))

        result = self.command_runner.run(["go", "list", "./..."], capture_output=True)
        packages = []
        for line in (result.stdout or "").splitlines():
            package = line.strip()
            if not package:
                continue
            if any(pattern in package for pattern in self.config.exclude_patterns):
                self.logger.debug("Skipping excluded package %s", package)
                continue
            packages.append(package)
        return packages

    def build_test_cmd(self, package: str) -> List[str]:
        return [
            "go",
            "test",
            f"-timeout={self.config.test_timeout_seconds}s",
            "-v",
            "-short",
            "-p",
            "1",
            f"-coverprofile={self.coverage_tmp_file}",
            package,
        ]

    def build_env(self, goos: Optional[str]) -> Dict[str, str]:
        env = {}
        if goos:
            env["GOOS"] = goos
        if self.config.goarch:
            env["GOARCH"] = self.config.goarch
        return env

    def _remove(self, *paths: str):
        for path in paths:
            if os.path.exists(path):
                try:
                    os.remove(path)
                except OSError as exc:
                    self.logger.warning("Could not remove %s: %s", path, exc)

    def run_packages(self, packages: List[str], goos: Optional[str] = None) -> TestRunResult:
        result = TestRunResult()
        accumulator = CoverageAccumulator(self.COVERAGE_OUTPUT_FILE)
        accumulator.reset()
        env = self.build_env(goos)

        with open(self.TEST_OUTPUT_FILE, "w", encoding="utf-8") as test_output:

            def on_line(line: str):
                test_output.write(line)
                self.reporter.output(line.rstrip("\n"))

            for package in packages:
                self.reporter.info(f"Running tests in {package}")
                self._remove(self.coverage_tmp_file)

                returncode = self.command_runner.stream(
                    self.build_test_cmd(package),
                    on_line=on_line,
                    env=env,
                )
                result.attempted += 1
                if returncode != 0:
                    self.reporter.info(f"Package '{package}' returned failure code {returncode}")
                    result.failed_packages.append(package)

                accumulator.append_profile(self.coverage_tmp_file)

        accumulator.finalize(self.config.cover_mode)
        return result

    def convert_coverage(self) -> Optional[str]:
        try:
            converted = self.command_runner.run(
                ["gocov", "convert", self.COVERAGE_OUTPUT_FILE],
                check=False,
                capture_output=True,
            )
            if converted.returncode != 0:
                raise BuildError("gocov convert failed")

            report = self.command_runner.run(
                ["gocov-xml"],
                check=False,
                capture_output=True,
                input=converted.stdout,
            )
            if report.returncode != 0:
                raise BuildError("gocov-xml failed")
        except BuildError as exc:
            self.logger.debug("Coverage conversion error: %s", exc)
            self.reporter.warn("failed to convert code coverage report to XML")
            return None

        with open(self.COVERAGE_REPORT, "w", encoding="utf-8") as file_obj:
            file_obj.write(report.stdout or "")
        return self.COVERAGE_REPORT

    def convert_test_output(self) -> Optional[str]:
        try:
            result = self.command_runner.run(
                ["go2xunit", "-input", self.TEST_OUTPUT_FILE, "-output", self.TEST_REPORT],
                check=False,
                capture_output=True,
            )
        except BuildError as exc:
            self.logger.debug("Test output conversion error: %s", exc)
            result = None

        if result is None or result.returncode != 0:
            self.reporter.warn("failed to convert test output to XML")
            return None
        return self.TEST_REPORT

    def run(self, goos: Optional[str] = None) -> TestRunResult:
        suffix = f" in {goos}..." if goos else "..."
        self.reporter.info(f"Running unit tests and collecting code coverage report{suffix}")

        packages = self.list_packages()
        try:
            result = self.run_packages(packages, goos=goos)
            result.coverage_report = self.convert_coverage()
            result.test_report = self.convert_test_output()
        finally:
            self._remove(self.TEST_OUTPUT_FILE, self.COVERAGE_OUTPUT_FILE, self.coverage_tmp_file)

        if result.failed > self.config.max_failures:
            self.reporter.die(
                f"Package failures ({result.failed}) exceeded maximum failures of "
                f"{self.config.max_failures}",
                min(result.failed, MAX_EXIT_CODE),
            )

        self.reporter.info(
            f"{result.attempted} package(s) tested, {result.failed} failed "
            f"(tolerated: {self.config.max_failures})"
        )
        return result
