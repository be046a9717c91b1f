"""Subprocess execution service for gotestci."""

import os
import subprocess
from typing import Callable, Dict, List, Optional

from gotestci.errors import BuildError


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger, default_timeout: Optional[float] = None, subprocess_module=subprocess):
        self.logger = logger
        self.default_timeout = default_timeout
        self.subprocess = subprocess_module

    @staticmethod
    def _merge_env(env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if not env:
            return None
        merged = dict(os.environ)
        merged.update(env)
        return merged

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        input: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        warn: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = self.subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                input=input,
                env=self._merge_env(env),
            )
        except FileNotFoundError as exc:
            raise BuildError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BuildError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise BuildError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise BuildError(message)

        if warn:
            self.logger.warning(message)
        else:
            self.logger.debug(message)
        return result

    def stream(
        self,
        cmd: List[str],
        on_line: Callable[[str], None],
        env: Optional[Dict[str, str]] = None,
    ) -> int:
        """Runs ``cmd`` with stdout and stderr merged, feeding each line to ``on_line``."""
        cmd_str = " ".join(cmd)
        self.logger.debug("Streaming: %s", cmd_str)

        try:
            process = self.subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                env=self._merge_env(env),
            )
        except FileNotFoundError as exc:
            raise BuildError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except OSError as exc:
            raise BuildError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        with process:
            try:
                if process.stdout is not None:
                    for line in process.stdout:
                        on_line(line)
            except BaseException:
                process.kill()
                process.wait()
                raise
            return process.wait()
