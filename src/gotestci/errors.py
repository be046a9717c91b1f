"""Domain errors for gotestci."""


class BuildError(RuntimeError):
    """Raised when the build cannot continue and must exit with ``exit_code``."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code or 1


class BuildInterrupted(BuildError):
    """Raised when a termination signal arrives while a build is in flight."""

    def __init__(self, signum: int):
        super().__init__(f"Build interrupted by signal {signum}", exit_code=128 + signum)
        self.signum = signum
