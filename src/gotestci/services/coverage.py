"""Merged Go coverage profile."""

import os


class CoverageAccumulator:
    """Concatenates per-package ``-coverprofile`` outputs into one profile.

    Every Go profile starts with a ``mode:`` line. Package bodies are appended
    without it and a single header is written once by :meth:`finalize`.
    """

    def __init__(self, path: str):
        self.path = path
        self.finalized = False

    def reset(self):
        with open(self.path, "w", encoding="utf-8"):
            pass
        self.finalized = False

    def append_profile(self, profile_path: str) -> bool:
        if not os.path.exists(profile_path):
            return False

        with open(profile_path, "r", encoding="utf-8") as src:
            src.readline()
            body = src.read()

        if body and not body.endswith("\n"):
            body += "\n"

        with open(self.path, "a", encoding="utf-8") as dst:
            dst.write(body)
        return True

    def finalize(self, mode: str = "set"):
        if self.finalized:
            return

        with open(self.path, "r", encoding="utf-8") as src:
            body = src.read()
        with open(self.path, "w", encoding="utf-8") as dst:
            dst.write(f"mode: {mode}\n")
            dst.write(body)
        self.finalized = True
