"""Actionable error catalog for gotestci."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "engine_missing": {
        "what": "cannot find {engine}, install {engine} and re-run.",
        "next": "Install {engine} {min_version} or newer and make sure it is on PATH.",
    },
    "container_build_failed": {
        "what": "failed to build container image {image} from {build_file}.",
        "next": "Run `{engine} build -f {build_file} .` by hand to inspect the build log.",
    },
    "container_start_failed": {
        "what": "failed to create and start the container image {image}.",
        "next": "Check `{engine} ps -a` and the daemon logs for the failed container.",
    },
    "artifact_path_unknown": {
        "what": "could not read {variable} from container {container}.",
        "next": "Make sure the build image exports {variable} and keeps bash installed.",
    },
    "artifact_missing": {
        "what": "failed to retrieve build artifact {artifact} from container {container}.",
        "next": "Inspect the image build output; the in-container build did not produce it.",
    },
    "go_missing": {
        "what": "cannot find go, install go and re-run.",
        "next": "Install the Go toolchain or run the build with containers instead of `-l`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
