"""Build metadata reported by the health endpoint.

LYTIC_VERSION and GIT_COMMIT are set in CI. Locally the version comes from the
installed distribution and the commit from git, when either is available.
"""

import os
import subprocess
from importlib.metadata import PackageNotFoundError, version


def _installed_version() -> str:
    try:
        return version("lytic")
    except PackageNotFoundError:
        return "dev"


def _git_short_sha() -> str:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (FileNotFoundError, subprocess.CalledProcessError):
        return "dev"


APP_VERSION: str = os.environ.get("LYTIC_VERSION") or _installed_version()
GIT_COMMIT: str = os.environ.get("GIT_COMMIT") or _git_short_sha()
