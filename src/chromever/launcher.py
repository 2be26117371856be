"""
Launch an installed Chrome version with its own profile directory.

The browser is started detached and never waited on; only failure of the
spawn call itself is reported.
"""

import os
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from chromever.constants import (
    NO_DEFAULT_BROWSER_CHECK_FLAG,
    NO_FIRST_RUN_FLAG,
    USER_DATA_DIR_FLAG,
)
from chromever.exceptions import FileSystemError, LaunchError, VersionNotInstalledError
from chromever.log_utils import logger
from chromever.storage import InstallationStore


def build_launch_args(
    executable: Path, profile_dir: Path, url: Optional[str] = None
) -> List[str]:
    args = [
        str(executable),
        f"{USER_DATA_DIR_FLAG}={profile_dir}",
        NO_FIRST_RUN_FLAG,
        NO_DEFAULT_BROWSER_CHECK_FLAG,
    ]
    if url:
        args.append(url)
    return args


def detached_popen_kwargs() -> Dict[str, Any]:
    """Keyword arguments that detach the child from this process and its console."""
    kwargs: Dict[str, Any] = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "close_fds": True,
    }
    if os.name == "nt":
        kwargs["creationflags"] = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
            subprocess, "CREATE_NEW_PROCESS_GROUP", 0
        )
    else:
        kwargs["start_new_session"] = True
    return kwargs


class Launcher:
    def __init__(
        self,
        store: InstallationStore,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        self.store = store
        self._popen = popen

    def launch(self, milestone: int, url: Optional[str] = None) -> int:
        """
        Start Chrome `milestone`, optionally opening `url`.

        Returns:
            int: PID of the spawned browser.

        Raises:
            VersionNotInstalledError: If the milestone has no executable.
            FileSystemError: If the profile directory cannot be created.
            LaunchError: If the process cannot be spawned.
        """
        executable = self.store.find_executable(milestone)
        if executable is None:
            raise VersionNotInstalledError(
                milestone, details=f"install it first: chromever install {milestone}"
            )

        profile_dir = self.store.profile_dir(milestone)
        try:
            profile_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(
                f"Could not create profile directory {profile_dir}",
                path=str(profile_dir),
                details=str(e),
            ) from e

        args = build_launch_args(executable, profile_dir, url)
        logger.info(f"Starting Chrome {milestone} ...")
        logger.info(f"Path: {executable}")
        logger.info(f"Profile: {profile_dir}")
        logger.debug(f"Launch command: {args}")

        try:
            process = self._popen(args, **detached_popen_kwargs())
        except OSError as e:
            raise LaunchError(
                f"Could not start Chrome {milestone}", details=str(e)
            ) from e

        logger.info(f"Chrome {milestone} started")
        return process.pid
