"""
Constants and configuration values for chromever.

This module contains the hardcoded URLs, file names, timeouts and logging
formats used throughout the application.
"""

# Chrome for Testing feed (milestones 113+)
CFT_MILESTONES_URL = (
    "https://googlechromelabs.github.io/chrome-for-testing/"
    "latest-versions-per-milestone-with-downloads.json"
)

# Chromium snapshot archives for older milestones, keyed by build number
CHROMIUM_SNAPSHOT_URL_TEMPLATE = (
    "https://commondatastorage.googleapis.com/chromium-browser-snapshots/"
    "Win_x64/{build_id}/chrome-win.zip"
)

# Single supported target
TARGET_PLATFORM = "win64"
EXECUTABLE_NAME = "chrome.exe"
CHROME_DOWNLOAD_COMPONENT = "chrome"

# Installation root layout
INSTALL_ROOT_DIR_NAME = ".chromever"
VERSIONS_DIR_NAME = "versions"
CACHE_DIR_NAME = "cache"
PROFILES_DIR_NAME = "profiles"
ARCHIVE_NAME_TEMPLATE = "chrome-{milestone}.zip"

# Browser flags passed on every launch
USER_DATA_DIR_FLAG = "--user-data-dir"
NO_FIRST_RUN_FLAG = "--no-first-run"
NO_DEFAULT_BROWSER_CHECK_FLAG = "--no-default-browser-check"

# Network settings (in seconds / bytes)
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_CHUNK_SIZE = 64 * 1024
BYTES_PER_MEGABYTE = 1024 * 1024
FILE_SIZE_MB_LOGGING_THRESHOLD = 1.0
HTTP_STATUS_ERROR_THRESHOLD = 300

# Milestones printed per row in the "available milestones" hint
MILESTONES_PER_ROW = 10

# Configuration
APP_NAME = "chromever"
CONFIG_FILE_NAME = "chromever.yaml"
INSTALL_ROOT_ENV_VAR = "CHROMEVER_HOME"

# Logging configuration
LOGGER_NAME = "chromever"
LOG_FILE_NAME = "chromever.log"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5
LOG_LEVEL_ENV_VAR = "CHROMEVER_LOG_LEVEL"
