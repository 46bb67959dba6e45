"""
Constants and default values for the job engine.
"""

from pathlib import Path

# ============================================================================
# Directory Paths
# ============================================================================

# Base directories
PROJECT_ROOT = Path(__file__).parent.parent
CONFIGS_DIR = PROJECT_ROOT / 'configs'

# Config subdirectories
DEFAULT_CONFIGS_DIR = CONFIGS_DIR / 'defaults'
DEFAULT_SESSION_CONFIG = DEFAULT_CONFIGS_DIR / 'session.yaml'

# Default root for job directories when nothing is configured
DEFAULT_JOBS_ROOT = PROJECT_ROOT / 'jobs'

# ============================================================================
# Sentinel Files
# ============================================================================

# Reserved file names inside every job directory. Result names must not
# collide with any of these.
BEGIN_MARKER = '___beg___.txt'
END_MARKER = '___end___.txt'
ERROR_MARKER = '___err___.txt'

SENTINEL_FILES = frozenset({BEGIN_MARKER, END_MARKER, ERROR_MARKER})

# Timestamp format of begin/end markers (locale independent)
TIME_FORMAT = '%Y-%m-%d %H:%M:%S'

# ============================================================================
# Id Allocation
# ============================================================================

# Extra candidates an allocator tries on top of the number of existing ids
ID_RETRY_EXTRA = 10

ID_TYPE_STRING = 'string'
ID_TYPE_UUID = 'uuid'
ID_TYPES = (ID_TYPE_STRING, ID_TYPE_UUID)

# ============================================================================
# Archives
# ============================================================================

ZIP_SUFFIX = '.zip'

# ============================================================================
# Environment Variables
# ============================================================================

ENV_JOBS_ROOT = 'JOBS_ROOT'
ENV_RESULT_NAMES = 'JOBS_RESULT_NAMES'
ENV_ID_TYPE = 'JOBS_ID_TYPE'
ENV_MAX_CONCURRENT = 'JOBS_MAX_CONCURRENT'
ENV_LOG_LEVEL = 'LOG_LEVEL'
ENV_CONFIG_PATH = 'JOBS_CONFIG'
