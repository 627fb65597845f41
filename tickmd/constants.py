"""Project-wide constants shared across store, operations, and CLI modules."""

# Document and side-file names
TICK_FILENAME = "TICK.md"
TICK_DIR_NAME = ".tick"
LOCK_FILENAME = "lock"
QUEUE_FILENAME = "webhook-queue.json"
CONFIG_FILENAME = "config.yml"
NOTIFY_CONFIG_FILENAME = "notify.json"
BATCH_MARKER_FILENAME = "batch"
BACKUP_DIR_NAME = "backup"
ARCHIVE_FILENAME = "ARCHIVE.md"

# Document defaults
DEFAULT_SCHEMA_VERSION = "1.0"
DEFAULT_ID_PREFIX = "TASK"
DEFAULT_WORKFLOW = ["backlog", "todo", "in_progress", "review", "done"]
TASK_ID_PAD_WIDTH = 3

# Retry queue backoff
QUEUE_INITIAL_DELAY_SECONDS = 1
QUEUE_MAX_DELAY_SECONDS = 300
QUEUE_MAX_ATTEMPTS = 5
QUEUE_FAILED_MARKER = "failed"

# Lock maintenance
DEFAULT_LOCK_MAX_AGE_SECONDS = 300

# Backups
MAX_BACKUPS = 50
DEFAULT_BACKUP_LIST_LIMIT = 10
DEFAULT_BACKUP_KEEP = 10

# Archive
DEFAULT_ARCHIVE_STATUS = "done"
DEFAULT_ARCHIVE_LIST_LIMIT = 20

# History compaction
DEFAULT_MAX_HISTORY = 10
MILESTONE_ACTIONS = {"created", "completed", "reopened", "blocked"}

# Source-control sync
DEFAULT_COMMIT_PREFIX = "[tick]"
GIT_TIMEOUT_SECONDS = 30

# Webhook delivery
WEBHOOK_TIMEOUT_SECONDS = 10.0
