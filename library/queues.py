"""Queue definitions and priority constants for Procrastinate task queue."""

# Library reindex passes (never run concurrently)
QUEUE_INDEX = "index"

# Lock shared by every reindex job so the worker runs one pass at a time
REINDEX_LOCK = "reindex"

# Priority levels (higher number = processed first)
PRIORITY_HIGH = 75  # User-initiated but can wait briefly
PRIORITY_LOW = 25  # Scheduled maintenance
