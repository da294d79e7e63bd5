from .settings import settings

# Basic Celery Configuration
broker_url = settings.redis_url
result_backend = settings.redis_url

# Task Discovery
include = ["flag_notifier.tasks"]

# Timezone Configuration
timezone = "UTC"
enable_utc = True

# Task Result Configuration
result_expires = 3600

# Task Serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"

# Task Execution Configuration
task_track_started = True
task_time_limit = 30 * 60  # 30 minutes
task_soft_time_limit = 25 * 60  # 25 minutes

# Worker Configuration
# One job per worker at a time; the claim lasts until the task finishes.
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# Task Retry Configuration
task_acks_late = True
task_reject_on_worker_lost = True
task_default_retry_delay = settings.TASK_RETRY_DELAY
task_max_retries = settings.TASK_MAX_RETRIES

# Exponential Backoff Settings
task_retry_backoff = True
task_retry_backoff_max = settings.TASK_RETRY_BACKOFF_MAX
task_retry_jitter = False

# Default Queue
task_default_queue = settings.CELERY_QUEUE
