from celery import Celery

# Create Celery app
celery = Celery("flag_notifier")

# Load configuration from flag_notifier.config.celeryconfig module
celery.config_from_object("flag_notifier.config.celeryconfig")
