from .content_notification_processing import process_content_update_task

__all__ = ["process_content_update_task"]
