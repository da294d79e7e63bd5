from .background import process_content_update_task

__all__ = ["process_content_update_task"]
