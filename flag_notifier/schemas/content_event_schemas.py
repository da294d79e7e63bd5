from typing import Optional

from pydantic import Field

from flag_notifier.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class ContentUpdatedEvent(BaseModel):
    item_id: int = Field(..., gt=0, description="ID of the updated content item")


class ContentUpdatedResult(BaseModel):
    item_id: int = Field(..., description="ID of the updated content item")
    queued: bool = Field(
        ..., description="Whether a notification job was queued by this event"
    )
    reason: Optional[str] = Field(
        default=None, description="Why the event was not queued"
    )
