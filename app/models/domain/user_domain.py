from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.config import MAX_NOTIFY_BEFORE_HOURS, MIN_NOTIFY_BEFORE_HOURS
from app.models.domain.contest_domain import Platform
from app.models.domain.notification_domain import Channel


class AlertFrequency(str, Enum):
    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


class NotificationChannels(BaseModel):
    """Per-channel opt-in flags from the user's preferences."""

    email: bool = True
    whatsapp: bool = False
    push: bool = False

    def enabled(self) -> set[Channel]:
        return {channel for channel in Channel if getattr(self, channel.value)}


class UserPreference(BaseModel):
    """
    Read-only view of a user's notification preferences and destinations.

    Owned by the user management side; consumed here only for eligibility
    and delivery.
    """

    model_config = ConfigDict(extra="ignore")

    user_id: str
    email: str | None = None
    phone_number: str | None = None
    push_token: str | None = None

    platforms: set[Platform] = Field(default_factory=set)
    notify_before: int = Field(24, ge=MIN_NOTIFY_BEFORE_HOURS, le=MAX_NOTIFY_BEFORE_HOURS)
    notification_channels: NotificationChannels = Field(default_factory=NotificationChannels)
    alert_frequency: AlertFrequency = AlertFrequency.IMMEDIATE
    is_active: bool = True

    def destination_for(self, channel: Channel) -> str | None:
        """Address the given channel delivers to, if the user has one."""
        if channel is Channel.EMAIL:
            return self.email
        if channel is Channel.WHATSAPP:
            return self.phone_number
        return self.push_token

    def deliverable_channels(self) -> set[Channel]:
        """Channels the user opted into and has a destination for."""
        return {
            channel
            for channel in self.notification_channels.enabled()
            if self.destination_for(channel)
        }
