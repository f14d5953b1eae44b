from app.models.domain.notification_domain import Channel
from app.services.channels.base import ChannelSender
from app.services.channels.email_sender import EmailSender
from app.services.channels.push_sender import PushSender
from app.services.channels.whatsapp_sender import WhatsAppSender


def build_channel_senders() -> dict[Channel, ChannelSender]:
    """One sender per channel, configured from settings (possibly disabled)."""
    return {
        Channel.EMAIL: EmailSender(),
        Channel.WHATSAPP: WhatsAppSender(),
        Channel.PUSH: PushSender(),
    }
