"""Push, email and SMS transports a delivery uses.

``Channels`` bundles one adapter per transport and is handed to the
services that deliver. The in-memory fakes are the default; provider
adapters (FCM, SendGrid, Twilio) plug in behind the same ports.
"""

from dataclasses import dataclass, field

from safety_notifications.delivery.channel.fakes import FakeEmailAdapter, FakePushAdapter, FakeSMSAdapter
from safety_notifications.delivery.channel.ports import EmailPort, PushPort, SMSPort


@dataclass
class Channels:
    push: PushPort = field(default_factory=FakePushAdapter)
    email: EmailPort = field(default_factory=FakeEmailAdapter)
    sms: SMSPort = field(default_factory=FakeSMSAdapter)

    def reset(self):
        for adapter in (self.push, self.email, self.sms):
            reset = getattr(adapter, "reset", None)
            if reset is not None:
                reset()
