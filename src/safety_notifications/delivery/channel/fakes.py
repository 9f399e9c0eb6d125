"""In-memory transports used by default and in tests.

Each fake records what it accepted and can be told to fail, either for
every send or only for particular destinations.
"""

from uuid import uuid4

from safety_notifications.delivery.channel.ports import EmailPort, PushPort, SMSPort


class _RecordingAdapter:
    prefix = "msg"
    default_failure = "delivery failed"

    def __init__(self):
        self.calls = 0
        self.should_succeed = True
        self.failure_reason = self.default_failure
        self.unreachable: set[str] = set()

    def configure(self, should_succeed=True, failure_reason=None, unreachable=None):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason or self.default_failure
        self.unreachable = set(unreachable or ())

    def reset(self):
        self.calls = 0
        self.configure()

    def _rejects(self, destination) -> bool:
        return not self.should_succeed or destination in self.unreachable

    def _message_id(self) -> str:
        return f"{self.prefix}-{uuid4().hex[:12]}"

    def _outcome(self, destination, record: dict) -> dict:
        self.calls += 1
        if self._rejects(destination):
            return {"message_id": None, "status": "failed", "error": self.failure_reason}
        message_id = self._message_id()
        self._accepted.append({"message_id": message_id, **record})
        return {"message_id": message_id, "status": "sent"}


class FakeEmailAdapter(_RecordingAdapter, EmailPort):
    prefix = "email"
    default_failure = "Email delivery failed"

    def __init__(self):
        super().__init__()
        self.sent_emails: list[dict] = []

    @property
    def _accepted(self):
        return self.sent_emails

    def reset(self):
        super().reset()
        self.sent_emails.clear()

    def send(
        self,
        to: str,
        category: str,
        subject: str,
        body: str,
        action_url: str | None = None,
        fallback_message: str | None = None,
        include_unsubscribe: bool = True,
    ) -> dict:
        return self._outcome(
            to,
            {
                "to": to,
                "category": category,
                "subject": subject,
                "body": body,
                "action_url": action_url,
                "fallback_message": fallback_message,
                "include_unsubscribe": include_unsubscribe,
            },
        )


class FakeSMSAdapter(_RecordingAdapter, SMSPort):
    prefix = "sms"
    default_failure = "SMS delivery failed"

    def __init__(self):
        super().__init__()
        self.sent_messages: list[dict] = []

    @property
    def _accepted(self):
        return self.sent_messages

    def reset(self):
        super().reset()
        self.sent_messages.clear()

    def send(self, to: str, category: str, body: str) -> dict:
        return self._outcome(to, {"to": to, "category": category, "body": body})


class FakePushAdapter(_RecordingAdapter, PushPort):
    """Tokens in ``invalid_tokens`` fail as not registered, the way a provider reports an uninstalled app."""

    prefix = "push"
    default_failure = "messaging/internal-error"

    def __init__(self):
        super().__init__()
        self.sent_pushes: list[dict] = []
        self.invalid_tokens: set[str] = set()
        self.raise_error: Exception | None = None

    def configure(
        self,
        should_succeed=True,
        failure_reason=None,
        invalid_tokens=None,
        raise_error=None,
        unreachable=None,
    ):
        super().configure(should_succeed, failure_reason, unreachable)
        self.invalid_tokens = set(invalid_tokens or ())
        self.raise_error = raise_error

    def reset(self):
        super().reset()
        self.sent_pushes.clear()

    def send_multicast(self, tokens: list[str], title: str, body: str, data: dict | None = None) -> dict:
        self.calls += 1
        if self.raise_error is not None:
            raise self.raise_error

        responses = []
        for token in tokens:
            if token in self.invalid_tokens:
                responses.append(
                    {"success": False, "message_id": None, "error": "messaging/registration-token-not-registered"}
                )
            elif self._rejects(token):
                responses.append({"success": False, "message_id": None, "error": self.failure_reason})
            else:
                message_id = self._message_id()
                self.sent_pushes.append(
                    {"message_id": message_id, "device_token": token, "title": title, "body": body, "data": data}
                )
                responses.append({"success": True, "message_id": message_id, "error": None})

        success_count = sum(1 for r in responses if r["success"])
        return {"success_count": success_count, "failure_count": len(responses) - success_count, "responses": responses}
