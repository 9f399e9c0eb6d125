"""Transport ports the delivery orchestrator talks to.

Adapters return plain dicts so provider SDK responses can be passed
through with little translation. A send that fails for a provider reason
returns ``status="failed"``; adapters raise only when the provider could
not be reached at all.
"""

from abc import ABC, abstractmethod

# Provider error classes meaning the endpoint will never accept a message again.
INVALID_ENDPOINT_ERRORS = frozenset(
    {
        "messaging/registration-token-not-registered",
        "messaging/invalid-registration-token",
    }
)


class PushPort(ABC):
    @abstractmethod
    def send_multicast(self, tokens: list[str], title: str, body: str, data: dict | None = None) -> dict:
        """Send one message to every registered endpoint of a recipient.

        Returns ``success_count``, ``failure_count`` and ``responses``, the
        last aligned with ``tokens``. Each response carries ``success``,
        ``message_id`` and a provider ``error`` code.
        """


class EmailPort(ABC):
    @abstractmethod
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
        """Send one email to a verified address.

        ``fallback_message`` is set when the email stands in for a push that
        never arrived. Security mail is sent without an unsubscribe link.
        """


class SMSPort(ABC):
    @abstractmethod
    def send(self, to: str, category: str, body: str) -> dict:
        """Send one text to a verified phone number."""
