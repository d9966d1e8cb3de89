"""Domain errors raised by the service layer and translated to HTTP by the routers."""


class ServiceError(Exception):
    """Base class for service-layer errors."""


class NotFoundError(ServiceError):
    pass


class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id: str):
        super().__init__(f"User {account_id} not found")
        self.account_id = account_id


class BotAccountNotFoundError(NotFoundError):
    def __init__(self, platform_id: int):
        super().__init__(f"Telegram user {platform_id} not found")
        self.platform_id = platform_id


class ConversationNotFoundError(NotFoundError):
    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class EmailAlreadyRegisteredError(ServiceError):
    pass


class SessionError(ServiceError):
    """A bearer token that does not authenticate anyone."""


class SessionInvalidError(SessionError):
    """No session was ever issued with this token."""


class SessionExpiredError(SessionError):
    """The session existed but its lifetime has lapsed."""

    def __init__(self, account_id: str):
        super().__init__("Session expired")
        self.account_id = account_id


class LinkConflictError(ServiceError):
    """Linking would break the one-to-one telegram_users.user_id invariant."""

    def __init__(self, platform_id: int, account_id: str, reason: str):
        super().__init__(
            f"Cannot link telegram user {platform_id} to user {account_id}: {reason}"
        )
        self.platform_id = platform_id
        self.account_id = account_id
        self.reason = reason
