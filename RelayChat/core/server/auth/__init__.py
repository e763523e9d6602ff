"""
Authentication state machine for client sessions.

The machine is pure decision logic: given the state of the sending session
and one received line, it returns a Transition describing the next state and
the effects to produce (replies, broadcasts, takeover of an older session).
It never touches a connection; the chat server applies the transition while
holding the registry lock.

States::

    UNAUTHORIZED --AUTH ok, nickname free------> AUTHORIZED
    UNAUTHORIZED --AUTH ok, nickname in use----> AUTHORIZED  (old session -> RECONNECTING)
    UNAUTHORIZED --AUTH bad / GUEST / chat-----> UNAUTHORIZED
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, List, Optional

from RelayChat.core.message.protocol import (
    AUTH_REQUEST_LENGTH,
    GUEST_SENTINEL,
    MSG_TYPE_INDEX,
    SERVER_NAME,
    GUEST_NAME,
    ChatBroadcastRequest,
    MessageType,
    ServerBroadcast,
    parse_client_line,
    split_fields,
)
from RelayChat.core.server.interfaces import CredentialStore
from RelayChat.core.server.session import AuthState


class AuthAction(Enum):
    """What the chat server has to do with the sending session."""
    GUEST = auto()  # Admit as anonymous guest
    LOGIN = auto()  # Authorize under a free nickname
    TAKEOVER = auto()  # Authorize and displace the session holding the nickname
    REJECT = auto()  # Credentials did not match
    CHAT = auto()  # Relay a chat line
    FORMAT_ERROR = auto()  # Echo the line back as FMT_ERR


@dataclass
class Transition:
    """
    Result of feeding one line to the state machine.

    Attributes:
        action: Effect to apply to the sending session
        next_state: State of the sending session afterwards
        line: The line that was handled
        nickname: Nickname granted by LOGIN or TAKEOVER
        login: Login presented by an AUTH request
        displaced: Session superseded by a TAKEOVER
        broadcasts: Lines to send to every registered session, in order
        refresh_user_list: Whether to broadcast the user list afterwards
    """
    action: AuthAction
    next_state: AuthState
    line: str = ""
    nickname: Optional[str] = None
    login: Optional[str] = None
    displaced: Optional[Any] = None
    broadcasts: List[str] = field(default_factory=list)
    refresh_user_list: bool = False


class SessionStateMachine:
    """
    Decides how a session reacts to each received line.
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        find_authorized: Callable[[str], Optional[Any]]
    ):
        """
        Initialize the state machine.

        Args:
            credential_store: Backend resolving login/password to a nickname
            find_authorized: Returns the authorized session using a nickname
        """
        self._credentials = credential_store
        self._find_authorized = find_authorized

    def handle(self, state: AuthState, sender_name: str, line: str) -> Transition:
        """
        Handle one line received from a session.

        Args:
            state: Current state of the sending session
            sender_name: Nickname of the sender (guest name when unauthorized)
            line: Received line

        Returns:
            Transition to apply
        """
        if state is AuthState.AUTHORIZED:
            return self.dispatch_chat(state, sender_name, line)
        return self.handle_unauthorized(state, line)

    def handle_unauthorized(self, state: AuthState, line: str) -> Transition:
        if line == GUEST_SENTINEL:
            return Transition(
                AuthAction.GUEST,
                state,
                line=line,
                broadcasts=[ServerBroadcast(SERVER_NAME, f"{GUEST_NAME} connected").serialize()],
            )

        fields = split_fields(line)
        if (len(fields) != AUTH_REQUEST_LENGTH
                or fields[MSG_TYPE_INDEX] != MessageType.AUTH.value):
            # A malformed handshake may still be a chat line
            if state is not AuthState.AUTHORIZED:
                return self.dispatch_chat(state, GUEST_NAME, line)
            return Transition(AuthAction.FORMAT_ERROR, state, line=line)

        login, password = fields[1], fields[2]
        nickname = self._credentials.lookup_nickname(login, password)
        if nickname is None:
            return Transition(AuthAction.REJECT, state, line=line, login=login)

        old = self._find_authorized(nickname)
        if old is None:
            return Transition(
                AuthAction.LOGIN,
                AuthState.AUTHORIZED,
                line=line,
                nickname=nickname,
                login=login,
                broadcasts=[ServerBroadcast(SERVER_NAME, f"{nickname} connected").serialize()],
                refresh_user_list=True,
            )
        return Transition(
            AuthAction.TAKEOVER,
            AuthState.AUTHORIZED,
            line=line,
            nickname=nickname,
            login=login,
            displaced=old,
            refresh_user_list=True,
        )

    def dispatch_chat(self, state: AuthState, sender_name: str, line: str) -> Transition:
        message = parse_client_line(line)
        if isinstance(message, ChatBroadcastRequest):
            return Transition(
                AuthAction.CHAT,
                state,
                line=line,
                broadcasts=[ServerBroadcast(sender_name, message.text).serialize()],
            )
        return Transition(AuthAction.FORMAT_ERROR, state, line=line)


__all__ = [
    'AuthAction',
    'Transition',
    'SessionStateMachine',
]
