"""
Message protocol module for RelayChat application.
Defines the line-oriented wire format used in client-server communication.

One message per line, fields joined by DELIMITER, field 0 is the tag.
Fields are not escaped: a field that contains the delimiter splits into
several fields on the receiving side.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

DELIMITER = "|"
GUEST_SENTINEL = "GUEST"
SERVER_NAME = "Server"
GUEST_NAME = "Anonymous"

AUTH_REQUEST_LENGTH = 3
MSG_TYPE_INDEX = 0


class MessageType(Enum):
    """
    Enumeration of the tags used on the wire.
    """
    AUTH = "AUTH"  # Client login request
    BCAST = "BCAST"  # Chat broadcast, both directions
    USERLIST = "USERLIST"  # Authorized nicknames
    AUTH_OK = "AUTH_OK"  # Login accepted
    AUTH_FAIL = "AUTH_FAIL"  # Login rejected
    FMT_ERR = "FMT_ERR"  # Unrecognised line echoed back


def split_fields(line: str) -> List[str]:
    """
    Split a line into its fields.

    Trailing empty fields are dropped, so ``"BCAST|"`` has a single field.
    """
    fields = line.split(DELIMITER)
    while len(fields) > 1 and fields[-1] == "":
        fields.pop()
    return fields


def join_fields(*fields: str) -> str:
    return DELIMITER.join(fields)


# Client -> server

@dataclass
class AuthRequest:
    login: str
    password: str

    def serialize(self) -> str:
        return join_fields(MessageType.AUTH.value, self.login, self.password)


@dataclass
class GuestConnect:

    def serialize(self) -> str:
        return GUEST_SENTINEL


@dataclass
class ChatBroadcastRequest:
    text: str

    def serialize(self) -> str:
        return join_fields(MessageType.BCAST.value, self.text)


# Server -> client

@dataclass
class ServerBroadcast:
    """
    Chat line relayed to every session.

    Attributes:
        from_name (str): Nickname of the sender, or "Server" for notices
        text (str): Message text
    """
    from_name: str
    text: str

    def serialize(self) -> str:
        return join_fields(MessageType.BCAST.value, self.from_name, self.text)


@dataclass
class UserList:
    """
    List of authorized nicknames, each one followed by the delimiter.
    """
    names: List[str] = field(default_factory=list)

    def serialize(self) -> str:
        return MessageType.USERLIST.value + DELIMITER + "".join(
            name + DELIMITER for name in self.names
        )


@dataclass
class AuthAccepted:
    nickname: str

    def serialize(self) -> str:
        return join_fields(MessageType.AUTH_OK.value, self.nickname)


@dataclass
class AuthRejected:

    def serialize(self) -> str:
        return MessageType.AUTH_FAIL.value


@dataclass
class FormatError:
    original_text: str

    def serialize(self) -> str:
        return join_fields(MessageType.FMT_ERR.value, self.original_text)


ClientMessage = Union[AuthRequest, GuestConnect, ChatBroadcastRequest]


def parse_client_line(line: str) -> Optional[ClientMessage]:
    """
    Parse one line received from a client.

    Args:
        line (str): Raw line without its terminator

    Returns:
        The decoded client message, or None when the line matches no
        client message shape.
    """
    if line == GUEST_SENTINEL:
        return GuestConnect()
    fields = split_fields(line)
    tag = fields[MSG_TYPE_INDEX]
    if tag == MessageType.AUTH.value and len(fields) == AUTH_REQUEST_LENGTH:
        return AuthRequest(login=fields[1], password=fields[2])
    if tag == MessageType.BCAST.value and len(fields) >= 2:
        # Anything past field 1 is lost, the format has no escaping
        return ChatBroadcastRequest(text=fields[1])
    return None


def parse_user_list(line: str) -> List[str]:
    """Decode a USERLIST line into the nicknames it carries."""
    fields = split_fields(line)
    if fields[MSG_TYPE_INDEX] != MessageType.USERLIST.value:
        return []
    return [name for name in fields[1:] if name]


__all__ = [
    'DELIMITER',
    'GUEST_SENTINEL',
    'SERVER_NAME',
    'GUEST_NAME',
    'AUTH_REQUEST_LENGTH',
    'MSG_TYPE_INDEX',
    'MessageType',
    'split_fields',
    'join_fields',
    'AuthRequest',
    'GuestConnect',
    'ChatBroadcastRequest',
    'ServerBroadcast',
    'UserList',
    'AuthAccepted',
    'AuthRejected',
    'FormatError',
    'ClientMessage',
    'parse_client_line',
    'parse_user_list',
]
