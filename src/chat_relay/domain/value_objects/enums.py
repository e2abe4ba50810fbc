from __future__ import annotations

from enum import StrEnum


class ClientEvent(StrEnum):
    """Events a client may send over the socket."""

    USER_JOIN = "user_join"
    UPDATE_PROFILE = "update_profile"
    SEND_MESSAGE = "send_message"
    PRIVATE_MESSAGE = "private_message"
    TYPING = "typing"
    MESSAGE_READ = "message_read"
    LOGOUT = "logout"
    PING = "ping"


class ServerEvent(StrEnum):
    """Events the server emits to one, some or all connections."""

    CONNECTED = "connected"
    USER_LIST = "user_list"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    TYPING_USERS = "typing_users"
    RECEIVE_MESSAGE = "receive_message"
    PRIVATE_MESSAGE = "private_message"
    MESSAGE_DELIVERED = "message_delivered"
    MESSAGE_READ = "message_read"
    ACK = "ack"
    ERROR = "error"
    PONG = "pong"


class AckStatus(StrEnum):
    OK = "ok"
    ERROR = "error"
