"""Pydantic request/response models for the relay REST API.

Wire fields are camelCase; ``chatType`` and ``serverId`` are accepted as
legacy spellings of ``channelClass`` and ``channelId``.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from chatrelay.relay.store import Message


class InitRequest(BaseModel):
    user_id: str | int | None = Field(default=None, validation_alias="userId")
    username: str | None = None
    display_name: str | None = Field(default=None, validation_alias="displayName")
    channel_id: str | int | float | None = Field(
        default=None, validation_alias=AliasChoices("channelId", "serverId")
    )


class InitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Session initialized"
    user_id: str = Field(alias="userId")


class SendRequest(BaseModel):
    user_id: str | int | None = Field(default=None, validation_alias="userId")
    username: str | None = None
    display_name: str | None = Field(default=None, validation_alias="displayName")
    message: str | None = None
    channel_class: str | None = Field(
        default=None, validation_alias=AliasChoices("channelClass", "chatType")
    )
    channel_id: str | int | float | None = Field(
        default=None, validation_alias=AliasChoices("channelId", "serverId")
    )


class MessageData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(alias="userId")
    username: str
    display_name: str = Field(alias="displayName")
    message: str
    channel_class: str = Field(alias="channelClass")
    channel_id: str | None = Field(default=None, alias="channelId")
    timestamp: int

    @classmethod
    def from_message(cls, msg: Message) -> MessageData:
        return cls(
            id=msg.id,
            user_id=msg.sender_id,
            username=msg.username,
            display_name=msg.display_name,
            message=msg.body,
            channel_class=msg.channel_class.value,
            channel_id=msg.channel_id,
            timestamp=msg.created_at,
        )


class SendResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Message sent"
    message_data: MessageData = Field(alias="messageData")


class MessagesResponse(BaseModel):
    success: bool = True
    messages: list[MessageData]
    count: int


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    version: str
    local_channels: int = Field(alias="localChannels")
