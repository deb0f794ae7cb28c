from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    # Unknown API fields are kept so a re-encoded archive loses nothing.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class File(_Record):
    id: str = ""
    name: str = ""
    title: str = ""
    mimetype: str = ""
    filetype: str = ""
    size: int = 0
    user: str = ""
    timestamp: int = 0
    url_private: str = ""


class Message(_Record):
    type: str = "message"
    subtype: str = ""
    user: str = ""
    text: str = ""
    timestamp: str = Field(default="", alias="ts")
    thread_timestamp: str = Field(default="", alias="thread_ts")
    reply_count: int = 0
    files: List[File] = Field(default_factory=list)

    def is_thread_parent(self) -> bool:
        """True if this message starts a thread that has replies."""
        return (
            self.reply_count > 0
            and self.thread_timestamp != ""
            and self.thread_timestamp == self.timestamp
        )


class User(_Record):
    id: str = ""
    team_id: str = ""
    name: str = ""
    real_name: str = ""
    deleted: bool = False
    is_bot: bool = False
    tz: str = ""
    profile: Dict[str, Any] = Field(default_factory=dict)


class Channel(_Record):
    id: str = ""
    name: str = ""
    is_channel: bool = False
    is_group: bool = False
    is_im: bool = False
    is_mpim: bool = False
    is_private: bool = False
    is_archived: bool = False
    created: int = 0
    creator: str = ""
    user: str = ""                      # counterpart of a direct message
    topic: Dict[str, Any] = Field(default_factory=dict)
    purpose: Dict[str, Any] = Field(default_factory=dict)
    num_members: int = 0
    members: List[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        if self.is_im and self.user:
            return f"@{self.user}"
        return self.name or self.id


