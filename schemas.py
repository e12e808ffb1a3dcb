from pydantic import BaseModel, Field
from typing import Any, List, Optional


class PasteMetadata(BaseModel):
    owner: str = ""
    title: str = Field("", max_length=250)
    description: str = Field("", max_length=1000)


class Paste(BaseModel):
    """A stored paste; `password` and `view_password` are bcrypt hashes."""
    id: str
    url: str
    content: str
    password: str
    view_password: str = ""
    date_published: int
    date_edited: int
    expires_at: Optional[int] = None
    metadata: PasteMetadata = Field(default_factory=PasteMetadata)

    @property
    def protected(self) -> bool:
        return bool(self.view_password)


class PublicPaste(BaseModel):
    id: str
    url: str
    content: str
    date_published: int
    date_edited: int
    expires_at: Optional[int] = None
    protected: bool = False
    metadata: PasteMetadata

    @classmethod
    def from_paste(cls, paste: Paste) -> "PublicPaste":
        return cls(
            id=paste.id,
            url=paste.url,
            content=paste.content,
            date_published=paste.date_published,
            date_edited=paste.date_edited,
            expires_at=paste.expires_at,
            protected=paste.protected,
            metadata=paste.metadata,
        )


class PasteCreate(BaseModel):
    url: str = ""
    content: str
    password: str = ""
    # Go-style duration ("24h", "1h30m") or "never"; empty uses the server default
    expiration: str = ""


class PasteClone(BaseModel):
    source: str
    url: str = ""
    password: str = ""
    view_password: str = ""
    expiration: str = ""


class PasteDelete(BaseModel):
    password: str = ""


class PasteEdit(BaseModel):
    password: str = ""
    new_content: str
    new_url: str = ""
    new_password: str = ""


class PasteEditMetadata(BaseModel):
    password: str = ""
    metadata: PasteMetadata
    view_password: str = ""


class CreatedPaste(BaseModel):
    # unhashed edit password, only ever returned here
    password: str
    paste: PublicPaste


class DefaultReturn(BaseModel):
    success: bool
    message: str
    payload: Any = None


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=32, pattern=r"^[A-Za-z0-9_.\-]+$")
    password: str = Field(..., min_length=1)


class UserLogin(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    created_at: int


class PasteList(BaseModel):
    pastes: List[PublicPaste]
    offset: int
    limit: int
