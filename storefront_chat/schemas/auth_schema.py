"""Authentication schemas shared by HTTP and WebSocket entry points."""

from pydantic import BaseModel, ConfigDict


class TokenPayload(BaseModel):
    """Decoded JWT payload."""

    model_config = ConfigDict(frozen=True)

    sub: str
    email: str
    role: str
    type: str
    jti: str
    exp: int


class CurrentUser(BaseModel):
    """Authenticated principal behind a request or socket."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_token(cls, payload: TokenPayload) -> "CurrentUser":
        return cls(id=int(payload.sub), email=payload.email, role=payload.role)
