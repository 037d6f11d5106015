"""HTTP/WebSocket server configuration."""

from pydantic import BaseModel


class ServerConfig(BaseModel, frozen=True):
    """Server bind settings."""

    host: str
    port: int

    @property
    def bind_address(self) -> str:
        """Host and port joined for log output."""
        return f"{self.host}:{self.port}"
