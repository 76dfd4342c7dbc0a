"""Request bodies for the HTTP API (camelCase on the wire)."""

from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: Optional[UUID] = None
    locale: Optional[Literal["en", "zh"]] = None
    wallet_address: Optional[str] = None

    @property
    def session_key(self) -> Optional[str]:
        return str(self.session_id) if self.session_id else None

    @property
    def wallet(self) -> Optional[str]:
        if not self.wallet_address:
            return None
        return self.wallet_address.strip() or None


class SessionRequest(_Request):
    pass


class ChatRequest(_Request):
    prompt: str = Field(min_length=1)


class TokenAnalyzeRequest(_Request):
    mint: str = Field(min_length=1)
