"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class Locale(StrEnum):
    EN = "en"
    ZH = "zh"


class GateDecision(StrEnum):
    ALLOW = "allow"
    REQUIRE_WALLET = "require_wallet"
