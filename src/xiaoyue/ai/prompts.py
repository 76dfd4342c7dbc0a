"""Persona system prompt and token-analysis instruction."""

from __future__ import annotations

from xiaoyue.chain.snapshot import TokenSnapshot
from xiaoyue.config import PersonaConfig
from xiaoyue.core.types import Locale


def build_system_prompt(persona: PersonaConfig, locale: str = Locale.EN) -> str:
    """Persona, locale tone rule and the canned stances, one per line."""
    if persona.reply_mode == "bilingual":
        guidance = persona.bilingual_guidance
    else:
        guidance = persona.locale_guidance.get(locale) or persona.locale_guidance.get(Locale.EN, "")

    policies = [p.replace("{official_mint}", persona.official_mint) for p in persona.policies]
    return "\n".join(part for part in [persona.identity, guidance, *policies] if part)


def build_analysis_prompt(snapshot: TokenSnapshot) -> str:
    holders = ", ".join(
        f"{h.owner or 'unknown'}: {h.amount}" for h in snapshot.largest_holders
    ) or "unavailable"
    return (
        f"Token mint: {snapshot.mint}\n"
        f"Supply: {snapshot.supply} (raw: {snapshot.raw_amount}, decimals: {snapshot.decimals})\n"
        f"Top holders: {holders}\n"
        f"Last updated: {snapshot.last_updated_iso}\n"
        "\n"
        "Provide a concise analysis in the user's language. Cover:\n"
        "- Basic description from the numbers above\n"
        "- Concentration risk from top holders\n"
        "- Liquidity/pool or circulation notes (if inferable). If price/volume/liquidity data "
        "is unavailable via RPC, state that it is not available.\n"
        "- Neutral, non-speculative guidance and risk warning\n"
    )


def analysis_request_label(mint: str) -> str:
    """The user-side message recorded alongside a successful analysis."""
    return f"Analyze token {mint}"
