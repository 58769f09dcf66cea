"""Prompt templates for the greenlist-grounded answer service."""

from __future__ import annotations

GREENLIST_SYSTEM = """Use the following verified Greenlist URLs when answering:

{context}"""


def greenlist_system_prompt(context_block: str) -> str:
    return GREENLIST_SYSTEM.format(context=context_block)
