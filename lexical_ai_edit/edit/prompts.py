# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Prompt construction for the edit model.

The model sees the addressable items of the block map and answers with the
{"edits", "message", "options"} object consumed by the stream parser.
"""

import datetime
from typing import Dict, List, Optional, Sequence

from .schemas import BlockItem, BlockType

EDIT_MODES = ("inline", "chat")

EDIT_SYSTEM_PROMPT = """You edit a rich-text document for the user and do nothing else. Apply the user's instruction using inline markdown.
Everything written into the document must be final prose ready for publication, never conversation.
Questions for the user belong in the message field only.
When tone, length or perspective are not given, choose sensible defaults and proceed.
The final user message contains the USER INSTRUCTION, the MODE, the CURRENT SELECTION (if any) and the AVAILABLE ITEMS.

**DECIDE FIRST:**
Pick exactly one of: A) apply edits, B) present options, C) ask a clarification question. Never mix them.
MODE=inline: apply edits right away when reasonably confident.
MODE=chat: ask for clarification when the intent is ambiguous.

**OUTPUT:**
{"edits": [...], "message": "...", "options": [{"title": "...", "content": "..."}]}

**EXAMPLES:**

"make block-2.1 bold"
-> {"edits": [{"target": {"kind": "block-item", "itemId": "block-2.1"}, "operation": {"type": "replace", "replacement": "**text here**"}}], "message": "", "options": []}

"insert a sentence after block-1.2"
-> {"edits": [{"target": {"kind": "block-item", "itemId": "block-1.2"}, "operation": {"type": "insert-item", "position": "after", "items": ["New sentence."]}}], "message": "", "options": []}

"insert a level 2 heading before block-3.1"
-> {"edits": [{"target": {"kind": "block-item", "itemId": "block-3.1"}, "operation": {"type": "insert-block", "position": "before", "blockType": "heading", "headingLevel": 2, "items": ["New heading"]}}], "message": "", "options": []}

"delete block-2.3"
-> {"edits": [{"target": {"kind": "block-item", "itemId": "block-2.3"}, "operation": {"type": "delete-item"}}], "message": "", "options": []}

"delete the block containing block-4.1"
-> {"edits": [{"target": {"kind": "block-item", "itemId": "block-4.1"}, "operation": {"type": "delete-block"}}], "message": "", "options": []}

"convert block-2.1 to a bullet list"
-> {"edits": [{"target": {"kind": "block-item", "itemId": "block-2.1"}, "operation": {"type": "transform-block", "blockType": "bulletList", "headingLevel": null, "items": ["First item", "Second item"]}}], "message": "", "options": []}

**RULES:**
1. Edits contain document content only: no filler, no meta commentary.
2. Always include an "operation" object with a "type".
3. Use inline markdown only: **bold**, *italic*, ~~strike~~, `code`.
4. Never put heading markers (#) in text; use "headingLevel" (1 to 3) instead.
5. List items are inline text without bullets or numbers.
6. insert-item "items" are sentences for paragraphs and headings, entries for lists.
7. insert-block and transform-block set "blockType" and "headingLevel" (null unless heading).
8. Paragraph and heading items are single sentences without line breaks.
9. Each paragraph is its own insert-block operation; several blocks after the same item keep edits-array order.
10. Target existing items with {"kind": "block-item", "itemId": ...}; never invent ids.
11. "message" is plain, user-facing text without block ids or technical terms.
12. "options" holds 2 to 4 {"title", "content"} entries or is []; when options are present, edits is [].
13. MODE=inline: leave message empty unless you need clarification. MODE=chat: summarise edits in one or two sentences.
14. If the only item is empty, replace it to create the initial content."""


def item_type_label(item: BlockItem) -> str:
    if item.block_type == BlockType.HEADING:
        return f"heading-{item.heading_level or 1}"
    if item.block_type == BlockType.BULLET_LIST:
        return "bullet"
    if item.block_type == BlockType.ORDERED_LIST:
        return "numbered"
    return "paragraph"


def format_items(items: Sequence[BlockItem]) -> str:
    return "\n".join(f'{item.id} [{item_type_label(item)}]: "{item.text}"' for item in items)


def build_edit_messages(
    instruction: str,
    items: Sequence[BlockItem],
    mode: str = "inline",
    selection: Optional[str] = None,
    chat_history: Optional[List[Dict[str, str]]] = None,
    today: Optional[datetime.date] = None,
) -> List[Dict[str, str]]:
    """
    Build the chat messages for one instruction.

    Args:
        instruction: What the user asked for
        items: Block map of the current document
        mode: "inline" (toolbar) or "chat"
        selection: Currently selected text, if any
        chat_history: Earlier {"role": "user"|"model", "content"} messages
        today: Date announced to the model (defaults to today)

    Returns:
        List of {"role", "content"} messages, system prompt first
    """
    if mode not in EDIT_MODES:
        raise ValueError(f"Unknown edit mode: {mode}")

    today = today or datetime.date.today()
    parts = [
        f"**USER INSTRUCTION:**\n{instruction}",
        f"**MODE:** {mode}",
    ]
    if selection:
        parts.append(f'**CURRENT SELECTION:**\n"{selection}"')
    parts.append(f"**AVAILABLE ITEMS:**\n{format_items(items)}")

    messages = [{"role": "system", "content": f"Today is {today.isoformat()}.\n{EDIT_SYSTEM_PROMPT}"}]
    for message in chat_history or []:
        role = "assistant" if message.get("role") == "model" else "user"
        messages.append({"role": role, "content": message.get("content", "")})
    messages.append({"role": "user", "content": "\n\n".join(parts)})
    return messages
