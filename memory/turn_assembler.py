"""Reconstruct logical conversation turns from the flat message log."""

from typing import List, Sequence

from schemas.conversation import ConversationTurn, Message, Role, ToolInvocation


def assemble_turns(messages: Sequence[Message]) -> List[ConversationTurn]:
    """
    Group messages into (user, tool-calling assistants..., final assistant) turns.

    A turn opens at each user message and spans every following message up
    to the next user message. Tool invocations from all assistant messages
    in the span are collected in order; the last assistant message with
    text is the reply. Turns without a reply are still in flight and are
    left out. Messages before the first user message never open a turn.

    Args:
        messages: Messages of one conversation, in log order

    Returns:
        Complete turns, indexed from 0 in order of appearance
    """
    turns: List[ConversationTurn] = []
    i = 0
    n = len(messages)

    while i < n:
        user_msg = messages[i]
        if user_msg.role != Role.USER:
            i += 1
            continue

        tool_invocations: List[ToolInvocation] = []
        message_ids = [user_msg.message_id]
        final_reply = None

        j = i + 1
        while j < n and messages[j].role != Role.USER:
            msg = messages[j]
            if msg.role == Role.ASSISTANT:
                message_ids.append(msg.message_id)
                tool_invocations.extend(msg.tool_invocations)
                if msg.content.strip():
                    final_reply = msg
            j += 1

        if final_reply is not None:
            turns.append(ConversationTurn(
                turn_index=len(turns),
                user_message=user_msg.content,
                assistant_message=final_reply.content,
                tool_invocations=tool_invocations,
                timestamp=final_reply.timestamp,
                message_ids=message_ids
            ))

        i = j

    return turns
