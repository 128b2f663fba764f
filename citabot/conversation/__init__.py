from citabot.conversation.state_machine import (
    ConversationStateMachine,
    DialogState,
    TransitionTrigger,
)

__all__ = [
    "ConversationStateMachine",
    "DialogState",
    "TransitionTrigger",
]
