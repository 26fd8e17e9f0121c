"""
Event names exchanged with the relay server.
"""


class C2SEvent:
    """Client to server."""

    START = "start"
    SIGNAL = "signal"
    NEW_MESSAGE = "newMessageToServer"
    TYPING = "typing"
    DONE_TYPING = "doneTyping"
    STOP = "stop"


class S2CEvent:
    """Server to client."""

    NUMBER_OF_ONLINE = "numberOfOnline"
    SEARCHING = "searching"
    CHAT_START = "chatStart"
    SIGNAL = "signal"
    NEW_MESSAGE = "newMessageToClient"
    STRANGER_TYPING = "strangerIsTyping"
    STRANGER_DONE_TYPING = "strangerIsDoneTyping"
    GOOD_BYE = "goodBye"
    STRANGER_DISCONNECTED = "strangerDisconnected"
    END_CHAT = "endChat"


# Any of these ends the current pairing
TERMINAL_EVENTS = {S2CEvent.GOOD_BYE, S2CEvent.STRANGER_DISCONNECTED, S2CEvent.END_CHAT}

TYPING_HINT = "Stranger is typing..."
