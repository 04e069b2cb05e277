"""
Opaque identifier generation.

Game ids are short enough to share in a link; participant ids double as
the client's local session token. All ids use a URL-safe alphabet.
"""

import secrets

URL_SAFE_ALPHABET = "useandom-26T198340PX75pxJACKVERYMINDBUSHWOLF_GQZbfghjklqvwyzrict"

GAME_ID_LENGTH = 10
PARTICIPANT_ID_LENGTH = 16
DEFAULT_ID_LENGTH = 21


def generate_id(size: int = DEFAULT_ID_LENGTH) -> str:
    """Generate a random URL-safe id (issues, reactions)."""
    return "".join(secrets.choice(URL_SAFE_ALPHABET) for _ in range(size))


def generate_game_id() -> str:
    """Generate a game session id."""
    return generate_id(GAME_ID_LENGTH)


def generate_participant_id() -> str:
    """Generate a participant id."""
    return generate_id(PARTICIPANT_ID_LENGTH)
