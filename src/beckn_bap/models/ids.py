"""Identifier generation for transaction_id and message_id.

Beckn participants exchange RFC 4122 UUIDs; any unique string is accepted
on input.
"""

import uuid


def generate_id() -> str:
    """Generate a new random UUID4 string.

    Example:
        >>> len(generate_id())
        36
    """
    return str(uuid.uuid4())
