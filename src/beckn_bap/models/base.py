"""Base Pydantic model configuration for BAP models.

Models are frozen after creation so read views handed out by the
correlation store cannot be mutated by callers.
"""

from pydantic import BaseModel, ConfigDict


class BAPBaseModel(BaseModel):
    """Base model for all BAP protocol entities.

    - **Immutability**: frozen after creation
    - **Strict validation**: unknown fields are rejected unless a subclass opts in
    - **Flexible naming**: fields can be populated by name or alias

    Example:
        >>> class Sample(BAPBaseModel):
        ...     name: str
        >>> Sample(name="x").name
        'x'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        use_enum_values=False,
        validate_default=True,
    )
