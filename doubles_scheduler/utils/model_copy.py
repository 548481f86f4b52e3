"""
Copy helpers for transient SQLModel instances.

Engine operations never edit the instances they are given; they build a new
instance with the changed fields. Column values are copied, relationships are
not (they are rebuilt by the session when the copy is merged).
"""

from typing import Any, TypeVar

from sqlmodel import SQLModel

ModelT = TypeVar("ModelT", bound=SQLModel)


def clone(instance: ModelT, **changes: Any) -> ModelT:
    """Return a new instance of the same model with changes applied"""
    data = instance.model_dump()
    data.update(changes)
    return type(instance)(**data)
