"""Ownership-tracked resource identifiers.

A Managed value pairs a cloud-assigned identifier with a flag telling
whether this driver created the object (and must delete it on teardown)
or merely references a pre-existing one supplied by the caller.
"""

from __future__ import annotations

from typing import Generic, Self, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

T = TypeVar("T")


class Managed(BaseModel, Generic[T]):
    """Identifier plus ownership flag.

    An empty value means the resource is absent, which is different from
    present-but-unmanaged. Serialized as ``{"value": ..., "managed": ...}``.
    """

    model_config = ConfigDict(frozen=True)

    value: T
    driver_managed: bool = Field(
        default=False,
        serialization_alias="managed",
        validation_alias=AliasChoices("managed", "driver_managed"),
    )

    @property
    def present(self) -> bool:
        return bool(self.value)

    @property
    def deletable(self) -> bool:
        """True when this driver created the resource and it is still recorded."""
        return self.driver_managed and self.present

    @classmethod
    def absent(cls) -> Self:
        return cls(value="")  # type: ignore[arg-type]

    @classmethod
    def external(cls, value: T) -> Self:
        """Caller-supplied resource, never deleted by the driver."""
        return cls(value=value, driver_managed=False)

    @classmethod
    def owned(cls, value: T) -> Self:
        """Resource created by the driver, deleted on teardown."""
        return cls(value=value, driver_managed=True)

    def __str__(self) -> str:
        return str(self.value)
