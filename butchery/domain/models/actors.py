from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["customer", "admin", "staff", "delivery"]


class Actor(BaseModel):
    """The authenticated caller of a mutating operation, resolved by the auth layer."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="User identifier")
    role: Role = Field(description="Role granted by the auth layer")

    @property
    def is_back_office(self) -> bool:
        return self.role in ("admin", "staff")

