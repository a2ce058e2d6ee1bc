import enum
import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UserRole(str, enum.Enum):
    CLIENT = "CLIENT"
    PROVIDER = "PROVIDER"
    ADMIN = "ADMIN"


class AccountStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"


class ServiceType(str, enum.Enum):
    CATERING = "CATERING"
    WEDDING_PLANNING = "WEDDING_PLANNING"
    VENUE = "VENUE"
    PHOTOGRAPHY = "PHOTOGRAPHY"
    MUSIC = "MUSIC"
    DECORATION = "DECORATION"
    OTHER = "OTHER"


class RequestStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DELETED = "DELETED"


class PitchStatus(str, enum.Enum):
    PENDING = "PENDING"
    WIN = "WIN"
    LOSE = "LOSE"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class CamelModel(BaseModel):
    """Base for wire schemas: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


T = TypeVar("T")


class Pageable(CamelModel):
    page_number: int = 0
    page_size: int = 10


class Page(CamelModel, Generic[T]):
    content: List[T] = Field(default_factory=list)
    pageable: Pageable = Field(default_factory=Pageable)
    total_pages: int = 0
    total_elements: int = 0

    @property
    def page_number(self) -> int:
        return self.pageable.page_number

    @property
    def page_size(self) -> int:
        return self.pageable.page_size


def total_pages(total_elements: int, page_size: int) -> int:
    if total_elements <= 0 or page_size <= 0:
        return 0
    return math.ceil(total_elements / page_size)
