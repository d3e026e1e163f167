# shop/domain/owner.py
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class AuthenticatedCustomer:
    customer_id: int


@dataclass(frozen=True)
class AnonymousSession:
    token: str


CartOwner = Union[AuthenticatedCustomer, AnonymousSession]
