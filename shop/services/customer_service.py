import re

from sqlalchemy.orm import Session

from shop.data.models.customer import CustomerAddressModel, CustomerModel
from shop.domain.errors import NotFoundError, PhoneAlreadyRegistered
from shop.domain.schemas import AddressIn, CustomerCreateIn
from shop.repos.customer_repo import CustomerRepo
from shop.utils.logging import get_logger

logger = get_logger(__name__)


def normalize_phone(phone: str) -> str:
    """Keep digits and a leading +, always prefixed with +."""
    normalized = re.sub(r"[^\d+]", "", phone or "")
    normalized = "+" + normalized.lstrip("+")
    return normalized


class CustomerService:
    def __init__(self, db: Session):
        self.repo = CustomerRepo(db)

    def register(self, payload: CustomerCreateIn) -> CustomerModel:
        phone = normalize_phone(payload.phone_number)

        if self.repo.get_by_phone(phone):
            raise PhoneAlreadyRegistered(phone)

        created = self.repo.create_customer(CustomerModel(name=payload.name, phone_number=phone))
        logger.info(f"Customer {created.id} registered")
        return created

    def get_customer(self, customer_id: int) -> CustomerModel:
        customer = self.repo.get_customer(customer_id)
        if not customer:
            raise NotFoundError("Customer", customer_id)
        return customer

    def add_address(self, customer_id: int, payload: AddressIn, commit: bool = True) -> CustomerAddressModel:
        self.get_customer(customer_id)
        address = self.repo.add_address(CustomerAddressModel(customer_id=customer_id, **payload.model_dump()))
        if commit:
            self.repo.db.commit()
        return address

    def list_addresses(self, customer_id: int) -> list[CustomerAddressModel]:
        self.get_customer(customer_id)
        return self.repo.list_addresses(customer_id)

    def get_address(self, customer_id: int, address_id: int) -> CustomerAddressModel:
        address = self.repo.get_address(customer_id, address_id)
        if not address:
            raise NotFoundError("Address", address_id)
        return address
