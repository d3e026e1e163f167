from sqlalchemy import select
from sqlalchemy.orm import Session

from shop.data.models.customer import CustomerAddressModel, CustomerModel


class CustomerRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, customer_id: int) -> CustomerModel | None:
        return self.db.get(CustomerModel, customer_id)

    def get_by_phone(self, phone_number: str) -> CustomerModel | None:
        stmt = select(CustomerModel).where(CustomerModel.phone_number == phone_number)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_customer(self, customer: CustomerModel) -> CustomerModel:
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def get_address(self, customer_id: int, address_id: int) -> CustomerAddressModel | None:
        stmt = select(CustomerAddressModel).where(
            CustomerAddressModel.id == address_id,
            CustomerAddressModel.customer_id == customer_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_addresses(self, customer_id: int) -> list[CustomerAddressModel]:
        stmt = (
            select(CustomerAddressModel)
            .where(CustomerAddressModel.customer_id == customer_id)
            .order_by(CustomerAddressModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def add_address(self, address: CustomerAddressModel) -> CustomerAddressModel:
        # no commit here: an address typed in at checkout is saved with the order
        self.db.add(address)
        self.db.flush()
        return address
