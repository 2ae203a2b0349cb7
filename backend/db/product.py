import uuid

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Integer, String, Text, Uuid
from sqlalchemy.sql import func

from .database import Base


class Product(Base):
    """Product with its global (central) stock quantity"""
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")

    # Minor currency unit (cents), never a float
    price_in_cents = Column(BigInteger, nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_in_cents": int(self.price_in_cents or 0),
            "quantity": int(self.quantity or 0),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
