from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Uuid
from sqlalchemy.sql import func

from .database import Base


class ClientStock(Base):
    """Quantity of one product held by one client.

    The composite primary key is also the conflict target of the ledger
    upsert, so a (client, product) pair can never have two rows."""
    __tablename__ = "client_stocks"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_client_stocks_quantity_non_negative"),
    )

    client_id = Column(Uuid(as_uuid=True), ForeignKey("clients.id", ondelete="CASCADE"), primary_key=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), primary_key=True, index=True)
    quantity = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def to_schema(self):
        return {
            "client_id": self.client_id,
            "product_id": self.product_id,
            "quantity": int(self.quantity or 0),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
