"""Item model."""

from sqlalchemy import Boolean, Column, Float, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin

item_bought_by = Table(
    "item_bought_by",
    Base.metadata,
    Column("item_id", Integer, ForeignKey("items.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
)


class Item(Base, TimestampMixin):
    """Item model for products in lists."""

    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    list_id = Column(
        Integer, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(500), nullable=False)
    quantity = Column(Float, nullable=False, default=1)
    unit = Column(String(50), nullable=False, default="")
    category = Column(String(100), nullable=False, default="Uncategorized")
    is_bought = Column(Boolean, nullable=False, default=False, index=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    list = relationship("List", back_populates="items")
    bought_by = relationship("User", secondary=item_bought_by, order_by="User.id")
    created_by_user = relationship("User", foreign_keys=[created_by])

    __mapper_args__ = {"version_id_col": version}

    @property
    def bought_by_ids(self) -> list[int]:
        """IDs of users who marked the item bought."""
        return [user.id for user in self.bought_by]
