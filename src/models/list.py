"""List and sharing models."""

from sqlalchemy import Column, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.enums import ShareRole, ShareStatus
from src.models.mixins import TimestampMixin


class List(Base, TimestampMixin):
    """A named, shareable list of items."""

    __tablename__ = "lists"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Optimistic revision counter; a stale write raises StaleDataError
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    owner = relationship("User", backref="lists")
    items = relationship(
        "Item",
        back_populates="list",
        cascade="all, delete-orphan",
        order_by="[Item.sort_order, Item.id]",
    )
    shares = relationship(
        "ListShare",
        back_populates="list",
        cascade="all, delete-orphan",
        order_by="ListShare.id",
    )

    __mapper_args__ = {"version_id_col": version}

    def share_for(self, user_id: int) -> "ListShare | None":
        """Return the sharing entry for a user, if any."""
        for share in self.shares:
            if share.user_id == user_id:
                return share
        return None


class ListShare(Base, TimestampMixin):
    """Per-user sharing entry: role plus invitation status."""

    __tablename__ = "list_shares"
    __table_args__ = (UniqueConstraint("list_id", "user_id", name="uq_list_shares_list_user"),)

    id = Column(Integer, primary_key=True, index=True)
    list_id = Column(Integer, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(
        Enum(ShareRole, name="sharerole", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ShareRole.VIEWER,
    )
    status = Column(
        Enum(ShareStatus, name="sharestatus", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ShareStatus.PENDING,
        index=True,
    )
    invited_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Relationships
    list = relationship("List", back_populates="shares")
    user = relationship("User", foreign_keys=[user_id], backref="shared_lists")
