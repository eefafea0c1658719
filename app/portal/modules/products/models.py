from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.portal.models import ActorMixin, Base, TimestampMixin

if TYPE_CHECKING:
    from app.portal.modules.departments.models import Department


class Product(TimestampMixin, ActorMixin, Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("idx_products_name", "name"),
        Index("idx_products_department", "department_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(64), nullable=True)
    department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )

    department: Mapped[Department | None] = relationship("Department", back_populates="products", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name!r}, sku={self.sku!r})>"
