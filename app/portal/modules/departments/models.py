from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.portal.models import ActorMixin, Base, TimestampMixin

if TYPE_CHECKING:
    from app.portal.modules.products.models import Product


class Department(TimestampMixin, ActorMixin, Base):
    __tablename__ = "departments"
    __table_args__ = (Index("idx_departments_name", "name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Products outlive their department (FK is SET NULL), so no delete cascade.
    products: Mapped[list[Product]] = relationship(
        "Product",
        back_populates="department",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, name={self.name!r})>"
