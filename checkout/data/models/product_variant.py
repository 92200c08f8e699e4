from sqlalchemy import Column, Integer, ForeignKey, String, CheckConstraint
from sqlalchemy.orm import relationship

from checkout.data.database import Base


class ProductVariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    size = Column(String(50))
    color = Column(String(50))
    stock = Column(Integer, nullable=False, default=0)

    product = relationship("ProductModel", back_populates="variants")

    __table_args__ = (CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),)
