from sqlalchemy import Column, Integer, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship

from checkout.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False)

    quantity = Column(Integer, nullable=False, default=1)
    is_selected = Column(Boolean, nullable=False, default=True)

    cart = relationship("CartModel", back_populates="items")
    variant = relationship("ProductVariantModel")

    __table_args__ = (UniqueConstraint("cart_id", "product_variant_id", name="u_cart_variant"),)
