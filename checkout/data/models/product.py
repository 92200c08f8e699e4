from sqlalchemy import Column, Integer, String, Numeric, Boolean
from sqlalchemy.orm import relationship

from checkout.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)

    price = Column(Numeric(12, 2), nullable=False)
    discount_price = Column(Numeric(12, 2), nullable=True)
    #category tree lives in the catalog service
    category_id = Column(Integer, nullable=False, index=True)
    is_available = Column(Boolean, nullable=False, default=True)

    variants = relationship("ProductVariantModel", back_populates="product")

    @property
    def effective_price(self):
        return self.discount_price or self.price
