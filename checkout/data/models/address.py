from sqlalchemy import Column, Integer, ForeignKey, Text, Boolean

from checkout.data.database import Base


class AddressModel(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    address = Column(Text, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
