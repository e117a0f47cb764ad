from sqlalchemy import Column, Integer, String
from shopcore.database import Base

# Identity record referenced by carts and orders.
# Credentials live with the identity service, not here.
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="client")
