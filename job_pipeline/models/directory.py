"""
Contact directory tables

Owned by the account subsystem; the workflow engine only reads them to resolve
notification recipients.
"""

from sqlalchemy import Column, Integer, String
from ..db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(128), nullable=True)
    last_name = Column(String(128), nullable=True)

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.email


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    primary_contact_id = Column(Integer, nullable=True)  # users.id
