# barber_core/db/models/users/user.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid


class User(SQLModel, table=True):
    __tablename__ = "users"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, max_length=36)
    phone_number: str = Field(max_length=20, unique=True, index=True)
    email: Optional[str] = Field(max_length=255, default=None, unique=True, index=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    password_hash: Optional[str] = Field(max_length=255, default=None)
    role: str = Field(max_length=20, default="CUSTOMER")
    is_verified: bool = Field(default=False)
    external_customer_id: Optional[str] = Field(max_length=64, default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
