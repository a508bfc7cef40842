from models.base_model import Base, BaseModel
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from utils.permissions import Role


class User(BaseModel, Base):
    __tablename__ = "users"

    # stored lowercased; lookups lowercase the input too
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        SAEnum(Role, name="user_role", native_enum=False, values_callable=lambda e: [r.value for r in e]),
        nullable=False,
        default=Role.EMPLOYEE,
    )

    # deleting a user leaves its token rows untouched (revoked beforehand)
    refresh_tokens = relationship(
        "RefreshToken",
        primaryjoin="User.id == foreign(RefreshToken.user_id)",
        back_populates="user",
        passive_deletes="all",
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def __repr__(self):
        return f"<User id={self.id} email={self.email} role={self.role.value if self.role else None}>"
