from sqlalchemy import Boolean, Column, String

from app.platform.db.base import Base


class Profile(Base):
    """
    Profile row owned by the managed backend, keyed by the auth user id.
    Read-only from this service.
    """
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    role = Column(String(20), nullable=True)
    full_name = Column(String(200), nullable=True)
    dni = Column(String(8), nullable=True)
    has_verisure = Column(Boolean, nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
