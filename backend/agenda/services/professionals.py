# backend/agenda/services/professionals.py
"""
Professional directory.

The only place that knows a caller may send a user_id where a
professional_id is expected.
"""

from sqlalchemy.orm import Session, joinedload

from ..errors import NotFoundError
from ..models.generated import Professionals


class ProfessionalDirectory:

    def __init__(self, db: Session):
        self.db = db

    def find_professional_by_id(self, professional_id: int) -> Professionals | None:
        return (
            self.db.query(Professionals)
            .options(joinedload(Professionals.user))
            .filter(Professionals.professional_id == professional_id)
            .first()
        )

    def find_professional_by_user_id(self, user_id: int) -> Professionals | None:
        return (
            self.db.query(Professionals)
            .filter(Professionals.user_id == user_id)
            .first()
        )

    def resolve_professional_id(self, candidate_id: int) -> int:
        """
        Map a professional_id or a user_id to a professional_id.

        Raises:
            NotFoundError: neither lookup matches.
        """
        professional = self.find_professional_by_id(candidate_id)
        if professional is None:
            professional = self.find_professional_by_user_id(candidate_id)
        if professional is None:
            raise NotFoundError("Professional not found")
        return professional.professional_id
