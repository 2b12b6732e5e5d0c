"""
CRUD module
"""
from .candidate import candidate_crud, normalize_email
from .skill import skill_crud
from .cv import cv_crud
from .ranking import ranking_crud, RankingEntry

__all__ = [
    "candidate_crud",
    "normalize_email",
    "skill_crud",
    "cv_crud",
    "ranking_crud",
    "RankingEntry",
]
