from app.models.university import University

__all__ = [
    "University",
]
