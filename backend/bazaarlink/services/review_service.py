# Overview: Vendor reviews of suppliers.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Review, User
from ..models.accounts import ROLE_SUPPLIER
from ..validation import ValidationError


def leave_review(*, buyer_id: int, seller_id: int, rating, comment: str | None = None) -> Review:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("rating must be an integer from 1 to 5")

    seller = db.session.query(User).filter_by(id=seller_id, role=ROLE_SUPPLIER).first()
    if seller is None:
        raise ValidationError("Supplier not found")

    review = Review(
        buyer_id=buyer_id,
        seller_id=seller_id,
        rating=rating,
        comment=comment.strip() if comment else None,
    )
    db.session.add(review)
    db.session.commit()
    return review


def list_reviews(seller_id: int) -> list[Review]:
    return (
        db.session.query(Review)
        .filter_by(seller_id=seller_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def average_ratings(seller_ids) -> dict[int, float]:
    """seller_id -> mean rating rounded to one decimal; unrated sellers are absent."""
    if not seller_ids:
        return {}
    rows = (
        db.session.query(Review.seller_id, func.avg(Review.rating))
        .filter(Review.seller_id.in_(list(seller_ids)))
        .group_by(Review.seller_id)
        .all()
    )
    return {seller_id: round(float(avg), 1) for seller_id, avg in rows}
