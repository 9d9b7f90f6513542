# app/services/kra_service.py
import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import ConflictError, Forbidden, NotFound, ValidationError
from app.models.models import KRADefinition, KRAScore, KRASubmission, User
from app.schema import schemas
from app.services import guards
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("kra")

PERIOD_KEY_PATTERNS = {
    "monthly": re.compile(r"^\d{4}-(0[1-9]|1[0-2])$"),
    "quarterly": re.compile(r"^\d{4}-Q[1-4]$"),
    "yearly": re.compile(r"^\d{4}$"),
}

# (ngưỡng tối thiểu, nhãn), xét từ trên xuống
PERFORMANCE_BANDS = (
    (Decimal("90"), "Outstanding"),
    (Decimal("75"), "Very Good"),
    (Decimal("60"), "Good"),
    (Decimal("50"), "Needs Improvement"),
)


def performance_category(score: Decimal) -> str:
    for threshold, label in PERFORMANCE_BANDS:
        if score >= threshold:
            return label
    return "Poor"


def validate_period(period_type: str, period_key: str):
    pattern = PERIOD_KEY_PATTERNS.get(period_type)
    if pattern is None:
        raise ValidationError("period_type must be monthly, quarterly or yearly")
    if not period_key or not pattern.match(period_key):
        raise ValidationError(f"Invalid period_key for {period_type}: {period_key}")


def parse_rating(value) -> int:
    # bool là subclass của int, loại ra
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Rating must be an integer between 1 and 5")
    if not 1 <= value <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5", {"rating": value})
    return value


class KRAService:

    # ===== Định nghĩa KRA =====
    def list_definitions(self, db: Session, role: Optional[str] = None,
                         include_inactive: bool = False) -> List[KRADefinition]:
        query = db.query(KRADefinition)
        if role:
            query = query.filter(KRADefinition.role == role)
        if not include_inactive:
            query = query.filter(KRADefinition.is_active.is_(True))
        return query.order_by(KRADefinition.role, KRADefinition.kra_number).all()

    def create_definition(self, db: Session, actor: Principal, payload: schemas.KRADefinitionCreate) -> KRADefinition:
        if payload.role not in perms.ALL_ROLES:
            raise ValidationError(f"Unknown role: {payload.role}")
        try:
            definition = KRADefinition(**payload.model_dump())
            db.add(definition)
            db.commit()
            db.refresh(definition)
        except IntegrityError:
            db.rollback()
            raise ConflictError("KRA number already exists for this role")
        except Exception:
            db.rollback()
            raise

        activity_log_service.record(actor.id, "create", "kra", f"KRA #{definition.id} {definition.role}")
        return definition

    def update_definition(self, db: Session, actor: Principal, kra_id: int,
                          payload: schemas.KRADefinitionCreate) -> KRADefinition:
        definition = db.query(KRADefinition).filter(KRADefinition.id == kra_id).first()
        if not definition:
            raise NotFound("KRA definition not found")
        if payload.role not in perms.ALL_ROLES:
            raise ValidationError(f"Unknown role: {payload.role}")
        try:
            for field, value in payload.model_dump().items():
                setattr(definition, field, value)
            db.commit()
            db.refresh(definition)
        except IntegrityError:
            db.rollback()
            raise ConflictError("KRA number already exists for this role")
        except Exception:
            db.rollback()
            raise

        activity_log_service.record(actor.id, "update", "kra", f"KRA #{definition.id}")
        return definition

    def deactivate_definition(self, db: Session, actor: Principal, kra_id: int) -> None:
        definition = db.query(KRADefinition).filter(KRADefinition.id == kra_id).first()
        if not definition:
            raise NotFound("KRA definition not found")
        try:
            definition.is_active = False
            db.commit()
        except Exception:
            db.rollback()
            raise
        activity_log_service.record(actor.id, "deactivate", "kra", f"KRA #{kra_id}")

    # ===== Nộp đánh giá =====
    def submit_kra_ratings(self, db: Session, actor: Principal, payload: schemas.KRASubmissionCreate) -> dict:
        """
        Kiểm tra toàn bộ batch trước khi ghi, lỗi ở bất kỳ dòng nào
        thì không ghi dòng nào cả.
        """
        target_id = payload.user_id or actor.id
        validate_period(payload.period_type, payload.period_key)

        if not payload.submissions:
            raise ValidationError("At least one rating is required")

        target = db.query(User).filter(User.id == target_id, User.is_active.is_(True)).first()
        if not target:
            raise NotFound("Employee not found")

        if not guards.can_submit_kra_for(db, actor, target_id):
            raise Forbidden("You are not allowed to submit KRA ratings for this employee")

        definitions = {
            d.id: d for d in db.query(KRADefinition).filter(
                KRADefinition.role == target.role,
                KRADefinition.is_active.is_(True),
            ).all()
        }

        seen = set()
        cleaned = []
        for item in payload.submissions:
            rating = parse_rating(item.rating)
            if item.kra_id not in definitions:
                raise ValidationError(f"KRA #{item.kra_id} is not an active KRA for role {target.role}")
            if item.kra_id in seen:
                raise ValidationError(f"Duplicate KRA #{item.kra_id} in submission")
            seen.add(item.kra_id)
            cleaned.append((item.kra_id, rating, item.comments))

        try:
            for kra_id, rating, comments in cleaned:
                submission = db.query(KRASubmission).filter(
                    KRASubmission.kra_id == kra_id,
                    KRASubmission.user_id == target_id,
                    KRASubmission.period_type == payload.period_type,
                    KRASubmission.period_key == payload.period_key,
                ).first()
                if submission:
                    submission.rating = rating
                    submission.comments = comments
                    submission.submitted_by = actor.id
                    submission.status = "submitted"
                else:
                    db.add(KRASubmission(
                        kra_id=kra_id,
                        user_id=target_id,
                        period_type=payload.period_type,
                        period_key=payload.period_key,
                        rating=rating,
                        comments=comments,
                        status="submitted",
                        submitted_by=actor.id,
                    ))
            db.flush()
            score = self._upsert_score(db, target_id, payload.period_type, payload.period_key)
            db.commit()
            db.refresh(score)
        except Exception:
            db.rollback()
            raise

        logger.info(f"[KRA] {len(cleaned)} rating(s) for user={target_id} {payload.period_type}/{payload.period_key} "
                    f"by user={actor.id} -> {score.total_score} ({score.performance_category})")
        activity_log_service.record(actor.id, "submit", "kra",
                                    f"User {target_id} {payload.period_type} {payload.period_key}")

        submissions = self.list_submissions_for(db, target_id, payload.period_type, payload.period_key)
        return {"submissions": submissions, "score": score}

    def _upsert_score(self, db: Session, user_id: int, period_type: str, period_key: str) -> KRAScore:
        """total = Σ weight × rating / 5 trên các KRA đang active của kỳ."""
        rows = db.query(KRASubmission, KRADefinition).join(
            KRADefinition, KRADefinition.id == KRASubmission.kra_id,
        ).filter(
            KRASubmission.user_id == user_id,
            KRASubmission.period_type == period_type,
            KRASubmission.period_key == period_key,
            KRADefinition.is_active.is_(True),
        ).all()

        total = Decimal("0")
        for submission, definition in rows:
            total += Decimal(definition.weight_percentage) * Decimal(submission.rating) / Decimal(5)
        total = total.quantize(Decimal("0.01"), ROUND_HALF_UP)

        score = db.query(KRAScore).filter(
            KRAScore.user_id == user_id,
            KRAScore.period_type == period_type,
            KRAScore.period_key == period_key,
        ).first()
        if not score:
            score = KRAScore(user_id=user_id, period_type=period_type, period_key=period_key)
            db.add(score)
        score.total_score = total
        score.performance_category = performance_category(total)
        return score

    # ===== Xem =====
    def list_submissions_for(self, db: Session, user_id: int, period_type: Optional[str] = None,
                             period_key: Optional[str] = None) -> List[KRASubmission]:
        query = db.query(KRASubmission).filter(KRASubmission.user_id == user_id)
        if period_type:
            query = query.filter(KRASubmission.period_type == period_type)
        if period_key:
            query = query.filter(KRASubmission.period_key == period_key)
        return query.order_by(KRASubmission.period_key.desc(), KRASubmission.kra_id).all()

    def list_submissions(self, db: Session, actor: Principal, user_id: Optional[int] = None,
                         period_type: Optional[str] = None, period_key: Optional[str] = None) -> List[KRASubmission]:
        target_id = user_id or actor.id
        if not guards.can_view_kra_of(db, actor, target_id):
            raise Forbidden("You cannot view KRA ratings of this employee")
        return self.list_submissions_for(db, target_id, period_type, period_key)

    def list_scores(self, db: Session, actor: Principal, user_id: Optional[int] = None,
                    period_type: Optional[str] = None) -> List[KRAScore]:
        target_id = user_id or actor.id
        if not guards.can_view_kra_of(db, actor, target_id):
            raise Forbidden("You cannot view KRA scores of this employee")
        query = db.query(KRAScore).filter(KRAScore.user_id == target_id)
        if period_type:
            query = query.filter(KRAScore.period_type == period_type)
        return query.order_by(KRAScore.period_key.desc()).all()

kra_service = KRAService()
