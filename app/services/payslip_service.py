# app/services/payslip_service.py
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import Forbidden, NotFound, ValidationError
from app.models.models import Payslip, User
from app.schema import schemas
from app.services import guards
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("payslip")

CENT = Decimal("0.01")


def compute_totals(earnings: Sequence[schemas.PayslipLineItem],
                   deductions: Sequence[schemas.PayslipLineItem]) -> Tuple[Decimal, Decimal, Decimal]:
    """Luôn tính lại ở server, bỏ qua tổng do client gửi."""
    total_earnings = sum((Decimal(e.amount) for e in earnings), Decimal("0")).quantize(CENT, ROUND_HALF_UP)
    total_deductions = sum((Decimal(d.amount) for d in deductions), Decimal("0")).quantize(CENT, ROUND_HALF_UP)
    return total_earnings, total_deductions, total_earnings - total_deductions


def _items_json(items: Sequence[schemas.PayslipLineItem]) -> list:
    # JSON column không nhận Decimal
    return [{"label": i.label, "amount": str(Decimal(i.amount).quantize(CENT, ROUND_HALF_UP))} for i in items]


class PayslipService:

    def _ensure_access(self, db: Session, actor: Principal, employee_id: int):
        if not guards.can_access_payslip_of(db, actor, employee_id):
            logger.info(f"[PAYSLIP] user={actor.id} role={actor.role!r} denied for employee={employee_id}")
            raise Forbidden("You are not allowed to access payslips of this employee")

    def _load_employee(self, db: Session, employee_id: int) -> User:
        employee = db.query(User).filter(User.id == employee_id).first()
        if not employee or employee.role == perms.SUPER_ADMIN:
            raise NotFound("Employee not found")
        return employee

    def _get_or_404(self, db: Session, payslip_id: int) -> Payslip:
        payslip = db.query(Payslip).filter(Payslip.id == payslip_id).first()
        if not payslip:
            raise NotFound("Payslip not found")
        return payslip

    def list_payslips(self, db: Session, actor: Principal, employee_id: Optional[int] = None,
                      month: Optional[str] = None) -> List[Payslip]:
        if not perms.has_permission(actor.role, perms.PAYSLIP_ROLES):
            raise Forbidden("Forbidden")

        query = db.query(Payslip)
        if employee_id:
            self._ensure_access(db, actor, employee_id)
            query = query.filter(Payslip.employee_id == employee_id)
        elif not perms.has_permission(actor.role, perms.PAYSLIP_UNRESTRICTED_ROLES):
            # Manager: chỉ nhân viên trực tiếp
            query = query.filter(Payslip.employee_id.in_(guards.direct_report_ids(db, actor)))
        if month:
            query = query.filter(Payslip.payslip_month == month)
        return query.order_by(Payslip.payslip_month.desc(), Payslip.id.desc()).all()

    def get(self, db: Session, actor: Principal, payslip_id: int) -> Payslip:
        payslip = self._get_or_404(db, payslip_id)
        self._ensure_access(db, actor, payslip.employee_id)
        return payslip

    def create(self, db: Session, actor: Principal, payload: schemas.PayslipCreate) -> Payslip:
        self._load_employee(db, payload.employee_id)
        self._ensure_access(db, actor, payload.employee_id)

        if not payload.earnings:
            raise ValidationError("At least one earning line is required")

        total_earnings, total_deductions, net_pay = compute_totals(payload.earnings, payload.deductions)

        try:
            payslip = Payslip(
                employee_id=payload.employee_id,
                payslip_month=payload.payslip_month,
                employee_name=payload.employee_name,
                employee_code=payload.employee_code,
                designation=payload.designation,
                department=payload.department,
                bank_name=payload.bank_name,
                account_number=payload.account_number,
                earnings=_items_json(payload.earnings),
                deductions=_items_json(payload.deductions),
                total_earnings=total_earnings,
                total_deductions=total_deductions,
                net_pay=net_pay,
                net_pay_words=payload.net_pay_words,
                created_by=actor.id,
            )
            db.add(payslip)
            db.commit()
            db.refresh(payslip)
        except Exception:
            db.rollback()
            raise

        logger.info(f"[PAYSLIP] #{payslip.id} {payslip.payslip_month} for employee={payslip.employee_id} "
                    f"net={net_pay}")
        activity_log_service.record(actor.id, "create", "payslips",
                                    f"Payslip #{payslip.id} {payslip.payslip_month} employee {payslip.employee_id}")
        return payslip

    def update(self, db: Session, actor: Principal, payslip_id: int, payload: schemas.PayslipUpdate) -> Payslip:
        payslip = self._get_or_404(db, payslip_id)
        self._ensure_access(db, actor, payslip.employee_id)

        data = payload.model_dump(exclude_unset=True)
        # tổng do client gửi không bao giờ được ghi
        for key in ("total_earnings", "total_deductions", "net_pay"):
            data.pop(key, None)

        earnings = payload.earnings if payload.earnings is not None else [
            schemas.PayslipLineItem(**item) for item in payslip.earnings or []
        ]
        deductions = payload.deductions if payload.deductions is not None else [
            schemas.PayslipLineItem(**item) for item in payslip.deductions or []
        ]
        if not earnings:
            raise ValidationError("At least one earning line is required")
        data.pop("earnings", None)
        data.pop("deductions", None)

        total_earnings, total_deductions, net_pay = compute_totals(earnings, deductions)

        try:
            for field, value in data.items():
                if value is None and field in ("payslip_month", "employee_name"):
                    continue
                setattr(payslip, field, value)
            payslip.earnings = _items_json(earnings)
            payslip.deductions = _items_json(deductions)
            payslip.total_earnings = total_earnings
            payslip.total_deductions = total_deductions
            payslip.net_pay = net_pay
            db.commit()
            db.refresh(payslip)
        except Exception:
            db.rollback()
            raise

        activity_log_service.record(actor.id, "update", "payslips", f"Payslip #{payslip.id}")
        return payslip

    def delete(self, db: Session, actor: Principal, payslip_id: int) -> None:
        if not perms.has_permission(actor.role, perms.PAYSLIP_DELETE_ROLES):
            raise Forbidden("You are not allowed to delete payslips")
        payslip = self._get_or_404(db, payslip_id)
        try:
            db.delete(payslip)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"[PAYSLIP] #{payslip_id} deleted by user={actor.id}")
        activity_log_service.record(actor.id, "delete", "payslips", f"Payslip #{payslip_id}")

payslip_service = PayslipService()
