"""
Chart of Account Service
Ledger account tree used to categorise claims
"""

import re
from typing import Any, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from src.models.audit_log import AuditAction
from src.models.chart_of_account import ChartOfAccount, COAType
from src.models.claim import Claim
from src.models.user import User
from src.services.audit_service import audit_service
from src.utils.exceptions import NotFoundError, BadRequestError, ConflictError
from src.utils.helpers import ensure_no_cycle, model_snapshot
from src.utils.logger import setup_logger

logger = setup_logger()

CODE_PATTERN = re.compile(r"^[A-Z0-9-]+$")


class ChartOfAccountService:
    """Service for the chart of accounts"""

    def _get(self, db: Session, account_id: int) -> ChartOfAccount:
        account = db.query(ChartOfAccount).filter(ChartOfAccount.id == account_id).first()
        if not account:
            raise NotFoundError("Chart of account not found")
        return account

    def _parent_of(self, db: Session):
        def parent_of(account_id: int) -> Optional[int]:
            row = db.query(ChartOfAccount.parent_id).filter(ChartOfAccount.id == account_id).first()
            return row[0] if row else None
        return parent_of

    def _descendants(self, db: Session, account: ChartOfAccount) -> List[ChartOfAccount]:
        found = []
        pending = [account.id]
        while pending:
            children = db.query(ChartOfAccount).filter(ChartOfAccount.parent_id.in_(pending)).all()
            found.extend(children)
            pending = [child.id for child in children]
        return found

    def _validate(self, db: Session, data: Dict[str, Any], account: Optional[ChartOfAccount] = None):
        code = data.get("code")
        if code is not None:
            if not CODE_PATTERN.match(code):
                raise BadRequestError("Code may only contain uppercase letters, digits and hyphens")
            query = db.query(ChartOfAccount).filter(ChartOfAccount.code == code)
            if account is not None:
                query = query.filter(ChartOfAccount.id != account.id)
            if query.first():
                raise ConflictError(f"Account code '{code}' already exists")

        account_type = data.get("account_type", account.account_type if account is not None else None)

        if account is not None and "account_type" in data and data["account_type"] != account.account_type:
            if db.query(ChartOfAccount).filter(ChartOfAccount.parent_id == account.id).count():
                raise BadRequestError("Cannot change the account type of an account with children")

        parent_id = data.get("parent_id")
        if parent_id is not None:
            parent = db.query(ChartOfAccount).filter(ChartOfAccount.id == parent_id).first()
            if not parent:
                raise NotFoundError("Parent account not found")
            if parent.account_type != account_type:
                raise BadRequestError("Parent account must have the same account type")
            if account is not None:
                ensure_no_cycle(
                    parent_id, account.id, self._parent_of(db),
                    "Account cannot be its own parent or a child of its descendants"
                )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(
        self,
        db: Session,
        account_type: Optional[COAType] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        parent_id: Optional[int] = None
    ) -> List[ChartOfAccount]:
        query = db.query(ChartOfAccount)
        if account_type:
            query = query.filter(ChartOfAccount.account_type == account_type)
        if is_active is not None:
            query = query.filter(ChartOfAccount.is_active == is_active)
        if parent_id is not None:
            query = query.filter(ChartOfAccount.parent_id == parent_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                ChartOfAccount.code.ilike(pattern),
                ChartOfAccount.name.ilike(pattern),
                ChartOfAccount.category.ilike(pattern)
            ))
        return query.order_by(ChartOfAccount.code.asc()).all()

    async def get_by_id(self, db: Session, account_id: int) -> ChartOfAccount:
        return self._get(db, account_id)

    async def get_active(self, db: Session) -> List[ChartOfAccount]:
        return db.query(ChartOfAccount).filter(
            ChartOfAccount.is_active.is_(True)
        ).order_by(ChartOfAccount.code.asc()).all()

    async def get_by_type(self, db: Session, account_type: COAType) -> List[ChartOfAccount]:
        return db.query(ChartOfAccount).filter(
            ChartOfAccount.account_type == account_type,
            ChartOfAccount.is_active.is_(True)
        ).order_by(ChartOfAccount.code.asc()).all()

    async def get_hierarchy(self, db: Session, account_type: Optional[COAType] = None) -> List[Dict[str, Any]]:
        query = db.query(ChartOfAccount)
        if account_type:
            query = query.filter(ChartOfAccount.account_type == account_type)
        accounts = query.order_by(ChartOfAccount.code.asc()).all()
        ids = {a.id for a in accounts}
        children: Dict[Optional[int], List[ChartOfAccount]] = {}
        for account in accounts:
            parent_key = account.parent_id if account.parent_id in ids else None
            children.setdefault(parent_key, []).append(account)

        def build(account: ChartOfAccount) -> Dict[str, Any]:
            return {
                "id": account.id,
                "code": account.code,
                "name": account.name,
                "account_type": account.account_type.value,
                "category": account.category,
                "is_active": account.is_active,
                "children": [build(child) for child in children.get(account.id, [])]
            }

        return [build(account) for account in children.get(None, [])]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, db: Session, current_user: User, data: Dict[str, Any]) -> ChartOfAccount:
        self._validate(db, data)
        account = ChartOfAccount(**data, created_by_id=current_user.id, updated_by_id=current_user.id)
        db.add(account)
        db.flush()
        audit_service.record(
            db, current_user.id, AuditAction.CREATE, "ChartOfAccount", account.id,
            changes={"after": model_snapshot(account)},
            chart_of_account_id=account.id
        )
        db.commit()
        db.refresh(account)
        logger.info(f"Account {account.code} created by {current_user.email}")
        return account

    async def update(self, db: Session, current_user: User, account_id: int, data: Dict[str, Any]) -> ChartOfAccount:
        account = self._get(db, account_id)
        self._validate(db, data, account)
        before = model_snapshot(account)
        for field, value in data.items():
            setattr(account, field, value)
        account.updated_by_id = current_user.id
        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "ChartOfAccount", account.id,
            changes={"before": before, "after": model_snapshot(account)},
            chart_of_account_id=account.id
        )
        db.commit()
        db.refresh(account)
        return account

    async def delete(self, db: Session, current_user: User, account_id: int, force: bool = False) -> Dict[str, Any]:
        """
        Delete an account

        Accounts still referenced by claims are only deactivated, and only
        when ``force`` is set.

        Returns:
            dict: {"deleted": bool, "deactivated": bool}
        """
        account = self._get(db, account_id)
        if db.query(ChartOfAccount).filter(ChartOfAccount.parent_id == account.id).count():
            raise BadRequestError("Cannot delete an account that has child accounts")

        claims = db.query(Claim).filter(Claim.coa_id == account.id).count()
        if claims:
            if not force:
                raise BadRequestError(
                    f"Account is used by {claims} claim(s). Use force=true to deactivate it instead."
                )
            account.is_active = False
            account.updated_by_id = current_user.id
            audit_service.record(
                db, current_user.id, AuditAction.DELETE, "ChartOfAccount", account.id,
                metadata={"soft_delete": True, "claims": claims},
                chart_of_account_id=account.id
            )
            db.commit()
            logger.info(f"Account {account.code} deactivated by {current_user.email}")
            return {"deleted": False, "deactivated": True}

        # Row disappears, so the audit entry keeps the code instead of the link
        audit_service.record(
            db, current_user.id, AuditAction.DELETE, "ChartOfAccount", account.id,
            changes={"before": model_snapshot(account)}
        )
        db.delete(account)
        db.commit()
        logger.info(f"Account {account.code} deleted by {current_user.email}")
        return {"deleted": True, "deactivated": False}

    async def toggle_active(self, db: Session, current_user: User, account_id: int) -> ChartOfAccount:
        account = self._get(db, account_id)
        cascaded = []
        if account.is_active:
            account.is_active = False
            for child in self._descendants(db, account):
                if child.is_active:
                    child.is_active = False
                    child.updated_by_id = current_user.id
                    cascaded.append(child.id)
        else:
            if account.parent is not None and not account.parent.is_active:
                raise BadRequestError("Cannot activate an account whose parent is inactive")
            account.is_active = True
        account.updated_by_id = current_user.id

        audit_service.record(
            db, current_user.id, AuditAction.UPDATE, "ChartOfAccount", account.id,
            metadata={"is_active": account.is_active, "cascaded": cascaded},
            chart_of_account_id=account.id
        )
        db.commit()
        db.refresh(account)
        return account


# Create singleton instance
chart_of_account_service = ChartOfAccountService()
