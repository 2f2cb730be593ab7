"""
routers/companies.py — Company administration (admin only)

Business Rules:
- Only admins can list/create companies and manage memberships
- A user is added to a company by email with role admin | member
- Adding an existing member updates the role instead of duplicating

Called by: main.py (router mount)
Depends on: dependencies.require_admin, models
"""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_admin
from ..models import Company, CompanyUser, User
from ..schemas.responses import OkResponse
from ..schemas.settings import CompanyIn, CompanyMemberIn

router = APIRouter(tags=["companies"])


def company_to_dict(c: Company) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "state": c.state or "",
        "members": [
            {"user_id": m.user_id, "email": m.user.email if m.user else "", "role": m.role}
            for m in sorted(c.members, key=lambda m: m.id)
        ],
    }


def _company(db: Session, company_id: int) -> Company:
    company = db.get(Company, company_id)
    if not company:
        raise HTTPException(404, "Company not found")
    return company


@router.get("/api/companies")
async def list_companies(user: User = Depends(require_admin), db: Session = Depends(get_db)):
    rows = db.query(Company).order_by(Company.name).all()
    return {"companies": [company_to_dict(c) for c in rows]}


@router.post("/api/companies", status_code=201)
async def create_company(payload: CompanyIn, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    company = Company(name=payload.name, state=payload.state.strip().upper() or None)
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info(f"Company {company.id} created by admin {user.id}")
    return company_to_dict(company)


@router.post("/api/companies/{company_id}/members")
async def add_member(
    company_id: int,
    payload: CompanyMemberIn,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    company = _company(db, company_id)
    member = db.query(User).filter(User.email == payload.email.strip().lower()).first()
    if not member:
        raise HTTPException(404, "User not found")
    link = db.query(CompanyUser).filter_by(company_id=company.id, user_id=member.id).first()
    if link:
        link.role = payload.role
    else:
        company.members.append(CompanyUser(user_id=member.id, role=payload.role, user=member))
    db.commit()
    db.refresh(company)
    return company_to_dict(company)


@router.delete("/api/companies/{company_id}/members/{user_id}", response_model=OkResponse)
async def remove_member(
    company_id: int,
    user_id: int,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    link = db.query(CompanyUser).filter_by(company_id=company_id, user_id=user_id).first()
    if not link:
        raise HTTPException(404, "Membership not found")
    db.delete(link)
    db.commit()
    return {"ok": True}
