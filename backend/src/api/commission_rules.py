"""
Commission Rule Management API endpoints.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.responses import CommissionRuleListResponse, CommissionRuleResponse, build_rule_response
from core.constants import MAX_STRING_LENGTH
from core.database import get_db
from services.commission_rule_service import CommissionRuleService

logger = logging.getLogger(__name__)

router = APIRouter()

RULE_NOT_FOUND_MESSAGE = "Commission rule not found"


class CommissionRuleCreateRequest(BaseModel):
    """Request model for creating a commission rule."""
    percentage: Decimal = Field(..., gt=0, le=100, max_digits=5, decimal_places=2)
    practitioner_ids: List[str] = Field(default_factory=list)
    practitioner_names: List[str] = Field(default_factory=list)
    category: Optional[str] = Field(None, max_length=MAX_STRING_LENGTH)
    procedure_names: List[str] = Field(default_factory=list)
    is_default_fallback: bool = False
    description: Optional[str] = None
    # Single-value fields sent by older clients
    practitioner_id: Optional[str] = None
    practitioner_name: Optional[str] = None
    procedure_type: Optional[str] = None


class CommissionRuleUpdateRequest(BaseModel):
    """Request model for updating a commission rule. Omitted fields are left unchanged."""
    percentage: Optional[Decimal] = Field(None, gt=0, le=100, max_digits=5, decimal_places=2)
    practitioner_ids: Optional[List[str]] = None
    practitioner_names: Optional[List[str]] = None
    category: Optional[str] = Field(None, max_length=MAX_STRING_LENGTH)
    procedure_names: Optional[List[str]] = None
    is_default_fallback: Optional[bool] = None
    description: Optional[str] = None


@router.get("", summary="List commission rules", response_model=CommissionRuleListResponse)
async def list_commission_rules(
    db: Session = Depends(get_db)
) -> CommissionRuleListResponse:
    """
    List active commission rules in resolution order.
    """
    try:
        rules = CommissionRuleService.list_rules(db)
        return CommissionRuleListResponse(rules=[build_rule_response(rule) for rule in rules])
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to list commission rules: {e}")
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list commission rules"
        )


@router.get("/{rule_id}", summary="Get a commission rule", response_model=CommissionRuleResponse)
async def get_commission_rule(
    rule_id: int,
    db: Session = Depends(get_db)
) -> CommissionRuleResponse:
    rule = CommissionRuleService.get_rule(db, rule_id)
    if not rule:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=RULE_NOT_FOUND_MESSAGE)
    return build_rule_response(rule)


@router.post(
    "",
    summary="Create a commission rule",
    response_model=CommissionRuleResponse,
    status_code=http_status.HTTP_201_CREATED
)
async def create_commission_rule(
    request: CommissionRuleCreateRequest,
    db: Session = Depends(get_db)
) -> CommissionRuleResponse:
    """
    Create a new commission rule.

    A rule must name at least one practitioner, a category, procedures, or be
    the default fallback.
    """
    try:
        rule = CommissionRuleService.create_rule(
            db=db,
            percentage=request.percentage,
            practitioner_ids=request.practitioner_ids,
            practitioner_names=request.practitioner_names,
            category=request.category,
            procedure_names=request.procedure_names,
            is_default_fallback=request.is_default_fallback,
            description=request.description,
            legacy_practitioner_id=request.practitioner_id,
            legacy_practitioner_name=request.practitioner_name,
            legacy_procedure_type=request.procedure_type
        )

        db.commit()
        db.refresh(rule)

        return build_rule_response(rule)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to create commission rule: {e}")
        db.rollback()
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create commission rule"
        )


@router.put("/{rule_id}", summary="Update a commission rule", response_model=CommissionRuleResponse)
async def update_commission_rule(
    rule_id: int,
    request: CommissionRuleUpdateRequest,
    db: Session = Depends(get_db)
) -> CommissionRuleResponse:
    """
    Update a commission rule.

    Only fields present in the body are changed; an explicit null clears
    category or description.
    """
    try:
        if not CommissionRuleService.get_rule(db, rule_id):
            raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=RULE_NOT_FOUND_MESSAGE)

        provided: Dict[str, Any] = request.model_dump(exclude_unset=True)
        for field in ("percentage", "is_default_fallback"):
            if field in provided and provided[field] is None:
                raise ValueError(f"{field} cannot be null")
        for field in ("practitioner_ids", "practitioner_names", "procedure_names"):
            if field in provided and provided[field] is None:
                provided[field] = []

        rule = CommissionRuleService.update_rule(db=db, rule_id=rule_id, **provided)

        db.commit()
        db.refresh(rule)

        return build_rule_response(rule)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to update commission rule: {e}")
        db.rollback()
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update commission rule"
        )


@router.delete("/{rule_id}", summary="Delete a commission rule")
async def delete_commission_rule(
    rule_id: int,
    db: Session = Depends(get_db)
):
    """
    Soft delete a commission rule. It stops taking part in resolution immediately.
    """
    try:
        if not CommissionRuleService.get_rule(db, rule_id):
            raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=RULE_NOT_FOUND_MESSAGE)

        CommissionRuleService.delete_rule(db, rule_id)

        db.commit()
        return {"success": True, "message": "Commission rule deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Failed to delete commission rule: {e}")
        db.rollback()
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete commission rule"
        )
