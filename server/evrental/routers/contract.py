"""Rental contract router."""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentUser, RequiredAuth, StaffOnly
from ..core.responses import success_response
from ..schemas.registry import ContractOut, CreateContractRequest, UploadSignedContractRequest
from ..services.contract_service import ContractService

router = APIRouter(prefix="/api/contracts", tags=["contracts"])

DB_DEPENDENCY = Depends(get_db)


@router.post("", status_code=201)
async def create_contract(
    request: CreateContractRequest,
    user: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Draw up the contract of a confirmed booking."""
    contract = await ContractService(db).create_contract(user.id, request)
    return success_response({"contract": ContractOut.model_validate(contract)}, "Contract created", status_code=201)


@router.patch("/{contract_id}/signed")
async def upload_signed_contract(
    contract_id: UUID,
    request: UploadSignedContractRequest,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    contract = await ContractService(db).upload_signed(contract_id, request)
    return success_response({"contract": ContractOut.model_validate(contract)}, "Signed contract uploaded")


@router.get("/booking/{booking_id}")
async def list_booking_contracts(
    booking_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    contracts = await ContractService(db).list_for_booking(user, booking_id)
    return success_response({"contracts": [ContractOut.model_validate(contract) for contract in contracts]})


@router.get("/{contract_id}")
async def get_contract(
    contract_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    contract = await ContractService(db).get_contract(user, contract_id)
    return success_response({"contract": ContractOut.model_validate(contract)})
