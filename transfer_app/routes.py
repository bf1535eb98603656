"""Transfer API routes: options, transfer creation, status."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from transfer_app.client import get_client
from transfer_app.transfers import TransferService
from transfer_app.webhooks.correlator import get_correlator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/app", tags=["app"])


class TransferOptionsRequest(BaseModel):
    destination_chain: str = Field(alias="destinationChain")
    amount: str = Field(description="Human-readable amount, e.g. '10' for 10 USDC")
    token_out: str = Field(alias="tokenOut")
    recipient: str | None = None
    token_decimals: int | None = Field(default=None, alias="tokenDecimals")

    model_config = {"populate_by_name": True}


class CreateTransferRequest(BaseModel):
    source_chain: str = Field(alias="sourceChain")
    destination_chain: str = Field(alias="destinationChain")
    amount: str = Field(description="Amount in smallest units, e.g. '1000000' for 1 USDC")
    token_in: str = Field(alias="tokenIn")
    recipient: str
    sender: str
    refund_address: str = Field(alias="refundAddress")
    metadata: dict[str, Any] | None = None

    model_config = {"populate_by_name": True}


def get_transfer_service() -> TransferService:
    return TransferService(get_client(), get_correlator())


@router.post("/options")
def transfer_options(
    req: TransferOptionsRequest,
    service: TransferService = Depends(get_transfer_service),
):
    """All possible source chains for a transfer, cheapest first."""
    return service.get_transfer_options(
        destination_chain=req.destination_chain,
        amount=req.amount,
        token_out=req.token_out,
        recipient=req.recipient,
        token_decimals=req.token_decimals,
    )


@router.post("/transfer")
def create_transfer(
    req: CreateTransferRequest,
    service: TransferService = Depends(get_transfer_service),
):
    """Create a transfer intent from the selected source chain."""
    return service.create_transfer(
        source_chain=req.source_chain,
        destination_chain=req.destination_chain,
        amount=req.amount,
        token_in=req.token_in,
        recipient=req.recipient,
        sender=req.sender,
        refund_address=req.refund_address,
        metadata=req.metadata,
    )


@router.get("/status/{intent_id}")
def transfer_status(
    intent_id: int,
    service: TransferService = Depends(get_transfer_service),
):
    """Intent status plus webhook events received for it."""
    return service.get_transfer_status(intent_id)
