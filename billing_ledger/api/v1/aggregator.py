"""/v1/aggregator - bank connections through the account-aggregation service"""

from fastapi import APIRouter, Depends, Query

from billing_ledger.api.dependencies import get_aggregator_client, get_current_user_id
from billing_ledger.api.v1.schemas import (
    AggregatedAccountSchema,
    AggregatedAccountsResponse,
    ConnectTokenRequest,
    ConnectTokenResponse,
)
from billing_ledger.infrastructure.clients.aggregator import AggregatorClient

router = APIRouter()


@router.get("/aggregator/accounts", response_model=AggregatedAccountsResponse)
async def get_aggregated_accounts(
    item_id: str = Query(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    client: AggregatorClient = Depends(get_aggregator_client),
):
    accounts = await client.get_accounts(item_id)
    return AggregatedAccountsResponse(results=[AggregatedAccountSchema.model_validate(item) for item in accounts])


@router.post("/aggregator/connect-token", response_model=ConnectTokenResponse)
async def create_connect_token(
    body: ConnectTokenRequest,
    user_id: str = Depends(get_current_user_id),
    client: AggregatorClient = Depends(get_aggregator_client),
):
    """Token for the aggregation widget, issued for the calling user"""
    token = await client.create_connect_token(user_id, body.item_id)
    return ConnectTokenResponse.model_validate(token)
