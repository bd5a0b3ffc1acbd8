"""
Token Metadata API Router
GET /tokens/{network}/{address} and the cache-only symbol lookup
"""

from fastapi import APIRouter, Depends, Request

from security.validation import ErrorResponse, NetworksResponse, TokenMetadataModel
from services.token_metadata import TokenMetadataService

router = APIRouter(prefix="/tokens", tags=["Tokens"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Unsupported network or malformed address"},
    404: {"model": ErrorResponse, "description": "Not found"},
    500: {"model": ErrorResponse, "description": "Contract read or unexpected failure"},
}


def get_token_service(request: Request) -> TokenMetadataService:
    """Service instance owned by the app (set in create_app)"""
    return request.app.state.token_service


@router.get("/networks", response_model=NetworksResponse)
async def list_networks(service: TokenMetadataService = Depends(get_token_service)):
    """Network ids accepted by the other endpoints"""
    return {"success": True, "data": await service.supported_networks()}


@router.get("/{network}/symbol/{symbol}", response_model=TokenMetadataModel, responses=ERROR_RESPONSES)
async def get_token_by_symbol(
    network: str,
    symbol: str,
    service: TokenMetadataService = Depends(get_token_service),
):
    """
    Token metadata by symbol.
    Only tokens previously fetched by address are known here.
    """
    metadata = await service.resolve_symbol(network, symbol)
    return metadata.to_dict()


@router.get("/{network}/{address}", response_model=TokenMetadataModel, responses=ERROR_RESPONSES)
async def get_token_metadata(
    network: str,
    address: str,
    service: TokenMetadataService = Depends(get_token_service),
):
    """Token metadata by contract address (cache first, then on-chain)"""
    metadata = await service.resolve(network, address)
    return metadata.to_dict()
