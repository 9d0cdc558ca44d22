from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends

from marketapi.core.auth_middleware import get_current_active_user
from marketapi.deps import get_cart_service
from marketapi.schemas.purchase import CartAddRequest, CartRemoveResponse, CartResponse
from marketapi.schemas.user import User as UserSchema
from marketapi.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartResponse)
@inject
def get_cart(
    current_user: UserSchema = Depends(get_current_active_user),
    cart_service: CartService = Depends(get_cart_service),
) -> CartResponse:
    return cart_service.get_cart(current_user.id)


@router.post("/items", response_model=CartResponse)
@inject
def add_to_cart(
    request: CartAddRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    cart_service: CartService = Depends(get_cart_service),
) -> CartResponse:
    """장바구니 담기 - 본인 자료/구매한 자료/중복은 409"""
    return cart_service.add(current_user.id, request.worksheet_id)


@router.delete("/items/{worksheet_id}", response_model=CartRemoveResponse)
@inject
def remove_from_cart(
    worksheet_id: int,
    current_user: UserSchema = Depends(get_current_active_user),
    cart_service: CartService = Depends(get_cart_service),
) -> CartRemoveResponse:
    return cart_service.remove(current_user.id, worksheet_id)


@router.delete("", response_model=CartResponse)
@inject
def clear_cart(
    current_user: UserSchema = Depends(get_current_active_user),
    cart_service: CartService = Depends(get_cart_service),
) -> CartResponse:
    cart_service.clear(current_user.id)
    return cart_service.get_cart(current_user.id)
