from typing import Dict, Iterable, List, Optional, Set

from pydantic import BaseModel

from marketapi.client.errors import AlreadyOwned, DuplicateLine, SelfPurchase


class ListingRef(BaseModel):
    id: int
    seller_id: int
    title: str
    price: int


class CartItem(BaseModel):
    worksheet_id: int
    listing: Optional[ListingRef] = None  # None = 자료를 찾을 수 없음


class CartTotals(BaseModel):
    item_count: int
    total_price: int
    unresolved_worksheet_ids: List[int]


class CartAggregate:
    """
    결제 전 장바구니 (낙관적 검사용)

    로컬 검사를 통과해도 서버의 거절이 최종 결과입니다.
    """

    def __init__(self, account_id: int, owned_worksheet_ids: Optional[Iterable[int]] = None):
        self.account_id = account_id
        self._owned: Set[int] = set(owned_worksheet_ids or [])
        self._items: Dict[int, CartItem] = {}

    @property
    def items(self) -> List[CartItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def mark_owned(self, worksheet_ids: Iterable[int]) -> None:
        self._owned.update(worksheet_ids)

    def add_line(self, listing: ListingRef) -> CartItem:
        if listing.id in self._items:
            raise DuplicateLine()
        if listing.seller_id == self.account_id:
            raise SelfPurchase()
        if listing.id in self._owned:
            raise AlreadyOwned()
        item = CartItem(worksheet_id=listing.id, listing=listing)
        self._items[listing.id] = item
        return item

    def remove_line(self, worksheet_id: int) -> bool:
        """없는 항목 삭제도 성공 (False 반환)"""
        return self._items.pop(worksheet_id, None) is not None

    def replace(self, items: Iterable[CartItem]) -> None:
        """서버 장바구니로 교체"""
        self._items = {item.worksheet_id: item for item in items}

    def compute_totals(self) -> CartTotals:
        total = 0
        unresolved = []
        for item in self._items.values():
            if item.listing is None:
                unresolved.append(item.worksheet_id)
            else:
                total += item.listing.price
        return CartTotals(
            item_count=len(self._items),
            total_price=total,
            unresolved_worksheet_ids=unresolved,
        )

    def can_afford(self, balance: int) -> bool:
        return balance - self.compute_totals().total_price >= 0

    def clear(self) -> None:
        self._items = {}
