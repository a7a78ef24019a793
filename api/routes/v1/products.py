"""
api/routes/v1/products.py -- Product CRUD routes.

Routes:
  GET    /products              -- list by name (public)
  GET    /products/{product_id} -- detail (public), 404 if absent
  POST   /products              -- create (admin)
  PATCH  /products/{product_id} -- partial update (admin)
  DELETE /products/{product_id} -- delete (admin)

Same shape as articles.py: ProductService enforces the guard and validation.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, Response

from api.models import ProductResponse
from auth.dependencies import try_get_session
from auth.models import Session
from core.errors import NotFoundError
from kb.service import ProductService

router = APIRouter()


def _service(request: Request) -> ProductService:
    return request.app.state.products


@router.get("/products", response_model=list[ProductResponse])
def list_products(request: Request) -> list[ProductResponse]:
    return [ProductResponse.from_product(p) for p in _service(request).list()]


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(request: Request, product_id: str) -> ProductResponse:
    product = _service(request).get(product_id)
    if product is None:
        raise NotFoundError("product", product_id)
    return ProductResponse.from_product(product)


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(
    request: Request,
    payload: Any = Body(default=None),
    session: Optional[Session] = Depends(try_get_session),
) -> ProductResponse:
    """Create a product. Body: name (required), description (optional)."""
    return ProductResponse.from_product(_service(request).create(session, payload))


@router.patch("/products/{product_id}", response_model=ProductResponse)
def update_product(
    request: Request,
    product_id: str,
    payload: Any = Body(default=None),
    session: Optional[Session] = Depends(try_get_session),
) -> ProductResponse:
    return ProductResponse.from_product(_service(request).update(session, product_id, payload))


@router.delete("/products/{product_id}", status_code=204)
def delete_product(
    request: Request,
    product_id: str,
    session: Optional[Session] = Depends(try_get_session),
) -> Response:
    _service(request).delete(session, product_id)
    return Response(status_code=204)
