from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnhub.database import create_document, delete_document, get_db, get_document, get_documents, to_object_id, update_document
from learnhub.dependencies import authorize_roles, current_user
from learnhub.errors import Forbidden, NotFound, ValidationError
from learnhub.schemas import Principal, Product, ProductUpdate, ReviewRequest

router = APIRouter(tags=["products"])

COLLECTION = "product"


def _rating_fields(reviews: List[Dict[str, Any]]) -> Dict[str, Any]:
    avg = sum(r["rating"] for r in reviews) / len(reviews) if reviews else 0
    return {"rating": round(avg, 2), "num_of_reviews": len(reviews)}


async def _refresh_rating(db: AsyncIOMotorDatabase, product_id: str) -> Optional[Dict[str, Any]]:
    """Recompute rating and review count from the stored reviews."""
    product = await get_document(db, COLLECTION, product_id)
    if not product:
        return None
    return await update_document(db, COLLECTION, product_id, _rating_fields(product.get("reviews", [])))


async def _find_product(db: AsyncIOMotorDatabase, product_id: str) -> Dict[str, Any]:
    product = await get_document(db, COLLECTION, product_id)
    if not product:
        raise NotFound("Product not found")
    return product


@router.get("/products")
async def list_products(
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    level: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    _: Principal = Depends(current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    filter_q = {}
    if category:
        filter_q["category"] = category
    if level:
        filter_q["level"] = level
    price_filter = {}
    if min_price is not None:
        price_filter["$gte"] = min_price
    if max_price is not None:
        price_filter["$lte"] = max_price
    if price_filter:
        filter_q["price"] = price_filter
    items = await get_documents(db, COLLECTION, filter_q, limit)
    return {"success": True, "products": items, "count": len(items)}


@router.post("/admin/product/new")
async def create_product(
    product: Product,
    user: Principal = Depends(authorize_roles("admin")),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    if await db[COLLECTION].find_one({"slug": product.slug}):
        raise ValidationError("Duplicate slug entered")
    data = product.model_dump(mode="json")
    data.update(reviews=[], **_rating_fields([]))
    data["created_by"] = user.id
    try:
        record = await create_document(db, COLLECTION, data)
    except DuplicateKeyError:
        raise ValidationError("Duplicate slug entered")
    return JSONResponse(status_code=201, content={"success": True, "product": record})


@router.put("/admin/product/{product_id}")
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    _: Principal = Depends(authorize_roles("admin")),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    changes = payload.model_dump(mode="json", exclude_none=True)
    if not changes:
        raise ValidationError("Nothing to update")
    product = await update_document(db, COLLECTION, product_id, changes)
    if not product:
        raise NotFound("Product not found")
    return {"success": True, "product": product}


@router.delete("/admin/product/{product_id}")
async def delete_product(
    product_id: str,
    _: Principal = Depends(authorize_roles("admin")),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    if not await delete_document(db, COLLECTION, product_id):
        raise NotFound("Product not found")
    return {"success": True, "message": "Product deleted successfully"}


@router.get("/product/{key}")
async def get_product(key: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Look a product up by id, or by slug when `key` is not an id."""
    if to_object_id(key) is not None:
        product = await get_document(db, COLLECTION, key)
    else:
        items = await get_documents(db, COLLECTION, {"slug": key}, 1)
        product = items[0] if items else None
    if not product:
        raise NotFound("Product not found")
    return {"success": True, "product": product}


@router.put("/review")
async def create_product_review(
    payload: ReviewRequest,
    user: Principal = Depends(current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    product = await _find_product(db, payload.product_id)
    oid = to_object_id(product["_id"])
    edit = {"reviews.$.rating": payload.rating, "reviews.$.comment": payload.comment}

    res = await db[COLLECTION].update_one({"_id": oid, "reviews.user": user.id}, {"$set": edit})
    if res.matched_count == 0:
        review = {
            "_id": str(ObjectId()),
            "user": user.id,
            "name": user.name,
            "rating": payload.rating,
            "comment": payload.comment,
        }
        res = await db[COLLECTION].update_one(
            {"_id": oid, "reviews.user": {"$ne": user.id}},
            {"$push": {"reviews": review}},
        )
        if res.matched_count == 0:
            # the caller's review landed in between; edit it instead
            await db[COLLECTION].update_one({"_id": oid, "reviews.user": user.id}, {"$set": edit})

    product = await _refresh_rating(db, product["_id"])
    if not product:
        raise NotFound("Product not found")
    return {"success": True, "product": product}


@router.get("/reviews")
async def get_product_reviews(
    product_id: str = Query(..., alias="id"),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    product = await _find_product(db, product_id)
    return {"success": True, "reviews": product.get("reviews", [])}


@router.delete("/reviews")
async def delete_review(
    product_id: str = Query(..., alias="productId"),
    review_id: str = Query(..., alias="id"),
    user: Principal = Depends(current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    product = await _find_product(db, product_id)
    review = next((r for r in product.get("reviews", []) if r["_id"] == review_id), None)
    if review is None:
        raise NotFound("Review not found")
    if review["user"] != user.id and user.role != "admin":
        raise Forbidden("You can only delete your own review")

    await db[COLLECTION].update_one(
        {"_id": to_object_id(product["_id"])},
        {"$pull": {"reviews": {"_id": review_id}}},
    )
    await _refresh_rating(db, product["_id"])
    return {"success": True, "message": "Review deleted successfully"}
