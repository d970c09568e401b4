import hmac
import logging
import math
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, Query, status
from fastapi.middleware.cors import CORSMiddleware
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import catalog
import database
import orders
from auth import TokenData, authenticate, create_access_token, get_password_hash, require_admin, verify_password
from config import LOG_LEVEL, PORT, get_secret_key, get_webhook_secret
from database import create_document, ensure_indexes, get_db, serialize, to_object_id, utcnow
from errors import (
    Forbidden,
    InvalidCredentials,
    ProductNotFound,
    Unauthorized,
    UserExists,
    UserNotFound,
    register_error_handlers,
)
from schemas import (
    MAX_PAGE,
    LoginRequest,
    OrderCreate,
    ProductCreate,
    ProductSearch,
    StatusWebhook,
    User,
    UserCreate,
    UserUpdate,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_secret_key()
    if database.db is not None:
        ensure_indexes(database.db)
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; database routes will fail")
    yield


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    data = serialize(doc)
    data.pop("password_hash", None)
    return data


def paginated(items, page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "data": serialize(items),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@app.get("/")
def read_root():
    return {"name": "Storefront API", "status": "ok"}


@app.get("/test")
def test_database():
    info = {"backend": "running", "database": "disconnected"}
    if database.db is None:
        info["error"] = "Database not configured"
        return info
    try:
        database.db.list_collection_names()
        info["database"] = "connected"
    except Exception as e:
        info["error"] = str(e)
    return info


# ---------------------- Users ----------------------

@app.post("/api/users", status_code=status.HTTP_201_CREATED)
def register(body: UserCreate, db=Depends(get_db)):
    email = body.email.lower() if body.email else None
    clauses = [{"username": body.username}]
    if email:
        clauses.append({"email": email})
    if db["user"].find_one({"$or": clauses}):
        raise UserExists()

    user = User(
        username=body.username,
        email=email,
        password_hash=get_password_hash(body.password),
        first_name=body.first_name,
        last_name=body.last_name,
        profile_image=body.profile_image,
    )
    doc = user.model_dump(exclude_none=True)
    try:
        created = create_document(db, "user", doc)
    except DuplicateKeyError:
        raise UserExists()
    logger.info("Registered user %s (%s)", created["_id"], created["username"])
    return public_user(created)


@app.post("/api/users/login")
def login(body: LoginRequest, db=Depends(get_db)):
    user = db["user"].find_one({"email": body.email.lower()})
    if not user or not verify_password(body.password, user["password_hash"]):
        logger.info("Failed login for %s", body.email)
        raise InvalidCredentials()

    now = utcnow()
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"last_login": now, "updated_at": now}})
    user.update(last_login=now, updated_at=now)

    token = create_access_token(str(user["_id"]), user.get("role", "user"))
    logger.info("User %s logged in", user["_id"])
    return {"token": token, "user": public_user(user)}


@app.get("/api/users/{user_id}")
def get_user(user_id: str, _: TokenData = Depends(authenticate), db=Depends(get_db)):
    oid = to_object_id(user_id)
    user = db["user"].find_one({"_id": oid}) if oid is not None else None
    if user is None:
        raise UserNotFound()
    return public_user(user)


@app.put("/api/users/{user_id}")
def update_user(user_id: str, body: UserUpdate, current: TokenData = Depends(authenticate), db=Depends(get_db)):
    if current.user_id != user_id:
        raise Forbidden("Cannot update other user's profile")

    changes = body.model_dump(exclude_unset=True)
    changes["updated_at"] = utcnow()
    oid = to_object_id(user_id)
    user = None
    if oid is not None:
        user = db["user"].find_one_and_update({"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER)
    if user is None:
        raise UserNotFound()
    return public_user(user)


# ---------------------- Products ----------------------

@app.post("/api/products/search")
def search_products(criteria: ProductSearch, db=Depends(get_db)):
    items, total, limit = catalog.search(db, criteria)
    return paginated(items, criteria.page, limit, total)


@app.get("/api/products/recommendations/{product_id}")
def product_recommendations(product_id: str, db=Depends(get_db)):
    product = catalog.find_by_id(db, product_id)
    if product is None:
        raise ProductNotFound()
    return {
        "product": product["name"],
        "recommendations": serialize(catalog.recommend(db, product)),
    }


@app.get("/api/products/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    product = catalog.find_by_id(db, product_id)
    if product is None:
        raise ProductNotFound()
    return serialize(product)


@app.post("/api/products", status_code=status.HTTP_201_CREATED)
def create_product(body: ProductCreate, _: TokenData = Depends(require_admin), db=Depends(get_db)):
    return serialize(catalog.create_product(db, body))


# ---------------------- Orders ----------------------

@app.post("/api/orders", status_code=status.HTTP_201_CREATED)
def create_order(body: OrderCreate, current: TokenData = Depends(authenticate), db=Depends(get_db)):
    order = orders.create_order(db, current.user_id, body.items, body.shipping_address, body.payment_method)
    return serialize(order)


@app.get("/api/orders")
def list_orders(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(20, ge=1),
    current: TokenData = Depends(authenticate),
    db=Depends(get_db),
):
    items, total, limit = orders.list_orders(db, current.user_id, page, limit)
    return paginated(items, page, limit, total)


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, current: TokenData = Depends(authenticate), db=Depends(get_db)):
    return serialize(orders.get_order(db, current.user_id, order_id))


@app.patch("/api/orders/{order_id}/cancel")
def cancel_order(order_id: str, current: TokenData = Depends(authenticate), db=Depends(get_db)):
    return serialize(orders.cancel_order(db, current.user_id, order_id))


@app.post("/api/orders/webhook/status")
def order_status_webhook(
    body: StatusWebhook,
    x_webhook_secret: Optional[str] = Header(None),
    db=Depends(get_db),
):
    # Open to any caller unless WEBHOOK_SECRET is configured.
    secret = get_webhook_secret()
    if secret and not hmac.compare_digest((x_webhook_secret or "").encode(), secret.encode()):
        raise Unauthorized("Invalid webhook secret")
    orders.update_status(db, body.order_id, body.status, body.tracking_number)
    return {"received": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
