import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import AuthService, get_auth_service, get_current_user, require_admin
from config import Settings, get_settings
from database import Database, get_database, get_db
from repositories import OrderRepository, ProductRepository
from schemas import (
    Order, OrderCreate, OrderUpdate, Product as ProductSchema, ProductUpdate,
    can_transition, is_object_id,
)

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("storefront")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not get_settings().jwt_secret:
        logger.warning("JWT_SECRET is not set; login, registration and protected routes will fail")
    yield
    app.state.database.close()


app = FastAPI(title="Storefront API", lifespan=lifespan)
app.state.database = Database.from_settings(settings)


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, x-auth-token",
}


@app.middleware("http")
async def handle_errors(request: Request, call_next):
    logger.info("API Request: %s %s", request.method, request.url.path)
    if request.method == "OPTIONS":
        response = Response(status_code=200)
    else:
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("API Error on %s %s", request.method, request.url.path)
            response = JSONResponse(status_code=500, content={"message": "Server error", "error": str(e)})
    # Stamped on every response, with or without an Origin header.
    response.headers.update(CORS_HEADERS)
    return response


# ----------------------- Errors -----------------------
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route not found: {request.url.path}"
        logger.info("Route not found: %s", request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"message": describe_errors(exc.errors())})


# ----------------------- Utils -----------------------
def describe_errors(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "Invalid value"))
    return "; ".join(parts) or "Invalid request"


def parse_payload(model: type, data: dict) -> BaseModel:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=describe_errors(e.errors()))


async def json_body(request: Request) -> dict:
    """Request body as a dict; malformed or non-object JSON reads as {}."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def oid(id_str: str, label: str) -> ObjectId:
    if not is_object_id(id_str):
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID")
    return ObjectId(id_str)


def product_repo(db=Depends(get_db)) -> ProductRepository:
    return ProductRepository(db)


def order_repo(db=Depends(get_db)) -> OrderRepository:
    return OrderRepository(db)


router = APIRouter()


# ----------------------- Health -----------------------
@router.get("/health")
def health(database: Database = Depends(get_database), settings: Settings = Depends(get_settings)):
    return {
        "status": "OK",
        "message": "API is running",
        "mongodb": "Connected" if database.ping() else "Disconnected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
    }


# ----------------------- Auth -----------------------
@router.post("/auth/register", status_code=201)
def register(body: dict = Depends(json_body), service: AuthService = Depends(get_auth_service)):
    return service.register(body.get("name"), body.get("email"), body.get("password"))


@router.post("/auth/login")
def login(body: dict = Depends(json_body), service: AuthService = Depends(get_auth_service)):
    return service.login(body.get("email"), body.get("password"))


@router.get("/auth/me")
def me(user: dict = Depends(get_current_user)):
    return {"user": user}


# ----------------------- Products -----------------------
@router.get("/products")
def list_products(products: ProductRepository = Depends(product_repo)):
    return products.list_all()


@router.post("/products", status_code=201)
def create_product(
    body: dict = Depends(json_body),
    products: ProductRepository = Depends(product_repo),
    user=Depends(require_admin),
):
    if not body.get("images"):
        raise HTTPException(status_code=400, detail="At least one image is required")
    payload = parse_payload(ProductSchema, body)
    created = products.create(payload)
    logger.info("Product created: %s", created["id"])
    return created


@router.get("/products/latest")
def latest_product(products: ProductRepository = Depends(product_repo)):
    return products.latest()


@router.get("/products/{product_id}")
def get_product(product_id: str, products: ProductRepository = Depends(product_repo)):
    item = products.get_by_id(oid(product_id, "product"))
    if not item:
        raise HTTPException(status_code=404, detail="Product not found")
    return item


@router.put("/products/{product_id}")
def update_product(
    product_id: str,
    body: dict = Depends(json_body),
    products: ProductRepository = Depends(product_repo),
    user=Depends(require_admin),
):
    pid = oid(product_id, "product")
    update = parse_payload(ProductUpdate, body).model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    item = products.update(pid, update)
    if not item:
        raise HTTPException(status_code=404, detail="Product not found")
    return item


@router.put("/products/{product_id}/toggle")
def toggle_product(
    product_id: str,
    products: ProductRepository = Depends(product_repo),
    user=Depends(require_admin),
):
    item = products.toggle_availability(oid(product_id, "product"))
    if not item:
        raise HTTPException(status_code=404, detail="Product not found")
    return item


@router.delete("/products/{product_id}")
def delete_product(
    product_id: str,
    products: ProductRepository = Depends(product_repo),
    user=Depends(require_admin),
):
    if not products.delete(oid(product_id, "product")):
        raise HTTPException(status_code=404, detail="Product not found")
    return {"message": "Product deleted successfully"}


# ----------------------- Categories -----------------------
@router.get("/categories")
def list_categories(database: Database = Depends(get_database)):
    try:
        return ProductRepository(database.connect()).distinct_categories()
    except PyMongoError as e:
        logger.error("Database error in categories: %s", e)
        return []


@router.get("/categories/{slug}/products")
def category_products(slug: str, products: ProductRepository = Depends(product_repo)):
    return products.list_by_category(slug)


# ----------------------- Orders -----------------------
@router.get("/orders")
def list_orders(orders: OrderRepository = Depends(order_repo)):
    return orders.list_all()


@router.post("/orders", status_code=201)
def create_order(body: dict = Depends(json_body), orders: OrderRepository = Depends(order_repo)):
    required = ("customerName", "customerPhone", "customerAddress", "items")
    if any(not body.get(k) for k in required):
        raise HTTPException(status_code=400, detail="Customer name, phone, address and items are required")
    payload = parse_payload(OrderCreate, body)
    created = orders.create(Order(**payload.model_dump(), status="pending"))
    logger.info("Order created successfully: %s", created["id"])
    return created


@router.get("/orders/{order_id}")
def get_order(order_id: str, orders: OrderRepository = Depends(order_repo)):
    order = orders.get_expanded(oid(order_id, "order"))
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.put("/orders/{order_id}")
def update_order(
    order_id: str,
    body: dict = Depends(json_body),
    orders: OrderRepository = Depends(order_repo),
):
    order_oid = oid(order_id, "order")
    update = parse_payload(OrderUpdate, body).model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    current = orders.get_by_id(order_oid)
    if not current:
        raise HTTPException(status_code=404, detail="Order not found")
    current_status, new_status = current.get("status", "pending"), update.get("status")
    if new_status and not can_transition(current_status, new_status):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot change order status from {current_status} to {new_status}",
        )
    order = orders.update(order_oid, update)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# ----------------------- Mounting -----------------------
@app.get("/")
def root():
    return {"message": "Storefront API running"}


app.include_router(router)
app.include_router(router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
