"""
Database maintenance commands

    storefront-seed seed-products     replace the catalogue with the sample products
    storefront-seed clear-products    delete every product
    storefront-seed create-admin      create (or promote) an admin account
"""
import argparse
import logging
import os
import sys

from auth import hash_password
from config import get_settings
from database import Database
from repositories import ProductRepository, UserRepository
from schemas import Product as ProductSchema, User as UserSchema

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    {
        "name": "Premium Cotton T-Shirt",
        "description": "High-quality cotton t-shirt perfect for everyday wear. Soft, comfortable, and durable.",
        "originalPrice": 299,
        "salePrice": 199,
        "category": "t-shirt",
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "colors": ["White", "Black", "Gray", "Navy Blue"],
        "images": ["/hero.webp"],
    },
    {
        "name": "Classic Denim Jeans",
        "description": "Comfortable denim jeans with a classic fit. Perfect for casual and semi-formal occasions.",
        "originalPrice": 599,
        "salePrice": 449,
        "category": "pants",
        "sizes": ["28", "30", "32", "34", "36", "38"],
        "colors": ["Blue", "Black", "Dark Blue"],
        "images": ["/hero.webp"],
    },
    {
        "name": "Baseball Cap",
        "description": "Stylish baseball cap with adjustable strap. Perfect for outdoor activities and casual wear.",
        "originalPrice": 149,
        "salePrice": 99,
        "category": "cap",
        "sizes": ["One Size"],
        "colors": ["Black", "White", "Red", "Blue"],
        "images": ["/hero.webp"],
    },
    {
        "name": "Zip-up Hoodie",
        "description": "Warm and comfortable zip-up hoodie. Perfect for cool weather and layering.",
        "originalPrice": 799,
        "salePrice": 599,
        "category": "zip-up",
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "colors": ["Gray", "Black", "Navy", "Maroon"],
        "images": ["/hero.webp"],
    },
    {
        "name": "Cozy Pullover Hoodie",
        "description": "Super soft pullover hoodie with kangaroo pocket. Perfect for lounging and casual outings.",
        "originalPrice": 699,
        "salePrice": 499,
        "category": "hoodies",
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "colors": ["Gray", "Black", "White", "Green"],
        "images": ["/hero.webp"],
    },
    {
        "name": "Classic Polo Shirt",
        "description": "Elegant polo shirt perfect for business casual and smart casual occasions.",
        "originalPrice": 399,
        "salePrice": 299,
        "category": "polo shirts",
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "colors": ["White", "Navy", "Black", "Light Blue"],
        "images": ["/hero.webp"],
    },
]


def clear_products(db) -> int:
    result = db[ProductRepository.collection_name].delete_many({})
    return result.deleted_count


def seed_products(db) -> int:
    clear_products(db)
    products = ProductRepository(db)
    for p in SAMPLE_PRODUCTS:
        products.create(ProductSchema(**p))
    return len(SAMPLE_PRODUCTS)


def create_admin(db, name: str, email: str, password: str, rounds: int = 10) -> dict:
    """Create an admin account, or promote the existing account with that email.

    The password of an existing account is left unchanged.
    """
    users = UserRepository(db)
    email = email.strip().lower()
    existing = users.find_by_email(email)
    if existing:
        return users.update(existing["_id"], {"isAdmin": True})
    return users.create(UserSchema(name=name, email=email, password=hash_password(password, rounds), is_admin=True))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront-seed", description="Storefront database maintenance")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("seed-products", help="replace all products with the sample catalogue")
    sub.add_parser("clear-products", help="delete all products")
    admin = sub.add_parser("create-admin", help="create or promote an admin user")
    admin.add_argument("--name", default=os.getenv("ADMIN_NAME", "Admin"))
    admin.add_argument("--email", default=os.getenv("ADMIN_EMAIL"))
    admin.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(message)s")

    database = Database.from_settings(settings)
    try:
        db = database.connect()
        if args.command == "seed-products":
            logger.info("Added %d sample products to database", seed_products(db))
        elif args.command == "clear-products":
            logger.info("Deleted %d products from database", clear_products(db))
        elif args.command == "create-admin":
            if not args.email or not args.password:
                logger.error("create-admin needs --email and --password (or ADMIN_EMAIL / ADMIN_PASSWORD)")
                return 2
            user = create_admin(db, args.name, args.email, args.password, settings.bcrypt_rounds)
            logger.info("Admin user ready: %s", user["email"])
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
