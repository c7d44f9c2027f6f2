"""
Seed a restaurant account, a console admin and a starter product catalog.

Seeding is idempotent:
- An existing restaurant (matched by email) is reused, not recreated
- An existing admin is left untouched
- Products are only added when the restaurant has none yet (or --force)

Usage:
    python -m scripts.seed_restaurant --email dono@restaurante.com.br --password segredo1
        [--name "Bar do Zé"] [--tables 12] [--admin-email admin@pedeai.com.br
        --admin-password ...] [--catalog-file produtos.json] [--force]

Environment:
    APP_DATABASE_URL: Database connection (default: sqlite:///pedeai.db)
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from pedeai.catalog import ProductInput, product_to_record
from pedeai.db.dependencies import hash_password
from pedeai.storage import SQLAlchemyStorage, Storage

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


STARTER_CATALOG: List[Dict[str, Any]] = [
    {"name": "Suco de Laranja", "price": 8.0, "category": "Bebidas", "station": "bar", "stock": 40},
    {"name": "Refrigerante Lata", "price": 6.0, "category": "Bebidas", "station": "bar", "stock": 60},
    {"name": "Cerveja Long Neck", "price": 12.0, "category": "Bebidas", "station": "bar", "stock": 48},
    {"name": "Caipirinha", "price": 18.0, "category": "Drinks", "station": "bar", "stock": 30},
    {"name": "Pão de Queijo (6un)", "price": 14.0, "category": "Petiscos", "station": "kitchen", "stock": 25},
    {"name": "Batata Frita", "price": 22.0, "category": "Petiscos", "station": "kitchen", "stock": 30},
    {"name": "Bolo de Cenoura", "price": 9.5, "category": "Sobremesas", "station": "kitchen", "stock": 12},
    {"name": "Prato Feito", "price": 32.0, "category": "Pratos", "station": "kitchen", "stock": 20},
]


def load_catalog(catalog_file: Optional[str]) -> List[ProductInput]:
    """Catalog from a JSON list of products, or the built-in starter catalog."""
    if catalog_file is None:
        raw = STARTER_CATALOG
    else:
        if not os.path.exists(catalog_file):
            raise FileNotFoundError(f"Catalog file not found: {catalog_file}")
        with open(catalog_file, 'r', encoding='utf-8') as f:
            raw = json.load(f)
        logger.info(f"Loaded {len(raw)} products from {catalog_file}")
    return [ProductInput.model_validate(item) for item in raw]


def seed_restaurant(
    storage: Storage,
    name: str,
    email: str,
    password: str,
    tables: int = 12,
    catalog: Optional[List[ProductInput]] = None,
    admin_email: Optional[str] = None,
    admin_password: Optional[str] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """
    Seed the account and catalog.

    Returns:
        Dictionary with statistics: {
            'restaurant_id': str,
            'created_restaurant': bool,
            'created_admin': bool,
            'products_created': int
        }
    """
    stats = {
        'restaurant_id': None,
        'created_restaurant': False,
        'created_admin': False,
        'products_created': 0,
    }

    restaurant = storage.find_restaurant_by_email(email)
    if restaurant is None:
        restaurant = storage.create_restaurant({
            "nome": name,
            "email": email,
            "senha": hash_password(password),
            "quantidade_mesas": str(tables),
            "configuracoes": {},
        })
        stats['created_restaurant'] = True
        logger.info(f"Created restaurant {name} ({restaurant['id']})")
    else:
        logger.info(f"Restaurant {email} already exists ({restaurant['id']}), reusing it")
    stats['restaurant_id'] = restaurant['id']

    if admin_email and admin_password:
        if storage.find_admin(admin_email) is None:
            storage.create_admin(admin_email, hash_password(admin_password), ["admin"])
            stats['created_admin'] = True
            logger.info(f"Created admin {admin_email}")
        else:
            logger.info(f"Admin {admin_email} already exists, skipping")

    existing_products = storage.list_products(restaurant['id'])
    if existing_products and not force:
        logger.info(
            f"Restaurant already has {len(existing_products)} products. "
            "Skipping catalog (idempotent). Use --force to add anyway."
        )
        return stats

    for product in catalog or []:
        storage.insert_product(restaurant['id'], product_to_record(product))
        stats['products_created'] += 1
    logger.info(f"Created {stats['products_created']} products")

    return stats


def main():
    """Command-line interface for restaurant seeding."""
    parser = argparse.ArgumentParser(
        description="Seed a restaurant, an admin and a starter catalog idempotently"
    )
    parser.add_argument('--name', default='Meu Restaurante', help='Restaurant name')
    parser.add_argument('--email', required=True, help='Restaurant login email')
    parser.add_argument('--password', required=True, help='Restaurant login password')
    parser.add_argument('--tables', type=int, default=12, help='Number of tables (default: 12)')
    parser.add_argument('--admin-email', default=None, help='Console admin email (optional)')
    parser.add_argument('--admin-password', default=None, help='Console admin password')
    parser.add_argument(
        '--catalog-file',
        help='JSON list of products (default: built-in starter catalog)',
        default=None
    )
    parser.add_argument(
        '--force',
        action='store_true',
        help='Add the catalog even if the restaurant already has products'
    )
    parser.add_argument(
        '--database-url',
        help='Database URL (default: env var APP_DATABASE_URL or sqlite:///pedeai.db)',
        default=None
    )

    args = parser.parse_args()

    try:
        catalog = load_catalog(args.catalog_file)
    except Exception as e:
        logger.error(f"Failed to load catalog: {e}")
        return 1

    db_url = args.database_url or os.getenv('APP_DATABASE_URL', 'sqlite:///pedeai.db')
    logger.info(f"Using database: {db_url}")
    storage = SQLAlchemyStorage(db_url)

    try:
        stats = seed_restaurant(
            storage,
            args.name,
            args.email,
            args.password,
            tables=args.tables,
            catalog=catalog,
            admin_email=args.admin_email,
            admin_password=args.admin_password,
            force=args.force,
        )

        print("\n" + "="*60)
        print("SEED RESULTS")
        print("="*60)
        print(f"Restaurant ID:      {stats['restaurant_id']}")
        print(f"Restaurant Created: {stats['created_restaurant']}")
        print(f"Admin Created:      {stats['created_admin']}")
        print(f"Products Created:   {stats['products_created']}")
        print("="*60 + "\n")

        return 0

    except Exception as e:
        logger.error(f"Seeding failed: {e}", exc_info=True)
        return 1
    finally:
        storage.close()


if __name__ == '__main__':
    sys.exit(main())
