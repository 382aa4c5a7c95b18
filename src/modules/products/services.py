"""Product service layer (Use Cases).

Orchestrates catalog maintenance for the Product aggregate, delegating
persistence to the injected ``IProductRepository``.  Stock changes
caused by orders do not pass through here; the order service calls the
repository's atomic reserve/release operations directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from django.db import transaction

from modules.products.exceptions import ProductAlreadyExists, ProductNotFound
from modules.products.models import Product, ProductVariant

if TYPE_CHECKING:
    from modules.products.dtos import CreateProductDTO, UpdateProductDTO
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductService:
    """Application service for Product use-cases.

    Receives an ``IProductRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_product(self, dto: CreateProductDTO) -> Product:
        """Create a new product (and its variants) after enforcing SKU uniqueness.

        Raises:
            ProductAlreadyExists: if SKU is already taken.
        """
        log = logger.bind(sku=dto.sku)

        if self._repo.get_by_sku(dto.sku):
            log.warning("product.duplicate_sku")
            raise ProductAlreadyExists(f"SKU '{dto.sku}' already registered.")

        product = Product(
            sku=dto.sku,
            name=dto.name,
            price=dto.price,
            description=dto.description,
            stock_quantity=dto.stock_quantity,
        )
        product = self._repo.save(product)

        for variant in dto.variants:
            ProductVariant.objects.create(
                product=product,
                name=variant.name,
                sku=variant.sku,
                price=variant.price,
                stock=variant.stock,
                weight=variant.weight,
                is_default=variant.is_default,
            )

        log.info(
            "product.created",
            product_id=str(product.id),
            variant_count=len(dto.variants),
        )
        return self._repo.get_by_id(str(product.id)) or product

    @transaction.atomic
    def update_product(self, id: str, dto: UpdateProductDTO) -> Product:
        """Update an existing product with the supplied fields.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self._repo.get_by_id(id)
        if not product:
            raise ProductNotFound(id)

        changed = []
        for field in ("name", "price", "description", "stock_quantity", "status"):
            value = getattr(dto, field)
            if value is not None:
                setattr(product, field, value)
                changed.append(field)

        # purchases and unchanged columns are left to concurrent orders
        product = self._repo.save(product, update_fields=changed)
        logger.info("product.updated", product_id=str(id), fields=changed)
        return product

    @transaction.atomic
    def delete_product(self, id: str) -> None:
        """Soft-delete a product.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        if not self._repo.delete(id):
            raise ProductNotFound(id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_product(self, id: str) -> Product:
        """Retrieve a single product by ID.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self._repo.get_by_id(id)
        if not product:
            raise ProductNotFound(id)
        return product
