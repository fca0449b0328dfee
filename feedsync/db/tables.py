"""Table definitions for the catalog, options, feed cache and import jobs."""

from __future__ import annotations

from sqlalchemy import Column, Float, ForeignKey, Integer, MetaData, Table, Text, UniqueConstraint

metadata = MetaData()

catalog_products = Table(
    "catalog_products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source", Text, nullable=False),
    Column("sku", Text, nullable=False),
    Column("name", Text, nullable=False, default=""),
    Column("price", Float),
    Column("stock", Integer),
    Column("status", Text, nullable=False, default="publish"),
    UniqueConstraint("source", "sku", name="uq_catalog_products_source_sku"),
)

catalog_fields = Table(
    "catalog_fields",
    metadata,
    Column("product_id", Integer, ForeignKey("catalog_products.id", ondelete="CASCADE"), primary_key=True),
    Column("key", Text, primary_key=True),
    Column("value", Text),
)

catalog_terms = Table(
    "catalog_terms",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("label", Text, nullable=False),
    Column("parent_id", Integer, ForeignKey("catalog_terms.id")),
    UniqueConstraint("label", "parent_id", name="uq_catalog_terms_label_parent"),
)

catalog_product_terms = Table(
    "catalog_product_terms",
    metadata,
    Column("product_id", Integer, ForeignKey("catalog_products.id", ondelete="CASCADE"), primary_key=True),
    Column("term_id", Integer, ForeignKey("catalog_terms.id"), primary_key=True),
    Column("position", Integer, nullable=False, default=0),
)

catalog_media = Table(
    "catalog_media",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", Integer, ForeignKey("catalog_products.id", ondelete="CASCADE"), nullable=False),
    Column("role", Text, nullable=False),
    Column("position", Integer, nullable=False, default=0),
    Column("url", Text, nullable=False),
)

options = Table(
    "options",
    metadata,
    Column("key", Text, primary_key=True),
    Column("value", Text),
)

feed_cache = Table(
    "feed_cache",
    metadata,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),
    Column("expires_at", Float, nullable=False),
)

import_jobs = Table(
    "import_jobs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source", Text, nullable=False),
    Column("generation", Integer, nullable=False),
    Column("kind", Text, nullable=False),
    Column("payload", Text, nullable=False),
    Column("status", Text, nullable=False, default="pending"),
)
