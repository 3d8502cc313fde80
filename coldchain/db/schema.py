# coldchain/db/schema.py
"""
Property-graph tables.

node: typed vertex with a unique (type, identifier) key and JSON attributes
edge: typed, directed relationship between two nodes with JSON attributes
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)

metadata = MetaData()

node_table = Table(
    "node",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", String(64), nullable=False),
    Column("identifier", String(255), nullable=False),
    Column("attrs", JSON, nullable=False, default=dict),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("type", "identifier", name="uq_node_type_identifier"),
)

edge_table = Table(
    "edge",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", String(64), nullable=False),
    Column("src", Integer, ForeignKey("node.id"), nullable=False),
    Column("dst", Integer, ForeignKey("node.id"), nullable=False),
    Column("attrs", JSON, nullable=False, default=dict),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index("ix_edge_src_type", edge_table.c.src, edge_table.c.type)
Index("ix_edge_dst_type", edge_table.c.dst, edge_table.c.type)
