"""
ORM Models for catalog records (product lines and products).

Server-managed columns (id, created_by, updated_by, created_at, updated_at)
are stamped by RecordRepository and never taken from caller payloads.
"""
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, func
from backend.app.core.database import Base


class ProductLineORM(Base):
    __tablename__ = "product_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    type_of_products = Column(String(255), nullable=True)
    product_line_manager = Column(String(255), nullable=True)
    strength = Column(Text, nullable=True)
    weakness = Column(Text, nullable=True)

    created_by = Column(String(128), nullable=True)
    updated_by = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<ProductLine {self.id} {self.name}>"


class ProductORM(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    product_line = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    capacity = Column(String(100), nullable=True)
    gmdc_pct = Column(Numeric(5, 2), nullable=True) # Gross margin, percent

    # Attachment references (tokens issued by AttachmentStore)
    product_pictures = Column(String(512), unique=True, nullable=True)
    spec_sheet = Column(String(512), unique=True, nullable=True)

    created_by = Column(String(128), nullable=True)
    updated_by = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Product {self.id} {self.name}>"
