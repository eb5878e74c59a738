from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint

from .db import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    __tablename__ = "products"
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), index=True, nullable=False)
    name = Column(String, nullable=False)
    sku = Column(String, nullable=False)
    category = Column(String, nullable=False)
    threshold = Column(Integer, nullable=False, default=20)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    __table_args__ = (UniqueConstraint("workspace_id", "sku", name="uq_products_workspace_sku"),)


class Location(Base):
    __tablename__ = "locations"
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), index=True, nullable=False)
    name = Column(String, nullable=False)
    type = Column(String(16), nullable=False)
    city = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(String(36), ForeignKey("locations.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    threshold = Column(Integer, nullable=False, default=20)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    __table_args__ = (UniqueConstraint("product_id", "location_id", name="uq_inventory_product_location"),)


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(String(36), ForeignKey("locations.id"), nullable=False)
    to_location_id = Column(String(36), ForeignKey("locations.id"), nullable=True)
    type = Column(String(16), nullable=False)
    quantity = Column(Integer, nullable=False)
    source = Column(String(16), nullable=False, default="manual")
    note = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow)


class CommandRun(Base):
    __tablename__ = "ai_command_runs"
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), index=True, nullable=False)
    user_id = Column(String(64), index=True, nullable=False)
    conversation_id = Column(String(64), index=True, nullable=True)
    prompt = Column(Text, nullable=False)
    model = Column(String, nullable=False)
    status = Column(String(32), nullable=False, default="processing")
    assistant_message = Column(Text, nullable=True)
    clarification = Column(JSON(none_as_null=True), nullable=True)
    normalized_intent = Column(JSON(none_as_null=True), nullable=True)
    execution_result = Column(JSON(none_as_null=True), nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    executed_at = Column(DateTime(timezone=True), nullable=True)


class CommandAction(Base):
    __tablename__ = "ai_command_actions"
    id = Column(String(36), primary_key=True, default=new_id)
    run_id = Column(String(36), ForeignKey("ai_command_runs.id"), nullable=False, index=True)
    workspace_id = Column(String(64), nullable=False)
    user_id = Column(String(64), nullable=False)
    action_index = Column(Integer, nullable=False)
    kind = Column(String(48), nullable=False)
    action_payload = Column(JSON, nullable=False)
    resolved_payload = Column(JSON(none_as_null=True), nullable=True)
    status = Column(String(16), nullable=False, default="planned")
    error = Column(Text, nullable=True)
    result = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)
    __table_args__ = (UniqueConstraint("run_id", "action_index", name="uq_actions_run_index"),)
