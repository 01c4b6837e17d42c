"""Service Cost Model - Token price of each metered service"""
from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.sql import func
from app.database import Base, utcnow


class ServiceCost(Base):
    __tablename__ = "service_token_costs"

    service_name = Column(String(100), primary_key=True)
    cost = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("cost > 0", name="ck_service_cost_positive"),
    )

    def __repr__(self):
        return f"<ServiceCost(service_name='{self.service_name}', cost={self.cost})>"
