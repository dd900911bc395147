"""
Pydantic response models for API endpoints.
"""
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════════
# BATTLE STATE
# ═══════════════════════════════════════════════════════════════════════════════

class BattleStateResponse(BaseModel):
    """Public running totals."""
    sweetRevenue: float = Field(description="Revenue attributed to sweet products")
    savouryRevenue: float = Field(description="Revenue attributed to savoury products")
    lastUpdated: str = Field(description="Last aggregate change (ISO-8601)")


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class StoreStatus(BaseModel):
    """Redis connectivity."""
    status: str
    latency_ms: Optional[float] = None
    reads: Optional[int] = None
    writes: Optional[int] = None
    errors: Optional[int] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str = Field(description="Application version")
    uptime_seconds: int = Field(description="Uptime in seconds")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    store: StoreStatus
    shopify_circuit: Dict[str, Any] = Field(description="Shopify circuit breaker state and failure count")


class MetricsResponse(BaseModel):
    """Application metrics."""
    uptime_seconds: int
    correlation_id: Optional[str] = None
    requests: Dict[str, int]
    outcomes: Dict[str, int]
    errors: Dict[str, int]
    timing: Dict[str, Any]
