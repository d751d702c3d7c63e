"""Pydantic models for the assignment API."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LeadPayload(_CamelModel):
    id: str
    company: str = ""
    email: str = ""
    phone: str = ""
    score: float = 0
    status: str = ""
    source: str = ""
    region: Optional[str] = None
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")
    custom_fields: Dict[str, Any] = Field(default_factory=dict, alias="customFields")
    industry: Optional[str] = None
    deal_size: Optional[float] = Field(default=None, alias="dealSize")


class ConditionPayload(BaseModel):
    field: str = ""
    operator: str = ""
    value: Any = None


class ActionPayload(BaseModel):
    type: Optional[str] = None
    target: Optional[str] = None
    fallback: Optional[str] = None


class RuleCreateRequest(_CamelModel):
    id: Optional[str] = None
    name: str = ""
    priority: int = 0
    conditions: List[ConditionPayload] = Field(default_factory=list)
    action: Optional[ActionPayload] = None
    is_active: bool = Field(default=True, alias="isActive")


class TerritoryCreateRequest(_CamelModel):
    id: Optional[str] = None
    name: str = ""
    regions: List[str] = Field(default_factory=list)
    assigned_users: List[str] = Field(default_factory=list, alias="assignedUsers")
    priority: int = 0


class CapacityRequest(_CamelModel):
    max_leads: int = Field(..., alias="maxLeads")
    specialties: List[str] = Field(default_factory=list)
    availability: bool = True
    territory: Optional[str] = None


class AvailabilityRequest(BaseModel):
    availability: bool


class LeadCountRequest(_CamelModel):
    current_leads: int = Field(..., alias="currentLeads")


class ManualAssignRequest(_CamelModel):
    lead_id: str = Field(..., alias="leadId")
    user_id: str = Field(..., alias="userId")
    assigned_by: str = Field(default="admin", alias="assignedBy")


class AssignmentResponse(BaseModel):
    success: bool
    assigned_to: Optional[str] = None
    assignment_type: Optional[str] = None
    rule: Optional[Dict[str, Any]] = None
    territory: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    timestamp: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    detail: str
