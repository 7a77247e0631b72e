"""
Request and response models for the command API.
"""

from pydantic import BaseModel, field_validator, ConfigDict, Field
from typing import Optional, Dict, Any
from datetime import datetime

from ..core.schema import Role


class CommandRequest(BaseModel):
    command: str

    @field_validator('command')
    @classmethod
    def command_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('command cannot be empty')
        return v.strip()


class CommandResponse(BaseModel):
    """`data` carries intent, responseText, success and the intent-specific payload."""
    data: Dict[str, Any]


class SetUserRoleRequest(BaseModel):
    role: str

    @field_validator('role')
    @classmethod
    def role_must_be_valid(cls, v):
        valid_roles = [r.value for r in Role]
        if v.strip().lower() not in valid_roles:
            raise ValueError(f'role must be one of: {valid_roles}')
        return v.strip().lower()


class ErrorResponse(BaseModel):
    error_type: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class HealthResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    status: str
    version: str
    db_health: bool
    oracle_health: Optional[bool] = None
    model_name: str
