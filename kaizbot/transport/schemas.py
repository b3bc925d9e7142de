# kaizbot/transport/schemas.py
from pydantic import BaseModel, Field


class RegistrationCompleteIn(BaseModel):
    reference_code: str = Field(default="", max_length=64)


class RegistrationCompleteOut(BaseModel):
    status: str = "registered"
    reference_code: str
    notified: bool


class ServiceStatusOut(BaseModel):
    bot: str
    status: str
    uptime: str
    timestamp: str
    features: list[str]


class HealthOut(BaseModel):
    status: str
    uptime: str
    timestamp: str
