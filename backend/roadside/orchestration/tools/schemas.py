"""
Argument schemas for the claim tools.

These models double as the JSON schema the chat model sees, so field
descriptions are written for the model.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class SaveClaimDataArgs(BaseModel):
    """Save details the driver has provided. Only send fields you have values for."""

    driver_name: Optional[str] = Field(None, description="Driver's full name")
    driver_phone: Optional[str] = Field(None, description="Driver's phone number")
    driver_email: Optional[str] = Field(None, description="Driver's email address")
    policy_number: Optional[str] = Field(None, description="Insurance policy number")
    location: Optional[str] = Field(None, description="Where the vehicle is right now")
    incident_description: Optional[str] = Field(None, description="What happened to the vehicle")
    vehicle_make: Optional[str] = Field(None, description="Vehicle manufacturer")
    vehicle_model: Optional[str] = Field(None, description="Vehicle model")
    vehicle_year: Optional[int] = Field(None, description="Vehicle model year", ge=1900, le=2100)

    @field_validator("*", mode="before")
    @classmethod
    def drop_blank(cls, value):
        return _blank_to_none(value)


class PolicyNumberArgs(BaseModel):
    policy_number: str = Field(..., min_length=1, description="Insurance policy number")


class PhoneLookupArgs(BaseModel):
    phone_number: str = Field(..., min_length=1, description="Policy holder's phone number")


class NameLookupArgs(BaseModel):
    holder_name: str = Field(..., min_length=1, description="Policy holder's name, or part of it")


class RecordCoverageDecisionArgs(BaseModel):
    """Record whether the driver's policy covers the services they need."""

    is_covered: bool = Field(..., description="Your assessment of whether the needed services are covered")
    services_needed: List[str] = Field(
        ...,
        description="Services the driver needs: tow_truck, repair_truck, taxi, rental_car",
    )
    services_covered: Optional[List[str]] = Field(None, description="Services you believe are covered")
    services_not_covered: Optional[List[str]] = Field(None, description="Services you believe are not covered")
    coverage_explanation: str = Field("", description="Short explanation for the driver")
    user_confirmed: bool = Field(
        False,
        description="True only if the driver explicitly confirmed their details are correct",
    )


class ServiceTypeArgs(BaseModel):
    service_type: str = Field(..., description="tow_truck, repair_truck, taxi or rental_car")


class ServiceRequest(BaseModel):
    service_type: str = Field(..., description="tow_truck, repair_truck, taxi or rental_car")
    provider_id: Optional[str] = Field(None, description="Specific provider id, if the driver chose one")


class ArrangeServicesArgs(BaseModel):
    """Dispatch covered services and notify the driver."""

    services_to_arrange: List[ServiceRequest] = Field(..., min_length=1)
    notification_message: str = Field("", description="Text of the SMS/email sent to the driver")
    user_confirmed: bool = Field(
        False,
        description="True only if the driver explicitly agreed to have these services arranged",
    )


class CompleteClaimArgs(BaseModel):
    user_confirmed: bool = Field(
        False,
        description="True only if the driver confirmed they have everything they need",
    )
