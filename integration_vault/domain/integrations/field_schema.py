"""Declarative per-provider credential field classification.

Save, masking and dispatch all read this table instead of hard-coding
which fields are secret.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ...errors import InvalidCredentials


class Provider(str, Enum):
    WHATSAPP = "whatsapp"
    TWILIO = "twilio"
    STRIPE = "stripe"
    EMAIL = "email"


@dataclass(frozen=True)
class FieldSpec:
    sensitive: bool
    required: bool = True
    routing_key: bool = False


@dataclass(frozen=True)
class ProviderSchema:
    provider: Provider
    fields: dict[str, FieldSpec]
    # Sensitive fields an outbound client needs; nothing else is decrypted on resolve
    dispatch_fields: tuple[str, ...]

    @property
    def sensitive_fields(self) -> list[str]:
        return [name for name, spec in self.fields.items() if spec.sensitive]

    @property
    def routing_field(self) -> Optional[str]:
        for name, spec in self.fields.items():
            if spec.routing_key:
                return name
        return None

    def is_sensitive(self, name: str) -> Optional[bool]:
        """True/False for declared fields, None for fields the schema does not know"""
        spec = self.fields.get(name)
        return spec.sensitive if spec else None

    def validate(self, values: dict) -> dict:
        """Keep declared fields only and require the mandatory ones"""
        missing = [
            name
            for name, spec in self.fields.items()
            if spec.required and (values.get(name) is None or values.get(name) == "")
        ]
        if missing:
            raise InvalidCredentials(
                f"Missing required {self.provider.value} fields: {', '.join(missing)}"
            )
        return {name: values[name] for name in self.fields if values.get(name) is not None}


PROVIDER_SCHEMAS: dict[Provider, ProviderSchema] = {
    Provider.WHATSAPP: ProviderSchema(
        provider=Provider.WHATSAPP,
        fields={
            "phoneNumberId": FieldSpec(sensitive=False, routing_key=True),
            "businessAccountId": FieldSpec(sensitive=True),
            "accessToken": FieldSpec(sensitive=True),
            "verifyToken": FieldSpec(sensitive=True),
        },
        dispatch_fields=("accessToken",),
    ),
    Provider.TWILIO: ProviderSchema(
        provider=Provider.TWILIO,
        fields={
            "accountSid": FieldSpec(sensitive=True),
            "authToken": FieldSpec(sensitive=True),
            "phoneNumber": FieldSpec(sensitive=False, routing_key=True),
        },
        dispatch_fields=("accountSid", "authToken"),
    ),
    Provider.STRIPE: ProviderSchema(
        provider=Provider.STRIPE,
        fields={
            "secretKey": FieldSpec(sensitive=True),
            "publishableKey": FieldSpec(sensitive=False),
            "webhookSecret": FieldSpec(sensitive=True, required=False),
        },
        dispatch_fields=("secretKey",),
    ),
    Provider.EMAIL: ProviderSchema(
        provider=Provider.EMAIL,
        fields={
            "host": FieldSpec(sensitive=False),
            "port": FieldSpec(sensitive=False),
            "secure": FieldSpec(sensitive=False, required=False),
            "user": FieldSpec(sensitive=False),
            "password": FieldSpec(sensitive=True),
        },
        dispatch_fields=("password",),
    ),
}


def get_schema(provider) -> ProviderSchema:
    try:
        return PROVIDER_SCHEMAS[Provider(provider)]
    except ValueError as e:
        raise InvalidCredentials(f"Unknown provider: {provider}") from e
