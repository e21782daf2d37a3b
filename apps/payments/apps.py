import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.payments"

    payments_settings = None
    gateways: dict = {}

    def ready(self) -> None:
        from .conf import PaymentsSettings
        from .gateways import build_gateway

        self.payments_settings = PaymentsSettings.from_mapping(getattr(settings, "PAYMENTS", {}))
        self.gateways = {
            name: build_gateway(config)
            for name, config in self.payments_settings.providers.items()
        }
        for name, config in self.payments_settings.providers.items():
            if not config.key_id or not config.key_secret:
                logger.warning(f"Payment provider {name} has no credentials configured")

    def get_gateway(self, provider=None):
        from shared.domain.exceptions import ValidationError

        name = provider or self.payments_settings.default_provider
        try:
            return self.gateways[name]
        except KeyError:
            raise ValidationError(f"Unknown payment provider: {name!r}", code="unknown_provider")
