from django.apps import AppConfig
from django.core import checks


class WalletsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "wallets"

    def ready(self):
        from wallets import conf

        conf.get_gateway_config()
        conf.report_missing_configuration()
        checks.register(check_gateway_services, checks.Tags.security)


def check_gateway_services(app_configs=None, **kwargs):
    from wallets.conf import SERVICE_REQUIREMENTS, is_service_ready

    return [
        checks.Warning(
            f"Payment service '{service}' is not configured.",
            hint="Set " + ", ".join(key.upper() for key in keys) + " in the environment.",
            id="wallets.W001",
        )
        for service, keys in SERVICE_REQUIREMENTS.items()
        if not is_service_ready(service)
    ]
