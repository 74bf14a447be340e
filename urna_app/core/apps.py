from __future__ import annotations

from django.apps import AppConfig, apps


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'

    def ready(self):
        from core.fenix import FenixConfig, FenixService
        from core.tokens import PersonSearchSigner

        # Process-lifetime services, handed explicitly to every operation that needs them.
        self.person_search_signer = PersonSearchSigner()
        self.fenix_service = FenixService(FenixConfig.from_settings())


def core_config() -> CoreConfig:
    return apps.get_app_config("core")
