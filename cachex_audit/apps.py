from django.apps import AppConfig


class CacheAuditConfig(AppConfig):
    """Django app configuration providing the ``audit_expiry`` management command."""

    name = "cachex_audit"
    verbose_name = "cachex-audit"
