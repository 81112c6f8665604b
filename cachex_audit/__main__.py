"""Standalone entry point: ``python -m cachex_audit`` / ``cachex-audit``.

Runs the ``audit_expiry`` management command without a Django project.
When ``DJANGO_SETTINGS_MODULE`` is set, that project's settings are used
instead, which makes ``--cache ALIAS`` available.
"""

from __future__ import annotations

import os
import sys

import django
from django.conf import settings

from cachex_audit.management.commands.audit_expiry import Command

PROG = "cachex-audit"


def main(argv: list[str] | None = None) -> None:
    if not settings.configured and not os.environ.get("DJANGO_SETTINGS_MODULE"):
        settings.configure(INSTALLED_APPS=["cachex_audit"], LOGGING_CONFIG=None)
    django.setup()

    argv = sys.argv[1:] if argv is None else argv
    Command().run_from_argv([PROG, "audit_expiry", *argv])


if __name__ == "__main__":
    main()
