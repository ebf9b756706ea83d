# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Notification agent that relays remote snapshots and data dumps by email.

Components:
    fetch: Size-bounded HTTP fetches with safe single-entry archive extraction.
    smtp: Ordered negotiation of encrypted SMTP transports and the resulting
        shared session.
    mail: MIME construction for notification emails.
    NotifierApp: Process lifecycle tying the pieces together.

Example:
    Run the notifier from the command line::

        stn-notifier run --config stn_config.ini

    Or drive it from code::

        from stn_notifier.app import NotifierApp
        from stn_notifier.config import load_settings

        app = NotifierApp(load_settings())
        await app.run_forever()
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
