"""Freightdesk: job orders, invoicing, cash control and reporting for freight forwarders."""

__version__ = "0.4.0"


def __getattr__(name):
    # cli.main pulls in every command module, so load it only on demand
    if name == "main":
        from freightdesk.cli.main import main

        return main
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
