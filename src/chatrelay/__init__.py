"""chatrelay -- ephemeral global/local chat relay.

Top-level convenience re-exports::

    from chatrelay.relay.app import create_app
    from chatrelay.protocol import ChannelClass, ValidationError
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
