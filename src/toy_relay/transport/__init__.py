"""Socket transports to the relay proxy."""

from .relay_connection import RelayConnection
