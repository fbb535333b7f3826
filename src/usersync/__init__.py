"""usersync — add users once, watch them in two independent stores.

A REST-backed document store and a realtime document database are written
to side by side and shown as two live lists filtered by the same domain.
"""

__version__ = "0.1.0"
