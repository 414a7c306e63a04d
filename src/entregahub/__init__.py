"""EntregaHub delivery marketplace backend.

Connects merchants, couriers and administrators around a guarded delivery
lifecycle and a background cleanup scheduler.
"""

__version__ = "0.1.0"
