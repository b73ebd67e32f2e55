"""Rolling production, inventory and shipment planning for cement networks."""

__version__ = "0.1.0"
