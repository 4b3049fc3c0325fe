from digester.transport.iface import PlantTransport

__all__ = ["PlantTransport"]
