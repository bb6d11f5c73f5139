from .contacts import ContactRepository, ContactStore
from .memory import InMemoryContactStore
from .postgres import PostgresContactStore

__all__ = ["ContactRepository", "ContactStore", "InMemoryContactStore", "PostgresContactStore"]
