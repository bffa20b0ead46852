"""Storage singleton shared by the services and the API."""
from models.db_storage import DBStorage

storage = DBStorage()
storage.reload()
